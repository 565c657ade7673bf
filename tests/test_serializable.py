"""Serializable mixin tests on the data model."""

from repohub.models import (
    Branch,
    ChainMetadata,
    Commit,
    CommitMetadata,
    FileEntry,
    Proposal,
    Repository,
)


def _entry(path="a.txt", content=b"\x00hello"):
    return FileEntry(path=path, content=content, hash="h-" + path, last_modified=5)


class TestToDict:
    def test_bytes_become_base64(self):
        assert _entry().to_dict()["content"] == "AGhlbGxv"

    def test_nested(self):
        commit = Commit(id="c1", message="m", timestamp=1, files=[_entry()])
        d = Branch(name="main", commits=[commit]).to_dict()
        assert d["commits"][0]["files"][0]["path"] == "a.txt"


class TestFromDict:
    def test_file_entry(self):
        entry = _entry()
        assert FileEntry.from_dict(entry.to_dict()) == entry

    def test_repository_aggregate(self):
        commit = Commit(id="c1", message="m", timestamp=1, files=[_entry()])
        repo = Repository(
            id="r1",
            owner="alice",
            name="demo",
            collaborators=["bob"],
            files=[_entry()],
            branches=[Branch(name="main", commits=[commit])],
            commits=[commit],
            chain_metadata=[CommitMetadata(commit_id="c1", chain=ChainMetadata(eth_tx="0x1"))],
        )
        restored = Repository.from_dict(repo.to_dict())
        assert restored == repo
        assert isinstance(restored.branches[0].commits[0].files[0].content, bytes)

    def test_missing_optional_fields_use_defaults(self):
        p = Proposal.from_dict(
            {"id": 1, "repository_id": "r1", "proposer": "p", "message": "m", "timestamp": 2}
        )
        assert p.approved is False


class TestHelpers:
    def test_commit_file_lookup(self):
        commit = Commit(id="c1", message="m", timestamp=1, files=[_entry("x"), _entry("y")])
        assert commit.file("y").path == "y"
        assert commit.file("z") is None

    def test_commit_is_a_plain_record(self):
        commit = Commit(id="c1", message="m", timestamp=1, files=[_entry()])
        commit.files.append(_entry("b.txt"))
        assert [f.path for f in commit.files] == ["a.txt", "b.txt"]
        assert len({_entry(), _entry()}) == 1

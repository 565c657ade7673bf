"""
repohub CLI

A thin operator front-end over RepositoryStore. Every command outputs
structured JSON when --json is passed; human-readable output is the
default.

The caller principal comes from --as or the REPOHUB_PRINCIPAL
environment variable. The database comes from --db, then the config
file / REPOHUB_DB, then ./repohub.db.

Usage:
    repohub create NAME [--description TEXT] [--private]
    repohub delete REPO
    repohub repos [--collab]
    repohub show-repo REPO
    repohub collab add REPO PRINCIPAL
    repohub upload REPO PATH [--file LOCAL]
    repohub cat REPO PATH [--commit COMMIT]
    repohub rm REPO PATH
    repohub ls REPO
    repohub commit REPO -m MESSAGE
    repohub log REPO [--branch NAME]
    repohub show REPO COMMIT
    repohub branch list REPO
    repohub branch create REPO NAME [--from BRANCH]
    repohub branch switch REPO NAME
    repohub branch current REPO
    repohub propose REPO -m MESSAGE
    repohub proposals
    repohub approve PROPOSAL_ID
    repohub anchor REPO COMMIT [--eth TX] [--btc TX]
    repohub stats
    repohub gc [--dry-run]
"""

import argparse
import json
import logging
import os
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

import repohub as _repohub_pkg

from .cas import MEMORY_DB
from .config import load_config
from .errors import RepoHubError
from .store import RepositoryStore

DEFAULT_CLI_DB = "repohub.db"
ENV_PRINCIPAL = "REPOHUB_PRINCIPAL"


class UsageError(ValueError):
    """Raised for missing CLI inputs (principal, local file)."""


@contextmanager
def open_store(args):
    """Open a RepositoryStore with guaranteed cleanup on any exit path."""
    config = load_config(args.config)
    if args.db:
        config.db_path = args.db
    elif config.db_path == MEMORY_DB:
        config.db_path = DEFAULT_CLI_DB
    store = RepositoryStore.from_config(config)
    try:
        yield store
    finally:
        store.close()


def principal(args) -> str:
    who = args.principal or os.environ.get(ENV_PRINCIPAL)
    if not who:
        raise UsageError(f"No principal: pass --as NAME or set {ENV_PRINCIPAL}")
    return who


def format_time(ts: int) -> str:
    return datetime.fromtimestamp(ts / 1e9).strftime("%Y-%m-%d %H:%M:%S")


def short_hash(h: str) -> str:
    return h[:12] if h else "none"


def print_json(data):
    print(json.dumps(data, indent=2, default=str))


def _print_repo_line(repo):
    vis = "private" if repo.is_private else "public"
    print(f"  {repo.id}  {repo.name}  ({vis}, owner {repo.owner}, {len(repo.files)} files)")


# ── Repository commands ───────────────────────────────────────────


def cmd_create(args):
    with open_store(args) as store:
        repo_id = store.create_repository(
            principal(args), args.name, args.description, is_private=args.private
        )
        if args.json:
            print_json({"id": repo_id, "name": args.name})
        else:
            print(f"✓ Created repository '{args.name}'")
            print(f"  Id: {repo_id}")


def cmd_delete(args):
    with open_store(args) as store:
        msg = store.delete_repository(principal(args), args.repo)
        if args.json:
            print_json({"status": msg})
        else:
            print(f"✓ {msg}")


def cmd_repos(args):
    with open_store(args) as store:
        who = principal(args)
        if args.collab:
            repos = store.get_collaborator_repositories(who)
        else:
            repos = store.get_user_repositories(who)
        if args.json:
            print_json([r.to_dict() for r in repos])
        elif not repos:
            print("  No repositories.")
        else:
            for repo in repos:
                _print_repo_line(repo)


def cmd_show_repo(args):
    with open_store(args) as store:
        repo = store.get_repository(principal(args), args.repo)
        if repo is None:
            raise RepoHubError(f"Repository not found: {args.repo}")
        if args.json:
            print_json(repo.to_dict())
            return
        print(f"Repository: {repo.name} ({repo.id})")
        if repo.description:
            print(f"  {repo.description}")
        print(f"Owner:      {repo.owner}")
        print(f"Visibility: {'private' if repo.is_private else 'public'}")
        print(f"Branch:     {repo.current_branch}")
        print(f"Commits:    {len(repo.commits)}")
        print(f"Updated:    {format_time(repo.updated_at)}")
        if repo.collaborators:
            print(f"Collaborators: {', '.join(repo.collaborators)}")


def cmd_collab_add(args):
    with open_store(args) as store:
        msg = store.add_collaborator(principal(args), args.repo, args.principal_to_add)
        if args.json:
            print_json({"status": msg})
        else:
            print(f"✓ {msg}")


# ── File commands ─────────────────────────────────────────────────


def cmd_upload(args):
    local = Path(args.file or args.path)
    if not local.is_file():
        raise UsageError(f"Local file not found: {local}")
    content = local.read_bytes()
    with open_store(args) as store:
        msg = store.upload_file(principal(args), args.repo, args.path, content)
        if args.json:
            print_json({"status": msg, "path": args.path, "size": len(content)})
        else:
            print(f"✓ {msg}: {args.path} ({len(content):,} bytes)")


def cmd_cat(args):
    with open_store(args) as store:
        who = principal(args)
        if args.commit:
            entry = store.get_commit_file_content(who, args.repo, args.commit, args.path)
        else:
            entry = store.get_file(who, args.repo, args.path)
        if entry is None:
            raise RepoHubError(f"File not found: {args.path}")
        if args.json:
            print_json(entry.to_dict())
        else:
            sys.stdout.buffer.write(entry.content)
            sys.stdout.flush()


def cmd_rm(args):
    with open_store(args) as store:
        msg = store.delete_file(principal(args), args.repo, args.path)
        if args.json:
            print_json({"status": msg, "path": args.path})
        else:
            print(f"✓ {msg}: {args.path}")


def cmd_ls(args):
    with open_store(args) as store:
        paths = store.list_files(principal(args), args.repo)
        if args.json:
            print_json(paths)
        else:
            for path in paths:
                print(path)


# ── Commit commands ───────────────────────────────────────────────


def cmd_commit(args):
    with open_store(args) as store:
        msg = store.commit_changes(principal(args), args.repo, args.message)
        if args.json:
            print_json({"status": msg})
        else:
            print(f"✓ {msg}")


def cmd_log(args):
    with open_store(args) as store:
        who = principal(args)
        if args.branch:
            commits = store.list_branch_commits(who, args.repo, args.branch)
        else:
            commits = store.list_commits(who, args.repo)
        if args.json:
            print_json([
                {"id": c.id, "message": c.message, "timestamp": c.timestamp,
                 "files": [f.path for f in c.files]}
                for c in commits
            ])
        elif not commits:
            print("  No commits.")
        else:
            for c in reversed(commits):
                print(f"  {short_hash(c.id)}  {format_time(c.timestamp)}  {c.message}")


def cmd_show(args):
    with open_store(args) as store:
        commit = store.get_commit(principal(args), args.repo, args.commit)
        if commit is None:
            raise RepoHubError(f"Commit not found: {args.commit}")
        if args.json:
            print_json(commit.to_dict())
            return
        print(f"Commit:  {commit.id}")
        print(f"Date:    {format_time(commit.timestamp)}")
        print(f"Message: {commit.message}")
        print(f"\nFiles ({len(commit.files)}):")
        for f in commit.files:
            print(f"  {short_hash(f.hash)}  {f.path}  ({len(f.content):,} bytes)")


# ── Branch commands ───────────────────────────────────────────────


def cmd_branch_list(args):
    with open_store(args) as store:
        who = principal(args)
        names = store.list_branches(who, args.repo)
        current = store.get_current_branch(who, args.repo)
        if args.json:
            print_json({"branches": names, "current": current})
        else:
            for name in names:
                marker = "→" if name == current else " "
                print(f"  {marker} {name}")


def cmd_branch_create(args):
    with open_store(args) as store:
        who = principal(args)
        source = args.source or store.get_current_branch(who, args.repo)
        msg = store.create_branch(who, args.repo, args.name, source)
        if args.json:
            print_json({"status": msg, "name": args.name, "from": source})
        else:
            print(f"✓ {msg}")


def cmd_branch_switch(args):
    with open_store(args) as store:
        msg = store.switch_branch(principal(args), args.repo, args.name)
        if args.json:
            print_json({"status": msg})
        else:
            print(f"✓ {msg}")


def cmd_branch_current(args):
    with open_store(args) as store:
        current = store.get_current_branch(principal(args), args.repo)
        if args.json:
            print_json({"current": current})
        else:
            print(current)


# ── Governance commands ───────────────────────────────────────────


def cmd_propose(args):
    with open_store(args) as store:
        proposal_id = store.create_proposal(principal(args), args.repo, args.message)
        if args.json:
            print_json({"id": proposal_id})
        else:
            print(f"✓ Proposal #{proposal_id} created")


def cmd_proposals(args):
    with open_store(args) as store:
        proposals = store.list_proposals(principal(args))
        if args.json:
            print_json([p.to_dict() for p in proposals])
        elif not proposals:
            print("  No proposals.")
        else:
            for p in proposals:
                state = "approved" if p.approved else "open"
                print(f"  #{p.id}  [{state}]  {p.repository_id}  {p.proposer}: {p.message}")


def cmd_approve(args):
    with open_store(args) as store:
        msg = store.approve_proposal(principal(args), args.proposal_id)
        if args.json:
            print_json({"status": msg, "id": args.proposal_id})
        else:
            print(f"✓ {msg}")


def cmd_anchor(args):
    with open_store(args) as store:
        msg = store.anchor_commit(
            principal(args), args.repo, args.commit, eth_tx=args.eth, btc_tx=args.btc
        )
        if args.json:
            print_json({"status": msg, "commit_id": args.commit})
        else:
            print(f"✓ {msg}: {short_hash(args.commit)}")


def cmd_stats(args):
    with open_store(args) as store:
        stats = store.stats()
        if args.json:
            print_json(stats)
        else:
            print(f"Repositories: {stats['repositories']}")
            print(f"Commits:      {stats['commits']}")
            print(f"Proposals:    {stats['proposals']}")
            print(
                f"Storage:      {stats['storage']['total_objects']} objects, "
                f"{stats['storage']['total_bytes']:,} bytes"
            )


def cmd_gc(args):
    with open_store(args) as store:
        result = store.gc(dry_run=args.dry_run)
        if args.json:
            print_json(result.to_dict())
        else:
            verb = "Would delete" if result.dry_run else "Deleted"
            print(f"{verb} {result.deleted_objects} objects ({result.deleted_bytes:,} bytes)")
            print(f"Reachable: {result.reachable_objects} objects")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repohub",
        description="repohub: content-addressed, version-controlled file repositories",
    )
    ver = _repohub_pkg.__version__
    parser.add_argument("--version", "-V", action="version", version=f"repohub {ver}")
    parser.add_argument("--db", default=None, help="Database path")
    parser.add_argument("--config", default=None, help="JSON config file")
    parser.add_argument("--as", dest="principal", default=None, help="Caller principal")
    parser.add_argument("--json", "-j", action="store_true", help="JSON output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("create", help="Create a repository")
    p.add_argument("name")
    p.add_argument("--description", "-d", default=None)
    p.add_argument("--private", action="store_true")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("delete", help="Delete a repository (owner only)")
    p.add_argument("repo")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("repos", help="List your repositories")
    p.add_argument("--collab", action="store_true", help="Repositories you collaborate on")
    p.set_defaults(func=cmd_repos)

    p = sub.add_parser("show-repo", help="Show a repository")
    p.add_argument("repo")
    p.set_defaults(func=cmd_show_repo)

    p = sub.add_parser("collab", help="Collaborator management")
    collab_sub = p.add_subparsers(dest="collab_command")
    cp = collab_sub.add_parser("add", help="Add a collaborator (owner only)")
    cp.add_argument("repo")
    cp.add_argument("principal_to_add", metavar="principal")
    cp.set_defaults(func=cmd_collab_add)

    p = sub.add_parser("upload", help="Upload (or replace) a file")
    p.add_argument("repo")
    p.add_argument("path", help="Path inside the repository")
    p.add_argument("--file", "-f", default=None, help="Local file (defaults to PATH)")
    p.set_defaults(func=cmd_upload)

    p = sub.add_parser("cat", help="Print a file's content")
    p.add_argument("repo")
    p.add_argument("path")
    p.add_argument("--commit", "-c", default=None, help="Read from a commit snapshot")
    p.set_defaults(func=cmd_cat)

    p = sub.add_parser("rm", help="Delete a file from the working set")
    p.add_argument("repo")
    p.add_argument("path")
    p.set_defaults(func=cmd_rm)

    p = sub.add_parser("ls", help="List files in the working set")
    p.add_argument("repo")
    p.set_defaults(func=cmd_ls)

    p = sub.add_parser("commit", help="Commit the working set")
    p.add_argument("repo")
    p.add_argument("--message", "-m", required=True)
    p.set_defaults(func=cmd_commit)

    p = sub.add_parser("log", help="Show commit history")
    p.add_argument("repo")
    p.add_argument("--branch", "-b", default=None, help="Branch-scoped history")
    p.set_defaults(func=cmd_log)

    p = sub.add_parser("show", help="Show a commit")
    p.add_argument("repo")
    p.add_argument("commit")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("branch", help="Branch management")
    branch_sub = p.add_subparsers(dest="branch_command")
    bp = branch_sub.add_parser("list", help="List branches")
    bp.add_argument("repo")
    bp.set_defaults(func=cmd_branch_list)
    bp = branch_sub.add_parser("create", help="Create a branch")
    bp.add_argument("repo")
    bp.add_argument("name")
    bp.add_argument("--from", dest="source", default=None, help="Source branch (default: current)")
    bp.set_defaults(func=cmd_branch_create)
    bp = branch_sub.add_parser("switch", help="Switch the current branch")
    bp.add_argument("repo")
    bp.add_argument("name")
    bp.set_defaults(func=cmd_branch_switch)
    bp = branch_sub.add_parser("current", help="Print the current branch")
    bp.add_argument("repo")
    bp.set_defaults(func=cmd_branch_current)

    p = sub.add_parser("propose", help="Create a proposal")
    p.add_argument("repo")
    p.add_argument("--message", "-m", required=True)
    p.set_defaults(func=cmd_propose)

    p = sub.add_parser("proposals", help="List visible proposals")
    p.set_defaults(func=cmd_proposals)

    p = sub.add_parser("approve", help="Approve a proposal (repository owner)")
    p.add_argument("proposal_id", type=int)
    p.set_defaults(func=cmd_approve)

    p = sub.add_parser("anchor", help="Attach external tx references to a commit")
    p.add_argument("repo")
    p.add_argument("commit")
    p.add_argument("--eth", default=None, help="Ethereum transaction hash")
    p.add_argument("--btc", default=None, help="Bitcoin transaction id")
    p.set_defaults(func=cmd_anchor)

    p = sub.add_parser("stats", help="Store statistics")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("gc", help="Reclaim unreferenced content")
    p.add_argument("--dry-run", action="store_true", help="Report without deleting")
    p.set_defaults(func=cmd_gc)

    return parser


def main():
    parser = build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(name)s %(levelname)s %(message)s"
        )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    try:
        args.func(args)
    except (RepoHubError, ValueError, OSError) as e:
        if getattr(args, "json", False):
            print_json({"error": str(e), "type": type(e).__name__})
        else:
            print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()

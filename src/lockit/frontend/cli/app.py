"""
LockIt command line interface.

Commands:
    enroll                 set (or change) the local passphrase
    list                   show tracked folders and their state
    add PATH               track an existing folder
    create PARENT NAME     create PARENT/NAME and track it
    remove NAME            stop tracking a folder (disk is untouched)
    status NAME            probe one folder
    lock NAME / unlock NAME
    lock-all               lock every tracked folder (used on quit/sleep hooks)
    recover FILE.lockit    restore a folder from its lock file and track it

NAME is a folder name or id. Exit codes: 0 ok, 1 LockIt error, 2 usage.

Usage:
    python -m lockit.frontend.cli.app lock Notes
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional

from lockit.config import Settings
from lockit.core.exceptions import LockItError
from lockit.security.auth import PassphraseAuthorizer
from .context import AppContext, build_context
from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lockit", description="Lock folders into encrypted .lockit files")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("enroll", help="set the local passphrase")
    sub.add_parser("list", help="list tracked folders")

    p = sub.add_parser("add", help="track an existing folder")
    p.add_argument("path")

    p = sub.add_parser("create", help="create a folder and track it")
    p.add_argument("parent")
    p.add_argument("name")

    for name, help_text in (
        ("remove", "stop tracking a folder"),
        ("status", "show a folder's state"),
        ("lock", "lock a folder"),
        ("unlock", "unlock a folder"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("folder", help="folder name or id")

    sub.add_parser("lock-all", help="lock every tracked folder")

    p = sub.add_parser("recover", help="restore a folder from a .lockit file")
    p.add_argument("artifact")
    return parser


def _format_list(ctx: AppContext) -> str:
    records = ctx.manager.list_folders()
    if not records:
        return "No folders tracked."
    lines = []
    for r in records:
        state = "locked" if r.locked else "unlocked"
        lines.append(f"{r.folder_id}  {state:<8}  {r.name}  ({r.original_path})")
    return "\n".join(lines)


def _enroll(ctx: AppContext) -> int:
    authorizer = ctx.authorizer
    if not isinstance(authorizer, PassphraseAuthorizer):
        print("The configured authorizer does not use a passphrase.")
        return 1
    if authorizer.enrolled:
        asyncio.run(authorizer.authorize("Confirm your current passphrase"))
    first = getpass.getpass("New passphrase: ")
    second = getpass.getpass("Repeat passphrase: ")
    if first != second:
        print("Passphrases do not match.")
        return 1
    try:
        authorizer.enroll(first)
    except ValueError as e:
        print(str(e))
        return 1
    print("Passphrase saved.")
    return 0


def run(args: argparse.Namespace, ctx: AppContext) -> int:
    manager = ctx.manager
    cmd = args.command

    if cmd == "enroll":
        return _enroll(ctx)
    if cmd == "list":
        print(_format_list(ctx))
    elif cmd == "add":
        record = manager.register_folder(args.path)
        print(f"Tracking {record.name} ({record.folder_id})")
    elif cmd == "create":
        record = manager.create_folder(args.parent, args.name)
        print(f"Created and tracking {record.name} ({record.folder_id})")
    elif cmd == "remove":
        record = manager.remove_folder(manager.find(args.folder).folder_id)
        print(f"No longer tracking {record.name}")
    elif cmd == "status":
        record = manager.find(args.folder)
        probe = manager.status(record.folder_id)
        line = f"{record.name}: {probe.state.value}"
        if probe.ambiguous:
            line += " (folder and lock file both present)"
        if probe.locator_stale:
            line += " (location unavailable, showing last known state)"
        print(line)
    elif cmd == "lock":
        record = asyncio.run(manager.lock(manager.find(args.folder).folder_id))
        print(f"Locked {record.name}")
    elif cmd == "unlock":
        record = asyncio.run(manager.unlock(manager.find(args.folder).folder_id))
        print(f"Unlocked {record.name}")
    elif cmd == "lock-all":
        failures = asyncio.run(manager.lock_all())
        for folder_id, err in failures.items():
            print(f"Lock failed for {folder_id}: {err}")
        print(_format_list(ctx))
        return 1 if failures else 0
    elif cmd == "recover":
        record = asyncio.run(manager.recover_and_register(args.artifact))
        print(f"Folder '{record.name}' has been decrypted and added to LockIt.")
    return 0


# Main entry point
def main(argv: Optional[List[str]] = None) -> int:
    args = _build_arg_parser().parse_args(argv)

    try:
        settings = Settings.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(logging.DEBUG if args.verbose else settings.log_level)

    try:
        ctx = build_context(settings)
        return run(args, ctx)
    except LockItError as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Command line entry point.

Usage:
    python -m lumensplit config
    python -m lumensplit groups GABC...
    python -m lumensplit group 7
    python -m lumensplit add-expense 7 100.00 GAAA... GBBB...
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from lumensplit.client import LumenSplitClient
from lumensplit.config import get_settings
from lumensplit.errors import ConfirmationTimeout, LedgerClientError, WriteCancelled
from lumensplit.models import Group, GroupDetail
from lumensplit.signing import create_signer

logger = logging.getLogger("lumensplit")


def configure_logging(debug: bool, level: str = "INFO") -> None:
    log_level = logging.DEBUG if debug else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _print_group(group: Group) -> None:
    print(f"#{group.id} {group.name} (creator {group.creator})")
    for member in group.members:
        print(f"    {member.display_name:<24} {member.identifier}  {member.balance}")


def _print_detail(detail: GroupDetail) -> None:
    _print_group(detail.group)
    print("  Settlements:")
    for s in detail.settlements:
        print(f"    {s.from_account} -> {s.to_account}: {s.amount}")
    print("  Expenses:")
    for e in detail.expenses:
        print(f"    [{e.timestamp}] {e.payer} paid {e.amount} for {len(e.participants)}")
    print("  Activity:")
    for a in detail.activities:
        kind = a.kind.name if hasattr(a.kind, "name") else a.kind
        print(f"    #{a.id} {kind} by {a.actor} {a.amount}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lumensplit", description="LumenSplit contract client")
    parser.add_argument("--signer", type=str, default=None,
                        help="Signer backend: extension, web_intent or local")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("config", help="Show configuration (secrets redacted)")

    p = sub.add_parser("registered", help="Check whether an account is registered")
    p.add_argument("account")

    p = sub.add_parser("groups", help="List groups of an account")
    p.add_argument("account")

    p = sub.add_parser("group", help="Show one group with settlements, expenses and activity")
    p.add_argument("group_id", type=int)

    p = sub.add_parser("register", help="Register a display name")
    p.add_argument("name")

    p = sub.add_parser("create-group", help="Create a group")
    p.add_argument("name")
    p.add_argument("members", nargs="*")

    p = sub.add_parser("add-member", help="Add a member to a group")
    p.add_argument("group_id", type=int)
    p.add_argument("member")

    p = sub.add_parser("add-expense", help="Record an expense")
    p.add_argument("group_id", type=int)
    p.add_argument("amount")
    p.add_argument("participants", nargs="+")
    p.add_argument("--payer", type=str, default=None)

    p = sub.add_parser("settle", help="Settle a debt")
    p.add_argument("group_id", type=int)
    p.add_argument("to")
    p.add_argument("amount")

    p = sub.add_parser("delete-group", help="Delete a group")
    p.add_argument("group_id", type=int)

    return parser


WRITE_COMMANDS = {"register", "create-group", "add-member", "add-expense", "settle", "delete-group"}


async def run(args: argparse.Namespace, client: Optional[LumenSplitClient] = None) -> int:
    settings = get_settings()
    client = client or LumenSplitClient(settings)

    if args.command == "config":
        print(json.dumps(settings.get_safe_dict(), indent=2))
        return 0

    if args.command == "registered":
        registered = await client.is_registered(args.account)
        print("unknown" if registered is None else str(registered).lower())
        return 0

    if args.command == "groups":
        for gid in await client.get_group_ids(args.account):
            group = await client.get_group(gid)
            if group:
                _print_group(group)
        return 0

    if args.command == "group":
        detail = await client.load_group_detail(args.group_id)
        if detail is None:
            print(f"Group {args.group_id} not found")
            return 1
        _print_detail(detail)
        return 0

    if args.command in WRITE_COMMANDS:
        await client.connect(create_signer(args.signer, settings))
        try:
            if args.command == "register":
                result = await client.register(args.name)
            elif args.command == "create-group":
                result = await client.create_group(args.name, args.members)
            elif args.command == "add-member":
                result = await client.add_member(args.group_id, args.member)
            elif args.command == "add-expense":
                result = await client.add_expense(
                    args.group_id, args.amount, args.participants, payer=args.payer
                )
            elif args.command == "settle":
                result = await client.settle_debt(args.group_id, args.to, args.amount)
            else:
                result = await client.delete_group(args.group_id)
            await client.drain_background()
        finally:
            client.disconnect()
            client.close()

        print(f"{result.method}: {result.state.value} {result.tx_hash}")
        return 0

    return 1


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings.debug, settings.log_level)

    try:
        return asyncio.run(run(args))
    except ConfirmationTimeout as e:
        print(f"Not confirmed yet, check history for {e.tx_hash}", file=sys.stderr)
        return 1
    except WriteCancelled as e:
        print(f"Cancelled: {e}", file=sys.stderr)
        return 1
    except LedgerClientError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

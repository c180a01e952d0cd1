"""CLI to run balance syncs in-process (cron / scheduler entry point).

Usage:
  balance-sync status --user USER_ID
  balance-sync sync --user USER_ID
  balance-sync sync --user USER_ID --provider gemini
  balance-sync summary --user USER_ID
"""
import argparse
import asyncio
import json
import logging
import sys

from balance_sync.db import Provider
from balance_sync.providers.core import BalanceSyncError
from balance_sync.services import Services, create_services

logger = logging.getLogger(__name__)


def print_json(data: object) -> None:
    print(json.dumps(data, indent=2, default=str))


async def cmd_status(services: Services, args: argparse.Namespace) -> int:
    print_json(services.connections.status(args.user).model_dump(mode="json"))
    return 0


async def cmd_sync(services: Services, args: argparse.Namespace) -> int:
    if args.provider:
        result = await services.reconciliation.sync(args.user, Provider(args.provider))
        print_json(result.model_dump(mode="json"))
        return 0
    outcomes = await services.reconciliation.sync_all(args.user)
    failed = False
    report: dict[str, object] = {}
    for provider, outcome in outcomes.items():
        if isinstance(outcome, BalanceSyncError):
            failed = True
            report[provider.value] = {"error": outcome.kind, "message": outcome.message}
        else:
            report[provider.value] = outcome.model_dump(mode="json")
    print_json(report)
    return 1 if failed else 0


async def cmd_summary(services: Services, args: argparse.Namespace) -> int:
    summary = await services.portfolio.get_summary(args.user)
    print_json(summary.model_dump(mode="json"))
    return 0


COMMANDS = {
    "status": cmd_status,
    "sync": cmd_sync,
    "summary": cmd_summary,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="balance-sync", description=__doc__.splitlines()[0])
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    for name in COMMANDS:
        cmd = sub.add_parser(name)
        cmd.add_argument("--user", required=True, help="user id to act for")
        if name == "sync":
            cmd.add_argument(
                "--provider",
                choices=[p.value for p in Provider],
                help="sync only this provider",
            )
    return parser


async def _run(args: argparse.Namespace) -> int:
    services = create_services()
    try:
        return await COMMANDS[args.command](services, args)
    except BalanceSyncError as exc:
        print(f"{exc.kind}: {exc.message}", file=sys.stderr)
        return 1
    finally:
        await services.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())

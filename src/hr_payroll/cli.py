"""Administrative command line interface.

Usage:
    hr-payroll-admin create-schema
    hr-payroll-admin seed-permissions
    hr-payroll-admin create-user --name X --email Y --role admin
    hr-payroll-admin purge-trash [--dry-run]
    hr-payroll-admin process-probation [--date YYYY-MM-DD]
    hr-payroll-admin run-payroll --period YYYY-MM [--organization SMRU]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date
from typing import Callable

from hr_payroll.config import get_settings
from hr_payroll.database import create_schema, dispose_db, get_session, init_db
from hr_payroll.services.bulk_payroll_service import BulkPayrollRunner, create_batch, get_batch
from hr_payroll.services.errors import ServiceError
from hr_payroll.services.payroll_service import parse_pay_period
from hr_payroll.services.permission_service import PermissionService
from hr_payroll.services.probation_service import ProbationService
from hr_payroll.services.recycle_bin_service import RecycleBinService

CLI_ACTOR = "system:cli"


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


class AdminCli:
    """Maintenance commands that run outside the HTTP API."""

    def __init__(self) -> None:
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="hr-payroll-admin",
            description="HR payroll maintenance tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        subparsers.add_parser("create-schema", help="Create all database tables")
        subparsers.add_parser(
            "seed-permissions",
            help="Create the module.action permissions and default roles",
        )

        user = subparsers.add_parser("create-user", help="Create an API user")
        user.add_argument("--name", required=True, help="Display name")
        user.add_argument("--email", required=True, help="Unique email")
        user.add_argument(
            "--role",
            action="append",
            default=[],
            help="Role to assign; repeat for several",
        )

        purge = subparsers.add_parser(
            "purge-trash",
            help="Hard-delete soft-deleted rows past the retention window",
        )
        purge.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what would be purged without deleting",
        )

        probation = subparsers.add_parser(
            "process-probation",
            help="Pass every open probation due on a date",
        )
        probation.add_argument(
            "--date",
            type=parse_date,
            default=None,
            help="Transition date (default: today)",
        )

        payroll = subparsers.add_parser("run-payroll", help="Run a bulk payroll batch")
        payroll.add_argument(
            "--period",
            required=True,
            help="Pay period as YYYY-MM",
        )
        payroll.add_argument("--organization", help="Only employees of this organization")

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        handlers: dict[str, Callable[[argparse.Namespace], int]] = {
            "create-schema": self._cmd_create_schema,
            "seed-permissions": self._cmd_seed_permissions,
            "create-user": self._cmd_create_user,
            "purge-trash": self._cmd_purge_trash,
            "process-probation": self._cmd_process_probation,
            "run-payroll": self._cmd_run_payroll,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1
        try:
            return handler(parsed)
        except ServiceError as exc:
            print(f"Error: {exc.message}", file=sys.stderr)
            return 1

    def _cmd_create_schema(self, args: argparse.Namespace) -> int:
        async def _run() -> None:
            engine, _ = init_db()
            try:
                await create_schema(engine)
            finally:
                await dispose_db()

        asyncio.run(_run())
        print("Schema created")
        return 0

    def _cmd_seed_permissions(self, args: argparse.Namespace) -> int:
        async def _run() -> dict[str, int]:
            try:
                async with get_session() as session:
                    return await PermissionService(session).seed_defaults()
            finally:
                await dispose_db()

        counts = asyncio.run(_run())
        print(f"Created {counts['permissions']} permission(s) and {counts['roles']} role(s)")
        return 0

    def _cmd_create_user(self, args: argparse.Namespace) -> int:
        async def _run() -> str:
            try:
                async with get_session() as session:
                    user = await PermissionService(session).create_user(
                        args.name, args.email, args.role
                    )
                    return str(user.id)
            finally:
                await dispose_db()

        user_id = asyncio.run(_run())
        print(f"User {args.email} created; send X-User-ID: {user_id}")
        return 0

    def _cmd_purge_trash(self, args: argparse.Namespace) -> int:
        async def _run() -> dict[str, int]:
            try:
                async with get_session() as session:
                    return await RecycleBinService(session).purge_expired(dry_run=args.dry_run)
            finally:
                await dispose_db()

        counts = asyncio.run(_run())
        verb = "Would purge" if args.dry_run else "Purged"
        for model, count in counts.items():
            print(f"  {model}: {count}")
        print(f"{verb} {sum(counts.values())} record(s)")
        return 0

    def _cmd_process_probation(self, args: argparse.Namespace) -> int:
        async def _run():
            try:
                async with get_session() as session:
                    return await ProbationService(session).process_due(args.date, actor=CLI_ACTOR)
            finally:
                await dispose_db()

        result = asyncio.run(_run())
        print(f"Processed {result.processed}, passed {result.passed}")
        for error in result.errors:
            print(f"  FAILED {error}", file=sys.stderr)
        return 1 if result.errors else 0

    def _cmd_run_payroll(self, args: argparse.Namespace) -> int:
        async def _run():
            try:
                _, factory = init_db()
                async with factory() as session:
                    batch = await create_batch(
                        session,
                        parse_pay_period(args.period),
                        filters={"organization": args.organization},
                        actor=CLI_ACTOR,
                    )
                    await session.commit()
                    batch_id = batch.id
                await BulkPayrollRunner(factory).run(batch_id, actor=CLI_ACTOR)
                async with factory() as session:
                    return await get_batch(session, batch_id)
            finally:
                await dispose_db()

        batch = asyncio.run(_run())
        print(
            f"Batch {batch.id} {batch.status}: {batch.successful_payrolls} ok, "
            f"{batch.failed_payrolls} failed, {batch.advances_created} advance(s)"
        )
        for error in batch.errors or []:
            print(f"  {error['employee']}: {error['error']}", file=sys.stderr)
        return 1 if batch.failed_payrolls else 0


def main() -> int:
    """CLI entry point."""
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = AdminCli()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())

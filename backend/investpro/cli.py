"""Operator command line.

Usage:
    python -m investpro.cli create-admin --email admin@example.com --name Admin
    python -m investpro.cli sweep
    python -m investpro.cli verify-ledger [--account ID]
"""

import argparse
import asyncio
import getpass
import logging
import sys
from typing import List, Optional

from sqlalchemy import select

from .models import Account, AccountRole, async_session_maker, configure_database, init_db
from .services.auth import AuthService, MIN_PASSWORD_LENGTH
from .services.config import config_service, ConfigValidationException
from .services.errors import InvestProError
from .services.ledger_invariants import LedgerInvariantService
from .services.maturity import MaturitySweeper

logger = logging.getLogger(__name__)


async def create_admin(email: str, name: str, password: str) -> str:
    """Create an admin account, or promote the existing account with that email."""
    async with async_session_maker() as session:
        result = await session.execute(select(Account).where(Account.email == email.strip().lower()))
        account = result.scalar_one_or_none()

        if account is not None:
            account.role = AccountRole.ADMIN
            await session.commit()
            logger.info(f"Promoted existing account {account.id} to admin")
            return account.id

        _, account = await AuthService(session).signup(
            email=email,
            password=password,
            name=name,
            role=AccountRole.ADMIN,
        )
        return account.id


async def verify_ledger(account_id: Optional[str] = None) -> bool:
    async with async_session_maker() as session:
        reports = await LedgerInvariantService(session).verify_all(account_id)

    for report in reports:
        state = "OK" if report["is_valid"] else f"INVALID: {report['error']}"
        print(f"{report['account_id']}  balance={report['balance']:.2f}  {state}")
    return all(report["is_valid"] for report in reports)


async def run(args: argparse.Namespace) -> int:
    configure_database(
        config_service.get("database.url"),
        config_service.get("database.timeout_seconds"),
    )
    await init_db()

    if args.command == "create-admin":
        password = args.password or getpass.getpass("Admin password: ")
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters", file=sys.stderr)
            return 2
        account_id = await create_admin(args.email, args.name, password)
        print(f"Admin account ready: {account_id}")
        return 0

    if args.command == "sweep":
        result = await MaturitySweeper(async_session_maker).run_once()
        print(f"Sweep: {result.to_dict()}")
        return 0 if result.failed == 0 else 1

    if args.command == "verify-ledger":
        return 0 if await verify_ledger(args.account) else 1

    return 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="investpro", description="InvestPro operator tools")
    subcommands = parser.add_subparsers(dest="command", required=True)

    admin_parser = subcommands.add_parser("create-admin", help="Create or promote an admin account")
    admin_parser.add_argument("--email", required=True, help="Admin email")
    admin_parser.add_argument("--name", default="Administrator", help="Display name")
    admin_parser.add_argument("--password", help="Password (prompted if omitted)")

    subcommands.add_parser("sweep", help="Run one maturity sweep pass")

    verify_parser = subcommands.add_parser("verify-ledger", help="Check balances against the ledger")
    verify_parser.add_argument("--account", help="Only check this account id")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config_service.load_and_validate()
    except ConfigValidationException as e:
        print(f"FATAL: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config_service.get("logging.level", "INFO"),
        format=config_service.get("logging.format"),
    )

    try:
        return asyncio.run(run(args))
    except InvestProError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

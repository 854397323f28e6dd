#!/usr/bin/env python3
"""
CLI for rendering valuation print sheets outside the API.

Usage:
    python -m reporting.cli sheet <file_id> --as <email> [--output DIR]

Examples:
    # Archive the sheet for file 42 into ./reports as the admin account
    python -m reporting.cli sheet 42 --as admin@example.com
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from core.exceptions import PropertyFlowError, Unauthenticated
from core.store.database import Database
from core.store.repository import UserRepository
from utils.config import Config
from utils.logging import setup_logging

from .print_sheet import render_print_sheet


def _actor_for(database: Database, email: str):
    with database.session_scope() as session:
        user = UserRepository.get_by_email(session, email)
        if user is None or not user.is_active:
            raise Unauthenticated(f"No active account for {email}")
        return user.to_actor()


def cmd_sheet(args, config: Config, database: Database) -> int:
    actor = _actor_for(database, args.email)
    output_dir = Path(args.output or config.reports_dir)
    filename, pdf = render_print_sheet(database, actor, args.file_id, output_dir)
    print(f"Wrote {output_dir / filename} ({len(pdf):,} bytes)")
    return 0


def main(argv: Optional[list[str]] = None, database: Optional[Database] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Render PropertyFlow valuation print sheets",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sheet = subparsers.add_parser("sheet", help="Render the print sheet for one file")
    sheet.add_argument("file_id", type=int, help="Property file ID")
    sheet.add_argument("--as", dest="email", required=True, help="E-mail of the acting account")
    sheet.add_argument("--output", help="Output directory (default: REPORTS_DIR)")

    args = parser.parse_args(argv)
    config = Config.load()
    database = database or Database(config.database_url)

    try:
        return cmd_sheet(args, config, database)
    except PropertyFlowError as e:
        print(f"Error ({e.code}): {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    _config = Config.load()
    setup_logging(_config.log_level, _config.log_format)
    sys.exit(main())

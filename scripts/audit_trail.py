#!/usr/bin/env python3
"""
Print the audit trail and conformance of one contract.

Usage:
    python -m scripts.audit_trail --contract-id <uuid>
    python -m scripts.audit_trail --contract-id <uuid> --json
    python -m scripts.audit_trail --contract-id <uuid> --db-url sqlite:///contracts.db

Exit status is 0 when every conformance flag holds (chain intact,
ordering monotonic, signatures complete, integrity verified) and 1
otherwise, including when the contract or database cannot be reached.
"""

import argparse
import json
import logging
import sys
from uuid import UUID

W = 80


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print a contract's audit trail and conformance flags.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "examples:\n"
            "  python -m scripts.audit_trail --contract-id a1b2c3d4-...\n"
            "  python -m scripts.audit_trail --contract-id a1b2c3d4-... --json\n"
        ),
    )
    parser.add_argument(
        "--contract-id", type=str, required=True,
        help="Contract UUID",
    )
    parser.add_argument(
        "--json", action="store_true",
        help="Output the report as JSON instead of formatted text",
    )
    parser.add_argument(
        "--db-url", type=str, default=None,
        help="Database URL (default: database_url from the active settings)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        contract_id = UUID(args.contract_id)
    except ValueError as exc:
        print(f"  ERROR: Invalid UUID: {exc}", file=sys.stderr)
        return 1

    # Keep stdout clean for the report
    logging.disable(logging.CRITICAL)
    try:
        return _run(contract_id, args.db_url, args.json)
    finally:
        logging.disable(logging.NOTSET)


def _run(contract_id: UUID, db_url: str | None, as_json: bool) -> int:
    from sqlalchemy.exc import SQLAlchemyError

    from signing_config import get_active_settings
    from signing_kernel.db.engine import get_session, init_engine_from_url
    from signing_kernel.exceptions import ContractNotFoundError
    from signing_services.audit_report import AuditReportBuilder

    if db_url is None:
        db_url = get_active_settings().database_url

    try:
        init_engine_from_url(db_url, echo=False)
    except Exception as exc:
        print(f"  ERROR: Cannot connect to database: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    try:
        try:
            report = AuditReportBuilder(session).build(contract_id)
        except ContractNotFoundError as exc:
            print(f"  ERROR: {exc}", file=sys.stderr)
            return 1
        except SQLAlchemyError as exc:
            print(f"  ERROR: Cannot read contract: {exc}", file=sys.stderr)
            return 1

        if as_json:
            print(json.dumps(report.to_dict(), indent=2, default=str))
        else:
            banner(f"AUDIT TRAIL  {report.contract.number}")
            print(report.render_text())

        return 0 if report.conformant else 1
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())

"""Export a filtered transaction set to a CSV or XLSX file.

Amount bounds are given in major units (dollars) and converted to cents
before the query is built. Dates are ISO 8601 timestamps; malformed dates are
ignored the same way the HTTP endpoints ignore them.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from app.config import get_settings
from app.db.session import Database
from app.errors import ExportSweepError
from app.logging_setup import configure_logging, get_logger
from app.services.export import export_filename, export_transactions, write_csv, write_workbook
from app.services.filters import parse_filter_criteria
from app.services.pagination import OffsetPager

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export filtered transactions.")
    parser.add_argument("--output", default=None, help="Output file path.")
    parser.add_argument("--format", choices=["csv", "xlsx"], default="csv")
    parser.add_argument("--from", dest="date_from", default=None, help="Inclusive start timestamp.")
    parser.add_argument("--to", dest="date_to", default=None, help="Inclusive end timestamp.")
    parser.add_argument("--merchant", default=None, help="Exact merchant name, or 'all'.")
    parser.add_argument("--min-amount", default=None, help="Minimum amount in dollars.")
    parser.add_argument("--max-amount", default=None, help="Maximum amount in dollars.")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Overrides DATABASE_URL.",
    )
    return parser


def run_export(database: Database, args: argparse.Namespace) -> Path:
    criteria = parse_filter_criteria(
        date_from=args.date_from,
        date_to=args.date_to,
        merchant=args.merchant,
        min_amount=args.min_amount,
        max_amount=args.max_amount,
        amounts_in_major_units=True,
    )
    settings = get_settings()
    pager = OffsetPager(database, max_workers=settings.query_workers)
    transactions = export_transactions(pager, criteria)

    output = Path(args.output or export_filename(None, args.format))
    if args.format == "xlsx":
        output.write_bytes(write_workbook(transactions).getvalue())
    else:
        output.write_text(write_csv(transactions), encoding="utf-8", newline="")
    logger.info("Exported %d transactions to %s", len(transactions), output)
    return output


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    settings = get_settings()
    configure_logging(settings.log_level)

    database = Database(
        args.database_url or settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )
    with database:
        try:
            run_export(database, args)
        except ExportSweepError as exc:
            logger.error("%s: %s", exc, exc.__cause__)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

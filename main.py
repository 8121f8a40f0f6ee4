#!/usr/bin/env python3
"""
Invoice Intake System - Main Entry Point.

Command-line interface to the intake pipeline and the invoice store.

Usage:
    Command Line:
        python main.py process invoice.pdf scan.png
        python main.py list --page 2 --sort-by amount --sort-order asc
        python main.py show 3f0c...
        python main.py edit 3f0c... --data corrected.json
        python main.py stats

Exit codes:
    0   success
    1   an upload was rejected, or any other error
    130 interrupted

Author: ML Engineering Team
Version: 1.0.0
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import ConfigurationManager
from invoice_intake.utils.logger import setup_logger_from_config, get_logger
from invoice_intake.utils.exceptions import InvoiceExtractionError
from invoice_intake.output_handler.database_handler import SORTABLE_COLUMNS


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list, defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        description="Invoice Intake System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    Process invoices:
        python main.py process invoice.pdf receipt.jpg

    Page through stored invoices:
        python main.py list --page 1 --page-size 10 --sort-by invoice_date

    Correct a stored invoice:
        python main.py edit <invoice-id> --data corrected.json
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to custom configuration file"
    )

    parser.add_argument(
        "--database", "-d",
        type=str,
        default=None,
        help="Path to the SQLite database (default: from configuration)"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    process_parser = subparsers.add_parser("process", help="Extract and store invoices")
    process_parser.add_argument("files", nargs="+", help="PDF, JPEG or PNG files")

    list_parser = subparsers.add_parser("list", help="List stored invoices")
    list_parser.add_argument("--page", type=int, default=1)
    list_parser.add_argument("--page-size", type=int, default=20)
    list_parser.add_argument("--sort-by", choices=SORTABLE_COLUMNS, default="created_at")
    list_parser.add_argument("--sort-order", choices=("asc", "desc"), default="desc")

    show_parser = subparsers.add_parser("show", help="Show one stored invoice")
    show_parser.add_argument("invoice_id")

    edit_parser = subparsers.add_parser("edit", help="Replace the fields of a stored invoice")
    edit_parser.add_argument("invoice_id")
    edit_parser.add_argument(
        "--data",
        required=True,
        help="JSON file with the complete corrected invoice"
    )

    subparsers.add_parser("stats", help="Token and cost statistics over stored invoices")

    return parser.parse_args(argv)


def initialize_system(args: argparse.Namespace) -> ConfigurationManager:
    """
    Initialize configuration and logging.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Initialized configuration manager.
    """
    if args.config:
        ConfigurationManager.reset()
    config = ConfigurationManager(args.config)

    setup_logger_from_config(debug=args.debug)

    logger = get_logger(__name__)
    logger.debug(f"Configuration: {config.config_path}")
    logger.debug(f"Version: {config.get('project.version', '1.0.0')}")

    return config


def build_pipeline(args: argparse.Namespace):
    """Create the pipeline, pointing it at ``--database`` when given."""
    from invoice_intake.output_handler import DatabaseHandler
    from invoice_intake.pipeline import InvoicePipeline

    return InvoicePipeline(store=DatabaseHandler(args.database))


def print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_process(pipeline, files: List[str]) -> int:
    """
    Process files and print one result entry per file.

    Returns:
        0 if every file was stored, 1 otherwise.
    """
    from invoice_intake.input_handler import UploadedFile

    logger = get_logger(__name__)

    uploads = []
    entries: List[Dict[str, Any]] = []
    for name in files:
        path = Path(name)
        if not path.is_file():
            entries.append({"file": name, "status": "rejected", "error": {
                "reason": "file_not_found",
                "message": f"File not found: {name}",
            }})
            continue
        uploads.append(UploadedFile.from_path(path))

    outcomes = await pipeline.process_many(uploads)

    for upload, outcome in zip(uploads, outcomes):
        if isinstance(outcome, InvoiceExtractionError):
            entries.append({"file": upload.filename, "status": "rejected", "error": outcome.to_dict()})
        elif isinstance(outcome, BaseException):
            logger.error(f"Unexpected error processing {upload.filename}: {outcome}")
            entries.append({"file": upload.filename, "status": "failed", "error": {
                "reason": "internal_error",
                "message": str(outcome),
            }})
        else:
            entries.append({"file": upload.filename, "status": "processed", "result": outcome.to_dict()})

    print_json(entries)

    stored = sum(1 for entry in entries if entry["status"] == "processed")
    logger.info(f"Processed {stored} of {len(entries)} files")
    totals = pipeline.session_totals()
    logger.info(
        f"Session: {totals['input_tokens']} input / {totals['output_tokens']} output tokens, "
        f"{totals['cache']['hits']} cache hits, {totals['tokens_saved']} tokens saved, cost ${totals['cost']}"
    )
    return 0 if stored == len(entries) else 1


async def run_command(args: argparse.Namespace) -> int:
    pipeline = build_pipeline(args)

    if args.command == "process":
        return await run_process(pipeline, args.files)

    if args.command == "list":
        page = await pipeline.list_invoices(args.page, args.page_size, args.sort_by, args.sort_order)
        print_json(page.to_dict())
    elif args.command == "show":
        invoice = await pipeline.get_invoice(args.invoice_id)
        print_json(invoice.to_dict())
    elif args.command == "edit":
        with open(args.data, 'r', encoding='utf-8') as f:
            data = json.load(f)
        invoice = await pipeline.edit(args.invoice_id, data)
        print_json(invoice.to_dict())
    elif args.command == "stats":
        statistics = await pipeline.usage_statistics()
        payload = statistics.to_dict()
        payload["session"] = pipeline.session_totals()
        print_json(payload)

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main function - entry point for command-line execution.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_arguments(argv)

    try:
        initialize_system(args)
        return asyncio.run(run_command(args))

    except InvoiceExtractionError as e:
        print(f"Error [{e.reason}]: {e}", file=sys.stderr)
        return 1

    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user", file=sys.stderr)
        return 130

    except Exception as e:
        print(f"Unexpected error: {e}", file=sys.stderr)
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""CLI entrypoint for the Robotics arXiv Daily pipeline."""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace

from dotenv import load_dotenv

from config import Settings
from pipeline import RunSummary, backfill, force_add, regen_empty, run_daily


def parse_args() -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Fetch, filter, summarize and publish robotics arXiv papers")
    parser.add_argument(
        "--mode",
        choices=["daily", "backfill", "regen_empty"],
        default="daily",
        help=(
            "'daily' (default): scrape the listing and enrich new papers. "
            "'backfill': enrich papers the filter kept but that are missing from the dataset. "
            "'regen_empty': re-summarize papers that had no HTML preview, from PDF text."
        ),
    )
    parser.add_argument("--max-items", type=int, default=None, help="Listing rows to consider (daily mode)")
    parser.add_argument("--batch-size", type=int, default=None, help="Papers per run (backfill/regen_empty)")
    parser.add_argument(
        "--force",
        metavar="ARXIV",
        default=None,
        help="Add a single paper by arXiv id or URL, skipping the listing and the filter",
    )
    return parser.parse_args()


def run(settings: Settings, mode: str) -> RunSummary:
    """Dispatch one run. Force-add takes precedence over the mode."""
    if settings.force_input and settings.force_add_single:
        logging.info("Force add mode: %s", settings.force_input)
        return force_add(settings, settings.force_input)
    if settings.force_input:
        logging.info("FORCE_ARXIV_INPUT given without FORCE_ADD_SINGLE, ignoring it")

    if mode == "backfill":
        return backfill(settings)
    if mode == "regen_empty":
        return regen_empty(settings)
    return run_daily(settings)


def main() -> None:
    """Initialize config and execute the pipeline."""
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args()

    settings = Settings.from_env()
    if args.max_items is not None:
        settings = replace(settings, max_items=args.max_items)
    if args.batch_size is not None:
        settings = replace(settings, batch_size=args.batch_size)
    if args.force:
        settings = replace(settings, force_input=args.force, force_add_single=True)

    try:
        summary = run(settings, args.mode)
    except (ValueError, RuntimeError) as exc:
        logging.error("Run aborted: %s", exc)
        raise SystemExit(1) from exc

    logging.info(
        "Run complete. total=%s processed=%s cached=%s skipped=%s failed=%s",
        summary.total,
        summary.processed,
        summary.cached,
        summary.skipped,
        summary.failed,
    )


if __name__ == "__main__":
    main()

import argparse
import dataclasses
import logging
from typing import List, Optional

from .aggregate import aggregate
from .config import clamp_crawl_setting, load_settings
from .crawl import run_crawl
from .jsonio import DataPaths
from .summarize import run_summarize

logger = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hn-distill", description="Crawl, summarize and aggregate HN top stories")
    parser.add_argument("--data-dir", help="Output directory (default: $DATA_DIR or ./data)")
    parser.add_argument("--log-level", help="Logging level (default: $LOG_LEVEL or INFO)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    for name, help_text in (
        ("fetch", "Fetch top stories and their comments"),
        ("run", "fetch, summarize and aggregate"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--top", type=int, dest="top_n", help="Number of top stories")
        p.add_argument("--max-depth", type=int, help="Comment depth budget")
        p.add_argument("--max-comments", type=int, help="Comments per story budget")
        p.add_argument("--concurrency", type=int, help="Requests in flight")

    sub.add_parser("summarize", help="Summarize stored stories with the LLM")
    sub.add_parser("aggregate", help="Write aggregated.json for the site")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    settings = load_settings()

    overrides = {
        k: clamp_crawl_setting(k, getattr(args, k))
        for k in ("top_n", "max_depth", "max_comments", "concurrency")
        if getattr(args, k, None) is not None
    }
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    settings = dataclasses.replace(settings, **overrides)

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    paths = DataPaths.at(settings.data_dir)

    try:
        if args.cmd in ("fetch", "run"):
            run_crawl(settings, paths)
        if args.cmd in ("summarize", "run"):
            run_summarize(settings, paths)
        if args.cmd in ("aggregate", "run"):
            aggregate(paths)
    except Exception:
        logger.exception(f"{args.cmd} failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

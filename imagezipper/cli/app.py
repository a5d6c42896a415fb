from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import TextIO

from rich.console import Console

from ..config.settings import DEFAULT_LOCATION, DEFAULT_OUTPUT, load_config
from ..scanner.errors import ImageZipperError
from ..scanner.models import ScanIssue
from .display import format_issue, render_run, serialize_run
from .services.scan_service import ScanService

PROG = "imagezipper"

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Find image files by content, zip them and optionally send the archive to Telegram.",
    )
    parser.add_argument("-l", "--location", default=DEFAULT_LOCATION, help="Search location.")
    parser.add_argument("-o", "--output", default=DEFAULT_OUTPUT, help="Output zip file.")
    parser.add_argument("-t", "--token", help="Telegram bot token (or TELEGRAM_BOT_TOKEN).")
    parser.add_argument("-c", "--chat-id", dest="chat_id", help="Telegram chat ID (or TELEGRAM_CHAT_ID).")
    parser.add_argument("-m", "--message", help="Telegram message sent with the archive.")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug mode.")
    parser.add_argument("--silence", action="store_true", help="Don't show error messages.")
    parser.add_argument(
        "--workers",
        type=int,
        help="Maximum number of directories read concurrently.",
    )
    parser.add_argument(
        "--max-archive-mb",
        dest="max_archive_mb",
        type=float,
        help="Refuse to send archives larger than this many MiB (default 20).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the run summary as JSON instead of formatted text.",
    )
    return parser


def configure_logging(debug: bool, stream: TextIO | None = None) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=stream or sys.stderr,
    )


def main(
    argv: list[str] | None = None,
    *,
    stdout: Console | None = None,
    stderr: Console | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.debug)

    out = stdout or Console(highlight=False, soft_wrap=True)
    err = stderr or Console(stderr=True, highlight=False, soft_wrap=True)

    try:
        config = load_config(args)
    except ImageZipperError as exc:
        _report_failure(err, exc)
        return 1

    def on_discovered(path: str) -> None:
        if not args.json:
            out.print(path, markup=False, soft_wrap=True)

    def on_issue(issue: ScanIssue) -> None:
        err.print(format_issue(issue), markup=False, soft_wrap=True)

    service = ScanService(config)
    try:
        result = service.run(on_discovered=on_discovered, on_issue=on_issue)
    except ImageZipperError as exc:
        _report_failure(err, exc)
        return 1

    if args.json:
        out.print(json.dumps(serialize_run(result), indent=2), markup=False, soft_wrap=True)
    else:
        for line in render_run(result):
            out.print(line, markup=False, soft_wrap=True)
    return 0


def _report_failure(err: Console, exc: ImageZipperError) -> None:
    logger.debug("Run failed during %s", exc.stage, exc_info=exc)
    err.print(f"Error during {exc.stage} ({exc.code}): {exc}", markup=False, soft_wrap=True)


if __name__ == "__main__":
    sys.exit(main())

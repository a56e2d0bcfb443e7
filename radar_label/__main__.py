# radar_label/__main__.py
from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from .app import run_app
from .persistence import BACKUP_DIR_ENV


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="radar-label",
        description="Label boats and buoys on radar image frames.",
    )
    parser.add_argument("project", nargs="?", default=None, help="project JSON file to open")
    parser.add_argument(
        "--backup-dir",
        default=None,
        help=f"directory for the local backup (default: ${BACKUP_DIR_ENV} or the app data dir)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return run_app(project_path=args.project, backup_dir=args.backup_dir)


if __name__ == "__main__":
    raise SystemExit(main())

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from . import __version__
from .config import RunSettings, apply_cli_overrides, apply_env_overrides, load_config
from .deleter import run_delete
from .lister import run_list
from .search_client import SearchIndex, create_search_index
from .utils import setup_logging

LOGGER = logging.getLogger(__name__)


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", type=Path, help="YAML config file")
    parser.add_argument("--env-file", type=Path, help="dotenv file (default: .env in the working directory)")
    parser.add_argument("--years-back", type=int, default=None)
    parser.add_argument("--fetch-size", type=int, default=None)


def _create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="search-expiry")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd", required=True)

    list_cmd = sub.add_parser("list", help="Print identifiers of documents past the expiration cutoff")
    _add_common_arguments(list_cmd)

    delete = sub.add_parser("delete", help="Delete documents past the expiration cutoff in batches")
    _add_common_arguments(delete)
    delete.add_argument("--batch-size", type=int, default=None)

    return parser


def _resolve_config(args: argparse.Namespace) -> dict[str, Any]:
    load_dotenv(args.env_file or find_dotenv(usecwd=True), override=False)
    cfg = load_config(args.config)
    apply_env_overrides(cfg, os.environ)
    return apply_cli_overrides(
        cfg,
        {
            "query": {
                "years_back": args.years_back,
                "fetch_size": args.fetch_size,
            },
            "delete": {
                "batch_size": getattr(args, "batch_size", None),
            },
        },
    )


def _command_list(index: SearchIndex, settings: RunSettings) -> int:
    run_list(index, settings)
    return 0


def _command_delete(index: SearchIndex, settings: RunSettings) -> int:
    run_delete(index, settings)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _create_parser()
    args = parser.parse_args(argv)

    try:
        cfg = _resolve_config(args)
        setup_logging(cfg.get("runtime", {}).get("log_level", "INFO"))
        settings = RunSettings.from_config(cfg).validate(args.cmd)
    except (ValueError, FileNotFoundError) as exc:
        setup_logging()
        LOGGER.error("Configuration error: %s", exc)
        parser.print_usage(sys.stderr)
        return 1

    try:
        index = create_search_index(settings)
        if args.cmd == "list":
            return _command_list(index, settings)
        if args.cmd == "delete":
            return _command_delete(index, settings)
    except Exception as exc:  # noqa: BLE001
        LOGGER.error("Fatal error: %s", exc)
        return 1

    parser.error(f"Unhandled command: {args.cmd}")
    return 2


def _single_command_main(cmd: str) -> int:
    return main([cmd, *sys.argv[1:]])


def main_list() -> int:
    return _single_command_main("list")


def main_delete() -> int:
    return _single_command_main("delete")


if __name__ == "__main__":
    raise SystemExit(main())

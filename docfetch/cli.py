"""Command-line interface for the document fetcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .cli_auth import add_auth_args, build_cli_auth
from .cli_config import load_config
from .cli_output import print_outcomes, write_statements
from .cli_parsers import RDF_OUTPUT_FORMATS, parse_args
from .config import FetcherSettings, SettingsOverrides, load_settings
from .document import FetchOptions, FetchOutcome
from .fetcher import Fetcher

# Configuration directory for global CLI usage
CONFIG_DIR = Path.home() / ".config" / "docfetch"
CONFIG_ENV_FILE = CONFIG_DIR / ".env"


def _load_config() -> Optional[Path]:
    return load_config(
        config_dir=CONFIG_DIR,
        config_env_file=CONFIG_ENV_FILE,
        cwd=Path.cwd(),
        load_env=load_dotenv,
        copy_file=shutil.copy,
    )


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _build_settings(args: argparse.Namespace) -> FetcherSettings:
    overrides = SettingsOverrides(
        timeout=args.timeout,
        cross_site_proxy_template=args.proxy_template,
        origin=args.origin,
        offline_mode=args.offline,
    )
    if getattr(args, "no_rdfa", False):
        overrides.enable_rdfa = False
    return load_settings(overrides=overrides)


def _build_fetcher(args: argparse.Namespace) -> Fetcher:
    return Fetcher(settings=_build_settings(args), auth=build_cli_auth(args))


def _report_failures(outcomes: List[FetchOutcome]) -> None:
    for outcome in outcomes:
        if not outcome.ok:
            logging.warning("Failed: %s - %s", outcome.uri, outcome.error)


# =============================================================================
# COMMANDS
# =============================================================================


async def _run_fetch_async(args: argparse.Namespace) -> int:
    """Fetch every URI concurrently and report the outcomes."""
    options = FetchOptions(
        force=args.force,
        force_content_type=args.force_content_type,
        no_meta=args.no_meta,
        no_rdfa=args.no_rdfa,
        with_credentials=args.with_credentials,
    )

    async with _build_fetcher(args) as fetcher:
        if len(args.uris) == 1:
            logging.info("Fetching: %s", args.uris[0])
        else:
            logging.info("Fetching %d URIs...", len(args.uris))
        outcomes = await fetcher.fetch(list(args.uris), options)

        successful = [outcome for outcome in outcomes if outcome.ok]
        _report_failures(outcomes)

        status_logs = None
        if args.show_log:
            status_logs = [
                fetcher.status_log(outcome.req) if outcome.req is not None else []
                for outcome in outcomes
            ]
        print_outcomes(outcomes, args.json_output, status_logs)

        if args.output and successful:
            write_statements(
                fetcher.store,
                successful,
                args.output,
                RDF_OUTPUT_FORMATS[args.rdf_format],
            )

    if not successful:
        logging.error("All fetches failed")
        return 1
    return 0


async def _run_copy_async(args: argparse.Namespace) -> int:
    async with _build_fetcher(args) as fetcher:
        logging.info("Copying %s -> %s", args.source, args.target)
        outcome = await fetcher.web_copy(args.source, args.target, args.content_type)
        _report_failures([outcome])
        print_outcomes([outcome], args.json_output)
    return 0 if outcome.ok else 1


async def _run_delete_async(args: argparse.Namespace) -> int:
    async with _build_fetcher(args) as fetcher:
        outcomes = list(
            await asyncio.gather(*(fetcher.delete(uri) for uri in args.uris))
        )
        _report_failures(outcomes)
        print_outcomes(outcomes, args.json_output)
    return 0 if any(outcome.ok for outcome in outcomes) else 1


COMMAND_RUNNERS = {
    "fetch": _run_fetch_async,
    "copy": _run_copy_async,
    "delete": _run_delete_async,
}


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the ``docfetch`` command."""
    args = parse_args(sys.argv[1:] if argv is None else argv, add_auth_args)
    _setup_logging(args.verbose)
    _load_config()

    try:
        return asyncio.run(COMMAND_RUNNERS[args.command](args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Argument parser construction for CLI commands."""

from __future__ import annotations

import argparse
from typing import Callable, List, Optional

COMMANDS = ("fetch", "copy", "delete")
RDF_OUTPUT_FORMATS = {
    "turtle": "text/turtle",
    "nt": "application/n-triples",
    "json-ld": "application/ld+json",
    "xml": "application/rdf+xml",
}


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds before a request counts as timed out "
             "(default: DOCFETCH_TIMEOUT or 30)",
    )
    parser.add_argument(
        "--proxy-template",
        type=str,
        default=None,
        help="Cross-site proxy URI containing {uri}, "
             "e.g. https://proxy.example/?uri={uri}",
    )
    parser.add_argument(
        "--origin",
        type=str,
        default=None,
        help="Origin of the calling application; enables cross-site retries",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        default=None,
        help="Fetch http:// URIs from a localhost mirror",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        dest="json_output",
        help="Print outcomes as JSON",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )


def _add_fetch_args(
    parser: argparse.ArgumentParser,
    add_auth_args: Callable[[argparse.ArgumentParser], None],
) -> None:
    parser.add_argument(
        "uris",
        nargs="+",
        help="URI(s) to fetch",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Write the fetched statements to this file",
    )
    parser.add_argument(
        "--format",
        choices=sorted(RDF_OUTPUT_FORMATS),
        default="turtle",
        dest="rdf_format",
        help="Serialization for --output (default: turtle)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Fetch again even if fetched or failed before (sends no-cache)",
    )
    parser.add_argument(
        "--force-content-type",
        type=str,
        default=None,
        help="Treat every response as this content type",
    )
    parser.add_argument(
        "--no-meta",
        action="store_true",
        help="Do not record request/response metadata",
    )
    parser.add_argument(
        "--no-rdfa",
        action="store_true",
        help="Skip RDFa extraction from XHTML",
    )
    credentials = parser.add_mutually_exclusive_group()
    credentials.add_argument(
        "--with-credentials",
        action="store_true",
        dest="with_credentials",
        default=None,
        help="Always send credentials (default: only for https)",
    )
    credentials.add_argument(
        "--without-credentials",
        action="store_false",
        dest="with_credentials",
        help="Never send credentials",
    )
    parser.add_argument(
        "--log",
        action="store_true",
        dest="show_log",
        help="Print the status log of every request",
    )
    _add_common_args(parser)
    add_auth_args(parser)


def _build_root_parser(
    add_auth_args: Callable[[argparse.ArgumentParser], None],
) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docfetch",
        description="Fetch linked-data documents and report what they contain.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command")

    fetch_parser = subparsers.add_parser(
        "fetch",
        help=argparse.SUPPRESS,
        description="Fetch documents, sniff their format and parse them.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # One document, summary to stdout
  docfetch https://www.w3.org/People/Berners-Lee/card

  # Several documents, fetched concurrently
  docfetch https://example.org/a.ttl https://example.org/b.rdf

  # Write what was parsed as Turtle
  docfetch https://example.org/a.ttl -o a.ttl

  # Outcomes as JSON, with the status log of each request
  docfetch https://example.org/a.ttl --json --log

  # Server sends a useless content type
  docfetch https://example.org/data --force-content-type text/turtle

  # Authenticated fetch
  docfetch --header "Authorization: Bearer xyz" https://pod.example.org/private.ttl
""",
    )
    _add_fetch_args(fetch_parser, add_auth_args)

    copy_parser = subparsers.add_parser(
        "copy",
        description="GET a document and PUT its body to another URI.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  docfetch copy https://example.org/a.ttl https://pod.example.org/a.ttl
  docfetch copy --content-type text/turtle https://example.org/a https://pod.example.org/a
""",
    )
    copy_parser.add_argument("source", help="URI to read")
    copy_parser.add_argument("target", help="URI to write")
    copy_parser.add_argument(
        "--content-type",
        type=str,
        default=None,
        help="Content type of the upload (default: that of the source)",
    )
    _add_common_args(copy_parser)
    add_auth_args(copy_parser)

    delete_parser = subparsers.add_parser(
        "delete",
        description="DELETE a document.",
    )
    delete_parser.add_argument("uris", nargs="+", help="URI(s) to delete")
    _add_common_args(delete_parser)
    add_auth_args(delete_parser)

    return parser


def _normalize_argv(argv: Optional[List[str]]) -> List[str]:
    effective_argv = list(argv) if argv is not None else []
    if not effective_argv:
        return ["fetch"]

    if effective_argv[0] in COMMANDS or effective_argv[0] in ("-h", "--help"):
        return effective_argv

    return ["fetch", *effective_argv]


def parse_args(
    argv: Optional[List[str]],
    add_auth_args: Callable[[argparse.ArgumentParser], None],
) -> argparse.Namespace:
    parser = _build_root_parser(add_auth_args)
    args = parser.parse_args(_normalize_argv(argv))
    if not getattr(args, "command", None):
        args.command = "fetch"
    return args

"""MCP Server for the document fetcher.

Provides tools for:
- Fetching linked-data documents and reporting what was parsed
- Inspecting and resetting per-document fetch state

One fetcher is shared by every tool call, so documents fetched once are
served from its state cache until ``unload`` or ``force`` is used.

Supports both STDIO and HTTP transports.

Usage:
    # STDIO (for desktop MCP clients)
    python -m docfetch.mcp_server

    # HTTP (for remote access)
    python -m docfetch.mcp_server --transport http --port 8000

    # Or via FastMCP CLI
    fastmcp run docfetch/mcp_server.py:mcp --transport http --port 8000

Environment Variables:
    DOCFETCH_TIMEOUT: Seconds before a fetch times out (default: 30)
    DOCFETCH_PROXY_TEMPLATE: Cross-site proxy URI containing {uri}
    DOCFETCH_ORIGIN: Origin of the calling application
"""

from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .cli_output import outcome_to_dict
from .document import FetchOptions, FetchOutcome
from .fetcher import Fetcher
from .uris import doc_part

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

# Load .env before the fetcher reads environment variables
load_dotenv()

mcp = FastMCP(
    name="Document Fetcher",
    instructions="""
    A linked-data document fetcher that provides:

    1. fetch: Fetch one or more URIs, sniff their format and parse them
       into a shared knowledge store.
    2. document_state: Report whether URIs are unrequested, requested,
       fetched, failed or redirected.
    3. unload: Forget a document so that the next fetch loads it again.

    Output formats for fetch:
    - json: Outcomes with status, content type and status log (default)
    - turtle: The statements parsed from each fetched document
    """,
)

_fetcher: Optional[Fetcher] = None


class OutputFormat(str, Enum):
    """Output format for fetch results."""

    json = "json"
    turtle = "turtle"


def get_fetcher() -> Fetcher:
    """The fetcher shared by all tool calls, created on first use."""
    global _fetcher
    if _fetcher is None:
        _fetcher = Fetcher()
    return _fetcher


def _format_timestamp() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _format_turtle(fetcher: Fetcher, outcomes: List[FetchOutcome]) -> str:
    sections = []
    for outcome in outcomes:
        if outcome.ok:
            body = fetcher.store.serialize(outcome.uri, "text/turtle")
        else:
            body = f"# Error ({outcome.status}): {outcome.error}"
        sections.append(f"# <{outcome.uri}>\n{body}")
    return "\n\n".join(sections)


def _format_output(
    fetcher: Fetcher, outcomes: List[FetchOutcome], output_format: OutputFormat
) -> str:
    if output_format == OutputFormat.turtle:
        return _format_turtle(fetcher, outcomes)

    documents = [
        outcome_to_dict(
            outcome,
            fetcher.status_log(outcome.req) if outcome.req is not None else None,
        )
        for outcome in outcomes
    ]
    result = {
        "fetched_at": _format_timestamp(),
        "documents": documents,
        "summary": {
            "total": len(outcomes),
            "successful": sum(1 for outcome in outcomes if outcome.ok),
            "failed": sum(1 for outcome in outcomes if not outcome.ok),
        },
    }
    return json.dumps(result, indent=2, ensure_ascii=False)


# =============================================================================
# FETCH TOOLS
# =============================================================================


@mcp.tool
async def fetch(
    uris: List[str],
    output_format: str = "json",
    force: bool = False,
    no_rdfa: bool = False,
    force_content_type: Optional[str] = None,
):
    """
    Fetch one or more linked-data documents and parse them.

    Args:
        uris: List of URIs to fetch (can be a single URI)
        output_format: Output format - "json" (default) or "turtle"
            - json: Outcome per URI with status, content type and status log
            - turtle: The statements parsed from each document
        force: Fetch again even if fetched or failed before (default: false)
        no_rdfa: Skip RDFa extraction from XHTML (default: false)
        force_content_type: Treat every response as this content type

    Returns:
        Fetch results in the specified format.

    Examples:
        # Single document
        fetch(uris=["https://www.w3.org/People/Berners-Lee/card"])

        # Parsed statements as Turtle
        fetch(uris=["https://example.org/a.ttl"], output_format="turtle")

        # Server sends a useless content type
        fetch(uris=["https://example.org/data"], force_content_type="text/turtle")
    """
    try:
        fmt = OutputFormat(output_format.lower())
    except ValueError:
        fmt = OutputFormat.json

    fetcher = get_fetcher()
    options = FetchOptions(
        force=force, no_rdfa=no_rdfa, force_content_type=force_content_type
    )

    LOGGER.info("Fetching %d URI(s)...", len(uris))
    outcomes = await fetcher.fetch(list(uris), options)

    successful = sum(1 for outcome in outcomes if outcome.ok)
    LOGGER.info("Completed: %d/%d successful", successful, len(outcomes))

    return _format_output(fetcher, outcomes, fmt)


@mcp.tool
async def document_state(uris: List[str]):
    """
    Report the fetch state of documents.

    Args:
        uris: URIs to report on

    Returns:
        JSON object mapping each URI to its state and, for URIs that
        returned 404, ``"nonexistent": true``.
    """
    fetcher = get_fetcher()
    states = {
        uri: {
            "state": fetcher.get_state(uri).value,
            "nonexistent": doc_part(uri) in fetcher.state.nonexistent,
        }
        for uri in uris
    }
    return json.dumps(states, indent=2, ensure_ascii=False)


@mcp.tool
async def unload(uris: List[str]):
    """
    Forget documents and their statements so that they load again.

    Args:
        uris: URIs to unload
    """
    fetcher = get_fetcher()
    for uri in uris:
        fetcher.unload(uri)
    LOGGER.info("Unloaded %d document(s)", len(uris))
    return json.dumps({"unloaded": list(uris)}, ensure_ascii=False)


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for running the MCP server."""
    parser = argparse.ArgumentParser(
        description="Run the document fetcher MCP server.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
    DOCFETCH_TIMEOUT          Seconds before a fetch times out (default: 30)
    DOCFETCH_PROXY_TEMPLATE   Cross-site proxy URI containing {uri}
    DOCFETCH_ORIGIN           Origin of the calling application

Examples:
    # STDIO transport (default)
    python -m docfetch.mcp_server

    # HTTP transport (for remote access)
    python -m docfetch.mcp_server --transport http --port 8000

    # Custom host/port
    python -m docfetch.mcp_server --transport http --host 0.0.0.0 --port 9000
""",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )

    args = parser.parse_args()

    settings = get_fetcher().settings
    LOGGER.info("Fetch timeout: %ss", settings.timeout)
    LOGGER.info(
        "Cross-site proxy: %s", settings.cross_site_proxy_template or "Disabled"
    )

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

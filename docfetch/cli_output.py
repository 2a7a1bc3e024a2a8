"""Output and formatting helpers for CLI commands."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from rdflib import Graph

from .document import FetchOutcome
from .store import KnowledgeStore, rdflib_format
from .uris import doc_part


def outcome_to_dict(outcome: FetchOutcome, status_log: Optional[List[str]] = None) -> dict:
    """Convert a fetch outcome to a JSON-serializable dict."""
    if outcome.ok:
        data: Dict[str, Any] = {
            "uri": outcome.uri,
            "ok": True,
            "status": outcome.status,
            "status_text": outcome.status_text,
            "content_type": outcome.content_type,
            "final_url": outcome.final_url,
            "redirects": list(outcome.redirects),
            "cached": outcome.cached,
        }
    else:
        data = {
            "uri": outcome.uri,
            "ok": False,
            "status": outcome.status,
            "error": outcome.error,
        }
    if status_log is not None:
        data["log"] = status_log
    return data


def format_outcome_line(outcome: FetchOutcome) -> str:
    """One-line human summary of an outcome."""
    if outcome.ok:
        detail = "cached" if outcome.cached else (outcome.content_type or "no content type")
        return f"OK    {outcome.status} {outcome.uri} ({detail})"
    first_line = outcome.error.splitlines()[0] if outcome.error else ""
    return f"FAIL  {outcome.status} {outcome.uri}: {first_line}"


def serialize_documents(
    store: KnowledgeStore, uris: Sequence[str], content_type: str
) -> str:
    """Serialize the statements of several documents as one graph."""
    fmt = rdflib_format(content_type)
    if fmt is None:
        raise ValueError(f"No RDF serializer for content type {content_type!r}")
    graph = Graph()
    for prefix, namespace in store.dataset.namespace_manager.namespaces():
        graph.bind(prefix, namespace, override=False)
    for uri in uris:
        for triple in store.statements_in(doc_part(uri)):
            graph.add(triple)
    return graph.serialize(format=fmt)


def print_outcomes(
    outcomes: Sequence[FetchOutcome],
    json_output: bool,
    status_logs: Optional[Sequence[List[str]]] = None,
) -> None:
    if json_output:
        payload = [
            outcome_to_dict(outcome, status_logs[i] if status_logs else None)
            for i, outcome in enumerate(outcomes)
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    for i, outcome in enumerate(outcomes):
        print(format_outcome_line(outcome))
        if status_logs:
            for line in status_logs[i]:
                print(f"      {line}")


def write_statements(
    store: KnowledgeStore,
    outcomes: Sequence[FetchOutcome],
    output: str,
    content_type: str,
) -> int:
    """Write statements of the successfully fetched documents to *output*."""
    uris = [outcome.uri for outcome in outcomes if outcome.ok]
    text = serialize_documents(store, uris, content_type)
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    logging.info("Wrote statements from %d document(s) to %s", len(uris), path)
    return len(uris)

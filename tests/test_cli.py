"""Tests for docfetch.cli and its helper modules."""

from __future__ import annotations

import json

import pytest

from conftest import TURTLE_CARD, FakeTransport
from docfetch import cli
from docfetch.cli_auth import add_auth_args
from docfetch.cli_output import format_outcome_line, outcome_to_dict
from docfetch.cli_parsers import _normalize_argv, parse_args
from docfetch.document import FetchFailure, FetchResult
from docfetch.fetcher import Fetcher

CARD = "http://example.org/card.ttl"
TURTLE = {"content-type": "text/turtle"}


@pytest.fixture
def cli_transport(monkeypatch: pytest.MonkeyPatch) -> FakeTransport:
    """Run the CLI against a fake transport and without touching ~/.config."""
    transport = FakeTransport()
    monkeypatch.setattr(cli, "_load_config", lambda: None)
    monkeypatch.setattr(
        cli,
        "_build_fetcher",
        lambda args: Fetcher(transport=transport, settings=cli._build_settings(args)),
    )
    return transport


class TestParseArgs:
    def test_default_command_is_fetch(self):
        assert _normalize_argv(["http://a"]) == ["fetch", "http://a"]
        assert _normalize_argv([]) == ["fetch"]
        assert _normalize_argv(["copy", "a", "b"]) == ["copy", "a", "b"]
        assert _normalize_argv(["--help"]) == ["--help"]

    def test_fetch_flags(self):
        args = parse_args(
            [CARD, "--force", "--no-rdfa", "--format", "nt", "-o", "out.nt", "--without-credentials"],
            add_auth_args,
        )
        assert args.command == "fetch"
        assert args.uris == [CARD]
        assert args.force and args.no_rdfa
        assert args.rdf_format == "nt"
        assert args.output == "out.nt"
        assert args.with_credentials is False

    def test_credentials_default_to_none(self):
        args = parse_args([CARD], add_auth_args)
        assert args.with_credentials is None
        assert args.offline is None

    def test_copy_and_delete(self):
        copy = parse_args(["copy", CARD, "http://pod.example/x", "--content-type", "text/n3"], add_auth_args)
        assert (copy.source, copy.target, copy.content_type) == (
            CARD,
            "http://pod.example/x",
            "text/n3",
        )
        delete = parse_args(["delete", CARD, "http://example.org/b"], add_auth_args)
        assert delete.uris == [CARD, "http://example.org/b"]

    def test_fetch_requires_uri(self):
        with pytest.raises(SystemExit):
            parse_args([], add_auth_args)


class TestBuildSettings:
    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("DOCFETCH_TIMEOUT", "60")
        args = parse_args(
            [CARD, "--timeout", "3", "--origin", "https://app.example", "--offline", "--no-rdfa"],
            add_auth_args,
        )
        settings = cli._build_settings(args)
        assert settings.timeout == 3.0
        assert settings.origin == "https://app.example"
        assert settings.offline_mode is True
        assert settings.enable_rdfa is False

    def test_environment_used_without_flags(self, monkeypatch):
        monkeypatch.setenv("DOCFETCH_TIMEOUT", "60")
        settings = cli._build_settings(parse_args([CARD], add_auth_args))
        assert settings.timeout == 60.0
        assert settings.enable_rdfa is True


class TestOutputHelpers:
    def test_outcome_to_dict(self):
        result = FetchResult(uri=CARD, status=200, status_text="OK", content_type="text/turtle")
        data = outcome_to_dict(result, ["[12:00:00.000] Done."])
        assert data["ok"] is True
        assert data["content_type"] == "text/turtle"
        assert data["log"] == ["[12:00:00.000] Done."]

        failure = FetchFailure(uri=CARD, error="Request timed out", status="timeout")
        assert outcome_to_dict(failure) == {
            "uri": CARD,
            "ok": False,
            "status": "timeout",
            "error": "Request timed out",
        }

    def test_summary_lines(self):
        ok = FetchResult(uri=CARD, status=200, content_type="text/turtle")
        cached = FetchResult(uri=CARD, status=200, cached=True)
        failed = FetchFailure(uri=CARD, error="first line\nsecond", status=404)
        assert format_outcome_line(ok) == f"OK    200 {CARD} (text/turtle)"
        assert format_outcome_line(cached).endswith("(cached)")
        assert format_outcome_line(failed) == f"FAIL  404 {CARD}: first line"


class TestMain:
    def test_fetch_prints_json(self, cli_transport, capsys):
        cli_transport.route(CARD, TURTLE_CARD, headers=TURTLE)

        assert cli.main([CARD, "--json", "--log"]) == 0

        payload = json.loads(capsys.readouterr().out)
        assert payload[0]["uri"] == CARD
        assert payload[0]["ok"] is True
        assert any("Done." in line for line in payload[0]["log"])

    def test_fetch_all_failed(self, cli_transport, capsys):
        assert cli.main([CARD]) == 1
        assert f"FAIL  404 {CARD}" in capsys.readouterr().out

    def test_partial_failure_still_succeeds(self, cli_transport, capsys):
        cli_transport.route(CARD, TURTLE_CARD, headers=TURTLE)
        assert cli.main([CARD, "http://example.org/missing"]) == 0
        out = capsys.readouterr().out
        assert f"OK    200 {CARD}" in out
        assert "FAIL  404 http://example.org/missing" in out

    def test_fetch_writes_statements(self, cli_transport, tmp_path):
        cli_transport.route(CARD, TURTLE_CARD, headers=TURTLE)
        output = tmp_path / "out" / "card.nt"

        assert cli.main([CARD, "-o", str(output), "--format", "nt"]) == 0

        text = output.read_text(encoding="utf-8")
        assert '<http://example.org/card.ttl#me> <http://xmlns.com/foaf/0.1/name> "Alice" .' in text

    def test_copy(self, cli_transport):
        target = "http://pod.example.org/card.ttl"
        cli_transport.route(CARD, TURTLE_CARD, headers=TURTLE)
        cli_transport.route(target, method="PUT", status=201, status_text="Created")

        assert cli.main(["copy", CARD, target]) == 0
        assert cli_transport.calls[-1].body == TURTLE_CARD

    def test_delete(self, cli_transport):
        cli_transport.route(CARD, method="DELETE", status=204, status_text="No Content")

        assert cli.main(["delete", CARD]) == 0
        assert cli_transport.calls[0].method == "DELETE"

    def test_keyboard_interrupt(self, cli_transport, monkeypatch):
        def interrupted(coro):
            coro.close()
            raise KeyboardInterrupt

        monkeypatch.setattr(cli.asyncio, "run", interrupted)
        assert cli.main([CARD]) == 130

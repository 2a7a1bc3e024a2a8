"""Tests for docfetch.auth and docfetch.cli_auth modules."""

from __future__ import annotations

import argparse
import json

import pytest

from docfetch.auth import AuthConfig, load_auth_from_env, load_auth_from_file
from docfetch.cli_auth import add_auth_args, build_cli_auth


class TestAuthConfig:
    def test_empty(self):
        assert AuthConfig().is_empty
        assert not AuthConfig(headers={"X": "1"}).is_empty

    def test_cookie_header_matches_domain_and_path(self):
        auth = AuthConfig(
            cookies=[
                {"name": "sid", "value": "abc", "domain": ".example.org"},
                {"name": "admin", "value": "1", "domain": "example.org", "path": "/admin"},
                {"name": "other", "value": "x", "domain": "other.example"},
            ]
        )
        assert auth.cookie_header("https://pod.example.org/data") == "sid=abc"
        assert auth.cookie_header("https://example.org/admin/users") == "sid=abc; admin=1"
        assert auth.cookie_header("https://unrelated.example/") is None

    def test_cookie_without_domain_applies_everywhere(self):
        auth = AuthConfig(cookies=[{"name": "a", "value": "b"}, {"name": "broken"}])
        assert auth.cookie_header("https://any.example/") == "a=b"


class TestLoadAuth:
    def test_from_env(self, tmp_path, monkeypatch):
        cookies = tmp_path / "cookies.json"
        cookies.write_text(json.dumps([{"name": "sid", "value": "abc"}]))
        headers = tmp_path / "headers.json"
        headers.write_text(json.dumps({"Authorization": "Bearer xyz"}))
        monkeypatch.setenv("DOCFETCH_AUTH_COOKIES_FILE", str(cookies))
        monkeypatch.setenv("DOCFETCH_AUTH_HEADERS_FILE", str(headers))

        auth = load_auth_from_env()

        assert auth.cookies == [{"name": "sid", "value": "abc"}]
        assert auth.headers == {"Authorization": "Bearer xyz"}

    def test_env_unset(self, monkeypatch):
        monkeypatch.delenv("DOCFETCH_AUTH_COOKIES_FILE", raising=False)
        monkeypatch.delenv("DOCFETCH_AUTH_HEADERS_FILE", raising=False)
        assert load_auth_from_env() is None

    def test_env_file_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DOCFETCH_AUTH_HEADERS_FILE", str(tmp_path / "nope.json"))
        monkeypatch.delenv("DOCFETCH_AUTH_COOKIES_FILE", raising=False)
        auth = load_auth_from_env()
        assert auth is not None and auth.is_empty

    def test_from_file(self, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text(json.dumps({"headers": {"X-Key": "1"}}))
        auth = load_auth_from_file(str(path))
        assert auth.headers == {"X-Key": "1"}
        assert auth.cookies is None

    def test_from_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_auth_from_file(str(tmp_path / "missing.json"))


class TestBuildCliAuth:
    def _parse(self, argv):
        parser = argparse.ArgumentParser()
        add_auth_args(parser)
        return parser.parse_args(argv)

    def test_headers(self):
        args = self._parse(["--header", "Authorization: Bearer xyz", "--header", "bad"])
        auth = build_cli_auth(args, auth_loader=lambda: None)
        assert auth.headers == {"Authorization": "Bearer xyz"}

    def test_cookies_json(self):
        args = self._parse(["--cookies", '{"name": "sid", "value": "abc"}'])
        auth = build_cli_auth(args, auth_loader=lambda: None)
        assert auth.cookies == [{"name": "sid", "value": "abc"}]

    def test_cookies_file(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps([{"name": "sid", "value": "abc"}]))
        auth = build_cli_auth(self._parse(["--cookies", str(path)]), auth_loader=lambda: None)
        assert auth.cookies == [{"name": "sid", "value": "abc"}]

    def test_auth_file_wins(self, tmp_path):
        path = tmp_path / "auth.json"
        path.write_text(json.dumps({"headers": {"X-Key": "file"}}))
        args = self._parse(["--auth-file", str(path), "--header", "X-Key: flag"])
        assert build_cli_auth(args).headers == {"X-Key": "file"}

    def test_falls_back_to_loader(self):
        sentinel = AuthConfig(headers={"X": "env"})
        assert build_cli_auth(self._parse([]), auth_loader=lambda: sentinel) is sentinel

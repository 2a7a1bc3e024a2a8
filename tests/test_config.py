"""Tests for docfetch.config and docfetch.cli_config modules."""

from pathlib import Path

from docfetch.cli_config import load_config
from docfetch.config import (
    DEFAULT_MAX_REDIRECT_HOPS,
    DEFAULT_TIMEOUT,
    FetcherSettings,
    SettingsOverrides,
    _apply_overrides,
    load_settings,
)


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings(environ={})
        assert settings == FetcherSettings()
        assert settings.timeout == DEFAULT_TIMEOUT
        assert settings.enable_rdfa is True

    def test_environment(self):
        settings = load_settings(
            environ={
                "DOCFETCH_TIMEOUT": "2.5",
                "DOCFETCH_MAX_REDIRECT_HOPS": "3",
                "DOCFETCH_PROXY_TEMPLATE": "https://proxy.example/?uri={uri}",
                "DOCFETCH_ORIGIN": "https://app.example",
                "DOCFETCH_OFFLINE_MODE": "yes",
                "DOCFETCH_ENABLE_RDFA": "false",
                "DOCFETCH_USER_AGENT": "agent/1",
                "DOCFETCH_LOCAL_SITE_MAP": '{"example.org": {"data": "http://localhost/"}}',
            }
        )
        assert settings.timeout == 2.5
        assert settings.max_redirect_hops == 3
        assert settings.cross_site_proxy_template == "https://proxy.example/?uri={uri}"
        assert settings.origin == "https://app.example"
        assert settings.offline_mode is True
        assert settings.enable_rdfa is False
        assert settings.user_agent == "agent/1"
        assert settings.local_site_map == {"example.org": {"data": "http://localhost/"}}

    def test_invalid_numbers_fall_back(self, caplog):
        settings = load_settings(
            environ={"DOCFETCH_TIMEOUT": "soon", "DOCFETCH_MAX_REDIRECT_HOPS": "many"}
        )
        assert settings.timeout == DEFAULT_TIMEOUT
        assert settings.max_redirect_hops == DEFAULT_MAX_REDIRECT_HOPS
        assert "DOCFETCH_TIMEOUT" in caplog.text

    def test_bad_site_map_ignored(self):
        assert load_settings(environ={"DOCFETCH_LOCAL_SITE_MAP": "{oops"}).local_site_map == {}
        assert load_settings(environ={"DOCFETCH_LOCAL_SITE_MAP": "[1]"}).local_site_map == {}

    def test_overrides_win(self):
        settings = load_settings(
            environ={"DOCFETCH_TIMEOUT": "9"},
            overrides=SettingsOverrides(timeout=1.0, offline_mode=False),
        )
        assert settings.timeout == 1.0
        assert settings.offline_mode is False


class TestApplyOverrides:
    def test_unset_fields_leave_settings_alone(self):
        settings = FetcherSettings(origin="https://a.example")
        _apply_overrides(settings, SettingsOverrides())
        assert settings.origin == "https://a.example"

    def test_false_is_applied(self):
        settings = FetcherSettings()
        _apply_overrides(settings, SettingsOverrides(enable_rdfa=False))
        assert settings.enable_rdfa is False


class TestLoadConfig:
    def _run(self, tmp_path: Path, example: bool = False):
        loaded = []
        copied = []
        example_file = tmp_path / "project" / ".env.example"
        if example:
            example_file.parent.mkdir()
            example_file.write_text("DOCFETCH_TIMEOUT=5\n")
        config_dir = tmp_path / "config"

        def copy_file(src, dst):
            copied.append((src, dst))
            Path(dst).write_text(Path(src).read_text())

        result = load_config(
            config_dir=config_dir,
            config_env_file=config_dir / ".env",
            cwd=tmp_path / "cwd",
            load_env=loaded.append,
            copy_file=copy_file,
            example_file=example_file,
        )
        return result, loaded, copied

    def test_cwd_env_first(self, tmp_path):
        (tmp_path / "cwd").mkdir()
        (tmp_path / "cwd" / ".env").write_text("X=1")
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / ".env").write_text("X=2")

        result, loaded, copied = self._run(tmp_path)

        assert result == tmp_path / "cwd" / ".env"
        assert loaded == [result]
        assert copied == []

    def test_user_config_second(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / ".env").write_text("X=2")

        result, loaded, _ = self._run(tmp_path)

        assert result == tmp_path / "config" / ".env"
        assert loaded == [result]

    def test_example_copied(self, tmp_path):
        result, loaded, copied = self._run(tmp_path, example=True)

        assert result == tmp_path / "config" / ".env"
        assert result.read_text() == "DOCFETCH_TIMEOUT=5\n"
        assert len(copied) == 1
        assert loaded == [result]

    def test_nothing_found(self, tmp_path):
        result, loaded, copied = self._run(tmp_path)
        assert result is None
        assert loaded == []
        assert copied == []

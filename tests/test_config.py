"""Tests for config file loading and base URL resolution."""

import pytest

from quillsite.config import DEFAULT_BASE_URL, load_config, resolve_base_url, resolve_url_context
from quillsite.utils import parse_bool, parse_int


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file(self, tmp_path) -> None:
        assert load_config(tmp_path / "site.toml") == {}

    def test_toml(self, tmp_path) -> None:
        path = tmp_path / "site.toml"
        path.write_text('base_url = "https://example.com"\nfeed_limit = 5\n', encoding="utf-8")
        assert load_config(path) == {"base_url": "https://example.com", "feed_limit": 5}

    def test_yaml(self, tmp_path) -> None:
        path = tmp_path / "site.yaml"
        path.write_text("output: public_html\nbuild_workers: 2\n", encoding="utf-8")
        assert load_config(path) == {"output": "public_html", "build_workers": 2}

    def test_empty_yaml(self, tmp_path) -> None:
        path = tmp_path / "site.yml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == {}

    def test_json(self, tmp_path) -> None:
        path = tmp_path / "site.json"
        path.write_text('{"store": "data.json"}', encoding="utf-8")
        assert load_config(path) == {"store": "data.json"}

    @pytest.mark.parametrize(
        ("name", "text"),
        [("site.toml", "base_url = "), ("site.yaml", "- a\n- b\n"), ("site.json", "[1, 2]")],
    )
    def test_invalid_exits(self, tmp_path, capsys, name: str, text: str) -> None:
        path = tmp_path / name
        path.write_text(text, encoding="utf-8")
        with pytest.raises(SystemExit) as excinfo:
            load_config(path)
        assert excinfo.value.code == 1
        assert str(path) in capsys.readouterr().err


class TestBaseURL:
    """Tests for base URL precedence."""

    def test_default(self) -> None:
        assert resolve_base_url(None, {}, environ={}) == DEFAULT_BASE_URL

    def test_config_value(self) -> None:
        assert resolve_base_url(None, {"base_url": "https://cfg.example"}, environ={}) == "https://cfg.example"

    def test_environment_beats_config(self) -> None:
        env = {"SITE_BASE_URL": "https://env.example"}
        assert resolve_base_url(None, {"base_url": "https://cfg.example"}, environ=env) == "https://env.example"

    def test_flag_beats_everything(self) -> None:
        env = {"SITE_BASE_URL": "https://env.example"}
        value = resolve_base_url("https://cli.example", {"base_url": "https://cfg.example"}, environ=env)
        assert value == "https://cli.example"

    def test_blank_values_are_skipped(self) -> None:
        env = {"SITE_BASE_URL": "  "}
        assert resolve_base_url("", {"base_url": "https://cfg.example"}, environ=env) == "https://cfg.example"

    def test_url_context(self) -> None:
        ctx = resolve_url_context(None, {}, environ={"SITE_BASE_URL": "https://env.example/blog"})
        assert ctx.url_for("/") == "https://env.example/blog/"


class TestCoercion:
    """Tests for value coercion helpers."""

    def test_parse_bool(self) -> None:
        assert parse_bool("yes") is True
        assert parse_bool("0") is False
        assert parse_bool(None) is False
        assert parse_bool(1) is True

    def test_parse_int(self) -> None:
        assert parse_int("7", 1) == 7
        assert parse_int("seven", 1) == 1
        assert parse_int(None, 3) == 3

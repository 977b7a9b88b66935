from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import yaml

try:
    import tomllib as toml
except ImportError:
    import tomli as toml

from .urls import BaseURLContext

BASE_URL_ENV = "SITE_BASE_URL"
DEFAULT_BASE_URL = "http://localhost:8000"


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")
    if suffix == ".toml":
        try:
            data = toml.loads(text)
        except toml.TOMLDecodeError as exc:
            print(f"Invalid TOML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        return data
    if suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            print(f"Invalid YAML in config file {path}: {exc}", file=sys.stderr)
            sys.exit(1)
        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"YAML config must be a mapping: {path}", file=sys.stderr)
            sys.exit(1)
        return data
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        print(f"Invalid JSON in config file {path}: {exc}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print(f"JSON config must be an object: {path}", file=sys.stderr)
        sys.exit(1)
    return data


def resolve_base_url(cli_value: str | None, config: dict, environ: dict | None = None) -> str:
    environ = os.environ if environ is None else environ
    for candidate in (cli_value, environ.get(BASE_URL_ENV), config.get("base_url")):
        if candidate and str(candidate).strip():
            return str(candidate).strip()
    return DEFAULT_BASE_URL


def resolve_url_context(cli_value: str | None, config: dict, environ: dict | None = None) -> BaseURLContext:
    return BaseURLContext.from_url(resolve_base_url(cli_value, config, environ))


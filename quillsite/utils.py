from __future__ import annotations

import datetime as dt
from pathlib import Path

from .errors import OutputDirectoryError

DISPLAY_DATE_FMT = "%B %d, %Y"


def parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "y", "on"}
    return False


def parse_int(value: object, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return default


def join_url(base: str, path: str) -> str:
    base = base.rstrip("/")
    path = path.lstrip("/")
    if not path:
        return base
    return f"{base}/{path}"


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime) -> dt.datetime:
    # naive timestamps are taken to be UTC already
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def rfc822_date(value: dt.datetime) -> str:
    return as_utc(value).strftime("%a, %d %b %Y %H:%M:%S %z")


def iso_date(value: dt.datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def display_date(value: dt.datetime) -> str:
    return value.strftime(DISPLAY_DATE_FMT)


def check_output_dir(output_dir: Path, project_root: Path | None = None) -> None:
    output_resolved = output_dir.resolve()
    root_resolved = (project_root or Path.cwd()).resolve()
    if output_resolved == Path(output_resolved.anchor):
        raise OutputDirectoryError(f"Refusing to replace filesystem root: {output_dir}")
    if root_resolved == output_resolved or root_resolved.is_relative_to(output_resolved):
        raise OutputDirectoryError(f"Refusing to replace project root or its parent: {output_dir}")

"""Shared fixtures for the quillsite test suite."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from quillsite.store import ContentStore
from quillsite.urls import BaseURLContext


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture
def store(clock: FixedClock) -> ContentStore:
    return ContentStore(clock=clock)


@pytest.fixture
def url_context() -> BaseURLContext:
    return BaseURLContext.from_url("https://blog.example.com")


@pytest.fixture
def static_dir(tmp_path: Path) -> Path:
    """A static source directory holding only part of the asset manifest."""
    static = tmp_path / "public"
    static.mkdir()
    (static / "favicon.ico").write_bytes(b"\x00\x00\x01\x00")
    (static / "robots.txt").write_text("User-agent: *\nAllow: /\n", encoding="utf-8")
    (static / "manifest.json").write_text('{"name": "Quillsite"}', encoding="utf-8")
    return static

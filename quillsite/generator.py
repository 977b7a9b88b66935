from __future__ import annotations

import datetime as dt
import logging
import os
import shutil
import tempfile
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable

from .errors import QuillsiteError, RenderError
from .models import GenerationResult, Post, SiteConfig
from .pages import FEED_LIMIT, build_about, build_archive, build_index, build_post, build_rss, build_sitemap
from .render import read_template, write_text
from .store import ContentStore
from .urls import BaseURLContext
from .utils import check_output_dir

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_DIR = Path(__file__).parent / "templates"
ASSET_MANIFEST = (
    "favicon.ico",
    "icon.svg",
    "icon.png",
    "icon-192.png",
    "icon-512.png",
    "manifest.json",
    "robots.txt",
    "og-image.png",
    "og-image.svg",
)
MAX_WORKERS = 32

_locks_guard = threading.Lock()
_output_locks: dict[Path, threading.Lock] = {}


def output_lock(output_dir: Path) -> threading.Lock:
    key = output_dir.resolve()
    with _locks_guard:
        return _output_locks.setdefault(key, threading.Lock())


def resolve_workers(workers: int) -> int:
    if workers <= 0:
        workers = os.cpu_count() or 1
    return max(1, min(workers, MAX_WORKERS))


class StaticSiteGenerator:
    def __init__(
        self,
        store: ContentStore,
        output_dir: Path,
        url_context: BaseURLContext,
        static_dir: Path | None = None,
        templates_dir: Path | None = None,
        workers: int = 0,
        feed_limit: int = FEED_LIMIT,
    ) -> None:
        self.store = store
        self.output_dir = Path(output_dir)
        self.url_context = url_context
        self.static_dir = Path(static_dir) if static_dir is not None else None
        self.templates_dir = Path(templates_dir) if templates_dir is not None else DEFAULT_TEMPLATES_DIR
        self.workers = resolve_workers(workers)
        self.feed_limit = feed_limit

    def generate_all(self) -> GenerationResult:
        start = time.perf_counter()
        check_output_dir(self.output_dir)
        lock = output_lock(self.output_dir)
        if lock.locked():
            logger.info("Waiting for the running generation of %s", self.output_dir)
        with lock:
            site_config = self.store.site_config()
            posts = self.store.published_posts()
            stamps = [stamp for stamp in (self.store.max_published_updated_at(), site_config.updated_at) if stamp]
            last_modified = max(stamps) if stamps else None

            artifacts = self.render_artifacts(posts, site_config, last_modified)
            missing = self.publish(artifacts)

        elapsed = time.perf_counter() - start
        logger.info(
            "Static site generated in %s: %d pages (index + about + archive + sitemap + RSS + %d posts)",
            self.output_dir,
            len(artifacts),
            len(posts),
        )
        copied = [name for name in ASSET_MANIFEST if name not in missing]
        return GenerationResult(
            output_dir=str(self.output_dir),
            files=sorted(list(artifacts) + copied),
            post_count=len(posts),
            missing_assets=missing,
            elapsed=elapsed,
        )

    def render_artifacts(
        self, posts: list[Post], site_config: SiteConfig, last_modified: dt.datetime | None
    ) -> dict[str, str]:
        ctx = self.url_context
        template = self._render("base template", read_template, self.templates_dir / "base.html")
        artifacts = {
            "index.html": self._render("index.html", build_index, template, ctx, posts, site_config),
            "about.html": self._render("about.html", build_about, template, ctx, site_config),
            "archive.html": self._render("archive.html", build_archive, template, ctx, posts, site_config),
        }

        # newest first: the previous (older) post follows, the next (newer) one precedes
        def render_post(index: int) -> tuple[str, str]:
            post = posts[index]
            previous_post = posts[index + 1] if index + 1 < len(posts) else None
            next_post = posts[index - 1] if index > 0 else None
            name = f"{post.slug}.html"
            return name, self._render(name, build_post, template, ctx, post, site_config, previous_post, next_post)

        if self.workers <= 1 or len(posts) <= 1:
            rendered = [render_post(index) for index in range(len(posts))]
        else:
            with ThreadPoolExecutor(max_workers=min(self.workers, len(posts))) as executor:
                rendered = list(executor.map(render_post, range(len(posts))))
        artifacts.update(rendered)

        artifacts["sitemap.xml"] = self._render("sitemap.xml", build_sitemap, ctx, posts, last_modified)
        artifacts["feed.xml"] = self._render("feed.xml", build_rss, ctx, posts, site_config, self.feed_limit)
        return artifacts

    def publish(self, artifacts: dict[str, str]) -> list[str]:
        parent = self.output_dir.parent
        parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{self.output_dir.name}.", suffix=".tmp", dir=parent))
        try:
            for name, text in artifacts.items():
                write_text(staging / name, text)
            missing = self.copy_static_assets(staging)
            self._swap(staging)
        except OSError as exc:
            shutil.rmtree(staging, ignore_errors=True)
            raise RenderError("output directory", str(exc)) from exc
        return missing

    def copy_static_assets(self, destination: Path) -> list[str]:
        logger.info("Copying static assets...")
        missing = []
        for name in ASSET_MANIFEST:
            source = self.static_dir / name if self.static_dir is not None else None
            if source is None or not source.is_file():
                logger.warning("Static file not found: %s", name)
                missing.append(name)
                continue
            shutil.copy2(source, destination / name)
            logger.debug("Copied %s to static site", name)
        return missing

    def _swap(self, staging: Path) -> None:
        backup = None
        if self.output_dir.exists():
            backup = staging.with_suffix(".old")
            os.replace(self.output_dir, backup)
        try:
            os.replace(staging, self.output_dir)
        except OSError:
            if backup is not None:
                os.replace(backup, self.output_dir)
            raise
        if backup is not None:
            shutil.rmtree(backup, ignore_errors=True)

    def _render(self, artifact: str, builder: Callable[..., str], *args: object) -> str:
        logger.info("Generating %s", artifact)
        try:
            return builder(*args)
        except QuillsiteError:
            raise
        except Exception as exc:
            raise RenderError(artifact, str(exc)) from exc

from __future__ import annotations

import datetime as dt
import json
import logging
import re
import threading
from pathlib import Path
from typing import Callable, Optional

from pydantic import ValidationError

from .content import apply_derived_fields
from .errors import (
    ContentStoreError,
    PostNotFoundError,
    PostValidationError,
    SiteConfigExistsError,
    SiteConfigValidationError,
)
from .models import Post, PostStatus, SiteConfig
from .render import write_text
from .utils import utcnow

logger = logging.getLogger(__name__)

STORE_VERSION = 1
SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_EPOCH = dt.datetime.min.replace(tzinfo=dt.timezone.utc)

SaveHook = Callable[[Optional[Post], Post], object]
DeleteHook = Callable[[Post], object]
SiteConfigHook = Callable[[Optional[SiteConfig], SiteConfig], object]


def publish_order_key(post: Post) -> tuple[dt.datetime, int]:
    """Sort key for published posts: effective publish date, then id.

    A published post without ``published_at`` sorts by ``created_at``.
    """
    effective = post.effective_date
    if effective is None:
        effective = _EPOCH
    elif effective.tzinfo is None:
        effective = effective.replace(tzinfo=dt.timezone.utc)
    return effective, post.id or 0


class ContentStore:
    """In-memory content repository, optionally persisted to a JSON file.

    Every read returns a copy; every save goes through derived-field
    computation and validation before it is committed, and post-save hooks
    run after the commit with ``(previous, saved)`` snapshots.
    """

    def __init__(self, path: Path | None = None, clock: Callable[[], dt.datetime] = utcnow) -> None:
        self._lock = threading.RLock()
        self._path = Path(path) if path is not None else None
        self._clock = clock
        self._posts: dict[int, Post] = {}
        self._site_config: SiteConfig | None = None
        self._next_id = 1
        self._save_hooks: list[SaveHook] = []
        self._delete_hooks: list[DeleteHook] = []
        self._site_config_hooks: list[SiteConfigHook] = []
        if self._path is not None:
            self._load()

    # hooks

    def add_save_hook(self, hook: SaveHook) -> None:
        self._save_hooks.append(hook)

    def add_delete_hook(self, hook: DeleteHook) -> None:
        self._delete_hooks.append(hook)

    def add_site_config_hook(self, hook: SiteConfigHook) -> None:
        self._site_config_hooks.append(hook)

    # queries

    def get(self, post_id: int) -> Post:
        with self._lock:
            post = self._posts.get(post_id)
            if post is None:
                raise PostNotFoundError(f"No post with id {post_id}")
            return post.model_copy(deep=True)

    def find_by_slug(self, slug: str) -> Post:
        with self._lock:
            for post in self._posts.values():
                if post.slug == slug:
                    return post.model_copy(deep=True)
        raise PostNotFoundError(f"No post with slug {slug!r}")

    def all_posts(self) -> list[Post]:
        with self._lock:
            return [self._posts[key].model_copy(deep=True) for key in sorted(self._posts)]

    def published_posts(self, limit: int | None = None) -> list[Post]:
        with self._lock:
            posts = [post for post in self._posts.values() if post.status == PostStatus.PUBLISHED]
            posts.sort(key=publish_order_key, reverse=True)
            if limit is not None:
                posts = posts[:limit]
            return [post.model_copy(deep=True) for post in posts]

    def max_published_updated_at(self) -> dt.datetime | None:
        with self._lock:
            stamps = [
                post.updated_at
                for post in self._posts.values()
                if post.status == PostStatus.PUBLISHED and post.updated_at is not None
            ]
        return max(stamps) if stamps else None

    # mutations

    def save(self, post: Post) -> Post:
        with self._lock:
            post = post.model_copy(deep=True)
            previous = None
            if post.id is not None:
                previous = self._posts.get(post.id)
                if previous is None:
                    raise PostNotFoundError(f"No post with id {post.id}")
            now = self._clock()
            apply_derived_fields(post, previous, now)
            self._validate(post)
            if previous is None:
                post.id = self._next_id
                self._next_id += 1
                post.created_at = post.created_at or now
            else:
                post.created_at = previous.created_at
            post.updated_at = now
            self._posts[post.id] = post
            self._persist()
            before = previous.model_copy(deep=True) if previous is not None else None
            saved = post.model_copy(deep=True)
        logger.debug("Saved post %s (%s)", saved.id, saved.slug)
        for hook in self._save_hooks:
            hook(before, saved.model_copy(deep=True))
        return saved

    def publish(self, post_id: int) -> Post:
        post = self.get(post_id)
        post.publish(self._clock())
        return self.save(post)

    def unpublish(self, post_id: int) -> Post:
        post = self.get(post_id)
        post.unpublish()
        return self.save(post)

    def delete(self, post_id: int) -> Post:
        with self._lock:
            post = self._posts.pop(post_id, None)
            if post is None:
                raise PostNotFoundError(f"No post with id {post_id}")
            self._persist()
        for hook in self._delete_hooks:
            hook(post.model_copy(deep=True))
        return post

    def _validate(self, post: Post) -> None:
        errors: dict[str, list[str]] = {}
        if not post.title.strip():
            errors.setdefault("title", []).append("can't be blank")
        if not post.body_md.strip():
            errors.setdefault("body_md", []).append("can't be blank")
        if not post.slug:
            errors.setdefault("slug", []).append("can't be blank")
        elif not SLUG_RE.match(post.slug):
            errors.setdefault("slug", []).append("is not URL-safe")
        elif any(other.slug == post.slug and other.id != post.id for other in self._posts.values()):
            errors.setdefault("slug", []).append("has already been taken")
        if errors:
            raise PostValidationError(errors)

    # site configuration

    def site_config(self) -> SiteConfig:
        with self._lock:
            if self._site_config is None:
                self._site_config = SiteConfig(updated_at=self._clock())
                self._persist()
                logger.info("Created default site configuration")
            return self._site_config.model_copy(deep=True)

    def create_site_config(self, config: SiteConfig) -> SiteConfig:
        with self._lock:
            if self._site_config is not None:
                raise SiteConfigExistsError("Only one site configuration is allowed")
            return self._store_site_config(config)

    def save_site_config(self, config: SiteConfig) -> SiteConfig:
        with self._lock:
            previous = self._site_config.model_copy(deep=True) if self._site_config is not None else None
            saved = self._store_site_config(config)
        for hook in self._site_config_hooks:
            hook(previous, saved.model_copy(deep=True))
        return saved

    def _store_site_config(self, config: SiteConfig) -> SiteConfig:
        config = config.model_copy(deep=True)
        errors = {
            name: ["can't be blank"]
            for name in ("site_name", "welcome_title", "welcome_text", "about_content")
            if not getattr(config, name).strip()
        }
        if errors:
            raise SiteConfigValidationError(errors)
        config.updated_at = self._clock()
        self._site_config = config
        self._persist()
        return config.model_copy(deep=True)

    # persistence

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            posts = [Post.model_validate(item) for item in data.get("posts", [])]
            site_config = data.get("site_config")
            self._site_config = SiteConfig.model_validate(site_config) if site_config else None
        except (json.JSONDecodeError, ValidationError, AttributeError) as exc:
            raise ContentStoreError(f"Corrupt content store at {self._path}: {exc}") from exc
        self._posts = {post.id: post for post in posts if post.id is not None}
        self._next_id = max(int(data.get("next_id", 1)), max(self._posts, default=0) + 1)
        logger.debug("Loaded %d posts from %s", len(self._posts), self._path)

    def _persist(self) -> None:
        if self._path is None:
            return
        data = {
            "version": STORE_VERSION,
            "next_id": self._next_id,
            "site_config": self._site_config.model_dump(mode="json") if self._site_config else None,
            "posts": [self._posts[key].model_dump(mode="json") for key in sorted(self._posts)],
        }
        write_text(self._path, json.dumps(data, indent=2, ensure_ascii=True))

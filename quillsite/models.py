"""Content records: posts and the singleton site configuration.

No I/O lives here. The store owns persistence and derived fields; the
generator only ever sees copies of these records.
"""

from __future__ import annotations

import datetime as dt
from enum import Enum

from pydantic import BaseModel, Field

from . import render


class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class Post(BaseModel):
    id: int | None = None
    title: str = ""
    slug: str = ""
    body_md: str = ""
    status: PostStatus = PostStatus.DRAFT
    published_at: dt.datetime | None = None
    excerpt: str | None = None
    meta_description: str | None = None
    featured_image_url: str | None = None
    featured_image_alt: str | None = None
    word_count: int = 0
    reading_time: int | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @property
    def is_published(self) -> bool:
        return self.status == PostStatus.PUBLISHED

    @property
    def effective_date(self) -> dt.datetime | None:
        """Publish date, falling back to creation time when a published post has none."""
        return self.published_at or self.created_at

    @property
    def path(self) -> str:
        return f"/{self.slug}.html"

    @property
    def html_content(self) -> str:
        return render.render(self.body_md)

    def publish(self, now: dt.datetime) -> None:
        self.status = PostStatus.PUBLISHED
        if self.published_at is None:
            self.published_at = now

    def unpublish(self) -> None:
        self.status = PostStatus.DRAFT


DEFAULT_ABOUT_CONTENT = """\
Welcome to **Quillsite**, a small publishing platform for people who like to
write in Markdown and serve plain, fast HTML.

## What is Quillsite?

Posts are written in Markdown, sanitized on the way in, and published as a
static site: an index, an archive, one page per post, an RSS feed and a
sitemap.

## Key Features

- **Markdown-based Writing**: tables, fenced code blocks with syntax highlighting
- **Static Site Generation**: every page is pre-rendered and cacheable
- **Safe by Default**: author HTML passes through an allowlist sanitizer
- **Feeds and Sitemaps**: RSS 2.0 and sitemap.xml with absolute URLs

*Thank you for reading!*
"""


class SiteConfig(BaseModel):
    site_name: str = "Quillsite"
    welcome_title: str = "Welcome to Quillsite"
    welcome_text: str = "Notes on writing software, publishing it, and keeping both simple."
    about_content: str = DEFAULT_ABOUT_CONTENT
    updated_at: dt.datetime | None = None

    def changed_fields(self, other: SiteConfig) -> set[str]:
        fields = ("site_name", "welcome_title", "welcome_text", "about_content")
        return {name for name in fields if getattr(self, name) != getattr(other, name)}


class GenerationResult(BaseModel):
    output_dir: str
    files: list[str] = Field(default_factory=list)
    post_count: int = 0
    missing_assets: list[str] = Field(default_factory=list)
    elapsed: float = 0.0

from __future__ import annotations

import datetime as dt
import math
import re
import unicodedata
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Post

LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
WORD_CHAR_RE = re.compile(r"[^\W_]", re.UNICODE)
EXCERPT_STRIP_RE = re.compile(r"[#*_\[\]()]")

WORDS_PER_MINUTE = 200
EXCERPT_LENGTH = 160
EXCERPT_OMISSION = "..."


def slugify(text: str) -> str:
    text = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    text = text.lower()
    text = re.sub(r"[^a-z0-9]+", "-", text)
    return text.strip("-")


def parse_front_matter(text: str) -> tuple[dict, str]:
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == "---":
            end = i
            break
    if end is None:
        return {}, clean_text

    meta = {}
    for line in lines[1:end]:
        line = line.strip()
        if not line or line.startswith("#") or ":" not in line:
            continue
        key, value = line.split(":", 1)
        key = key.strip().lower()
        value = value.strip().strip("'\"")
        meta[key] = value
    body = "\n".join(lines[end + 1 :])
    return meta, body


def extract_title(meta: dict, body: str) -> tuple[str, str]:
    if meta.get("title"):
        return meta["title"], body
    lines = body.splitlines()
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("# "):
            title = stripped[2:].strip() or "Untitled"
            new_body = "\n".join(lines[i + 1 :]).lstrip()
            return title, new_body
        if stripped:
            break
    return "Untitled", body


def parse_timestamp(value: str | None) -> dt.datetime | None:
    value = (value or "").strip()
    if not value:
        return None
    try:
        parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            parsed = dt.datetime.combine(dt.date.fromisoformat(value), dt.time())
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed


def normalize_list_spacing(text: str) -> str:
    lines = text.splitlines()
    out: list[str] = []
    in_fence = False
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not in_fence:
                in_fence = True
                fence_marker = marker
            elif marker == fence_marker:
                in_fence = False
                fence_marker = ""
            out.append(line)
            continue
        if in_fence:
            out.append(line)
            continue
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str | None) -> int:
    if not text:
        return 0
    return sum(1 for token in text.split() if WORD_CHAR_RE.search(token))


def reading_time(word_count: int | None) -> int | None:
    if not word_count or word_count <= 0:
        return None
    return math.ceil(word_count / WORDS_PER_MINUTE)


def truncate(text: str, length: int = EXCERPT_LENGTH, omission: str = EXCERPT_OMISSION) -> str:
    if len(text) <= length:
        return text
    return text[: length - len(omission)] + omission


def make_excerpt(body_md: str) -> str:
    plain_text = EXCERPT_STRIP_RE.sub("", body_md).strip()
    return truncate(plain_text)


def apply_derived_fields(post: Post, previous: Post | None, now: dt.datetime) -> Post:
    """Recompute slug, word count, reading time, excerpt and publish date in place.

    ``previous`` is the stored version of the post, or None for a new one. The
    slug only follows the title when the title changed (or no slug exists yet),
    so editing the body never moves a published URL.
    """
    title_changed = previous is None or previous.title != post.title
    if post.slug and previous is None:
        post.slug = slugify(post.slug)
    elif title_changed or not post.slug:
        if post.title and post.title.strip():
            post.slug = slugify(post.title)

    if post.body_md and post.body_md.strip():
        post.word_count = count_words(post.body_md)
        post.reading_time = reading_time(post.word_count)
        if not (post.excerpt and post.excerpt.strip()):
            post.excerpt = make_excerpt(post.body_md)
    else:
        post.word_count = 0
        post.reading_time = None

    # once set, a publish date survives saves that omit it
    if post.published_at is None and previous is not None and previous.published_at is not None:
        post.published_at = previous.published_at
    if post.is_published and post.published_at is None:
        post.published_at = now
    return post

"""Tests for derived fields and Markdown source helpers."""

from datetime import datetime, timezone

from quillsite.content import (
    apply_derived_fields,
    count_words,
    extract_title,
    make_excerpt,
    normalize_list_spacing,
    parse_front_matter,
    parse_timestamp,
    reading_time,
    slugify,
)
from quillsite.models import Post, PostStatus

NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class TestSlugify:
    """Tests for slugify."""

    def test_basic_title(self) -> None:
        assert slugify("Hello World") == "hello-world"

    def test_accents_are_folded(self) -> None:
        """Accented letters fold to ASCII."""
        assert slugify("Héllo, Wörld!") == "hello-world"

    def test_runs_collapse_and_trim(self) -> None:
        """Runs of punctuation become one hyphen and the ends are trimmed."""
        assert slugify("  --Python 3.12: what's new?  ") == "python-3-12-what-s-new"

    def test_nothing_usable(self) -> None:
        assert slugify("!!!") == ""


class TestWordCountAndReadingTime:
    """Tests for count_words and reading_time."""

    def test_markers_are_not_words(self) -> None:
        """Bare Markdown markers do not count."""
        assert count_words("# Hi\n\n**bold**") == 2
        assert count_words("- one\n- two\n\n---\n> quote") == 3

    def test_blank_is_zero(self) -> None:
        assert count_words("") == 0
        assert count_words(None) == 0

    def test_reading_time_rounds_up(self) -> None:
        assert reading_time(1) == 1
        assert reading_time(200) == 1
        assert reading_time(201) == 2

    def test_reading_time_unset_for_zero(self) -> None:
        assert reading_time(0) is None


class TestExcerpt:
    """Tests for make_excerpt."""

    def test_strips_markup_characters(self) -> None:
        """Only # * _ [ ] ( ) are removed."""
        assert make_excerpt("# Title\n\n*hi* [link](url)") == "Title\n\nhi linkurl"

    def test_long_body_is_truncated(self) -> None:
        """The excerpt is 160 characters including the ellipsis."""
        excerpt = make_excerpt("word " * 100)
        assert len(excerpt) == 160
        assert excerpt.endswith("...")

    def test_short_body_is_not_truncated(self) -> None:
        assert make_excerpt("Short body.") == "Short body."


class TestApplyDerivedFields:
    """Tests for apply_derived_fields."""

    def test_new_post(self) -> None:
        """A new post gets slug, counts and excerpt."""
        post = apply_derived_fields(Post(title="My First Post", body_md="# Hi\n\n**bold**"), None, NOW)
        assert post.slug == "my-first-post"
        assert post.word_count == 2
        assert post.reading_time == 1
        assert post.excerpt == "Hi\n\nbold"
        assert post.published_at is None

    def test_author_slug_is_normalized(self) -> None:
        post = apply_derived_fields(Post(title="T", slug="Custom Slug!", body_md="x"), None, NOW)
        assert post.slug == "custom-slug"

    def test_body_edit_keeps_slug(self) -> None:
        """Editing only the body never moves the URL."""
        previous = Post(id=1, title="Title", slug="kept-slug", body_md="old")
        post = apply_derived_fields(Post(id=1, title="Title", slug="kept-slug", body_md="new body"), previous, NOW)
        assert post.slug == "kept-slug"
        assert post.word_count == 2

    def test_title_change_moves_slug(self) -> None:
        previous = Post(id=1, title="Old", slug="old", body_md="b")
        post = apply_derived_fields(Post(id=1, title="New Title", slug="old", body_md="b"), previous, NOW)
        assert post.slug == "new-title"

    def test_author_excerpt_is_kept(self) -> None:
        post = apply_derived_fields(Post(title="T", body_md="body text", excerpt="Mine."), None, NOW)
        assert post.excerpt == "Mine."

    def test_published_at_backfilled_once(self) -> None:
        """published_at is set for published posts and never overwritten."""
        post = apply_derived_fields(Post(title="T", body_md="b", status=PostStatus.PUBLISHED), None, NOW)
        assert post.published_at == NOW
        later = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert apply_derived_fields(post, post.model_copy(), later).published_at == NOW

    def test_blank_body_resets_counts(self) -> None:
        post = apply_derived_fields(Post(title="T", body_md="  ", word_count=9, reading_time=1), None, NOW)
        assert post.word_count == 0
        assert post.reading_time is None


class TestMarkdownSource:
    """Tests for front matter and title extraction."""

    def test_front_matter(self) -> None:
        meta, body = parse_front_matter('---\ntitle: "Hello"\nstatus: published\n---\nBody text')
        assert meta == {"title": "Hello", "status": "published"}
        assert body == "Body text"

    def test_no_front_matter(self) -> None:
        assert parse_front_matter("Just text") == ({}, "Just text")

    def test_byte_order_mark_is_ignored(self) -> None:
        meta, _ = parse_front_matter("\ufeff---\ntitle: T\n---\nx")
        assert meta == {"title": "T"}

    def test_title_from_heading(self) -> None:
        assert extract_title({}, "# Heading\n\nBody") == ("Heading", "Body")

    def test_title_from_meta_wins(self) -> None:
        assert extract_title({"title": "Meta"}, "# Heading") == ("Meta", "# Heading")

    def test_untitled(self) -> None:
        assert extract_title({}, "Body first\n# Late")[0] == "Untitled"

    def test_parse_timestamp(self) -> None:
        assert parse_timestamp("2024-02-01") == datetime(2024, 2, 1, tzinfo=timezone.utc)
        assert parse_timestamp("2024-02-01T10:00:00Z") == datetime(2024, 2, 1, 10, tzinfo=timezone.utc)
        assert parse_timestamp("not a date") is None
        assert parse_timestamp("") is None

    def test_list_spacing_skips_fences(self) -> None:
        """Blank lines are only inserted outside fenced code."""
        text = "Intro\n- a\n```\ncode\n- not a list\n```"
        assert normalize_list_spacing(text) == "Intro\n\n- a\n```\ncode\n- not a list\n```"

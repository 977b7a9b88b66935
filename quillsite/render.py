from __future__ import annotations

import html
import logging
import os
import re
import tempfile
import threading
from pathlib import Path

import bleach
import markdown
from bleach.linkifier import TLDS

from .content import normalize_list_spacing
from .errors import SanitizationInputError
from .markdown_ext import StrikeSuperExtension

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r"<[^>]+>")
# browsers treat an unclosed <script>/<style> as running to the end of the document
DROP_CONTENT_RE = re.compile(
    r"<(script|style)\b[^>]*>.*?(?:</\1\s*>|\Z)",
    re.IGNORECASE | re.DOTALL,
)
SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):", re.IGNORECASE)
CONTROL_RE = re.compile(r"[\x00-\x20\x7f]+")

HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
ALLOWED_TAGS = HEADING_TAGS | {
    "p", "br",
    "strong", "b", "em", "i", "u", "s", "del", "ins", "mark",
    "ul", "ol", "li",
    "blockquote", "code", "pre",
    "table", "thead", "tbody", "tr", "th", "td",
    "a", "img", "hr",
    "div", "span", "sup", "sub",
}
ALLOWED_ATTRIBUTES = {
    "a": {"href", "title"},
    "img": {"src", "alt", "title", "width", "height"},
    "code": {"class"},
    "pre": {"class"},
    "div": {"class"},
    "span": {"class"},
    "th": {"align"},
    "td": {"align"},
    **{tag: {"id"} for tag in HEADING_TAGS},
}
LINK_PROTOCOLS = {"http", "https", "mailto"}
IMAGE_PROTOCOLS = {"http", "https", "data"}
URL_ATTRIBUTES = {("a", "href"): LINK_PROTOCOLS, ("img", "src"): IMAGE_PROTOCOLS}

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "toc", "codehilite", StrikeSuperExtension()]
MARKDOWN_CONFIGS = {
    "tables": {"use_align_attribute": True},
    "codehilite": {"guess_lang": False, "css_class": "highlight", "use_pygments": True},
}

# bare domains and file names such as "setup.py" stay text; a scheme or "www." is required
AUTOLINK_URL_RE = re.compile(
    r"""\(*
    \b(?<![@.])(?:https?://(?:(?:\w+:)?\w+@)?|(?=www\.))
    ([\w-]+\.)+(?:{tlds})(?::[0-9]+)?(?!\.\w)\b
    (?:[/?][^\s{{}}|\\^`<>"]*)?
    """.format(tlds="|".join(TLDS)),
    re.IGNORECASE | re.VERBOSE | re.UNICODE,
)

_local = threading.local()


def url_scheme(value: str) -> str | None:
    value = CONTROL_RE.sub("", html.unescape(value))
    match = SCHEME_RE.match(value)
    return match.group(1).lower() if match else None


def allow_attribute(tag: str, name: str, value: str) -> bool:
    if name not in ALLOWED_ATTRIBUTES.get(tag, ()):
        return False
    protocols = URL_ATTRIBUTES.get((tag, name))
    if protocols is None:
        return True
    scheme = url_scheme(value)
    return scheme is None or scheme in protocols


def get_markdown() -> markdown.Markdown:
    md = getattr(_local, "md", None)
    if md is None:
        md = markdown.Markdown(extensions=MARKDOWN_EXTENSIONS, extension_configs=MARKDOWN_CONFIGS)
        _local.md = md
    return md


def get_cleaner() -> bleach.Cleaner:
    cleaner = getattr(_local, "cleaner", None)
    if cleaner is None:
        cleaner = bleach.Cleaner(
            tags=ALLOWED_TAGS,
            attributes=allow_attribute,
            protocols=LINK_PROTOCOLS | IMAGE_PROTOCOLS,
            strip=True,
            strip_comments=True,
        )
        _local.cleaner = cleaner
    return cleaner


def get_linker() -> bleach.Linker:
    linker = getattr(_local, "linker", None)
    if linker is None:
        linker = bleach.Linker(
            callbacks=[], skip_tags=["pre", "code"], parse_email=True, url_re=AUTOLINK_URL_RE
        )
        _local.linker = linker
    return linker


def _clean(html_text: str) -> str:
    try:
        return get_cleaner().clean(DROP_CONTENT_RE.sub("", html_text))
    except (ValueError, TypeError, AssertionError) as exc:
        raise SanitizationInputError(str(exc)) from exc


def sanitize(html_text: str | None) -> str:
    if not html_text:
        return ""
    try:
        return _clean(html_text)
    except SanitizationInputError as exc:
        logger.warning("Escaping HTML fragment the sanitizer rejected: %s", exc)
        return html.escape(html_text)


def render(text: str | None) -> str:
    if text is None or not text.strip():
        return ""
    md = get_markdown()
    try:
        html_content = md.convert(normalize_list_spacing(text))
    finally:
        md.reset()
    return sanitize(get_linker().linkify(html_content))


def strip_tags(html_text: str) -> str:
    return html.unescape(TAG_RE.sub("", html_text))


def render_template(template: str, **context: str) -> str:
    output = template
    late_keys = {"content"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

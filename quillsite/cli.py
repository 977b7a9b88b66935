from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

from .config import load_config, resolve_url_context
from .content import extract_title, parse_front_matter, parse_timestamp, slugify
from .errors import ContentValidationError, PostNotFoundError, QuillsiteError
from .generator import StaticSiteGenerator
from .models import Post, PostStatus
from .pages import FEED_LIMIT
from .regeneration import RegenerationDispatcher, RegenerationTrigger
from .store import ContentStore
from .utils import parse_bool, parse_int

logger = logging.getLogger(__name__)


def make_store(args: argparse.Namespace) -> ContentStore:
    return ContentStore(Path(args.store))


def make_generator(args: argparse.Namespace, store: ContentStore) -> StaticSiteGenerator:
    return StaticSiteGenerator(
        store,
        Path(args.output),
        resolve_url_context(args.base_url, args.config_data),
        static_dir=Path(args.static),
        templates_dir=Path(args.templates) if args.templates else None,
        workers=args.build_workers,
        feed_limit=args.feed_limit,
    )


def cmd_generate(args: argparse.Namespace) -> int:
    store = make_store(args)
    start = time.perf_counter()
    result = make_generator(args, store).generate_all()
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s.")
    print(f"Site generated in: {result.output_dir} ({result.post_count} posts, {len(result.files)} files)")
    if result.missing_assets:
        print(f"Missing static assets: {', '.join(result.missing_assets)}", file=sys.stderr)
    return 0


def post_from_markdown(path: Path) -> Post:
    meta, body = parse_front_matter(path.read_text(encoding="utf-8"))
    title, body = extract_title(meta, body)
    status = PostStatus.DRAFT
    if meta.get("status", "").lower() == PostStatus.PUBLISHED.value:
        status = PostStatus.PUBLISHED
    elif "draft" in meta and not parse_bool(meta.get("draft")):
        status = PostStatus.PUBLISHED
    return Post(
        title=title,
        slug=slugify(meta.get("slug", "")),
        body_md=body.strip(),
        status=status,
        published_at=parse_timestamp(meta.get("published_at") or meta.get("date")),
        excerpt=meta.get("excerpt") or meta.get("summary") or None,
        meta_description=meta.get("description") or None,
        featured_image_url=meta.get("featured_image") or meta.get("image") or None,
        featured_image_alt=meta.get("featured_image_alt") or None,
    )


def cmd_import(args: argparse.Namespace) -> int:
    source = Path(args.source)
    if not source.is_dir():
        print(f"Posts directory not found: {source}", file=sys.stderr)
        return 1
    store = make_store(args)
    imported = failed = published = 0
    for md_file in sorted(source.rglob("*.md"), key=lambda p: p.as_posix()):
        try:
            post = post_from_markdown(md_file)
        except UnicodeDecodeError as exc:
            print(f"Skipped {md_file}: not valid UTF-8 ({exc.reason})", file=sys.stderr)
            failed += 1
            continue
        try:
            post.id = store.find_by_slug(post.slug or slugify(post.title)).id
        except PostNotFoundError:
            pass
        try:
            saved = store.save(post)
        except ContentValidationError as exc:
            print(f"Skipped {md_file}: {exc}", file=sys.stderr)
            failed += 1
            continue
        logger.info("Imported %s as %s (%s)", md_file, saved.slug, saved.status.value)
        imported += 1
        published += saved.is_published
    print(f"Imported {imported} posts into {args.store}" + (f", {failed} skipped" if failed else ""))
    if published:
        # import does not rebuild; the site changes on the next generate
        print(f"{published} published posts imported. Run 'quillsite generate' to update the site.")
    return 1 if failed else 0


def cmd_set_status(args: argparse.Namespace) -> int:
    store = make_store(args)
    post = store.find_by_slug(args.slug)
    dispatcher = RegenerationDispatcher(make_generator(args, store).generate_all)
    RegenerationTrigger(dispatcher).attach(store)
    try:
        if args.command == "publish":
            post = store.publish(post.id)
        else:
            post = store.unpublish(post.id)
        print(f"{post.slug} is now {post.status.value}")
    finally:
        # wait for the queued build before the process exits
        dispatcher.shutdown(wait=True)
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    store = make_store(args)
    for post in store.all_posts():
        stamp = post.effective_date.strftime("%Y-%m-%d") if post.effective_date else "-"
        print(f"{post.id:>4}  {post.status.value:<9}  {stamp}  {post.slug}  {post.title}")
    return 0


def build_parser(config: dict, config_path: str) -> argparse.ArgumentParser:
    def cfg_str(key: str, default: str) -> str:
        value = config.get(key)
        return default if value is None else str(value)

    def cfg_int(key: str, default: int) -> int:
        return parse_int(config.get(key), default)

    parser = argparse.ArgumentParser(prog="quillsite", description="Markdown blog publisher and static site generator.")
    parser.add_argument("--config", default=config_path, help="Path to site config file (TOML/YAML/JSON).")
    parser.add_argument("--store", default=cfg_str("store", "content.json"), help="Content store JSON file.")
    parser.add_argument("--output", default=cfg_str("output", "static_site"), help="Output directory for the site.")
    parser.add_argument("--static", default=cfg_str("static", "public"), help="Directory holding static assets.")
    parser.add_argument("--templates", default=cfg_str("templates", ""), help="Directory with a custom base.html.")
    parser.add_argument(
        "--base-url",
        default=None,
        help="Public site origin used for every absolute URL (overrides SITE_BASE_URL and base_url).",
    )
    parser.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in the RSS feed.",
    )
    parser.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 0),
        type=int,
        help="Number of worker threads for rendering post pages (0 = auto).",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Log debug output.")
    verbosity.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")

    commands = parser.add_subparsers(dest="command", required=True)
    generate = commands.add_parser("generate", help="Rebuild the whole static site.")
    generate.set_defaults(handler=cmd_generate)
    importer = commands.add_parser("import", help="Import Markdown files with front matter into the store.")
    importer.add_argument("source", help="Directory containing Markdown posts.")
    importer.set_defaults(handler=cmd_import)
    for name in ("publish", "unpublish"):
        command = commands.add_parser(name, help=f"{name.capitalize()} a post and regenerate the site.")
        command.add_argument("slug", help="Slug of the post.")
        command.set_defaults(handler=cmd_set_status)
    listing = commands.add_parser("list", help="List posts in the store.")
    listing.set_defaults(handler=cmd_list)
    return parser


def configure_logging(args: argparse.Namespace) -> None:
    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default="site.toml", help="Path to site config file (TOML/YAML/JSON).")
    pre_args, _ = pre_parser.parse_known_args(argv)
    config = load_config(Path(pre_args.config))

    args = build_parser(config, pre_args.config).parse_args(argv)
    args.config_data = config
    configure_logging(args)
    try:
        return args.handler(args)
    except QuillsiteError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

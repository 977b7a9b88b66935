from __future__ import annotations

import datetime as dt
import html
from urllib.parse import quote, urlencode

from .models import Post, SiteConfig
from .render import render, render_template, strip_tags, url_scheme
from .urls import BaseURLContext
from .utils import display_date, iso_date, rfc822_date, utcnow

FEED_LIMIT = 20


def absolute_url(ctx: BaseURLContext, value: str | None) -> str:
    value = (value or "").strip()
    if not value:
        return ""
    scheme = url_scheme(value)
    if scheme in {"http", "https"}:
        return value
    if scheme is not None or value.startswith("//"):
        return ""
    return ctx.url_for(value)


def render_page(
    template: str,
    ctx: BaseURLContext,
    site_config: SiteConfig,
    *,
    title: str,
    description: str,
    content: str,
    og_type: str = "website",
    og_image: str = "",
    extra_head: str = "",
) -> str:
    return render_template(
        template,
        title=html.escape(title),
        description=html.escape(description),
        canonical_url=html.escape(ctx.current_url),
        og_type=og_type,
        og_image=html.escape(og_image or ctx.url_for("og-image.png")),
        site_name=html.escape(site_config.site_name),
        home_url=html.escape(ctx.url_for("/")),
        about_url=html.escape(ctx.url_for("about.html")),
        archive_url=html.escape(ctx.url_for("archive.html")),
        feed_url=html.escape(ctx.url_for("feed.xml")),
        favicon_url=html.escape(ctx.url_for("favicon.ico")),
        icon_svg_url=html.escape(ctx.url_for("icon.svg")),
        icon_png_url=html.escape(ctx.url_for("icon.png")),
        manifest_url=html.escape(ctx.url_for("manifest.json")),
        year=str(utcnow().year),
        extra_head=extra_head,
        content=content,
    )


def post_meta(post: Post) -> str:
    parts = []
    if post.effective_date is not None:
        stamp = post.effective_date
        parts.append(
            f'<time class="post-date" datetime="{iso_date(stamp)}">{display_date(stamp)}</time>'
        )
    if post.reading_time:
        parts.append(f'<span class="post-reading-time">{post.reading_time} min read</span>')
    return '<div class="post-meta">' + " · ".join(parts) + "</div>"


def featured_image(ctx: BaseURLContext, post: Post, css_class: str) -> str:
    src = absolute_url(ctx, post.featured_image_url)
    if not src:
        return ""
    alt = post.featured_image_alt or post.title
    return (
        f'<figure class="{css_class}">'
        f'<img src="{html.escape(src)}" alt="{html.escape(alt)}" loading="lazy">'
        "</figure>"
    )


def build_post_cards(posts: list[Post], ctx: BaseURLContext) -> str:
    cards = []
    for post in posts:
        url = html.escape(ctx.url_for(post.path))
        title = html.escape(post.title)
        cards.append(
            '<article class="post-card">'
            f"{featured_image(ctx, post, 'post-card-image')}"
            f"{post_meta(post)}"
            f'<h2 class="post-title"><a href="{url}">{title}</a></h2>'
            f'<p class="post-excerpt">{html.escape(strip_tags(post.excerpt or ""))}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_index(template: str, ctx: BaseURLContext, posts: list[Post], site_config: SiteConfig) -> str:
    ctx = ctx.for_page("/")
    if posts:
        listing = f'<div class="post-list">{build_post_cards(posts, ctx)}</div>'
    else:
        listing = '<p class="post-empty">No posts published yet.</p>'
    content = (
        '<section class="welcome">'
        f"<h1>{html.escape(site_config.welcome_title)}</h1>"
        f"<p>{html.escape(site_config.welcome_text)}</p>"
        "</section>"
        f"{listing}"
    )
    return render_page(
        template,
        ctx,
        site_config,
        title=site_config.site_name,
        description=site_config.welcome_text,
        content=content,
    )


def build_about(template: str, ctx: BaseURLContext, site_config: SiteConfig) -> str:
    ctx = ctx.for_page("/about.html")
    content = (
        '<article class="post">'
        f'<h1 class="post-title">About {html.escape(site_config.site_name)}</h1>'
        f'<div class="post-body">{render(site_config.about_content)}</div>'
        "</article>"
    )
    return render_page(
        template,
        ctx,
        site_config,
        title=f"About {site_config.site_name}",
        description=f"Learn more about {site_config.site_name} and the story behind this blog.",
        content=content,
    )


def build_archive(template: str, ctx: BaseURLContext, posts: list[Post], site_config: SiteConfig) -> str:
    ctx = ctx.for_page("/archive.html")
    date_groups: dict[str, list[Post]] = {}
    for post in posts:
        stamp = post.effective_date
        key = stamp.strftime("%B %Y") if stamp is not None else "Undated"
        date_groups.setdefault(key, []).append(post)

    sections = []
    # posts arrive newest first, so insertion order is already chronological
    for label, items in date_groups.items():
        rows = []
        for item in items:
            stamp = item.effective_date
            date_text = display_date(stamp) if stamp is not None else ""
            rows.append(
                f'<li><span class="archive-date">{date_text}</span> '
                f'<a href="{html.escape(ctx.url_for(item.path))}">{html.escape(item.title)}</a></li>'
            )
        sections.append(
            f'<section class="archive-group"><h2>{html.escape(label)}</h2>'
            f'<span class="archive-count">{len(items)}</span>'
            f'<ul class="archive-list">{"".join(rows)}</ul></section>'
        )
    if not sections:
        sections.append('<p class="archive-empty">No posts published yet.</p>')

    noun = "article" if len(posts) == 1 else "articles"
    content = (
        '<div class="section-head">'
        "<h1>Archive</h1>"
        f'<p class="archive-total">{len(posts)} published {noun}</p>'
        "</div>"
        f'{"".join(sections)}'
    )
    return render_page(
        template,
        ctx,
        site_config,
        title=f"Archive - {site_config.site_name}",
        description=(
            f"Browse all {len(posts)} published {noun} on {site_config.site_name}, "
            "organized chronologically for easy discovery."
        ),
        content=content,
    )


def share_links(url: str, title: str) -> str:
    twitter = "https://twitter.com/intent/tweet?" + urlencode({"text": title, "url": url})
    linkedin = "https://www.linkedin.com/sharing/share-offsite/?url=" + quote(url, safe="")
    return (
        '<div class="post-share">'
        f'<a href="{html.escape(twitter)}" rel="noopener" target="_blank">Share on Twitter</a> '
        f'<a href="{html.escape(linkedin)}" rel="noopener" target="_blank">Share on LinkedIn</a>'
        "</div>"
    )


def post_navigation(ctx: BaseURLContext, previous_post: Post | None, next_post: Post | None) -> str:
    links = []
    if previous_post is not None:
        links.append(
            f'<a class="post-nav-previous" rel="prev" href="{html.escape(ctx.url_for(previous_post.path))}">'
            f"&larr; {html.escape(previous_post.title)}</a>"
        )
    else:
        links.append("<span></span>")
    if next_post is not None:
        links.append(
            f'<a class="post-nav-next" rel="next" href="{html.escape(ctx.url_for(next_post.path))}">'
            f"{html.escape(next_post.title)} &rarr;</a>"
        )
    return f'<nav class="post-navigation">{"".join(links)}</nav>'


def build_post(
    template: str,
    ctx: BaseURLContext,
    post: Post,
    site_config: SiteConfig,
    previous_post: Post | None = None,
    next_post: Post | None = None,
) -> str:
    ctx = ctx.for_page(post.path)
    content = (
        '<article class="post">'
        f'<h1 class="post-title">{html.escape(post.title)}</h1>'
        f"{post_meta(post)}"
        f"{featured_image(ctx, post, 'post-featured')}"
        f'<div class="post-body">{post.html_content}</div>'
        f"{share_links(ctx.current_url, post.title)}"
        f"{post_navigation(ctx, previous_post, next_post)}"
        f'<div class="post-footer"><a href="{html.escape(ctx.url_for("/"))}">Back to home</a></div>'
        "</article>"
    )
    description = strip_tags(post.meta_description or post.excerpt or site_config.welcome_text)
    return render_page(
        template,
        ctx,
        site_config,
        title=f"{post.title} - {site_config.site_name}",
        description=description,
        content=content,
        og_type="article",
        og_image=absolute_url(ctx, post.featured_image_url),
    )


def build_sitemap(ctx: BaseURLContext, posts: list[Post], last_modified: dt.datetime | None) -> str:
    site_lastmod = last_modified or utcnow()
    urls = [
        (ctx.url_for("/"), site_lastmod),
        (ctx.url_for("about.html"), site_lastmod),
        (ctx.url_for("archive.html"), site_lastmod),
    ]
    for post in posts:
        urls.append((ctx.url_for(post.path), post.updated_at or site_lastmod))
    items = []
    for url, lastmod in urls:
        items.append(
            "\n".join(
                [
                    "<url>",
                    f"<loc>{html.escape(url)}</loc>",
                    f"<lastmod>{iso_date(lastmod)}</lastmod>",
                    "</url>",
                ]
            )
        )
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )


def build_rss(
    ctx: BaseURLContext, posts: list[Post], site_config: SiteConfig, feed_limit: int = FEED_LIMIT
) -> str:
    feed_posts = posts[: max(0, feed_limit)]
    items = []
    for post in feed_posts:
        link = html.escape(ctx.url_for(post.path))
        pub_date = post.effective_date or utcnow()
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post.title)}</title>",
                    f"<link>{link}</link>",
                    f'<guid isPermaLink="true">{link}</guid>',
                    f"<pubDate>{rfc822_date(pub_date)}</pubDate>",
                    f"<description>{html.escape(strip_tags(post.excerpt or ''))}</description>",
                    f"<content:encoded>{html.escape(post.html_content)}</content:encoded>",
                    "</item>",
                ]
            )
        )
    stamps = [post.updated_at for post in feed_posts if post.updated_at is not None]
    last_build = max(stamps) if stamps else (site_config.updated_at or utcnow())
    return "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0" xmlns:atom="http://www.w3.org/2005/Atom" '
            'xmlns:content="http://purl.org/rss/1.0/modules/content/">',
            "<channel>",
            f"<title>{html.escape(site_config.site_name)}</title>",
            f"<link>{html.escape(ctx.url_for('/'))}</link>",
            f"<description>{html.escape(site_config.welcome_text)}</description>",
            "<language>en-us</language>",
            f'<atom:link href="{html.escape(ctx.url_for("feed.xml"))}" rel="self" type="application/rss+xml" />',
            f"<lastBuildDate>{rfc822_date(last_build)}</lastBuildDate>",
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )

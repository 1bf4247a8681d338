from __future__ import annotations

import html
import logging
import math
from pathlib import Path
from typing import Mapping, Sequence

from .config import BuildContext
from .content import count_words
from .models import Collection, Post
from .render import Layout, TemplateOptions, fix_relative_img_src, render_page
from .utils import iso_date, join_url, rfc822_date, run_parallel, strip_tags

log = logging.getLogger(__name__)

THEME_DIR = Path(__file__).parent / "theme"

Document = tuple[str, str]


def page_root(path: str) -> str:
    depth = path.count("/")
    if depth == 0:
        return "."
    return "/".join([".."] * depth)


def page_url(page: int) -> str:
    if page == 1:
        return "index.html"
    return f"page/{page}/index.html"


def category_url(collection: Collection, category: str) -> str:
    return f"categories/{collection.category_slugs[category]}/index.html"


def build_category_list(collection: Collection, root: str) -> str:
    items = []
    for name, posts in sorted(collection.by_category.items(), key=lambda x: (-len(x[1]), x[0])):
        items.append(
            f'<li><a href="{root}/{category_url(collection, name)}">{html.escape(name)}</a>'
            f'<span class="count">{len(posts)}</span></li>'
        )
    return "\n".join(items) if items else "<li>No categories yet.</li>"


def build_sidebar(collection: Collection, root: str) -> str:
    return (
        '<div class="panel">'
        "<h3>Categories</h3>"
        f'<ul class="category-list">{build_category_list(collection, root)}</ul>'
        "</div>"
    )


def category_chips(collection: Collection, post: Post, root: str) -> str:
    return " ".join(
        f'<a class="chip" href="{root}/{category_url(collection, cat)}">{html.escape(cat)}</a>'
        for cat in sorted(post.categories)
    )


def base_context(ctx: BuildContext, collection: Collection, root: str) -> dict[str, str]:
    newest = collection.newest()
    return {
        "root": root,
        "site_name": html.escape(ctx.site_name),
        "site_description": html.escape(ctx.site_description),
        "year": str(newest.published_at.year) if newest else "",
        "extra_head": "",
        "sidebar": build_sidebar(collection, root),
    }


def render_post_page(
    ctx: BuildContext, layouts: Mapping[str, Layout], collection: Collection, post: Post
) -> Document:
    path = post.output_path
    root = page_root(path)
    body_html = fix_relative_img_src(post.body_html or "", root)
    options = TemplateOptions(layout=post.layout, date_format=ctx.date_format)
    context = base_context(ctx, collection, root)
    context.update(
        title=html.escape(f"{post.title} | {ctx.site_name}"),
        post_title=html.escape(post.title),
        slug=post.slug,
        url=post.url,
        date=post.published_at.strftime(options.date_format),
        date_iso=post.published_at.isoformat(),
        categories=category_chips(collection, post, root),
        summary=html.escape(post.summary),
        excerpt=fix_relative_img_src(post.excerpt or "", root),
        words=str(count_words(strip_tags(body_html))),
        content=body_html,
    )
    return path, render_page(layouts, options, **context)


def build_post_cards(collection: Collection, posts: Sequence[Post], root: str, date_format: str) -> str:
    cards = []
    for post in posts:
        url = f"{root}/{post.output_path}"
        cards.append(
            '<article class="post-card">'
            '<div class="post-meta">'
            f'<time class="post-date" datetime="{post.published_at.isoformat()}">'
            f"{post.published_at.strftime(date_format)}</time>"
            f'<div class="post-tags">{category_chips(collection, post, root)}</div></div>'
            f'<h2 class="post-title"><a href="{url}">{html.escape(post.title)}</a></h2>'
            f'<p class="post-summary">{html.escape(post.summary)}</p>'
            f'<a class="post-more" href="{url}">Read more</a>'
            "</article>"
        )
    return "\n".join(cards)


def build_pagination(page: int, total_pages: int, root: str) -> str:
    if total_pages <= 1:
        return ""
    items = []
    if page > 1:
        items.append(f'<a class="page-link" href="{root}/{page_url(page - 1)}">Previous</a>')
    else:
        items.append('<span class="page-link is-disabled">Previous</span>')
    numbers = []
    for num in range(1, total_pages + 1):
        if num == page:
            numbers.append(f'<span class="page-number is-active">{num}</span>')
        else:
            numbers.append(f'<a class="page-number" href="{root}/{page_url(num)}">{num}</a>')
    items.append(f'<div class="page-numbers">{"".join(numbers)}</div>')
    if page < total_pages:
        items.append(f'<a class="page-link" href="{root}/{page_url(page + 1)}">Next</a>')
    else:
        items.append('<span class="page-link is-disabled">Next</span>')
    return f'<nav class="pagination">{"".join(items)}</nav>'


def build_index(ctx: BuildContext, layouts: Mapping[str, Layout], collection: Collection) -> list[Document]:
    posts = collection.all
    per_page = ctx.posts_per_page or max(1, len(posts))
    total_pages = max(1, math.ceil(len(posts) / per_page))
    documents = []
    for page in range(1, total_pages + 1):
        path = page_url(page)
        root = page_root(path)
        page_posts = posts[(page - 1) * per_page : page * per_page]
        title = f"{ctx.site_name} | Home" if page == 1 else f"{ctx.site_name} | Page {page}"
        options = TemplateOptions(layout=ctx.home_layout, title=title, date_format=ctx.date_format)
        context = base_context(ctx, collection, root)
        context.update(
            heading="Latest posts",
            pagination=build_pagination(page, total_pages, root),
            content=build_post_cards(collection, page_posts, root, options.date_format),
        )
        documents.append((path, render_page(layouts, options, **context)))
    return documents


def build_categories(ctx: BuildContext, layouts: Mapping[str, Layout], collection: Collection) -> list[Document]:
    documents = []
    for category, posts in collection.by_category.items():
        path = category_url(collection, category)
        root = page_root(path)
        options = TemplateOptions(
            layout=ctx.category_layout, title=f"{category} | {ctx.site_name}", date_format=ctx.date_format
        )
        context = base_context(ctx, collection, root)
        context.update(
            heading=html.escape(category),
            pagination="",
            content=build_post_cards(collection, posts, root, options.date_format),
        )
        documents.append((path, render_page(layouts, options, **context)))
    return documents


def build_404(ctx: BuildContext, layouts: Mapping[str, Layout], collection: Collection) -> Document:
    root = "."
    options = TemplateOptions(layout=ctx.default_layout, title=f"404 | {ctx.site_name}")
    context = base_context(ctx, collection, root)
    context["content"] = (
        '<div class="section-head">'
        "<h2>404</h2>"
        "<p>Page not found. Try heading back to the homepage.</p>"
        "</div>"
        f'<a class="post-more" href="{root}/index.html">Back to home</a>'
    )
    return "404.html", render_page(layouts, options, **context)


def build_rss(ctx: BuildContext, collection: Collection) -> Document:
    site_url = ctx.public_url
    items = []
    for post in collection.all[: ctx.feed_limit]:
        link = join_url(site_url, post.url)
        items.append(
            "\n".join(
                [
                    "<item>",
                    f"<title>{html.escape(post.title)}</title>",
                    f"<link>{link}</link>",
                    f"<guid>{link}</guid>",
                    f"<pubDate>{rfc822_date(post.published_at)}</pubDate>",
                    f"<description>{html.escape(post.summary)}</description>",
                    "</item>",
                ]
            )
        )
    newest = collection.newest()
    last_build = f"<lastBuildDate>{rfc822_date(newest.published_at)}</lastBuildDate>" if newest else ""
    rss = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<rss version="2.0">',
            "<channel>",
            f"<title>{html.escape(ctx.site_name)}</title>",
            f"<link>{site_url}/</link>",
            f"<description>{html.escape(ctx.site_description)}</description>",
            last_build,
            "\n".join(items),
            "</channel>",
            "</rss>",
        ]
    )
    return "rss.xml", rss


def build_atom(ctx: BuildContext, collection: Collection) -> Document:
    site_url = ctx.public_url
    newest = collection.newest()
    updated = f"<updated>{iso_date(newest.published_at)}</updated>" if newest else ""
    entries = []
    for post in collection.all[: ctx.feed_limit]:
        link = join_url(site_url, post.url)
        entries.append(
            "\n".join(
                [
                    "<entry>",
                    f"<title>{html.escape(post.title)}</title>",
                    f'<link href="{link}" />',
                    f"<id>{link}</id>",
                    f"<updated>{iso_date(post.published_at)}</updated>",
                    f"<summary>{html.escape(post.summary)}</summary>",
                    "</entry>",
                ]
            )
        )
    atom = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<feed xmlns="http://www.w3.org/2005/Atom">',
            f"<title>{html.escape(ctx.site_name)}</title>",
            f"<id>{site_url}/</id>",
            updated,
            f'<link href="{site_url}/atom.xml" rel="self" />',
            f'<link href="{site_url}/" />',
            "\n".join(entries),
            "</feed>",
        ]
    )
    return "atom.xml", atom


def build_sitemap(ctx: BuildContext, collection: Collection, listing_paths: Sequence[str]) -> Document:
    site_url = ctx.public_url
    urls = [(join_url(site_url, path.removesuffix("index.html")) or site_url, None) for path in listing_paths]
    for post in collection.all:
        urls.append((join_url(site_url, post.url), post.published_at))
    items = []
    for url, lastmod in urls:
        lines = ["<url>", f"<loc>{url}</loc>"]
        if lastmod:
            lines.append(f"<lastmod>{lastmod.date().isoformat()}</lastmod>")
        lines.append("</url>")
        items.append("\n".join(lines))
    sitemap = "\n".join(
        [
            '<?xml version="1.0" encoding="UTF-8"?>',
            '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">',
            "\n".join(items),
            "</urlset>",
        ]
    )
    return "sitemap.xml", sitemap


def build_pages(ctx: BuildContext, layouts: Mapping[str, Layout], collection: Collection) -> list[Document]:
    """Every generated document of the site as ``(relative path, text)`` pairs."""
    documents = run_parallel(
        lambda post: render_post_page(ctx, layouts, collection, post), collection.all, ctx.build_workers
    )
    listings = build_index(ctx, layouts, collection) + build_categories(ctx, layouts, collection)
    documents.extend(listings)
    if ctx.enable_404:
        documents.append(build_404(ctx, layouts, collection))
    if ctx.public_url:
        if ctx.enable_rss:
            documents.append(build_rss(ctx, collection))
        if ctx.enable_atom:
            documents.append(build_atom(ctx, collection))
        if ctx.enable_sitemap:
            documents.append(build_sitemap(ctx, collection, [path for path, _ in listings]))
    elif ctx.enable_rss or ctx.enable_atom or ctx.enable_sitemap:
        log.info("No site_url configured; skipping feeds and sitemap")
    if ctx.custom_domain:
        documents.append(("CNAME", f"{ctx.custom_domain}\n"))
    if ctx.write_nojekyll:
        documents.append((".nojekyll", ""))
    log.debug("Assembled %d documents", len(documents))
    return documents

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .collection import build_collection
from .config import FEED_LIMIT, POSTS_PER_PAGE, BuildContext, find_config, load_config
from .content import ensure_unique_slugs, find_post_files, load_post
from .errors import ConfigError, SiteError
from .markup import EXCERPT_SEPARATOR, render_post
from .pages import THEME_DIR, build_pages
from .publish import publish
from .render import DATE_FMT, load_layouts, resolve_layout
from .serve import serve
from .utils import parse_bool, parse_int, run_parallel

log = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class BuildReport:
    posts: int
    documents: int
    output_dir: Path


def build_site(ctx: BuildContext) -> BuildReport:
    if not ctx.posts_dir.is_dir():
        raise ConfigError(f"posts directory not found: {ctx.posts_dir}")

    layouts = load_layouts(THEME_DIR / "layouts", ctx.layouts_dir)
    for name in (ctx.default_layout, ctx.home_layout, ctx.category_layout):
        resolve_layout(layouts, name, ctx.config_path)

    post_files = find_post_files(ctx.posts_dir)
    log.info("Found %d post files in %s", len(post_files), ctx.posts_dir)
    loaded = run_parallel(
        lambda path: load_post(
            path, tz=ctx.timezone, default_layout=ctx.default_layout, include_drafts=ctx.drafts
        ),
        post_files,
        ctx.build_workers,
    )
    posts = [post for post in loaded if post is not None]
    for post in posts:
        resolve_layout(layouts, post.layout, post.source)
    ensure_unique_slugs(posts)

    run_parallel(
        lambda post: render_post(
            post,
            project_root=ctx.source,
            excerpt_separator=ctx.excerpt_separator,
            toc_depth=ctx.toc_depth,
        ),
        posts,
        ctx.build_workers,
    )
    collection = build_collection(posts)
    documents = build_pages(ctx, layouts, collection)
    written = publish(
        documents,
        ctx.output_dir,
        project_root=ctx.source,
        static_dirs=(THEME_DIR / "static", ctx.static_dir),
        source_dirs=(ctx.posts_dir, ctx.layouts_dir),
        workers=ctx.build_workers,
    )
    return BuildReport(posts=len(posts), documents=written, output_dir=ctx.output_dir)


def build_parser(config: dict, config_default: Optional[str], source_default: str) -> argparse.ArgumentParser:
    def cfg_value(key: str, default: object) -> object:
        value = config.get(key)
        return default if value is None else value

    def cfg_str(key: str, default: str) -> str:
        return str(cfg_value(key, default))

    def cfg_bool(key: str, default: bool) -> bool:
        return parse_bool(cfg_value(key, default))

    def cfg_int(key: str, default: int) -> int:
        return parse_int(cfg_value(key, default), default)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=config_default, help="Path to site config file (TOML/YAML/JSON).")
    common.add_argument("--source", default=source_default, help="Site source directory.")
    common.add_argument("-v", "--verbose", action="store_true", help="Log build progress.")
    common.add_argument("--posts", default=cfg_str("posts", "_posts"), help="Directory containing Markdown posts.")
    common.add_argument("--layouts", default=cfg_str("layouts", "_layouts"), help="Directory of HTML layouts.")
    common.add_argument("--static", default=cfg_str("static", "static"), help="Directory containing static assets.")
    common.add_argument("--output", default=cfg_str("output", "_site"), help="Output directory for the site.")
    common.add_argument("--site-name", default=cfg_str("site_name", "postpress"), help="Site title.")
    common.add_argument(
        "--site-description",
        default=cfg_str("site_description", "Notes published from a folder of Markdown posts."),
        help="Site description.",
    )
    common.add_argument(
        "--site-url",
        default=cfg_str("site_url", ""),
        help="Public site URL used for RSS, Atom and sitemap.",
    )
    common.add_argument(
        "--custom-domain",
        default=cfg_str("custom_domain", ""),
        help="Custom domain to write into CNAME.",
    )
    common.add_argument(
        "--timezone",
        default=cfg_str("timezone", "UTC"),
        help="Timezone for post dates that carry no offset.",
    )
    common.add_argument(
        "--date-format",
        default=cfg_str("date_format", DATE_FMT),
        help="strftime format used to display post dates.",
    )
    common.add_argument(
        "--default-layout",
        default=cfg_str("default_layout", "default"),
        help="Layout for posts that do not name one.",
    )
    common.add_argument("--home-layout", default=cfg_str("home_layout", "home"), help="Layout for the home page.")
    common.add_argument(
        "--category-layout",
        default=cfg_str("category_layout", "category"),
        help="Layout for category pages.",
    )
    common.add_argument(
        "--posts-per-page",
        default=cfg_int("posts_per_page", POSTS_PER_PAGE),
        type=int,
        help="Number of posts per home page (0 = all on one page).",
    )
    common.add_argument(
        "--feed-limit",
        default=cfg_int("feed_limit", FEED_LIMIT),
        type=int,
        help="Maximum number of posts in RSS/Atom feeds.",
    )
    common.add_argument(
        "--excerpt-separator",
        default=cfg_str("excerpt_separator", EXCERPT_SEPARATOR),
        help="Marker that ends a post's excerpt.",
    )
    common.add_argument(
        "--toc-depth",
        default=cfg_str("toc_depth", "2-4"),
        help="Heading depth range for heading anchors (e.g. 2-4).",
    )
    common.add_argument(
        "--build-workers",
        default=cfg_int("build_workers", 0),
        type=int,
        help="Number of worker threads for parsing/rendering (0 = auto).",
    )
    common.add_argument(
        "--drafts",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("drafts", False),
        help="Include posts marked draft or unpublished.",
    )
    common.add_argument(
        "--enable-rss",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_rss", True),
        help="Generate rss.xml.",
    )
    common.add_argument(
        "--enable-atom",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_atom", True),
        help="Generate atom.xml.",
    )
    common.add_argument(
        "--enable-sitemap",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_sitemap", True),
        help="Generate sitemap.xml.",
    )
    common.add_argument(
        "--enable-404",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("enable_404", True),
        help="Generate 404.html.",
    )
    common.add_argument(
        "--write-nojekyll",
        action=argparse.BooleanOptionalAction,
        default=cfg_bool("write_nojekyll", False),
        help="Write .nojekyll in the output directory.",
    )

    parser = argparse.ArgumentParser(prog="postpress", description="Publish a folder of Markdown posts as HTML.")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("build", parents=[common], help="Build the site once.")
    serve_parser = subparsers.add_parser("serve", parents=[common], help="Build, serve and rebuild on change.")
    serve_parser.add_argument("--host", default=cfg_str("host", "127.0.0.1"), help="Address to bind.")
    serve_parser.add_argument("--port", default=cfg_int("port", 4000), type=int, help="Port to bind.")
    serve_parser.add_argument(
        "--interval",
        default=float(cfg_value("watch_interval", 1.0)),
        type=float,
        help="Seconds between source change checks.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    pre_parser = argparse.ArgumentParser(add_help=False)
    pre_parser.add_argument("--config", default=None)
    pre_parser.add_argument("--source", default=".")
    pre_args, _ = pre_parser.parse_known_args(argv)

    config_path = Path(pre_args.config) if pre_args.config else find_config(Path(pre_args.source))
    try:
        config = load_config(config_path)
    except (SiteError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    parser = build_parser(config, str(config_path), pre_args.source)
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format=LOG_FORMAT)

    try:
        ctx = BuildContext.from_args(args)
        if args.command == "serve":
            return serve(ctx, args.host, args.port, args.interval, build=build_site)
        start = time.perf_counter()
        report = build_site(ctx)
    except (SiteError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    elapsed = time.perf_counter() - start
    print(f"Build completed in {elapsed:.2f}s ({report.posts} posts, {report.documents} files).")
    print(f"Site generated in: {report.output_dir}")
    return 0

from __future__ import annotations

import datetime as dt
import json
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from .errors import ConfigError
from .markup import EXCERPT_SEPARATOR
from .render import DATE_FMT
from .utils import parse_bool, parse_int

CONFIG_NAMES = ("site.toml", "site.yaml", "site.yml", "site.json")
FEED_LIMIT = 20
POSTS_PER_PAGE = 10
MAX_WORKERS = 32


def load_config(path: Path) -> dict:
    if not path.exists():
        return {}
    suffix = path.suffix.lower()
    try:
        text = path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ConfigError(f"config file is not valid UTF-8 (byte {exc.start})", path) from exc
    if suffix == ".toml":
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"invalid TOML: {exc}", path) from exc
    elif suffix in {".yml", ".yaml"}:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"invalid YAML: {exc}", path) from exc
        if data is None:
            return {}
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"invalid JSON: {exc}", path) from exc
    if not isinstance(data, dict):
        raise ConfigError("config must be a mapping", path)
    return data


def find_config(source: Path) -> Path:
    for name in CONFIG_NAMES:
        candidate = source / name
        if candidate.exists():
            return candidate
    return source / CONFIG_NAMES[0]


def resolve_timezone(name: str) -> dt.tzinfo:
    if name.strip().upper() in {"", "UTC", "Z"}:
        return dt.timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ConfigError(f"unknown timezone: {name}") from exc


@dataclass(frozen=True)
class BuildContext:
    """Everything a build needs, resolved once per invocation."""

    source: Path
    posts_dir: Path
    layouts_dir: Path
    static_dir: Path
    output_dir: Path
    config_path: Optional[Path] = None
    site_name: str = "postpress"
    site_description: str = ""
    site_url: str = ""
    custom_domain: str = ""
    timezone: dt.tzinfo = dt.timezone.utc
    date_format: str = DATE_FMT
    default_layout: str = "default"
    home_layout: str = "home"
    category_layout: str = "category"
    posts_per_page: int = POSTS_PER_PAGE
    feed_limit: int = FEED_LIMIT
    excerpt_separator: str = EXCERPT_SEPARATOR
    toc_depth: str = "2-4"
    build_workers: int = 1
    drafts: bool = False
    enable_rss: bool = True
    enable_atom: bool = True
    enable_sitemap: bool = True
    enable_404: bool = True
    write_nojekyll: bool = False

    @property
    def public_url(self) -> str:
        site_url = self.site_url.strip()
        if not site_url and self.custom_domain:
            site_url = f"https://{self.custom_domain}"
        return site_url.rstrip("/")

    @classmethod
    def from_args(cls, args: object) -> "BuildContext":
        source = Path(getattr(args, "source", ".") or ".").resolve()

        def under_source(value: str) -> Path:
            path = Path(value)
            return path if path.is_absolute() else source / path

        workers = parse_int(getattr(args, "build_workers", 0), 0)
        if workers <= 0:
            workers = os.cpu_count() or 1
        config_value = getattr(args, "config", None)
        return cls(
            source=source,
            posts_dir=under_source(args.posts),
            layouts_dir=under_source(args.layouts),
            static_dir=under_source(args.static),
            output_dir=under_source(args.output),
            config_path=Path(config_value) if config_value else None,
            site_name=args.site_name,
            site_description=args.site_description,
            site_url=(args.site_url or "").strip(),
            custom_domain=(args.custom_domain or "").strip(),
            timezone=resolve_timezone(args.timezone),
            date_format=args.date_format,
            default_layout=args.default_layout,
            home_layout=args.home_layout,
            category_layout=args.category_layout,
            posts_per_page=max(0, parse_int(args.posts_per_page, POSTS_PER_PAGE)),
            feed_limit=max(0, parse_int(args.feed_limit, FEED_LIMIT)),
            excerpt_separator=args.excerpt_separator,
            toc_depth=args.toc_depth,
            build_workers=max(1, min(workers, MAX_WORKERS)),
            drafts=parse_bool(args.drafts),
            enable_rss=parse_bool(args.enable_rss),
            enable_atom=parse_bool(args.enable_atom),
            enable_sitemap=parse_bool(args.enable_sitemap),
            enable_404=parse_bool(args.enable_404),
            write_nojekyll=parse_bool(args.write_nojekyll),
        )

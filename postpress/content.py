from __future__ import annotations

import datetime as dt
import html as html_lib
import logging
import re
from pathlib import Path
from typing import Iterable, Iterator, Optional

import yaml

from .errors import DuplicateSlugError, MalformedEncodingError, MalformedFrontMatterError, ValidationError
from .models import Post
from .utils import parse_bool

log = logging.getLogger(__name__)

POST_SUFFIXES = (".md", ".markdown")
FRONT_MATTER_DELIMITER = "---"
FILENAME_DATE_RE = re.compile(r"^(?P<date>\d{4}-\d{2}-\d{2})-(?P<rest>.+)$")
LIST_SPLIT_RE = re.compile(r"[,\s]+")
LIST_MARKER_RE = re.compile(r"^(?P<indent>[ \t]*)(?:[-+*]|\d+[.)])\s+")
FENCE_RE = re.compile(r"^(?P<indent>[ \t]*)(`{3,}|~{3,})")
DOUBLE_QUOTE_RE = re.compile(r"^(?P<indent>[ \t]*)>>(?!>)(?P<rest>.*)$")
CJK_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")
WORD_RE = re.compile(r"[A-Za-z0-9]+(?:'[A-Za-z0-9]+)?")

# Jekyll writes "2026-01-01 10:00:00 +0000"; fromisoformat does not accept
# the space before the offset.
OFFSET_DATE_FORMATS = ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M %z")


def slugify(text: str) -> str:
    text = text.lower()
    text = re.sub(r"[\W_]+", "-", text, flags=re.UNICODE)
    text = text.strip("-")
    return text or "post"


def parse_list(value: object) -> list[str]:
    if isinstance(value, str):
        value = value.strip()
        if value.startswith("[") and value.endswith("]"):
            value = value[1:-1]
        items = [item.strip().strip("'\"") for item in LIST_SPLIT_RE.split(value)]
    elif isinstance(value, list):
        items = []
        for item in value:
            if not isinstance(item, str):
                raise TypeError("list items must be strings")
            items.append(item.strip())
    else:
        raise TypeError("expected a string or a list of strings")
    return [item for item in items if item]


def read_source(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedEncodingError(path, f"byte {exc.start}") from exc


def parse_front_matter(text: str, source: Optional[Path] = None) -> tuple[dict, str]:
    """Split ``text`` into its front-matter mapping and Markdown body.

    A document whose first line is not ``---`` has no front matter: the
    mapping is empty and the whole text is the body. Scalars are kept as
    strings (``yaml.BaseLoader``); callers resolve types per key.
    """
    clean_text = text.lstrip("\ufeff")
    lines = clean_text.splitlines()
    if not lines or lines[0].strip() != FRONT_MATTER_DELIMITER:
        return {}, clean_text

    end = None
    for i in range(1, len(lines)):
        if lines[i].strip() == FRONT_MATTER_DELIMITER:
            end = i
            break
    if end is None:
        raise MalformedFrontMatterError("front matter opened with '---' but never closed", source)

    block = "\n".join(lines[1:end])
    try:
        meta = yaml.load(block, Loader=yaml.BaseLoader)
    except yaml.YAMLError as exc:
        raise MalformedFrontMatterError(f"invalid YAML in front matter: {exc}", source) from exc
    if meta is None:
        meta = {}
    if not isinstance(meta, dict):
        raise MalformedFrontMatterError("front matter must be a mapping", source)
    body = "\n".join(lines[end + 1 :])
    return meta, body


def serialize_front_matter(meta: dict, body: str = "") -> str:
    block = yaml.safe_dump(meta, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"{FRONT_MATTER_DELIMITER}\n{block}{FRONT_MATTER_DELIMITER}\n{body}"


def meta_text(meta: dict, key: str, source: Optional[Path] = None) -> Optional[str]:
    value = meta.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(key, source, f"field '{key}' must be a string")
    value = value.strip()
    return value or None


def parse_timestamp(value: str, tz: dt.tzinfo) -> dt.datetime:
    value = value.strip()
    parsed = None
    try:
        parsed = dt.datetime.fromisoformat(value)
    except ValueError:
        for fmt in OFFSET_DATE_FORMATS:
            try:
                parsed = dt.datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        raise ValueError(f"unrecognized date: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def split_filename(path: Path) -> tuple[Optional[str], str]:
    match = FILENAME_DATE_RE.match(path.stem)
    if match is None:
        return None, path.stem
    return match.group("date"), match.group("rest")


def resolve_date(meta: dict, path: Path, tz: dt.tzinfo) -> dt.datetime:
    date_value = meta_text(meta, "date", path)
    if date_value:
        try:
            return parse_timestamp(date_value, tz)
        except ValueError:
            raise ValidationError("date", path, f"unparseable date: {date_value!r}") from None
    filename_date, _ = split_filename(path)
    if filename_date:
        try:
            return dt.datetime.combine(dt.date.fromisoformat(filename_date), dt.time(), tzinfo=tz)
        except ValueError:
            raise ValidationError("date", path, f"invalid filename date: {filename_date}") from None
    raise ValidationError("date", path)


def get_categories(meta: dict, path: Optional[Path] = None) -> frozenset[str]:
    for key in ("categories", "category"):
        if key not in meta:
            continue
        try:
            items = parse_list(meta[key])
        except TypeError as exc:
            raise ValidationError(key, path, f"field '{key}' {exc}") from None
        return frozenset(item.lower() for item in items)
    return frozenset()


def is_published(meta: dict) -> bool:
    if "published" in meta and not parse_bool(meta["published"]):
        return False
    return not parse_bool(meta.get("draft"))


def build_post(
    path: Path,
    meta: dict,
    body: str,
    *,
    tz: dt.tzinfo = dt.timezone.utc,
    default_layout: str = "default",
) -> Post:
    title = meta_text(meta, "title", path)
    if not title:
        raise ValidationError("title", path)
    published_at = resolve_date(meta, path, tz)
    layout = meta_text(meta, "layout", path) or default_layout
    _, name = split_filename(path)
    return Post(
        slug=slugify(name),
        title=title,
        published_at=published_at,
        categories=get_categories(meta, path),
        layout=layout,
        body_source=body,
        source=path,
        meta=dict(meta),
    )


def load_post(
    path: Path,
    *,
    tz: dt.tzinfo = dt.timezone.utc,
    default_layout: str = "default",
    include_drafts: bool = False,
) -> Optional[Post]:
    """Read, parse and validate one source file; ``None`` for skipped drafts."""
    meta, body = parse_front_matter(read_source(path), path)
    if not include_drafts and not is_published(meta):
        log.info("Skipping unpublished post %s", path)
        return None
    return build_post(path, meta, body, tz=tz, default_layout=default_layout)


def find_post_files(posts_dir: Path) -> list[Path]:
    files = [path for path in posts_dir.rglob("*") if path.is_file() and path.suffix.lower() in POST_SUFFIXES]
    return sorted(files, key=lambda p: p.as_posix())


def ensure_unique_slugs(posts: Iterable[Post]) -> None:
    seen: dict[str, Post] = {}
    for post in posts:
        first = seen.get(post.slug)
        if first is not None:
            raise DuplicateSlugError(post.slug, [first.source, post.source])
        seen[post.slug] = post


def iter_fenced(lines: Iterable[str]) -> Iterator[tuple[str, bool]]:
    """Yield each line with whether it belongs to a fenced code block,
    fence lines included."""
    fence_marker = ""
    for line in lines:
        fence_match = FENCE_RE.match(line)
        if fence_match:
            marker = fence_match.group(2)
            if not fence_marker:
                fence_marker = marker
            elif marker == fence_marker:
                fence_marker = ""
            yield line, True
        else:
            yield line, bool(fence_marker)


def normalize_list_spacing(text: str) -> str:
    out: list[str] = []
    for line, fenced in iter_fenced(text.splitlines()):
        if fenced:
            out.append(line)
            continue
        quote_match = DOUBLE_QUOTE_RE.match(line)
        if quote_match:
            rest = quote_match.group("rest").lstrip()
            if rest:
                line = f'{quote_match.group("indent")}> {rest}'
            else:
                line = f'{quote_match.group("indent")}>'
        list_match = LIST_MARKER_RE.match(line)
        if list_match:
            if not list_match.group("indent"):
                if out and out[-1].strip() and not LIST_MARKER_RE.match(out[-1]):
                    out.append("")
        out.append(line)
    return "\n".join(out)


def count_words(text: str) -> int:
    text = html_lib.unescape(text)
    cjk_count = len(CJK_RE.findall(text))
    text = CJK_RE.sub(" ", text)
    word_count = len(WORD_RE.findall(text))
    return cjk_count + word_count

from __future__ import annotations

import html
import xml.etree.ElementTree as etree
from pathlib import Path

from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_for_filename
from pygments.util import ClassNotFound

# [label](code:path/to/file.py#L12)
RE_CODE_LINK = r"\[(?P<text>[^\]]+)\]\(code:(?P<path>[^#)]+)#L(?P<line>\d+)\)"


def error_link(message: str) -> etree.Element:
    el = etree.Element("a")
    el.set("href", "#")
    el.set("class", "code-link-error")
    el.text = message
    return el


class CodeLinkerProcessor(InlineProcessor):
    """Turns a ``code:`` link into an anchor carrying a highlighted copy of
    the referenced file. The file is only read, never run."""

    def __init__(self, pattern, md, base_path: Path, project_root: Path):
        super().__init__(pattern, md)
        self.base_path = base_path
        self.project_root = project_root

    def resolve(self, path_str: str) -> Path:
        if path_str.startswith("/"):
            return (self.project_root / path_str.lstrip("/")).resolve()
        return (self.base_path / path_str).resolve()

    def handleMatch(self, m, data):
        path_str = m.group("path").strip()
        line_num = int(m.group("line"))
        try:
            file_path = self.resolve(path_str)
            found = file_path.is_file()
        except (OSError, ValueError):
            # Over-long names and embedded NULs cannot name a file.
            found = False
        if not found:
            return error_link(f"File not found: {path_str}"), m.start(0), m.end(0)
        try:
            code = file_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return error_link(f"Error reading file: {exc}"), m.start(0), m.end(0)

        try:
            lexer = get_lexer_for_filename(file_path.name, stripnl=False)
            lang = lexer.aliases[0] if lexer.aliases else "text"
            formatter = HtmlFormatter(linenos=True, cssclass="codehilite", hl_lines=[line_num])
            highlighted = highlight(code, lexer, formatter)
        except ClassNotFound:
            lang = "text"
            highlighted = f"<pre><code>{html.escape(code)}</code></pre>"

        el = etree.Element("a")
        el.set("href", "#")
        el.set("class", "code-link")
        el.set("data-code", highlighted)
        el.set("data-lang", lang)
        el.set("data-line", str(line_num))
        el.text = m.group("text")
        return el, m.start(0), m.end(0)


class CodeLinkerExtension(Extension):
    def __init__(self, base_path: Path, project_root: Path, **kwargs):
        super().__init__(**kwargs)
        self.base_path = base_path
        self.project_root = project_root

    def extendMarkdown(self, md):
        # Ahead of the stock link pattern (160) so "code:" links are claimed first.
        md.inlinePatterns.register(
            CodeLinkerProcessor(RE_CODE_LINK, md, self.base_path, self.project_root),
            "code_linker",
            175,
        )

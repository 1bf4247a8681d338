from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Union

PathLike = Union[str, Path]


class SiteError(Exception):
    """Base class for every fatal build error.

    ``str(error)`` is ``"<source>: <reason>"`` when the error is tied to a
    file, otherwise just the reason.
    """

    def __init__(self, reason: str, source: Optional[PathLike] = None):
        self.reason = reason
        self.source = Path(source) if source is not None else None
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.source is not None:
            return f"{self.source}: {self.reason}"
        return self.reason


class ConfigError(SiteError):
    pass


class MalformedFrontMatterError(SiteError):
    pass


class MalformedEncodingError(SiteError):
    def __init__(self, source: PathLike, detail: str = ""):
        reason = "file is not valid UTF-8"
        if detail:
            reason = f"{reason} ({detail})"
        super().__init__(reason, source)


class ValidationError(SiteError):
    def __init__(self, missing_field: str, source: Optional[PathLike] = None, reason: str = ""):
        self.missing_field = missing_field
        super().__init__(reason or f"missing required field: {missing_field}", source)


class DuplicateSlugError(SiteError):
    def __init__(self, slug: str, sources: Sequence[PathLike]):
        self.slug = slug
        self.sources = tuple(Path(path) for path in sources)
        names = ", ".join(str(path) for path in self.sources)
        super().__init__(f"duplicate slug '{slug}' produced by {names}")


class UnknownLayoutError(SiteError):
    def __init__(self, name: str, source: Optional[PathLike] = None):
        self.name = name
        super().__init__(f"unknown layout '{name}'", source)


class LayoutCycleError(SiteError):
    def __init__(self, chain: Sequence[str]):
        self.chain = tuple(chain)
        super().__init__("layout cycle: " + " -> ".join(self.chain))


class OutputConflictError(SiteError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"{reason}: {path}")

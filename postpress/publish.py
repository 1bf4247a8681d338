from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from .errors import ConfigError, OutputConflictError
from .utils import run_parallel

log = logging.getLogger(__name__)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    for item in sorted(static_dir.iterdir()):
        dest = output_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(item, dest)


def check_output_dir(
    output_dir: Path, project_root: Path, source_dirs: Iterable[Optional[Path]] = ()
) -> None:
    """Refuse output roots whose swap would replace or nest inside sources.

    The output may live inside the project root but must not contain it;
    it must neither contain nor sit inside any of ``source_dirs``.
    """
    output_resolved = output_dir.resolve()
    root_resolved = project_root.resolve()
    if root_resolved.is_relative_to(output_resolved):
        raise ConfigError(f"refusing to publish over the project root: {output_dir}")
    for source_dir in source_dirs:
        if source_dir is None:
            continue
        source_resolved = source_dir.resolve()
        if source_resolved.is_relative_to(output_resolved) or output_resolved.is_relative_to(source_resolved):
            raise ConfigError(f"output directory overlaps source directory {source_dir}", output_dir)


def check_documents(documents: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    checked = []
    seen = set()
    for rel, text in documents:
        path = PurePosixPath(rel)
        if path.is_absolute() or not path.parts or ".." in path.parts:
            raise OutputConflictError(rel, "output path escapes the output root")
        key = path.as_posix()
        if key in seen:
            raise OutputConflictError(rel, "two documents target the same output path")
        seen.add(key)
        checked.append((key, text))
    return checked


def publish(
    documents: Iterable[tuple[str, str]],
    output_dir: Path,
    *,
    project_root: Path,
    static_dirs: Iterable[Optional[Path]] = (),
    source_dirs: Iterable[Optional[Path]] = (),
    workers: int = 1,
) -> int:
    """Write ``documents`` and static assets to ``output_dir`` all at once.

    Everything is written into a sibling staging directory first and then
    swapped into place; if anything fails the existing output is left as it
    was. Returns the number of documents written.
    """
    static_dirs = list(static_dirs)
    check_output_dir(output_dir, project_root, [*source_dirs, *static_dirs])
    documents = check_documents(documents)
    output_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-build-", dir=output_dir.parent))
    staging.chmod(0o755)
    try:
        for static_dir in static_dirs:
            if static_dir is not None and static_dir.is_dir():
                copy_static(static_dir, staging)
        run_parallel(lambda doc: write_text(staging / doc[0], doc[1]), documents, workers)
        swap_into_place(staging, output_dir)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise
    log.info("Published %d documents to %s", len(documents), output_dir)
    return len(documents)


def swap_into_place(staging: Path, output_dir: Path) -> None:
    """Replace ``output_dir`` with ``staging`` using two renames.

    Between the renames ``output_dir`` does not exist, so a server reading
    it at that instant can answer 404. Readers never see a partial tree.
    If the second rename fails the previous output is moved back.
    """
    if not output_dir.exists():
        os.replace(staging, output_dir)
        return
    retired = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}-old-", dir=output_dir.parent))
    os.rmdir(retired)
    os.replace(output_dir, retired)
    try:
        os.replace(staging, output_dir)
    except OSError:
        os.replace(retired, output_dir)
        raise
    shutil.rmtree(retired)

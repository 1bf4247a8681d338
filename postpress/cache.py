from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable, Optional


def list_files(*roots: Optional[Path]) -> list[Path]:
    """Every regular file under ``roots``; missing roots contribute nothing."""
    files = []
    for root in roots:
        if root is None or not root.is_dir():
            continue
        files.extend(path for path in root.rglob("*") if path.is_file())
    return files


def hash_paths(paths: Iterable[Path], base: Path) -> str:
    """SHA-256 over each file's path relative to ``base`` and its bytes.

    Files that disappear between listing and reading are left out, so a
    delete shows up as a changed fingerprint rather than an error.
    """
    digest = hashlib.sha256()
    for path in sorted(set(paths)):
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            continue
        name = path.relative_to(base) if path.is_relative_to(base) else path
        digest.update(name.as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(len(data).to_bytes(8, "big"))
        digest.update(data)
    return digest.hexdigest()

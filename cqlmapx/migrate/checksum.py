"""MD5 checksums of migration files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any


def _as_root(root: Any) -> Any:
    if isinstance(root, (str, os.PathLike)):
        return Path(root)
    return root


def checksum(data: bytes) -> str:
    """Return the hex MD5 digest of ``data``."""
    return hashlib.md5(data).hexdigest()


def file_checksum(root: Any, path: str) -> str:
    """Return the hex MD5 digest of ``path`` under ``root``.

    ``root`` is a directory path or a traversable object. A file that
    cannot be opened gives an empty string.
    """
    entry = _as_root(root).joinpath(path)
    try:
        handle = entry.open("rb")
    except OSError:
        return ""
    digest = hashlib.md5()
    with handle:
        for chunk in iter(lambda: handle.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()
"""Durable on-disk cache of raw upstream records, one file per paper id."""

from __future__ import annotations

import hashlib
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _atomic_write_text(path: Path, data: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", delete=False, dir=path.parent, prefix=f".{path.name}."
    ) as tmp:
        tmp.write(data)
        tmp.flush()
        os.fsync(tmp.fileno())
        tmp_path = Path(tmp.name)
    try:
        os.replace(tmp_path, path)
    except Exception:
        tmp_path.unlink(missing_ok=True)
        raise


class RecordFileCache:
    """Filesystem cache keyed by paper id with no expiry.

    Each entry holds the exact payload returned by the upstream service. The
    directory is created on the first write, and writes go through a temporary
    file followed by :func:`os.replace` so concurrent writers of the same id
    leave a complete file behind (last write wins).
    """

    def __init__(self, base_dir: Path | str = "pubmed_cache", *, suffix: str = ".xml") -> None:
        self.base_dir = Path(base_dir)
        self.suffix = suffix

    def load(self, paper_id: str) -> Optional[str]:
        path = self.path_for(paper_id)
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Ignoring unreadable cache entry %s: %s", path, exc)
            return None
        return data or None

    def store(self, paper_id: str, payload: str) -> Path:
        path = self.path_for(paper_id)
        _atomic_write_text(path, payload)
        return path

    def contains(self, paper_id: str) -> bool:
        return self.path_for(paper_id).is_file()

    def path_for(self, paper_id: str) -> Path:
        key = paper_id.strip()
        safe = _UNSAFE_KEY_CHARS.sub("-", key).strip("-.")
        if safe != key or not safe:
            digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
            safe = f"{safe[:64]}-{digest}" if safe else digest
        return self.base_dir / f"{safe}{self.suffix}"


__all__ = ["RecordFileCache"]

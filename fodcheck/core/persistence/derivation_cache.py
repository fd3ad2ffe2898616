"""
Derivation cache — atomic read/write of the derivation → attribute map.

The cache is a JSON object mapping derivation store paths to the
attribute that first referenced them. It lets a later run skip
requisite queries for derivations it already knows about; it never
skips verification.

Unlike most state, a broken cache is fatal: silently starting fresh
would throw away discovery work without telling anyone.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import RootModel, ValidationError

from fodcheck.core.errors import CacheError

logger = logging.getLogger(__name__)


class DerivationCache(RootModel[dict[str, str]]):
    """Serialized derivation → attribute mapping."""


def load_cache(path: Path) -> dict[str, str]:
    """Load the derivation cache.

    Returns:
        The mapping. A missing file yields an empty mapping.

    Raises:
        CacheError: If the file cannot be read or is not a string map.
    """
    if not path.exists():
        logger.info("No derivation cache at %s — starting fresh", path)
        return {}

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CacheError(f"Reading derivation cache file {path}: {e}") from e

    try:
        cache = DerivationCache.model_validate_json(raw)
    except ValidationError as e:
        raise CacheError(f"Deserializing derivation cache {path}: {e}") from e

    logger.debug("Loaded %d cached derivations from %s", len(cache.root), path)
    return cache.root


def save_cache(drvs: dict[str, str], path: Path) -> None:
    """Save the derivation cache (atomic write).

    Raises:
        CacheError: If the file cannot be written.
    """
    content = json.dumps(dict(sorted(drvs.items())), indent=2, ensure_ascii=False) + "\n"

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".fodcheck_cache_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise CacheError(f"Writing derivation cache file {path}: {e}") from e

    logger.debug("Derivation cache saved to %s (%d entries)", path, len(drvs))

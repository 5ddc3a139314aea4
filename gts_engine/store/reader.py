"""
File-system loader for GTS documents.

Walks the configured roots and yields one GtsEntity per document (or per
item of a top-level array).

Invariants:
    - Files are visited in sorted order so repeated loads are identical
    - A file reachable through several roots or links is read once
    - A file that cannot be read or parsed is logged and skipped;
      one bad document never aborts a load

How to change safely:
    - New extensions need a loader in _load_document
    - Keep EXCLUDED_DIRS small; it applies at every depth
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Set

import yaml

from ..config import GtsConfig
from .entity import GtsEntity, GtsFile

logger = logging.getLogger(__name__)

JSON_EXTENSIONS = (".json", ".jsonc", ".gts")
YAML_EXTENSIONS = (".yaml", ".yml")
EXCLUDED_DIRS = frozenset({"node_modules", "dist", "build"})


class GtsFileReader:
    """Reads JSON/YAML documents from a set of roots.

    Attributes:
        paths: Root directories or files
        cfg: Identifier-extraction config

    Example:
        >>> reader = GtsFileReader(["./schemas"], GtsConfig())
        >>> entities = list(reader.read())
    """

    def __init__(self, paths: Sequence[str], cfg: Optional[GtsConfig] = None) -> None:
        self.paths = [Path(os.path.expanduser(p)) for p in paths]
        self.cfg = cfg or GtsConfig()

    def discover(self) -> List[Path]:
        """Collect candidate files under every root, deduplicated and sorted."""
        seen: Set[Path] = set()
        found: List[Path] = []

        for root in self.paths:
            if not root.exists():
                logger.warning(f"Path does not exist, skipping: {root}")
                continue

            if root.is_file():
                candidates = [root] if _is_supported(root) else []
            else:
                candidates = []
                for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
                    dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
                    for name in sorted(filenames):
                        path = Path(dirpath) / name
                        if _is_supported(path):
                            candidates.append(path)

            for path in candidates:
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                found.append(resolved)

        found.sort()
        logger.debug(f"Discovered {len(found)} candidate files")
        return found

    def read(self) -> Iterator[GtsEntity]:
        """Yield entities from every discovered file."""
        for path in self.discover():
            content = _load_document(path)
            if content is None:
                continue

            gts_file = GtsFile(path=str(path), name=path.name)
            if isinstance(content, list):
                for idx, item in enumerate(content):
                    yield GtsEntity.from_content(item, self.cfg, file=gts_file, list_sequence=idx)
            else:
                yield GtsEntity.from_content(content, self.cfg, file=gts_file)


def _is_supported(path: Path) -> bool:
    return path.suffix.lower() in JSON_EXTENSIONS + YAML_EXTENSIONS


def _load_document(path: Path) -> Optional[Any]:
    """Parse a file, returning None (after logging) if it is unusable."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Cannot read {path}: {e}")
        return None

    try:
        if path.suffix.lower() in YAML_EXTENSIONS:
            content = yaml.safe_load(text)
        else:
            content = json.loads(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        logger.warning(f"Skipping unparsable document {path}: {e}")
        return None

    if content is None:
        logger.debug(f"Skipping empty document {path}")
        return None

    logger.debug(f"Loaded {path}")
    return content

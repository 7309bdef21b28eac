from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

from ..errors import SnapshotFormatError, SnapshotMissingError
from ..models import EnrichedRecord, ListingRecord
from ..utils.logging import get_logger

logger = get_logger(__name__)

Record = Union[ListingRecord, Mapping[str, Any]]


def _as_dict(record: Record) -> Dict[str, Any]:
    if isinstance(record, ListingRecord):
        return record.to_dict()
    return dict(record)


def save_snapshot(path: Union[str, Path], records: Iterable[Record]) -> int:
    """Write ``records`` as a JSON array, replacing ``path`` atomically.

    Readers see either the previous snapshot or the new one, never a
    partially written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [_as_dict(r) for r in records]

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("Saved %s (%d records)", path.name, len(payload))
    return len(payload)


def load_snapshot(path: Union[str, Path]) -> List[Dict[str, Any]]:
    path = Path(path)
    if not path.exists():
        raise SnapshotMissingError(f"{path.name} not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise SnapshotFormatError(f"{path.name} is not valid JSON: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise SnapshotFormatError(f"{path.name} must hold a JSON array of objects")
    return data


def load_listings(path: Union[str, Path]) -> List[ListingRecord]:
    return [ListingRecord.from_dict(item) for item in load_snapshot(path)]


def load_enriched(path: Union[str, Path]) -> List[EnrichedRecord]:
    return [EnrichedRecord.from_dict(item) for item in load_snapshot(path)]

"""Durable cache of merged pull requests already seen by the sync.

The cache is one JSON document::

    {"version": 1, "timestamp": "<ISO-8601 watermark>", "records": [...]}

A document written by another schema version is ignored (cold start); it is
never migrated. The file is replaced atomically so an interrupted write
leaves the previous snapshot intact.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from core import ChangeRecord

CACHE_VERSION = 1
INITIAL_WATERMARK = "2024-09-26T00:00:00Z"

logger = logging.getLogger("port_tracker.cache")


class DuplicateChangeError(ValueError):
    pass


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse GitHub ISO-8601 timestamps; naive values are taken as UTC."""
    if not value:
        return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class CacheSnapshot:
    version: int = CACHE_VERSION
    timestamp: str = INITIAL_WATERMARK
    records: Dict[str, ChangeRecord] = field(default_factory=dict)

    @property
    def watermark(self) -> datetime:
        parsed = parse_timestamp(self.timestamp)
        return parsed or parse_timestamp(INITIAL_WATERMARK)

    def __contains__(self, url: str) -> bool:
        return url in self.records

    def add(self, record: ChangeRecord) -> None:
        if record.url in self.records:
            raise DuplicateChangeError(f"change already cached: {record.url}")
        self.records[record.url] = record

    def ordered(self) -> List[ChangeRecord]:
        return sort_by_merge_time(self.records.values())

    def advanced(self, records: Iterable[ChangeRecord], fetched_at: datetime) -> "CacheSnapshot":
        """New snapshot holding ``records`` with the watermark moved to ``fetched_at``.

        The watermark never moves backwards.
        """
        watermark = max(self.watermark, fetched_at)
        snapshot = CacheSnapshot(version=CACHE_VERSION, timestamp=format_timestamp(watermark))
        for record in records:
            snapshot.add(record)
        return snapshot


def sort_by_merge_time(records: Iterable[ChangeRecord]) -> List[ChangeRecord]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(records, key=lambda r: (parse_timestamp(r.merged_at) or epoch, r.url))


class ChangeCache:
    def __init__(self, path: Path, version: int = CACHE_VERSION) -> None:
        self.path = Path(path)
        self.version = version

    def load(self) -> CacheSnapshot:
        if not self.path.exists():
            logger.info("No change cache at %s, starting from %s", self.path, INITIAL_WATERMARK)
            return CacheSnapshot(version=self.version)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Unreadable change cache %s (%s), starting cold", self.path, exc)
            return CacheSnapshot(version=self.version)
        if not isinstance(raw, dict) or raw.get("version") != self.version:
            found = raw.get("version") if isinstance(raw, dict) else None
            logger.info("Change cache version %s != %s, starting cold", found, self.version)
            return CacheSnapshot(version=self.version)
        timestamp = raw.get("timestamp")
        if not parse_timestamp(timestamp):
            timestamp = INITIAL_WATERMARK
        snapshot = CacheSnapshot(version=self.version, timestamp=timestamp)
        for item in raw.get("records") or []:
            record = ChangeRecord.from_dict(item)
            if record is None:
                logger.warning("Dropping cached change without id/url")
                continue
            if record.url in snapshot:
                logger.warning("Dropping duplicate cached change %s", record.url)
                continue
            snapshot.add(record)
        logger.info("Loaded %s cached changes (watermark %s)", len(snapshot.records), snapshot.timestamp)
        return snapshot

    def save(self, snapshot: CacheSnapshot) -> None:
        data = {
            "version": self.version,
            "timestamp": snapshot.timestamp,
            "records": [r.to_dict() for r in snapshot.ordered()],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                delete=False,
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                suffix=".tmp",
            ) as tmp:
                tmp_path = Path(tmp.name)
                json.dump(data, tmp, indent=2)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(str(tmp_path), str(self.path))
        finally:
            if tmp_path and tmp_path.exists():
                tmp_path.unlink()
        logger.info("Saved %s changes to %s", len(data["records"]), self.path)

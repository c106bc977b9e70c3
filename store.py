"""JSON-backed paper dataset, its index projection, and the relevance cache."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from arxiv_ids import normalize_arxiv_id
from models import PaperRecord

LOGGER = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(UTC).isoformat()


def read_json(path: Path) -> Any | None:
    """Return parsed JSON from ``path``, or None when missing or unreadable."""
    if not path.exists():
        return None
    try:
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, ValueError) as exc:
        LOGGER.warning("Failed to read %s, starting empty: %s", path, exc)
        return None


def write_json(path: Path, payload: Any, indent: int | None = None) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    separators = None if indent else (",", ":")
    text = json.dumps(payload, ensure_ascii=False, indent=indent, separators=separators)
    path.write_text(text, encoding="utf-8")


def record_identifier(data: dict[str, Any]) -> str | None:
    for key in ("arxivId", "url", "id"):
        arxiv_id = normalize_arxiv_id(data.get(key))
        if arxiv_id:
            return arxiv_id
    return None


class PaperStore:
    """In-memory collection of PaperRecords persisted as two JSON documents.

    The full document goes to ``data_path`` and the index projection to
    ``index_path``. Both are whole-file rewrites from the same collection.
    """

    def __init__(self, data_path: Path, index_path: Path, source: str) -> None:
        self.data_path = Path(data_path)
        self.index_path = Path(index_path)
        self.source = source
        self._records: dict[str, PaperRecord] = {}
        self._generated_at: str | None = None
        self._saved_items: list[dict[str, Any]] | None = None

    @classmethod
    def load(cls, data_path: Path, index_path: Path, source: str) -> PaperStore:
        store = cls(data_path, index_path, source)
        payload = read_json(store.data_path)
        if not isinstance(payload, dict):
            if payload is not None:
                LOGGER.warning("Unexpected snapshot shape in %s, starting empty", store.data_path)
            return store

        items = payload.get("items")
        skipped = 0
        for raw in items if isinstance(items, list) else []:
            if not isinstance(raw, dict):
                skipped += 1
                continue
            identifier = record_identifier(raw)
            if identifier is None:
                skipped += 1
                continue
            if identifier not in store._records:
                store._records[identifier] = PaperRecord.from_dict(identifier, raw)

        if skipped:
            LOGGER.warning("Skipped %s unrecognized records in %s", skipped, store.data_path)

        generated_at = payload.get("generatedAt")
        store._generated_at = generated_at if isinstance(generated_at, str) else None
        store._saved_items = [record.to_dict() for record in store._records.values()]
        LOGGER.info("Loaded %s papers from %s", len(store._records), store.data_path)
        return store

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._records

    def __len__(self) -> int:
        return len(self._records)

    def get(self, identifier: str) -> PaperRecord | None:
        return self._records.get(identifier)

    def records(self) -> list[PaperRecord]:
        return list(self._records.values())

    def upsert(self, record: PaperRecord) -> None:
        self._records[record.identifier] = record

    def reorder(self, leading: Iterable[str]) -> None:
        """Move ``leading`` identifiers to the front, keeping the rest in place."""
        ordered: dict[str, PaperRecord] = {}
        for identifier in leading:
            record = self._records.get(identifier)
            if record is not None and identifier not in ordered:
                ordered[identifier] = record
        for identifier, record in self._records.items():
            ordered.setdefault(identifier, record)
        self._records = ordered

    def save(self) -> None:
        """Rewrite both documents from the current collection.

        ``generatedAt`` is only refreshed when the saved items changed.
        """
        items = [record.to_dict() for record in self._records.values()]
        if items != self._saved_items or self._generated_at is None:
            self._generated_at = utc_now()
        self._saved_items = items

        write_json(
            self.data_path,
            {"generatedAt": self._generated_at, "source": self.source, "items": items},
            indent=2,
        )
        write_json(
            self.index_path,
            {
                "generatedAt": self._generated_at,
                "source": self.source,
                "items": [record.to_index_dict() for record in self._records.values()],
            },
        )


class RelevanceCache:
    """Durable accept/reject decisions keyed by source URL.

    Lookups go through the canonical identifier so URL variants of the same
    paper share one decision.
    """

    def __init__(self, path: Path, kept: Iterable[str] = (), rejected: Iterable[str] = ()) -> None:
        self.path = Path(path)
        self.kept: list[str] = []
        self.rejected: list[str] = []
        self._decisions: dict[str, bool] = {}
        for url in kept:
            self.record(url, True)
        for url in rejected:
            self.record(url, False)

    @classmethod
    def load(cls, path: Path) -> RelevanceCache:
        payload = read_json(Path(path))
        if not isinstance(payload, dict):
            return cls(path)
        kept = [u for u in payload.get("kept") or [] if isinstance(u, str)]
        rejected = [u for u in payload.get("rejected") or [] if isinstance(u, str)]
        return cls(path, kept, rejected)

    @staticmethod
    def _key(url: str) -> str:
        return normalize_arxiv_id(url) or url

    def decision_for(self, url: str) -> bool | None:
        """True if kept, False if rejected, None if never classified."""
        return self._decisions.get(self._key(url))

    def record(self, url: str, keep: bool) -> None:
        """Record a first decision; already-classified references are left alone."""
        key = self._key(url)
        if key in self._decisions:
            return
        self._decisions[key] = keep
        (self.kept if keep else self.rejected).append(url)

    def save(self) -> None:
        write_json(self.path, {"kept": self.kept, "rejected": self.rejected}, indent=2)

"""Shared typed models for the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ListingItem:
    """One candidate paper as listed on the source page or an abstract page."""

    url: str
    title: str
    date: str = ""
    authors: str = ""
    category: str = ""


@dataclass(frozen=True, slots=True)
class ExtractedContent:
    """Best-effort full text of a paper.

    ``source`` is ``"html"``, ``"pdf"`` or ``"none"``.
    """

    text: str = ""
    image_urls: tuple[str, ...] = ()
    source: str = "none"

    @property
    def empty(self) -> bool:
        return not self.text


# Subset of persisted keys carried by the lightweight index.
INDEX_KEYS: tuple[str, ...] = (
    "id",
    "title",
    "arxivId",
    "date",
    "authors",
    "category",
    "summary",
    "tags",
    "updatedAt",
)


@dataclass(slots=True)
class PaperRecord:
    """Normalized paper record keyed by its canonical arXiv identifier."""

    identifier: str
    source_url: str
    title: str
    authors: str = ""
    publication_date: str = ""
    category: str = ""
    short_summary: str | None = None
    long_summary: str | None = None
    image_urls: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    last_updated: str = ""

    @property
    def enriched(self) -> bool:
        """True once both summaries are present and non-empty."""
        return bool(self.short_summary) and bool(self.long_summary)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.source_url,
            "title": self.title,
            "url": self.source_url,
            "arxivId": self.identifier,
            "date": self.publication_date,
            "authors": self.authors,
            "category": self.category,
            "summary": self.short_summary or "",
            "detailedSummary": self.long_summary or "",
            "imageUrls": list(self.image_urls),
            "tags": list(self.tags),
            "updatedAt": self.last_updated,
        }

    def to_index_dict(self) -> dict[str, Any]:
        full = self.to_dict()
        return {key: full[key] for key in INDEX_KEYS}

    @classmethod
    def from_dict(cls, identifier: str, data: dict[str, Any]) -> PaperRecord:
        url = _as_str(data.get("url")) or _as_str(data.get("id"))
        image_urls = data.get("imageUrls")
        tags = data.get("tags")
        return cls(
            identifier=identifier,
            source_url=url,
            title=_as_str(data.get("title")),
            authors=_as_str(data.get("authors")),
            publication_date=_as_str(data.get("date")),
            category=_as_str(data.get("category")),
            short_summary=_as_str(data.get("summary")) or None,
            long_summary=_as_str(data.get("detailedSummary")) or None,
            image_urls=[u for u in image_urls if isinstance(u, str)] if isinstance(image_urls, list) else [],
            tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
            last_updated=_as_str(data.get("updatedAt")),
        )


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""

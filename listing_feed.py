"""Robotics arXiv Daily listing ingestion helpers."""

from __future__ import annotations

import logging
import re

import requests
from bs4 import BeautifulSoup

from models import ListingItem

REQUEST_TIMEOUT_SECONDS = 30
_ABS_LINK_RE = re.compile(r"^https?://arxiv\.org/abs/", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")

LOGGER = logging.getLogger(__name__)


def fetch_listing(source_url: str, max_items: int) -> list[ListingItem]:
    """Fetch the listing page and parse up to ``max_items`` rows.

    Raises RuntimeError when the page cannot be fetched: without a listing
    there is nothing to do.
    """
    try:
        response = requests.get(source_url, timeout=REQUEST_TIMEOUT_SECONDS)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise RuntimeError(f"Failed to fetch source listing {source_url}: {exc}") from exc

    items = parse_listing(response.text, max_items)
    LOGGER.info("Listing fetch: url=%s parsed=%s max_items=%s", source_url, len(items), max_items)
    return items


def parse_listing(html: str, max_items: int) -> list[ListingItem]:
    """Parse table rows into ListingItems.

    Expected columns: date, title, authors, link cell holding an arXiv
    abstract URL. The category is the text of the closest preceding <h2>.
    Rows with fewer than four cells or no abstract link are skipped.
    """
    soup = BeautifulSoup(html, "html.parser")
    items: list[ListingItem] = []
    seen: set[str] = set()

    for row in soup.find_all("tr"):
        cells = row.find_all("td")
        if len(cells) < 4:
            continue

        link = cells[3].find("a", href=_ABS_LINK_RE)
        if link is None:
            LOGGER.debug("Listing row without abstract link skipped")
            continue
        url = link["href"].strip()
        if url in seen:
            continue

        heading = row.find_previous("h2")
        items.append(
            ListingItem(
                url=url,
                title=_cell_text(cells[1]) or "arXiv Paper",
                date=_cell_text(cells[0]),
                authors=_cell_text(cells[2]),
                category=_cell_text(heading) if heading is not None else "",
            )
        )
        seen.add(url)

        if len(items) >= max_items:
            break

    return items


def _cell_text(node) -> str:
    return _WHITESPACE_RE.sub(" ", node.get_text(" ")).strip()

"""Full-text extraction from arXiv abstract, HTML and PDF renderings."""

from __future__ import annotations

import asyncio
import io
import logging
import re
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup
from pypdf import PdfReader

from arxiv_ids import ARXIV_ABS_BASE, to_pdf_url
from models import ExtractedContent, ListingItem

REQUEST_TIMEOUT_SECONDS = 60
USER_AGENT = "robotics-arxiv-daily/1.0 (+https://github.com/)"

_HTML_LINK_RE = re.compile(r"^https://arxiv\.org/html/", re.IGNORECASE)
_STRIP_TAGS = ("script", "style", "nav", "header", "footer")
_WHITESPACE_RE = re.compile(r"\s+")

LOGGER = logging.getLogger(__name__)


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=REQUEST_TIMEOUT_SECONDS,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def find_html_link(abs_html: str) -> str | None:
    """Return the HTML full-text link advertised on an abstract page."""
    soup = BeautifulSoup(abs_html, "html.parser")
    anchor = soup.find("a", id="latexml-download-link", href=_HTML_LINK_RE)
    if anchor is None:
        anchor = soup.find("a", href=_HTML_LINK_RE)
    return anchor["href"] if anchor is not None else None


def parse_html_content(html: str, base_url: str) -> ExtractedContent:
    """Plain text and absolute image URLs of an HTML full-text rendering."""
    soup = BeautifulSoup(html, "html.parser")
    base = base_url if base_url.endswith("/") else base_url + "/"

    image_urls: list[str] = []
    for img in soup.find_all("img", src=True):
        src = img["src"].strip()
        if not src or src.startswith("data:"):
            continue
        image_urls.append(src if src.startswith("http") else urljoin(base, src))

    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    text = collapse_whitespace(soup.get_text(" "))
    return ExtractedContent(text=text, image_urls=tuple(image_urls), source="html")


def extract_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return collapse_whitespace(" ".join(page.extract_text() or "" for page in reader.pages))


def parse_abs_metadata(html: str, abs_url: str) -> ListingItem:
    """Listing-style metadata from an abstract page's citation meta tags."""
    soup = BeautifulSoup(html, "html.parser")

    def meta(name: str) -> list[str]:
        return [
            tag["content"].strip()
            for tag in soup.find_all("meta", attrs={"name": name, "content": True})
        ]

    titles = meta("citation_title")
    dates = meta("citation_date")
    subject = soup.find(class_="primary-subject")
    category = subject.get_text(strip=True) if subject is not None else ""

    return ListingItem(
        url=abs_url,
        title=titles[0] if titles else "arXiv Paper",
        date=dates[0] if dates else "",
        authors=", ".join(meta("citation_author")),
        category=category or "Robotics",
    )


async def _get(http: httpx.AsyncClient, url: str) -> httpx.Response | None:
    try:
        response = await http.get(url)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        LOGGER.warning("GET %s failed: %s", url, exc)
        return None
    return response


async def fetch_abs_metadata(http: httpx.AsyncClient, abs_url: str) -> ListingItem | None:
    response = await _get(http, abs_url)
    if response is None:
        return None
    return parse_abs_metadata(response.text, abs_url)


async def fetch_html_content(http: httpx.AsyncClient, abs_url: str) -> ExtractedContent | None:
    """Follow the abstract page to its HTML rendering; None when there is none."""
    response = await _get(http, abs_url)
    if response is None:
        return None
    html_link = find_html_link(response.text)
    if html_link is None:
        return None

    page = await _get(http, html_link)
    if page is None:
        return None
    return parse_html_content(page.text, html_link)


async def fetch_pdf_text(http: httpx.AsyncClient, arxiv_id: str) -> str:
    pdf_url = to_pdf_url(arxiv_id)
    LOGGER.info("    Fetching PDF: %s", pdf_url)
    response = await _get(http, pdf_url)
    if response is None:
        return ""
    try:
        text = await asyncio.to_thread(extract_pdf_text, response.content)
    except Exception as exc:
        LOGGER.warning("    Failed to extract PDF text for %s: %s", arxiv_id, exc)
        return ""
    LOGGER.info("    PDF text extracted: %s chars", len(text))
    return text


async def extract_content(http: httpx.AsyncClient, arxiv_id: str) -> ExtractedContent:
    """Best-effort full text: HTML rendering first, PDF text as fallback.

    Returns an empty ExtractedContent when neither source yields text.
    """
    content = await fetch_html_content(http, f"{ARXIV_ABS_BASE}{arxiv_id}")
    if content is not None and not content.empty:
        return content

    image_urls = content.image_urls if content is not None else ()
    text = await fetch_pdf_text(http, arxiv_id)
    if text:
        return ExtractedContent(text=text, image_urls=image_urls, source="pdf")
    return ExtractedContent()

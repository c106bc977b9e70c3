"""arXiv identifier normalization (pure string handling, no network)."""

from __future__ import annotations

import re
from urllib.parse import unquote

ARXIV_ABS_BASE = "https://arxiv.org/abs/"
ARXIV_PDF_BASE = "https://arxiv.org/pdf/"

_NEW_ID_RE = re.compile(r"^(\d{4}\.\d{4,5})(?:v\d+)?$", re.IGNORECASE)
_ARXIV_URL_RE = re.compile(r"arxiv\.org/(?:abs|pdf|html)/([^?#]+)", re.IGNORECASE)
_PDF_SUFFIX_RE = re.compile(r"\.pdf$", re.IGNORECASE)


def normalize_arxiv_id(value: str | None) -> str | None:
    """Return the canonical unversioned arXiv id for ``value``, or None.

    Accepts bare ids (``2503.01078``, ``2503.01078v2``) and abstract, PDF or
    HTML URLs. Unrecognized input yields None; this function never raises.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None

    direct = _NEW_ID_RE.match(text)
    if direct:
        return direct.group(1)

    url_match = _ARXIV_URL_RE.search(text)
    if not url_match:
        return None

    raw = _PDF_SUFFIX_RE.sub("", url_match.group(1)).rstrip("/")
    raw = unquote(raw)

    from_url = _NEW_ID_RE.match(raw)
    return from_url.group(1) if from_url else None


def to_abs_url(value: str | None) -> str | None:
    arxiv_id = normalize_arxiv_id(value)
    if arxiv_id is None:
        return None
    return f"{ARXIV_ABS_BASE}{arxiv_id}"


def to_pdf_url(arxiv_id: str) -> str:
    return f"{ARXIV_PDF_BASE}{arxiv_id}"

import asyncio
from unittest.mock import patch

import httpx

from conftest import abs_page, arxiv_transport, html_rendering
from extractor import (
    collapse_whitespace,
    extract_content,
    fetch_abs_metadata,
    fetch_pdf_text,
    find_html_link,
    parse_abs_metadata,
    parse_html_content,
)


def _run(coro_factory, transport: httpx.MockTransport):
    async def runner():
        async with httpx.AsyncClient(transport=transport) as http:
            return await coro_factory(http)
    return asyncio.run(runner())


def test_collapse_whitespace() -> None:
    assert collapse_whitespace("  a \n\t b  ") == "a b"


def test_find_html_link_prefers_download_link() -> None:
    html = (
        '<a href="https://arxiv.org/html/2401.00001v1">other</a>'
        '<a id="latexml-download-link" href="https://arxiv.org/html/2503.01078v1">HTML</a>'
    )
    assert find_html_link(html) == "https://arxiv.org/html/2503.01078v1"


def test_find_html_link_falls_back_to_any_html_link() -> None:
    assert find_html_link('<a href="https://arxiv.org/html/2503.01078v2">x</a>') == "https://arxiv.org/html/2503.01078v2"
    assert find_html_link('<a href="https://arxiv.org/pdf/2503.01078">pdf</a>') is None


def test_parse_html_content_strips_chrome_and_resolves_images() -> None:
    content = parse_html_content(html_rendering("2503.01078"), "https://arxiv.org/html/2503.01078v1")

    assert content.source == "html"
    assert "Full text of 2503.01078" in content.text
    assert "We present a robot policy." in content.text
    for noise in ("Navigation", "Site header", "Footer", "color:red", "var x"):
        assert noise not in content.text
    assert content.image_urls == (
        "https://arxiv.org/html/2503.01078v1/x1.png",
        "https://cdn.example.org/fig.png",
    )


def test_parse_abs_metadata() -> None:
    item = parse_abs_metadata(abs_page("2503.01078"), "https://arxiv.org/abs/2503.01078")

    assert item.url == "https://arxiv.org/abs/2503.01078"
    assert item.title == "Paper 2503.01078"
    assert item.authors == "Doe, Jane, Roe, Rick"
    assert item.date == "2025/03/03"
    assert item.category == "Robotics (cs.RO)"


def test_parse_abs_metadata_defaults() -> None:
    item = parse_abs_metadata("<html></html>", "https://arxiv.org/abs/2503.01078")
    assert item.title == "arXiv Paper"
    assert item.category == "Robotics"
    assert item.authors == ""


def test_fetch_abs_metadata_returns_none_on_http_error() -> None:
    transport = arxiv_transport(fail={"2503.01078"})
    result = _run(lambda http: fetch_abs_metadata(http, "https://arxiv.org/abs/2503.01078"), transport)
    assert result is None


def test_extract_content_uses_html_rendering() -> None:
    content = _run(lambda http: extract_content(http, "2503.01078"), arxiv_transport())

    assert content.source == "html"
    assert "robot policy" in content.text
    assert len(content.image_urls) == 2


def test_extract_content_falls_back_to_pdf() -> None:
    with patch("extractor.extract_pdf_text", return_value="pdf body text") as mock_pdf:
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, text=abs_page("2503.01078", with_html=False))
            if request.url.path.startswith("/abs/")
            else httpx.Response(200, content=b"%PDF-1.4 fake")
        )
        content = _run(lambda http: extract_content(http, "2503.01078"), transport)

    mock_pdf.assert_called_once_with(b"%PDF-1.4 fake")
    assert content.source == "pdf"
    assert content.text == "pdf body text"
    assert content.image_urls == ()


def test_extract_content_empty_when_nothing_available() -> None:
    content = _run(lambda http: extract_content(http, "2503.01078"), arxiv_transport(no_html={"2503.01078"}))
    assert content.empty
    assert content.source == "none"


def test_fetch_pdf_text_handles_unparseable_pdf() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"garbage"))
    with patch("extractor.extract_pdf_text", side_effect=ValueError("bad pdf")):
        assert _run(lambda http: fetch_pdf_text(http, "2503.01078"), transport) == ""


def test_fetch_pdf_text_handles_unexpected_parser_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, content=b"%PDF-1.7 hostile"))
    with patch("extractor.extract_pdf_text", side_effect=KeyError("/Root")):
        assert _run(lambda http: fetch_pdf_text(http, "2503.01078"), transport) == ""

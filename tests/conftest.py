from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import httpx
import pytest

from config import Settings


class FakeCompletionClient:
    """Stands in for CompletionClient; replies are produced by ``responder``."""

    def __init__(self, responder: Callable[[str, str], str | None] | str | None = "ok") -> None:
        self.responder = responder
        self.calls: list[dict] = []

    async def complete(self, system_prompt, user_prompt, max_tokens=220, *, reasoning=False):
        self.calls.append(
            {"system": system_prompt, "user": user_prompt, "max_tokens": max_tokens, "reasoning": reasoning}
        )
        if callable(self.responder):
            return self.responder(system_prompt, user_prompt)
        return self.responder


def abs_page(arxiv_id: str, with_html: bool = True) -> str:
    link = (
        f'<a href="https://arxiv.org/html/{arxiv_id}v1" id="latexml-download-link">HTML</a>'
        if with_html
        else ""
    )
    return (
        "<html><head>"
        f'<meta name="citation_title" content="Paper {arxiv_id}"/>'
        '<meta name="citation_author" content="Doe, Jane"/>'
        '<meta name="citation_author" content="Roe, Rick"/>'
        '<meta name="citation_date" content="2025/03/03"/>'
        "</head><body>"
        '<span class="primary-subject">Robotics (cs.RO)</span>'
        f"{link}</body></html>"
    )


def html_rendering(arxiv_id: str) -> str:
    return (
        "<html><head><style>body{color:red}</style><script>var x=1;</script></head><body>"
        "<nav>Navigation</nav><header>Site header</header>"
        f"<h1>Full text of {arxiv_id}</h1><p>We   present a\n robot policy.</p>"
        '<img src="x1.png"/><img src="data:image/png;base64,AAAA"/>'
        '<img src="https://cdn.example.org/fig.png"/>'
        "<footer>Footer</footer></body></html>"
    )


def arxiv_transport(no_html: set[str] | None = None, fail: set[str] | None = None) -> httpx.MockTransport:
    """Serve fake arXiv abstract and HTML pages; PDFs are always 404."""
    no_html = no_html or set()
    fail = fail or set()

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        arxiv_id = path.rsplit("/", 1)[-1].removesuffix("v1")
        if arxiv_id in fail:
            return httpx.Response(500)
        if path.startswith("/abs/"):
            return httpx.Response(200, text=abs_page(arxiv_id, arxiv_id not in no_html))
        if path.startswith("/html/"):
            return httpx.Response(200, text=html_rendering(arxiv_id))
        return httpx.Response(404)

    return httpx.MockTransport(handler)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(data_dir=tmp_path / "data", pages_dir=tmp_path / "papers", llm_enable=False)

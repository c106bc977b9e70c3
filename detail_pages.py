"""Static detail page for one paper.

The long summary is Markdown; it is embedded escaped and rendered in the
browser by marked, with KaTeX for formulas.
"""

from __future__ import annotations

import html
import logging
from pathlib import Path

from models import PaperRecord

SITE_NAME = "Robotics arXiv Daily"

LOGGER = logging.getLogger(__name__)

_PAGE_TEMPLATE = """<!doctype html>
<html lang="zh-CN">
<head>
  <meta charset="utf-8"/>
  <meta name="viewport" content="width=device-width, initial-scale=1"/>
  <title>{title} - {site}</title>
  <link rel="stylesheet" href="../assets/styles.css"/>
  <link rel="stylesheet" href="../assets/detail.css"/>
  <link rel="stylesheet" href="https://cdn.jsdelivr.net/npm/katex@0.16.9/dist/katex.min.css"/>
</head>
<body>
  <header class="site-header">
    <div class="brand">
      <a href="../index.html" class="back-link">← 返回列表</a>
    </div>
  </header>
  <main class="detail-main">
    <article class="detail-card">
      <span class="detail-category">{category}</span>
      <h1>{title}</h1>
      <div class="detail-meta">
        <span>arXiv: <a href="{url}" target="_blank" rel="noreferrer">{arxiv_id}</a></span>
        <span>作者: {authors}</span>
        <span>日期: {date}</span>
      </div>
      <section class="detail-body">
        <h2>📝 详细解读</h2>
        <div id="detail-markdown"><pre>{detailed}</pre></div>
      </section>
      <section class="detail-tldr">
        <h2>💡 一句话总结</h2>
        <p>{summary}</p>
      </section>
      <div class="detail-actions">
        <a href="{url}" target="_blank" rel="noreferrer" class="btn">查看 arXiv 原文</a>
        <a href="../index.html" class="btn btn-outline">返回列表</a>
      </div>
    </article>
  </main>
  <footer class="site-footer">
    <span>数据来源：<a href="{source}" target="_blank">{site}</a></span>
    <span>AI 摘要仅供参考</span>
  </footer>
  <script src="https://cdn.jsdelivr.net/npm/marked/marked.min.js"></script>
  <script defer src="https://cdn.jsdelivr.net/npm/katex@0.16.9/dist/katex.min.js"></script>
  <script defer src="https://cdn.jsdelivr.net/npm/katex@0.16.9/dist/contrib/auto-render.min.js"
    onload="renderMathInElement(document.body,{{delimiters:[{{left:'$$',right:'$$',display:true}},{{left:'$',right:'$',display:false}}],throwOnError:false}})"></script>
  <script>
    const el = document.getElementById("detail-markdown");
    el.innerHTML = marked.parse(el.textContent, {{ breaks: true, gfm: true }});
  </script>
</body>
</html>
"""


def page_filename(identifier: str) -> str:
    return identifier.replace("/", "_").replace("\\", "_") + ".html"


def render_detail_page(record: PaperRecord, source_url: str = "") -> str:
    esc = html.escape
    return _PAGE_TEMPLATE.format(
        site=SITE_NAME,
        source=esc(source_url),
        title=esc(record.title),
        category=esc(record.category or "Robotics"),
        url=esc(record.source_url),
        arxiv_id=esc(record.identifier),
        authors=esc(record.authors or "--"),
        date=esc(record.publication_date or "--"),
        detailed=esc(record.long_summary or "摘要生成中..."),
        summary=esc(record.short_summary or "暂无"),
    )


def write_detail_page(pages_dir: Path, record: PaperRecord, source_url: str = "") -> Path:
    pages_dir = Path(pages_dir)
    pages_dir.mkdir(parents=True, exist_ok=True)
    path = pages_dir / page_filename(record.identifier)
    path.write_text(render_detail_page(record, source_url), encoding="utf-8")
    LOGGER.debug("Wrote detail page %s", path)
    return path

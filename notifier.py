"""Notify WeCom applications about papers added since the previous snapshot.

One overview message is sent first, then one message per new paper. Two
delivery modes are supported:

  direct  -- call the WeCom API from this machine (needs an allowlisted IP)
  relay   -- POST everything to a relay (see relay_server.py) that runs on an
             allowlisted host; enabled by setting WECOM_PROXY_URL

Runnable standalone:
    python notifier.py
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import requests
from dotenv import load_dotenv

from wecom_client import SEND_INTERVAL_SECONDS, WeComError, get_access_token, send_message

REQUEST_TIMEOUT_SECONDS = 60

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class NotifySettings:
    apps_raw: str = "[]"
    site_url: str = ""
    papers_json: Path = Path("data/papers-index.json")
    old_papers_json: Path = Path("data/papers-index-old.json")
    proxy_url: str = ""
    proxy_token: str = ""

    @classmethod
    def from_env(cls) -> NotifySettings:
        return cls(
            apps_raw=os.getenv("WECOM_APPS", "[]"),
            site_url=os.getenv("SITE_URL", ""),
            papers_json=Path(os.getenv("PAPERS_JSON", "data/papers-index.json")),
            old_papers_json=Path(os.getenv("OLD_PAPERS_JSON", "data/papers-index-old.json")),
            proxy_url=os.getenv("WECOM_PROXY_URL", ""),
            proxy_token=os.getenv("WECOM_PROXY_TOKEN", ""),
        )


@dataclass(slots=True)
class SendResult:
    success: int = 0
    fail: int = 0


def parse_apps(raw: str) -> list[dict[str, Any]]:
    """Parse the WECOM_APPS JSON array. Raises ValueError when it is not valid JSON."""
    apps = json.loads(raw or "[]")
    if not isinstance(apps, list):
        raise ValueError("WECOM_APPS must be a JSON array")
    return [app for app in apps if isinstance(app, dict)]


def find_new_papers(papers_json: Path, old_papers_json: Path) -> list[dict[str, Any]]:
    """Papers present in the current index but not in the previous snapshot."""
    if not papers_json.exists():
        raise RuntimeError(f"Paper index not found: {papers_json}")
    with papers_json.open(encoding="utf-8") as fh:
        new_items = json.load(fh).get("items") or []

    old_ids: set[str] = set()
    if old_papers_json.exists():
        try:
            with old_papers_json.open(encoding="utf-8") as fh:
                old_items = json.load(fh).get("items") or []
            old_ids = {p.get("id") or p.get("url") for p in old_items if isinstance(p, dict)}
        except (OSError, ValueError, AttributeError) as exc:
            LOGGER.warning("Could not parse previous snapshot, treating all papers as new: %s", exc)
    else:
        LOGGER.warning("Previous snapshot missing, treating all papers as new")

    return [p for p in new_items if isinstance(p, dict) and (p.get("id") or p.get("url")) not in old_ids]


def build_summary_message(count: int, site_url: str) -> tuple[str, str]:
    """Return ``(markdown, text)`` for the overview message."""
    markdown = f"📚 **今日新增 {count} 篇论文**\n以下将逐篇推送，请查收。"
    text = f"📚 今日新增 {count} 篇论文\n以下将逐篇推送，请查收。"
    if site_url:
        markdown += f"\n👉 [查看主页]({site_url})"
        text += f"\n👉 查看主页: {site_url}"
    return markdown, text


def build_paper_message(paper: dict[str, Any], index: int, total: int, site_url: str) -> tuple[str, str]:
    """Return ``(markdown, text)`` for one paper."""
    title = paper.get("title") or "Untitled"
    category = paper.get("category") or ""
    authors = paper.get("authors") or ""
    summary = paper.get("summary") or "暂无摘要"
    arxiv_id = paper.get("arxivId") or ""
    arxiv_url = paper.get("url") or paper.get("id") or (f"https://arxiv.org/abs/{arxiv_id}" if arxiv_id else "")
    detail_url = f"{site_url.rstrip('/')}/papers/{arxiv_id}.html" if arxiv_id and site_url else ""

    header = [f"[{index}/{total}] {title}"]
    if category:
        header.append(f"分类: {category}")
    if authors:
        header.append(f"作者: {authors}")

    markdown = f"📄 **{header[0]}**\n" + "".join(f"{line}\n" for line in header[1:]) + f"{summary}\n"
    links = []
    if detail_url:
        links.append(f"[📖 详细解读]({detail_url})")
    if arxiv_url:
        links.append(f"[arXiv]({arxiv_url})")
    markdown += "  |  ".join(links)

    text = f"📄 {header[0]}\n" + "".join(f"{line}\n" for line in header[1:]) + f"{summary}\n"
    if detail_url:
        text += f"📖 详细解读: {detail_url}\n"
    if arxiv_url:
        text += f"arXiv: {arxiv_url}"
    return markdown, text


def _recipient(app: dict[str, Any]) -> dict[str, Any]:
    return {
        "agentid": app.get("agentid"),
        "touser": app.get("touser") or "",
        "toparty": app.get("toparty") or "",
        "totag": app.get("totag") or "",
    }


def _send_markdown_or_text(token: str, app: dict[str, Any], markdown: str, text: str) -> None:
    try:
        send_message(token, {**_recipient(app), "msgtype": "markdown", "content": markdown})
    except WeComError:
        send_message(token, {**_recipient(app), "msgtype": "text", "content": text})


def send_to_app_direct(app: dict[str, Any], papers: list[dict[str, Any]], site_url: str) -> SendResult:
    try:
        token = get_access_token(app["corpid"], app["corpsecret"])
    except WeComError as exc:
        LOGGER.error("   Failed to get access token: %s", exc)
        return SendResult(fail=len(papers))

    try:
        _send_markdown_or_text(token, app, *build_summary_message(len(papers), site_url))
        LOGGER.info("   Overview message sent")
    except WeComError as exc:
        LOGGER.warning("   Overview message failed: %s", exc)
    time.sleep(SEND_INTERVAL_SECONDS)

    result = SendResult()
    for i, paper in enumerate(papers, start=1):
        short_title = (paper.get("title") or "")[:30]
        try:
            _send_markdown_or_text(token, app, *build_paper_message(paper, i, len(papers), site_url))
            LOGGER.info("   [%s/%s] %s... sent", i, len(papers), short_title)
            result.success += 1
        except WeComError as exc:
            LOGGER.error("   [%s/%s] %s... failed: %s", i, len(papers), short_title, exc)
            result.fail += 1
        if i < len(papers):
            time.sleep(SEND_INTERVAL_SECONDS)
    return result


def send_to_app_via_relay(
    app: dict[str, Any],
    papers: list[dict[str, Any]],
    site_url: str,
    proxy_url: str,
    proxy_token: str = "",
) -> SendResult:
    """Ship the overview and every paper message to the relay in one request."""
    recipient = {**_recipient(app), "touser": app.get("touser") or "@all"}
    messages = [{**recipient, "msgtype": "markdown", "content": build_summary_message(len(papers), site_url)[0]}]
    for i, paper in enumerate(papers, start=1):
        markdown, _ = build_paper_message(paper, i, len(papers), site_url)
        messages.append({**recipient, "msgtype": "markdown", "content": markdown})

    headers = {"Content-Type": "application/json"}
    if proxy_token:
        headers["Authorization"] = f"Bearer {proxy_token}"

    try:
        response = requests.post(
            proxy_url,
            headers=headers,
            json={"corpid": app["corpid"], "corpsecret": app["corpsecret"], "messages": messages},
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"unexpected relay response: {body!r}")
        if body.get("error") or not response.ok:
            raise RuntimeError(f"relay returned error: {body.get('error') or response.status_code}")
    except (requests.RequestException, ValueError, RuntimeError) as exc:
        LOGGER.error("   Relay delivery failed: %s", exc)
        return SendResult(fail=len(messages))

    for item in body.get("results") or []:
        if isinstance(item, dict) and not item.get("ok"):
            LOGGER.error("      Message #%s: %s", item.get("index"), item.get("error"))
    result = SendResult(success=int(body.get("success") or 0), fail=int(body.get("fail") or 0))
    LOGGER.info("   Relay delivery done: %s ok, %s failed", result.success, result.fail)
    return result


def send_to_app(app: dict[str, Any], papers: list[dict[str, Any]], settings: NotifySettings) -> SendResult:
    label = app.get("name") or f"corpid:{str(app.get('corpid') or '')[:8]}..."
    LOGGER.info("-- Sending to %s (%s new papers)", label, len(papers))

    if not app.get("corpid") or not app.get("corpsecret") or not app.get("agentid"):
        LOGGER.error("   Missing corpid / corpsecret / agentid, skipping")
        return SendResult(fail=len(papers))

    if settings.proxy_url:
        LOGGER.info("   Relay mode: %s", settings.proxy_url)
        return send_to_app_via_relay(app, papers, settings.site_url, settings.proxy_url, settings.proxy_token)
    LOGGER.info("   Direct mode")
    return send_to_app_direct(app, papers, settings.site_url)


def notify(settings: NotifySettings) -> SendResult:
    """Send notifications for every configured app.

    Raises ValueError when WECOM_APPS is not valid JSON.
    """
    apps = parse_apps(settings.apps_raw)
    if not apps:
        LOGGER.info("WECOM_APPS empty, skipping notifications")
        return SendResult()

    papers = find_new_papers(settings.papers_json, settings.old_papers_json)
    if not papers:
        LOGGER.info("No new papers, skipping notifications")
        return SendResult()

    LOGGER.info("Found %s new papers, notifying %s apps", len(papers), len(apps))
    for paper in papers:
        category = f"[{paper['category']}] " if paper.get("category") else ""
        LOGGER.info("   - %s%s", category, paper.get("title"))

    total = SendResult()
    for app in apps:
        result = send_to_app(app, papers, settings)
        total.success += result.success
        total.fail += result.fail
    return total


def main() -> None:
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    settings = NotifySettings.from_env()

    try:
        result = notify(settings)
    except (ValueError, RuntimeError) as exc:
        LOGGER.error("Notification aborted: %s", exc)
        raise SystemExit(1) from exc

    LOGGER.info("Notifications done: %s ok, %s failed", result.success, result.fail)
    if result.fail > 0 and result.success == 0:
        raise SystemExit(1)


if __name__ == "__main__":
    main()

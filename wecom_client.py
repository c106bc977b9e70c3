"""WeCom (enterprise WeChat) application message API."""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

WECOM_API_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin"
REQUEST_TIMEOUT_SECONDS = 15
MAX_RETRIES = 3
SEND_INTERVAL_SECONDS = 0.2

LOGGER = logging.getLogger(__name__)


class WeComError(RuntimeError):
    """The WeCom API answered with a non-zero errcode or could not be reached."""


def get_access_token(corpid: str, corpsecret: str) -> str:
    body = _request_with_backoff(
        method="GET",
        url=f"{WECOM_API_BASE_URL}/gettoken",
        params={"corpid": corpid, "corpsecret": corpsecret},
    )
    if body.get("errcode") != 0:
        raise WeComError(
            f"Failed to get access_token: errcode={body.get('errcode')}, errmsg={body.get('errmsg')}"
        )
    return body["access_token"]


def build_message_body(message: dict[str, Any]) -> dict[str, Any]:
    """Translate a relay message into the message/send request body.

    ``touser`` defaults to ``@all`` when no recipient field is set.
    """
    msgtype = message.get("msgtype") or "text"
    body: dict[str, Any] = {"msgtype": msgtype, "agentid": message.get("agentid")}
    for key in ("touser", "toparty", "totag"):
        if message.get(key):
            body[key] = message[key]
    if not any(key in body for key in ("touser", "toparty", "totag")):
        body["touser"] = "@all"

    if msgtype == "markdown":
        body["markdown"] = {"content": message.get("content", "")}
    else:
        body["text"] = {"content": message.get("content", "")}
    return body


def send_message(access_token: str, message: dict[str, Any]) -> dict[str, Any]:
    body = _request_with_backoff(
        method="POST",
        url=f"{WECOM_API_BASE_URL}/message/send",
        params={"access_token": access_token},
        json_payload=build_message_body(message),
    )
    if body.get("errcode") != 0:
        raise WeComError(f"Send failed: errcode={body.get('errcode')}, errmsg={body.get('errmsg')}")
    return body


def send_messages(access_token: str, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Send each message in order, pacing requests; one result per message."""
    results: list[dict[str, Any]] = []
    for index, message in enumerate(messages):
        try:
            send_message(access_token, message)
            results.append({"index": index, "ok": True})
        except WeComError as exc:
            LOGGER.warning("Message #%s failed: %s", index, exc)
            results.append({"index": index, "ok": False, "error": str(exc)})
        if index < len(messages) - 1:
            time.sleep(SEND_INTERVAL_SECONDS)
    return results


def _request_with_backoff(
    *,
    method: str,
    url: str,
    params: dict[str, Any],
    json_payload: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Send a WeCom request with simple exponential backoff on transport errors."""
    delay_seconds = 1.0
    last_error: Exception | None = None

    for attempt in range(1, MAX_RETRIES + 1):
        try:
            response = requests.request(
                method=method,
                url=url,
                params=params,
                json=json_payload,
                timeout=REQUEST_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            body = response.json()
            if not isinstance(body, dict):
                raise WeComError(f"Unexpected WeCom response: {body!r}")
            return body
        except (requests.RequestException, ValueError) as exc:
            last_error = exc
            if attempt >= MAX_RETRIES:
                break
            time.sleep(delay_seconds)
            delay_seconds *= 2

    raise WeComError(f"WeCom API request failed after retries: {last_error}")

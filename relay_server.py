"""WeCom relay: forwards messages from CI runners through an allowlisted host.

Request:
    POST /relay
    Authorization: Bearer <PROXY_TOKEN>
    {"corpid": "...", "corpsecret": "...", "messages": [{"msgtype": "markdown",
     "agentid": 1000002, "touser": "@all", "content": "..."}]}

Response:
    {"success": n, "fail": m, "results": [{"index": 0, "ok": true}, ...]}

Run with:
    PROXY_TOKEN=... PORT=9000 python relay_server.py
"""

from __future__ import annotations

import logging
import os
from typing import Any

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from wecom_client import WeComError, get_access_token, send_messages

LOGGER = logging.getLogger(__name__)


def create_app(proxy_token: str = "") -> FastAPI:
    app = FastAPI(title="WeCom relay")

    if not proxy_token:
        LOGGER.warning("PROXY_TOKEN not set, the relay endpoint is unauthenticated")

    @app.get("/")
    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/relay")
    async def relay(request: Request) -> JSONResponse:
        if proxy_token and request.headers.get("authorization", "") != f"Bearer {proxy_token}":
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        try:
            body = await request.json()
        except ValueError:
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)
        if not isinstance(body, dict):
            return JSONResponse({"error": "Invalid JSON body"}, status_code=400)

        corpid = body.get("corpid")
        corpsecret = body.get("corpsecret")
        messages = body.get("messages")
        if not corpid or not corpsecret or not isinstance(messages, list):
            return JSONResponse({"error": "Missing corpid, corpsecret, or messages"}, status_code=400)

        positions = [i for i, m in enumerate(messages) if isinstance(m, dict)]
        prepared = [_with_defaults(messages[i], body) for i in positions]
        try:
            token = await run_in_threadpool(get_access_token, corpid, corpsecret)
            sent = await run_in_threadpool(send_messages, token, prepared)
        except WeComError as exc:
            LOGGER.error("Relay failed: %s", exc)
            return JSONResponse({"error": str(exc)}, status_code=500)

        results: list[dict[str, Any]] = [
            {"index": i, "ok": False, "error": "Invalid message"} for i in range(len(messages))
        ]
        for position, outcome in zip(positions, sent):
            results[position] = {**outcome, "index": position}

        success = sum(1 for r in results if r["ok"])
        LOGGER.info("Relayed %s messages: %s ok, %s failed", len(results), success, len(results) - success)
        return JSONResponse({"success": success, "fail": len(results) - success, "results": results})

    return app


def _with_defaults(message: dict[str, Any], body: dict[str, Any]) -> dict[str, Any]:
    """Top-level agentid/touser fill in for messages that omit them."""
    prepared = dict(message)
    if not prepared.get("agentid") and body.get("agentid"):
        prepared["agentid"] = body["agentid"]
    if not prepared.get("touser") and not prepared.get("toparty") and not prepared.get("totag"):
        prepared["touser"] = body.get("touser") or "@all"
    return prepared


def main() -> None:
    import uvicorn

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    port = int(os.getenv("PORT", "9000"))
    uvicorn.run(create_app(os.getenv("PROXY_TOKEN", "")), host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()

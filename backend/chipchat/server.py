"""
FastAPI webhook binding for a ChipChat bot.

    bot = ChipChat(token=..., secret=...)
    app = create_app(bot)          # mount anywhere, or
    bot.start()                    # serve with uvicorn
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI, HTTPException, Request

if TYPE_CHECKING:
    from .core.bot import ChipChat

log = logging.getLogger("chipchat.server")

SIGNATURE_HEADER = "X-Hub-Signature"


def create_app(bot: "ChipChat") -> FastAPI:
    app = FastAPI(title="ChipChat bot", version="1.0.0")
    app.state.bot = bot

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post(bot.webhook)
    async def webhook(request: Request):
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Body is not valid JSON")
        signature = request.headers.get(SIGNATURE_HEADER)
        await bot.ingest(payload, signature)
        return {"ok": True}

    return app


def run(bot: "ChipChat", host: str = "0.0.0.0", port: int = 3000) -> None:
    import uvicorn

    from .logging_config import configure_logging
    log_file = configure_logging(bot.config)

    log.info("Listening  host=%s port=%d webhook=%s", host, port, bot.webhook)
    if log_file is not None:
        log.info("Log file: %s", log_file)
    uvicorn.run(create_app(bot), host=host, port=port)

import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from loguru import logger

from chat_relay.assets import StaticAssets
from chat_relay.provider import WorkersAIClient
from chat_relay.relay import handle_chat
from chat_relay.settings import Settings, load_settings

# ---------------- Routes ----------------
async def dispatch(request: Request):
    path = request.url.path
    state = request.app.state
    if path == "/" or not path.startswith("/api/"):
        return await state.assets.fetch(request)
    if path == "/api/chat":
        if request.method == "POST":
            return await handle_chat(request, state.settings, state.provider)
        return PlainTextResponse("Method not allowed", status_code=405)
    return PlainTextResponse("Not found", status_code=404)


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def create_app(settings: Optional[Settings] = None, provider=None, assets=None) -> FastAPI:
    """Build the relay app.

    ``provider`` needs ``run(model_id, inputs, return_raw_response=...)`` and
    ``assets`` needs ``fetch(request)``; both default to the real bindings.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="LLM Chat Relay", version="1.0.0", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.provider = provider or WorkersAIClient(settings)
    app.state.assets = assets or StaticAssets(settings.assets.directory)
    # no method list: every method, TRACE included, goes through dispatch
    app.add_route("/{path:path}", dispatch)

    logger.info("Chat relay ready: model={} assets={}", settings.provider.model_id, settings.assets.directory)
    return app


app = create_app()

if __name__ == "__main__":
    cfg = app.state.settings
    uvicorn.run("chat_relay.main:app", host=cfg.server.host, port=cfg.server.port)

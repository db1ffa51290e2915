from typing import List

from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger

from chat_relay.schemas import ChatMessage, ChatRequest, ErrorBody
from chat_relay.settings import Settings

FAILURE_MESSAGE = "Failed to process request"


def normalize_messages(messages: List[ChatMessage], system_prompt: str) -> List[ChatMessage]:
    """Prepend the default system message unless one is already present (anywhere)."""
    if any(m.role == "system" for m in messages):
        return messages
    return [ChatMessage(role="system", content=system_prompt)] + list(messages)


async def handle_chat(request: Request, settings: Settings, provider):
    """Relay one chat request to the provider and return its raw streamed response.

    Every failure (bad JSON, bad shape, provider or network error) becomes
    a 500 with a fixed JSON body.
    """
    try:
        body = await request.json()
        if body is None:
            raise ValueError("request body is null")
        # arrays, strings and numbers carry no "messages" field
        req = ChatRequest.model_validate(body if isinstance(body, dict) else {})
        messages = normalize_messages(req.messages, settings.provider.system_prompt)

        return await provider.run(
            settings.provider.model_id,
            {
                "messages": [m.model_dump() for m in messages],
                "max_tokens": settings.provider.max_tokens,
            },
            return_raw_response=True,
        )
    except Exception:
        logger.exception("Error processing chat request")
        return JSONResponse(ErrorBody(error=FAILURE_MESSAGE).model_dump(), status_code=500)

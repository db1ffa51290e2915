from typing import Any, Dict, Optional

import httpx
from loguru import logger
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from chat_relay.settings import Gateway, Settings

# Transport-level headers that belong to the upstream connection only
HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailer", "transfer-encoding", "upgrade",
}


class ProviderConfigError(RuntimeError):
    pass


class WorkersAIClient:
    """Minimal Workers AI REST client.

    Mirrors the Workers binding call ``AI.run(model, inputs, options)``:
    with ``return_raw_response=True`` the upstream HTTP response is handed
    back as a streaming ASGI response instead of being decoded.
    """

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.provider = settings.provider
        self.gateway = settings.gateway
        self.timeouts = settings.timeouts
        self.transport = transport

    def _url(self, model_id: str, gateway: Gateway) -> str:
        account = self.provider.account_id
        if gateway.id:
            return f"{gateway.base_url.rstrip('/')}/{account}/{gateway.id}/workers-ai/{model_id}"
        return f"{self.provider.base_url.rstrip('/')}/accounts/{account}/ai/run/{model_id}"

    def _headers(self, gateway: Gateway) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.provider.api_token}",
            "Content-Type": "application/json",
        }
        if gateway.id:
            headers["cf-aig-skip-cache"] = "true" if gateway.skip_cache else "false"
            if gateway.cache_ttl is not None:
                headers["cf-aig-cache-ttl"] = str(gateway.cache_ttl)
        return headers

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(connect=self.timeouts.connect, read=self.timeouts.read,
                                write=self.timeouts.connect, pool=self.timeouts.connect)
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def run(
        self,
        model_id: str,
        inputs: Dict[str, Any],
        return_raw_response: bool = False,
        gateway: Optional[Gateway] = None,
    ):
        if not self.provider.account_id or not self.provider.api_token:
            raise ProviderConfigError("CF_ACCOUNT_ID and CF_API_TOKEN must be set")

        gateway = gateway or self.gateway
        url = self._url(model_id, gateway)
        headers = self._headers(gateway)
        logger.debug("Workers AI run: model={} gateway={} raw={}", model_id, gateway.id or "-", return_raw_response)

        if not return_raw_response:
            async with self._client() as client:
                r = await client.post(url, json=inputs, headers=headers)
                r.raise_for_status()
                return r.json().get("result")

        payload = dict(inputs, stream=True)
        client = self._client()
        try:
            upstream = await client.send(client.build_request("POST", url, json=payload, headers=headers), stream=True)
        except Exception:
            await client.aclose()
            raise
        return raw_response(upstream, client)


def raw_response(upstream: httpx.Response, client: httpx.AsyncClient) -> StreamingResponse:
    """Wrap an open upstream response without decoding or buffering its body."""

    async def close():
        await upstream.aclose()
        await client.aclose()

    async def body():
        # finally also runs when the caller disconnects mid-stream
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        finally:
            await close()

    headers = {k: v for k, v in upstream.headers.items() if k.lower() not in HOP_BY_HOP}
    return StreamingResponse(
        body(),
        status_code=upstream.status_code,
        headers=headers,
        background=BackgroundTask(close),
    )

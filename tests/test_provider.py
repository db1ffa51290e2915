import asyncio
import json
from urllib.parse import unquote

import httpx
import pytest
from fastapi.testclient import TestClient

from chat_relay.main import create_app
from chat_relay.provider import ProviderConfigError, WorkersAIClient
from chat_relay.settings import SYSTEM_PROMPT, Gateway, Provider, Settings

SSE = b'data: {"response":"Hi"}\n\ndata: {"response":" there"}\n\ndata: [DONE]\n\n'


def _settings(**kw):
    return Settings(provider=Provider(account_id="acct", api_token="tok"), **kw)

def _recording_transport(seen, status=200, content=SSE, headers=None):
    # bytes content would be pre-read by httpx; a generator keeps the body a live stream
    async def body():
        for i in range(0, len(content), 16):
            yield content[i:i + 16]

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(status, headers=headers or {"content-type": "text/event-stream"}, content=body())
    return httpx.MockTransport(handler)

def test_relay_streams_workers_ai_bytes_end_to_end():
    seen = []
    settings = _settings()
    provider = WorkersAIClient(settings, transport=_recording_transport(seen))
    c = TestClient(create_app(settings, provider=provider))

    r = c.post("/api/chat", json={"messages": [{"role": "user", "content": "hello"}]})
    assert r.status_code == 200
    assert r.content == SSE
    assert r.headers["content-type"] == "text/event-stream"

    req = seen[0]
    assert req.method == "POST"
    assert req.url.host == "api.cloudflare.com"
    assert unquote(req.url.path) == "/client/v4/accounts/acct/ai/run/@cf/openai/gpt-oss-120b"
    assert req.headers["authorization"] == "Bearer tok"
    assert json.loads(req.content) == {
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "hello"},
        ],
        "max_tokens": 1024,
        "stream": True,
    }

def test_upstream_error_status_relayed_verbatim():
    seen = []
    body = b'{"success":false,"errors":[{"code":5006,"message":"bad input"}]}'
    settings = _settings()
    provider = WorkersAIClient(settings, transport=_recording_transport(
        seen, status=400, content=body, headers={"content-type": "application/json"}))
    c = TestClient(create_app(settings, provider=provider))
    r = c.post("/api/chat", json={"messages": []})
    assert r.status_code == 400
    assert r.content == body

def test_network_error_becomes_500():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)
    settings = _settings()
    provider = WorkersAIClient(settings, transport=httpx.MockTransport(handler))
    c = TestClient(create_app(settings, provider=provider))
    r = c.post("/api/chat", json={"messages": [{"role": "user", "content": "hi"}]})
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to process request"}

def test_missing_credentials_becomes_500():
    settings = Settings(provider=Provider(account_id="", api_token=""))
    c = TestClient(create_app(settings))
    r = c.post("/api/chat", json={"messages": []})
    assert r.status_code == 500
    assert r.content == b'{"error":"Failed to process request"}'

def test_missing_credentials_raise():
    client = WorkersAIClient(Settings(provider=Provider(account_id="acct", api_token="")))
    with pytest.raises(ProviderConfigError):
        asyncio.run(client.run("@cf/openai/gpt-oss-120b", {"messages": []}))

def test_gateway_url_and_cache_headers():
    seen = []
    settings = _settings(gateway=Gateway(id="gw", skip_cache=True, cache_ttl=60))
    client = WorkersAIClient(settings, transport=_recording_transport(
        seen, content=b'{"result":{"response":"ok"},"success":true}', headers={"content-type": "application/json"}))
    result = asyncio.run(client.run("@cf/openai/gpt-oss-120b", {"messages": [], "max_tokens": 1024}))
    assert result == {"response": "ok"}

    req = seen[0]
    assert req.url.host == "gateway.ai.cloudflare.com"
    assert unquote(req.url.path) == "/v1/acct/gw/workers-ai/@cf/openai/gpt-oss-120b"
    assert req.headers["cf-aig-skip-cache"] == "true"
    assert req.headers["cf-aig-cache-ttl"] == "60"
    assert "stream" not in json.loads(req.content)

def test_decoded_run_raises_on_http_error():
    seen = []
    client = WorkersAIClient(_settings(), transport=_recording_transport(seen, status=503, content=b"down"))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(client.run("@cf/openai/gpt-oss-120b", {"messages": []}))

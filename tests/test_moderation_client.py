import httpx
import pytest

from commit_gateway.app.services.moderation_client import ModerationClient, ModerationError

REAL_ASYNC_CLIENT = httpx.AsyncClient


def install_transport(monkeypatch, handler):
    transport = httpx.MockTransport(handler)

    def client_factory(*args, **kwargs):
        return REAL_ASYNC_CLIENT(transport=transport)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)


@pytest.mark.asyncio
async def test_classify_returns_rating_label(monkeypatch):
    seen = []

    async def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json={"rating_label": "everyone"})

    install_transport(monkeypatch, handler)
    label = await ModerationClient("https://mod.example.com/classify", api_key="k1").classify(
        "https://huggingface.co/datasets/acme/files/resolve/main/a.jpg"
    )

    assert label == "everyone"
    assert seen[0].params["url"] == "https://huggingface.co/datasets/acme/files/resolve/main/a.jpg"
    assert seen[0].params["key"] == "k1"


@pytest.mark.asyncio
async def test_classify_accepts_plain_label_field(monkeypatch):
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"label": "adult"})

    install_transport(monkeypatch, handler)
    assert await ModerationClient("https://mod.example.com/classify").classify("https://x/a.jpg") == "adult"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(503, text="unavailable"),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"score": 0.1}),
        httpx.Response(200, json=["everyone"]),
    ],
)
async def test_classify_failures_raise_moderation_error(monkeypatch, response):
    async def handler(request: httpx.Request) -> httpx.Response:
        return response

    install_transport(monkeypatch, handler)
    with pytest.raises(ModerationError):
        await ModerationClient("https://mod.example.com/classify").classify("https://x/a.jpg")


@pytest.mark.asyncio
async def test_classify_network_error(monkeypatch):
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    install_transport(monkeypatch, handler)
    with pytest.raises(ModerationError, match="failed"):
        await ModerationClient("https://mod.example.com/classify").classify("https://x/a.jpg")

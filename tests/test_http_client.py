import asyncio

import pytest

from chat_proxy.core import http_client

pytestmark = pytest.mark.anyio


@pytest.fixture(autouse=True)
async def reset_httpx_client():
    await http_client.close_http_client()
    yield
    await http_client.close_http_client()


async def test_get_http_client_requires_initialization():
    with pytest.raises(RuntimeError):
        http_client.get_http_client()


async def test_init_returns_singleton_instance():
    first = await http_client.init_http_client()
    second = await http_client.init_http_client()
    assert first is second
    assert http_client.get_http_client() is first


async def test_concurrent_init_builds_one_client():
    results = await asyncio.gather(
        http_client.init_http_client(),
        http_client.init_http_client(),
        http_client.init_http_client(),
    )
    assert results[0] is results[1] is results[2]


async def test_client_uses_streaming_timeouts():
    client = await http_client.init_http_client()
    assert client.timeout.read == 60.0
    assert client.timeout.connect == 10.0


async def test_close_resets_singleton():
    client = await http_client.init_http_client()
    await http_client.close_http_client()
    with pytest.raises(RuntimeError):
        http_client.get_http_client()
    new_client = await http_client.init_http_client()
    assert new_client is not client

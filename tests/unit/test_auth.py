"""Unit tests for the access token provider."""

from datetime import datetime, timedelta

import aiohttp
import pytest

from wholesale_orders.errors import AuthTokenError
from wholesale_orders.upstream.auth import AccessTokenProvider


class Clock:
    def __init__(self):
        self.now = datetime(2024, 3, 1, 12, 0, 0)

    def __call__(self):
        return self.now


def _provider(session, clock=None, **kwargs):
    return AccessTokenProvider(
        base_url="https://wms.example.com",
        client_id="client",
        client_secret="secret",
        session=session,
        clock=clock or Clock(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_token_is_fetched_once_and_cached(fake_session, fake_response):
    session = fake_session(fake_response(200, {"access_token": "tok-1", "expires_in": 3600}))
    provider = _provider(session)

    assert await provider.get_access_token() == "tok-1"
    assert await provider.get_access_token() == "tok-1"

    assert len(session.calls) == 1
    method, url, kwargs = session.calls[0]
    assert method == "POST"
    assert url == "https://wms.example.com/oauth/token"
    assert kwargs["json"] == {
        "grant_type": "client_credentials",
        "client_id": "client",
        "client_secret": "secret",
    }


@pytest.mark.asyncio
async def test_customer_id_is_sent_when_configured(fake_session, fake_response):
    session = fake_session(fake_response(200, {"access_token": "tok-1"}))
    provider = _provider(session, customer_id="cust-9")

    await provider.get_access_token()

    assert session.calls[0][2]["json"]["customer_id"] == "cust-9"


@pytest.mark.asyncio
async def test_token_expires_a_minute_early(fake_session, fake_response):
    clock = Clock()
    session = fake_session(
        fake_response(200, {"access_token": "tok-1", "expires_in": 3600}),
        fake_response(200, {"access_token": "tok-2", "expires_in": 3600}),
    )
    provider = _provider(session, clock=clock)

    await provider.get_access_token()
    assert provider.cached_token.expires_at == clock.now + timedelta(seconds=3540)

    clock.now += timedelta(seconds=3539)
    assert await provider.get_access_token() == "tok-1"

    clock.now += timedelta(seconds=1)
    assert await provider.get_access_token() == "tok-2"


@pytest.mark.asyncio
async def test_configured_expiry_used_when_response_omits_it(fake_session, fake_response):
    clock = Clock()
    session = fake_session(fake_response(200, {"access_token": "tok-1"}))
    provider = _provider(session, clock=clock, token_expiry_seconds=600)

    await provider.get_access_token()

    assert provider.cached_token.expires_at == clock.now + timedelta(seconds=540)


@pytest.mark.asyncio
async def test_short_lived_token_is_still_cached(fake_session, fake_response):
    clock = Clock()
    session = fake_session(fake_response(200, {"access_token": "tok-1", "expires_in": 60}))
    provider = _provider(session, clock=clock)

    await provider.get_access_token()
    assert provider.cached_token.expires_at == clock.now + timedelta(seconds=30)

    clock.now += timedelta(seconds=29)
    assert await provider.get_access_token() == "tok-1"
    assert len(session.calls) == 1


@pytest.mark.asyncio
async def test_non_numeric_expiry_is_token_error(fake_session, fake_response):
    session = fake_session(fake_response(200, {"access_token": "tok-1", "expires_in": "soon"}))
    provider = _provider(session)

    with pytest.raises(AuthTokenError, match="invalid expires_in"):
        await provider.get_access_token()

    assert provider.cached_token is None


@pytest.mark.asyncio
async def test_clear_token_forces_new_exchange(fake_session, fake_response):
    session = fake_session(
        fake_response(200, {"access_token": "tok-1"}),
        fake_response(200, {"access_token": "tok-2"}),
    )
    provider = _provider(session)

    await provider.get_access_token()
    provider.clear_token()

    assert provider.cached_token is None
    assert await provider.get_access_token() == "tok-2"


@pytest.mark.asyncio
async def test_invalid_credentials(fake_session, fake_response):
    provider = _provider(fake_session(fake_response(401, {"error": "invalid_client"})))

    with pytest.raises(AuthTokenError, match="Invalid Extensiv credentials"):
        await provider.get_access_token()


@pytest.mark.asyncio
async def test_missing_access_token(fake_session, fake_response):
    provider = _provider(fake_session(fake_response(200, {"token_type": "bearer"})))

    with pytest.raises(AuthTokenError, match="No access token received"):
        await provider.get_access_token()


@pytest.mark.asyncio
async def test_network_failure(fake_session):
    provider = _provider(fake_session(aiohttp.ClientConnectionError("refused")))

    with pytest.raises(AuthTokenError, match="Failed to obtain Extensiv access token"):
        await provider.get_access_token()


@pytest.mark.asyncio
async def test_close_keeps_shared_session_open(fake_session):
    session = fake_session()
    provider = _provider(session)

    await provider.close()

    assert session.closed is False

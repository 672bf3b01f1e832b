"""Tests for the bearer-token credential cache."""
import asyncio
import base64

import pytest

from niv_backend.ehr.credential_cache import CredentialCache, CredentialExchangeError


@pytest.fixture
def cache(http_client, clock):
    return CredentialCache(
        http_client=http_client,
        base_url="https://pcc.test",
        client_id="test-client",
        client_secret="test-secret",
        buffer_seconds=300,
        clock=clock,
    )


class TestTokenExchange:

    @pytest.mark.asyncio
    async def test_exchange_request_shape(self, cache, fake_pcc):
        token = await cache.get_token()

        assert token == "token-1"
        request = fake_pcc.token_requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://pcc.test/auth/token"
        assert request.content == b"grant_type=client_credentials"
        assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
        expected = base64.b64encode(b"test-client:test-secret").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_expiry_is_relative_to_clock(self, cache, clock):
        await cache.get_token()
        assert cache.credential.expires_at == clock.now + 3600


class TestReuse:

    @pytest.mark.asyncio
    async def test_token_reused_outside_buffer(self, cache, clock, fake_pcc):
        first = await cache.get_token()
        clock.advance(3600 - 301)
        second = await cache.get_token()

        assert first == second
        assert len(fake_pcc.token_requests) == 1

    @pytest.mark.asyncio
    async def test_token_refreshed_inside_buffer(self, cache, clock, fake_pcc):
        await cache.get_token()
        clock.advance(3600 - 300)
        token = await cache.get_token()

        assert token == "token-2"
        assert len(fake_pcc.token_requests) == 2


class TestSingleFlight:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_exchange(self, cache, fake_pcc):
        fake_pcc.token_delay = 0.01

        tokens = await asyncio.gather(*(cache.get_token() for _ in range(10)))

        assert set(tokens) == {"token-1"}
        assert len(fake_pcc.token_requests) == 1
        assert cache.exchange_count == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_rejected_exchange_raises_and_leaves_cache_empty(self, cache, fake_pcc):
        fake_pcc.token_status = 401

        with pytest.raises(CredentialExchangeError) as exc_info:
            await cache.get_token()

        assert exc_info.value.status_code == 401
        assert cache.credential is None

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self, cache, fake_pcc):
        fake_pcc.token_status = 503
        with pytest.raises(CredentialExchangeError):
            await cache.get_token()

        fake_pcc.token_status = 200
        assert await cache.get_token() == "token-1"
        assert len(fake_pcc.token_requests) == 2


class TestInvalidate:

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_exchange(self, cache, fake_pcc):
        await cache.get_token()
        cache.invalidate()
        assert await cache.get_token() == "token-2"

    @pytest.mark.asyncio
    async def test_stale_rejection_does_not_drop_newer_token(self, cache):
        await cache.get_token()
        cache.invalidate(rejected_token="token-1")
        newer = await cache.get_token()

        cache.invalidate(rejected_token="token-1")

        assert cache.credential is not None
        assert cache.credential.token == newer

    @pytest.mark.asyncio
    async def test_matching_rejection_drops_token(self, cache):
        token = await cache.get_token()
        cache.invalidate(rejected_token=token)
        assert cache.credential is None

"""OAuth client-credentials token cache for the PointClickCare API."""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from niv_backend.config.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_PATH = "/auth/token"
DEFAULT_REFRESH_BUFFER_SECONDS = 300


class CredentialExchangeError(Exception):
    """The token endpoint rejected the exchange or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CachedCredential:
    """Bearer token and its absolute expiry (epoch seconds)."""
    token: str
    expires_at: float

    def is_fresh(self, now: float, buffer_seconds: float) -> bool:
        return now < self.expires_at - buffer_seconds


class CredentialCache:
    """
    Process-local bearer-token cache with single-flight refresh.

    Concurrent callers that find the cache stale wait on one lock; the first
    performs the exchange and the rest reuse its result.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str,
        client_id: str,
        client_secret: str,
        buffer_seconds: float = DEFAULT_REFRESH_BUFFER_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self._http_client = http_client
        self._token_url = f"{base_url.rstrip('/')}{TOKEN_PATH}"
        self._client_id = client_id
        self._client_secret = client_secret
        self._buffer_seconds = buffer_seconds
        self._clock = clock
        self._credential: Optional[CachedCredential] = None
        self._lock = asyncio.Lock()
        self.exchange_count = 0

    @property
    def credential(self) -> Optional[CachedCredential]:
        return self._credential

    async def get_token(self) -> str:
        """Return a usable bearer token, exchanging credentials if needed."""
        cached = self._credential
        if cached is not None and cached.is_fresh(self._clock(), self._buffer_seconds):
            return cached.token

        async with self._lock:
            # Another waiter may have refreshed while we were queued.
            cached = self._credential
            if cached is not None and cached.is_fresh(self._clock(), self._buffer_seconds):
                return cached.token
            self._credential = await self._exchange()
            return self._credential.token

    def invalidate(self, rejected_token: Optional[str] = None) -> None:
        """
        Drop the cached token.

        Args:
            rejected_token: Token the server just refused; if the cache
                already holds a different one, nothing is dropped
        """
        if rejected_token is not None and self._credential is not None:
            if self._credential.token != rejected_token:
                return
        if self._credential is not None:
            logger.info("Cached EHR credential invalidated")
        self._credential = None

    async def _exchange(self) -> CachedCredential:
        self.exchange_count += 1
        try:
            response = await self._http_client.post(
                self._token_url,
                data={"grant_type": "client_credentials"},
                auth=httpx.BasicAuth(self._client_id, self._client_secret),
                headers={"Accept": "application/json"},
            )
            response.raise_for_status()
            payload = response.json()
            token = payload["access_token"]
            expires_in = float(payload.get("expires_in", 0))
        except httpx.HTTPStatusError as e:
            logger.error("EHR token exchange rejected", status_code=e.response.status_code)
            raise CredentialExchangeError(
                f"Token exchange failed with status code {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            logger.error("EHR token exchange transport error", error_type=type(e).__name__)
            raise CredentialExchangeError(f"Token exchange network error: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            logger.error("EHR token exchange returned malformed payload", error_type=type(e).__name__)
            raise CredentialExchangeError("Token exchange returned a malformed payload") from e

        credential = CachedCredential(token=token, expires_at=self._clock() + expires_in)
        logger.info("EHR credential refreshed", expires_in=expires_in)
        return credential

"""Authenticated HTTP client for the PointClickCare public API.

Every call carries a bearer token from the credential cache. A 401 on the
first attempt invalidates that token and the call is re-issued once with a
fresh one; any other failure is classified into an OnboardingError.
"""
import ssl
from typing import Any, Dict, Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt

from niv_backend.config.logging_config import get_logger
from niv_backend.config.request_context import get_correlation_id
from niv_backend.config.settings import Settings, get_settings
from niv_backend.models.errors import OnboardingError
from .credential_cache import CredentialCache, CredentialExchangeError
from .error_classifier import AUTH_STATUS_CODES, classify_error

logger = get_logger(__name__)

MAX_ATTEMPTS = 2


class _TokenRejected(Exception):
    """Internal signal: the API answered 401 for the token we sent."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"Bearer token rejected with status code {response.status_code}")
        self.status_code = response.status_code


def build_ssl_context(cert_path: str, key_path: str) -> ssl.SSLContext:
    """Default-verifying TLS context that presents our client certificate."""
    context = ssl.create_default_context()
    context.load_cert_chain(certfile=cert_path, keyfile=key_path)
    return context


class PccApiClient:
    """
    PointClickCare API client.

    Owns its ``httpx.AsyncClient`` (mTLS) and its CredentialCache; both can
    be injected for tests.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        credentials: Optional[CredentialCache] = None,
    ):
        self._settings = settings or get_settings()
        self._base_url = self._settings.pcc_base_url
        if http_client is None:
            http_client = httpx.AsyncClient(
                verify=build_ssl_context(self._settings.pcc_cert_path, self._settings.pcc_key_path),
                timeout=self._settings.pcc_timeout_seconds,
            )
        self._http_client = http_client
        self._credentials = credentials or CredentialCache(
            http_client=self._http_client,
            base_url=self._base_url,
            client_id=self._settings.pcc_client_id or "",
            client_secret=self._settings.pcc_client_secret or "",
            buffer_seconds=self._settings.token_refresh_buffer_seconds,
        )
        logger.info("PCC API client initialized", base_url=self._base_url)

    @property
    def credentials(self) -> CredentialCache:
        return self._credentials

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        operation: str = "pcc_get",
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request("GET", path, params=params, operation=operation, context=context)

    async def post(
        self,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        operation: str = "pcc_post",
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request("POST", path, body=body, operation=operation, context=context)

    async def put(
        self,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        operation: str = "pcc_put",
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        return await self._request("PUT", path, body=body, operation=operation, context=context)

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        operation: str = "pcc_request",
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Issue one logical API call.

        Args:
            method: HTTP method
            path: Path appended to the configured base URL
            params: Query parameters
            body: JSON body
            operation: Logical operation name used for error classification
            context: Identifiers carried onto any resulting error

        Returns:
            Decoded JSON body (None for an empty response)

        Raises:
            OnboardingError: On any failure after the single auth retry
        """
        url = f"{self._base_url}{path}"
        context = dict(context or {})

        logger.debug("PCC request", method=method, path=path, operation=operation)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(MAX_ATTEMPTS),
                retry=retry_if_exception_type(_TokenRejected),
                reraise=True,
            ):
                with attempt:
                    response = await self._send(
                        method, url, params, body, attempt.retry_state.attempt_number
                    )
        except _TokenRejected:
            logger.error("PCC rejected refreshed credentials", operation=operation, path=path)
            raise OnboardingError.pcc_unauthorized(operation, {**context, "status_code": 401})
        except CredentialExchangeError as e:
            raise self._exchange_failure(e, operation, context) from e
        except OnboardingError:
            raise
        except Exception as e:
            error = classify_error(e, operation, context)
            logger.warning(
                "PCC request failed",
                operation=operation,
                path=path,
                error_code=error.code.value,
                status_code=error.context.get("status_code"),
            )
            raise error from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning(
                "PCC returned a non-JSON body",
                operation=operation,
                path=path,
                content_type=response.headers.get("Content-Type"),
            )
            raise OnboardingError.pcc_unavailable(operation, {**context, "malformed_response": True}) from e

    @staticmethod
    def _exchange_failure(
        error: CredentialExchangeError, operation: str, context: Dict[str, Any]
    ) -> OnboardingError:
        """
        Classify a failed token exchange.

        Never PATIENT_NOT_FOUND: a 404 here is the token endpoint, not the
        resource being looked up.
        """
        context = {**context, "credential_exchange": True}
        if error.status_code is not None:
            context["exchange_status_code"] = error.status_code
        logger.error(
            "PCC credential exchange failed",
            operation=operation,
            exchange_status_code=error.status_code,
        )
        if error.status_code in AUTH_STATUS_CODES:
            return OnboardingError.pcc_unauthorized(operation, context)
        return OnboardingError.pcc_unavailable(operation, context)

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]],
        body: Optional[Dict[str, Any]],
        attempt_number: int,
    ) -> httpx.Response:
        token = await self._credentials.get_token()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        correlation_id = get_correlation_id()
        if correlation_id:
            headers["X-Correlation-ID"] = correlation_id

        response = await self._http_client.request(
            method, url, params=params, json=body, headers=headers
        )
        if response.status_code == 401:
            if attempt_number == 1:
                logger.warning("PCC returned 401, refreshing credentials", url=url)
                self._credentials.invalidate(rejected_token=token)
            raise _TokenRejected(response)
        response.raise_for_status()
        return response

    async def test_connection(self) -> bool:
        """Check that a credential exchange succeeds."""
        try:
            self._credentials.invalidate()
            await self._credentials.get_token()
            return True
        except Exception as e:
            logger.warning("PCC connection test failed", error_type=type(e).__name__, error=str(e))
            return False

    def certificates_loadable(self) -> bool:
        """Whether the configured client certificate and key can be loaded."""
        try:
            build_ssl_context(self._settings.pcc_cert_path, self._settings.pcc_key_path)
            return True
        except (OSError, ssl.SSLError) as e:
            logger.warning("PCC client certificate could not be loaded", error=str(e))
            return False

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._http_client.aclose()


# Global instance
_pcc_client: Optional[PccApiClient] = None


def get_pcc_client() -> PccApiClient:
    """Get or create the global PCC API client instance."""
    global _pcc_client
    if _pcc_client is None:
        _pcc_client = PccApiClient()
    return _pcc_client


async def close_pcc_client() -> None:
    global _pcc_client
    if _pcc_client is not None:
        await _pcc_client.close()
        _pcc_client = None

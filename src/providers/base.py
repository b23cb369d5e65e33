"""Base classes for provider clients.

All provider clients:
- Wrap one external REST API
- Authenticate with the caller's bearer token, supplied per call
- Log every outbound request and its outcome
- Keep no state between invocations
"""

from dataclasses import dataclass
from typing import Any, Optional, TypeVar

import httpx

from shared.config import ProviderCredentials, Settings
from shared.logging import EventLogger
from shared.models import ProviderFamily, ToolParameter


class ProviderError(Exception):
    """A provider API call failed; the message is safe to show callers."""
    pass


RATE_LIMITED = "Rate limit exceeded. Please wait before retrying."

MAX_RESULTS = 100


def result_count(value: Any, default: int, maximum: int = MAX_RESULTS) -> int:
    """Coerce a caller-supplied page size to 1..maximum; unparseable values give ``default``."""
    try:
        count = int(value) if value is not None else default
    except (TypeError, ValueError):
        count = default
    return max(1, min(count, maximum))


class ProviderClient:
    """
    Base client for provider REST APIs.

    Opens an ``httpx.AsyncClient`` per request, so nothing is pooled
    between invocations.
    """

    api_name = "Provider"
    base_url = ""
    extra_headers: dict[str, str] = {}

    def __init__(
        self,
        access_token: Optional[str],
        events: EventLogger,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not access_token:
            raise ProviderError(f"{self.api_name} API access token is required.")
        self.access_token = access_token
        self.events = events
        self.timeout = timeout
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
            **self.extra_headers,
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        failure: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Optional[dict[str, Any]] = None,
        forbidden: Optional[str] = None,
        rate_limited: str = RATE_LIMITED,
    ) -> Any:
        """
        Make one request to the provider API.

        Args:
            method: HTTP method
            endpoint: Path relative to ``base_url``
            failure: Message raised for any failure not mapped below
            params: Query parameters
            json: JSON body
            forbidden: Message raised on HTTP 403, if the call has one
            rate_limited: Message raised on HTTP 429

        Returns:
            Decoded JSON body, or an empty dict for empty responses

        Raises:
            ProviderError: On any transport or HTTP failure
        """
        elapsed = self.events.start_timer()
        self.events.api_call(
            self.api_name,
            endpoint,
            method,
            payload=json if json is not None else params,
            headers=self._headers(),
        )

        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method, endpoint, params=params, json=json, headers=self._headers()
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            self.events.api_response(
                self.api_name,
                endpoint,
                status_code,
                response=_decode(e.response),
                error=f"Request failed with status code {status_code}",
                duration_ms=elapsed(),
            )
            if status_code == 403 and forbidden:
                raise ProviderError(forbidden) from e
            if status_code == 429:
                raise ProviderError(rate_limited) from e
            raise ProviderError(failure) from e
        except httpx.HTTPError as e:
            self.events.api_response(
                self.api_name, endpoint, None, error=str(e) or type(e).__name__, duration_ms=elapsed()
            )
            raise ProviderError(failure) from e

        body = _decode(response)
        self.events.api_response(
            self.api_name, endpoint, response.status_code, response=body, duration_ms=elapsed()
        )
        return body if body is not None else {}


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


ClientT = TypeVar("ClientT", bound=ProviderClient)


@dataclass
class ProviderContext:
    """
    Everything provider executors need, built once at startup.

    ``transport`` and ``llm`` are injection points for tests.
    """
    settings: Settings
    events: EventLogger
    transport: Optional[httpx.AsyncBaseTransport] = None
    llm: Optional[Any] = None

    @property
    def http_timeout(self) -> float:
        return self.settings.gateway.http_timeout_seconds

    def credentials(self, family: ProviderFamily) -> ProviderCredentials:
        return self.settings.provider_credentials()[family.value]

    def client(self, client_cls: type[ClientT], arguments: dict[str, Any]) -> ClientT:
        """Build a per-call client from the caller's ``accessToken``."""
        return client_cls(
            arguments.get("accessToken"),
            self.events,
            timeout=self.http_timeout,
            transport=self.transport,
        )


def access_token_parameter(provider: str) -> ToolParameter:
    """The ``accessToken`` declaration shared by every provider tool."""
    return ToolParameter(
        name="accessToken",
        type="string",
        description=f"The OAuth 2.0 access token for the user's {provider} account.",
    )

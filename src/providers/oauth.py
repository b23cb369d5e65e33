"""OAuth 2.0 authorization-code helpers.

Builds authorization URLs (with PKCE where the provider requires it) and
exchanges codes for tokens against each provider's token endpoint. All
exchange state is handed back to the caller; nothing is kept here.
"""

import base64
import hashlib
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote, urlencode

import httpx

from shared.config import ProviderCredentials
from shared.logging import EventLogger
from shared.models import AuthorizationRequest, ProviderFamily, TokenGrant, ToolParameter
from shared.redaction import truncate_secret
from gateway.registry import OperationRegistry
from providers.base import ProviderContext


class OAuthError(Exception):
    """Token endpoint rejected the request or could not be reached."""
    pass


def generate_state() -> str:
    """Random CSRF state: 16 bytes, hex encoded."""
    return secrets.token_hex(16)


def generate_code_verifier() -> str:
    """Random PKCE verifier: 32 bytes, base64url without padding (43 chars)."""
    return secrets.token_urlsafe(32)


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge for a verifier."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def _error_description(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("error_description")
    return None


def _nested_error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"].get("message")
    return None


def _error_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        return body.get("error_message")
    return None


@dataclass(frozen=True)
class OAuthProviderSpec:
    """Static description of one provider's OAuth endpoints."""
    family: ProviderFamily
    display_name: str
    authorize_url: str
    token_url: str
    default_scope: str
    invalid_grant_hint: str
    invalid_client_hint: str
    describe_error: Callable[[Any], Optional[str]] = _error_description
    use_pkce: bool = False
    token_method: str = "POST"
    basic_auth: bool = False
    supports_refresh: bool = False


LINKEDIN = OAuthProviderSpec(
    family=ProviderFamily.LINKEDIN,
    display_name="LinkedIn",
    authorize_url="https://www.linkedin.com/oauth/v2/authorization",
    token_url="https://www.linkedin.com/oauth/v2/accessToken",
    default_scope="openid profile w_member_social",
    invalid_grant_hint=(
        "Invalid authorization code or callback URL mismatch. Ensure the callback URL "
        "matches exactly what was used in the authorization request."
    ),
    invalid_client_hint=(
        "Invalid client credentials. Check your LinkedIn API key and secret in the configuration."
    ),
)

TWITTER = OAuthProviderSpec(
    family=ProviderFamily.TWITTER,
    display_name="Twitter",
    authorize_url="https://twitter.com/i/oauth2/authorize",
    token_url="https://api.twitter.com/2/oauth2/token",
    default_scope="tweet.read tweet.write users.read offline.access",
    invalid_grant_hint="Invalid authorization code, code verifier, or callback URL mismatch.",
    invalid_client_hint="Invalid client credentials. Check your Twitter Client ID and Secret.",
    use_pkce=True,
    basic_auth=True,
    supports_refresh=True,
)

FACEBOOK = OAuthProviderSpec(
    family=ProviderFamily.FACEBOOK,
    display_name="Facebook",
    authorize_url="https://www.facebook.com/v19.0/dialog/oauth",
    token_url="https://graph.facebook.com/v19.0/oauth/access_token",
    default_scope="public_profile,email,pages_manage_posts,pages_read_engagement",
    invalid_grant_hint="Invalid authorization code or callback URL mismatch.",
    invalid_client_hint="Invalid client credentials. Check your Facebook App ID and Secret.",
    describe_error=_nested_error_message,
    token_method="GET",
)

INSTAGRAM = OAuthProviderSpec(
    family=ProviderFamily.INSTAGRAM,
    display_name="Instagram",
    authorize_url="https://api.instagram.com/oauth/authorize",
    token_url="https://api.instagram.com/oauth/access_token",
    default_scope="user_profile,user_media",
    invalid_grant_hint="Invalid authorization code or callback URL mismatch.",
    invalid_client_hint="Invalid client credentials. Check your Instagram App ID and Secret.",
    describe_error=_error_message,
)


class OAuthClient:
    """
    Authorization-code client for one provider.

    Client credentials come from configuration; a missing credential
    raises ``ConfigurationError`` naming the variable to set.
    """

    def __init__(
        self,
        spec: OAuthProviderSpec,
        credentials: ProviderCredentials,
        events: EventLogger,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.spec = spec
        self.credentials = credentials
        self.events = events
        self.timeout = timeout
        self.transport = transport

    def build_authorization_url(
        self,
        redirect_url: str,
        state: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> AuthorizationRequest:
        """
        Build the URL the user visits to grant access. No network call.

        For PKCE providers a fresh verifier is generated and returned; the
        caller must present it again to ``exchange_code``.
        """
        state = state or generate_state()
        scope = scope or self.spec.default_scope
        params = {
            "response_type": "code",
            "client_id": self.credentials.require_client_id(),
            "redirect_uri": redirect_url,
            "state": state,
            "scope": scope,
        }

        code_verifier = None
        if self.spec.use_pkce:
            code_verifier = generate_code_verifier()
            params["code_challenge"] = generate_code_challenge(code_verifier)
            params["code_challenge_method"] = "S256"

        # Spaces as %20; ":" and "/" percent-encoded
        url = f"{self.spec.authorize_url}?{urlencode(params, quote_via=quote)}"

        return AuthorizationRequest(
            authorization_url=url,
            state=state,
            callback_url=redirect_url,
            scope=scope,
            code_verifier=code_verifier,
        )

    async def exchange_code(
        self,
        code: str,
        redirect_url: str,
        code_verifier: Optional[str] = None,
    ) -> TokenGrant:
        """
        Exchange an authorization code for tokens.

        Raises:
            OAuthError: With a message describing what the caller should fix
        """
        name = self.spec.display_name
        if self.spec.use_pkce and not code_verifier:
            raise OAuthError(f"{name} OAuth Error: code verifier is required for PKCE exchange.")

        client_id, client_secret = self.credentials.require_credentials()
        params: dict[str, str] = {
            "code": code,
            "redirect_uri": redirect_url,
        }
        if self.spec.token_method == "POST":
            params["grant_type"] = "authorization_code"
        if not self.spec.basic_auth:
            params["client_id"] = client_id
            params["client_secret"] = client_secret
        if code_verifier:
            params["code_verifier"] = code_verifier

        elapsed = self.events.start_timer()
        self.events.info(
            f"{name} token exchange started",
            code=truncate_secret(code),
            callback_url=redirect_url,
        )

        try:
            data = await self._token_request(params, (client_id, client_secret))
            grant = self._grant(data)
        except httpx.HTTPStatusError as e:
            message = self._status_message(
                e.response, "OAuth Error", self.spec.invalid_grant_hint,
                self.spec.invalid_client_hint,
            ) or f"Failed to exchange authorization code for access token: {_status_text(e)}"
            self._log_failure("token exchange", message, elapsed(), code=truncate_secret(code), callback_url=redirect_url)
            raise OAuthError(message) from e
        except httpx.HTTPError as e:
            message = f"Failed to exchange authorization code for access token: {str(e) or type(e).__name__}"
            self._log_failure("token exchange", message, elapsed(), code=truncate_secret(code), callback_url=redirect_url)
            raise OAuthError(message) from e
        except OAuthError as e:
            self._log_failure("token exchange", str(e), elapsed(), code=truncate_secret(code), callback_url=redirect_url)
            raise

        self.events.info(
            f"{name} token exchange succeeded",
            duration_ms=elapsed(),
            expires_in=grant.expires_in,
            refresh_issued=grant.refresh_token is not None,
            scope=grant.scope,
        )
        return grant

    async def refresh(self, refresh_token: str) -> TokenGrant:
        """
        Trade a refresh token for a new access token.

        If the provider does not rotate the refresh token, the presented
        one is returned in the grant.
        """
        name = self.spec.display_name
        if not self.spec.supports_refresh:
            raise OAuthError(f"{name} does not support token refresh.")

        client_id, client_secret = self.credentials.require_credentials()
        params = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        if not self.spec.basic_auth:
            params["client_id"] = client_id
            params["client_secret"] = client_secret

        elapsed = self.events.start_timer()
        self.events.info(f"{name} token refresh started", presented=truncate_secret(refresh_token))

        try:
            data = await self._token_request(params, (client_id, client_secret))
            grant = self._grant(data)
        except httpx.HTTPStatusError as e:
            message = self._status_message(
                e.response, "Token Refresh Error",
                "Invalid refresh token. You may need to re-authenticate.",
                "Invalid client credentials or refresh token has been revoked. Re-authentication required.",
            ) or f"Failed to refresh access token: {_status_text(e)}. You may need to re-authenticate."
            self._log_failure("token refresh", message, elapsed(), presented=truncate_secret(refresh_token))
            raise OAuthError(message) from e
        except httpx.HTTPError as e:
            message = (
                f"Failed to refresh access token: {str(e) or type(e).__name__}. "
                "You may need to re-authenticate."
            )
            self._log_failure("token refresh", message, elapsed(), presented=truncate_secret(refresh_token))
            raise OAuthError(message) from e
        except OAuthError as e:
            self._log_failure("token refresh", str(e), elapsed(), presented=truncate_secret(refresh_token))
            raise

        if grant.refresh_token is None:
            grant = grant.model_copy(update={"refresh_token": refresh_token})
            rotated = False
        else:
            rotated = True

        self.events.info(
            f"{name} token refresh succeeded",
            duration_ms=elapsed(),
            expires_in=grant.expires_in,
            rotated=rotated,
            scope=grant.scope,
        )
        return grant

    async def _token_request(self, params: dict[str, str], client_auth: tuple[str, str]) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            if self.spec.token_method == "GET":
                response = await client.get(self.spec.token_url, params=params)
            else:
                response = await client.post(
                    self.spec.token_url,
                    data=params,
                    auth=client_auth if self.spec.basic_auth else None,
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                )
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                raise OAuthError(
                    f"{self.spec.display_name} OAuth Error: token response was not valid JSON."
                ) from e

    def _status_message(
        self,
        response: httpx.Response,
        label: str,
        bad_request: str,
        unauthorized: str,
    ) -> Optional[str]:
        name = self.spec.display_name
        if response.status_code == 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            return f"{name} {label}: {self.spec.describe_error(body) or bad_request}"
        if response.status_code == 401:
            return f"{name} {label}: {unauthorized}"
        return None

    def _grant(self, data: Any) -> TokenGrant:
        if not isinstance(data, dict) or not data.get("access_token"):
            raise OAuthError(
                f"{self.spec.display_name} OAuth Error: token response did not include an access token."
            )
        user_id = data.get("user_id")
        return TokenGrant(
            access_token=data["access_token"],
            token_type=data.get("token_type"),
            expires_in=data.get("expires_in"),
            refresh_token=data.get("refresh_token"),
            refresh_token_expires_in=data.get("refresh_token_expires_in"),
            scope=data.get("scope"),
            user_id=str(user_id) if user_id is not None else None,
        )

    def _log_failure(self, action: str, message: str, duration_ms: float, **fields: Any) -> None:
        self.events.error(
            f"{self.spec.display_name} {action} failed",
            error=message,
            duration_ms=duration_ms,
            **fields,
        )


def _status_text(error: httpx.HTTPStatusError) -> str:
    return f"Request failed with status code {error.response.status_code}"


def _drop_empty(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


def register_oauth_tools(
    registry: OperationRegistry,
    context: ProviderContext,
    spec: OAuthProviderSpec,
    usage: list[str],
) -> None:
    """Register get<P>AuthUrl, exchange<P>AuthCode and, if supported, refresh."""
    name = spec.display_name

    def client() -> OAuthClient:
        return OAuthClient(
            spec,
            context.credentials(spec.family),
            context.events,
            timeout=context.http_timeout,
            transport=context.transport,
        )

    def get_auth_url(args: dict[str, Any]) -> dict[str, Any]:
        request = client().build_authorization_url(
            args["callbackUrl"], state=args.get("state"), scope=args.get("scope")
        )
        steps = [
            "Direct the user to open the authorizationUrl in their browser",
            "User will authenticate and authorize the application",
            f'{name} will redirect to the callbackUrl with a "code" parameter',
            'Extract the "code" from the callback URL query parameters',
        ]
        if spec.use_pkce:
            steps.insert(0, "IMPORTANT: Save the codeVerifier - you will need it for token exchange!")
            steps.append(f"Use the exchange{name}AuthCode tool with both the code and codeVerifier")
        else:
            steps.append(f"Use the exchange{name}AuthCode tool with the code to receive an access_token")
        steps.append(f"Use the returned access_token with other {name} tools")

        return _drop_empty({
            "authorizationUrl": request.authorization_url,
            "state": request.state,
            "codeVerifier": request.code_verifier,
            "callbackUrl": request.callback_url,
            "scope": request.scope,
            "instructions": [f"{i}. {step}" for i, step in enumerate(steps, start=1)],
        })

    async def exchange_auth_code(args: dict[str, Any]) -> dict[str, Any]:
        grant = await client().exchange_code(
            args["code"], args["callbackUrl"], code_verifier=args.get("codeVerifier")
        )
        return _drop_empty({
            "success": True,
            "message": (
                f"Successfully authenticated with {name}! "
                f"You can now use the access_token with other {name} tools."
            ),
            "accessToken": grant.access_token,
            "tokenType": grant.token_type,
            "expiresIn": grant.expires_in,
            "refreshToken": grant.refresh_token,
            "refreshTokenExpiresIn": grant.refresh_token_expires_in,
            "scope": grant.scope,
            "userId": grant.user_id,
            "usage": ["Use this accessToken with tools like:", *usage],
        })

    callback_param = ToolParameter(
        name="callbackUrl",
        description=(
            f"The URL where {name} will redirect after authorization. This must match "
            f"exactly with the URL registered in your {name} App settings."
        ),
    )

    registry.register_tool(
        name=f"get{name}AuthUrl",
        description=(
            f"Generates the {name} OAuth 2.0 authorization URL"
            f"{' with PKCE' if spec.use_pkce else ''} to initiate user authentication. "
            "Returns a URL that the user must visit in their browser to authorize the application."
        ),
        family=spec.family,
        parameters=[
            callback_param,
            ToolParameter(
                name="state",
                description=(
                    "Optional CSRF protection state parameter. If not provided, "
                    "a random state will be generated."
                ),
                required=False,
            ),
            ToolParameter(
                name="scope",
                description=f'Optional permissions scope. Default: "{spec.default_scope}"',
                required=False,
            ),
        ],
        executor=get_auth_url,
    )

    exchange_params = [
        ToolParameter(
            name="code",
            description=f"The authorization code received from {name} OAuth callback",
        ),
    ]
    if spec.use_pkce:
        exchange_params.append(ToolParameter(
            name="codeVerifier",
            description=(
                "The code verifier that was generated during the authorization URL creation."
            ),
        ))
    exchange_params.append(ToolParameter(
        name="callbackUrl",
        description="The same callback URL that was used in the authorization request.",
    ))

    registry.register_tool(
        name=f"exchange{name}AuthCode",
        description=(
            f"Exchanges a {name} authorization code for an access token that can be "
            f"used with other {name} tools."
        ),
        family=spec.family,
        parameters=exchange_params,
        executor=exchange_auth_code,
    )

    if not spec.supports_refresh:
        return

    async def refresh_token(args: dict[str, Any]) -> dict[str, Any]:
        grant = await client().refresh(args["refreshToken"])
        return _drop_empty({
            "success": True,
            "message": f"Successfully refreshed {name} access token! Use the new access_token with {name} tools.",
            "accessToken": grant.access_token,
            "tokenType": grant.token_type,
            "expiresIn": grant.expires_in,
            "refreshToken": grant.refresh_token,
            "scope": grant.scope,
            "note": "Store the new accessToken and refreshToken securely. The old access token is now invalid.",
        })

    registry.register_tool(
        name=f"refresh{name}Token",
        description=(
            f"Refreshes an expired {name} access token using a refresh token, "
            "without requiring the user to re-authenticate."
        ),
        family=spec.family,
        parameters=[
            ToolParameter(
                name="refreshToken",
                description="The refresh token obtained during initial authentication",
            ),
        ],
        executor=refresh_token,
    )

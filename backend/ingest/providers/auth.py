"""
Credential manager for platform client-credentials tokens.

One cached token per platform. A token is reused only while more than the
refresh margin remains before expiry; otherwise it is refreshed before the
caller proceeds. Refresh is single-flight per platform: concurrent callers
await the same in-flight refresh and share its outcome, token or error.
"""
from __future__ import annotations

import abc
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from shared.config import Settings, get_settings
from shared.errors import AuthenticationFailure
from shared.models.enums import Platform
from shared.utils.http_client import ResilientGateway
from shared.utils.logging import get_logger
from shared.utils.metrics import TOKEN_REFRESHES

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccessToken:
    token: str
    expires_at: float  # Unix timestamp

    def is_usable(self, now: float, margin_s: float) -> bool:
        return now < self.expires_at - margin_s


class TokenSource(abc.ABC):
    """Performs the authorization call for one platform."""

    platform: Platform

    def __init__(
        self,
        gateway: ResilientGateway,
        client_id: str,
        client_secret: str,
        token_url: str,
        timeout_s: float,
    ) -> None:
        self._gateway = gateway
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._timeout_s = timeout_s

    @property
    def client_id(self) -> str:
        return self._client_id

    async def fetch(self, now: float) -> AccessToken:
        """
        Exchange client credentials for a token.

        Raises:
            AuthenticationFailure: Credentials missing, non-2xx status, or malformed body.
            TimeoutFailure: The authorization call exceeded its deadline.
        """
        if not self._client_id or not self._client_secret:
            raise AuthenticationFailure(self.platform.value, "client credentials not configured")

        resp = await self._request()
        if not resp.is_success:
            raise AuthenticationFailure(self.platform.value, f"status {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise AuthenticationFailure(self.platform.value, "response body is not JSON") from exc

        token, expires_in = self._parse(body)
        return AccessToken(token=token, expires_at=now + expires_in)

    @abc.abstractmethod
    async def _request(self) -> Any:
        ...

    @abc.abstractmethod
    def _parse(self, body: Any) -> tuple[str, float]:
        """Extract (access_token, expires_in_seconds) or raise AuthenticationFailure."""
        ...


class TwitchTokenSource(TokenSource):
    """OAuth2 client_credentials grant against id.twitch.tv (also valid for IGDB)."""

    platform = Platform.TWITCH

    async def _request(self) -> Any:
        return await self._gateway.request(
            "POST",
            self._token_url,
            platform=self.platform.value,
            data={
                "client_id": self._client_id,
                "client_secret": self._client_secret,
                "grant_type": "client_credentials",
            },
            timeout_s=self._timeout_s,
        )

    def _parse(self, body: Any) -> tuple[str, float]:
        if not isinstance(body, dict):
            raise AuthenticationFailure(self.platform.value, "malformed token response")
        token = body.get("access_token")
        expires_in = body.get("expires_in")
        if not isinstance(token, str) or not token or not isinstance(expires_in, (int, float)):
            raise AuthenticationFailure(self.platform.value, "malformed token response")
        return token, float(expires_in)


class ChzzkTokenSource(TokenSource):
    """Chzzk open API client credentials grant; the payload is wrapped in a code/content envelope."""

    platform = Platform.CHZZK

    async def _request(self) -> Any:
        return await self._gateway.request(
            "POST",
            self._token_url,
            platform=self.platform.value,
            json={
                "grantType": "CLIENT_CREDENTIALS",
                "clientId": self._client_id,
                "clientSecret": self._client_secret,
            },
            timeout_s=self._timeout_s,
        )

    def _parse(self, body: Any) -> tuple[str, float]:
        if not isinstance(body, dict) or body.get("code") != 200:
            message = body.get("message") if isinstance(body, dict) else None
            raise AuthenticationFailure(self.platform.value, message or "malformed token response")
        content = body.get("content")
        if not isinstance(content, dict):
            raise AuthenticationFailure(self.platform.value, "malformed token response")
        token = content.get("accessToken")
        expires_in = content.get("expiresIn", 3600)
        if (
            not isinstance(token, str)
            or not token
            or isinstance(expires_in, bool)
            or not isinstance(expires_in, (int, float))
        ):
            raise AuthenticationFailure(self.platform.value, "malformed token response")
        return token, float(expires_in)


class CredentialManager:
    """Caches and refreshes access tokens, one per platform."""

    def __init__(
        self,
        sources: dict[Platform, TokenSource],
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._sources = sources
        self._settings = settings or get_settings()
        self._clock = clock
        self._tokens: dict[Platform, AccessToken] = {}
        self._inflight: dict[Platform, asyncio.Task[AccessToken]] = {}

    def has_source(self, platform: Platform) -> bool:
        return platform in self._sources

    def client_id(self, platform: Platform) -> str:
        source = self._sources.get(platform)
        return source.client_id if source else ""

    def _cached(self, platform: Platform) -> Optional[str]:
        cached = self._tokens.get(platform)
        if cached and cached.is_usable(self._clock(), self._settings.token_refresh_margin_s):
            return cached.token
        return None

    async def get_token(self, platform: Platform) -> str:
        """
        Return a token for platform with more than the refresh margin left.

        Raises:
            AuthenticationFailure: No source registered or the exchange was rejected.
            TimeoutFailure: The authorization call timed out.
        """
        token = self._cached(platform)
        if token:
            return token

        source = self._sources.get(platform)
        if source is None:
            raise AuthenticationFailure(platform.value, "no token source registered")

        refresh = self._inflight.get(platform)
        if refresh is None:
            refresh = asyncio.create_task(self._refresh(platform, source))
            self._inflight[platform] = refresh
            refresh.add_done_callback(lambda task: self._refresh_done(platform, task))
        # A cancelled caller must not cancel the refresh the others are awaiting
        fresh = await asyncio.shield(refresh)
        return fresh.token

    async def _refresh(self, platform: Platform, source: TokenSource) -> AccessToken:
        try:
            fresh = await source.fetch(self._clock())
        except Exception as exc:
            TOKEN_REFRESHES.labels(platform=platform.value, outcome="failure").inc()
            logger.warning("token_refresh_failed", platform=platform.value, error=str(exc))
            raise

        self._tokens[platform] = fresh
        TOKEN_REFRESHES.labels(platform=platform.value, outcome="success").inc()
        logger.info(
            "token_refreshed",
            platform=platform.value,
            expires_in_s=round(fresh.expires_at - self._clock()),
        )
        return fresh

    def _refresh_done(self, platform: Platform, task: asyncio.Task[AccessToken]) -> None:
        if self._inflight.get(platform) is task:
            del self._inflight[platform]
        if not task.cancelled():
            # Mark a failure as retrieved even when every waiter went away
            task.exception()

    def invalidate(self, platform: Platform) -> None:
        """Drop the cached token so the next call refreshes."""
        self._tokens.pop(platform, None)


def build_credential_manager(
    gateway: ResilientGateway, settings: Settings | None = None
) -> CredentialManager:
    """Register a token source for every platform that has credentials configured."""
    settings = settings or get_settings()
    sources: dict[Platform, TokenSource] = {}
    if settings.twitch_configured:
        sources[Platform.TWITCH] = TwitchTokenSource(
            gateway,
            settings.twitch_client_id,
            settings.twitch_client_secret,
            settings.twitch_token_url,
            settings.auth_timeout_s,
        )
    if settings.chzzk_configured:
        sources[Platform.CHZZK] = ChzzkTokenSource(
            gateway,
            settings.chzzk_client_id,
            settings.chzzk_client_secret,
            settings.chzzk_token_url,
            settings.auth_timeout_s,
        )
    return CredentialManager(sources, settings)

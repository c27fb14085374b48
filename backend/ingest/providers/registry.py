"""
Platform client registry.
Builds the set of platform clients the aggregation engine fans out to.
"""
from __future__ import annotations

from shared.config import Settings, get_settings
from shared.models.enums import Platform
from shared.utils.http_client import ResilientGateway
from shared.utils.logging import get_logger

from ingest.providers.auth import CredentialManager
from ingest.providers.base import BasePlatformClient
from ingest.providers.chzzk import ChzzkClient
from ingest.providers.twitch import TwitchClient

logger = get_logger(__name__)

_CLIENT_TYPES: dict[Platform, type[BasePlatformClient]] = {
    Platform.TWITCH: TwitchClient,
    Platform.CHZZK: ChzzkClient,
}


def build_platform_clients(
    settings: Settings | None,
    gateway: ResilientGateway,
    credentials: CredentialManager,
) -> dict[Platform, BasePlatformClient]:
    """
    One client per platform, sharing the gateway and credential manager.

    A platform without credentials still gets a client. Twitch calls then
    fail with AuthenticationFailure and the platform degrades to zero for
    the cycle; Chzzk falls back to its unauthenticated service API.
    """
    settings = settings or get_settings()
    clients = {
        platform: client_type(gateway, credentials, settings)
        for platform, client_type in _CLIENT_TYPES.items()
    }
    logger.info(
        "platform_clients_built",
        platforms=[p.value for p in clients],
        twitch_configured=settings.twitch_configured,
        chzzk_configured=settings.chzzk_configured,
    )
    return clients

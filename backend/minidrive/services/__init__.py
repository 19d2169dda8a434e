"""Business logic services, built once per app by the factory."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from minidrive.config import Settings

if TYPE_CHECKING:
    from minidrive.services.object_store import ObjectStore
    from minidrive.services.token_service import TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    """Process-wide, read-only collaborators shared by every request."""

    token_service: TokenService
    object_store: ObjectStore


def build_services(settings: Settings) -> Services:
    """Create the token service and object store from settings."""
    from minidrive.services.object_store import MinioObjectStore
    from minidrive.services.token_service import TokenService

    if settings.secret_key == "change-me-in-prod" and not settings.is_dev_mode:
        logger.warning("MINIDRIVE_SECRET_KEY is the default value, set a real secret")

    token_service = TokenService(
        secret_key=settings.secret_key,
        algorithm=settings.token_algorithm,
        issuer=settings.token_issuer,
        access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
        refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
    )
    object_store = MinioObjectStore.from_settings(settings)
    logger.info("Services initialized (object store %s, bucket %s)", settings.minio_host, settings.bucket_name)
    return Services(token_service=token_service, object_store=object_store)

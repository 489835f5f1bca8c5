"""
Social post publisher.

Delivery executor for scheduled social posts: resolves the project's
connected account, trades its refresh token for an access token and
publishes through the provider adapter. Every failure is folded into an
AttemptResult so the batch coordinator can classify it.
"""

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from adapters.social import (
    BaseSocialAdapter,
    SocialAdapterError,
    SocialAuthError,
    SocialCredentials,
    SocialPlatform,
    SocialValidationError,
    get_social_adapter,
)
from core.domain.delivery import AttemptResult, DeliveryTask, ErrorKind
from core.interfaces.services import DeliveryExecutor
from core.security.encryption import decrypt_credential, encrypt_credential
from infrastructure.config import settings
from infrastructure.database.models.social import SocialConnection

logger = logging.getLogger(__name__)

_PROVIDER_NAMES = {
    SocialPlatform.REDDIT: "Reddit",
    SocialPlatform.X: "X",
}


class PublishAborted(Exception):
    """Local precondition failure; retrying cannot fix it."""

    pass


class SocialPostPublisher(DeliveryExecutor):
    """Publishes one scheduled post per ``attempt`` call."""

    def __init__(
        self,
        db: AsyncSession,
        adapter_factory: Callable[..., BaseSocialAdapter] = get_social_adapter,
        client: Optional[httpx.AsyncClient] = None,
        secret_key: Optional[str] = None,
    ):
        """
        Args:
            db: Session used to load and update social connections
            adapter_factory: Builds a provider adapter from a platform name
            client: Shared HTTP client handed to every adapter
            secret_key: Key for refresh-token encryption (defaults to settings)
        """
        self.db = db
        self.adapter_factory = adapter_factory
        self._client = client
        self.secret_key = secret_key or settings.secret_key

    async def attempt(self, task: DeliveryTask) -> AttemptResult:
        start = time.perf_counter()
        credentials: Optional[SocialCredentials] = None
        connection_id: Optional[int] = None

        try:
            platform = self._platform(task.target)
            connection = await self._load_connection(task.project_id, platform)
            connection_id = connection.id
            credentials = self._credentials(platform, connection)

            adapter = self.adapter_factory(platform, client=self._client)
            post = await adapter.publish(credentials, task.payload or {})

        except (PublishAborted, SocialValidationError) as e:
            return self._failure(start, ErrorKind.PERMANENT, str(e))
        except SocialAuthError as e:
            # No status means the app itself is misconfigured
            kind = ErrorKind.HTTP if e.status_code else ErrorKind.PERMANENT
            return self._failure(start, kind, str(e), e.status_code)
        except SocialAdapterError as e:
            kind = ErrorKind.HTTP if e.status_code else ErrorKind.UNKNOWN
            return self._failure(start, kind, str(e), e.status_code)
        except httpx.TimeoutException:
            return self._failure(
                start,
                ErrorKind.TIMEOUT,
                f"Request timeout ({int(settings.social_request_timeout_seconds)} seconds)",
            )
        except httpx.TransportError as e:
            return self._failure(start, ErrorKind.NETWORK, f"Network error: {e}")
        except Exception as e:
            logger.error(f"Unexpected error publishing post {task.id}: {e}", exc_info=True)
            return self._failure(start, ErrorKind.UNKNOWN, str(e) or type(e).__name__)
        finally:
            if credentials is not None and credentials.rotated:
                await self._store_connection(connection_id, credentials.refresh_token)

        await self._store_connection(connection_id, None)
        logger.info(f"Published post {task.id} to {task.target} (id {post.post_id})")

        return AttemptResult(
            ok=True,
            duration_ms=_elapsed_ms(start),
            response_body=post.post_url,
            external_id=post.post_id,
        )

    @staticmethod
    def _platform(provider: str) -> SocialPlatform:
        try:
            return SocialPlatform(provider)
        except ValueError:
            raise PublishAborted(f"Unsupported social provider: {provider}")

    async def _load_connection(
        self, project_id: Optional[int], platform: SocialPlatform
    ) -> SocialConnection:
        result = await self.db.execute(
            select(SocialConnection).where(
                SocialConnection.project_id == project_id,
                SocialConnection.provider == platform.value,
                SocialConnection.is_active.is_(True),
            )
        )
        connection = result.scalar_one_or_none()
        if connection is None:
            raise PublishAborted(f"{_PROVIDER_NAMES[platform]} not connected for this project")
        return connection

    def _credentials(
        self, platform: SocialPlatform, connection: SocialConnection
    ) -> SocialCredentials:
        name = _PROVIDER_NAMES[platform]
        if not connection.refresh_token_encrypted:
            raise PublishAborted(
                f"{name} refresh token is missing - please reconnect your {name} account"
            )

        try:
            refresh_token = decrypt_credential(connection.refresh_token_encrypted, self.secret_key)
        except ValueError:
            raise PublishAborted(
                f"{name} credentials could not be decrypted - please reconnect your {name} account"
            )

        return SocialCredentials(
            platform=platform,
            refresh_token=refresh_token,
            account_username=connection.account_username,
        )

    async def _store_connection(
        self, connection_id: Optional[int], new_refresh_token: Optional[str]
    ) -> None:
        """Record a rotated refresh token, or stamp last use after a publish."""
        if connection_id is None:
            return

        values: dict = {}
        if new_refresh_token:
            values["refresh_token_encrypted"] = encrypt_credential(
                new_refresh_token, self.secret_key
            )
        else:
            values["last_used_at"] = datetime.now(UTC)

        try:
            await self.db.execute(
                update(SocialConnection)
                .where(SocialConnection.id == connection_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to update social connection {connection_id}: {e}")

    def _failure(
        self,
        start: float,
        kind: ErrorKind,
        message: str,
        http_status: Optional[int] = None,
    ) -> AttemptResult:
        return AttemptResult(
            ok=False,
            duration_ms=_elapsed_ms(start),
            http_status=http_status,
            error_message=message,
            error_kind=kind,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)

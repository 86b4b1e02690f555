# ============================================================================
# UUID WHITELIST
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - External check authentication
# PURPOSE: Issue and verify the rotating token of each external check
# CREATED: 19 OCT 2026
# ============================================================================
"""
UUID Whitelist

Every activation of an external check issues a fresh random token and
writes it to cluster state before the check process starts. The token is
the only credential the process holds; a result submission is accepted
only if it carries the token that is current right now.

    token = await whitelist.issue_token("dns-check")     # supersedes old one
    ok = await whitelist.verify("dns-check", submitted)   # fresh read

Verification never caches: a concurrent re-activation may have rotated
the token between two submissions.
"""

import hmac
import logging
import uuid
from typing import Callable, Optional

from core.errors import VerificationFailure
from core.logging import ComponentType, log_context
from repositories import ClusterStateStore

logger = logging.getLogger(__name__)


def _random_token() -> str:
    return str(uuid.uuid4())


class UUIDWhitelist:
    """Issues and verifies per-check tokens stored in cluster state."""

    def __init__(
        self,
        store: ClusterStateStore,
        token_factory: Callable[[], str] = _random_token,
    ):
        self.store = store
        self._token_factory = token_factory

    async def issue_token(self, check_name: str) -> str:
        """
        Generate and persist a new token for a check.

        The prior token, if any, is invalid as soon as this returns.

        Raises:
            ClusterStateError: token could not be written
        """
        token = self._token_factory()
        entry = await self.store.put_uuid(check_name, token)
        with log_context(check_name=check_name, component=ComponentType.WHITELIST.value):
            logger.info(f"Issued whitelist token (issued_at={entry.issued_at.isoformat()})")
        return token

    async def revoke(self, check_name: str) -> bool:
        """
        Drop the token of a check that no longer exists.

        Raises:
            ClusterStateError: token could not be deleted
        """
        revoked = await self.store.delete_uuid(check_name)
        if revoked:
            with log_context(check_name=check_name, component=ComponentType.WHITELIST.value):
                logger.info("Revoked whitelist token")
        return revoked

    async def verify(self, check_name: str, submitted_uuid: Optional[str]) -> bool:
        """
        True iff `submitted_uuid` equals the current token for the check.

        Raises:
            ClusterStateError: current token could not be read
        """
        if not submitted_uuid:
            return False
        current = await self.store.get_uuid(check_name)
        if current is None:
            return False
        return hmac.compare_digest(current.encode(), submitted_uuid.encode())

    async def require(self, check_name: str, submitted_uuid: Optional[str]) -> None:
        """
        Verify or raise.

        Raises:
            VerificationFailure: token missing or not current
            ClusterStateError: current token could not be read
        """
        if not await self.verify(check_name, submitted_uuid):
            with log_context(check_name=check_name, component=ComponentType.WHITELIST.value):
                logger.warning("Rejected submission with invalid or stale UUID")
            raise VerificationFailure(check_name)


__all__ = ["UUIDWhitelist"]

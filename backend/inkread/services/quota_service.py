"""
InkRead Backend — Quota Service (Access Gate + Ledger)
========================================================

What:  Decides whether a caller may process files, and charges them after.
Who:   GET /api/access/check (check_access) and ProcessingService
       (require_access before intake, consume after a successful batch).

Rules:
    Signed-in users
        - First check creates a user_credits row with full credits (3)
        - Each successful batch costs 1 credit
        - At 0 credits, reset_at = now + 24h; once reset_at passes, the next
          check restores full credits and clears reset_at
    Guests (by IP)
        - One free batch per IP, ever. ip_usage.used is never reset here.

Concurrency:
    The gate is a plain read, so two simultaneous requests from one user
    with 1 credit left can both be admitted. The decrement itself is a
    conditional UPDATE (credits_remaining > 0), so the stored balance never
    goes below 0 regardless of interleaving.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from inkread.config import settings
from inkread.database import as_utc, utcnow
from inkread.dependencies.auth import Caller
from inkread.exceptions import QuotaExceededError
from inkread.models.credits import IpUsage, UserCredit
from inkread.schemas.access import AccessStatus

logger = logging.getLogger(__name__)

GUEST_DENIED_REASON = "Free trial used. Please sign in to continue."


class QuotaService:

    def __init__(
        self,
        full_credits: Optional[int] = None,
        reset_hours: Optional[int] = None,
    ):
        self.full_credits = full_credits or settings.authenticated_credits
        self.reset_window = timedelta(hours=reset_hours or settings.credit_reset_hours)

    # ── Access Gate ───────────────────────────────────────────────────────

    async def check_access(
        self,
        db: AsyncSession,
        caller: Caller,
        now: Optional[datetime] = None,
    ) -> AccessStatus:
        """
        Current allowance of the caller.

        May write: creates the credit row on first sight of a user and
        applies an elapsed reset. Changes are flushed, not committed.
        """
        now = now or utcnow()
        if caller.is_guest:
            return await self._check_guest(db, caller.ip_address)
        return await self._check_user(db, caller.user_id, now)

    async def _check_user(self, db: AsyncSession, user_id: str, now: datetime) -> AccessStatus:
        # populate_existing: the ledger updates rows behind the identity map
        result = await db.execute(
            select(UserCredit)
            .where(UserCredit.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        record = result.scalar_one_or_none()

        if record is None:
            db.add(UserCredit(user_id=user_id, credits_remaining=self.full_credits, reset_at=None))
            await db.flush()
            logger.info("Created credit record for user %s with %d credits", user_id, self.full_credits)
            return AccessStatus(allowed=True, credits=self.full_credits, reset_at=None)

        reset_at = as_utc(record.reset_at)
        if reset_at is not None and reset_at <= now:
            record.credits_remaining = self.full_credits
            record.reset_at = None
            await db.flush()
            logger.info("Reset credits for user %s (reset_at %s elapsed)", user_id, reset_at.isoformat())
            return AccessStatus(allowed=True, credits=self.full_credits, reset_at=None)

        return AccessStatus(
            allowed=record.credits_remaining > 0,
            credits=record.credits_remaining,
            reset_at=reset_at,
        )

    async def _check_guest(self, db: AsyncSession, ip_address: str) -> AccessStatus:
        result = await db.execute(
            select(IpUsage)
            .where(IpUsage.ip_address == ip_address)
            .execution_options(populate_existing=True)
        )
        usage = result.scalar_one_or_none()

        if usage is not None and usage.used:
            return AccessStatus(allowed=False, requires_auth=True, reason=GUEST_DENIED_REASON)
        return AccessStatus(allowed=True, is_guest=True)

    async def require_access(
        self,
        db: AsyncSession,
        caller: Caller,
        now: Optional[datetime] = None,
    ) -> AccessStatus:
        """
        check_access(), raising when the caller is not allowed.

        Raises:
            QuotaExceededError: requires_auth for guests, reset_at for users
        """
        status = await self.check_access(db, caller, now)
        if status.allowed:
            return status

        if caller.is_guest:
            logger.info("Guest %s denied: free trial used", caller.ip_address)
            raise QuotaExceededError(message="Free trial used", requires_auth=True)

        logger.info("User %s denied: no credits until %s", caller.user_id, status.reset_at)
        raise QuotaExceededError(message="No credits remaining", reset_at=status.reset_at)

    # ── Ledger ────────────────────────────────────────────────────────────

    async def consume(
        self,
        db: AsyncSession,
        caller: Caller,
        now: Optional[datetime] = None,
    ) -> Optional[int]:
        """
        Charge the caller for one successful batch.

        Returns:
            The user's remaining credits, or None for guests.
        """
        now = now or utcnow()
        if caller.is_guest:
            await self._mark_ip_used(db, caller.ip_address, now)
            return None
        return await self._decrement_credits(db, caller.user_id, now)

    async def _decrement_credits(self, db: AsyncSession, user_id: str, now: datetime) -> int:
        await db.execute(
            update(UserCredit)
            .where(UserCredit.user_id == user_id, UserCredit.credits_remaining > 0)
            .values(
                credits_remaining=UserCredit.credits_remaining - 1,
                last_used_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        # Stamp the reset time only on the transition to 0
        await db.execute(
            update(UserCredit)
            .where(
                UserCredit.user_id == user_id,
                UserCredit.credits_remaining == 0,
                UserCredit.reset_at.is_(None),
            )
            .values(reset_at=now + self.reset_window)
            .execution_options(synchronize_session=False)
        )

        result = await db.execute(
            select(UserCredit.credits_remaining).where(UserCredit.user_id == user_id)
        )
        remaining = result.scalar_one_or_none() or 0
        logger.info("Charged 1 credit to user %s, %d remaining", user_id, remaining)
        return remaining

    async def _mark_ip_used(self, db: AsyncSession, ip_address: str, now: datetime) -> None:
        # Upsert: a concurrent guest request may have inserted the row after our gate check
        insert = sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert
        stmt = insert(IpUsage).values(ip_address=ip_address, used=True, used_at=now)
        await db.execute(
            stmt.on_conflict_do_update(
                index_elements=[IpUsage.ip_address],
                set_={"used": True, "used_at": now},
            )
        )
        logger.info("Marked guest IP %s as used", ip_address)


quota_service = QuotaService()

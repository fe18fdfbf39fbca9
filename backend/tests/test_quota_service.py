"""
InkRead Backend — Quota Service Tests
=======================================

What we test:
    ✅ First check creates a credit row with full credits
    ✅ Elapsed reset restores credits and clears reset_at
    ✅ Zero credits before reset_at denies with the reset time
    ✅ Decrement stamps reset_at only on the transition to 0
    ✅ The balance never goes below 0
    ✅ Guest IP: allowed once, then requires sign-in
    ✅ Guest charge is an upsert (row inserted concurrently)
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from inkread.database import as_utc
from inkread.exceptions import QuotaExceededError
from inkread.models.credits import IpUsage, UserCredit
from inkread.services.quota_service import GUEST_DENIED_REASON, QuotaService

from conftest import TEST_USER_ID

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _credit_row(db_session) -> UserCredit:
    result = await db_session.execute(
        select(UserCredit)
        .where(UserCredit.user_id == TEST_USER_ID)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestAccessGateUsers:

    def setup_method(self):
        self.service = QuotaService(full_credits=3, reset_hours=24)

    @pytest.mark.asyncio
    async def test_first_check_creates_full_balance(self, db_session, user_caller):
        status = await self.service.check_access(db_session, user_caller, NOW)

        assert status.allowed is True
        assert status.credits == 3
        assert status.reset_at is None
        record = await _credit_row(db_session)
        assert record.credits_remaining == 3

    @pytest.mark.asyncio
    async def test_allows_with_credits_left(self, db_session, user_caller):
        db_session.add(UserCredit(user_id=TEST_USER_ID, credits_remaining=1))
        await db_session.flush()

        status = await self.service.check_access(db_session, user_caller, NOW)

        assert status.allowed is True
        assert status.credits == 1

    @pytest.mark.asyncio
    async def test_denies_at_zero_before_reset(self, db_session, user_caller):
        reset_at = NOW + timedelta(hours=5)
        db_session.add(UserCredit(user_id=TEST_USER_ID, credits_remaining=0, reset_at=reset_at))
        await db_session.flush()

        status = await self.service.check_access(db_session, user_caller, NOW)

        assert status.allowed is False
        assert status.credits == 0
        assert status.reset_at == reset_at

    @pytest.mark.asyncio
    async def test_elapsed_reset_restores_credits(self, db_session, user_caller):
        db_session.add(
            UserCredit(user_id=TEST_USER_ID, credits_remaining=0, reset_at=NOW - timedelta(seconds=1))
        )
        await db_session.flush()

        status = await self.service.check_access(db_session, user_caller, NOW)

        assert status.allowed is True
        assert status.credits == 3
        assert status.reset_at is None
        record = await _credit_row(db_session)
        assert record.credits_remaining == 3
        assert record.reset_at is None

    @pytest.mark.asyncio
    async def test_require_access_raises_with_reset_time(self, db_session, user_caller):
        reset_at = NOW + timedelta(hours=2)
        db_session.add(UserCredit(user_id=TEST_USER_ID, credits_remaining=0, reset_at=reset_at))
        await db_session.flush()

        with pytest.raises(QuotaExceededError) as exc_info:
            await self.service.require_access(db_session, user_caller, NOW)

        assert exc_info.value.requires_auth is False
        assert exc_info.value.reset_at == reset_at


class TestLedger:

    def setup_method(self):
        self.service = QuotaService(full_credits=3, reset_hours=24)

    @pytest.mark.asyncio
    async def test_decrement_keeps_reset_at_null_above_zero(self, db_session, user_caller):
        await self.service.check_access(db_session, user_caller, NOW)

        remaining = await self.service.consume(db_session, user_caller, NOW)

        assert remaining == 2
        record = await _credit_row(db_session)
        assert record.credits_remaining == 2
        assert record.reset_at is None
        assert as_utc(record.last_used_at) == NOW

    @pytest.mark.asyncio
    async def test_last_credit_stamps_reset_at(self, db_session, user_caller):
        db_session.add(UserCredit(user_id=TEST_USER_ID, credits_remaining=1))
        await db_session.flush()

        remaining = await self.service.consume(db_session, user_caller, NOW)

        assert remaining == 0
        record = await _credit_row(db_session)
        assert as_utc(record.reset_at) == NOW + timedelta(hours=24)

    @pytest.mark.asyncio
    async def test_balance_never_goes_negative(self, db_session, user_caller):
        reset_at = NOW + timedelta(hours=3)
        db_session.add(UserCredit(user_id=TEST_USER_ID, credits_remaining=0, reset_at=reset_at))
        await db_session.flush()

        remaining = await self.service.consume(db_session, user_caller, NOW)

        assert remaining == 0
        record = await _credit_row(db_session)
        assert record.credits_remaining == 0
        # The existing reset time is not pushed back
        assert as_utc(record.reset_at) == reset_at

    @pytest.mark.asyncio
    async def test_three_submissions_then_denied_then_reset(self, db_session, user_caller):
        for expected in (2, 1, 0):
            await self.service.require_access(db_session, user_caller, NOW)
            assert await self.service.consume(db_session, user_caller, NOW) == expected

        with pytest.raises(QuotaExceededError):
            await self.service.require_access(db_session, user_caller, NOW + timedelta(hours=23))

        status = await self.service.check_access(db_session, user_caller, NOW + timedelta(hours=24))
        assert status.allowed is True
        assert status.credits == 3


class TestGuests:

    def setup_method(self):
        self.service = QuotaService()

    @pytest.mark.asyncio
    async def test_unused_ip_is_allowed(self, db_session, guest_caller):
        status = await self.service.check_access(db_session, guest_caller, NOW)

        assert status.allowed is True
        assert status.is_guest is True
        assert status.credits is None

    @pytest.mark.asyncio
    async def test_consume_marks_ip_used(self, db_session, guest_caller):
        remaining = await self.service.consume(db_session, guest_caller, NOW)

        assert remaining is None
        result = await db_session.execute(
            select(IpUsage).where(IpUsage.ip_address == guest_caller.ip_address)
        )
        usage = result.scalar_one()
        assert usage.used is True

    @pytest.mark.asyncio
    async def test_used_ip_requires_auth(self, db_session, guest_caller):
        await self.service.consume(db_session, guest_caller, NOW)

        status = await self.service.check_access(db_session, guest_caller, NOW)
        assert status.allowed is False
        assert status.requires_auth is True
        assert status.reason == GUEST_DENIED_REASON

        with pytest.raises(QuotaExceededError) as exc_info:
            await self.service.require_access(db_session, guest_caller, NOW)
        assert exc_info.value.requires_auth is True
        assert exc_info.value.message == "Free trial used"

    @pytest.mark.asyncio
    async def test_consume_twice_keeps_single_row(self, db_session, guest_caller):
        await self.service.consume(db_session, guest_caller, NOW)
        await self.service.consume(db_session, guest_caller, NOW + timedelta(minutes=1))

        result = await db_session.execute(select(IpUsage))
        assert len(result.scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_consume_after_concurrent_guest_insert(self, session_factory, db_session, guest_caller):
        status = await self.service.check_access(db_session, guest_caller, NOW)
        assert status.allowed is True

        # Another request from the same IP records its trial between our gate and our charge
        async with session_factory() as other:
            other.add(IpUsage(ip_address=guest_caller.ip_address, used=False))
            await other.commit()

        remaining = await self.service.consume(db_session, guest_caller, NOW)

        assert remaining is None
        result = await db_session.execute(
            select(IpUsage)
            .where(IpUsage.ip_address == guest_caller.ip_address)
            .execution_options(populate_existing=True)
        )
        usage = result.scalar_one()
        assert usage.used is True
        assert as_utc(usage.used_at) == NOW

"""
InkRead Backend — Quota Models
================================

What:  ORM models for the two quota tables: `user_credits` and `ip_usage`.
Who:   Read and written by QuotaService (access gate + ledger).

Table Design:
    user_credits
        - user_id: the auth provider's subject id (string, not a FK; users
          live in the external auth provider)
        - credits_remaining: 0..authenticated_credits; the lower bound is a
          CHECK, the upper bound holds because only a reset writes the full balance
        - reset_at: set only when the balance hits 0; cleared on reset
    ip_usage
        - ip_address: primary key, one row per guest IP
        - used: flips to true once and is never reset by the application
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from inkread.database import Base, utcnow


class UserCredit(Base):
    """
    Credit balance of one signed-in user.

    Lifecycle:
        1. Created on first access check with full credits
        2. Decremented after each successful processing request
        3. At 0: reset_at = now + 24h
        4. After reset_at: balance back to full, reset_at cleared
    """

    __tablename__ = "user_credits"

    user_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Subject id from the auth provider",
    )

    credits_remaining: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=3,
        server_default=text("3"),
        comment="Processing requests left in the current window",
    )

    # NULL unless credits_remaining = 0
    reset_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        comment="When the balance is restored (UTC)",
    )

    last_used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        CheckConstraint(
            "credits_remaining >= 0",
            name="ck_user_credits_non_negative",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<UserCredit(user_id='{self.user_id}', "
            f"credits_remaining={self.credits_remaining}, reset_at='{self.reset_at}')>"
        )


class IpUsage(Base):
    """Single-use free trial marker for a guest IP address."""

    __tablename__ = "ip_usage"

    # 45 chars fits the longest textual IPv6 form
    ip_address: Mapped[str] = mapped_column(String(45), primary_key=True)

    used: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    used_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    def __repr__(self) -> str:
        return f"<IpUsage(ip_address='{self.ip_address}', used={self.used})>"

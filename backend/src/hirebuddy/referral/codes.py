"""Referral code issuance and validation."""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hirebuddy.auth import policies
from hirebuddy.clock import Clock, utcnow
from hirebuddy.logging_config import get_logger
from hirebuddy.referral.errors import Forbidden, StorageError, Unauthenticated
from hirebuddy.referral.models import ReferralCode
from hirebuddy.settings import settings
from hirebuddy.storage.db import Database, db

logger = get_logger(__name__)

CODE_PREFIX = "HB-"
CODE_PATTERN = re.compile(r"^HB-[A-F0-9]{8}$")


def generate_code() -> str:
    """Generate a referral code: ``HB-`` + 8 uppercase hex chars (32 random bits)."""
    return f"{CODE_PREFIX}{secrets.token_hex(4).upper()}"


def validate_format(code: str | None) -> bool:
    """Check a code against ``HB-[A-F0-9]{8}``. No I/O."""
    if not isinstance(code, str):
        return False
    return CODE_PATTERN.fullmatch(code) is not None


@dataclass(frozen=True)
class IssuedCode:
    """Result of :meth:`ReferralCodeIssuer.issue_or_get`."""
    code: str
    is_new: bool
    created_at: datetime


class ReferralCodeIssuer:
    """Issues one active referral code per user."""

    def __init__(
        self,
        database: Database | None = None,
        clock: Clock = utcnow,
        code_factory: Callable[[], str] = generate_code,
        max_attempts: int | None = None,
    ):
        self.database = database or db
        self.clock = clock
        self.code_factory = code_factory
        self.max_attempts = max_attempts or settings.referral_code_max_attempts
        self.logger = get_logger(__name__)

    @staticmethod
    def _active_code(session: Session, user_id: str) -> ReferralCode | None:
        return session.query(ReferralCode).filter(
            ReferralCode.user_id == user_id,
            ReferralCode.is_active == True,  # noqa: E712
        ).first()

    def issue_or_get(self, user_id: str | None) -> IssuedCode:
        """Get the user's active code or create one.

        Idempotent: repeated calls return the same code with ``is_new=False``.
        A unique-constraint violation on insert means either another request
        created this user's code first (returned as existing) or the random
        code collided (generation is retried).

        Args:
            user_id: Authenticated user ID

        Returns:
            IssuedCode

        Raises:
            Unauthenticated: No user context
            StorageError: Persistence failed or retries exhausted
        """
        if not user_id:
            raise Unauthenticated()

        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.database.session() as session:
                    existing = self._active_code(session, user_id)
                    if existing:
                        return IssuedCode(existing.code, False, existing.created_at)

                    record = ReferralCode(
                        user_id=user_id,
                        code=self.code_factory(),
                        is_active=True,
                        created_at=self.clock(),
                    )
                    session.add(record)
                    session.flush()
            except IntegrityError:
                winner = self.get_code_record(user_id)
                if winner:
                    return IssuedCode(winner.code, False, winner.created_at)
                self.logger.warning("referral_code_collision", user_id=user_id, attempt=attempt)
                continue
            except SQLAlchemyError as e:
                self.logger.error("referral_code_issue_failed", user_id=user_id, error=str(e))
                raise StorageError() from e

            self.logger.info("referral_code_created", user_id=user_id, code=record.code)
            return IssuedCode(record.code, True, record.created_at)

        self.logger.error("referral_code_attempts_exhausted", user_id=user_id, attempts=self.max_attempts)
        raise StorageError("Failed to create referral code")

    def get_code_record(self, user_id: str, actor=None) -> ReferralCode | None:
        """Active code row for a user, if any.

        When ``actor`` is given it must own the code or be an admin.
        """
        try:
            with self.database.session() as session:
                record = self._active_code(session, user_id)
        except SQLAlchemyError as e:
            raise StorageError() from e

        if record and actor is not None and not policies.can_view_code(actor, record):
            self.logger.info("referral_code_access_denied", user_id=user_id, actor_id=actor.id)
            raise Forbidden()
        return record

    def get_code_for_user(self, user_id: str) -> str | None:
        record = self.get_code_record(user_id)
        return record.code if record else None

    def find_active(self, session: Session, code: str) -> ReferralCode | None:
        """Active code row matching ``code`` exactly, within ``session``."""
        return session.query(ReferralCode).filter(
            ReferralCode.code == code,
            ReferralCode.is_active == True,  # noqa: E712
        ).first()

    def validate_format(self, code: str | None) -> bool:
        return validate_format(code)

    def validate_active(self, code: str | None) -> bool:
        """Check that a well-formed code exists and is active.

        Args:
            code: Referral code to check

        Returns:
            True if the code can be applied
        """
        if not validate_format(code):
            return False

        try:
            with self.database.session() as session:
                return self.find_active(session, code) is not None
        except SQLAlchemyError as e:
            raise StorageError() from e

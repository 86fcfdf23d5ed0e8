import logging
import math
from datetime import datetime, timedelta
from typing import Callable, Optional
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.config import settings
from questionbank.database import atomic
from questionbank.shared.models import utcnow
from questionbank.questions.exceptions import ImmutableStateViolation, LockConflict, LockNotHeld
from questionbank.questions.lineage import format_external_id
from questionbank.questions.models import Question, UNLOCKED

logger = logging.getLogger(__name__)


class LockManager:
    """Advisory single-editor lock on drafts.

    A lock lapses ``lock_timeout`` seconds after it was taken; expiry is
    worked out whenever the lock is inspected, nothing sweeps old locks.
    Every call answers immediately, there is no waiting for a holder.
    """

    def __init__(
        self,
        db: AsyncSession,
        lock_timeout: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.lock_timeout = settings.QUESTION_LOCK_TIMEOUT if lock_timeout is None else lock_timeout
        self.clock = clock

    @property
    def enabled(self) -> bool:
        return self.lock_timeout > 0

    def expires_at(self, question: Question) -> Optional[datetime]:
        if question.locked_at is None:
            return None
        return question.locked_at + timedelta(seconds=self.lock_timeout)

    def is_locked(self, question: Question) -> bool:
        return (
            question.locked_by is not None
            and question.locked_by > 0
            and question.locked_at is not None
            and self.clock() < self.expires_at(question)
        )

    def has_lock(self, question: Question, user) -> bool:
        return not user.is_anonymous and self.is_locked(question) and question.locked_by == user.id

    async def get_lock(self, question: Question, user: User) -> bool:
        """Take or refresh the lock for ``user``; raises ``LockConflict`` if someone else holds it."""
        if not self.enabled:
            return True
        if question.is_published:
            raise ImmutableStateViolation("Published questions cannot be locked.")
        if self.is_locked(question) and not self.has_lock(question, user):
            raise await self._conflict(question)

        async with atomic(self.db):
            question.locked_by = user.id
            question.locked_at = self.clock()
            await self.db.flush()
        return True

    async def check_and_unlock(self, question: Question, user: User) -> bool:
        """Release a lock ``user`` holds; raises when it has lapsed or belongs to someone else."""
        if not self.enabled:
            return True
        if self.has_lock(question, user):
            async with atomic(self.db):
                question.locked_by = UNLOCKED
                await self.db.flush()
            return True
        if not self.is_locked(question):
            raise LockNotHeld(
                f"You do not currently have the lock on draft {format_external_id(question)} "
                f"(q. {question.number}). This is usually caused by long periods of inactivity. "
                "Please try again."
            )
        raise await self._conflict(question)

    async def _conflict(self, question: Question) -> LockConflict:
        holder = await self.db.get(User, question.locked_by)
        holder_name = holder.display_name if holder else f"user {question.locked_by}"
        remaining = (self.expires_at(question) - self.clock()).total_seconds()
        minutes = max(1, math.ceil(remaining / 60))
        logger.warning(
            f"Lock on question {question.id} refused; held by user {question.locked_by}"
        )
        return LockConflict(
            f"Draft {format_external_id(question)} (q. {question.number}) is currently locked by "
            f"{holder_name} for at least {minutes} more {'minute' if minutes == 1 else 'minutes'}.",
            holder_id=question.locked_by,
            minutes_remaining=minutes,
        )

import logging
from typing import List, Optional
from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.comments.service import CommentService
from questionbank.database import atomic
from questionbank.shared.models import utcnow
from questionbank.questions import lineage
from questionbank.questions.models import Question, QuestionSetup, UNLOCKED
from questionbank.questions.roles import RoleService
from questionbank.questions.variants import variant_for

logger = logging.getLogger(__name__)


async def destroy_setup_if_unattached(db: AsyncSession, setup_id: Optional[int]) -> bool:
    """Delete a setup once no question points at it any more."""
    if setup_id is None:
        return False
    result = await db.execute(
        select(func.count(Question.id)).where(Question.question_setup_id == setup_id)
    )
    if result.scalar():
        return False
    await db.execute(delete(QuestionSetup).where(QuestionSetup.id == setup_id))
    return True


class PublishWorkflow:
    """Validates drafts and turns them into published, frozen versions."""

    def __init__(
        self,
        db: AsyncSession,
        roles: Optional[RoleService] = None,
        comments: Optional[CommentService] = None,
    ):
        self.db = db
        self.comments = comments or CommentService(db)
        self.roles = roles or RoleService(db, self.comments)

    async def run_prepublish_error_checks(self, question: Question) -> List[str]:
        """Collect every reason the question cannot be published yet."""
        errors = question.errors
        errors.clear()

        if await self.roles.pending_role_requests(question):
            errors.append("This question has pending role requests.")

        if not await self.roles.has_all_roles(question):
            errors.append("The two question roles are not filled for this question.")

        if question.license_id is None:
            errors.append("A license has not yet been specified for this question.")

        if question.is_published:
            errors.append("This question is already published.")

        if await lineage.is_superseded(self.db, question):
            errors.append(
                "Newer versions of this question already exist! "
                "Please start modifications again from the latest version."
            )

        errors.extend(await variant_for(question).extra_prepublish_errors(self.db, question, self))
        return list(errors)

    async def ready_to_be_published(self, question: Question) -> bool:
        return not await self.run_prepublish_error_checks(question)

    async def publish(self, question: Question, user: User) -> bool:
        """Publish ``question`` as ``user``.

        Returns False and changes nothing when prepublish checks fail; the
        reasons are left on ``question.errors``. Otherwise every step below
        commits together or not at all.
        """
        if not await self.ready_to_be_published(question):
            logger.info(f"Question {question.id} not published: {len(question.errors)} error(s)")
            return False

        async with atomic(self.db):
            await self._remove_blank_setup(question)

            await variant_for(question).prepublish_hook(self.db, question, user, self)

            await self.roles.destroy_collaborators(await self.roles.roleless_collaborators(question))

            thread = await self.comments.clear(question)
            for collaborator in await self.roles.collaborators(question):
                if not collaborator.is_author:
                    continue
                author = await self.db.get(User, collaborator.user_id)
                if author is not None and author.auto_author_subscribe:
                    await self.comments.subscribe(thread.id, author)

            question.version = await lineage.next_available_version(self.db, question.number)
            question.publisher_id = user.id
            question.published_at = utcnow()
            question.locked_by = UNLOCKED
            question.locked_at = None
            await self.db.flush()

        logger.info(
            f"Published question {question.id} as {lineage.format_external_id(question)} by user {user.id}"
        )
        return True

    async def _remove_blank_setup(self, question: Question) -> None:
        if question.question_setup_id is None:
            return
        setup = await self.db.get(QuestionSetup, question.question_setup_id)
        if setup is None or not setup.is_blank:
            return
        question.question_setup_id = None
        await self.db.flush()
        await destroy_setup_if_unattached(self.db, setup.id)

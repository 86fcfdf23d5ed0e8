from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.projects.service import ProjectService
from questionbank.questions import lineage
from questionbank.questions.models import Question
from questionbank.questions.roles import RoleService


class QuestionPolicy:
    """Answers "may this user do X to this question" for every question action."""

    def __init__(
        self,
        db: AsyncSession,
        roles: Optional[RoleService] = None,
        projects: Optional[ProjectService] = None,
    ):
        self.db = db
        self.roles = roles or RoleService(db)
        self.projects = projects or ProjectService(db)

    async def _member_or_role_holder(self, question: Question, user) -> bool:
        return (
            await self.projects.is_member_for_question(question, user)
            or await self.roles.has_role_permission(question, user, "any")
        )

    async def can_read(self, question: Question, user) -> bool:
        if question.is_published:
            return True
        return not user.is_anonymous and await self._member_or_role_holder(question, user)

    async def can_create(self, user) -> bool:
        return not user.is_anonymous

    async def can_update(self, question: Question, user) -> bool:
        return (
            not question.is_published
            and not user.is_anonymous
            and await self._member_or_role_holder(question, user)
        )

    async def can_destroy(self, question: Question, user) -> bool:
        return await self.can_update(question, user)

    async def can_publish(self, question: Question, user) -> bool:
        return (
            not question.is_published
            and not user.is_anonymous
            and await self.roles.has_role_permission(question, user, "any")
        )

    async def can_new_version(self, question: Question, user) -> bool:
        return (
            question.is_published
            and not user.is_anonymous
            and await lineage.is_latest(self.db, question)
            and await self.roles.has_role_permission(question, user, "any")
        )

    async def can_derive(self, question: Question, user) -> bool:
        return question.is_published and not user.is_anonymous

    async def can_join(self, question: Question, user) -> bool:
        return not await self.roles.has_role(question, user, "is_listed")

    async def can_request_roles(self, question: Question, user) -> bool:
        return await self.can_update(question, user)

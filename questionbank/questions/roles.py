import logging
from typing import List, Optional
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User, Deputization
from questionbank.comments.service import CommentService
from questionbank.questions.models import Question, QuestionCollaborator, QuestionRoleRequest

logger = logging.getLogger(__name__)

ROLES = ("author", "copyright_holder", "any", "is_listed")


class RoleService:
    """Who holds which collaboration role on a question, and who may act for them."""

    def __init__(self, db: AsyncSession, comments: Optional[CommentService] = None):
        self.db = db
        self.comments = comments or CommentService(db)

    async def collaborators(self, question: Question) -> List[QuestionCollaborator]:
        result = await self.db.execute(
            select(QuestionCollaborator)
            .where(QuestionCollaborator.question_id == question.id)
            .order_by(QuestionCollaborator.position, QuestionCollaborator.id)
        )
        return list(result.scalars().all())

    async def collaborator_for(self, question: Question, user) -> Optional[QuestionCollaborator]:
        if user.is_anonymous:
            return None
        result = await self.db.execute(
            select(QuestionCollaborator).where(
                QuestionCollaborator.question_id == question.id,
                QuestionCollaborator.user_id == user.id,
            )
        )
        return result.scalar_one_or_none()

    async def _has_role_by_id(self, question: Question, user_id: int, role: str) -> bool:
        result = await self.db.execute(
            select(QuestionCollaborator).where(
                QuestionCollaborator.question_id == question.id,
                QuestionCollaborator.user_id == user_id,
            )
        )
        collaborator = result.scalar_one_or_none()
        return collaborator is not None and collaborator.has_role(role)

    async def has_role(self, question: Question, user, role: str) -> bool:
        if user.is_anonymous:
            return False
        return await self._has_role_by_id(question, user.id, role)

    async def is_collaborator(self, question: Question, user) -> bool:
        return await self.collaborator_for(question, user) is not None

    async def has_all_roles(self, question: Question) -> bool:
        author_filled = False
        copyright_filled = False
        for collaborator in await self.collaborators(question):
            author_filled = author_filled or collaborator.is_author
            copyright_filled = copyright_filled or collaborator.is_copyright_holder
        return bool(author_filled and copyright_filled)

    async def deputizer_ids(self, user) -> List[int]:
        if user.is_anonymous:
            return []
        result = await self.db.execute(
            select(Deputization.deputizer_id).where(Deputization.deputy_id == user.id)
        )
        return list(result.scalars().all())

    async def has_role_permission_as_deputy(self, question: Question, user, role: str) -> bool:
        for deputizer_id in await self.deputizer_ids(user):
            if await self._has_role_by_id(question, deputizer_id, role):
                return True
        return False

    async def has_role_permission(self, question: Question, user, role: str) -> bool:
        if user.is_anonymous:
            return False
        return (
            await self.has_role(question, user, role)
            or await self.has_role_permission_as_deputy(question, user, role)
        )

    async def roleless_collaborators(self, question: Question) -> List[QuestionCollaborator]:
        return [c for c in await self.collaborators(question) if not c.has_role("any")]

    async def pending_role_requests(self, question: Question) -> List[QuestionRoleRequest]:
        result = await self.db.execute(
            select(QuestionRoleRequest)
            .join(QuestionCollaborator, QuestionCollaborator.id == QuestionRoleRequest.question_collaborator_id)
            .where(QuestionCollaborator.question_id == question.id)
            .order_by(QuestionRoleRequest.id)
        )
        return list(result.scalars().all())

    async def add_collaborator(
        self,
        question: Question,
        user: User,
        is_author: bool = False,
        is_copyright_holder: bool = False,
    ) -> QuestionCollaborator:
        existing = await self.collaborator_for(question, user)
        if existing:
            return existing
        result = await self.db.execute(
            select(func.max(QuestionCollaborator.position)).where(
                QuestionCollaborator.question_id == question.id
            )
        )
        last_position = result.scalar()
        collaborator = QuestionCollaborator(
            question_id=question.id,
            user_id=user.id,
            position=0 if last_position is None else last_position + 1,
            is_author=is_author,
            is_copyright_holder=is_copyright_holder,
        )
        self.db.add(collaborator)
        await self.db.flush()
        return collaborator

    async def set_initial_roles(self, question: Question, user: User) -> QuestionCollaborator:
        """Give the creator of a question both roles and follow its comment thread."""
        collaborator = await self.add_collaborator(question, user)
        collaborator.is_author = True
        collaborator.is_copyright_holder = True
        await self.db.flush()
        await self.comments.subscribe(question.comment_thread_id, user)
        return collaborator

    async def copy_roles(self, source: Question, target: Question) -> List[QuestionCollaborator]:
        copies = []
        for collaborator in await self.collaborators(source):
            copy = QuestionCollaborator(
                question_id=target.id,
                user_id=collaborator.user_id,
                position=collaborator.position,
                is_author=collaborator.is_author,
                is_copyright_holder=collaborator.is_copyright_holder,
            )
            self.db.add(copy)
            copies.append(copy)
        await self.db.flush()
        return copies

    async def request_role_change(
        self,
        collaborator: QuestionCollaborator,
        requestor: User,
        toggle_is_author: bool = False,
        toggle_is_copyright_holder: bool = False,
    ) -> QuestionRoleRequest:
        if not (toggle_is_author or toggle_is_copyright_holder):
            raise ValueError("A role request must toggle at least one role")
        request = QuestionRoleRequest(
            question_collaborator_id=collaborator.id,
            requestor_id=requestor.id,
            toggle_is_author=toggle_is_author,
            toggle_is_copyright_holder=toggle_is_copyright_holder,
        )
        self.db.add(request)
        await self.db.flush()
        return request

    async def _apply_request(self, request: QuestionRoleRequest) -> QuestionCollaborator:
        collaborator = await self.db.get(QuestionCollaborator, request.question_collaborator_id)
        if request.toggle_is_author:
            collaborator.is_author = not collaborator.is_author
        if request.toggle_is_copyright_holder:
            collaborator.is_copyright_holder = not collaborator.is_copyright_holder
        await self.db.delete(request)
        await self.db.flush()
        return collaborator

    async def grant_request(self, request: QuestionRoleRequest) -> QuestionCollaborator:
        """Apply a role toggle; a toggle that drops the last held role approves what is left pending."""
        collaborator = await self._apply_request(request)
        question = await self.db.get(Question, collaborator.question_id)
        await self.grant_all_requests_if_no_role_holders_left(question)
        return collaborator

    async def reject_request(self, request: QuestionRoleRequest) -> None:
        await self.db.delete(request)
        await self.db.flush()

    async def grant_all_requests_if_no_role_holders_left(self, question: Question) -> int:
        """Approve every pending request once nobody is left holding a role to approve them."""
        if any(c.has_role("any") for c in await self.collaborators(question)):
            return 0
        requests = await self.pending_role_requests(question)
        for request in requests:
            await self._apply_request(request)
        if requests:
            logger.info(f"Auto-granted {len(requests)} role request(s) on question {question.id}")
        return len(requests)

    async def revoke_roles(
        self,
        collaborator: QuestionCollaborator,
        author: bool = True,
        copyright_holder: bool = True,
    ) -> QuestionCollaborator:
        if author:
            collaborator.is_author = False
        if copyright_holder:
            collaborator.is_copyright_holder = False
        await self.db.flush()
        question = await self.db.get(Question, collaborator.question_id)
        await self.grant_all_requests_if_no_role_holders_left(question)
        return collaborator

    async def remove_collaborator(self, collaborator: QuestionCollaborator) -> None:
        question = await self.db.get(Question, collaborator.question_id)
        await self.db.execute(
            delete(QuestionRoleRequest).where(
                QuestionRoleRequest.question_collaborator_id == collaborator.id
            )
        )
        await self.db.delete(collaborator)
        await self.db.flush()
        await self.grant_all_requests_if_no_role_holders_left(question)

    async def destroy_collaborators(self, collaborators: List[QuestionCollaborator]) -> None:
        for collaborator in collaborators:
            await self.db.execute(
                delete(QuestionRoleRequest).where(
                    QuestionRoleRequest.question_collaborator_id == collaborator.id
                )
            )
            await self.db.delete(collaborator)
        await self.db.flush()

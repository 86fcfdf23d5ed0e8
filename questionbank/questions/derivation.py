import logging
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.comments.service import CommentService
from questionbank.database import atomic
from questionbank.licenses.service import LicenseService
from questionbank.projects.models import Project
from questionbank.projects.service import ProjectService
from questionbank.questions import lineage
from questionbank.questions.exceptions import LifecycleError
from questionbank.questions.models import (
    DependencyKind, Question, QuestionDependencyPair, QuestionDerivation, QuestionSetup, UNLOCKED,
)
from questionbank.questions.roles import RoleService
from questionbank.questions.variants import variant_for

logger = logging.getLogger(__name__)


class DerivationEngine:
    """Creates drafts: brand new ones, new versions of a published question, and derivations."""

    def __init__(
        self,
        db: AsyncSession,
        roles: Optional[RoleService] = None,
        comments: Optional[CommentService] = None,
        projects: Optional[ProjectService] = None,
        licenses: Optional[LicenseService] = None,
    ):
        self.db = db
        self.comments = comments or CommentService(db)
        self.roles = roles or RoleService(db, self.comments)
        self.projects = projects or ProjectService(db)
        self.licenses = licenses or LicenseService(db)

    async def _assign_number(self, question: Question) -> None:
        # New versions arrive with their number already set
        if question.number is not None:
            return
        result = await self.db.execute(select(func.max(Question.number)))
        highest = result.scalar()
        question.number = 1 if highest is None else highest + 1

    async def create(
        self,
        question: Question,
        user: User,
        project: Optional[Project] = None,
        set_initial_roles: bool = True,
        source_question: Optional[Question] = None,
        deriver_id: Optional[int] = None,
    ) -> Question:
        """Save a new draft, give ``user`` its roles and file it in a project, all or nothing."""
        async with atomic(self.db):
            if question.license_id is None:
                question.license_id = (await self.licenses.default_license()).id
            if question.question_setup_id is None:
                setup = QuestionSetup(content="")
                self.db.add(setup)
                await self.db.flush()
                question.question_setup_id = setup.id
            thread = await self.comments.create_thread()
            question.comment_thread_id = thread.id
            await self._assign_number(question)
            question.version = None
            question.locked_by = UNLOCKED
            question.locked_at = None

            self.db.add(question)
            await self.db.flush()

            if set_initial_roles:
                await self.roles.set_initial_roles(question, user)
            if project is None:
                project = await self.projects.default_for_user(user)
            await self.projects.add_question(project, question)
            if source_question is not None and deriver_id is not None:
                self.db.add(QuestionDerivation(
                    source_question_id=source_question.id,
                    derived_question_id=question.id,
                    deriver_id=deriver_id,
                ))
                await self.db.flush()

        logger.info(f"Created draft {lineage.format_external_id(question)} (q. {question.number}) for user {user.id}")
        return question

    async def content_copy(self, question: Question) -> Question:
        """Unsaved copy of the content; the setup is duplicated, roles and dependencies are not."""
        kopy = variant_for(question).build_copy(question)
        kopy.license_id = question.license_id
        if question.question_setup_id is not None:
            setup = await self.db.get(QuestionSetup, question.question_setup_id)
            setup_copy = QuestionSetup(content=setup.content)
            self.db.add(setup_copy)
            await self.db.flush()
            kopy.question_setup_id = setup_copy.id
        return kopy

    async def _create_copy(self, question: Question, user: User, **options) -> Question:
        async with atomic(self.db):
            kopy = await self.content_copy(question)
            if options.pop("same_number", False):
                kopy.number = question.number
            await self.create(kopy, user, **options)
            await variant_for(question).copy_children(self.db, question, kopy)
        return kopy

    async def new_version(self, question: Question, user: User, project: Optional[Project] = None) -> Question:
        """Start a draft of the next version; collaborators carry over unchanged."""
        if not question.is_published:
            raise LifecycleError("Only published questions can be given a new version.")
        async with atomic(self.db):
            draft = await self._create_copy(
                question, user, project=project, set_initial_roles=False, same_number=True
            )
            await self.roles.copy_roles(question, draft)
        logger.info(f"User {user.id} started a new version of {lineage.format_external_id(question)} as d{draft.id}")
        return draft

    async def new_derivation(self, question: Question, user: User, project: Optional[Project] = None) -> Optional[Question]:
        """Branch a published question into an independent draft with its own number."""
        if not question.is_published:
            return None
        derived = await self._create_copy(
            question, user, project=project, source_question=question, deriver_id=user.id
        )
        logger.info(f"User {user.id} derived d{derived.id} from {lineage.format_external_id(question)}")
        return derived

    # Dependency graph; edges belong to the exact question rows and are never copied

    async def add_dependency(
        self, independent: Question, dependent: Question, kind: DependencyKind
    ) -> QuestionDependencyPair:
        if independent.id == dependent.id:
            raise ValueError("A question cannot depend on itself")
        pair = QuestionDependencyPair(
            independent_question_id=independent.id,
            dependent_question_id=dependent.id,
            kind=kind,
        )
        async with atomic(self.db):
            self.db.add(pair)
            await self.db.flush()
        return pair

    async def dependency_pairs(self, question: Question, kind: DependencyKind, outgoing: bool) -> List[QuestionDependencyPair]:
        column = (
            QuestionDependencyPair.independent_question_id if outgoing
            else QuestionDependencyPair.dependent_question_id
        )
        result = await self.db.execute(
            select(QuestionDependencyPair)
            .where(column == question.id, QuestionDependencyPair.kind == kind)
            .order_by(QuestionDependencyPair.id)
        )
        return list(result.scalars().all())

    async def _linked_questions(self, question: Question, kind: DependencyKind, outgoing: bool) -> List[Question]:
        pairs = await self.dependency_pairs(question, kind, outgoing)
        linked = []
        for pair in pairs:
            other_id = pair.dependent_question_id if outgoing else pair.independent_question_id
            linked.append(await self.db.get(Question, other_id))
        return linked

    async def prerequisite_questions(self, question: Question) -> List[Question]:
        return await self._linked_questions(question, DependencyKind.REQUIREMENT, outgoing=False)

    async def dependent_questions(self, question: Question) -> List[Question]:
        return await self._linked_questions(question, DependencyKind.REQUIREMENT, outgoing=True)

    async def supporting_questions(self, question: Question) -> List[Question]:
        return await self._linked_questions(question, DependencyKind.SUPPORT, outgoing=False)

    async def supported_questions(self, question: Question) -> List[Question]:
        return await self._linked_questions(question, DependencyKind.SUPPORT, outgoing=True)

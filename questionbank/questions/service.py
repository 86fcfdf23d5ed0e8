import logging
from typing import List, Optional
from sqlalchemy import select, delete, or_
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.comments.service import CommentService
from questionbank.database import atomic
from questionbank.projects.models import Project, ProjectQuestion
from questionbank.projects.service import ProjectService
from questionbank.questions import lineage
from questionbank.questions.derivation import DerivationEngine
from questionbank.questions.exceptions import AccessDenied, ImmutableStateViolation, LifecycleError
from questionbank.questions.locking import LockManager
from questionbank.questions.models import (
    AnswerChoice, Question, QuestionCollaborator, QuestionDependencyPair, QuestionDerivation,
    QuestionPart, QuestionRoleRequest, QuestionSetup, QuestionType, Solution,
)
from questionbank.questions.permissions import QuestionPolicy
from questionbank.questions.publishing import PublishWorkflow, destroy_setup_if_unattached
from questionbank.questions.roles import RoleService
from questionbank.questions.schemas import QuestionCreate, QuestionUpdate
from questionbank.questions.search import QuestionSearch, SearchScope

logger = logging.getLogger(__name__)


class QuestionService:
    """Entry point for question actions: authorizes, takes the edit lock, then delegates."""

    def __init__(self, db: AsyncSession, lock_timeout: Optional[int] = None):
        self.db = db
        self.comments = CommentService(db)
        self.projects = ProjectService(db)
        self.roles = RoleService(db, self.comments)
        self.policy = QuestionPolicy(db, self.roles, self.projects)
        self.locks = LockManager(db, lock_timeout=lock_timeout)
        self.workflow = PublishWorkflow(db, self.roles, self.comments)
        self.derivations = DerivationEngine(db, self.roles, self.comments, self.projects)
        self.searcher = QuestionSearch(db)

    async def get(self, external_id: str, user) -> Question:
        question = await lineage.find_by_external_id(self.db, external_id)
        if not await self.policy.can_read(question, user):
            raise AccessDenied(f"You cannot view question {external_id}")
        return question

    async def create(self, question_in: QuestionCreate, user: User) -> Question:
        if not await self.policy.can_create(user):
            raise AccessDenied("You must be signed in to create questions")
        project = None
        if question_in.project_id is not None:
            project = await self.db.get(Project, question_in.project_id)
            if project is None or project.id not in [p.id for p in await self.projects.all_for_user(user)]:
                raise AccessDenied(f"You cannot add questions to project {question_in.project_id}")

        question = Question(
            question_type=question_in.question_type,
            content=question_in.content or "",
            changes_solution=bool(question_in.changes_solution),
            matchings=question_in.matchings if question_in.question_type == QuestionType.MATCHING else None,
        )
        async with atomic(self.db):
            if question_in.setup_content:
                setup = QuestionSetup(content=question_in.setup_content)
                self.db.add(setup)
                await self.db.flush()
                question.question_setup_id = setup.id
            await self.derivations.create(question, user, project=project)
        return question

    async def apply_editable_fields(self, question: Question, update: QuestionUpdate) -> Question:
        """Copy the whitelisted fields of ``update`` onto a draft."""
        if question.is_published:
            raise ImmutableStateViolation("Changes cannot be made to a published question.")
        fields = update.model_dump(exclude_unset=True)
        if fields.get("content") is not None:
            question.content = fields["content"]
        if fields.get("changes_solution") is not None:
            question.changes_solution = fields["changes_solution"]
        if fields.get("matchings") is not None and question.question_type == QuestionType.MATCHING:
            question.matchings = fields["matchings"]
        if fields.get("setup_content") is not None:
            await self._update_setup(question, fields["setup_content"])
        await self.db.flush()
        return question

    async def _update_setup(self, question: Question, content: str) -> None:
        setup = None
        if question.question_setup_id is not None:
            setup = await self.db.get(QuestionSetup, question.question_setup_id)
        if setup is None:
            setup = QuestionSetup(content=content)
            self.db.add(setup)
            await self.db.flush()
            question.question_setup_id = setup.id
        elif not await self.setup_is_changeable(question):
            raise ImmutableStateViolation("This setup is shared with a published question and cannot be changed.")
        else:
            setup.content = content

    async def setup_is_changeable(self, question: Question) -> bool:
        if question.is_published:
            return False
        if question.question_setup_id is None:
            return True
        others = await self.db.execute(
            select(Question.id).where(
                Question.question_setup_id == question.question_setup_id,
                Question.version.is_not(None),
            ).limit(1)
        )
        return others.first() is None

    async def update(self, external_id: str, user: User, update: QuestionUpdate) -> Question:
        """Save an edit; the editor must hold the lock, which the save releases."""
        question = await lineage.find_by_external_id(self.db, external_id)
        if question.is_published:
            raise ImmutableStateViolation("Changes cannot be made to a published question.")
        if not await self.policy.can_update(question, user):
            raise AccessDenied(f"You cannot edit question {external_id}")
        async with atomic(self.db):
            await self.locks.check_and_unlock(question, user)
            await self.apply_editable_fields(question, update)
        return question

    async def lock(self, external_id: str, user: User) -> Question:
        question = await lineage.find_by_external_id(self.db, external_id)
        if question.is_published:
            raise ImmutableStateViolation("Published questions cannot be locked.")
        if not await self.policy.can_update(question, user):
            raise AccessDenied(f"You cannot edit question {external_id}")
        await self.locks.get_lock(question, user)
        return question

    async def unlock(self, external_id: str, user: User) -> Question:
        question = await lineage.find_by_external_id(self.db, external_id)
        await self.locks.check_and_unlock(question, user)
        return question

    async def publish(self, external_id: str, user: User) -> Question:
        """Publish a draft; when it is not ready the reasons are on ``question.errors``."""
        question = await lineage.find_by_external_id(self.db, external_id)
        if not await self.policy.can_publish(question, user):
            raise AccessDenied(f"You cannot publish question {external_id}")
        await self.locks.get_lock(question, user)
        await self.workflow.publish(question, user)
        return question

    async def new_version(self, external_id: str, user: User, project: Optional[Project] = None) -> Question:
        question = await lineage.find_by_external_id(self.db, external_id)
        if not await self.policy.can_new_version(question, user):
            raise AccessDenied(f"You cannot start a new version of question {external_id}")
        return await self.derivations.new_version(question, user, project)

    async def derive(self, external_id: str, user: User, project: Optional[Project] = None) -> Question:
        question = await lineage.find_by_external_id(self.db, external_id)
        if not await self.policy.can_derive(question, user):
            raise AccessDenied(f"You cannot derive from question {external_id}")
        derived = await self.derivations.new_derivation(question, user, project)
        if derived is None:
            raise LifecycleError("Only published questions can be derived from.")
        return derived

    async def destroy(self, external_id: str, user: User) -> None:
        question = await lineage.find_by_external_id(self.db, external_id)
        if question.is_published:
            raise ImmutableStateViolation("Published questions cannot be destroyed.")
        if not await self.policy.can_destroy(question, user):
            raise AccessDenied(f"You cannot delete question {external_id}")
        await self.locks.get_lock(question, user)
        await self.destroy_draft(question)

    async def destroy_draft(self, question: Question) -> None:
        """Delete a draft together with the rows that only make sense alongside it."""
        if question.is_published:
            raise ImmutableStateViolation("Published questions cannot be destroyed.")
        question_id = question.id
        setup_id = question.question_setup_id
        thread_id = question.comment_thread_id
        async with atomic(self.db):
            for collaborator in await self.roles.collaborators(question):
                await self.db.execute(
                    delete(QuestionRoleRequest).where(
                        QuestionRoleRequest.question_collaborator_id == collaborator.id
                    )
                )
            await self.db.execute(delete(QuestionCollaborator).where(QuestionCollaborator.question_id == question_id))
            await self.db.execute(delete(ProjectQuestion).where(ProjectQuestion.question_id == question_id))
            await self.db.execute(
                delete(QuestionDependencyPair).where(or_(
                    QuestionDependencyPair.independent_question_id == question_id,
                    QuestionDependencyPair.dependent_question_id == question_id,
                ))
            )
            await self.db.execute(
                delete(QuestionPart).where(or_(
                    QuestionPart.multipart_question_id == question_id,
                    QuestionPart.child_question_id == question_id,
                ))
            )
            await self.db.execute(
                delete(QuestionDerivation).where(QuestionDerivation.derived_question_id == question_id)
            )
            await self.db.execute(delete(AnswerChoice).where(AnswerChoice.question_id == question_id))
            await self.db.execute(delete(Solution).where(Solution.question_id == question_id))
            await self.db.delete(question)
            await self.db.flush()
            await self.comments.destroy_thread(thread_id)
            await destroy_setup_if_unattached(self.db, setup_id)
        logger.info(f"Destroyed draft d{question_id}")

    async def search(
        self,
        type_filter: Optional[QuestionType],
        scope: SearchScope,
        text: Optional[str],
        user,
    ) -> List[Question]:
        return await self.searcher.search(type_filter, scope, text, user)

from enum import Enum
from typing import List, Optional
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import Deputization
from questionbank.projects.models import ProjectMember, ProjectQuestion
from questionbank.questions.models import Question, QuestionCollaborator, QuestionType


class SearchScope(str, Enum):
    ALL = "all"
    PUBLISHED = "published"
    MY_DRAFTS = "my_drafts"
    MY_PROJECTS = "my_projects"


class QuestionSearch:
    def __init__(self, db: AsyncSession):
        self.db = db

    def _readable_drafts(self, user):
        """Ids of drafts ``user`` may read: in one of their projects, or holding a role (directly or as deputy)."""
        member_projects = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
        in_projects = select(ProjectQuestion.question_id).where(
            ProjectQuestion.project_id.in_(member_projects)
        )
        acting_for = select(Deputization.deputizer_id).where(Deputization.deputy_id == user.id)
        with_roles = select(QuestionCollaborator.question_id).where(
            or_(QuestionCollaborator.user_id == user.id, QuestionCollaborator.user_id.in_(acting_for)),
            or_(QuestionCollaborator.is_author.is_(True), QuestionCollaborator.is_copyright_holder.is_(True)),
        )
        return or_(Question.id.in_(in_projects), Question.id.in_(with_roles))

    async def search(
        self,
        type_filter: Optional[QuestionType],
        scope: SearchScope,
        text: Optional[str],
        user,
    ) -> List[Question]:
        """Filter questions by type, scope and a case-insensitive substring of their content.

        Drafts only show up for users allowed to read them.
        """
        query = select(Question)

        if type_filter is not None:
            query = query.where(Question.question_type == type_filter)

        if user.is_anonymous:
            if scope in (SearchScope.MY_DRAFTS, SearchScope.MY_PROJECTS):
                return []
            query = query.where(Question.version.is_not(None))
        else:
            query = query.where(or_(Question.version.is_not(None), self._readable_drafts(user)))

        if scope == SearchScope.PUBLISHED:
            query = query.where(Question.version.is_not(None))
        elif scope == SearchScope.MY_DRAFTS:
            query = query.where(Question.version.is_(None))
        elif scope == SearchScope.MY_PROJECTS:
            member_projects = select(ProjectMember.project_id).where(ProjectMember.user_id == user.id)
            project_questions = select(ProjectQuestion.question_id).where(
                ProjectQuestion.project_id.in_(member_projects)
            )
            query = query.where(Question.id.in_(project_questions))

        if text and text.strip():
            pattern = "%" + _escape_like(text.strip()) + "%"
            query = query.where(Question.content.ilike(pattern, escape="\\"))

        result = await self.db.execute(query.order_by(Question.number, Question.version, Question.id))
        return list(result.scalars().all())


def _escape_like(text: str) -> str:
    # "*" is the user-facing wildcard; SQL wildcards in the text match literally
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return escaped.replace("*", "%")

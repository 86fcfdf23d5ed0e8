import logging
from typing import List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.projects.models import Project, ProjectMember, ProjectQuestion

logger = logging.getLogger(__name__)


class ProjectService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def default_for_user(self, user: User) -> Project:
        """Return the user's default project, creating it on first use."""
        result = await self.db.execute(
            select(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(ProjectMember.user_id == user.id, ProjectMember.is_default == True)
            .limit(1)
        )
        project = result.scalar_one_or_none()
        if project:
            return project

        project = Project(name=f"{user.display_name}'s Project")
        self.db.add(project)
        await self.db.flush()
        self.db.add(ProjectMember(project_id=project.id, user_id=user.id, is_default=True))
        await self.db.flush()
        logger.info(f"Created default project {project.id} for user {user.id}")
        return project

    async def add_member(self, project: Project, user: User) -> ProjectMember:
        member = ProjectMember(project_id=project.id, user_id=user.id, is_default=False)
        self.db.add(member)
        await self.db.flush()
        return member

    async def add_question(self, project: Project, question) -> ProjectQuestion:
        existing = await self.db.execute(
            select(ProjectQuestion).where(
                ProjectQuestion.project_id == project.id,
                ProjectQuestion.question_id == question.id,
            )
        )
        link = existing.scalar_one_or_none()
        if link:
            return link
        link = ProjectQuestion(project_id=project.id, question_id=question.id)
        self.db.add(link)
        await self.db.flush()
        return link

    async def all_for_user(self, user: User) -> List[Project]:
        if user.is_anonymous:
            return []
        result = await self.db.execute(
            select(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(ProjectMember.user_id == user.id)
            .order_by(Project.id)
        )
        return list(result.scalars().all())

    async def question_ids(self, project: Project) -> List[int]:
        result = await self.db.execute(
            select(ProjectQuestion.question_id).where(ProjectQuestion.project_id == project.id)
        )
        return list(result.scalars().all())

    async def is_member_for_question(self, question, user: User) -> bool:
        """True when ``user`` belongs to any project that holds ``question``."""
        if user.is_anonymous:
            return False
        result = await self.db.execute(
            select(ProjectMember.id)
            .join(ProjectQuestion, ProjectQuestion.project_id == ProjectMember.project_id)
            .where(
                ProjectQuestion.question_id == question.id,
                ProjectMember.user_id == user.id,
            )
            .limit(1)
        )
        return result.first() is not None

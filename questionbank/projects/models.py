from sqlalchemy import Column, String, ForeignKey, Boolean, UniqueConstraint
from questionbank.database import Base
from questionbank.shared.models import AuditMixin


class Project(Base, AuditMixin):
    """A workspace grouping questions a set of users work on together."""
    __tablename__ = "projects"

    name = Column(String, nullable=False)


class ProjectMember(Base, AuditMixin):
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id"),)

    project_id = Column(ForeignKey("projects.id"), nullable=False, index=True)
    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    is_default = Column(Boolean, default=False, nullable=False)


class ProjectQuestion(Base, AuditMixin):
    __tablename__ = "project_questions"
    __table_args__ = (UniqueConstraint("project_id", "question_id"),)

    project_id = Column(ForeignKey("projects.id"), nullable=False, index=True)
    question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)

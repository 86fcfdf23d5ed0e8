from enum import Enum
from sqlalchemy import (
    Column, Integer, Text, Boolean, DateTime, Float, ForeignKey, JSON,
    UniqueConstraint, Enum as SAEnum, event, inspect, select,
)
from questionbank.database import Base
from questionbank.shared.models import AuditMixin
from questionbank.questions.exceptions import ImmutableStateViolation
from questionbank.questions.rendering import render_content

UNLOCKED = -1


class QuestionType(str, Enum):
    SIMPLE = "SimpleQuestion"
    MATCHING = "MatchingQuestion"
    MULTIPART = "MultipartQuestion"


class DependencyKind(str, Enum):
    REQUIREMENT = "requirement"
    SUPPORT = "support"


class QuestionSetup(Base, AuditMixin):
    """Introductory material that several questions can share."""
    __tablename__ = "question_setups"

    content = Column(Text, nullable=False, default="")
    content_html = Column(Text, nullable=False, default="")

    @property
    def is_blank(self) -> bool:
        return not (self.content or "").strip()


class Question(Base, AuditMixin):
    """A question draft (``version`` is None) or a published, frozen version of one."""
    __tablename__ = "questions"
    __table_args__ = (UniqueConstraint("number", "version"),)

    question_type = Column(SAEnum(QuestionType), nullable=False, default=QuestionType.SIMPLE)
    number = Column(Integer, nullable=False, index=True)
    version = Column(Integer, nullable=True)

    content = Column(Text, nullable=False, default="")
    content_html = Column(Text, nullable=False, default="")
    changes_solution = Column(Boolean, nullable=False, default=False)
    # Only used by matching questions: [{"left": ..., "right": ...}, ...]
    matchings = Column(JSON, nullable=True)

    locked_by = Column(Integer, nullable=False, default=UNLOCKED)
    locked_at = Column(DateTime, nullable=True)

    license_id = Column(ForeignKey("licenses.id"), nullable=True)
    publisher_id = Column(ForeignKey("users.id"), nullable=True)
    published_at = Column(DateTime, nullable=True)

    question_setup_id = Column(ForeignKey("question_setups.id"), nullable=True)
    comment_thread_id = Column(ForeignKey("comment_threads.id"), nullable=False)

    @property
    def is_published(self) -> bool:
        return self.version is not None

    @property
    def external_id(self) -> str:
        if self.is_published:
            return f"q{self.number}v{self.version}"
        return f"d{self.id}"

    @property
    def errors(self) -> list:
        """Prepublish problems found by the last check; not persisted."""
        if not hasattr(self, "_errors"):
            self._errors = []
        return self._errors

    def __repr__(self) -> str:
        return f"<Question id={self.id} number={self.number} version={self.version}>"


class QuestionCollaborator(Base, AuditMixin):
    __tablename__ = "question_collaborators"
    __table_args__ = (UniqueConstraint("question_id", "user_id"),)

    question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    is_author = Column(Boolean, nullable=False, default=False)
    is_copyright_holder = Column(Boolean, nullable=False, default=False)

    def has_role(self, role: str) -> bool:
        if role == "author":
            return bool(self.is_author)
        if role == "copyright_holder":
            return bool(self.is_copyright_holder)
        if role == "any":
            return bool(self.is_author or self.is_copyright_holder)
        if role == "is_listed":
            return True
        raise ValueError(f"Unknown question role: {role}")


class QuestionRoleRequest(Base, AuditMixin):
    """A pending request to flip role flags on a collaborator."""
    __tablename__ = "question_role_requests"

    question_collaborator_id = Column(ForeignKey("question_collaborators.id"), nullable=False, index=True)
    requestor_id = Column(ForeignKey("users.id"), nullable=False)
    toggle_is_author = Column(Boolean, nullable=False, default=False)
    toggle_is_copyright_holder = Column(Boolean, nullable=False, default=False)


class QuestionDerivation(Base, AuditMixin):
    __tablename__ = "question_derivations"

    source_question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    derived_question_id = Column(ForeignKey("questions.id"), nullable=False, unique=True)
    deriver_id = Column(ForeignKey("users.id"), nullable=True)


class QuestionDependencyPair(Base, AuditMixin):
    """``independent`` is a prerequisite of (requirement) or supports (support) ``dependent``."""
    __tablename__ = "question_dependency_pairs"
    __table_args__ = (UniqueConstraint("independent_question_id", "dependent_question_id", "kind"),)

    independent_question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    dependent_question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    kind = Column(SAEnum(DependencyKind), nullable=False)

    @property
    def is_requirement(self) -> bool:
        return self.kind == DependencyKind.REQUIREMENT

    @property
    def is_support(self) -> bool:
        return self.kind == DependencyKind.SUPPORT


class QuestionPart(Base, AuditMixin):
    __tablename__ = "question_parts"
    __table_args__ = (UniqueConstraint("multipart_question_id", "child_question_id"),)

    multipart_question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    child_question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)


class AnswerChoice(Base, AuditMixin):
    __tablename__ = "answer_choices"

    question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    content_html = Column(Text, nullable=False, default="")
    credit = Column(Float, nullable=False, default=0.0)


class Solution(Base, AuditMixin):
    __tablename__ = "solutions"

    question_id = Column(ForeignKey("questions.id"), nullable=False, index=True)
    creator_id = Column(ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False, default="")
    is_visible = Column(Boolean, nullable=False, default=False)

    def is_visible_for(self, user) -> bool:
        return bool(self.is_visible) or (not user.is_anonymous and self.creator_id == user.id)


# content_html always mirrors content
@event.listens_for(Question.content, "set")
@event.listens_for(QuestionSetup.content, "set")
@event.listens_for(AnswerChoice.content, "set")
def _render_content_html(target, value, oldvalue, initiator):
    target.content_html = render_content(value or "")


def _was_published(target) -> bool:
    history = inspect(target).attrs.version.history
    previous = history.deleted or history.unchanged
    return bool(previous) and previous[0] is not None


@event.listens_for(Question, "before_update")
def _reject_published_changes(mapper, connection, target):
    if not _was_published(target):
        return
    state = inspect(target)
    changed = [
        attr.key for attr in state.attrs
        if attr.key != "updated_at" and attr.history.has_changes()
    ]
    if changed:
        raise ImmutableStateViolation(
            f"Changes cannot be made to a published question ({', '.join(sorted(changed))})."
        )


@event.listens_for(Question, "before_delete")
def _reject_published_delete(mapper, connection, target):
    if _was_published(target):
        raise ImmutableStateViolation("Published questions cannot be destroyed.")


@event.listens_for(AnswerChoice, "before_update")
@event.listens_for(AnswerChoice, "before_delete")
def _reject_published_answer_choice_changes(mapper, connection, target):
    version = connection.execute(
        select(Question.version).where(Question.id == target.question_id)
    ).scalar()
    if version is not None:
        raise ImmutableStateViolation("Answer choices of a published question cannot be changed.")

from sqlalchemy import Column, Text, ForeignKey, UniqueConstraint
from questionbank.database import Base
from questionbank.shared.models import AuditMixin


class CommentThread(Base, AuditMixin):
    """Discussion attached to exactly one question through ``Question.comment_thread_id``."""
    __tablename__ = "comment_threads"


class Comment(Base, AuditMixin):
    __tablename__ = "comments"

    comment_thread_id = Column(ForeignKey("comment_threads.id"), nullable=False, index=True)
    creator_id = Column(ForeignKey("users.id"), nullable=False)
    message = Column(Text, nullable=False)


class CommentThreadSubscription(Base, AuditMixin):
    __tablename__ = "comment_thread_subscriptions"
    __table_args__ = (UniqueConstraint("comment_thread_id", "user_id"),)

    comment_thread_id = Column(ForeignKey("comment_threads.id"), nullable=False, index=True)
    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)

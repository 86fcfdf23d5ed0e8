from sqlalchemy import Column, String, ForeignKey, Boolean, UniqueConstraint
from questionbank.database import Base
from questionbank.shared.models import AuditMixin


class User(Base, AuditMixin):
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)
    is_administrator = Column(Boolean, default=False, nullable=False)
    # Profile preference: follow comment threads of questions this user authors
    auto_author_subscribe = Column(Boolean, default=True, nullable=False)

    is_anonymous = False

    @property
    def display_name(self) -> str:
        return self.full_name or self.email


class AnonymousUser:
    """Stand-in for requests that carry no credentials."""

    id = None
    email = None
    full_name = "Anonymous"
    display_name = "Anonymous"
    is_active = False
    is_administrator = False
    auto_author_subscribe = False
    is_anonymous = True


class Deputization(Base, AuditMixin):
    """``deputy`` may exercise ``deputizer``'s question roles for permission checks."""
    __tablename__ = "deputizations"
    __table_args__ = (UniqueConstraint("deputizer_id", "deputy_id"),)

    deputizer_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    deputy_id = Column(ForeignKey("users.id"), nullable=False, index=True)

from sqlalchemy import Column, String, Boolean
from questionbank.database import Base
from questionbank.shared.models import AuditMixin


class License(Base, AuditMixin):
    __tablename__ = "licenses"

    short_name = Column(String, unique=True, nullable=False)
    long_name = Column(String, nullable=True)
    url = Column(String, nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)

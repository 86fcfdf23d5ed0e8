from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from questionbank.questions.models import QuestionType


class QuestionUpdate(BaseModel):
    """The only question fields users may edit; anything else in the payload is dropped."""
    content: Optional[str] = None
    changes_solution: Optional[bool] = None
    setup_content: Optional[str] = None
    matchings: Optional[List[Dict[str, str]]] = None

    model_config = ConfigDict(extra="ignore")


class QuestionCreate(QuestionUpdate):
    question_type: QuestionType = QuestionType.SIMPLE
    project_id: Optional[int] = None


class QuestionResponse(BaseModel):
    id: int
    external_id: str
    question_type: QuestionType
    number: int
    version: Optional[int] = None
    content: str
    content_html: str
    changes_solution: bool
    matchings: Optional[List[Dict[str, Any]]] = None
    license_id: Optional[int] = None
    publisher_id: Optional[int] = None
    published_at: Optional[datetime] = None
    question_setup_id: Optional[int] = None
    is_published: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PublishResponse(BaseModel):
    published: bool
    errors: List[str] = Field(default_factory=list)
    question: QuestionResponse


class LockResponse(BaseModel):
    external_id: str
    locked: bool
    locked_by: Optional[int] = None
    expires_at: Optional[datetime] = None

from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.database import get_db
from questionbank.auth.dependencies import get_current_user
from questionbank.questions.exceptions import (
    AccessDenied, ImmutableStateViolation, LifecycleError, LockConflict, LockNotHeld,
    QuestionError, QuestionNotFound, UntrustedReference,
)
from questionbank.questions.models import QuestionType
from questionbank.questions.schemas import (
    LockResponse, PublishResponse, QuestionCreate, QuestionResponse, QuestionUpdate,
)
from questionbank.questions.search import SearchScope
from questionbank.questions.service import QuestionService

router = APIRouter(prefix="/questions", tags=["questions"])

_STATUS_FOR_ERROR = {
    UntrustedReference: status.HTTP_400_BAD_REQUEST,
    AccessDenied: status.HTTP_403_FORBIDDEN,
    QuestionNotFound: status.HTTP_404_NOT_FOUND,
    LockConflict: status.HTTP_409_CONFLICT,
    LockNotHeld: status.HTTP_409_CONFLICT,
    ImmutableStateViolation: status.HTTP_409_CONFLICT,
    LifecycleError: status.HTTP_409_CONFLICT,
}


def _http_error(e: QuestionError) -> HTTPException:
    return HTTPException(status_code=_STATUS_FOR_ERROR.get(type(e), 400), detail=str(e))


def _lock_response(service: QuestionService, question) -> LockResponse:
    locked = service.locks.is_locked(question)
    return LockResponse(
        external_id=question.external_id,
        locked=locked,
        locked_by=question.locked_by if locked else None,
        expires_at=service.locks.expires_at(question) if locked else None,
    )


@router.get("/search", response_model=List[QuestionResponse])
async def search_questions(
    question_type: Optional[QuestionType] = None,
    scope: SearchScope = SearchScope.ALL,
    q: Optional[str] = None,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    return await service.search(question_type, scope, q, current_user)


@router.get("/{external_id}", response_model=QuestionResponse)
async def get_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        return await service.get(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)


@router.post("", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(
    question_in: QuestionCreate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        return await service.create(question_in, current_user)
    except QuestionError as e:
        raise _http_error(e)


@router.put("/{external_id}", response_model=QuestionResponse)
async def update_question(
    external_id: str,
    question_in: QuestionUpdate,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        return await service.update(external_id, current_user, question_in)
    except QuestionError as e:
        raise _http_error(e)


@router.post("/{external_id}/lock", response_model=LockResponse)
async def lock_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        question = await service.lock(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)
    return _lock_response(service, question)


@router.post("/{external_id}/unlock", response_model=LockResponse)
async def unlock_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        question = await service.unlock(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)
    return _lock_response(service, question)


@router.post("/{external_id}/publish", response_model=PublishResponse)
async def publish_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Publish a draft. A draft that fails its prepublish checks is answered
    with 422 and the list of reasons.
    """
    service = QuestionService(db)
    try:
        question = await service.publish(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)
    if not question.is_published:
        raise HTTPException(status_code=422, detail=list(question.errors))
    return PublishResponse(
        published=True,
        question=QuestionResponse.model_validate(question),
    )


@router.post("/{external_id}/new_version", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def new_version(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        return await service.new_version(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)


@router.post("/{external_id}/derive", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def derive_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        return await service.derive(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)


@router.delete("/{external_id}", status_code=status.HTTP_204_NO_CONTENT)
async def destroy_question(
    external_id: str,
    current_user=Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = QuestionService(db)
    try:
        await service.destroy(external_id, current_user)
    except QuestionError as e:
        raise _http_error(e)

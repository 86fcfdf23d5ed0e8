import pytest
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import AnonymousUser
from questionbank.comments.models import CommentThread
from questionbank.projects.models import ProjectQuestion
from questionbank.questions.exceptions import (
    AccessDenied, ImmutableStateViolation, LifecycleError, LockConflict, LockNotHeld,
)
from questionbank.questions.models import (
    AnswerChoice, Question, QuestionCollaborator, QuestionDependencyPair, QuestionSetup, DependencyKind,
)
from questionbank.questions.schemas import QuestionCreate, QuestionUpdate
from questionbank.questions.service import QuestionService


@pytest.mark.asyncio
async def test_update_requires_the_lock_and_releases_it(db_session: AsyncSession, author, other_user):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Draft", setup_content="Intro"), author)
    question_id = question.id
    external_id = question.external_id

    with pytest.raises(LockNotHeld):
        await service.update(external_id, author, QuestionUpdate(content="Edited"))
    # The failed save rolled back and expired everything loaded in the session
    await db_session.refresh(author)
    await db_session.refresh(other_user)
    question = await db_session.get(Question, question_id)
    assert question.content == "Draft"

    await service.lock(external_id, author)
    updated = await service.update(
        external_id, author, QuestionUpdate(content="Edited", setup_content="New intro", changes_solution=True)
    )
    assert updated.content == "Edited"
    assert updated.content_html == "<p>Edited</p>"
    assert updated.changes_solution
    assert not service.locks.is_locked(updated)
    setup = await db_session.get(QuestionSetup, updated.question_setup_id)
    assert setup.content == "New intro"

    with pytest.raises(AccessDenied):
        await service.update(external_id, other_user, QuestionUpdate(content="Hijack"))


@pytest.mark.asyncio
async def test_update_ignores_fields_outside_the_editable_set(db_session: AsyncSession, author):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Draft"), author)
    number = question.number

    await service.lock(question.external_id, author)
    payload = QuestionUpdate.model_validate({"content": "Edited", "number": 99, "version": 3, "locked_by": 7})
    updated = await service.update(question.external_id, author, payload)
    assert updated.number == number
    assert updated.version is None


@pytest.mark.asyncio
async def test_lock_conflict_between_editors(db_session: AsyncSession, author, other_user):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Shared"), author)
    await service.roles.add_collaborator(question, other_user, is_author=True)

    await service.lock(question.external_id, author)
    with pytest.raises(LockConflict):
        await service.lock(question.external_id, other_user)


@pytest.mark.asyncio
async def test_published_questions_reject_edits(db_session: AsyncSession, author):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Final"), author)
    await service.publish(question.external_id, author)
    assert question.external_id == f"q{question.number}v1"

    with pytest.raises(ImmutableStateViolation):
        await service.update(question.external_id, author, QuestionUpdate(content="Oops"))
    with pytest.raises(ImmutableStateViolation):
        await service.destroy(question.external_id, author)
    with pytest.raises(ImmutableStateViolation):
        await service.lock(question.external_id, author)
    assert not await service.setup_is_changeable(question)


@pytest.mark.asyncio
async def test_new_version_and_derive_permissions(db_session: AsyncSession, author, other_user):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Original"), author)
    with pytest.raises(AccessDenied):
        await service.new_version(question.external_id, author)

    await service.publish(question.external_id, author)
    draft = await service.new_version(question.external_id, author)
    assert draft.number == question.number

    with pytest.raises(AccessDenied):
        await service.new_version(question.external_id, other_user)
    derived = await service.derive(question.external_id, other_user)
    assert derived.number != question.number
    with pytest.raises(AccessDenied):
        await service.derive(question.external_id, AnonymousUser())


@pytest.mark.asyncio
async def test_read_permissions(db_session: AsyncSession, author, other_user):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Secret draft"), author)

    assert await service.get(question.external_id, author) is question
    with pytest.raises(AccessDenied):
        await service.get(question.external_id, other_user)
    with pytest.raises(AccessDenied):
        await service.get(question.external_id, AnonymousUser())
    with pytest.raises(AccessDenied):
        await service.create(QuestionCreate(content="Nope"), AnonymousUser())

    await service.publish(question.external_id, author)
    assert await service.get(question.external_id, AnonymousUser()) is question


@pytest.mark.asyncio
async def test_destroy_removes_draft_and_its_records(db_session: AsyncSession, author, make_published):
    service = QuestionService(db_session)
    prerequisite = await make_published(author, content="Basics")
    question = await service.create(QuestionCreate(content="Doomed", setup_content="Setup"), author)
    question_id = question.id
    setup_id = question.question_setup_id
    thread_id = question.comment_thread_id
    db_session.add(AnswerChoice(question_id=question_id, content="42", credit=1.0))
    await db_session.flush()
    await service.derivations.add_dependency(prerequisite, question, DependencyKind.REQUIREMENT)

    await service.destroy(question.external_id, author)

    assert await db_session.get(Question, question_id) is None
    assert await db_session.get(QuestionSetup, setup_id) is None
    assert await db_session.get(CommentThread, thread_id) is None
    for model, column in (
        (QuestionCollaborator, QuestionCollaborator.question_id),
        (ProjectQuestion, ProjectQuestion.question_id),
        (AnswerChoice, AnswerChoice.question_id),
        (QuestionDependencyPair, QuestionDependencyPair.dependent_question_id),
    ):
        result = await db_session.execute(select(func.count(model.id)).where(column == question_id))
        assert result.scalar() == 0
    assert await db_session.get(Question, prerequisite.id) is prerequisite


@pytest.mark.asyncio
async def test_derive_rejects_drafts(db_session: AsyncSession, author):
    service = QuestionService(db_session)
    question = await service.create(QuestionCreate(content="Draft"), author)
    with pytest.raises((AccessDenied, LifecycleError)):
        await service.derive(question.external_id, author)

"""Version numbering, supersession and external ids for questions.

Every version and draft of "the same" question shares a ``number``. Drafts
have no ``version``; publishing assigns the next free one. Externally a
published question is addressed as ``q{number}v{version}`` (``q{number}``
meaning the latest published version) and a draft as ``d{id}``.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select, desc, func
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.questions.exceptions import QuestionNotFound, UntrustedReference
from questionbank.questions.models import Question, QuestionDerivation, Solution

logger = logging.getLogger(__name__)

_DRAFT_ID = re.compile(r"d([1-9][0-9]*)")
_PUBLISHED_ID = re.compile(r"q([1-9][0-9]*)(?:v([1-9][0-9]*))?")


@dataclass(frozen=True)
class ExternalRef:
    question_id: Optional[int] = None
    number: Optional[int] = None
    version: Optional[int] = None

    @property
    def is_draft(self) -> bool:
        return self.question_id is not None


def is_published(question: Question) -> bool:
    return question.version is not None


def format_external_id(question: Question) -> str:
    return question.external_id


def parse_external_id(param) -> ExternalRef:
    """Turn an external id into a lookup key; any other shape is rejected outright."""
    if not isinstance(param, str):
        raise UntrustedReference(param)
    match = _DRAFT_ID.fullmatch(param)
    if match:
        return ExternalRef(question_id=int(match.group(1)))
    match = _PUBLISHED_ID.fullmatch(param)
    if match:
        version = match.group(2)
        return ExternalRef(number=int(match.group(1)), version=int(version) if version else None)
    logger.warning(f"Rejected malformed question reference {param!r}")
    raise UntrustedReference(param)


def pick_next_version(published_versions: Iterable[Optional[int]]) -> int:
    versions = [v for v in published_versions if v is not None]
    return max(versions) + 1 if versions else 1


async def find_by_number_and_version(db: AsyncSession, number: int, version: int) -> Optional[Question]:
    result = await db.execute(
        select(Question).where(Question.number == number, Question.version == version)
    )
    return result.scalar_one_or_none()


async def latest_published(db: AsyncSession, number: int) -> Optional[Question]:
    result = await db.execute(
        select(Question)
        .where(Question.number == number, Question.version.is_not(None))
        .order_by(desc(Question.version), desc(Question.updated_at))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def published_with_number(db: AsyncSession, number: int, below_version: Optional[int] = None) -> List[Question]:
    """Published versions of ``number``, newest first."""
    query = select(Question).where(Question.number == number, Question.version.is_not(None))
    if below_version is not None:
        query = query.where(Question.version < below_version)
    result = await db.execute(query.order_by(desc(Question.version)))
    return list(result.scalars().all())


async def next_available_version(db: AsyncSession, number: int) -> int:
    result = await db.execute(
        select(func.max(Question.version)).where(Question.number == number)
    )
    return pick_next_version([result.scalar()])


async def is_superseded(db: AsyncSession, question: Question) -> bool:
    """True once some other published version of the number was updated after this one was created."""
    latest = await latest_published(db, question.number)
    return (
        latest is not None
        and latest.id != question.id
        and latest.updated_at > question.created_at
    )


async def is_latest(db: AsyncSession, question: Question) -> bool:
    latest = await latest_published(db, question.number)
    return latest is not None and latest.id == question.id


def has_earlier_versions(question: Question) -> bool:
    return question.version is not None and question.version > 1


async def prior_version(db: AsyncSession, question: Question) -> Optional[Question]:
    if not has_earlier_versions(question):
        return None
    return await find_by_number_and_version(db, question.number, question.version - 1)


async def source_question(db: AsyncSession, question: Question) -> Optional[Question]:
    result = await db.execute(
        select(Question)
        .join(QuestionDerivation, QuestionDerivation.source_question_id == Question.id)
        .where(QuestionDerivation.derived_question_id == question.id)
    )
    return result.scalar_one_or_none()


async def derivation_of(db: AsyncSession, question: Question) -> Optional[QuestionDerivation]:
    result = await db.execute(
        select(QuestionDerivation).where(QuestionDerivation.derived_question_id == question.id)
    )
    return result.scalar_one_or_none()


async def derived_questions(db: AsyncSession, question: Question) -> List[Question]:
    result = await db.execute(
        select(Question)
        .join(QuestionDerivation, QuestionDerivation.derived_question_id == Question.id)
        .where(QuestionDerivation.source_question_id == question.id)
        .order_by(Question.id)
    )
    return list(result.scalars().all())


async def is_derivation(db: AsyncSession, question: Question) -> bool:
    return await derivation_of(db, question) is not None


async def ancestor_question(db: AsyncSession, question: Question) -> Optional[Question]:
    """The previous version when there is one, otherwise the question this was derived from."""
    if has_earlier_versions(question):
        return await prior_version(db, question)
    return await source_question(db, question)


async def find_by_external_id(db: AsyncSession, param) -> Question:
    ref = parse_external_id(param)
    if ref.is_draft:
        question = await db.get(Question, ref.question_id)
    elif ref.version is None:
        question = await latest_published(db, ref.number)
    else:
        question = await find_by_number_and_version(db, ref.number, ref.version)

    if question is None:
        raise QuestionNotFound(f"Question {param} not found")
    return question


async def question_exists(db: AsyncSession, param) -> bool:
    try:
        await find_by_external_id(db, param)
    except (QuestionNotFound, UntrustedReference):
        return False
    return True


async def visible_solutions_for(db: AsyncSession, question: Question, user) -> List[Solution]:
    """Solutions the user may see, inherited from earlier versions until one changed the solution."""
    result = await db.execute(
        select(Solution).where(Solution.question_id == question.id).order_by(Solution.id)
    )
    solutions = [s for s in result.scalars().all() if s.is_visible_for(user)]
    if question.changes_solution:
        return solutions

    earlier = await published_with_number(
        db, question.number, below_version=question.version if is_published(question) else None
    )
    seen = {s.id for s in solutions}
    for previous in earlier:
        if previous.id == question.id:
            continue
        result = await db.execute(
            select(Solution).where(Solution.question_id == previous.id).order_by(Solution.id)
        )
        for solution in result.scalars().all():
            if solution.id not in seen and solution.is_visible_for(user):
                solutions.append(solution)
                seen.add(solution.id)
        if previous.changes_solution:
            break
    return solutions

"""Per-type behaviour of questions.

Publishing and copying code only talks to ``QuestionVariant``; each question
type plugs its own copying, extra prepublish rules and prepublish hook in here.
"""
import copy
from typing import Dict, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.questions.models import AnswerChoice, Question, QuestionPart, QuestionType

SUMMARY_LENGTH = 60


class QuestionVariant:
    question_type: QuestionType
    is_multipart = False

    def content_summary(self, question: Question) -> str:
        text = " ".join((question.content or "").split())
        if len(text) > SUMMARY_LENGTH:
            text = text[:SUMMARY_LENGTH - 3].rstrip() + "..."
        return text

    def build_copy(self, question: Question) -> Question:
        """Unsaved copy of the editable fields; ids, number, version and roles are not copied."""
        return Question(
            question_type=question.question_type,
            content=question.content,
            changes_solution=question.changes_solution,
        )

    async def copy_children(self, db: AsyncSession, source: Question, kopy: Question) -> None:
        pass

    async def extra_prepublish_errors(self, db: AsyncSession, question: Question, workflow) -> List[str]:
        return []

    async def prepublish_hook(self, db: AsyncSession, question: Question, user, workflow) -> None:
        pass


class SimpleVariant(QuestionVariant):
    question_type = QuestionType.SIMPLE

    async def answer_choices(self, db: AsyncSession, question: Question) -> List[AnswerChoice]:
        result = await db.execute(
            select(AnswerChoice).where(AnswerChoice.question_id == question.id).order_by(AnswerChoice.id)
        )
        return list(result.scalars().all())

    async def copy_children(self, db: AsyncSession, source: Question, kopy: Question) -> None:
        for choice in await self.answer_choices(db, source):
            db.add(AnswerChoice(question_id=kopy.id, content=choice.content, credit=choice.credit))
        await db.flush()

    async def extra_prepublish_errors(self, db: AsyncSession, question: Question, workflow) -> List[str]:
        errors = []
        for index, choice in enumerate(await self.answer_choices(db, question), start=1):
            if choice.credit is None or not 0 <= choice.credit <= 1:
                errors.append(f"Answer choice {index} must have a credit between 0 and 1.")
        return errors


class MatchingVariant(QuestionVariant):
    question_type = QuestionType.MATCHING

    def build_copy(self, question: Question) -> Question:
        kopy = super().build_copy(question)
        kopy.matchings = copy.deepcopy(question.matchings) if question.matchings else []
        return kopy

    async def extra_prepublish_errors(self, db: AsyncSession, question: Question, workflow) -> List[str]:
        if not question.matchings:
            return ["A matching question needs at least one matching pair."]
        return []


class MultipartVariant(QuestionVariant):
    question_type = QuestionType.MULTIPART
    is_multipart = True

    async def parts(self, db: AsyncSession, question: Question) -> List[Question]:
        result = await db.execute(
            select(Question)
            .join(QuestionPart, QuestionPart.child_question_id == Question.id)
            .where(QuestionPart.multipart_question_id == question.id)
            .order_by(QuestionPart.position, QuestionPart.id)
        )
        return list(result.scalars().all())

    async def copy_children(self, db: AsyncSession, source: Question, kopy: Question) -> None:
        result = await db.execute(
            select(QuestionPart).where(QuestionPart.multipart_question_id == source.id)
        )
        for part in result.scalars().all():
            db.add(QuestionPart(
                multipart_question_id=kopy.id,
                child_question_id=part.child_question_id,
                position=part.position,
            ))
        await db.flush()

    async def extra_prepublish_errors(self, db: AsyncSession, question: Question, workflow) -> List[str]:
        parts = await self.parts(db, question)
        if not parts:
            return ["A multipart question needs at least one part."]
        errors = []
        for index, part in enumerate(parts, start=1):
            if part.is_published:
                continue
            for error in await workflow.run_prepublish_error_checks(part):
                errors.append(f"Part {index}: {error}")
        return errors

    async def prepublish_hook(self, db: AsyncSession, question: Question, user, workflow) -> None:
        # Draft parts go out together with the multipart question
        for part in await self.parts(db, question):
            if not part.is_published:
                await workflow.publish(part, user)


VARIANTS: Dict[QuestionType, QuestionVariant] = {
    variant.question_type: variant
    for variant in (SimpleVariant(), MatchingVariant(), MultipartVariant())
}


def variant_for(question: Question) -> QuestionVariant:
    return VARIANTS[QuestionType(question.question_type or QuestionType.SIMPLE)]

from typing import List
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from questionbank.auth.models import User
from questionbank.comments.models import Comment, CommentThread, CommentThreadSubscription


class CommentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_thread(self) -> CommentThread:
        thread = CommentThread()
        self.db.add(thread)
        await self.db.flush()
        return thread

    async def subscribe(self, thread_id: int, user: User) -> CommentThreadSubscription:
        result = await self.db.execute(
            select(CommentThreadSubscription).where(
                CommentThreadSubscription.comment_thread_id == thread_id,
                CommentThreadSubscription.user_id == user.id,
            )
        )
        subscription = result.scalar_one_or_none()
        if subscription:
            return subscription
        subscription = CommentThreadSubscription(comment_thread_id=thread_id, user_id=user.id)
        self.db.add(subscription)
        await self.db.flush()
        return subscription

    async def subscriber_ids(self, thread_id: int) -> List[int]:
        result = await self.db.execute(
            select(CommentThreadSubscription.user_id)
            .where(CommentThreadSubscription.comment_thread_id == thread_id)
            .order_by(CommentThreadSubscription.user_id)
        )
        return list(result.scalars().all())

    async def add_comment(self, thread_id: int, user: User, message: str) -> Comment:
        comment = Comment(comment_thread_id=thread_id, creator_id=user.id, message=message)
        self.db.add(comment)
        await self.db.flush()
        return comment

    async def comments(self, thread_id: int) -> List[Comment]:
        result = await self.db.execute(
            select(Comment).where(Comment.comment_thread_id == thread_id).order_by(Comment.id)
        )
        return list(result.scalars().all())

    async def destroy_thread(self, thread_id: int) -> None:
        await self.db.execute(delete(Comment).where(Comment.comment_thread_id == thread_id))
        await self.db.execute(
            delete(CommentThreadSubscription).where(
                CommentThreadSubscription.comment_thread_id == thread_id
            )
        )
        await self.db.execute(delete(CommentThread).where(CommentThread.id == thread_id))

    async def clear(self, question) -> CommentThread:
        """Give ``question`` a fresh, empty thread and throw the old one away with its comments and subscriptions."""
        old_thread_id = question.comment_thread_id
        thread = await self.create_thread()
        question.comment_thread_id = thread.id
        await self.db.flush()
        await self.destroy_thread(old_thread_id)
        return thread

"""Chat thread repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.models import Message, MessageThread, ThreadParticipant


class ThreadRepository:
    """Repository for chat threads, participants and messages."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        workspace_id: str,
        created_by: str,
        title: str | None = None,
        participant_ids: list[str] | None = None,
    ) -> MessageThread:
        """Create a thread.

        When participants are given the creator is added as an admin participant.
        Without participants the thread is public to the workspace.
        """
        thread = MessageThread(workspace_id=workspace_id, title=title, created_by=created_by)
        self.session.add(thread)
        await self.session.flush()

        if participant_ids:
            seen = set()
            for user_id in [created_by, *participant_ids]:
                if not user_id or user_id in seen:
                    continue
                seen.add(user_id)
                self.session.add(
                    ThreadParticipant(
                        thread_id=thread.id,
                        user_id=user_id,
                        is_admin=user_id == created_by,
                    )
                )
            await self.session.flush()

        return thread

    async def get_by_id(self, thread_id: str) -> MessageThread | None:
        """Get a thread by ID."""
        result = await self.session.execute(
            select(MessageThread).where(MessageThread.id == thread_id)
        )
        return result.scalar_one_or_none()

    async def participant_ids(self, thread_id: str) -> list[str]:
        """List explicit participant user IDs of a thread."""
        result = await self.session.execute(
            select(ThreadParticipant.user_id).where(ThreadParticipant.thread_id == thread_id)
        )
        return [row[0] for row in result.all()]

    async def add_message(
        self,
        thread: MessageThread,
        author_id: str,
        body: str,
    ) -> Message:
        """Post a message to a thread."""
        message = Message(
            thread_id=thread.id,
            workspace_id=thread.workspace_id,
            author_id=author_id,
            body=body,
        )
        self.session.add(message)
        await self.session.flush()
        return message

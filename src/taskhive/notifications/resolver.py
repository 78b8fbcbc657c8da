"""Recipient resolution: who should hear about an event."""

import logging
from collections.abc import Iterable

from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.repositories import ThreadRepository, WorkspaceRepository
from taskhive.notifications.types import SYSTEM_ACTOR, NotificationType
from taskhive.security.identity import CurrentUserProvider
from taskhive.security.permissions import MANAGER_ROLES

logger = logging.getLogger(__name__)


class EventClass:
    """How an event type picks its recipients."""

    DIRECT = "direct"
    OWNERSHIP = "ownership"
    PARTICIPANTS = "participants"
    STATUS_CHANGE = "status_change"


EVENT_CLASSES: dict[NotificationType, str] = {
    NotificationType.TASK_ASSIGNED: EventClass.DIRECT,
    NotificationType.WORKSPACE_REMOVED: EventClass.DIRECT,
    NotificationType.WORKSPACE_INVITE: EventClass.DIRECT,
    NotificationType.TASK_CREATED: EventClass.OWNERSHIP,
    NotificationType.WORKSPACE_MEMBER_LEFT: EventClass.OWNERSHIP,
    NotificationType.MESSAGE_NEW: EventClass.PARTICIPANTS,
    NotificationType.MESSAGE_MENTION: EventClass.PARTICIPANTS,
    NotificationType.TASK_UPDATE: EventClass.STATUS_CHANGE,
}


class ResolutionContext(BaseModel):
    """What is known about the event when resolving recipients."""

    actor_id: str | None = None
    target_ids: list[str] = Field(default_factory=list)
    workspace_id: str | None = None
    project_id: str | None = None
    task_id: str | None = None
    thread_id: str | None = None
    message_id: str | None = None
    assignee_id: str | None = None
    creator_id: str | None = None


def exclude_actor(actor_id: str | None, user_ids: Iterable[str | None]) -> set[str]:
    """Drop empty ids, the actor and the system actor."""
    return {
        uid for uid in user_ids if uid and uid != actor_id and uid != SYSTEM_ACTOR
    }


class RecipientResolver:
    """Computes the deduplicated, actor-excluded recipient set of an event."""

    def __init__(
        self,
        session: AsyncSession,
        user_provider: CurrentUserProvider | None = None,
    ):
        self.session = session
        self.user_provider = user_provider

    def direct(self, actor_id: str | None, target_ids: Iterable[str | None]) -> set[str]:
        """Explicit targets, minus the actor."""
        return exclude_actor(actor_id, target_ids)

    async def owners_and_admins(self, actor_id: str | None, workspace_id: str) -> set[str]:
        """Workspace owners and admins, minus the actor."""
        member_ids = await WorkspaceRepository(self.session).member_ids(
            workspace_id, roles=MANAGER_ROLES
        )
        return exclude_actor(actor_id, member_ids)

    async def thread_audience(
        self,
        actor_id: str | None,
        thread_id: str | None,
        workspace_id: str | None,
    ) -> set[str]:
        """Thread participants minus the actor.

        A thread without explicit participants is public to its workspace,
        so every workspace member is in the audience.
        """
        if thread_id:
            thread_repo = ThreadRepository(self.session)
            participant_ids = await thread_repo.participant_ids(thread_id)
            if participant_ids:
                return exclude_actor(actor_id, participant_ids)
            if workspace_id is None:
                thread = await thread_repo.get_by_id(thread_id)
                workspace_id = thread.workspace_id if thread else None

        if not workspace_id:
            return set()

        member_ids = await WorkspaceRepository(self.session).member_ids(workspace_id)
        return exclude_actor(actor_id, member_ids)

    def status_change(
        self,
        actor_id: str | None,
        assignee_id: str | None,
        creator_id: str | None,
    ) -> set[str]:
        """Assignee and creator, minus the actor."""
        return exclude_actor(actor_id, [assignee_id, creator_id])

    async def resolve(self, event_type: str, context: ResolutionContext) -> set[str]:
        """Resolve recipients for an event.

        Never raises: any failure is logged and yields an empty set, so the
        action that triggered the event is unaffected.
        """
        try:
            actor_id = context.actor_id
            if actor_id is None and self.user_provider is not None:
                actor_id = await self.user_provider.current_user_id()

            event_class = EVENT_CLASSES[NotificationType(event_type)]

            if event_class == EventClass.DIRECT:
                return self.direct(actor_id, context.target_ids)
            if event_class == EventClass.OWNERSHIP:
                if not context.workspace_id:
                    return set()
                return await self.owners_and_admins(actor_id, context.workspace_id)
            if event_class == EventClass.PARTICIPANTS:
                return await self.thread_audience(
                    actor_id, context.thread_id, context.workspace_id
                )
            return self.status_change(actor_id, context.assignee_id, context.creator_id)
        except Exception as e:
            logger.warning("Failed to resolve recipients for %s: %s", event_type, e)
            return set()

"""Tests for recipient resolution."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from taskhive.db.repositories import ThreadRepository, WorkspaceRepository
from taskhive.notifications.resolver import RecipientResolver, ResolutionContext
from taskhive.notifications.types import SYSTEM_ACTOR, NotificationType
from taskhive.security.identity import StaticUserProvider


async def _seed_workspace(session: AsyncSession, make_user) -> dict:
    """Workspace with an owner, two admins, a member and a viewer."""
    users = {}
    for name in ("owner", "admin1", "admin2", "member", "viewer"):
        users[name] = await make_user(name)

    repo = WorkspaceRepository(session)
    workspace = await repo.create(name="Team", created_by=users["owner"].id)
    await repo.add_member(workspace.id, users["admin1"].id, role="admin")
    await repo.add_member(workspace.id, users["admin2"].id, role="admin")
    await repo.add_member(workspace.id, users["member"].id, role="member")
    await repo.add_member(workspace.id, users["viewer"].id, role="viewer")
    await session.commit()

    ids = {name: user.id for name, user in users.items()}
    ids["workspace"] = workspace.id
    return ids


class TestDirectResolution:
    """Tests for events with explicit targets."""

    @pytest.mark.asyncio
    async def test_targets_minus_actor(self, test_session: AsyncSession):
        """The actor never receives their own notification."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.TASK_ASSIGNED,
            ResolutionContext(actor_id="a", target_ids=["a", "b", "c", "b"]),
        )
        assert recipients == {"b", "c"}

    @pytest.mark.asyncio
    async def test_empty_and_system_ids_dropped(self, test_session: AsyncSession):
        """Blank ids and the system actor are never recipients."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.WORKSPACE_INVITE,
            ResolutionContext(actor_id="a", target_ids=["", SYSTEM_ACTOR, "b"]),
        )
        assert recipients == {"b"}

    @pytest.mark.asyncio
    async def test_actor_from_provider(self, test_session: AsyncSession):
        """Without an explicit actor the provider's user is excluded."""
        resolver = RecipientResolver(test_session, StaticUserProvider("a"))
        recipients = await resolver.resolve(
            NotificationType.WORKSPACE_REMOVED,
            ResolutionContext(target_ids=["a", "b"]),
        )
        assert recipients == {"b"}


class TestOwnershipResolution:
    """Tests for events that go to workspace owners and admins."""

    @pytest.mark.asyncio
    async def test_owners_and_admins(self, test_session: AsyncSession, make_user):
        """A member's action reaches the owner and both admins."""
        ids = await _seed_workspace(test_session, make_user)
        resolver = RecipientResolver(test_session)

        recipients = await resolver.resolve(
            NotificationType.TASK_CREATED,
            ResolutionContext(actor_id=ids["member"], workspace_id=ids["workspace"]),
        )

        assert recipients == {ids["owner"], ids["admin1"], ids["admin2"]}

    @pytest.mark.asyncio
    async def test_admin_actor_excluded(self, test_session: AsyncSession, make_user):
        """An admin acting is not notified about their own action."""
        ids = await _seed_workspace(test_session, make_user)
        resolver = RecipientResolver(test_session)

        recipients = await resolver.resolve(
            NotificationType.WORKSPACE_MEMBER_LEFT,
            ResolutionContext(actor_id=ids["admin1"], workspace_id=ids["workspace"]),
        )

        assert recipients == {ids["owner"], ids["admin2"]}

    @pytest.mark.asyncio
    async def test_without_workspace(self, test_session: AsyncSession):
        """Ownership events without a workspace have nobody to notify."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.TASK_CREATED, ResolutionContext(actor_id="a")
        )
        assert recipients == set()


class TestThreadResolution:
    """Tests for message audiences."""

    @pytest.mark.asyncio
    async def test_explicit_participants(self, test_session: AsyncSession, make_user):
        """Threads with participants notify only those participants."""
        ids = await _seed_workspace(test_session, make_user)
        thread = await ThreadRepository(test_session).create(
            workspace_id=ids["workspace"],
            created_by=ids["member"],
            participant_ids=[ids["admin1"]],
        )
        await test_session.commit()

        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.MESSAGE_NEW,
            ResolutionContext(actor_id=ids["member"], thread_id=thread.id),
        )

        assert recipients == {ids["admin1"]}

    @pytest.mark.asyncio
    async def test_public_thread_falls_back_to_members(
        self, test_session: AsyncSession, make_user
    ):
        """Threads without participants reach every workspace member."""
        ids = await _seed_workspace(test_session, make_user)
        thread = await ThreadRepository(test_session).create(
            workspace_id=ids["workspace"],
            created_by=ids["owner"],
        )
        await test_session.commit()

        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.MESSAGE_MENTION,
            ResolutionContext(actor_id=ids["owner"], thread_id=thread.id),
        )

        assert recipients == {ids["admin1"], ids["admin2"], ids["member"], ids["viewer"]}

    @pytest.mark.asyncio
    async def test_unknown_thread(self, test_session: AsyncSession):
        """A thread that does not exist has no audience."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.MESSAGE_NEW,
            ResolutionContext(actor_id="a", thread_id="missing"),
        )
        assert recipients == set()


class TestStatusChangeResolution:
    """Tests for task status changes."""

    @pytest.mark.asyncio
    async def test_assignee_and_creator(self, test_session: AsyncSession):
        """Status changes reach the assignee and the creator."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.TASK_UPDATE,
            ResolutionContext(actor_id="x", assignee_id="a", creator_id="c"),
        )
        assert recipients == {"a", "c"}

    @pytest.mark.asyncio
    async def test_actor_is_assignee_and_creator(self, test_session: AsyncSession):
        """Nobody is notified when the actor is both assignee and creator."""
        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.TASK_UPDATE,
            ResolutionContext(actor_id="c", assignee_id="c", creator_id="c"),
        )
        assert recipients == set()


class TestResolutionFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_unknown_type_yields_nobody(self, test_session: AsyncSession):
        """Resolution never raises."""
        resolver = RecipientResolver(test_session)
        assert await resolver.resolve("bogus", ResolutionContext(actor_id="a")) == set()

    @pytest.mark.asyncio
    async def test_lookup_failure_yields_nobody(self, test_session: AsyncSession, monkeypatch):
        """A failing membership lookup yields an empty set."""

        async def broken(*args, **kwargs):
            raise RuntimeError("database down")

        monkeypatch.setattr(WorkspaceRepository, "member_ids", broken)

        resolver = RecipientResolver(test_session)
        recipients = await resolver.resolve(
            NotificationType.TASK_CREATED,
            ResolutionContext(actor_id="a", workspace_id="w"),
        )
        assert recipients == set()

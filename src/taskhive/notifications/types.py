"""Notification types and display helpers."""

import re
from enum import StrEnum
from typing import Any


class NotificationType(StrEnum):
    """Closed set of notification kinds."""

    WORKSPACE_INVITE = "workspace_invite"
    WORKSPACE_REMOVED = "workspace_removed"
    WORKSPACE_MEMBER_LEFT = "workspace_member_left"
    MESSAGE_NEW = "message_new"
    MESSAGE_MENTION = "message_mention"
    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_UPDATE = "task_update"


# Actor id for events no user initiated
SYSTEM_ACTOR = "system"

MENTION_PATTERN = re.compile(r"@\w+")

WORKSPACE_TYPES = frozenset(
    {
        NotificationType.WORKSPACE_INVITE,
        NotificationType.WORKSPACE_REMOVED,
        NotificationType.WORKSPACE_MEMBER_LEFT,
    }
)
MESSAGE_TYPES = frozenset({NotificationType.MESSAGE_NEW, NotificationType.MESSAGE_MENTION})
TASK_TYPES = frozenset(
    {
        NotificationType.TASK_CREATED,
        NotificationType.TASK_ASSIGNED,
        NotificationType.TASK_UPDATE,
    }
)


def classify_message(body: str | None) -> NotificationType:
    """Return ``message_mention`` if the body mentions anyone, else ``message_new``.

    Handles are not checked against real users; this only picks the label.
    """
    if body and MENTION_PATTERN.search(body):
        return NotificationType.MESSAGE_MENTION
    return NotificationType.MESSAGE_NEW


def title_for(type: str, meta: dict[str, Any] | None = None) -> str:
    """Render a notification title from its type and metadata."""
    meta = meta or {}
    type = NotificationType(type)
    actor = meta.get("actor_name") or "Someone"
    workspace = meta.get("workspace_name")

    if type == NotificationType.WORKSPACE_INVITE:
        return f"You were invited to {workspace or 'a workspace'}"
    if type == NotificationType.WORKSPACE_REMOVED:
        return f"You were removed from {workspace or 'a workspace'}"
    if type == NotificationType.WORKSPACE_MEMBER_LEFT:
        leaver = meta.get("leaver_name") or "A member"
        return f"{leaver} left {workspace or 'the workspace'}"
    if type == NotificationType.MESSAGE_NEW:
        return f"{actor} sent a new message"
    if type == NotificationType.MESSAGE_MENTION:
        return f"{actor} mentioned you"
    if type == NotificationType.TASK_CREATED:
        task = meta.get("task_title") or "a task"
        if meta.get("assignee_name"):
            return f"Task '{task}' created (assigned to {meta['assignee_name']})"
        return f"Task '{task}' created"
    if type == NotificationType.TASK_ASSIGNED:
        return f"You were assigned '{meta.get('task_title') or 'a task'}'"
    if type == NotificationType.TASK_UPDATE:
        task = meta.get("task_title") or "A task"
        if meta.get("status"):
            return f"'{task}' moved to {meta['status']}"
        return f"'{task}' was updated"
    return "Notification"


def body_for(type: str, meta: dict[str, Any] | None = None) -> str | None:
    """Render the secondary line of a notification, if any."""
    meta = meta or {}
    type = NotificationType(type)
    subtitle = meta.get("subtitle")
    if isinstance(subtitle, str) and subtitle.strip():
        return subtitle

    if type in MESSAGE_TYPES:
        snippet = meta.get("snippet")
        return str(snippet) if snippet else None
    if type == NotificationType.WORKSPACE_INVITE:
        inviter = meta.get("inviter_name")
        return f"Invited by {inviter}" if inviter else None
    if type in (NotificationType.TASK_CREATED, NotificationType.TASK_ASSIGNED):
        return meta.get("project_name") or meta.get("workspace_name")
    return meta.get("workspace_name")


def link_for(
    type: str,
    workspace_id: str | None = None,
    project_id: str | None = None,
    task_id: str | None = None,
    thread_id: str | None = None,
    message_id: str | None = None,
) -> str | None:
    """Return the in-app route a notification points at."""
    type = NotificationType(type)

    if type in WORKSPACE_TYPES:
        return f"/workspaces/{workspace_id}" if workspace_id else "/workspaces"

    if type in MESSAGE_TYPES:
        if workspace_id and thread_id:
            link = f"/workspaces/{workspace_id}/messages?thread={thread_id}"
            if message_id:
                link += f"&m={message_id}"
            return link
        if workspace_id:
            return f"/workspaces/{workspace_id}/messages"
        return "/workspaces"

    if type in TASK_TYPES:
        if project_id and task_id:
            return f"/projects/{project_id}/tasks?task={task_id}"
        return f"/projects/{project_id}/tasks" if project_id else "/projects"

    return None

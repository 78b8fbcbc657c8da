"""HTTP client for the notifications API."""

import logging
from typing import Any

import httpx

from taskhive.security.identity import CurrentUserProvider

logger = logging.getLogger(__name__)


class NotificationApiError(Exception):
    """A notifications API call failed.

    ``errors`` carries the per-recipient reasons of a rejected fan-out.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        errors: dict[str, str] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.errors = errors or {}


def _error_from(response: httpx.Response) -> NotificationApiError:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if isinstance(detail, dict):
        errors = detail.get("errors") or {}
        message = f"{detail.get('error', 'Request failed')}: {errors}"
        return NotificationApiError(message, response.status_code, errors)
    message = str(detail) if detail else f"HTTP {response.status_code}"
    return NotificationApiError(message, response.status_code)


class NotificationsApi:
    """Thin wrapper over an authenticated ``httpx.AsyncClient``.

    Every method raises :class:`NotificationApiError` on transport errors
    and non-2xx responses.
    """

    def __init__(self, http: httpx.AsyncClient, base_path: str = "/api/notifications"):
        self.http = http
        self.base_path = base_path.rstrip("/")

    async def _request(self, method: str, path: str = "", **kwargs) -> dict[str, Any]:
        url = f"{self.base_path}{path}"
        try:
            response = await self.http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise NotificationApiError(f"{method} {url} failed: {e}") from e

        if response.status_code >= 400:
            raise _error_from(response)
        return response.json()

    async def fetch_page(self, limit: int = 20, cursor: str | None = None) -> dict[str, Any]:
        """Fetch one page: ``{"items", "nextCursor", "unread"}``."""
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        return await self._request("GET", params=params)

    async def set_read(self, notification_id: str, is_read: bool) -> dict[str, Any]:
        return await self._request("PATCH", f"/{notification_id}", json={"is_read": is_read})

    async def mark_read(self, notification_ids: list[str]) -> dict[str, Any]:
        return await self._request("POST", "/mark-read", json={"ids": notification_ids})

    async def mark_all_read(self) -> dict[str, Any]:
        return await self._request("POST", "/mark-all-read")

    async def clear_all(self) -> dict[str, Any]:
        return await self._request("POST", "/clear")

    async def fanout(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Ask the server to notify ``payload["recipients"]``."""
        return await self._request("POST", "/fanout", json=payload)

    async def notify(self, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Fire-and-forget fan-out: failures are logged, never raised."""
        try:
            result = await self.fanout(payload)
        except NotificationApiError as e:
            logger.warning(
                "Notification fan-out %s failed (HTTP %s): %s",
                payload.get("type"),
                e.status_code,
                e,
            )
            return None

        if result.get("errors"):
            logger.warning(
                "Notification fan-out %s failed for %d recipient(s): %s",
                payload.get("type"),
                len(result["errors"]),
                result["errors"],
            )
        return result


class ApiUserProvider(CurrentUserProvider):
    """Resolves the current user from ``/api/auth/me`` once and caches it."""

    def __init__(self, http: httpx.AsyncClient, me_path: str = "/api/auth/me"):
        self.http = http
        self.me_path = me_path
        self._user_id: str | None = None

    async def current_user_id(self) -> str:
        if self._user_id is None:
            try:
                response = await self.http.get(self.me_path)
            except httpx.HTTPError as e:
                raise NotificationApiError(f"GET {self.me_path} failed: {e}") from e
            if response.status_code != 200:
                raise _error_from(response)
            self._user_id = response.json()["id"]
        return self._user_id

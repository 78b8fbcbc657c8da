"""Current-user capability shared by the resolver, writer and feed.

Code that needs "who is acting" takes a provider instead of looking the
user up itself, so every step of one operation sees the same id.
"""


class CurrentUserProvider:
    """Supplies the id of the user on whose behalf code runs."""

    async def current_user_id(self) -> str:
        raise NotImplementedError


class StaticUserProvider(CurrentUserProvider):
    """Provider with a fixed id (tests, system jobs)."""

    def __init__(self, user_id: str):
        self.user_id = user_id

    async def current_user_id(self) -> str:
        return self.user_id


class RequestUserProvider(CurrentUserProvider):
    """Provider bound to the authenticated user of one request."""

    def __init__(self, user):
        self.user = user

    async def current_user_id(self) -> str:
        return self.user.id

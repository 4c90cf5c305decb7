"""
Process-wide current-user cache.

The only state shared across views: the signed-in user's own profile
fields (name, avatar, admin flag, hobbies) so every screen does not have to
refetch them. Filled on connect/sign-in, dropped on sign-out.
"""
import logging
from dataclasses import dataclass, field

from app.gateway.base import Gateway
from app.gateway.filters import eq, in_

logger = logging.getLogger(__name__)


@dataclass
class CurrentUser:
    id: str
    email: str | None = None
    username: str | None = None
    display_name: str | None = None
    profile_picture: str | None = None
    is_admin: bool = False
    hobbies: list[str] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.display_name or self.username or (self.email or "").split("@")[0]


class SessionCache:
    def __init__(self):
        self._users: dict[str, CurrentUser] = {}
        self._unsubscribe = None

    def get(self, user_id: str) -> CurrentUser | None:
        return self._users.get(user_id)

    def remember(self, user: CurrentUser) -> CurrentUser:
        self._users[user.id] = user
        return user

    def forget(self, user_id: str) -> None:
        self._users.pop(user_id, None)

    def clear(self) -> None:
        self._users.clear()

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._users

    async def load(self, gateway: Gateway, user_id: str, *, refresh: bool = False) -> CurrentUser | None:
        if not refresh and user_id in self._users:
            return self._users[user_id]

        profile = await gateway.select_one("profiles", where=[eq("id", user_id)])
        if profile is None:
            logger.warning("No profile row for signed-in user %s", user_id)
            return None

        links = await gateway.select("user_hobbies", where=[eq("user_id", user_id)])
        hobbies = []
        if links:
            rows = await gateway.select("hobbies", where=[in_("id", [l["hobby_id"] for l in links])])
            hobbies = sorted(r["name"] for r in rows)

        return self.remember(CurrentUser(
            id=profile["id"],
            email=profile.get("email"),
            username=profile.get("username"),
            display_name=profile.get("display_name"),
            profile_picture=profile.get("profile_picture"),
            is_admin=bool(profile.get("is_admin")),
            hobbies=hobbies,
        ))

    def attach(self, gateway: Gateway) -> None:
        """Follow the gateway's auth events: a new sign-in invalidates its entry."""
        if self._unsubscribe is not None:
            self._unsubscribe()

        def on_auth(event: str, session) -> None:
            if session is not None:
                logger.debug("Auth %s for %s; dropping cached profile", event, session.user_id)
                self.forget(session.user_id)

        self._unsubscribe = gateway.on_auth_state_change(on_auth)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


session_cache = SessionCache()

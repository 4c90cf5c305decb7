from app.auth.local_auth import create_access_token
from app.errors import RemoteError
from app.gateway.filters import eq, in_

PASSWORD = "password123"


async def create_user(gateway, username: str, hobbies=(), **profile) -> str:
    session = await gateway.sign_up(f"{username}@example.com", PASSWORD)
    values = {"username": username, "display_name": username.title(), **profile}
    await gateway.update("profiles", values, where=[eq("id", session.user_id)])

    if hobbies:
        rows = await gateway.select("hobbies", where=[in_("name", list(hobbies))])
        await gateway.insert(
            "user_hobbies",
            [{"user_id": session.user_id, "hobby_id": row["id"]} for row in rows],
        )
    return session.user_id


async def connect(gateway, sender: str, recipient: str, status: str = "pending") -> dict:
    rows = await gateway.insert("connections", {
        "user1_id": sender,
        "user2_id": recipient,
        "status": status,
    })
    return rows[0]


async def create_community(gateway, creator: str, name: str = "Darkroom", **extra) -> dict:
    rows = await gateway.insert("communities", {
        "name": name,
        "description": extra.pop("description", f"All about {name.lower()}"),
        "category": extra.pop("category", "Photography"),
        "created_by": creator,
        **extra,
    })
    community = rows[0]
    await gateway.insert("community_members", {
        "community_id": community["id"],
        "user_id": creator,
        "role": "admin",
    })
    return await gateway.select_one("communities", where=[eq("id", community["id"])])


def auth_headers(user_id: str) -> dict:
    token = create_access_token(user_id, f"{user_id}@example.com")
    return {"Authorization": f"Bearer {token}"}


# --------------------------------------------------
# Failure injection
# --------------------------------------------------
class FlakyGateway:
    """
    Delegates to a real gateway but fails chosen operations, e.g.
    ``fail("insert", "community_members")`` or ``fail("rpc")``.
    """

    def __init__(self, inner):
        self.inner = inner
        self.failures: set[tuple] = set()
        self.calls: list[tuple] = []

    def fail(self, operation: str, table: str | None = None) -> None:
        self.failures.add((operation, table))

    def heal(self) -> None:
        self.failures.clear()

    def _check(self, operation: str, table: str | None) -> None:
        self.calls.append((operation, table))
        if (operation, table) in self.failures or (operation, None) in self.failures:
            raise RemoteError(f"injected {operation} failure on {table}", code="500")

    async def select(self, table, **kwargs):
        self._check("select", table)
        return await self.inner.select(table, **kwargs)

    async def select_one(self, table, **kwargs):
        self._check("select", table)
        return await self.inner.select_one(table, **kwargs)

    async def count(self, table, **kwargs):
        self._check("count", table)
        return await self.inner.count(table, **kwargs)

    async def insert(self, table, rows):
        self._check("insert", table)
        return await self.inner.insert(table, rows)

    async def update(self, table, values, **kwargs):
        self._check("update", table)
        return await self.inner.update(table, values, **kwargs)

    async def delete(self, table, **kwargs):
        self._check("delete", table)
        return await self.inner.delete(table, **kwargs)

    async def rpc(self, name, params):
        self._check("rpc", name)
        return await self.inner.rpc(name, params)

    def __getattr__(self, name):
        return getattr(self.inner, name)

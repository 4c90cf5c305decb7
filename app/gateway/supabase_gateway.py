"""
Hosted gateway backend: the Supabase async client.

One client per authenticated caller; the caller's access token is forwarded
to PostgREST and realtime so row-level security applies to every call.
"""
import logging
from contextlib import asynccontextmanager

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from app.gateway import filters as f
from app.gateway.base import (
    AuthSession,
    AuthUser,
    Channel,
    ChangeEvent,
    ChangeType,
    ChannelStatus,
    Gateway,
    GatewayError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _remote(operation: str):
    """Translate client exceptions into GatewayError at the boundary."""
    try:
        yield
    except GatewayError:
        raise
    except APIError as exc:
        logger.warning("Supabase %s failed: %s (%s)", operation, exc.message, exc.code)
        raise GatewayError(exc.message or str(exc), code=exc.code) from exc
    except Exception as exc:
        logger.warning("Supabase %s failed: %s", operation, exc)
        raise GatewayError(str(exc)) from exc


def _apply(query, where):
    for flt in where:
        if isinstance(flt, f.Eq):
            query = query.eq(flt.column, flt.value)
        elif isinstance(flt, f.Neq):
            query = query.neq(flt.column, flt.value)
        elif isinstance(flt, f.In):
            query = query.in_(flt.column, list(flt.values))
        elif isinstance(flt, f.IsNull):
            query = query.is_(flt.column, "null")
        elif isinstance(flt, f.Gte):
            query = query.gte(flt.column, f._literal(flt.value))
        elif isinstance(flt, f.Lt):
            query = query.lt(flt.column, f._literal(flt.value))
        elif isinstance(flt, f.Or):
            query = query.or_(flt.to_postgrest_group())
        elif isinstance(flt, f.And):
            query = _apply(query, flt.clauses)
        else:
            raise GatewayError(f"Unsupported filter: {flt!r}")
    return query


def _jsonable(values):
    if isinstance(values, list):
        return [_jsonable(v) for v in values]
    return {
        key: value.isoformat() if hasattr(value, "isoformat") else value
        for key, value in values.items()
    }


def _columns(columns) -> str:
    if isinstance(columns, str):
        return columns
    return ",".join(columns)


def _change_event(table: str, payload: dict) -> ChangeEvent:
    data = payload.get("data", payload)
    kind = data.get("type") or data.get("eventType")
    return ChangeEvent(
        table=data.get("table", table),
        type=ChangeType(kind),
        record=data.get("record") or data.get("new") or {},
        old_record=data.get("old_record") or data.get("old") or {},
    )


def _session(raw) -> AuthSession | None:
    if raw is None or raw.user is None:
        return None
    return AuthSession(
        access_token=raw.access_token,
        user_id=raw.user.id,
        email=raw.user.email,
    )


class SupabaseChannel(Channel):
    def __init__(self, client: AsyncClient, name: str):
        super().__init__(name)
        self._client = client
        self._channel = client.channel(name)
        self._closed = False

    def on(self, event, table, callback, filter=None):
        def handler(payload):
            callback(_change_event(table, payload))

        self._channel.on_postgres_changes(
            event,
            callback=handler,
            table=table,
            schema="public",
            filter=filter.to_realtime() if filter is not None else None,
        )
        return self

    async def subscribe(self, on_status=None):
        def status(state, error=None):
            if on_status is not None:
                on_status(ChannelStatus(getattr(state, "value", state)), error)

        async with _remote(f"subscribe {self.name}"):
            await self._channel.subscribe(status)
        return self

    async def close(self):
        if self._closed:
            return
        self._closed = True
        async with _remote(f"remove channel {self.name}"):
            await self._client.remove_channel(self._channel)


class SupabaseGateway(Gateway):
    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(cls, url: str, key: str, access_token: str | None = None):
        client = await acreate_client(url, key)
        if access_token:
            client.postgrest.auth(access_token)
            await client.realtime.set_auth(access_token)
        return cls(client)

    # -------------------------------------------------------
    # Queries
    # -------------------------------------------------------
    async def select(
        self,
        table,
        *,
        columns="*",
        where=(),
        order_by=None,
        descending=False,
        limit=None,
        offset=None,
    ):
        query = _apply(self.client.table(table).select(_columns(columns)), where)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        async with _remote(f"select {table}"):
            res = await query.execute()
        return res.data or []

    async def count(self, table, *, where=()):
        query = _apply(self.client.table(table).select("id", count="exact"), where)
        async with _remote(f"count {table}"):
            res = await query.execute()
        return res.count or 0

    # -------------------------------------------------------
    # Mutations
    # -------------------------------------------------------
    async def insert(self, table, rows):
        async with _remote(f"insert {table}"):
            res = await self.client.table(table).insert(_jsonable(rows)).execute()
        return res.data or []

    async def update(self, table, values, *, where):
        query = _apply(self.client.table(table).update(_jsonable(values)), where)
        async with _remote(f"update {table}"):
            res = await query.execute()
        return res.data or []

    async def delete(self, table, *, where):
        query = _apply(self.client.table(table).delete(), where)
        async with _remote(f"delete {table}"):
            res = await query.execute()
        return res.data or []

    # -------------------------------------------------------
    # Remote procedures
    # -------------------------------------------------------
    async def rpc(self, name, params):
        async with _remote(f"rpc {name}"):
            res = await self.client.rpc(name, params).execute()
        return res.data

    # -------------------------------------------------------
    # Realtime
    # -------------------------------------------------------
    def channel(self, name):
        return SupabaseChannel(self.client, name)

    # -------------------------------------------------------
    # Storage
    # -------------------------------------------------------
    async def upload(self, bucket, path, data, *, content_type, upsert=True):
        async with _remote(f"upload {bucket}/{path}"):
            await self.client.storage.from_(bucket).upload(
                path,
                data,
                {
                    "content-type": content_type,
                    "cache-control": "3600",
                    "upsert": "true" if upsert else "false",
                },
            )
        logger.info("Supabase upload OK: %s/%s", bucket, path)
        return path

    async def public_url(self, bucket, path):
        async with _remote(f"public url {bucket}/{path}"):
            return await self.client.storage.from_(bucket).get_public_url(path)

    # -------------------------------------------------------
    # Auth
    # -------------------------------------------------------
    async def sign_up(self, email, password):
        async with _remote("sign up"):
            res = await self.client.auth.sign_up({"email": email, "password": password})
        # None until the address is confirmed
        return _session(res.session)

    async def sign_in(self, email, password):
        async with _remote("sign in"):
            res = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        session = _session(res.session)
        if session is None:
            raise GatewayError("Invalid login credentials", code="invalid_credentials")
        return session

    async def sign_out(self):
        async with _remote("sign out"):
            await self.client.auth.sign_out()

    async def get_user(self, access_token):
        async with _remote("get user"):
            res = await self.client.auth.get_user(access_token)
        if res is None or res.user is None:
            return None
        return AuthUser(id=res.user.id, email=res.user.email)

    async def reset_password(self, email):
        async with _remote("reset password"):
            await self.client.auth.reset_password_for_email(email)

    def on_auth_state_change(self, listener):
        subscription = self.client.auth.on_auth_state_change(
            lambda event, session: listener(str(event), _session(session))
        )
        return subscription.unsubscribe

    async def aclose(self):
        await self.client.remove_all_channels()

"""
Local gateway backend: SQLAlchemy over DATABASE_URL.

Mirrors the hosted backend closely enough for development and tests:
generic table operations, the two procedures (``app.gateway.procedures``),
an in-process change feed, filesystem storage and bcrypt/JWT auth.
"""
import contextlib
import logging
import threading
from typing import Callable, TypeVar

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from starlette.concurrency import run_in_threadpool

from app.auth.local_auth import (
    create_access_token,
    hash_password,
    verify_password,
)
from app.auth.supabase_auth import verify_token
from app.config import settings
from app.database import Base
from app.gateway import filters as f
from app.gateway.base import (
    AuthSession,
    AuthUser,
    ChangeEvent,
    ChangeType,
    Gateway,
    GatewayError,
)
from app.gateway.local_realtime import LocalRealtimeHub
from app.gateway.local_storage import LocalStorage
from app.gateway.procedures import PROCEDURES

# Import models so SQLAlchemy registers tables
from app.models import (  # noqa: F401
    user,
    profile,
    hobby,
    user_hobby,
    connection,
    message,
    community,
    community_member,
    post,
    like,
    comment,
)
from app.models.hobby import HOBBY_CATALOG, Hobby
from app.models.user import User

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_error(exc: SQLAlchemyError) -> GatewayError:
    if isinstance(exc, IntegrityError):
        detail = str(exc.orig)
        lowered = detail.lower()
        if "unique" in lowered or "duplicate" in lowered:
            return GatewayError(detail, code="23505")
        return GatewayError(detail, code="23514")
    return GatewayError(str(exc))


class SqlGateway(Gateway):
    def __init__(
        self,
        engine: Engine,
        *,
        media_path: str | None = None,
        base_url: str | None = None,
    ):
        self.engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self.hub = LocalRealtimeHub()
        self.storage = LocalStorage(
            media_path or settings.LOCAL_MEDIA_PATH,
            base_url or settings.BASE_URL,
        )
        self._auth_listeners: list[Callable] = []
        # SQLite connections are not safe for concurrent use across threads
        self._serial = (
            threading.Lock() if engine.dialect.name == "sqlite" else contextlib.nullcontext()
        )

    # -------------------------------------------------------
    # Schema
    # -------------------------------------------------------
    def create_schema(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        self.seed_hobbies()

    def reset_schema(self) -> None:
        Base.metadata.drop_all(bind=self.engine)
        self.create_schema()

    def seed_hobbies(self) -> None:
        with self._sessions() as db:
            existing = {name for (name,) in db.query(Hobby.name)}
            missing = [name for name in HOBBY_CATALOG if name not in existing]
            if missing:
                db.add_all(Hobby(name=name) for name in missing)
                db.commit()
                logger.info("Seeded %d hobbies", len(missing))

    # -------------------------------------------------------
    # Session work runs in the threadpool, off the event loop
    # -------------------------------------------------------
    def _run_sync(self, work: Callable[..., T]) -> T:
        with self._serial, self._sessions() as db:
            try:
                return work(db)
            except SQLAlchemyError as exc:
                db.rollback()
                raise _to_error(exc) from exc

    async def _run(self, work: Callable[..., T]) -> T:
        return await run_in_threadpool(self._run_sync, work)

    # -------------------------------------------------------
    # Filter translation
    # -------------------------------------------------------
    def _table(self, name: str) -> sa.Table:
        try:
            return Base.metadata.tables[name]
        except KeyError:
            raise GatewayError(f'relation "{name}" does not exist', code="42P01")

    def _column(self, table: sa.Table, name: str):
        try:
            return table.c[name]
        except KeyError:
            raise GatewayError(
                f'column {table.name}.{name} does not exist', code="42703"
            )

    def _clause(self, table: sa.Table, flt):
        if isinstance(flt, f.Eq):
            return self._column(table, flt.column) == flt.value
        if isinstance(flt, f.Neq):
            return self._column(table, flt.column) != flt.value
        if isinstance(flt, f.In):
            return self._column(table, flt.column).in_(list(flt.values))
        if isinstance(flt, f.IsNull):
            return self._column(table, flt.column).is_(None)
        if isinstance(flt, f.Gte):
            return self._column(table, flt.column) >= flt.value
        if isinstance(flt, f.Lt):
            return self._column(table, flt.column) < flt.value
        if isinstance(flt, f.Or):
            return sa.or_(*(self._clause(table, c) for c in flt.clauses))
        if isinstance(flt, f.And):
            return sa.and_(*(self._clause(table, c) for c in flt.clauses))
        raise GatewayError(f"Unsupported filter: {flt!r}")

    def _where(self, table: sa.Table, where) -> list:
        return [self._clause(table, flt) for flt in where]

    def _columns(self, table: sa.Table, columns):
        if columns == "*":
            return list(table.c)
        if isinstance(columns, str):
            columns = [c.strip() for c in columns.split(",")]
        return [self._column(table, c) for c in columns]

    # -------------------------------------------------------
    # Triggers the hosted database runs for us
    # -------------------------------------------------------
    def _maintain_counters(self, db, table: str, rows: list[dict], delta: int) -> None:
        if table != "community_members" or not rows:
            return

        communities = self._table("communities")
        for row in rows:
            db.execute(
                sa.update(communities)
                .where(communities.c.id == row["community_id"])
                .values(member_count=sa.case(
                    (communities.c.member_count + delta < 0, 0),
                    else_=communities.c.member_count + delta,
                ))
            )

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
        tbl = self._table(table)
        stmt = sa.select(*self._columns(tbl, columns)).where(*self._where(tbl, where))

        if order_by:
            column = self._column(tbl, order_by)
            stmt = stmt.order_by(column.desc() if descending else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)

        def query(db):
            return [dict(row._mapping) for row in db.execute(stmt)]

        return await self._run(query)

    async def count(self, table, *, where=()):
        tbl = self._table(table)
        stmt = sa.select(sa.func.count()).select_from(tbl).where(*self._where(tbl, where))

        def query(db):
            return int(db.execute(stmt).scalar() or 0)

        return await self._run(query)

    # -------------------------------------------------------
    # Mutations
    # -------------------------------------------------------
    async def insert(self, table, rows):
        tbl = self._table(table)
        payload = [rows] if isinstance(rows, dict) else list(rows)

        def write(db):
            created = []
            for row in payload:
                result = db.execute(sa.insert(tbl).values(**row).returning(*tbl.c))
                created.append(dict(result.one()._mapping))
            self._maintain_counters(db, table, created, +1)
            db.commit()
            return created

        created = await self._run(write)
        for row in created:
            self.hub.publish(ChangeEvent(table, ChangeType.INSERT, record=row))
        return created

    async def update(self, table, values, *, where):
        tbl = self._table(table)
        clauses = self._where(tbl, where)
        if not clauses:
            raise GatewayError("UPDATE requires a WHERE clause", code="21000")

        def write(db):
            before = {
                row["id"]: row
                for row in (
                    dict(r._mapping)
                    for r in db.execute(sa.select(tbl).where(*clauses))
                )
            }
            result = db.execute(
                sa.update(tbl).where(*clauses).values(**values).returning(*tbl.c)
            )
            updated = [dict(r._mapping) for r in result]
            db.commit()
            return before, updated

        before, updated = await self._run(write)
        for row in updated:
            self.hub.publish(
                ChangeEvent(
                    table,
                    ChangeType.UPDATE,
                    record=row,
                    old_record=before.get(row["id"], {}),
                )
            )
        return updated

    async def delete(self, table, *, where):
        tbl = self._table(table)
        clauses = self._where(tbl, where)
        if not clauses:
            raise GatewayError("DELETE requires a WHERE clause", code="21000")

        def write(db):
            removed = [
                dict(r._mapping)
                for r in db.execute(sa.select(tbl).where(*clauses))
            ]
            db.execute(sa.delete(tbl).where(*clauses))
            self._maintain_counters(db, table, removed, -1)
            db.commit()
            return removed

        removed = await self._run(write)
        for row in removed:
            self.hub.publish(ChangeEvent(table, ChangeType.DELETE, old_record=row))
        return removed

    # -------------------------------------------------------
    # Remote procedures
    # -------------------------------------------------------
    async def rpc(self, name, params):
        procedure = PROCEDURES.get(name)
        if procedure is None:
            raise GatewayError(
                f"Could not find the function public.{name}", code="PGRST202"
            )
        return await procedure(self, **params)

    # -------------------------------------------------------
    # Realtime
    # -------------------------------------------------------
    def channel(self, name):
        return self.hub.channel(name)

    # -------------------------------------------------------
    # Storage
    # -------------------------------------------------------
    async def upload(self, bucket, path, data, *, content_type, upsert=True):
        return await run_in_threadpool(self.storage.save, bucket, path, data, upsert=upsert)

    async def public_url(self, bucket, path):
        return self.storage.public_url(bucket, path)

    # -------------------------------------------------------
    # Auth
    # -------------------------------------------------------
    def _emit_auth(self, event: str, session: AuthSession | None) -> None:
        for listener in list(self._auth_listeners):
            listener(event, session)

    async def sign_up(self, email, password):
        def create(db):
            existing = db.query(User).filter(User.email == email).first()
            if existing:
                raise GatewayError("User already registered", code="user_already_exists")

            new_user = User(email=email, hashed_password=hash_password(password))
            db.add(new_user)
            db.commit()
            db.refresh(new_user)
            return new_user.id

        user_id = await self._run(create)

        # Hosted backend does this in an auth trigger
        await self.insert("profiles", {
            "id": user_id,
            "email": email,
            "display_name": email.split("@")[0],
        })

        session = AuthSession(
            access_token=create_access_token(user_id, email),
            user_id=user_id,
            email=email,
        )
        self._emit_auth("SIGNED_IN", session)
        return session

    async def sign_in(self, email, password):
        def check(db):
            found = db.query(User).filter(User.email == email).first()
            if not found or not found.is_active or not verify_password(password, found.hashed_password):
                return None
            return found

        found = await self._run(check)
        if found is None:
            raise GatewayError("Invalid login credentials", code="invalid_credentials")

        session = AuthSession(
            access_token=create_access_token(found.id, found.email),
            user_id=found.id,
            email=found.email,
        )
        self._emit_auth("SIGNED_IN", session)
        return session

    async def sign_out(self):
        self._emit_auth("SIGNED_OUT", None)

    async def get_user(self, access_token):
        payload = verify_token(access_token)
        if payload is None:
            return None

        found = await self._run(
            lambda db: db.query(User).filter(User.id == payload["sub"]).first()
        )
        if not found:
            return None
        return AuthUser(id=found.id, email=found.email)

    async def reset_password(self, email):
        # No mail transport locally; the hosted backend sends the link
        logger.info("Password reset requested for %s", email)

    def on_auth_state_change(self, listener):
        self._auth_listeners.append(listener)

        def unsubscribe():
            if listener in self._auth_listeners:
                self._auth_listeners.remove(listener)

        return unsubscribe

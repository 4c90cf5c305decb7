"""
Realtime sync controller.

Keeps one user's message and connection view state in step with the store
by listening to row changes on ``messages`` and ``connections`` where the
user is a party. Channel callbacks only enqueue; a single consumer task
applies events in delivery order.

Lifecycle: ``start(user_id)`` opens the channel and waits for SUBSCRIBED,
``stop()`` tears it down (safe to call repeatedly), ``switch_user`` does
both. Events that arrive before the channel reports SUBSCRIBED are
dropped. The controller never retries a dropped transport itself; when the
transport reports SUBSCRIBED again it re-registers its listeners on a fresh
channel and refetches conversation summaries and connections.
"""
import asyncio
import contextlib
import logging
from functools import partial

from app.gateway.base import ChangeEvent, ChangeType, ChannelStatus, Gateway
from app.gateway.filters import eq

logger = logging.getLogger(__name__)

LISTENERS = (
    ("messages", "sender_id"),
    ("messages", "receiver_id"),
    ("connections", "user1_id"),
    ("connections", "user2_id"),
)


class RealtimeSyncController:
    def __init__(
        self,
        gateway: Gateway,
        messages,
        connections,
        *,
        subscribe_timeout: float = 10.0,
    ):
        self.gateway = gateway
        self.messages = messages
        self.connections = connections
        self.subscribe_timeout = subscribe_timeout

        self.status: ChannelStatus | None = None
        self._user_id: str | None = None
        self._channel = None
        self._generation = 0
        self._trusted = False
        self._dropped = False
        self._ready = asyncio.Event()
        self._queue: asyncio.Queue | None = None
        self._consumer: asyncio.Task | None = None

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def subscribed(self) -> bool:
        return self._trusted

    @property
    def running(self) -> bool:
        return self._consumer is not None

    # --------------------------------------------------
    # Lifecycle
    # --------------------------------------------------
    async def start(self, user_id: str) -> None:
        if self.running and self._user_id == user_id:
            return
        if self.running:
            await self.stop()

        self._user_id = user_id
        self._dropped = False
        self._queue = asyncio.Queue()
        self._consumer = asyncio.create_task(self._drain())

        await self._open_channel()
        await self._wait_until_open()
        logger.info("Realtime sync started for %s", user_id)

    async def stop(self) -> None:
        if not self.running:
            return

        # Retire callbacks from the closing channel before anything awaits
        self._generation += 1
        self._trusted = False
        self.status = None

        channel, self._channel = self._channel, None
        consumer, self._consumer = self._consumer, None

        if channel is not None:
            await channel.close()
        consumer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await consumer

        logger.info("Realtime sync stopped for %s", self._user_id)

    async def switch_user(self, user_id: str | None) -> None:
        await self.stop()
        if user_id:
            await self.start(user_id)
        else:
            self._user_id = None

    async def settle(self, rounds: int = 5) -> None:
        """Let scheduled callbacks run and wait until the queue is drained."""
        for _ in range(rounds):
            await asyncio.sleep(0)
            if self._queue is not None and self.running:
                await self._queue.join()

    # --------------------------------------------------
    # Channel
    # --------------------------------------------------
    async def _open_channel(self) -> None:
        self._generation += 1
        generation = self._generation
        self._trusted = False
        self._ready = asyncio.Event()

        channel = self.gateway.channel(f"live:{self._user_id}:{generation}")
        for table, column in LISTENERS:
            channel.on(
                "*",
                table,
                partial(self._receive, generation),
                filter=eq(column, self._user_id),
            )
        self._channel = channel
        await channel.subscribe(partial(self._on_status, generation))

    async def _wait_until_open(self) -> None:
        try:
            await asyncio.wait_for(self._ready.wait(), self.subscribe_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Realtime channel for %s not confirmed after %.1fs; events stay untrusted",
                self._user_id, self.subscribe_timeout,
            )

    def _on_status(self, generation: int, status: ChannelStatus, error=None) -> None:
        if generation != self._generation or not self.running:
            return
        self.status = status

        if status == ChannelStatus.SUBSCRIBED:
            if self._dropped:
                self._dropped = False
                logger.info("Realtime transport back for %s; re-registering", self._user_id)
                self._queue.put_nowait(("reconnect", generation))
                return
            self._trusted = True
            self._ready.set()
            return

        if self._trusted:
            self._dropped = True
        self._trusted = False
        logger.warning("Realtime channel %s for %s (%s)", status.value, self._user_id, error)

    def _receive(self, generation: int, event: ChangeEvent) -> None:
        if generation != self._generation or not self._trusted:
            logger.debug("Dropping %s on %s before channel open", event.type, event.table)
            return
        self._queue.put_nowait(("event", event))

    # --------------------------------------------------
    # Consumer
    # --------------------------------------------------
    async def _drain(self) -> None:
        while True:
            kind, payload = await self._queue.get()
            try:
                if kind == "event":
                    await self._dispatch(payload)
                elif kind == "reconnect":
                    await self._reconnect(payload)
            except Exception:
                logger.exception("Realtime handler failed for %s", self._user_id)
            finally:
                self._queue.task_done()

    async def _reconnect(self, generation: int) -> None:
        if generation != self._generation:
            return

        old = self._channel
        self._generation += 1
        if old is not None:
            await old.close()

        await self._open_channel()
        await self._wait_until_open()
        await asyncio.gather(
            self.messages.refresh_conversations(),
            self.connections.refresh(),
        )

    async def _dispatch(self, event: ChangeEvent) -> None:
        if event.table == "messages":
            await self._on_message(event)
        elif event.table == "connections":
            # Small lists; a full refetch beats merging
            await self.connections.refresh()

    async def _on_message(self, event: ChangeEvent) -> None:
        row = event.row
        me = self._user_id
        partner = row.get("receiver_id") if row.get("sender_id") == me else row.get("sender_id")

        if partner is None or partner != self.messages.active_partner_id:
            await self.messages.refresh_conversations()
            return

        if event.type == ChangeType.DELETE:
            self.messages.remove_message(row.get("id"))
            return

        self.messages.merge_message(row)
        if not self.messages.has_conversation(partner):
            # First message of a new conversation: no summary row to patch
            await self.messages.refresh_conversations()
        if (
            event.type == ChangeType.INSERT
            and row.get("receiver_id") == me
            and row.get("read_at") is None
        ):
            await self.messages.mark_read([row["id"]])

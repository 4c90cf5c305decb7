"""
In-process change feed for the local gateway backend.

``SqlGateway`` publishes one ``ChangeEvent`` per affected row after each
committed mutation; every subscribed ``LocalChannel`` whose bindings match
gets its callbacks scheduled on the event loop it subscribed from, in
publish order.
"""
import asyncio
import logging

from app.gateway.base import (
    Channel,
    ChangeEvent,
    ChannelStatus,
    StatusCallback,
)

logger = logging.getLogger(__name__)


class LocalRealtimeHub:
    def __init__(self):
        self._channels: list["LocalChannel"] = []

    def channel(self, name: str) -> "LocalChannel":
        return LocalChannel(self, name)

    @property
    def channels(self) -> list["LocalChannel"]:
        return list(self._channels)

    def publish(self, event: ChangeEvent) -> None:
        for channel in list(self._channels):
            channel.deliver(event)

    # --------------------------------------------------
    # Transport simulation (dev tooling and tests)
    # --------------------------------------------------
    def interrupt(self) -> None:
        for channel in list(self._channels):
            channel.interrupt()

    def resume(self) -> None:
        for channel in list(self._channels):
            channel.resume()

    def _attach(self, channel: "LocalChannel") -> None:
        if channel not in self._channels:
            self._channels.append(channel)

    def _detach(self, channel: "LocalChannel") -> None:
        if channel in self._channels:
            self._channels.remove(channel)


class LocalChannel(Channel):
    def __init__(self, hub: LocalRealtimeHub, name: str):
        super().__init__(name)
        self._hub = hub
        self._bindings = []
        self._loop: asyncio.AbstractEventLoop | None = None
        self._on_status: StatusCallback | None = None
        self._connected = False
        self._closed = False

    def on(self, event, table, callback, filter=None):
        self._bindings.append((event, table, callback, filter))
        return self

    async def subscribe(self, on_status=None):
        self._loop = asyncio.get_running_loop()
        self._on_status = on_status
        self._hub._attach(self)
        self._connected = True
        self._notify(ChannelStatus.SUBSCRIBED)
        return self

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._connected = False
        self._hub._detach(self)
        self._notify(ChannelStatus.CLOSED)

    def deliver(self, event: ChangeEvent) -> None:
        if not self._connected:
            return

        for kind, table, callback, flt in self._bindings:
            if table != event.table:
                continue
            if kind != "*" and kind != event.type.value:
                continue
            if flt is not None and not flt.matches(event.row):
                continue
            self._schedule(callback, event)

    def interrupt(self) -> None:
        if self._connected:
            self._connected = False
            self._notify(ChannelStatus.CHANNEL_ERROR)

    def resume(self) -> None:
        if not self._closed and not self._connected:
            self._connected = True
            self._notify(ChannelStatus.SUBSCRIBED)

    def _notify(self, status: ChannelStatus) -> None:
        if self._on_status is not None:
            self._schedule(self._on_status, status, None)

    def _schedule(self, callback, *args) -> None:
        if self._loop is None or self._loop.is_closed():
            logger.debug("Dropping realtime callback for %s: loop gone", self.name)
            return
        self._loop.call_soon_threadsafe(callback, *args)

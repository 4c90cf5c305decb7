import itertools
from dataclasses import dataclass, field


@dataclass
class Ticket:
    key: object
    serial: int
    _guard: "LatestRequestGuard" = field(repr=False)

    @property
    def current(self) -> bool:
        return self._guard.is_current(self)


class LatestRequestGuard:
    """
    Drops responses from requests that a newer request has superseded.

    Take a ticket when a keyed fetch starts (active conversation, active tab)
    and check ``ticket.current`` before committing the response.
    """

    def __init__(self):
        self._serials = itertools.count(1)
        self._latest: Ticket | None = None

    def issue(self, key=None) -> Ticket:
        self._latest = Ticket(key, next(self._serials), self)
        return self._latest

    def is_current(self, ticket: Ticket) -> bool:
        return self._latest is ticket

    def cancel(self) -> None:
        self._latest = None

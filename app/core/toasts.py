from dataclasses import dataclass, asdict
from typing import Callable


@dataclass
class Toast:
    kind: str       # success | error | info
    message: str

    def to_frame(self) -> dict:
        return {"type": "toast", **asdict(self)}


class ToastSink:
    """Collects toasts for one view owner and forwards them to ``listener``."""

    def __init__(self, listener: Callable[[Toast], None] | None = None):
        self.listener = listener
        self.history: list[Toast] = []

    def __call__(self, kind: str, message: str) -> None:
        toast = Toast(kind, message)
        self.history.append(toast)
        if self.listener is not None:
            self.listener(toast)

    def error(self, message: str) -> None:
        self("error", message)

    def success(self, message: str) -> None:
        self("success", message)

    @property
    def last(self) -> Toast | None:
        return self.history[-1] if self.history else None

"""Shared helpers for asserting exceptions and notifications in tests."""

from __future__ import annotations

from collections.abc import Callable
from typing import ParamSpec, TypeVar

from atem_link.events import EventBus, Notification

P = ParamSpec("P")
TException = TypeVar("TException", bound=BaseException)
TNotification = TypeVar("TNotification", bound=Notification)


def expect_exception(
    func: Callable[P, object],
    exception_type: type[TException],
    *args: P.args,
    **kwargs: P.kwargs,
) -> TException:
    """Run a callable and return the raised exception for inspection."""
    try:
        _ = func(*args, **kwargs)
    except exception_type as err:
        return err
    message = f"Expected {exception_type.__name__} to be raised"
    raise AssertionError(message)  # pragma: no cover


class NotificationRecorder:
    """Collects every notification emitted on a bus, in order."""

    def __init__(self, events: EventBus) -> None:
        self.received: list[Notification] = []
        self._unsubscribe = events.subscribe_all(self.received.append)

    def of_type(self, notification_type: type[TNotification]) -> list[TNotification]:
        return [n for n in self.received if isinstance(n, notification_type)]

    def clear(self) -> None:
        self.received.clear()

    def stop(self) -> None:
        self._unsubscribe()

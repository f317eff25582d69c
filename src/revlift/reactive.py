"""Single-threaded synchronous publish/subscribe channels.

A :class:`Subject` calls its handlers in subscription order, inside
:meth:`Subject.publish`, and keeps nothing once the call returns.
Handlers may unsubscribe themselves or each other while a value is being
delivered; a removed handler is never called again.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

T = TypeVar("T")

Handler = Callable[[T], None]


class Subscription(Generic[T]):
    """Token returned by :meth:`Subject.subscribe`."""

    def __init__(self, subject: Subject[T], handler: Handler[T]) -> None:
        self._subject = subject
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._subject.unsubscribe(self)

    def __repr__(self) -> str:
        state = "active" if self.active else "closed"
        return f"<Subscription {self._subject.name or 'subject'} {state}>"


class Subject(Generic[T]):
    def __init__(self, name: str = "") -> None:
        self.name = name
        self._subscriptions: list[Subscription[T]] = []

    def subscribe(self, handler: Handler[T]) -> Subscription[T]:
        subscription = Subscription(self, handler)
        self._subscriptions.append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription[T]) -> None:
        subscription.active = False
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

    def publish(self, value: T) -> None:
        # Iterate over a snapshot so handlers can (un)subscribe while we dispatch.
        for subscription in tuple(self._subscriptions):
            if subscription.active:
                subscription.handler(value)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


class SubscriptionSlot(Generic[T]):
    """Holds at most one subscription; installing a new one drops the old first."""

    def __init__(self) -> None:
        self._current: Subscription[T] | None = None

    @property
    def current(self) -> Subscription[T] | None:
        return self._current

    def replace(self, subject: Subject[T], handler: Handler[T]) -> Subscription[T]:
        self.clear()
        self._current = subject.subscribe(handler)
        return self._current

    def clear(self) -> None:
        if self._current is not None:
            self._current.unsubscribe()
            self._current = None

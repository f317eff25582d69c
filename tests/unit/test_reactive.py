"""Tests for the synchronous publish/subscribe channels."""

from revlift.reactive import Subject, SubscriptionSlot


def test_handlers_called_in_subscription_order():
    subject = Subject("numbers")
    seen = []
    subject.subscribe(lambda v: seen.append(("a", v)))
    subject.subscribe(lambda v: seen.append(("b", v)))

    subject.publish(1)
    subject.publish(2)

    assert seen == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_publish_without_subscribers():
    subject = Subject()
    subject.publish("dropped")
    assert subject.subscriber_count == 0


def test_unsubscribe_stops_delivery():
    subject = Subject()
    seen = []
    subscription = subject.subscribe(seen.append)
    subject.publish(1)
    subscription.unsubscribe()
    subject.publish(2)

    assert seen == [1]
    assert not subscription.active
    assert subject.subscriber_count == 0


def test_unsubscribe_twice_is_harmless():
    subject = Subject()
    subscription = subject.subscribe(lambda v: None)
    subscription.unsubscribe()
    subscription.unsubscribe()
    assert subject.subscriber_count == 0


def test_handler_unsubscribes_itself():
    subject = Subject()
    seen = []
    holder = {}

    def once(value):
        seen.append(value)
        holder["sub"].unsubscribe()

    holder["sub"] = subject.subscribe(once)
    subject.publish(1)
    subject.publish(2)

    assert seen == [1]


def test_handler_unsubscribes_later_handler():
    subject = Subject()
    seen = []
    holder = {}

    def first(value):
        seen.append(("first", value))
        holder["second"].unsubscribe()

    subject.subscribe(first)
    holder["second"] = subject.subscribe(lambda v: seen.append(("second", v)))
    subject.publish(1)

    # A removed handler is skipped even for the value being delivered.
    assert seen == [("first", 1)]


def test_subscribe_during_publish_starts_with_next_value():
    subject = Subject()
    seen = []

    def first(value):
        seen.append(("first", value))
        if value == 1:
            subject.subscribe(lambda v: seen.append(("late", v)))

    subject.subscribe(first)
    subject.publish(1)
    subject.publish(2)

    assert seen == [("first", 1), ("first", 2), ("late", 2)]


def test_slot_replaces_previous_subscription():
    subject = Subject()
    seen = []
    slot = SubscriptionSlot()

    old = slot.replace(subject, lambda v: seen.append(("old", v)))
    new = slot.replace(subject, lambda v: seen.append(("new", v)))
    subject.publish(1)

    assert seen == [("new", 1)]
    assert not old.active
    assert slot.current is new
    assert subject.subscriber_count == 1


def test_slot_clear():
    subject = Subject()
    slot = SubscriptionSlot()
    slot.replace(subject, lambda v: None)
    slot.clear()
    slot.clear()
    assert slot.current is None
    assert subject.subscriber_count == 0

from vara import Event, EventBus, EventKind


def test_subscribe_filters_by_kind():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append, kinds=(EventKind.PTT_ON,))
    bus.publish(Event(EventKind.PTT_OFF))
    bus.publish(Event(EventKind.PTT_ON))
    assert [e.kind for e in seen] == [EventKind.PTT_ON]


def test_subscribe_everything():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    bus.publish(Event(EventKind.OK))
    bus.publish(Event(EventKind.DATA, "", b"x"))
    assert len(seen) == 2


def test_once_fires_a_single_time_even_when_reentered():
    bus = EventBus()
    seen = []

    def callback(event):
        seen.append(event)
        bus.publish(event)

    bus.once(callback, kinds=(EventKind.OK,))
    bus.publish(Event(EventKind.OK))
    bus.publish(Event(EventKind.OK))
    assert len(seen) == 1
    assert len(bus) == 0


def test_predicate():
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append, kinds=(EventKind.BUFFER,), predicate=lambda e: e.value > 10)
    bus.publish(Event(EventKind.BUFFER, "BUFFER 5", 5))
    bus.publish(Event(EventKind.BUFFER, "BUFFER 50", 50))
    assert [e.value for e in seen] == [50]


def test_unsubscribe_during_publish():
    bus = EventBus()
    seen = []
    subs = []

    def first(event):
        bus.unsubscribe(subs[1])

    subs.append(bus.subscribe(first))
    subs.append(bus.subscribe(seen.append))
    bus.publish(Event(EventKind.OK))
    assert seen == []
    assert len(bus) == 1


def test_failing_subscriber_does_not_stop_others():
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("boom")

    bus.subscribe(broken)
    bus.subscribe(seen.append)
    bus.publish(Event(EventKind.IAMALIVE))
    assert len(seen) == 1


def test_event_text():
    assert Event(EventKind.DATA, "", "héllo".encode("utf-8")).text() == "héllo"
    assert Event(EventKind.COMMAND, "PTT ON").text() == "PTT ON"

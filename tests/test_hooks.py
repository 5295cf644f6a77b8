"""Host integration tests.

Covers:
1. Event router: timing correlation, error classification, isolation
2. Event sources: precise vs coarse selection, attach/detach
3. In-process host: hook and event dispatch

Run:
    pytest tests/test_hooks.py -v
"""

from unittest.mock import MagicMock

import pytest

from metrics_api.hooks import (
    CoarseEventSource,
    EventRouter,
    PreciseEventSource,
    RuntimeHost,
    select_event_source,
)
from metrics_api.hooks.router import error_name, extract_key, extract_message_id, generate_message_id
from metrics_api.metrics import IngestionBatcher, MetricKey, TimingTable


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def timings(clock) -> TimingTable:
    return TimingTable(clock=clock)


@pytest.fixture
def batcher(registry) -> IngestionBatcher:
    # batch_size=1: every record is applied synchronously, no timer involved
    return IngestionBatcher(registry, batch_size=1)


@pytest.fixture
def router(registry, timings, batcher) -> EventRouter:
    return EventRouter(registry, timings, batcher)


def errors(registry, key: MetricKey, error_type: str):
    labels = {**key.labels(), "error_type": error_type}
    return registry.collector_registry.get_sample_value("nodered_errors_total", labels)


# =============================================================================
# TEST 1: EVENT EXTRACTION
# =============================================================================

class TestExtraction:

    def test_missing_fields_become_unknown(self):
        assert extract_key({"source": {"id": "n1"}}, "source") == MetricKey("n1", "unknown", "unknown")
        assert extract_key(None, "source") == MetricKey.unknown()

    def test_nested_node_descriptor(self):
        event = {"source": {"node": {"id": "n1", "type": "inject", "z": "f1"}}}
        assert extract_key(event, "source") == MetricKey("n1", "inject", "f1")

    def test_message_id(self):
        assert extract_message_id({"msg": {"_msgid": "abc"}}) == "abc"
        assert extract_message_id({"msg": {}}) is None
        assert extract_message_id({}) is None

    def test_generated_message_id_format(self):
        msg_id = generate_message_id()
        prefix, millis, suffix = msg_id.split("_")
        assert prefix == "msg"
        assert millis.isdigit()
        assert len(suffix) == 9

    def test_error_name(self):
        assert error_name({"name": "TypeError"}, "x") == "TypeError"
        assert error_name({"message": "boom"}, "execution") == "execution"
        assert error_name(ValueError("bad"), "x") == "ValueError"
        assert error_name("just a string", "runtime") == "runtime"


# =============================================================================
# TEST 2: EVENT ROUTER
# =============================================================================

class TestEventRouter:

    def test_send_then_complete_records_duration(self, router, registry, timings, clock, event_factory):
        router.on_send(event_factory("source"))
        assert len(timings) == 1

        clock.advance(0.12)
        router.on_complete(event_factory("node"))

        key = MetricKey("n1", "function", "f1")
        labels = key.labels()
        get = registry.collector_registry.get_sample_value
        assert get("nodered_node_execution_time_seconds_count", labels) == 1.0
        assert get("nodered_node_execution_time_seconds_sum", labels) == pytest.approx(0.12)
        assert get("nodered_node_execution_time_seconds_bucket", {**labels, "le": "0.5"}) == 1.0
        assert get("nodered_node_execution_time_seconds_bucket", {**labels, "le": "0.1"}) == 0.0
        assert get("nodered_messages_outgoing_total", labels) == 1.0
        assert len(timings) == 0
        assert router.stats()["durations_recorded"] == 1

    def test_receive_counts_incoming(self, router, registry, event_factory):
        router.on_receive(event_factory("destination", node_id="n2", node_type="debug"))
        assert registry.counter_state(MetricKey("n2", "debug", "f1")).incoming_total == 1

    def test_complete_without_start_records_nothing(self, router, registry, event_factory):
        router.on_complete(event_factory("node", msg_id="never-sent"))

        labels = MetricKey("n1", "function", "f1").labels()
        assert registry.collector_registry.get_sample_value(
            "nodered_node_execution_time_seconds_count", labels) is None
        assert router.stats()["events_failed"] == 0

    def test_complete_with_error(self, router, registry, event_factory):
        key = MetricKey("n1", "function", "f1")
        router.on_complete(event_factory("node", error={"name": "TypeError", "message": "x"}))
        router.on_complete(event_factory("node", msg_id="m2", error={"message": "no name"}))

        assert errors(registry, key, "TypeError") == 1.0
        assert errors(registry, key, "execution") == 1.0

    def test_complete_with_empty_error_counts_as_execution(self, router, registry, event_factory):
        router.on_complete(event_factory("node", error={}))

        assert errors(registry, MetricKey("n1", "function", "f1"), "execution") == 1.0

    def test_complete_with_null_error_records_nothing(self, router, registry, event_factory):
        router.on_complete(event_factory("node", error=None))

        assert errors(registry, MetricKey("n1", "function", "f1"), "execution") is None

    def test_send_without_msgid_still_counts(self, router, registry, timings):
        router.on_send({"source": {"id": "n1", "type": "function", "z": "f1"}})

        assert registry.counter_state(MetricKey("n1", "function", "f1")).outgoing_total == 1
        assert len(timings) == 1

    def test_node_error(self, router, registry, event_factory):
        key = MetricKey("n1", "function", "f1")
        router.on_node_error(event_factory("node", error=ValueError("bad")))
        router.on_node_error(event_factory("node"))

        assert errors(registry, key, "ValueError") == 1.0
        assert errors(registry, key, "runtime") == 1.0

    def test_flow_error(self, router, registry):
        router.on_flow_error({"flow": {"id": "f9"}})
        assert errors(registry, MetricKey("flow", "flow", "f9"), "flow") == 1.0

    def test_flows_stopped_drops_timings(self, router, timings, event_factory):
        router.on_send(event_factory("source"))
        router.on_receive(event_factory("destination", node_id="n2", msg_id="m2"))
        assert len(timings) == 2

        router.on_flows_stopped()
        assert len(timings) == 0

    def test_handler_failure_becomes_error_metric(self, registry, timings, event_factory):
        batcher = MagicMock()
        batcher.enqueue.side_effect = RuntimeError("boom")
        router = EventRouter(registry, timings, batcher)

        router.on_send(event_factory("source"))

        assert errors(registry, MetricKey("n1", "function", "f1"), "send_processing") == 1.0
        assert router.stats()["events_failed"] == 1

    def test_failure_before_key_uses_unknown(self, registry, timings, batcher, monkeypatch):
        router = EventRouter(registry, timings, batcher)
        monkeypatch.setattr(
            "metrics_api.hooks.router.extract_key",
            MagicMock(side_effect=RuntimeError("bad event")),
        )

        router.on_receive({})

        assert errors(registry, MetricKey.unknown(), "receive_processing") == 1.0


# =============================================================================
# TEST 3: EVENT SOURCES
# =============================================================================

class TestEventSources:

    def test_precise_selected_when_hooks_available(self):
        assert isinstance(select_event_source(RuntimeHost()), PreciseEventSource)

    def test_coarse_selected_without_hooks(self):
        source = select_event_source(RuntimeHost(hooks_enabled=False))
        assert isinstance(source, CoarseEventSource)
        assert not isinstance(source, PreciseEventSource)

    def test_precise_attach_and_detach(self, router, registry, event_factory):
        host = RuntimeHost()
        source = PreciseEventSource()
        source.attach(host, router)

        assert host.hooks.count() == 3
        assert host.events.listener_count("node-error") == 1
        assert host.events.listener_count("flows:stopped") == 1

        host.dispatch("send", [event_factory("source"), event_factory("source", msg_id="m2")])
        assert registry.counter_state(MetricKey("n1", "function", "f1")).outgoing_total == 2

        source.detach()
        assert host.hooks.count() == 0
        assert host.events.listener_count("node-error") == 0

        host.dispatch("send", [event_factory("source", msg_id="m3")])
        assert registry.counter_state(MetricKey("n1", "function", "f1")).outgoing_total == 2

    def test_onsend_accepts_single_event(self, router, registry, event_factory):
        host = RuntimeHost()
        PreciseEventSource().attach(host, router)

        host.dispatch("send", event_factory("source"))
        assert registry.counter_state(MetricKey("n1", "function", "f1")).outgoing_total == 1

    def test_coarse_mode_records_errors_only(self, router, registry, event_factory):
        host = RuntimeHost(hooks_enabled=False)
        source = select_event_source(host)
        source.attach(host, router)

        assert host.dispatch("send", [event_factory("source")]) == 0
        host.dispatch("node-error", event_factory("node", error={"name": "Boom"}))

        assert registry.counter_states() == {}
        assert errors(registry, MetricKey("n1", "function", "f1"), "Boom") == 1.0

    def test_host_without_events(self, router):
        source = select_event_source(object())
        source.attach(object(), router)
        source.detach()


# =============================================================================
# TEST 4: IN-PROCESS HOST
# =============================================================================

class TestRuntimeHost:

    def test_unknown_kind_raises(self):
        with pytest.raises(KeyError):
            RuntimeHost().dispatch("bogus", {})

    def test_failing_hook_does_not_stop_others(self):
        host = RuntimeHost()
        seen = []
        host.hooks.add("onReceive", MagicMock(side_effect=RuntimeError("boom")))
        host.hooks.add("onReceive", seen.append)

        assert host.dispatch("receive", {"x": 1}) == 1
        assert seen == [{"x": 1}]

    def test_remove_unknown_handle(self):
        host = RuntimeHost()
        handle = host.hooks.add("onSend", lambda e: None)
        assert host.hooks.remove(handle) is True
        assert host.hooks.remove(handle) is False

    def test_lifecycle_events_map_to_host_names(self):
        host = RuntimeHost()
        callback = MagicMock()
        host.events.on("flows:started", callback)

        assert host.dispatch("flows-started", None) == 1
        callback.assert_called_once_with(None)

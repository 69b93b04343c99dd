"""Tests for gqlext.extensions.runner module."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from gqlext.extensions import (
    BaseExtension,
    Extension,
    ExtensionContext,
    Extensions,
    LifecycleState,
    Logger,
    LoggingExtension,
    ServerError,
    ValidationResult,
    create_extensions,
)
from gqlext.logging import BufferingHandler, LogLevel, get_current_context, get_logger
from gqlext.opentelemetry.testing import (
    RecordingExtension,
    RecordingFactory,
    make_resolve_info,
)


FULL_LIFECYCLE = [
    "start",
    "parse_start",
    "parse_end",
    "validation_start",
    "validation_end",
    "execution_start",
    "resolve_start",
    "resolve_end",
    "execution_end",
    "end",
]


@pytest.fixture
def runner_logs():
    """Capture records of the runner's logger."""
    handler = BufferingHandler()
    logger = get_logger("gqlext.extensions.runner")
    logger.add_handler(handler)
    yield handler
    logger.remove_handler(handler)


def drive(extensions: Extensions) -> None:
    """Run one complete, well-ordered request through the runner."""
    info = make_resolve_info(1, path="user")
    extensions.start()
    extensions.parse_start("{ user }", {"id": 1})
    extensions.parse_end(object())
    extensions.validation_start()
    extensions.validation_end(ValidationResult(complexity=1, depth=1))
    extensions.execution_start()
    extensions.resolve_start(info)
    extensions.resolve_end(info)
    extensions.execution_end()
    extensions.end()


class TestExtensionContract:
    """Tests for the Extension protocol and BaseExtension."""

    def test_base_extension_satisfies_protocol(self):
        """Test the no-op base implements the full contract."""
        assert isinstance(BaseExtension(), Extension)
        assert isinstance(RecordingExtension(), Extension)

    def test_base_extension_is_noop(self):
        """Test every no-op event can be called."""
        with Extensions([BaseExtension()]) as extensions:
            drive(extensions)
        assert extensions.state == LifecycleState.ENDED


class TestExtensionContext:
    """Tests for ExtensionContext."""

    def test_data_by_type(self):
        """Test values are stored and fetched by type."""
        ctx = ExtensionContext(["request-1", 42])
        assert ctx.data(str) == "request-1"
        assert ctx.data_opt(int) == 42
        assert ctx.data_opt(float) is None
        assert str in ctx

    def test_insert_replaces(self):
        """Test a second value of the same type replaces the first."""
        ctx = ExtensionContext()
        ctx.insert("a")
        ctx.insert("b")
        assert ctx.data(str) == "b"

    def test_missing_data_raises(self):
        """Test data() raises KeyError for missing types."""
        with pytest.raises(KeyError, match="float"):
            ExtensionContext().data(float)


class TestDispatch:
    """Tests for event fan-out."""

    def test_events_in_order(self):
        """Test every extension sees every event in order."""
        first, second = RecordingExtension(), RecordingExtension()
        with Extensions([first, second]) as extensions:
            drive(extensions)

        assert first.events == FULL_LIFECYCLE + ["close"]
        assert second.events == FULL_LIFECYCLE + ["close"]

    def test_context_shared(self):
        """Test the request context is passed to every hook."""
        ctx = ExtensionContext(["request-1"])
        recorder = RecordingExtension()
        with Extensions([recorder], ctx) as extensions:
            extensions.start()
            extensions.end()
        assert all(c is ctx for c in recorder.contexts)
        assert extensions.context is ctx

    def test_arguments_forwarded(self):
        """Test payloads reach the hooks unchanged."""
        recorder = RecordingExtension()
        result = ValidationResult(complexity=5, depth=3)
        error = ServerError("boom", path=("user",))
        with Extensions([recorder]) as extensions:
            extensions.start()
            extensions.parse_start("{ user }", {"id": 1})
            extensions.parse_end(None)
            extensions.validation_start()
            extensions.validation_end(result)
            extensions.error(error)

        calls = {call.event: call.args for call in recorder.calls}
        assert calls["parse_start"] == ("{ user }", {"id": 1})
        assert calls["validation_end"] == (result,)
        assert calls["error"] == (error,)

    def test_empty_runner(self):
        """Test a runner without extensions accepts every event."""
        with Extensions([]) as extensions:
            assert extensions.is_empty
            drive(extensions)

    def test_from_factories_creates_fresh_instances(self):
        """Test each runner gets its own instances."""
        factory = RecordingFactory()
        with create_extensions([factory]) as one:
            one.start()
        with Extensions.from_factories([factory]) as two:
            two.start()
        assert len(factory.instances) == 2
        assert factory.instances[0] is not factory.instances[1]
        assert one.instances == (factory.instances[0],)

    def test_concurrent_field_events(self):
        """Test resolve events dispatched from many threads all arrive."""
        recorder = RecordingExtension()
        infos = [make_resolve_info(i) for i in range(1, 101)]

        def resolve(info):
            extensions.resolve_start(info)
            extensions.resolve_end(info)

        with Extensions([recorder]) as extensions:
            extensions.start()
            extensions.parse_start("{ a }", {})
            extensions.parse_end(None)
            extensions.validation_start()
            extensions.validation_end(ValidationResult())
            extensions.execution_start()
            with ThreadPoolExecutor(max_workers=8) as executor:
                list(executor.map(resolve, infos))
            extensions.execution_end()
            extensions.end()

        assert recorder.count("resolve_start") == 100
        assert recorder.count("resolve_end") == 100


class TestFailureContainment:
    """Tests for containment of extension failures."""

    def test_failure_does_not_reach_caller(self, runner_logs):
        """Test a raising hook is logged and skipped."""
        failing = RecordingExtension(fail_on={"parse_start"})
        healthy = RecordingExtension()
        with Extensions([failing, healthy]) as extensions:
            extensions.start()
            extensions.parse_start("{ a }", {})
            extensions.parse_end(None)

        assert healthy.events == ["start", "parse_start", "parse_end", "close"]
        assert failing.events == ["start", "parse_start", "parse_end", "close"]

        errors = [r for r in runner_logs.records if r.level == LogLevel.ERROR]
        assert len(errors) == 1
        assert errors[0].extra["extension"] == "RecordingExtension"
        assert errors[0].extra["event"] == "parse_start"
        assert isinstance(errors[0].exc_info, RuntimeError)

    def test_close_failure_contained(self, runner_logs):
        """Test a failing close does not stop other instances from closing."""
        failing = RecordingExtension(fail_on={"close"})
        healthy = RecordingExtension()
        with Extensions([failing, healthy]):
            pass
        assert healthy.events == ["close"]
        assert any(r.message == "Extension close failed" for r in runner_logs.records)


class TestRequestLogContext:
    """Tests for request fields on records logged during dispatch."""

    @pytest.fixture
    def request_logs(self):
        handler = BufferingHandler()
        logger = get_logger("gqlext.tests.runner_context")
        logger.add_handler(handler)
        yield handler
        logger.remove_handler(handler)

    def test_extension_records_name_request(self, request_logs):
        """Test lines logged by an extension carry the request fields."""
        extension = LoggingExtension(logger_name="gqlext.tests.runner_context")
        with Extensions([extension], request_id="r-7", operation_name="GetUser") as extensions:
            assert extensions.request_id == "r-7"
            drive(extensions)

        assert request_logs.records
        for record in request_logs.records:
            assert record.context.request_id == "r-7"
            assert record.context.operation_name == "GetUser"
        assert get_current_context().request_id is None

    def test_generated_request_id(self, request_logs):
        """Test each runner gets its own request id."""
        factory = Logger(logger_name="gqlext.tests.runner_context")
        first = create_extensions([factory])
        second = create_extensions([factory])
        assert first.request_id != second.request_id

        with first:
            first.start()
            first.end()
        assert {r.context.request_id for r in request_logs.records} == {first.request_id}

    def test_failure_record_names_request(self, runner_logs):
        """Test a contained failure is logged with the request id."""
        with Extensions([RecordingExtension(fail_on={"start"})], request_id="r-8") as extensions:
            extensions.start()

        errors = [r for r in runner_logs.records if r.level == LogLevel.ERROR]
        assert errors[0].context.request_id == "r-8"


class TestLifecycle:
    """Tests for lifecycle state tracking."""

    def test_states(self):
        """Test the runner follows the documented lifecycle."""
        with Extensions([]) as extensions:
            assert extensions.state == LifecycleState.IDLE
            extensions.start()
            assert extensions.state == LifecycleState.STARTED
            extensions.parse_start("{ a }", {})
            assert extensions.state == LifecycleState.PARSING
            extensions.parse_end(None)
            extensions.validation_start()
            extensions.validation_end(ValidationResult())
            assert extensions.state == LifecycleState.VALIDATED
            extensions.execution_start()
            assert extensions.state == LifecycleState.EXECUTING
            extensions.execution_end()
            extensions.end()
            assert extensions.state == LifecycleState.ENDED
            assert extensions.state.is_terminal

    def test_in_order_has_no_warnings(self, runner_logs):
        """Test a well-ordered request logs no lifecycle warning."""
        with Extensions([RecordingExtension()]) as extensions:
            drive(extensions)
        assert not [r for r in runner_logs.records if r.level == LogLevel.WARNING]

    def test_out_of_order_is_logged_and_dispatched(self, runner_logs):
        """Test an out-of-order event is still delivered."""
        recorder = RecordingExtension()
        with Extensions([recorder]) as extensions:
            extensions.execution_start()

        assert recorder.events == ["execution_start", "close"]
        warnings = [r for r in runner_logs.records if r.level == LogLevel.WARNING]
        assert len(warnings) == 1
        assert warnings[0].extra == {"event": "execution_start", "state": "IDLE"}

    def test_early_end(self, runner_logs):
        """Test a request may end right after a parse failure."""
        with Extensions([]) as extensions:
            extensions.start()
            extensions.parse_start("{", {})
            extensions.end()
        assert not [r for r in runner_logs.records if r.level == LogLevel.WARNING]


class TestScopedRelease:
    """Tests for guaranteed close on every exit path."""

    def test_close_on_normal_exit(self):
        """Test instances are closed when the block ends."""
        recorder = RecordingExtension()
        with Extensions([recorder]) as extensions:
            drive(extensions)
        assert recorder.count("close") == 1

    def test_close_on_exception(self):
        """Test instances are closed when the block raises."""
        recorder = RecordingExtension()
        with pytest.raises(ValueError):
            with Extensions([recorder]) as extensions:
                extensions.start()
                raise ValueError("resolver crashed")
        assert recorder.events == ["start", "close"]

    def test_close_is_idempotent(self):
        """Test closing twice closes instances once."""
        recorder = RecordingExtension()
        extensions = Extensions([recorder])
        extensions.close()
        extensions.close()
        assert recorder.count("close") == 1

    @pytest.mark.asyncio
    async def test_close_on_cancellation(self):
        """Test instances are closed when the request task is cancelled."""
        recorder = RecordingExtension()
        started = asyncio.Event()

        async def request():
            async with Extensions([recorder]) as extensions:
                extensions.start()
                extensions.parse_start("{ slow }", {})
                started.set()
                await asyncio.sleep(10)

        task = asyncio.create_task(request())
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert recorder.events == ["start", "parse_start", "close"]

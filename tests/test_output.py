import pytest

from hfdlkit.output import (
    Formatter,
    FormatterInputType,
    OutputDescriptor,
    OutputEntry,
    OutputFormat,
    OutputInstance,
    any_output_running,
    formatter_input_type_from_string,
    output_format_from_string,
    shutdown_outputs,
)
from hfdlkit.pdu import PduMetadata


class RecordingContext:
    def __init__(self, fail_init=False, failures=0):
        self.fail_init = fail_init
        self.failures = failures
        self.produced = []
        self.events = []

    def init(self):
        self.events.append("init")
        if self.fail_init:
            raise OSError("cannot start")

    def produce(self, fmt, metadata, msg):
        if self.failures:
            self.failures -= 1
            raise OSError("delivery failed")
        self.produced.append((fmt, metadata, msg))

    def handle_shutdown(self):
        self.events.append("shutdown")

    def handle_failure(self):
        self.events.append("failure")


DESCRIPTOR = OutputDescriptor(
    name="fake",
    description="Recording output",
    configure=lambda kv: RecordingContext(),
    supports_format=lambda fmt: True,
)


def make_instance(ctx=None, hwm=1000):
    inst = OutputInstance(DESCRIPTOR, OutputFormat.TEXT, ctx or RecordingContext(), hwm)
    inst.retry_delay = 0
    return inst


def test_input_type_names():
    assert formatter_input_type_from_string("decoded") is FormatterInputType.DECODED_FRAME
    assert formatter_input_type_from_string("raw") is FormatterInputType.RAW_FRAME
    assert formatter_input_type_from_string("bogus") is FormatterInputType.UNKNOWN


def test_input_type_round_trip():
    for intype in (FormatterInputType.DECODED_FRAME, FormatterInputType.RAW_FRAME):
        assert formatter_input_type_from_string(intype.label) is intype


def test_output_format_names():
    assert output_format_from_string("text") is OutputFormat.TEXT
    assert output_format_from_string("nope") is OutputFormat.UNKNOWN
    for fmt in (OutputFormat.TEXT, OutputFormat.BASESTATION, OutputFormat.JSON):
        assert output_format_from_string(fmt.label) is fmt


def test_run_delivers_in_order_and_shuts_down():
    inst = make_instance()
    for msg in (b"one\n", b"two\n"):
        assert inst.push(OutputEntry(msg=msg, format=OutputFormat.TEXT))
    inst.push(OutputEntry(shutdown=True))
    inst.run()
    assert [m for _, _, m in inst.ctx.produced] == [b"one\n", b"two\n"]
    assert inst.ctx.events == ["init", "shutdown"]
    assert inst.active is False


def test_push_copies_metadata():
    inst = make_instance()
    meta = PduMetadata(freq=1000)
    inst.push(OutputEntry(msg=b"x", metadata=meta, format=OutputFormat.JSON))
    meta.freq = 2000
    inst.push(OutputEntry(shutdown=True))
    inst.run()
    fmt, produced_meta, _ = inst.ctx.produced[0]
    assert fmt is OutputFormat.JSON
    assert produced_meta.freq == 1000


def test_failed_delivery_is_retried():
    inst = make_instance(RecordingContext(failures=2))
    inst.push(OutputEntry(msg=b"retry", format=OutputFormat.TEXT))
    inst.push(OutputEntry(shutdown=True))
    inst.run()
    assert [m for _, _, m in inst.ctx.produced] == [b"retry"]


def test_init_failure_deactivates_and_drains():
    inst = make_instance(RecordingContext(fail_init=True))
    inst.push(OutputEntry(msg=b"a", format=OutputFormat.TEXT))
    inst.run()
    assert inst.active is False
    assert inst.ctx.events == ["init", "failure"]
    assert inst.drain() == 0
    assert inst.ctx.produced == []


def test_overflow_drops_messages(capsys):
    inst = make_instance(hwm=2)
    results = [inst.push(OutputEntry(msg=b"m", format=OutputFormat.TEXT)) for _ in range(3)]
    assert results == [True, True, False]
    assert "fake output queue overflow" in capsys.readouterr().err
    assert inst.drain() == 2


def test_overflow_disabled_with_zero_hwm():
    inst = make_instance(hwm=0)
    for _ in range(50):
        assert inst.push(OutputEntry(msg=b"m"))
    assert inst.drain() == 50


def test_inactive_output_only_accepts_shutdown():
    inst = make_instance()
    inst.active = False
    assert inst.push(OutputEntry(msg=b"m")) is False
    assert inst.push(OutputEntry(shutdown=True)) is True
    assert inst.drain() == 1


def test_shutdown_outputs_via_threads():
    outputs = [make_instance(), make_instance()]
    fmtr = Formatter(OutputFormat.TEXT, FormatterInputType.DECODED_FRAME, outputs)
    threads = [o.start() for o in outputs]
    outputs[0].push(OutputEntry(msg=b"hello", format=OutputFormat.TEXT))
    assert any_output_running([fmtr]) is True
    shutdown_outputs([fmtr])
    for t in threads:
        t.join(timeout=5)
        assert not t.is_alive()
    assert any_output_running([fmtr]) is False
    assert [m for _, _, m in outputs[0].ctx.produced] == [b"hello"]
    assert outputs[1].ctx.produced == []


def test_any_output_running_empty():
    assert any_output_running([]) is False
    assert any_output_running([Formatter(OutputFormat.JSON, FormatterInputType.RAW_FRAME)]) is False
import socket
from unittest import mock

import pytest

from hfdlkit.output import OutputFormat
from hfdlkit.output_udp import UdpOutput


@pytest.fixture
def receiver():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    sock.settimeout(5)
    yield sock
    sock.close()


def test_from_kvargs_requires_address():
    with pytest.raises(ValueError, match="IP address not specified"):
        UdpOutput.from_kvargs({"port": "5555"})


def test_from_kvargs_requires_port():
    with pytest.raises(ValueError, match="UDP port not specified"):
        UdpOutput.from_kvargs({"address": "localhost"})


def test_from_kvargs_keeps_parameters():
    out = UdpOutput.from_kvargs({"address": "localhost", "port": "5555"})
    assert (out.address, out.port) == ("localhost", "5555")


def test_sends_datagram(receiver):
    out = UdpOutput("127.0.0.1", receiver.getsockname()[1])
    out.init()
    try:
        out.produce(OutputFormat.TEXT, None, b"hello")
        data, _ = receiver.recvfrom(100)
        assert data == b"hello"
    finally:
        out.handle_shutdown()


def test_short_and_unsupported_messages_are_skipped(receiver):
    out = UdpOutput("127.0.0.1", receiver.getsockname()[1])
    out.init()
    try:
        out.produce(OutputFormat.TEXT, None, b"x")
        out.produce(OutputFormat.UNKNOWN, None, b"abc")
        out.produce(OutputFormat.BASESTATION, None, b"yz")
        data, _ = receiver.recvfrom(100)
        assert data == b"yz"
    finally:
        out.handle_shutdown()


def test_unresolvable_service_fails_init(capsys):
    out = UdpOutput("127.0.0.1", "no-such-service-name")
    with pytest.raises(OSError):
        out.init()
    assert "could not resolve" in capsys.readouterr().err


def test_send_error_is_reported_not_raised(receiver, capsys):
    out = UdpOutput("127.0.0.1", receiver.getsockname()[1])
    out.init()
    try:
        with mock.patch.object(socket.socket, "send", side_effect=ConnectionRefusedError(111, "Connection refused")):
            out.produce(OutputFormat.JSON, None, b"data")
        assert "send error: Connection refused" in capsys.readouterr().err
    finally:
        out.handle_shutdown()


def test_produce_before_init_is_an_error():
    out = UdpOutput("127.0.0.1", 9)
    with pytest.raises(RuntimeError):
        out.produce(OutputFormat.TEXT, None, b"data")


def test_failure_handler_reports(capsys):
    out = UdpOutput("127.0.0.1", 9)
    out.handle_failure()
    assert "can't connect to 127.0.0.1:9, deactivating output" in capsys.readouterr().err
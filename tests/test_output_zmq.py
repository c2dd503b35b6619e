import socket

import pytest
import zmq

from hfdlkit.output import OutputFormat
from hfdlkit.output_zmq import ZmqMode, ZmqOutput


def _free_port():
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def test_from_kvargs_requires_endpoint():
    with pytest.raises(ValueError, match="endpoint not specified"):
        ZmqOutput.from_kvargs({"mode": "server"})


def test_from_kvargs_requires_mode():
    with pytest.raises(ValueError, match="mode not specified"):
        ZmqOutput.from_kvargs({"endpoint": "tcp://127.0.0.1:5555"})


def test_from_kvargs_rejects_invalid_mode():
    with pytest.raises(ValueError, match="must be either 'client' or 'server'"):
        ZmqOutput.from_kvargs({"endpoint": "tcp://127.0.0.1:5555", "mode": "peer"})


def test_from_kvargs_parses_mode():
    out = ZmqOutput.from_kvargs({"endpoint": "tcp://127.0.0.1:5555", "mode": "client"})
    assert out.mode is ZmqMode.CLIENT
    assert out.endpoint == "tcp://127.0.0.1:5555"


def test_bind_failure_raises_oserror(capsys):
    out = ZmqOutput("bogus://nowhere", ZmqMode.SERVER)
    with pytest.raises(OSError):
        out.init()
    out.handle_failure()
    err = capsys.readouterr().err
    assert "bind failed" in err
    assert "could not bind, deactivating output" in err


def test_server_publishes_to_subscriber(capsys):
    endpoint = f"tcp://127.0.0.1:{_free_port()}"
    out = ZmqOutput(endpoint, "server")
    out.init()
    ctx = zmq.Context()
    sub = ctx.socket(zmq.SUB)
    sub.setsockopt(zmq.SUBSCRIBE, b"")
    sub.connect(endpoint)
    try:
        received = None
        for _ in range(50):
            out.produce(OutputFormat.TEXT, None, b"ping\n")
            if sub.poll(100):
                received = sub.recv()
                break
        assert received == b"ping\n"

        while sub.poll(100):
            sub.recv()
        out.produce(OutputFormat.JSON, None, b"x")
        out.produce(OutputFormat.UNKNOWN, None, b"skip")
        out.produce(OutputFormat.JSON, None, b"ok")
        assert sub.poll(2000)
        assert sub.recv() == b"ok"
    finally:
        sub.close(linger=0)
        ctx.term()
        out.handle_shutdown()
    assert "shutting down" in capsys.readouterr().err


def test_produce_before_init_is_an_error():
    out = ZmqOutput("tcp://127.0.0.1:5555", ZmqMode.CLIENT)
    with pytest.raises(RuntimeError):
        out.produce(OutputFormat.TEXT, None, b"data")
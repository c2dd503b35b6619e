import io

import pytest

from hfdlkit.output import OutputFormat
from hfdlkit.output_file import FileOutput
from hfdlkit.output_tcp import TcpOutput
from hfdlkit.registry import get_output_descriptor, output_usage


@pytest.mark.parametrize("name", ["file", "tcp", "udp", "zmq"])
def test_known_outputs_are_found(name):
    assert get_output_descriptor(name).name == name


def test_unknown_output_gives_none():
    assert get_output_descriptor("carrier-pigeon") is None
    assert get_output_descriptor(None) is None


def test_descriptor_descriptions_come_from_outputs():
    assert get_output_descriptor("tcp").description == "Output to a remote host via TCP"
    assert get_output_descriptor("file").description == "Output to a file"


@pytest.mark.parametrize("name", ["file", "tcp", "udp", "zmq"])
def test_supported_formats(name):
    d = get_output_descriptor(name)
    assert d.supports_format(OutputFormat.JSON)
    assert d.supports_format(OutputFormat.TEXT)
    assert not d.supports_format(OutputFormat.UNKNOWN)


def test_configure_builds_output_instance():
    out = get_output_descriptor("file").configure({"path": "-"})
    assert isinstance(out, FileOutput)
    assert out.path == "-"
    tcp = get_output_descriptor("tcp").configure({"address": "localhost", "port": "5555"})
    assert isinstance(tcp, TcpOutput)
    assert tcp.port == "5555"


def test_configure_reports_missing_parameters():
    with pytest.raises(ValueError, match="port not specified"):
        get_output_descriptor("udp").configure({"address": "localhost"})


def test_usage_describes_syntax_and_parameters():
    buf = io.StringIO()
    output_usage(buf)
    text = buf.getvalue()
    assert "<what_to_output>:<output_format>:<output_type>:<output_parameters>" in text
    assert "Output decoded frames" in text
    assert "Output undecoded HFDL frames as raw bytes" in text
    assert "Parameters for output type 'zmq':" in text
    assert "Path to the output file (required)" in text
    assert text.index("Parameters for output type 'file'") < text.index(
        "Parameters for output type 'tcp'"
    )


def test_usage_defaults_to_stderr(capsys):
    output_usage()
    assert "Parameters for output type 'udp':" in capsys.readouterr().err
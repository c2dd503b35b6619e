"""The set of available output types and the description of output specifiers."""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from hfdlkit import output_file, output_tcp, output_udp, output_zmq
from hfdlkit.output import FormatterInputType, OutputDescriptor, OutputFormat

_INDENT = "  "
_NAME_WIDTH = 20

OUTPUT_DESCRIPTORS = (
    OutputDescriptor(
        name=output_file.NAME,
        description=output_file.DESCRIPTION,
        configure=output_file.FileOutput.from_kvargs,
        supports_format=output_file.supports_format,
        options=output_file.OPTIONS,
    ),
    OutputDescriptor(
        name=output_tcp.NAME,
        description=output_tcp.DESCRIPTION,
        configure=output_tcp.TcpOutput.from_kvargs,
        supports_format=lambda fmt: fmt in output_tcp.SUPPORTED_FORMATS,
        options=output_tcp.OPTIONS,
    ),
    OutputDescriptor(
        name=output_udp.NAME,
        description=output_udp.DESCRIPTION,
        configure=output_udp.UdpOutput.from_kvargs,
        supports_format=lambda fmt: fmt in output_udp.SUPPORTED_FORMATS,
        options=output_udp.OPTIONS,
    ),
    OutputDescriptor(
        name=output_zmq.NAME,
        description=output_zmq.DESCRIPTION,
        configure=output_zmq.ZmqOutput.from_kvargs,
        supports_format=lambda fmt: fmt in output_zmq.SUPPORTED_FORMATS,
        options=output_zmq.OPTIONS,
    ),
)


def get_output_descriptor(name: Optional[str]) -> Optional[OutputDescriptor]:
    """Return the descriptor of the output type called ``name``, or None if there is none."""
    if name is None:
        return None
    return next((d for d in OUTPUT_DESCRIPTORS if d.name == name), None)


def _describe(name: str, description: Optional[str], level: int) -> str:
    pad = _INDENT * level
    if not description:
        return f"{pad}{name}\n"
    return f"{pad}{name:<{_NAME_WIDTH}}{description}\n"


def output_usage(file: Optional[TextIO] = None) -> None:
    """Write a description of the output specifier syntax and all output types."""
    out = file if file is not None else sys.stderr
    ind = _INDENT
    parts = [
        "\n<output_specifier> is a parameter of the --output option. "
        "It has the following syntax:\n\n",
        f"{ind}<what_to_output>:<output_format>:<output_type>:<output_parameters>\n\n",
        "where:\n",
        f"\n{ind}<what_to_output> specifies what data should be sent to the output:\n\n",
    ]
    for intype in FormatterInputType:
        if intype.label is not None:
            parts.append(_describe(intype.label, intype.description, 2))
    parts.append(f"\n{ind}<output_format> specifies how the output should be formatted:\n\n")
    for fmt in OutputFormat:
        if fmt.label is not None:
            parts.append(_describe(fmt.label, None, 2))
    parts.append(f"\n{ind}<output_type> specifies the type of the output:\n\n")
    for descriptor in OUTPUT_DESCRIPTORS:
        parts.append(_describe(descriptor.name, descriptor.description, 2))
    parts.append(
        f"\n{ind}<output_parameters> - specifies detailed output options with a syntax of: "
        "param1=value1,param2=value2,...\n"
    )
    for descriptor in OUTPUT_DESCRIPTORS:
        parts.append(f"\nParameters for output type '{descriptor.name}':\n\n")
        for opt_name, opt_description in descriptor.options:
            parts.append(_describe(opt_name, opt_description, 2))
    parts.append("\n")
    out.write("".join(parts))
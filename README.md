# hfdlkit

Building blocks for working with HF Data Link (HFDL) traffic in Python.

## What is in the package

- **Squitters (SPDUs)** – `hfdlkit.spdu.parse_spdu(pdu, freq, output_corrupted_pdus=False, stats=None)`
  checks the frame check sequence of a 66-octet uplink squitter and decodes
  the ground station status it carries. It returns a list holding one `Spdu`,
  or an empty list for a damaged frame unless `output_corrupted_pdus` is set.
  `stats` may be any object with an `increment_per_channel(freq, counter)`
  method; it is told about good, short and bad-FCS frames.
  `Spdu.format_text` and `Spdu.to_json` render the result.
- **System tables** – `hfdlkit.systable.Systable` loads a system table from a
  configuration file (`read_from_file`, raising `SystableError` with a
  `SystableErrorType`), answers `version()`, `station_name()` and
  `station_frequency()` lookups, collects System Table PDUs received over the
  air (`store_pdu`), and once a set is complete decodes it
  (`process_pdu_set`, returning a `SystableComplete`). A decoded table that is
  newer than the current one replaces it and is written to the save file, if
  one was given. Version comparison wraps around the 12-bit version space
  (`is_newer`). `decode_systable` and `decode_frequency` are available on
  their own.
- **Configuration files** – `hfdlkit.cfgfile` reads and writes the
  configuration text format used for system tables: `loads`, `load`,
  `dumps`, `dump`. Groups become `dict`, lists become `list`, arrays become
  `ConfigArray`. Errors raise `ConfigError`. `@include` is not supported.
- **Position data** – `hfdlkit.position.location_is_valid` checks coordinate
  ranges; `fixup_timestamp(ts, now=None)` returns a copy of a partial
  `Timestamp` with the missing hour and date filled in so that it points at
  the closest matching moment not after `now`.
- **Low-level helpers** – `hfdlkit.util` has bit-reversed ICAO address
  parsing (`parse_icao_hex`), 20-bit coordinate decoding
  (`parse_coordinate`), hex dumps and text/JSON helpers for ground station
  IDs and frequency bitmaps; `hfdlkit.pdu` has `fcs_check`, `is_mpdu` and the
  `PduMetadata` and `PduHeaderData` records.
- **Outputs** – `hfdlkit.output.OutputInstance` queues formatted messages
  and delivers them from its own thread, retrying failed deliveries and
  honouring a queue high water mark. Output types: files, optionally rotated
  hourly or daily (`hfdlkit.output_file.FileOutput`), TCP with automatic
  reconnection (`hfdlkit.output_tcp.TcpOutput`), UDP
  (`hfdlkit.output_udp.UdpOutput`) and ZeroMQ PUB sockets
  (`hfdlkit.output_zmq.ZmqOutput`).
  `hfdlkit.registry.get_output_descriptor` looks an output type up by name
  (`"file"`, `"tcp"`, `"udp"`, `"zmq"`) and `hfdlkit.registry.output_usage`
  writes a description of the output specifier syntax and every output
  type's parameters.

## Requirements

Python 3.10 or later. `pyzmq` is required (for the ZeroMQ output).

## Examples

Decoding low-level fields:

```python
from hfdlkit.util import parse_icao_hex, parse_coordinate, hexdump

addr = parse_icao_hex(b"\x01\x02\x03")
lat = parse_coordinate(0x3FFFF)
print(f"{addr:06X} {lat:.5f}")
print(hexdump(b"HFDL squitter"))
```

Working with a system table:

```python
from hfdlkit.systable import Systable, SystableError

systable = Systable(savefile="systable-new.conf")
try:
    systable.read_from_file("systable.conf")
except SystableError as exc:
    print(f"could not load system table: {exc} ({exc.type.name})")

if systable.is_available():
    print("version", systable.version())
    print("station 1:", systable.station_name(1))
    print("first frequency:", systable.station_frequency(1, 0))
```

Parsing a squitter (`frame` holds the raw bytes of one frame):

```python
from hfdlkit.spdu import parse_spdu

for spdu in parse_spdu(frame, freq=8927000):
    print(spdu.format_text(0, systable))
    print(spdu.to_json(systable))
```

Writing messages to a daily-rotated file from a delivery thread:

```python
from hfdlkit.output import OutputEntry, OutputFormat, OutputInstance
from hfdlkit.registry import get_output_descriptor

descriptor = get_output_descriptor("file")
sink = descriptor.configure({"path": "hfdl.log", "rotate": "daily"})
output = OutputInstance(descriptor, OutputFormat.TEXT, sink)
thread = output.start()
output.push(OutputEntry(msg=b"hello\n", format=OutputFormat.TEXT))
output.push(OutputEntry(shutdown=True))
thread.join()
```

## What the package does not do

- It does not receive or demodulate radio signals; it works on frames that
  are already available as bytes.
- Only squitters (SPDUs) and System Table messages are decoded. Other frames
  (MPDUs and what they carry) are not; `is_mpdu` only tells them apart.
- There is no command-line program and no formatter that turns decoded
  frames into output messages; callers build the bytes handed to outputs.
- Metrics are not sent anywhere; `parse_spdu` only calls the counter object
  the caller supplies.

## Running the tests

Install the `test` extra and run `pytest` from the project directory.
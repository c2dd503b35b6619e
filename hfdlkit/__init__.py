"""HFDL squitter and system table decoding, position timestamp fixups and threaded message outputs."""

__version__ = "1.4.0"
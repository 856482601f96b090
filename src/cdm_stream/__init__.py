"""CDM Stream - framed stream files of CDM envelopes."""
from .streams import DatumReader, Frame, StreamWriter, open_reader, open_writer, read_stream, write_stream

__all__ = [
    "DatumReader",
    "Frame",
    "StreamWriter",
    "open_reader",
    "open_writer",
    "read_stream",
    "write_stream",
]

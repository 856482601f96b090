"""CDM Verify - whole-stream decoding and cross-record checks."""
from .logic import StreamChecker, verify_stream

__all__ = ["StreamChecker", "verify_stream"]

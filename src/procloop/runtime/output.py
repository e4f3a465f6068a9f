"""Output capture policies for child process streams.

A policy is one of three frozen dataclasses:

- ``Ignore``: the stream is attached to /dev/null
- ``Forward``: the child inherits the parent's stream; no pipe, no drain
- ``Handle(sink)``: the stream is piped and decoded text is passed to ``sink``

Decoding is incremental UTF-8 with ``errors="replace"``. A multi-byte
character split across two reads is held until the next read completes it.
Each maximal ill-formed subsequence becomes one U+FFFD, and an incomplete
sequence left at end of stream becomes one U+FFFD.
"""

from __future__ import annotations

import codecs
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from typing import Union

__all__ = [
    "Ignore",
    "Forward",
    "Handle",
    "OutputPolicy",
    "IGNORE",
    "FORWARD",
    "StreamDecoder",
    "popen_target",
]

Sink = Callable[[str], None]


@dataclass(frozen=True)
class Ignore:
    """Discard the stream."""


@dataclass(frozen=True)
class Forward:
    """Let the child write straight to the inherited stream."""


@dataclass(frozen=True)
class Handle:
    """Capture the stream and deliver decoded text to ``sink``."""

    sink: Sink


OutputPolicy = Union[Ignore, Forward, Handle]

IGNORE = Ignore()
FORWARD = Forward()


def popen_target(policy: OutputPolicy) -> int | None:
    """Map a policy onto a ``subprocess.Popen`` stdout/stderr argument."""
    if isinstance(policy, Ignore):
        return subprocess.DEVNULL
    if isinstance(policy, Forward):
        return None
    if isinstance(policy, Handle):
        return subprocess.PIPE
    raise TypeError(f"not an output policy: {policy!r}")


class StreamDecoder:
    """Incremental UTF-8 decoder feeding a sink.

    Example:
        chunks = []
        decoder = StreamDecoder(chunks.append)
        decoder.feed(b"\\xe2\\x82")
        decoder.feed(b"\\xac")
        decoder.flush()
        assert "".join(chunks) == "\\u20ac"
    """

    def __init__(self, sink: Sink, encoding: str = "utf-8") -> None:
        self._sink = sink
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def feed(self, data: bytes) -> None:
        text = self._decoder.decode(data)
        if text:
            self._sink(text)

    def flush(self) -> None:
        """Decode whatever is still held; call once at end of stream."""
        text = self._decoder.decode(b"", final=True)
        if text:
            self._sink(text)

"""
frames.py – Split a delimited byte stream into frame buffers.

ffmpeg writes sampled frames to stdout as back-to-back PNG files. Every PNG
starts with the same 8-byte signature, so a frame is everything from one
signature up to (not including) the next one.

The splitter is an immutable value: ``feed`` returns a new splitter holding
the residual buffer plus the frames completed by that chunk.

Bytes before the first delimiter are discarded with a warning; input that
never contains the delimiter yields no frames.
"""

import logging
from dataclasses import dataclass, replace
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FrameSplitter:
    """Residual-buffer state for splitting a byte stream on ``delimiter``."""
    delimiter: bytes
    buffer: bytes = b""
    flush_tail: bool = False

    def __post_init__(self):
        if not self.delimiter:
            raise ValueError("delimiter must be non-empty")

    def feed(self, chunk: bytes) -> tuple["FrameSplitter", list[bytes]]:
        """Append ``chunk`` and cut out every frame that is now complete."""
        size = len(self.delimiter)
        buffer = self.buffer + chunk
        # The residual either starts with the delimiter or is a short tail without
        # one, and everything after its opening delimiter was already searched.
        resume = len(self.buffer) - size + 1 if self.buffer.startswith(self.delimiter) else 0
        frames = []
        while True:
            start = buffer.find(self.delimiter)
            if start < 0:
                # no frame data at all; keep only what could be a split delimiter
                keep = min(len(buffer), size - 1)
                if len(buffer) > keep:
                    log.warning("Discarded %d bytes of invalid data", len(buffer) - keep)
                    buffer = buffer[len(buffer) - keep:]
                break
            if start > 0:
                log.warning("Discarded %d bytes of invalid data", start)
                buffer = buffer[start:]
                resume = 0
            end = buffer.find(self.delimiter, max(size, resume))
            if end < 0:
                break  # frame not complete yet
            frames.append(buffer[:end])
            buffer = buffer[end:]
            resume = 0
        return replace(self, buffer=buffer), frames

    def finish(self) -> tuple["FrameSplitter", list[bytes]]:
        """Handle end of stream.

        The residual is only emitted when ``flush_tail`` is set and it begins
        with the delimiter; otherwise it is dropped.
        """
        frames = []
        start = self.buffer.find(self.delimiter)
        if self.flush_tail and start >= 0:
            if start > 0:
                log.warning("Discarded %d bytes of invalid data", start)
            frames.append(self.buffer[start:])
        elif self.buffer:
            log.debug("Dropping %d trailing bytes at end of stream", len(self.buffer))
        return replace(self, buffer=b""), frames


def iter_frames(
    chunks: Iterable[bytes],
    delimiter: bytes,
    flush_tail: bool = False,
) -> Iterator[bytes]:
    """Yield frames from an iterable of byte chunks."""
    splitter = FrameSplitter(delimiter, flush_tail=flush_tail)
    for chunk in chunks:
        splitter, frames = splitter.feed(chunk)
        yield from frames
    splitter, frames = splitter.finish()
    yield from frames


async def aiter_frames(
    chunks: AsyncIterable[bytes],
    delimiter: bytes,
    flush_tail: bool = False,
) -> AsyncIterator[bytes]:
    """Async counterpart of :func:`iter_frames`."""
    splitter = FrameSplitter(delimiter, flush_tail=flush_tail)
    async for chunk in chunks:
        splitter, frames = splitter.feed(chunk)
        for frame in frames:
            yield frame
    splitter, frames = splitter.finish()
    for frame in frames:
        yield frame

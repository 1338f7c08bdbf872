"""Line assembly — turns arbitrary stdout chunks into complete JSONL lines."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)

#: Default maximum bytes per JSONL line (8 MB).
DEFAULT_MAX_LINE_BYTES = 8 * 1_048_576


class LineAssembler:
    """Reassembles newline-terminated lines from a stream of byte chunks.

    The trailing partial segment of each chunk is kept in :attr:`pending`
    until its terminator arrives, so the emitted line sequence does not
    depend on where the chunk boundaries fall.  Buffering happens on bytes,
    which keeps a multi-byte UTF-8 character split across two chunks intact.

    Lines longer than *max_line_bytes* are dropped with a warning.
    """

    def __init__(self, max_line_bytes: int = DEFAULT_MAX_LINE_BYTES) -> None:
        self._max_line_bytes = max_line_bytes
        self._pending = bytearray()
        # Set while skipping the remainder of an oversized line.
        self._discarding = False

    @property
    def pending(self) -> bytes:
        """The incomplete line fragment carried over to the next feed."""
        return bytes(self._pending)

    def feed(self, data: bytes) -> list[str]:
        """Append *data* and return every line completed by it, in order.

        Returned lines have their ``\\n`` (and a preceding ``\\r``) removed.
        """
        if not data:
            return []

        lines: list[str] = []
        start = 0
        while True:
            end = data.find(b"\n", start)
            if end == -1:
                break
            segment = data[start:end]
            start = end + 1

            if self._discarding:
                self._discarding = False
                self._pending.clear()
                continue

            self._pending.extend(segment)
            if len(self._pending) > self._max_line_bytes:
                self._drop_oversized()
                continue

            raw = bytes(self._pending)
            self._pending.clear()
            if raw.endswith(b"\r"):
                raw = raw[:-1]
            lines.append(raw.decode(errors="replace"))

        if not self._discarding:
            self._pending.extend(data[start:])
            if len(self._pending) > self._max_line_bytes:
                self._drop_oversized()
                self._discarding = True

        return lines

    def reset(self) -> None:
        """Discard any buffered partial line."""
        self._pending.clear()
        self._discarding = False

    def _drop_oversized(self) -> None:
        logger.warning(
            "line exceeds %d bytes, skipping", self._max_line_bytes
        )
        self._pending.clear()

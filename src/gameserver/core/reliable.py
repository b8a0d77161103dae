"""
=============================================================================
RELIABLE SEND
=============================================================================

send() on a socket may write fewer bytes than asked. The fix is NOT to
resend the whole packet on a shortfall; that would put the first bytes on
the wire twice and desynchronize the 16-byte framing on the other side.

    attempt 1:  send(packet[0:16])  → 10 written     sent = 10
    attempt 2:  send(packet[10:16]) →  0 written     sent = 10  (would block)
    attempt 3:  send(packet[10:16]) →  6 written     sent = 16  ✓ done

We keep a running total and always continue from the remaining offset, in
a plain bounded loop. No backoff between attempts: this is a best-effort
loop, not a rate limiter.

=============================================================================
"""

import logging
from typing import Protocol

from ..errors import SendTimeout
from ..game.packet import Packet


logger = logging.getLogger(__name__)


class RawSender(Protocol):
    """Anything with a partial-write send_raw(), e.g. a Connection."""

    def send_raw(self, data: bytes) -> int:
        ...


def send_bytes(handle: RawSender, data: bytes, max_attempts: int) -> int:
    """
    Write all of data using at most max_attempts send_raw() calls.

    Returns:
        Number of attempts used.

    Raises:
        ValueError: max_attempts < 1.
        SendTimeout: Attempts exhausted before everything was written.
        SendError: Propagated from send_raw() on a hard failure.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    total = len(data)
    sent = 0
    view = memoryview(data)

    for attempt in range(1, max_attempts + 1):
        sent += handle.send_raw(view[sent:])
        if sent >= total:
            return attempt

    raise SendTimeout(
        f"Gave up after {max_attempts} attempts with {sent}/{total} bytes written",
        sent=sent,
        total=total,
    )


def send_packet(handle: RawSender, packet: Packet, max_attempts: int = 10) -> None:
    """Encode packet once and write it with send_bytes()."""
    attempts = send_bytes(handle, packet.encode(), max_attempts)
    if attempts > 1:
        logger.debug(f"Packet {packet} needed {attempts} write attempts")

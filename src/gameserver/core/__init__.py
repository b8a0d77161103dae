"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          TRANSPORT                                   │
    │  • Resolves, binds and listens on the game port                     │
    │  • Waits on the listener and every peer with one selector           │
    │  • Turns readiness into NewConnection / DataReceived / Disconnected │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          CONNECTION                                  │
    │  • Wraps one peer socket (non-blocking)                             │
    │  • Buffers partial packets until 16 bytes have arrived              │
    │  • Closes exactly once                                              │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        RELIABLE SEND                                 │
    │  • Bounded retry loop over partial writes                           │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .connection import Connection, ConnectionState
from .reliable import send_bytes, send_packet
from .transport import Transport

__all__ = [
    "Connection",       # One peer socket - the session's "handle"
    "ConnectionState",  # OPEN / CLOSED
    "Transport",        # Listener + selector + event normalization
    "send_bytes",       # Bounded partial-write loop
    "send_packet",      # Encode once, then send_bytes
]

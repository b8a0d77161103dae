"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every error the server raises derives from GameServerError. The three
families are handled very differently by the event loop:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR FAMILIES                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   TransportError          Socket-level failure                      │
    │   ├── ResolveError        ┐                                         │
    │   ├── BindError           ├─ startup only: fatal, process exits     │
    │   ├── ListenError         ┘                                         │
    │   ├── ConnectError        client side: exits the client             │
    │   ├── AcceptError         ┐                                         │
    │   ├── WaitError           │                                         │
    │   ├── ReceiveError        ├─ per connection: drop it, keep going    │
    │   ├── SendError           │                                         │
    │   └── SendTimeout         ┘                                         │
    │                                                                      │
    │   ProtocolViolation       Bad move from a client                    │
    │                           └─ ignored, no reply, connection stays    │
    │                                                                      │
    │   SessionInvariantError   Event that makes no sense for the session │
    │   └── UnknownPeerDisconnect                                         │
    │                           └─ logged as a warning, never fatal       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""


class GameServerError(Exception):
    """Base class for all game server errors."""


# =============================================================================
# TRANSPORT
# =============================================================================


class TransportError(GameServerError):
    """Raised when a socket operation fails."""


class ResolveError(TransportError):
    """A host name or bind address could not be resolved."""


class BindError(TransportError):
    """None of the resolved addresses could be bound."""


class ListenError(TransportError):
    """The bound socket could not be put into listening mode."""


class ConnectError(TransportError):
    """The client could not connect to any resolved server address."""


class AcceptError(TransportError):
    """accept() on the listening socket failed."""


class WaitError(TransportError):
    """The multiplexed wait failed with an OS error."""


class ReceiveError(TransportError):
    """recv() on a peer socket failed (abnormal close)."""


class SendError(TransportError):
    """A hard error occurred while writing to a peer."""


class SendTimeout(TransportError):
    """
    The retry budget ran out before the whole packet was written.

    Carries how far we got so callers can log it:

        except SendTimeout as e:
            logger.warning(f"only {e.sent}/{e.total} bytes written")
    """

    def __init__(self, message: str, sent: int = 0, total: int = 0):
        super().__init__(message)
        self.sent = sent
        self.total = total


# =============================================================================
# GAME PROTOCOL
# =============================================================================


class ProtocolViolation(GameServerError):
    """
    A client sent a move the session cannot accept.

    Out-of-range coordinates, an occupied cell, a move out of turn or a move
    from a connection that is not playing. The session swallows these: the
    client simply gets no acknowledgment.
    """


class SessionInvariantError(GameServerError):
    """An event or command arrived that the session state does not allow."""


class UnknownPeerDisconnect(SessionInvariantError):
    """A disconnect was reported for a handle the session never knew about."""

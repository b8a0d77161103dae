"""
=============================================================================
GAMESERVER - Two-Player Tic-Tac-Toe Over Raw TCP
=============================================================================

Clients connect, get paired into a match and exchange fixed-size 16-byte
packets. The server owns the board, the turn order and win/draw
detection, and recycles the session once a match is over.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    gameserver/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m gameserver)
    ├── server.py            # GameServer: the single-threaded event loop
    ├── config.py            # ServerConfig dataclass
    ├── errors.py            # Error taxonomy
    ├── events.py            # NewConnection / DataReceived / Disconnected
    ├── client.py            # Terminal client (python -m gameserver.client)
    ├── core/                # Networking
    │   ├── transport.py     # Listener, selector, event normalization
    │   ├── connection.py    # Peer socket wrapper with frame buffering
    │   └── reliable.py      # Bounded partial-write send loop
    └── game/                # Game model, no sockets
        ├── packet.py        # Wire packet codec
        ├── board.py         # 3x3 board and evaluation
        └── session.py       # Match state machine

=============================================================================
QUICK START
=============================================================================

    from gameserver import GameServer, ServerConfig

    server = GameServer(ServerConfig(port=9034, reset_delay=2.0))
    server.run()

Then, in two other terminals:

    python -m gameserver.client --host localhost --port 9034

=============================================================================
"""

__version__ = "1.0.0"

from .server import GameServer
from .config import ServerConfig

__all__ = ["GameServer", "ServerConfig", "__version__"]

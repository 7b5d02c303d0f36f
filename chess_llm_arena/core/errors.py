"""
Error taxonomy for move production and move application.

Every failure a Player can hit while producing a move maps onto one of these
classes. None of them is retried: the match runner treats any of them as a
forfeit by the side that raised it.
"""


class PlayerError(Exception):
    """Base class for all move-production failures."""
    pass


class AuthenticationError(PlayerError):
    """Missing or rejected credential for a remote agent."""
    pass


class ProtocolError(PlayerError):
    """The engine or agent reply could not be turned into a move."""
    pass


class TransportError(PlayerError):
    """Network, process or timeout failure while waiting for a reply."""
    pass


class IllegalMoveError(PlayerError):
    """The rules authority rejected a move."""
    pass

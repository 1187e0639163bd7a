"""Error taxonomy shared by the dispatcher, players and HTTP layer."""


class MediaManagerError(Exception):
    """Base class; HTTP handlers turn it into {"error": message}."""

    status = 500


class UnsupportedOperation(MediaManagerError):
    """Backend has no handler for the command in its current state."""


class QueueFull(MediaManagerError):
    """Non-blocking submit while the command queue is saturated."""

    status = 503


class DispatcherClosed(MediaManagerError):
    """Submit after shutdown was requested."""


class SpawnFailure(MediaManagerError):
    """External process could not be started or its pipes opened."""


class ResolutionFailure(MediaManagerError):
    """A media identifier could not be turned into a local file."""

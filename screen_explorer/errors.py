"""Exception hierarchy raised by the exploration engine."""


class ExplorationError(Exception):
    """Base class for every error raised by `screen_explorer`."""


class SessionAlreadyActiveError(ExplorationError):
    """`start` was called while a session was still active."""


class SessionNotActiveError(ExplorationError):
    """A session operation was attempted before `start` (or after the last goal)."""


class NothingCapturedError(ExplorationError):
    """`finalize` was called on a session with no captured screens."""


class ExplorerStateError(ExplorationError):
    """The DFS explorer was driven out of order (e.g. `step` before `mark_started`)."""


class PerceptionUnavailableError(ExplorationError):
    """The perception collaborator could not see the target surface."""

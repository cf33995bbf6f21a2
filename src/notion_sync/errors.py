"""Exceptions raised by notion-sync."""


class NotionSyncError(Exception):
    """Base class for errors raised by this package."""


class SessionContextError(NotionSyncError):
    """A write or scoped build was attempted before the session context exists.

    This is a usage error, never a transient one: callers must establish the
    session (``set_space`` / ``set_root_user`` or explicit ids) first.
    """

    def __init__(self, missing: list[str], message: str | None = None):
        self.missing = list(missing)
        if message is None:
            message = f"Session context incomplete, missing: {', '.join(self.missing)}"
        super().__init__(message)

"""Session context: credential plus the (user, space, shard) write scope."""

from dataclasses import dataclass
from typing import Optional

from .errors import SessionContextError

DEFAULT_INTERVAL = 1.0  # seconds to wait after a single-record read


@dataclass
class SessionContext:
    """Everything a client needs to authenticate and scope its writes.

    The token is opaque and only ever forwarded to the record store. The
    scope fields start unset and are filled in either at construction or by
    ``SyncClient.set_space`` / ``SyncClient.set_root_user``.
    """
    token: str
    user_id: Optional[str] = None
    space_id: Optional[str] = None
    shard_id: Optional[int] = None
    interval: float = DEFAULT_INTERVAL

    def missing_fields(self) -> list[str]:
        """Names of the scope fields that are still unset."""
        missing = []
        if not self.user_id:
            missing.append("user_id")
        if not self.space_id:
            missing.append("space_id")
        if not self.shard_id:
            missing.append("shard_id")
        return missing

    def require_write_scope(self) -> None:
        """Raise SessionContextError unless user, space and shard are all set."""
        missing = self.missing_fields()
        if missing:
            raise SessionContextError(missing)

    @property
    def has_write_scope(self) -> bool:
        return not self.missing_fields()

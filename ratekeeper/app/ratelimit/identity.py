"""Identity resolution: who a request is rate limited as."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import quote

from ratekeeper.app.core.config import DetectionMode
from ratekeeper.app.core.logging import get_log_context, get_logger

logger = get_logger(__name__)

KEY_PREFIX = "rl"

# Returns the authenticated user id, or None when there is no session.
UserIdLoader = Callable[[], Awaitable[Optional[str]]]


@dataclass(frozen=True)
class Identity:
    """The partition a request is counted under."""
    scheme: str  # "ip" or "user"
    value: str

    def key_for(self, path: str) -> str:
        """Build the storage key for this identity on path.

        The identity is percent-encoded so it cannot contain ``|``; the first
        ``|`` in a key therefore always separates identity from path.
        """
        return f"{KEY_PREFIX}:{self.scheme}:{quote(self.value, safe='')}|{path}"


class IdentityResolver:
    """Turns a detection mode plus request signals into an Identity.

    - ``ip``: the client IP.
    - ``user``: the authenticated user id; anonymous requests are not limited.
    - ``ip-and-user``: the user id when authenticated, else the client IP.
    """

    def __init__(self, detection: DetectionMode = "ip"):
        self.detection = detection

    async def resolve(
        self,
        client_ip: Optional[str] = None,
        user_id_loader: Optional[UserIdLoader] = None,
    ) -> Optional[Identity]:
        if self.detection in ("user", "ip-and-user"):
            user_id = await self._load_user_id(user_id_loader)
            if user_id:
                return Identity("user", user_id)
            if self.detection == "user":
                return None

        if not client_ip:
            return None
        return Identity("ip", client_ip)

    async def _load_user_id(self, loader: Optional[UserIdLoader]) -> Optional[str]:
        if loader is None:
            return None
        try:
            user_id = await loader()
        except Exception as e:
            # A failed session lookup counts as anonymous.
            logger.debug(
                f"Session lookup failed, treating as anonymous: {e}",
                extra=get_log_context(detection=self.detection),
            )
            return None
        if user_id is None or user_id == "":
            return None
        return str(user_id)

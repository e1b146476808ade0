import time

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ratekeeper.app.db.base import Base


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimitRecord(Base):
    """One fixed window for one rate limit key.

    ``last_request`` holds the window start in milliseconds since the epoch;
    it only changes when a new window begins.
    """

    __tablename__ = "rate_limit"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    count: Mapped[int] = mapped_column(Integer)
    last_request: Mapped[int] = mapped_column(BigInteger, default=_now_ms)

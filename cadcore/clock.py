"""
CAD Core - Clock and ID source

Timestamps are timezone-aware UTC. Naive values handed in from outside are
taken as UTC.
"""
import datetime
import logging
import threading
import uuid

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc


def as_utc(when: datetime.datetime) -> datetime.datetime:
    if when.tzinfo is None:
        return when.replace(tzinfo=UTC)
    return when.astimezone(UTC)


class SystemClock:
    """Wall clock used in a live session."""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now(UTC)


class ManualClock:
    """Clock that only moves when told to (replays, drills, tests)."""

    def __init__(self, start: datetime.datetime = None):
        self._now = as_utc(start or datetime.datetime(2026, 1, 1, 8, 0, 0))

    def now(self) -> datetime.datetime:
        return self._now

    def advance(self, minutes: float = 0, seconds: float = 0) -> datetime.datetime:
        self._now = self._now + datetime.timedelta(minutes=minutes, seconds=seconds)
        return self._now

    def set(self, when: datetime.datetime):
        self._now = as_utc(when)


class SessionClock:
    """
    Non-decreasing view over another clock.

    A reading earlier than the last one handed out (host clock stepped back)
    is held at the last one, so SLA time never runs backwards and audit
    timestamps stay in append order.
    """

    def __init__(self, source):
        self.source = source
        self._last = None
        self._holding = False
        self._lock = threading.Lock()

    def now(self) -> datetime.datetime:
        reading = as_utc(self.source.now())
        with self._lock:
            if self._last is not None and reading < self._last:
                if not self._holding:
                    logger.warning(
                        f"[Clock] source clock stepped back to {reading.isoformat()}, "
                        f"holding at {self._last.isoformat()}"
                    )
                    self._holding = True
                return self._last
            self._holding = False
            self._last = reading
            return reading


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def format_ts(when: datetime.datetime) -> str:
    # Fixed width UTC so string order in sqlite matches time order
    return as_utc(when).isoformat(timespec="microseconds")


def parse_ts(value: str) -> datetime.datetime:
    return as_utc(datetime.datetime.fromisoformat(value))


def format_folio(prefix: str, year: int, seq: int) -> str:
    return f"{prefix}-{year}-{seq:06d}"


def integrity_token(name: str, created_at: datetime.datetime) -> str:
    """
    Opaque evidence token: FNV-1a over name/time plus a random suffix.

    Not a cryptographic digest. The value is generated once and stored,
    so it is stable for the life of the evidence record.
    """
    millis = int(as_utc(created_at).timestamp() * 1000)
    base = f"{name}|{millis}|{len(name)}"
    h = 2166136261
    for ch in base:
        h ^= ord(ch)
        h = (h * 16777619) & 0xFFFFFFFF
    return f"{h:08x}-{uuid.uuid4().hex[:12]}"

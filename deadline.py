import logging
import re
import time

LOG = logging.getLogger(__name__)

# Units accepted by Go's time.ParseDuration, which is what the API server uses
# to format the `timeout` query parameter on webhook calls.
UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
}

DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a Go duration string such as "10s" or "1m30s" into seconds."""

    if not text:
        raise ValueError("empty duration")

    pos = 0
    seconds = 0.0
    while pos < len(text):
        match = DURATION_PART.match(text, pos)
        if not match:
            raise ValueError(f"invalid duration {text!r}")
        seconds += float(match.group(1)) * UNITS[match.group(2)]
        pos = match.end()

    return seconds


class Deadline:
    def __init__(self, seconds: float):
        self._expires = time.monotonic() + seconds

    @classmethod
    def from_timeout(
        cls, text: str | None, default: float, margin: float = 0
    ) -> "Deadline":
        """Build the deadline for one admission call.

        `text` is the API server's timeout for the webhook call. The margin is
        kept back so that there is still time left to send a response.
        """

        seconds = default
        if text:
            try:
                seconds = parse_duration(text)
            except ValueError:
                LOG.warning("ignoring invalid timeout %r", text)

        return cls(max(seconds - margin, 0))

    def remaining(self) -> float:
        return max(self._expires - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0

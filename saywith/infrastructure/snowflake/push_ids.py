"""
Time-ordered unique identifiers for message records.

Push IDs are 20 characters: 8 encode the creation time in milliseconds,
12 are random. The alphabet is in ASCII order, so sorting IDs as strings
sorts them by creation time. When two IDs are minted in the same
millisecond the random part of the previous one is incremented, which keeps
IDs from one generator strictly increasing and collision-free.
"""

import secrets
import threading
import time

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

TIME_CHARS = 8
RANDOM_CHARS = 12


class PushIdGenerator:
    """Mints push IDs. Safe to share across threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_time = 0
        self._last_random = [0] * RANDOM_CHARS

    def generate(self) -> str:
        with self._lock:
            now = max(int(time.time() * 1000), self._last_time)

            if now != self._last_time or not self._increment_random():
                if now == self._last_time:
                    # random part exhausted for this millisecond
                    now += 1
                self._last_random = [secrets.randbelow(64) for _ in range(RANDOM_CHARS)]

            self._last_time = now

            time_chars = []
            for _ in range(TIME_CHARS):
                time_chars.append(PUSH_CHARS[now % 64])
                now //= 64

            return "".join(reversed(time_chars)) + "".join(
                PUSH_CHARS[i] for i in self._last_random
            )

    def _increment_random(self) -> bool:
        """Add one to the random part. Returns False if it would overflow."""
        i = RANDOM_CHARS - 1
        while i >= 0 and self._last_random[i] == 63:
            i -= 1
        if i < 0:
            return False
        for j in range(i + 1, RANDOM_CHARS):
            self._last_random[j] = 0
        self._last_random[i] += 1
        return True


_default_generator = PushIdGenerator()


def generate_push_id() -> str:
    """Mint a push ID from the process-wide generator."""
    return _default_generator.generate()

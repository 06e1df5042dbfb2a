"""
Password strength estimation backed by zxcvbn.

Scores use zxcvbn's 0-4 scale. The health analyzer treats anything below
config.WEAK_SCORE_THRESHOLD as weak; generator UIs show the feedback only.
"""

from typing import NamedTuple

from zxcvbn import zxcvbn


class StrengthFeedback(NamedTuple):
    score: int
    warning: str
    crack_time: str


def score(password: str) -> int:
    """Return the 0-4 strength score of ``password``."""
    if not password:
        return 0
    return int(zxcvbn(password)["score"])


def feedback(password: str) -> StrengthFeedback:
    """Score plus a human-readable warning and offline crack time estimate."""
    if not password:
        return StrengthFeedback(0, "Password is empty", "instant")
    result = zxcvbn(password)
    warning = result.get("feedback", {}).get("warning", "") or ""
    crack_time = result.get("crack_times_display", {}).get("offline_slow_hashing_1e4_per_second", "")
    return StrengthFeedback(int(result["score"]), warning, crack_time)

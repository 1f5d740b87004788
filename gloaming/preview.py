"""
Accelerated clock for previewing a full day/night cycle.
"""

from datetime import datetime, timedelta

PREVIEW_STEP = timedelta(minutes=5)
PREVIEW_SPAN = timedelta(days=1)


def step_instant(current: datetime, target: datetime, max_step: timedelta) -> datetime:
    """Move current toward target by at most max_step, without overshooting."""
    if current >= target:
        return target
    return min(current + max_step, target)


class PreviewClock:
    """
    Instant source for the engine.

    While preview runs, each tick advances the simulated instant toward one
    day past the real time. Otherwise the instant tracks the real time.
    """

    def __init__(self, step: timedelta = PREVIEW_STEP, span: timedelta = PREVIEW_SPAN):
        self.step = step
        self.span = span

    def advance(self, instant: datetime, real_now: datetime, is_preview_enabled: bool) -> tuple[datetime, bool]:
        """
        Returns:
            (new instant, whether preview is still running)
        """
        if not is_preview_enabled:
            return real_now, False

        target = real_now + self.span
        instant = step_instant(instant, target, self.step)

        return instant, instant < target

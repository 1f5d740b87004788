"""
Foreground application queries on X11, via xprop.
"""

import re
import subprocess
from pathlib import Path
from typing import Optional

from gloaming.logger import logger

_WINDOW_ID_PATTERN = re.compile(r'window id # (0x[0-9a-fA-F]+)')
_PID_PATTERN = re.compile(r'=\s*(\d+)')


def _xprop(*args: str) -> Optional[str]:
    try:
        result = subprocess.run(['xprop', *args], capture_output=True, text=True, check=True, timeout=1.0)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"xprop {' '.join(args)} failed: {e}")
        return None
    return result.stdout


class X11ForegroundApplication:
    """Answers whether the focused window is full-screen and which process owns it."""

    def __init__(self, proc_root: Path = Path("/proc")):
        self.proc_root = proc_root

    def _active_window_id(self) -> Optional[str]:
        output = _xprop('-root', '_NET_ACTIVE_WINDOW')
        if not output:
            return None

        match = _WINDOW_ID_PATTERN.search(output)
        if not match or int(match.group(1), 16) == 0:
            return None
        return match.group(1)

    def is_foreground_full_screen(self) -> bool:
        window_id = self._active_window_id()
        if window_id is None:
            return False

        output = _xprop('-id', window_id, '_NET_WM_STATE')
        return bool(output) and '_NET_WM_STATE_FULLSCREEN' in output

    def try_get_foreground_application(self) -> Optional[str]:
        """Process name of the focused window, or None if unknown."""
        window_id = self._active_window_id()
        if window_id is None:
            return None

        output = _xprop('-id', window_id, '_NET_WM_PID')
        if not output:
            return None

        match = _PID_PATTERN.search(output)
        if not match:
            return None

        try:
            return (self.proc_root / match.group(1) / "comm").read_text().strip()
        except OSError:
            return None

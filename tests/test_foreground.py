"""Tests for X11 foreground application queries."""

import subprocess
import pytest
from unittest.mock import MagicMock, patch

from gloaming.foreground import X11ForegroundApplication


def xprop_responses(responses: dict):
    """subprocess.run stand-in answering by the last xprop argument."""
    def run(cmd, **kwargs):
        output = responses.get(cmd[-1])
        if output is None:
            raise subprocess.CalledProcessError(1, cmd)
        return MagicMock(stdout=output)
    return run


ACTIVE = "_NET_ACTIVE_WINDOW(WINDOW): window id # 0x4a00007\n"


@pytest.fixture
def proc_root(tmp_path):
    (tmp_path / "4242").mkdir()
    (tmp_path / "4242" / "comm").write_text("gimp\n")
    return tmp_path


class TestX11ForegroundApplication:
    """Tests for X11ForegroundApplication."""

    def test_full_screen(self, proc_root):
        responses = {
            "_NET_ACTIVE_WINDOW": ACTIVE,
            "_NET_WM_STATE": "_NET_WM_STATE(ATOM) = _NET_WM_STATE_FULLSCREEN, _NET_WM_STATE_FOCUSED\n",
        }
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            assert X11ForegroundApplication(proc_root).is_foreground_full_screen() is True

    def test_not_full_screen(self, proc_root):
        responses = {
            "_NET_ACTIVE_WINDOW": ACTIVE,
            "_NET_WM_STATE": "_NET_WM_STATE(ATOM) = _NET_WM_STATE_FOCUSED\n",
        }
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            assert X11ForegroundApplication(proc_root).is_foreground_full_screen() is False

    def test_no_active_window(self, proc_root):
        """Should treat window id 0x0 as no focused window."""
        responses = {"_NET_ACTIVE_WINDOW": "_NET_ACTIVE_WINDOW(WINDOW): window id # 0x0\n"}
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            foreground = X11ForegroundApplication(proc_root)
            assert foreground.is_foreground_full_screen() is False
            assert foreground.try_get_foreground_application() is None

    def test_application_name(self, proc_root):
        responses = {
            "_NET_ACTIVE_WINDOW": ACTIVE,
            "_NET_WM_PID": "_NET_WM_PID(CARDINAL) = 4242\n",
        }
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            assert X11ForegroundApplication(proc_root).try_get_foreground_application() == "gimp"

    def test_application_without_pid(self, proc_root):
        responses = {
            "_NET_ACTIVE_WINDOW": ACTIVE,
            "_NET_WM_PID": "_NET_WM_PID:  not found.\n",
        }
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            assert X11ForegroundApplication(proc_root).try_get_foreground_application() is None

    def test_application_process_gone(self, proc_root):
        responses = {
            "_NET_ACTIVE_WINDOW": ACTIVE,
            "_NET_WM_PID": "_NET_WM_PID(CARDINAL) = 999\n",
        }
        with patch("gloaming.foreground.subprocess.run", side_effect=xprop_responses(responses)):
            assert X11ForegroundApplication(proc_root).try_get_foreground_application() is None

    def test_xprop_missing(self, proc_root):
        """Should answer 'not paused' when xprop isn't installed."""
        with patch("gloaming.foreground.subprocess.run", side_effect=FileNotFoundError("xprop")):
            foreground = X11ForegroundApplication(proc_root)
            assert foreground.is_foreground_full_screen() is False
            assert foreground.try_get_foreground_application() is None

#!/usr/bin/env python3
"""
Terminal control for termwave.

Frames are plain text; cursor placement and visibility come from here so the
renderer stays testable without a terminal. Row 1 holds the now-playing line,
frames start on row 2.
"""

from rich.control import Control
from rich.segment import ControlType

STATUS_ROW = 0
FRAME_ROW = 1


class AnsiTerminal:
    """VT100 control codes (via rich) for an interactive terminal."""

    def frame_prefix(self):
        """Move to the top-left of the frame area and hide the cursor."""
        return str(Control.move_to(0, FRAME_ROW)) + str(Control.show_cursor(False))

    def clear_screen(self):
        return str(Control.clear())

    def show_cursor(self):
        return str(Control.show_cursor(True))

    def status_line(self, text):
        """Overwrite the status row with `text` (empty text just clears it)."""
        codes = str(Control.move_to(0, STATUS_ROW)) + str(
            Control((ControlType.ERASE_IN_LINE, 0))
        )
        if text:
            return f"{codes}{text}\n"
        return codes


class NullTerminal:
    """No-op control codes for pipes, logs and tests."""

    def frame_prefix(self):
        return ""

    def clear_screen(self):
        return ""

    def show_cursor(self):
        return ""

    def status_line(self, text):
        return f"{text}\n" if text else ""


def write(stream, text):
    """Write and flush; empty text is skipped."""
    if not text:
        return
    stream.write(text)
    stream.flush()

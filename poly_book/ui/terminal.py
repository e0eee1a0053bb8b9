"""
In-place terminal sink.

Flicker-free redraw: instead of clearing the screen every tick, move the
cursor up over the previous frame, rewrite each line followed by
clear-to-end-of-line, then clear whatever the previous (taller) frame left
below. The caller supplies how many lines the previous frame had.

Rich turns styled segments into ANSI; cursor control is written raw.
"""

from __future__ import annotations

import sys
from typing import TextIO

from rich.console import Console
from rich.text import Text

from ..types import Frame, FrameLine

CURSOR_UP = "\x1b[{n}A"
CLEAR_EOL = "\x1b[K"
CLEAR_BELOW = "\x1b[0J"
HIDE_CURSOR = "\x1b[?25l"
SHOW_CURSOR = "\x1b[?25h"


def line_to_text(line: FrameLine) -> Text:
    text = Text(no_wrap=True, overflow="crop", end="")
    for segment in line.segments:
        text.append(segment.text, style=segment.style or None)
    return text


class TerminalSink:
    """Writes frames to a terminal with the overwrite-in-place protocol."""

    def __init__(self, file: TextIO | None = None, console: Console | None = None) -> None:
        self.console = console or Console(file=file or sys.stdout, highlight=False)
        self._started = False

    def _render(self, line: FrameLine) -> str:
        with self.console.capture() as capture:
            self.console.print(line_to_text(line), end="")
        return capture.get()

    def write(self, frame: Frame, previous_line_count: int) -> None:
        """Overwrite the previous frame with ``frame``."""
        out = []
        if not self._started:
            out.append(HIDE_CURSOR)
            self._started = True
        if previous_line_count > 0:
            out.append(CURSOR_UP.format(n=previous_line_count))
        for line in frame.lines:
            out.append(self._render(line))
            out.append(CLEAR_EOL + "\n")
        out.append(CLEAR_BELOW)

        stream = self.console.file
        stream.write("".join(out))
        stream.flush()

    def teardown(self) -> None:
        """Restore the cursor and leave the last frame on screen."""
        stream = self.console.file
        stream.write(SHOW_CURSOR)
        stream.flush()
        self._started = False

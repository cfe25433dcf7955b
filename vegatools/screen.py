"""An in-memory character grid drawn to a terminal with ANSI colours."""

from __future__ import annotations

import shutil
import sys
from datetime import datetime
from enum import Enum
from typing import TextIO


class Style(Enum):
    """Foreground colours, valued by their ANSI SGR code."""

    DEFAULT = "39"
    WHITE = "97"
    GREY = "37"
    GREEN = "32"
    RED = "31"
    YELLOW = "33"


_BLANK = (" ", Style.DEFAULT)


class Canvas:
    """A grid of styled cells; ``show`` paints it on the output stream."""

    def __init__(self, width: int | None = None, height: int | None = None, out: TextIO | None = None):
        if width is None or height is None:
            size = shutil.get_terminal_size()
            width = size.columns if width is None else width
            height = size.lines if height is None else height
        self.width = width
        self.height = height
        self.out = out if out is not None else sys.stdout
        self.cells: list[list[tuple[str, Style]]] = []
        self.clear()

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height

    def set_content(self, x: int, y: int, char: str, style: Style) -> None:
        """Put one character in a cell; cells off the grid are ignored."""
        if 0 <= x < self.width and 0 <= y < self.height:
            self.cells[y][x] = (char, style)

    def clear(self) -> None:
        """Blank every cell."""
        self.cells = [[_BLANK] * self.width for _ in range(self.height)]

    def show(self) -> None:
        """Paint the whole grid on the output stream."""
        parts = ["\x1b[H\x1b[2J"]
        for y, row in enumerate(self.cells):
            current = None
            for char, style in row:
                if style is not current:
                    parts.append(f"\x1b[{style.value}m")
                    current = style
                parts.append(char)
            parts.append("\x1b[0m")
            if y < self.height - 1:
                parts.append("\r\n")
        self.out.write("".join(parts))
        self.out.flush()

    def row_text(self, y: int) -> str:
        """Characters of row ``y`` without trailing blanks."""
        return "".join(char for char, _ in self.cells[y]).rstrip()


def draw_string(screen: Canvas, x: int, y: int, style: Style, text: str) -> None:
    """Write ``text`` left to right starting at column ``x``."""
    for offset, char in enumerate(text):
        screen.set_content(x + offset, y, char, style)


def draw_string_pc(screen: Canvas, x: int, y: int, style: Style, text: str) -> None:
    """Write ``text`` starting ``x`` percent of the way across the screen."""
    if x > 0:
        x = screen.width * x // 100
    draw_string(screen, x, y, style, text)


def format_clock(now: datetime) -> str:
    """Time of day as HH:MM:SS."""
    return f"{now:%H:%M:%S}"
"""
Fixed-size styled character grid.

The renderer paints onto a `Canvas` and converts it to one rich `Text` per
row. Connector cells carry a `Glyph` state so crossing segments merge
instead of overwriting each other; any plain character write resets that
state. Locked cells (borders) ignore connector writes.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from rich.style import Style
from rich.text import Text

from .glyphs import Glyph, merge

DOT = "·"


@dataclass
class Cell:
    char: str = " "
    style: Style = field(default_factory=Style.null)
    glyph: Glyph = Glyph.EMPTY
    locked: bool = False


class Canvas:
    """A width x height grid of styled cells. Out-of-bounds writes are ignored."""

    def __init__(self, width: int, height: int):
        self.width = max(width, 0)
        self.height = max(height, 0)
        self.cells: List[List[Cell]] = [[Cell() for _ in range(self.width)] for _ in range(self.height)]

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get(self, x: int, y: int) -> Optional[Cell]:
        if not self.in_bounds(x, y):
            return None
        return self.cells[y][x]

    def set(self, x: int, y: int, char: str, style: Optional[Style] = None, lock: bool = False) -> None:
        if not self.in_bounds(x, y):
            return
        self.cells[y][x] = Cell(char=char, style=style or Style.null(), locked=lock)

    def draw_glyph(self, x: int, y: int, glyph: Glyph, style: Optional[Style] = None) -> None:
        """Merge a connector glyph into the cell."""
        cell = self.get(x, y)
        if cell is None or cell.locked:
            return
        state = merge(cell.glyph, glyph)
        self.cells[y][x] = Cell(char=state.char, style=style or cell.style, glyph=state)

    def hline(self, y: int, x1: int, x2: int, style: Optional[Style] = None) -> None:
        if x2 < x1:
            x1, x2 = x2, x1
        for x in range(x1, x2 + 1):
            self.draw_glyph(x, y, Glyph.HORIZONTAL, style)

    def vline(self, x: int, y1: int, y2: int, style: Optional[Style] = None) -> None:
        if y2 < y1:
            y1, y2 = y2, y1
        for y in range(y1, y2 + 1):
            self.draw_glyph(x, y, Glyph.VERTICAL, style)

    def write_text(self, x: int, y: int, text: str, style: Optional[Style] = None, max_width: int = 0) -> int:
        """
        Write text left to right, truncated to `max_width` when positive.

        Returns:
            int: Number of cells written.
        """
        if max_width > 0:
            text = text[:max_width]
        for offset, char in enumerate(text):
            self.set(x + offset, y, char, style)
        return len(text)

    def fill(self, x: int, y: int, width: int, height: int, char: str = " ", style: Optional[Style] = None) -> None:
        for row in range(y, y + height):
            for col in range(x, x + width):
                self.set(col, row, char, style)

    def fill_dots(self, style: Optional[Style] = None) -> None:
        """Light dot pattern on every even (x, y) cell."""
        for y in range(0, self.height, 2):
            for x in range(0, self.width, 2):
                self.set(x, y, DOT, style)

    def draw_border(self, x: int, y: int, width: int, height: int, style: Optional[Style] = None, lock: bool = False) -> None:
        """Rounded box outline."""
        if width < 2 or height < 2:
            return
        right = x + width - 1
        bottom = y + height - 1
        for col in range(x + 1, right):
            self.set(col, y, "─", style, lock)
            self.set(col, bottom, "─", style, lock)
        for row in range(y + 1, bottom):
            self.set(x, row, "│", style, lock)
            self.set(right, row, "│", style, lock)
        self.set(x, y, "╭", style, lock)
        self.set(right, y, "╮", style, lock)
        self.set(x, bottom, "╰", style, lock)
        self.set(right, bottom, "╯", style, lock)

    def render(self) -> List[Text]:
        """One styled line per row, trailing whitespace trimmed."""
        lines = []
        for row in self.cells:
            line = Text(no_wrap=True)
            run: List[str] = []
            run_style: Optional[Style] = None
            for cell in row:
                if run and cell.style != run_style:
                    line.append("".join(run), run_style)
                    run = []
                run_style = cell.style
                run.append(cell.char)
            if run:
                line.append("".join(run), run_style)
            line.rstrip()
            lines.append(line)
        return lines

    def plain_lines(self) -> List[str]:
        return [line.plain for line in self.render()]

"""
Connector glyph states.

Every connector cell is in one of a small set of states, each described by
the arms it extends towards (north, east, south, west). Drawing a segment
over an occupied cell is a transition: the arms of both states are joined
and the result is mapped back onto the state set. Any combination that is
not itself a state (a tee, or a corner crossed by a line) becomes CROSS.
"""

from enum import Enum, IntFlag


class Arm(IntFlag):
    NORTH = 1
    EAST = 2
    SOUTH = 4
    WEST = 8


class Glyph(Enum):
    """Connector cell states, valued by their arm mask."""
    EMPTY = 0
    HORIZONTAL = int(Arm.EAST | Arm.WEST)
    VERTICAL = int(Arm.NORTH | Arm.SOUTH)
    DOWN_LEFT = int(Arm.SOUTH | Arm.WEST)
    UP_LEFT = int(Arm.NORTH | Arm.WEST)
    DOWN_RIGHT = int(Arm.SOUTH | Arm.EAST)
    UP_RIGHT = int(Arm.NORTH | Arm.EAST)
    CROSS = int(Arm.NORTH | Arm.EAST | Arm.SOUTH | Arm.WEST)

    @property
    def char(self) -> str:
        return _CHARS[self]


_CHARS = {
    Glyph.EMPTY: " ",
    Glyph.HORIZONTAL: "─",
    Glyph.VERTICAL: "│",
    Glyph.DOWN_LEFT: "╮",
    Glyph.UP_LEFT: "╯",
    Glyph.DOWN_RIGHT: "╭",
    Glyph.UP_RIGHT: "╰",
    Glyph.CROSS: "┼",
}

_BY_MASK = {glyph.value: glyph for glyph in Glyph}

ARROW_HEAD = "▸"


def merge(current: Glyph, incoming: Glyph) -> Glyph:
    """
    Transition a cell from `current` after drawing `incoming` over it.

    >>> merge(Glyph.HORIZONTAL, Glyph.VERTICAL)
    <Glyph.CROSS: 15>
    """
    mask = current.value | incoming.value
    return _BY_MASK.get(mask, Glyph.CROSS)


def corner(turning_down: bool, entering_from_left: bool) -> Glyph:
    """
    Corner glyph for a connector bend.

    Args:
        turning_down: True if the vertical arm points south.
        entering_from_left: True if the horizontal arm points west.
    """
    if entering_from_left:
        return Glyph.DOWN_LEFT if turning_down else Glyph.UP_LEFT
    return Glyph.DOWN_RIGHT if turning_down else Glyph.UP_RIGHT

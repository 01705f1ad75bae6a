"""Terminal emulation for termprobe.

Public API:
    ScreenState -- byte stream in, screen/cursor/graphics model out
    VTParser, VTActor -- the underlying escape-sequence state machine
    Grid -- the fixed-size cell matrix
"""

from termprobe.screen.grid import Grid
from termprobe.screen.parser import VTActor, VTParser
from termprobe.screen.state import (
    PIXELS_PER_COLUMN,
    PIXELS_PER_ROW,
    ScreenState,
    pixels_to_cells,
)

__all__ = [
    "Grid",
    "PIXELS_PER_COLUMN",
    "PIXELS_PER_ROW",
    "ScreenState",
    "VTActor",
    "VTParser",
    "pixels_to_cells",
]

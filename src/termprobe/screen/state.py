"""Terminal state engine.

:class:`ScreenState` consumes the raw byte stream written by a child
process and keeps a model of what a real terminal would be showing: the
character grid, the cursor, the current SGR pen, and every inline graphic
(Sixel, Kitty, iTerm2) that was emitted, along with the cell rectangle it
would occupy.

The engine is a small subset of xterm. It does not wrap at
the right margin, does not scroll, and keeps no scrollback; that is
enough to assert on full-screen TUI applications which address the
cursor explicitly.
"""

from __future__ import annotations

import logging
import re

from termprobe.domain.models import Cell, CellAttributes, GraphicsProtocol, GraphicsRegion
from termprobe.screen.grid import Grid
from termprobe.screen.parser import Params, VTActor, VTParser

logger = logging.getLogger(__name__)

# Assumed size of one character cell in pixels
PIXELS_PER_COLUMN = 8
PIXELS_PER_ROW = 6

TAB_WIDTH = 8

_SIXEL_RASTER = re.compile(rb'"([0-9;]*)')
_ITERM2_PREFIX = b"1337;File="


def pixels_to_cells(width_px: int, height_px: int) -> tuple[int, int]:
    """Convert a pixel size into the (columns, rows) it covers, rounding up."""
    return (
        -(-max(width_px, 0) // PIXELS_PER_COLUMN),
        -(-max(height_px, 0) // PIXELS_PER_ROW),
    )


# ---------------------------------------------------------------------------
# Graphics dimension parsing
# ---------------------------------------------------------------------------


def _positive_int(value: bytes | str) -> int | None:
    try:
        number = int(value)
    except ValueError:
        return None
    return number if number > 0 else None


def parse_sixel_raster(payload: bytes) -> tuple[int, int]:
    """Extract the pixel size from a Sixel raster attributes command.

    The raster command is ``"Pan;Pad;Ph;Pv`` (the two-field ``"Ph;Pv`` form
    is also accepted). Returns ``(0, 0)`` when the command is missing or
    either dimension is zero or unparsable.
    """
    match = _SIXEL_RASTER.search(payload)
    if match is None:
        return (0, 0)
    fields = match.group(1).split(b";")
    if len(fields) >= 4:
        width, height = _positive_int(fields[2]), _positive_int(fields[3])
    elif len(fields) == 2:
        width, height = _positive_int(fields[0]), _positive_int(fields[1])
    else:
        return (0, 0)
    if width is None or height is None:
        return (0, 0)
    return (width, height)


def parse_kitty_size(payload: bytes) -> tuple[int, int]:
    """Extract ``w=``/``h=`` pixel dimensions from a Kitty APC payload.

    ``payload`` starts with the ``G`` command byte. Missing or invalid keys
    give 0 for that dimension.
    """
    control = payload[1:].split(b";", 1)[0]
    width = height = 0
    for pair in re.split(rb"[,;]", control):
        key, sep, value = pair.partition(b"=")
        if not sep:
            continue
        if key == b"w":
            width = _positive_int(value) or 0
        elif key == b"h":
            height = _positive_int(value) or 0
    return (width, height)


def parse_iterm2_size(payload: bytes) -> tuple[int, int]:
    """Extract ``width=``/``height=`` from an iTerm2 ``1337;File=`` payload.

    Values are in cells. ``auto`` and percentages are ignored (0); a ``px``
    suffix is stripped.
    """
    args = payload[len(_ITERM2_PREFIX):].split(b":", 1)[0]
    width = height = 0
    for arg in args.split(b";"):
        key, sep, value = arg.partition(b"=")
        if not sep or key not in (b"width", b"height") or value == b"auto":
            continue
        if value.endswith(b"px"):
            value = value[:-2]
        number = _positive_int(value) or 0
        if key == b"width":
            width = number
        else:
            height = number
    return (width, height)


# ---------------------------------------------------------------------------
# Screen state
# ---------------------------------------------------------------------------


class ScreenState(VTActor):
    """Virtual terminal screen fed from a byte stream.

    Args:
        width: Number of columns.
        height: Number of rows.

    Raises:
        InvalidDimensionsError: If either dimension is zero.
    """

    def __init__(self, width: int, height: int) -> None:
        self._grid = Grid(width, height)
        self._parser = VTParser(self)
        self._row = 0
        self._col = 0
        self._attrs = CellAttributes()
        self._saved_cursor: tuple[int, int] | None = None
        self._saved_attrs: CellAttributes | None = None
        self._regions: list[GraphicsRegion] = []

        self._in_sixel = False
        self._sixel_anchor = (0, 0)
        self._sixel_data = bytearray()
        self._osc_anchor = (0, 0)
        self._apc_anchor = (0, 0)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def feed(self, data: bytes | str) -> None:
        """Process output from the child. Partial sequences carry over."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._parser.feed(data)

    def reset(self) -> None:
        """Blank the screen and forget all state, including graphics."""
        self._grid.clear()
        self._parser.reset()
        self._row = self._col = 0
        self._attrs = CellAttributes()
        self._saved_cursor = None
        self._saved_attrs = None
        self._regions.clear()
        self._in_sixel = False
        self._sixel_data.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._grid.width

    @property
    def height(self) -> int:
        return self._grid.height

    def size(self) -> tuple[int, int]:
        """Return (width, height)."""
        return (self._grid.width, self._grid.height)

    def contents(self) -> str:
        """The whole screen as text, rows joined by newlines."""
        return self._grid.text()

    def row_contents(self, row: int) -> str:
        return self._grid.row_text(row)

    def text_at(self, row: int, col: int) -> str | None:
        cell = self._grid.cell(row, col)
        return None if cell is None else cell.char

    def cell_at(self, row: int, col: int) -> Cell | None:
        return self._grid.cell(row, col)

    def cursor_position(self) -> tuple[int, int]:
        """Return the cursor as (row, col), 0-indexed."""
        return (self._row, self._col)

    def contains(self, text: str) -> bool:
        return text in self.contents()

    def debug_contents(self) -> str:
        """Screen dump with a frame, the cursor and a graphics summary."""
        border = "+" + "-" * self.width + "+"
        lines = [border]
        lines.extend(f"|{self._grid.row_text(row)}|" for row in range(self.height))
        lines.append(border)
        lines.append(f"cursor: row={self._row}, col={self._col}")
        if self._regions:
            lines.append(f"graphics: {len(self._regions)} region(s)")
            for region in self._regions:
                lines.append(f"  {region.protocol.display_name} at {region.position} bounds={region.bounds}")
        return "\n".join(lines)

    def sixel_regions(self) -> list[GraphicsRegion]:
        return self._regions_for(GraphicsProtocol.SIXEL)

    def kitty_regions(self) -> list[GraphicsRegion]:
        return self._regions_for(GraphicsProtocol.KITTY)

    def iterm2_regions(self) -> list[GraphicsRegion]:
        return self._regions_for(GraphicsProtocol.ITERM2)

    def graphics_regions(self) -> list[GraphicsRegion]:
        """All graphics regions of every protocol, in creation order."""
        return list(self._regions)

    def has_sixel_at(self, row: int, col: int) -> bool:
        """True when a Sixel graphic was anchored exactly at (row, col)."""
        return any(region.position == (row, col) for region in self.sixel_regions())

    def _regions_for(self, protocol: GraphicsProtocol) -> list[GraphicsRegion]:
        return [region for region in self._regions if region.protocol is protocol]

    # ------------------------------------------------------------------
    # VTActor: text and controls
    # ------------------------------------------------------------------

    def print(self, char: str) -> None:
        cell = self._grid.cell(self._row, self._col)
        if cell is not None:
            cell.write(char, self._attrs)
        if self._col < self.width - 1:
            self._col += 1

    def execute(self, control: int) -> None:
        if control == 0x0D:  # CR
            self._col = 0
        elif control in (0x0A, 0x0B, 0x0C):  # LF, VT, FF
            self._line_feed()
        elif control == 0x09:  # TAB
            self._col = min((self._col // TAB_WIDTH + 1) * TAB_WIDTH, self.width - 1)
        elif control == 0x08:  # BS
            self._col = max(self._col - 1, 0)

    def _line_feed(self) -> None:
        self._row = min(self._row + 1, self.height - 1)

    # ------------------------------------------------------------------
    # VTActor: control sequences
    # ------------------------------------------------------------------

    def csi_dispatch(self, params: Params, intermediates: bytes, final: str) -> None:
        if intermediates:
            # Private modes (?25h etc.) have no effect on the model
            return

        if final in ("H", "f"):
            self._move_to(_param(params, 0, 1) - 1, _param(params, 1, 1) - 1)
        elif final == "A":
            self._row = max(self._row - _count(params), 0)
        elif final == "B":
            self._row = min(self._row + _count(params), self.height - 1)
        elif final == "C":
            self._col = min(self._col + _count(params), self.width - 1)
        elif final == "D":
            self._col = max(self._col - _count(params), 0)
        elif final == "E":
            self._row = min(self._row + _count(params), self.height - 1)
            self._col = 0
        elif final == "F":
            self._row = max(self._row - _count(params), 0)
            self._col = 0
        elif final == "G":
            self._move_to(self._row, _param(params, 0, 1) - 1)
        elif final == "d":
            self._move_to(_param(params, 0, 1) - 1, self._col)
        elif final == "J":
            self._erase_display(_param(params, 0, 0))
        elif final == "K":
            self._erase_line(_param(params, 0, 0))
        elif final == "m":
            self._select_graphic_rendition(params)
        elif final == "s":
            self._saved_cursor = (self._row, self._col)
        elif final == "u":
            if self._saved_cursor is not None:
                self._row, self._col = self._saved_cursor
        else:
            logger.debug("Ignoring CSI %r%s", params, final)

    def esc_dispatch(self, intermediates: bytes, final: str) -> None:
        if intermediates:
            # Charset designation and similar
            return
        if final == "D":
            self._line_feed()
        elif final == "E":
            self._line_feed()
            self._col = 0
        elif final == "M":
            self._row = max(self._row - 1, 0)
        elif final == "7":
            self._saved_cursor = (self._row, self._col)
            self._saved_attrs = self._attrs.model_copy()
        elif final == "8":
            if self._saved_cursor is not None:
                self._row, self._col = self._saved_cursor
            if self._saved_attrs is not None:
                self._attrs = self._saved_attrs.model_copy()
        elif final == "c":
            self._grid.clear()
            self._row = self._col = 0
            self._attrs = CellAttributes()
            self._saved_cursor = None
            self._saved_attrs = None

    def _move_to(self, row: int, col: int) -> None:
        self._row = min(max(row, 0), self.height - 1)
        self._col = min(max(col, 0), self.width - 1)

    def _erase_display(self, mode: int) -> None:
        if mode == 0:
            self._grid.clear_row(self._row, self._col)
            for row in range(self._row + 1, self.height):
                self._grid.clear_row(row)
        elif mode == 1:
            for row in range(self._row):
                self._grid.clear_row(row)
            self._grid.clear_row(self._row, 0, self._col + 1)
        elif mode in (2, 3):
            self._grid.clear()

    def _erase_line(self, mode: int) -> None:
        if mode == 0:
            self._grid.clear_row(self._row, self._col)
        elif mode == 1:
            self._grid.clear_row(self._row, 0, self._col + 1)
        elif mode == 2:
            self._grid.clear_row(self._row)

    def _select_graphic_rendition(self, params: Params) -> None:
        groups = [tuple(0 if v is None else v for v in group) for group in params.groups]
        groups = groups or [(0,)]
        i = 0
        while i < len(groups):
            group = groups[i]
            code = group[0]
            if len(group) > 1:
                self._apply_sgr_group(group)
            elif code in (38, 48):
                # Semicolon form: the color spec spills into the next params
                mode = groups[i + 1][0] if i + 1 < len(groups) else None
                if mode == 5 and i + 2 < len(groups):
                    self._set_palette_color(code, groups[i + 2][0])
                    i += 2
                elif mode == 2:
                    # Truecolor has no palette index; skip r, g, b
                    i += 4
                else:
                    i += 1
            else:
                self._apply_sgr(code)
            i += 1

    def _apply_sgr_group(self, group: tuple[int, ...]) -> None:
        """Apply one ``:``-joined SGR item such as ``4:3`` or ``38:5:196``."""
        code = group[0]
        if code == 4:
            # 4:0 is "no underline"; 4:1 to 4:5 are underline styles
            self._attrs.underline = group[1] != 0
        elif code in (38, 48):
            if group[1] == 5 and len(group) > 2:
                self._set_palette_color(code, group[2])
        else:
            self._apply_sgr(code)

    def _set_palette_color(self, code: int, index: int) -> None:
        if not 0 <= index <= 255:
            return
        if code == 38:
            self._attrs.fg = index
        else:
            self._attrs.bg = index

    def _apply_sgr(self, code: int) -> None:
        attrs = self._attrs
        if code == 0:
            attrs.reset()
        elif code == 1:
            attrs.bold = True
        elif code == 3:
            attrs.italic = True
        elif code == 4:
            attrs.underline = True
        elif code == 22:
            attrs.bold = False
        elif code == 23:
            attrs.italic = False
        elif code == 24:
            attrs.underline = False
        elif 30 <= code <= 37:
            attrs.fg = code - 30
        elif code == 39:
            attrs.fg = None
        elif 40 <= code <= 47:
            attrs.bg = code - 40
        elif code == 49:
            attrs.bg = None
        elif 90 <= code <= 97:
            attrs.fg = code - 90 + 8
        elif 100 <= code <= 107:
            attrs.bg = code - 100 + 8

    # ------------------------------------------------------------------
    # VTActor: graphics
    # ------------------------------------------------------------------

    def dcs_hook(self, params: Params, intermediates: bytes, final: str) -> None:
        self._in_sixel = final == "q"
        self._sixel_data.clear()
        if self._in_sixel:
            self._sixel_anchor = (self._row, self._col)

    def dcs_put(self, byte: int) -> None:
        if self._in_sixel:
            self._sixel_data.append(byte)

    def dcs_unhook(self) -> None:
        if not self._in_sixel:
            return
        self._in_sixel = False
        payload = bytes(self._sixel_data)
        self._sixel_data.clear()
        pixels = parse_sixel_raster(payload)
        self._add_region(GraphicsProtocol.SIXEL, self._sixel_anchor, pixels, pixels_to_cells(*pixels), payload)

    def osc_start(self) -> None:
        self._osc_anchor = (self._row, self._col)

    def osc_dispatch(self, data: bytes) -> None:
        if not data.startswith(_ITERM2_PREFIX):
            return
        cells = parse_iterm2_size(data)
        self._add_region(GraphicsProtocol.ITERM2, self._osc_anchor, cells, cells, data)

    def apc_start(self) -> None:
        self._apc_anchor = (self._row, self._col)

    def apc_dispatch(self, data: bytes) -> None:
        if not data.startswith(b"G"):
            return
        pixels = parse_kitty_size(data)
        self._add_region(GraphicsProtocol.KITTY, self._apc_anchor, pixels, pixels_to_cells(*pixels), data)

    def _add_region(
        self,
        protocol: GraphicsProtocol,
        anchor: tuple[int, int],
        declared: tuple[int, int],
        cells: tuple[int, int],
        payload: bytes,
    ) -> None:
        region = GraphicsRegion(
            protocol=protocol,
            position=anchor,
            bounds=(anchor[0], anchor[1], cells[0], cells[1]),
            pixel_size=declared,
            raw_data=payload,
        )
        self._regions.append(region)
        logger.debug(
            "%s graphic at %s, bounds %s", protocol.display_name, anchor, region.bounds
        )


def _param(params: Params, index: int, default: int) -> int:
    if index < len(params) and params[index] is not None:
        return params[index]  # type: ignore[return-value]
    return default


def _count(params: Params) -> int:
    """Movement count: missing and 0 both mean 1."""
    return max(_param(params, 0, 1), 1)

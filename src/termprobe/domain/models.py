"""Core domain models for the termprobe system.

These models represent the fundamental data structures flowing through
the system: screen cells, inline graphics regions extracted from the
output stream, keyboard and mouse input sent to the child, the command
to spawn, and the outcome of multi-condition waits.
"""

from __future__ import annotations

import enum
import shlex
from typing import Literal, Mapping, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

Area = tuple[int, int, int, int]
"""(row, col, width, height) in 0-indexed terminal cells."""


# ---------------------------------------------------------------------------
# Screen Models
# ---------------------------------------------------------------------------


class CellAttributes(BaseModel):
    """The current SGR pen applied to printed characters."""

    fg: int | None = Field(default=None, ge=0, le=255, description="Foreground palette index")
    bg: int | None = Field(default=None, ge=0, le=255, description="Background palette index")
    bold: bool = False
    italic: bool = False
    underline: bool = False

    def reset(self) -> None:
        """Clear all attributes back to the terminal default."""
        self.fg = None
        self.bg = None
        self.bold = False
        self.italic = False
        self.underline = False


class Cell(CellAttributes):
    """A single character cell of the screen grid.

    Cells are allocated once per grid and overwritten in place on print.
    """

    char: str = Field(default=" ", description="The character displayed in this cell")

    def reset(self) -> None:
        super().reset()
        self.char = " "

    def write(self, char: str, attrs: CellAttributes) -> None:
        """Overwrite this cell with ``char`` drawn using ``attrs``."""
        self.char = char
        self.fg = attrs.fg
        self.bg = attrs.bg
        self.bold = attrs.bold
        self.italic = attrs.italic
        self.underline = attrs.underline


# ---------------------------------------------------------------------------
# Graphics Models
# ---------------------------------------------------------------------------


class GraphicsProtocol(str, enum.Enum):
    """Inline graphics protocol that produced a region."""

    SIXEL = "sixel"  # DCS q ... ST
    KITTY = "kitty"  # APC G ... ST
    ITERM2 = "iterm2"  # OSC 1337;File= ... BEL/ST

    @property
    def display_name(self) -> str:
        return _PROTOCOL_NAMES[self]

    @property
    def escape_prefix(self) -> str:
        return _PROTOCOL_PREFIXES[self]

    def __str__(self) -> str:
        return self.display_name


_PROTOCOL_NAMES = {
    GraphicsProtocol.SIXEL: "Sixel",
    GraphicsProtocol.KITTY: "Kitty",
    GraphicsProtocol.ITERM2: "iTerm2",
}

_PROTOCOL_PREFIXES = {
    GraphicsProtocol.SIXEL: "\x1bPq",
    GraphicsProtocol.KITTY: "\x1b_G",
    GraphicsProtocol.ITERM2: "\x1b]1337;File=",
}


class GraphicsRegion(BaseModel):
    """A graphic detected in the output stream, with its cell-space footprint.

    ``position`` is where the cursor was when the introducing sequence began,
    which is not necessarily where the cursor is after the sequence.
    """

    model_config = ConfigDict(frozen=True)

    protocol: GraphicsProtocol
    position: tuple[int, int] = Field(description="Cursor (row, col) when the sequence began")
    bounds: Area = Field(description="(row, col, width, height) in terminal cells")
    pixel_size: tuple[int, int] = Field(
        default=(0, 0),
        description="Declared (width, height); pixels for Sixel/Kitty, cells for iTerm2",
    )
    raw_data: bytes = Field(default=b"", description="Payload bytes between introducer and terminator")

    def is_within(self, area: Area) -> bool:
        """True when the whole bounding rectangle fits inside ``area``."""
        row, col, width, height = self.bounds
        area_row, area_col, area_width, area_height = area
        return (
            row >= area_row
            and col >= area_col
            and row + height <= area_row + area_height
            and col + width <= area_col + area_width
        )

    def overlaps(self, area: Area) -> bool:
        """True when any part of the bounding rectangle intersects ``area``."""
        row, col, width, height = self.bounds
        area_row, area_col, area_width, area_height = area
        return not (
            row + height <= area_row
            or col + width <= area_col
            or row >= area_row + area_height
            or col >= area_col + area_width
        )


# ---------------------------------------------------------------------------
# Input Models
# ---------------------------------------------------------------------------


class KeyCode(str, enum.Enum):
    """Named (non-character) keys. Character keys are plain one-char strings."""

    ENTER = "Enter"
    ESC = "Esc"
    TAB = "Tab"
    BACKSPACE = "Backspace"
    DELETE = "Delete"
    INSERT = "Insert"
    UP = "Up"
    DOWN = "Down"
    LEFT = "Left"
    RIGHT = "Right"
    HOME = "Home"
    END = "End"
    PAGE_UP = "PageUp"
    PAGE_DOWN = "PageDown"
    F1 = "F1"
    F2 = "F2"
    F3 = "F3"
    F4 = "F4"
    F5 = "F5"
    F6 = "F6"
    F7 = "F7"
    F8 = "F8"
    F9 = "F9"
    F10 = "F10"
    F11 = "F11"
    F12 = "F12"

    @property
    def function_number(self) -> int | None:
        """1-12 for function keys, None otherwise."""
        if self.value.startswith("F") and self.value[1:].isdigit():
            return int(self.value[1:])
        return None

    @classmethod
    def function(cls, n: int) -> KeyCode:
        """Return the key for F``n``."""
        try:
            return cls(f"F{n}")
        except ValueError:
            raise ValueError(f"No function key F{n}") from None

    @classmethod
    def from_name(cls, name: str) -> KeyCode:
        """Resolve a friendly key name ('Enter', 'escape', 'pgup', 'f5').

        Raises:
            ValueError: If the name is not recognized.
        """
        key = _KEY_ALIASES.get(name.lower().replace("_", "").replace(" ", ""))
        if key is None:
            raise ValueError(f"Unknown key name: {name!r}")
        return key


_KEY_ALIASES: dict[str, KeyCode] = {k.value.lower(): k for k in KeyCode}
_KEY_ALIASES.update(
    {
        "return": KeyCode.ENTER,
        "escape": KeyCode.ESC,
        "del": KeyCode.DELETE,
        "ins": KeyCode.INSERT,
        "pgup": KeyCode.PAGE_UP,
        "pgdn": KeyCode.PAGE_DOWN,
        "pagedn": KeyCode.PAGE_DOWN,
    }
)


class Modifiers(enum.IntFlag):
    """Keyboard modifier bitmask."""

    NONE = 0
    SHIFT = 0b0001
    CTRL = 0b0010
    ALT = 0b0100
    META = 0b1000

    @classmethod
    def from_names(cls, names: Sequence[str]) -> Modifiers:
        """Combine modifier names ('ctrl', 'alt', 'shift', 'meta') into a mask.

        Raises:
            ValueError: If any modifier name is not recognized.
        """
        mask = cls.NONE
        for name in names:
            mod = _MODIFIER_ALIASES.get(name.lower())
            if mod is None:
                raise ValueError(f"Unknown modifier: {name!r}")
            mask |= mod
        return mask


_MODIFIER_ALIASES: dict[str, Modifiers] = {
    "shift": Modifiers.SHIFT,
    "ctrl": Modifiers.CTRL,
    "control": Modifiers.CTRL,
    "alt": Modifiers.ALT,
    "option": Modifiers.ALT,
    "meta": Modifiers.META,
    "super": Modifiers.META,
    "win": Modifiers.META,
}


def resolve_key(key: KeyCode | str) -> KeyCode | str:
    """Normalize a key: a KeyCode, a single character, or a key name."""
    if isinstance(key, KeyCode):
        return key
    if len(key) == 1:
        return key
    return KeyCode.from_name(key)


class KeyEvent(BaseModel):
    """A key press with optional modifiers (e.g. Ctrl+C, Alt+x, F5)."""

    model_config = ConfigDict(frozen=True)

    code: Union[KeyCode, str] = Field(
        union_mode="left_to_right",
        description="A named key or a single character",
    )
    modifiers: Modifiers = Modifiers.NONE

    @field_validator("code", mode="before")
    @classmethod
    def _resolve_code(cls, value: object) -> object:
        if isinstance(value, str):
            return resolve_key(value)
        return value

    @property
    def is_char(self) -> bool:
        return not isinstance(self.code, KeyCode)


class MouseButton(enum.IntEnum):
    """Mouse buttons with their SGR button codes."""

    LEFT = 0
    MIDDLE = 1
    RIGHT = 2


class ScrollDirection(enum.IntEnum):
    """Scroll wheel directions with their SGR button codes."""

    UP = 64
    DOWN = 65
    LEFT = 66
    RIGHT = 67


class MouseEvent(BaseModel):
    """A mouse event at a 0-indexed cell position."""

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0, description="Column (0-indexed)")
    y: int = Field(ge=0, description="Row (0-indexed)")
    button_code: int = Field(ge=0, description="SGR button code before modifier bits")
    is_press: bool = True
    modifiers: Modifiers = Modifiers.NONE

    @classmethod
    def press(
        cls, x: int, y: int, button: MouseButton, modifiers: Modifiers = Modifiers.NONE
    ) -> MouseEvent:
        return cls(x=x, y=y, button_code=int(button), is_press=True, modifiers=modifiers)

    @classmethod
    def release(cls, x: int, y: int, button: MouseButton) -> MouseEvent:
        return cls(x=x, y=y, button_code=int(button), is_press=False)

    @classmethod
    def motion(cls, x: int, y: int, button: MouseButton) -> MouseEvent:
        """Pointer movement with ``button`` held (SGR motion flag 32)."""
        return cls(x=x, y=y, button_code=int(button) + 32, is_press=True)

    @classmethod
    def scroll(cls, x: int, y: int, direction: ScrollDirection) -> MouseEvent:
        # Scroll events use press encoding
        return cls(x=x, y=y, button_code=int(direction), is_press=True)


# ---------------------------------------------------------------------------
# Process Models
# ---------------------------------------------------------------------------


class Command(BaseModel):
    """A program to run inside the pseudo-terminal."""

    model_config = ConfigDict(frozen=True)

    program: str = Field(min_length=1, description="Executable name or path")
    args: tuple[str, ...] = Field(default=(), description="Arguments after the program")
    env: dict[str, str] = Field(default_factory=dict, description="Extra environment variables")
    cwd: str | None = Field(default=None, description="Working directory for the child")

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    @classmethod
    def parse(
        cls,
        command: Command | str | Sequence[str],
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> Command:
        """Build a Command from a Command, a shell-like string, or an argv list."""
        if isinstance(command, Command):
            return command
        argv = shlex.split(command) if isinstance(command, str) else list(command)
        if not argv:
            raise ValueError("Command must not be empty")
        return cls(program=argv[0], args=tuple(argv[1:]), env=dict(env or {}), cwd=cwd)

    def __str__(self) -> str:
        return shlex.join(self.argv)


# ---------------------------------------------------------------------------
# Wait Models
# ---------------------------------------------------------------------------


class WaitResult(BaseModel):
    """Outcome of a multi-condition wait."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ok", "condition", "timeout"]
    index: int | None = Field(default=None, description="Index of the condition that fired")
    timeout: float | None = Field(default=None, description="Configured timeout in seconds")

    @classmethod
    def ok(cls) -> WaitResult:
        return cls(kind="ok")

    @classmethod
    def condition(cls, index: int) -> WaitResult:
        return cls(kind="condition", index=index)

    @classmethod
    def timed_out(cls, timeout: float) -> WaitResult:
        return cls(kind="timeout", timeout=timeout)

    @property
    def is_timeout(self) -> bool:
        return self.kind == "timeout"

    @property
    def timeout_ms(self) -> int | None:
        return None if self.timeout is None else int(round(self.timeout * 1000))

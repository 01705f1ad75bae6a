"""Domain models for termprobe.

This package contains all core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation.
"""

from termprobe.domain.models import (
    Area,
    Cell,
    CellAttributes,
    Command,
    GraphicsProtocol,
    GraphicsRegion,
    KeyCode,
    KeyEvent,
    Modifiers,
    MouseButton,
    MouseEvent,
    ScrollDirection,
    WaitResult,
    resolve_key,
)

__all__ = [
    "Area",
    "Cell",
    "CellAttributes",
    "Command",
    "GraphicsProtocol",
    "GraphicsRegion",
    "KeyCode",
    "KeyEvent",
    "Modifiers",
    "MouseButton",
    "MouseEvent",
    "ScrollDirection",
    "WaitResult",
    "resolve_key",
]

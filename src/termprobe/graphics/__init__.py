"""Graphics query layer for termprobe.

Public API:
    GraphicsCapture -- snapshot of Sixel/Kitty/iTerm2 regions with area queries
    SixelCapture -- the same restricted to Sixel
"""

from termprobe.graphics.capture import GraphicsCapture
from termprobe.graphics.sixel import SixelCapture

__all__ = ["GraphicsCapture", "SixelCapture"]

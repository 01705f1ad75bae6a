"""Input encoding for termprobe.

Translates logical keyboard and mouse actions into the byte sequences a
real terminal would write to the child process.

Public API:
    encode_key_event -- KeyEvent -> bytes
    encode_key -- key name / character / KeyCode + Modifiers -> bytes
    encode_mouse_event -- MouseEvent -> SGR mouse bytes
    parse_key -- key name / character -> KeyCode or character
"""

from termprobe.keyboard.codes import (
    encode_ctrl_char,
    encode_function_key,
    encode_key,
    encode_key_event,
    encode_mouse_event,
    parse_key,
)

__all__ = [
    "encode_ctrl_char",
    "encode_function_key",
    "encode_key",
    "encode_key_event",
    "encode_mouse_event",
    "parse_key",
]

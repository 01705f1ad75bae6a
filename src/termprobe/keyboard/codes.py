"""VT/xterm byte encodings for keyboard and mouse input.

Reference: xterm control sequences ("PC-Style Function Keys" and
"Extended coordinates / SGR mouse mode").

Named keys map to fixed byte strings; character keys are sent as their
UTF-8 bytes. Modifiers are applied in this order:

- Ctrl on a character key: the C0 control byte (Ctrl+A..Z = 0x01..0x1A)
- Alt on any key: ESC prefix followed by the key's bytes
- otherwise: the unmodified table below
"""

from __future__ import annotations

from termprobe.domain.models import (
    KeyCode,
    KeyEvent,
    Modifiers,
    MouseEvent,
    resolve_key,
)

ESC = b"\x1b"

# ---------------------------------------------------------------------------
# Named key -> byte sequence
# ---------------------------------------------------------------------------

KEY_SEQUENCES: dict[KeyCode, bytes] = {
    KeyCode.ENTER: b"\n",
    KeyCode.TAB: b"\t",
    KeyCode.ESC: ESC,
    KeyCode.BACKSPACE: b"\x7f",  # DEL
    KeyCode.DELETE: b"\x1b[3~",
    KeyCode.INSERT: b"\x1b[2~",
    KeyCode.UP: b"\x1b[A",
    KeyCode.DOWN: b"\x1b[B",
    KeyCode.RIGHT: b"\x1b[C",
    KeyCode.LEFT: b"\x1b[D",
    KeyCode.HOME: b"\x1b[H",
    KeyCode.END: b"\x1b[F",
    KeyCode.PAGE_UP: b"\x1b[5~",
    KeyCode.PAGE_DOWN: b"\x1b[6~",
}

# F1-F4 use SS3 (ESC O), F5-F12 use CSI with the historical gaps at 16 and 22
FUNCTION_KEY_SEQUENCES: dict[int, bytes] = {
    1: b"\x1bOP",
    2: b"\x1bOQ",
    3: b"\x1bOR",
    4: b"\x1bOS",
    5: b"\x1b[15~",
    6: b"\x1b[17~",
    7: b"\x1b[18~",
    8: b"\x1b[19~",
    9: b"\x1b[20~",
    10: b"\x1b[21~",
    11: b"\x1b[23~",
    12: b"\x1b[24~",
}

# Ctrl + punctuation that has a C0 equivalent
CTRL_SPECIAL: dict[str, int] = {
    "@": 0,  # NUL
    "[": 27,  # ESC
    "\\": 28,  # FS
    "]": 29,  # GS
    "^": 30,  # RS
    "_": 31,  # US
    "?": 127,  # DEL
}

# SGR mouse modifier bits added to the button code
MOUSE_MODIFIER_BITS: dict[Modifiers, int] = {
    Modifiers.SHIFT: 4,
    Modifiers.ALT: 8,
    Modifiers.CTRL: 16,
}


def parse_key(key: KeyCode | str) -> KeyCode | str:
    """Resolve a key given as a KeyCode, a single character, or a key name.

    Raises:
        ValueError: If the key name is not recognized.
    """
    return resolve_key(key)


def encode_ctrl_char(char: str) -> bytes:
    """Encode Ctrl+``char``.

    Letters of either case map to 1-26; ``@ [ \\ ] ^ _ ?`` map to their C0
    (or DEL) equivalents; anything else is sent unchanged.
    """
    upper = char.upper()
    if len(upper) == 1 and "A" <= upper <= "Z":
        return bytes([ord(upper) - ord("A") + 1])
    if char in CTRL_SPECIAL:
        return bytes([CTRL_SPECIAL[char]])
    return char.encode("utf-8")


def encode_function_key(n: int) -> bytes:
    """Encode F``n``; unknown function key numbers encode to nothing."""
    return FUNCTION_KEY_SEQUENCES.get(n, b"")


def encode_named_key(key: KeyCode) -> bytes:
    """Encode a named key without modifiers."""
    number = key.function_number
    if number is not None:
        return encode_function_key(number)
    return KEY_SEQUENCES[key]


def encode_key_event(event: KeyEvent) -> bytes:
    """Encode a key event to the bytes a terminal would send.

    Raises:
        TypeError: If the event carries neither a KeyCode nor a character.
    """
    code = event.code
    if isinstance(code, KeyCode):
        encoded = encode_named_key(code)
        if event.modifiers & Modifiers.ALT:
            return ESC + encoded
        return encoded

    if not isinstance(code, str):
        raise TypeError(f"Unsupported key code: {code!r}")
    if event.modifiers & Modifiers.CTRL:
        return encode_ctrl_char(code)
    if event.modifiers & Modifiers.ALT:
        return ESC + code.encode("utf-8")
    return code.encode("utf-8")


def encode_key(key: KeyCode | str, modifiers: Modifiers = Modifiers.NONE) -> bytes:
    """Convenience wrapper: encode a key name/char/KeyCode with modifiers.

    Raises:
        ValueError: If the key name is not recognized.
    """
    return encode_key_event(KeyEvent(code=resolve_key(key), modifiers=modifiers))


def encode_mouse_event(event: MouseEvent) -> bytes:
    """Encode a mouse event in SGR format: ESC[<b;x;yM (press) / m (release).

    Coordinates are converted from 0-indexed to the 1-indexed wire format.
    """
    button_code = event.button_code
    for modifier, bit in MOUSE_MODIFIER_BITS.items():
        if event.modifiers & modifier:
            button_code += bit
    terminator = "M" if event.is_press else "m"
    return f"\x1b[<{button_code};{event.x + 1};{event.y + 1}{terminator}".encode("ascii")

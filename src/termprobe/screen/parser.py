"""Incremental escape-sequence parser.

A byte-level implementation of the DEC/ANSI state machine described by
Paul Williams ("A parser for DEC's ANSI-compatible video terminals"),
extended with UTF-8 decoding for printable text and with APC string
collection for the Kitty graphics protocol.

The parser only classifies bytes; it reports what it found to a
:class:`VTActor`. All state, including a UTF-8 character or an escape
sequence split across two ``feed()`` calls, is kept between calls.
"""

from __future__ import annotations

import codecs
import enum
import logging
from abc import ABC, abstractmethod
from typing import Iterable

logger = logging.getLogger(__name__)

ESC = 0x1B
BEL = 0x07
CAN = 0x18
SUB = 0x1A
DEL = 0x7F

MAX_PARAMS = 32
MAX_PARAM_VALUE = 65535


class Params(tuple):
    """CSI/DCS parameters as a flat tuple of ``int | None``.

    ``groups`` keeps sub-parameters joined by ``:`` together, so
    ``ESC[4:3;1m`` is ``(4, 3, 1)`` with groups ``((4, 3), (1,))``.
    """

    groups: tuple[tuple[int | None, ...], ...]

    def __new__(cls, groups: Iterable[Iterable[int | None]] = ()) -> Params:
        grouped = tuple(tuple(group) for group in groups)
        params = super().__new__(cls, [value for group in grouped for value in group])
        params.groups = grouped
        return params


class VTActor(ABC):
    """Receiver of parsed terminal actions.

    Only ``print``, ``execute`` and ``csi_dispatch`` are required; the
    remaining callbacks default to ignoring the sequence.
    """

    @abstractmethod
    def print(self, char: str) -> None:
        """Display a printable character at the cursor."""

    @abstractmethod
    def execute(self, control: int) -> None:
        """Execute a C0 control byte (CR, LF, TAB, BS...)."""

    @abstractmethod
    def csi_dispatch(self, params: Params, intermediates: bytes, final: str) -> None:
        """Handle a complete ``ESC [ ... final`` control sequence."""

    def esc_dispatch(self, intermediates: bytes, final: str) -> None:
        """Handle a complete two-byte (or intermediate) escape sequence."""

    def dcs_hook(self, params: Params, intermediates: bytes, final: str) -> None:
        """A device control string started; payload follows via ``dcs_put``."""

    def dcs_put(self, byte: int) -> None:
        """One payload byte of the current device control string."""

    def dcs_unhook(self) -> None:
        """The current device control string ended."""

    def osc_start(self) -> None:
        """An operating system command string started."""

    def osc_dispatch(self, data: bytes) -> None:
        """A complete operating system command string."""

    def apc_start(self) -> None:
        """An application program command string started."""

    def apc_dispatch(self, data: bytes) -> None:
        """A complete application program command string."""


class ParserState(enum.Enum):
    GROUND = "ground"
    ESCAPE = "escape"
    ESCAPE_INTERMEDIATE = "escape_intermediate"
    CSI_ENTRY = "csi_entry"
    CSI_PARAM = "csi_param"
    CSI_INTERMEDIATE = "csi_intermediate"
    CSI_IGNORE = "csi_ignore"
    DCS_ENTRY = "dcs_entry"
    DCS_PARAM = "dcs_param"
    DCS_INTERMEDIATE = "dcs_intermediate"
    DCS_PASSTHROUGH = "dcs_passthrough"
    DCS_IGNORE = "dcs_ignore"
    OSC_STRING = "osc_string"
    APC_STRING = "apc_string"
    SOS_PM_STRING = "sos_pm_string"


_STRING_STATES = frozenset(
    {
        ParserState.DCS_PASSTHROUGH,
        ParserState.DCS_IGNORE,
        ParserState.OSC_STRING,
        ParserState.APC_STRING,
        ParserState.SOS_PM_STRING,
    }
)


def _is_c0(byte: int) -> bool:
    return byte < 0x20


def _is_param_byte(byte: int) -> bool:
    # digits plus ';' and ':' separators
    return 0x30 <= byte <= 0x3B


def _is_private_marker(byte: int) -> bool:
    return 0x3C <= byte <= 0x3F


def _is_intermediate(byte: int) -> bool:
    return 0x20 <= byte <= 0x2F


def _is_final(byte: int) -> bool:
    return 0x40 <= byte <= 0x7E


class VTParser:
    """Feeds bytes through the state machine and reports actions to ``actor``."""

    def __init__(self, actor: VTActor) -> None:
        self._actor = actor
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._state = ParserState.GROUND
        self._params: list[list[int | None]] = []
        self._group: list[int | None] = []
        self._param_count = 0
        self._current: int | None = None
        self._has_separator = False
        self._intermediates = bytearray()
        self._string = bytearray()

    @property
    def state(self) -> ParserState:
        return self._state

    def reset(self) -> None:
        """Drop any partial sequence and return to the ground state."""
        self._decoder.reset()
        self._state = ParserState.GROUND
        self._clear()
        self._string.clear()

    def feed(self, data: bytes) -> None:
        i = 0
        n = len(data)
        while i < n:
            if self._state is ParserState.GROUND:
                j = i
                while j < n and data[j] >= 0x20 and data[j] != DEL:
                    j += 1
                if j > i:
                    for char in self._decoder.decode(data[i:j]):
                        self._actor.print(char)
                    i = j
                    continue
            self._advance(data[i])
            i += 1

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _advance(self, byte: int) -> None:
        if byte == ESC:
            self._leave_state()
            self._enter(ParserState.ESCAPE)
            return
        if byte in (CAN, SUB):
            self._leave_state()
            self._state = ParserState.GROUND
            return

        state = self._state
        if state is ParserState.GROUND:
            self._flush_text()
            if _is_c0(byte):
                self._actor.execute(byte)
        elif state is ParserState.ESCAPE:
            self._on_escape(byte)
        elif state is ParserState.ESCAPE_INTERMEDIATE:
            self._on_escape_intermediate(byte)
        elif state is ParserState.CSI_ENTRY or state is ParserState.CSI_PARAM:
            self._on_csi_param(byte)
        elif state is ParserState.CSI_INTERMEDIATE:
            self._on_csi_intermediate(byte)
        elif state is ParserState.CSI_IGNORE:
            if _is_c0(byte):
                self._actor.execute(byte)
            elif _is_final(byte):
                self._state = ParserState.GROUND
        elif state is ParserState.DCS_ENTRY or state is ParserState.DCS_PARAM:
            self._on_dcs_param(byte)
        elif state is ParserState.DCS_INTERMEDIATE:
            self._on_dcs_intermediate(byte)
        elif state is ParserState.DCS_PASSTHROUGH:
            if byte != DEL:
                self._actor.dcs_put(byte)
        elif state is ParserState.OSC_STRING:
            if byte == BEL:
                self._leave_state()
                self._state = ParserState.GROUND
            elif not _is_c0(byte):
                self._string.append(byte)
        elif state is ParserState.APC_STRING:
            if not _is_c0(byte):
                self._string.append(byte)
        # DCS_IGNORE and SOS_PM_STRING swallow everything until ST

    def _on_escape(self, byte: int) -> None:
        if _is_c0(byte):
            self._actor.execute(byte)
        elif _is_intermediate(byte):
            self._intermediates.append(byte)
            self._state = ParserState.ESCAPE_INTERMEDIATE
        elif byte == 0x5B:  # '['
            self._enter(ParserState.CSI_ENTRY)
        elif byte == 0x5D:  # ']'
            self._enter(ParserState.OSC_STRING)
            self._actor.osc_start()
        elif byte == 0x50:  # 'P'
            self._enter(ParserState.DCS_ENTRY)
        elif byte == 0x5F:  # '_'
            self._enter(ParserState.APC_STRING)
            self._actor.apc_start()
        elif byte in (0x58, 0x5E):  # 'X' SOS, '^' PM
            self._enter(ParserState.SOS_PM_STRING)
        elif byte != DEL:
            self._actor.esc_dispatch(bytes(self._intermediates), chr(byte))
            self._state = ParserState.GROUND

    def _on_escape_intermediate(self, byte: int) -> None:
        if _is_c0(byte):
            self._actor.execute(byte)
        elif _is_intermediate(byte):
            self._intermediates.append(byte)
        elif byte != DEL:
            self._actor.esc_dispatch(bytes(self._intermediates), chr(byte))
            self._state = ParserState.GROUND

    def _on_csi_param(self, byte: int) -> None:
        if _is_c0(byte):
            self._actor.execute(byte)
        elif _is_param_byte(byte):
            self._collect_param(byte)
            self._state = ParserState.CSI_PARAM
        elif _is_private_marker(byte):
            if self._state is ParserState.CSI_ENTRY:
                self._intermediates.append(byte)
                self._state = ParserState.CSI_PARAM
            else:
                self._state = ParserState.CSI_IGNORE
        elif _is_intermediate(byte):
            self._intermediates.append(byte)
            self._state = ParserState.CSI_INTERMEDIATE
        elif _is_final(byte):
            self._actor.csi_dispatch(self._finish_params(), bytes(self._intermediates), chr(byte))
            self._state = ParserState.GROUND

    def _on_csi_intermediate(self, byte: int) -> None:
        if _is_c0(byte):
            self._actor.execute(byte)
        elif _is_intermediate(byte):
            self._intermediates.append(byte)
        elif _is_final(byte):
            self._actor.csi_dispatch(self._finish_params(), bytes(self._intermediates), chr(byte))
            self._state = ParserState.GROUND
        elif byte != DEL:
            self._state = ParserState.CSI_IGNORE

    def _on_dcs_param(self, byte: int) -> None:
        if _is_c0(byte) or byte == DEL:
            return
        if _is_param_byte(byte):
            self._collect_param(byte)
            self._state = ParserState.DCS_PARAM
        elif _is_private_marker(byte):
            if self._state is ParserState.DCS_ENTRY:
                self._intermediates.append(byte)
                self._state = ParserState.DCS_PARAM
            else:
                self._state = ParserState.DCS_IGNORE
        elif _is_intermediate(byte):
            self._intermediates.append(byte)
            self._state = ParserState.DCS_INTERMEDIATE
        elif _is_final(byte):
            self._hook(byte)

    def _on_dcs_intermediate(self, byte: int) -> None:
        if _is_c0(byte) or byte == DEL:
            return
        if _is_intermediate(byte):
            self._intermediates.append(byte)
        elif _is_final(byte):
            self._hook(byte)
        else:
            self._state = ParserState.DCS_IGNORE

    def _hook(self, final: int) -> None:
        self._actor.dcs_hook(self._finish_params(), bytes(self._intermediates), chr(final))
        self._state = ParserState.DCS_PASSTHROUGH

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _enter(self, state: ParserState) -> None:
        self._clear()
        self._string.clear()
        self._state = state

    def _leave_state(self) -> None:
        """Run the exit action of the current state before a transition."""
        state = self._state
        if state is ParserState.GROUND:
            self._flush_text()
        elif state is ParserState.DCS_PASSTHROUGH:
            self._actor.dcs_unhook()
        elif state is ParserState.OSC_STRING:
            self._actor.osc_dispatch(bytes(self._string))
            self._string.clear()
        elif state is ParserState.APC_STRING:
            self._actor.apc_dispatch(bytes(self._string))
            self._string.clear()
        elif state not in _STRING_STATES and state is not ParserState.ESCAPE:
            logger.debug("Abandoned partial sequence in state %s", state.value)

    def _flush_text(self) -> None:
        # A control byte interrupts any pending multi-byte character
        for char in self._decoder.decode(b"", final=True):
            self._actor.print(char)

    def _clear(self) -> None:
        self._params = []
        self._group = []
        self._param_count = 0
        self._current = None
        self._has_separator = False
        self._intermediates = bytearray()

    def _collect_param(self, byte: int) -> None:
        if byte in (0x3A, 0x3B):  # ':' or ';'
            if self._param_count < MAX_PARAMS:
                self._group.append(self._current)
                self._param_count += 1
            self._current = None
            self._has_separator = True
            if byte == 0x3B:
                # ':' continues a sub-parameter group, ';' closes it
                if self._group:
                    self._params.append(self._group)
                self._group = []
        else:
            digit = byte - 0x30
            value = (self._current or 0) * 10 + digit
            self._current = min(value, MAX_PARAM_VALUE)

    def _finish_params(self) -> Params:
        groups = list(self._params)
        group = list(self._group)
        if (self._current is not None or self._has_separator) and self._param_count < MAX_PARAMS:
            group.append(self._current)
        if group:
            groups.append(group)
        return Params(groups)

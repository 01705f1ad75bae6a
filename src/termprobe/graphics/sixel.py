"""Sixel-only view over captured graphics."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from termprobe.domain.models import Area, GraphicsProtocol, GraphicsRegion
from termprobe.errors import BoundsViolationError

if TYPE_CHECKING:
    from termprobe.screen.state import ScreenState


class SixelCapture:
    """Snapshot of the Sixel graphics a screen has seen.

    Regions of other protocols passed to the constructor are dropped.
    """

    def __init__(self, sequences: Iterable[GraphicsRegion] = ()) -> None:
        self._sequences = tuple(
            r for r in sequences if r.protocol is GraphicsProtocol.SIXEL
        )

    @classmethod
    def from_screen_state(cls, state: ScreenState) -> SixelCapture:
        return cls(state.sixel_regions())

    @property
    def sequences(self) -> list[GraphicsRegion]:
        return list(self._sequences)

    def is_empty(self) -> bool:
        return not self._sequences

    def __len__(self) -> int:
        return len(self._sequences)

    def sequences_in_area(self, area: Area) -> list[GraphicsRegion]:
        return [s for s in self._sequences if s.is_within(area)]

    def sequences_outside_area(self, area: Area) -> list[GraphicsRegion]:
        return [s for s in self._sequences if not s.is_within(area)]

    def assert_all_within(self, area: Area) -> None:
        """Raises BoundsViolationError when any Sixel lies outside ``area``."""
        outside = self.sequences_outside_area(area)
        if outside:
            positions = [s.position for s in outside]
            raise BoundsViolationError(
                area,
                outside,
                f"Found {len(outside)} Sixel sequence(s) outside area {area}: {positions}",
            )

    def differs_from(self, other: SixelCapture) -> bool:
        return self._sequences != other._sequences

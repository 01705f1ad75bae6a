"""Queries and assertions over inline graphics regions.

A :class:`GraphicsCapture` is an immutable snapshot of the graphics a
:class:`~termprobe.screen.ScreenState` has seen. Taking two snapshots
around a screen transition and comparing them with
:meth:`GraphicsCapture.differs_from` is the usual way to check that an
image was replaced or cleared.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator

from termprobe.domain.models import Area, GraphicsProtocol, GraphicsRegion
from termprobe.errors import BoundsViolationError, HarnessAssertionError

if TYPE_CHECKING:
    from termprobe.screen.state import ScreenState


class GraphicsCapture:
    """Snapshot of graphics regions across all protocols."""

    def __init__(self, regions: Iterable[GraphicsRegion] = ()) -> None:
        self._regions: tuple[GraphicsRegion, ...] = tuple(regions)

    @classmethod
    def from_screen_state(cls, state: ScreenState) -> GraphicsCapture:
        """Capture every region the screen has recorded, in creation order."""
        return cls(state.graphics_regions())

    @property
    def regions(self) -> list[GraphicsRegion]:
        return list(self._regions)

    def is_empty(self) -> bool:
        return not self._regions

    def __len__(self) -> int:
        return len(self._regions)

    def __iter__(self) -> Iterator[GraphicsRegion]:
        return iter(self._regions)

    def __repr__(self) -> str:
        return f"GraphicsCapture({len(self._regions)} region(s))"

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def regions_in_area(self, area: Area) -> list[GraphicsRegion]:
        """Regions entirely contained in ``area`` (row, col, width, height)."""
        return [r for r in self._regions if r.is_within(area)]

    def regions_outside_area(self, area: Area) -> list[GraphicsRegion]:
        """Regions not entirely contained in ``area``."""
        return [r for r in self._regions if not r.is_within(area)]

    def regions_overlapping(self, area: Area) -> list[GraphicsRegion]:
        return [r for r in self._regions if r.overlaps(area)]

    def by_protocol(self, protocol: GraphicsProtocol) -> list[GraphicsRegion]:
        return [r for r in self._regions if r.protocol is protocol]

    def count_by_protocol(self, protocol: GraphicsProtocol) -> int:
        return len(self.by_protocol(protocol))

    # ------------------------------------------------------------------
    # Assertions
    # ------------------------------------------------------------------

    def assert_all_within(self, area: Area) -> None:
        """Check that every region fits inside ``area``.

        Raises:
            BoundsViolationError: Listing the protocol and position of every
                region that is not contained.
        """
        outside = self.regions_outside_area(area)
        if outside:
            raise BoundsViolationError(area, outside)

    def assert_protocol_exists(self, protocol: GraphicsProtocol) -> None:
        """Check that at least one region of ``protocol`` was captured.

        Raises:
            HarnessAssertionError: If none was.
        """
        if self.count_by_protocol(protocol) == 0:
            raise HarnessAssertionError(f"No {protocol.display_name} graphics found")

    def differs_from(self, other: GraphicsCapture) -> bool:
        """True when the two snapshots hold different regions."""
        return self._regions != other._regions

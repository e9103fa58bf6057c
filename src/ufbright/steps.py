"""
Brightness step table and quantizer.

The display firmware only honours a fixed set of brightness levels.  A raw
reading from the device may sit between two of them (firmware rounding,
transport noise), so every value is snapped onto the table before it is
shown as a percentage or written back.

Usage:
    from ufbright.steps import StepTable

    table = StepTable(540 * i for i in range(1, 101))
    step = table.nearest(0x0200)      # 540
    table.percent_index(step)         # 1
"""

from __future__ import annotations

from typing import Iterable, Iterator, Tuple

# 16-bit field in the feature report
MAX_RAW_VALUE = 0xFFFF


class InvalidStepError(ValueError):
    """Value is not a member of the step table."""


class StepTable:
    """Immutable, strictly increasing sequence of firmware brightness levels.

    Index 0 is 1%, the last index is 100% (for a 100-entry table).
    """

    __slots__ = ('_steps', '_index')

    def __init__(self, steps: Iterable[int]):
        values: Tuple[int, ...] = tuple(int(s) for s in steps)
        if not values:
            raise ValueError("step table must not be empty")
        for prev, cur in zip(values, values[1:]):
            if cur <= prev:
                raise ValueError(
                    f"step table must be strictly increasing ({prev} >= {cur})")
        if values[0] < 0 or values[-1] > MAX_RAW_VALUE:
            raise ValueError("step table values must fit in 16 bits")
        self._steps = values
        self._index = {value: i for i, value in enumerate(values)}

    # -- Sequence protocol ----------------------------------------------

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[int]:
        return iter(self._steps)

    def __getitem__(self, index: int) -> int:
        return self._steps[index]

    def __contains__(self, value: object) -> bool:
        return value in self._index

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StepTable):
            return NotImplemented
        return self._steps == other._steps

    def __hash__(self) -> int:
        return hash(self._steps)

    def __repr__(self) -> str:
        return (f"StepTable({len(self._steps)} steps, "
                f"{self._steps[0]}..{self._steps[-1]})")

    @property
    def first(self) -> int:
        return self._steps[0]

    @property
    def last(self) -> int:
        return self._steps[-1]

    # -- Quantizer ------------------------------------------------------

    def nearest(self, raw: int) -> int:
        """Return the table entry closest to *raw*.

        Ties resolve to the lower entry: the scan runs in ascending order
        and only replaces the running best on a strict improvement.
        """
        best = self._steps[0]
        best_diff = abs(raw - best)
        for step in self._steps[1:]:
            diff = abs(raw - step)
            if diff < best_diff:
                best, best_diff = step, diff
            elif step > raw:
                # Ascending table: once past raw, distances only grow
                break
        return best

    def percent_index(self, step: int) -> int:
        """Return the 1-based position of *step* in the table.

        Raises:
            InvalidStepError: *step* is not a table member.  Callers are
                expected to pass values produced by :meth:`nearest`.
        """
        try:
            return self._index[step] + 1
        except KeyError:
            raise InvalidStepError(f"{step} is not a valid brightness step") from None

    def value_for_percent(self, percent: int) -> int:
        """Inverse of :meth:`percent_index`."""
        if not 1 <= percent <= len(self._steps):
            raise ValueError(f"percent must be 1..{len(self._steps)}, got {percent}")
        return self._steps[percent - 1]


# =========================================================================
# LG UltraFine table (all supported models share it)
# =========================================================================
# 1% .. 100% in 540-unit increments: 540, 1080, ..., 53460, 54000

UNIT_STEP = 540

ULTRAFINE_STEPS = StepTable(UNIT_STEP * i for i in range(1, 101))


def nearest(raw: int) -> int:
    """Quantize *raw* onto the UltraFine table."""
    return ULTRAFINE_STEPS.nearest(raw)


def percent_index(step: int) -> int:
    """1-based percentage of an UltraFine table member."""
    return ULTRAFINE_STEPS.percent_index(step)

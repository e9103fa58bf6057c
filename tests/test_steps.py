"""Tests for the brightness step table and quantizer."""

import pytest

from ufbright.constants import MAX_BRIGHTNESS, MIN_BRIGHTNESS
from ufbright.steps import (
    ULTRAFINE_STEPS,
    UNIT_STEP,
    InvalidStepError,
    StepTable,
    nearest,
    percent_index,
)


# =========================================================================
# Table construction
# =========================================================================

class TestStepTableConstruction:

    def test_ultrafine_table_shape(self):
        assert len(ULTRAFINE_STEPS) == 100
        assert ULTRAFINE_STEPS.first == 540
        assert ULTRAFINE_STEPS.last == 54000
        assert ULTRAFINE_STEPS[49] == 27000

    def test_ultrafine_table_spacing(self):
        values = list(ULTRAFINE_STEPS)
        assert all(b - a == UNIT_STEP for a, b in zip(values, values[1:]))

    def test_last_step_is_device_maximum(self):
        assert ULTRAFINE_STEPS.last == MAX_BRIGHTNESS

    def test_rejects_empty(self):
        with pytest.raises(ValueError):
            StepTable([])

    def test_rejects_unsorted(self):
        with pytest.raises(ValueError):
            StepTable([10, 30, 20])

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError):
            StepTable([10, 20, 20])

    def test_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            StepTable([100, 0x10000])

    def test_equality(self):
        assert StepTable([1, 2, 3]) == StepTable((1, 2, 3))
        assert StepTable([1, 2, 3]) != StepTable([1, 2, 4])

    def test_membership(self):
        assert 29700 in ULTRAFINE_STEPS
        assert 29701 not in ULTRAFINE_STEPS
        assert MIN_BRIGHTNESS not in ULTRAFINE_STEPS


# =========================================================================
# nearest()
# =========================================================================

class TestNearest:

    def test_exact_member_is_unchanged(self):
        for step in ULTRAFINE_STEPS:
            assert nearest(step) == step

    def test_low_reading_snaps_to_first_step(self):
        assert nearest(0x0200) == 540
        assert nearest(0) == 540
        assert nearest(MIN_BRIGHTNESS) == 540

    def test_high_reading_snaps_to_last_step(self):
        assert nearest(0xFFFF) == 54000

    def test_rounds_to_closer_neighbour(self):
        assert nearest(27269) == 27000
        assert nearest(27271) == 27540

    def test_tie_prefers_lower_step(self):
        # 27270 is exactly halfway between 27000 and 27540
        assert nearest(27270) == 27000

    def test_tie_on_small_table(self):
        table = StepTable([10, 20, 30])
        assert table.nearest(15) == 10
        assert table.nearest(25) == 20

    def test_result_is_closest_member(self):
        values = list(ULTRAFINE_STEPS)
        for raw in range(0, 0xFFFF + 1, 37):
            got = nearest(raw)
            assert got in ULTRAFINE_STEPS
            best = min(abs(raw - v) for v in values)
            assert abs(raw - got) == best
            # No equally close entry below the chosen one
            assert not any(abs(raw - v) == best and v < got for v in values)


# =========================================================================
# percent_index() / value_for_percent()
# =========================================================================

class TestPercentIndex:

    def test_first_and_last(self):
        assert percent_index(540) == 1
        assert percent_index(54000) == 100

    def test_scenario_low_reading_is_one_percent(self):
        assert percent_index(nearest(0x0200)) == 1

    def test_non_member_raises(self):
        with pytest.raises(InvalidStepError):
            percent_index(541)

    def test_invalid_step_is_value_error(self):
        assert issubclass(InvalidStepError, ValueError)

    def test_quantized_percent_in_range_and_stable(self):
        for raw in range(MIN_BRIGHTNESS, MAX_BRIGHTNESS + 1, 53):
            pct = percent_index(nearest(raw))
            assert 1 <= pct <= 100
            assert percent_index(nearest(raw)) == pct

    def test_value_for_percent_inverse(self):
        for pct in (1, 50, 100):
            assert ULTRAFINE_STEPS.percent_index(ULTRAFINE_STEPS.value_for_percent(pct)) == pct

    def test_value_for_percent_bounds(self):
        with pytest.raises(ValueError):
            ULTRAFINE_STEPS.value_for_percent(0)
        with pytest.raises(ValueError):
            ULTRAFINE_STEPS.value_for_percent(101)

"""Tests for the half-open interval overlap rule."""

import pytest

from conftest import at
from tms.domain.errors import InvalidInput
from tms.services.overlap import intervals_overlap, require_interval


def test_partial_overlap():
    assert intervals_overlap(at(14), at(15), at(14, 30), at(15, 30))


def test_overlap_is_symmetric():
    pairs = [
        (at(9), at(10), at(9, 30), at(11)),
        (at(9), at(10), at(10), at(11)),
        (at(9), at(12), at(10), at(11)),
        (at(13), at(14), at(9), at(10)),
    ]
    for a_start, a_end, b_start, b_end in pairs:
        assert intervals_overlap(a_start, a_end, b_start, b_end) == intervals_overlap(
            b_start, b_end, a_start, a_end
        )


def test_exact_boundary_touch_is_not_overlap():
    """A meeting ending at 15:00 does not collide with one starting at 15:00."""
    assert not intervals_overlap(at(14), at(15), at(15), at(16))
    assert not intervals_overlap(at(15), at(16), at(14), at(15))


def test_nested_interval_overlaps():
    assert intervals_overlap(at(9), at(17), at(12), at(13))
    assert intervals_overlap(at(12), at(13), at(9), at(17))


def test_disjoint_intervals():
    assert not intervals_overlap(at(8), at(9), at(10), at(11))


def test_require_interval_missing_bound():
    with pytest.raises(InvalidInput, match="required"):
        require_interval(at(9), None)


@pytest.mark.parametrize("end_hour", [9, 8])
def test_require_interval_rejects_non_positive_length(end_hour):
    with pytest.raises(InvalidInput, match="end_time must be after start_time"):
        require_interval(at(9), at(end_hour))


def test_require_interval_returns_interval():
    interval = require_interval(at(9), at(10))
    assert interval.start == at(9)
    assert interval.end == at(10)

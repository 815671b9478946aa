"""Tests for stride downsampling."""

from decimal import Decimal

import pytest

from coinfeed.indicators.downsample import downsample

from conftest import make_series


def _series(n: int):
    return make_series([Decimal(i) for i in range(n)], step_ms=3_600_000)


class TestDownsample:
    @pytest.mark.parametrize("n", [201, 399, 400, 401, 1000, 1234])
    def test_bounded_and_keeps_last(self, n: int) -> None:
        series = _series(n)
        result = downsample(series, 200)
        assert len(result) <= 200
        assert result.last == series.last
        assert result.points[0] == series.points[0]

    def test_short_series_unchanged(self) -> None:
        series = _series(150)
        assert downsample(series, 200) is series

    def test_stride(self) -> None:
        result = downsample(_series(1000), 200)
        # step = ceil(1000 / 200) = 5
        assert [p.price for p in result.points[:3]] == [Decimal(0), Decimal(5), Decimal(10)]

    def test_last_appended_when_off_stride(self) -> None:
        # step 2 keeps 0, 2, ..., 200 (101 points); 201 is appended
        result = downsample(_series(202), 200)
        assert len(result) == 102
        assert result.last.price == Decimal(201)

    def test_timestamps_stay_increasing(self) -> None:
        result = downsample(_series(777), 50)
        assert result.timestamps == sorted(result.timestamps)
        assert len(set(result.timestamps)) == len(result)

    def test_single_point_budget(self) -> None:
        series = _series(10)
        result = downsample(series, 1)
        assert len(result) == 1
        assert result.last == series.last

    def test_default_bound_is_200(self) -> None:
        assert len(downsample(_series(5000))) <= 200

    def test_invalid_bound(self) -> None:
        with pytest.raises(ValueError):
            downsample(_series(10), 0)

"""
Tests for the fixed-length metric history buffers.
"""

import pytest

from docker_monitor.stats_history import HistoryBuffer, StatsHistoryBuffer


class TestHistoryBuffer:

    def test_drops_oldest_in_fifo_order(self):
        buffer = HistoryBuffer(3)
        for value in [1, 2, 3, 4]:
            buffer.push(value)

        assert buffer.values() == [2, 3, 4]

    def test_never_grows_beyond_capacity(self):
        buffer = HistoryBuffer(5)
        for value in range(100):
            buffer.push(value)
            assert len(buffer) <= 5

        assert buffer.values() == [95, 96, 97, 98, 99]

    def test_partially_filled(self):
        buffer = HistoryBuffer(4)
        buffer.push(1.5)

        assert buffer.values() == [1.5]

    def test_values_is_a_copy(self):
        buffer = HistoryBuffer(2)
        buffer.push(1)
        buffer.values().append(99)

        assert buffer.values() == [1]

    @pytest.mark.parametrize("capacity", [0, -3])
    def test_rejects_non_positive_capacity(self, capacity):
        with pytest.raises(ValueError):
            HistoryBuffer(capacity)


class TestStatsHistoryBuffer:

    def test_records_both_series(self):
        history = StatsHistoryBuffer(3)
        history.record(10.0, 40.0)
        history.record(20.0, 41.0)

        assert history.cpu.values() == [10.0, 20.0]
        assert history.temperature.values() == [40.0, 41.0]

    def test_missing_temperature_skipped_not_zero_filled(self):
        history = StatsHistoryBuffer(3)
        history.record(10.0, None)
        history.record(20.0, 45.0)

        assert history.cpu.values() == [10.0, 20.0]
        assert history.temperature.values() == [45.0]

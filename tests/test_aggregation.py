"""Tests del pipeline de agregación: suavizado, ventana, estadísticas, series y motor.

Ejecutar:
    pytest tests/test_aggregation.py -v
"""

import random
from datetime import datetime, timedelta, timezone

import pytest

from airsense_api.aggregation import (
    AggregationEngine,
    ChartSeriesBuilder,
    RollingWindowStore,
    SmoothingAggregator,
    StatisticsCalculator,
    celsius_to_fahrenheit,
)
from airsense_api.core.domain import NO_DATA, Channel, ReadingSet, StatsSnapshot

from conftest import FixedRandom

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def ts(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


# =============================================================================
# SUAVIZADO
# =============================================================================

class TestSmoothing:

    def test_ema_sequence_without_jitter(self, fixed_rng):
        smoother = SmoothingAggregator(alpha=0.4, rng=fixed_rng)

        out = []
        previous = None
        for raw in (20.0, 22.0, 24.0):
            previous = smoother.smooth(raw, previous)
            out.append(round(previous, 2))

        assert out == [20.00, 20.80, 22.08]

    def test_first_value_passes_through(self, fixed_rng):
        smoother = SmoothingAggregator(rng=fixed_rng)
        assert smoother.smooth(1013.4, None) == 1013.4

    def test_alpha_one_disables_smoothing(self, fixed_rng):
        smoother = SmoothingAggregator(alpha=1.0, rng=fixed_rng)
        assert smoother.smooth(30.0, 10.0) == 30.0

    @pytest.mark.parametrize("u, expected", [(1.0, 100.5), (-1.0, 99.5), (0.5, 100.25)])
    def test_jitter_is_proportional(self, u, expected):
        smoother = SmoothingAggregator(rng=FixedRandom(u))
        assert smoother.smooth(100.0, None) == pytest.approx(expected)

    def test_jitter_stays_within_bounds(self):
        smoother = SmoothingAggregator(rng=random.Random(7))
        for _ in range(200):
            assert 99.5 <= smoother.smooth(100.0, None) <= 100.5

    def test_zero_jitter_fraction_is_exact(self):
        smoother = SmoothingAggregator(jitter_fraction=0.0, rng=FixedRandom(1.0))
        assert smoother.smooth(22.0, 20.0) == pytest.approx(20.8)

    def test_seed_makes_jitter_reproducible(self):
        a = SmoothingAggregator(seed=42)
        b = SmoothingAggregator(seed=42)
        assert [a.smooth(50.0, None) for _ in range(5)] == [b.smooth(50.0, None) for _ in range(5)]

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_invalid_alpha(self, alpha):
        with pytest.raises(ValueError):
            SmoothingAggregator(alpha=alpha)

    def test_negative_jitter_fraction(self):
        with pytest.raises(ValueError):
            SmoothingAggregator(jitter_fraction=-0.01)


# =============================================================================
# VENTANA
# =============================================================================

class TestRollingWindow:

    def test_latest_is_none_when_empty(self):
        store = RollingWindowStore()
        assert store.latest(Channel.TEMPERATURE) is None
        assert len(store) == 0

    def test_fifo_eviction_at_capacity(self):
        store = RollingWindowStore(capacity=3)
        for i in range(5):
            store.append(Channel.TEMPERATURE, float(i), ts(i))

        assert store.all(Channel.TEMPERATURE) == [2.0, 3.0, 4.0]
        assert store.timestamps() == [ts(2), ts(3), ts(4)]
        assert store.latest(Channel.TEMPERATURE) == 4.0

    def test_length_never_exceeds_capacity(self):
        store = RollingWindowStore(capacity=100)
        for i in range(250):
            store.append_many({ch: float(i) for ch in Channel}, ts(i))
            assert len(store) <= 100
            assert all(store.length(ch) <= 100 for ch in Channel)
        assert store.all(Channel.GAS)[0] == 150.0

    def test_one_timestamp_per_message(self):
        store = RollingWindowStore()
        store.append_many({Channel.TEMPERATURE: 20.0, Channel.HUMIDITY: 40.0}, ts(0))
        store.append_many({Channel.TEMPERATURE: 21.0}, ts(1))

        assert store.timestamps() == [ts(0), ts(1)]
        assert store.length(Channel.TEMPERATURE) == 2
        assert store.length(Channel.HUMIDITY) == 1
        assert store.length(Channel.PRESSURE) == 0

    def test_empty_message_is_ignored(self):
        store = RollingWindowStore()
        store.append_many({}, ts(0))
        assert len(store) == 0

    def test_clear(self):
        store = RollingWindowStore()
        store.append(Channel.PRESSURE, 1000.0, ts(0))
        store.clear()
        assert store.all(Channel.PRESSURE) == []
        assert store.timestamps() == []

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            RollingWindowStore(capacity=0)


# =============================================================================
# ESTADÍSTICAS
# =============================================================================

class TestStatistics:

    def test_min_max_avg(self):
        stats = StatisticsCalculator().compute([10.0, 20.0, 30.0])
        assert (stats.min, stats.max, stats.avg) == (10.0, 30.0, 20.0)

    def test_rounded_to_two_decimals(self):
        stats = StatisticsCalculator().compute([1.111, 2.222, 3.333])
        assert (stats.min, stats.max, stats.avg) == (1.11, 3.33, 2.22)

    def test_empty_window_uses_sentinel(self):
        stats = StatisticsCalculator().compute([])
        assert stats == StatsSnapshot(NO_DATA, NO_DATA, NO_DATA)
        assert stats.is_empty
        assert stats.to_dict() == {"min": "--", "max": "--", "avg": "--"}

    def test_to_dict_formats_two_decimals(self):
        stats = StatisticsCalculator().compute([10.0, 20.0, 30.0])
        assert stats.to_dict() == {"min": "10.00", "max": "30.00", "avg": "20.00"}

    def test_for_all_covers_every_channel(self):
        store = RollingWindowStore()
        store.append(Channel.HUMIDITY, 40.0, ts(0))

        stats = StatisticsCalculator().for_all(store)

        assert set(stats) == set(Channel)
        assert stats[Channel.HUMIDITY].avg == 40.0
        assert stats[Channel.GAS].is_empty


# =============================================================================
# SERIES
# =============================================================================

class TestChartSeries:

    def test_points_pair_values_with_timestamps(self):
        store = RollingWindowStore()
        for i, value in enumerate([20.0, 21.0, 22.0]):
            store.append(Channel.TEMPERATURE, value, ts(i))

        series = ChartSeriesBuilder().build(store, Channel.TEMPERATURE)

        assert [(p.x, p.y) for p in series] == [(ts(0), 20.0), (ts(1), 21.0), (ts(2), 22.0)]
        assert len(series) == 3

    def test_series_is_restartable(self):
        store = RollingWindowStore()
        store.append(Channel.GAS, 5.0, ts(0))
        series = ChartSeriesBuilder().build(store, Channel.GAS)

        assert list(series) == list(series)

    def test_series_is_snapshot_of_build_time(self):
        store = RollingWindowStore()
        store.append(Channel.GAS, 5.0, ts(0))
        series = ChartSeriesBuilder().build(store, Channel.GAS)
        store.append(Channel.GAS, 6.0, ts(1))

        assert len(series) == 1

    def test_partial_channel_pairing_clamps_index(self):
        store = RollingWindowStore(capacity=2)
        store.append_many({Channel.HUMIDITY: 50.0}, ts(0))
        store.append_many({Channel.TEMPERATURE: 1.0}, ts(1))
        store.append_many({Channel.TEMPERATURE: 2.0}, ts(2))

        series = ChartSeriesBuilder().build_all(store)

        assert [(p.x, p.y) for p in series[Channel.HUMIDITY]] == [(ts(1), 50.0)]
        assert [(p.x, p.y) for p in series[Channel.TEMPERATURE]] == [(ts(1), 1.0), (ts(2), 2.0)]

    def test_empty_channel_has_no_points(self):
        series = ChartSeriesBuilder().build(RollingWindowStore(), Channel.PRESSURE)
        assert list(series) == []
        assert series.to_list() == []

    def test_to_list(self):
        store = RollingWindowStore()
        store.append(Channel.TEMPERATURE, 20.0, ts(0))
        points = ChartSeriesBuilder().build(store, Channel.TEMPERATURE).to_list()
        assert points == [{"x": ts(0).isoformat(), "y": 20.0}]

    def test_converted_series(self):
        store = RollingWindowStore()
        store.append(Channel.TEMPERATURE, 100.0, ts(0))
        series = ChartSeriesBuilder().build(store, Channel.TEMPERATURE)

        fahrenheit = series.converted(celsius_to_fahrenheit)

        assert [p.y for p in fahrenheit] == [212.0]
        assert [p.y for p in series] == [100.0]

    @pytest.mark.parametrize("celsius, expected", [(0, 32.0), (100, 212.0), (-40, -40.0)])
    def test_celsius_to_fahrenheit(self, celsius, expected):
        assert celsius_to_fahrenheit(celsius) == pytest.approx(expected)

    def test_conversion_passes_sentinel(self):
        assert celsius_to_fahrenheit(NO_DATA) == NO_DATA


# =============================================================================
# MOTOR
# =============================================================================

class TestAggregationEngine:

    def test_empty_snapshot(self, engine):
        snapshot = engine.snapshot()

        assert all(v == NO_DATA for v in snapshot.current_values.values())
        assert all(s.is_empty for s in snapshot.stats_by_channel.values())

    def test_ingest_smooths_against_window(self, engine):
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 20.0}, ts(0)))
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 22.0}, ts(1)))
        snapshot = engine.ingest(ReadingSet({Channel.TEMPERATURE: 24.0}, ts(2)))

        assert [round(v, 2) for v in engine.store.all(Channel.TEMPERATURE)] == [20.0, 20.8, 22.08]
        assert snapshot.current_values[Channel.TEMPERATURE] == pytest.approx(22.08)
        assert snapshot.stats_by_channel[Channel.TEMPERATURE].max == 22.08

    def test_partial_update_leaves_other_channels(self, engine):
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 20.0, Channel.HUMIDITY: 40.0}, ts(0)))
        snapshot = engine.ingest(ReadingSet({Channel.HUMIDITY: 50.0}, ts(1)))

        assert snapshot.current_values[Channel.TEMPERATURE] == 20.0
        assert snapshot.current_values[Channel.HUMIDITY] == pytest.approx(44.0)
        assert snapshot.current_values[Channel.PRESSURE] == NO_DATA
        assert engine.store.length(Channel.TEMPERATURE) == 1
        assert len(engine.store) == 2

    def test_last_readings_keep_raw_and_smoothed(self, engine):
        engine.ingest(ReadingSet({Channel.PRESSURE: 1000.0}, ts(0)))
        engine.ingest(ReadingSet({Channel.PRESSURE: 1010.0}, ts(1)))

        reading = engine.last_readings[Channel.PRESSURE]
        assert reading.raw_value == 1010.0
        assert reading.smoothed_value == pytest.approx(1004.0)
        assert reading.timestamp == ts(1)

    def test_subscribers_receive_snapshots(self, engine):
        received = []
        unsubscribe = engine.subscribe(received.append)

        engine.ingest(ReadingSet({Channel.GAS: 5000.0}, ts(0)))
        unsubscribe()
        engine.ingest(ReadingSet({Channel.GAS: 5000.0}, ts(1)))

        assert len(received) == 1
        assert received[0].current_values[Channel.GAS] == 5000.0

    def test_failing_listener_does_not_stop_pipeline(self, engine):
        received = []

        def broken(snapshot):
            raise RuntimeError("render failed")

        engine.subscribe(broken)
        engine.subscribe(received.append)
        engine.ingest(ReadingSet({Channel.GAS: 1.0}, ts(0)))

        assert len(received) == 1
        assert engine.store.length(Channel.GAS) == 1

    def test_empty_sample_is_ignored(self, engine):
        engine.ingest(ReadingSet({}, ts(0)))
        assert len(engine.store) == 0

    def test_window_capacity_applies(self):
        engine = AggregationEngine(
            smoother=SmoothingAggregator(jitter_fraction=0.0),
            store=RollingWindowStore(capacity=100),
        )
        for i in range(150):
            engine.ingest(ReadingSet({ch: 1.0 for ch in Channel}, ts(i)))

        snapshot = engine.snapshot()
        assert len(snapshot.series_by_channel[Channel.TEMPERATURE]) == 100
        assert engine.stats["window_size"] == 100

    def test_snapshot_to_dict(self, engine):
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 21.5}, ts(0)))
        data = engine.snapshot().to_dict()

        assert data["current_values"]["temperature"] == "21.50"
        assert data["current_values"]["gas"] == "--"
        assert data["stats_by_channel"]["temperature"] == {
            "min": "21.50", "max": "21.50", "avg": "21.50",
        }
        assert data["series_by_channel"]["temperature"] == [
            {"x": ts(0).isoformat(), "y": 21.5}
        ]

    def test_reset(self, engine):
        engine.ingest(ReadingSet({Channel.TEMPERATURE: 20.0}, ts(0)))
        engine.reset()

        assert engine.snapshot().current_values[Channel.TEMPERATURE] == NO_DATA
        assert engine.last_readings == {}


class TestReadingSet:

    def test_values_are_copied(self):
        values = {Channel.TEMPERATURE: 20.0}
        sample = ReadingSet(values, ts(0))
        values[Channel.HUMIDITY] = 1.0

        assert Channel.HUMIDITY not in sample.values
        with pytest.raises(TypeError):
            sample.values[Channel.GAS] = 1.0

    def test_is_complete(self):
        assert ReadingSet({ch: 1.0 for ch in Channel}).is_complete
        assert not ReadingSet({Channel.GAS: 1.0}).is_complete

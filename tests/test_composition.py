"""
Tests for the daily lifestyle composition.

Covers: pass-1 normalization rules, per-metric rescale to the observed
peak, per-day sum-to-one, empty days, same-day grouping, date ordering
and catalog validation.
"""
import math

import pytest

from analytics.composition import (
    DEFAULT_METRICS,
    CompositionFrame,
    CompositionNormalizer,
    MetricConfig,
)
from constants import COMPOSITION_TOLERANCE, LIFESTYLE_METRICS, LINEAR, SCALE
from factor_extractor import MISSING
from records import RecordSet


# ─── Pass 1 ─────────────────────────────────────────────────


class TestMetricNormalize:

    def test_linear(self):
        m = MetricConfig("sleep_hours", "Sleep", 12, LINEAR)
        assert m.normalize(6) == pytest.approx(5.0)
        assert m.normalize(12) == pytest.approx(10.0)

    def test_linear_clamps_above_max(self):
        m = MetricConfig("sleep_hours", "Sleep", 12, LINEAR)
        assert m.normalize(15) == pytest.approx(10.0)

    def test_scale(self):
        m = MetricConfig("food_quality", "Food", 10, SCALE)
        assert m.normalize(1) == 0.0
        assert m.normalize(10) == pytest.approx(10.0)
        assert m.normalize(5.5) == pytest.approx(5.0)

    def test_scale_below_one_clamped_to_zero(self):
        m = MetricConfig("food_quality", "Food", 10, SCALE)
        assert m.normalize(0.5) == 0.0

    @pytest.mark.parametrize("raw", [None, MISSING, float("nan"), -3, 0, "abc"])
    def test_absent_readings_count_as_zero(self, raw):
        assert MetricConfig("meals", "Meals", 10).normalize(raw) == 0.0

    def test_invalid_configs(self):
        with pytest.raises(ValueError):
            MetricConfig("x", "X", 0)
        with pytest.raises(ValueError):
            MetricConfig("x", "X", 1, SCALE)
        with pytest.raises(ValueError):
            MetricConfig("x", "X", 10, "log")


# ─── Catalog ────────────────────────────────────────────────


class TestCatalog:

    def test_default_order_matches_constants(self):
        assert [m.metric_id for m in DEFAULT_METRICS] == [m[0] for m in LIFESTYLE_METRICS]
        assert DEFAULT_METRICS[-1].metric_id == "cannabis_amount"

    def test_set_catalog_rejected(self):
        with pytest.raises(TypeError):
            CompositionNormalizer(set(DEFAULT_METRICS))

    def test_duplicate_ids_rejected(self):
        m = MetricConfig("meals", "Meals", 10)
        with pytest.raises(ValueError):
            CompositionNormalizer([m, m])

    def test_empty_catalog_rejected(self):
        with pytest.raises(ValueError):
            CompositionNormalizer([])


# ─── Full composition ───────────────────────────────────────


@pytest.fixture
def mixed_days(make_record):
    return RecordSet([
        make_record(0, sleep_hours=8, sleep_quality=7, social_time=2, meals=3, food_quality=6),
        make_record(1, sleep_hours=6, work_hours=9, exercise=True, exercise_time=45,
                    alcohol=True, alcohol_units=2),
        make_record(2),
        make_record(3, cannabis=True, cannabis_amount=0.05, meals=2),
    ])


class TestComposeDaily:

    def test_one_frame_per_day_in_catalog_order(self, mixed_days):
        frames = CompositionNormalizer().compose_daily(mixed_days)
        assert len(frames) == 4
        for frame in frames:
            assert [m for m, _ in frame.proportions] == [m[0] for m in LIFESTYLE_METRICS]

    def test_non_empty_days_sum_to_one(self, mixed_days):
        frames = CompositionNormalizer().compose_daily(mixed_days)
        for frame in frames:
            if not frame.is_empty:
                assert abs(frame.total - 1.0) <= COMPOSITION_TOLERANCE
                assert all(0.0 <= p <= 1.0 for _, p in frame.proportions)

    def test_empty_day_stays_zero(self, mixed_days):
        frames = CompositionNormalizer().compose_daily(mixed_days)
        empty = frames[2]
        assert empty.is_empty
        assert empty.total == 0.0

    def test_single_metric_day_gets_everything(self, make_record):
        rs = RecordSet([make_record(0, sleep_hours=8), make_record(1, sleep_hours=4)])
        frames = CompositionNormalizer().compose_daily(rs)
        assert frames[0].get("sleep_hours") == pytest.approx(1.0)
        assert frames[1].get("sleep_hours") == pytest.approx(1.0)

    def test_peak_day_rescales_to_exactly_one(self, mixed_days):
        normalizer = CompositionNormalizer()
        raw = normalizer._pass1_normalize(mixed_days)
        scaled = normalizer._pass2_rescale(raw)
        for metric in raw.columns:
            peak = raw[metric].max()
            if peak > 0:
                assert scaled.loc[raw[metric].idxmax(), metric] == 1.0
                assert scaled[metric].max() == 1.0
            else:
                assert (scaled[metric] == 0.0).all()

    def test_rescale_is_independent_per_metric(self, make_record):
        rs = RecordSet([
            make_record(0, sleep_hours=12, meals=1),
            make_record(1, sleep_hours=6, meals=2),
        ])
        normalizer = CompositionNormalizer()
        scaled = normalizer._pass2_rescale(normalizer._pass1_normalize(rs))
        assert list(scaled["sleep_hours"]) == pytest.approx([1.0, 0.5])
        assert list(scaled["meals"]) == pytest.approx([0.5, 1.0])

    def test_same_day_records_averaged(self, make_record):
        rs = RecordSet([make_record(0, sleep_hours=6), make_record(0, sleep_hours=12),
                        make_record(1, sleep_hours=3)])
        normalizer = CompositionNormalizer()
        raw = normalizer._pass1_normalize(rs)
        assert len(raw) == 2
        assert raw["sleep_hours"].iloc[0] == pytest.approx(7.5)
        assert len(normalizer.compose_daily(rs)) == 2

    def test_grouped_by_date_not_position(self, make_record):
        rs = RecordSet([make_record(5, sleep_hours=6), make_record(1, meals=4),
                        make_record(3, work_hours=8)])
        frames = CompositionNormalizer().compose_daily(rs)
        assert [f.date for f in frames] == sorted(f.date for f in frames)
        assert frames[0].get("meals") == pytest.approx(1.0)

    def test_stale_amount_ignored_when_flag_off(self, make_record):
        rs = RecordSet([make_record(0, exercise=False, exercise_time=60, sleep_hours=8)])
        frame = CompositionNormalizer().compose_daily(rs)[0]
        assert frame.get("exercise_time") == 0.0
        assert frame.get("sleep_hours") == pytest.approx(1.0)

    def test_custom_catalog_last_metric(self, make_record):
        metrics = [MetricConfig("meals", "Meals", 10), MetricConfig("sleep_hours", "Sleep", 12)]
        rs = RecordSet([make_record(0, meals=3, sleep_hours=7), make_record(1, meals=1)])
        frames = CompositionNormalizer(metrics).compose_daily(rs)
        assert [m for m, _ in frames[0].proportions] == ["meals", "sleep_hours"]
        assert math.isclose(frames[0].total, 1.0, abs_tol=COMPOSITION_TOLERANCE)

    def test_empty_input(self):
        assert CompositionNormalizer().compose_daily([]) == []

    def test_as_dict(self, mixed_days):
        d = CompositionNormalizer().compose_daily(mixed_days)[0].as_dict()
        assert d["date"] == "2026-01-01"
        assert d["proportions"][0]["metric_id"] == "sleep_hours"

    def test_frame_get_unknown_metric(self):
        frame = CompositionFrame(date=None, proportions=(("a", 1.0),))
        with pytest.raises(KeyError):
            frame.get("b")

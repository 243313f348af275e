"""Tests for the Summarizer — trend, uptime, health and numpy baselines."""

from datetime import datetime, timedelta, timezone

import pytest

from checkgate.engine.alert_evaluator import evaluate
from checkgate.engine.summarizer import (
    Summarizer,
    aggregate,
    baseline_metric,
    compute_trend,
    compute_uptime,
    summarize_snapshots,
)
from checkgate.schemas import (
    AlertThresholds,
    ClusterHealth,
    ClusterSnapshot,
    ClusterStatus,
    HealthStatus,
    SnapshotKind,
    TrendDirection,
)

from conftest import BASE_TIME, build_cluster_snapshot, build_host_snapshot

THRESHOLDS = AlertThresholds()


def unreachable_cluster(timestamp):
    return ClusterSnapshot(
        timestamp=timestamp,
        cluster_name="docker-desktop",
        status=ClusterStatus(health=ClusterHealth.UNKNOWN),
    )


class TestTrend:
    @pytest.mark.parametrize(
        "values,expected",
        [
            ([], TrendDirection.STABLE),
            ([50.0], TrendDirection.STABLE),
            ([10.0, 20.0, 30.0, 40.0, 50.0, 60.0], TrendDirection.INCREASING),
            ([60.0, 50.0, 40.0, 30.0, 20.0, 10.0], TrendDirection.DECREASING),
            ([50.0, 51.0, 50.5, 50.0, 51.0, 50.5], TrendDirection.STABLE),
            ([0.0, 0.0, 0.0], TrendDirection.STABLE),
            ([0.0, 0.0, 5.0], TrendDirection.INCREASING),
        ],
    )
    def test_direction(self, values, expected):
        assert compute_trend(values) == expected

    def test_noise_threshold_is_relative(self):
        values = [100.0, 100.0, 104.0]
        assert compute_trend(values, noise_threshold=0.05) == TrendDirection.STABLE
        assert compute_trend(values, noise_threshold=0.01) == TrendDirection.INCREASING


class TestAggregate:
    def test_current_is_latest_by_timestamp(self):
        points = [
            (BASE_TIME + timedelta(minutes=2), 30.0),
            (BASE_TIME, 10.0),
            (BASE_TIME + timedelta(minutes=1), 20.0),
        ]
        summary = aggregate(points)
        assert summary.current == 30.0
        assert summary.average == 20.0
        assert summary.minimum == 10.0
        assert summary.maximum == 30.0

    def test_empty_is_none(self):
        assert aggregate([]) is None


class TestUptime:
    def test_full_coverage(self):
        timestamps = [BASE_TIME + timedelta(seconds=30 * i) for i in range(10)]
        end = BASE_TIME + timedelta(minutes=5)
        assert compute_uptime(timestamps, BASE_TIME, end, 30, now=end) == 100.0

    def test_gap_halves_uptime(self):
        timestamps = [BASE_TIME + timedelta(seconds=30 * i) for i in range(5)]
        end = BASE_TIME + timedelta(minutes=5)
        assert compute_uptime(timestamps, BASE_TIME, end, 30, now=end) == 50.0

    def test_duplicate_ticks_count_once(self):
        timestamps = [BASE_TIME, BASE_TIME + timedelta(seconds=1), BASE_TIME + timedelta(seconds=2)]
        end = BASE_TIME + timedelta(minutes=1)
        assert compute_uptime(timestamps, BASE_TIME, end, 30, now=end) == 50.0

    def test_future_part_of_window_is_not_a_gap(self):
        timestamps = [BASE_TIME + timedelta(seconds=30 * i) for i in range(4)]
        end = BASE_TIME + timedelta(hours=1)
        now = BASE_TIME + timedelta(minutes=2)
        assert compute_uptime(timestamps, BASE_TIME, end, 30, now=now) == 100.0

    def test_no_samples(self):
        assert compute_uptime([], BASE_TIME, BASE_TIME + timedelta(hours=1), 30) == 0.0


class TestSummarizeSnapshots:
    def test_empty_window(self):
        summary = summarize_snapshots(
            SnapshotKind.HOST, [], BASE_TIME, BASE_TIME + timedelta(hours=1), THRESHOLDS, 30
        )
        assert summary.sample_count == 0
        assert summary.overall_health == HealthStatus.UNKNOWN
        assert summary.uptime_percentage == 0.0
        assert summary.metrics == {
            "cpu_percent": None,
            "memory_percent": None,
            "disk_percent": None,
            "process_count": None,
        }

    def test_host_metrics(self):
        snapshots = [
            build_host_snapshot(BASE_TIME + timedelta(seconds=30 * i), cpu=10.0 * (i + 1))
            for i in range(6)
        ]
        end = BASE_TIME + timedelta(minutes=3)
        summary = summarize_snapshots(SnapshotKind.HOST, snapshots, BASE_TIME, end, THRESHOLDS, 30, now=end)
        cpu = summary.metrics["cpu_percent"]
        assert cpu.current == 60.0
        assert cpu.average == pytest.approx(35.0)
        assert cpu.trend == TrendDirection.INCREASING
        assert summary.metrics["disk_percent"].current == pytest.approx(50.0)
        assert summary.metrics["process_count"].current == 120.0
        assert summary.sample_count == 6
        assert summary.period_seconds == 180.0
        assert summary.uptime_percentage == 100.0
        assert summary.overall_health == HealthStatus.HEALTHY

    def test_missing_cluster_utilization_is_none(self):
        snapshot = build_cluster_snapshot()
        snapshot.status.cpu_utilization_percent = None
        snapshot.status.memory_utilization_percent = None
        summary = summarize_snapshots(
            SnapshotKind.CLUSTER, [snapshot], BASE_TIME, BASE_TIME + timedelta(minutes=1), THRESHOLDS, 30
        )
        assert summary.metrics["cpu_percent"] is None
        assert summary.metrics["memory_percent"] is None
        assert summary.metrics["running_pods"].current == 2.0

    def test_unreachable_cluster_window_has_no_data(self):
        snapshots = [unreachable_cluster(BASE_TIME + timedelta(seconds=30 * i)) for i in range(4)]
        end = BASE_TIME + timedelta(minutes=2)
        summary = summarize_snapshots(SnapshotKind.CLUSTER, snapshots, BASE_TIME, end, THRESHOLDS, 30, now=end)

        assert summary.overall_health == HealthStatus.UNKNOWN
        assert summary.uptime_percentage == 0.0
        assert summary.sample_count == 0
        assert all(metric is None for metric in summary.metrics.values())

    def test_unreachable_latest_makes_health_unknown(self):
        snapshots = [
            build_cluster_snapshot(BASE_TIME, failed_pods=1),
            build_cluster_snapshot(BASE_TIME + timedelta(seconds=30), failed_pods=1),
            unreachable_cluster(BASE_TIME + timedelta(seconds=60)),
        ]
        end = BASE_TIME + timedelta(seconds=90)
        summary = summarize_snapshots(SnapshotKind.CLUSTER, snapshots, BASE_TIME, end, THRESHOLDS, 30, now=end)

        assert summary.overall_health == HealthStatus.UNKNOWN
        assert summary.metrics["failed_pods"].current == 1.0
        assert summary.metrics["failed_pods"].minimum == 1.0
        assert summary.sample_count == 2
        assert summary.uptime_percentage == pytest.approx(200 / 3)


class TestHealth:
    def _health(self, snapshot, critical_alerts=0, kind=SnapshotKind.HOST):
        return summarize_snapshots(
            kind,
            [snapshot],
            BASE_TIME,
            BASE_TIME + timedelta(minutes=1),
            THRESHOLDS,
            30,
            critical_alerts=critical_alerts,
        ).overall_health

    def test_healthy(self):
        assert self._health(build_host_snapshot()) == HealthStatus.HEALTHY

    def test_warning_within_margin(self):
        # cpu warning threshold is 80 with a 5 point margin
        assert self._health(build_host_snapshot(cpu=76.0)) == HealthStatus.WARNING
        assert self._health(build_host_snapshot(cpu=74.0)) == HealthStatus.HEALTHY

    def test_critical_current_value(self):
        assert self._health(build_host_snapshot(disks=[("/", 99.0)])) == HealthStatus.CRITICAL

    def test_critical_alert_in_window(self):
        assert self._health(build_host_snapshot(), critical_alerts=1) == HealthStatus.CRITICAL

    def test_cluster_failed_pods(self):
        snapshot = build_cluster_snapshot(failed_pods=1)
        assert self._health(snapshot, kind=SnapshotKind.CLUSTER) == HealthStatus.WARNING

    def test_reported_cluster_health_counts(self):
        snapshot = build_cluster_snapshot(health=ClusterHealth.CRITICAL)
        assert self._health(snapshot, kind=SnapshotKind.CLUSTER) == HealthStatus.CRITICAL


class TestBaselineMetric:
    def test_statistics(self):
        points = [(BASE_TIME + timedelta(hours=i), float(10 + 2 * i)) for i in range(11)]
        baseline = baseline_metric(points)
        assert baseline.average == pytest.approx(20.0)
        assert baseline.minimum == 10.0
        assert baseline.maximum == 30.0
        assert baseline.percentile_95 == pytest.approx(29.0)
        assert baseline.trend_slope_per_hour == pytest.approx(2.0)
        assert baseline.trend == TrendDirection.INCREASING
        assert baseline.standard_deviation > 0

    def test_single_point_has_flat_slope(self):
        baseline = baseline_metric([(BASE_TIME, 42.0)])
        assert baseline.trend_slope_per_hour == 0.0
        assert baseline.standard_deviation == 0.0
        assert baseline.percentile_99 == 42.0

    def test_empty(self):
        assert baseline_metric([]) is None


class TestSummarizer:
    @pytest.mark.asyncio
    async def test_summarize_from_store(self, snapshot_store, alert_repository):
        for i in range(10):
            await snapshot_store.store(build_host_snapshot(BASE_TIME + timedelta(seconds=30 * i), cpu=97.0))
        await alert_repository.apply(evaluate(build_host_snapshot(cpu=97.0), None, THRESHOLDS, {}, BASE_TIME))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        summary = await summarizer.summarize(SnapshotKind.HOST, BASE_TIME, BASE_TIME + timedelta(minutes=5))

        assert summary.sample_count == 10
        assert summary.uptime_percentage == 100.0
        assert summary.active_alerts == 1
        assert summary.overall_health == HealthStatus.CRITICAL

    @pytest.mark.asyncio
    async def test_host_alerts_do_not_leak_into_cluster_summary(self, snapshot_store, alert_repository):
        await snapshot_store.store(build_cluster_snapshot(BASE_TIME))
        await alert_repository.apply(evaluate(build_host_snapshot(cpu=97.0), None, THRESHOLDS, {}, BASE_TIME))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        summary = await summarizer.summarize(SnapshotKind.CLUSTER, BASE_TIME, BASE_TIME + timedelta(minutes=1))

        assert summary.active_alerts == 0
        assert summary.overall_health == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_naive_window_treated_as_utc(self, snapshot_store, alert_repository):
        for i in range(4):
            await snapshot_store.store(build_host_snapshot(BASE_TIME + timedelta(seconds=30 * i)))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        naive_start = BASE_TIME.replace(tzinfo=None)
        summary = await summarizer.summarize(SnapshotKind.HOST, naive_start, naive_start + timedelta(minutes=2))

        assert summary.sample_count == 4
        assert summary.period_start == BASE_TIME
        assert summary.uptime_percentage == 100.0

    @pytest.mark.asyncio
    async def test_active_alerts_scoped_to_instance(self, snapshot_store, alert_repository):
        await snapshot_store.store(build_host_snapshot(BASE_TIME, hostname="web-01"))
        for host, memory in (("web-01", 50.0), ("db-01", 90.0)):
            snapshot = build_host_snapshot(hostname=host, cpu=97.0, memory_used_percent=memory)
            await alert_repository.apply(evaluate(snapshot, None, THRESHOLDS, {}, BASE_TIME))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        window_end = BASE_TIME + timedelta(minutes=1)
        scoped = await summarizer.summarize(SnapshotKind.HOST, BASE_TIME, window_end, instance="web-01")
        everything = await summarizer.summarize(SnapshotKind.HOST, BASE_TIME, window_end)

        assert scoped.active_alerts == 1
        assert everything.active_alerts == 3

    @pytest.mark.asyncio
    async def test_unreachable_cluster_from_store(self, snapshot_store, alert_repository):
        for i in range(4):
            await snapshot_store.store(unreachable_cluster(BASE_TIME + timedelta(seconds=30 * i)))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        summary = await summarizer.summarize(SnapshotKind.CLUSTER, BASE_TIME, BASE_TIME + timedelta(minutes=2))

        assert summary.overall_health == HealthStatus.UNKNOWN
        assert summary.uptime_percentage == 0.0
        assert summary.metrics["failed_pods"] is None
        assert summary.metrics["ready_nodes"] is None

    @pytest.mark.asyncio
    async def test_inverted_window_rejected(self, snapshot_store, alert_repository):
        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        with pytest.raises(ValueError):
            await summarizer.summarize(SnapshotKind.HOST, BASE_TIME, BASE_TIME - timedelta(seconds=1))

    @pytest.mark.asyncio
    async def test_baseline_over_recent_days(self, snapshot_store, alert_repository):
        now = datetime.now(timezone.utc)
        for i in range(6):
            await snapshot_store.store(build_host_snapshot(now - timedelta(hours=6 - i), cpu=20.0 + i))
        await snapshot_store.store(build_host_snapshot(now - timedelta(days=10), cpu=99.0))

        summarizer = Summarizer(snapshot_store, alert_repository, THRESHOLDS, interval_seconds=30)
        baseline = await summarizer.baseline(SnapshotKind.HOST, days=7)

        assert baseline.sample_count == 6
        assert baseline.metrics["cpu_percent"].maximum == 25.0
        assert baseline.metrics["cpu_percent"].trend_slope_per_hour == pytest.approx(1.0)

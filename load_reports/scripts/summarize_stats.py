#!/usr/bin/env python3
# -*- coding: utf-8 -*-

from typing import List, Optional, Sequence

from aggregate_buckets import present
from common import THRESHOLDS
from models import AggregateStats, BucketSeries, InflectionPoint, SeriesStats


def _safe_mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def series_stats(values: Sequence[Optional[float]]) -> SeriesStats:
    valid = present(values)
    if not valid:
        return SeriesStats(min=0.0, avg=0.0, max=0.0)
    return SeriesStats(min=float(min(valid)), avg=_safe_mean(valid), max=float(max(valid)))


def summarize(series: BucketSeries, raw_cpu: Sequence[float]) -> AggregateStats:
    concurrency = present(series.max_concurrency)
    return AggregateStats(
        max_concurrency=float(max(concurrency)) if concurrency else 0.0,
        latency=series_stats(series.p95_latency),
        # raw samples: a mean of per-bucket maxima would overstate typical load
        cpu=series_stats(raw_cpu),
    )


def cpu_cores(percent: float) -> float:
    return percent / 100.0


def find_inflection_point(series: BucketSeries,
                          degradation_factor: float = THRESHOLDS['latency_degradation_factor'],
                          baseline_buckets: int = THRESHOLDS['baseline_buckets']) -> Optional[InflectionPoint]:
    """First bucket whose P95 latency reaches ``degradation_factor`` times the
    mean P95 of the first ``baseline_buckets`` buckets with latency data."""
    indexed = [(i, v) for i, v in enumerate(series.p95_latency) if v is not None]
    baseline_buckets = max(1, int(baseline_buckets))
    if len(indexed) <= baseline_buckets:
        return None

    baseline = _safe_mean([v for _, v in indexed[:baseline_buckets]])
    if baseline <= 0.0:
        return None

    for i, latency in indexed[baseline_buckets:]:
        if latency >= baseline * degradation_factor:
            return InflectionPoint(
                bucket=series.buckets[i],
                concurrency=series.max_concurrency[i],
                p95_latency=latency,
                cpu=series.max_cpu[i],
                baseline_latency=baseline,
            )
    return None


def estimate_production_concurrency(local_concurrency: Optional[float], local_cpus: Optional[int],
                                    prod_cpus: Optional[float]) -> Optional[float]:
    if local_concurrency is None or local_cpus is None or prod_cpus is None:
        return None
    if local_cpus <= 0:
        return None
    return (prod_cpus / local_cpus) * local_concurrency

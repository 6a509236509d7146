#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import math
from typing import Iterable, List, Optional, Sequence

from models import BucketedSamples, BucketSeries


def p95_index(n: int) -> int:
    """Index of the P95 element in an ascending list of ``n`` values.

    This is ``floor(n * 0.95)`` clamped to the last element, not an
    interpolated percentile; reported latency figures depend on it.
    """
    return min(int(math.floor(n * 0.95)), n - 1)


def percentile_95(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    ordered = sorted(values)
    return ordered[p95_index(len(ordered))]


def bucket_max(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    return max(values)


def merge_bucket_keys(*groups: BucketedSamples) -> List[int]:
    keys = set()
    for group in groups:
        keys.update(group.keys())
    return sorted(keys)


def aggregate_buckets(latency: BucketedSamples, concurrency: BucketedSamples,
                      cpu: Optional[BucketedSamples] = None) -> BucketSeries:
    cpu = cpu if cpu is not None else BucketedSamples()
    buckets = merge_bucket_keys(latency, concurrency, cpu)
    series = BucketSeries(
        buckets=buckets,
        p95_latency=[percentile_95(latency.get(b)) for b in buckets],
        max_concurrency=[bucket_max(concurrency.get(b)) for b in buckets],
        # max, not mean: short CPU saturation peaks must stay visible
        max_cpu=[bucket_max(cpu.get(b)) for b in buckets],
    )
    print(f"{len(buckets)} time buckets to chart")
    return series


def present(values: Iterable[Optional[float]]) -> List[float]:
    return [v for v in values if v is not None]

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional


class MetricKind(Enum):
    LATENCY = "latency"
    CONCURRENCY = "concurrency"


@dataclass(frozen=True)
class MetricEvent:
    kind: MetricKind
    timestamp_ms: int
    value: float


@dataclass(frozen=True)
class ResourceSample:
    timestamp_ms: int
    cpu_percent: float


@dataclass
class BucketedSamples:
    """Values grouped by bucket index, in arrival order within a bucket."""
    buckets: Dict[int, List[float]] = field(default_factory=dict)

    def add(self, bucket: int, value: float) -> None:
        self.buckets.setdefault(bucket, []).append(value)

    def get(self, bucket: int) -> List[float]:
        return self.buckets.get(bucket, [])

    def keys(self) -> Iterator[int]:
        return iter(self.buckets.keys())

    def value_count(self) -> int:
        return sum(len(values) for values in self.buckets.values())

    def __len__(self) -> int:
        return len(self.buckets)


@dataclass
class ParseResult:
    latency: BucketedSamples
    concurrency: BucketedSamples
    total_lines: int = 0
    accepted: int = 0
    malformed: int = 0


@dataclass
class ResourceSeries:
    cpu: BucketedSamples
    raw_cpu: List[float]


@dataclass
class BucketSeries:
    buckets: List[int]
    p95_latency: List[Optional[float]]
    max_concurrency: List[Optional[float]]
    max_cpu: List[Optional[float]]

    @property
    def has_cpu_data(self) -> bool:
        return any(v is not None for v in self.max_cpu)


@dataclass
class SeriesStats:
    min: float
    avg: float
    max: float


@dataclass
class AggregateStats:
    max_concurrency: float
    latency: SeriesStats
    cpu: SeriesStats


@dataclass
class HostInfo:
    os: str
    arch: str
    cpus: Optional[int]
    memory: str


@dataclass
class ContainerInfo:
    name: str
    image: str
    cpu_limit: str
    mem_limit: str


@dataclass
class EnvironmentMetadata:
    host: HostInfo
    container: ContainerInfo
    versions: Dict[str, str]
    test_date_local: str
    notes: str = ""


@dataclass
class InflectionPoint:
    bucket: int
    concurrency: Optional[float]
    p95_latency: float
    cpu: Optional[float]
    baseline_latency: float

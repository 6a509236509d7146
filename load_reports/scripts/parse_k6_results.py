#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Streaming parser for k6 ``--out json`` result files.

k6 writes one JSON object per line. Only ``Point`` records for the request
duration and the live VU count are kept; everything else, including lines
truncated at the end of the run, is skipped. The file is read forward once
so multi-million line results stay within bucket-sized memory.
"""

import json
import math
from pathlib import Path
from typing import Callable, Dict, Iterator, Optional

from common import BUCKET_WIDTH_MS, METRIC_NAMES, PROGRESS_EVERY, bucket_index, parse_timestamp_ms
from models import BucketedSamples, MetricEvent, MetricKind, ParseResult

LineCallback = Callable[[int, bool], None]


def _metric_kinds(metric_names: Optional[Dict[str, str]] = None) -> Dict[str, MetricKind]:
    names = metric_names or METRIC_NAMES
    return {
        names['latency']: MetricKind.LATENCY,
        names['concurrency']: MetricKind.CONCURRENCY,
    }


def iter_k6_lines(path) -> Iterator[str]:
    with open(path, 'r', encoding='utf-8', errors='replace') as f:
        for line in f:
            line = line.strip()
            if line:
                yield line


def decode_point(line: str) -> Optional[Dict]:
    try:
        point = json.loads(line)
    except ValueError:
        return None
    if not isinstance(point, dict):
        return None
    return point


def to_metric_event(point: Dict, kinds: Dict[str, MetricKind]) -> Optional[MetricEvent]:
    if point.get('type') != 'Point':
        return None
    kind = kinds.get(point.get('metric'))
    if kind is None:
        return None

    data = point.get('data')
    if not isinstance(data, dict):
        return None
    timestamp_ms = parse_timestamp_ms(data.get('time'))
    if timestamp_ms is None:
        return None
    value = data.get('value')
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None

    return MetricEvent(kind=kind, timestamp_ms=timestamp_ms, value=float(value))


def parse_metric_event(line: str, metric_names: Optional[Dict[str, str]] = None) -> Optional[MetricEvent]:
    point = decode_point(line)
    if point is None:
        return None
    return to_metric_event(point, _metric_kinds(metric_names))


def iter_metric_events(path, metric_names: Optional[Dict[str, str]] = None,
                       on_line: Optional[LineCallback] = None) -> Iterator[MetricEvent]:
    """Lazily yield tracked events from a k6 result file.

    ``on_line`` is called for every non-blank line with its 1-based number and
    whether the line failed to decode as JSON. Each call starts a fresh pass
    over the file.
    """
    kinds = _metric_kinds(metric_names)
    for line_no, line in enumerate(iter_k6_lines(path), 1):
        point = decode_point(line)
        if on_line is not None:
            on_line(line_no, point is None)
        if point is None:
            continue
        event = to_metric_event(point, kinds)
        if event is not None:
            yield event


def parse_k6_results(path, bucket_width_ms: int = BUCKET_WIDTH_MS,
                     progress_every: int = PROGRESS_EVERY,
                     metric_names: Optional[Dict[str, str]] = None) -> ParseResult:
    result = ParseResult(latency=BucketedSamples(), concurrency=BucketedSamples())
    targets = {
        MetricKind.LATENCY: result.latency,
        MetricKind.CONCURRENCY: result.concurrency,
    }

    def track(line_no: int, malformed: bool) -> None:
        result.total_lines = line_no
        if malformed:
            result.malformed += 1
        if progress_every and line_no % progress_every == 0:
            print(f"   Processed {line_no // 1000}k lines...", end='\r', flush=True)

    print(f"Streaming k6 results from {Path(path)} ...")
    for event in iter_metric_events(path, metric_names=metric_names, on_line=track):
        targets[event.kind].add(bucket_index(event.timestamp_ms, bucket_width_ms), event.value)
        result.accepted += 1

    print(f"   Processed {result.total_lines} lines total "
          f"({result.accepted} samples kept, {result.malformed} malformed)")
    return result

#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
import math
from typing import Optional

from common import BUCKET_WIDTH_MS, bucket_index, parse_timestamp_ms
from models import BucketedSamples, ResourceSample, ResourceSeries


def parse_cpu_percent(raw) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        text = raw.strip()
        if text.endswith('%'):
            text = text[:-1].strip()
        try:
            value = float(text)
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def parse_resource_sample(line: str) -> Optional[ResourceSample]:
    try:
        record = json.loads(line)
    except ValueError:
        return None
    if not isinstance(record, dict):
        return None

    timestamp_ms = parse_timestamp_ms(record.get('time'))
    cpu = parse_cpu_percent(record.get('cpu'))
    if timestamp_ms is None or cpu is None:
        return None
    return ResourceSample(timestamp_ms=timestamp_ms, cpu_percent=cpu)


def load_docker_stats(path, bucket_width_ms: int = BUCKET_WIDTH_MS) -> ResourceSeries:
    series = ResourceSeries(cpu=BucketedSamples(), raw_cpu=[])
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            lines = f.read().split('\n')
    except OSError:
        print(f"Warning: No docker stats found at {path} - CPU data will be skipped")
        return series

    for line in lines:
        if not line.strip():
            continue
        sample = parse_resource_sample(line)
        if sample is None:
            continue
        series.cpu.add(bucket_index(sample.timestamp_ms, bucket_width_ms), sample.cpu_percent)
        series.raw_cpu.append(sample.cpu_percent)

    print(f"Loaded {len(series.raw_cpu)} docker stats data points")
    return series

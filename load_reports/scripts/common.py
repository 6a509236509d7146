#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import re
import json
import copy
import yaml
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

from models import ContainerInfo, EnvironmentMetadata, HostInfo

_DEFAULTS = {
    'paths': {
        'k6_results': 'k6-results.json',
        'docker_stats': 'docker-stats.json',
        'environment': 'test-environment.json',
        'output_dir': '.',
        'chart_name': 'k6-load-test-analysis.png',
    },
    'bucket': {'width_ms': 10000},
    'metrics': {'latency': 'http_req_duration', 'concurrency': 'vus'},
    'parse': {'progress_every': 100000},
    'visualization': {
        'width_px': 1400,
        'height_px': 800,
        'dpi': 100,
        'max_ticks': 25,
        'cpu_axis_margin': 50,
        'colors': {'concurrency': '#f59e0b', 'latency': '#3b82f6', 'cpu': '#ef4444'},
    },
    'thresholds': {'latency_degradation_factor': 2.0, 'baseline_buckets': 3},
}


def _merge(base: Dict, override: Dict) -> Dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Path) -> Dict:
    if not path.exists():
        return copy.deepcopy(_DEFAULTS)
    with path.open('r', encoding='utf-8') as f:
        data = yaml.safe_load(f)
    return _merge(_DEFAULTS, data or {})


# Load configuration
_config_path = Path(__file__).parent.parent / "config.yaml"
_config = load_config(_config_path)

METRIC_NAMES = _config['metrics']
VISUALIZATION = _config['visualization']
THRESHOLDS = _config['thresholds']
BUCKET_WIDTH_MS = int(_config['bucket']['width_ms'])
PROGRESS_EVERY = int(_config['parse']['progress_every'])


class Config:
    K6_RESULTS = Path(_config['paths']['k6_results'])
    DOCKER_STATS = Path(_config['paths']['docker_stats'])
    ENVIRONMENT = Path(_config['paths']['environment'])
    OUTPUT_DIR = Path(_config['paths']['output_dir'])
    CHART_NAME = _config['paths']['chart_name']


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


def parse_timestamp_ms(text) -> Optional[int]:
    """Parse an ISO-8601 instant into epoch milliseconds.

    k6 writes nanosecond fractions and docker stats lines end in ``Z``;
    both are normalised before ``datetime.fromisoformat``. Instants without
    an offset are taken as UTC. Returns None when the text is not a
    timestamp.
    """
    if not isinstance(text, str):
        return None
    value = text.strip()
    if value[-1:] in ("Z", "z"):
        value = value[:-1] + "+00:00"
    value = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), value, count=1)
    try:
        moment = datetime.fromisoformat(value)
    except ValueError:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // timedelta(milliseconds=1)


def bucket_index(timestamp_ms: int, width_ms: int = BUCKET_WIDTH_MS) -> int:
    return timestamp_ms // width_ms


def bucket_label(bucket: int, width_ms: int = BUCKET_WIDTH_MS) -> str:
    """Local clock time at which a bucket starts."""
    return datetime.fromtimestamp(bucket * width_ms / 1000.0).strftime("%H:%M:%S")


def format_value(value: float, precision: int = 1) -> str:
    if value is None:
        return "N/A"
    return f"{value:.{precision}f}"


def _parse_cpu_count(raw) -> Optional[int]:
    try:
        count = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return count if count > 0 else None


def _text(raw, default: str = "unknown") -> str:
    if raw is None:
        return default
    value = str(raw).strip()
    return value if value else default


def parse_environment(data: Dict) -> Optional[EnvironmentMetadata]:
    if not isinstance(data, dict):
        return None
    host = data.get('host') or {}
    container = data.get('container') or {}
    versions = data.get('versions') or {}
    if not isinstance(host, dict) or not isinstance(container, dict) or not isinstance(versions, dict):
        return None
    return EnvironmentMetadata(
        host=HostInfo(
            os=_text(host.get('os')),
            arch=_text(host.get('arch')),
            cpus=_parse_cpu_count(host.get('cpus')),
            memory=_text(host.get('memory')),
        ),
        container=ContainerInfo(
            name=_text(container.get('name')),
            image=_text(container.get('image')),
            cpu_limit=_text(container.get('cpuLimit')),
            mem_limit=_text(container.get('memLimit')),
        ),
        versions={str(k): _text(v) for k, v in versions.items()},
        test_date_local=_text(data.get('testDateLocal')),
        notes=_text(data.get('notes'), default=""),
    )


def load_environment(path: Path) -> Optional[EnvironmentMetadata]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError:
        print(f"Warning: No environment metadata found at {path} - running without env metadata")
        return None
    except ValueError:
        print(f"Warning: Environment metadata in {path} is not valid JSON - ignoring it")
        return None

    metadata = parse_environment(data)
    if metadata is None:
        print(f"Warning: Environment metadata in {path} has an unexpected shape - ignoring it")
    else:
        print(f"Loaded environment metadata from {path}")
    return metadata

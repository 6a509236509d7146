#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from common import BUCKET_WIDTH_MS, bucket_label, format_value
from models import AggregateStats, BucketSeries, EnvironmentMetadata, InflectionPoint
from summarize_stats import cpu_cores, estimate_production_concurrency

BOX_WIDTH = 62


def _box_row(text: str = "") -> str:
    return f"║{text.ljust(BOX_WIDTH)}║"


def _format_count(value: Optional[float]) -> str:
    if value is None:
        return "N/A"
    if float(value).is_integer():
        return str(int(value))
    return format_value(value)


def format_summary(stats: AggregateStats, has_cpu: bool, host_cpus: Optional[int] = None) -> str:
    lines = [
        "╔" + "═" * BOX_WIDTH + "╗",
        _box_row("TEST SUMMARY".center(BOX_WIDTH)),
        "╠" + "═" * BOX_WIDTH + "╣",
        _box_row(f"  Max Concurrent Users:    {_format_count(stats.max_concurrency):>6}"),
        "╠" + "─" * BOX_WIDTH + "╣",
        _box_row("  RESPONSE TIME (P95):"),
        _box_row(f"     Min: {stats.latency.min:>8.1f} ms"),
        _box_row(f"     Avg: {stats.latency.avg:>8.1f} ms"),
        _box_row(f"     Max: {stats.latency.max:>8.1f} ms"),
    ]
    if has_cpu:
        cpus = host_cpus or 1
        lines.extend([
            "╠" + "─" * BOX_WIDTH + "╣",
            _box_row("  CPU UTILIZATION:"),
            _box_row(f"     Min: {stats.cpu.min:>8.1f} % ({cpu_cores(stats.cpu.min):.1f} cores)"),
            _box_row(f"     Avg: {stats.cpu.avg:>8.1f} % ({cpu_cores(stats.cpu.avg):.1f} cores)"),
            _box_row(f"     Max: {stats.cpu.max:>8.1f} % "
                     f"({cpu_cores(stats.cpu.max):.1f} of {cpus} cores)"),
        ])
    lines.append("╚" + "═" * BOX_WIDTH + "╝")
    return "\n".join(lines)


def format_correlation_notes(metadata: Optional[EnvironmentMetadata],
                             inflection: Optional[InflectionPoint] = None,
                             prod_cpus: Optional[float] = None,
                             bucket_width_ms: int = BUCKET_WIDTH_MS) -> str:
    lines = ["PRODUCTION CORRELATION NOTES:", "─" * (BOX_WIDTH + 2)]
    if metadata is not None:
        cpus = metadata.host.cpus if metadata.host.cpus is not None else "unknown"
        lines.append(f"   Local:  {cpus} CPUs, {metadata.host.memory} RAM")
        lines.append(f"           Container limits: CPU={metadata.container.cpu_limit}, "
                     f"Mem={metadata.container.mem_limit}")
    lines.append("")

    if inflection is not None:
        ratio = inflection.p95_latency / inflection.baseline_latency
        cpu = "N/A" if inflection.cpu is None else f"{format_value(inflection.cpu)}%"
        lines.append(f"   Latency inflection at {bucket_label(inflection.bucket, bucket_width_ms)}: "
                     f"{_format_count(inflection.concurrency)} VUs, "
                     f"P95 {format_value(inflection.p95_latency)} ms "
                     f"({ratio:.1f}x baseline {format_value(inflection.baseline_latency)} ms), CPU {cpu}")
        local_cpus = metadata.host.cpus if metadata is not None else None
        estimate = estimate_production_concurrency(inflection.concurrency, local_cpus, prod_cpus)
        if estimate is not None:
            lines.append(f"   Estimated production capacity ≈ {estimate:.0f} VUs "
                         f"({format_value(prod_cpus)} prod CPUs / {local_cpus} local CPUs "
                         f"× {_format_count(inflection.concurrency)} VUs) - approximation only")
        lines.append("")

    lines.extend([
        "   To estimate production capacity:",
        "   1. Find the VU count where latency starts degrading (inflection point)",
        "   2. Note the CPU % at that point - this is your \"capacity threshold\"",
        "   3. Production capacity ≈ (Prod CPUs / Local CPUs) × Local VUs at threshold",
        "",
        "   This is a rough linear approximation. Real production testing is essential.",
        "   Factors not captured: network latency, disk I/O, runtime tuning, caching, etc.",
    ])
    return "\n".join(lines)


def _stats_dict(stats) -> Dict:
    return {"min": stats.min, "avg": stats.avg, "max": stats.max}


def build_summary_payload(series: BucketSeries, stats: AggregateStats,
                          metadata: Optional[EnvironmentMetadata] = None,
                          inflection: Optional[InflectionPoint] = None,
                          bucket_width_ms: int = BUCKET_WIDTH_MS) -> Dict:
    buckets = []
    for i, bucket in enumerate(series.buckets):
        buckets.append({
            "bucket": bucket,
            "start_ms": bucket * bucket_width_ms,
            "p95_latency_ms": series.p95_latency[i],
            "max_concurrency": series.max_concurrency[i],
            "max_cpu_percent": series.max_cpu[i],
        })

    return {
        "version": 1,
        "generated_at": datetime.now().isoformat(),
        "bucket_width_ms": bucket_width_ms,
        "stats": {
            "max_concurrency": stats.max_concurrency,
            "latency_p95_ms": _stats_dict(stats.latency),
            "cpu_percent": _stats_dict(stats.cpu) if series.has_cpu_data else None,
        },
        "inflection": asdict(inflection) if inflection is not None else None,
        "environment": asdict(metadata) if metadata is not None else None,
        "buckets": buckets,
    }


def write_summary_json(output_json: Path, payload: Dict) -> Path:
    output_json = Path(output_json)
    output_json.parent.mkdir(parents=True, exist_ok=True)
    output_json.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    print(f"[OK] summary json: {output_json}")
    return output_json


def write_markdown_report(output_md: Path, payload: Dict) -> Path:
    output_md = Path(output_md)
    output_md.parent.mkdir(parents=True, exist_ok=True)
    stats = payload["stats"]
    lines: List[str] = []
    lines.append("# k6 Load Test Analysis")
    lines.append("")
    lines.append(f"- generated_at: `{payload['generated_at']}`")
    lines.append(f"- buckets: `{len(payload['buckets'])}` x `{payload['bucket_width_ms']} ms`")
    lines.append(f"- max_concurrency: `{_format_count(stats['max_concurrency'])}`")
    inflection = payload.get("inflection")
    if inflection:
        lines.append(f"- inflection: `{_format_count(inflection['concurrency'])} VUs` at "
                     f"`{format_value(inflection['p95_latency'])} ms` P95")
    lines.append("")
    lines.append("| series | min | avg | max |")
    lines.append("|---|---:|---:|---:|")
    latency = stats["latency_p95_ms"]
    lines.append(f"| latency p95 (ms) | {latency['min']:.1f} | {latency['avg']:.1f} | {latency['max']:.1f} |")
    cpu = stats.get("cpu_percent")
    if cpu:
        lines.append(f"| cpu (%) | {cpu['min']:.1f} | {cpu['avg']:.1f} | {cpu['max']:.1f} |")

    output_md.write_text("\n".join(lines) + "\n", encoding="utf-8")
    print(f"[OK] summary markdown: {output_md}")
    return output_md

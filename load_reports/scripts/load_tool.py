#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Unified k6 Load Test Reporting Tool
Usage:
    load_tool.py analyze [--k6-results FILE] [--docker-stats FILE] [--env-file FILE]
                         [--output-dir DIR] [--chart-name NAME] [--prod-cpus N]
                         [--output-json FILE] [--output-md FILE] [--no-chart]
    load_tool.py summary [same options, never renders the chart]
"""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from aggregate_buckets import aggregate_buckets
from common import BUCKET_WIDTH_MS, THRESHOLDS, Config, load_environment
from generate_charts import LoadChartGenerator
from generate_report import (
    build_summary_payload,
    format_correlation_notes,
    format_summary,
    write_markdown_report,
    write_summary_json,
)
from load_docker_stats import load_docker_stats
from parse_k6_results import parse_k6_results
from summarize_stats import find_inflection_point, summarize


class LoadTool:
    def _bucket_width_ms(self, args) -> int:
        if args.bucket_seconds:
            return int(round(args.bucket_seconds * 1000))
        return BUCKET_WIDTH_MS

    def _run(self, args, render_chart: bool) -> Dict:
        bucket_width_ms = self._bucket_width_ms(args)

        print("=== Step 1: Parsing k6 results ===")
        parsed = parse_k6_results(args.k6_results, bucket_width_ms=bucket_width_ms)

        print("\n=== Step 2: Loading container stats and environment ===")
        resources = load_docker_stats(args.docker_stats, bucket_width_ms=bucket_width_ms)
        metadata = load_environment(args.env_file)

        print("\n=== Step 3: Aggregating time buckets ===")
        series = aggregate_buckets(parsed.latency, parsed.concurrency, resources.cpu)
        stats = summarize(series, resources.raw_cpu)
        inflection = find_inflection_point(
            series,
            degradation_factor=args.degradation_factor,
            baseline_buckets=THRESHOLDS['baseline_buckets'],
        )

        chart_path = None
        if render_chart:
            print("\n=== Step 4: Rendering chart ===")
            generator = LoadChartGenerator(output_dir=args.output_dir, bucket_width_ms=bucket_width_ms)
            chart_path = generator.generate_chart(series, metadata, filename=args.chart_name)

        host_cpus = metadata.host.cpus if metadata is not None else None
        print("")
        print(format_summary(stats, series.has_cpu_data, host_cpus))
        print("")
        print(format_correlation_notes(metadata, inflection, args.prod_cpus, bucket_width_ms))
        print("")

        payload = build_summary_payload(series, stats, metadata, inflection, bucket_width_ms)
        if args.output_json:
            write_summary_json(args.output_json, payload)
        if args.output_md:
            write_markdown_report(args.output_md, payload)

        return {
            "parsed": parsed,
            "series": series,
            "stats": stats,
            "inflection": inflection,
            "metadata": metadata,
            "chart_path": chart_path,
            "payload": payload,
        }

    def analyze(self, args) -> Dict:
        return self._run(args, render_chart=not args.no_chart)

    def summary(self, args) -> Dict:
        return self._run(args, render_chart=False)


def _positive_float(raw: str) -> float:
    value = float(raw)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"expected a positive number, got {raw}")
    return value


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--k6-results', type=Path, default=Config.K6_RESULTS,
                        help='k6 NDJSON results file (k6 run --out json=...)')
    parser.add_argument('--docker-stats', type=Path, default=Config.DOCKER_STATS,
                        help='Optional NDJSON docker stats samples')
    parser.add_argument('--env-file', type=Path, default=Config.ENVIRONMENT,
                        help='Optional test environment metadata json')
    parser.add_argument('--bucket-seconds', type=_positive_float, default=None,
                        help=f'Bucket width in seconds (default: {BUCKET_WIDTH_MS / 1000:g})')
    parser.add_argument('--degradation-factor', type=_positive_float,
                        default=float(THRESHOLDS['latency_degradation_factor']),
                        help='P95 multiple of the warm baseline that marks the inflection point')
    parser.add_argument('--prod-cpus', type=_positive_float, default=None,
                        help='Production CPU count for the linear capacity estimate')
    parser.add_argument('--output-dir', type=Path, default=Config.OUTPUT_DIR,
                        help='Output directory for the chart')
    parser.add_argument('--chart-name', default=Config.CHART_NAME, help='Chart file name')
    parser.add_argument('--output-json', type=Path, default=None, help='Write summary json here')
    parser.add_argument('--output-md', type=Path, default=None, help='Write summary markdown here')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='k6 Load Test Reporting Tool')
    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Analyze command
    analyze_parser = subparsers.add_parser('analyze', help='Parse logs, render chart and print summary')
    _add_common_arguments(analyze_parser)
    analyze_parser.add_argument('--no-chart', action='store_true', help='Skip chart rendering')

    # Summary command
    summary_parser = subparsers.add_parser('summary', help='Print summary without rendering a chart')
    _add_common_arguments(summary_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    tool = LoadTool()
    try:
        if args.command == 'analyze':
            tool.analyze(args)
        elif args.command == 'summary':
            tool.summary(args)
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print("=== Load test report complete ===")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

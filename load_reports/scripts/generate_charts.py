#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import math
import numpy as np
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from typing import List, Optional, Sequence

from common import BUCKET_WIDTH_MS, VISUALIZATION, Config, bucket_label
from models import BucketSeries, EnvironmentMetadata

PLACEHOLDER_SUBTITLE = "Environment details not captured"


def build_subtitle(metadata: Optional[EnvironmentMetadata]) -> List[str]:
    if metadata is None:
        return [PLACEHOLDER_SUBTITLE]

    host = metadata.host
    container = metadata.container
    cpus = host.cpus if host.cpus is not None else "unknown"
    lines = [
        f"Host: {host.os} {host.arch} | {cpus} CPUs | {host.memory} RAM",
        f"Container: {container.name} ({container.image}) | "
        f"CPU: {container.cpu_limit} | Memory: {container.mem_limit}",
    ]
    versions = [f"{name.capitalize()}: {version}" for name, version in metadata.versions.items()]
    versions.append(f"Test: {metadata.test_date_local}")
    lines.append(" | ".join(versions))
    return lines


def to_plot_array(values: Sequence[Optional[float]]) -> np.ndarray:
    """None becomes NaN so matplotlib breaks the line instead of bridging it."""
    return np.array([np.nan if v is None else v for v in values], dtype=np.float64)


def cpu_axis_max(max_cpu: float, margin: float = VISUALIZATION['cpu_axis_margin']) -> float:
    return math.ceil(max_cpu / 100.0) * 100.0 + margin


class LoadChartGenerator:
    def __init__(self, output_dir=None, bucket_width_ms=BUCKET_WIDTH_MS,
                 width_px=None, height_px=None, dpi=None):
        self.output_dir = str(output_dir or Config.OUTPUT_DIR)
        self.bucket_width_ms = bucket_width_ms
        self.width_px = width_px or VISUALIZATION['width_px']
        self.height_px = height_px or VISUALIZATION['height_px']
        self.dpi = dpi or VISUALIZATION['dpi']
        self.colors = VISUALIZATION['colors']
        self.max_ticks = VISUALIZATION['max_ticks']

    def build_figure(self, series: BucketSeries, metadata: Optional[EnvironmentMetadata] = None):
        fig, ax_vus = plt.subplots(figsize=(self.width_px / self.dpi, self.height_px / self.dpi),
                                   dpi=self.dpi)
        x = np.arange(len(series.buckets))
        labels = [bucket_label(b, self.bucket_width_ms) for b in series.buckets]

        vus = to_plot_array(series.max_concurrency)
        color = self.colors['concurrency']
        ax_vus.plot(x, vus, color=color, linewidth=2, marker='o', markersize=2,
                    label='Concurrent Users (VUs)')
        if len(x):
            ax_vus.fill_between(x, vus, alpha=0.15, color=color)
        ax_vus.set_ylabel('Concurrent Users', color=color, fontsize=12, fontweight='bold')
        ax_vus.tick_params(axis='y', labelcolor=color)
        ax_vus.set_ylim(bottom=0)
        ax_vus.set_xlabel('Test Time', fontsize=12)

        ax_latency = ax_vus.twinx()
        color = self.colors['latency']
        ax_latency.plot(x, to_plot_array(series.p95_latency), color=color, linewidth=2,
                        marker='o', markersize=2, label='Response Time P95 (ms)')
        ax_latency.set_ylabel('Response Time (ms)', color=color, fontsize=12, fontweight='bold')
        ax_latency.tick_params(axis='y', labelcolor=color)
        ax_latency.set_ylim(bottom=0)
        ax_latency.grid(alpha=0.3)

        axes = [ax_vus, ax_latency]
        if series.has_cpu_data:
            ax_cpu = ax_vus.twinx()
            ax_cpu.spines['right'].set_position(('axes', 1.08))
            color = self.colors['cpu']
            cpu = to_plot_array(series.max_cpu)
            ax_cpu.plot(x, cpu, color=color, linewidth=2, linestyle='--',
                        marker='o', markersize=2, label='Container CPU %')
            ax_cpu.set_ylabel('CPU % (100% = 1 core)', color=color, fontsize=12, fontweight='bold')
            ax_cpu.tick_params(axis='y', labelcolor=color)
            # 100% is one core, so the axis is allowed past 100
            ax_cpu.set_ylim(0, cpu_axis_max(float(np.nanmax(cpu))))
            axes.append(ax_cpu)

        if len(x):
            step = max(1, math.ceil(len(x) / self.max_ticks))
            ax_vus.set_xticks(x[::step])
            ax_vus.set_xticklabels(labels[::step], rotation=45, ha='right', fontsize=9)
        else:
            ax_vus.set_xticks([])

        fig.suptitle('k6 Load Test Analysis', fontsize=20, fontweight='bold')
        ax_vus.set_title("\n".join(build_subtitle(metadata)), fontsize=11, color='#666666')

        handles, names = [], []
        for ax in axes:
            h, n = ax.get_legend_handles_labels()
            handles.extend(h)
            names.extend(n)
        ax_vus.legend(handles, names, loc='upper left', framealpha=0.9)

        fig.subplots_adjust(left=0.07, right=0.84 if series.has_cpu_data else 0.9,
                            top=0.82, bottom=0.14)
        return fig

    def generate_chart(self, series: BucketSeries, metadata: Optional[EnvironmentMetadata] = None,
                       filename: Optional[str] = None) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        chart_path = os.path.join(self.output_dir, filename or Config.CHART_NAME)

        fig = self.build_figure(series, metadata)
        fig.savefig(chart_path, dpi=self.dpi)
        plt.close(fig)

        print(f"Chart generated: {chart_path}")
        print(f"   Data points: {len(series.buckets)} time buckets")
        return chart_path

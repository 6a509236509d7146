#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import io
import os
import sys
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

import matplotlib.pyplot as plt

SCRIPT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "scripts"))
sys.path.insert(0, SCRIPT_DIR)

from load_tool import LoadTool, build_parser, main


def point(metric, second, value):
    return json.dumps({
        "type": "Point",
        "metric": metric,
        "data": {"time": f"2024-01-01T00:{second // 60:02d}:{second % 60:02d}.000Z", "value": value},
    })


def stats_line(second, cpu):
    return json.dumps({"time": f"2024-01-01T00:{second // 60:02d}:{second % 60:02d}.000Z",
                       "cpu": f"{cpu}%", "mem": "10.00%"})


class LoadToolFixture(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        lines = []
        # five buckets; latency degrades in the last one
        for bucket, (vus, latency) in enumerate([(10, 100), (20, 100), (30, 100), (40, 120), (50, 400)]):
            base = bucket * 10
            lines.append(point("vus", base + 1, vus))
            lines.append(point("http_req_duration", base + 2, latency))
            lines.append(point("http_req_duration", base + 3, latency - 10))
            lines.append(point("http_reqs", base + 3, 1))
        lines.append("{\"type\":\"Point\",\"metr")
        self.k6 = self.tmp / "k6-results.json"
        self.k6.write_text("\n".join(lines) + "\n", encoding="utf-8")

        self.stats = self.tmp / "docker-stats.json"
        self.stats.write_text("\n".join([
            stats_line(1, 50.0), stats_line(5, 150.0), stats_line(41, 390.0), stats_line(45, 10.0),
        ]) + "\n", encoding="utf-8")

        self.env = self.tmp / "test-environment.json"
        self.env.write_text(json.dumps({
            "testDateLocal": "2024-01-01 01:00:00 CET",
            "container": {"name": "app", "image": "app:1", "cpuLimit": "unlimited", "memLimit": "unlimited"},
            "host": {"os": "Linux", "arch": "x86_64", "cpus": "4", "memory": "16G"},
            "versions": {"docker": "24.0.6", "k6": "k6 v0.47.0"},
        }), encoding="utf-8")

    def tearDown(self):
        plt.close('all')
        self._tmp.cleanup()

    def args(self, *extra, command="analyze", k6=None, stats=None, env=None):
        return [
            command,
            "--k6-results", str(k6 or self.k6),
            "--docker-stats", str(stats or self.stats),
            "--env-file", str(env or self.env),
            "--output-dir", str(self.tmp / "out"),
        ] + list(extra)

    def run_tool(self, argv):
        args = build_parser().parse_args(argv)
        tool = LoadTool()
        with redirect_stdout(io.StringIO()) as out:
            result = getattr(tool, args.command)(args)
        return result, out.getvalue()


class LoadToolTests(LoadToolFixture):
    def test_full_pipeline(self):
        result, out = self.run_tool(self.args("--prod-cpus", "16"))
        series = result["series"]
        self.assertEqual(len(series.buckets), 5)
        self.assertEqual(series.max_concurrency, [10.0, 20.0, 30.0, 40.0, 50.0])
        self.assertEqual(series.p95_latency, [100.0, 100.0, 100.0, 120.0, 400.0])
        self.assertEqual(series.max_cpu, [150.0, None, None, None, 390.0])
        self.assertEqual(result["stats"].max_concurrency, 50.0)
        self.assertEqual(result["stats"].cpu.avg, 150.0)
        self.assertEqual(result["inflection"].concurrency, 50.0)
        self.assertTrue(os.path.exists(result["chart_path"]))
        self.assertEqual(result["parsed"].malformed, 1)
        self.assertIn("CPU UTILIZATION", out)
        self.assertIn("of 4 cores", out)
        self.assertIn("Estimated production capacity ≈ 200 VUs", out)

    def test_missing_docker_stats(self):
        result, out = self.run_tool(self.args(stats=self.tmp / "missing.json"))
        self.assertFalse(result["series"].has_cpu_data)
        self.assertTrue(os.path.exists(result["chart_path"]))
        self.assertNotIn("CPU UTILIZATION", out)
        self.assertEqual(result["stats"].cpu.max, 0.0)

    def test_missing_environment(self):
        result, out = self.run_tool(self.args(env=self.tmp / "missing.json"))
        self.assertIsNone(result["metadata"])
        self.assertIn("of 1 cores", out)

    def test_summary_skips_chart(self):
        result, _ = self.run_tool(self.args(command="summary"))
        self.assertIsNone(result["chart_path"])
        self.assertFalse((self.tmp / "out").exists())

    def test_custom_bucket_width(self):
        result, _ = self.run_tool(self.args("--bucket-seconds", "60", "--no-chart"))
        self.assertEqual(len(result["series"].buckets), 1)
        self.assertEqual(result["series"].max_concurrency, [50.0])

    def test_exports(self):
        json_path = self.tmp / "reports" / "summary.json"
        md_path = self.tmp / "reports" / "summary.md"
        self.run_tool(self.args("--no-chart", "--output-json", str(json_path), "--output-md", str(md_path)))
        payload = json.loads(json_path.read_text(encoding="utf-8"))
        self.assertEqual(len(payload["buckets"]), 5)
        self.assertIsNone(payload["buckets"][1]["max_cpu_percent"])
        self.assertEqual(payload["inflection"]["concurrency"], 50.0)
        self.assertTrue(md_path.exists())


class MainTests(LoadToolFixture):
    def test_exit_codes(self):
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main(self.args()), 0)
            self.assertEqual(main(self.args(stats=self.tmp / "none.json", env=self.tmp / "none.json")), 0)

    def test_missing_k6_results_is_fatal(self):
        with redirect_stdout(io.StringIO()), redirect_stderr(io.StringIO()) as err:
            code = main(self.args(k6=self.tmp / "missing.json"))
        self.assertEqual(code, 1)
        self.assertIn("ERROR", err.getvalue())

    def test_no_command(self):
        with redirect_stdout(io.StringIO()):
            self.assertEqual(main([]), 1)

    def test_rejects_non_positive_bucket(self):
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            build_parser().parse_args(self.args("--bucket-seconds", "0"))


if __name__ == "__main__":
    unittest.main()

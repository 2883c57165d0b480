#!/usr/bin/env python3
"""Smoke test for a running Health Timeline instance.

Works against any target: Docker Compose, K8s port-forward, deployed environment.
Uses httpx (project dependency) for HTTP calls. Writes two notes per run; it
does not need any ingested export.

Usage:
    python scripts/smoke_test.py                                   # default localhost:8000
    python scripts/smoke_test.py --base-url http://10.0.0.5:8000   # custom target
    python scripts/smoke_test.py --wait 120 --verbose              # longer wait, verbose
"""

from __future__ import annotations

import argparse
import sys
import time
import uuid

import httpx

ANNOTATION_DATE = "2024-03-14"


class TestResult:
    def __init__(self, name: str, passed: bool, detail: str = ""):
        self.name = name
        self.passed = passed
        self.detail = detail


class SmokeRunner:
    def __init__(self, base_url: str, verbose: bool = False):
        self.client = httpx.Client(base_url=base_url, timeout=30.0)
        self.verbose = verbose
        self.results: list[TestResult] = []
        self.run_id = uuid.uuid4().hex[:8]
        # A unique token makes the search check independent of earlier runs
        self.token = f"smoketoken{self.run_id}"

    def _record(self, name: str, passed: bool, detail: str = "") -> TestResult:
        result = TestResult(name, passed, detail)
        self.results.append(result)
        status = "PASS" if passed else "FAIL"
        line = f" [{status}] {name}"
        if detail and (not passed or self.verbose):
            line += f"  ({detail})"
        print(line)
        return result

    def _is_problem(self, resp: httpx.Response, status: int) -> bool:
        if resp.status_code != status:
            return False
        body = resp.json()
        rfc_fields = {"type", "title", "status", "detail", "instance"}
        return rfc_fields <= body.keys() and "application/problem+json" in resp.headers.get(
            "content-type", ""
        )

    # ── Individual checks ────────────────────────────────────────

    def check_health(self) -> None:
        resp = self.client.get("/health")
        self._record("Health check", resp.status_code == 200 and resp.json() == {"status": "ok"})

    def check_metrics(self) -> None:
        resp = self.client.get("/metrics/")
        ok = resp.status_code == 200 and "health_readings_ingested_total" in resp.text
        self._record("Metrics endpoint available", ok, f"status={resp.status_code}")

    def check_categories(self) -> None:
        resp = self.client.get("/api/v1/categories")
        ok = resp.status_code == 200
        detail = f"status={resp.status_code}"
        if ok:
            names = {c["name"] for c in resp.json()["data"]["categories"]}
            ok = {"vitals", "activity", "sleep", "workout"} <= names
            detail = f"{len(names)} categories"
        self._record("Categories listed", ok, detail)

    def check_add_note(self) -> None:
        resp = self.client.post(
            "/api/v1/notes",
            json={"text": f"Smoke test note {self.token}", "source": "smoke"},
        )
        ok = resp.status_code == 201 and resp.json()["data"].get("note_id") is not None
        self._record("Add note", ok, f"status={resp.status_code}")

    def check_annotation(self) -> None:
        resp = self.client.post(
            "/api/v1/annotations",
            json={
                "date": ANNOTATION_DATE,
                "text": f"Felt unwell {self.token}",
                "category": "vitals",
                "source": "smoke",
            },
        )
        ok = resp.status_code == 201 and resp.json()["data"]["annotated_date"] == ANNOTATION_DATE
        self._record("Annotate date", ok, f"status={resp.status_code}")

    def check_timeline_shows_annotation(self) -> None:
        resp = self.client.get(
            "/api/v1/timeline",
            params={"start": ANNOTATION_DATE, "end": ANNOTATION_DATE, "category": "note"},
        )
        ok = resp.status_code == 200
        detail = f"status={resp.status_code}"
        if ok:
            entries = resp.json()["data"]["entries"]
            ok = any(self.token in e["text"] for e in entries)
            detail = f"{len(entries)} entries"
        self._record("Timeline read-after-write", ok, detail)

    def check_search(self) -> None:
        resp = self.client.get("/api/v1/search", params={"q": self.token})
        ok = resp.status_code == 200
        detail = f"status={resp.status_code}"
        if ok:
            data = resp.json()["data"]
            ok = data["result_count"] >= 1 and self.token in data["narrative"]
            detail = f"result_count={data['result_count']}"
        self._record("Full-text search", ok, detail)

    def check_error_invalid_date_range(self) -> None:
        resp = self.client.get(
            "/api/v1/timeline", params={"start": "2024-03-15", "end": "2024-03-01"}
        )
        self._record(
            "Error: invalid date range", self._is_problem(resp, 400), f"{resp.status_code}"
        )

    def check_error_invalid_category(self) -> None:
        resp = self.client.get("/api/v1/timeline", params={"category": "astrology"})
        self._record(
            "Error: invalid category", self._is_problem(resp, 422), f"{resp.status_code}"
        )

    def run(self) -> bool:
        print(f"\nSmoke test run {self.run_id}\n")
        self.check_health()
        self.check_metrics()
        self.check_categories()
        self.check_add_note()
        self.check_annotation()
        self.check_timeline_shows_annotation()
        self.check_search()
        self.check_error_invalid_date_range()
        self.check_error_invalid_category()

        passed = sum(1 for r in self.results if r.passed)
        print(f"\n{passed}/{len(self.results)} checks passed\n")
        return passed == len(self.results)


def wait_for_service(base_url: str, timeout: int) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        try:
            if httpx.get(f"{base_url}/health", timeout=5.0).status_code == 200:
                return True
        except httpx.HTTPError:
            pass
        time.sleep(2)
    return False


def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke test a running Health Timeline API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--wait", type=int, default=30, help="Seconds to wait for /health")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    if not wait_for_service(args.base_url, args.wait):
        print(f"Service at {args.base_url} not healthy after {args.wait}s")
        return 1
    return 0 if SmokeRunner(args.base_url, verbose=args.verbose).run() else 1


if __name__ == "__main__":
    sys.exit(main())

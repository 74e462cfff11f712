"""
Test configuration and fixtures for the SiteSense API.

Audit engines are replaced by stub adapters returning canned payloads in
the shapes the real engines produce, so no browser, Lighthouse or ZAP is
needed to exercise the scan pipeline.
"""

import asyncio
import copy
import os
import tempfile
from typing import Generator

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "sitesense-test-logs"))

from app.features.scan.services.adapters.base import AuditAdapters  # noqa: E402
from app.main import create_app  # noqa: E402
from app.platform.config import Settings  # noqa: E402


CRAWL_OUTPUT = {
    "url": "https://example.com",
    "endpoints": ["https://example.com"] + [f"https://example.com/page-{i}" for i in range(1, 12)],
}

PERFORMANCE_OUTPUT = {
    "summary": {
        "overallPerformanceScore": 80,
        "overallSeoScore": 90,
        "performanceGrade": "B",
        "seoGrade": "A",
    },
    "pageResults": [
        {
            "url": "https://example.com",
            "metrics": {
                "firstContentfulPaint": 1200,
                "largestContentfulPaint": 2400,
                "totalBlockingTime": 150,
                "cumulativeLayoutShift": 0.05,
                "speedIndex": 2100,
            },
        }
    ],
    "issues": {
        "performance": [{"id": "render-blocking-resources", "title": "Eliminate render-blocking resources"}],
        "seo": [{"id": "meta-description", "title": "Document does not have a meta description"}],
    },
}

UX_OUTPUT = {
    "scan_id": "scan-1",
    "results": [
        {
            "url": "https://example.com",
            "status": "COMPLETED",
            "accessibility_score": 80,
            "violations": [
                {"id": "image-alt", "description": "Images must have alternate text",
                 "helpUrl": "https://dequeuniversity.com/rules/axe/image-alt", "impact": "critical"},
            ],
        },
        {
            "url": "https://example.com/page-1",
            "status": "COMPLETED",
            "accessibility_score": 60,
            "violations": [
                {"id": "image-alt", "description": "Images must have alternate text",
                 "helpUrl": "https://dequeuniversity.com/rules/axe/image-alt", "impact": "critical"},
                {"id": "color-contrast", "description": "Elements must have sufficient color contrast",
                 "helpUrl": "https://dequeuniversity.com/rules/axe/color-contrast"},
            ],
        },
        {
            "url": "https://example.com/page-2",
            "status": "FAILED",
            "accessibility_score": None,
            "violations": [],
        },
    ],
}

SECURITY_OUTPUT = {
    "summary": {
        "riskDistribution": {"high": 2, "medium": 1, "low": 0, "informational": 3},
        "topVulnerabilities": [
            {"title": "Server Leaks Version Information", "risk": "Informational", "occurrences": 4},
            {"title": "Cross Site Scripting (Reflected)", "risk": "High", "occurrences": 2,
             "impact": 9, "effort": "High"},
            {"title": "Content Security Policy Header Not Set", "risk": "Medium", "occurrences": 6},
        ],
    },
    "websites": [],
}


class StubAdapter:
    """Stands in for any audit engine: records requests, returns a canned payload."""

    def __init__(self, output=None, error=None, delay=0.0, gate=None, on_call=None):
        self.output = output
        self.error = error
        self.delay = delay
        self.gate = gate  # threading.Event; the call blocks until it is set
        self.on_call = on_call
        self.requests = []

    async def _respond(self, request):
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        if self.gate is not None:
            while not self.gate.is_set():
                await asyncio.sleep(0.01)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.output)

    async def crawl(self, request):
        return await self._respond(request)

    async def audit(self, request):
        return await self._respond(request)


@pytest.fixture
def stub_adapter():
    """The StubAdapter class, for tests that need a custom engine."""
    return StubAdapter


@pytest.fixture
def stub_adapters() -> AuditAdapters:
    return AuditAdapters(
        crawler=StubAdapter(CRAWL_OUTPUT),
        performance=StubAdapter(PERFORMANCE_OUTPUT),
        accessibility=StubAdapter(UX_OUTPUT),
        security=StubAdapter(SECURITY_OUTPUT),
    )


@pytest.fixture
def scan_settings(tmp_path) -> Settings:
    return Settings(
        SNAPSHOT_DIR=str(tmp_path / "snapshots"),
        MAX_CONCURRENT_SCANS=2,
        MAX_PENDING_SCANS=20,
        SECURITY_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def test_app(stub_adapters, scan_settings):
    """FastAPI application wired to stub adapters."""
    return create_app(adapters=stub_adapters, config=scan_settings)


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    Entering the client runs the app lifespan, so every test gets a fresh
    registry and orchestrator.
    """
    with TestClient(test_app) as test_client:
        yield test_client

"""
Pytest configuration and fixtures
"""

import pytest
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

from ingestion.http_client import NVDClient
from ingestion.pacing import RequestPacer
from ingestion.runner import SyncRunner

TEST_API_URL = "https://nvd.example.test/rest/json/cves/2.0"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def nvd_record(cve_id: str, **fields) -> Dict[str, Any]:
    """Minimal vulnerabilities[] entry"""
    return {"cve": {"id": cve_id, "sourceIdentifier": "cve@mitre.org", **fields}}


def make_response(
    body: Any = None,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None,
    json_error: Optional[Exception] = None
) -> MagicMock:
    """Mock of an httpx.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.text = str(body)
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


def page_body(records: List[Dict[str, Any]], total_results: int, start_index: int = 0) -> Dict[str, Any]:
    return {
        "resultsPerPage": len(records),
        "startIndex": start_index,
        "totalResults": total_results,
        "format": "NVD_CVE",
        "version": "2.0",
        "vulnerabilities": records,
    }


class FakeNVDApi:
    """
    Serves pages out of an in-memory catalog keyed by the window start
    parameter (``pubStartDate`` or ``lastModStartDate``).

    Windows missing from the catalog are empty. ``failures`` maps a window
    start to the HTTP status every request for that window receives.
    """

    def __init__(
        self,
        catalog: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        failures: Optional[Dict[str, int]] = None
    ):
        self.catalog = catalog or {}
        self.failures = failures or {}
        self.calls: List[Dict[str, Any]] = []

    def __call__(self, url, headers=None, params=None, timeout=None):
        params = dict(params or {})
        self.calls.append(params)

        window_start = params.get("pubStartDate") or params.get("lastModStartDate")
        if window_start in self.failures:
            return make_response({"message": "error"}, status_code=self.failures[window_start])

        records = self.catalog.get(window_start, [])
        start_index = int(params["startIndex"])
        page_size = int(params["resultsPerPage"])
        return make_response(
            page_body(records[start_index:start_index + page_size], len(records), start_index)
        )


def make_client(get: AsyncMock, max_retries: int = 3, pacer: Optional[RequestPacer] = None) -> NVDClient:
    """NVDClient around a mocked httpx.AsyncClient"""
    http = MagicMock()
    http.get = get
    return NVDClient(
        api_url=TEST_API_URL,
        api_key="test_key",
        max_retries=max_retries,
        retry_delay=0,
        timeout=5.0,
        pacer=pacer or RequestPacer(0),
        client=http
    )


def make_runner(data_dir, fake_api: FakeNVDApi, now: datetime, page_size: int = 2, **kwargs) -> SyncRunner:
    """SyncRunner against the fake API with a frozen clock and no pacing"""
    return SyncRunner(
        data_dir=data_dir,
        client=make_client(AsyncMock(side_effect=fake_api)),
        epoch=utc(1999, 1, 1),
        page_size=page_size,
        clock=lambda: now,
        **kwargs
    )


@pytest.fixture
def fake_api():
    return FakeNVDApi()


@pytest.fixture
def api_client(fake_api):
    return make_client(AsyncMock(side_effect=fake_api))

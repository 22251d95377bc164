from __future__ import annotations

import requests

from workers import probe_worker
from workers.probe_worker import ProbeWorker, inspect_source, validate_channel_url


class FakeHead:
    def __init__(self, status=200, headers=None):
        self.status_code = status
        self.headers = headers or {}

    @property
    def ok(self):
        return self.status_code < 400


def test_worker_reports_every_source(qapp, monkeypatch):
    monkeypatch.setattr(
        probe_worker,
        "_probe_url",
        lambda url, timeout_s: "OK (HEAD 200)" if "good" in url else "KO (timeout)",
    )
    worker = ProbeWorker(["http://good/1.m3u8", "http://dead/2.m3u8", "  ", "http://good/3.m3u8"], timeout_s=1)
    progress, counts, finished = [], [], []
    worker.progress.connect(lambda idx, status: progress.append((idx, status)))
    worker.progress_count.connect(lambda done, total: counts.append((done, total)))
    worker.finished.connect(lambda: finished.append(True))

    worker.run()

    assert sorted(progress) == [
        (0, "OK (HEAD 200)"),
        (1, "KO (timeout)"),
        (2, "KO (no url)"),
        (3, "OK (HEAD 200)"),
    ]
    assert worker.alive_indices() == [0, 3]
    assert counts[-1] == (3, 4)
    assert finished == [True]


def test_stopped_worker_still_finishes(qapp, monkeypatch):
    monkeypatch.setattr(probe_worker, "_probe_url", lambda url, timeout_s: "OK (HEAD 200)")
    worker = ProbeWorker(["http://a/1", "http://a/2"])
    finished = []
    worker.finished.connect(lambda: finished.append(True))
    worker.stop()
    worker.run()
    assert worker.results == {}
    assert finished == [True]


def test_validate_channel_url(monkeypatch):
    monkeypatch.setattr(probe_worker.requests, "head", lambda url, **kw: FakeHead(204))
    assert validate_channel_url("http://a/live.m3u8") is True

    monkeypatch.setattr(probe_worker.requests, "head", lambda url, **kw: FakeHead(404))
    assert validate_channel_url("http://a/live.m3u8") is False


def test_validate_timeout_is_not_valid(monkeypatch):
    seen = {}

    def slow_head(url, **kw):
        seen.update(kw)
        raise requests.exceptions.Timeout("5s")

    monkeypatch.setattr(probe_worker.requests, "head", slow_head)
    assert validate_channel_url("http://a/live.m3u8", timeout_s=5.0) is False
    assert seen["timeout"] == 5.0


def test_inspect_source(monkeypatch):
    monkeypatch.setattr(
        probe_worker.requests,
        "head",
        lambda url, **kw: FakeHead(200, {"content-type": "text/plain", "content-length": "42"}),
    )
    assert inspect_source("http://a/list.txt") == {
        "valid": True,
        "status": 200,
        "contentType": "text/plain",
        "contentLength": 42,
    }

    def refused(url, **kw):
        raise requests.exceptions.ConnectionError("refused")

    monkeypatch.setattr(probe_worker.requests, "head", refused)
    result = inspect_source("http://a/list.txt")
    assert result["valid"] is False
    assert result["error"].startswith("ConnectionError")


def test_ranked_urls_puts_live_sources_first(qapp, monkeypatch):
    monkeypatch.setattr(probe_worker, "_probe_url", lambda url, timeout_s: "OK (GET 206)" if "b" in url else "KO (GET 404)")
    worker = ProbeWorker(["http://a/1", "http://b/2", "http://c/3"])
    worker.run()
    assert worker.ranked_urls() == ["http://b/2", "http://a/1", "http://c/3"]

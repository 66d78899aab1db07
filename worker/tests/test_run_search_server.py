import pytest

from localpack.core.config import Settings
from localpack.jobs import run_search_server
from localpack.models import FetchFailure, Record, SearchResult


@pytest.fixture(autouse=True)
def stub_jobs(monkeypatch):
    calls = {}

    class DummyExecutor:
        def submit(self, fn, *args):
            calls["submitted"] = args

    def fake_search(**kwargs):
        calls["search"] = kwargs
        return SearchResult(query=kwargs["query"], records=[Record(title="A")], pages_fetched=1)

    monkeypatch.setattr(run_search_server, "_executor", DummyExecutor())
    monkeypatch.setattr(run_search_server, "search", fake_search)
    monkeypatch.setattr(run_search_server, "get_settings", lambda: Settings(export_dir="/tmp/exports"))
    yield calls


def test_health_endpoint():
    client = run_search_server.app.test_client()
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_search_validates_payload():
    client = run_search_server.app.test_client()
    assert client.post("/search", json={}).status_code == 400
    assert client.post("/search", json={"query": "gym", "max_pages": "bad"}).status_code == 400
    assert client.post("/search", json={"query": "gym", "max_pages": 0}).status_code == 400


def test_search_returns_records(stub_jobs):
    client = run_search_server.app.test_client()
    response = client.post(
        "/search",
        json={"query": " gym in tokyo ", "max_pages": 2, "skip_missing_phone": True, "region": "jp"},
    )

    assert response.status_code == 200
    data = response.get_json()["data"]
    assert data["records"][0]["title"] == "A"
    assert data["pages_fetched"] == 1
    assert stub_jobs["search"] == {
        "query": "gym in tokyo",
        "max_pages": 2,
        "skip_missing_phone": True,
        "default_region": "JP",
    }


def test_search_fetch_failure_maps_to_502(monkeypatch):
    def failing_search(**kwargs):
        raise FetchFailure("https://www.google.com/search?q=gym", "HTTP 429", status_code=429)

    monkeypatch.setattr(run_search_server, "search", failing_search)
    client = run_search_server.app.test_client()

    response = client.post("/search", json={"query": "gym"})

    assert response.status_code == 502
    assert "fetch failed" in response.get_json()["error"]


def test_export_is_queued(stub_jobs):
    client = run_search_server.app.test_client()
    response = client.post("/export", json={"query": "gym in tokyo"})

    assert response.status_code == 202
    data = response.get_json()["data"]
    assert data["status"] == "queued"
    assert data["output"].endswith("gym_in_tokyo.xlsx")
    job_args, output = stub_jobs["submitted"]
    assert job_args["query"] == "gym in tokyo"
    assert output == data["output"]


def test_proxy_fetch(monkeypatch):
    monkeypatch.setattr(run_search_server, "fetch_page", lambda url: f"<html>{url}</html>")
    client = run_search_server.app.test_client()

    assert client.get("/fetch").status_code == 400
    response = client.get("/fetch", query_string={"url": "https://www.google.com/search?q=gym&start=10&udm=1"})
    assert response.status_code == 200
    assert response.get_json() == {"data": "<html>https://www.google.com/search?q=gym&start=10&udm=1</html>"}


def test_proxy_fetch_failure(monkeypatch):
    def failing_fetch(url):
        raise FetchFailure(url, "timed out")

    monkeypatch.setattr(run_search_server, "fetch_page", failing_fetch)
    client = run_search_server.app.test_client()

    response = client.get("/fetch", query_string={"url": "https://www.google.com/search?q=gym&start=10&udm=1"})
    assert response.status_code == 502


def test_run_export_safe_writes_workbook(monkeypatch, stub_jobs):
    written = {}
    monkeypatch.setattr(run_search_server, "write_workbook", lambda records, output: written.update(output=output))

    run_search_server._run_export_safe({"query": "gym"}, "/tmp/exports/gym.xlsx")

    assert written["output"] == "/tmp/exports/gym.xlsx"


@pytest.mark.parametrize(
    "url",
    [
        "http://169.254.169.254/computeMetadata/v1/",
        "http://localhost:8080/admin",
        "http://www.google.com/search?q=gym",
        "https://www.google.com/url?q=https://internal.example/",
        "https://user:pw@www.google.com/search?q=gym",
        "https://www.google.com.evil.example/search?q=gym",
    ],
)
def test_proxy_fetch_rejects_urls_outside_search_endpoint(monkeypatch, url):
    fetched = []
    monkeypatch.setattr(run_search_server, "fetch_page", lambda target: fetched.append(target) or "secret")
    client = run_search_server.app.test_client()

    response = client.get("/fetch", query_string={"url": url})

    assert response.status_code == 400
    assert fetched == []


def test_search_leaves_skip_missing_phone_to_settings_when_absent(stub_jobs):
    client = run_search_server.app.test_client()

    assert client.post("/search", json={"query": "gym"}).status_code == 200
    assert stub_jobs["search"]["skip_missing_phone"] is None

    assert client.post("/search", json={"query": "gym", "skip_missing_phone": False}).status_code == 200
    assert stub_jobs["search"]["skip_missing_phone"] is False

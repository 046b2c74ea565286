"""
Tests for the scrape trigger routes.
"""
import pytest
from fastapi.testclient import TestClient

from app.scrape import get_scrape_runner
from core.models import NormalizedJob
from orchestrator import AggregateResult


def sample_result(success=True):
    if not success:
        return AggregateResult(success=False, errors=['registry unavailable'])
    job = NormalizedJob(
        id='ext_abc_1',
        title='Backend Engineer',
        description='Backend Engineer position at Acme',
        role='Backend Engineer',
        experience=2,
        location='Remote',
        company_id='external_acme',
        company_name='Acme',
        tech_stack=['Python'],
        external_url='https://acme.test/jobs/1',
        scraped_at='2024-03-01T12:00:00+00:00',
    )
    return AggregateResult(
        success=True,
        jobs=[job],
        summary={'total': 2, 'successful': 1, 'failed': 1, 'jobsPerSite': {'Acme': 1, 'Globex': 0}},
        errors=['Globex: No jobs found after trying all methods'],
        duration_seconds=1.25,
    )


@pytest.fixture
def runs():
    return []


@pytest.fixture
def client(runs):
    from main import app

    outcome = {'success': True}

    async def fake_runner():
        runs.append(1)
        return sample_result(outcome['success'])

    app.dependency_overrides[get_scrape_runner] = lambda: fake_runner
    test_client = TestClient(app)
    test_client.outcome = outcome
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_cron_secret(monkeypatch):
    monkeypatch.delenv("CRON_SECRET", raising=False)
    yield


def test_post_runs_aggregation(client, runs):
    response = client.post("/api/jobs/scrape")

    assert response.status_code == 200
    data = response.json()
    assert data['success'] is True
    assert data['message'] == 'Scraped 1 jobs from 1/2 sites'
    assert data['summary'] == {
        'total': 2, 'successful': 1, 'failed': 1,
        'jobsPerSite': {'Acme': 1, 'Globex': 0}, 'totalScraped': 1,
    }
    assert data['errors'] == ['Globex: No jobs found after trying all methods']
    assert data['jobs'][0]['externalUrl'] == 'https://acme.test/jobs/1'
    assert data['jobs'][0]['source'] == 'external'
    assert data['durationSeconds'] == 1.25
    assert runs == [1]


def test_post_reports_pipeline_failure(client):
    client.outcome['success'] = False

    data = client.post("/api/jobs/scrape").json()

    assert data['success'] is False
    assert data['message'] == 'Job scraping failed'
    assert data['errors'] == ['registry unavailable']
    assert data['jobs'] == []


def test_get_describes_usage(client, runs):
    response = client.get("/api/jobs/scrape")

    assert response.status_code == 200
    assert 'POST' in response.json()['usage']
    assert runs == []


def test_cron_open_when_no_secret(client, runs):
    response = client.get("/api/cron/scrape-jobs")

    assert response.status_code == 200
    assert response.json()['summary']['totalScraped'] == 1
    assert runs == [1]


def test_cron_requires_bearer_secret(client, runs, monkeypatch):
    monkeypatch.setenv("CRON_SECRET", "s3cret")

    assert client.get("/api/cron/scrape-jobs").status_code == 401
    assert client.get("/api/cron/scrape-jobs", headers={"Authorization": "Bearer wrong"}).status_code == 401
    assert runs == []

    response = client.get("/api/cron/scrape-jobs", headers={"Authorization": "Bearer s3cret"})
    assert response.status_code == 200
    assert runs == [1]


def test_healthz(client):
    response = client.get("/api/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

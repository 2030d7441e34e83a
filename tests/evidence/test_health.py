from fastapi import status
from httpx import ASGITransport, AsyncClient

from src.evidence.main import app, create_app
from src.evidence.infra.storage.staging import InMemoryStagingBucket


async def test_root_health_check():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


async def test_v1_health_check():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "version": "v1"}


async def test_staging_health_reports_bucket(container):
    test_app = create_app(container)
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/system/staging/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok", "bucket": "temp-transcription"}


async def test_staging_health_is_unavailable_when_bucket_missing(container):
    container.staging_bucket = InMemoryStagingBucket("gone", exists=False)
    test_app = create_app(container)
    async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as ac:
        response = await ac.get("/api/v1/system/staging/health")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert "gone" in response.json()["detail"]

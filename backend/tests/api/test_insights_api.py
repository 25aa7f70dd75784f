"""
Tests for the insights API endpoints

This module tests:
- Identity header handling
- Reanalysis queueing and cancellation
- Feature readiness labels
- Client summary and approval prediction responses
- Provider configuration errors surfaced as 503
"""

import uuid

import pytest
from httpx import AsyncClient

from insights.core.exceptions import ProviderConfigurationError
from insights.models import ContentFeatureStatus, ReviewStatus

API = "/api/v1"


# ========================================
# Identity
# ========================================

@pytest.mark.asyncio
async def test_missing_user_header_returns_401(client: AsyncClient):
    """Test that every route needs the caller's identity."""
    response = await client.get(f"{API}/submissions/{uuid.uuid4()}/features")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    """Test the health endpoint reports the queue."""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["analysis_worker"] == "stopped"
    assert data["analysis_queue_depth"] == 0


# ========================================
# Reanalysis
# ========================================

@pytest.mark.asyncio
async def test_reanalyze_queues_submission(client: AsyncClient, factory, runtime, auth_headers):
    """Test that reanalysis returns immediately with the item queued."""
    owner = await factory.client()
    submission = await factory.submission(owner)

    response = await client.post(f"{API}/submissions/{submission.id}/reanalyze", headers=auth_headers)

    assert response.status_code == 202
    data = response.json()
    assert data["queued"] is True
    assert data["submission_id"] == str(submission.id)
    assert runtime.queue.qsize() == 1


@pytest.mark.asyncio
async def test_reanalyze_other_users_submission_returns_404(client: AsyncClient, factory, runtime):
    """Test ownership scoping."""
    owner = await factory.client()
    submission = await factory.submission(owner)

    response = await client.post(
        f"{API}/submissions/{submission.id}/reanalyze",
        headers={"X-User-Id": "someone-else"}
    )

    assert response.status_code == 404
    assert runtime.queue.qsize() == 0


@pytest.mark.asyncio
async def test_reanalyze_unknown_submission_returns_404(client: AsyncClient, auth_headers):
    """Test a nonexistent submission."""
    response = await client.post(f"{API}/submissions/{uuid.uuid4()}/reanalyze", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_analysis_returns_204(client: AsyncClient, factory, auth_headers):
    """Test cancelling when nothing is in flight."""
    owner = await factory.client()
    submission = await factory.submission(owner)

    response = await client.delete(f"{API}/submissions/{submission.id}/analysis", headers=auth_headers)

    assert response.status_code == 204


# ========================================
# Features
# ========================================

@pytest.mark.asyncio
async def test_features_not_started(client: AsyncClient, factory, auth_headers):
    """Test a submission that has never been analyzed."""
    owner = await factory.client()
    submission = await factory.submission(owner)

    response = await client.get(f"{API}/submissions/{submission.id}/features", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["analysis_status"] == "not_started"
    assert data["readiness"] == "Insights not ready yet"
    assert data["tags"] == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status,label", [
    (ContentFeatureStatus.COMPLETED, "Ready"),
    (ContentFeatureStatus.NO_SIGNALS, "Ready, limited signals"),
    (ContentFeatureStatus.NO_IMAGES, "No images to analyze"),
    (ContentFeatureStatus.PENDING, "Insights not ready yet"),
    (ContentFeatureStatus.FAILED, "Insights not ready yet"),
])
async def test_features_readiness_labels(client: AsyncClient, factory, auth_headers, status, label):
    """Test the readiness label for each analysis state."""
    owner = await factory.client()
    submission = await factory.submission(owner)
    await factory.feature(submission, status=status)

    response = await client.get(f"{API}/submissions/{submission.id}/features", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["analysis_status"] == status.value
    assert data["readiness"] == label


@pytest.mark.asyncio
async def test_features_include_tags_and_text(client: AsyncClient, factory, auth_headers):
    """Test that stored signals are returned."""
    owner = await factory.client()
    submission = await factory.submission(owner)
    await factory.feature(submission, tags=("warm", "coffee"), ocr_text="Fresh brew")

    response = await client.get(f"{API}/submissions/{submission.id}/features", headers=auth_headers)

    data = response.json()
    assert data["tags"] == ["coffee", "warm"]
    assert data["ocr_text"] == "Fresh brew"
    assert data["themes"]["keywords"] == ["warm", "coffee"]


# ========================================
# Client Summary
# ========================================

@pytest.mark.asyncio
async def test_summary_unknown_client_returns_404(client: AsyncClient, auth_headers):
    """Test a client the caller does not own."""
    response = await client.get(f"{API}/insights/clients/{uuid.uuid4()}/summary", headers=auth_headers)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_summary_insufficient_history(client: AsyncClient, factory, fake_text, auth_headers):
    """Test a client with no reviews."""
    owner = await factory.client()

    response = await client.get(f"{API}/insights/clients/{owner.id}/summary", headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["approved_count"] == 0
    assert data["rejected_count"] == 0
    assert data["summary"]["data_status"] == "insufficient_history"
    assert fake_text.calls == []


@pytest.mark.asyncio
async def test_summary_provider_not_configured_returns_503(client: AsyncClient, factory, fake_text, auth_headers):
    """Test that missing credentials surface as a service-unavailable error."""
    owner = await factory.client()
    submission = await factory.submission(owner)
    await factory.feature(submission, tags=("coffee",))
    await factory.review(submission, ReviewStatus.APPROVED, comment="Love it")
    fake_text.reply = ProviderConfigurationError("anthropic", "ANTHROPIC_API_KEY is not set")

    response = await client.get(f"{API}/insights/clients/{owner.id}/summary", headers=auth_headers)

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "provider_not_configured"


# ========================================
# Approval Prediction
# ========================================

@pytest.mark.asyncio
async def test_predict_pending_signals(client: AsyncClient, factory, auth_headers):
    """Test a submission whose analysis has not finished."""
    owner = await factory.client()
    submission = await factory.submission(owner)

    response = await client.post(
        f"{API}/insights/predict",
        json={"client_id": str(owner.id), "submission_id": str(submission.id)},
        headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending_signals"
    assert data["probability"] is None


@pytest.mark.asyncio
async def test_predict_ready(client: AsyncClient, factory, auth_headers):
    """Test a scored prediction."""
    owner = await factory.client()
    submission = await factory.submission(owner, message="Weekend latte promo")
    await factory.feature(submission, tags=("coffee",))

    response = await client.post(
        f"{API}/insights/predict",
        json={"client_id": str(owner.id), "submission_id": str(submission.id)},
        headers=auth_headers
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert 0.0 < data["probability"] < 1.0
    assert data["rationale"].startswith("- ")


@pytest.mark.asyncio
async def test_predict_validates_body(client: AsyncClient, auth_headers):
    """Test request validation."""
    response = await client.post(f"{API}/insights/predict", json={"client_id": "nope"}, headers=auth_headers)

    assert response.status_code == 422

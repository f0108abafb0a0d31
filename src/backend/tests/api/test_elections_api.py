"""
End-to-end election flow over the HTTP API.
"""

import io
import zipfile

import cv2
import numpy as np
import pytest
from httpx import AsyncClient

from conftest import VOTER_ADDRESSES

SCHEDULE = {
    "post": "President",
    "start_time": "2026-01-10T09:00:00Z",
    "end_time": "2026-01-10T17:00:00Z",
}


async def _schedule_with_candidates(client: AsyncClient, headers: dict[str, str]) -> None:
    response = await client.post("/api/v1/elections/schedule", json=SCHEDULE, headers=headers)
    assert response.status_code == 200
    for name, party in [("Alice Moreau", "Unity"), ("Bongani Dlamini", "Progress")]:
        response = await client.post(
            "/api/v1/candidates",
            json={"name": name, "party": party, "post": "President"},
            headers=headers,
        )
        assert response.status_code == 200


@pytest.mark.integration
class TestElectionLifecycleApi:
    """Admin lifecycle commands and error mapping."""

    async def test_schedule_and_board(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        await _schedule_with_candidates(client, admin_headers)

        response = await client.get("/api/v1/elections", headers=admin_headers)
        assert response.status_code == 200
        board = response.json()
        assert board["candidate_count"] == 2
        assert board["views"][0]["window"]["status_label"] == "Not Scheduled"

    async def test_invalid_transition_is_422(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        await _schedule_with_candidates(client, admin_headers)
        response = await client.post("/api/v1/elections/President/end", headers=admin_headers)
        assert response.status_code == 422
        assert response.json()["error_type"] == "ValidationError"

    async def test_inverted_window_is_422(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        payload = dict(SCHEDULE, start_time=SCHEDULE["end_time"], end_time=SCHEDULE["start_time"])
        response = await client.post("/api/v1/elections/schedule", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_ledger_rejection_is_409(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        response = await client.post(f"/api/v1/voters/{VOTER_ADDRESSES[2]}/authorize", headers=admin_headers)
        assert response.status_code == 409
        assert response.json()["detail"] == "User not registered"
        assert response.json()["error_type"] == "RejectedCommand"

    async def test_unknown_post_is_404(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        response = await client.get("/api/v1/elections/Mayor", headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.integration
class TestVotingApi:
    """A voter casts a vote once an election is open."""

    async def test_full_vote_flow(
        self, client: AsyncClient, admin_headers: dict[str, str], voter_headers: dict[str, str]
    ) -> None:
        await _schedule_with_candidates(client, admin_headers)
        assert (await client.post("/api/v1/elections/President/start", headers=admin_headers)).status_code == 200

        response = await client.post(
            "/api/v1/voters/vote", json={"candidate_id": 2}, headers=voter_headers
        )
        assert response.status_code == 422
        assert response.json()["detail"] == "You are not authorized to vote"

        response = await client.post(f"/api/v1/voters/{VOTER_ADDRESSES[0]}/authorize", headers=admin_headers)
        assert response.status_code == 200

        eligibility = await client.get("/api/v1/elections/President/eligibility", headers=voter_headers)
        assert eligibility.json()["can_vote"] is True

        response = await client.post("/api/v1/voters/vote", json={"candidate_id": 2}, headers=voter_headers)
        assert response.status_code == 200
        assert response.json()["message"] == "Vote cast successfully for President!"

        view = (await client.get("/api/v1/elections/President", headers=admin_headers)).json()
        assert view["candidates"][0]["name"] == "Bongani Dlamini"
        assert view["turnout_percent"] == 100

        history = (await client.get("/api/v1/voters/me/history", headers=voter_headers)).json()
        assert history[0]["candidate_name"] == "Bongani Dlamini"

        breakdown = (await client.get("/api/v1/voters/breakdown", headers=admin_headers)).json()
        assert breakdown["voted_count"] == 1

    async def test_directory_search(
        self, client: AsyncClient, admin_headers: dict[str, str], voter_headers: dict[str, str]
    ) -> None:
        response = await client.get("/api/v1/voters/registered", params={"search": "AMA"}, headers=admin_headers)
        assert response.status_code == 200
        assert [entry["username"] for entry in response.json()] == ["amara"]

        response = await client.get("/api/v1/voters/registered", params={"search": "zzz"}, headers=admin_headers)
        assert response.json() == []


@pytest.mark.integration
class TestAdminApi:
    """Admin settings, image normalization and export."""

    async def test_limits_round_trip(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        payload = {"max_candidates": 4, "max_voters": 40, "max_registered_users": 400}
        assert (await client.put("/api/v1/admin/limits", json=payload, headers=admin_headers)).status_code == 200
        assert (await client.get("/api/v1/admin/limits", headers=admin_headers)).json() == payload

    async def test_negative_limits_rejected_by_schema(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        payload = {"max_candidates": -1, "max_voters": 40, "max_registered_users": 400}
        response = await client.put("/api/v1/admin/limits", json=payload, headers=admin_headers)
        assert response.status_code == 422

    async def test_normalize_image(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        ok, encoded = cv2.imencode(".png", np.zeros((900, 600, 3), dtype=np.uint8))
        assert ok
        response = await client.post(
            "/api/v1/candidates/image",
            content=encoded.tobytes(),
            headers={**admin_headers, "Content-Type": "image/png"},
        )
        assert response.status_code == 200
        data = response.json()
        assert (data["width"], data["height"]) == (267, 400)
        assert data["data_url"].startswith("data:image/jpeg;base64,")

    async def test_export(self, client: AsyncClient, admin_headers: dict[str, str]) -> None:
        await _schedule_with_candidates(client, admin_headers)
        response = await client.get("/api/v1/admin/export", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert "Election_Details_" in response.headers["content-disposition"]
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert sorted(archive.namelist()) == ["Authorized_Voters.csv", "Candidates.csv", "Elections.csv"]

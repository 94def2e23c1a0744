"""Tests for /api/leads endpoints."""

from uuid import uuid4

import pytest

from core.config import EngineConfig


class TestCreateLead:
    """POST /api/leads."""

    def test_returns_201_with_scored_lead(self, client, lead_payload):
        response = client.post("/api/leads", json=lead_payload)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Lead created"
        assert body["data"]["score"] == 75
        assert body["data"]["stage"] == "EnquiryReceived"

    def test_wire_format_is_camel_case(self, create_lead):
        lead = create_lead()
        assert "stageDateStart" in lead
        assert "createdBy" in lead
        assert "stage_date_start" not in lead
        assert lead["history"][0]["userId"] == "system"

    def test_single_history_entry(self, create_lead):
        lead = create_lead()
        assert len(lead["history"]) == 1
        assert lead["history"][0]["notes"] == "Lead created"

    def test_missing_required_field_is_400(self, client, lead_payload):
        del lead_payload["email"]
        response = client.post("/api/leads", json=lead_payload)

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "VALIDATION_ERROR"
        assert any("email" in d["field"] for d in body["error"]["details"])

    def test_unknown_source_is_400(self, client, lead_payload):
        response = client.post("/api/leads", json={**lead_payload, "source": "Carrier pigeon"})
        assert response.status_code == 400

    def test_actor_header_recorded(self, client, lead_payload):
        response = client.post("/api/leads", json=lead_payload, headers={"X-User-Id": "agent-042"})
        lead = response.json()["data"]
        assert lead["createdBy"] == "agent-042"
        assert lead["history"][0]["userId"] == "agent-042"


class TestGetLead:
    """GET /api/leads/{id}."""

    def test_returns_lead(self, client, create_lead):
        lead = create_lead()
        response = client.get(f"/api/leads/{lead['id']}")

        assert response.status_code == 200
        assert response.json()["data"]["id"] == lead["id"]

    def test_unknown_id_is_404(self, client):
        response = client.get(f"/api/leads/{uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_malformed_id_is_400(self, client):
        assert client.get("/api/leads/not-a-uuid").status_code == 400


class TestUpdateStage:
    """PUT /api/leads/{id}/stage."""

    def test_appends_history_and_moves_stage(self, client, create_lead):
        lead = create_lead()

        response = client.put(
            f"/api/leads/{lead['id']}/stage",
            json={"stage": "SiteVisit", "notes": "Tower B visit"},
            headers={"X-User-Id": "agent-007"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Lead moved to SiteVisit"
        updated = body["data"]
        assert updated["stage"] == "SiteVisit"
        assert len(updated["history"]) == 2
        assert updated["history"][-1] == {
            "stage": "SiteVisit",
            "date": updated["stageDateStart"],
            "notes": "Tower B visit",
            "userId": "agent-007",
        }

    def test_missing_stage_is_400(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}/stage", json={"notes": "no stage"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_stage_is_400(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}/stage", json={"stage": "Bogus"})
        assert response.status_code == 400

    def test_unknown_lead_is_404(self, client):
        response = client.put(f"/api/leads/{uuid4()}/stage", json={"stage": "Sold"})
        assert response.status_code == 404

    def test_jump_to_sold_updates_stats(self, client, create_lead):
        lead = create_lead()
        client.put(f"/api/leads/{lead['id']}/stage", json={"stage": "Sold"})

        stats = client.get("/api/leads/stats").json()["data"]

        assert stats["byStage"]["sold"] == 1
        assert stats["byStage"]["enquiryReceived"] == 0
        assert stats["conversionRate"] == 100


class TestStrictStages:

    @pytest.fixture
    def engine_config(self):
        return EngineConfig(strict_stage_transitions=True)

    def test_non_edge_rejected(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}/stage", json={"stage": "Sold"})

        assert response.status_code == 400
        assert response.json()["error"]["details"] == [{"field": "stage"}]


class TestUpdateLead:
    """PUT /api/leads/{id} and score routes."""

    def test_update_rescores(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}", json={"source": "Website"})

        assert response.status_code == 200
        assert response.json()["data"]["score"] == 55

    def test_stage_in_update_body_ignored(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}", json={"stage": "Sold", "notes": "x"})
        assert response.json()["data"]["stage"] == "EnquiryReceived"

    def test_manual_score(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}/score", json={"score": 33})
        assert response.json()["data"]["score"] == 33

    def test_manual_score_out_of_range(self, client, create_lead):
        lead = create_lead()
        response = client.put(f"/api/leads/{lead['id']}/score", json={"score": 150})
        assert response.status_code == 400

    def test_rescore_with_named_strategy(self, client, create_lead):
        lead = create_lead()
        response = client.post(f"/api/leads/{lead['id']}/rescore", params={"strategy": "ranking"})

        data = response.json()["data"]
        assert data["lead"]["score"] == 80
        assert data["reasons"][0].startswith("Source Referral (ranking table)")

    def test_rescore_unknown_strategy(self, client, create_lead):
        lead = create_lead()
        response = client.post(f"/api/leads/{lead['id']}/rescore", params={"strategy": "vibes"})

        assert response.status_code == 400
        assert response.json()["error"]["details"] == [{"field": "strategy"}]


class TestListLeads:
    """GET /api/leads."""

    @pytest.fixture
    def seeded(self, create_lead):
        return [
            create_lead(name="Hot", source="Other"),              # 95
            create_lead(name="Warm", source="Referral"),          # 75
            create_lead(name="Cold", source="Website", budget=None, interest=None),  # 15
        ]

    def test_score_filter_with_meta(self, client, seeded):
        response = client.get("/api/leads", params={"minScore": 70, "maxScore": 100})

        body = response.json()
        assert response.status_code == 200
        assert body["meta"]["total"] == 2
        assert {lead["name"] for lead in body["data"]} == {"Hot", "Warm"}
        assert all(70 <= lead["score"] <= 100 for lead in body["data"])

    def test_meta_shape(self, client, seeded):
        meta = client.get("/api/leads", params={"limit": 2}).json()["meta"]

        assert meta["total"] == 3
        assert meta["limit"] == 2
        assert meta["totalPages"] == 2
        assert meta["hasNext"] is True
        assert meta["hasPrev"] is False
        assert meta["stageStats"]["enquiryReceived"] == 3

    def test_stage_stats_follow_filter(self, client, seeded):
        client.put(f"/api/leads/{seeded[0]['id']}/stage", json={"stage": "Negotiation"})

        meta = client.get("/api/leads", params={"stage": "Negotiation"}).json()["meta"]

        assert meta["total"] == 1
        assert meta["stageStats"]["negotiation"] == 1
        assert sum(meta["stageStats"].values()) == 1

    def test_oversized_page_is_clamped(self, client, seeded):
        meta = client.get("/api/leads", params={"limit": 1000}).json()["meta"]
        assert meta["limit"] == 100

    def test_invalid_filter_is_400(self, client, seeded):
        response = client.get("/api/leads", params={"minScore": "lots"})
        assert response.status_code == 400

    def test_inverted_range_is_400(self, client, seeded):
        response = client.get("/api/leads", params={"minScore": 90, "maxScore": 10})
        assert response.status_code == 400

    def test_search(self, client, seeded):
        body = client.get("/api/leads", params={"search": "hot"}).json()
        assert [lead["name"] for lead in body["data"]] == ["Hot"]


class TestLeadStats:

    def test_empty_stats(self, client):
        stats = client.get("/api/leads/stats").json()["data"]
        assert stats["total"] == 0
        assert stats["averageScore"] == 0
        assert "walkIn" in stats["bySource"]

"""Integration tests for the Ailock progression endpoints."""

from __future__ import annotations

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from ailock.db.models import AilockProfile, AilockXpEvent
from ailock.progression.engine import ProgressionEngine

USER = "user-123"


async def _profile(client: AsyncClient, user_id: str = USER) -> dict:
    response = await client.get("/api/v1/ailock-profile", params={"userId": user_id})
    assert response.status_code == 200
    return response.json()["profile"]


async def _gain(client: AsyncClient, event_type: str, **target) -> dict:
    body = {"eventType": event_type, **(target or {"userId": USER})}
    response = await client.post("/api/v1/ailock-gain-xp", json=body)
    assert response.status_code == 200, response.text
    return response.json()


class TestProfileEndpoint:
    @pytest.mark.asyncio
    async def test_creates_profile_on_first_access(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ailock-profile", params={"userId": USER})
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True

        profile = data["profile"]
        assert profile["user_id"] == USER
        assert profile["name"] == "Ailock"
        assert profile["level"] == 1
        assert profile["xp"] == 0
        assert profile["skill_points"] == 1
        assert profile["avatar_stage"] == "robot"
        assert profile["characteristics"]["velocity"] == 10
        assert profile["progress_to_next_level"] == 0.0
        assert profile["level_info"]["xp_needed_for_next_level"] == 100
        assert profile["skills"] == []
        assert profile["achievements"] == []
        assert profile["recent_xp_history"] == []
        assert profile["total_interactions"] == 0

    @pytest.mark.asyncio
    async def test_same_profile_on_repeat_access(self, client: AsyncClient) -> None:
        first = await _profile(client)
        second = await _profile(client)
        assert first["id"] == second["id"]

    @pytest.mark.asyncio
    async def test_missing_user_id_is_422(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ailock-profile")
        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"

    @pytest.mark.asyncio
    async def test_rename(self, client: AsyncClient) -> None:
        profile = await _profile(client)
        response = await client.patch(f"/api/v1/ailock-profile/{profile['id']}", json={"name": "Nova"})
        assert response.status_code == 200
        assert response.json()["profile"]["name"] == "Nova"
        assert (await _profile(client))["name"] == "Nova"

    @pytest.mark.asyncio
    async def test_rename_validation(self, client: AsyncClient) -> None:
        profile = await _profile(client)
        response = await client.patch(f"/api/v1/ailock-profile/{profile['id']}", json={"name": ""})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_rename_unknown_ailock(self, client: AsyncClient) -> None:
        response = await client.patch("/api/v1/ailock-profile/does-not-exist", json={"name": "Nova"})
        assert response.status_code == 404


class TestGainXpEndpoint:
    @pytest.mark.asyncio
    async def test_first_intent(self, client: AsyncClient) -> None:
        data = await _gain(client, "intent_created")

        assert data["success"] is True
        assert data["xp_gained"] == 25
        assert data["new_xp"] == 25
        assert data["new_level"] == 1
        assert data["leveled_up"] is False
        assert [a["achievement_id"] for a in data["achievements_unlocked"]] == ["first_intent"]

        profile = await _profile(client)
        assert profile["xp"] == 25
        assert profile["total_intents_created"] == 1
        assert profile["total_interactions"] == 1
        assert profile["recent_xp_history"][0]["event_type"] == "intent_created"
        assert [a["name"] for a in profile["achievements"]] == ["First Intent"]

    @pytest.mark.asyncio
    async def test_achievement_not_repeated(self, client: AsyncClient) -> None:
        await _gain(client, "intent_created")
        data = await _gain(client, "intent_created")
        assert data["achievements_unlocked"] == []
        assert len((await _profile(client))["achievements"]) == 1

    @pytest.mark.asyncio
    async def test_accepts_snake_case_and_ailock_id(self, client: AsyncClient) -> None:
        profile = await _profile(client)
        response = await client.post(
            "/api/v1/ailock-gain-xp",
            json={"ailock_id": profile["id"], "event_type": "chat_message_sent", "context": {"chatId": "c1"}},
        )
        assert response.status_code == 200
        assert response.json()["ailock_id"] == profile["id"]
        assert response.json()["xp_gained"] == 5

    @pytest.mark.asyncio
    async def test_four_projects(self, client: AsyncClient) -> None:
        results = [await _gain(client, "project_completed") for _ in range(4)]

        assert [r["new_level"] for r in results] == [2, 4, 5, 6]
        assert [r["skill_points_gained"] for r in results] == [1, 2, 1, 1]
        assert [a["achievement_id"] for a in results[2]["achievements_unlocked"]] == ["level_5"]

        profile = await _profile(client)
        assert profile["xp"] == 800
        assert profile["level"] == 6
        assert profile["skill_points"] == 6
        assert 0.0 <= profile["progress_to_next_level"] <= 100.0

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_400(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/ailock-gain-xp", json={"userId": USER, "eventType": "bogus"})
        assert response.status_code == 400
        assert response.json()["detail"] == "Unknown event type: bogus"
        assert (await _profile(client))["xp"] == 0

    @pytest.mark.asyncio
    async def test_unknown_event_type_creates_nothing(self, client: AsyncClient, db_session) -> None:
        response = await client.post("/api/v1/ailock-gain-xp", json={"userId": "ghost", "eventType": "bogus"})

        assert response.status_code == 400
        assert await db_session.scalar(select(func.count()).select_from(AilockProfile)) == 0
        assert await db_session.scalar(select(func.count()).select_from(AilockXpEvent)) == 0

    @pytest.mark.asyncio
    async def test_unknown_ailock_is_404(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/ailock-gain-xp", json={"ailockId": "does-not-exist", "eventType": "intent_created"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_target_required(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/ailock-gain-xp", json={"eventType": "intent_created"})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_event_type_required(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/ailock-gain-xp", json={"userId": USER})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_persistent_db_failure_is_generic_500(self, client: AsyncClient, monkeypatch) -> None:
        await _profile(client)
        calls = 0

        async def _failing_gain(self, *args, **kwargs):
            nonlocal calls
            calls += 1
            raise OperationalError("UPDATE ailocks", {}, Exception("password=secret host unreachable"))

        monkeypatch.setattr(ProgressionEngine, "gain_xp", _failing_gain)

        response = await client.post("/api/v1/ailock-gain-xp", json={"userId": USER, "eventType": "intent_created"})

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
        assert "secret" not in response.text
        assert calls == 3

    @pytest.mark.asyncio
    async def test_transient_db_failure_is_retried(self, client: AsyncClient, monkeypatch) -> None:
        await _profile(client)
        original = ProgressionEngine.gain_xp
        calls = 0

        async def _flaky_gain(self, *args, **kwargs):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise OperationalError("UPDATE ailocks", {}, Exception("connection reset"))
            return await original(self, *args, **kwargs)

        monkeypatch.setattr(ProgressionEngine, "gain_xp", _flaky_gain)

        data = await _gain(client, "intent_created")

        assert calls == 2
        assert data["new_xp"] == 25

    @pytest.mark.asyncio
    async def test_achievement_failure_does_not_fail_grant(self, client: AsyncClient, monkeypatch) -> None:
        async def _failing_check(self, *args, **kwargs):
            raise OperationalError("INSERT INTO ailock_achievements", {}, Exception("deadlock"))

        monkeypatch.setattr(ProgressionEngine, "check_and_unlock_achievements", _failing_check)

        data = await _gain(client, "intent_created")

        assert data["xp_gained"] == 25
        assert data["achievements_unlocked"] == []
        assert (await _profile(client))["xp"] == 25


class TestUpgradeSkillEndpoint:
    @pytest.mark.asyncio
    async def test_unlock_root_skill(self, client: AsyncClient) -> None:
        await _profile(client)
        response = await client.post(
            "/api/v1/ailock-upgrade-skill", json={"userId": USER, "skillId": "semantic_search"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["new_level"] == 1
        assert data["skill_points_remaining"] == 0
        assert data["message"] == "Semantic Search unlocked"

        skills = (await _profile(client))["skills"]
        assert [s["skill_id"] for s in skills] == ["semantic_search"]
        assert skills[0]["max_level"] == 3
        assert skills[0]["effect"] == "Basic keyword and category matching."

    @pytest.mark.asyncio
    async def test_upgrade_message(self, client: AsyncClient) -> None:
        await _gain(client, "project_completed")  # level 2, one more point
        body = {"userId": USER, "skillId": "semantic_search"}
        await client.post("/api/v1/ailock-upgrade-skill", json=body)
        response = await client.post("/api/v1/ailock-upgrade-skill", json=body)
        assert response.status_code == 200
        assert response.json()["message"] == "Semantic Search upgraded to level 2"

    @pytest.mark.asyncio
    async def test_prerequisites_unmet(self, client: AsyncClient) -> None:
        await _profile(client)
        response = await client.post(
            "/api/v1/ailock-upgrade-skill", json={"userId": USER, "skillId": "deep_research"}
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Skill prerequisites not met"
        assert (await _profile(client))["skill_points"] == 1

    @pytest.mark.asyncio
    async def test_not_enough_points(self, client: AsyncClient) -> None:
        await _profile(client)
        body = {"userId": USER, "skillId": "semantic_search"}
        assert (await client.post("/api/v1/ailock-upgrade-skill", json=body)).status_code == 200
        response = await client.post("/api/v1/ailock-upgrade-skill", json=body)
        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough skill points"

    @pytest.mark.asyncio
    async def test_unknown_skill(self, client: AsyncClient) -> None:
        await _profile(client)
        response = await client.post(
            "/api/v1/ailock-upgrade-skill", json={"userId": USER, "skillId": "teleportation"}
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Unknown skill"

    @pytest.mark.asyncio
    async def test_unknown_user(self, client: AsyncClient) -> None:
        response = await client.post(
            "/api/v1/ailock-upgrade-skill", json={"userId": "nobody", "skillId": "semantic_search"}
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Ailock profile not found"

    @pytest.mark.asyncio
    async def test_skill_id_required(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/ailock-upgrade-skill", json={"userId": USER})
        assert response.status_code == 422


class TestXpHistoryEndpoint:
    @pytest.mark.asyncio
    async def test_paginated(self, client: AsyncClient) -> None:
        profile = await _profile(client)
        for _ in range(3):
            await _gain(client, "chat_message_sent")

        response = await client.get(
            f"/api/v1/ailock-profile/{profile['id']}/xp-history", params={"page": 1, "per_page": 2}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["per_page"] == 2
        assert len(data["entries"]) == 2
        assert all(e["xp_gained"] == 5 for e in data["entries"])

    @pytest.mark.asyncio
    async def test_per_page_bounded(self, client: AsyncClient) -> None:
        profile = await _profile(client)
        response = await client.get(f"/api/v1/ailock-profile/{profile['id']}/xp-history", params={"per_page": 500})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_ailock(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ailock-profile/does-not-exist/xp-history")
        assert response.status_code == 404


class TestReferenceEndpoints:
    @pytest.mark.asyncio
    async def test_skill_tree(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ailock/skill-tree")
        assert response.status_code == 200
        branches = response.json()["branches"]
        assert [b["id"] for b in branches] == ["research", "collaboration", "efficiency", "convenience"]
        assert all(len(b["skills"]) == 3 for b in branches)
        research = {s["id"]: s for s in branches[0]["skills"]}
        assert research["deep_research"]["prerequisites"] == ["semantic_search"]
        assert research["semantic_search"]["max_level"] == 3

    @pytest.mark.asyncio
    async def test_levels(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/ailock/levels")
        assert response.status_code == 200
        data = response.json()
        assert data["max_level"] == 20
        assert len(data["levels"]) == 20
        assert data["levels"][0] == {"level": 1, "xp_required": 100, "cumulative": 0}
        assert data["levels"][1] == {"level": 2, "xp_required": 120, "cumulative": 100}

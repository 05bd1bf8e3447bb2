"""
SpecDate Backend — Spec and Application API Tests
===================================================

What:  Spec CRUD, feed and my-specs listings, likes, joining and the owner's
       decisions on applications, through to picking a winner.
How:   Users are inserted directly (conftest.make_user); everything else
       goes through the HTTP API.

Flow exercised end to end:
    create ─> join (blue spark) ─> approve ─> winner ─> date code
"""

import re
from datetime import timedelta

import pytest
from sqlalchemy import select, update

from app.models import Notification, Spec, UserBalance, UserTransaction
from app.models.mixins import utcnow


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def spec_body(**overrides):
    body = {
        "title": "Coffee in Soho",
        "description": "Looking for a fellow chess player",
        "location_city": "London",
        "duration": 7,
        "max_participants": 5,
        "requirements": [],
    }
    body.update(overrides)
    return body


async def create_spec(client, token, **overrides):
    response = await client.post("/api/specs", json=spec_body(**overrides), headers=auth(token))
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def join(client, token, spec_id):
    return await client.post(f"/api/specs/{spec_id}/join", headers=auth(token))


async def approve(client, token, spec_id, application_id):
    return await client.post(
        f"/api/specs/{spec_id}/applications/{application_id}/approve",
        headers=auth(token),
    )


# ══════════════════════════════════════════════════════════════════════════
# CRUD
# ══════════════════════════════════════════════════════════════════════════

class TestCreateSpec:

    @pytest.mark.asyncio
    async def test_create(self, client, make_user):
        owner_id, token = await make_user("olivia")
        spec = await create_spec(
            client,
            token,
            requirements=[
                {"field": "age", "operator": ">=", "value": 25, "is_compulsory": True},
                {"field": "religion", "operator": "in", "value": ["None", "Christian"]},
            ],
        )

        assert spec["user_id"] == owner_id
        assert spec["status"] == "OPEN"
        assert spec["applications_count"] == 0
        assert spec["owner"]["username"] == "olivia"
        assert [r["value"] for r in spec["requirements"]] == ["25", ["None", "Christian"]]

    @pytest.mark.asyncio
    async def test_owner_holds_an_accepted_application(self, client, make_user):
        owner_id, token = await make_user("olivia")
        spec = await create_spec(client, token)

        detail = (await client.get(f"/api/specs/{spec['id']}", headers=auth(token))).json()["data"]
        assert [(a["user_id"], a["user_role"], a["status"]) for a in detail["applications"]] == [
            (owner_id, "owner", "ACCEPTED"),
        ]
        assert detail["participants_count"] == 0

    @pytest.mark.asyncio
    async def test_incomplete_profile(self, client, make_user):
        _, token = await make_user("olivia", complete=False)
        response = await client.post("/api/specs", json=spec_body(), headers=auth(token))
        assert response.status_code == 403
        assert response.json()["details"]["code"] == "PROFILE_INCOMPLETE"

    @pytest.mark.asyncio
    async def test_paused_owner(self, client, make_user):
        _, token = await make_user("olivia", paused=True)
        response = await client.post("/api/specs", json=spec_body(), headers=auth(token))
        assert response.status_code == 403
        assert "paused" in response.json()["message"]

    @pytest.mark.asyncio
    async def test_list_value_needs_list_operator(self, client, make_user):
        _, token = await make_user("olivia")
        response = await client.post(
            "/api/specs",
            json=spec_body(requirements=[{"field": "sex", "operator": "in", "value": "Male"}]),
            headers=auth(token),
        )
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_duration_bounds(self, client, make_user):
        _, token = await make_user("olivia")
        response = await client.post("/api/specs", json=spec_body(duration=30), headers=auth(token))
        assert response.status_code == 422
        assert "duration" in response.json()["details"]["errors"]


class TestUpdateDeleteSpec:

    @pytest.mark.asyncio
    async def test_update(self, client, make_user):
        _, token = await make_user("olivia")
        spec = await create_spec(client, token)

        response = await client.put(
            f"/api/specs/{spec['id']}",
            json={
                "title": "Dinner instead",
                "status": "CLOSED",
                "requirements": [{"field": "height", "operator": ">=", "value": 180, "is_compulsory": True}],
            },
            headers=auth(token),
        )

        data = response.json()["data"]
        assert data["title"] == "Dinner instead"
        assert data["status"] == "CLOSED"
        assert [r["field"] for r in data["requirements"]] == ["height"]

    @pytest.mark.asyncio
    async def test_null_title_is_ignored(self, client, make_user):
        _, token = await make_user("olivia")
        spec = await create_spec(client, token)
        response = await client.put(f"/api/specs/{spec['id']}", json={"title": None}, headers=auth(token))
        assert response.json()["data"]["title"] == "Coffee in Soho"

    @pytest.mark.asyncio
    async def test_only_owner_may_update_or_delete(self, client, make_user):
        _, owner = await make_user("olivia")
        _, other = await make_user("peter")
        spec = await create_spec(client, owner)

        update = await client.put(f"/api/specs/{spec['id']}", json={"title": "x"}, headers=auth(other))
        assert update.status_code == 403
        assert update.json()["message"] == "Unauthorized."
        delete = await client.delete(f"/api/specs/{spec['id']}", headers=auth(other))
        assert delete.status_code == 403

    @pytest.mark.asyncio
    async def test_delete(self, client, make_user):
        _, token = await make_user("olivia")
        spec = await create_spec(client, token)

        response = await client.delete(f"/api/specs/{spec['id']}", headers=auth(token))
        assert response.status_code == 200

        missing = await client.get(f"/api/specs/{spec['id']}", headers=auth(token))
        assert missing.status_code == 404
        assert missing.json()["message"] == "Spec not found."


# ══════════════════════════════════════════════════════════════════════════
# Listings and likes
# ══════════════════════════════════════════════════════════════════════════

class TestFeed:

    @pytest.mark.asyncio
    async def test_live_feed(self, client, make_user):
        _, owner = await make_user("olivia")
        _, viewer = await make_user("peter")
        first = await create_spec(client, owner, title="First")
        second = await create_spec(client, owner, title="Second")

        page = (await client.get("/api/specs", headers=auth(viewer))).json()["data"]

        assert [s["id"] for s in page["data"]] == [second["id"], first["id"]]
        assert page["per_page"] == 10
        assert all(s["tag"] == "LIVE" for s in page["data"])

    @pytest.mark.asyncio
    async def test_exclude_own(self, client, make_user):
        _, owner = await make_user("olivia")
        await create_spec(client, owner)
        page = (
            await client.get("/api/specs", params={"exclude_own": "true"}, headers=auth(owner))
        ).json()["data"]
        assert page["data"] == []

    @pytest.mark.asyncio
    async def test_closed_and_paused_owner_specs_are_hidden(self, client, make_user):
        _, owner = await make_user("olivia")
        _, paused_owner = await make_user("quinn")
        _, viewer = await make_user("peter")
        closed = await create_spec(client, owner)
        await client.put(f"/api/specs/{closed['id']}", json={"status": "CLOSED"}, headers=auth(owner))
        await create_spec(client, paused_owner)
        await client.post("/api/account/pause", headers=auth(paused_owner))

        page = (await client.get("/api/specs", headers=auth(viewer))).json()["data"]
        assert page["total"] == 0

    @pytest.mark.asyncio
    async def test_popular_orders_by_applications(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        quiet = await create_spec(client, owner, title="Quiet")
        busy = await create_spec(client, owner, title="Busy")
        await create_spec(client, owner, title="Newest")
        await join(client, fan, busy["id"])

        page = (
            await client.get("/api/specs", params={"filter": "POPULAR"}, headers=auth(fan))
        ).json()["data"]
        assert page["data"][0]["id"] == busy["id"]
        assert page["data"][0]["applications_count"] == 1
        assert quiet["id"] in [s["id"] for s in page["data"]]

    @pytest.mark.asyncio
    async def test_hottest_recent_specs_by_applications(self, client, make_user, session_factory):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        stale = await create_spec(client, owner, title="Stale")
        quiet = await create_spec(client, owner, title="Quiet")
        busy = await create_spec(client, owner, title="Busy")
        await join(client, fan, stale["id"])
        await join(client, fan, busy["id"])
        async with session_factory() as session:
            await session.execute(
                update(Spec)
                .where(Spec.id == stale["id"])
                .values(created_at=utcnow() - timedelta(days=4))
            )
            await session.commit()

        page = (
            await client.get("/api/specs", params={"filter": "HOTTEST"}, headers=auth(fan))
        ).json()["data"]

        assert [s["id"] for s in page["data"]] == [busy["id"], quiet["id"]]
        assert all(s["tag"] == "HOTTEST" for s in page["data"])

    @pytest.mark.asyncio
    async def test_ongoing_only_expiring_soon(self, client, make_user):
        _, owner = await make_user("olivia")
        soon = await create_spec(client, owner, duration=1)
        await create_spec(client, owner, duration=7)

        page = (
            await client.get("/api/specs", params={"filter": "ONGOING"}, headers=auth(owner))
        ).json()["data"]
        assert [s["id"] for s in page["data"]] == [soon["id"]]

    @pytest.mark.asyncio
    async def test_unknown_filter(self, client, make_user):
        _, token = await make_user("olivia")
        response = await client.get("/api/specs", params={"filter": "RANDOM"}, headers=auth(token))
        assert response.status_code == 422


class TestMySpecs:

    @pytest.mark.asyncio
    async def test_owned_and_joined(self, client, make_user):
        _, alice = await make_user("alice")
        _, bob = await make_user("bob")
        mine = await create_spec(client, alice, title="Mine")
        theirs = await create_spec(client, bob, title="Theirs")
        await join(client, alice, theirs["id"])

        async def ids(kind):
            response = await client.get("/api/my-specs", params={"type": kind}, headers=auth(alice))
            return [s["id"] for s in response.json()["data"]["data"]]

        assert await ids("owned") == [mine["id"]]
        assert await ids("joined") == [theirs["id"]]
        assert sorted(await ids("all")) == sorted([mine["id"], theirs["id"]])


class TestLikes:

    @pytest.mark.asyncio
    async def test_toggle(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)

        first = await client.post(f"/api/specs/{spec['id']}/like", headers=auth(fan))
        assert first.json()["data"] == {"liked": True, "count": 1}
        detail = (await client.get(f"/api/specs/{spec['id']}", headers=auth(fan))).json()["data"]
        assert detail["is_liked"] is True
        assert detail["likes_count"] == 1

        second = await client.post(f"/api/specs/{spec['id']}/like", headers=auth(fan))
        assert second.json()["data"] == {"liked": False, "count": 0}


# ══════════════════════════════════════════════════════════════════════════
# Joining
# ══════════════════════════════════════════════════════════════════════════

class TestJoin:

    @pytest.mark.asyncio
    async def test_join_costs_a_blue_spark_and_notifies_owner(self, client, make_user, session_factory):
        owner_id, owner = await make_user("olivia")
        fan_id, fan = await make_user("peter")
        spec = await create_spec(client, owner)

        response = await join(client, fan, spec["id"])

        assert response.status_code == 200
        application = response.json()["data"]
        assert application["status"] == "PENDING"
        assert application["user_role"] == "participant"
        assert application["spec_title"] == "Coffee in Soho"

        async with session_factory() as session:
            balance = await session.scalar(select(UserBalance).where(UserBalance.user_id == fan_id))
            assert balance.blue_sparks == 1
            ledger = (await session.scalars(select(UserTransaction))).all()
            assert [(t.user_id, t.item_type, t.purpose) for t in ledger] == [
                (fan_id, "blue_spark", "Joined Spec: Coffee in Soho"),
            ]
            notes = (await session.scalars(select(Notification).where(Notification.user_id == owner_id))).all()
            assert [n.type for n in notes] == ["join_request"]
            assert notes[0].data["applicant_id"] == fan_id

    @pytest.mark.asyncio
    async def test_missing_spec(self, client, make_user):
        _, fan = await make_user("peter")
        assert (await join(client, fan, 404)).status_code == 404

    @pytest.mark.asyncio
    async def test_own_spec(self, client, make_user):
        _, owner = await make_user("olivia")
        spec = await create_spec(client, owner)
        response = await join(client, owner, spec["id"])
        assert response.status_code == 400
        assert response.json()["message"] == "You cannot join your own spec."

    @pytest.mark.asyncio
    async def test_incomplete_profile(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter", complete=False)
        spec = await create_spec(client, owner)
        response = await join(client, fan, spec["id"])
        assert response.status_code == 403
        assert response.json()["details"]["code"] == "PROFILE_INCOMPLETE"

    @pytest.mark.asyncio
    async def test_already_applied(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        await join(client, fan, spec["id"])

        response = await join(client, fan, spec["id"])
        assert response.status_code == 400
        assert response.json()["message"] == "You have already applied to this spec."

    @pytest.mark.asyncio
    async def test_closed_spec(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        await client.put(f"/api/specs/{spec['id']}", json={"status": "CLOSED"}, headers=auth(owner))

        response = await join(client, fan, spec["id"])
        assert response.status_code == 400
        assert response.json()["message"] == "This spec is no longer accepting applications."

    @pytest.mark.asyncio
    async def test_expired_spec(self, client, make_user, session_factory):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        async with session_factory() as session:
            await session.execute(
                update(Spec)
                .where(Spec.id == spec["id"])
                .values(expires_at=utcnow() - timedelta(minutes=1))
            )
            await session.commit()

        response = await join(client, fan, spec["id"])
        assert response.status_code == 400
        assert response.json()["message"] == "This spec is no longer accepting applications."

    @pytest.mark.asyncio
    async def test_no_blue_sparks(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter", blue_sparks=0)
        spec = await create_spec(client, owner)

        response = await join(client, fan, spec["id"])
        assert response.status_code == 403
        body = response.json()
        assert body["details"]["code"] == "INSUFFICIENT_FUNDS"
        assert body["message"] == "Insufficient Blue Sparks. Please purchase more."

    @pytest.mark.asyncio
    async def test_unmet_requirement_charges_nothing(self, client, make_user, session_factory):
        _, owner = await make_user("olivia")
        fan_id, fan = await make_user("peter", height=165)
        spec = await create_spec(
            client,
            owner,
            requirements=[{"field": "height", "operator": ">=", "value": 170, "is_compulsory": True}],
        )

        response = await join(client, fan, spec["id"])

        assert response.status_code == 422
        assert response.json()["message"] == "Requirement not met: height (min 170 cm, yours is 165 cm)"
        async with session_factory() as session:
            balance = await session.scalar(select(UserBalance).where(UserBalance.user_id == fan_id))
            assert balance.blue_sparks == 2

    @pytest.mark.asyncio
    async def test_boolean_requirement_sent_as_digit(self, client, make_user):
        _, owner = await make_user("olivia")
        _, smoker = await make_user("peter", is_smoker=True)
        _, non_smoker = await make_user("rita", is_smoker=False)
        spec = await create_spec(
            client,
            owner,
            requirements=[{"field": "is_smoker", "operator": "=", "value": "1", "is_compulsory": True}],
        )

        assert (await join(client, smoker, spec["id"])).status_code == 200
        response = await join(client, non_smoker, spec["id"])
        assert response.status_code == 422
        assert response.json()["message"] == "Requirement not met: is_smoker"

    @pytest.mark.asyncio
    async def test_optional_requirement_is_not_enforced(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter", height=165)
        spec = await create_spec(
            client,
            owner,
            requirements=[{"field": "height", "operator": ">=", "value": 170, "is_compulsory": False}],
        )
        assert (await join(client, fan, spec["id"])).status_code == 200


# ══════════════════════════════════════════════════════════════════════════
# Owner decisions
# ══════════════════════════════════════════════════════════════════════════

class TestApplications:

    @pytest.mark.asyncio
    async def test_pending_requests(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        await join(client, fan, spec["id"])

        response = await client.get("/api/requests/pending", headers=auth(owner))
        pending = response.json()["data"]
        assert len(pending) == 1
        assert pending[0]["user"]["username"] == "peter"
        assert pending[0]["spec_title"] == "Coffee in Soho"

    @pytest.mark.asyncio
    async def test_approve(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]

        response = await approve(client, owner, spec["id"], application["id"])
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "ACCEPTED"

        detail = (await client.get(f"/api/specs/{spec['id']}", headers=auth(owner))).json()["data"]
        assert detail["participants_count"] == 1
        assert detail["applications_count"] == 1

        again = await approve(client, owner, spec["id"], application["id"])
        assert again.status_code == 400

    @pytest.mark.asyncio
    async def test_full_spec(self, client, make_user):
        _, owner = await make_user("olivia")
        _, first = await make_user("peter")
        _, second = await make_user("quinn")
        spec = await create_spec(client, owner, max_participants=1)
        a1 = (await join(client, first, spec["id"])).json()["data"]
        a2 = (await join(client, second, spec["id"])).json()["data"]

        assert (await approve(client, owner, spec["id"], a1["id"])).status_code == 200
        full = await approve(client, owner, spec["id"], a2["id"])
        assert full.status_code == 400
        assert full.json()["message"] == "This spec is full."

    @pytest.mark.asyncio
    async def test_reject(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]

        response = await client.post(
            f"/api/specs/{spec['id']}/applications/{application['id']}/reject",
            headers=auth(owner),
        )
        assert response.json()["data"]["status"] == "REJECTED"
        assert (await approve(client, owner, spec["id"], application["id"])).status_code == 400

    @pytest.mark.asyncio
    async def test_non_owner(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]

        response = await approve(client, fan, spec["id"], application["id"])
        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized."

    @pytest.mark.asyncio
    async def test_unknown_application(self, client, make_user):
        _, owner = await make_user("olivia")
        spec = await create_spec(client, owner)
        response = await approve(client, owner, spec["id"], 999)
        assert response.status_code == 404
        assert response.json()["message"] == "Application not found."

    @pytest.mark.asyncio
    async def test_owner_application_cannot_be_changed(self, client, make_user):
        _, owner = await make_user("olivia")
        spec = await create_spec(client, owner)
        detail = (await client.get(f"/api/specs/{spec['id']}", headers=auth(owner))).json()["data"]
        own = detail["applications"][0]["id"]
        response = await client.post(
            f"/api/specs/{spec['id']}/applications/{own}/eliminate",
            headers=auth(owner),
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_eliminate_requires_accepted(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]
        url = f"/api/specs/{spec['id']}/applications/{application['id']}/eliminate"

        assert (await client.post(url, headers=auth(owner))).status_code == 400
        await approve(client, owner, spec["id"], application["id"])
        response = await client.post(url, headers=auth(owner))
        assert response.json()["data"]["status"] == "ELIMINATED"


class TestWinner:

    @pytest.mark.asyncio
    async def test_select_winner_completes_spec(self, client, make_user, session_factory):
        owner_id, owner = await make_user("olivia")
        fan_id, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]
        await approve(client, owner, spec["id"], application["id"])

        response = await client.post(
            f"/api/specs/{spec['id']}/applications/{application['id']}/winner",
            headers=auth(owner),
        )

        assert response.status_code == 200
        date = response.json()["data"]
        assert re.fullmatch(r"[A-Z0-9]{6}", date["date_code"])
        assert (date["owner_id"], date["winner_id"]) == (owner_id, fan_id)

        detail = (await client.get(f"/api/specs/{spec['id']}", headers=auth(owner))).json()["data"]
        assert detail["status"] == "COMPLETED"
        statuses = {a["user_id"]: a["status"] for a in detail["applications"]}
        assert statuses[fan_id] == "WINNER"

        profile = (await client.get(f"/api/users/{fan_id}", headers=auth(owner))).json()["data"]
        assert profile["dates_count"] == 1
        assert profile["specs_participated_count"] == 1

        async with session_factory() as session:
            won = await session.scalar(
                select(Notification).where(Notification.user_id == fan_id, Notification.type == "spec_won")
            )
            assert won.data["date_code"] == date["date_code"]

    @pytest.mark.asyncio
    async def test_winner_must_be_accepted(self, client, make_user):
        _, owner = await make_user("olivia")
        _, fan = await make_user("peter")
        spec = await create_spec(client, owner)
        application = (await join(client, fan, spec["id"])).json()["data"]

        response = await client.post(
            f"/api/specs/{spec['id']}/applications/{application['id']}/winner",
            headers=auth(owner),
        )
        assert response.status_code == 400

"""
SpecDate Backend — Round API Tests
====================================

What:  Question rounds inside a spec: start, answer, review, eliminate, nudge.
How:   `arena` builds an owner plus N accepted participants through the API.
"""

from datetime import timedelta

import pytest
from sqlalchemy import select, update

from app.models import Notification, SpecRound, UserBalance, UserTransaction
from app.models.mixins import utcnow
from app.services.round_service import elimination_target


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def arena(client, make_user):
    """Factory: `await arena(n)` → (spec_id, owner_token, [(user_id, token), ...])."""

    async def _arena(participants=2):
        _, owner = await make_user("olivia")
        response = await client.post(
            "/api/specs",
            json={"title": "Quiz night", "duration": 7, "max_participants": 10},
            headers=auth(owner),
        )
        spec_id = response.json()["data"]["id"]

        players = []
        for i in range(participants):
            user_id, token = await make_user(f"player{i}")
            application = (
                await client.post(f"/api/specs/{spec_id}/join", headers=auth(token))
            ).json()["data"]
            await client.post(
                f"/api/specs/{spec_id}/applications/{application['id']}/approve",
                headers=auth(owner),
            )
            players.append((user_id, token))
        return spec_id, owner, players

    return _arena


async def start(client, owner, spec_id, question="Pineapple on pizza?", **extra):
    return await client.post(
        f"/api/specs/{spec_id}/rounds",
        json={"question": question, **extra},
        headers=auth(owner),
    )


async def answer(client, token, round_id, text="Yes", media_id=None):
    body = {"answer": text}
    if media_id is not None:
        body["media_id"] = media_id
    return await client.post(f"/api/rounds/{round_id}/answer", json=body, headers=auth(token))


@pytest.mark.parametrize("participants,expected", [(0, 1), (1, 1), (10, 1), (11, 2), (25, 3)])
def test_elimination_target(participants, expected):
    assert elimination_target(participants) == expected


class TestStartRound:

    @pytest.mark.asyncio
    async def test_start(self, client, arena, session_factory):
        spec_id, owner, players = await arena(2)

        response = await start(client, owner, spec_id, duration_minutes=30)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["round_number"] == 1
        assert data["status"] == "ACTIVE"
        assert data["question_text"] == "Pineapple on pizza?"
        assert data["elimination_count"] == 1
        assert data["deadline_at"] is not None

        async with session_factory() as session:
            notified = (
                await session.scalars(select(Notification.user_id).where(Notification.type == "round_started"))
            ).all()
        assert sorted(notified) == sorted(user_id for user_id, _ in players)

    @pytest.mark.asyncio
    async def test_next_round_completes_the_previous(self, client, arena):
        spec_id, owner, _ = await arena(1)
        first = (await start(client, owner, spec_id)).json()["data"]
        second = (await start(client, owner, spec_id, question="Cats or dogs?")).json()["data"]

        assert second["round_number"] == 2
        rounds = (await client.get(f"/api/specs/{spec_id}", headers=auth(owner))).json()["data"]["rounds"]
        assert [(r["id"], r["status"]) for r in rounds] == [
            (first["id"], "COMPLETED"),
            (second["id"], "ACTIVE"),
        ]

    @pytest.mark.asyncio
    async def test_needs_participants(self, client, arena):
        spec_id, owner, _ = await arena(0)
        response = await start(client, owner, spec_id)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_owner_only(self, client, arena):
        spec_id, _, players = await arena(1)
        response = await start(client, players[0][1], spec_id)
        assert response.status_code == 403


class TestAnswers:

    @pytest.mark.asyncio
    async def test_answer_and_auto_review(self, client, arena):
        spec_id, owner, players = await arena(2)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]

        first = await answer(client, players[0][1], round_id, "Absolutely")
        assert first.status_code == 201
        assert first.json()["data"]["answer_text"] == "Absolutely"

        detail = (await client.get(f"/api/specs/{spec_id}", headers=auth(owner))).json()["data"]
        assert detail["rounds"][0]["status"] == "ACTIVE"

        await answer(client, players[1][1], round_id, "Never")
        detail = (await client.get(f"/api/specs/{spec_id}", headers=auth(owner))).json()["data"]
        assert detail["rounds"][0]["status"] == "REVIEWING"
        assert len(detail["rounds"][0]["answers"]) == 2

    @pytest.mark.asyncio
    async def test_participants_only_see_their_own_answer(self, client, arena):
        spec_id, owner, players = await arena(2)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        await answer(client, players[0][1], round_id, "Mine")
        await answer(client, players[1][1], round_id, "Theirs")

        detail = (await client.get(f"/api/specs/{spec_id}", headers=auth(players[0][1]))).json()["data"]
        assert [a["answer_text"] for a in detail["rounds"][0]["answers"]] == ["Mine"]

    @pytest.mark.asyncio
    async def test_answer_once(self, client, arena):
        spec_id, owner, players = await arena(2)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        await answer(client, players[0][1], round_id)

        again = await answer(client, players[0][1], round_id)
        assert again.status_code == 400
        assert again.json()["message"] == "You have already answered this question."

    @pytest.mark.asyncio
    async def test_non_participant(self, client, arena, make_user):
        spec_id, owner, _ = await arena(1)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        _, stranger = await make_user("stranger")

        assert (await answer(client, stranger, round_id)).status_code == 403

    @pytest.mark.asyncio
    async def test_closed_round(self, client, arena):
        spec_id, owner, players = await arena(2)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        closed = await client.post(f"/api/rounds/{round_id}/close", headers=auth(owner))
        assert closed.json()["data"]["status"] == "REVIEWING"

        response = await answer(client, players[0][1], round_id)
        assert response.status_code == 400
        assert response.json()["message"] == "Round is not active."

    @pytest.mark.asyncio
    async def test_deadline_passed(self, client, arena, session_factory):
        spec_id, owner, players = await arena(1)
        round_id = (await start(client, owner, spec_id, duration_minutes=5)).json()["data"]["id"]
        async with session_factory() as session:
            await session.execute(
                update(SpecRound)
                .where(SpecRound.id == round_id)
                .values(deadline_at=utcnow() - timedelta(minutes=1))
            )
            await session.commit()

        response = await answer(client, players[0][1], round_id)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_answer_with_media(self, client, arena, sample_image_bytes):
        spec_id, owner, players = await arena(1)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        token = players[0][1]
        media = (
            await client.post(
                "/api/media/upload",
                data={"type": "round_answer_image"},
                files={"file": ("answer.jpg", sample_image_bytes, "image/jpeg")},
                headers=auth(token),
            )
        ).json()["data"]

        response = await answer(client, token, round_id, "See photo", media_id=media["id"])
        assert response.status_code == 201
        assert response.json()["data"]["media_url"] == media["url"]

    @pytest.mark.asyncio
    async def test_answer_with_someone_elses_media(self, client, arena, sample_image_bytes):
        spec_id, owner, players = await arena(1)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        media = (
            await client.post(
                "/api/media/upload",
                data={"type": "round_answer_image"},
                files={"file": ("answer.jpg", sample_image_bytes, "image/jpeg")},
                headers=auth(owner),
            )
        ).json()["data"]

        response = await answer(client, players[0][1], round_id, media_id=media["id"])
        assert response.status_code == 404


class TestEliminations:

    @pytest.mark.asyncio
    async def test_eliminate_user(self, client, arena, session_factory):
        spec_id, owner, players = await arena(2)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        loser_id, loser = players[0]
        await answer(client, loser, round_id, "Meh")

        response = await client.post(
            f"/api/rounds/{round_id}/eliminate",
            json={"user_id": loser_id},
            headers=auth(owner),
        )

        assert response.status_code == 200
        assert response.json()["message"] == "User eliminated."
        detail = (await client.get(f"/api/specs/{spec_id}", headers=auth(owner))).json()["data"]
        statuses = {a["user_id"]: a["status"] for a in detail["applications"]}
        assert statuses[loser_id] == "ELIMINATED"
        assert detail["rounds"][0]["answers"][0]["is_eliminated"] is True

        async with session_factory() as session:
            balance = await session.scalar(select(UserBalance).where(UserBalance.user_id == loser_id))
            assert balance.red_sparks == 1
            red = await session.scalar(
                select(UserTransaction).where(
                    UserTransaction.user_id == loser_id,
                    UserTransaction.item_type == "red_spark",
                )
            )
            assert red.purpose == "Eliminated from Spec: Quiz night"

        # eliminated users cannot answer later rounds
        next_round = (await start(client, owner, spec_id)).json()["data"]["id"]
        assert (await answer(client, loser, next_round)).status_code == 403

    @pytest.mark.asyncio
    async def test_eliminate_unknown_participant(self, client, arena):
        spec_id, owner, _ = await arena(1)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        response = await client.post(
            f"/api/rounds/{round_id}/eliminate",
            json={"user_id": 9999},
            headers=auth(owner),
        )
        assert response.status_code == 404
        assert response.json()["message"] == "Participant not found."

    @pytest.mark.asyncio
    async def test_bulk_elimination_completes_round(self, client, arena):
        spec_id, owner, players = await arena(3)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]

        response = await client.post(
            f"/api/rounds/{round_id}/eliminations",
            json={"user_ids": [players[0][0], players[1][0]]},
            headers=auth(owner),
        )

        assert response.json()["data"]["status"] == "COMPLETED"
        detail = (await client.get(f"/api/specs/{spec_id}", headers=auth(owner))).json()["data"]
        assert detail["participants_count"] == 1

        late = await client.post(
            f"/api/rounds/{round_id}/eliminate",
            json={"user_id": players[2][0]},
            headers=auth(owner),
        )
        assert late.status_code == 400

    @pytest.mark.asyncio
    async def test_red_sparks_never_go_negative(self, client, arena, session_factory):
        spec_id, owner, players = await arena(1)
        loser_id, _ = players[0]
        async with session_factory() as session:
            await session.execute(
                update(UserBalance).where(UserBalance.user_id == loser_id).values(red_sparks=0)
            )
            await session.commit()
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]

        await client.post(f"/api/rounds/{round_id}/eliminate", json={"user_id": loser_id}, headers=auth(owner))

        async with session_factory() as session:
            balance = await session.scalar(select(UserBalance).where(UserBalance.user_id == loser_id))
            assert balance.red_sparks == 0


class TestNudge:

    @pytest.mark.asyncio
    async def test_nudge_only_pending(self, client, arena, session_factory):
        spec_id, owner, players = await arena(3)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        await answer(client, players[0][1], round_id)

        response = await client.post(f"/api/rounds/{round_id}/nudge", headers=auth(owner))

        assert response.json()["data"] == {"nudged": 2}
        assert response.json()["message"] == "Nudged 2 participant(s)."
        async with session_factory() as session:
            nudged = (
                await session.scalars(select(Notification.user_id).where(Notification.type == "round_nudge"))
            ).all()
        assert sorted(nudged) == sorted([players[1][0], players[2][0]])

    @pytest.mark.asyncio
    async def test_nudge_requires_active_round(self, client, arena):
        spec_id, owner, _ = await arena(1)
        round_id = (await start(client, owner, spec_id)).json()["data"]["id"]
        await client.post(f"/api/rounds/{round_id}/close", headers=auth(owner))
        assert (await client.post(f"/api/rounds/{round_id}/nudge", headers=auth(owner))).status_code == 400

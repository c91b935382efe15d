# tests/test_loyalty_api.py
import uuid

import pytest

SLOTS = [
    {"id": "try_again", "name": "Try Again", "reward_type": "try_again", "base_weight": 40},
    {"id": "small_coupon", "name": "5% Off", "reward_type": "coupon", "reward_value": 5, "base_weight": 25},
    {"id": "bonus_points", "name": "Bonus Points", "reward_type": "bonus_points", "reward_value": 100, "base_weight": 5},
]

API = "/api/v1"


def _badge_payload(badge_id="first_purchase", **overrides):
    payload = {
        "id": badge_id,
        "name": "First Purchase",
        "category": "purchase",
        "rarity": "common",
        "trigger": {"type": "purchase_count", "value": 1, "timeframe": "once"},
        "reward": {"type": "points", "value": 100},
        "priority": 1,
    }
    payload.update(overrides)
    return payload


def _wheel_payload(**overrides):
    payload = {
        "name": f"Wheel {uuid.uuid4().hex[:6]}",
        "slots": [dict(slot) for slot in SLOTS],
        "tier_modifiers": {"silver": {"small_coupon": 2}},
        "spins_per_user": 1,
        "token_cost": 1,
    }
    payload.update(overrides)
    return payload


async def _purchase(client, user_id, amount, **extra):
    response = await client.post(
        f"{API}/loyalty/events/purchase", json={"user_id": user_id, "order_amount": amount, **extra}
    )
    assert response.status_code == 200, response.text
    return response.json()


@pytest.mark.asyncio
async def test_root_and_metrics(client):
    assert (await client.get("/")).status_code == 200
    metrics = await client.get("/metrics")
    assert metrics.status_code == 200
    assert "loyalty_http_requests_total" in metrics.text


@pytest.mark.asyncio
async def test_badge_crud(client):
    created = await client.post(f"{API}/badges", json=_badge_payload())
    assert created.status_code == 201, created.text
    body = created.json()
    assert body["trigger_type"] == "purchase_count"
    assert body["total_awarded"] == 0

    duplicate = await client.post(f"{API}/badges", json=_badge_payload())
    assert duplicate.status_code == 409

    updated = await client.patch(f"{API}/badges/first_purchase", json={"name": "Primera compra", "priority": 5})
    assert updated.status_code == 200
    assert updated.json()["name"] == "Primera compra"
    assert updated.json()["priority"] == 5

    listing = await client.get(f"{API}/badges")
    assert [badge["id"] for badge in listing.json()] == ["first_purchase"]

    missing = await client.get(f"{API}/badges/nope")
    assert missing.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "trigger",
    [
        {"value": 1},
        {"type": "purchase_count", "value": None},
        {"type": "tier_upgrade", "value": 7},
        {"type": "custom", "value": 1, "conditions": [{"operator": "equals", "value": 1}]},
    ],
)
async def test_invalid_trigger_is_unprocessable(client, trigger):
    response = await client.post(f"{API}/badges", json=_badge_payload(trigger=trigger))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_purchase_event_awards_points_tokens_and_badges(client):
    await client.post(f"{API}/badges", json=_badge_payload())

    summary = await _purchase(client, "api-1", "1200.00", order_id="A-1")

    assert summary["points_added"] == 1200
    assert summary["tokens_awarded"] == 2
    assert summary["tier"] == "silver"
    # 1300 puntos dentro del tramo silver (1000 a 5000) tras el bono de la insignia.
    assert summary["tier_progress"] == 7.5
    assert summary["badges_awarded"] == ["first_purchase"]
    assert summary["points_total"] == 1300

    profile = await client.get(f"{API}/loyalty/members/api-1")
    assert profile.status_code == 200
    body = profile.json()
    assert body["member"]["tier"] == "silver"
    assert body["member"]["spin_tokens_available"] == 2
    assert body["next_tier"]["tier"] == "gold"
    assert [badge["badge_id"] for badge in body["badges"]] == ["first_purchase"]

    history = await client.get(f"{API}/loyalty/members/api-1/history", params={"entry_type": "bonus"})
    assert [entry["amount"] for entry in history.json()] == [100]

    badges = await client.get(f"{API}/badges/members/api-1")
    assert badges.json()[0]["badge"]["current_holders"] == 1


@pytest.mark.asyncio
async def test_purchase_rejects_negative_amount(client):
    response = await client.post(f"{API}/loyalty/events/purchase", json={"user_id": "api-2", "order_amount": -1})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_engagement_event(client):
    response = await client.post(
        f"{API}/loyalty/events/engagement", json={"user_id": "api-3", "event_type": "referral_confirmed"}
    )
    assert response.status_code == 200
    assert response.json()["points_added"] == 100

    unknown = await client.post(
        f"{API}/loyalty/events/engagement", json={"user_id": "api-3", "event_type": "liked"}
    )
    assert unknown.status_code == 422


@pytest.mark.asyncio
async def test_redeem_insufficient_balance(client):
    await _purchase(client, "api-4", 100)

    rejected = await client.post(f"{API}/loyalty/members/api-4/redeem", json={"points": 101})
    assert rejected.status_code == 400
    assert rejected.json()["requested"] == 101
    assert rejected.json()["available"] == 100

    accepted = await client.post(f"{API}/loyalty/members/api-4/redeem", json={"points": 40, "reason": "coupon"})
    assert accepted.status_code == 200
    assert accepted.json()["amount"] == -40

    profile = await client.get(f"{API}/loyalty/members/api-4")
    assert profile.json()["member"]["points_current"] == 60


@pytest.mark.asyncio
async def test_unknown_member_reads_are_not_found(client):
    assert (await client.get(f"{API}/loyalty/members/ghost")).status_code == 404
    assert (await client.get(f"{API}/loyalty/members/ghost/eligible-badges")).status_code == 404
    assert (await client.post(f"{API}/loyalty/members/ghost/redeem", json={"points": 1})).status_code == 404


@pytest.mark.asyncio
async def test_leaderboard(client):
    await _purchase(client, "api-5", 300)
    await _purchase(client, "api-6", 900)

    response = await client.get(f"{API}/loyalty/leaderboard", params={"limit": 5})
    assert response.status_code == 200
    assert [(row["rank"], row["user_id"]) for row in response.json()] == [(1, "api-6"), (2, "api-5")]


@pytest.mark.asyncio
async def test_wheel_create_and_spin_flow(client):
    created = await client.post(f"{API}/wheels", json=_wheel_payload(name="Flash Wheel"))
    assert created.status_code == 201, created.text
    wheel_id = created.json()["id"]

    active = await client.get(f"{API}/wheels/active")
    assert [wheel["name"] for wheel in active.json()] == ["Flash Wheel"]

    no_tokens = await client.post(f"{API}/wheels/{wheel_id}/spin", json={"user_id": "api-7"})
    assert no_tokens.status_code == 403
    assert no_tokens.json()["rule"] == "no_spin_tokens"

    await _purchase(client, "api-7", 500)
    spun = await client.post(f"{API}/wheels/{wheel_id}/spin", json={"user_id": "api-7"})
    assert spun.status_code == 200, spun.text
    assert spun.json()["spin_tokens_available"] == 0
    assert spun.json()["badges_awarded"] == []

    again = await client.post(f"{API}/wheels/{wheel_id}/spin", json={"user_id": "api-7"})
    assert again.status_code == 403
    assert again.json()["rule"] == "per_user_limit"

    history = await client.get(f"{API}/wheels/history/api-7", params={"wheel_id": wheel_id})
    assert len(history.json()) == 1

    wheel = await client.get(f"{API}/wheels/{wheel_id}")
    assert wheel.json()["current_spins_used"] == 1


@pytest.mark.asyncio
async def test_wheel_validation(client):
    duplicated = _wheel_payload(slots=[dict(SLOTS[0]), dict(SLOTS[0])])
    assert (await client.post(f"{API}/wheels", json=duplicated)).status_code == 422

    weightless = _wheel_payload(slots=[{**SLOTS[0], "base_weight": 0}])
    assert (await client.post(f"{API}/wheels", json=weightless)).status_code == 422

    bad_tier = _wheel_payload(tier_modifiers={"obsidian": {"try_again": 1}})
    assert (await client.post(f"{API}/wheels", json=bad_tier)).status_code == 422

    assert (await client.get(f"{API}/wheels/{uuid.uuid4()}")).status_code == 404


@pytest.mark.asyncio
async def test_award_and_revoke_badge(client):
    await client.post(f"{API}/badges", json=_badge_payload("vip", reward={"type": "spin_token", "value": 1}))

    awarded = await client.post(f"{API}/badges/vip/award", json={"user_id": "api-8"})
    assert awarded.status_code == 201, awarded.text
    assert awarded.json()["badge"]["id"] == "vip"

    duplicate = await client.post(f"{API}/badges/vip/award", json={"user_id": "api-8"})
    assert duplicate.status_code == 409

    profile = await client.get(f"{API}/loyalty/members/api-8")
    assert profile.json()["member"]["spin_tokens_available"] == 1

    revoked = await client.delete(f"{API}/badges/vip/members/api-8")
    assert revoked.status_code == 204
    assert (await client.delete(f"{API}/badges/vip/members/api-8")).status_code == 404

    badge = await client.get(f"{API}/badges/vip")
    assert badge.json()["current_holders"] == 0
    assert badge.json()["total_awarded"] == 1


@pytest.mark.asyncio
async def test_request_id_is_echoed(client):
    echoed = await client.get("/", headers={"X-Request-ID": "req-123"})
    assert echoed.headers["x-request-id"] == "req-123"

    generated = await client.get(f"{API}/loyalty/members/ghost")
    assert len(generated.headers["x-request-id"]) == 32

# tests/test_api.py

from datetime import timedelta

from httpx import AsyncClient

from app.core.roles import Role
from app.models.promotion import PROMOTION_ONE_TIME
from app.utils.clock import utcnow


async def test_missing_or_bad_token_is_401(client: AsyncClient, regular_user, auth_headers):
    assert (await client.get("/users/me")).status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert (await client.get("/users/me", headers=bad)).status_code == 401


async def test_profile_lists_available_promotions(client: AsyncClient, regular_user, auth_headers, make_promotion):
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=10)

    response = await client.get("/users/me", headers=auth_headers(regular_user))

    assert response.status_code == 200
    data = response.json()
    assert data["utorid"] == regular_user.utorid
    assert [p["id"] for p in data["promotions"]] == [one_time.id]


async def test_role_gating(client: AsyncClient, regular_user, cashier, auth_headers):
    payload = {"utorid": regular_user.utorid, "type": "purchase", "spent": "10.00"}

    response = await client.post("/transactions", json=payload, headers=auth_headers(regular_user))
    assert response.status_code == 403

    response = await client.get("/transactions", headers=auth_headers(cashier))
    assert response.status_code == 403


async def test_purchase_over_http(client: AsyncClient, cashier, make_user, auth_headers):
    customer = make_user()
    payload = {"utorid": customer.utorid, "type": "purchase", "spent": "25.00", "remark": "books"}

    response = await client.post("/transactions", json=payload, headers=auth_headers(cashier))

    assert response.status_code == 201
    data = response.json()
    assert data["amount"] == 100
    assert data["earned"] == 100
    assert data["created_by"] == cashier.utorid
    assert data["promotion_ids"] == []


async def test_adjustment_by_cashier_is_403(client: AsyncClient, cashier, make_user, auth_headers):
    customer = make_user()
    payload = {"utorid": customer.utorid, "type": "adjustment", "amount": 5, "related_id": 1}

    response = await client.post("/transactions", json=payload, headers=auth_headers(cashier))

    assert response.status_code == 403


async def test_malformed_purchase_is_422(client: AsyncClient, cashier, auth_headers):
    payload = {"utorid": "someone1", "type": "purchase", "spent": "-3"}
    response = await client.post("/transactions", json=payload, headers=auth_headers(cashier))
    assert response.status_code == 422


async def test_error_mapping(client: AsyncClient, cashier, manager, make_user, make_promotion, make_event,
                             auth_headers):
    customer = make_user(points=10)
    one_time = make_promotion(type=PROMOTION_ONE_TIME, points=10)
    purchase = {"utorid": customer.utorid, "type": "purchase", "spent": "1.00", "promotion_ids": [one_time.id]}
    assert (await client.post("/transactions", json=purchase, headers=auth_headers(cashier))).status_code == 201

    # one-time promotion reused
    response = await client.post("/transactions", json=purchase, headers=auth_headers(cashier))
    assert response.status_code == 409
    assert "already been used" in response.json()["detail"]

    # redemption beyond balance
    response = await client.post(
        "/users/me/transactions", json={"type": "redemption", "amount": 1000}, headers=auth_headers(customer)
    )
    assert response.status_code == 400

    # unknown transaction
    response = await client.get("/transactions/9999", headers=auth_headers(manager))
    assert response.status_code == 404

    # event budget exceeded
    event = make_event(points_total=10, guests=[customer])
    response = await client.post(
        f"/events/{event.id}/transactions",
        json={"type": "event", "utorid": customer.utorid, "amount": 11},
        headers=auth_headers(manager),
    )
    assert response.status_code == 409


async def test_transfer_over_http(client: AsyncClient, make_user, auth_headers):
    sender = make_user(points=100)
    recipient = make_user()

    response = await client.post(
        f"/users/{recipient.id}/transactions",
        json={"type": "transfer", "amount": 40, "remark": "split"},
        headers=auth_headers(sender),
    )

    assert response.status_code == 201
    data = response.json()
    assert data["sender"] == sender.utorid
    assert data["recipient"] == recipient.utorid
    assert data["sent"] == 40


async def test_redemption_flow_over_http(client: AsyncClient, cashier, make_user, auth_headers):
    user = make_user(points=50)
    created = await client.post(
        "/users/me/transactions", json={"type": "redemption", "amount": 20}, headers=auth_headers(user)
    )
    assert created.status_code == 201
    tx_id = created.json()["id"]

    processed = await client.patch(
        f"/transactions/{tx_id}/processed", json={"processed": True}, headers=auth_headers(cashier)
    )
    assert processed.status_code == 200
    assert processed.json()["redeemed"] == 20
    assert processed.json()["processed_by"] == cashier.utorid

    again = await client.patch(
        f"/transactions/{tx_id}/processed", json={"processed": True}, headers=auth_headers(cashier)
    )
    assert again.status_code == 409


async def test_cashier_lookup_is_reduced(client: AsyncClient, cashier, manager, regular_user, auth_headers):
    as_cashier = await client.get(f"/users/{regular_user.id}", headers=auth_headers(cashier))
    as_manager = await client.get(f"/users/{regular_user.id}", headers=auth_headers(manager))

    assert as_cashier.status_code == 200
    assert "email" not in as_cashier.json()
    assert as_manager.json()["email"] == regular_user.email


async def test_manager_updates_user_role(client: AsyncClient, manager, make_user, auth_headers):
    target = make_user()

    response = await client.patch(f"/users/{target.id}", json={"role": "cashier"}, headers=auth_headers(manager))
    assert response.status_code == 200
    assert response.json()["role"] == "cashier"

    response = await client.patch(f"/users/{target.id}", json={"role": "superuser"}, headers=auth_headers(manager))
    assert response.status_code == 403


async def test_register_user_validates_email(client: AsyncClient, cashier, auth_headers):
    bad = {"utorid": "student1", "name": "Student", "email": "student@gmail.com"}
    good = {"utorid": "student1", "name": "Student", "email": "student1@mail.utoronto.ca"}

    assert (await client.post("/users", json=bad, headers=auth_headers(cashier))).status_code == 422
    response = await client.post("/users", json=good, headers=auth_headers(cashier))
    assert response.status_code == 201
    assert response.json()["role"] == Role.REGULAR.value


async def test_promotion_crud_over_http(client: AsyncClient, manager, regular_user, auth_headers):
    start = utcnow() + timedelta(days=1)
    payload = {
        "name": "Launch week",
        "description": "Bonus points",
        "type": "automatic",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(days=7)).isoformat(),
        "points": 5,
    }

    created = await client.post("/promotions", json=payload, headers=auth_headers(manager))
    assert created.status_code == 201
    promotion_id = created.json()["id"]

    hidden = await client.get(f"/promotions/{promotion_id}", headers=auth_headers(regular_user))
    assert hidden.status_code == 404

    deleted = await client.delete(f"/promotions/{promotion_id}", headers=auth_headers(manager))
    assert deleted.status_code == 204


async def test_event_rsvp_over_http(client: AsyncClient, regular_user, make_event, auth_headers):
    event = make_event(capacity=1)

    joined = await client.post(f"/events/{event.id}/guests/me", headers=auth_headers(regular_user))
    assert joined.status_code == 201
    assert joined.json()["num_guests"] == 1
    assert joined.json()["guests"] is None

    again = await client.post(f"/events/{event.id}/guests/me", headers=auth_headers(regular_user))
    assert again.status_code == 409


async def test_own_history_is_scoped_to_caller(client: AsyncClient, cashier, make_user, auth_headers):
    alice = make_user()
    bob = make_user()
    for customer in (alice, bob):
        payload = {"utorid": customer.utorid, "type": "purchase", "spent": "5.00"}
        await client.post("/transactions", json=payload, headers=auth_headers(cashier))

    response = await client.get("/users/me/transactions", headers=auth_headers(alice))

    assert response.status_code == 200
    data = response.json()
    assert data["total_items"] == 1
    assert data["items"][0]["utorid"] == alice.utorid


async def test_blank_award_utorid_is_422(client: AsyncClient, manager, make_user, make_event, auth_headers):
    guests = [make_user(), make_user()]
    event = make_event(points_total=100, guests=guests)

    response = await client.post(
        f"/events/{event.id}/transactions",
        json={"type": "event", "utorid": "", "amount": 10},
        headers=auth_headers(manager),
    )

    assert response.status_code == 422
    for guest in guests:
        assert guest.points == 0


async def test_lookup_by_utorid(client: AsyncClient, make_user, auth_headers):
    caller = make_user()
    friend = make_user()

    response = await client.get(f"/users/lookup/{friend.utorid}", headers=auth_headers(caller))
    assert response.status_code == 200
    assert response.json() == {"id": friend.id, "utorid": friend.utorid, "name": friend.name, "verified": True}

    missing = await client.get("/users/lookup/nobody00", headers=auth_headers(caller))
    assert missing.status_code == 404


async def test_user_suspicion_is_manager_only(client: AsyncClient, cashier, manager, make_user, auth_headers):
    target = make_user(suspicious=True)

    assert (await client.get(f"/users/{target.id}/suspicious", headers=auth_headers(cashier))).status_code == 403
    response = await client.get(f"/users/{target.id}/suspicious", headers=auth_headers(manager))
    assert response.status_code == 200
    assert response.json()["suspicious"] is True


async def test_organizing_and_attendance_over_http(client: AsyncClient, make_user, make_event, auth_headers):
    organizer = make_user()
    guest = make_user()
    event = make_event(organizers=[organizer], guests=[guest])

    organizing = await client.get("/events/organizing/me", headers=auth_headers(organizer))
    assert organizing.status_code == 200
    assert [e["id"] for e in organizing.json()["items"]] == [event.id]

    attending = await client.get(f"/events/{event.id}/guests/me", headers=auth_headers(guest))
    assert attending.status_code == 200
    assert attending.json() == {"attending": True, "event_id": event.id}

    absent = await client.get(f"/events/{event.id}/guests/me", headers=auth_headers(organizer))
    assert absent.status_code == 404

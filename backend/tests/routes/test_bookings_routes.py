from datetime import date, timedelta

from spa_booking.core.timezone_utils import now_utc
from spa_booking.models import Booking, BookingStatus, TimeSlot

from tests.helpers import auth_headers

BASE = "/api/v1/bookings"


def _reserve(client, customer, therapist, slot, service):
    return client.post(
        f"{BASE}/reserve",
        json={"provider_id": therapist.id, "slot_id": slot.id, "service_id": service.id},
        headers=auth_headers(customer),
    )


def test_reserve_then_confirm(client, db, customer, therapist, slot, massage):
    response = _reserve(client, customer, therapist, slot, massage)

    assert response.status_code == 201
    body = response.json()
    assert body["booking"]["status"] == "pending"
    assert body["booking"]["service_price"] == 80.0
    assert 0 < body["expires_in_seconds"] <= 300

    booking_id = body["booking"]["id"]
    confirmed = client.post(f"{BASE}/{booking_id}/confirm", headers=auth_headers(customer))

    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "confirmed"
    assert confirmed.json()["payment_status"] == "paid"
    assert confirmed.json()["expires_at"] is None


def test_reserve_taken_slot_is_409_problem(client, customer, make_user, therapist, slot, massage):
    _reserve(client, customer, therapist, slot, massage)
    other = make_user(full_name="Other Customer")

    response = _reserve(client, other, therapist, slot, massage)

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["code"] == "SLOT_UNAVAILABLE"
    assert problem["status"] == 409
    assert problem["instance"] == f"{BASE}/reserve"


def test_reserve_requires_identity(client, therapist, slot, massage):
    response = client.post(
        f"{BASE}/reserve",
        json={"provider_id": therapist.id, "slot_id": slot.id, "service_id": massage.id},
    )

    assert response.status_code == 401
    assert response.json()["code"] == "NOT_AUTHENTICATED"


def test_reserve_rejects_unknown_fields_and_bad_ids(client, customer, therapist, slot, massage):
    extra = client.post(
        f"{BASE}/reserve",
        json={"provider_id": therapist.id, "slot_id": slot.id, "service_id": massage.id, "price": 1},
        headers=auth_headers(customer),
    )
    bad_id = client.post(
        f"{BASE}/reserve",
        json={"provider_id": therapist.id, "slot_id": "nope", "service_id": massage.id},
        headers=auth_headers(customer),
    )

    assert extra.status_code == 422
    assert bad_id.status_code == 400
    assert bad_id.json()["code"] == "INVALID_ID"


def test_available_slots(client, therapist, make_slot, massage):
    slot = make_slot(therapist, slot_date=date(2030, 6, 10))

    response = client.get(
        f"{BASE}/available-slots",
        params={"service_id": massage.id, "start_date": "2030-06-01", "end_date": "2030-06-30"},
    )

    assert response.status_code == 200
    assert [s["id"] for s in response.json()] == [slot.id]


def test_cancel_and_my_bookings(client, customer, therapist, slot, massage):
    booking_id = _reserve(client, customer, therapist, slot, massage).json()["booking"]["id"]

    cancelled = client.post(f"{BASE}/{booking_id}/cancel", headers=auth_headers(customer))
    mine = client.get(f"{BASE}/my-bookings", headers=auth_headers(customer))

    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    body = mine.json()
    assert [b["id"] for b in body["all"]] == [booking_id]
    assert [b["id"] for b in body["grouped"]["cancelled"]] == [booking_id]
    assert body["grouped"]["pending"] == []


def test_admin_cancel_via_role_header(client, db, admin, customer, slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)

    response = client.post(f"{BASE}/{booking.id}/cancel", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["cancelled_by_id"] == admin.id


def test_reschedule_requires_admin(client, customer, admin, therapist, slot, make_slot, massage, make_booking):
    booking = make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)
    target = make_slot(therapist, slot_date=date(2030, 6, 20))

    forbidden = client.post(
        f"{BASE}/{booking.id}/reschedule",
        json={"new_slot_id": target.id},
        headers=auth_headers(customer),
    )
    allowed = client.post(
        f"{BASE}/{booking.id}/reschedule",
        json={"new_slot_id": target.id},
        headers=auth_headers(admin),
    )

    assert forbidden.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["slot_id"] == target.id
    assert allowed.json()["booking_date"] == "2030-06-20"


def test_admin_overview(client, admin, customer, slot, massage, make_booking):
    make_booking(customer, slot, massage, status=BookingStatus.CONFIRMED)

    response = client.get(f"{BASE}/admin/all", headers=auth_headers(admin))
    denied = client.get(f"{BASE}/admin/all", headers=auth_headers(customer))

    assert response.status_code == 200
    body = response.json()
    assert body["counts"]["confirmed"] == 1
    assert body["total_revenue"] == 80.0
    assert len(body["bookings"]) == 1
    assert denied.status_code == 403


def test_cleanup_endpoint_sweeps_expired_holds(client, db, admin, customer, slot, massage, make_booking):
    make_booking(customer, slot, massage, expires_at=now_utc() - timedelta(minutes=1))

    response = client.post(f"{BASE}/cleanup", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["deleted"] == 1
    db.expire_all()
    assert db.query(Booking).count() == 0
    assert db.query(TimeSlot).filter(TimeSlot.id == slot.id).one().is_available is True


def test_unknown_role_is_rejected(client, customer):
    response = client.get(
        f"{BASE}/my-bookings",
        headers={"X-User-Id": customer.id, "X-User-Role": "superuser"},
    )

    assert response.status_code == 401


def test_customer_role_header_defaults(client, customer):
    response = client.get(f"{BASE}/my-bookings", headers={"X-User-Id": customer.id})

    assert response.status_code == 200
    assert response.json()["all"] == []

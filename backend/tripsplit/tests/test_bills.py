"""
Tests for bill endpoints and the confirm transaction.
"""
import pytest
from decimal import Decimal
from sqlalchemy.exc import OperationalError
from tripsplit.core.errors import TransactionError
from tripsplit.models.bill import BillItem, BillParticipant, BillSplit
from tripsplit.models.user import User
from tripsplit.schemas.bill import ConfirmBillRequest
from tripsplit.services import bill_service
from tripsplit.tests.factories import auth_headers, make_item, make_payload, make_totals, money, split


def test_create_bill_shell(client, alice, trip):
    response = client.post("/api/bills", json={"tripId": trip, "title": "Lunch"}, headers=alice)
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Lunch"
    assert data["paidById"] == "user-alice"
    assert data["items"] == []
    assert money(data["totalAmount"]) == Decimal("0")


def test_create_bill_requires_membership(client, trip):
    outsider = auth_headers({"sub": "user-mallory", "email": "mallory@example.com"})
    response = client.post("/api/bills", json={"tripId": trip, "title": "Sneaky"}, headers=outsider)
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_create_bill_for_missing_trip(client, alice):
    response = client.post("/api/bills", json={"tripId": 999, "title": "Lost"}, headers=alice)
    assert response.status_code == 404


def test_confirm_persists_items_participants_and_splits(client, alice, bill, sushi_payload):
    response = client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    assert response.status_code == 200
    assert response.json() == {"billId": bill}

    data = client.get(f"/api/bills/{bill}", headers=alice).json()
    assert data["merchantName"] == "Sushi World"
    assert money(data["subtotal"]) == Decimal("30.00")
    assert money(data["tax"]) == Decimal("1.80")
    assert money(data["totalAmount"]) == Decimal("31.80")
    assert [i["tempItemId"] for i in data["items"]] == ["tmp-salmon", "tmp-tea"]
    assert money(data["items"][0]["totalPrice"]) == Decimal("21.20")

    # Participants derived from split users when none are submitted
    assert sorted(p["displayName"] for p in data["participants"]) == ["Alice", "Bob", "Carol"]

    item_ids = {i["id"]: i for i in data["items"]}
    per_item = {}
    for s in data["splits"]:
        per_item.setdefault(s["billItemId"], []).append(money(s["amount"]))
    for item_id, amounts in per_item.items():
        assert sum(amounts) == money(item_ids[item_id]["totalPrice"])


def test_confirm_twice_is_idempotent(client, alice, bill, sushi_payload, db):
    for _ in range(2):
        assert client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice).status_code == 200
    assert db.query(BillItem).filter(BillItem.bill_id == bill).count() == 2
    assert db.query(BillSplit).filter(BillSplit.bill_id == bill).count() == 5
    assert db.query(BillParticipant).filter(BillParticipant.bill_id == bill).count() == 3


def test_confirm_replaces_previous_state(client, alice, bill, trip, sushi_payload):
    client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    replacement = make_payload(
        trip,
        [make_item("tmp-beer", "Beer", "1", "12.00", "0.00", "12.00")],
        [split("tmp-beer", "user-bob", "12.00")],
        make_totals("12.00", "0.00", "12.00", tax_percentage="0"),
        participants=[{"userId": "user-bob", "displayName": "Bobby"}],
    )
    assert client.put(f"/api/bills/{bill}/confirm", json=replacement, headers=alice).status_code == 200

    data = client.get(f"/api/bills/{bill}", headers=alice).json()
    assert [i["name"] for i in data["items"]] == ["Beer"]
    assert [p["displayName"] for p in data["participants"]] == ["Bobby"]
    assert [(s["userId"], money(s["amount"])) for s in data["splits"]] == [("user-bob", Decimal("12.00"))]


def test_split_mismatch_aborts_and_keeps_prior_state(client, alice, bill, trip, sushi_payload):
    client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    before = client.get(f"/api/bills/{bill}", headers=alice).json()

    bad = make_payload(
        trip,
        [make_item("tmp-steak", "Steak", "2", "10.00", "0.00", "20.00")],
        [split("tmp-steak", "user-alice", "10.00"), split("tmp-steak", "user-bob", "9.99")],
        make_totals("20.00", "0.00", "20.00", tax_percentage="0"),
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=bad, headers=alice)
    assert response.status_code == 422
    error = response.json()
    assert error["error"] == "split_mismatch"
    assert error["item"] == "tmp-steak"
    assert error["submittedSum"] == "19.99"
    assert error["expectedTotal"] == "20.00"
    assert error["delta"] == "-0.01"

    after = client.get(f"/api/bills/{bill}", headers=alice).json()
    assert after["items"] == before["items"]
    assert after["splits"] == before["splits"]
    assert after["participants"] == before["participants"]
    assert after["totalAmount"] == before["totalAmount"]


def test_first_confirm_failure_leaves_empty_bill(client, alice, bill, trip, db):
    bad = make_payload(
        trip,
        [make_item("tmp-steak", "Steak", "2", "10.00", "0.00", "20.00")],
        [split("tmp-steak", "user-alice", "19.99")],
        make_totals("20.00", "0.00", "20.00", tax_percentage="0"),
    )
    assert client.put(f"/api/bills/{bill}/confirm", json=bad, headers=alice).status_code == 422
    assert db.query(BillItem).filter(BillItem.bill_id == bill).count() == 0
    assert db.query(BillSplit).filter(BillSplit.bill_id == bill).count() == 0
    assert db.query(BillParticipant).filter(BillParticipant.bill_id == bill).count() == 0


def test_drifted_item_total_is_rejected(client, alice, bill, trip):
    payload = make_payload(
        trip,
        [make_item("tmp-a", "A", "2", "10.00", "1.20", "21.21")],
        [],
        make_totals("20.00", "1.20", "21.20"),
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["details"][0]["field"] == "totalPrice"
    assert body["details"][0]["item"] == "tmp-a"


def test_manual_override_is_accepted(client, alice, bill, trip):
    item = make_item("tmp-a", "A", "1", "10.00", "0.00", "9.50")
    item["manualOverride"] = True
    payload = make_payload(
        trip, [item], [split("tmp-a", "user-bob", "9.50")],
        make_totals("10.00", "0.00", "10.00"),
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 200
    data = client.get(f"/api/bills/{bill}", headers=alice).json()
    assert money(data["items"][0]["totalPrice"]) == Decimal("9.50")


def test_negative_quantity_is_rejected(client, alice, bill, trip):
    payload = make_payload(
        trip,
        [make_item("tmp-a", "A", "-1", "10.00", "0", "0")],
        [],
        make_totals("0", "0", "0"),
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "quantity"


def test_split_for_unknown_item_is_rejected(client, alice, bill, trip, sushi_payload):
    sushi_payload["splits"].append(split("tmp-ghost", "user-bob", "1.00"))
    response = client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["item"] == "tmp-ghost"


def test_payer_must_be_member(client, alice, bill, sushi_payload):
    sushi_payload["paidById"] = "user-stranger"
    response = client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    assert response.status_code == 422


def test_confirm_missing_bill(client, alice, sushi_payload):
    response = client.put("/api/bills/12345/confirm", json=sushi_payload, headers=alice)
    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_storage_failure_rolls_back(db, client, alice, bill, sushi_payload, monkeypatch):
    client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    user = db.get(User, "user-alice")
    payload = ConfirmBillRequest.model_validate(sushi_payload)

    def broken_flush(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "flush", broken_flush)
    with pytest.raises(TransactionError):
        bill_service.confirm_bill(bill, payload, user, db)
    monkeypatch.undo()

    assert db.query(BillItem).filter(BillItem.bill_id == bill).count() == 2
    assert db.query(BillSplit).filter(BillSplit.bill_id == bill).count() == 5


def test_delete_bill_cascades(client, alice, bill, sushi_payload, db):
    client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    response = client.delete(f"/api/bills/{bill}", headers=alice)
    assert response.status_code == 200
    assert client.get(f"/api/bills/{bill}", headers=alice).status_code == 404
    assert db.query(BillItem).count() == 0
    assert db.query(BillSplit).count() == 0
    assert db.query(BillParticipant).count() == 0


def test_recalculate(client, alice):
    response = client.post("/api/bills/recalculate", json={
        "items": [
            {"tempItemId": "a", "name": "Salmon", "quantity": "2", "unitPrice": "10.00"},
            {"tempItemId": "b", "name": "Tea", "quantity": "1", "unitPrice": "10.00", "discount": "1.00"},
        ],
        "taxPercentage": "6",
        "rounding": "-0.04",
    }, headers=alice)
    assert response.status_code == 200
    data = response.json()
    assert [money(i["tax"]) for i in data["items"]] == [Decimal("1.20"), Decimal("0.54")]
    assert [money(i["totalPrice"]) for i in data["items"]] == [Decimal("21.20"), Decimal("9.54")]
    assert money(data["subtotal"]) == Decimal("30.00")
    assert money(data["totalDiscount"]) == Decimal("1.00")
    assert money(data["totalAmount"]) == Decimal("30.70")


def test_recalculate_rejects_negative_price(client, alice):
    response = client.post("/api/bills/recalculate", json={
        "items": [{"tempItemId": "a", "name": "A", "quantity": "1", "unitPrice": "-5"}],
    }, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "unitPrice"


def test_split_evenly_endpoint(client, alice):
    response = client.post("/api/bills/split-evenly", json={
        "totalPrice": "10.01", "userIds": ["a", "b", "c"],
    }, headers=alice)
    assert response.status_code == 200
    assert [(s["userId"], s["amount"]) for s in response.json()["splits"]] == [
        ("a", "3.34"), ("b", "3.34"), ("c", "3.33"),
    ]


def test_requires_authentication(client):
    assert client.post("/api/bills/recalculate", json={"items": []}).status_code == 401


def test_unit_price_finer_than_cents_is_rejected(client, alice, bill, trip, db):
    payload = make_payload(
        trip,
        [make_item("tmp-a", "A", "3", "3.333", "0.00", "10.00")],
        [split("tmp-a", "user-bob", "10.00")],
        make_totals("10.00", "0.00", "10.00", tax_percentage="0"),
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "unitPrice"
    assert db.query(BillItem).filter(BillItem.bill_id == bill).count() == 0


def test_persisted_items_satisfy_formula(client, alice, bill, sushi_payload):
    client.put(f"/api/bills/{bill}/confirm", json=sushi_payload, headers=alice)
    for item in client.get(f"/api/bills/{bill}", headers=alice).json()["items"]:
        taxable = money(item["quantity"]) * money(item["unitPrice"]) - money(item["discount"])
        assert money(item["totalPrice"]) == (taxable + money(item["tax"])).quantize(Decimal("0.01"))


def _salmon_payload(trip, *splits):
    return make_payload(
        trip,
        [make_item("tmp-salmon", "Salmon Sushi", "2", "10.00", "1.20", "21.20")],
        list(splits),
        make_totals("20.00", "1.20", "21.20"),
    )


def test_negative_split_is_rejected(client, alice, bill, trip):
    payload = _salmon_payload(
        trip, split("tmp-salmon", "user-alice", "30.00"), split("tmp-salmon", "user-bob", "-8.80")
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "amount"

    balances = client.get(f"/api/trips/{trip}/balances", headers=alice).json()
    assert all(money(v) == Decimal("0") for v in balances.values())


def test_fractional_cent_splits_are_rejected(client, alice, bill, trip, db):
    payload = _salmon_payload(
        trip, split("tmp-salmon", "user-alice", "10.604"), split("tmp-salmon", "user-bob", "10.604")
    )
    response = client.put(f"/api/bills/{bill}/confirm", json=payload, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "amount"
    assert db.query(BillSplit).filter(BillSplit.bill_id == bill).count() == 0


def test_split_evenly_rejects_negative_remainder(client, alice):
    response = client.post("/api/bills/split-evenly", json={
        "totalPrice": "0.15", "userIds": [f"u{n}" for n in range(10)],
    }, headers=alice)
    assert response.status_code == 422
    assert response.json()["details"][0]["field"] == "amount"

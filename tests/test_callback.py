import asyncio
from decimal import Decimal

from payu_bridge.repositories.application_repository import ApplicationRepository
from payu_bridge.utils.config import settings
from payu_bridge.utils.enums import ApplicationStatus, RecordOrigin


def initiate(client, application: dict) -> dict:
    response = client.post("/api/payu-initiate", json=application)
    assert response.status_code == 200
    return response.json()["payuParams"]


def post_callback(client, fields: dict):
    return client.post("/api/payu-callback", data=fields, follow_redirects=False)


def test_end_to_end_success_callback_redirects_and_settles(client, jane_application, make_callback, load_application):
    params = initiate(client, jane_application)
    txnid = params["txnid"]

    response = post_callback(client, make_callback(txnid))

    assert response.status_code == 303
    assert response.headers["location"] == f"{settings.payment_success_url}?txnid={txnid}"
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.SUCCESS
    assert stored.gateway_transaction_reference == f"mih{txnid}"
    assert stored.raw_callback_payload["status"] == "success"
    assert stored.callback_count == 1
    assert stored.completed_at is not None
    assert stored.error_message is None
    # Personal info is never rewritten by the callback.
    assert stored.phone == "9999999999"
    assert stored.city == "Pune"


def test_replayed_success_callback_is_idempotent(
    client, jane_application, make_callback, load_application, count_applications
):
    txnid = initiate(client, jane_application)["txnid"]
    callback = make_callback(txnid)

    first = post_callback(client, callback)
    second = post_callback(client, callback)

    assert first.status_code == second.status_code == 303
    assert first.headers["location"] == second.headers["location"]
    assert count_applications(txnid) == 1
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.SUCCESS
    assert stored.callback_count == 2
    assert stored.status_conflict_count == 0


def test_failure_callback_records_error_and_redirects_to_failure(
    client, jane_application, make_callback, load_application
):
    txnid = initiate(client, jane_application)["txnid"]

    response = post_callback(client, make_callback(txnid, status="failure", error_Message="Bank declined"))

    assert response.status_code == 303
    assert response.headers["location"] == f"{settings.payment_failure_url}?txnid={txnid}"
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.FAILURE
    assert stored.error_message == "Bank declined"


def test_forged_callback_is_rejected_without_mutation(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]
    forged = make_callback(txnid)
    forged["hash"] = "0" * 128

    response = post_callback(client, forged)

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid hash"
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.PENDING
    assert stored.callback_count == 0
    assert stored.raw_callback_payload is None


def test_status_flipped_after_signing_is_rejected(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]
    tampered = make_callback(txnid, status="failure")
    tampered["status"] = "success"

    assert post_callback(client, tampered).status_code == 400
    assert load_application(txnid).status == ApplicationStatus.PENDING


def test_forged_callback_for_unknown_transaction_creates_nothing(client, make_callback, count_applications):
    forged = make_callback("TXNforged")
    forged["amount"] = "1.00"
    assert post_callback(client, forged).status_code == 400
    assert count_applications("TXNforged") == 0


def test_callback_without_txnid_is_rejected(client):
    response = post_callback(client, {"status": "success", "hash": "abc"})
    assert response.status_code == 400
    assert response.json()["detail"] == "txnid is required"


def test_callback_amount_mismatch_is_rejected(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]

    response = post_callback(client, make_callback(txnid, amount="1.00"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Amount mismatch"
    assert load_application(txnid).status == ApplicationStatus.PENDING


def test_verified_callback_for_unknown_transaction_creates_record(
    client, make_callback, load_application, count_applications
):
    response = post_callback(client, make_callback("TXNorphan1"))

    assert response.status_code == 303
    assert count_applications("TXNorphan1") == 1
    stored = load_application("TXNorphan1")
    assert stored.status == ApplicationStatus.SUCCESS
    assert stored.origin == RecordOrigin.CALLBACK
    assert stored.amount == Decimal("50000.00")
    assert stored.full_name == "Jane Doe"
    assert stored.course == "course1"


def test_conflicting_terminal_callback_keeps_first_status(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]
    post_callback(client, make_callback(txnid, status="success"))

    response = post_callback(client, make_callback(txnid, status="failure"))

    assert response.status_code == 303
    assert response.headers["location"] == f"{settings.payment_success_url}?txnid={txnid}"
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.SUCCESS
    assert stored.status_conflict_count == 1
    assert stored.last_conflict_at is not None
    assert stored.raw_callback_payload["status"] == "success"


def test_late_pending_callback_does_not_reopen_settled_application(
    client, jane_application, make_callback, load_application
):
    txnid = initiate(client, jane_application)["txnid"]
    post_callback(client, make_callback(txnid, status="failure"))

    response = post_callback(client, make_callback(txnid, status="pending"))

    assert response.status_code == 303
    assert load_application(txnid).status == ApplicationStatus.FAILURE


def test_pending_callback_keeps_application_pending(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]

    response = post_callback(client, make_callback(txnid, status="pending"))

    assert response.status_code == 303
    assert response.headers["location"] == f"{settings.payment_failure_url}?txnid={txnid}"
    stored = load_application(txnid)
    assert stored.status == ApplicationStatus.PENDING
    assert stored.callback_count == 1
    assert stored.raw_callback_payload["status"] == "pending"


def test_json_callback_is_accepted(client, jane_application, make_callback, load_application):
    txnid = initiate(client, jane_application)["txnid"]

    response = client.post("/api/payu-callback", json=make_callback(txnid), follow_redirects=False)

    assert response.status_code == 303
    assert load_application(txnid).status == ApplicationStatus.SUCCESS


def test_callback_returns_500_when_store_hangs(client, make_callback, monkeypatch):
    async def _hang(self, transaction_id):
        await asyncio.sleep(1)

    monkeypatch.setattr(settings, "db_operation_timeout_seconds", 0.05)
    monkeypatch.setattr(ApplicationRepository, "find_by_transaction_id", _hang)

    response = post_callback(client, make_callback("TXNslow1"))

    assert response.status_code == 500
    assert response.json()["detail"] == "Database operation timed out"

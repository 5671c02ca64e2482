import csv
import io

import pytest

from helpers import LEDGER_A, LEDGER_B
from session_store import SessionStore
from web_app import create_app


def _upload(client, a_text=LEDGER_A, b_text=LEDGER_B):
    data = {
        "fileA": (io.BytesIO(a_text.encode("utf-8")), "bank a.csv"),
        "fileB": (io.BytesIO(b_text.encode("utf-8")), "bank_b.csv"),
    }
    return client.post("/api/sessions", data=data, content_type="multipart/form-data")


@pytest.fixture
def session_id(client):
    response = _upload(client)
    assert response.status_code == 200
    return response.get_json()["sessionId"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"ok": True}


def test_create_app_keeps_injected_empty_store(settings):
    store = SessionStore(ttl_seconds=0)
    assert len(store) == 0
    app = create_app(settings, store=store)
    assert app.extensions["recon_store"] is store


def test_upload_returns_profiles(client, settings):
    response = _upload(client)
    body = response.get_json()

    assert response.status_code == 200
    assert len(body["sessionId"]) == 12
    assert body["meta"]["a"]["rowCount"] == 4
    assert body["meta"]["a"]["detected"] == {"id": "transaction_id", "amount": "amount", "date": "date"}
    assert body["meta"]["b"]["dateRange"] == {"min": "2024-01-05", "max": "2024-01-09"}


def test_upload_requires_both_files(client):
    data = {"fileA": (io.BytesIO(LEDGER_A.encode("utf-8")), "a.csv")}
    response = client.post("/api/sessions", data=data, content_type="multipart/form-data")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Please upload both fileA and fileB."}


def test_upload_rejects_empty_csv(client):
    response = _upload(client, b_text="")
    assert response.status_code == 400
    assert "empty" in response.get_json()["error"]


def test_reconcile_auto(client, session_id, store):
    response = client.post("/api/reconcile", json={"sessionId": session_id, "mode": "auto"})
    body = response.get_json()

    assert response.status_code == 200
    assert body["summary"] == {"MATCHED": 2, "MISMATCH": 1, "MISSING_IN_A": 1, "MISSING_IN_B": 1, "total": 5}
    assert len(body["results"]) == 5
    assert body["meta"]["a"]["rowCount"] == 4

    mismatch = next(r for r in body["results"] if r["status"] == "MISMATCH")
    assert mismatch["key"] == "T3"
    assert mismatch["reason"] == "Amount differs (50 vs 55)"
    assert mismatch["a"]["__rowId"] == 3
    assert store.get(session_id).last_outcome is not None


def test_reconcile_custom(client, session_id):
    payload = {
        "sessionId": session_id,
        "mode": "custom",
        "rules": {
            "amountTolerance": 5,
            "dateToleranceDays": 0,
            "compositeKeysA": ["transaction_id"],
            "compositeKeysB": ["transaction_id"],
            "fieldTypes": {},
        },
    }
    body = client.post("/api/reconcile", json=payload).get_json()
    assert body["summary"]["MATCHED"] == 3
    missing_in_a = [r for r in body["results"] if r["status"] == "MISSING_IN_A"]
    assert missing_in_a[0]["key"] is None


@pytest.mark.parametrize(
    "payload, path",
    [
        ({"sessionId": "ab", "mode": "auto"}, ["sessionId"]),
        ({"sessionId": "abcdef", "mode": "fuzzy"}, ["mode"]),
        ({"sessionId": "abcdef", "mode": "custom"}, ["rules"]),
        ({"sessionId": "abcdef", "mode": "custom", "rules": "tight"}, ["rules"]),
    ],
)
def test_reconcile_rejects_bad_shape(client, payload, path):
    response = client.post("/api/reconcile", json=payload)
    body = response.get_json()
    assert response.status_code == 400
    assert body["error"] == "Invalid request body"
    assert [issue["path"] for issue in body["details"]] == [path]


def test_reconcile_rejects_non_json(client):
    response = client.post("/api/reconcile", data="nope", content_type="text/plain")
    assert response.status_code == 400


def test_reconcile_unknown_session(client):
    response = client.post("/api/reconcile", json={"sessionId": "missing", "mode": "auto"})
    assert response.status_code == 404
    assert response.get_json() == {"error": "Session not found. Upload files again."}


def test_export_before_reconcile(client, session_id):
    response = client.get(f"/api/export/{session_id}")
    assert response.status_code == 404


def test_export_filtered_csv(client, session_id):
    client.post("/api/reconcile", json={"sessionId": session_id, "mode": "auto"})
    response = client.get(f"/api/export/{session_id}?filter=MISMATCH")

    assert response.status_code == 200
    assert response.mimetype == "text/csv"
    assert f"recon_{session_id}_MISMATCH.csv" in response.headers["Content-Disposition"]
    records = list(csv.DictReader(io.StringIO(response.get_data(as_text=True))))
    assert [(r["status"], r["a_transaction_id"], r["a_amount"], r["b_amount"]) for r in records] == [
        ("MISMATCH", "T3", "50", "55")
    ]


def test_export_uses_latest_run(client, session_id):
    client.post("/api/reconcile", json={"sessionId": session_id, "mode": "auto"})
    client.post(
        "/api/reconcile",
        json={"sessionId": session_id, "mode": "custom", "rules": {"compositeKeysA": [], "compositeKeysB": []}},
    )
    response = client.get(f"/api/export/{session_id}")
    statuses = [r["status"] for r in csv.DictReader(io.StringIO(response.get_data(as_text=True)))]
    assert statuses.count("MISSING_IN_B") == 4
    assert statuses.count("MISSING_IN_A") == 4


def test_cors_headers_for_allowed_origin(client):
    response = client.get("/health", headers={"Origin": "http://localhost:5173"})
    assert response.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"


def test_upload_files_are_not_kept(client, settings):
    import os

    _upload(client)
    leftovers = [files for _, _, files in os.walk(settings.upload_dir) if files]
    assert leftovers == []

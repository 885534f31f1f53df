"""
HTTP API tests.

Verifies:
- Protected endpoints return 401 without a token
- Domain errors map to stable status codes and wire codes
- The distribution and request workflows work end to end over JSON
- Admins patch catalog entries and offices with partial payloads
- Tracking is public
"""

import pytest

from assetledger.models import ItemInstance
from assetledger.services import distribution_service

from conftest import TEST_PASSWORD


# =============================================================================
# AUTHENTICATION
# =============================================================================


class TestAuth:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/offices"),
            ("GET", "/api/inventory/my"),
            ("POST", "/api/purchases"),
            ("POST", "/api/distributions"),
            ("GET", "/api/distributions/pending"),
            ("GET", "/api/requests/my"),
            ("POST", "/api/barcodes/labels"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "Unauthorized"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_register_login_me_logout(self, client, db_session, roles, office_c):
        resp = client.post("/api/auth/register", json={
            "username": "newbie",
            "email": "newbie@example.com",
            "password": TEST_PASSWORD,
            "officeId": office_c.id,
        })
        assert resp.status_code == 201
        # self-registration never grants Admin
        assert resp.get_json()["user"]["role"] == "User"

        resp = client.post("/api/auth/login", json={"username": "newbie", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        token = resp.get_json()["token"]
        headers = {"Authorization": f"Bearer {token}"}

        me = client.get("/api/auth/me", headers=headers).get_json()
        assert me["officeId"] == office_c.id
        assert me["role"] == "User"

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_bad_credentials(self, client, db_session, admin_c):
        resp = client.post("/api/auth/login", json={"username": "admin_c", "password": "Wrong-pass1!"})
        assert resp.status_code == 401

    def test_register_weak_password(self, client, db_session, roles, office_c):
        resp = client.post("/api/auth/register", json={
            "username": "weak", "email": "weak@example.com", "password": "weak", "officeId": office_c.id,
        })
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "Invalid"


# =============================================================================
# ERROR MAPPING
# =============================================================================


class TestErrorMapping:

    def test_not_found(self, client, db_session, admin_p, headers_for):
        resp = client.get("/api/distributions/999999", headers=headers_for(admin_p))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "NotFound"

    def test_forbidden(self, client, db_session, user_p, office_c, headers_for):
        resp = client.get(f"/api/distributions/history?officeId={office_c.id}", headers=headers_for(user_p))
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "Forbidden"

    def test_missing_fields(self, client, db_session, admin_p, headers_for):
        resp = client.post("/api/distributions", json={"itemId": 1}, headers=headers_for(admin_p))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "Invalid"

    def test_decimal_quantity(self, client, db_session, admin_p, office_c, stapler, headers_for):
        resp = client.post(
            "/api/distributions",
            json={"toOfficeId": office_c.id, "itemId": stapler.id, "quantity": 1.5},
            headers=headers_for(admin_p),
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("field", ["quantity", "itemId", "toOfficeId"])
    def test_oversized_integers_are_invalid(self, client, db_session, admin_p, office_c, stapler, headers_for, field):
        body = {"toOfficeId": office_c.id, "itemId": stapler.id, "quantity": 1}
        body[field] = 2**70

        resp = client.post("/api/distributions", json=body, headers=headers_for(admin_p))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "Invalid"

    def test_oversized_path_id_is_not_found(self, client, db_session, admin_p, headers_for):
        resp = client.get(f"/api/distributions/{2**70}", headers=headers_for(admin_p))
        assert resp.status_code == 404

    def test_insufficient_body(self, client, db_session, ctx_p, admin_p, office_p, office_c, stapler, buy, headers_for):
        buy(ctx_p, office_p, stapler, 1)

        resp = client.post(
            "/api/distributions",
            json={"toOfficeId": office_c.id, "itemId": stapler.id, "quantity": 3},
            headers=headers_for(admin_p),
        )

        assert resp.status_code == 400
        body = resp.get_json()
        assert body["code"] == "Insufficient"
        assert body["requested"] == 3
        assert body["available"] == 1

    def test_duplicate_office_code_conflicts(self, client, db_session, admin_p, office_p, headers_for):
        resp = client.post(
            "/api/offices", json={"name": "Again", "code": "AAA"}, headers=headers_for(admin_p)
        )
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "Conflict"

    def test_invalid_state(self, client, db_session, ctx_p, admin_c, office_p, office_c, stapler, buy, headers_for):
        buy(ctx_p, office_p, stapler, 1)
        [txn] = distribution_service.reserve(ctx_p, office_p.id, office_c.id, stapler.id, 1)
        db_session.commit()
        headers = headers_for(admin_c)

        assert client.post(f"/api/distributions/{txn.id}/confirm", headers=headers).status_code == 200
        resp = client.post(f"/api/distributions/{txn.id}/confirm", headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "InvalidState"


# =============================================================================
# WORKFLOWS
# =============================================================================


class TestWorkflows:

    def test_purchase_then_distribute(self, client, db_session, admin_p, admin_c, office_p, office_c, stapler, headers_for):
        headers_p = headers_for(admin_p)
        headers_c = headers_for(admin_c)

        resp = client.post("/api/purchases", json={
            "supplier": "Office Depot",
            "items": [{"itemId": stapler.id, "quantity": 3, "unitPriceCents": 500}],
        }, headers=headers_p)
        assert resp.status_code == 201
        purchase = resp.get_json()
        assert purchase["total_amount_cents"] == 1500
        assert len(purchase["items"][0]["barcodes"]) == 3

        resp = client.post("/api/distributions", json={
            "toOfficeId": office_c.id, "itemId": stapler.id, "quantity": 2, "remarks": "For C",
        }, headers=headers_p)
        assert resp.status_code == 201
        txns = resp.get_json()
        assert [t["status"] for t in txns] == ["PENDING", "PENDING"]

        pending = client.get("/api/distributions/pending", headers=headers_c).get_json()
        assert {t["id"] for t in pending} == {t["id"] for t in txns}

        client.post(f"/api/distributions/{txns[0]['id']}/confirm", headers=headers_c)
        resp = client.post(
            f"/api/distributions/{txns[1]['id']}/reject", json={"reason": "damaged"}, headers=headers_c
        )
        assert resp.get_json()["remarks"] == "For C | REJECTED: damaged"

        mine = client.get("/api/inventory/my", headers=headers_c).get_json()
        assert len(mine) == 1

        summary = client.get(f"/api/inventory/office/{office_p.id}/summary", headers=headers_p).get_json()
        assert summary["totalItems"] == 2
        assert summary["overallStatusBreakdown"] == {"AVAILABLE": 2}

    def test_request_workflow(self, client, db_session, ctx_p, admin_p, admin_c, office_p, office_c, pen, buy, headers_for):
        buy(ctx_p, office_p, pen, 10)
        headers_p = headers_for(admin_p)
        headers_c = headers_for(admin_c)

        resp = client.post("/api/requests", json={
            "parentOfficeId": office_p.id, "itemId": pen.id, "requestedQuantity": 10,
        }, headers=headers_c)
        assert resp.status_code == 201
        request_id = resp.get_json()["id"]

        incoming = client.get("/api/requests/incoming", headers=headers_p).get_json()
        assert [r["id"] for r in incoming] == [request_id]

        resp = client.post(f"/api/requests/{request_id}/approve", json={"approvedQuantity": 6}, headers=headers_p)
        assert resp.get_json()["status"] == "APPROVED"

        resp = client.post(f"/api/requests/{request_id}/fulfill", json={"quantity": 4}, headers=headers_p)
        body = resp.get_json()
        assert body["request"]["status"] == "PARTIALLY_FULFILLED"
        assert len(body["transactions"]) == 4

        all_incoming = client.get("/api/requests/incoming?status=ALL", headers=headers_p).get_json()
        assert [r["status"] for r in all_incoming] == ["PARTIALLY_FULFILLED"]

        # the requester, not the parent, may cancel; once fulfilment started it is too late
        resp = client.post(f"/api/requests/{request_id}/cancel", headers=headers_c)
        assert resp.status_code == 400


# =============================================================================
# CATALOG AND OFFICE ADMINISTRATION
# =============================================================================


class TestAdministration:

    def test_patch_item_is_partial(self, client, db_session, admin_p, stapler, headers_for):
        resp = client.patch(
            f"/api/catalog/items/{stapler.id}", json={"description": "Long reach"}, headers=headers_for(admin_p)
        )

        assert resp.status_code == 200
        body = resp.get_json()
        assert body["name"] == "Stapler"
        assert body["description"] == "Long reach"

    def test_patch_rejects_blank_and_unknown_fields(self, client, db_session, admin_p, stapler, headers_for):
        headers = headers_for(admin_p)

        resp = client.patch(f"/api/catalog/items/{stapler.id}", json={"name": "  "}, headers=headers)
        assert resp.status_code == 400
        resp = client.patch(f"/api/catalog/items/{stapler.id}", json={"barcode": "X"}, headers=headers)
        assert resp.status_code == 400

    def test_patch_category_and_unit(self, client, db_session, admin_p, stapler, headers_for):
        headers = headers_for(admin_p)

        resp = client.patch(f"/api/catalog/categories/{stapler.category_id}", json={"name": "Office"}, headers=headers)
        assert resp.get_json()["name"] == "Office"
        resp = client.patch(f"/api/catalog/units/{stapler.unit_id}", json={"name": "each"}, headers=headers)
        assert resp.get_json()["name"] == "each"

    def test_plain_user_cannot_patch(self, client, db_session, user_p, stapler, office_p, headers_for):
        headers = headers_for(user_p)

        assert client.patch(f"/api/catalog/items/{stapler.id}", json={"name": "Mine"}, headers=headers).status_code == 403
        assert client.patch(f"/api/offices/{office_p.id}", json={"name": "Mine"}, headers=headers).status_code == 403

    def test_patch_office(self, client, db_session, admin_p, office_p, office_c, office_g, headers_for):
        headers = headers_for(admin_p)

        resp = client.patch(f"/api/offices/{office_c.id}", json={"name": "Branch Central"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["code"] == "CCC"

        resp = client.patch(f"/api/offices/{office_p.id}", json={"parentId": office_g.id}, headers=headers)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "Invalid"

    def test_patch_unknown_office(self, client, db_session, admin_p, headers_for):
        resp = client.patch(f"/api/offices/{2**70}", json={"name": "Ghost"}, headers=headers_for(admin_p))
        assert resp.status_code == 404


# =============================================================================
# PUBLIC TRACKING AND LABELS
# =============================================================================


class TestTrackingAndLabels:

    def test_tracking_needs_no_token(self, client, db_session, ctx_p, office_p, stapler, buy):
        buy(ctx_p, office_p, stapler, 1)
        barcode = db_session.query(ItemInstance).first().barcode

        resp = client.get(f"/api/tracking/{barcode}")

        assert resp.status_code == 200
        assert resp.get_json()["officeJourney"] == ["Purchased by: Head Office", "Current: Head Office"]

    def test_tracking_unknown_barcode(self, client, db_session):
        resp = client.get("/api/tracking/NOPE")
        assert resp.status_code == 404

    def test_batch_tracking(self, client, db_session, ctx_p, office_p, stapler, buy):
        buy(ctx_p, office_p, stapler, 1)
        barcode = db_session.query(ItemInstance).first().barcode

        resp = client.post("/api/tracking/batch", json={"barcodes": [barcode, "NOPE"]})

        assert resp.status_code == 200
        results = resp.get_json()
        assert results[0]["barcode"] == barcode
        assert results[1]["error"].startswith("Item not found")

    def test_labels(self, client, db_session, ctx_p, user_p, office_p, stapler, buy, headers_for):
        buy(ctx_p, office_p, stapler, 2)
        ids = [i.id for i in db_session.query(ItemInstance).order_by(ItemInstance.id)]

        resp = client.post("/api/barcodes/labels", json={"instanceIds": ids}, headers=headers_for(user_p))

        assert resp.status_code == 200
        assert [label["officeCode"] for label in resp.get_json()] == ["AAA", "AAA"]

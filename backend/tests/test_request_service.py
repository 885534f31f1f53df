"""
Item request workflow tests.

Verifies:
- PENDING -> APPROVED -> PARTIALLY_FULFILLED -> FULFILLED round trip
- Fulfilment only opens PENDING distributions the requester must confirm
- A failed fulfilment leaves the request untouched
- Parent-admin and requester-admin gates
"""

import pytest

from assetledger.errors import (
    ForbiddenError,
    InsufficientStockError,
    InvalidStateError,
    ValidationError,
)
from assetledger.models import ItemInstance, ItemRequest
from assetledger.services import distribution_service, request_service


@pytest.fixture
def pen_request(db_session, ctx_c, office_c, office_p, pen):
    item_request = request_service.create(ctx_c, office_c.id, office_p.id, pen.id, 10, reason="New hires")
    db_session.commit()
    return item_request


class TestCreate:

    def test_create_is_pending(self, pen_request, ctx_c, office_c, office_p):
        assert pen_request.status == "PENDING"
        assert pen_request.requesting_office_id == office_c.id
        assert pen_request.parent_office_id == office_p.id
        assert pen_request.requested_by_user_id == ctx_c.user_id
        assert pen_request.fulfilled_quantity == 0
        assert pen_request.approved_quantity is None
        assert pen_request.requested_date is not None

    def test_self_request_is_invalid(self, db_session, ctx_c, office_c, pen):
        with pytest.raises(ValidationError):
            request_service.create(ctx_c, office_c.id, office_c.id, pen.id, 1)

    def test_missing_parent_is_invalid(self, db_session, ctx_c, office_c, pen):
        with pytest.raises(ValidationError):
            request_service.create(ctx_c, office_c.id, None, pen.id, 1)

    @pytest.mark.parametrize("quantity", [0, -3, 2**70])
    def test_out_of_range_quantity_is_invalid(self, db_session, ctx_c, office_c, office_p, pen, quantity):
        with pytest.raises(ValidationError):
            request_service.create(ctx_c, office_c.id, office_p.id, pen.id, quantity)

    def test_only_admin_of_requesting_office(self, db_session, ctx_p, office_c, office_p, pen):
        with pytest.raises(ForbiddenError):
            request_service.create(ctx_p, office_c.id, office_p.id, pen.id, 1)


class TestApproveReject:

    def test_approve_sets_quantity(self, db_session, ctx_p, pen_request):
        approved = request_service.approve(ctx_p, pen_request.id, 6)

        assert approved.status == "APPROVED"
        assert approved.approved_quantity == 6
        assert approved.approved_by_user_id == ctx_p.user_id
        assert approved.approved_date is not None

    @pytest.mark.parametrize("quantity", [0, 11])
    def test_approved_quantity_bounds(self, db_session, ctx_p, pen_request, quantity):
        with pytest.raises(ValidationError):
            request_service.approve(ctx_p, pen_request.id, quantity)

    def test_requester_cannot_approve(self, db_session, ctx_c, pen_request):
        with pytest.raises(ForbiddenError):
            request_service.approve(ctx_c, pen_request.id, 5)

    def test_reject(self, db_session, ctx_p, pen_request):
        rejected = request_service.reject(ctx_p, pen_request.id, "Budget freeze")

        assert rejected.status == "REJECTED"
        assert rejected.rejected_date is not None
        assert rejected.approved_by_user_id == ctx_p.user_id
        assert rejected.remarks == "Budget freeze"

    def test_only_pending_can_be_approved_or_rejected(self, db_session, ctx_p, pen_request):
        request_service.approve(ctx_p, pen_request.id, 4)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            request_service.approve(ctx_p, pen_request.id, 4)
        with pytest.raises(InvalidStateError):
            request_service.reject(ctx_p, pen_request.id)


class TestFulfill:

    def test_request_round_trip(self, db_session, ctx_p, ctx_c, office_p, office_c, pen, pen_request, buy, ledger_invariants):
        buy(ctx_p, office_p, pen, 10, unit_price_cents=120)
        request_service.approve(ctx_p, pen_request.id, 6)
        db_session.commit()

        first = request_service.fulfill(ctx_p, pen_request.id, 4)
        db_session.commit()
        assert first["request"].status == "PARTIALLY_FULFILLED"
        assert first["request"].fulfilled_quantity == 4
        assert len(first["transactions"]) == 4
        assert all(t.status == "PENDING" for t in first["transactions"])
        assert first["transactions"][0].remarks.startswith(f"Fulfilling request #{pen_request.id} (4 of 6)")
        ledger_invariants()

        for txn in first["transactions"]:
            distribution_service.confirm(ctx_c, txn.id)
        db_session.commit()

        second = request_service.fulfill(ctx_p, pen_request.id, 2, reason="last batch")
        db_session.commit()
        assert second["transactions"][0].remarks == (
            f"Fulfilling request #{pen_request.id} (2 of 6): last batch"
        )
        for txn in second["transactions"]:
            distribution_service.confirm(ctx_c, txn.id)
        db_session.commit()

        item_request = db_session.get(ItemRequest, pen_request.id)
        assert item_request.status == "FULFILLED"
        assert item_request.fulfilled_quantity == 6
        assert item_request.fulfilled_date is not None
        owned_by_c = db_session.query(ItemInstance).filter_by(owner_office_id=office_c.id, item_id=pen.id).count()
        assert owned_by_c == 6
        ledger_invariants()

    def test_fulfil_more_than_remaining_is_invalid(self, db_session, ctx_p, office_p, pen, pen_request, buy):
        buy(ctx_p, office_p, pen, 10)
        request_service.approve(ctx_p, pen_request.id, 3)
        request_service.fulfill(ctx_p, pen_request.id, 2)
        db_session.commit()

        with pytest.raises(ValidationError):
            request_service.fulfill(ctx_p, pen_request.id, 2)

    def test_fulfil_requires_approval(self, db_session, ctx_p, office_p, pen, pen_request, buy):
        buy(ctx_p, office_p, pen, 5)

        with pytest.raises(InvalidStateError):
            request_service.fulfill(ctx_p, pen_request.id, 1)

    def test_insufficient_stock_leaves_request_unchanged(self, db_session, ctx_p, office_p, pen, pen_request, buy):
        buy(ctx_p, office_p, pen, 1)
        request_service.approve(ctx_p, pen_request.id, 5)
        db_session.commit()

        with pytest.raises(InsufficientStockError):
            request_service.fulfill(ctx_p, pen_request.id, 3)
        db_session.rollback()

        item_request = db_session.get(ItemRequest, pen_request.id)
        assert item_request.status == "APPROVED"
        assert item_request.fulfilled_quantity == 0

    def test_fulfilled_request_cannot_be_fulfilled_again(self, db_session, ctx_p, office_p, pen, pen_request, buy):
        buy(ctx_p, office_p, pen, 5)
        request_service.approve(ctx_p, pen_request.id, 2)
        request_service.fulfill(ctx_p, pen_request.id, 2)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            request_service.fulfill(ctx_p, pen_request.id, 1)


class TestCancelAndListings:

    def test_cancel_pending(self, db_session, ctx_c, pen_request):
        cancelled = request_service.cancel(ctx_c, pen_request.id, "Not needed")
        assert cancelled.status == "CANCELLED"

    def test_cancel_after_fulfilment_is_invalid(self, db_session, ctx_p, ctx_c, office_p, pen, pen_request, buy):
        buy(ctx_p, office_p, pen, 5)
        request_service.approve(ctx_p, pen_request.id, 3)
        request_service.fulfill(ctx_p, pen_request.id, 1)
        db_session.commit()

        with pytest.raises(InvalidStateError):
            request_service.cancel(ctx_c, pen_request.id)

    def test_parent_cannot_cancel(self, db_session, ctx_p, pen_request):
        with pytest.raises(ForbiddenError):
            request_service.cancel(ctx_p, pen_request.id)

    def test_listings(self, db_session, ctx_p, ctx_c, ctx_o, pen_request):
        assert [r.id for r in request_service.list_my_requests(ctx_c)] == [pen_request.id]
        assert [r.id for r in request_service.list_incoming(ctx_p)] == [pen_request.id]
        assert request_service.list_incoming(ctx_p, "APPROVED") == []
        assert request_service.get_request(ctx_p, pen_request.id).id == pen_request.id
        assert request_service.get_request(ctx_c, pen_request.id).id == pen_request.id
        with pytest.raises(ForbiddenError):
            request_service.get_request(ctx_o, pen_request.id)

    def test_unknown_status_filter_is_invalid(self, db_session, ctx_p):
        with pytest.raises(ValidationError):
            request_service.list_incoming(ctx_p, "SHIPPED")

# Overview: Child-to-parent item requests: create, approve, reject, fulfil through reservations, cancel.

"""
Item request workflow.

LIFECYCLE:
1. PENDING: child office admin asks a parent office for requested_quantity
2. APPROVED: parent admin grants approved_quantity (<= requested)
3. PARTIALLY_FULFILLED: some approved units reserved towards the request
4. FULFILLED: fulfilled_quantity == approved_quantity
5. REJECTED: parent admin refused a PENDING request
6. CANCELLED: requester withdrew before anything was fulfilled

Fulfilling only creates PENDING distributions; the requesting office still
confirms every unit before custody changes. The reservation and the request
update are written in the same database transaction, so an insufficient
stock failure leaves the request untouched.
"""
from __future__ import annotations

import logging

from assetledger.errors import InvalidStateError, NotFoundError, ValidationError
from assetledger.extensions import db
from assetledger.models import Item, ItemRequest, Office
from assetledger.models.requests import (
    REQUEST_STATUS_APPROVED,
    REQUEST_STATUS_CANCELLED,
    REQUEST_STATUS_FULFILLED,
    REQUEST_STATUS_PARTIALLY_FULFILLED,
    REQUEST_STATUS_PENDING,
    REQUEST_STATUS_REJECTED,
    REQUEST_STATUSES,
)
from assetledger.services.access_service import (
    OfficeContext,
    require_admin_of,
    require_admin_of_parent,
    require_same_office,
)
from assetledger.services.concurrency import lock_for_update, run_with_retry
from assetledger.services.distribution_service import _reserve_instances
from assetledger.services.entity_store import (
    get_or_raise,
    requests_by_parent_office,
    requests_by_requesting_office,
)
from assetledger.time_utils import utcnow
from assetledger.validation import MAX_INT, positive_int

logger = logging.getLogger(__name__)


def _fulfil_remarks(item_request: ItemRequest, units: int, reason: str | None) -> str:
    text = f"Fulfilling request #{item_request.id} ({units} of {item_request.approved_quantity})"
    return f"{text}: {reason}" if reason else text


def _locked_request(request_id: int) -> ItemRequest:
    if not 0 < request_id <= MAX_INT:
        raise NotFoundError(f"Request {request_id} not found")
    item_request = lock_for_update(db.session.query(ItemRequest).filter_by(id=request_id)).first()
    if item_request is None:
        raise NotFoundError(f"Request {request_id} not found")
    return item_request


def create(
    ctx: OfficeContext,
    requesting_office_id: int,
    parent_office_id: int | None,
    item_id: int,
    requested_quantity: int,
    reason: str | None = None,
) -> ItemRequest:
    """Open a PENDING request from requesting_office to parent_office."""
    def _op():
        requesting_office = get_or_raise(Office, requesting_office_id, "Requesting office")
        require_admin_of(ctx, requesting_office.id)

        if parent_office_id is None:
            raise ValidationError("parentOfficeId is required")
        if parent_office_id == requesting_office.id:
            raise ValidationError("An office cannot request items from itself")
        parent_office = get_or_raise(Office, parent_office_id, "Parent office")
        item = get_or_raise(Item, item_id, "Item")
        quantity = positive_int(requested_quantity, "requestedQuantity")

        item_request = ItemRequest(
            item_id=item.id,
            requesting_office_id=requesting_office.id,
            parent_office_id=parent_office.id,
            requested_by_user_id=ctx.user_id,
            requested_quantity=quantity,
            fulfilled_quantity=0,
            status=REQUEST_STATUS_PENDING,
            reason=reason,
            requested_date=utcnow(),
        )
        db.session.add(item_request)
        db.session.flush()

        logger.info(
            "Request %s created: %s asks %s for %d x %s",
            item_request.id, requesting_office.code, parent_office.code, quantity, item.name,
        )
        return item_request

    return run_with_retry(_op)


def approve(ctx: OfficeContext, request_id: int, approved_quantity: int, remarks: str | None = None) -> ItemRequest:
    def _op():
        item_request = _locked_request(request_id)
        require_admin_of_parent(ctx, item_request)

        if item_request.status != REQUEST_STATUS_PENDING:
            raise InvalidStateError(f"Only PENDING requests can be approved (request is {item_request.status})")

        quantity = positive_int(approved_quantity, "approvedQuantity")
        if quantity > item_request.requested_quantity:
            raise ValidationError("approvedQuantity cannot exceed requestedQuantity")

        item_request.approved_quantity = quantity
        item_request.approved_by_user_id = ctx.user_id
        item_request.approved_date = utcnow()
        item_request.status = REQUEST_STATUS_APPROVED
        if remarks:
            item_request.remarks = remarks
        db.session.flush()

        logger.info("Request %s approved for %d by user %s", item_request.id, quantity, ctx.user_id)
        return item_request

    return run_with_retry(_op)


def reject(ctx: OfficeContext, request_id: int, remarks: str | None = None) -> ItemRequest:
    def _op():
        item_request = _locked_request(request_id)
        require_admin_of_parent(ctx, item_request)

        if item_request.status != REQUEST_STATUS_PENDING:
            raise InvalidStateError(f"Only PENDING requests can be rejected (request is {item_request.status})")

        item_request.approved_by_user_id = ctx.user_id
        item_request.rejected_date = utcnow()
        item_request.status = REQUEST_STATUS_REJECTED
        if remarks:
            item_request.remarks = remarks
        db.session.flush()

        logger.info("Request %s rejected by user %s", item_request.id, ctx.user_id)
        return item_request

    return run_with_retry(_op)


def fulfill(ctx: OfficeContext, request_id: int, quantity: int, reason: str | None = None) -> dict:
    """
    Reserve quantity units towards an approved request.

    Returns {"request": ItemRequest, "transactions": [ItemTransaction, ...]}.
    """
    def _op():
        item_request = _locked_request(request_id)
        require_admin_of_parent(ctx, item_request)

        if item_request.status not in (REQUEST_STATUS_APPROVED, REQUEST_STATUS_PARTIALLY_FULFILLED):
            raise InvalidStateError(
                f"Only APPROVED or PARTIALLY_FULFILLED requests can be fulfilled (request is {item_request.status})"
            )

        units = positive_int(quantity, "quantity")
        remaining = item_request.remaining_quantity
        if units > remaining:
            raise ValidationError(f"Cannot fulfil {units}; only {remaining} remaining")

        transactions = _reserve_instances(
            ctx,
            item_request.parent_office_id,
            item_request.requesting_office_id,
            item_request.item_id,
            units,
            _fulfil_remarks(item_request, units, reason),
        )

        item_request.fulfilled_quantity = (item_request.fulfilled_quantity or 0) + units
        item_request.fulfilled_date = utcnow()
        if item_request.fulfilled_quantity == item_request.approved_quantity:
            item_request.status = REQUEST_STATUS_FULFILLED
        else:
            item_request.status = REQUEST_STATUS_PARTIALLY_FULFILLED
        db.session.flush()

        logger.info(
            "Request %s fulfilled %d (%d/%d) by user %s",
            item_request.id, units, item_request.fulfilled_quantity, item_request.approved_quantity, ctx.user_id,
        )
        return {"request": item_request, "transactions": transactions}

    return run_with_retry(_op)


def cancel(ctx: OfficeContext, request_id: int, remarks: str | None = None) -> ItemRequest:
    """Requester withdraws a PENDING request, or an APPROVED one nothing has been sent for."""
    def _op():
        item_request = _locked_request(request_id)
        require_admin_of(ctx, item_request.requesting_office_id)

        cancellable = item_request.status == REQUEST_STATUS_PENDING or (
            item_request.status == REQUEST_STATUS_APPROVED and not item_request.fulfilled_quantity
        )
        if not cancellable:
            raise InvalidStateError(f"Request in {item_request.status} status cannot be cancelled")

        item_request.status = REQUEST_STATUS_CANCELLED
        if remarks:
            item_request.remarks = remarks
        db.session.flush()

        logger.info("Request %s cancelled by user %s", item_request.id, ctx.user_id)
        return item_request

    return run_with_retry(_op)


def list_my_requests(ctx: OfficeContext) -> list[ItemRequest]:
    return requests_by_requesting_office(ctx.office_id).all()


def list_incoming(ctx: OfficeContext, status: str | None = REQUEST_STATUS_PENDING) -> list[ItemRequest]:
    """Requests addressed to the caller's office; status=None lists every state."""
    if status is not None and status not in REQUEST_STATUSES:
        raise ValidationError(f"Unknown request status: {status}")
    return requests_by_parent_office(ctx.office_id, status).all()


def get_request(ctx: OfficeContext, request_id: int) -> ItemRequest:
    item_request = get_or_raise(ItemRequest, request_id, "Request")
    if ctx.office_id != item_request.parent_office_id:
        require_same_office(ctx, item_request.requesting_office_id)
    return item_request

"""
Concurrency tests.

Runs competing reservations and confirmations from several threads against a
file-backed SQLite database (the in-memory one is single-connection) and
checks that no unit is reserved twice and no transaction resolves twice.
"""

import threading

import pytest
from sqlalchemy.exc import OperationalError

from assetledger import create_app
from assetledger.errors import ConflictError, InsufficientStockError, InvalidStateError
from assetledger.extensions import db
from assetledger.models import ItemInstance, ItemTransaction
from assetledger.services import distribution_service, office_service, purchase_service
from assetledger.services.access_service import resolve_context
from assetledger.services.auth_service import create_default_roles, get_role_by_name
from assetledger.services.catalog_service import add_item

from conftest import make_user

STOCK = 10
WORKERS = 4


@pytest.fixture
def shared_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"check_same_thread": False, "timeout": 10}},
    })
    with app.app_context():
        db.create_all()
        create_default_roles()
        office_p = office_service.bootstrap_office("Head Office", "AAA")
        office_c = office_service.bootstrap_office("Branch C", "CCC", parent_id=office_p.id)
        db.session.commit()
        admin_p = make_user(db.session, "admin_p", office_p, get_role_by_name("Admin"))
        admin_c = make_user(db.session, "admin_c", office_c, get_role_by_name("Admin"))
        item = add_item("Stapler")
        db.session.commit()
        purchase_service.record_purchase(
            resolve_context(admin_p.id),
            office_p.id,
            [{"item_id": item.id, "quantity": STOCK, "unit_price_cents": 500}],
        )
        db.session.commit()

        app.config["SEED"] = {
            "admin_p": admin_p.id,
            "admin_c": admin_c.id,
            "office_p": office_p.id,
            "office_c": office_c.id,
            "item": item.id,
        }

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_threads(target, count):
    start = threading.Barrier(count)
    errors = []

    def _wrapped():
        try:
            start.wait()
            target()
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=_wrapped) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert errors == []


def test_competing_reservations_never_oversell(shared_app):
    seed = shared_app.config["SEED"]
    reserved = []
    lock = threading.Lock()

    def _worker():
        with shared_app.app_context():
            ctx = resolve_context(seed["admin_p"])
            for _ in range(STOCK):
                try:
                    txns = distribution_service.reserve(ctx, seed["office_p"], seed["office_c"], seed["item"], 2)
                    ids = [t.item_instance_id for t in txns]
                    db.session.commit()
                except (InsufficientStockError, ConflictError):
                    db.session.rollback()
                    return
                except OperationalError:
                    db.session.rollback()
                    continue
                with lock:
                    reserved.extend(ids)

    _run_threads(_worker, WORKERS)

    with shared_app.app_context():
        assert len(reserved) == len(set(reserved))
        assert len(reserved) <= STOCK
        pending = db.session.query(ItemTransaction).filter_by(status="PENDING").all()
        in_use = db.session.query(ItemInstance).filter_by(status="IN_USE").count()
        assert len(pending) == in_use == len(reserved)
        assert len({t.item_instance_id for t in pending}) == len(pending)


def test_competing_confirmations_resolve_once(shared_app):
    seed = shared_app.config["SEED"]
    with shared_app.app_context():
        ctx_p = resolve_context(seed["admin_p"])
        [txn] = distribution_service.reserve(ctx_p, seed["office_p"], seed["office_c"], seed["item"], 1)
        db.session.commit()
        txn_id = txn.id

    outcomes = []
    lock = threading.Lock()

    def _worker():
        with shared_app.app_context():
            ctx_c = resolve_context(seed["admin_c"])
            for _ in range(5):
                try:
                    distribution_service.confirm(ctx_c, txn_id)
                    db.session.commit()
                    outcome = "confirmed"
                except InvalidStateError:
                    db.session.rollback()
                    outcome = "refused"
                except OperationalError:
                    db.session.rollback()
                    continue
                with lock:
                    outcomes.append(outcome)
                return

    _run_threads(_worker, WORKERS)

    assert outcomes.count("confirmed") == 1
    with shared_app.app_context():
        instance = db.session.get(ItemInstance, db.session.get(ItemTransaction, txn_id).item_instance_id)
        assert instance.owner_office_id == seed["office_c"]
        assert instance.status == "AVAILABLE"

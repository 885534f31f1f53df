"""
Pytest fixtures for asset ledger backend tests.

Provides test database setup, an office hierarchy with admins, catalog items
and a test client.

Hierarchy used throughout:

    Head Office (AAA)          Other (OOO)
        └── Branch C (CCC)
                └── Grand G (GGG)
"""

import pytest
from assetledger import create_app
from assetledger.extensions import db
from assetledger.models import (
    Category,
    Item,
    ItemInstance,
    ItemRequest,
    ItemTransaction,
    Role,
    Unit,
    User,
)
from assetledger.models.instances import INSTANCE_STATUS_IN_USE
from assetledger.models.transactions import TXN_STATUS_PENDING
from assetledger.services import office_service, purchase_service, session_service
from assetledger.services.access_service import context_for_user
from assetledger.services.auth_service import create_default_roles, hash_password

TEST_PASSWORD = "Password123!"

_password_hash = None


def _test_password_hash() -> str:
    # bcrypt cost 12 is slow; hash once per run
    global _password_hash
    if _password_hash is None:
        _password_hash = hash_password(TEST_PASSWORD)
    return _password_hash


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def roles(db_session):
    create_default_roles()
    db_session.commit()
    return {r.name: r for r in db_session.query(Role).all()}


@pytest.fixture(scope='function')
def office_p(db_session):
    office = office_service.bootstrap_office("Head Office", "AAA")
    db_session.commit()
    return office


@pytest.fixture(scope='function')
def office_c(db_session, office_p):
    office = office_service.bootstrap_office("Branch C", "CCC", parent_id=office_p.id)
    db_session.commit()
    return office


@pytest.fixture(scope='function')
def office_g(db_session, office_c):
    office = office_service.bootstrap_office("Grand G", "GGG", parent_id=office_c.id)
    db_session.commit()
    return office


@pytest.fixture(scope='function')
def office_o(db_session):
    office = office_service.bootstrap_office("Other", "OOO")
    db_session.commit()
    return office


def make_user(db_session, username: str, office, role: Role) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.replace("_", " ").title(),
        password_hash=_test_password_hash(),
        role_id=role.id,
        office_id=office.id,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_p(db_session, roles, office_p):
    return make_user(db_session, "admin_p", office_p, roles["Admin"])


@pytest.fixture(scope='function')
def user_p(db_session, roles, office_p):
    return make_user(db_session, "user_p", office_p, roles["User"])


@pytest.fixture(scope='function')
def admin_c(db_session, roles, office_c):
    return make_user(db_session, "admin_c", office_c, roles["Admin"])


@pytest.fixture(scope='function')
def admin_g(db_session, roles, office_g):
    return make_user(db_session, "admin_g", office_g, roles["Admin"])


@pytest.fixture(scope='function')
def admin_o(db_session, roles, office_o):
    return make_user(db_session, "admin_o", office_o, roles["Admin"])


@pytest.fixture(scope='function')
def ctx_p(admin_p):
    return context_for_user(admin_p)


@pytest.fixture(scope='function')
def ctx_user_p(user_p):
    return context_for_user(user_p)


@pytest.fixture(scope='function')
def ctx_c(admin_c):
    return context_for_user(admin_c)


@pytest.fixture(scope='function')
def ctx_g(admin_g):
    return context_for_user(admin_g)


@pytest.fixture(scope='function')
def ctx_o(admin_o):
    return context_for_user(admin_o)


@pytest.fixture(scope='function')
def stapler(db_session):
    category = Category(name="Stationery")
    unit = Unit(name="pcs")
    db_session.add_all([category, unit])
    db_session.flush()
    item = Item(name="Stapler", description="Desk stapler", category_id=category.id, unit_id=unit.id)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def pen(db_session):
    item = Item(name="Pen", description="Blue ballpoint")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def buy(db_session):
    """Record a single-line purchase and commit it."""
    def _buy(ctx, office, item, quantity, unit_price_cents=500, **kwargs):
        purchase = purchase_service.record_purchase(
            ctx,
            office.id,
            [{"item_id": item.id, "quantity": quantity, "unit_price_cents": unit_price_cents}],
            **kwargs,
        )
        db_session.commit()
        return purchase
    return _buy


@pytest.fixture(scope='function')
def ledger_invariants(db_session):
    """Returns a checker asserting the global ledger invariants hold right now."""
    def _check():
        instances = db_session.query(ItemInstance).all()

        barcodes = [i.barcode for i in instances]
        assert len(barcodes) == len(set(barcodes))

        pending = db_session.query(ItemTransaction).filter_by(status=TXN_STATUS_PENDING).all()
        pending_ids = [t.item_instance_id for t in pending]
        assert len(pending_ids) == len(set(pending_ids))

        for instance in instances:
            assert instance.inventory.office_id == instance.owner_office_id
            if instance.status == INSTANCE_STATUS_IN_USE:
                assert instance.id in pending_ids
            else:
                assert instance.id not in pending_ids

        for req in db_session.query(ItemRequest).all():
            assert req.fulfilled_quantity >= 0
            if req.approved_quantity is not None:
                assert req.fulfilled_quantity <= req.approved_quantity <= req.requested_quantity
            else:
                assert req.fulfilled_quantity == 0
    return _check


@pytest.fixture(scope='function')
def headers_for(db_session):
    """Authorization headers for a user, issued without going through bcrypt login."""
    def _headers(user: User) -> dict:
        _session, token = session_service.create_session(user)
        db_session.commit()
        return {'Authorization': f'Bearer {token}'}
    return _headers

import os

# Must be set before any documind import reads settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["AUTH_DISABLED"] = "false"
os.environ["USE_LOCAL_STORAGE"] = "true"

import uuid
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from documind.api import deps
from documind.core.exceptions import QnABackendError
from documind.db.base import Base, enable_sqlite_savepoints
from documind.main import app
from documind.models import User, UserRole
from documind.services.auth import AuthService
from documind.services.payments.checkout import CheckoutService
from documind.services.payments.gateways import CryptoGateway, ProviderCharge, ProviderOrder
from documind.services.plans import list_active_plans, seed_default_plans
from documind.services.storage import StorageService

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeStripeGateway:
    """Stands in for Stripe; tests set ``charge`` to what the provider reports."""

    def __init__(self):
        self.created = []
        self.retrieved = []
        self.charge = None
        self.card = {
            "card_brand": "visa",
            "card_last4": "4242",
            "card_exp_month": 12,
            "card_exp_year": 2030,
        }

    def create_payment_intent(self, amount, currency, metadata):
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append({"id": intent_id, "amount": amount, "currency": currency, "metadata": metadata})
        return ProviderOrder(id=intent_id, client_secret=f"{intent_id}_secret")

    def retrieve_payment_intent(self, payment_intent_id):
        self.retrieved.append(payment_intent_id)
        if self.charge is not None:
            return self.charge
        created = next(c for c in self.created if c["id"] == payment_intent_id)
        return ProviderCharge(
            id=payment_intent_id,
            status="succeeded",
            amount=created["amount"],
            currency=created["currency"],
            transaction_id=payment_intent_id,
            payment_method_id="pm_card_visa",
        )

    def retrieve_payment_method(self, payment_method_id):
        return dict(self.card)


class FakePayPalGateway:
    def __init__(self):
        self.created = []
        self.captured = []
        self.charge = None

    def create_order(self, amount, currency, description, return_url, cancel_url, reference_id=None):
        order_id = f"PAYPAL-ORDER-{len(self.created) + 1}"
        self.created.append({"id": order_id, "amount": amount, "currency": currency})
        return ProviderOrder(id=order_id, approval_url=f"https://paypal.test/approve/{order_id}")

    def capture_order(self, order_id):
        self.captured.append(order_id)
        if self.charge is not None:
            return self.charge
        created = next(c for c in self.created if c["id"] == order_id)
        return ProviderCharge(
            id=order_id,
            status="COMPLETED",
            amount=Decimal(created["amount"]),
            currency=created["currency"],
            transaction_id=f"CAPTURE-{order_id}",
            payment_method_id="PAYER123",
            payer={"paypal_email": "buyer@example.com"},
        )


class FakeQnAClient:
    def __init__(self):
        self.answer = "The contract ends in March."
        self.fail_query = False
        self.fail_ingest = False
        self.ingested = []
        self.deleted = []
        self.questions = []

    def ingest_document(self, user_id, document_id, file_name, content, file_url=None):
        if self.fail_ingest:
            raise QnABackendError("Backend returned 500")
        self.ingested.append(document_id)
        return {}

    def query(self, question, user_id, document_id):
        if self.fail_query:
            raise QnABackendError("Backend returned 503")
        self.questions.append((question, document_id))
        return self.answer

    def delete_document(self, document_id, user_id):
        self.deleted.append(document_id)


@pytest.fixture(scope="function")
def db():
    """Fresh in-memory schema per test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def plans(db: Session):
    seed_default_plans(db)
    return {plan.name: plan for plan in list_active_plans(db)}


@pytest.fixture
def stripe_gateway():
    return FakeStripeGateway()


@pytest.fixture
def paypal_gateway():
    return FakePayPalGateway()


@pytest.fixture
def crypto_gateway():
    return CryptoGateway(
        addresses={"btc": "bc1qtestaddress", "eth": "0xTestAddress", "sol": "SoLTestAddress"},
        simulation=True,
    )


@pytest.fixture
def checkout_service(stripe_gateway, paypal_gateway, crypto_gateway):
    return CheckoutService(
        stripe_gateway=stripe_gateway,
        paypal_gateway=paypal_gateway,
        crypto_gateway=crypto_gateway,
    )


@pytest.fixture
def qna_client():
    return FakeQnAClient()


@pytest.fixture
def storage(tmp_path):
    return StorageService(use_local=True, local_path=str(tmp_path / "uploads"))


@pytest.fixture(scope="function")
def client(db: Session, checkout_service, qna_client, storage):
    """Create a test client with the test database and fake providers."""

    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_checkout_service] = lambda: checkout_service
    app.dependency_overrides[deps.get_qna_client] = lambda: qna_client
    app.dependency_overrides[deps.get_storage] = lambda: storage

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(db: Session, email: str, username: str, role: str = UserRole.USER.value) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        username=username,
        hashed_password=AuthService.get_password_hash("testpassword"),
        full_name=username.title(),
        role=role,
        is_active=True,
        is_verified=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user: User) -> dict:
    token = AuthService.create_access_token(
        {"sub": str(user.id), "email": user.email, "username": user.username}
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def test_user(db: Session):
    return make_user(db, "testuser@example.com", "testuser")


@pytest.fixture
def other_user(db: Session):
    return make_user(db, "other@example.com", "otheruser")


@pytest.fixture
def admin_user(db: Session):
    return make_user(db, "admin@example.com", "adminuser", role=UserRole.ADMIN.value)


@pytest.fixture(scope="function")
def auth_headers(client: TestClient, test_user: User):
    """Create authentication headers with a valid token."""
    response = client.post(
        "/api/v1/auth/login",
        json={"email": test_user.email, "password": "testpassword"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def other_headers(other_user: User):
    return bearer(other_user)


@pytest.fixture
def admin_headers(admin_user: User):
    return bearer(admin_user)


@pytest.fixture
def user_factory(db: Session):
    """Create extra users: ``user_factory("name")``."""

    def _create(username: str, role: str = UserRole.USER.value) -> User:
        return make_user(db, f"{username}@example.com", username, role=role)

    return _create

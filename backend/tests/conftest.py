"""
Pytest fixtures for the Rent the Moment backend tests.

Provides an in-memory database, a fake image host, signed-in users and a
small catalog.
"""

from datetime import timedelta

import pytest

from rentmoment import create_app
from rentmoment.extensions import db
from rentmoment.models import User, Category, Product, ROLE_ADMIN, ROLE_USER
from rentmoment.services import session_service
from rentmoment.services.auth_service import hash_password
from rentmoment.services.image_store import ImageStoreError, StoredImage
from rentmoment.time_utils import utcnow


PASSWORD = "Password123!"

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="


class FakeImageStore:
    """In-memory stand-in for the Cloudinary client."""

    configured = True

    def __init__(self):
        self.reset()

    def reset(self):
        self.uploads = []
        self.destroyed = []
        self.fail_uploads = False
        self.fail_destroy = False

    def upload(self, data, folder):
        if self.fail_uploads:
            raise ImageStoreError("Image upload failed")
        self.uploads.append((folder, data))
        n = len(self.uploads)
        return StoredImage(
            url=f"https://res.cloudinary.com/demo/image/upload/v1700000000/{folder}/img{n}.jpg",
            public_id=f"{folder}/img{n}",
        )

    def upload_many(self, items, folder):
        return [self.upload(item, folder) for item in items]

    def destroy(self, public_id):
        if self.fail_destroy:
            raise ImageStoreError("Image deletion failed")
        self.destroyed.append(public_id)
        return True


@pytest.fixture(scope='session')
def fake_image_store():
    return FakeImageStore()


@pytest.fixture(scope='session')
def app(fake_image_store):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'IMAGE_STORE': fake_image_store,
        'IMAGE_CLEANUP_ASYNC': False,
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
def db_session(app, fake_image_store):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        fake_image_store.reset()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def image_store(db_session, fake_image_store):
    return fake_image_store


@pytest.fixture(scope='session')
def password_hash(app):
    """bcrypt at cost 12 is slow; hash the shared test password once."""
    return hash_password(PASSWORD)


def _make_user(db_session, password_hash, *, name, email, role=ROLE_USER, is_active=True):
    user = User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        is_active=is_active,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_user(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Admin", email="admin@rentmoment.test", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def customer(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Alice Customer", email="alice@example.com")


@pytest.fixture(scope='function')
def other_customer(db_session, password_hash):
    return _make_user(db_session, password_hash, name="Bob Customer", email="bob@example.com")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def customer_headers(customer):
    return _headers_for(customer)


@pytest.fixture(scope='function')
def other_headers(other_customer):
    return _headers_for(other_customer)


@pytest.fixture(scope='function')
def dresses(db_session):
    category = Category(name="Dresses", description="Evening and party dresses",
                        image="https://example.com/dresses.jpg", sort_order=1)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def jackets(db_session):
    category = Category(name="Jackets", image="https://example.com/jackets.jpg", sort_order=2)
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(categories=[...], **fields) -> persisted Product."""
    def _make(categories, **fields):
        sizes = fields.pop("sizes", [{"size": "M", "is_available": True, "quantity": 1}])
        values = {
            "name": "Red Dress",
            "description": "Silk evening dress",
            "images": ["https://example.com/red-dress.jpg"],
            "price_cents": 4000,
            "original_price_cents": 25000,
            "color": "Red",
            "rental_duration": 1,
            "tags": [],
            "specifications": {},
        }
        values.update(fields)
        product = Product(**values)
        product.set_categories([c.id for c in categories])
        product.set_sizes(sizes)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product, dresses):
    return make_product([dresses])


@pytest.fixture(scope='function')
def order_payload():
    """Factory for a valid checkout body; keyword overrides replace top-level keys."""
    def _payload(items, **overrides):
        tomorrow = (utcnow() + timedelta(days=1)).date()
        body = {
            "items": items,
            "shipping_address": {
                "name": "Alice Customer",
                "phone": "555-0100",
                "street": "1 Main St",
                "city": "Springfield",
                "state": "IL",
                "zip_code": "62701",
                "country": "US",
            },
            "payment_method": "Credit Card",
            "rental_start_date": tomorrow.isoformat(),
            "rental_end_date": (tomorrow + timedelta(days=2)).isoformat(),
            "need_date": tomorrow.isoformat(),
            "notes": "Leave at the door",
        }
        body.update(overrides)
        return body

    return _payload

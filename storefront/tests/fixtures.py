from fastapi.testclient import TestClient

from storefront.app import create_app
from storefront.auth import hash_password
from storefront.config import Settings, get_settings
from storefront.db import InMemoryDbClient
from storefront.dependencies import get_db_client, get_storage_client
from storefront.storage import InMemoryStorageClient

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "correct-horse"


def seed_catalog(db: InMemoryDbClient) -> dict:
    """A small catalog: one category with two subcategories and three products."""
    beds = db.create_category(name="Camas", slug="camas")
    queen = db.create_subcategory(
        category_id=beds.id,
        name="Queen",
        slug="queen",
        filter_config=[{"key": "firmness", "label": "Firmeza", "type": "select"}],
    )
    king = db.create_subcategory(
        category_id=beds.id, name="King", slug="king", display_order=1
    )
    sofas = db.create_category(name="Sofas", slug="sofas")
    db.create_subcategory(category_id=sofas.id, name="Modular", slug="modular")

    soft = db.create_product(
        {
            "category_id": beds.id,
            "subcategory_id": queen.id,
            "name": "Cloud",
            "slug": "cloud",
            "price": 300.0,
            "stock": 2,
            "brand": "Dormi",
            "attributes": {"firmness": "soft", "height": "25", "pillow": "Sí"},
        }
    )
    firm = db.create_product(
        {
            "category_id": beds.id,
            "subcategory_id": queen.id,
            "name": "Rock",
            "slug": "rock",
            "price": 150.0,
            "stock": 0,
            "brand": "Solid",
            "attributes": {"firmness": "firm", "height": "30", "pillow": "No"},
        }
    )
    big = db.create_product(
        {
            "category_id": beds.id,
            "subcategory_id": king.id,
            "name": "Atlas",
            "slug": "atlas",
            "price": None,
            "stock": 5,
            "attributes": {"firmness": "medium"},
        }
    )
    return {
        "beds": beds,
        "sofas": sofas,
        "queen": queen,
        "king": king,
        "soft": soft,
        "firm": firm,
        "big": big,
    }


def make_client(db=None, storage=None, settings: Settings | None = None):
    """TestClient wired to fresh in-memory backends."""
    db = db if db is not None else InMemoryDbClient()
    storage = storage if storage is not None else InMemoryStorageClient()
    app = create_app()
    app.dependency_overrides[get_db_client] = lambda: db
    app.dependency_overrides[get_storage_client] = lambda: storage
    if settings is not None:
        app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app), db, storage


def sign_in(client: TestClient, db: InMemoryDbClient) -> None:
    if not db.get_admin_user_by_email(ADMIN_EMAIL):
        db.create_admin_user(
            ADMIN_EMAIL, hash_password(ADMIN_PASSWORD, iterations=1_000)
        )
    response = client.post(
        "/api/auth/signin", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert response.status_code == 200, response.text

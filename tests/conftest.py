import mongomock
import pytest
import resend

from shop_backend.app import create_app


@pytest.fixture
def db():
    return mongomock.MongoClient().shop


@pytest.fixture
def app(db, tmp_path):
    return create_app(
        {
            "TESTING": True,
            "JWT_SECRET_KEY": "test-secret",
            "BCRYPT_LOG_ROUNDS": 4,
            "UPLOAD_FOLDER": str(tmp_path / "images"),
            "RESEND_API_KEY": "re_test_key",
            "NEWSLETTER_SENDER_EMAIL": "news@shop.test",
        },
        db=db,
    )


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sent_emails(monkeypatch):
    outbox = []

    def fake_send(payload):
        outbox.append(payload)
        return {"id": f"email_{len(outbox)}"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)
    return outbox


def signup(client, email="a@x.com", password="abcdef", username="alice"):
    response = client.post(
        "/signup", json={"username": username, "email": email, "password": password}
    )
    assert response.status_code == 200, response.get_json()
    return response.get_json()["token"]


def add_product(client, name="Striped blouse", category="women", new_price=50, old_price=80.5):
    response = client.post(
        "/addproduct",
        json={
            "name": name,
            "image": "http://localhost/images/product_1.png",
            "category": category,
            "new_price": new_price,
            "old_price": old_price,
        },
    )
    assert response.status_code == 200, response.get_json()
    return response.get_json()["product"]

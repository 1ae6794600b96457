import pytest
from sqlalchemy.exc import IntegrityError

from storefront import models


def test_get_profile(client, customer):
    _, headers = customer
    response = client.get("/api/users/profile", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Carol Customer"
    assert data["role"] == "customer"
    assert "hashedPassword" not in data

def test_profile_requires_auth(client):
    assert client.get("/api/users/profile").status_code == 401

def test_update_profile_name_and_password(client, customer):
    _, headers = customer
    response = client.put("/api/users/profile", json={"name": "Carol C.", "password": "newpass1"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Carol C."
    assert response.json()["token"]

    login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "newpass1"})
    assert login.status_code == 200

def test_blank_values_keep_profile(client, customer):
    _, headers = customer
    response = client.put("/api/users/profile", json={"name": "  ", "email": "", "password": ""}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "Carol Customer"
    assert response.json()["email"] == "carol@example.com"
    login = client.post("/api/auth/login", json={"email": "carol@example.com", "password": "secret123"})
    assert login.status_code == 200

def test_update_email_to_taken_address_conflicts(client, customer, seller):
    _, headers = customer
    response = client.put("/api/users/profile", json={"email": "SAM@example.com"}, headers=headers)
    assert response.status_code == 409

def test_profile_update_cannot_change_role(client, customer):
    _, headers = customer
    response = client.put("/api/users/profile", json={"role": "admin"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["role"] == "customer"

def test_blank_email_does_not_block_name_change(client, customer):
    _, headers = customer
    response = client.put("/api/users/profile", json={"name": "New Name", "email": "   "}, headers=headers)
    assert response.status_code == 200
    assert response.json()["name"] == "New Name"
    assert response.json()["email"] == "carol@example.com"

def test_update_email_normalizes_address(client, customer):
    _, headers = customer
    response = client.put("/api/users/profile", json={"email": " Carol.New@Example.com "}, headers=headers)
    assert response.status_code == 200
    assert response.json()["email"] == "carol.new@example.com"

def test_update_rejects_malformed_email(client, customer, db):
    user_id, headers = customer
    response = client.put("/api/users/profile", json={"name": "Other", "email": "not-an-email"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid email address")
    db.expire_all()
    assert db.get(models.User, user_id).name == "Carol Customer"

def test_role_outside_known_set_is_rejected_by_db(db):
    db.add(models.User(name="Root", email="root@example.com", hashed_password="x", role="superuser"))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()

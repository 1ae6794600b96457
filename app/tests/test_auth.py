from datetime import timedelta

from storefront import auth


def register(client, name="Uma User", email="uma@example.com", password="pa55word"):
    return client.post("/api/auth/register", json={"name": name, "email": email, "password": password})


def test_register_returns_token_and_public_fields(client):
    response = register(client)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Uma User"
    assert data["email"] == "uma@example.com"
    assert data["role"] == "customer"
    assert data["token"]
    assert "password" not in data and "hashedPassword" not in data

def test_register_normalizes_email(client):
    response = register(client, email="Uma@Example.COM")
    assert response.status_code == 201
    assert response.json()["email"] == "uma@example.com"

def test_register_twice_conflicts(client):
    assert register(client).status_code == 201
    response = register(client, email="UMA@example.com")
    assert response.status_code == 409
    assert response.json()["detail"] == "User already exists"

def test_register_requires_all_fields(client):
    response = client.post("/api/auth/register", json={"name": "x", "email": "x@example.com"})
    assert response.status_code == 400

def test_register_rejects_blank_name(client):
    response = register(client, name="   ")
    assert response.status_code == 400

def test_password_is_stored_hashed(client, db):
    from storefront import models
    register(client)
    user = db.query(models.User).filter(models.User.email == "uma@example.com").first()
    assert user.hashed_password != "pa55word"
    assert auth.verify_password("pa55word", user.hashed_password)

def test_login_success(client):
    register(client)
    response = client.post("/api/auth/login", json={"email": "uma@example.com", "password": "pa55word"})
    assert response.status_code == 200
    assert response.json()["token"]

def test_login_failures_are_indistinguishable(client):
    register(client)
    wrong_password = client.post("/api/auth/login", json={"email": "uma@example.com", "password": "nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "pa55word"})
    assert wrong_password.status_code == unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["detail"] == "Invalid credentials"

def test_token_endpoint_uses_oauth2_form(client):
    register(client)
    response = client.post("/api/auth/token", data={"username": "uma@example.com", "password": "pa55word"})
    assert response.status_code == 200
    assert response.json()["token_type"] == "bearer"

def test_me_with_registration_token(client):
    token = register(client).json()["token"]
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["email"] == "uma@example.com"

def test_missing_token_is_unauthorized(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["detail"] == "Not authorized, no token"

def test_non_bearer_header_is_unauthorized(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Token abc"})
    assert response.status_code == 401

def test_garbage_token_is_unauthorized(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token invalid or expired"

def test_expired_token_is_unauthorized(client, customer):
    user_id, _ = customer
    token = auth.create_access_token({"sub": user_id}, expires_delta=timedelta(seconds=-1))
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401

def test_token_for_deleted_user_is_unauthorized(client, customer, db):
    from storefront import models
    user_id, headers = customer
    db.query(models.User).filter(models.User.id == user_id).delete()
    db.commit()
    response = client.get("/api/auth/me", headers=headers)
    assert response.status_code == 401

def test_token_signed_with_other_key_is_unauthorized(client, customer):
    from jose import jwt
    user_id, _ = customer
    forged = jwt.encode({"sub": user_id}, "some-other-key", algorithm="HS256")
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 401

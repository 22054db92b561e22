from __future__ import annotations

import unittest
from datetime import timedelta
from unittest.mock import patch

from jose import jwt
from sqlalchemy import select

from tests.support import DatabaseTestCase, auth_headers, session_user

from salesreport.errors import ApiError
from salesreport.models import AuditLog, Role
from salesreport.security import (
    SessionUser,
    create_session_token,
    decode_session_token,
    ensure_login_attempt_allowed,
    hash_password,
    register_login_failure,
    reset_login_attempts,
    verify_password,
)
from salesreport.settings import get_settings


class PasswordHashTests(unittest.TestCase):
    def test_hash_round_trip(self) -> None:
        password_hash = hash_password("Test1234!")
        self.assertTrue(verify_password("Test1234!", password_hash))
        self.assertFalse(verify_password("wrong", password_hash))

    def test_missing_or_garbage_hash_is_rejected(self) -> None:
        self.assertFalse(verify_password("Test1234!", None))
        self.assertFalse(verify_password("Test1234!", "not-a-bcrypt-hash"))


class SessionTokenTests(unittest.TestCase):
    def setUp(self) -> None:
        self.user = SessionUser(employee_id=4, email="a@test.com", name="A", role=Role.MANAGER, manager_id=None)

    def test_token_carries_identity_and_role(self) -> None:
        token, expires_in, claims = create_session_token(self.user)
        self.assertEqual(expires_in, 30 * 24 * 60 * 60)
        payload = decode_session_token(token)
        self.assertEqual(payload["sub"], "4")
        self.assertEqual(payload["role"], "MANAGER")
        self.assertEqual(payload["typ"], "session")
        self.assertEqual(SessionUser.from_claims(payload), self.user)
        self.assertEqual(claims["jti"], payload["jti"])

    def test_tampered_token_is_rejected(self) -> None:
        _, _, claims = create_session_token(self.user)
        forged = jwt.encode(claims, "x" * 40, algorithm="HS256")
        with self.assertRaises(ApiError) as ctx:
            decode_session_token(forged)
        self.assertEqual(ctx.exception.code, "INVALID_TOKEN")

    def test_token_with_wrong_type_is_rejected(self) -> None:
        _, _, claims = create_session_token(self.user)
        claims["typ"] = "refresh"
        forged = jwt.encode(claims, get_settings().session_secret, algorithm="HS256")
        with self.assertRaises(ApiError):
            decode_session_token(forged)

    def test_expired_token_is_rejected(self) -> None:
        _, _, claims = create_session_token(self.user)
        claims["exp"] = claims["iat"] - int(timedelta(minutes=1).total_seconds())
        expired = jwt.encode(claims, get_settings().session_secret, algorithm="HS256")
        with self.assertRaises(ApiError):
            decode_session_token(expired)


class LoginThrottleTests(unittest.TestCase):
    def tearDown(self) -> None:
        reset_login_attempts()

    def test_tenth_failure_blocks_further_attempts(self) -> None:
        for _ in range(10):
            ensure_login_attempt_allowed("10.0.0.1")
            register_login_failure("10.0.0.1")
        with self.assertRaises(ApiError) as ctx:
            ensure_login_attempt_allowed("10.0.0.1")
        self.assertEqual(ctx.exception.status_code, 429)
        ensure_login_attempt_allowed("10.0.0.2")


class SignInEndpointTests(DatabaseTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.sales = self.add_employee(
            "Sato",
            email="sales@test.com",
            password_hash=hash_password("Test1234!"),
        )

    def test_signin_returns_token_and_sets_cookie(self) -> None:
        response = self.client.post("/api/auth/signin", json={"email": "sales@test.com", "password": "Test1234!"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["user"]["employee_id"], self.sales.id)
        self.assertEqual(body["user"]["role"], "SALES")
        self.assertIn(get_settings().session_cookie_name, response.cookies)

        session = self.client.get(
            "/api/auth/session",
            headers={"Authorization": f"Bearer {body['access_token']}"},
        )
        self.assertEqual(session.json()["user"]["email"], "sales@test.com")

        audit = self.db.scalar(select(AuditLog).where(AuditLog.action == "SIGN_IN_SUCCESS"))
        self.assertIsNotNone(audit)
        self.assertEqual(audit.actor_id, str(self.sales.id))

    def test_wrong_password_is_unauthorized(self) -> None:
        response = self.client.post("/api/auth/signin", json={"email": "sales@test.com", "password": "nope"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_CREDENTIALS")
        audit = self.db.scalar(select(AuditLog).where(AuditLog.action == "SIGN_IN_FAIL"))
        self.assertIsNotNone(audit)
        self.assertFalse(audit.success)

    def test_employee_without_password_cannot_sign_in(self) -> None:
        self.add_employee("NoPass", email="nopass@test.com")
        response = self.client.post("/api/auth/signin", json={"email": "nopass@test.com", "password": "Test1234!"})
        self.assertEqual(response.status_code, 401)

    def test_signin_is_throttled_after_repeated_failures(self) -> None:
        with patch("salesreport.routers.auth.client_ip", return_value="192.0.2.7"):
            for _ in range(10):
                self.client.post("/api/auth/signin", json={"email": "sales@test.com", "password": "bad"})
            response = self.client.post(
                "/api/auth/signin",
                json={"email": "sales@test.com", "password": "Test1234!"},
            )
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response.json()["error"]["code"], "TOO_MANY_ATTEMPTS")

    def test_session_endpoint_without_token_is_empty(self) -> None:
        response = self.client.get("/api/auth/session")
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["user"])

    def test_api_requires_session(self) -> None:
        response = self.client.get("/api/customers")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHORIZED")
        self.assertIn("request_id", response.json()["error"])

    def test_invalid_bearer_token_is_rejected(self) -> None:
        response = self.client.get("/api/customers", headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"]["code"], "INVALID_TOKEN")

    def test_signout_clears_cookie(self) -> None:
        self.client.cookies.set(get_settings().session_cookie_name, "whatever")
        response = self.client.post("/api/auth/signout", headers=auth_headers(self.sales))
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["ok"])
        self.assertIn(get_settings().session_cookie_name, response.headers.get("set-cookie", ""))

    def test_session_user_reflects_employee(self) -> None:
        user = session_user(self.sales)
        self.assertEqual(user.role, Role.SALES)
        self.assertEqual(user.email, "sales@test.com")


if __name__ == "__main__":
    unittest.main()

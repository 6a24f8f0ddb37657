import unittest

from pydantic import ValidationError as SettingsError

from storefront import auth
from storefront.config import Settings
from storefront.db import InMemoryDbClient
from storefront.errors import AuthenticationError, ValidationError
from storefront.tests.fixtures import ADMIN_EMAIL, ADMIN_PASSWORD, make_client, sign_in

SECRET = "test-secret"


class PasswordTests(unittest.TestCase):
    def test_hash_and_verify(self):
        encoded = auth.hash_password("s3cret-pass", iterations=1_000)
        self.assertTrue(encoded.startswith("pbkdf2_sha256$1000$"))
        self.assertTrue(auth.verify_password("s3cret-pass", encoded))
        self.assertFalse(auth.verify_password("wrong", encoded))

    def test_hashes_are_salted(self):
        self.assertNotEqual(
            auth.hash_password("same", iterations=1_000),
            auth.hash_password("same", iterations=1_000),
        )

    def test_malformed_hash(self):
        self.assertFalse(auth.verify_password("x", "not-a-hash"))
        self.assertFalse(auth.verify_password("x", "md5$1$salt$hash"))


class SessionTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.user = self.db.create_admin_user(
            ADMIN_EMAIL, auth.hash_password(ADMIN_PASSWORD, iterations=1_000)
        )

    def test_authenticate(self):
        user = auth.authenticate(self.db, " Admin@Example.com ", ADMIN_PASSWORD)
        self.assertEqual(user.id, self.user.id)
        with self.assertRaises(AuthenticationError):
            auth.authenticate(self.db, ADMIN_EMAIL, "nope")
        with self.assertRaises(AuthenticationError):
            auth.authenticate(self.db, "other@example.com", ADMIN_PASSWORD)
        with self.assertRaises(ValidationError):
            auth.authenticate(self.db, "", "")

    def test_session_round_trip(self):
        token = auth.create_session_token(SECRET, self.user)
        user = auth.user_for_session(self.db, SECRET, token, max_age=60)
        self.assertEqual(user.email, ADMIN_EMAIL)

    def test_session_rejections(self):
        token = auth.create_session_token(SECRET, self.user)
        with self.assertRaises(AuthenticationError):
            auth.user_for_session(self.db, SECRET, None, max_age=60)
        with self.assertRaises(AuthenticationError):
            auth.user_for_session(self.db, "other-secret", token, max_age=60)
        with self.assertRaises(AuthenticationError):
            auth.user_for_session(self.db, SECRET, token + "x", max_age=60)

    def test_expired_session(self):
        token = auth.create_session_token(SECRET, self.user)
        self.assertIsNone(auth.read_session_token(SECRET, token, max_age=-1))

    def test_session_for_deleted_user(self):
        token = auth.create_session_token(SECRET, self.user)
        self.db.admin_users.clear()
        with self.assertRaises(AuthenticationError):
            auth.user_for_session(self.db, SECRET, token, max_age=60)

    def test_create_admin_user(self):
        with self.assertRaises(ValidationError):
            auth.create_admin_user(self.db, ADMIN_EMAIL, "longenough")
        with self.assertRaises(ValidationError):
            auth.create_admin_user(self.db, "new@example.com", "short")
        user = auth.create_admin_user(self.db, "New@Example.com", "longenough")
        self.assertEqual(user.email, "new@example.com")


class SignInApiTests(unittest.TestCase):
    def setUp(self):
        self.client, self.db, _ = make_client()

    def test_sign_in_sets_session_cookie(self):
        sign_in(self.client, self.db)
        self.assertIn("storefront_session", self.client.cookies)
        self.assertEqual(self.client.get("/api/admin/dashboard").status_code, 200)

    def test_wrong_password(self):
        sign_in(self.client, self.db)
        self.client.cookies.clear()
        response = self.client.post(
            "/api/auth/signin", data={"email": ADMIN_EMAIL, "password": "bad"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Invalid email or password")

    def test_sign_out(self):
        sign_in(self.client, self.db)
        response = self.client.post("/api/auth/signout")
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(self.client.get("/api/admin/dashboard").status_code, 401)

    def test_secure_session_cookie(self):
        client, db, _ = make_client(settings=Settings(cookie_secure=True))
        db.create_admin_user(
            ADMIN_EMAIL, auth.hash_password(ADMIN_PASSWORD, iterations=1_000)
        )
        response = client.post(
            "/api/auth/signin", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
        )
        cookie = response.headers["set-cookie"].lower()
        self.assertIn("storefront_session=", cookie)
        self.assertIn("secure", cookie)
        self.assertIn("httponly", cookie)

        cookie = client.post("/api/auth/signout").headers["set-cookie"].lower()
        self.assertIn("secure", cookie)


class SessionSecretTests(unittest.TestCase):
    def test_database_requires_explicit_secret(self):
        with self.assertRaises(SettingsError):
            Settings(
                _env_file=None,
                database_url="postgresql+psycopg://shop@db/shop",
                use_in_memory_backends=False,
                session_secret=None,
            )
        settings = Settings(
            _env_file=None,
            database_url="postgresql+psycopg://shop@db/shop",
            session_secret="from-env",
        )
        self.assertEqual(settings.session_secret, "from-env")

    def test_in_memory_secret_is_random(self):
        first = Settings(_env_file=None, database_url=None, session_secret=None)
        second = Settings(_env_file=None, database_url=None, session_secret=None)
        self.assertTrue(first.session_secret)
        self.assertNotEqual(first.session_secret, second.session_secret)

    def test_cookie_signed_with_guessable_key_is_rejected(self):
        settings = Settings(_env_file=None, database_url=None, session_secret=None)
        client, db, _ = make_client(settings=settings)
        user = db.create_admin_user(
            ADMIN_EMAIL, auth.hash_password(ADMIN_PASSWORD, iterations=1_000)
        )
        client.cookies.set(
            "storefront_session", auth.create_session_token("change-me", user)
        )
        self.assertEqual(client.get("/api/admin/dashboard").status_code, 401)

        client.cookies.set(
            "storefront_session",
            auth.create_session_token(settings.session_secret, user),
        )
        self.assertEqual(client.get("/api/admin/dashboard").status_code, 200)


if __name__ == "__main__":
    unittest.main()

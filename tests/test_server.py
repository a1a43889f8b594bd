import unittest

from fastapi.testclient import TestClient
from fido2.utils import websafe_decode

from identity_registry.config import Settings
from identity_registry.server import create_app
from identity_registry.webauthn import build_client_data

ORIGIN = "http://localhost:3000"
ADDRESS_A = "0x" + "a" * 40
ADDRESS_B = "0x" + "b" * 40


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now


def make_settings(**overrides) -> Settings:
    values = dict(
        session_secret="server-test-secret",
        origin=ORIGIN,
        registry_path=None,
        credential_store_path=None,
    )
    values.update(overrides)
    return Settings(**values)


def answer(options: dict, origin: str = ORIGIN, credential_id: str = "cred-1") -> dict:
    challenge = websafe_decode(options["challenge"])
    return {
        "id": credential_id,
        "type": "public-key",
        "response": {
            "clientDataJSON": build_client_data(challenge, origin),
            "attestationObject": "attestation",
        },
    }


class ServerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.app = create_app(make_settings(), clock=self.clock, configure_logs=False)
        self.client = TestClient(self.app)


class TestRegistryRoutes(ServerTestCase):
    def register(self, email: str = "a@x.com", id_number: str = "123456789012", address: str = ADDRESS_A):
        return self.client.post(
            "/api/blockchain/register",
            json={"name": "Alice", "email": email, "id_number": id_number, "owner_address": address},
        )

    def test_register_and_fetch(self) -> None:
        response = self.register()
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["record_id"], 0)
        self.assertEqual(body["user_count"], 1)
        self.assertEqual(len(body["identity"]["id_hash"]), 64)

        fetched = self.client.get(f"/api/blockchain/user/{ADDRESS_A}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["email"], "a@x.com")

    def test_conflicts_and_validation(self) -> None:
        self.register()
        self.assertEqual(self.register(address=ADDRESS_B, id_number="210987654321").status_code, 409)
        self.assertEqual(self.register(email="bad-email", address=ADDRESS_B).status_code, 400)
        self.assertEqual(self.register(id_number="12345", address=ADDRESS_B).status_code, 400)
        self.assertEqual(self.register(address="0xB").status_code, 400)
        self.assertEqual(self.client.get(f"/api/blockchain/user/{ADDRESS_B}").status_code, 404)
        self.assertEqual(self.client.get("/api/blockchain/user/nope").status_code, 400)

    def test_address_case_does_not_split_identities(self) -> None:
        lower = "0x" + "ab" * 20
        upper = "0x" + "AB" * 20
        self.assertEqual(self.register(address=lower).status_code, 200)
        duplicate = self.register(email="b@x.com", id_number="210987654321", address=upper)
        self.assertEqual(duplicate.status_code, 409)
        fetched = self.client.get(f"/api/blockchain/user/{upper}")
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json()["owner_address"], lower)
        self.assertEqual(fetched.json()["email"], "a@x.com")

    def test_list_verify_and_deactivate(self) -> None:
        self.register()
        self.register(email="b@x.com", id_number="210987654321", address=ADDRESS_B)

        users = self.client.get("/api/blockchain/users", params={"limit": 1}).json()
        self.assertEqual(users["total"], 2)
        self.assertEqual(users["showing"], 1)
        self.assertEqual(users["users"][0]["owner_address"], ADDRESS_A)

        verify = self.client.post(
            "/api/blockchain/verify-id",
            json={"id_number": "123456789012", "owner_address": ADDRESS_A},
        )
        self.assertTrue(verify.json()["is_valid"])
        verify = self.client.post(
            "/api/blockchain/verify-id",
            json={"id_number": "210987654321", "owner_address": ADDRESS_A},
        )
        self.assertFalse(verify.json()["is_valid"])

        deactivated = self.client.post("/api/blockchain/deactivate", json={"owner_address": ADDRESS_A})
        self.assertFalse(deactivated.json()["active"])
        self.assertEqual(self.client.get(f"/api/blockchain/user/{ADDRESS_A}").status_code, 404)
        self.assertEqual(self.client.get("/health").json()["registered_users"], 1)


class TestCeremonyRoutes(ServerTestCase):
    def register_credential(self) -> None:
        begin = self.client.post("/api/auth/register/begin", json={"email": "a@x.com", "name": "Alice"})
        self.assertEqual(begin.status_code, 200)
        body = begin.json()
        complete = self.client.post(
            "/api/auth/register/complete",
            json={"credential": answer(body["options"]), "challenge_key": body["challenge_key"]},
        )
        self.assertEqual(complete.status_code, 200)
        self.assertEqual(complete.json()["credential_id"], "cred-1")

    def login(self) -> str:
        begin = self.client.post("/api/auth/login/begin", json={"email": "a@x.com"}).json()
        complete = self.client.post(
            "/api/auth/login/complete",
            json={"credential": answer(begin["options"]), "challenge_key": begin["challenge_key"]},
        )
        self.assertEqual(complete.status_code, 200)
        self.assertEqual(complete.json()["user"], {"email": "a@x.com", "name": "Alice"})
        return complete.json()["token"]

    def test_full_flow(self) -> None:
        check = self.client.post("/api/auth/check-credentials", json={"email": "a@x.com"})
        self.assertFalse(check.json()["has_credentials"])
        self.register_credential()
        check = self.client.post("/api/auth/check-credentials", json={"email": "a@x.com"})
        self.assertTrue(check.json()["has_credentials"])

        token = self.login()
        me = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["auth_method"], "biometric")
        self.assertEqual(me.json()["authenticated_at"], self.clock.now)

        logout = self.client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
        self.assertTrue(logout.json()["success"])
        # Logout is advisory; the token stays valid until it expires.
        me = self.client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(me.status_code, 200)

    def test_error_statuses(self) -> None:
        self.assertEqual(self.client.post("/api/auth/login/begin", json={"email": "a@x.com"}).status_code, 404)
        self.assertEqual(self.client.post("/api/auth/register/begin", json={"email": "a@x.com"}).status_code, 400)

        self.register_credential()
        duplicate = self.client.post("/api/auth/register/begin", json={"email": "a@x.com", "name": "Alice"})
        self.assertEqual(duplicate.status_code, 409)

        begin = self.client.post("/api/auth/login/begin", json={"email": "a@x.com"}).json()
        rejected = self.client.post(
            "/api/auth/login/complete",
            json={
                "credential": answer(begin["options"], origin="https://evil.example"),
                "challenge_key": begin["challenge_key"],
            },
        )
        self.assertEqual(rejected.status_code, 401)
        replay = self.client.post(
            "/api/auth/login/complete",
            json={"credential": answer(begin["options"]), "challenge_key": begin["challenge_key"]},
        )
        self.assertEqual(replay.status_code, 404)

    def test_protected_routes_require_valid_token(self) -> None:
        self.assertEqual(self.client.get("/api/auth/me").status_code, 401)
        response = self.client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})
        self.assertEqual(response.status_code, 403)
        response = self.client.get("/api/auth/me", headers={"Authorization": "Bearer \u00e9.a.b".encode("utf-8")})
        self.assertEqual(response.status_code, 403)


class TestLifecycle(unittest.TestCase):
    def test_sweeper_runs_while_app_is_up(self) -> None:
        app = create_app(make_settings(), configure_logs=False)
        services = app.state.services
        with TestClient(app) as client:
            self.assertTrue(services.sweeper.running)
            self.assertEqual(client.get("/health").json()["pending_challenges"], 0)
        self.assertFalse(services.sweeper.running)


if __name__ == "__main__":
    unittest.main()

import json
import unittest

from fido2.utils import websafe_decode, websafe_encode

from identity_registry.errors import ConfigurationError, Expired, InvalidToken
from identity_registry.session import SessionClaims, SessionIssuer


class TestSessionIssuer(unittest.TestCase):
    def setUp(self) -> None:
        self.now = 1_700_000_000.0
        self.issuer = SessionIssuer("test-secret", ttl=86400, clock=lambda: self.now)

    def _issue(self) -> str:
        return self.issuer.issue(SessionClaims(email="a@x.com", name="Alice", issued_at=self.now))

    def test_issue_and_verify(self) -> None:
        claims = self.issuer.verify(self._issue())
        self.assertEqual(claims.email, "a@x.com")
        self.assertEqual(claims.name, "Alice")
        self.assertEqual(claims.issued_at, self.now)
        self.assertEqual(claims.auth_method, "biometric")
        self.assertEqual(claims.expires_at, self.now + 86400)

    def test_accepted_until_expiry_then_rejected(self) -> None:
        token = self._issue()
        self.now += 86400
        self.assertEqual(self.issuer.verify(token).email, "a@x.com")
        self.now += 1
        with self.assertRaises(Expired):
            self.issuer.verify(token)

    def test_other_secret_is_rejected(self) -> None:
        other = SessionIssuer("another-secret", clock=lambda: self.now)
        with self.assertRaises(InvalidToken):
            other.verify(self._issue())

    def test_tampered_payload_is_rejected(self) -> None:
        header, payload, signature = self._issue().split(".")
        claims = json.loads(websafe_decode(payload))
        claims["sub"] = "mallory@x.com"
        forged = websafe_encode(json.dumps(claims).encode("utf-8"))
        with self.assertRaises(InvalidToken):
            self.issuer.verify(f"{header}.{forged}.{signature}")

    def test_malformed_tokens(self) -> None:
        for token in ("", "abc", "a.b", "a.b.c.d", "\u00e9.a.b", "a.\u00e9.b"):
            with self.assertRaises(InvalidToken):
                self.issuer.verify(token)

    def test_issue_leaves_caller_claims_untouched(self) -> None:
        claims = SessionClaims(email="a@x.com", name="Alice", issued_at=self.now)
        self.issuer.issue(claims)
        self.assertEqual(claims.expires_at, 0.0)
        self.assertEqual(self.issuer.expiring(claims).expires_at, self.now + 86400)

    def test_empty_secret_is_refused(self) -> None:
        with self.assertRaises(ConfigurationError):
            SessionIssuer("")


if __name__ == "__main__":
    unittest.main()

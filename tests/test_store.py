import os
import tempfile
import threading
import unittest

from identity_registry.errors import DuplicateCredential, NotFound
from identity_registry.locking import KeyedLock
from identity_registry.store import CredentialRecord, CredentialStore


def make_record(email: str = "a@x.com", credential_id: str = "cred-1") -> CredentialRecord:
    return CredentialRecord(
        credential_id=credential_id,
        public_key="attestation-blob",
        counter=0,
        email=email,
        name="Alice",
        registered_at=1_700_000_000.0,
    )


class TestCredentialStore(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.directory.name, "credentials.json")
        self.store = CredentialStore(self.path)

    def tearDown(self) -> None:
        self.directory.cleanup()

    def test_put_get_exists(self) -> None:
        self.assertFalse(self.store.exists("a@x.com"))
        self.store.put("a@x.com", make_record())
        self.assertTrue(self.store.exists("a@x.com"))
        self.assertEqual(self.store.get("a@x.com"), make_record())

    def test_put_overwrites(self) -> None:
        self.store.put("a@x.com", make_record())
        self.store.put("a@x.com", make_record(credential_id="cred-2"))
        self.assertEqual(self.store.get("a@x.com").credential_id, "cred-2")

    def test_add_refuses_existing_email(self) -> None:
        self.store.add("a@x.com", make_record())
        with self.assertRaises(DuplicateCredential):
            self.store.add("a@x.com", make_record(credential_id="cred-2"))
        self.assertEqual(self.store.get("a@x.com").credential_id, "cred-1")

    def test_missing_email(self) -> None:
        with self.assertRaises(NotFound):
            self.store.get("nobody@x.com")
        with self.assertRaises(NotFound):
            self.store.update_counter("nobody@x.com", 3)
        with self.assertRaises(NotFound):
            self.store.increment_counter("nobody@x.com")

    def test_update_counter_accepts_any_value(self) -> None:
        self.store.put("a@x.com", make_record())
        self.store.update_counter("a@x.com", 7)
        self.assertEqual(self.store.get("a@x.com").counter, 7)
        self.store.update_counter("a@x.com", 2)
        self.assertEqual(self.store.get("a@x.com").counter, 2)

    def test_increment_counter_is_atomic(self) -> None:
        self.store.put("a@x.com", make_record())
        threads = [threading.Thread(target=self.store.increment_counter, args=("a@x.com",)) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        self.assertEqual(self.store.get("a@x.com").counter, 10)

    def test_survives_reload(self) -> None:
        self.store.put("a@x.com", make_record())
        self.assertEqual(CredentialStore(self.path).get("a@x.com").credential_id, "cred-1")

    def test_in_memory_store(self) -> None:
        store = CredentialStore()
        store.add("a@x.com", make_record())
        self.assertIsNone(store.path)
        self.assertTrue(store.exists("a@x.com"))


class TestKeyedLock(unittest.TestCase):
    def test_entries_are_released(self) -> None:
        locks = KeyedLock()
        with locks.hold("a"):
            with locks.hold("b"):
                self.assertEqual(len(locks), 2)
        self.assertEqual(len(locks), 0)


if __name__ == "__main__":
    unittest.main()

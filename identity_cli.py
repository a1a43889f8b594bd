"""Command line administration for the identity registry."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from identity_registry.crypto import hash_national_id
from identity_registry.errors import IdentityError
from identity_registry.registry import RegistryLedger
from identity_registry.validation import (
    validate_address,
    validate_email,
    validate_national_id,
    validate_required,
)

DEFAULT_REGISTRY = Path("data/registry.json")


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--registry",
        default=str(DEFAULT_REGISTRY),
        help="Location of the registry JSON file (default: data/registry.json)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    register_parser = subparsers.add_parser("register", help="Register a new identity")
    register_parser.add_argument("name", help="Full name of the registrant")
    register_parser.add_argument("email", help="Email address, unique among active identities")
    register_parser.add_argument("id_number", help="12 digit national ID number; only its hash is stored")
    register_parser.add_argument("owner_address", help="Account address owning the identity")

    show_parser = subparsers.add_parser("show", help="Show the active identity for an address")
    show_parser.add_argument("owner_address")

    list_parser = subparsers.add_parser("list", help="List active identities in registration order")
    list_parser.add_argument("--offset", type=int, default=0)
    list_parser.add_argument("--limit", type=int, default=100)

    deactivate_parser = subparsers.add_parser("deactivate", help="Deactivate the identity for an address")
    deactivate_parser.add_argument("owner_address")

    verify_parser = subparsers.add_parser(
        "verify-id",
        help="Check a national ID number against the hash stored for an address",
    )
    verify_parser.add_argument("owner_address")
    verify_parser.add_argument("id_number")

    subparsers.add_parser("events", help="Print the registration event log")
    subparsers.add_parser("deactivations", help="Print the deactivation event log")

    return parser.parse_args(argv)


def load_registry(path: str) -> RegistryLedger:
    return RegistryLedger(path)


def run(namespace: argparse.Namespace) -> object:
    registry = load_registry(namespace.registry)

    if namespace.command == "register":
        name = validate_required(namespace.name, "name")
        email = validate_email(namespace.email)
        id_number = validate_national_id(namespace.id_number)
        owner_address = validate_address(namespace.owner_address)
        record_id = registry.register(name, email, hash_national_id(id_number), owner_address)
        return {
            "record_id": record_id,
            "user_count": registry.count_active(),
            "identity": registry.record_at(record_id).to_dict(),
        }

    if namespace.command == "show":
        return registry.get(validate_address(namespace.owner_address)).to_dict()

    if namespace.command == "list":
        records = registry.list_active(namespace.offset, namespace.limit)
        return {
            "total": registry.count_active(),
            "showing": len(records),
            "users": [record.to_dict() for record in records],
        }

    if namespace.command == "deactivate":
        return registry.deactivate(validate_address(namespace.owner_address)).to_dict()

    if namespace.command == "verify-id":
        id_number = validate_national_id(namespace.id_number)
        owner_address = validate_address(namespace.owner_address)
        return {"is_valid": registry.verify_id(owner_address, id_number)}

    if namespace.command == "events":
        return [event.to_dict() for event in registry.events()]

    if namespace.command == "deactivations":
        return [event.to_dict() for event in registry.deactivations()]

    raise RuntimeError("Unreachable")


def main(argv: list[str] | None = None) -> int:
    namespace = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        payload = run(namespace)
    except IdentityError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(payload, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

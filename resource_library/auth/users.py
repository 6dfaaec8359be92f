from __future__ import annotations

from typing import Any

import bcrypt

_users: dict[str, dict[str, Any]] = {}

ROLES = ("student", "teacher", "parent", "admin")


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def register_user(username: str, password: str, role: str = "student") -> None:
    if role not in ROLES:
        raise ValueError(f"Unknown role {role!r}")
    _users[username] = {"password_hash": _hash_password(password), "role": role}


def _seed_users() -> None:
    """Pre-seed demo accounts on import."""
    register_user("alice", "alice123", "student")
    register_user("bob", "bob123", "student")
    register_user("carol", "carol123", "teacher")
    register_user("admin", "admin123", "admin")


def authenticate(username: str, password: str) -> dict[str, Any] | None:
    """Verify credentials. Returns ``{id, username, role}`` or ``None``."""
    record = _users.get(username)
    if record and _verify_password(password, record["password_hash"]):
        return {"id": username, "username": username, "role": record["role"]}
    return None


_seed_users()

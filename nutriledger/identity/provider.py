# -*- coding: utf-8 -*-
"""
Identity providers.

The ledger only needs a stable user id for the signed-in user, the ability
to create an account and to destroy it again when signup is rolled back.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Set
from uuid import uuid4

from ..errors import Unauthorized
from . import storage
from .security import hash_password, issue_session_token, read_session_token, verify_password

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def current_user_id(self) -> Optional[str]: ...

    def create_user(self, email: str, password: str) -> str: ...

    def delete_user(self, user_id: str) -> None: ...


class LocalIdentityProvider:
    """Accounts in the local ``users`` table, sessions bound per request context."""

    def __init__(self, db_path: Path, *, jwt_secret: Optional[str] = None) -> None:
        self.db_path = Path(db_path)
        self.jwt_secret = jwt_secret
        self._session: ContextVar[Optional[str]] = ContextVar(
            f"nutriledger_session_{id(self)}", default=None
        )

    def current_user_id(self) -> Optional[str]:
        return self._session.get()

    def bind(self, user_id: Optional[str]) -> None:
        self._session.set(user_id)

    def sign_out(self) -> None:
        self._session.set(None)

    def create_user(self, email: str, password: str) -> str:
        user = storage.insert_user(self.db_path, email, hash_password(password))
        self.bind(user["id"])
        logger.info("Created user %s", user["id"])
        return user["id"]

    def delete_user(self, user_id: str) -> None:
        storage.remove_user(self.db_path, user_id)
        if self.current_user_id() == user_id:
            self.sign_out()
        logger.info("Deleted user %s", user_id)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        return storage.find_user(self.db_path, user_id=user_id)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        user = storage.find_user(self.db_path, email=email)
        if not user or not verify_password(password, user["password_hash"]):
            raise Unauthorized("Invalid email or password")
        self.bind(user["id"])
        return user

    def issue_token(self, user: Dict[str, Any]) -> str:
        return issue_session_token(user["id"], secret=self.jwt_secret)

    def authenticate(self, token: str) -> Dict[str, Any]:
        """Resolve a bearer token to its user row and bind the session."""
        user = self.get_user(read_session_token(token, secret=self.jwt_secret))
        if not user:
            raise Unauthorized("User not found")
        self.bind(user["id"])
        return user


class StaticIdentity:
    """In-memory provider with a fixed session; ``None`` means signed out."""

    def __init__(self, user_id: Optional[str] = None) -> None:
        self.user_id = user_id
        self.users: Set[str] = {user_id} if user_id else set()

    def current_user_id(self) -> Optional[str]:
        return self.user_id

    def create_user(self, email: str, password: str) -> str:  # noqa: ARG002
        uid = str(uuid4())
        self.users.add(uid)
        self.user_id = uid
        return uid

    def delete_user(self, user_id: str) -> None:
        self.users.discard(user_id)
        if self.user_id == user_id:
            self.user_id = None

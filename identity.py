"""
Identity provider adapters.

Accounts and the single `role` custom claim live with the identity provider,
never in the expert/family documents. Two backends share one interface:

* LocalIdentityProvider keeps accounts in the MongoDB `account` collection
  with passlib password hashes and opaque session tokens in `session`.
* FirebaseIdentityProvider delegates to Firebase Auth through firebase_admin.
  Password sign-in happens in the Firebase client SDK, so the API only
  verifies the ID tokens it is handed.
"""
import hashlib
import logging
import secrets
from datetime import timedelta, timezone
from functools import lru_cache
from typing import Optional
from uuid import uuid4

import firebase_admin
from fastapi import Depends
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from passlib.context import CryptContext

import config
from database import get_db, now
from errors import ConflictError, InvalidCredentialsError, NotFoundError, NotSupportedError
from schemas import UserIdentity

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class IdentityProvider:
    def create_user(self, email: str, password: str) -> UserIdentity:
        raise NotImplementedError

    def get_user(self, uid: str) -> UserIdentity:
        raise NotImplementedError

    def get_user_by_email(self, email: str) -> UserIdentity:
        raise NotImplementedError

    def set_role(self, uid: str, role: str) -> None:
        """Overwrite the custom claims of `uid` with {"role": role}."""
        raise NotImplementedError

    def sign_in(self, email: str, password: str) -> str:
        raise NotImplementedError

    def verify_token(self, token: str) -> UserIdentity:
        raise NotImplementedError

    def sign_out(self, token: str) -> None:
        raise NotImplementedError


def _token_key(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class LocalIdentityProvider(IdentityProvider):
    def __init__(self, database, session_days: int = config.SESSION_DAYS):
        self.accounts = database["account"]
        self.sessions = database["session"]
        self.session_days = session_days
        # mongod drops rows once expiresAt has passed
        self.sessions.create_index("expiresAt", expireAfterSeconds=0)

    @staticmethod
    def _to_identity(account: dict) -> UserIdentity:
        claims = account.get("claims") or {}
        return UserIdentity(uid=account["_id"], email=account.get("email"), role=claims.get("role"))

    def create_user(self, email: str, password: str) -> UserIdentity:
        email = email.strip().lower()
        if self.accounts.find_one({"email": email}):
            raise ConflictError("Email already exists")
        account = {
            "_id": uuid4().hex,
            "email": email,
            "password_hash": pwd_context.hash(password),
            "claims": {},
            "createdAt": now(),
        }
        self.accounts.insert_one(account)
        logger.info("Created account %s for %s", account["_id"], email)
        return self._to_identity(account)

    def get_user(self, uid: str) -> UserIdentity:
        account = self.accounts.find_one({"_id": uid})
        if not account:
            raise NotFoundError("User not found")
        return self._to_identity(account)

    def get_user_by_email(self, email: str) -> UserIdentity:
        account = self.accounts.find_one({"email": email.strip().lower()})
        if not account:
            raise NotFoundError("User not found")
        return self._to_identity(account)

    def set_role(self, uid: str, role: str) -> None:
        res = self.accounts.update_one({"_id": uid}, {"$set": {"claims": {"role": role}}})
        if res.matched_count == 0:
            raise NotFoundError("User not found")

    def sign_in(self, email: str, password: str) -> str:
        account = self.accounts.find_one({"email": email.strip().lower()})
        if not account or not pwd_context.verify(password, account["password_hash"]):
            raise InvalidCredentialsError("Invalid credentials")
        token = secrets.token_urlsafe(32)
        self.sessions.insert_one({
            "_id": _token_key(token),
            "uid": account["_id"],
            "createdAt": now(),
            "expiresAt": now() + timedelta(days=self.session_days),
        })
        return token

    def verify_token(self, token: str) -> UserIdentity:
        session = self.sessions.find_one({"_id": _token_key(token)})
        if not session:
            raise InvalidCredentialsError("Invalid or expired session")
        expires = session["expiresAt"]
        # pymongo hands back naive UTC datetimes
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        if expires < now():
            self.sessions.delete_one({"_id": session["_id"]})
            raise InvalidCredentialsError("Invalid or expired session")
        try:
            return self.get_user(session["uid"])
        except NotFoundError:
            raise InvalidCredentialsError("Invalid or expired session")

    def sign_out(self, token: str) -> None:
        self.sessions.delete_one({"_id": _token_key(token)})


def firebase_app(credentials_path: Optional[str] = None):
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = credentials.Certificate(credentials_path) if credentials_path else credentials.ApplicationDefault()
        options = {"storageBucket": config.FIREBASE_STORAGE_BUCKET} if config.FIREBASE_STORAGE_BUCKET else None
        return firebase_admin.initialize_app(cred, options)


class FirebaseIdentityProvider(IdentityProvider):
    def __init__(self, app=None, credentials_path: Optional[str] = config.FIREBASE_CREDENTIALS):
        self.app = app if app is not None else firebase_app(credentials_path)

    @staticmethod
    def _to_identity(record) -> UserIdentity:
        claims = record.custom_claims or {}
        return UserIdentity(uid=record.uid, email=record.email, role=claims.get("role"))

    def create_user(self, email: str, password: str) -> UserIdentity:
        try:
            record = firebase_auth.create_user(email=email, password=password, email_verified=False, app=self.app)
        except firebase_auth.EmailAlreadyExistsError:
            raise ConflictError("Email already exists")
        logger.info("Created Firebase user %s for %s", record.uid, email)
        return self._to_identity(record)

    def get_user(self, uid: str) -> UserIdentity:
        try:
            return self._to_identity(firebase_auth.get_user(uid, app=self.app))
        except firebase_auth.UserNotFoundError:
            raise NotFoundError("User not found")

    def get_user_by_email(self, email: str) -> UserIdentity:
        try:
            return self._to_identity(firebase_auth.get_user_by_email(email.strip(), app=self.app))
        except firebase_auth.UserNotFoundError:
            raise NotFoundError("User not found")

    def set_role(self, uid: str, role: str) -> None:
        try:
            firebase_auth.set_custom_user_claims(uid, {"role": role}, app=self.app)
        except firebase_auth.UserNotFoundError:
            raise NotFoundError("User not found")

    def sign_in(self, email: str, password: str) -> str:
        raise NotSupportedError("Sign in with the Firebase client SDK and send the ID token")

    def verify_token(self, token: str) -> UserIdentity:
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app, check_revoked=True)
        except (firebase_auth.InvalidIdTokenError, firebase_auth.UserDisabledError):
            raise InvalidCredentialsError("Invalid or expired session")
        # claims in the token may predate a role change
        try:
            return self.get_user(decoded["uid"])
        except NotFoundError:
            raise InvalidCredentialsError("Invalid or expired session")

    def sign_out(self, token: str) -> None:
        identity = self.verify_token(token)
        firebase_auth.revoke_refresh_tokens(identity.uid, app=self.app)


@lru_cache(maxsize=1)
def _firebase_provider() -> FirebaseIdentityProvider:
    return FirebaseIdentityProvider()


def get_identity(database=Depends(get_db)) -> IdentityProvider:
    if config.IDENTITY_BACKEND == "firebase":
        return _firebase_provider()
    return LocalIdentityProvider(database)

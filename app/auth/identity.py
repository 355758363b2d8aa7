"""
    Caller identity resolution from Firebase ID tokens.

    A request is either ``Anonymous`` or ``Authenticated``. Token verification
    failures never fail the request, they resolve to ``Anonymous`` and the
    endpoint decides whether anonymous callers are allowed.
"""
from dataclasses import dataclass
from typing import Optional, Protocol, Union
import json
import logging
import os

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class Anonymous:
    is_authenticated = False

@dataclass(frozen=True)
class Authenticated:
    uid: str
    email: Optional[str] = None
    is_authenticated = True

Caller = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()

class TokenVerifier(Protocol):
    def verify(self, token: str) -> Authenticated: ...

class FirebaseTokenVerifier:
    """Verifies Firebase ID tokens with the Admin SDK."""

    APP_NAME = "image-upload-service"

    def __init__(self, service_account: str, project_id: Optional[str] = None):
        # Accept either a file path or the JSON document itself
        if os.path.isfile(service_account):
            cred = credentials.Certificate(service_account)
        else:
            cred = credentials.Certificate(json.loads(service_account))
        options = {"projectId": project_id} if project_id else None
        self.app = firebase_admin.initialize_app(cred, options, name=self.APP_NAME)
        log.info("Initialized Firebase token verifier")

    def verify(self, token: str) -> Authenticated:
        decoded = auth.verify_id_token(token, app=self.app)
        return Authenticated(uid=decoded["uid"], email=decoded.get("email"))

    def close(self):
        firebase_admin.delete_app(self.app)
        log.info("Closed Firebase app")

def resolve_caller(authorization: Optional[str], verifier: Optional[TokenVerifier]) -> Caller:
    """Resolves the caller from an ``Authorization: Bearer <token>`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return ANONYMOUS
    token = authorization[len("Bearer "):].strip()
    if not token:
        return ANONYMOUS
    if verifier is None:
        log.warning("Bearer token supplied but no verifier is configured")
        return ANONYMOUS
    try:
        caller = verifier.verify(token)
    except (ValueError, KeyError, FirebaseError) as e:
        log.warning("Token verification failed, continuing as guest: %s", e)
        return ANONYMOUS
    log.info("Token verified for %s", caller.uid)
    return caller

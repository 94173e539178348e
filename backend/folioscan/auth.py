"""
FolioScan Backend — Identity Boundary
======================================

What:  Turns the `Authorization: Bearer <token>` header into a Principal.
How:   An IdentityVerifier checks the token with the identity provider
       (Firebase Authentication in production). The provider's subject id
       becomes `owner_id`, which scopes every repository query.
Who:   get_current_principal is a dependency of every /api/v1 route. The
       verifier is built in the lifespan and kept on `app.state`.

Missing, malformed or rejected credentials raise AuthenticationError (401).
The provider's reason is logged, never returned.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import firebase_admin
from fastapi import Depends, Header, Request
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials
from firebase_admin.exceptions import FirebaseError

from folioscan.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Named Firebase app so initialisation never collides with a default app
FIREBASE_APP_NAME = "folioscan"


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    owner_id: str
    claims: Dict[str, Any] = field(default_factory=dict)


class IdentityVerifier(ABC):
    """Validates a bearer token and returns who it belongs to."""

    @abstractmethod
    async def verify(self, token: str) -> Principal:
        """
        Raises:
            AuthenticationError: the token is invalid, expired or revoked.
        """
        ...


class FirebaseIdentityVerifier(IdentityVerifier):
    """Verifies Firebase ID tokens with the Admin SDK."""

    def __init__(self, app: "firebase_admin.App"):
        self._app = app

    @classmethod
    def from_credentials_json(cls, raw_credentials: str) -> "FirebaseIdentityVerifier":
        """Initialise (or reuse) the Firebase app from a service-account JSON string."""
        try:
            app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate(json.loads(raw_credentials))
            app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
            logger.info("Firebase Admin SDK initialized for project %s", app.project_id)
        return cls(app)

    async def verify(self, token: str) -> Principal:
        try:
            # verify_id_token may fetch signing certificates over the network
            decoded = await asyncio.to_thread(firebase_auth.verify_id_token, token, self._app)
        except (ValueError, FirebaseError) as e:
            logger.warning("Rejected ID token: %s", type(e).__name__)
            raise AuthenticationError(
                message="Invalid auth token",
                context={"reason": str(e)},
            ) from e
        return Principal(owner_id=decoded["uid"], claims=dict(decoded))


def get_identity_verifier(request: Request) -> IdentityVerifier:
    """FastAPI dependency returning the verifier built at startup."""
    verifier: Optional[IdentityVerifier] = getattr(request.app.state, "identity_verifier", None)
    if verifier is None:
        logger.error("No identity verifier configured; rejecting request")
        raise AuthenticationError(message="Authentication is not configured")
    return verifier


def _bearer_token(authorization: Optional[str]) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError(message="Authorization header is required")
    return token.strip()


async def get_current_principal(
    authorization: Optional[str] = Header(default=None),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> Principal:
    """FastAPI dependency: the verified caller of this request."""
    token = _bearer_token(authorization)
    return await verifier.verify(token)

"""Plain helper functions shared by conftest.py and the test modules."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from contextlib import contextmanager
from unittest.mock import MagicMock

import jwt
from cryptography.hazmat.primitives.asymmetric import rsa

from swadeshi.api.auth import CurrentUser

RESTAURANT_ID = "11111111-1111-1111-1111-111111111111"
OTHER_RESTAURANT_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "77777777-7777-7777-7777-777777777777"

OIDC_ENV = {
    "OIDC_ISSUER": "https://auth.example.com",
    "OIDC_AUDIENCE": "swadeshi-api",
    "OIDC_JWKS_URL": "https://auth.example.com/.well-known/jwks.json",
}

DEFAULT_KID = "test-key-1"


def _generate_rsa_keypair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key, private_key.public_key()


def _create_jwks(public_key, kid: str = DEFAULT_KID) -> dict:
    """JWKS document publishing one RS256 signing key."""
    jwk = json.loads(jwt.algorithms.RSAAlgorithm.to_jwk(public_key))
    jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return {"keys": [jwk]}


def _create_token(
    private_key,
    kid: str = DEFAULT_KID,
    sub: str = USER_ID,
    iss: str = OIDC_ENV["OIDC_ISSUER"],
    aud: str = OIDC_ENV["OIDC_AUDIENCE"],
    exp: int | None = None,
    azp: str | None = None,
) -> str:
    now = int(time.time())
    claims = {"sub": sub, "iss": iss, "aud": aud, "iat": now, "exp": now + 3600 if exp is None else exp}
    if azp:
        claims["azp"] = azp
    return jwt.encode(claims, private_key, algorithm="RS256", headers={"kid": kid})


def _make_user(restaurant_id: str | None = RESTAURANT_ID, user_id: str = USER_ID) -> CurrentUser:
    return CurrentUser(
        id=user_id,
        restaurant_id=restaurant_id,
        role="manager",
        email="manager@example.com",
        full_name="Test Manager",
    )


def _sign(body: bytes, secret: str) -> str:
    """X-Hub-Signature-256 value for a raw body."""
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _mock_txn():
    """Return (txn replacement, cursor mock) for patching a module's txn."""
    cursor = MagicMock()

    @contextmanager
    def fake_txn(conn=None):
        yield cursor

    return fake_txn, cursor

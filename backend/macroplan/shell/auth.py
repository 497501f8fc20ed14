"""API Keys - Issue bearer keys and resolve them to user references.

A key is shown once, at registration. Only its hash is kept, and the hash is
the user reference that every Firestore path and plan cache key is scoped by.
"""

import hashlib
import logging
import secrets

from ..core.models import User
from .firestore_client import FitnessFirestoreClient


logger = logging.getLogger(__name__)

API_KEY_PREFIX = "mpl_"
MIN_KEY_LENGTH = 40
USER_REF_LENGTH = 32
BEARER_SCHEME = "Bearer "


def generate_api_key() -> str:
    """New random key: prefix plus 32 url-safe random bytes."""
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


def hash_api_key(api_key: str) -> str:
    """User reference for a key (truncated SHA-256 hex digest)."""
    return hashlib.sha256(api_key.encode()).hexdigest()[:USER_REF_LENGTH]


def validate_api_key_format(api_key: str | None) -> bool:
    """True if the key could have been issued here; no lookup is made."""
    return bool(api_key) and api_key.startswith(API_KEY_PREFIX) and len(api_key) >= MIN_KEY_LENGTH


def extract_bearer_key(header: str | None) -> str | None:
    """Pull the key out of an 'Authorization: Bearer <key>' header value."""
    if not header or not header.startswith(BEARER_SCHEME):
        return None
    return header[len(BEARER_SCHEME):].strip() or None


def issue_api_key(
    db: FitnessFirestoreClient, email: str, first_name: str | None = None, last_name: str | None = None
) -> tuple[str, str] | None:
    """Create a user record and issue the key that identifies it.

    Args:
        db: Store that owns user records
        email: Contact email
        first_name: Optional first name
        last_name: Optional last name

    Returns:
        (api_key, user_id), or None if the record could not be stored
    """
    api_key = generate_api_key()
    user_id = hash_api_key(api_key)
    user = User(email=email, api_key_hash=user_id, first_name=first_name, last_name=last_name)

    if not db.create_user(user_id, user):
        return None
    logger.info("User registered: %s", user_id[:8])
    return api_key, user_id


def resolve_user(db: FitnessFirestoreClient, api_key: str | None) -> str | None:
    """Map a presented key to its user reference.

    Returns:
        user_id if the key is well formed and registered, None otherwise
    """
    if not validate_api_key_format(api_key):
        return None

    user_id = hash_api_key(api_key)
    if not db.user_exists(user_id):
        logger.warning("Unknown API key for user ref %s", user_id[:8])
        return None
    return user_id

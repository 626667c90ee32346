"""
API key authentication.

Resolves an API key to the acting user and role. Keys are configured in the
``API_KEYS`` environment variable as comma-separated ``key:user_id:role``
triples, for example ``k1:ADMIN-1:admin,k2:DR-7:doctor,k3:P-100:patient``.
A pair without a role (``key:user_id``) is treated as staff.
"""

import logging
import os
from typing import Dict, Optional

from fastapi import HTTPException

from ..domain.enums.workflow import ActorRole
from ..domain.value_objects.actor import Actor

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication service for validating API keys"""

    def __init__(self, api_keys_str: Optional[str] = None):
        self.api_keys: Dict[str, Actor] = {}
        if api_keys_str is None:
            api_keys_str = os.getenv("API_KEYS", "")
        if api_keys_str:
            self._parse_api_keys(api_keys_str)
            logger.info("Loaded %d API keys", len(self.api_keys))
        else:
            logger.warning("No API keys configured. Authentication will fail for all requests.")

    def _parse_api_keys(self, api_keys_str: str) -> None:
        for entry in api_keys_str.split(","):
            entry = entry.strip()
            if not entry:
                continue

            parts = [p.strip() for p in entry.split(":")]
            if len(parts) == 1:
                key, user_id, role = parts[0], parts[0], ActorRole.STAFF.value
            elif len(parts) == 2:
                key, user_id, role = parts[0], parts[1], ActorRole.STAFF.value
            else:
                key, user_id, role = parts[0], parts[1], parts[2].lower()

            if not key or not user_id:
                continue
            try:
                self.api_keys[key] = Actor(user_id=user_id, role=ActorRole(role))
            except ValueError:
                logger.warning("Ignoring API key for %s with unknown role %r", user_id, role)

    def validate_api_key(self, api_key: Optional[str]) -> Actor:
        """
        Validate API key and return the actor it belongs to.

        Raises:
            HTTPException: If API key is invalid or missing
        """
        if not api_key:
            raise HTTPException(
                status_code=401,
                detail="Authentication required. Provide X-API-Key header or Authorization Bearer token.",
                headers={"WWW-Authenticate": "Bearer"},
            )

        if api_key.startswith("Bearer "):
            api_key = api_key[7:].strip()

        actor = self.api_keys.get(api_key)
        if actor is not None:
            logger.debug("API key validated for user: %s", actor.user_id)
            return actor

        logger.warning("Invalid API key attempted: %s...", api_key[:6])
        raise HTTPException(
            status_code=401,
            detail="Invalid API key or token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    def get_actor_from_request(self, api_key: Optional[str] = None, auth_header: Optional[str] = None) -> Actor:
        """
        Extract and validate the actor from request headers.

        Priority:
        1. X-API-Key header
        2. Authorization Bearer token
        """
        if api_key:
            return self.validate_api_key(api_key)
        if auth_header and auth_header.startswith("Bearer "):
            return self.validate_api_key(auth_header[7:].strip())

        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide X-API-Key header or Authorization Bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )


# Global instance
_auth_service: Optional[AuthService] = None


def get_auth_service() -> AuthService:
    """Get global authentication service instance (singleton)"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


def reset_auth_service() -> None:
    global _auth_service
    _auth_service = None

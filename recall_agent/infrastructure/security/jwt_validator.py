"""
Session token issuing and validation
"""

from typing import Any, Dict, Optional

import jwt
import structlog
from pydantic import BaseModel

from recall_agent.domain.models.errors import Unauthorized

logger = structlog.get_logger(__name__)


class SessionClaims(BaseModel):
    """Identity carried by a verified session token"""
    user_id: int
    is_admin: bool = False


class JWTValidator:
    """Signs and verifies HMAC session tokens"""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def issue(self, user_id: int, is_admin: bool = False) -> str:
        """Mint a session token for a user"""

        payload: Dict[str, Any] = {"userId": user_id, "isAdmin": is_admin}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify(self, token: Optional[str]) -> SessionClaims:
        """
        Verify a session token

        Args:
            token: Token presented by the client

        Returns:
            The claims encoded in the token

        Raises:
            Unauthorized: If the token is missing, malformed, forged or expired
        """

        if not token:
            raise Unauthorized("No token provided")

        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as e:
            logger.warning("Token rejected", reason=type(e).__name__)
            raise Unauthorized("Invalid session token", cause=e) from e

        user_id = payload.get("userId")
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            logger.warning("Token rejected", reason="missing userId claim")
            raise Unauthorized("Invalid session token")

        return SessionClaims(user_id=user_id, is_admin=bool(payload.get("isAdmin", False)))

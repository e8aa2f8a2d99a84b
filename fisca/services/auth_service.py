"""Auth service — JWT login."""

import logging
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy.orm import Session

from fisca.models.user import User
from fisca.core.security import verify_password, create_access_token
from fisca.core.exceptions import AuthenticationError

logger = logging.getLogger("fisca.auth")


class AuthService:
    """Handles authentication."""

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return a JWT access token.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.hashed_password):
            logger.warning("Failed login for %s", email)
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role_name,
            "role_rank": user.role.rank if user.role else None,
        }
        access_token = create_access_token(token_data)

        user.last_login_at = datetime.now(timezone.utc)
        db.commit()
        logger.info("User %s logged in", user.id)

        return {"access_token": access_token, "token_type": "bearer", "user": user}


auth_service = AuthService()

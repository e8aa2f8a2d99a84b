"""Auth API router — login, me."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fisca.db.session import get_db
from fisca.schemas.schemas import LoginRequest, TokenResponse, UserOut
from fisca.services.auth_service import auth_service
from fisca.services.access_service import access_service
from fisca.core.security import get_current_user

router = APIRouter(prefix="/auth", tags=["auth"])


def user_out(db: Session, user, with_access: bool = False) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        dni=user.dni,
        telefono=user.telefono,
        role=user.role_name,
        role_id=user.role_id,
        status=user.status.value,
        created_by=user.created_by,
        created_at=user.created_at,
        access_levels=access_service.describe_grants(db, user.id) if with_access else [],
    )


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, db: Session = Depends(get_db)):
    """Authenticate and return a JWT token."""
    result = auth_service.authenticate(db, body.email, body.password)
    return TokenResponse(
        access_token=result["access_token"],
        token_type=result["token_type"],
        user=user_out(db, result["user"]),
    )


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    """Get current user profile with its access levels."""
    return user_out(db, user, with_access=True)

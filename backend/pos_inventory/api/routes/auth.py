"""Authentication routes."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from pos_inventory.core.rate_limit import limiter
from pos_inventory.core.rbac import CurrentUser
from pos_inventory.core.security import create_access_token, verify_password
from pos_inventory.db.base import utcnow
from pos_inventory.db.session import DbSession
from pos_inventory.models.user import User
from pos_inventory.schemas.auth import LoginRequest, Token, UserInfo
from pos_inventory.services.audit_service import log_login

logger = logging.getLogger("auth")

router = APIRouter()


@router.post("/login", response_model=Token)
@limiter.limit("5/minute")
def login(request: Request, login_request: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    client_ip = request.client.host if request.client else "unknown"
    user = db.query(User).filter(User.email == login_request.email).first()

    if not user or not verify_password(login_request.password, user.password_hash):
        logger.warning(f"Failed login attempt for email: {login_request.email} from IP: {client_ip}")
        log_login(user_id=None, email=login_request.email, ip_address=client_ip, success=False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )
    if not user.is_active:
        logger.warning(f"Login attempt for inactive user: {login_request.email} (ID: {user.id}) from IP: {client_ip}")
        log_login(user_id=user.id, email=login_request.email, ip_address=client_ip, success=False)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is inactive",
        )

    user.last_login_at = utcnow()
    db.commit()

    logger.info(f"Successful login: {user.email} (ID: {user.id}, role: {user.role.value}) from IP: {client_ip}")
    log_login(user_id=user.id, email=user.email, ip_address=client_ip, success=True)
    token = create_access_token(
        data={"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return Token(
        access_token=token,
        user=UserInfo(id=user.id, email=user.email, name=user.name, role=user.role.value),
    )


@router.get("/me", response_model=UserInfo)
def me(db: DbSession, current_user: CurrentUser):
    """Return the authenticated user."""
    user = db.query(User).filter(User.id == current_user.user_id).first()
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return UserInfo(id=user.id, email=user.email, name=user.name, role=user.role.value)

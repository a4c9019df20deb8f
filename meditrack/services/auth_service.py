from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime, timedelta, timezone
from typing import List
import hashlib
import logging
import uuid

from ..models.user import User, RefreshToken
from ..core.clock import utcnow
from ..core.config import settings
from ..core.security import (
    verify_password, get_password_hash, create_token_pair,
    verify_token, UserRole
)
from ..core.store import RecordConflict, RecordStore
from ..schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse,
    ChangePassword, ProfileUpdate
)

logger = logging.getLogger(__name__)

class AuthService:
    """Account and token lifecycle.

    Every database round trip runs inside ``RecordStore.guard`` so an
    unreachable store surfaces as ``StoreUnavailable``.
    """

    def __init__(self, db: Session):
        self.db = db
        self.store = RecordStore(db)

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new user."""
        if not user_data.email.endswith(settings.ALLOWED_EMAIL_DOMAIN):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Only {settings.ALLOWED_EMAIL_DOMAIN} email addresses are allowed"
            )

        with self.store.guard():
            # Check if user already exists
            existing_user = self.db.query(User).filter(
                User.email == user_data.email
            ).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            email=user_data.email,
            display_name=user_data.display_name,
            password_hash=get_password_hash(user_data.password),
            role=user_data.role,
            is_active=True,
        )
        try:
            self.store.create(new_user)
        except RecordConflict:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        logger.info(f"Registered {new_user.role.value} account {new_user.id}")
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return tokens."""
        email = login_data.email.strip().lower()
        with self.store.guard():
            user = self.db.query(User).filter(User.email == email).first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        # Check account lockout
        if user.locked_until and user.locked_until > utcnow():
            raise HTTPException(
                status_code=status.HTTP_423_LOCKED,
                detail="Account is temporarily locked"
            )

        if not verify_password(login_data.password, user.password_hash):
            self._handle_failed_login(user)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        with self.store.guard():
            # Reset failed login attempts
            user.failed_login_attempts = 0
            user.locked_until = None
            user.last_login = utcnow()

            response = self._issue_tokens(user)
            self.db.commit()
        return response

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """Refresh access token using refresh token."""
        token_payload = verify_token(refresh_token)
        if not token_payload or token_payload.token_type != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid refresh token"
            )

        with self.store.guard():
            # Check if refresh token exists in database
            stored_token = self.db.query(RefreshToken).filter(
                RefreshToken.token_hash == self._hash(refresh_token),
                RefreshToken.is_revoked == False,  # noqa: E712
                RefreshToken.expires_at > utcnow()
            ).first()

        if not stored_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid or expired refresh token"
            )

        user = self.store.get(User, token_payload.sub)
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="User not found or inactive"
            )

        with self.store.guard():
            response = self._issue_tokens(user)
            self.db.commit()
        return response

    def logout_user(self, refresh_token: str) -> bool:
        """Logout user by revoking refresh token."""
        with self.store.guard():
            stored_token = self.db.query(RefreshToken).filter(
                RefreshToken.token_hash == self._hash(refresh_token)
            ).first()

            if not stored_token:
                return False

            stored_token.is_revoked = True
            self.db.commit()
        return True

    def change_password(self, user: User, password_data: ChangePassword) -> None:
        """Change a user's password and revoke their refresh tokens."""
        if not verify_password(password_data.current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        with self.store.guard():
            user.password_hash = get_password_hash(password_data.new_password)
            self.db.query(RefreshToken).filter(
                RefreshToken.user_id == user.id
            ).update({"is_revoked": True})
            self.db.commit()

    def update_profile(self, user: User, profile: ProfileUpdate) -> User:
        """Update display fields.

        Names already copied onto appointments are snapshots and keep the
        old value.
        """
        with self.store.guard():
            user.display_name = profile.display_name
            self.db.commit()
            self.db.refresh(user)
        return user

    def list_doctors(self) -> List[User]:
        """Active doctor accounts, by name."""
        with self.store.guard():
            return self.db.query(User).filter(
                User.role == UserRole.DOCTOR,
                User.is_active == True  # noqa: E712
            ).order_by(User.display_name).all()

    def _issue_tokens(self, user: User) -> TokenResponse:
        tokens = create_token_pair(user.id, user.email, user.role, jti=uuid.uuid4().hex)
        self._store_refresh_token(user.id, tokens.refresh_token)
        return TokenResponse(
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            user=UserResponse.from_orm(user)
        )

    def _handle_failed_login(self, user: User):
        """Handle failed login attempt."""
        user.failed_login_attempts = (user.failed_login_attempts or 0) + 1

        if user.failed_login_attempts >= settings.MAX_FAILED_LOGINS:
            user.locked_until = utcnow() + timedelta(minutes=settings.LOCKOUT_MINUTES)
            logger.warning(f"Locked account {user.id} after repeated failed logins")

        self.store.commit()

    def _store_refresh_token(self, user_id: str, refresh_token: str):
        """Store refresh token in database, revoking older ones."""
        token_payload = verify_token(refresh_token)
        if token_payload and token_payload.exp:
            expires_at = datetime.fromtimestamp(token_payload.exp, timezone.utc).replace(tzinfo=None)
        else:
            expires_at = utcnow() + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)

        self.db.query(RefreshToken).filter(
            RefreshToken.user_id == user_id
        ).update({"is_revoked": True})

        self.db.add(RefreshToken(
            user_id=user_id,
            token_hash=self._hash(refresh_token),
            expires_at=expires_at
        ))

    @staticmethod
    def _hash(token: str) -> str:
        return hashlib.sha256(token.encode()).hexdigest()

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from sqlalchemy.orm import Session

from stockbook.config import settings
from stockbook.models.user import User

logger = logging.getLogger(__name__)

ROLES = ("admin", "staff")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode(), hashed.encode())


def create_access_token(user: User) -> str:
    payload = {
        "sub": user.id,
        "username": user.username,
        "role": user.role,
        "ver": user.token_version,
        "exp": datetime.now(timezone.utc) + timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm="HS256")


def decode_token(token: str) -> dict | None:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None


def authenticate(db: Session, username: str, password: str) -> User | None:
    user = db.query(User).filter(User.username == username, User.active.is_(True)).first()
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def get_user_by_id(db: Session, user_id: str) -> User | None:
    return db.get(User, user_id)


def create_user(db: Session, username: str, password: str, display_name: str = "", role: str = "staff") -> User:
    if role not in ROLES:
        raise ValueError(f"Unknown role '{role}'")
    existing = db.query(User).filter(User.username == username).first()
    if existing:
        raise ValueError(f"Username '{username}' already exists")
    user = User(
        username=username,
        display_name=display_name or username,
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def list_users(db: Session) -> list[User]:
    return db.query(User).order_by(User.created_at.desc()).all()


def _set_password(db: Session, user: User, new_password: str) -> User:
    # Tokens carry the version they were issued for; bumping it signs the user out everywhere
    user.password_hash = hash_password(new_password)
    user.token_version = (user.token_version or 0) + 1
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> User:
    """Change a user's own password. Raises ``PermissionError`` if the current one is wrong."""
    if not verify_password(current_password, user.password_hash):
        raise PermissionError("Current password is incorrect")
    user = _set_password(db, user, new_password)
    logger.info("User '%s' changed their password", user.username)
    return user


def reset_password(db: Session, user_id: str, new_password: str) -> User | None:
    user = get_user_by_id(db, user_id)
    if not user:
        return None
    user = _set_password(db, user, new_password)
    logger.info("Password of '%s' was reset", user.username)
    return user


def delete_user(db: Session, user_id: str, acting_user: User) -> bool:
    """Delete a user. Refuses to delete yourself or the last admin (``PermissionError``)."""
    user = get_user_by_id(db, user_id)
    if not user:
        return False
    if user.id == acting_user.id:
        raise PermissionError("Cannot delete yourself")
    if user.role == "admin" and db.query(User).filter(User.role == "admin").count() <= 1:
        raise PermissionError("Cannot delete the last admin")
    username = user.username
    db.delete(user)
    db.commit()
    logger.info("User '%s' deleted by '%s'", username, acting_user.username)
    return True


def ensure_default_admin(db: Session) -> None:
    """Create the configured admin user if no users exist."""
    if db.query(User).count() == 0:
        create_user(
            db,
            username=settings.DEFAULT_ADMIN_USERNAME,
            password=settings.DEFAULT_ADMIN_PASSWORD,
            display_name="Admin",
            role="admin",
        )
        logger.info("Created default admin user '%s'", settings.DEFAULT_ADMIN_USERNAME)

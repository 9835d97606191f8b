from fastapi import APIRouter, Cookie, Depends, HTTPException, Response
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from stockbook.config import settings
from stockbook.database import get_db
from stockbook.models.user import User
from stockbook.services import auth_service

router = APIRouter(prefix="/auth", tags=["Auth"])

PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 100


class LoginRequest(BaseModel):
    username: str
    password: str


class UserOut(BaseModel):
    id: str
    username: str
    display_name: str
    role: str
    active: bool = True
    created_at: str = ""

    model_config = {"from_attributes": True}


class CreateUserRequest(BaseModel):
    username: str
    password: str
    display_name: str = ""
    role: str = "staff"


class UpdateUserRequest(BaseModel):
    display_name: str | None = None
    role: str | None = None
    active: bool | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)
    confirm_password: str = Field(min_length=1)

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class ResetPasswordRequest(BaseModel):
    new_password: str = Field(min_length=PASSWORD_MIN_LENGTH, max_length=PASSWORD_MAX_LENGTH)


def _user_out(u: User) -> UserOut:
    return UserOut(
        id=u.id, username=u.username, display_name=u.display_name,
        role=u.role, active=u.active,
        created_at=u.created_at.isoformat() if u.created_at else "",
    )


def _set_token_cookie(response: Response, user: User) -> str:
    token = auth_service.create_access_token(user)
    response.set_cookie(
        "token", token, httponly=True, samesite="lax", max_age=3600 * settings.ACCESS_TOKEN_EXPIRE_HOURS
    )
    return token


def get_current_user(
    token: str | None = Cookie(default=None, alias="token"),
    db: Session = Depends(get_db),
) -> User:
    """Dependency: extract user from JWT cookie."""
    if not token:
        raise HTTPException(401, "Not authenticated")
    payload = auth_service.decode_token(token)
    if not payload:
        raise HTTPException(401, "Invalid or expired token")
    user = auth_service.get_user_by_id(db, payload["sub"])
    if not user or not user.active:
        raise HTTPException(401, "User not found or disabled")
    if payload.get("ver", 0) != user.token_version:
        raise HTTPException(401, "Session expired, please sign in again")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != "admin":
        raise HTTPException(403, "Admin only")
    return user


@router.post("/login")
def login(data: LoginRequest, response: Response, db: Session = Depends(get_db)):
    user = auth_service.authenticate(db, data.username, data.password)
    if not user:
        raise HTTPException(401, "Invalid username or password")
    token = _set_token_cookie(response, user)
    return {"token": token, "user": _user_out(user)}


@router.post("/logout")
def logout(response: Response):
    response.delete_cookie("token")
    return {"ok": True}


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return _user_out(user)


@router.post("/change-password")
def change_password(
    data: ChangePasswordRequest,
    response: Response,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Change your own password. Other sessions are signed out; this one gets a fresh token."""
    try:
        user = auth_service.change_password(db, user, data.current_password, data.new_password)
    except PermissionError as e:
        raise HTTPException(401, str(e))
    _set_token_cookie(response, user)
    return {"ok": True}


@router.get("/users")
def list_users(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [_user_out(u) for u in auth_service.list_users(db)]


@router.post("/users", status_code=201)
def create_user(data: CreateUserRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        u = auth_service.create_user(db, data.username, data.password, data.display_name, data.role)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return _user_out(u)


@router.patch("/users/{user_id}")
def update_user(
    user_id: str, data: UpdateUserRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    target = auth_service.get_user_by_id(db, user_id)
    if not target:
        raise HTTPException(404, "User not found")
    if data.role is not None and data.role not in auth_service.ROLES:
        raise HTTPException(400, f"Unknown role '{data.role}'")
    if data.active is False and target.id == admin.id:
        raise HTTPException(400, "Cannot disable yourself")
    if data.display_name is not None:
        target.display_name = data.display_name
    if data.role is not None:
        target.role = data.role
    if data.active is not None:
        target.active = data.active
    db.commit()
    db.refresh(target)
    return _user_out(target)


@router.delete("/users/{user_id}")
def delete_user(user_id: str, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    try:
        deleted = auth_service.delete_user(db, user_id, admin)
    except PermissionError as e:
        raise HTTPException(403, str(e))
    if not deleted:
        raise HTTPException(404, "User not found")
    return {"ok": True}


@router.post("/users/{user_id}/reset-password")
def reset_password(
    user_id: str, data: ResetPasswordRequest, admin: User = Depends(require_admin), db: Session = Depends(get_db)
):
    """Set a new password for another user and sign them out everywhere."""
    user = auth_service.reset_password(db, user_id, data.new_password)
    if not user:
        raise HTTPException(404, "User not found")
    return _user_out(user)

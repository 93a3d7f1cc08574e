from __future__ import annotations
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas import user_out
from ..settings import settings
from .. import storage

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def _bcrypt_safe(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = password.encode('utf-8')
	if len(password_bytes) > 72:
		password_bytes = password_bytes[:72]
	return password_bytes.decode('utf-8', errors='ignore')


def hash_password(password: str) -> str:
	return pwd_context.hash(_bcrypt_safe(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
	try:
		return pwd_context.verify(_bcrypt_safe(plain_password), hashed_password)
	except ValueError:
		# Unknown or malformed hash (e.g. placeholder accounts)
		return False


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=30)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _open_session(db: Session, user: User) -> str:
	# One server-side row per token so logout can revoke it
	session_id = uuid.uuid4().hex
	storage.create_auth_session(db, session_id, user.id)
	return create_access_token({"sub": user.id, "jti": session_id})


def _decode_token(token: str) -> tuple[str, str]:
	credentials_exception = HTTPException(
		status_code=401,
		detail="Could not validate credentials",
		headers={"WWW-Authenticate": "Bearer"},
	)
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
	except JWTError:
		raise credentials_exception
	user_id: str | None = payload.get("sub")
	jti: str | None = payload.get("jti")
	if user_id is None or jti is None:
		raise credentials_exception
	return user_id, jti


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
	user_id, jti = _decode_token(token)
	row = storage.get_auth_session(db, jti)
	if not row or row.user_id != user_id:
		raise HTTPException(status_code=401, detail="Session expired or revoked", headers={"WWW-Authenticate": "Bearer"})
	user = storage.get_user(db, user_id)
	if user is None:
		raise HTTPException(status_code=401, detail="Could not validate credentials", headers={"WWW-Authenticate": "Bearer"})
	storage.touch_auth_session(db, row)
	return user


def load_user_or_404(db: Session, user_id: str) -> User:
	user = storage.get_user(db, user_id)
	if user is None:
		raise HTTPException(status_code=404, detail="User not found")
	return user


class SignupRequest(BaseModel):
	username: str = Field(min_length=3, max_length=128)
	password: str = Field(min_length=6)
	email: Optional[str] = None
	fullName: Optional[str] = None


class LoginRequest(BaseModel):
	username: Optional[str] = None
	email: Optional[str] = None
	password: str


@router.post("/signup", status_code=201)
async def signup(req: SignupRequest, db: Session = Depends(get_db)):
	username = req.username.strip()
	email = (req.email or "").strip().lower() or None
	if len(username) < 3:
		raise HTTPException(status_code=400, detail="username must be 3-128 characters")
	if email is not None and "@" not in email:
		raise HTTPException(status_code=400, detail="email is not valid")
	if storage.get_user_by_username(db, username):
		raise HTTPException(status_code=409, detail="username already exists")
	if email and storage.get_user_by_email(db, email):
		raise HTTPException(status_code=409, detail="email already registered")
	user = storage.create_user(
		db,
		username=username,
		password_hash=hash_password(req.password),
		full_name=(req.fullName or "").strip() or None,
		email=email,
	)
	logger.info("Registered user %s", user.id)
	return {
		"userId": user.id,
		"username": user.username,
		"access_token": _open_session(db, user),
		"token_type": "bearer",
	}


@router.post("/login")
async def login(req: LoginRequest, db: Session = Depends(get_db)):
	user: Optional[User] = None
	if req.username:
		user = storage.get_user_by_username(db, req.username.strip())
	elif req.email:
		user = storage.get_user_by_email(db, req.email.strip().lower())
	else:
		raise HTTPException(status_code=400, detail="username or email is required")
	if user is None or not verify_password(req.password, user.password_hash):
		raise HTTPException(status_code=401, detail="Incorrect username or password")
	return {
		"access_token": _open_session(db, user),
		"token_type": "bearer",
		"user": user_out(user),
	}


@router.post("/logout")
async def logout(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)):
	_, jti = _decode_token(token)
	storage.delete_auth_session(db, jti)
	return {"success": True}


@router.get("/check")
async def check(user: User = Depends(get_current_user)):
	return {"authenticated": True, "user": user_out(user)}

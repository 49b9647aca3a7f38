from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy.orm import Session
import logging

from ..settings import settings
from ..db import get_db
from ..models import Profile

logger = logging.getLogger(__name__)

# Tokens come from the external identity provider; this service never issues them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class User(BaseModel):
	id: str
	email: Optional[str] = None
	role: Optional[str] = None


def decode_token(token: str) -> dict:
	options = {"verify_aud": settings.jwt_audience is not None}
	return jwt.decode(
		token,
		settings.jwt_secret_key,
		algorithms=[settings.jwt_algorithm],
		audience=settings.jwt_audience,
		options=options,
	)


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = decode_token(token)
		user_id: str | None = payload.get("sub")
		if user_id is None:
			raise credentials_exception
	except JWTError:
		raise credentials_exception
	try:
		row = db.get(Profile, user_id)
	except Exception:
		# On DB errors, fail closed
		logger.exception("Profile lookup failed for user=%s", user_id)
		raise credentials_exception
	if row is None:
		raise credentials_exception
	return User(id=row.id, email=row.email or payload.get("email"), role=row.role)


def get_current_admin(user: User = Depends(get_current_user)) -> User:
	if user.role not in settings.admin_roles:
		raise HTTPException(status_code=403, detail="admin role required")
	return user

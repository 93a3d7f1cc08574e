from __future__ import annotations
import logging
import re
import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas import chat_message_out, enrollment_out, schedule_item_out, user_out
from .. import storage
from .auth import load_user_or_404

router = APIRouter(prefix="/api/user", tags=["users"])

logger = logging.getLogger(__name__)

# Accounts created by onboarding have no password until the user signs up
UNUSABLE_PASSWORD = "!"


class OnboardRequest(BaseModel):
	userId: Optional[str] = None
	name: Optional[str] = None
	domains: List[str] = Field(min_length=1)


class UpdateUserRequest(BaseModel):
	fullName: Optional[str] = None
	email: Optional[str] = None
	selectedDomains: Optional[List[str]] = None


def _username_from(name: str) -> str:
	base = re.sub(r"\s+", "-", name.strip().lower()) or "learner"
	return f"{base}-{uuid.uuid4().hex[:8]}"


@router.post("/onboard")
async def onboard(req: OnboardRequest, db: Session = Depends(get_db)):
	domains = [d for d in req.domains if d and d.strip()]
	if not domains:
		raise HTTPException(status_code=400, detail="domains are required")
	if req.userId:
		user = load_user_or_404(db, req.userId)
		if req.name and req.name.strip():
			storage.update_user(db, user, full_name=req.name.strip())
	else:
		name = (req.name or "").strip()
		if not name:
			raise HTTPException(status_code=400, detail="name is required for new users")
		user = storage.create_user(
			db,
			username=_username_from(name),
			password_hash=UNUSABLE_PASSWORD,
			full_name=name,
		)
		logger.info("Onboarded new user %s", user.id)
	user = storage.set_selected_domains(db, user, domains)
	return {"userId": user.id, "username": user.username, "selectedDomains": user.selected_domains}


@router.get("/{user_id}")
async def get_user(user_id: str, db: Session = Depends(get_db)):
	return user_out(load_user_or_404(db, user_id))


@router.patch("/{user_id}")
async def update_user(user_id: str, req: UpdateUserRequest, db: Session = Depends(get_db)):
	user = load_user_or_404(db, user_id)
	email = req.email.strip().lower() if req.email is not None else None
	if email:
		if "@" not in email:
			raise HTTPException(status_code=400, detail="email is not valid")
		other = storage.get_user_by_email(db, email)
		if other is not None and other.id != user.id:
			raise HTTPException(status_code=409, detail="email already registered")
	full_name = req.fullName.strip() if req.fullName is not None else None
	user = storage.update_user(db, user, full_name=full_name or None, email=email or None)
	if req.selectedDomains is not None:
		user = storage.set_selected_domains(db, user, req.selectedDomains)
	return user_out(user)


@router.get("/{user_id}/skills")
async def get_skills(user_id: str, db: Session = Depends(get_db)):
	load_user_or_404(db, user_id)
	return storage.get_user_skill_levels(db, user_id)


@router.get("/{user_id}/enrolled")
async def get_enrolled(user_id: str, db: Session = Depends(get_db)):
	load_user_or_404(db, user_id)
	return {"courses": [enrollment_out(e) for e in storage.get_user_enrollments(db, user_id)]}


@router.get("/{user_id}/schedules")
async def get_schedules(user_id: str, db: Session = Depends(get_db)):
	load_user_or_404(db, user_id)
	return [schedule_item_out(i) for i in storage.list_schedule_items(db, user_id)]


@router.get("/{user_id}/chat-history")
async def get_chat_history(user_id: str, limit: int = Query(default=50, ge=1, le=500), db: Session = Depends(get_db)):
	load_user_or_404(db, user_id)
	return [chat_message_out(m) for m in storage.get_chat_history(db, user_id, limit)]

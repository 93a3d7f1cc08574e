from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient, get_gemini_client
from ..models import utcnow
from ..schedule import generate_plan
from ..schemas import schedule_item_out
from .. import storage
from .auth import load_user_or_404


router = APIRouter(prefix="/api/schedule", tags=["schedule"])

logger = logging.getLogger(__name__)


class CreateScheduleRequest(BaseModel):
    userId: str = Field(min_length=1)
    courseId: Optional[str] = None
    title: str = Field(min_length=1, max_length=512)
    description: Optional[str] = None
    dueDate: Optional[datetime] = None
    type: Literal["module", "quiz", "practice"] = "module"
    duration: Optional[str] = None


class GenerateScheduleRequest(BaseModel):
    userId: str = Field(min_length=1)
    goals: str = ""


class UpdateScheduleRequest(BaseModel):
    completed: bool


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _load_item_or_404(db: Session, item_id: str):
    item = storage.get_schedule_item(db, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Schedule item not found")
    return item


@router.post("")
async def create_schedule(req: CreateScheduleRequest, db: Session = Depends(get_db)):
    user = load_user_or_404(db, req.userId)
    if req.courseId:
        enrollment = storage.get_enrollment(db, req.courseId)
        if enrollment is None or enrollment.user_id != user.id:
            raise HTTPException(status_code=404, detail="Course enrollment not found")
    item = storage.create_schedule_item(
        db,
        user_id=user.id,
        title=req.title.strip(),
        description=req.description,
        course_id=req.courseId,
        due_date=_naive_utc(req.dueDate),
        item_type=req.type,
        duration=req.duration,
    )
    return schedule_item_out(item)


@router.post("/generate")
async def generate_schedule(
    req: GenerateScheduleRequest,
    db: Session = Depends(get_db),
    client: Optional[GeminiClient] = Depends(get_gemini_client),
):
    user = load_user_or_404(db, req.userId)
    skills = storage.get_user_skill_levels(db, user.id)
    enrollments = storage.get_user_enrollments(db, user.id)
    domains = list(user.selected_domains or [])
    domains += [d for d in skills if d not in domains]
    planned = await generate_plan(
        client,
        goals=req.goals,
        domains=domains,
        skills=skills,
        enrollments=enrollments,
        start=utcnow(),
    )
    items = [storage.create_schedule_item(db, user_id=user.id, commit=False, **p) for p in planned]
    db.commit()
    for item in items:
        db.refresh(item)
    logger.info("Generated %d schedule items for user %s", len(items), user.id)
    return {"items": [schedule_item_out(i) for i in items]}


@router.get("/{user_id}")
async def get_schedule(user_id: str, db: Session = Depends(get_db)):
    load_user_or_404(db, user_id)
    return {"items": [schedule_item_out(i) for i in storage.list_schedule_items(db, user_id)]}


@router.patch("/{schedule_id}")
async def update_schedule(schedule_id: str, req: UpdateScheduleRequest, db: Session = Depends(get_db)):
    item = _load_item_or_404(db, schedule_id)
    item = storage.update_schedule_completion(db, item, req.completed)
    return {"success": True, "item": schedule_item_out(item)}


@router.post("/{item_id}/complete")
async def complete_schedule_item(item_id: str, db: Session = Depends(get_db)):
    item = _load_item_or_404(db, item_id)
    item = storage.update_schedule_completion(db, item, True)
    return {"success": True, "item": schedule_item_out(item)}

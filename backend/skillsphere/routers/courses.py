from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..courses import recommend_courses
from ..db import get_db
from ..gemini_client import GeminiClient, get_gemini_client
from ..quiz import SkillLevel
from ..schemas import enrollment_out
from .. import storage
from .auth import load_user_or_404


router = APIRouter(prefix="/api/courses", tags=["courses"])

logger = logging.getLogger(__name__)


class RecommendRequest(BaseModel):
    domain: str = Field(min_length=1)
    skillLevel: str = Field(min_length=1)


class EnrollRequest(BaseModel):
    userId: str = Field(min_length=1)
    courseId: Optional[str] = None
    title: str = Field(min_length=1)
    provider: Optional[str] = None
    url: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    isPaid: bool = False
    description: Optional[str] = None
    skillLevel: Optional[str] = None
    duration: Optional[str] = None
    rating: Optional[float] = None
    price: Optional[float] = None


class ProgressRequest(BaseModel):
    progress: int


def _canonical_level(label: str) -> str:
    # Known labels are matched case-insensitively; anything else goes to the prompt as given
    text = label.strip()
    for level in SkillLevel:
        if level.value.lower() == text.lower():
            return level.value
    return text


@router.post("/recommend")
async def recommend(req: RecommendRequest, client: Optional[GeminiClient] = Depends(get_gemini_client)):
    level = _canonical_level(req.skillLevel)
    if not level:
        raise HTTPException(status_code=400, detail="skillLevel is required")
    courses = await recommend_courses(client, req.domain.strip(), level)
    return {"courses": courses}


@router.get("/recommendations/{user_id}")
@router.get("/recommendations/{user_id}/{domain:path}")
async def recommendations_for_user(
    user_id: str,
    domain: Optional[str] = None,
    db: Session = Depends(get_db),
    client: Optional[GeminiClient] = Depends(get_gemini_client),
):
    user = load_user_or_404(db, user_id)
    skills = storage.get_user_skill_levels(db, user.id)
    if domain:
        domains = [domain]
    else:
        domains = list(user.selected_domains or [])
        domains += [d for d in skills if d not in domains]
    courses: List[Dict[str, Any]] = []
    for d in domains:
        level = skills.get(d, SkillLevel.BEGINNER.value)
        courses.extend(await recommend_courses(client, d, level))
    enrolled_ids = {e.course_id for e in storage.get_user_enrollments(db, user.id) if e.course_id}
    return {"courses": [c for c in courses if c["id"] not in enrolled_ids]}


@router.post("/enroll")
async def enroll(req: EnrollRequest, db: Session = Depends(get_db)):
    user = load_user_or_404(db, req.userId)
    enrollment = storage.enroll_course(
        db,
        user_id=user.id,
        course_id=req.courseId,
        title=req.title.strip(),
        provider=req.provider,
        url=req.url.strip(),
        domain=req.domain.strip(),
        is_paid=req.isPaid,
        description=req.description,
        skill_level=req.skillLevel,
        duration=req.duration,
        rating=req.rating,
        price=req.price,
    )
    return enrollment_out(enrollment)


@router.patch("/{course_id}/progress")
async def update_progress(course_id: str, req: ProgressRequest, db: Session = Depends(get_db)):
    if req.progress < 0 or req.progress > 100:
        raise HTTPException(status_code=400, detail="Invalid progress value")
    enrollment = storage.get_enrollment(db, course_id)
    if enrollment is None:
        raise HTTPException(status_code=404, detail="Course enrollment not found")
    if req.progress == 100:
        enrollment = storage.complete_course(db, enrollment)
        logger.info("Enrollment %s completed", enrollment.id)
    else:
        enrollment = storage.update_course_progress(db, enrollment, req.progress)
    return {"success": True, "course": enrollment_out(enrollment)}

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient, get_gemini_client
from ..quiz import UNANSWERED, QuizQuestion, generate_quiz, score_quiz
from ..schemas import attempt_out
from ..settings import settings
from .. import storage
from .auth import load_user_or_404


router = APIRouter(prefix="/api/quiz", tags=["quiz"])

logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    domains: List[str] = Field(min_length=1)
    userId: Optional[str] = None


class SubmitRequest(BaseModel):
    userId: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    questions: List[QuizQuestion] = Field(min_length=1)
    answers: List[int]


@router.post("/generate")
async def generate(
    req: GenerateRequest,
    db: Session = Depends(get_db),
    client: Optional[GeminiClient] = Depends(get_gemini_client),
):
    # Quiz for the first selected domain
    domain = req.domains[0].strip()
    if not domain:
        raise HTTPException(status_code=400, detail="Domains are required")
    if req.userId:
        load_user_or_404(db, req.userId)
    return await generate_quiz(client, domain, settings.quiz_question_count)


@router.post("/submit")
async def submit(req: SubmitRequest, db: Session = Depends(get_db)):
    user = load_user_or_404(db, req.userId)
    domain = req.domain.strip()
    if not domain:
        raise HTTPException(status_code=400, detail="domain is required")
    if any(a < UNANSWERED or a > 3 for a in req.answers):
        raise HTTPException(status_code=400, detail="answers must be option indices 0-3 or -1 for unanswered")
    questions = [q.model_dump() for q in req.questions]
    try:
        result = score_quiz(questions, req.answers)
    except ValueError as err:
        raise HTTPException(status_code=400, detail=str(err))

    skill_level = result.skill_level.value
    attempt = storage.save_quiz_attempt(
        db,
        user_id=user.id,
        domain=domain,
        questions=questions,
        answers=list(req.answers),
        score=result.score,
        total_questions=result.total,
        skill_level=skill_level,
    )
    storage.set_domain_skill_level(db, user.id, domain, skill_level)
    logger.info("User %s scored %d/%d in %s (%s)", user.id, result.score, result.total, domain, skill_level)

    return {
        "score": result.score,
        "totalQuestions": result.total,
        "percentage": result.percentage,
        "skillLevel": skill_level,
        "attemptId": attempt.id,
        "results": [r.to_dict() for r in result.results],
    }


@router.get("/history")
async def history(userId: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    load_user_or_404(db, userId)
    return [attempt_out(a) for a in storage.list_quiz_attempts(db, userId)]

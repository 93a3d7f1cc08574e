from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..gemini_client import GeminiClient, get_gemini_client
from ..mentor import build_mentor_prompt, mentor_recommendations, mentor_reply
from ..settings import settings
from .. import storage
from .auth import load_user_or_404

router = APIRouter(prefix="/api", tags=["mentor"])

logger = logging.getLogger(__name__)


class ChatRequest(BaseModel):
	userId: str = Field(min_length=1)
	message: str = Field(min_length=1, max_length=4000)


def _save_turn(db: Session, user_id: str, role: str, content: str) -> None:
	# A storage hiccup must not block the reply
	try:
		storage.save_chat_message(db, user_id=user_id, role=role, content=content)
	except SQLAlchemyError:
		db.rollback()
		logger.exception("Failed to persist %s chat message for user %s", role, user_id)


@router.post("/chat")
async def chat(
	req: ChatRequest,
	db: Session = Depends(get_db),
	client: Optional[GeminiClient] = Depends(get_gemini_client),
):
	user = load_user_or_404(db, req.userId)
	message = req.message.strip()
	skills = storage.get_user_skill_levels(db, user.id)
	enrollments = storage.get_user_enrollments(db, user.id)
	history = storage.get_chat_history(db, user.id, settings.chat_history_limit)
	reply, source = await mentor_reply(
		client,
		system_prompt=build_mentor_prompt(user, skills, enrollments),
		history=history,
		message=message,
	)
	_save_turn(db, user.id, "user", message)
	_save_turn(db, user.id, "assistant", reply)
	return {"response": reply, "source": source}


@router.get("/mentor/recommendations/{user_id}")
async def recommendations(user_id: str, db: Session = Depends(get_db)):
	user = load_user_or_404(db, user_id)
	skills = storage.get_user_skill_levels(db, user.id)
	enrollments = storage.get_user_enrollments(db, user.id)
	return mentor_recommendations(list(user.selected_domains or []), skills, enrollments)

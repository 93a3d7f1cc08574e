from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


def utcnow() -> datetime:
	# Naive UTC, stored as-is in every DateTime column
	return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
	return uuid.uuid4().hex


class User(Base):
	__tablename__ = "users"
	id = Column(String(32), primary_key=True, default=new_id)
	username = Column(String(128), unique=True, index=True, nullable=False)
	password_hash = Column(String(256), nullable=False)
	full_name = Column(String(256), nullable=True)
	email = Column(String(256), unique=True, index=True, nullable=True)
	selected_domains = Column(JSON, default=list, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# Primary key is the token's jti claim
	session_id = Column(String(64), primary_key=True)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=utcnow, nullable=False)


class QuizAttempt(Base):
	__tablename__ = "quiz_attempts"
	id = Column(String(32), primary_key=True, default=new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	domain = Column(String(128), index=True, nullable=False)
	# [{question, options, correctAnswer}, ...] and the submitted indices (-1 = unanswered)
	questions = Column(JSON, nullable=False)
	answers = Column(JSON, nullable=False)
	score = Column(Integer, nullable=False)
	total_questions = Column(Integer, nullable=False)
	skill_level = Column(String(32), nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class DomainSkillLevel(Base):
	__tablename__ = "skill_levels"
	__table_args__ = (UniqueConstraint("user_id", "domain", name="uq_skill_levels_user_domain"),)
	id = Column(Integer, primary_key=True, autoincrement=True)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	domain = Column(String(128), nullable=False)
	skill_level = Column(String(32), nullable=False)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Enrollment(Base):
	__tablename__ = "enrollments"
	id = Column(String(32), primary_key=True, default=new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	# Identifier of the course in the recommendation feed, not a local key
	course_id = Column(String(128), nullable=True)
	title = Column(String(512), nullable=False)
	provider = Column(String(128), nullable=True)
	url = Column(Text, nullable=False)
	domain = Column(String(128), index=True, nullable=False)
	is_paid = Column(Boolean, default=False, nullable=False)
	progress = Column(Integer, default=0, nullable=False)
	completed = Column(Boolean, default=False, nullable=False)
	description = Column(Text, nullable=True)
	skill_level = Column(String(32), nullable=True)
	duration = Column(String(64), nullable=True)
	rating = Column(Float, nullable=True)
	price = Column(Float, nullable=True)
	enrolled_at = Column(DateTime, default=utcnow, nullable=False)
	last_accessed_at = Column(DateTime, default=utcnow, nullable=False)


class ScheduleItem(Base):
	__tablename__ = "schedule_items"
	id = Column(String(32), primary_key=True, default=new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	course_id = Column(String(32), ForeignKey("enrollments.id"), nullable=True)
	course = relationship("Enrollment")
	title = Column(String(512), nullable=False)
	description = Column(Text, nullable=True)
	item_type = Column(String(16), default="module", nullable=False)  # module | quiz | practice
	duration = Column(String(64), nullable=True)
	due_date = Column(DateTime, nullable=True)
	completed = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)


class ChatMessage(Base):
	__tablename__ = "chat_messages"
	id = Column(String(32), primary_key=True, default=new_id)
	user_id = Column(String(32), ForeignKey("users.id"), index=True, nullable=False)
	role = Column(String(16), nullable=False)  # user | assistant
	content = Column(Text, nullable=False)
	created_at = Column(DateTime, default=utcnow, nullable=False)

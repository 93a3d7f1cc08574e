"""CRUD helpers over the ORM models.

Every function takes the request's ``Session`` first and commits its own
writes. Routes never build queries themselves.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import (
    AuthSession,
    ChatMessage,
    DomainSkillLevel,
    Enrollment,
    QuizAttempt,
    ScheduleItem,
    User,
    utcnow,
)


# ---- users ----

def create_user(
    db: Session,
    *,
    username: str,
    password_hash: str,
    full_name: Optional[str] = None,
    email: Optional[str] = None,
    selected_domains: Optional[Sequence[str]] = None,
) -> User:
    user = User(
        username=username,
        password_hash=password_hash,
        full_name=full_name,
        email=email,
        selected_domains=list(selected_domains or []),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.execute(select(User).where(User.username == username)).scalar_one_or_none()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.execute(select(User).where(User.email == email)).scalar_one_or_none()


def update_user(db: Session, user: User, **fields: Any) -> User:
    for name, value in fields.items():
        if value is not None:
            setattr(user, name, value)
    db.commit()
    db.refresh(user)
    return user


def set_selected_domains(db: Session, user: User, domains: Sequence[str]) -> User:
    # Keep order, drop blanks and duplicates
    seen: List[str] = []
    for d in domains:
        d = d.strip()
        if d and d not in seen:
            seen.append(d)
    user.selected_domains = seen
    db.commit()
    db.refresh(user)
    return user


# ---- quizzes and skill levels ----

def save_quiz_attempt(
    db: Session,
    *,
    user_id: str,
    domain: str,
    questions: List[Dict[str, Any]],
    answers: List[int],
    score: int,
    total_questions: int,
    skill_level: str,
) -> QuizAttempt:
    attempt = QuizAttempt(
        user_id=user_id,
        domain=domain,
        questions=questions,
        answers=answers,
        score=score,
        total_questions=total_questions,
        skill_level=skill_level,
    )
    db.add(attempt)
    db.commit()
    db.refresh(attempt)
    return attempt


def list_quiz_attempts(db: Session, user_id: str) -> List[QuizAttempt]:
    stmt = (
        select(QuizAttempt)
        .where(QuizAttempt.user_id == user_id)
        .order_by(QuizAttempt.created_at.desc())
    )
    return list(db.execute(stmt).scalars())


def set_domain_skill_level(db: Session, user_id: str, domain: str, skill_level: str) -> DomainSkillLevel:
    # Last write wins: a later attempt overwrites the label even when it is lower.
    # Concurrent submissions for the same (user, domain) race here without locking.
    row = db.execute(
        select(DomainSkillLevel).where(
            DomainSkillLevel.user_id == user_id,
            DomainSkillLevel.domain == domain,
        )
    ).scalar_one_or_none()
    if row is None:
        row = DomainSkillLevel(user_id=user_id, domain=domain, skill_level=skill_level)
        db.add(row)
    else:
        row.skill_level = skill_level
    db.commit()
    db.refresh(row)
    return row


def get_user_skill_levels(db: Session, user_id: str) -> Dict[str, str]:
    rows = db.execute(
        select(DomainSkillLevel)
        .where(DomainSkillLevel.user_id == user_id)
        .order_by(DomainSkillLevel.domain)
    ).scalars()
    return {r.domain: r.skill_level for r in rows}


# ---- enrollments ----

def enroll_course(db: Session, *, user_id: str, **fields: Any) -> Enrollment:
    course_id = fields.get("course_id")
    if course_id:
        existing = db.execute(
            select(Enrollment).where(Enrollment.user_id == user_id, Enrollment.course_id == course_id)
        ).scalar_one_or_none()
        if existing is not None:
            return existing
    enrollment = Enrollment(user_id=user_id, progress=0, completed=False, **fields)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    return enrollment


def get_enrollment(db: Session, enrollment_id: str) -> Optional[Enrollment]:
    return db.get(Enrollment, enrollment_id)


def get_user_enrollments(db: Session, user_id: str) -> List[Enrollment]:
    stmt = (
        select(Enrollment)
        .where(Enrollment.user_id == user_id)
        .order_by(Enrollment.enrolled_at.desc())
    )
    return list(db.execute(stmt).scalars())


def update_course_progress(db: Session, enrollment: Enrollment, progress: int) -> Enrollment:
    enrollment.progress = progress
    # completed implies progress == 100
    enrollment.completed = False
    enrollment.last_accessed_at = utcnow()
    db.commit()
    db.refresh(enrollment)
    return enrollment


def complete_course(db: Session, enrollment: Enrollment) -> Enrollment:
    enrollment.progress = 100
    enrollment.completed = True
    enrollment.last_accessed_at = utcnow()
    db.commit()
    db.refresh(enrollment)
    return enrollment


# ---- schedule ----

def create_schedule_item(
    db: Session,
    *,
    user_id: str,
    title: str,
    description: Optional[str] = None,
    course_id: Optional[str] = None,
    due_date: Optional[datetime] = None,
    item_type: str = "module",
    duration: Optional[str] = None,
    commit: bool = True,
) -> ScheduleItem:
    item = ScheduleItem(
        user_id=user_id,
        title=title,
        description=description,
        course_id=course_id,
        due_date=due_date,
        item_type=item_type,
        duration=duration,
        completed=False,
    )
    db.add(item)
    if commit:
        db.commit()
        db.refresh(item)
    return item


def list_schedule_items(db: Session, user_id: str) -> List[ScheduleItem]:
    stmt = select(ScheduleItem).where(ScheduleItem.user_id == user_id)
    items = list(db.execute(stmt).scalars())
    # Dated items first, by date; undated items keep creation order
    items.sort(key=lambda i: (i.due_date is None, i.due_date or datetime.max, i.created_at))
    return items


def get_schedule_item(db: Session, item_id: str) -> Optional[ScheduleItem]:
    return db.get(ScheduleItem, item_id)


def update_schedule_completion(db: Session, item: ScheduleItem, completed: bool) -> ScheduleItem:
    item.completed = completed
    db.commit()
    db.refresh(item)
    return item


# ---- chat ----

def save_chat_message(db: Session, *, user_id: str, role: str, content: str) -> ChatMessage:
    message = ChatMessage(user_id=user_id, role=role, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def get_chat_history(db: Session, user_id: str, limit: int = 50) -> List[ChatMessage]:
    stmt = (
        select(ChatMessage)
        .where(ChatMessage.user_id == user_id)
        .order_by(ChatMessage.created_at.desc())
        .limit(limit)
    )
    rows = list(db.execute(stmt).scalars())
    rows.reverse()
    return rows


# ---- auth sessions ----

def create_auth_session(db: Session, session_id: str, user_id: str) -> AuthSession:
    row = AuthSession(session_id=session_id, user_id=user_id)
    db.add(row)
    db.commit()
    return row


def get_auth_session(db: Session, session_id: str) -> Optional[AuthSession]:
    return db.get(AuthSession, session_id)


def touch_auth_session(db: Session, row: AuthSession) -> None:
    row.last_activity_at = utcnow()
    db.commit()


def delete_auth_session(db: Session, session_id: str) -> bool:
    row = db.get(AuthSession, session_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True

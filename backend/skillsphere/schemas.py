from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from .models import ChatMessage, Enrollment, QuizAttempt, ScheduleItem, User


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def user_out(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "fullName": user.full_name or "",
        "email": user.email or "",
        "selectedDomains": list(user.selected_domains or []),
        "createdAt": _iso(user.created_at),
    }


def attempt_out(attempt: QuizAttempt) -> Dict[str, Any]:
    total = attempt.total_questions
    return {
        "id": attempt.id,
        "userId": attempt.user_id,
        "domain": attempt.domain,
        "questions": attempt.questions,
        "answers": attempt.answers,
        "score": attempt.score,
        "totalQuestions": total,
        "percentage": 100 * attempt.score / total if total else 0.0,
        "skillLevel": attempt.skill_level,
        "createdAt": _iso(attempt.created_at),
    }


def enrollment_out(e: Enrollment) -> Dict[str, Any]:
    return {
        "id": e.id,
        "userId": e.user_id,
        "courseId": e.course_id,
        "title": e.title,
        "provider": e.provider or "",
        "url": e.url,
        "domain": e.domain,
        "isPaid": e.is_paid,
        "isFree": not e.is_paid,
        "progress": e.progress,
        "completed": e.completed,
        "description": e.description,
        "skillLevel": e.skill_level or "",
        "duration": e.duration or "",
        "rating": e.rating or 0,
        "price": e.price or 0,
        "enrolledAt": _iso(e.enrolled_at),
        "lastAccessedAt": _iso(e.last_accessed_at),
    }


def schedule_item_out(item: ScheduleItem) -> Dict[str, Any]:
    due = item.due_date
    return {
        "id": item.id,
        "userId": item.user_id,
        "courseId": item.course_id,
        "course": item.course.title if item.course is not None else "",
        "title": item.title,
        "description": item.description,
        "type": item.item_type,
        "dueDate": _iso(due),
        # Split form used by the schedule view
        "date": due.date().isoformat() if due else None,
        "time": due.strftime("%H:%M") if due else None,
        "duration": item.duration or "",
        "completed": item.completed,
    }


def chat_message_out(m: ChatMessage) -> Dict[str, Any]:
    return {
        "id": m.id,
        "role": m.role,
        "content": m.content,
        "timestamp": _iso(m.created_at),
    }

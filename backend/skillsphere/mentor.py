from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .gemini_client import GeminiClient
from .models import ChatMessage, Enrollment, User
from .quiz import SkillLevel

logger = logging.getLogger(__name__)


STALLED_PROGRESS = 50
MAX_ACTIVE_COURSES = 3


def build_mentor_prompt(user: User, skills: Dict[str, str], enrollments: Sequence[Enrollment]) -> str:
    completed = sum(1 for e in enrollments if e.completed)
    in_progress = len(enrollments) - completed
    skill_text = ", ".join(f"{d}: {lvl}" for d, lvl in skills.items()) or "none assessed yet"
    name = user.full_name or user.username
    return (
        "You are an AI learning mentor. Help users with their learning journey.\n"
        f"Learner: {name}\n"
        f"Selected domains: {', '.join(user.selected_domains or []) or 'none'}\n"
        f"Skill levels: {skill_text}\n"
        f"Enrolled courses: {len(enrollments)} ({completed} completed, {in_progress} in progress)\n"
        "Provide personalized advice, answer questions about their learning path, suggest study strategies "
        "and help them stay motivated. Be encouraging and supportive. Keep answers under 200 words."
    )


# Checked in order; first keyword hit wins
_CANNED_RESPONSES: List[Tuple[Tuple[str, ...], str]] = [
    (
        ("schedule", "time", "plan", "busy"),
        "A steady routine beats long cramming sessions. Try blocking 30-45 minutes on fixed days, "
        "and use the Schedule page to generate a weekly plan around your current courses.",
    ),
    (
        ("motivat", "bored", "give up", "tired"),
        "Progress in small steps still counts. Pick one short lesson for today, finish it, "
        "and look back at how far you've come since your first assessment.",
    ),
    (
        ("course", "recommend", "learn next", "resource"),
        "Check the Courses page for recommendations matched to your assessed skill level. "
        "Start with a free option and finish it before adding another course.",
    ),
    (
        ("quiz", "assess", "test", "exam", "level"),
        "Assessments place you at Beginner, Intermediate or Advanced for each domain. "
        "Retake a quiz after finishing a course to see your level move up.",
    ),
    (
        ("stuck", "difficult", "hard", "confus", "understand"),
        "When a topic feels hard, break it into smaller pieces, rebuild a tiny example yourself, "
        "and revisit the fundamentals before moving on. It's normal to need a second pass.",
    ),
]

DEFAULT_RESPONSE = (
    "I'm here to help with your learning journey. Ask me about study plans, course choices, "
    "your assessment results or how to stay motivated."
)


def fallback_chat_response(message: str) -> str:
    text = (message or "").lower()
    for keywords, reply in _CANNED_RESPONSES:
        if any(k in text for k in keywords):
            return reply
    return DEFAULT_RESPONSE


async def mentor_reply(
    client: Optional[GeminiClient],
    *,
    system_prompt: str,
    history: Sequence[ChatMessage],
    message: str,
) -> Tuple[str, str]:
    """Return ``(reply, source)`` where source is ``ai`` or ``fallback``."""
    if client is None:
        return fallback_chat_response(message), "fallback"
    messages = [{"role": m.role, "content": m.content} for m in history]
    messages.append({"role": "user", "content": message})
    try:
        reply = await client.chat(messages, system_instruction=system_prompt, temperature=0.7)
    except Exception as err:
        logger.warning("AI mentor chat failed, using canned reply: %s", err)
        return fallback_chat_response(message), "fallback"
    reply = (reply or "").strip()
    if not reply:
        return fallback_chat_response(message), "fallback"
    return reply, "ai"


def mentor_recommendations(
    selected_domains: Sequence[str],
    skills: Dict[str, str],
    enrollments: Sequence[Enrollment],
) -> Dict[str, Any]:
    completed = [e for e in enrollments if e.completed]
    in_progress = [e for e in enrollments if not e.completed]
    suggestions: List[Dict[str, Any]] = []

    def add(kind: str, title: str, message: str, priority: str, domain: Optional[str] = None) -> None:
        suggestions.append({"type": kind, "title": title, "message": message, "priority": priority, "domain": domain})

    for domain in selected_domains:
        if domain not in skills:
            add("assessment", f"Assess your {domain} skills",
                f"Take the {domain} quiz so recommendations match your level.", "high", domain)
    if not enrollments:
        add("enroll", "Enroll in your first course",
            "Pick a recommended course to start building momentum.", "high")
    if len(in_progress) > MAX_ACTIVE_COURSES:
        add("focus", "Focus on fewer courses",
            f"You have {len(in_progress)} courses in progress. Finishing one before starting another keeps you on track.",
            "medium")
    for e in in_progress:
        if e.progress < STALLED_PROGRESS:
            add("continue", f"Continue {e.title}",
                f"You're {e.progress}% through. A short session today keeps the streak going.", "medium", e.domain)
    if completed:
        add("celebrate", "Great progress!",
            f"You've completed {len(completed)} course{'s' if len(completed) != 1 else ''}. Consider a reassessment to level up.",
            "low")
    for domain, label in skills.items():
        if label == SkillLevel.BEGINNER.value:
            add("foundation", f"Strengthen {domain} foundations",
                f"Beginner-level {domain} courses will build the base you need.", "medium", domain)
        elif label == SkillLevel.ADVANCED.value:
            add("challenge", f"Take on an advanced {domain} project",
                f"You're at Advanced level in {domain}; a capstone project will stretch you further.", "low", domain)

    order = {"high": 0, "medium": 1, "low": 2}
    suggestions.sort(key=lambda s: order[s["priority"]])
    return {
        "recommendations": suggestions,
        "stats": {
            "completedCourses": len(completed),
            "inProgressCourses": len(in_progress),
            "assessedDomains": len(skills),
        },
    }

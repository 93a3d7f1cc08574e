from __future__ import annotations

import logging
import re
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from .gemini_client import GeminiClient, extract_json_object
from .models import Enrollment

logger = logging.getLogger(__name__)


PLAN_DAYS = 7
MAX_PLAN_ITEMS = 10
DEFAULT_STUDY_TIME = time(18, 0)

ItemType = Literal["module", "quiz", "practice"]


class PlannedItem(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    type: ItemType = "module"
    dayOffset: int = Field(default=0, ge=0, le=PLAN_DAYS - 1)
    time: Optional[str] = None
    duration: Optional[str] = None

    @field_validator("time")
    @classmethod
    def _check_time(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not re.fullmatch(r"([01]\d|2[0-3]):[0-5]\d", v.strip()):
            raise ValueError("time must be HH:MM")
        return v.strip()


class PlanPayload(BaseModel):
    items: List[PlannedItem] = Field(min_length=1, max_length=MAX_PLAN_ITEMS)


def _due(start: datetime, day_offset: int, at: Optional[str]) -> datetime:
    clock = DEFAULT_STUDY_TIME
    if at:
        hours, minutes = at.split(":")
        clock = time(int(hours), int(minutes))
    return datetime.combine(start.date() + timedelta(days=day_offset), clock)


def fallback_plan(
    domains: Sequence[str],
    enrollments: Sequence[Enrollment],
    goals: str,
    start: datetime,
) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    day = 0
    active = [e for e in enrollments if not e.completed][:3]
    for e in active:
        items.append({
            "title": f"Continue {e.title}",
            "description": f"Work through the next module ({e.progress}% complete so far).",
            "item_type": "module",
            "duration": "1 hour",
            "course_id": e.id,
            "due_date": _due(start, day, None),
        })
        day += 1
    for domain in list(domains)[:2]:
        items.append({
            "title": f"Practice {domain} fundamentals",
            "description": f"Hands-on exercises to reinforce core {domain} concepts.",
            "item_type": "practice",
            "duration": "45 min",
            "course_id": None,
            "due_date": _due(start, day, None),
        })
        day += 1
    if not items:
        items.append({
            "title": "Explore recommended courses",
            "description": "Pick one course that matches your goals and enroll in it.",
            "item_type": "module",
            "duration": "30 min",
            "course_id": None,
            "due_date": _due(start, 0, None),
        })
    focus = domains[0] if domains else "your chosen topics"
    items.append({
        "title": f"Weekly review quiz: {focus}",
        "description": f"Check your progress towards: {goals.strip()[:150]}" if goals.strip() else "Check what you learned this week.",
        "item_type": "quiz",
        "duration": "20 min",
        "course_id": None,
        "due_date": _due(start, PLAN_DAYS - 1, None),
    })
    return items


def build_plan_prompt(goals: str, domains: Sequence[str], skills: Dict[str, str], enrollments: Sequence[Enrollment]) -> str:
    skill_text = ", ".join(f"{d}: {lvl}" for d, lvl in skills.items()) or "not assessed yet"
    course_text = "; ".join(f"{e.title} ({e.progress}%)" for e in enrollments if not e.completed) or "none"
    return (
        f"Create a {PLAN_DAYS}-day study schedule for a learner.\n"
        f"Learning goals: {goals}\n"
        f"Domains of interest: {', '.join(domains) or 'unspecified'}\n"
        f"Skill levels: {skill_text}\n"
        f"Courses in progress: {course_text}\n"
        f"Produce between 3 and {MAX_PLAN_ITEMS} items. Each item has: title, description, "
        f"type (module | quiz | practice), dayOffset (0-{PLAN_DAYS - 1}), time (HH:MM, 24h), duration (e.g. \"45 min\").\n"
        'Return ONLY JSON: {"items": [{"title": "...", "description": "...", "type": "module", "dayOffset": 0, "time": "18:00", "duration": "45 min"}]}'
    )


def parse_plan_payload(text: str, start: datetime) -> List[Dict[str, Any]]:
    data = extract_json_object(text)
    if isinstance(data, list):
        data = {"items": data}
    payload = PlanPayload.model_validate(data)
    return [
        {
            "title": p.title.strip(),
            "description": p.description,
            "item_type": p.type,
            "duration": p.duration,
            "course_id": None,
            "due_date": _due(start, p.dayOffset, p.time),
        }
        for p in payload.items
    ]


async def generate_plan(
    client: Optional[GeminiClient],
    *,
    goals: str,
    domains: Sequence[str],
    skills: Dict[str, str],
    enrollments: Sequence[Enrollment],
    start: datetime,
) -> List[Dict[str, Any]]:
    if client is None:
        return fallback_plan(domains, enrollments, goals, start)
    try:
        raw = await client.generate(
            build_plan_prompt(goals, domains, skills, enrollments),
            system_instruction="You are a study planner. Produce realistic, evenly paced schedules in valid JSON only.",
            json_output=True,
            temperature=0.6,
        )
        return parse_plan_payload(raw, start)
    except (ValueError, ValidationError) as err:
        logger.warning("Invalid schedule from AI, using fallback plan: %s", err)
    except Exception as err:
        logger.warning("AI schedule generation failed, using fallback plan: %s", err)
    return fallback_plan(domains, enrollments, goals, start)

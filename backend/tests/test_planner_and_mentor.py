import asyncio
import json
from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from skillsphere import storage
from skillsphere.cleanup import purge_stale_sessions
from skillsphere.mentor import (
    DEFAULT_RESPONSE,
    fallback_chat_response,
    mentor_recommendations,
    mentor_reply,
)
from skillsphere.models import Enrollment, utcnow
from skillsphere.schedule import PLAN_DAYS, fallback_plan, generate_plan, parse_plan_payload

from fakes import FakeGemini


START = datetime(2026, 3, 2, 8, 0)


def _course(title, progress=0, completed=False, domain="Web Development"):
    return Enrollment(
        id=f"id-{title}",
        title=title,
        url="https://www.udemy.com/course/x/",
        domain=domain,
        progress=progress,
        completed=completed,
    )


def test_fallback_plan_with_courses_and_domains():
    courses = [_course("A"), _course("B", completed=True), _course("C", 30)]
    items = fallback_plan(["Web Development", "DevOps", "Cloud Computing"], courses, "ship a side project", START)
    titles = [i["title"] for i in items]
    assert titles == [
        "Continue A",
        "Continue C",
        "Practice Web Development fundamentals",
        "Practice DevOps fundamentals",
        "Weekly review quiz: Web Development",
    ]
    assert [i["due_date"].date() for i in items[:4]] == [START.date() + timedelta(days=d) for d in range(4)]
    assert items[-1]["due_date"] == datetime(2026, 3, 8, 18, 0)
    assert items[0]["course_id"] == "id-A"


def test_fallback_plan_for_empty_profile():
    items = fallback_plan([], [], "", START)
    assert [i["item_type"] for i in items] == ["module", "quiz"]
    assert items[0]["title"] == "Explore recommended courses"
    assert items[-1]["description"] == "Check what you learned this week."


def test_parse_plan_payload_accepts_bare_list():
    items = parse_plan_payload('[{"title": "Read docs", "dayOffset": 3, "time": "07:05"}]', START)
    assert items == [{
        "title": "Read docs",
        "description": None,
        "item_type": "module",
        "duration": None,
        "course_id": None,
        "due_date": datetime(2026, 3, 5, 7, 5),
    }]


@pytest.mark.parametrize("item", [
    {"title": "x", "dayOffset": PLAN_DAYS},
    {"title": "x", "time": "25:00"},
    {"title": "x", "type": "lecture"},
    {"title": ""},
])
def test_parse_plan_payload_rejects_bad_items(item):
    with pytest.raises(ValidationError):
        parse_plan_payload('{"items": [%s]}' % json.dumps(item), START)


def test_generate_plan_falls_back_on_garbage():
    ai = FakeGemini(replies=["I can't do that"])
    items = asyncio.run(generate_plan(ai, goals="", domains=["DevOps"], skills={}, enrollments=[], start=START))
    assert items == fallback_plan(["DevOps"], [], "", START)


@pytest.mark.parametrize("message, fragment", [
    ("I have no time this week", "steady routine"),
    ("feeling unmotivated", "small steps"),
    ("which course should I take?", "Courses page"),
    ("how does the quiz work", "Beginner, Intermediate or Advanced"),
    ("this is so confusing", "smaller pieces"),
])
def test_fallback_chat_keywords(message, fragment):
    assert fragment in fallback_chat_response(message)


def test_fallback_chat_default():
    assert fallback_chat_response("hello") == DEFAULT_RESPONSE
    assert fallback_chat_response("") == DEFAULT_RESPONSE


def test_mentor_reply_blank_ai_text_falls_back():
    reply, source = asyncio.run(mentor_reply(FakeGemini(replies=["   "]), system_prompt="s", history=[], message="hello"))
    assert (reply, source) == (DEFAULT_RESPONSE, "fallback")


def test_mentor_recommendations_priorities_and_stats():
    enrollments = [
        _course("A", 10),
        _course("B", 60),
        _course("C", 20),
        _course("D", 5),
        _course("E", 100, completed=True),
    ]
    skills = {"Web Development": "Beginner", "Data Science": "Advanced"}
    result = mentor_recommendations(["Web Development", "DevOps"], skills, enrollments)
    recs = result["recommendations"]

    priorities = [r["priority"] for r in recs]
    assert priorities == sorted(priorities, key=["high", "medium", "low"].index)
    kinds = [r["type"] for r in recs]
    assert kinds[0] == "assessment" and recs[0]["domain"] == "DevOps"
    assert "enroll" not in kinds
    assert kinds.count("continue") == 3
    assert {"focus", "celebrate", "foundation", "challenge"} <= set(kinds)
    assert result["stats"] == {"completedCourses": 1, "inProgressCourses": 4, "assessedDomains": 2}


def test_purge_stale_sessions(db_session, user):
    storage.create_auth_session(db_session, "fresh", user.id)
    stale = storage.create_auth_session(db_session, "stale", user.id)
    stale.last_activity_at = utcnow() - timedelta(days=8)
    db_session.commit()

    assert purge_stale_sessions(db_session, timedelta(days=7)) == 1
    assert storage.get_auth_session(db_session, "stale") is None
    assert storage.get_auth_session(db_session, "fresh") is not None
    assert purge_stale_sessions(db_session, timedelta(days=7)) == 0

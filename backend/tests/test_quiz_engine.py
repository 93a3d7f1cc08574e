import asyncio
import random

import pytest
from pydantic import ValidationError

from skillsphere.gemini_client import GeminiError
from skillsphere.quiz import (
    SkillLevel,
    derive_skill_level,
    fallback_quiz,
    generate_quiz,
    parse_quiz_payload,
    score_quiz,
)

from fakes import FakeGemini, answers_with, make_questions, quiz_json


@pytest.mark.parametrize(
    "percentage, expected",
    [
        (100, SkillLevel.ADVANCED),
        (70, SkillLevel.ADVANCED),
        (69, SkillLevel.INTERMEDIATE),
        (40, SkillLevel.INTERMEDIATE),
        (39, SkillLevel.BEGINNER),
        (0, SkillLevel.BEGINNER),
    ],
)
def test_skill_level_boundaries(percentage, expected):
    assert derive_skill_level(percentage) is expected


def test_score_seven_of_ten_is_advanced():
    result = score_quiz(make_questions(10), answers_with(10, 7))
    assert (result.score, result.total) == (7, 10)
    assert result.percentage == 70
    assert result.skill_level is SkillLevel.ADVANCED


def test_score_three_of_ten_is_beginner():
    result = score_quiz(make_questions(10), answers_with(10, 3))
    assert result.percentage == 30
    assert result.skill_level is SkillLevel.BEGINNER


def test_score_boundary_on_hundred_questions():
    questions = make_questions(100)
    assert score_quiz(questions, answers_with(100, 69)).skill_level is SkillLevel.INTERMEDIATE
    assert score_quiz(questions, answers_with(100, 39)).skill_level is SkillLevel.BEGINNER
    assert score_quiz(questions, answers_with(100, 40)).skill_level is SkillLevel.INTERMEDIATE


def test_score_is_deterministic_and_reports_every_question():
    questions = make_questions(6, correct=2)
    answers = [2, 0, 2, -1, 3, 2]
    first = score_quiz(questions, answers)
    second = score_quiz(questions, answers)
    assert (first.score, first.skill_level) == (second.score, second.skill_level) == (3, SkillLevel.INTERMEDIATE)
    assert len(first.results) == len(questions)
    assert [r.is_correct for r in first.results] == [True, False, True, False, False, True]
    assert first.results[3].to_dict()["selectedAnswer"] == -1


def test_unanswered_never_matches():
    questions = make_questions(2)
    result = score_quiz(questions, [-1, -1])
    assert result.score == 0
    assert result.skill_level is SkillLevel.BEGINNER


def test_score_rejects_length_mismatch():
    with pytest.raises(ValueError):
        score_quiz(make_questions(3), [0, 0])


def test_score_rejects_empty_quiz():
    with pytest.raises(ValueError):
        score_quiz([], [])


def test_fallback_quiz_shape():
    quiz = fallback_quiz("Web Development")
    assert quiz["domain"] == "Web Development"
    assert len(quiz["questions"]) == 5
    for q in quiz["questions"]:
        assert len(q["options"]) == 4
        assert 0 <= q["correctAnswer"] <= 3
        assert "Web Development" in q["question"]


def test_fallback_quiz_repeatable_with_seeded_rng():
    a = fallback_quiz("Data Science", rng=random.Random(7))
    b = fallback_quiz("Data Science", rng=random.Random(7))
    assert a == b


def test_parse_quiz_payload_accepts_fenced_json():
    text = "Here you go:\n```json\n" + quiz_json(3) + "\n```"
    questions = parse_quiz_payload(text)
    assert len(questions) == 3
    assert questions[0]["correctAnswer"] == 1


def test_parse_quiz_payload_rejects_three_options():
    text = '{"questions": [{"question": "Q?", "options": ["a", "b", "c"], "correctAnswer": 0}]}'
    with pytest.raises(ValidationError):
        parse_quiz_payload(text)


def test_parse_quiz_payload_rejects_empty_list():
    with pytest.raises(ValidationError):
        parse_quiz_payload('{"questions": []}')


def test_generate_quiz_uses_ai_questions():
    ai = FakeGemini(replies=[quiz_json(10)])
    quiz = asyncio.run(generate_quiz(ai, "Data Science", 10))
    assert quiz["source"] == "ai"
    assert len(quiz["questions"]) == 10
    assert ai.calls[0]["json_output"] is True
    assert "Data Science" in ai.calls[0]["prompt"]


def test_generate_quiz_falls_back_on_ai_error():
    ai = FakeGemini(error=GeminiError("boom"))
    quiz = asyncio.run(generate_quiz(ai, "Web Development", 10))
    assert quiz["source"] == "fallback"
    assert quiz["domain"] == "Web Development"
    assert len(quiz["questions"]) == 5


def test_generate_quiz_falls_back_on_malformed_output():
    ai = FakeGemini(replies=["not json at all"])
    quiz = asyncio.run(generate_quiz(ai, "DevOps", 10))
    assert quiz["source"] == "fallback"
    assert len(quiz["questions"]) == 5


def test_generate_quiz_without_client_never_calls_ai():
    quiz = asyncio.run(generate_quiz(None, "Cybersecurity", 10))
    assert quiz["source"] == "fallback"
    assert len(quiz["questions"]) == 5

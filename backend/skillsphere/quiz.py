from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, ValidationError, field_validator

from .gemini_client import GeminiClient, extract_json_object

logger = logging.getLogger(__name__)


FALLBACK_QUESTION_COUNT = 5
OPTIONS_PER_QUESTION = 4
UNANSWERED = -1

ADVANCED_THRESHOLD = 70.0
INTERMEDIATE_THRESHOLD = 40.0


class SkillLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


def derive_skill_level(percentage: float) -> SkillLevel:
    # Inclusive lower bounds
    if percentage >= ADVANCED_THRESHOLD:
        return SkillLevel.ADVANCED
    if percentage >= INTERMEDIATE_THRESHOLD:
        return SkillLevel.INTERMEDIATE
    return SkillLevel.BEGINNER


class QuizQuestion(BaseModel):
    question: str = Field(min_length=1)
    options: List[str] = Field(min_length=OPTIONS_PER_QUESTION, max_length=OPTIONS_PER_QUESTION)
    correctAnswer: int = Field(ge=0, le=OPTIONS_PER_QUESTION - 1)

    @field_validator("question")
    @classmethod
    def _strip_question(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question must not be blank")
        return v

    @field_validator("options")
    @classmethod
    def _strip_options(cls, v: List[str]) -> List[str]:
        return [str(o).strip() for o in v]


class QuizPayload(BaseModel):
    questions: List[QuizQuestion] = Field(min_length=1)


# Two canned banks; the fallback quiz mixes them
_CONCEPT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "question": "What is the primary purpose of {domain}?",
        "options": [
            "To build software applications",
            "To manage data and information",
            "To solve specific technical problems",
            "All of the above",
        ],
        "correctAnswer": 3,
    },
    {
        "question": "{domain} is best described as:",
        "options": [
            "A theoretical field",
            "A practical discipline",
            "Both theoretical and practical",
            "Neither theoretical nor practical",
        ],
        "correctAnswer": 2,
    },
    {
        "question": "Which skill is most important for {domain}?",
        "options": [
            "Problem-solving abilities",
            "Communication skills",
            "Technical knowledge",
            "All are equally important",
        ],
        "correctAnswer": 3,
    },
    {
        "question": "What is the best first step when learning {domain}?",
        "options": [
            "Memorize advanced terminology",
            "Understand the fundamental concepts",
            "Skip straight to expert-level projects",
            "Avoid hands-on practice",
        ],
        "correctAnswer": 1,
    },
]

_PRACTICE_TEMPLATES: List[Dict[str, Any]] = [
    {
        "question": "What is a common tool used in {domain}?",
        "options": [
            "Specialized software",
            "Programming languages",
            "Development frameworks",
            "Varies by specific application",
        ],
        "correctAnswer": 3,
    },
    {
        "question": "How would you rate the learning curve for {domain}?",
        "options": [
            "Very easy",
            "Moderate",
            "Challenging but manageable",
            "Very difficult",
        ],
        "correctAnswer": 2,
    },
    {
        "question": "Which habit most improves long-term progress in {domain}?",
        "options": [
            "Consistent, deliberate practice",
            "Studying only before deadlines",
            "Reading without applying anything",
            "Changing topics every day",
        ],
        "correctAnswer": 0,
    },
    {
        "question": "How do experienced {domain} practitioners usually keep their skills current?",
        "options": [
            "They stop learning once employed",
            "They follow one book forever",
            "They build projects and follow new developments",
            "They avoid community resources",
        ],
        "correctAnswer": 2,
    },
]


def fallback_quiz(domain: str, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Template quiz for ``domain`` that never touches the AI service.

    The shuffle is a convenience ordering from ``random``; it is not meant to
    give unbiased permutations.
    """
    rng = rng or random.Random()
    pool = [
        {
            "question": t["question"].format(domain=domain),
            "options": list(t["options"]),
            "correctAnswer": t["correctAnswer"],
        }
        for t in _CONCEPT_TEMPLATES + _PRACTICE_TEMPLATES
    ]
    rng.shuffle(pool)
    return {"domain": domain, "questions": pool[:FALLBACK_QUESTION_COUNT]}


def build_quiz_prompt(domain: str, count: int) -> str:
    fundamentals = max(1, round(count * 0.3))
    advanced = max(1, round(count * 0.3))
    intermediate = max(0, count - fundamentals - advanced)
    return (
        f"Generate a skill assessment quiz for {domain}.\n"
        f"Create exactly {count} multiple choice questions that progressively test knowledge from beginner to advanced level.\n"
        f"- Fundamental concepts: the first {fundamentals} questions\n"
        f"- Intermediate topics: the next {intermediate} questions\n"
        f"- Advanced techniques: the last {advanced} questions\n"
        "Each question has EXACTLY 4 options and only ONE correct option.\n"
        "Return ONLY valid JSON in this exact format:\n"
        '{"questions": [{"question": "Question text?", "options": ["A", "B", "C", "D"], "correctAnswer": 0}]}\n'
        "correctAnswer is the 0-based index (0-3) of the correct option. No markdown, no commentary."
    )


def parse_quiz_payload(text: str) -> List[Dict[str, Any]]:
    data = extract_json_object(text)
    if isinstance(data, list):
        data = {"questions": data}
    payload = QuizPayload.model_validate(data)
    return [q.model_dump() for q in payload.questions]


async def generate_quiz(client: Optional[GeminiClient], domain: str, count: int) -> Dict[str, Any]:
    if client is None:
        logger.info("No AI client configured; serving fallback quiz for %s", domain)
        return {**fallback_quiz(domain), "source": "fallback"}
    try:
        raw = await client.generate(
            build_quiz_prompt(domain, count),
            system_instruction="You are a skill assessment expert. Generate accurate, well-structured quizzes in valid JSON format only.",
            json_output=True,
            temperature=0.7,
        )
        questions = parse_quiz_payload(raw)
    except (ValueError, ValidationError) as err:
        logger.warning("Invalid quiz from AI for %s, using fallback: %s", domain, err)
        return {**fallback_quiz(domain), "source": "fallback"}
    except Exception as err:
        logger.warning("AI quiz generation failed for %s, using fallback: %s", domain, err)
        return {**fallback_quiz(domain), "source": "fallback"}
    return {"domain": domain, "questions": questions, "source": "ai"}


@dataclass
class QuestionResult:
    index: int
    question: str
    selected_answer: int
    correct_answer: int
    is_correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionIndex": self.index,
            "question": self.question,
            "selectedAnswer": self.selected_answer,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
        }


@dataclass
class QuizResult:
    score: int
    total: int
    percentage: float
    skill_level: SkillLevel
    results: List[QuestionResult] = field(default_factory=list)


def score_quiz(questions: Sequence[Dict[str, Any]], answers: Sequence[int]) -> QuizResult:
    if not questions:
        raise ValueError("quiz has no questions")
    if len(answers) != len(questions):
        raise ValueError(f"expected {len(questions)} answers, got {len(answers)}")
    results: List[QuestionResult] = []
    for i, (q, answer) in enumerate(zip(questions, answers)):
        correct = q["correctAnswer"]
        results.append(
            QuestionResult(
                index=i,
                question=q.get("question", ""),
                selected_answer=answer,
                correct_answer=correct,
                is_correct=answer != UNANSWERED and answer == correct,
            )
        )
    score = sum(1 for r in results if r.is_correct)
    total = len(questions)
    percentage = 100 * score / total
    return QuizResult(
        score=score,
        total=total,
        percentage=percentage,
        skill_level=derive_skill_level(percentage),
        results=results,
    )

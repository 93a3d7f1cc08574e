from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote_plus, urlparse

from .gemini_client import GeminiClient, extract_json_object

logger = logging.getLogger(__name__)


MIN_VALID_RECOMMENDATIONS = 6
REQUESTED_RECOMMENDATIONS = 8

# A candidate URL must point at a concrete course page, never a platform homepage.
# Each pattern requires content after the provider's course-path segment.
COURSE_URL_PATTERNS: Dict[str, List[re.Pattern[str]]] = {
    "youtube": [
        re.compile(r"^https?://(www\.|m\.)?youtube\.com/watch\?(.*&)?v=[\w-]+"),
        re.compile(r"^https?://(www\.)?youtube\.com/playlist\?(.*&)?list=[\w-]+"),
        re.compile(r"^https?://youtu\.be/[\w-]+"),
    ],
    "coursera": [
        re.compile(r"^https?://(www\.)?coursera\.org/(learn|specializations|professional-certificates)/[\w-]+"),
    ],
    "udemy": [
        re.compile(r"^https?://(www\.)?udemy\.com/course/[\w-]+"),
    ],
    "freecodecamp": [
        re.compile(r"^https?://(www\.)?freecodecamp\.org/(learn|news)/[\w-]+"),
    ],
    "edx": [
        re.compile(r"^https?://(www\.)?edx\.org/(course|learn)/[\w-]+"),
    ],
    "khanacademy": [
        re.compile(r"^https?://(www\.)?khanacademy\.org/[\w-]+"),
    ],
    "kaggle": [
        re.compile(r"^https?://(www\.)?kaggle\.com/learn/[\w-]+"),
    ],
    "mit_ocw": [
        re.compile(r"^https?://ocw\.mit\.edu/courses/[\w-]+"),
    ],
    "codecademy": [
        re.compile(r"^https?://(www\.)?codecademy\.com/learn/[\w-]+"),
    ],
    "udacity": [
        re.compile(r"^https?://(www\.)?udacity\.com/course/[\w-]+"),
    ],
}


def is_valid_course_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    for patterns in COURSE_URL_PATTERNS.values():
        for pattern in patterns:
            if pattern.match(candidate):
                return True
    return False


_PROVIDER_HOSTS = {
    "youtube.com": "YouTube",
    "youtu.be": "YouTube",
    "coursera.org": "Coursera",
    "udemy.com": "Udemy",
    "freecodecamp.org": "freeCodeCamp",
    "edx.org": "edX",
    "khanacademy.org": "Khan Academy",
    "kaggle.com": "Kaggle",
    "ocw.mit.edu": "MIT OpenCourseWare",
    "codecademy.com": "Codecademy",
    "udacity.com": "Udacity",
}


def provider_from_url(url: str) -> str:
    host = urlparse(url).netloc.lower()
    for suffix, name in _PROVIDER_HOSTS.items():
        if host == suffix or host.endswith("." + suffix):
            return name
    return host


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-") or "general"


# Known-good course pages per domain: micro-course, video, MOOC, paid option
FALLBACK_URLS: Dict[str, Dict[str, str]] = {
    "Web Development": {
        "micro": "https://www.freecodecamp.org/learn/2022/responsive-web-design/",
        "video": "https://www.youtube.com/watch?v=nu_pCVPKzTk",
        "mooc": "https://www.coursera.org/specializations/web-design",
        "paid": "https://www.udemy.com/course/the-complete-web-development-bootcamp/",
    },
    "Data Science": {
        "micro": "https://www.kaggle.com/learn/pandas",
        "video": "https://www.youtube.com/watch?v=ua-CiDNNj30",
        "mooc": "https://www.coursera.org/specializations/jhu-data-science",
        "paid": "https://www.udemy.com/course/python-for-data-science-and-machine-learning-bootcamp/",
    },
    "Machine Learning": {
        "micro": "https://www.kaggle.com/learn/intro-to-machine-learning",
        "video": "https://www.youtube.com/watch?v=i_LwzRVP7bg",
        "mooc": "https://www.coursera.org/specializations/machine-learning-introduction",
        "paid": "https://www.udemy.com/course/machinelearning/",
    },
    "Mobile Development": {
        "micro": "https://www.freecodecamp.org/news/learn-react-native/",
        "video": "https://www.youtube.com/watch?v=0-S5a0eXPoc",
        "mooc": "https://www.coursera.org/specializations/android-app-development",
        "paid": "https://www.udemy.com/course/the-complete-react-native-and-redux-course/",
    },
    "Cloud Computing": {
        "micro": "https://www.freecodecamp.org/news/aws-certified-cloud-practitioner-certification-study-course-pass-the-exam/",
        "video": "https://www.youtube.com/watch?v=SOTamWNgDKc",
        "mooc": "https://www.coursera.org/learn/introduction-to-cloud",
        "paid": "https://www.udemy.com/course/aws-certified-cloud-practitioner-new/",
    },
    "Cybersecurity": {
        "micro": "https://www.freecodecamp.org/news/free-cybersecurity-course/",
        "video": "https://www.youtube.com/watch?v=U_P23SqJaDc",
        "mooc": "https://www.coursera.org/professional-certificates/google-cybersecurity",
        "paid": "https://www.udemy.com/course/the-complete-internet-security-privacy-course-volume-1/",
    },
    "UI/UX Design": {
        "micro": "https://www.freecodecamp.org/news/ui-ux-design-tutorial-from-zero-to-hero-with-wireframe-prototype-figma/",
        "video": "https://www.youtube.com/watch?v=c9Wg6Cb_YlU",
        "mooc": "https://www.coursera.org/professional-certificates/google-ux-design",
        "paid": "https://www.udemy.com/course/ui-ux-web-design-using-adobe-xd/",
    },
    "DevOps": {
        "micro": "https://www.freecodecamp.org/news/devops-engineering-course-for-beginners/",
        "video": "https://www.youtube.com/watch?v=j5Zsa_eOXeY",
        "mooc": "https://www.coursera.org/professional-certificates/devops-and-software-engineering",
        "paid": "https://www.udemy.com/course/docker-and-kubernetes-the-complete-guide/",
    },
}


def _search_urls(domain: str) -> Dict[str, str]:
    q = quote_plus(domain)
    return {
        "micro": f"https://www.freecodecamp.org/news/search/?query={q}",
        "video": f"https://www.youtube.com/results?search_query={q}+full+course",
        "mooc": f"https://www.coursera.org/search?query={q}",
        "paid": f"https://www.udemy.com/courses/search/?q={q}",
    }


def fallback_courses(domain: str, skill_level: str) -> List[Dict[str, Any]]:
    urls = FALLBACK_URLS.get(domain) or _search_urls(domain)
    slug = _slug(domain)
    entries = [
        ("micro", f"{domain} Fundamentals", False, 0.0, 4.7, "10 hours",
         f"Hands-on, self-paced lessons covering the core of {domain}."),
        ("video", f"{domain} Full Course for Beginners", False, 0.0, 4.6, "6 hours",
         f"A complete video walkthrough of {domain} concepts with examples."),
        ("mooc", f"{domain} Specialization", False, 0.0, 4.7, "4 weeks",
         f"University-style {domain} course, free to audit."),
        ("paid", f"The Complete {domain} Bootcamp", True, 19.99, 4.6, "40 hours",
         f"Project-based {domain} bootcamp with lifetime access."),
    ]
    return [
        {
            "id": f"{slug}-fallback-{i + 1}",
            "title": title,
            "provider": provider_from_url(urls[kind]),
            "url": urls[kind],
            "domain": domain,
            "skillLevel": skill_level,
            "isFree": not paid,
            "price": price,
            "rating": rating,
            "duration": duration,
            "description": description,
        }
        for i, (kind, title, paid, price, rating, duration, description) in enumerate(entries)
    ]


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def normalize_course(raw: Dict[str, Any], domain: str, skill_level: str, index: int) -> Dict[str, Any]:
    if "isFree" in raw:
        is_free = bool(raw.get("isFree"))
    else:
        is_free = not bool(raw.get("isPaid", False))
    url = str(raw.get("url") or "").strip()
    provider = raw.get("provider") or raw.get("platform") or provider_from_url(url)
    return {
        "id": str(raw.get("id") or f"{_slug(domain)}-ai-{index + 1}"),
        "title": str(raw.get("title") or "").strip(),
        "provider": str(provider).strip(),
        "url": url,
        "domain": domain,
        "skillLevel": str(raw.get("skillLevel") or skill_level),
        "isFree": is_free,
        "price": 0.0 if is_free else _as_float(raw.get("price"), 0.0),
        "rating": _as_float(raw.get("rating"), 0.0),
        "duration": str(raw.get("duration") or ""),
        "description": str(raw.get("description") or "")[:200],
    }


def filter_valid_courses(candidates: Sequence[Any], domain: str, skill_level: str) -> List[Dict[str, Any]]:
    valid: List[Dict[str, Any]] = []
    for i, raw in enumerate(candidates):
        if not isinstance(raw, dict):
            continue
        course = normalize_course(raw, domain, skill_level, i)
        if not course["title"]:
            continue
        if not is_valid_course_url(course["url"]):
            logger.debug("Rejected course URL %r", course["url"])
            continue
        valid.append(course)
    return valid


def sanitize_courses(candidates: Sequence[Any], domain: str, skill_level: str) -> List[Dict[str, Any]]:
    valid = filter_valid_courses(candidates, domain, skill_level)
    if len(valid) < MIN_VALID_RECOMMENDATIONS:
        logger.info(
            "Only %d of %d AI courses for %s passed validation; using fallback set",
            len(valid), len(candidates), domain,
        )
        return fallback_courses(domain, skill_level)
    return valid


def build_recommendation_prompt(domain: str, skill_level: str) -> str:
    return (
        f"Recommend {REQUESTED_RECOMMENDATIONS} high-quality courses for learning {domain} at {skill_level} level.\n"
        "Include a mix of FREE and paid options, with preference for free courses.\n"
        "Every url MUST be the direct page of one specific course, never a platform homepage or search page.\n"
        "Use these URL shapes only: youtube.com/watch?v=..., youtube.com/playlist?list=..., coursera.org/learn/..., "
        "coursera.org/specializations/..., udemy.com/course/..., freecodecamp.org/learn/..., edx.org/course/..., "
        "kaggle.com/learn/..., khanacademy.org/..., ocw.mit.edu/courses/..., codecademy.com/learn/....\n"
        "For each course provide: title, provider, url, isPaid (true/false), price (number, 0 if free), "
        "rating (0-5), duration, description (max 100 characters), skillLevel.\n"
        'Return ONLY valid JSON: {"courses": [{"title": "...", "provider": "...", "url": "https://...", '
        f'"isPaid": false, "price": 0, "rating": 4.5, "duration": "6 hours", "description": "...", "skillLevel": "{skill_level}"}}]}}'
    )


async def recommend_courses(client: Optional[GeminiClient], domain: str, skill_level: str) -> List[Dict[str, Any]]:
    if client is None:
        return fallback_courses(domain, skill_level)
    try:
        raw = await client.generate(
            build_recommendation_prompt(domain, skill_level),
            system_instruction="You are a learning path expert. Recommend real, high-quality courses from reputable platforms.",
            json_output=True,
            temperature=0.8,
        )
        data = extract_json_object(raw)
    except Exception as err:
        logger.warning("AI course recommendation failed for %s, using fallback: %s", domain, err)
        return fallback_courses(domain, skill_level)
    candidates = data.get("courses") if isinstance(data, dict) else data
    if not isinstance(candidates, list):
        return fallback_courses(domain, skill_level)
    return sanitize_courses(candidates, domain, skill_level)

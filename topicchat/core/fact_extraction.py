"""
Pattern-based extraction of user facts from chat text.

Pure functions only: text in, UserInfo out. The pattern table is the whole
policy; a phrase that matches nothing is simply ignored, and false negatives
are preferred over false positives.
"""

import re
from typing import List, Optional, Pattern, Tuple

from ..models.chat import UserInfo

# A phrase runs until sentence punctuation or the end of the text
_PHRASE = r"(.+?)(?:[.,!?;]|$)"

NAME_FIELD = "name"
INTEREST_FIELD = "interests"
GOAL_FIELD = "goals"

FACT_PATTERNS: List[Tuple[str, Pattern[str]]] = [
    (NAME_FIELD, re.compile(r"\bmy name is (\w+)", re.IGNORECASE)),
    (NAME_FIELD, re.compile(r"\bi'm (\w+)", re.IGNORECASE)),
    (NAME_FIELD, re.compile(r"\bi am (\w+)", re.IGNORECASE)),
    (NAME_FIELD, re.compile(r"\bcall me (\w+)", re.IGNORECASE)),
    (NAME_FIELD, re.compile(r"\bname's (\w+)", re.IGNORECASE)),

    (INTEREST_FIELD, re.compile(r"\bi like " + _PHRASE, re.IGNORECASE)),
    (INTEREST_FIELD, re.compile(r"\bi love " + _PHRASE, re.IGNORECASE)),
    (INTEREST_FIELD, re.compile(r"\bi enjoy " + _PHRASE, re.IGNORECASE)),
    (INTEREST_FIELD, re.compile(r"\bi'm interested in " + _PHRASE, re.IGNORECASE)),
    (INTEREST_FIELD, re.compile(r"\bmy hobby is " + _PHRASE, re.IGNORECASE)),
    (INTEREST_FIELD, re.compile(r"\bmy hobbies are " + _PHRASE, re.IGNORECASE)),

    (GOAL_FIELD, re.compile(r"\bi want to " + _PHRASE, re.IGNORECASE)),
    (GOAL_FIELD, re.compile(r"\bmy goal is " + _PHRASE, re.IGNORECASE)),
    (GOAL_FIELD, re.compile(r"\bi'm trying to " + _PHRASE, re.IGNORECASE)),
    (GOAL_FIELD, re.compile(r"\bi hope to " + _PHRASE, re.IGNORECASE)),
    (GOAL_FIELD, re.compile(r"\bi plan to " + _PHRASE, re.IGNORECASE)),
]

# Words that follow "I'm" / "I am" without being a name
NOT_A_NAME = frozenset({
    "a", "an", "the", "not", "so", "very", "really", "just", "also", "still",
    "interested", "trying", "going", "planning", "hoping", "looking", "feeling",
    "learning", "working", "studying", "doing", "getting", "thinking", "here",
    "fine", "good", "ok", "okay", "sure", "sorry", "glad", "happy", "sad",
    "tired", "sick", "new", "back", "from", "in", "on", "at", "currently",
})


def _normalize(text: str) -> str:
    return text.replace("’", "'")


def _accept_name(candidate: str) -> Optional[str]:
    if candidate.lower() in NOT_A_NAME or candidate.isdigit():
        return None
    return candidate


def _clean_phrase(phrase: str, field: str) -> str:
    phrase = phrase.strip()
    if field == GOAL_FIELD and phrase.lower().startswith("to "):
        phrase = phrase[3:].strip()
    return phrase


def extract_user_facts(text: str) -> UserInfo:
    """
    Extract name, interests and goals from a single user message.

    Args:
        text: Raw user message

    Returns:
        UserInfo holding only what was found (possibly empty)
    """
    text = _normalize(text)
    name: Optional[str] = None
    interests: List[str] = []
    goals: List[str] = []

    for field, pattern in FACT_PATTERNS:
        if field == NAME_FIELD:
            if name is not None:
                continue
            match = pattern.search(text)
            if match:
                name = _accept_name(match.group(1))
            continue

        match = pattern.search(text)
        if not match:
            continue
        phrase = _clean_phrase(match.group(1), field)
        if not phrase:
            continue
        target = interests if field == INTEREST_FIELD else goals
        if phrase not in target:
            target.append(phrase)

    return UserInfo(name=name, interests=interests, goals=goals)

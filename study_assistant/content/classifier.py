"""Query classification into definitional questions, math problems and general topics.

Both checks are driven by ordered rule tables.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class QueryKind(str, Enum):
    DEFINITIONAL = 'definitional'
    MATH = 'math'
    GENERAL = 'general'


@dataclass(frozen=True)
class Classification:
    kind: QueryKind
    extracted_topic: Optional[str] = None


# Leading interrogative phrases, evaluated top to bottom
DEFINITIONAL_PATTERNS = [
    re.compile(p, re.IGNORECASE) for p in (
        r'^what\s+is(\s+|$)',
        r'^what\s+are(\s+|$)',
        r"^what's(\s+|$)",
        r'^define(\s+|$)',
        r'^explain(\s+|$)',
        r'^describe(\s+|$)',
        r'^tell\s+me\s+about(\s+|$)',
        r'^who\s+is(\s+|$)',
        r'^who\s+are(\s+|$)',
        r"^who's(\s+|$)",
        r'^when\s+is(\s+|$)',
        r'^when\s+was(\s+|$)',
        r'^where\s+is(\s+|$)',
        r'^where\s+are(\s+|$)',
        r'^why\s+is(\s+|$)',
        r'^why\s+are(\s+|$)',
        r'^how\s+does(\s+|$)',
        r'^how\s+do(\s+|$)',
        r'^which\s+is(\s+|$)',
        r'^which\s+are(\s+|$)',
    )
]

MATH_KEYWORDS = (
    'solve', 'calculate', 'compute', 'find', 'what is',
    'mean', 'median', 'mode', 'average', 'sum', 'product',
    'derivative', 'integral', 'equation', 'simplify',
    'factor', 'expand', 'evaluate', 'prove',
)

MATH_SYMBOLS = re.compile(r'[+\-*/=^()\[\]√∫∑]')
HAS_DIGIT = re.compile(r'\d')

MATH_PATTERNS = [
    re.compile(r'\d+\s*[+\-*/]\s*\d+'),               # 2+3, 5 * 4
    re.compile(r'(mean|average|median|mode).*\d'),    # statistics with numbers
    re.compile(r'solve.*\b[x-z]\b'),                  # solve for a variable
    re.compile(r'derivative|integral'),
    re.compile(r'\d+\s*,\s*\d+'),                     # 2, 3, 4, 5
]

_TRAILING_QUESTION = re.compile(r'[\s?]+$')


def _match_definitional(text: str):
    for pattern in DEFINITIONAL_PATTERNS:
        m = pattern.match(text)
        if m:
            return m
    return None


def is_definitional_question(query: str) -> bool:
    return _match_definitional((query or '').strip()) is not None


def extract_topic(query: str) -> str:
    """Strip leading interrogative phrases and trailing question marks.

    Stripping repeats so "what is what is X?" yields "X". The first letter is
    capitalized; the rest of the casing is kept so acronyms survive.
    """
    topic = (query or '').strip()
    while True:
        topic = _TRAILING_QUESTION.sub('', topic).strip()
        m = _match_definitional(topic)
        if not m:
            break
        topic = topic[m.end():]
    if not topic:
        return ''
    return topic[0].upper() + topic[1:]


def is_math_problem(query: str) -> bool:
    text = (query or '').lower()
    has_keyword = any(k in text for k in MATH_KEYWORDS)
    if has_keyword and HAS_DIGIT.search(text):
        return True
    if MATH_SYMBOLS.search(text):
        return True
    return any(p.search(text) for p in MATH_PATTERNS)


def classify(query: str) -> Classification:
    """Tag a raw query. Definitional wins over math, math over general."""
    text = (query or '').strip()
    if is_definitional_question(text):
        topic = extract_topic(text)
        if topic:
            return Classification(QueryKind.DEFINITIONAL, topic)
    if is_math_problem(text):
        return Classification(QueryKind.MATH)
    return Classification(QueryKind.GENERAL)

"""Deterministic study content built only from Wikipedia extract text.

Used when the AI generator is unavailable. Output is a pure function of
(topic, extract, mode) except for the practice math question in math mode.
"""
from __future__ import annotations

import random
import re
from typing import List, Optional

from .models import StudyPacket, QuizItem, MathQuestion, PacketSource, StudyMode

MIN_SENTENCE_LENGTH = 20
EXCERPT_LENGTH = 60
KEYWORD_MIN_LENGTH = 5
DEFAULT_KEYWORD = 'concept'

_SENTENCE_SPLIT = re.compile(r'[.!?]+')


def split_sentences(text: str) -> List[str]:
    """Split on .!? and keep trimmed sentences longer than 20 characters."""
    parts = (s.strip() for s in _SENTENCE_SPLIT.split(text or ''))
    return [s for s in parts if len(s) > MIN_SENTENCE_LENGTH]


def excerpt(text: str, length: int = EXCERPT_LENGTH) -> str:
    if len(text) <= length:
        return text
    return text[:length].rstrip() + '...'


def key_word(sentence: Optional[str]) -> str:
    if not sentence:
        return DEFAULT_KEYWORD
    words = [w.strip(',;:()"\'') for w in sentence.split()]
    words = [w for w in words if len(w) > KEYWORD_MIN_LENGTH]
    if not words:
        return DEFAULT_KEYWORD
    return words[len(words) // 2]


def _build_quiz(topic: str, sentences: List[str]) -> List[QuizItem]:
    first = sentences[0] if sentences else f'A subject area known as {topic}'
    word = key_word(sentences[1] if len(sentences) > 1 else None)
    return [
        QuizItem(
            question=f'Which statement about {topic} is correct?',
            options=[
                f'A) {excerpt(first)}',
                f'B) {topic} is a type of musical instrument',
                f'C) {topic} was invented last year',
                f'D) {topic} has no known applications',
            ],
            correct_answer='A',
        ),
        QuizItem(
            question=f'Which term is closely associated with {topic}?',
            options=[
                f'A) {word}',
                'B) Recipe',
                'C) Holiday',
                'D) Weather',
            ],
            correct_answer='A',
        ),
        QuizItem(
            question=f'What is the best way to deepen your understanding of {topic}?',
            options=[
                'A) Review the key points and test yourself regularly',
                'B) Memorize the title only',
                'C) Skip the summary entirely',
                'D) Avoid asking questions about it',
            ],
            correct_answer='A',
        ),
    ]


def _practice_math_question(rng: random.Random) -> MathQuestion:
    a = rng.randint(1, 10)
    b = rng.randint(1, 10)
    total = a + b
    return MathQuestion(
        question=f'A student studies for {a} hours on Monday and {b} hours on Tuesday. How many hours did they study in total?',
        answer=str(total),
        explanation=f'Add the hours together: {a} + {b} = {total}',
    )


def synthesize(topic: str, extract: str, mode: str = StudyMode.NORMAL.value, wikipedia_url: Optional[str] = None, rng: Optional[random.Random] = None) -> StudyPacket:
    sentences = split_sentences(extract)
    summary = [f'{s}.' for s in sentences[:3]]
    math_question = None
    if mode == StudyMode.MATH.value:
        math_question = _practice_math_question(rng or random.Random())
    return StudyPacket(
        topic=topic,
        wikipedia_url=wikipedia_url,
        summary=summary,
        quiz=_build_quiz(topic, sentences),
        study_tip=(
            f'Break {topic} into small pieces: read the summary, explain each point in your own words, '
            'then quiz yourself again tomorrow to lock it in.'
        ),
        math_question=math_question,
        source=PacketSource.WIKIPEDIA,
    )

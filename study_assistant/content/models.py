"""Pydantic models for study packets.

Attributes are snake_case; the JSON body uses camelCase aliases
(``studyTip``, ``correctAnswer``, ``wikipediaUrl``, ``mathQuestion``).
"""
from __future__ import annotations

from enum import Enum
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

OPTION_LETTERS = ('A', 'B', 'C', 'D')


class StudyMode(str, Enum):
    NORMAL = 'normal'
    MATH = 'math'


class PacketSource(str, Enum):
    AI = 'ai'
    WIKIPEDIA = 'wikipedia'
    FRAMEWORK = 'framework'
    AI_MATH = 'ai_math'
    BASIC_MATH = 'basic_math'


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class QuizItem(_CamelModel):
    question: str
    options: List[str]
    correct_answer: str

    @field_validator('options')
    def four_options(cls, v):
        if len(v) != len(OPTION_LETTERS):
            raise ValueError('quiz items need exactly 4 options')
        return v

    @field_validator('correct_answer')
    def answer_letter(cls, v):
        letter = (v or '').strip().upper()[:1]
        if letter not in OPTION_LETTERS:
            raise ValueError(f'correctAnswer must be one of {", ".join(OPTION_LETTERS)}')
        return letter


class MathQuestion(_CamelModel):
    question: str
    answer: str
    explanation: str

    @field_validator('answer', mode='before')
    def stringify_answer(cls, v):
        # models sometimes return numeric answers
        return v if isinstance(v, str) else str(v)


class StudyPacket(_CamelModel):
    topic: str
    wikipedia_url: Optional[str] = None
    summary: List[str] = Field(default_factory=list)
    quiz: List[QuizItem] = Field(default_factory=list)
    study_tip: str
    math_question: Optional[MathQuestion] = None
    framework: Optional[Dict[str, str]] = None
    source: Optional[PacketSource] = None

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    def study_data(self) -> Dict[str, Any]:
        """Subset of the packet persisted with a history entry."""
        data = self.model_dump(mode='json', by_alias=True, include={'summary', 'quiz', 'study_tip', 'math_question', 'wikipedia_url'})
        return {k: v for k, v in data.items() if v is not None}


class GeneratedContent(_CamelModel):
    """Content returned by the AI generator before it is wrapped in a packet."""

    summary: List[str]
    quiz: List[QuizItem]
    study_tip: str
    math_question: Optional[MathQuestion] = None

    @model_validator(mode='after')
    def required_content(self):
        if not [s for s in self.summary if s and s.strip()]:
            raise ValueError('summary is empty')
        if not self.quiz:
            raise ValueError('quiz is empty')
        if not self.study_tip or not self.study_tip.strip():
            raise ValueError('studyTip is empty')
        return self

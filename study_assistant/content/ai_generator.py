"""OpenAI-backed study content generation.

Provides:
- AIContentGenerator singleton wrapping chat completions with a hard timeout
- prompt builders for study packets and the math tutor
- response parsing (fence stripping, JSON span extraction, pydantic validation)

Custom exceptions: AIGeneratorError and its subclasses. Provider failures are
classified so callers can tell overload (retryable) from auth/quota problems.
"""
from __future__ import annotations

import os
import re
import time
import json
from typing import List, Dict, Any

import openai
from openai import OpenAI
from pydantic import ValidationError

from study_assistant.utils import get_logger, log_llm_call, get_request_context
from .models import GeneratedContent, StudyPacket, MathQuestion, PacketSource, StudyMode

LOG = get_logger()


# Exceptions
class AIGeneratorError(Exception):
    pass


class AIConfigError(AIGeneratorError):
    pass


class AIAPIError(AIGeneratorError):
    pass


class AIAuthError(AIAPIError):
    pass


class AIQuotaExceededError(AIAPIError):
    pass


class AITimeoutError(AIAPIError):
    pass


class AIOverloadedError(AIAPIError):
    pass


class AIUnavailableError(AIAPIError):
    pass


class AIMalformedResponseError(AIGeneratorError):
    pass


# Env
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '20'))
STUDY_TEMPERATURE = float(os.getenv('STUDY_TEMPERATURE', '0.7'))
STUDY_MAX_TOKENS = int(os.getenv('STUDY_MAX_TOKENS', '2048'))
MATH_TEMPERATURE = float(os.getenv('MATH_TEMPERATURE', '0.3'))
MATH_MAX_TOKENS = int(os.getenv('MATH_MAX_TOKENS', '2048'))
PLACEHOLDER_KEYS = ('', 'your_openai_api_key_here')

OVERLOAD_MARKERS = ('503', '529', 'overloaded', 'service unavailable')

_FENCE = re.compile(r'```(?:json)?\n?')
_JSON_SPAN = re.compile(r'\{[\s\S]*\}')


def api_key_configured() -> bool:
    return os.getenv('OPENAI_API_KEY', '').strip() not in PLACEHOLDER_KEYS


def is_overload_message(message: str) -> bool:
    msg = (message or '').lower()
    return any(m in msg for m in OVERLOAD_MARKERS)


def extract_json(content: str) -> Dict[str, Any]:
    """Strip markdown fences and parse the first {...} span."""
    clean = _FENCE.sub('', content or '').strip()
    m = _JSON_SPAN.search(clean)
    candidate = m.group(0) if m else clean
    try:
        data = json.loads(candidate)
    except ValueError as e:
        raise AIMalformedResponseError('Model reply is not valid JSON') from e
    if not isinstance(data, dict):
        raise AIMalformedResponseError('Model reply is not a JSON object')
    return data


class AIContentGenerator:
    _instance = None

    def __init__(self):
        key = os.getenv('OPENAI_API_KEY', '').strip()
        if key in PLACEHOLDER_KEYS:
            raise AIConfigError('OPENAI_API_KEY not set')
        self.model = OPENAI_MODEL
        self.timeout = OPENAI_TIMEOUT
        # no SDK-level retries; callers own retry and fallback
        self._client = OpenAI(api_key=key, timeout=self.timeout, max_retries=0)
        LOG.info('AIContentGenerator initialized', extra={'model': self.model})

    @classmethod
    def get_instance(cls) -> 'AIContentGenerator':
        if cls._instance is None:
            cls._instance = AIContentGenerator()
        return cls._instance

    def _build_study_prompt(self, topic: str, extract: str, mode: str) -> str:
        math_part = ''
        if mode == StudyMode.MATH.value:
            math_part = (
                '4. A "mathQuestion" object with:\n'
                '   - "question": a quantitative or logic question\n'
                '   - "answer": the correct answer\n'
                '   - "explanation": step-by-step explanation\n'
            )
        return (
            f'You are a helpful study assistant. Based on this Wikipedia summary about "{topic}":\n\n'
            f'{extract}\n\n'
            'Generate the following in valid JSON format:\n'
            '1. A "summary" array with exactly 3 concise bullet points\n'
            '2. A "quiz" array with exactly 3 multiple choice questions, each having:\n'
            '   - "question": the question text\n'
            '   - "options": array of 4 options (A, B, C, D)\n'
            '   - "correctAnswer": the letter of the correct option\n'
            '3. A "studyTip": one practical study tip related to this topic\n'
            f'{math_part}\n'
            'Return ONLY valid JSON, no markdown formatting or code blocks.'
        )

    def _build_math_prompt(self, problem: str) -> str:
        schema = {
            'summary': [
                'Brief explanation of what the problem is asking',
                'Key concepts or formulas needed',
                'Final answer with units if applicable',
            ],
            'solution': {
                'steps': ['Step 1: ...', 'Step 2: ...', 'Step 3: ...'],
                'answer': 'The final answer',
                'explanation': 'Brief explanation of the solution method',
            },
            'quiz': [
                {'question': 'A similar practice question', 'options': ['A) ...', 'B) ...', 'C) ...', 'D) ...'], 'correctAnswer': 'A'},
                {'question': 'Another practice question', 'options': ['A) ...', 'B) ...', 'C) ...', 'D) ...'], 'correctAnswer': 'B'},
                {'question': 'One more practice question', 'options': ['A) ...', 'B) ...', 'C) ...', 'D) ...'], 'correctAnswer': 'C'},
            ],
            'studyTip': 'A helpful tip for solving similar problems',
        }
        return (
            'You are a helpful math tutor. Solve this math problem step by step:\n\n'
            f'Problem: {problem}\n\n'
            'Provide your response in valid JSON format with the following structure:\n'
            f'{json.dumps(schema, indent=2, ensure_ascii=False)}\n\n'
            'Return ONLY valid JSON, no markdown formatting or code blocks.'
        )

    def _classify_provider_error(self, e: Exception) -> AIAPIError:
        msg = str(e)
        if isinstance(e, openai.APITimeoutError):
            return AITimeoutError(msg or 'AI provider timed out')
        if isinstance(e, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return AIAuthError('Invalid OpenAI API key')
        if isinstance(e, openai.RateLimitError):
            code = getattr(e, 'code', None)
            if code == 'insufficient_quota' or 'quota' in msg.lower():
                return AIQuotaExceededError('OpenAI API quota exceeded')
            return AIOverloadedError(msg or 'AI provider rate limited')
        if isinstance(e, openai.APIStatusError):
            if e.status_code in (503, 529) or is_overload_message(msg):
                return AIOverloadedError(msg or 'AI provider is overloaded')
            if e.status_code >= 500:
                return AIUnavailableError(msg)
            return AIAPIError(msg)
        if isinstance(e, openai.APIConnectionError):
            return AIUnavailableError(msg or 'AI provider unreachable')
        if is_overload_message(msg):
            return AIOverloadedError(msg)
        return AIAPIError(msg)

    def _call_openai(self, prompt: str, temperature: float, max_tokens: int, purpose: str) -> str:
        messages = [
            {'role': 'system', 'content': 'You produce study material as strict JSON.'},
            {'role': 'user', 'content': prompt},
        ]
        start = time.time()
        try:
            resp = self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
                timeout=self.timeout,
            )
        except openai.OpenAIError as e:
            err = self._classify_provider_error(e)
            LOG.warning('openai_call_failed', extra={'purpose': purpose, 'error_type': type(err).__name__, 'error': str(e)})
            raise err from e
        duration_ms = int((time.time() - start) * 1000)

        # normalize to a plain dict across SDK response types
        if not isinstance(resp, dict):
            if hasattr(resp, 'model_dump'):
                resp = resp.model_dump()
            elif hasattr(resp, 'to_dict'):
                resp = resp.to_dict()
            else:
                resp = json.loads(json.dumps(resp, default=lambda o: getattr(o, '__dict__', str(o))))

        usage = resp.get('usage') or {}
        log_llm_call(
            get_request_context().get('request_id'),
            self.model,
            usage.get('prompt_tokens', 0),
            usage.get('completion_tokens', 0),
            duration_ms,
            purpose=purpose,
        )
        choices = resp.get('choices') or []
        if not choices:
            raise AIMalformedResponseError('No choices returned')
        content = (choices[0].get('message') or {}).get('content')
        if not content:
            raise AIMalformedResponseError('Empty completion content')
        return content.strip()

    def generate(self, topic: str, extract: str, mode: str = StudyMode.NORMAL.value) -> GeneratedContent:
        prompt = self._build_study_prompt(topic, extract, mode)
        content = self._call_openai(prompt, STUDY_TEMPERATURE, STUDY_MAX_TOKENS, purpose='study_content')
        data = extract_json(content)
        try:
            generated = GeneratedContent.model_validate(data)
        except ValidationError as e:
            LOG.warning('study_content_validation_failed', extra={'errors': e.error_count()})
            raise AIMalformedResponseError('Invalid response format from AI') from e
        if mode != StudyMode.MATH.value and generated.math_question is not None:
            generated = generated.model_copy(update={'math_question': None})
        return generated

    def solve_math(self, problem: str) -> StudyPacket:
        prompt = self._build_math_prompt(problem)
        content = self._call_openai(prompt, MATH_TEMPERATURE, MATH_MAX_TOKENS, purpose='math_tutor')
        data = extract_json(content)
        solution = data.get('solution') or {}
        if not isinstance(solution, dict):
            raise AIMalformedResponseError('Math solution must be a JSON object')
        raw_steps = solution.get('steps')
        steps: List[str] = [str(s) for s in raw_steps] if isinstance(raw_steps, list) else []
        try:
            math_question = None
            if solution:
                math_question = MathQuestion(
                    question=problem,
                    answer=solution.get('answer', ''),
                    explanation='\n'.join(steps) if steps else str(solution.get('explanation', '')),
                )
            packet = StudyPacket(
                topic=problem,
                summary=data.get('summary') or [],
                quiz=data.get('quiz') or [],
                study_tip=data.get('studyTip') or 'Practice similar problems to master this concept.',
                math_question=math_question,
                source=PacketSource.AI_MATH,
            )
        except ValidationError as e:
            raise AIMalformedResponseError('Invalid math solution format from AI') from e
        if not packet.summary or not packet.quiz:
            raise AIMalformedResponseError('Math solution is missing summary or quiz')
        return packet


"""
Study content: query classification, packet models and the producers
(AI generator, framework builder, synthesizer, basic math solver).
"""
from .models import StudyPacket, QuizItem, MathQuestion, GeneratedContent, StudyMode, PacketSource
from .classifier import classify, Classification, QueryKind, is_definitional_question, extract_topic, is_math_problem
from .framework import build_framework, build_framework_packet
from .synthesizer import synthesize
from .math_solver import solve, solve_basic
from .ai_generator import (
	AIContentGenerator,
	AIGeneratorError,
	AIConfigError,
	AIAPIError,
	AIAuthError,
	AIQuotaExceededError,
	AITimeoutError,
	AIOverloadedError,
	AIUnavailableError,
	AIMalformedResponseError,
	api_key_configured,
)

__all__ = [
	'StudyPacket',
	'QuizItem',
	'MathQuestion',
	'GeneratedContent',
	'StudyMode',
	'PacketSource',
	'classify',
	'Classification',
	'QueryKind',
	'is_definitional_question',
	'extract_topic',
	'is_math_problem',
	'build_framework',
	'build_framework_packet',
	'synthesize',
	'solve',
	'solve_basic',
	'AIContentGenerator',
	'AIGeneratorError',
	'AIConfigError',
	'AIAPIError',
	'AIAuthError',
	'AIQuotaExceededError',
	'AITimeoutError',
	'AIOverloadedError',
	'AIUnavailableError',
	'AIMalformedResponseError',
	'api_key_configured',
]

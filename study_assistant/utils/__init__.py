"""Utility subpackage for the study service"""

from .logger import (
	get_logger,
	log_request,
	log_error,
	log_llm_call,
	log_wikipedia_fetch,
	log_study_generation,
	log_content_fallback,
	log_history_write,
	set_request_context,
	get_request_context,
)

__all__ = [
	'get_logger',
	'log_request',
	'log_error',
	'log_llm_call',
	'log_wikipedia_fetch',
	'log_study_generation',
	'log_content_fallback',
	'log_history_write',
	'set_request_context',
	'get_request_context',
]

import json
from types import SimpleNamespace

import httpx
import openai

_REQUEST = httpx.Request('POST', 'https://api.openai.com/v1/chat/completions')

MOCK_STUDY_RESPONSE = {
    'summary': [
        'Photosynthesis converts light energy into chemical energy.',
        'It takes place mainly in the chloroplasts of plant cells.',
        'Oxygen is released as a by-product.',
    ],
    'quiz': [
        {'question': 'Where does photosynthesis mainly occur?', 'options': ['A) Chloroplasts', 'B) Nucleus', 'C) Ribosomes', 'D) Cell wall'], 'correctAnswer': 'A'},
        {'question': 'Which gas is released?', 'options': ['A) Nitrogen', 'B) Oxygen', 'C) Helium', 'D) Argon'], 'correctAnswer': 'B'},
        {'question': 'What energy source drives it?', 'options': ['A) Heat', 'B) Sound', 'C) Light', 'D) Wind'], 'correctAnswer': 'C'},
    ],
    'studyTip': 'Draw the light and dark reactions as a flow chart.',
    'mathQuestion': {'question': 'If a leaf makes 3 g of sugar per hour, how much in 4 hours?', 'answer': 12, 'explanation': '3 * 4 = 12'},
}

MOCK_MATH_RESPONSE = {
    'summary': ['Add two numbers', 'Use addition', 'The answer is 8'],
    'solution': {
        'steps': ['Step 1: Start with 5', 'Step 2: Add 3', 'Step 3: Get 8'],
        'answer': '8',
        'explanation': 'Simple addition',
    },
    'quiz': [
        {'question': 'What is 2 + 2?', 'options': ['A) 4', 'B) 5', 'C) 3', 'D) 22'], 'correctAnswer': 'A'},
        {'question': 'What is 6 + 1?', 'options': ['A) 5', 'B) 7', 'C) 8', 'D) 61'], 'correctAnswer': 'B'},
        {'question': 'What is 9 + 0?', 'options': ['A) 0', 'B) 90', 'C) 9', 'D) 10'], 'correctAnswer': 'C'},
    ],
    'studyTip': 'Count on from the larger number.',
}


def chat_response(content, model='mock-model'):
    if not isinstance(content, str):
        content = json.dumps(content)
    return {
        'id': 'mock-1',
        'object': 'chat.completion',
        'created': 0,
        'model': model,
        'choices': [{'index': 0, 'message': {'role': 'assistant', 'content': content}, 'finish_reason': 'stop'}],
        'usage': {'prompt_tokens': 10, 'completion_tokens': 10, 'total_tokens': 20},
    }


class FakeOpenAI:
    """Stand-in for ``openai.OpenAI``.

    Replies are consumed in order; the last one repeats. An exception instance
    in the list is raised instead of returned.
    """

    def __init__(self, replies=None, **kwargs):
        self.init_kwargs = kwargs
        self.calls = []
        self._replies = list(replies or [MOCK_STUDY_RESPONSE])
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self._replies.pop(0) if len(self._replies) > 1 else self._replies[0]
        if isinstance(reply, Exception):
            raise reply
        return chat_response(reply, model=kwargs.get('model', 'mock-model'))


def timeout_error():
    return openai.APITimeoutError(request=_REQUEST)


def connection_error():
    return openai.APIConnectionError(request=_REQUEST)


def status_error(status_code, message='error', body=None, cls=openai.APIStatusError):
    response = httpx.Response(status_code, request=_REQUEST)
    return cls(message, response=response, body=body)


def overloaded_error():
    return status_error(529, 'Overloaded')


def rate_limit_error(quota=False):
    body = {'code': 'insufficient_quota', 'message': 'You exceeded your current quota'} if quota else None
    message = 'You exceeded your current quota' if quota else 'Rate limit reached'
    return status_error(429, message, body=body, cls=openai.RateLimitError)


def auth_error():
    return status_error(401, 'Incorrect API key provided', cls=openai.AuthenticationError)

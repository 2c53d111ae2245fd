"""Basic arithmetic fallback used when the AI math tutor is unavailable."""
from __future__ import annotations

import re
from typing import List, Optional, Tuple, Union

from .models import StudyPacket, QuizItem, MathQuestion, PacketSource

UNSOLVED_ANSWER = 'Unable to solve automatically'

Number = Union[int, float]

_NUM = r'\d+(?:\.\d+)?'
MEAN_PATTERN = re.compile(r'(?:mean|average).*?(' + _NUM + r'(?:\s*,\s*' + _NUM + r')+)', re.IGNORECASE)
ARITHMETIC_PATTERN = re.compile(r'(?<![\d,.])(' + _NUM + r')\s*([+\-*/])\s*(' + _NUM + r')(?![,.]?\d)')
LINEAR_PATTERN = re.compile(r'(' + _NUM + r')x\s*\+\s*(' + _NUM + r')\s*=\s*(' + _NUM + r')', re.IGNORECASE)

BASIC_QUIZ = [
    QuizItem(
        question='What type of problem is this?',
        options=['A) Mathematical problem', 'B) History question', 'C) Science question', 'D) Literature question'],
        correct_answer='A',
    ),
    QuizItem(
        question='Why might the AI service be unavailable?',
        options=['A) High server load', 'B) Maintenance', 'C) Network issues', 'D) All of the above'],
        correct_answer='D',
    ),
    QuizItem(
        question='What should you do if the service is unavailable?',
        options=['A) Try again later', 'B) Check your internet connection', 'C) Verify the problem format', 'D) All of the above'],
        correct_answer='D',
    ),
]

BASIC_STUDY_TIP = (
    'For complex math problems, try breaking them down into smaller steps. If the AI service is unavailable, '
    'you can use online calculators or math tools as alternatives.'
)


def _num(text: str) -> Number:
    return float(text) if '.' in text else int(text)


def fmt(value: Number) -> str:
    """Render integral floats without a trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _solve_mean(problem: str) -> Optional[Tuple[str, List[str]]]:
    m = MEAN_PATTERN.search(problem)
    if not m:
        return None
    numbers = [_num(n.strip()) for n in m.group(1).split(',')]
    total = sum(numbers)
    mean = total / len(numbers)
    return fmt(mean), [
        f"Add all numbers: {' + '.join(fmt(n) for n in numbers)} = {fmt(total)}",
        f'Count the numbers: {len(numbers)} numbers',
        f'Divide sum by count: {fmt(total)} ÷ {len(numbers)} = {fmt(mean)}',
    ]


def _solve_arithmetic(problem: str) -> Optional[Tuple[str, List[str]]]:
    m = ARITHMETIC_PATTERN.search(problem)
    if not m:
        return None
    a, op, b = _num(m.group(1)), m.group(2), _num(m.group(3))
    if op == '+':
        answer = fmt(a + b)
        return answer, [f'Add the numbers: {fmt(a)} + {fmt(b)} = {answer}']
    if op == '-':
        answer = fmt(a - b)
        return answer, [f'Subtract: {fmt(a)} - {fmt(b)} = {answer}']
    if op == '*':
        answer = fmt(a * b)
        return answer, [f'Multiply: {fmt(a)} × {fmt(b)} = {answer}']
    if b == 0:
        return None
    answer = fmt(a / b)
    return answer, [f'Divide: {fmt(a)} ÷ {fmt(b)} = {answer}']


def _solve_linear(problem: str) -> Optional[Tuple[str, List[str]]]:
    m = LINEAR_PATTERN.search(problem)
    if not m:
        return None
    a, b, c = _num(m.group(1)), _num(m.group(2)), _num(m.group(3))
    if a == 0:
        return None
    x = (c - b) / a
    return f'x = {fmt(x)}', [
        f'Start with: {fmt(a)}x + {fmt(b)} = {fmt(c)}',
        f'Subtract {fmt(b)} from both sides: {fmt(a)}x = {fmt(c - b)}',
        f'Divide by {fmt(a)}: x = {fmt(x)}',
    ]


SOLVERS = (_solve_mean, _solve_arithmetic, _solve_linear)


def solve(problem: str) -> Tuple[str, List[str]]:
    """Return (answer, steps) from the first pattern that matches."""
    for solver in SOLVERS:
        result = solver(problem)
        if result is not None:
            return result
    return UNSOLVED_ANSWER, []


def solve_basic(problem: str) -> StudyPacket:
    answer, steps = solve(problem)
    solved = bool(steps)
    return StudyPacket(
        topic=problem,
        summary=[
            'This is a basic solution generated without AI assistance.',
            'The problem has been solved using basic arithmetic.' if solved else 'For complex problems, please try again when the AI service is available.',
            f'Answer: {answer}',
        ],
        quiz=list(BASIC_QUIZ),
        study_tip=BASIC_STUDY_TIP,
        math_question=MathQuestion(question=problem, answer=answer, explanation='\n'.join(steps)) if solved else None,
        source=PacketSource.BASIC_MATH,
    )

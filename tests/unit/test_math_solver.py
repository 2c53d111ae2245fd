import pytest

from study_assistant.content.math_solver import solve, solve_basic, UNSOLVED_ANSWER
from study_assistant.content.models import PacketSource


@pytest.mark.unit
@pytest.mark.parametrize('problem,answer', [
    ('12 + 7', '19'),
    ('5 + 3', '8'),
    ('9 - 12', '-3'),
    ('6 * 7', '42'),
    ('10 / 4', '2.5'),
    ('8 / 2', '4'),
    ('what is 1.5 + 2.5', '4'),
])
def test_arithmetic(problem, answer):
    got, steps = solve(problem)
    assert got == answer
    assert len(steps) == 1


@pytest.mark.unit
def test_mean_of_list():
    answer, steps = solve('Find the mean of 2, 4, 6')
    assert answer == '4'
    assert steps == [
        'Add all numbers: 2 + 4 + 6 = 12',
        'Count the numbers: 3 numbers',
        'Divide sum by count: 12 ÷ 3 = 4',
    ]


@pytest.mark.unit
def test_linear_equation():
    answer, steps = solve('3x + 5 = 20')
    assert answer == 'x = 5'
    assert len(steps) == 3
    assert steps[1] == 'Subtract 5 from both sides: 3x = 15'


@pytest.mark.unit
@pytest.mark.parametrize('problem', ['10 / 0', 'integrate sin x', 'prove Fermat'])
def test_unsolved(problem):
    assert solve(problem) == (UNSOLVED_ANSWER, [])


@pytest.mark.unit
@pytest.mark.parametrize('problem', ['1,000 + 2,000', 'what is 3.5.1 * 2'])
def test_arithmetic_ignores_partial_numbers(problem):
    answer, _ = solve(problem)
    assert answer == UNSOLVED_ANSWER


@pytest.mark.unit
def test_arithmetic_with_trailing_punctuation():
    answer, _ = solve('What is 12 + 7, please?')
    assert answer == '19'


@pytest.mark.unit
def test_solve_basic_packet():
    packet = solve_basic('5 + 3')
    assert packet.summary[0] == 'This is a basic solution generated without AI assistance.'
    assert packet.summary[-1] == 'Answer: 8'
    assert packet.math_question.answer == '8'
    assert packet.math_question.explanation == 'Add the numbers: 5 + 3 = 8'
    assert [q.correct_answer for q in packet.quiz] == ['A', 'D', 'D']
    assert packet.source == PacketSource.BASIC_MATH


@pytest.mark.unit
def test_solve_basic_unsolved_has_no_math_question():
    packet = solve_basic('integrate sin x')
    assert packet.summary[-1] == f'Answer: {UNSOLVED_ANSWER}'
    assert packet.math_question is None
    assert 'mathQuestion' not in packet.to_response()

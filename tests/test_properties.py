"""
Properties that hold for every example program at every degree: same output,
cycle counts never drop, labels stay resolvable, new labels and temps are
fresh.
"""

import itertools

import pytest

from s_expander import Expander
from utils import example_programs, example_repository, run_program

NAMES = sorted(example_programs())
SAMPLES = list(itertools.product(range(4), repeat=2))


@pytest.fixture(params=NAMES)
def expander(request, repo):
    return Expander(repo.get(request.param), repo)


def expected(name, x1, x2):
    return {
        "Identity": x1,
        "Zero": 0,
        "Const3": 3,
        "Successor": x1 + 1,
        "Positive": int(x1 > 0),
        "Add": x1 + x2,
        "Minus": max(0, x1 - x2),
        "Equal": int(x1 == x2),
        "IsFive": int(x1 == 5),
        "IsThree": int(x1 == 3),
        "Double": 2 * x1,
        "Multiply": x1 * x2,
        "SuccPlusThree": x1 + 4,
    }[name]


@pytest.mark.parametrize("name", NAMES)
def test_same_output_at_every_degree(name):
    repo = example_repository()
    program = repo.get(name)
    top = Expander(program, repo).max_degree()
    for degree in range(top + 1):
        for x1, x2 in SAMPLES:
            y = run_program(program, {"x1": x1, "x2": x2}, degree, repo, max_steps=1_000_000)
            assert y == expected(name, x1, x2), (name, degree, x1, x2)


def test_cycles_never_drop(expander):
    counts = [expander.cycles(d) for d in range(expander.max_degree() + 1)]
    assert counts == sorted(counts)


def test_labels_resolve_at_every_degree(expander):
    for d in range(expander.max_degree() + 1):
        program = expander.get_program(d)
        assert program.check_labels(), (program.name, d, program.unresolved_labels())


def test_self_labels_are_unique(expander):
    for d in range(expander.max_degree() + 1):
        own = [i.label for i in expander.get_program(d) if not i.label.is_empty]
        assert len(own) == len(set(own))


def test_new_labels_are_fresh(expander):
    for d in range(expander.max_degree()):
        before = expander.get_program(d).numeric_labels()
        after = expander.get_program(d + 1).numeric_labels()
        ceiling = max((lbl.index for lbl in before), default=0)
        assert all(lbl.index > ceiling for lbl in after if lbl not in before)


def test_new_temps_are_fresh(expander):
    for d in range(expander.max_degree()):
        before = expander.get_program(d).temps()
        after = expander.get_program(d + 1).temps()
        ceiling = max((v.index for v in before), default=0)
        assert all(v.index > ceiling for v in after if v not in before)


def test_top_degree_is_basic_only(expander):
    program = expander.get_program(expander.max_degree())
    assert all(i.is_basic for i in program)


def test_below_top_degree_has_synthetics(expander):
    if expander.max_degree() == 0:
        pytest.skip("already basic")
    program = expander.get_program(expander.max_degree() - 1)
    assert not all(i.is_basic for i in program)

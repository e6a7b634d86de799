"""
Interpreter tests: execute rules, control flow, history and rewind, and
native QUOTE / JUMP_EQUAL_FUNCTION.
"""

import pytest

import s_program as s
from s_machine import SMachine
from s_program import EXIT, InvalidProgram, Program, ProgramRepository


def run(instructions, repo=None, **inputs):
    m = SMachine(Program("T", instructions), repo or ProgramRepository(), dict(inputs))
    y = m.run(max_steps=10_000)
    return y, m


def test_identity():
    y, m = run([s.assignment("y", "x1")], x1=5)
    assert y == 5
    assert m.vars["x1"] == 5


def test_decrease_stops_at_zero():
    _, m = run([s.decrease("x1"), s.decrease("x1")], x1=1)
    assert m.vars["x1"] == 0


def test_negative_store_rejected():
    m = SMachine(Program("T", []))
    with pytest.raises(ValueError):
        m.set(s.Y, -1)


@pytest.mark.parametrize("x1, expected", [(0, 0), (7, 1)])
def test_jump_zero_to_exit(x1, expected):
    y, _ = run([s.jump_zero("x1", EXIT), s.increase("y"), s.goto_label(EXIT)], x1=x1)
    assert y == expected


@pytest.mark.parametrize("x1, x2, expected", [(4, 4, 1), (4, 5, 0), (0, 0, 1)])
def test_jump_equal_variable(x1, x2, expected):
    y, _ = run([
        s.jump_equal_variable("x1", "x2", "L1"),
        s.goto_label(EXIT),
        s.constant_assignment("y", 1, label="L1"),
    ], x1=x1, x2=x2)
    assert y == expected


def test_jump_equal_constant():
    prog = [s.jump_equal_constant("x1", 5, "L1"), s.goto_label(EXIT), s.increase("y", label="L1")]
    assert run(prog, x1=5)[0] == 1
    assert run(prog, x1=4)[0] == 0


def test_running_off_the_end_halts():
    y, m = run([s.increase("y"), s.increase("y")])
    assert y == 2 and m.halted and m.step_count == 2


def test_jump_to_missing_label_halts():
    y, m = run([s.increase("x1"), s.goto_label("L9"), s.increase("y")])
    assert y == 0 and m.halted and m.step_count == 2


def test_empty_program():
    y, m = run([])
    assert y == 0 and m.halted and m.line == 0


def test_step_limit():
    prog = Program("Forever", [s.increase("y", label="L1"), s.goto_label("L1")])
    with pytest.raises(RuntimeError):
        SMachine(prog).run(max_steps=100)


def test_reset_zeroes_output_and_temps_but_keeps_inputs():
    store = {"x1": 3, "y": 9, "z1": 4, "z7": 2}
    m = SMachine(Program("T", [s.assignment("z1", "x1")]), store=store)
    m.reset()
    assert store == {"x1": 3, "y": 0, "z1": 0, "z7": 0}


def test_cycles_follow_the_table():
    _, m = run([s.zero_variable("y"), s.jump_not_zero("x1", EXIT)], x1=1)
    assert m.cycles == 1 + 2


def test_step_and_lines():
    m = SMachine(Program("T", [s.increase("y"), s.goto_label(EXIT), s.increase("y")]),
                 keep_history=True)
    m.reset()
    assert (m.line, m.last_line) == (1, 0)
    assert m.step() is True
    assert (m.line, m.last_line) == (2, 1)
    assert m.step() is False
    assert (m.line, m.last_line) == (0, 2)
    assert m.step() is False
    assert m.output == 1
    assert len(m.history) == 3


def test_rewind():
    m = SMachine(Program("T", [s.increase("y"), s.increase("y"), s.increase("y")]),
                 keep_history=True)
    m.reset()
    m.step()
    m.step()
    m.rewind(1)
    assert m.output == 1 and m.line == 2 and m.cycles == 1
    assert len(m.history) == 2
    m.step()
    m.step()
    assert m.output == 3 and m.halted
    m.rewind(-2)
    assert m.output == 2 and not m.halted


def test_state():
    m = SMachine(Program("T", [s.increase("y")]))
    m.reset()
    state = m.state()
    assert state["line"] == 1 and state["next_instr"].kind == s.INCREASE
    m.step()
    assert m.state()["next_instr"] is None


def test_native_quote(repo):
    y, _ = run([s.quote("y", "Add", "x1,x2")], repo, x1=2, x2=3)
    assert y == 5


def test_native_quote_does_not_touch_caller_cells(repo):
    y, m = run([s.quote("z1", "Successor", "x2"), s.assignment("y", "z1")], repo, x1=100, x2=4)
    assert y == 5
    assert m.vars["x1"] == 100 and m.vars["x2"] == 4


def test_native_quote_through_exit(repo):
    assert run([s.quote("y", "Const3")], repo)[0] == 3


@pytest.mark.parametrize("x1, expected", [(3, 1), (2, 0)])
def test_native_jump_equal_function(repo, x1, expected):
    assert run(list(repo.get("IsThree")), repo, x1=x1)[0] == expected


def test_native_quote_unknown_callee():
    with pytest.raises(InvalidProgram):
        run([s.quote("y", "Nope")])


def test_native_quote_nested(repo):
    y, _ = run(list(repo.get("SuccPlusThree")), repo, x1=4)
    assert y == 8


def test_native_quote_binds_by_input_index():
    repo = ProgramRepository([Program("Second", [s.assignment("y", "x2")])])
    assert run([s.quote("y", "Second", "x1,x3")], repo, x1=1, x3=9)[0] == 9
    # a missing second argument leaves x2 at 0
    assert run([s.quote("y", "Second", "x1")], repo, x1=1)[0] == 0

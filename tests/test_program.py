"""
Model tests: label and variable tokens, instruction records, programs and
the program repository.
"""

import pytest

import s_program as s
from s_program import EMPTY, EXIT, Y, Label, LoadError, Program, ProgramRepository, Var


@pytest.mark.parametrize("token, expected", [
    ("L1", Label.numeric(1)),
    ("l12", Label.numeric(12)),
    (" L3 ", Label.numeric(3)),
    ("EXIT", EXIT),
    ("exit", EXIT),
    ("E", EXIT),
    ("", EMPTY),
    (None, EMPTY),
    ("foo", EMPTY),
])
def test_label_tokens(token, expected):
    assert Label.parse(token) == expected


def test_bad_numeric_label():
    with pytest.raises(LoadError):
        Label.parse("Lx")


def test_label_printing():
    assert str(Label.numeric(7)) == "L7"
    assert str(EXIT) == "EXIT"
    assert str(EMPTY) == ""
    assert Label.numeric(2).is_numeric and EXIT.is_exit and EMPTY.is_empty


def test_variable_tokens():
    assert Var.parse("y") is Y
    assert Var.parse("x3") == Var(s.INPUT, 3)
    assert Var.parse("Z2") == Var(s.TEMP, 2)
    assert Var.parse("Z2").name == "z2"
    alias = Var.parse("count")
    assert alias.kind == s.INPUT and alias.name == "count"
    assert Var.parse("count", s.TEMP).kind == s.TEMP
    # index 0 is not a standard cell
    assert Var.parse("x0").alias == "x0"
    with pytest.raises(ValueError):
        Var.parse("  ")


def test_split_arguments():
    assert s.split_arguments("x1, z2 ,,y") == ("x1", "z2", "y")
    assert s.split_arguments("") == ()
    assert s.split_arguments(None) == ()


def test_instruction_text():
    assert s.increase("x1").text() == "x1 <- x1 + 1"
    assert s.decrease("z2").text() == "z2 <- z2 - 1"
    assert s.neutral("y").text() == "y <- y"
    assert s.jump_not_zero("x1", "L1").text() == "IF x1 != 0 GOTO L1"
    assert s.zero_variable("y").text() == "y <- 0"
    assert s.constant_assignment("y", 4).text() == "y <- 4"
    assert s.assignment("y", "x2").text() == "y <- x2"
    assert s.goto_label(EXIT).text() == "GOTO EXIT"
    assert s.jump_zero("z1", "L2").text() == "IF z1 = 0 GOTO L2"
    assert s.jump_equal_constant("x1", 5, "L1").text() == "IF x1 = 5 GOTO L1"
    assert s.jump_equal_variable("x1", "x2", "L1").text() == "IF x1 = x2 GOTO L1"
    assert s.quote("y", "Add", "x1,x2").text() == "y <- (Add,x1,x2)"
    assert s.quote("y", "Const3").text() == "y <- (Const3)"
    assert s.jump_equal_function("x1", "Const3", "", "L1").text() == "IF x1 = (Const3) GOTO L1"


def test_render_line():
    prog = Program("P", [s.zero_variable("y"), s.increase("x1", label="L1")])
    assert prog[0].render() == "#1 (S) [     ] y <- 0 (1)"
    assert prog[1].render() == "#2 (B) [ L1  ] x1 <- x1 + 1 (1)"
    assert prog[1].render(cycles=9).endswith("(9)")
    # QUOTE has no table cost
    assert s.quote("y", "Add").render() == "#0 (S) [     ] y <- (Add)"


def test_instruction_equality_ignores_position_and_origin():
    a = s.increase("x1", label="L1")
    b = s.increase("x1", label="L1")
    assert a == b and hash(a) == hash(b)
    assert a.uid != b.uid
    assert s.increase("x1") != s.increase("x2")


def test_negative_constants_rejected():
    with pytest.raises(ValueError):
        s.constant_assignment("y", -1)
    with pytest.raises(ValueError):
        s.jump_equal_constant("x1", -2, "L1")


def test_program_numbering_and_labels():
    prog = Program("P", [
        s.increase("y"),
        s.decrease("x1", label="L2"),
        s.jump_not_zero("x1", "L2", label="L2"),
        s.goto_label("L9"),
    ])
    assert [i.num for i in prog] == [1, 2, 3, 4]
    # first occurrence wins
    assert prog.index_of(Label.numeric(2)) == 1
    assert prog.index_of(Label.numeric(9)) is None
    assert not prog.check_labels()
    assert prog.unresolved_labels() == [Label.numeric(9)]
    assert prog.numeric_labels() == [Label.numeric(2), Label.numeric(9)]


def test_program_variable_queries():
    prog = Program("P", [
        s.assignment("z3", "x2"),
        s.quote("y", "Add", "x1,total"),
        s.jump_equal_variable("x1", "z1", EXIT),
    ])
    assert [v.name for v in prog.variables()] == ["z3", "x2", "y", "x1", "total", "z1"]
    # aliases inside QUOTE arguments are caller temps
    assert [v.name for v in prog.inputs()] == ["x1", "x2"]
    assert [v.name for v in prog.temps()] == ["z3", "total", "z1"]
    assert prog.functions() == ["Add"]
    assert prog.check_labels()


def test_repository():
    repo = ProgramRepository()
    first = Program("F", [s.increase("y")])
    second = Program("F", [s.increase("y"), s.increase("y")])
    repo.register(first)
    assert "F" in repo and repo.get("F") is first
    repo.register(second)
    assert repo.get("F") is second and len(repo) == 1

    copy = repo.copy()
    copy.register(Program("G", []))
    assert "G" not in repo and copy.names() == ["F", "G"]

    repo.remove("F")
    repo.remove("F")
    assert repo.get("F") is None
    with pytest.raises(s.InvalidProgram):
        repo.require("F")
    with pytest.raises(ValueError):
        repo.register(Program("", []))


def test_input_positions():
    prog = Program("P", [
        s.assignment("y", "x3"),
        s.increase("count"),
        s.increase("x1"),
        s.decrease("other"),
    ])
    assert [(pos, v.name) for pos, v in prog.input_positions()] == [
        (0, "x1"), (2, "x3"), (3, "count"), (4, "other"),
    ]
    assert Program("Q", [s.increase("step")]).input_positions() == [(0, Var.parse("step"))]

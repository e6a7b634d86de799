from s_expander import Expander
from s_machine import SMachine
from s_program import (
    EXIT, Program, ProgramRepository,
    assignment, constant_assignment, decrease, goto_label, increase, jump_equal_constant,
    jump_equal_function, jump_equal_variable, jump_zero, quote, zero_variable,
)


def run_program(program, inputs=None, degree=0, repository=None, max_steps=100_000):
    """
    Run an S-program once, without an Engine.

    program:    a Program
    inputs:     {"x1": 2, ...}
    degree:     expansion degree to run at (0 = as written)
    repository: where QUOTE looks callees up (default: the shared one)

    Returns the final value of y.
    """
    inputs = inputs or {}

    # Validate inputs: must be non-negative integers
    for name, val in inputs.items():
        if not isinstance(val, int) or val < 0:
            raise ValueError(f"Input {name} must be a non-negative integer, got {val}")

    expander = Expander(program, repository)
    machine = SMachine(expander.get_program(degree), expander.repository, dict(inputs),
                       expander.instruction_cycles)
    return machine.run(max_steps=max_steps)


def example_programs():
    """
    A small library of S-programs, name -> Program. Several of them QUOTE
    each other, so register them all before expanding any.
    """
    programs = [
        # y <- x1
        Program("Identity", [
            assignment("y", "x1"),
        ]),

        # y <- 0 whatever it held
        Program("Zero", [
            zero_variable("y"),
        ]),

        # constant function; leaves through EXIT
        Program("Const3", [
            constant_assignment("y", 3),
            goto_label(EXIT),
        ]),

        Program("Successor", [
            assignment("y", "x1"),
            increase("y"),
        ]),

        # y <- 1 iff x1 > 0
        Program("Positive", [
            jump_zero("x1", EXIT),
            increase("y"),
            goto_label(EXIT),
        ]),

        # y <- x1 + x2, counting x2 down in a copy
        Program("Add", [
            assignment("y", "x1"),
            assignment("z1", "x2"),
            jump_zero("z1", EXIT, label="L1"),
            decrease("z1"),
            increase("y"),
            goto_label("L1"),
        ]),

        # y <- x1 - x2, stopping at 0
        Program("Minus", [
            assignment("y", "x1"),
            assignment("z1", "x2"),
            jump_zero("z1", EXIT, label="L1"),
            decrease("y"),
            decrease("z1"),
            goto_label("L1"),
        ]),

        # y <- 1 iff x1 = x2
        Program("Equal", [
            jump_equal_variable("x1", "x2", "L1"),
            goto_label(EXIT),
            constant_assignment("y", 1, label="L1"),
        ]),

        # y <- 1 iff x1 = 5
        Program("IsFive", [
            jump_equal_constant("x1", 5, "L1"),
            goto_label(EXIT),
            increase("y", label="L1"),
        ]),

        # y <- 1 iff x1 = Const3()
        Program("IsThree", [
            jump_equal_function("x1", "Const3", "", "L1"),
            goto_label(EXIT),
            increase("y", label="L1"),
        ]),

        Program("Double", [
            quote("y", "Add", "x1,x1"),
        ]),

        # y <- x1 * x2 by repeated QUOTE of Add inside a loop
        Program("Multiply", [
            zero_variable("y"),
            assignment("z1", "x2"),
            jump_zero("z1", EXIT, label="L1"),
            quote("y", "Add", "y,x1"),
            decrease("z1"),
            goto_label("L1"),
        ]),

        # Add(Successor(x1), Const3())
        Program("SuccPlusThree", [
            quote("z1", "Successor", "x1"),
            quote("z2", "Const3", ""),
            quote("y", "Add", "z1,z2"),
        ]),
    ]
    return {p.name: p for p in programs}


def example_repository():
    return ProgramRepository(example_programs().values())

# s_machine.py
"""
Interpreter for S-programs.

Every instruction kind has an execute rule in EXECUTE_RULES. A rule mutates
the variable store and returns a label: EMPTY falls through, EXIT halts, any
other label moves the program counter to the instruction bearing it (or
halts when no instruction does).
"""

from __future__ import annotations

import logging
from copy import deepcopy

import s_program
from s_program import (
    ASSIGNMENT, CONSTANT_ASSIGNMENT, CYCLES, DECREASE, EMPTY, GOTO_LABEL, INCREASE, INPUT,
    JUMP_EQUAL_CONSTANT, JUMP_EQUAL_FUNCTION, JUMP_EQUAL_VARIABLE, JUMP_NOT_ZERO, JUMP_ZERO,
    NEUTRAL, QUOTE, TEMP, Y, ZERO_VARIABLE,
    InvalidProgram, Label, Program, ProgramRepository, Var,
)

logger = logging.getLogger(__name__)


# ---------- execute rules ----------

def _exec_increase(instr, m):
    m.set(instr.var, m.get(instr.var) + 1)
    return EMPTY


def _exec_decrease(instr, m):
    m.set(instr.var, max(0, m.get(instr.var) - 1))
    return EMPTY


def _exec_neutral(instr, m):
    return EMPTY


def _exec_jump_not_zero(instr, m):
    return instr.target if m.get(instr.var) != 0 else EMPTY


def _exec_zero_variable(instr, m):
    m.set(instr.var, 0)
    return EMPTY


def _exec_constant_assignment(instr, m):
    m.set(instr.var, instr.constant)
    return EMPTY


def _exec_assignment(instr, m):
    m.set(instr.var, m.get(instr.source))
    return EMPTY


def _exec_goto_label(instr, m):
    return instr.target


def _exec_jump_zero(instr, m):
    return instr.target if m.get(instr.var) == 0 else EMPTY


def _exec_jump_equal_constant(instr, m):
    return instr.target if m.get(instr.var) == instr.constant else EMPTY


def _exec_jump_equal_variable(instr, m):
    return instr.target if m.get(instr.var) == m.get(instr.source) else EMPTY


def _exec_quote(instr, m):
    m.set(instr.var, m.call(instr.function, instr.arguments))
    return EMPTY


def _exec_jump_equal_function(instr, m):
    value = m.call(instr.function, instr.arguments)
    return instr.target if m.get(instr.var) == value else EMPTY


EXECUTE_RULES = {
    INCREASE: _exec_increase,
    DECREASE: _exec_decrease,
    NEUTRAL: _exec_neutral,
    JUMP_NOT_ZERO: _exec_jump_not_zero,
    ZERO_VARIABLE: _exec_zero_variable,
    CONSTANT_ASSIGNMENT: _exec_constant_assignment,
    ASSIGNMENT: _exec_assignment,
    GOTO_LABEL: _exec_goto_label,
    JUMP_ZERO: _exec_jump_zero,
    JUMP_EQUAL_CONSTANT: _exec_jump_equal_constant,
    JUMP_EQUAL_VARIABLE: _exec_jump_equal_variable,
    QUOTE: _exec_quote,
    JUMP_EQUAL_FUNCTION: _exec_jump_equal_function,
}


class SMachine:
    """
    S-language VM for one instruction list.
    Supports step-by-step execution, snapshot history and rewind.

    The store is a plain name -> value dict and may be shared with the host:
    inputs placed there before `reset()` survive it, while `y` and every
    temp are zeroed.
    """

    # ---------- construction ----------

    def __init__(self, program: Program, repository: ProgramRepository | None = None,
                 store: dict | None = None, cost=None, keep_history: bool = False):
        self.program = program
        self.repository = repository if repository is not None else s_program.repository
        self.vars = store if store is not None else {}
        self.cost = cost or (lambda instr: CYCLES.get(instr.kind, 0))
        self.keep_history = keep_history

        self.pc = 0                    # 0-based index of the next instruction
        self.last_pc = None            # index of the instruction executed last
        self.step_count = 0
        self.cycles = 0
        self.halted = False
        self.history = []              # list of snapshots

    # ---------- store ----------

    def get(self, var: Var) -> int:
        return self.vars.get(var.name, 0)

    def set(self, var: Var, value: int):
        if value < 0:
            raise ValueError(f"{var.name} would become negative ({value})")
        self.vars[var.name] = value

    @property
    def output(self) -> int:
        return self.vars.get(Y.name, 0)

    def call(self, function: str, arguments) -> int:
        """Run `function` at degree 0 in a fresh store and return its y."""
        callee = self.repository.get(function)
        if callee is None:
            raise InvalidProgram(f"QUOTE names unknown program '{function}'")
        store = {}
        for pos, v in callee.input_positions():
            if pos < len(arguments):
                store[v.name] = self.get(Var.parse(arguments[pos], TEMP))
        inner = SMachine(callee, self.repository, store, self.cost)
        return inner.run()

    # ---------- execution control ----------

    def reset(self):
        """Zero y and the temps, rewind the counter. Inputs keep their values."""
        self.vars[Y.name] = 0
        for v in self.program.variables():
            if v.kind != INPUT:
                self.vars[v.name] = 0
        for name in list(self.vars):
            if Var.parse(name).kind == TEMP:
                self.vars[name] = 0
        self.pc = 0
        self.last_pc = None
        self.step_count = 0
        self.cycles = 0
        self.halted = not self.program.instructions
        self.history = []
        if self.keep_history:
            self._save_snapshot()

    def run(self, max_steps: int | None = None, trace: bool = False) -> int:
        """Reset, execute until halt and return y."""
        self.reset()
        while not self.halted:
            if max_steps is not None and self.step_count >= max_steps:
                raise RuntimeError("Maximum step count exceeded; possible undefined condition")
            self.step(trace=trace)
        logger.debug("Program '%s' halted after %d steps, %d cycles",
                     self.program.name, self.step_count, self.cycles)
        return self.output

    def step(self, trace: bool = False) -> bool:
        """Execute exactly one instruction. Returns False once the machine has halted."""
        if self.halted:
            return False

        instr = self.program[self.pc]
        if trace:
            print(f"step={self.step_count} line={instr.num} {instr.text()} vars={self.vars}")

        outcome = EXECUTE_RULES[instr.kind](instr, self)
        self.last_pc = self.pc
        self.cycles += self.cost(instr)
        self.step_count += 1
        self._advance(outcome)

        if self.keep_history:
            self._save_snapshot()
        return not self.halted

    # ---------- inspection, history, rewind ----------

    @property
    def line(self) -> int:
        """1-based number of the instruction that runs next; 0 once halted."""
        return 0 if self.halted else self.pc + 1

    @property
    def last_line(self) -> int:
        """1-based number of the instruction executed last; 0 before the first step."""
        return 0 if self.last_pc is None else self.last_pc + 1

    def state(self):
        """Return current state (shallow copy for quick inspection)."""
        return {
            "step": self.step_count,
            "line": self.line,
            "cycles": self.cycles,
            "halted": self.halted,
            "vars": dict(self.vars),
            "next_instr": None if self.halted else self.program[self.pc],
        }

    def print_state(self, idx: int | None = None):
        s = self.history[idx] if idx is not None else self.state()
        print(f"step={s['step']} line={s['line']} cycles={s['cycles']}")
        print("vars:", {k: v for k, v in sorted(s["vars"].items(), key=lambda kv: Var.parse(kv[0]).sort_key())})

    def rewind(self, idx: int):
        """Restore machine to a previous snapshot index."""
        pos = idx if idx >= 0 else len(self.history) + idx
        snap = self.history[pos]
        self.vars.clear()
        self.vars.update(deepcopy(snap["vars"]))
        self.pc = snap["pc"]
        self.last_pc = snap["last_pc"]
        self.step_count = snap["step"]
        self.cycles = snap["cycles"]
        self.halted = snap["halted"]
        del self.history[pos + 1:]

    # ---------- internals ----------

    def _advance(self, outcome: Label):
        if outcome.is_empty:
            self.pc += 1
        elif outcome.is_exit:
            self.halted = True
            return
        else:
            target = self.program.index_of(outcome)
            if target is None:
                logger.debug("Jump to missing label %s in '%s'; halting", outcome, self.program.name)
                self.halted = True
                return
            self.pc = target
        if self.pc >= len(self.program):
            self.halted = True

    def _save_snapshot(self):
        # deep snapshot so history is immutable
        self.history.append({
            "step": self.step_count,
            "pc": self.pc,
            "last_pc": self.last_pc,
            "line": self.line,
            "cycles": self.cycles,
            "halted": self.halted,
            "vars": deepcopy(self.vars),
        })

# s_expander.py
"""
Macro expansion for S-programs.

Each synthetic instruction has one rule in EXPANSION_RULES that rewrites it
into lower-degree instructions. The Expander applies the rules one level at a
time and caches every degree produced so far; entry 0 is the program as
loaded.
"""

from __future__ import annotations

import logging
from dataclasses import replace

import s_program
from s_program import (
    ASSIGNMENT, BASIC_KINDS, CONSTANT_ASSIGNMENT, CYCLES, DECREASE, EMPTY, GOTO_LABEL,
    INCREASE, JUMP_EQUAL_CONSTANT, JUMP_EQUAL_FUNCTION, JUMP_EQUAL_VARIABLE, JUMP_NOT_ZERO,
    JUMP_ZERO, NEUTRAL, QUOTE, TEMP, Y, ZERO_VARIABLE,
    HostMisuse, InvalidProgram, Label, Program, ProgramRepository, Var,
    assignment, constant_assignment, decrease, goto_label, increase, jump_equal_variable,
    jump_not_zero, jump_zero, neutral, next_uid, quote, zero_variable,
)

logger = logging.getLogger(__name__)


# ---------- fresh names ----------

class LabelGenerator:
    """Hands out numeric labels above every label it has been shown."""

    def __init__(self):
        self.labels = set()
        self.highest = 0

    def load_from(self, instructions):
        for instr in instructions:
            for lbl in instr.labels():
                self.add(lbl)

    def add(self, label: Label):
        if label.is_numeric:
            self.labels.add(label)
            self.highest = max(self.highest, label.index)

    def fresh(self) -> Label:
        label = Label.numeric(self.highest + 1)
        self.add(label)
        return label

    def clear(self):
        self.labels.clear()
        self.highest = 0

    def __contains__(self, label):
        return label in self.labels


class TempAllocator:
    """Fresh z-cells; the counter only moves up, across every degree of one program."""

    def __init__(self, start: int = 0):
        self.current = start

    def observe(self, instructions):
        for instr in instructions:
            for v in instr.variables():
                if v.kind == TEMP and not v.alias:
                    self.current = max(self.current, v.index)

    def fresh(self) -> Var:
        self.current += 1
        return Var(TEMP, self.current)


class ExpansionContext:
    """What a rule may draw on: fresh labels and temps, callees, and the caller's cells."""

    def __init__(self, labels: LabelGenerator, temps: TempAllocator,
                 repository: ProgramRepository, caller: Program | None = None):
        self.labels = labels
        self.temps = temps
        self.repository = repository
        self.caller_vars = {v.name: v for v in caller.variables()} if caller else {}

    def label(self) -> Label:
        return self.labels.fresh()

    def temp(self) -> Var:
        return self.temps.fresh()

    def callee(self, name: str) -> Program:
        return self.repository.require(name)

    def resolve(self, name: str) -> Var:
        """The caller's cell called `name`; unknown non-standard names become temps."""
        if name in self.caller_vars:
            return self.caller_vars[name]
        return Var.parse(name, TEMP)


# ---------- expansion rules ----------
# Each rule returns the replacement sequence with an EMPTY first label; the
# Expander moves the original self-label onto that first instruction.

def _expand_basic(instr, ctx):
    return [instr]


def _expand_zero_variable(instr, ctx):
    v, loop = instr.var, ctx.label()
    return [
        jump_not_zero(v, loop),
        decrease(v, loop),
        jump_not_zero(v, loop),
    ]


def _expand_constant_assignment(instr, ctx):
    v = instr.var
    out = [zero_variable(v)]
    out.extend(increase(v) for _ in range(instr.constant))
    if instr.constant == 0:
        # v <- 0 still costs two cycles
        out.extend([increase(v), decrease(v)])
    return out


def _expand_assignment(instr, ctx):
    dst, src = instr.var, instr.source
    if dst == src:
        return [increase(dst), decrease(dst), increase(dst), decrease(dst)]
    helper = ctx.temp()
    move, back, done = ctx.label(), ctx.label(), ctx.label()
    # drain src into dst and helper, then refill src from helper
    return [
        zero_variable(dst),
        jump_not_zero(src, move),
        goto_label(done),
        decrease(src, move),
        increase(helper),
        jump_not_zero(src, move),
        decrease(helper, back),
        increase(dst),
        increase(src),
        jump_not_zero(helper, back),
        neutral(dst, done),
    ]


def _expand_goto_label(instr, ctx):
    t = ctx.temp()
    return [
        increase(t),
        jump_not_zero(t, instr.target),
    ]


def _expand_jump_zero(instr, ctx):
    skip = ctx.label()
    return [
        jump_not_zero(instr.var, skip),
        goto_label(instr.target),
        neutral(instr.var, skip),
    ]


def _countdown(left, load_right, target, ctx):
    """
    Copy `left` into a, load b with `load_right`, then decrement both in
    lockstep. Equal iff a is empty exactly when b runs out.
    """
    a, b = ctx.temp(), ctx.temp()
    loop, done, differ = ctx.label(), ctx.label(), ctx.label()
    return [
        assignment(a, left),
        load_right(b),
        jump_zero(b, done, loop),
        jump_zero(a, differ),
        decrease(a),
        decrease(b),
        goto_label(loop),
        jump_zero(a, target, done),
        neutral(a, differ),
    ]


def _expand_jump_equal_constant(instr, ctx):
    return _countdown(instr.var, lambda b: constant_assignment(b, instr.constant),
                      instr.target, ctx)


def _expand_jump_equal_variable(instr, ctx):
    return _countdown(instr.var, lambda b: assignment(b, instr.source), instr.target, ctx)


def _expand_quote(instr, ctx):
    return inline(ctx.callee(instr.function), instr.arguments, instr.var, ctx)


def _expand_jump_equal_function(instr, ctx):
    t = ctx.temp()
    return [
        quote(t, instr.function, instr.arguments),
        jump_equal_variable(instr.var, t, instr.target),
    ]


def inline(callee: Program, arguments, result: Var, ctx: ExpansionContext) -> list:
    """
    Splice `callee` into the caller with every cell and label renamed.

    Input xN binds to the N-th of `arguments` (missing ones start at 0), the
    callee's output lands in a fresh cell that is copied into `result`, and
    EXIT inside the callee becomes a jump to a local join label placed right
    before that copy.
    """
    mapping = {}
    inputs = callee.input_positions()
    for _, v in inputs:
        mapping[v.name] = ctx.temp()
    temps = [v for v in callee.temps() if v.name not in mapping]
    for v in temps:
        mapping[v.name] = ctx.temp()
    out_var = ctx.temp()
    mapping[Y.name] = out_var
    relabel = {lbl: ctx.label() for lbl in callee.numeric_labels()}
    end = ctx.label()

    def cell(v):
        if v is None:
            return None
        if v.name not in mapping:
            mapping[v.name] = ctx.temp()
        return mapping[v.name]

    def self_label(lbl):
        return relabel.get(lbl, EMPTY)

    def target(lbl):
        if lbl.is_exit:
            return end
        return relabel.get(lbl, lbl)

    body = []
    for pos, v in inputs:
        if pos < len(arguments):
            body.append(assignment(mapping[v.name], ctx.resolve(arguments[pos])))
        else:
            body.append(zero_variable(mapping[v.name]))
    for v in temps:
        body.append(zero_variable(mapping[v.name]))
    body.append(zero_variable(out_var))

    for instr in callee:
        body.append(replace(
            instr,
            var=cell(instr.var),
            source=cell(instr.source),
            label=self_label(instr.label),
            target=target(instr.target),
            arguments=tuple(cell(Var.parse(a, TEMP)).name for a in instr.arguments),
            parent=None,
            uid=next_uid(),
        ))

    body.append(neutral(out_var, end))
    body.append(assignment(result, out_var))
    return body


EXPANSION_RULES = {
    INCREASE: _expand_basic,
    DECREASE: _expand_basic,
    NEUTRAL: _expand_basic,
    JUMP_NOT_ZERO: _expand_basic,
    ZERO_VARIABLE: _expand_zero_variable,
    CONSTANT_ASSIGNMENT: _expand_constant_assignment,
    ASSIGNMENT: _expand_assignment,
    GOTO_LABEL: _expand_goto_label,
    JUMP_ZERO: _expand_jump_zero,
    JUMP_EQUAL_CONSTANT: _expand_jump_equal_constant,
    JUMP_EQUAL_VARIABLE: _expand_jump_equal_variable,
    QUOTE: _expand_quote,
    JUMP_EQUAL_FUNCTION: _expand_jump_equal_function,
}


def expand_instruction(instr, ctx: ExpansionContext) -> list:
    """One level of expansion; emitted instructions point back at `instr`."""
    rule = EXPANSION_RULES.get(instr.kind)
    if rule is None:
        raise InvalidProgram(f"No expansion rule for instruction kind {instr.kind}")
    emitted = rule(instr, ctx)
    if len(emitted) == 1 and emitted[0] is instr:
        return emitted
    first, rest = emitted[0], emitted[1:]
    out = [replace(first, label=instr.label, parent=instr.uid, uid=next_uid())]
    out.extend(replace(j, parent=instr.uid, uid=next_uid()) for j in rest)
    return out


# ---------- expansion cache ----------

class Expander:
    """
    Degree cache for one program. `get_program(d)` expands lazily; the
    constructor measures the maximal degree, which also rejects unknown or
    recursive QUOTE callees up front.
    """

    def __init__(self, program: Program, repository: ProgramRepository | None = None):
        self.repository = repository if repository is not None else s_program.repository
        self.programs = [program]
        self.arena = {instr.uid: instr for instr in program}
        self.label_generator = LabelGenerator()
        self.temps = TempAllocator()
        self.temps.observe(program)
        self._depths = {}
        self._cycles = {}
        self._active = []
        self._max_degree = self.program_depth(program)

    @property
    def name(self) -> str:
        return self.programs[0].name

    def max_degree(self) -> int:
        return self._max_degree

    def get_program(self, degree: int) -> Program:
        if not isinstance(degree, int) or not 0 <= degree <= self._max_degree:
            raise HostMisuse(f"Degree {degree!r} outside 0..{self._max_degree}")
        while len(self.programs) <= degree:
            self.expand_once()
        return self.programs[degree]

    def cycles(self, degree: int) -> int:
        return sum(self.instruction_cycles(instr) for instr in self.get_program(degree))

    def expand_once(self) -> Program:
        current = self.programs[-1]
        self.label_generator.clear()
        self.label_generator.load_from(current)
        self.temps.observe(current)
        ctx = ExpansionContext(self.label_generator, self.temps, self.repository, current)

        emitted = []
        for instr in current:
            emitted.extend(expand_instruction(instr, ctx))
        program = Program(current.name, emitted)
        for instr in program:
            self.arena.setdefault(instr.uid, instr)
        self.programs.append(program)
        logger.debug("Expanded '%s' to degree %d: %d -> %d instructions",
                     program.name, len(self.programs) - 1, len(current), len(program))
        return program

    def lineage(self, instr) -> list:
        """`instr` followed by the chain of instructions it was expanded from."""
        chain = [instr]
        parent = instr.parent
        while parent is not None and parent in self.arena:
            node = self.arena[parent]
            chain.append(node)
            parent = node.parent
        return chain

    # ---------- measurement ----------

    def _scratch(self) -> ExpansionContext:
        return ExpansionContext(LabelGenerator(), TempAllocator(), self.repository)

    def _enter(self, instr):
        if instr.function in self._active:
            chain = " -> ".join(self._active + [instr.function])
            raise InvalidProgram(f"Recursive QUOTE: {chain}")
        self._active.append(instr.function)

    def depth(self, instr) -> int:
        """0 for basics, else 1 + the deepest instruction of its expansion."""
        if instr.kind in BASIC_KINDS:
            return 0
        if instr in self._depths:
            return self._depths[instr]
        quoting = instr.kind == QUOTE
        if quoting:
            self._enter(instr)
        try:
            body = expand_instruction(instr, self._scratch())
            result = 1 + max(self.depth(j) for j in body)
        finally:
            if quoting:
                self._active.pop()
        self._depths[instr] = result
        return result

    def program_depth(self, program: Program) -> int:
        return max((self.depth(instr) for instr in program), default=0)

    def instruction_cycles(self, instr) -> int:
        """Table cost, or for QUOTE / JUMP_EQUAL_FUNCTION the cost of the emitted body."""
        if instr.kind in CYCLES:
            return CYCLES[instr.kind]
        if instr in self._cycles:
            return self._cycles[instr]
        quoting = instr.kind == QUOTE
        if quoting:
            self._enter(instr)
        try:
            body = expand_instruction(instr, self._scratch())
            result = sum(self.instruction_cycles(j) for j in body)
        finally:
            if quoting:
                self._active.pop()
        self._cycles[instr] = result
        return result

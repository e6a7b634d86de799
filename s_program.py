# s_program.py
"""
Program model for the S-language: labels, variables, instructions,
programs and the repository QUOTE resolves callees from.

Instructions are plain records tagged by `kind`; their behaviour lives in
rule tables (execute rules in s_machine, expansion rules in s_expander),
not in subclasses.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from itertools import count

logger = logging.getLogger(__name__)


# ---------- errors ----------

class SLanguageError(Exception):
    """Base class for every error raised by the emulator."""


class LoadError(SLanguageError, ValueError):
    """The program description is missing, malformed or names an unknown instruction."""


class InvalidProgram(SLanguageError, ValueError):
    """Unresolvable jump target, unknown QUOTE callee or recursive QUOTE chain."""


class HostMisuse(SLanguageError, RuntimeError):
    """The host asked for something the engine cannot do in its current state."""


# ---------- labels ----------

LABEL_EMPTY = "EMPTY"
LABEL_EXIT = "EXIT"
LABEL_NUMERIC = "NUMERIC"


@dataclass(frozen=True, order=True)
class Label:
    kind: str
    index: int = 0

    @classmethod
    def numeric(cls, index: int) -> "Label":
        if index < 0:
            raise ValueError(f"Label index must be non-negative, got {index}")
        return cls(LABEL_NUMERIC, index)

    @classmethod
    def parse(cls, token: str | None) -> "Label":
        """L<n> is numeric, anything starting with E is EXIT, the rest is EMPTY."""
        if token is None:
            return EMPTY
        token = token.strip()
        if not token:
            return EMPTY
        head = token[0].upper()
        if head == "L":
            digits = token[1:].strip()
            if not digits.isdigit():
                raise LoadError(f"Bad label token '{token}'")
            return cls.numeric(int(digits))
        if head == "E":
            return EXIT
        return EMPTY

    @property
    def is_numeric(self) -> bool:
        return self.kind == LABEL_NUMERIC

    @property
    def is_empty(self) -> bool:
        return self.kind == LABEL_EMPTY

    @property
    def is_exit(self) -> bool:
        return self.kind == LABEL_EXIT

    def __str__(self):
        if self.kind == LABEL_NUMERIC:
            return f"L{self.index}"
        if self.kind == LABEL_EXIT:
            return "EXIT"
        return ""


EMPTY = Label(LABEL_EMPTY)
EXIT = Label(LABEL_EXIT)


def as_label(value) -> Label:
    if isinstance(value, Label):
        return value
    return Label.parse(value)


# ---------- variables ----------

INPUT = "x"
OUTPUT = "y"
TEMP = "z"

_VAR_TOKEN = re.compile(r"^([xz])(\d+)$")


@dataclass(frozen=True)
class Var:
    """
    A storage cell reference. Identity is kind + index; the printed name is
    derived. Cells mentioned under a non-standard name keep it in `alias`
    (index 0).
    """
    kind: str
    index: int = 0
    alias: str = ""

    @property
    def name(self) -> str:
        if self.alias:
            return self.alias
        if self.kind == OUTPUT:
            return "y"
        return f"{self.kind}{self.index}"

    @classmethod
    def parse(cls, token: str, unknown: str = INPUT) -> "Var":
        """y, xN and zN are the standard cells; other names become `unknown`-kind aliases."""
        if not isinstance(token, str) or not token.strip():
            raise ValueError(f"Bad variable token {token!r}")
        token = token.strip()
        lowered = token.lower()
        if lowered == "y":
            return Y
        m = _VAR_TOKEN.match(lowered)
        if m and int(m.group(2)) > 0:
            return cls(m.group(1), int(m.group(2)))
        return cls(unknown, 0, token)

    def sort_key(self):
        order = {OUTPUT: 0, INPUT: 1, TEMP: 2}[self.kind]
        return (order, self.alias != "", self.index, self.alias)

    def __str__(self):
        return self.name


Y = Var(OUTPUT)


def as_var(value, unknown: str = INPUT) -> Var:
    if isinstance(value, Var):
        return value
    return Var.parse(value, unknown)


def split_arguments(text: str | None) -> tuple[str, ...]:
    """'x1, z2' -> ('x1', 'z2'); blank pieces are dropped."""
    if not text:
        return ()
    return tuple(a.strip() for a in text.split(",") if a.strip())


# ---------- instruction set ----------

INCREASE = "INCREASE"
DECREASE = "DECREASE"
NEUTRAL = "NEUTRAL"
JUMP_NOT_ZERO = "JUMP_NOT_ZERO"
ZERO_VARIABLE = "ZERO_VARIABLE"
CONSTANT_ASSIGNMENT = "CONSTANT_ASSIGNMENT"
ASSIGNMENT = "ASSIGNMENT"
GOTO_LABEL = "GOTO_LABEL"
JUMP_ZERO = "JUMP_ZERO"
JUMP_EQUAL_CONSTANT = "JUMP_EQUAL_CONSTANT"
JUMP_EQUAL_VARIABLE = "JUMP_EQUAL_VARIABLE"
QUOTE = "QUOTE"
JUMP_EQUAL_FUNCTION = "JUMP_EQUAL_FUNCTION"

BASIC_KINDS = frozenset({INCREASE, DECREASE, NEUTRAL, JUMP_NOT_ZERO})
SYNTHETIC_KINDS = frozenset({
    ZERO_VARIABLE, CONSTANT_ASSIGNMENT, ASSIGNMENT, GOTO_LABEL, JUMP_ZERO,
    JUMP_EQUAL_CONSTANT, JUMP_EQUAL_VARIABLE, QUOTE, JUMP_EQUAL_FUNCTION,
})
ALL_KINDS = BASIC_KINDS | SYNTHETIC_KINDS

# QUOTE and JUMP_EQUAL_FUNCTION cost whatever their expansion costs (see s_expander)
CYCLES = {
    INCREASE: 1,
    DECREASE: 1,
    NEUTRAL: 0,
    JUMP_NOT_ZERO: 2,
    ZERO_VARIABLE: 1,
    CONSTANT_ASSIGNMENT: 2,
    ASSIGNMENT: 4,
    GOTO_LABEL: 1,
    JUMP_ZERO: 2,
    JUMP_EQUAL_CONSTANT: 2,
    JUMP_EQUAL_VARIABLE: 2,
}

_uids = count(1)


def next_uid() -> int:
    return next(_uids)


@dataclass(frozen=True)
class Instruction:
    """
    One S-language instruction.

    `var` is the primary operand, `source` the secondary one (Assignment
    source, JumpEqualVariable right-hand side). `num` is the 1-based position
    in the list that holds it; `parent` is the uid of the instruction this one
    was expanded from. Neither takes part in equality.
    """
    kind: str
    var: Var | None = None
    label: Label = EMPTY
    target: Label = EMPTY
    source: Var | None = None
    constant: int = 0
    function: str = ""
    arguments: tuple[str, ...] = ()
    num: int = field(default=0, compare=False)
    parent: int | None = field(default=None, compare=False)
    uid: int = field(default_factory=next_uid, compare=False)

    @property
    def is_basic(self) -> bool:
        return self.kind in BASIC_KINDS

    def variables(self) -> list[Var]:
        """Every cell this instruction reads or writes, QUOTE arguments included."""
        out = [v for v in (self.var, self.source) if v is not None]
        for a in self.arguments:
            out.append(Var.parse(a, TEMP))
        return out

    def labels(self) -> list[Label]:
        return [self.label, self.target]

    def text(self) -> str:
        v = self.var.name if self.var is not None else "?"
        t = str(self.target)
        call = f"({self.function}" + "".join(f",{a}" for a in self.arguments) + ")"
        k = self.kind
        if k == INCREASE:
            return f"{v} <- {v} + 1"
        if k == DECREASE:
            return f"{v} <- {v} - 1"
        if k == NEUTRAL:
            return f"{v} <- {v}"
        if k == JUMP_NOT_ZERO:
            return f"IF {v} != 0 GOTO {t}"
        if k == ZERO_VARIABLE:
            return f"{v} <- 0"
        if k == CONSTANT_ASSIGNMENT:
            return f"{v} <- {self.constant}"
        if k == ASSIGNMENT:
            return f"{v} <- {self.source}"
        if k == GOTO_LABEL:
            return f"GOTO {t}"
        if k == JUMP_ZERO:
            return f"IF {v} = 0 GOTO {t}"
        if k == JUMP_EQUAL_CONSTANT:
            return f"IF {v} = {self.constant} GOTO {t}"
        if k == JUMP_EQUAL_VARIABLE:
            return f"IF {v} = {self.source} GOTO {t}"
        if k == QUOTE:
            return f"{v} <- {call}"
        if k == JUMP_EQUAL_FUNCTION:
            return f"IF {v} = {call} GOTO {t}"
        return k

    def render(self, cycles: int | None = None) -> str:
        """'#3 (S) [ L1  ] x1 <- 0 (1)' as in the program table."""
        kind = "B" if self.is_basic else "S"
        cost = CYCLES.get(self.kind) if cycles is None else cycles
        tail = f" ({cost})" if cost is not None else ""
        return f"#{self.num} ({kind}) [ {str(self.label):<4}] {self.text()}{tail}"

    def __str__(self):
        return self.text()


# Factories. Variables and labels may be given as tokens ('x1', 'L2', 'EXIT').

def increase(var, label=EMPTY) -> Instruction:
    return Instruction(INCREASE, as_var(var), as_label(label))


def decrease(var, label=EMPTY) -> Instruction:
    return Instruction(DECREASE, as_var(var), as_label(label))


def neutral(var, label=EMPTY) -> Instruction:
    return Instruction(NEUTRAL, as_var(var), as_label(label))


def jump_not_zero(var, target, label=EMPTY) -> Instruction:
    return Instruction(JUMP_NOT_ZERO, as_var(var), as_label(label), as_label(target))


def zero_variable(var, label=EMPTY) -> Instruction:
    return Instruction(ZERO_VARIABLE, as_var(var), as_label(label))


def constant_assignment(var, constant: int, label=EMPTY) -> Instruction:
    if constant < 0:
        raise ValueError(f"Constant must be non-negative, got {constant}")
    return Instruction(CONSTANT_ASSIGNMENT, as_var(var), as_label(label), constant=constant)


def assignment(var, source, label=EMPTY) -> Instruction:
    return Instruction(ASSIGNMENT, as_var(var), as_label(label), source=as_var(source))


def goto_label(target, label=EMPTY) -> Instruction:
    return Instruction(GOTO_LABEL, None, as_label(label), as_label(target))


def jump_zero(var, target, label=EMPTY) -> Instruction:
    return Instruction(JUMP_ZERO, as_var(var), as_label(label), as_label(target))


def jump_equal_constant(var, constant: int, target, label=EMPTY) -> Instruction:
    if constant < 0:
        raise ValueError(f"Constant must be non-negative, got {constant}")
    return Instruction(JUMP_EQUAL_CONSTANT, as_var(var), as_label(label), as_label(target),
                       constant=constant)


def jump_equal_variable(var, other, target, label=EMPTY) -> Instruction:
    return Instruction(JUMP_EQUAL_VARIABLE, as_var(var), as_label(label), as_label(target),
                       source=as_var(other))


def quote(var, function: str, arguments=(), label=EMPTY) -> Instruction:
    if isinstance(arguments, str):
        arguments = split_arguments(arguments)
    return Instruction(QUOTE, as_var(var), as_label(label), function=function,
                       arguments=tuple(arguments))


def jump_equal_function(var, function: str, arguments, target, label=EMPTY) -> Instruction:
    if isinstance(arguments, str):
        arguments = split_arguments(arguments)
    return Instruction(JUMP_EQUAL_FUNCTION, as_var(var), as_label(label), as_label(target),
                       function=function, arguments=tuple(arguments))


# ---------- programs ----------

class Program:
    """
    A named, ordered instruction list with its label index.

    Instructions are renumbered 1..n on construction. The label index maps
    each self-label (numeric, or EXIT when an instruction carries it) to the
    0-based position of the first instruction bearing it.
    """

    def __init__(self, name: str, instructions):
        self.name = name
        self.instructions = [
            instr if instr.num == n else replace(instr, num=n)
            for n, instr in enumerate(instructions, start=1)
        ]
        self.labels = {}
        for pos, instr in enumerate(self.instructions):
            if not instr.label.is_empty:
                self.labels.setdefault(instr.label, pos)

    def __len__(self):
        return len(self.instructions)

    def __iter__(self):
        return iter(self.instructions)

    def __getitem__(self, idx):
        return self.instructions[idx]

    def __repr__(self):
        return f"Program({self.name!r}, {len(self.instructions)} instructions)"

    def index_of(self, label: Label) -> int | None:
        return self.labels.get(label)

    def check_labels(self) -> bool:
        """Every jump target is EMPTY, EXIT or some instruction's self-label."""
        return not self.unresolved_labels()

    def unresolved_labels(self) -> list[Label]:
        missing = []
        for instr in self.instructions:
            t = instr.target
            if t.is_empty or t.is_exit or t in self.labels:
                continue
            if t not in missing:
                missing.append(t)
        return missing

    def numeric_labels(self) -> list[Label]:
        """Numeric labels used as self-labels or targets, first appearance first."""
        seen = []
        for instr in self.instructions:
            for lbl in instr.labels():
                if lbl.is_numeric and lbl not in seen:
                    seen.append(lbl)
        return seen

    def variables(self) -> list[Var]:
        seen = []
        for instr in self.instructions:
            for v in instr.variables():
                if v not in seen:
                    seen.append(v)
        return seen

    def inputs(self) -> list[Var]:
        """Input cells, x1, x2, ... by index, then aliases in first-appearance order."""
        found = [v for v in self.variables() if v.kind == INPUT]
        return sorted(found, key=lambda v: (v.alias != "", v.index))

    def input_positions(self) -> list[tuple[int, Var]]:
        """
        (argument position, cell) for each input: xN takes position N-1,
        aliases take the positions after the highest xN.
        """
        found = self.inputs()
        extra = max((v.index for v in found if not v.alias), default=0)
        out = []
        for v in found:
            if v.alias:
                out.append((extra, v))
                extra += 1
            else:
                out.append((v.index - 1, v))
        return out

    def temps(self) -> list[Var]:
        return [v for v in self.variables() if v.kind == TEMP]

    def functions(self) -> list[str]:
        """Names this program QUOTEs, first appearance first."""
        names = []
        for instr in self.instructions:
            if instr.function and instr.function not in names:
                names.append(instr.function)
        return names

    def render(self, cycles=None) -> str:
        """One program-table line per instruction; `cycles` maps an instruction to its cost."""
        lines = []
        for instr in self.instructions:
            lines.append(instr.render(cycles(instr) if cycles else None))
        return "\n".join(lines)


# ---------- repository ----------

class ProgramRepository:
    """Name -> Program registry used by QUOTE to find callees."""

    def __init__(self, programs=None):
        self.programs = {}
        for p in programs or ():
            self.register(p)

    def register(self, program: Program):
        """Add or replace `program` under its name."""
        if not isinstance(program, Program) or not program.name:
            raise ValueError("Only named programs can be registered")
        if program.name in self.programs:
            logger.debug("Replacing program '%s' in repository", program.name)
        self.programs[program.name] = program

    def register_all(self, programs):
        for p in programs:
            self.register(p)

    def get(self, name: str) -> Program | None:
        return self.programs.get(name)

    def require(self, name: str) -> Program:
        program = self.programs.get(name)
        if program is None:
            raise InvalidProgram(f"QUOTE names unknown program '{name}'")
        return program

    def names(self) -> list[str]:
        return sorted(self.programs)

    def remove(self, name: str):
        """Delete a program. No error if absent."""
        self.programs.pop(name, None)

    def clear(self):
        self.programs.clear()

    def copy(self) -> "ProgramRepository":
        return ProgramRepository(self.programs.values())

    def __contains__(self, name):
        return name in self.programs

    def __len__(self):
        return len(self.programs)


# process-wide registry; engines use it unless handed their own
repository = ProgramRepository()

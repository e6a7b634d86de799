# s_engine.py
"""
Host-facing facade: load a program, look at it at any degree, run it, keep a
run history, and drive a step-by-step debug session.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass

import s_loader
import s_program
from s_expander import Expander
from s_machine import SMachine
from s_program import (
    INPUT, OUTPUT, TEMP, Y,
    HostMisuse, InvalidProgram, LoadError, ProgramRepository, Var,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunRecord:
    run_id: int
    degree: int
    inputs: tuple
    y: int
    cycles: int

    def __str__(self):
        return (f"#{self.run_id} | degree = {self.degree} | inputs = {list(self.inputs)} "
                f"| y = {self.y} | cycles = {self.cycles}")


class Engine:
    """
    Emulator engine. Owns the current program's expansion cache, the variable
    store (name -> value) and the run history.

    Queries made with no program loaded, or with a degree outside
    0..max_degree(), log a warning and return an empty result.
    """

    def __init__(self, repository: ProgramRepository | None = None, max_steps: int | None = None):
        self.repository = repository if repository is not None else s_program.repository
        self.max_steps = max_steps
        self.expander = None
        self.vars = {}
        self.history = []
        self._run_counter = 0
        self._debug = None             # SMachine of the running debug session
        self._debug_degree = 0
        self._debug_inputs = ()

    # ---------- loading ----------

    def load_from_abstract(self, source) -> bool:
        """
        Load a description (see s_loader.read) or a built Program. The main program and its
        functions are registered only if all of them are valid; on failure the
        previously loaded program stays in place.
        """
        try:
            programs = s_loader.load(source)
            staged = self.repository.copy()
            staged.register_all(programs)
            expander = Expander(programs[0], staged)
        except (LoadError, InvalidProgram) as exc:
            logger.error("Error loading program: %s", exc)
            return False

        self.repository.register_all(programs)
        expander.repository = self.repository
        self.expander = expander
        self.vars = {Y.name: 0}
        for v in programs[0].variables():
            self.vars.setdefault(v.name, 0)
        self.history.clear()
        self._run_counter = 0
        self.debug_stop()
        logger.info("Program '%s' loaded successfully (max degree %d)",
                    expander.name, expander.max_degree())
        return True

    def load_file(self, path) -> bool:
        return self.load_from_abstract(path)

    # ---------- status ----------

    def is_loaded(self) -> bool:
        return self.expander is not None

    @property
    def program_name(self) -> str:
        return self.expander.name if self.expander else "No Program"

    def max_degree(self) -> int:
        return self.expander.max_degree() if self.expander else 0

    def _program(self, degree):
        if self.expander is None:
            raise HostMisuse("No program loaded")
        return self.expander.get_program(degree)

    def validate_program(self, degree: int) -> bool:
        try:
            return self._program(degree).check_labels()
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return False

    def get_instructions(self, degree: int) -> list:
        try:
            return list(self._program(degree))
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return []

    def get_cycles(self, degree: int) -> int:
        try:
            self._program(degree)
            return self.expander.cycles(degree)
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return 0

    def instruction_cycles(self, instr) -> int:
        if self.expander is None:
            return s_program.CYCLES.get(instr.kind, 0)
        return self.expander.instruction_cycles(instr)

    def get_expansion_lineage(self, instr) -> list:
        """`instr` and each instruction it descends from, newest first."""
        if self.expander is None:
            return [instr]
        return self.expander.lineage(instr)

    def used_inputs(self) -> list[Var]:
        """Input cells the loaded program refers to, x1 first."""
        if self.expander is None:
            return []
        return self.expander.get_program(0).inputs()

    # ---------- variables ----------

    def load_inputs(self, values):
        """
        Set input cells. A mapping sets cells by name (unknown names become
        new inputs); a sequence sets x1, x2, ... in order.
        """
        if isinstance(values, Mapping):
            items = list(values.items())
        else:
            items = [(f"x{i}", v) for i, v in enumerate(values, start=1)]
        checked = []
        for name, value in items:
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"Input {name} must be a non-negative integer, got {value}")
            var = Var.parse(name)
            if var.kind != INPUT:
                raise ValueError(f"{name} is not an input variable")
            checked.append((var.name, value))
        self.vars.update(checked)

    def reset_vars(self):
        for name in self.vars:
            self.vars[name] = 0

    def var_by_type(self):
        """([y], inputs, temps) as (name, value) pairs in index order."""
        groups = {OUTPUT: [], INPUT: [], TEMP: []}
        names = set(self.vars)
        if self.expander is not None:
            for program in self.expander.programs:
                names.update(v.name for v in program.variables())
        for name in sorted(names, key=lambda n: Var.parse(n).sort_key()):
            var = Var.parse(name)
            groups[var.kind].append((var.name, self.vars.get(name, 0)))
        return groups[OUTPUT], groups[INPUT], groups[TEMP]

    # ---------- running ----------

    def _machine(self, program, keep_history=False):
        return SMachine(program, self.repository, self.vars, self.instruction_cycles,
                        keep_history=keep_history)

    def run_program(self, degree: int) -> int | None:
        """Zero y and the temps, run the degree-`degree` program and return y."""
        try:
            program = self._program(degree)
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return None
        if self._debug is not None:
            logger.info("Stopping debug session to run '%s'", program.name)
            self.debug_stop()
        y = self._machine(program).run(max_steps=self.max_steps)
        logger.info("Run of '%s' at degree %d finished: y = %d", program.name, degree, y)
        return y

    def run_and_record(self, degree: int, inputs=()) -> int | None:
        try:
            self._program(degree)
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return None
        self.load_inputs(inputs)
        y = self.run_program(degree)
        if y is not None:
            self._record(degree, inputs, y)
        return y

    def _record(self, degree, inputs, y):
        if isinstance(inputs, Mapping):
            inputs = tuple(inputs.items())
        self._run_counter += 1
        self.history.append(RunRecord(self._run_counter, degree, tuple(inputs), y,
                                      self.expander.cycles(degree)))

    def get_history(self) -> list[RunRecord]:
        return list(self.history)

    # ---------- debugging ----------

    def debug_start(self, degree: int, inputs=()) -> bool:
        try:
            program = self._program(degree)
        except HostMisuse as exc:
            logger.warning("%s", exc)
            return False
        self.load_inputs(inputs)
        self._debug = self._machine(program, keep_history=True)
        self._debug.reset()
        self._debug_degree = degree
        self._debug_inputs = inputs
        logger.debug("Debug started for degree %d with %d instructions", degree, len(program))
        if self._debug.halted:
            self._finish_debug()
        return True

    def debug_step(self) -> bool:
        """Execute one instruction. False when there is nothing left to run."""
        if self._debug is None:
            return False
        m = self._debug
        running = m.step()
        logger.debug("Debug: executed line %d (%d cycles so far)", m.last_line, m.cycles)
        if not running:
            self._finish_debug()
        return running

    def debug_back(self) -> bool:
        """Undo the last debug step."""
        if self._debug is None or len(self._debug.history) < 2:
            return False
        self._debug.rewind(-2)
        return True

    def debug_resume(self) -> int | None:
        """Run the debug session to completion and return y."""
        if self._debug is None:
            return None
        m = self._debug
        while not m.halted:
            if self.max_steps is not None and m.step_count >= self.max_steps:
                raise RuntimeError("Maximum step count exceeded; possible undefined condition")
            m.step()
        y = m.output
        self._finish_debug()
        return y

    def debug_stop(self):
        self._debug = None
        self._debug_inputs = ()

    def _finish_debug(self):
        logger.debug("Debug: program execution completed")
        self._record(self._debug_degree, self._debug_inputs, self._debug.output)
        self.debug_stop()

    @property
    def is_debugging(self) -> bool:
        return self._debug is not None

    @property
    def debug_line(self) -> int:
        """1-based line that the next debug step executes; 0 when not debugging."""
        return self._debug.line if self._debug is not None else 0

    @property
    def debug_last_line(self) -> int:
        return self._debug.last_line if self._debug is not None else 0

    @property
    def debug_cycles(self) -> int:
        """Cycles executed by the debug session; after a run, those of the last record."""
        if self._debug is not None:
            return self._debug.cycles
        return self.history[-1].cycles if self.history else 0

    # ---------- printing ----------

    def print_program(self, degree: int = 0):
        if not self.is_loaded():
            print("No program loaded.")
            return
        try:
            program = self._program(degree)
        except HostMisuse as exc:
            print(exc)
            return
        print(f"Program '{program.name}' degree {degree}/{self.max_degree()} "
              f"cycles {self.expander.cycles(degree)}")
        print(program.render(self.instruction_cycles))

    def print_history(self):
        if not self.history:
            print("No runs recorded yet.")
            return
        for r in self.history:
            print(r)

# s_loader.py
"""
Reading program descriptions.

A description is a named program: an ordered list of instructions, each with
an instruction name, an optional variable, an optional self-label and a bag
of string arguments, plus any number of named functions with the same shape.
It can arrive as XML (S-Program / S-Instructions / S-Instruction ...), as a
mapping or JSON file with the same content, or as a ProgramSpec directly.
"""

from __future__ import annotations

import json
import logging
import os
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from dataclasses import dataclass, field

from s_program import (
    ALL_KINDS, ASSIGNMENT, CONSTANT_ASSIGNMENT, DECREASE, GOTO_LABEL, INCREASE,
    JUMP_EQUAL_CONSTANT, JUMP_EQUAL_VARIABLE, JUMP_NOT_ZERO, JUMP_ZERO,
    NEUTRAL, QUOTE, ZERO_VARIABLE,
    Instruction, InvalidProgram, Label, LoadError, Program, Var, split_arguments,
)

logger = logging.getLogger(__name__)

NAME_ALIASES = {"JNZ": JUMP_NOT_ZERO, "NO_OP": NEUTRAL}


@dataclass
class InstructionSpec:
    name: str
    variable: str | None = None
    label: str | None = None
    arguments: dict = field(default_factory=dict)


@dataclass
class ProgramSpec:
    name: str
    instructions: list = field(default_factory=list)
    functions: list = field(default_factory=list)


# ---------- readers ----------

def parse_xml(text: str) -> ProgramSpec:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise LoadError(f"Malformed XML: {exc}") from exc
    spec = _program_from_element(root, "program")
    functions = root.find("S-Functions")
    if functions is not None:
        for elem in functions.findall("S-Function"):
            spec.functions.append(_program_from_element(elem, "function"))
    return spec


def _program_from_element(elem, what) -> ProgramSpec:
    name = (elem.get("name") or "").strip()
    if not name:
        raise LoadError(f"The {what} element <{elem.tag}> has no name")
    body = elem.find("S-Instructions")
    if body is None:
        raise LoadError(f"{what.capitalize()} '{name}' has no S-Instructions")
    spec = ProgramSpec(name)
    for node in body.findall("S-Instruction"):
        arguments = {}
        args_elem = node.find("S-Instruction-Arguments")
        if args_elem is not None:
            for arg in args_elem.findall("S-Instruction-Argument"):
                arguments[arg.get("name", "")] = arg.get("value", "")
        spec.instructions.append(InstructionSpec(
            name=node.get("name", ""),
            variable=_text(node.find("S-Variable")),
            label=_text(node.find("S-Label")),
            arguments=arguments,
        ))
    return spec


def _text(elem) -> str | None:
    if elem is None or elem.text is None:
        return None
    return elem.text.strip() or None


def parse_mapping(data: Mapping) -> ProgramSpec:
    if not isinstance(data, Mapping):
        raise LoadError("A program description must be a mapping")
    name = str(data.get("name") or "").strip()
    if not name:
        raise LoadError("The program description has no name")
    instructions = data.get("instructions")
    if not isinstance(instructions, list):
        raise LoadError(f"Program '{name}' has no instruction list")
    spec = ProgramSpec(name)
    for item in instructions:
        if not isinstance(item, Mapping):
            raise LoadError(f"Program '{name}': instructions must be mappings")
        spec.instructions.append(InstructionSpec(
            name=str(item.get("name", "")),
            variable=item.get("variable"),
            label=item.get("label"),
            arguments={str(k): str(v) for k, v in (item.get("arguments") or {}).items()},
        ))
    for fn in data.get("functions") or []:
        spec.functions.append(parse_mapping(fn))
    return spec


def parse_file(path) -> ProgramSpec:
    path = os.fspath(path)
    if not os.path.isfile(path):
        raise LoadError(f"File does not exist: {path}")
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    if path.lower().endswith(".json"):
        try:
            return parse_mapping(json.loads(text))
        except json.JSONDecodeError as exc:
            raise LoadError(f"Malformed JSON in {path}: {exc}") from exc
    if not path.lower().endswith(".xml"):
        raise LoadError(f"File is not an XML or JSON file: {path}")
    return parse_xml(text)


def read(source) -> ProgramSpec:
    """Accept a ProgramSpec, a mapping, an XML string or a path to an .xml/.json file."""
    if isinstance(source, ProgramSpec):
        return source
    if isinstance(source, Mapping):
        return parse_mapping(source)
    if isinstance(source, str) and source.lstrip().startswith("<"):
        return parse_xml(source)
    if isinstance(source, (str, os.PathLike)):
        return parse_file(source)
    raise LoadError(f"Cannot read a program description from {type(source).__name__}")


# ---------- building ----------

def _target(args, key) -> Label:
    if key not in args:
        raise LoadError(f"missing argument '{key}'")
    return Label.parse(args[key])


def _constant(args) -> int:
    raw = args.get("constantValue")
    if raw is None:
        raise LoadError("missing argument 'constantValue'")
    try:
        k = int(str(raw).strip())
    except ValueError as exc:
        raise LoadError(f"constantValue '{raw}' is not an integer") from exc
    if k < 0:
        raise LoadError(f"constantValue must be non-negative, got {k}")
    return k


def _variable(args, key) -> Var:
    raw = (args.get(key) or "").strip()
    if not raw:
        raise LoadError(f"missing argument '{key}'")
    return Var.parse(raw)


def _function(args) -> str:
    name = (args.get("functionName") or "").strip()
    if not name:
        raise LoadError("missing argument 'functionName'")
    return name


def build_instruction(spec: InstructionSpec) -> Instruction:
    kind = (spec.name or "").strip().upper()
    kind = NAME_ALIASES.get(kind, kind)
    if kind not in ALL_KINDS:
        raise LoadError(f"Unknown instruction name: {spec.name!r}")
    label = Label.parse(spec.label)
    var = Var.parse(spec.variable) if spec.variable and spec.variable.strip() else None
    if var is None and kind != GOTO_LABEL:
        raise LoadError(f"{kind} needs a variable")
    args = spec.arguments

    if kind in (INCREASE, DECREASE, NEUTRAL, ZERO_VARIABLE):
        return Instruction(kind, var, label)
    if kind == JUMP_NOT_ZERO:
        return Instruction(kind, var, label, _target(args, "JNZLabel"))
    if kind == GOTO_LABEL:
        return Instruction(kind, None, label, _target(args, "gotoLabel"))
    if kind == ASSIGNMENT:
        return Instruction(kind, var, label, source=_variable(args, "assignedVariable"))
    if kind == CONSTANT_ASSIGNMENT:
        return Instruction(kind, var, label, constant=_constant(args))
    if kind == JUMP_ZERO:
        return Instruction(kind, var, label, _target(args, "JZLabel"))
    if kind == JUMP_EQUAL_CONSTANT:
        return Instruction(kind, var, label, _target(args, "JEConstantLabel"),
                           constant=_constant(args))
    if kind == JUMP_EQUAL_VARIABLE:
        return Instruction(kind, var, label, _target(args, "JEVariableLabel"),
                           source=_variable(args, "variableName"))
    if kind == QUOTE:
        return Instruction(kind, var, label, function=_function(args),
                           arguments=split_arguments(args.get("functionArguments")))
    # JUMP_EQUAL_FUNCTION
    return Instruction(kind, var, label, _target(args, "JEFunctionLabel"),
                       function=_function(args),
                       arguments=split_arguments(args.get("functionArguments")))


def build_program(spec: ProgramSpec) -> Program:
    instructions = []
    for n, ispec in enumerate(spec.instructions, start=1):
        try:
            instructions.append(build_instruction(ispec))
        except LoadError as exc:
            raise LoadError(f"Program '{spec.name}', instruction {n}: {exc}") from exc
    return Program(spec.name, instructions)


def build(spec: ProgramSpec) -> list[Program]:
    """The main program followed by its functions, all label-checked."""
    programs = [build_program(spec)] + [build_program(f) for f in spec.functions]
    check(programs)
    logger.debug("Built '%s' with %d function(s)", spec.name, len(spec.functions))
    return programs


def check(programs) -> list[Program]:
    seen = set()
    for p in programs:
        if p.name in seen:
            raise LoadError(f"Program name '{p.name}' is defined twice")
        seen.add(p.name)
        missing = p.unresolved_labels()
        if missing:
            names = ", ".join(str(lbl) for lbl in missing)
            raise InvalidProgram(f"Program '{p.name}' jumps to undefined labels: {names}")
    return programs


def load(source) -> list[Program]:
    """Programs ready to register; an already built Program is only checked."""
    if isinstance(source, Program):
        if not source.name:
            raise LoadError("The program has no name")
        return check([source])
    return build(read(source))

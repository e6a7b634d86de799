# s_cli.py
from __future__ import annotations

import argparse
import logging
import sys

from s_engine import Engine


def parse_inputs(tokens):
    """['x1=4', 'x2=1'] -> {'x1': 4, 'x2': 1}; bare numbers fill x1, x2, ... in order."""
    named, positional = {}, []
    for tok in tokens:
        if "=" in tok:
            name, _, value = tok.partition("=")
            named[name.strip()] = int(value)
        else:
            positional.append(int(tok))
    if named and positional:
        raise ValueError("Mix of named and positional inputs")
    return named or positional


def main(argv=None):
    ap = argparse.ArgumentParser(prog="s-emulator", description="S-language emulator")
    ap.add_argument("-v", "--verbose", action="count", default=0)
    sub = ap.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("show", help="print the program at a degree")
    s.add_argument("src")
    s.add_argument("-d", "--degree", type=int, default=0)

    g = sub.add_parser("degrees", help="instruction and cycle counts per degree")
    g.add_argument("src")

    for name in ("run", "debug"):
        r = sub.add_parser(name, help=f"{name} the program with inputs")
        r.add_argument("src")
        r.add_argument("inputs", nargs="*", help="x1=5 x2=3 or 5 3")
        r.add_argument("-d", "--degree", type=int, default=0)
        r.add_argument("--max-steps", type=int, default=None)

    args = ap.parse_args(argv)

    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level,
                        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    engine = Engine(max_steps=getattr(args, "max_steps", None))
    if not engine.load_file(args.src):
        print(f"[load error] could not load {args.src}", file=sys.stderr)
        return 2

    if args.cmd == "show":
        if not 0 <= args.degree <= engine.max_degree():
            print(f"[error] degree must be in 0..{engine.max_degree()}", file=sys.stderr)
            return 2
        engine.print_program(args.degree)
        return 0

    if args.cmd == "degrees":
        for d in range(engine.max_degree() + 1):
            print(f"degree {d}: {len(engine.get_instructions(d))} instructions, "
                  f"{engine.get_cycles(d)} cycles")
        return 0

    try:
        inputs = parse_inputs(args.inputs)
    except ValueError as e:
        print(f"[input error] {e}", file=sys.stderr)
        return 2
    if not 0 <= args.degree <= engine.max_degree():
        print(f"[error] degree must be in 0..{engine.max_degree()}", file=sys.stderr)
        return 2

    try:
        if args.cmd == "run":
            y = engine.run_and_record(args.degree, inputs)
        else:
            engine.debug_start(args.degree, inputs)
    except ValueError as e:
        print(f"[input error] {e}", file=sys.stderr)
        return 2

    if args.cmd == "debug":
        program = engine.get_instructions(args.degree)
        while engine.is_debugging:
            instr = program[engine.debug_line - 1]
            engine.debug_step()
            print(instr.render(engine.instruction_cycles(instr)))
        y = engine.history[-1].y

    y_vars, x_vars, z_vars = engine.var_by_type()
    print(" ".join(f"{n}={v}" for n, v in y_vars + x_vars + z_vars))
    print(f"y = {y}  cycles = {engine.get_cycles(args.degree)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

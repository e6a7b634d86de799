import s_program as s
from s_engine import Engine
from utils import example_repository, run_program


# program: y = x1 * x2, with Add quoted from the same file
vm = Engine(s.ProgramRepository())
vm.load_file("programs/multiply.xml")

# run fully, at the written degree and fully expanded
print(vm.run_and_record(0, {"x1": 2, "x2": 3}))                  # 6
print(vm.run_and_record(vm.max_degree(), {"x1": 2, "x2": 3}))    # 6

# inspect the program, its expansion and the runs so far
vm.print_program(0)
vm.print_program(1)
vm.print_history()

# where did an expanded instruction come from?
instr = vm.get_instructions(vm.max_degree())[5]
for ancestor in vm.get_expansion_lineage(instr):
    print(ancestor.render())

# step-by-step
vm.debug_start(1, [3, 2])
while vm.is_debugging:
    print("next line:", vm.debug_line)
    vm.debug_step()
print("y =", vm.history[-1].y)

# one-shot runs against the bundled library
repo = example_repository()
print(run_program(repo.get("SuccPlusThree"), {"x1": 4}, repository=repo))   # 8
print(run_program(repo.get("Minus"), {"x1": 2, "x2": 5}, degree=2, repository=repo))  # 0

# build a program in code
prog = s.Program("CountDown", [
    s.assignment("z1", "x1"),
    s.jump_zero("z1", s.EXIT, label="L1"),
    s.increase("y"),
    s.decrease("z1"),
    s.goto_label("L1"),
])
print(run_program(prog, {"x1": 4}, degree=2))   # 4

import argparse
import json
import subprocess
from string import Template

from io import StringIO
from amaranth.back import rtlil

from .mul import BoothMul
from .pp import SignExtension


class RunnerError(Exception):
    pass


GENERIC_SCRIPT = Template("""
${quiet} read_ilang << rtlil
${rtlil_text}
rtlil
${quiet} hierarchy -check
${quiet} proc
${quiet} flatten
${quiet} synth -run coarse
${quiet} opt -full
${quiet} techmap -map +/techmap.v
${quiet} opt -fast
${quiet} abc -lut 4 -dress
${quiet} clean -purge
stat -json
""")


ICE40_SCRIPT = Template("""
${quiet} read_ilang << rtlil
${rtlil_text}
rtlil
${quiet} synth_ice40
stat -json
""")


ECP5_SCRIPT = Template("""
${quiet} read_ilang << rtlil
${rtlil_text}
rtlil
${quiet} synth_lattice -family ecp5
stat -json
""")


SCRIPTS = {
    "generic": GENERIC_SCRIPT,
    "ice40": ICE40_SCRIPT,
    "ecp5": ECP5_SCRIPT,
}


def stats(m, script):
    rtlil_text = rtlil.convert(m)

    stdin = script.substitute(rtlil_text=rtlil_text, quiet="tee -q")

    popen = subprocess.Popen(["yosys", "-Q", "-T", "-"],
                             stdin=subprocess.PIPE,
                             stdout=subprocess.PIPE,
                             stderr=subprocess.PIPE,
                             encoding="utf-8")
    stdout, stderr = popen.communicate(stdin)
    if popen.returncode:
        raise RunnerError(stderr.strip())

    # yosys prints its log before the JSON from the stat command.
    lines = StringIO(stdout).readlines()
    for i, l in enumerate(lines):
        if l.startswith("{"):
            break
    else:
        raise RunnerError("no statistics in yosys output")

    return json.loads("".join(lines[i:]))


def parser():
    p = argparse.ArgumentParser(description="smolbooth benchmarking program using yosys")  # noqa: E501
    p.add_argument("-s", choices=tuple(SCRIPTS), default="generic", help="script to execute")  # noqa: E501
    p.add_argument("-a", type=int, default=8, help="width of multiplicand")
    p.add_argument("-b", type=int, default=None, help="width of multiplier (defaults to -a)")  # noqa: E501
    p.add_argument("-r", type=int, default=4, help="Booth radix")
    p.add_argument("-e", choices=[e.value for e in SignExtension], default=SignExtension.COMPACT_RECT.value, help="sign extension strategy")  # noqa: E501
    p.add_argument("--signed", action="store_true", help="signed multiply")
    p.add_argument("--dot", action="store_true", help="print the partial product matrix instead of running yosys")  # noqa: E501
    return p


def main(argv=None):
    args = parser().parse_args(argv)

    m = BoothMul(args.a, args.b, radix=args.r, signed=args.signed,
                 sign_extension=SignExtension(args.e))

    if args.dot:
        print(m.ppg.representation())
    else:
        print(json.dumps(stats(m, SCRIPTS[args.s]), indent=4))


if __name__ == "__main__":
    main()

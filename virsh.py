"""
Command line entry point: `python virsh.py [script]`.

With a script path the file is run once and the exit status reports whether
it failed. Without one an interactive session starts; input whose braces or
parentheses are still open is continued on the next line.
"""

import asyncio
import sys
from pathlib import Path

from virsh.virsh_datatypes import ParseFailure
from virsh.virsh_parser import parse
from virsh.virsh_printer import Printer
from virsh.virsh_runtime import ExecutionResult, ScriptRunner

PROMPT = ">> "
CONTINUE = ".. "


async def ainput(prompt: str) -> str:
    """Reads one line from stdin on a worker thread; returns "" at EOF."""
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await asyncio.get_running_loop().run_in_executor(None, sys.stdin.readline)


def report(result: ExecutionResult, printer: Printer) -> bool:
    """Writes a run's output, value or error. Returns False when the run failed."""
    for effect in result.side_effects:
        if effect['topics'] == ['stdout']:
            sys.stdout.write(effect['message'] + effect.get('end', '\n'))
    if result.status == 'error':
        sys.stderr.write(result.format_error() + "\n")
        return False
    if result.value is not None:
        sys.stdout.write(printer.pformat(result.value) + "\n")
    return True


def incomplete(source: str) -> bool:
    try:
        parse(source)
    except ParseFailure as e:
        return str(e) == "unexpected end of input"
    return False


async def run_file(path: str) -> int:
    script = Path(path)
    if not script.is_file():
        sys.stderr.write(f"virsh: no such script: {path}\n")
        return 2
    runner = ScriptRunner(unsafe=True, source_dir=str(script.resolve().parent))
    result = await runner.handle_script(script.read_text(encoding="utf-8"))
    return 0 if report(result, Printer()) else 1


async def repl() -> int:
    runner = ScriptRunner(unsafe=True, source_dir=str(Path.cwd()))
    printer = Printer()
    print("virsh REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")
    pending = []
    while True:
        line = await ainput(CONTINUE if pending else PROMPT)
        if line == "":
            print("\nExiting.")
            return 0
        if not pending and line.strip() == "exit":
            return 0
        pending.append(line)
        source = "".join(pending)
        if not source.strip():
            pending.clear()
            continue
        if incomplete(source):
            continue
        pending.clear()
        report(await runner.handle_script(source), printer)


async def main(argv=None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if args:
        return await run_file(args[0])
    return await repl()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nExiting.")

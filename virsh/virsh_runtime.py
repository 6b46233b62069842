"""
Builtins, root scopes and the ScriptRunner entry point for virsh.
"""

import inspect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, TextIO

from virsh.virsh_datatypes import (
    EvalError, Function, List as VirshList, ParseFailure, Reference, Scope,
    Signal, TypeMismatch, UNDEFINED, Val, from_host,
)
from virsh.virsh_fs import FsLib, make_io_scope
from virsh.virsh_interpreter import Evaluator
from virsh.virsh_parser import parse
from virsh.virsh_printer import to_text
from virsh.virsh_syntax import Block

# ===================================================================
# 1. The Standard Library
# ===================================================================

class StdLib:
    """Contains Python implementations for all virsh built-ins.

    Every method named `_name` becomes the builtin `name`. Each receives the
    caller's scope followed by one unevaluated thunk per argument and decides
    for itself which arguments to force, and in which scope. Arguments past
    the ones a builtin uses are never forced.
    """
    def __init__(self, evaluator: Evaluator):
        self.evaluator = evaluator

    # --- Control flow ---
    async def _if(self, scope, cond, then=None, otherwise=None, *_rest):
        frame = Scope(scope)
        test = await cond.force(frame)
        if test.is_truthy():
            return await then.force(frame) if then is not None else UNDEFINED
        if otherwise is not None:
            return await otherwise.force(frame)
        return UNDEFINED

    async def _for(self, scope, generator, body=None, *_rest):
        if body is None:
            raise TypeMismatch("for expects a generator and a body", generator.node)
        step = await generator.force(scope)
        if not isinstance(step, Function):
            raise TypeMismatch(f"for expects a generator, got {step.kind}", generator.node)
        last = UNDEFINED
        while (result := await step.call(scope, body)) is not Signal.STOP_GENERATOR:
            last = result
        return last

    async def _with(self, scope, target, body=None, *_rest):
        record = await target.force(scope)
        if not isinstance(record, Scope):
            raise TypeMismatch(f"with requires a record, got {record.kind}", target.node)
        if body is None:
            return UNDEFINED
        return await body.force(record)

    async def _func(self, scope, body, *_rest):
        closure = Scope(scope)

        async def invoke(caller_scope, args=None, *_rest):
            record = await args.force(caller_scope) if args is not None else UNDEFINED
            if not isinstance(record, Scope):
                raise TypeMismatch(f"func expects a record argument, got {record.kind}",
                                   args.node if args is not None else None)
            for name in record.keys():
                closure.declare(name).set(record.bindings[name].peek())
            return await body.force(closure)

        return Function(invoke, nargs=1, name="func")

    # --- Lists ---
    async def _list(self, scope, *items):
        return VirshList([Val(await item.force(scope)) for item in items])

    async def _head(self, scope, items, *_rest):
        value = await items.force(scope)
        if not isinstance(value, VirshList):
            raise TypeMismatch(f"head expects a list, got {value.kind}", items.node)
        async for ref in value:
            return await ref.get()
        return UNDEFINED

    # --- Output ---
    async def _print(self, scope, *args):
        for arg in args:
            value = await arg.force(scope)
            self.evaluator.emit('stdout', to_text(await value.reify()))
        return UNDEFINED

    async def _write(self, scope, *args):
        parts = []
        for arg in args:
            value = await arg.force(scope)
            parts.append(to_text(await value.reify()))
        self.evaluator.side_effects.append({'topics': ['stdout'], 'message': "".join(parts), 'end': ''})
        return UNDEFINED


def bind_library(scope: Scope, library: Any) -> Scope:
    """Binds every `_name` method of `library` into `scope` as the Function `name`."""
    for name, member in inspect.getmembers(library):
        if name.startswith('_') and not name.startswith('__') and callable(member):
            virsh_name = name[1:]
            scope.declare(virsh_name).set(
                Function(member, nargs=1, name=virsh_name)
            )
    return scope


def make_default_scope(evaluator: Evaluator) -> Scope:
    """A root scope holding the pure builtins."""
    return bind_library(Scope(), StdLib(evaluator))


def make_unsafe_scope(evaluator: Evaluator, stdin: Optional[TextIO] = None,
                      source_dir: Optional[str] = None) -> Scope:
    """A root scope holding the pure builtins plus the `fs` and `io` records."""
    scope = make_default_scope(evaluator)
    scope.declare('fs').set(bind_library(Scope(), FsLib(source_dir)))
    scope.declare('io').set(make_io_scope(stdin))
    return scope


# ===================================================================
# 2. Script Execution
# ===================================================================

Token = Dict[str, Any]

@dataclass
class ExecutionResult:
    """The structured result of a script execution."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error_token: Optional[Token] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        """Formats an error message with line and column if available."""
        if self.status != 'error':
            return ""
        msg = str(self.error_message or "Unknown error")
        if self.error_token and self.error_token.get('line') is not None:
            line = self.error_token.get('line')
            col = self.error_token.get('col')
            col_info = f", col {col}" if col is not None else ""
            return f"Error on line {line}{col_info}: {msg}"
        return msg


class ScriptRunner:
    """Parses and executes virsh code against a root scope that persists between runs."""

    def __init__(self, unsafe: bool = False, source_dir: Optional[str] = None,
                 stdin: Optional[TextIO] = None):
        self.source_dir = source_dir
        self.evaluator = Evaluator()
        if unsafe:
            self.root_scope = make_unsafe_scope(self.evaluator, stdin=stdin, source_dir=source_dir)
        else:
            self.root_scope = make_default_scope(self.evaluator)

    def bind(self, name: str, value: Any):
        """Binds a host value (converted with `from_host`) in the root scope."""
        self.root_scope.declare(name).set(from_host(value))

    def parse(self, source: str) -> Block:
        return parse(source)

    async def eval_ast(self, tree: Any, scope: Optional[Scope] = None) -> Reference:
        return await self.evaluator.eval(tree, self.root_scope if scope is None else scope)

    async def reify(self, ref: Reference) -> Any:
        value = await ref.get()
        return await value.reify()

    async def eval(self, source: str) -> Any:
        """Parses, evaluates and reifies `source`. Errors propagate to the caller."""
        return await self.reify(await self.eval_ast(self.parse(source)))

    def _format_error(self, e: Exception, source: str) -> tuple[str, Optional[Token]]:
        line = col = None
        tag = None
        match e:
            case ParseFailure():
                msg = f"ParseFailure: {e}"
                line, col = e.line, e.col
            case EvalError():
                msg = f"{type(e).__name__}: {e}"
                node = e.node if e.node is not None else self.evaluator.current_node
                loc = getattr(node, 'loc', None) or {}
                line, col, tag = loc.get('line'), loc.get('col'), loc.get('tag')
            case RecursionError():
                msg = "RecursionError: maximum evaluation depth exceeded"
            case _:
                msg = f"InternalError: {type(e).__name__}: {e}"

        token = None
        if line is not None:
            token = {'line': line, 'col': col, 'tag': tag}
            context = self._source_context(source, line, col)
            if context:
                msg = f"{msg}\n{context}"
        return msg, token

    def _source_context(self, source: str, line: int, col: Optional[int], radius: int = 2) -> str:
        lines = source.splitlines()
        if not line or line < 1 or line > len(lines):
            return ""
        start = max(1, line - radius)
        end = min(len(lines), line + radius)
        width = len(str(end))
        out = []
        for i in range(start, end + 1):
            prefix = ">" if i == line else " "
            out.append(f"{prefix} {str(i).rjust(width)} | {lines[i - 1]}")
            if i == line and col is not None:
                caret = " " * max(col - 1, 0)
                out.append(f"  {' ' * width} | {caret}^")
        return "\n".join(out)

    async def handle_script(self, source_code: str) -> ExecutionResult:
        """The main entry point to execute a script. Never raises."""
        self.evaluator.side_effects.clear()
        self.evaluator.current_node = None
        try:
            value = await self.eval(source_code)
        except Exception as e:
            err_msg, err_token = self._format_error(e, source_code)
            self.evaluator.emit('stderr', err_msg)
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error_token=err_token,
                side_effects=list(self.evaluator.side_effects),
            )
        return ExecutionResult(
            status='success',
            value=value,
            side_effects=list(self.evaluator.side_effects),
        )

"""
The core virsh interpreter, containing the Evaluator and call-site Thunks.
"""
import os
import re
import sys
from typing import Any, List, Optional

from virsh.virsh_datatypes import (
    Addable, Bool, DivisionByZero, EvalError, Function, InvalidAssignmentTarget, List as VirshList,
    NotIterable, Num, Reference, Scope, Signal, Str, Subtractable, TypeMismatch,
    UNDEFINED, UnknownOperator, Val, Value,
)
from virsh.virsh_parser import parse
from virsh.virsh_printer import to_text
from virsh.virsh_syntax import (
    Arithmetic, Assign, Block, Boolean, Brace, Call, Compare, DString, Index,
    Lambda, ListLiteral, Look, Name, Not, Number, Paren, Path, Postfix, Range,
    Record, SString, Take, Void,
)

# `{expr}` spans inside a double-quoted string; a backslash before `{` escapes it.
INTERPOLATION = re.compile(r"(?<!\\)\{(.*?[^\\])\}")


class Thunk:
    """An unevaluated call argument: the argument's syntax node plus the caller's scope.

    Callees decide when (and in which scope) to evaluate it. `force` returns
    the Value; `reference` returns the Reference so callees can tell slots
    from plain values.
    """
    def __init__(self, evaluator: 'Evaluator', node: Any, scope: Scope):
        self.evaluator = evaluator
        self.node = node
        self.scope = scope

    async def reference(self, scope: Optional[Scope] = None) -> Reference:
        return await self.evaluator.eval(self.node, self.scope if scope is None else scope)

    async def force(self, scope: Optional[Scope] = None) -> Value:
        ref = await self.reference(scope)
        return await ref.get()

    def __repr__(self):
        return f"Thunk({self.node!r})"


def settle(result) -> Value:
    """Maps what a callee returned to the value a call expression yields."""
    if isinstance(result, Signal):
        return UNDEFINED
    return result


class Evaluator:
    """The virsh execution engine."""
    def __init__(self):
        self.side_effects: List[dict] = []
        self.current_node = None

    def _dbg(self, *parts):
        if os.environ.get("VIRSH_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def emit(self, topic: str, message: str):
        self.side_effects.append({'topics': [topic], 'message': message})

    async def eval(self, node: Any, scope: Scope, as_value: bool = True) -> Reference:
        """Evaluates `node` in `scope` and returns a Reference to the result."""
        self.current_node = node
        match node:
            case Number():
                return Val(Num(node.value))
            case SString():
                return Val(Str(node.text))
            case Boolean():
                return Val(Bool(node.value))
            case DString():
                return Val(Str(await self._interpolate(node, scope)))
            case Name():
                return await self._eval_name(node, scope, as_value)
            case Path():
                return scope.get(node.text)
            case Assign():
                return await self._eval_assign(node, scope)
            case Look():
                target = await (await self.eval(node.lhs, scope)).get()
                if not isinstance(target, Scope):
                    raise TypeMismatch(f"Cannot look up '{node.rhs.text}' on {target.kind}", node)
                return await self.eval(node.rhs, target, as_value)
            case Block():
                result: Reference = Val(UNDEFINED)
                for statement in node.sequence:
                    result = await self.eval(statement, scope)
                return result
            case Brace():
                return await self.eval(node.block, Scope(scope))
            case Paren():
                return await self.eval(node.block, scope, as_value)
            case Postfix():
                return await self._eval_postfix(node, scope)
            case Not():
                value = await (await self.eval(node.operand, scope)).get()
                if not isinstance(value, Bool):
                    raise TypeMismatch(f"Cannot negate {value.kind}", node)
                return Val(Bool(not value.value))
            case Call():
                return await self._eval_call(node, scope)
            case Range():
                start, stop = int(node.start), int(node.stop)
                return Val(VirshList([Val(Num(i)) for i in range(start, stop + 1)]))
            case ListLiteral():
                items = []
                for item in node.items:
                    items.append(Val(await (await self.eval(item, scope)).get()))
                return Val(VirshList(items))
            case Take():
                return await self._eval_take(node, scope)
            case Arithmetic():
                return await self._eval_arithmetic(node, scope)
            case Compare():
                return await self._eval_compare(node, scope)
            case Record():
                record = Scope()
                for key, value_node in node.pairs:
                    ref = await self.eval(value_node, scope)
                    record.declare(key).set(ref.peek())
                return Val(record)
            case Index():
                return await self._eval_index(node, scope)
            case Lambda():
                return Val(self._make_lambda(node, scope))
            case _:
                raise UnknownOperator(f"Unknown node type {type(node).__name__}", node)

    async def _eval_name(self, node: Name, scope: Scope, as_value: bool) -> Reference:
        slot = scope.get(node.text)
        if as_value:
            value = await slot.get()
            if isinstance(value, Function) and value.nargs == 0:
                self._dbg("auto-invoke", node.text)
                return Val(settle(await value.call(scope)))
        return slot

    async def _eval_assign(self, node: Assign, scope: Scope) -> Reference:
        target = await self.eval(node.lhs, scope, as_value=False)
        if not target.writable:
            raise InvalidAssignmentTarget("Invalid assignment target", node.lhs)
        ref = await self.eval(node.rhs, scope)
        target.set(ref.peek())
        return ref

    async def _eval_postfix(self, node: Postfix, scope: Scope) -> Reference:
        target = await self.eval(node.operand, scope, as_value=False)
        if not target.writable:
            raise InvalidAssignmentTarget(f"Cannot apply {node.op} to a read-only value", node.operand)
        value = await target.get()
        match node.op:
            case '++' | '--':
                if not isinstance(value, Num):
                    raise TypeMismatch(f"Cannot apply {node.op} to {value.kind}", node)
                step = 1 if node.op == '++' else -1
                target.set(Num(value.value + step))
            case '!!':
                if not isinstance(value, Bool):
                    raise TypeMismatch(f"Cannot flip {value.kind}", node)
                target.set(Bool(not value.value))
            case _:
                raise UnknownOperator(f"Unknown postfix operator {node.op}", node)
        return Val(value)

    async def _eval_call(self, node: Call, scope: Scope) -> Reference:
        callee = await (await self.eval(node.callee, scope)).get()
        if not isinstance(callee, Function):
            raise TypeMismatch(f"Cannot call {callee.kind}", node.callee)
        args = [Thunk(self, arg, scope) for arg in node.args]
        self._dbg("call", callee.name, "argc", len(args))
        result = await callee.call(scope, *args)
        if isinstance(result, Signal):
            self._dbg("dropped signal", result)
        return Val(settle(result))

    async def _eval_take(self, node: Take, scope: Scope) -> Reference:
        source = await (await self.eval(node.source, scope)).get()
        if not isinstance(source, VirshList):
            raise NotIterable(f"Type {source.kind} is not iterable", node.source)
        cursor = aiter(source)
        name = node.target.text

        async def step(caller_scope, body):
            try:
                ref = await anext(cursor)
            except StopAsyncIteration:
                return Signal.STOP_GENERATOR
            frame = Scope(caller_scope)
            frame.declare(name).set(ref.peek())
            return await body.force(frame)

        return Val(Function(step, nargs=1, name=f"<- {name}"))

    async def _eval_arithmetic(self, node: Arithmetic, scope: Scope) -> Reference:
        lhs = await (await self.eval(node.lhs, scope)).get()
        rhs = await (await self.eval(node.rhs, scope)).get()
        match node.op:
            case '+':
                if not (isinstance(lhs, Addable) and isinstance(rhs, Addable)):
                    raise TypeMismatch(f"Cannot add {lhs.kind} and {rhs.kind}", node)
                return Val(self._apply(lhs.add, rhs, node))
            case '-':
                if not (isinstance(lhs, Subtractable) and isinstance(rhs, Subtractable)):
                    raise TypeMismatch(f"Cannot subtract {rhs.kind} from {lhs.kind}", node)
                return Val(self._apply(lhs.subtract, rhs, node))
            case '%':
                left, right = await lhs.reify(), await rhs.reify()
                if not (isinstance(lhs, Num) and isinstance(rhs, Num)):
                    raise TypeMismatch(f"Cannot take {lhs.kind} modulo {rhs.kind}", node)
                if right == 0:
                    raise DivisionByZero("Modulo by zero", node)
                return Val(Num(left % right))
        raise UnknownOperator(f"Unknown operator {node.op}", node)

    def _apply(self, operation, operand: Value, node) -> Value:
        try:
            return operation(operand)
        except EvalError as e:
            # Value methods don't know where they were called from.
            if e.node is None:
                e.node = node
            raise

    async def _eval_compare(self, node: Compare, scope: Scope) -> Reference:
        lhs = await (await self.eval(node.lhs, scope)).get()
        rhs = await (await self.eval(node.rhs, scope)).get()
        left, right = await lhs.reify(), await rhs.reify()
        match node.op:
            case '==':
                return Val(Bool(left == right))
            case '!=':
                return Val(Bool(left != right))
            case '<' | '>':
                if not (isinstance(lhs, Num) and isinstance(rhs, Num)):
                    raise TypeMismatch(f"Can only compare ({node.op}) numbers", node)
                return Val(Bool(left < right if node.op == '<' else left > right))
        raise UnknownOperator(f"Unknown comparator {node.op}", node)

    async def _eval_index(self, node: Index, scope: Scope) -> Reference:
        base = await (await self.eval(node.base, scope)).get()
        index = await (await (await self.eval(node.index, scope)).get()).reify()
        match base:
            case VirshList():
                if isinstance(index, bool) or not isinstance(index, (int, float)):
                    raise TypeMismatch("List index must be a number", node.index)
                position = 0
                async for ref in base:
                    if position == index:
                        return ref
                    position += 1
                return Val(UNDEFINED)
            case Scope():
                return base.get(to_text(index))
        raise TypeMismatch(f"Cannot index {base.kind}", node)

    def _params(self, node) -> List[str]:
        """Flattens a parameter list written as `a b c`, `(a, b)`, `(a)` or `()`."""
        match node:
            case Name():
                return [node.text]
            case Void():
                return []
            case Call():
                names = self._params(node.callee)
                for arg in node.args:
                    names.extend(self._params(arg))
                return names
            case ListLiteral():
                names = []
                for item in node.items:
                    names.extend(self._params(item))
                return names
            case Paren() if len(node.block.sequence) == 1:
                return self._params(node.block.sequence[0])
        raise TypeMismatch("Inappropriate parameter list", node)

    def _make_lambda(self, node: Lambda, closure: Scope) -> Function:
        params = self._params(node.params)

        async def invoke(caller_scope, *args):
            frame = Scope(closure)
            for i, param in enumerate(params):
                value = await args[i].force(caller_scope) if i < len(args) else UNDEFINED
                frame.declare(param).set(value)
            return await (await self.eval(node.body, frame)).get()

        return Function(invoke, nargs=len(params), params=params, name="<lambda>")

    async def _interpolate(self, node: DString, scope: Scope) -> str:
        out = []
        last = 0
        for match in INTERPOLATION.finditer(node.text):
            out.append(node.text[last:match.start()])
            self._dbg("interpolate", match.group(1))
            ref = await self.eval(parse(match.group(1)), scope)
            out.append(to_text(await (await ref.get()).reify()))
            last = match.end()
        out.append(node.text[last:])
        return "".join(out)

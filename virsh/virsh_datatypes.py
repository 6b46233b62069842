"""
Defines the core data types for the virsh language runtime.

This module provides the runtime values the evaluator produces (numbers,
strings, booleans, lists, scopes, functions and `undefined`), the
references that hold them, and the error taxonomy raised during
evaluation.
"""

import asyncio
import collections.abc
import enum
import inspect
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Union

# =================================================================
# Errors
# =================================================================

class EvalError(Exception):
    """Base class for every error raised while evaluating virsh code."""
    def __init__(self, message: str, node: Any = None):
        super().__init__(message)
        self.node = node


class InvalidAssignmentTarget(EvalError):
    pass


class TypeMismatch(EvalError):
    pass


class NotIterable(EvalError):
    pass


class DivisionByZero(EvalError):
    pass


class UnknownOperator(EvalError):
    pass


class IOFailure(EvalError):
    pass


class ParseFailure(EvalError):
    """Raised when source text does not match the grammar."""
    def __init__(self, message: str, line: Optional[int] = None, col: Optional[int] = None):
        super().__init__(message)
        self.line = line
        self.col = col


# =================================================================
# Abstract Base Classes
# =================================================================

class Value(ABC):
    """Abstract base class for all first-class virsh values."""
    kind: str = 'value'

    @abstractmethod
    async def reify(self) -> Any:
        """Converts the value into plain host data."""

    def is_truthy(self) -> bool:
        return True


class Addable(ABC):
    """Values that support `+`."""
    @abstractmethod
    def add(self, other: Value) -> Value: ...


class Subtractable(ABC):
    """Values that support `-`."""
    @abstractmethod
    def subtract(self, other: Value) -> Value: ...


def number_text(n: Union[int, float]) -> str:
    """Renders a number the way it appears when joined into a string."""
    if isinstance(n, float) and n.is_integer():
        return str(int(n))
    return str(n)


# =================================================================
# Core Runtime Types
# =================================================================

class Num(Value, Addable, Subtractable):
    kind = 'number'

    def __init__(self, value: Union[int, float]):
        self.value = value

    async def reify(self):
        return self.value

    def is_truthy(self) -> bool:
        return not (self.value == 0 or (isinstance(self.value, float) and math.isnan(self.value)))

    def add(self, other: Value) -> Value:
        if not isinstance(other, Num):
            raise TypeMismatch(f"Cannot add {other.kind} to number")
        return Num(self.value + other.value)

    def subtract(self, other: Value) -> Value:
        if not isinstance(other, Num):
            raise TypeMismatch(f"Cannot subtract {other.kind} from number")
        return Num(self.value - other.value)

    def __repr__(self):
        return f"Num({self.value!r})"


class Str(Value, Addable):
    kind = 'string'

    def __init__(self, value: str):
        self.value = value

    async def reify(self):
        return self.value

    def is_truthy(self) -> bool:
        return self.value != ''

    def add(self, other: Value) -> Value:
        match other:
            case Str():
                return Str(self.value + other.value)
            case Num():
                return Str(self.value + number_text(other.value))
        raise TypeMismatch(f"Cannot add {other.kind} to string")

    def __repr__(self):
        return f"Str({self.value!r})"


class Bool(Value):
    kind = 'boolean'

    def __init__(self, value: bool):
        self.value = bool(value)

    async def reify(self):
        return self.value

    def is_truthy(self) -> bool:
        return self.value

    def __repr__(self):
        return f"Bool({self.value!r})"


class Undefined(Value):
    """The absence of a value. There is exactly one instance, UNDEFINED."""
    kind = 'undefined'
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def reify(self):
        return None

    def is_truthy(self) -> bool:
        return False

    def __repr__(self):
        return "UNDEFINED"


UNDEFINED = Undefined()


class Signal(enum.Enum):
    """Control markers returned by generator steppers. Never stored in a slot."""
    STOP_GENERATOR = 'stop-generator'


class List(Value):
    """A sequence of References.

    The source may be a plain iterable (re-iterable, e.g. a Python list) or an
    async iterable (a single-pass stream such as stdin). Iteration always goes
    through the async protocol so both kinds look the same to consumers.
    """
    kind = 'list'

    def __init__(self, source: Union[Iterable, collections.abc.AsyncIterable] = ()):
        self.source = source

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        if isinstance(self.source, collections.abc.AsyncIterable):
            async for ref in self.source:
                yield ref
        else:
            for ref in self.source:
                yield ref

    async def reify(self):
        out = []
        async for ref in self:
            value = await ref.get()
            out.append(await value.reify())
        return out

    def __repr__(self):
        if isinstance(self.source, list):
            return f"List({self.source!r})"
        return "List(<stream>)"


class Scope(Value):
    """A mapping of names to Slots with an optional parent.

    Scopes are both the lexical environments the evaluator runs in and the
    record values built by `{key: value}` literals (records have no parent).
    Lookup walks the parent chain; a miss creates the binding on the scope the
    lookup started from.
    """
    kind = 'record'

    def __init__(self, parent: Optional['Scope'] = None):
        self.parent = parent
        self.bindings: Dict[str, 'Slot'] = {}

    def find(self, name: str) -> Optional['Slot']:
        current = self
        while current is not None:
            slot = current.bindings.get(name)
            if slot is not None:
                return slot
            current = current.parent
        return None

    def get(self, name: str) -> 'Slot':
        slot = self.find(name)
        if slot is None:
            slot = self.bindings[name] = Slot()
        return slot

    def declare(self, name: str) -> 'Slot':
        """Returns this scope's own slot for `name`, shadowing any parent binding."""
        slot = self.bindings.get(name)
        if slot is None:
            slot = self.bindings[name] = Slot()
        return slot

    def keys(self):
        return list(self.bindings.keys())

    def __contains__(self, name):
        return self.find(name) is not None

    async def reify(self):
        out = {}
        for name, slot in self.bindings.items():
            value = await slot.get()
            out[name] = await value.reify()
        return out

    def __repr__(self):
        return f"Scope(bindings={list(self.bindings)!r}, parent={'yes' if self.parent else 'no'})"


class Function(Value):
    """A callable value.

    `callback` is an async callable invoked as `callback(scope, *args)` where
    `scope` is the caller's scope and each arg is an unevaluated thunk. `nargs`
    is the declared minimum arity; zero-arity functions are invoked
    automatically when read as a value.
    """
    kind = 'function'

    def __init__(self, callback: Callable, nargs: int = 1, params: Iterable[str] = (), name: Optional[str] = None):
        self.callback = callback
        self.nargs = nargs
        self.params = tuple(params)
        self.name = name or getattr(callback, '__name__', None)

    async def call(self, scope: Scope, *args):
        return await self.callback(scope, *args)

    async def reify(self):
        return '[Function]'

    def __repr__(self):
        return f"Function(name={self.name!r}, nargs={self.nargs})"


# =================================================================
# References
# =================================================================

class Lazy:
    """A pending value.

    `compute` is an async zero-argument callable. It runs at most once; every
    later `force` returns the remembered value.
    """
    def __init__(self, compute: Callable):
        self.compute = compute
        self.value: Optional[Value] = None
        self.done = False
        self._lock = asyncio.Lock()

    async def force(self) -> Value:
        if self.done:
            return self.value
        async with self._lock:
            # Another forcer may have finished while we waited.
            if not self.done:
                self.value = await force(from_host(await self.compute()))
                self.done = True
        return self.value

    def __repr__(self):
        return f"Lazy(done={self.done})"


async def force(content: Union[Value, Lazy]) -> Value:
    while isinstance(content, Lazy):
        content = await content.force()
    return content


class Reference(ABC):
    """A handle to a value that may still be pending."""
    writable = False

    def __init__(self, content: Union[Value, Lazy] = UNDEFINED):
        self.content = content

    def peek(self) -> Union[Value, Lazy]:
        """Returns the held content without forcing it."""
        return self.content

    async def get(self) -> Value:
        return await force(self.content)

    def __repr__(self):
        return f"{type(self).__name__}({self.content!r})"


class Val(Reference):
    """A read-only reference: expression results and literals."""


class Slot(Reference):
    """A read-write reference: variables and record fields."""
    writable = True

    def set(self, content: Union[Value, Lazy]):
        self.content = content


# =================================================================
# Host conversion
# =================================================================

def host_function(fn: Callable, nargs: Optional[int] = None) -> Function:
    """Wraps a host callable so virsh code can call it.

    Arguments are forced and reified before the call; the result (awaited if
    needed) is converted back with `from_host`.
    """
    if nargs is None:
        try:
            nargs = len(inspect.signature(fn).parameters)
        except (TypeError, ValueError):
            nargs = 1

    async def call_host(scope, *args):
        values = []
        for arg in args:
            value = await arg.force()
            values.append(await value.reify())
        result = fn(*values)
        if inspect.isawaitable(result):
            result = await result
        return await force(from_host(result))

    return Function(call_host, nargs=nargs, name=getattr(fn, '__name__', None))


def from_host(obj: Any) -> Union[Value, Lazy]:
    """Converts plain host data into virsh values."""
    match obj:
        case Value() | Lazy():
            return obj
        case None:
            return UNDEFINED
        case bool():
            return Bool(obj)
        case int() | float():
            return Num(obj)
        case str():
            return Str(obj)
        case collections.abc.Mapping():
            scope = Scope()
            for key, value in obj.items():
                scope.declare(str(key)).set(from_host(value))
            return scope
        case list() | tuple():
            return List([Val(from_host(item)) for item in obj])
    if inspect.isawaitable(obj):
        async def settle():
            return await obj
        return Lazy(settle)
    if callable(obj):
        return host_function(obj)
    raise TypeMismatch(f"Cannot convert host value of type {type(obj).__name__}")

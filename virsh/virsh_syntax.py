"""
Syntax tree node types produced by the parser and consumed by the evaluator.

Every node carries an optional `loc` dict ({'line', 'col', 'tag'}) used for
error reporting. It is excluded from equality so trees parsed from different
layouts of the same source compare equal.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple, Union


def _loc():
    return field(default=None, compare=False, repr=False)


@dataclass
class Number:
    value: Union[int, float]
    loc: Optional[dict] = _loc()


@dataclass
class SString:
    text: str
    loc: Optional[dict] = _loc()


@dataclass
class DString:
    """A double-quoted string. `text` is kept raw; `{expr}` spans are interpolated at runtime."""
    text: str
    loc: Optional[dict] = _loc()


@dataclass
class Boolean:
    value: bool
    loc: Optional[dict] = _loc()


@dataclass
class Name:
    text: str
    loc: Optional[dict] = _loc()


@dataclass
class Path:
    """A slash-prefixed name such as `/switch` or `//okay`."""
    text: str
    loc: Optional[dict] = _loc()


@dataclass
class Look:
    lhs: Any
    op: str
    rhs: Name
    loc: Optional[dict] = _loc()


@dataclass
class Block:
    sequence: List[Any]
    loc: Optional[dict] = _loc()


@dataclass
class Brace:
    block: Block
    loc: Optional[dict] = _loc()


@dataclass
class Paren:
    block: Block
    loc: Optional[dict] = _loc()


@dataclass
class Call:
    callee: Any
    args: List[Any]
    loc: Optional[dict] = _loc()


@dataclass
class Assign:
    lhs: Any
    rhs: Any
    loc: Optional[dict] = _loc()


@dataclass
class Postfix:
    op: str
    operand: Any
    loc: Optional[dict] = _loc()


@dataclass
class Not:
    operand: Any
    loc: Optional[dict] = _loc()


@dataclass
class Range:
    start: Union[int, float]
    stop: Union[int, float]
    loc: Optional[dict] = _loc()


@dataclass
class ListLiteral:
    items: List[Any]
    loc: Optional[dict] = _loc()


@dataclass
class Take:
    target: Name
    source: Any
    loc: Optional[dict] = _loc()


@dataclass
class Arithmetic:
    op: str
    lhs: Any
    rhs: Any
    loc: Optional[dict] = _loc()


@dataclass
class Compare:
    op: str
    lhs: Any
    rhs: Any
    loc: Optional[dict] = _loc()


@dataclass
class Record:
    pairs: List[Tuple[str, Any]]
    loc: Optional[dict] = _loc()


@dataclass
class Index:
    base: Any
    index: Any
    loc: Optional[dict] = _loc()


@dataclass
class Lambda:
    params: Any
    body: Any
    loc: Optional[dict] = _loc()


@dataclass
class Void:
    """The empty parameter list in `() => body`."""
    loc: Optional[dict] = _loc()

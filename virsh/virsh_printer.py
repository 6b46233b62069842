"""
A pretty-printer for virsh syntax trees and reified values.

`pformat` turns syntax nodes back into source text that parses to the same
tree, and formats reified host data (numbers, strings, lists, dicts) as
virsh literals. `to_text` gives the plain rendering used when a value is
joined into a string or printed.
"""

import collections.abc
import re

from virsh.virsh_datatypes import number_text
from virsh.virsh_syntax import (
    Arithmetic, Assign, Block, Boolean, Brace, Call, Compare, DString, Index,
    Lambda, ListLiteral, Look, Name, Not, Number, Paren, Path, Postfix, Range,
    Record, SString, Take, Void,
)

_IDENT = re.compile(r"[A-Za-z_][A-Za-z0-9_]*\Z")
_KEYWORDS = {"true", "false", "else"}


def _quote(text: str) -> str:
    return "'" + text.replace("\\", "\\\\").replace("'", "\\'") + "'"


def to_text(obj) -> str:
    """Renders reified host data as plain text."""
    match obj:
        case None:
            return "undefined"
        case bool():
            return "true" if obj else "false"
        case int() | float():
            return number_text(obj)
        case str():
            return obj
        case list() | tuple():
            return ",".join(to_text(item) for item in obj)
    if isinstance(obj, collections.abc.Mapping):
        return Printer().pformat(obj)
    return str(obj)


class Printer:
    """Formats virsh objects into readable, valid virsh source strings."""

    def __init__(self):
        self._handlers = self._create_handlers()

    def pformat(self, obj):
        """Public entry point to format an object."""
        return self._get_handler(obj)(obj)

    def _get_handler(self, obj):
        handler = self._handlers.get(type(obj))
        if handler is not None:
            return handler
        if isinstance(obj, collections.abc.Mapping):
            return self._pformat_dict
        return repr

    def _create_handlers(self):
        return {
            # Reified values
            str: _quote,
            int: self._pformat_number,
            float: self._pformat_number,
            bool: self._pformat_bool,
            type(None): lambda o: "undefined",
            list: self._pformat_list,
            tuple: self._pformat_list,
            dict: self._pformat_dict,
            # Syntax
            Number: lambda n: self._pformat_number(n.value),
            SString: lambda n: _quote(n.text),
            DString: lambda n: f'"{n.text}"',
            Boolean: lambda n: self._pformat_bool(n.value),
            Name: lambda n: n.text,
            Path: lambda n: n.text,
            Look: lambda n: f"{self.pformat(n.lhs)}{n.op}{self.pformat(n.rhs)}",
            Block: self._pformat_block,
            Brace: lambda n: "{ " + self.pformat(n.block) + " }",
            Paren: lambda n: "(" + self.pformat(n.block) + ")",
            Call: self._pformat_call,
            Assign: lambda n: f"{self.pformat(n.lhs)} = {self.pformat(n.rhs)}",
            Postfix: lambda n: f"{self.pformat(n.operand)}{n.op}",
            Not: lambda n: "!" + self.pformat(n.operand),
            Range: lambda n: f"{self._pformat_number(n.start)}..{self._pformat_number(n.stop)}",
            ListLiteral: lambda n: self._pformat_sequence([self.pformat(i) for i in n.items]),
            Take: lambda n: f"{self.pformat(n.target)} <- {self.pformat(n.source)}",
            Arithmetic: self._pformat_infix,
            Compare: self._pformat_infix,
            Record: self._pformat_record,
            Index: lambda n: f"{self.pformat(n.base)}[{self.pformat(n.index)}]",
            Lambda: lambda n: f"{self.pformat(n.params)} => {self.pformat(n.body)}",
            Void: lambda n: "()",
        }

    def _pformat_number(self, value):
        return repr(value) if isinstance(value, float) else str(value)

    def _pformat_bool(self, value):
        return "true" if value else "false"

    def _pformat_sequence(self, items):
        if len(items) == 1:
            return f"({items[0]},)"
        return "(" + ", ".join(items) + ")"

    def _pformat_list(self, obj):
        return self._pformat_sequence([self.pformat(item) for item in obj])

    def _pformat_key(self, key):
        key = str(key)
        return key if _IDENT.match(key) and key not in _KEYWORDS else _quote(key)

    def _pformat_dict(self, obj):
        if not obj:
            return "{}"
        inner = ", ".join(f"{self._pformat_key(k)}: {self.pformat(v)}" for k, v in obj.items())
        return "{" + inner + "}"

    def _pformat_block(self, node):
        return "; ".join(self.pformat(stmt) for stmt in node.sequence)

    def _pformat_call(self, node):
        parts = [self.pformat(node.callee)]
        args = list(node.args)
        tail = None
        # A call in argument position only comes from `$`; print it back that way.
        if args and isinstance(args[-1], Call):
            tail = args.pop()
        parts.extend(self.pformat(arg) for arg in args)
        if tail is not None:
            parts.extend(["$", self.pformat(tail)])
        return " ".join(parts)

    def _pformat_infix(self, node):
        return f"{self.pformat(node.lhs)} {node.op} {self.pformat(node.rhs)}"

    def _pformat_record(self, node):
        if not node.pairs:
            return "{}"
        inner = ", ".join(f"{self._pformat_key(k)}: {self.pformat(v)}" for k, v in node.pairs)
        return "{" + inner + "}"

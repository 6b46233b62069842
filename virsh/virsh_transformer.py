"""
Transforms the raw Lark parse tree into virsh syntax nodes.
"""

import re

from lark import Token, Transformer, v_args

from virsh.virsh_syntax import (
    Arithmetic, Assign, Block, Boolean, Brace, Call, Compare, DString, Index,
    Lambda, ListLiteral, Look, Name, Not, Number, Paren, Path, Postfix, Range,
    Record, SString, Take, Void,
)

_ESCAPE = re.compile(r"\\(.)", re.DOTALL)


def _number(text: str):
    return float(text) if '.' in text else int(text)


@v_args(meta=True, inline=True)
class VirshTransformer(Transformer):

    def _attach_loc(self, obj, meta, tag):
        if not getattr(meta, 'empty', True):
            obj.loc = {'line': meta.line, 'col': meta.column, 'tag': tag}
        return obj

    # --- Structure ---

    def start(self, meta, *statements):
        return self._attach_loc(Block(list(statements)), meta, 'block')

    def brace(self, meta, *statements):
        block = self._attach_loc(Block(list(statements)), meta, 'block')
        return self._attach_loc(Brace(block), meta, 'brace')

    def paren(self, meta, *statements):
        block = self._attach_loc(Block(list(statements)), meta, 'block')
        return self._attach_loc(Paren(block), meta, 'paren')

    def list_literal(self, meta, *items):
        return self._attach_loc(ListLiteral(list(items)), meta, 'list')

    def record(self, meta, *pairs):
        return self._attach_loc(Record(list(pairs)), meta, 'record')

    def pair(self, meta, key, value):
        if key.type == 'SSTRING':
            return (_ESCAPE.sub(r"\1", key.value[1:-1]), value)
        return (key.value, value)

    # --- Expressions ---

    def assign(self, meta, lhs, rhs):
        return self._attach_loc(Assign(lhs, rhs), meta, 'assign')

    def unapply(self, meta, params, body):
        return self._attach_loc(Lambda(params, body), meta, 'unapply')

    def unapply_void(self, meta, body):
        return self._attach_loc(Lambda(Void(), body), meta, 'unapply')

    def call(self, meta, callee, *args):
        return self._attach_loc(Call(callee, list(args)), meta, 'call')

    def dollar(self, meta, callee, *args):
        # `f a $ g b` passes the whole right-hand application as f's last argument.
        return self._attach_loc(Call(callee, list(args)), meta, 'call')

    def take(self, meta, target, source):
        name = self._attach_loc(Name(target.value), meta, 'name')
        return self._attach_loc(Take(name, source), meta, 'take')

    def compare(self, meta, lhs, op, rhs):
        return self._attach_loc(Compare(op.value, lhs, rhs), meta, 'comp')

    def arithmetic(self, meta, lhs, op, rhs):
        return self._attach_loc(Arithmetic(op.value, lhs, rhs), meta, 'math')

    def negate(self, meta, operand):
        return self._attach_loc(Not(operand), meta, 'bang')

    def postfix_op(self, meta, operand, op):
        return self._attach_loc(Postfix(op.value, operand), meta, 'postfix')

    def index(self, meta, base, index):
        return self._attach_loc(Index(base, index), meta, 'index')

    def look(self, meta, lhs, op, name):
        rhs = Name(name.value)
        rhs.loc = {'line': name.line, 'col': name.column, 'tag': 'name'}
        return self._attach_loc(Look(lhs, op.value, rhs), meta, 'look')

    # --- Atoms ---

    def number(self, meta, token):
        return self._attach_loc(Number(_number(token.value)), meta, 'number')

    def range_literal(self, meta, start, stop):
        return self._attach_loc(Range(_number(start.value), _number(stop.value)), meta, 'range')

    def sstring(self, meta, token):
        return self._attach_loc(SString(_ESCAPE.sub(r"\1", token.value[1:-1])), meta, 'sstring')

    def dstring(self, meta, token):
        return self._attach_loc(DString(token.value[1:-1]), meta, 'dstring')

    def true(self, meta):
        return self._attach_loc(Boolean(True), meta, 'literal')

    def false(self, meta):
        return self._attach_loc(Boolean(False), meta, 'literal')

    def name(self, meta, token: Token):
        return self._attach_loc(Name(token.value), meta, 'name')

    def path(self, meta, token: Token):
        return self._attach_loc(Path(token.value), meta, 'path')

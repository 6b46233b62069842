"""
Parses virsh source text into a syntax tree.
"""

from typing import Optional

from lark import Lark, UnexpectedCharacters, UnexpectedEOF, UnexpectedInput

from virsh.virsh_datatypes import ParseFailure
from virsh.virsh_syntax import Block
from virsh.virsh_transformer import VirshTransformer

_parser: Optional[Lark] = None
_transformer = VirshTransformer()


def get_parser() -> Lark:
    """Loads the grammar once per process."""
    global _parser
    if _parser is None:
        _parser = Lark.open(
            "virsh_grammar.lark",
            rel_to=__file__,
            parser="lalr",
            propagate_positions=True,
        )
    return _parser


def _describe(e: UnexpectedInput) -> str:
    match e:
        case UnexpectedEOF():
            return "unexpected end of input"
        case UnexpectedCharacters():
            return f"unexpected character {e.char!r}"
    token = getattr(e, 'token', None)
    if token is not None and token.type == '$END':
        return "unexpected end of input"
    if token is not None:
        return f"unexpected token {token.value!r}"
    return "invalid syntax"


def parse(text: str) -> Block:
    """Parses `text` into a Block. Raises ParseFailure on malformed input."""
    try:
        tree = get_parser().parse(text)
    except UnexpectedInput as e:
        line = getattr(e, 'line', None)
        col = getattr(e, 'column', None)
        if line is not None and line < 0:
            line = col = None
        raise ParseFailure(_describe(e), line=line, col=col) from e
    return _transformer.transform(tree)

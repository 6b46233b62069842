import pytest

from virsh.virsh_datatypes import ParseFailure
from virsh.virsh_parser import parse
from virsh.virsh_printer import Printer
from virsh.virsh_syntax import (
    Arithmetic, Assign, Block, Boolean, Brace, Call, Compare, DString, Index,
    Lambda, ListLiteral, Look, Name, Not, Number, Paren, Path, Postfix, Range,
    Record, SString, Take, Void,
)

VALID = [
    "/",
    "/a",
    "//",
    "/a/b/c",
    "///",
    "//a",
    "/a/b//c",
    "a->b",
    "a->b->c",
    "a.b",
    "a.b->c.d->e",
    '"hello"',
    "'hello'",
    "a = b",
    "a = a->b",
    "a == b",
    "a != b",
    "a->g == b.c",
    "h == 4 = g.h->c = a->g == b.c",
    "a b",
    "a b->c",
    "a.c b->c",
    "(a)",
    "(a->b)->c",
    "{ a = b }",
    "a; b",
    "{ a; b }",
    "(a; b)",
    "for (i = 1; i < 10; i++) { i }",
    "i.b.c++",
    "i!!",
    "i.b.c!!",
    "for (i <- x.y->c) { i }",
    "for (i <- g <- c) { i }",
    "//lights!!",
    "//lights = !/lights",
    "for (light <- //lights) { light.state!! }",
    "trap FOOBAR { true }",
    "(a, b)",
    "open = (a, b) => { true } => d",
    "1",
    "1.1",
]

INVALID = [
    "/a/../",
    "a->",
    "a.",
    "a->.",
    "'hello",
    "]",
    "a = ",
    "= a",
    "!=b",
    "!=",
    "d!=",
    "a-> == b.c",
    "a->g == .c",
    "a, b",
    "()",
]

RECOMPILE = [
    "a",
    "/",
    "/as/asdf",
    "a.b",
    "a->b",
    "a->b.c->d",
    "a; b",
    "a.b; b->c.d; /asdf/asdf",
    "a b",
    "a->d.d b.c /as.d->d",
    "a = b",
    "a = b.c d /e",
    "a { b }",
    "(a = b)",
    "(a = 12)",
    "i < 10",
    "i++",
    "for (i = 0; i < 10; i++) { i }",
    "if true $ if false 12 34",
    "x y => x + y % 2",
    "() => 1",
    "person[x] = {name: 'Kim', 'full name': 'Kim Lee'}",
    "(1,)",
    "0..10",
    "{}",
]


@pytest.mark.parametrize("src", VALID)
def test_parses(src):
    assert isinstance(parse(src), Block)


@pytest.mark.parametrize("src", INVALID)
def test_rejects(src):
    with pytest.raises(ParseFailure):
        parse(src)


@pytest.mark.parametrize("src", VALID + RECOMPILE)
def test_recompiles_to_same_source(src):
    assert Printer().pformat(parse(src)) == src


def test_comments_and_newlines_are_whitespace():
    tree = parse("1 # ignore this\n")
    assert tree == Block([Number(1)])
    assert parse("a;\nb;") == Block([Name("a"), Name("b")])


def test_empty_program():
    assert parse("") == Block([])


def test_statement_shapes():
    assert parse("a = b c") == Block([Assign(Name("a"), Call(Name("b"), [Name("c")]))])
    assert parse("p->name") == Block([Look(Name("p"), "->", Name("name"))])
    assert parse("/switch") == Block([Path("/switch")])
    assert parse("n++") == Block([Postfix("++", Name("n"))])
    assert parse("!b") == Block([Not(Name("b"))])
    assert parse("true; false") == Block([Boolean(True), Boolean(False)])


def test_literals():
    assert parse("12") == Block([Number(12)])
    assert parse("1.5") == Block([Number(1.5)])
    assert parse("0..10") == Block([Range(0, 10)])
    assert parse("'it\\'s'") == Block([SString("it's")])
    assert parse('"a {b}"') == Block([DString("a {b}")])


def test_braces_records_and_lists():
    assert parse("{}") == Block([Record([])])
    assert parse("{a: 1, 'b c': 2}") == Block([Record([("a", Number(1)), ("b c", Number(2))])])
    assert parse("{ a }") == Block([Brace(Block([Name("a")]))])
    assert parse("(a)") == Block([Paren(Block([Name("a")]))])
    assert parse("(a,)") == Block([ListLiteral([Name("a")])])
    assert parse("(1, 2, 3)") == Block([ListLiteral([Number(1), Number(2), Number(3)])])


def test_application_and_dollar():
    assert parse("f a b") == Block([Call(Name("f"), [Name("a"), Name("b")])])
    assert parse("if c {1} else {2}") == Block([
        Call(Name("if"), [Name("c"), Brace(Block([Number(1)])), Brace(Block([Number(2)]))])
    ])
    assert parse("list 2 $ list 3") == Block([
        Call(Name("list"), [Number(2), Call(Name("list"), [Number(3)])])
    ])


def test_operators_bind_tighter_than_application():
    assert parse("if i > 10 x") == Block([
        Call(Name("if"), [Compare(">", Name("i"), Number(10)), Name("x")])
    ])
    assert parse("f a + b") == Block([
        Call(Name("f"), [Arithmetic("+", Name("a"), Name("b"))])
    ])
    assert parse("a + b % c") == Block([
        Arithmetic("+", Name("a"), Arithmetic("%", Name("b"), Name("c")))
    ])


def test_take_and_index():
    assert parse("for i <- xs { i }") == Block([
        Call(Name("for"), [Take(Name("i"), Name("xs")), Brace(Block([Name("i")]))])
    ])
    assert parse("a->b[0]") == Block([Index(Look(Name("a"), "->", Name("b")), Number(0))])


def test_lambdas():
    assert parse("x y => x") == Block([Lambda(Call(Name("x"), [Name("y")]), Name("x"))])
    assert parse("() => 1") == Block([Lambda(Void(), Number(1))])
    assert parse("f = (a, b) => a") == Block([
        Assign(Name("f"), Lambda(ListLiteral([Name("a"), Name("b")]), Name("a")))
    ])


def test_nodes_carry_locations():
    tree = parse("a = 1;\n  b c")
    call = tree.sequence[1]
    assert call.loc['line'] == 2
    assert call.loc['col'] == 3
    assert call.args[0].loc == {'line': 2, 'col': 5, 'tag': 'name'}


def test_parse_failure_reports_position():
    with pytest.raises(ParseFailure) as info:
        parse("a = 1;\nb = ]")
    assert info.value.line == 2
    assert info.value.col == 5

import pytest

from virsh.virsh_parser import parse
from virsh.virsh_printer import Printer, to_text


@pytest.fixture
def printer():
    return Printer()


def test_format_host_values(printer):
    assert printer.pformat(1) == "1"
    assert printer.pformat(1.5) == "1.5"
    assert printer.pformat(True) == "true"
    assert printer.pformat(None) == "undefined"
    assert printer.pformat("it's") == "'it\\'s'"
    assert printer.pformat([1, "a"]) == "(1, 'a')"
    assert printer.pformat([1]) == "(1,)"
    assert printer.pformat({}) == "{}"
    assert printer.pformat({"name": "Jay", "full name": "J", "true": 1}) == \
        "{name: 'Jay', 'full name': 'J', 'true': 1}"


def test_formatted_values_parse_back(printer):
    value = {"a": [1, 2], "b": {"c": "d"}}
    text = printer.pformat(value)
    assert printer.pformat(parse(text)) == text


def test_to_text():
    assert to_text(None) == "undefined"
    assert to_text(False) == "false"
    assert to_text(3) == "3"
    assert to_text(3.0) == "3"
    assert to_text("x") == "x"
    assert to_text([1, [2, 3]]) == "1,2,3"
    assert to_text({"a": 1}) == "{a: 1}"


def test_recompile_nested_structures(printer):
    src = "f = x => { if x { print \"x={x}\" } else { list 1..3 (1, 2) } }"
    assert printer.pformat(parse(src)) == "f = x => { if x { print \"x={x}\" } { list 1..3 (1, 2) } }"

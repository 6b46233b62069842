from virsh.virsh_datatypes import (
    DivisionByZero, EvalError, InvalidAssignmentTarget, IOFailure, NotIterable, ParseFailure,
    TypeMismatch, UnknownOperator, Scope, UNDEFINED,
)
from virsh.virsh_interpreter import Evaluator, Thunk
from virsh.virsh_parser import parse
from virsh.virsh_printer import Printer
from virsh.virsh_runtime import (
    ExecutionResult, ScriptRunner, StdLib, make_default_scope, make_unsafe_scope,
)

from __future__ import annotations

from typing import Dict

from miniml.typecheck.types import (
    FunctionType,
    ListType,
    Scheme,
    Type,
    TypeVariable,
    bool_type,
    float_type,
    int_type,
    string_type,
    unit_type,
)

# Builtin schemes use negative variable ids so that they never collide with
# the variables a TypeChecker creates.
_a_var = TypeVariable(-1)


def _function(*types: Type) -> Type:
    *arguments, result = types
    for argument in reversed(arguments):
        result = FunctionType(argument, result)
    return result


def _polymorphic(ty: Type) -> Scheme:
    return Scheme(ty.free_type_variables(), ty)


def types() -> Dict[str, Scheme]:
    int_operator = Scheme.monomorphic(_function(int_type, int_type, int_type))
    float_operator = Scheme.monomorphic(
        _function(float_type, float_type, float_type)
    )
    comparison = _polymorphic(_function(_a_var, _a_var, bool_type))
    boolean_operator = Scheme.monomorphic(
        _function(bool_type, bool_type, bool_type)
    )
    return {
        **dict.fromkeys(['+', '-', '*', '/'], int_operator),
        **dict.fromkeys(['+.', '-.', '*.', '/.'], float_operator),
        **dict.fromkeys(['=', '<>', '<', '>', '<=', '>='], comparison),
        **dict.fromkeys(['&&', '||'], boolean_operator),
        'not': Scheme.monomorphic(_function(bool_type, bool_type)),
        '::': _polymorphic(
            _function(_a_var, ListType(_a_var), ListType(_a_var))
        ),
        '~-': Scheme.monomorphic(_function(int_type, int_type)),
        '~-.': Scheme.monomorphic(_function(float_type, float_type)),
        'print_int': Scheme.monomorphic(_function(int_type, unit_type)),
        'print_float': Scheme.monomorphic(_function(float_type, unit_type)),
        'print_string': Scheme.monomorphic(_function(string_type, unit_type)),
        'print_endline': Scheme.monomorphic(
            _function(string_type, unit_type)
        ),
    }

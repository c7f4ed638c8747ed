from __future__ import annotations

import builtins
from typing import TYPE_CHECKING, AbstractSet, Optional

from miniml.location import Location, format_location

if TYPE_CHECKING:
    from miniml.typecheck.types import TupleType, Type, TypeVariable


class StaticAnalysisError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.location: Optional[Location] = None

    def set_location_if_missing(self, location: Optional[Location]) -> None:
        if not self.location:
            self.location = location

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return '{} at {}'.format(self.message, format_location(self.location))


class TypeError(StaticAnalysisError, builtins.TypeError):
    """Type errors raised by the MiniML type checker."""


class UnificationError(TypeError):
    """Two types have incompatible shapes."""

    def __init__(self, left: Type, right: Type) -> None:
        super().__init__(format_unification_error(left, right))
        self.left = left
        self.right = right

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.left!r}, {self.right!r})'


class TupleArityError(UnificationError):
    def __init__(self, left: Type, right: Type) -> None:
        super().__init__(left, right)
        self.message = format_tuple_arity_error(left, right)


class PatternArityError(UnificationError):
    def __init__(self, expected: int, ty: TupleType) -> None:
        super().__init__(ty, ty)
        self.expected = expected
        self.actual = len(ty.components)
        self.message = format_pattern_arity_error(expected, ty)

    def __repr__(self) -> str:
        return f'PatternArityError({self.expected!r}, {self.left!r})'


class OccursCheckError(TypeError):
    def __init__(self, variable: TypeVariable, ty: Type) -> None:
        super().__init__(format_occurs_error(variable, ty))
        self.variable = variable
        self.type = ty

    def __repr__(self) -> str:
        return f'OccursCheckError({self.variable!r}, {self.type!r})'


class NonUniquePatternVariableError(TypeError):
    def __init__(self, name: str) -> None:
        super().__init__(format_non_unique_pattern_variable_error(name))
        self.name = name


class OrPatternBindingError(TypeError):
    def __init__(
        self, left_names: AbstractSet[str], right_names: AbstractSet[str]
    ) -> None:
        super().__init__(
            format_or_pattern_binding_error(left_names, right_names)
        )
        self.left_names = left_names
        self.right_names = right_names


class ImpossiblePatternError(TypeError):
    pass


class NameError(StaticAnalysisError, builtins.NameError):
    def __init__(
        self, name: str, location: Optional[Location] = None
    ) -> None:
        super().__init__(f'name {name!r} not previously defined')
        self.name = name
        self.location = location


class UnboundMeasureError(NameError):
    def __init__(
        self, name: str, location: Optional[Location] = None
    ) -> None:
        super().__init__(name, location)
        self.message = f'unit of measure {name!r} not previously defined'


class UnboundTypeError(NameError):
    def __init__(
        self, name: str, location: Optional[Location] = None
    ) -> None:
        super().__init__(name, location)
        self.message = f'type {name!r} not previously defined'


class UnhandledNodeTypeError(builtins.NotImplementedError):
    pass


def format_unification_error(left: Type, right: Type) -> str:
    return f'cannot unify {left} with {right}'


def format_tuple_arity_error(left: Type, right: Type) -> str:
    return (
        f'cannot unify {left} with {right}: the tuples have different '
        'numbers of components'
    )


def format_pattern_arity_error(expected: int, ty: Type) -> str:
    return (
        f'a tuple pattern with {expected} components cannot match a value '
        f'of type {ty}'
    )


def format_occurs_error(variable: TypeVariable, ty: Type) -> str:
    return (
        f'{variable} cannot be unified with {ty} because it would form an '
        'infinite type'
    )


def format_non_unique_pattern_variable_error(name: str) -> str:
    return f'{name} is bound several times in this pattern'


def format_or_pattern_binding_error(
    left_names: AbstractSet[str], right_names: AbstractSet[str]
) -> str:
    missing = sorted(left_names ^ right_names)
    return (
        'both sides of an or-pattern must bind the same names, but '
        f'{", ".join(missing)} is bound on only one side'
    )


def format_let_rec_pattern_error() -> str:
    return 'only variables are allowed on the left-hand side of let rec'

from __future__ import annotations

import abc
import dataclasses
import string
from functools import reduce
from operator import or_
from typing import (
    TYPE_CHECKING,
    AbstractSet,
    Callable,
    Dict,
    FrozenSet,
    Sequence,
    Tuple,
)

from miniml.typecheck.substitutions import Substitutions

if TYPE_CHECKING:
    from miniml.parse import MeasureNode


type _Namer = Callable[[int], str]


def _default_name(variable_id: int) -> str:
    return f"'t{variable_id}"


def _letters(n: int) -> str:
    letter = string.ascii_lowercase[n % 26]
    if n < 26:
        return letter
    return f'{letter}{n // 26}'


class Type(abc.ABC):
    """Monomorphic types.

    Types are immutable and compared structurally."""

    @abc.abstractmethod
    def free_type_variables(self) -> FrozenSet[int]:
        pass

    @abc.abstractmethod
    def apply_substitution(self, sub: Substitutions) -> Type:
        pass

    def is_variable(self, variable_id: int) -> bool:
        return False

    def occurs(self, variable_id: int) -> bool:
        return variable_id in self.free_type_variables()

    @abc.abstractmethod
    def format(self, namer: _Namer) -> str:
        pass

    def is_simple(self) -> bool:
        """Whether the type can be printed as an argument of a postfix type
        constructor without parentheses."""
        return True

    def to_user_string(self) -> str:
        return Scheme(self.free_type_variables(), self).to_user_string()

    def __str__(self) -> str:
        return self.format(_default_name)


@dataclasses.dataclass(frozen=True)
class BaseType(Type):
    name: str

    def free_type_variables(self) -> FrozenSet[int]:
        return frozenset()

    def apply_substitution(self, sub: Substitutions) -> Type:
        return self

    def format(self, namer: _Namer) -> str:
        return self.name


int_type = BaseType('int')
float_type = BaseType('float')
bool_type = BaseType('bool')
char_type = BaseType('char')
string_type = BaseType('string')
unit_type = BaseType('unit')

base_types: Dict[str, BaseType] = {
    ty.name: ty
    for ty in [
        int_type,
        float_type,
        bool_type,
        char_type,
        string_type,
        unit_type,
    ]
}


@dataclasses.dataclass(frozen=True)
class TypeVariable(Type):
    id: int

    def free_type_variables(self) -> FrozenSet[int]:
        return frozenset([self.id])

    def apply_substitution(self, sub: Substitutions) -> Type:
        return sub.get(self.id, self)

    def is_variable(self, variable_id: int) -> bool:
        return self.id == variable_id

    def format(self, namer: _Namer) -> str:
        return namer(self.id)


@dataclasses.dataclass(frozen=True)
class FunctionType(Type):
    argument: Type
    result: Type

    def free_type_variables(self) -> FrozenSet[int]:
        return (
            self.argument.free_type_variables()
            | self.result.free_type_variables()
        )

    def apply_substitution(self, sub: Substitutions) -> Type:
        if not sub:
            return self
        return FunctionType(
            self.argument.apply_substitution(sub),
            self.result.apply_substitution(sub),
        )

    def is_simple(self) -> bool:
        return False

    def format(self, namer: _Namer) -> str:
        argument = self.argument.format(namer)
        if isinstance(self.argument, FunctionType):
            argument = f'({argument})'
        return f'{argument} -> {self.result.format(namer)}'


@dataclasses.dataclass(frozen=True)
class TupleType(Type):
    """Tuple types. There are always at least two components."""

    first: Type
    second: Type
    rest: Tuple[Type, ...] = ()

    @classmethod
    def of(cls, components: Sequence[Type]) -> TupleType:
        first, second, *rest = components
        return cls(first, second, tuple(rest))

    @property
    def components(self) -> Tuple[Type, ...]:
        return (self.first, self.second, *self.rest)

    def free_type_variables(self) -> FrozenSet[int]:
        return reduce(
            or_,
            (c.free_type_variables() for c in self.components),
            frozenset(),
        )

    def apply_substitution(self, sub: Substitutions) -> Type:
        if not sub:
            return self
        return TupleType.of(
            [c.apply_substitution(sub) for c in self.components]
        )

    def is_simple(self) -> bool:
        return False

    def format(self, namer: _Namer) -> str:
        components = []
        for component in self.components:
            formatted = component.format(namer)
            if isinstance(component, (TupleType, FunctionType)):
                formatted = f'({formatted})'
            components.append(formatted)
        return ' * '.join(components)


class _ElementType(Type, abc.ABC):
    element: Type
    constructor_name: str

    def free_type_variables(self) -> FrozenSet[int]:
        return self.element.free_type_variables()

    def apply_substitution(self, sub: Substitutions) -> Type:
        if not sub:
            return self
        return type(self)(self.element.apply_substitution(sub))

    def format(self, namer: _Namer) -> str:
        element = self.element.format(namer)
        if not self.element.is_simple():
            element = f'({element})'
        return f'{element} {self.constructor_name}'


@dataclasses.dataclass(frozen=True)
class ListType(_ElementType):
    element: Type
    constructor_name = 'list'


@dataclasses.dataclass(frozen=True)
class OptionType(_ElementType):
    element: Type
    constructor_name = 'option'


@dataclasses.dataclass(frozen=True)
class MeasuredType(Type):
    """A number type annotated with a unit of measure.

    Measures are compared syntactically: m / s and m * s ^ -1 are different
    units."""

    number: BaseType
    measure: MeasureNode

    def free_type_variables(self) -> FrozenSet[int]:
        return frozenset()

    def apply_substitution(self, sub: Substitutions) -> Type:
        return self

    def format(self, namer: _Namer) -> str:
        return f'{self.number.format(namer)}<{self.measure}>'


@dataclasses.dataclass(frozen=True)
class Scheme:
    """A type with universally quantified type variables."""

    quantified: FrozenSet[int]
    body: Type

    @classmethod
    def monomorphic(cls, ty: Type) -> Scheme:
        return cls(frozenset(), ty)

    @classmethod
    def generalize(
        cls, ty: Type, environment_variables: AbstractSet[int]
    ) -> Scheme:
        return cls(ty.free_type_variables() - environment_variables, ty)

    def free_type_variables(self) -> FrozenSet[int]:
        return self.body.free_type_variables() - self.quantified

    def apply_substitution(self, sub: Substitutions) -> Scheme:
        # Quantified variables shadow the substitution.
        if not (sub.keys() & self.free_type_variables()):
            return self
        return Scheme(
            self.quantified,
            self.body.apply_substitution(sub.without(self.quantified)),
        )

    def instantiate(self, fresh_variable: Callable[[], TypeVariable]) -> Type:
        if not self.quantified:
            return self.body
        sub = Substitutions(
            (variable, fresh_variable())
            for variable in sorted(self.quantified)
        )
        return self.body.apply_substitution(sub)

    def to_user_string(self) -> str:
        """Print the scheme with variables renamed in order of appearance.

        Quantified variables become 'a, 'b, ... and variables that are still
        free become '_a, '_b, ..."""
        names: Dict[int, str] = {}

        def namer(variable_id: int) -> str:
            if variable_id not in names:
                prefix = "'" if variable_id in self.quantified else "'_"
                names[variable_id] = prefix + _letters(len(names))
            return names[variable_id]

        return self.body.format(namer)

    def __str__(self) -> str:
        return self.to_user_string()

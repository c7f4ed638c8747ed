"""Substitution representation and operations."""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    AbstractSet,
    Iterable,
    Iterator,
    Mapping,
    Tuple,
    Union,
)

# circular imports
if TYPE_CHECKING:
    from miniml.typecheck.types import Type


class Substitutions(Mapping[int, 'Type']):
    """Substitutions of type variables (by id) with types.

    Substitutions are immutable. Entries mapping a variable to itself are
    dropped, so the singleton substitution of a variable with itself is the
    empty substitution."""

    def __init__(
        self,
        sub: Union[
            Iterable[Tuple[int, 'Type']],
            Mapping[int, 'Type'],
            None,
        ] = None,
    ) -> None:
        entries = {} if sub is None else dict(sub)
        self._sub = {
            variable: ty
            for variable, ty in entries.items()
            if not ty.is_variable(variable)
        }

    @classmethod
    def singleton(cls, variable: int, ty: 'Type') -> Substitutions:
        return cls({variable: ty})

    def __getitem__(self, variable: int) -> 'Type':
        return self._sub[variable]

    def __iter__(self) -> Iterator[int]:
        return iter(self._sub)

    def __len__(self) -> int:
        return len(self._sub)

    def __bool__(self) -> bool:
        return bool(self._sub)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Substitutions):
            return NotImplemented
        return self._sub == other._sub

    def __hash__(self) -> int:
        return hash(frozenset(self.items()))

    def __str__(self) -> str:
        entries = ', '.join(f"'t{v}: {t}" for v, t in sorted(self.items()))
        return f'{{{entries}}}'

    def __repr__(self) -> str:
        return f'Substitutions({self._sub!r})'

    def without(self, variables: AbstractSet[int]) -> Substitutions:
        if not (self.keys() & variables):
            return self
        return Substitutions(
            (v, t) for v, t in self.items() if v not in variables
        )

    def apply_substitution(self, sub: Substitutions) -> Substitutions:
        """Return the substitution that applies self, then sub."""
        if not sub:
            return self
        return Substitutions(
            {
                **{a: i.apply_substitution(sub) for a, i in self.items()},
                **{a: i for a, i in sub.items() if a not in self},
            }
        )


def compose(later: Substitutions, earlier: Substitutions) -> Substitutions:
    """Compose two substitutions.

    Applying the result is equivalent to applying earlier, then later."""
    return earlier.apply_substitution(later)

"""Typing environments."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from functools import reduce
from operator import or_
from typing import TYPE_CHECKING, FrozenSet, Optional

from typing_extensions import Self

from miniml.typecheck.types import Scheme

if TYPE_CHECKING:
    from miniml.typecheck.substitutions import Substitutions
    from miniml.typecheck.types import Type


class Environment(Mapping[str, Scheme]):
    """A map from names in a typing context to the schemes of those names.

    Environments are immutable: extension returns a new environment."""

    def __init__(self, env: Optional[Mapping[str, Scheme]] = None) -> None:
        self._env = dict(env or {})
        self._free_type_variables_cached: Optional[FrozenSet[int]] = None

    def apply_substitution(self, sub: 'Substitutions') -> 'Environment':
        if not (sub.keys() & self.free_type_variables()):
            return self
        return Environment(
            {
                name: scheme.apply_substitution(sub)
                for name, scheme in self.items()
            }
        )

    def free_type_variables(self) -> FrozenSet[int]:
        if self._free_type_variables_cached is None:
            self._free_type_variables_cached = reduce(
                or_,
                map(lambda s: s.free_type_variables(), self.values()),
                frozenset(),
            )
        return self._free_type_variables_cached

    def generalize(self, ty: 'Type') -> Scheme:
        """Quantify the variables of ty that are not free in this
        environment."""
        return Scheme.generalize(ty, self.free_type_variables())

    def extend(self, name: str, scheme: Scheme) -> Self:
        return self | {name: scheme}

    def __getitem__(self, name: str) -> Scheme:
        return self._env[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._env)

    def __len__(self) -> int:
        return len(self._env)

    def __or__(self, other: Mapping[str, Scheme]) -> Self:
        env = {**self._env}
        for name, scheme in other.items():
            # Rebinding moves the name to the end.
            env.pop(name, None)
            env[name] = scheme
        return type(self)(env)

    def __str__(self) -> str:
        return f'{{{', '.join(f'{n}: {s}' for n, s in self.items())}}}'

    def __repr__(self) -> str:
        return f'Environment({self._env!r})'

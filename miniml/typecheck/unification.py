"""Syntactic unification of monomorphic types."""

from __future__ import annotations

import logging
from typing import Sequence

from miniml.logging import MiniMLLogger
from miniml.typecheck.errors import (
    OccursCheckError,
    TupleArityError,
    UnificationError,
)
from miniml.typecheck.substitutions import Substitutions, compose
from miniml.typecheck.types import (
    FunctionType,
    ListType,
    OptionType,
    TupleType,
    Type,
    TypeVariable,
)

_logger = MiniMLLogger(logging.getLogger(__name__))


def unify(left: Type, right: Type) -> Substitutions:
    """Find the most general substitution that makes left and right equal.

    Raises a UnificationError (or OccursCheckError) when there is none."""
    _logger.debug('unifying {} with {}', left, right)
    if left == right:
        return Substitutions()
    if isinstance(left, TypeVariable):
        return bind_variable(left, right)
    if isinstance(right, TypeVariable):
        return bind_variable(right, left)
    if isinstance(left, FunctionType) and isinstance(right, FunctionType):
        return unify_pairwise(
            [left.argument, left.result], [right.argument, right.result]
        )
    if isinstance(left, TupleType) and isinstance(right, TupleType):
        if len(left.components) != len(right.components):
            raise TupleArityError(left, right)
        return unify_pairwise(left.components, right.components)
    if isinstance(left, ListType) and isinstance(right, ListType):
        return unify(left.element, right.element)
    if isinstance(left, OptionType) and isinstance(right, OptionType):
        return unify(left.element, right.element)
    raise UnificationError(left, right)


def unify_pairwise(
    lefts: Sequence[Type], rights: Sequence[Type]
) -> Substitutions:
    """Unify each pair in order, applying what was solved so far to the next
    pair."""
    assert len(lefts) == len(rights)
    sub = Substitutions()
    for left, right in zip(lefts, rights):
        new_sub = unify(
            left.apply_substitution(sub), right.apply_substitution(sub)
        )
        sub = compose(new_sub, sub)
    return sub


def bind_variable(variable: TypeVariable, ty: Type) -> Substitutions:
    if ty.is_variable(variable.id):
        return Substitutions()
    if ty.occurs(variable.id):
        raise OccursCheckError(variable, ty)
    return Substitutions.singleton(variable.id, ty)

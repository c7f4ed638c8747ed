import unittest

import miniml.tests.strategies  # for side-effects
from hypothesis import given
from hypothesis.strategies import from_type
from miniml.typecheck.substitutions import Substitutions, compose
from miniml.typecheck.types import (
    FunctionType,
    ListType,
    Scheme,
    TupleType,
    Type,
    TypeVariable,
    bool_type,
    int_type,
)

a, b, c = TypeVariable(0), TypeVariable(1), TypeVariable(2)


class TestSubstitutions(unittest.TestCase):
    @given(from_type(Type))
    def test_empty_substitution_is_identity(self, ty: Type) -> None:
        self.assertEqual(ty.apply_substitution(Substitutions()), ty)

    def test_trivial_entries_are_dropped(self) -> None:
        sub = Substitutions.singleton(0, a)
        self.assertEqual(sub, Substitutions())
        self.assertEqual(len(sub), 0)
        self.assertFalse(sub)

    def test_apply_replaces_free_variables(self) -> None:
        sub = Substitutions({0: int_type, 1: ListType(bool_type)})
        ty = FunctionType(a, TupleType(b, c))
        self.assertEqual(
            ty.apply_substitution(sub),
            FunctionType(int_type, TupleType(ListType(bool_type), c)),
        )

    def test_apply_is_simultaneous(self) -> None:
        sub = Substitutions({0: b, 1: int_type})
        self.assertEqual(a.apply_substitution(sub), b)

    @given(from_type(Type), from_type(Substitutions), from_type(Substitutions))
    def test_compose_applies_later_after_earlier(
        self, ty: Type, later: Substitutions, earlier: Substitutions
    ) -> None:
        self.assertEqual(
            ty.apply_substitution(compose(later, earlier)),
            ty.apply_substitution(earlier).apply_substitution(later),
        )

    def test_compose_is_not_commutative(self) -> None:
        s1 = Substitutions({0: int_type})
        s2 = Substitutions({1: a})
        self.assertEqual(compose(s1, s2), Substitutions({0: int_type, 1: int_type}))
        self.assertEqual(compose(s2, s1), Substitutions({0: int_type, 1: a}))
        self.assertNotEqual(compose(s1, s2), compose(s2, s1))

    def test_compose_keeps_earlier_entries(self) -> None:
        s1 = Substitutions({0: bool_type})
        s2 = Substitutions({0: int_type})
        self.assertEqual(compose(s1, s2), Substitutions({0: int_type}))

    def test_without(self) -> None:
        sub = Substitutions({0: int_type, 1: bool_type})
        self.assertEqual(sub.without({0}), Substitutions({1: bool_type}))
        self.assertIs(sub.without({2}), sub)

    def test_quantified_variables_shadow_substitution(self) -> None:
        scheme = Scheme(frozenset({0}), FunctionType(a, b))
        sub = Substitutions({0: int_type, 1: bool_type})
        self.assertEqual(
            scheme.apply_substitution(sub),
            Scheme(frozenset({0}), FunctionType(a, bool_type)),
        )

    def test_str(self) -> None:
        sub = Substitutions({1: int_type, 0: ListType(c)})
        self.assertEqual(str(sub), "{'t0: 't2 list, 't1: int}")

import unittest

import miniml.tests.strategies  # for side-effects
from hypothesis import given
from hypothesis.strategies import from_type
from miniml.parse import MeasureIdentifierNode
from miniml.typecheck.errors import (
    OccursCheckError,
    TupleArityError,
    TypeError as MiniMLTypeError,
    UnificationError,
)
from miniml.typecheck.substitutions import Substitutions
from miniml.typecheck.types import (
    FunctionType,
    ListType,
    MeasuredType,
    OptionType,
    TupleType,
    Type,
    TypeVariable,
    bool_type,
    float_type,
    int_type,
)
from miniml.typecheck.unification import unify

a, b = TypeVariable(0), TypeVariable(1)
metres = MeasureIdentifierNode('m')
seconds = MeasureIdentifierNode('s')


class TestUnify(unittest.TestCase):
    def test_identical_base_types(self) -> None:
        self.assertEqual(unify(int_type, int_type), Substitutions())

    def test_different_base_types(self) -> None:
        with self.assertRaises(UnificationError) as cm:
            unify(int_type, bool_type)
        self.assertEqual(cm.exception.left, int_type)
        self.assertEqual(cm.exception.right, bool_type)
        self.assertEqual(str(cm.exception), 'cannot unify int with bool')

    def test_variable_with_type(self) -> None:
        self.assertEqual(unify(a, int_type), Substitutions({0: int_type}))
        self.assertEqual(unify(int_type, a), Substitutions({0: int_type}))

    def test_same_variable(self) -> None:
        self.assertEqual(unify(a, a), Substitutions())

    def test_left_variable_is_bound_first(self) -> None:
        self.assertEqual(unify(a, b), Substitutions({0: b}))
        self.assertEqual(unify(b, a), Substitutions({1: a}))

    def test_occurs_check(self) -> None:
        with self.assertRaises(OccursCheckError) as cm:
            unify(a, FunctionType(a, int_type))
        self.assertEqual(cm.exception.variable, a)
        self.assertEqual(cm.exception.type, FunctionType(a, int_type))

    def test_functions(self) -> None:
        self.assertEqual(
            unify(FunctionType(a, b), FunctionType(int_type, bool_type)),
            Substitutions({0: int_type, 1: bool_type}),
        )

    def test_function_result_sees_argument_solution(self) -> None:
        self.assertEqual(
            unify(FunctionType(a, a), FunctionType(int_type, b)),
            Substitutions({0: int_type, 1: int_type}),
        )

    def test_tuple_arity(self) -> None:
        with self.assertRaises(TupleArityError) as cm:
            unify(
                TupleType(int_type, int_type),
                TupleType(int_type, int_type, (int_type,)),
            )
        self.assertIsInstance(cm.exception, UnificationError)

    def test_tuples_left_to_right(self) -> None:
        self.assertEqual(
            unify(TupleType(a, a), TupleType(b, int_type)),
            Substitutions({0: int_type, 1: int_type}),
        )

    def test_lists_and_options(self) -> None:
        self.assertEqual(
            unify(ListType(a), ListType(int_type)), Substitutions({0: int_type})
        )
        self.assertEqual(
            unify(OptionType(a), OptionType(bool_type)),
            Substitutions({0: bool_type}),
        )
        with self.assertRaises(UnificationError):
            unify(ListType(a), OptionType(a))

    def test_measured_types(self) -> None:
        self.assertEqual(
            unify(
                MeasuredType(float_type, metres),
                MeasuredType(float_type, MeasureIdentifierNode('m')),
            ),
            Substitutions(),
        )
        with self.assertRaises(UnificationError):
            unify(
                MeasuredType(float_type, metres),
                MeasuredType(float_type, seconds),
            )
        with self.assertRaises(UnificationError):
            unify(MeasuredType(int_type, metres), MeasuredType(float_type, metres))
        with self.assertRaises(UnificationError):
            unify(MeasuredType(float_type, metres), float_type)

    @given(from_type(Type), from_type(Type))
    def test_unifier_is_idempotent(self, left: Type, right: Type) -> None:
        try:
            sub = unify(left, right)
        except MiniMLTypeError:
            return
        once = left.apply_substitution(sub)
        self.assertEqual(once.apply_substitution(sub), once)
        self.assertEqual(once, right.apply_substitution(sub))

    @given(from_type(Type), from_type(Type))
    def test_success_is_symmetric(self, left: Type, right: Type) -> None:
        def succeeds(x: Type, y: Type) -> bool:
            try:
                unify(x, y)
            except MiniMLTypeError:
                return False
            return True

        self.assertEqual(succeeds(left, right), succeeds(right, left))

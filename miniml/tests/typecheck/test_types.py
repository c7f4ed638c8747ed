import unittest

from miniml.parse import (
    MeasureIdentifierNode,
    MeasurePowerNode,
    MeasureQuotientNode,
)
from miniml.typecheck.types import (
    FunctionType,
    ListType,
    MeasuredType,
    OptionType,
    Scheme,
    TupleType,
    TypeVariable,
    float_type,
    int_type,
)

a, b = TypeVariable(7), TypeVariable(3)


class TestPrinting(unittest.TestCase):
    def test_function_arguments_are_parenthesized(self) -> None:
        ty = FunctionType(FunctionType(a, b), FunctionType(a, b))
        self.assertEqual(str(ty), "('t7 -> 't3) -> 't7 -> 't3")

    def test_compound_element_types_are_parenthesized(self) -> None:
        self.assertEqual(
            str(ListType(TupleType(int_type, a))), "(int * 't7) list"
        )
        self.assertEqual(str(OptionType(ListType(a))), "'t7 list option")

    def test_nested_tuples(self) -> None:
        ty = TupleType(TupleType(int_type, int_type), int_type)
        self.assertEqual(str(ty), '(int * int) * int')

    def test_variables_are_renamed_in_order_of_appearance(self) -> None:
        scheme = Scheme(frozenset({3, 7}), FunctionType(a, b))
        self.assertEqual(scheme.to_user_string(), "'a -> 'b")

    def test_free_variables_are_marked(self) -> None:
        scheme = Scheme(frozenset({7}), FunctionType(a, b))
        self.assertEqual(scheme.to_user_string(), "'a -> '_b")

    def test_schemes_equal_up_to_renaming_print_identically(self) -> None:
        first = Scheme(frozenset({7, 3}), FunctionType(a, b))
        second = Scheme(
            frozenset({0, 1}), FunctionType(TypeVariable(0), TypeVariable(1))
        )
        self.assertEqual(first.to_user_string(), second.to_user_string())

    def test_measured_type(self) -> None:
        measure = MeasureQuotientNode(
            MeasureIdentifierNode('m'),
            MeasurePowerNode(MeasureIdentifierNode('s'), 2),
        )
        self.assertEqual(
            str(MeasuredType(float_type, measure)), 'float<m / (s ^ 2)>'
        )


class TestScheme(unittest.TestCase):
    def test_instantiate_uses_fresh_variables(self) -> None:
        scheme = Scheme(frozenset({3, 7}), FunctionType(a, b))
        fresh = iter([TypeVariable(100), TypeVariable(101)])
        self.assertEqual(
            scheme.instantiate(lambda: next(fresh)),
            FunctionType(TypeVariable(101), TypeVariable(100)),
        )

    def test_instantiate_monomorphic(self) -> None:
        scheme = Scheme.monomorphic(FunctionType(a, int_type))
        self.assertEqual(
            scheme.instantiate(lambda: TypeVariable(100)),
            FunctionType(a, int_type),
        )

    def test_generalize(self) -> None:
        scheme = Scheme.generalize(FunctionType(a, b), {3})
        self.assertEqual(scheme.quantified, frozenset({7}))
        self.assertEqual(scheme.free_type_variables(), frozenset({3}))

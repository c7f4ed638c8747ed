"""The MiniML type checker.

The type inference algorithm is Damas and Milner's algorithm W, extended to
patterns, recursive bindings and number literals with units of measure. See
"Luis Damas and Robin Milner: Principal type-schemes for functional
programs, 1982."
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

import miniml.parse
import miniml.typecheck.preamble_types
from miniml.logging import MiniMLLogger
from miniml.typecheck.env import Environment
from miniml.typecheck.errors import (
    ImpossiblePatternError,
    NameError,
    NonUniquePatternVariableError,
    OrPatternBindingError,
    PatternArityError,
    StaticAnalysisError,
    UnboundMeasureError,
    UnboundTypeError,
    UnhandledNodeTypeError,
    format_let_rec_pattern_error,
)
from miniml.typecheck.substitutions import Substitutions, compose
from miniml.typecheck.types import (
    FunctionType,
    ListType,
    MeasuredType,
    OptionType,
    Scheme,
    TupleType,
    Type,
    TypeVariable,
    base_types,
    bool_type,
    char_type,
    float_type,
    int_type,
    string_type,
    unit_type,
)
from miniml.typecheck.unification import unify

_logger = MiniMLLogger(logging.getLogger(__name__))

type _PatternBindings = Dict[str, Type]


def _monomorphic_environment(bindings: Mapping[str, Type]) -> Environment:
    return Environment(
        {name: Scheme.monomorphic(ty) for name, ty in bindings.items()}
    )


def _apply_to_bindings(
    bindings: _PatternBindings, sub: Substitutions
) -> _PatternBindings:
    return {name: ty.apply_substitution(sub) for name, ty in bindings.items()}


def _merge_pattern_bindings(
    bound: _PatternBindings, new: _PatternBindings
) -> _PatternBindings:
    for name in new:
        if name in bound:
            raise NonUniquePatternVariableError(name)
    return {**bound, **new}


class TypeChecker:
    """Infers principal types for MiniML programs.

    Each TypeChecker owns a counter for fresh type variables and the set of
    declared units of measure, so separate instances never share state."""

    def __init__(self) -> None:
        self._next_variable_id = 0
        self._measures: Dict[str, Optional[miniml.parse.MeasureNode]] = {}

    def fresh_variable(self) -> TypeVariable:
        variable = TypeVariable(self._next_variable_id)
        self._next_variable_id += 1
        return variable

    def run_infer(
        self,
        structure: Iterable[miniml.parse.StructureItemNode],
        with_preamble: bool = True,
    ) -> Environment:
        """Infer the schemes of all the top-level definitions of a program.

        The result maps each name bound by a top-level definition to its
        scheme, in binding order. The first error aborts inference."""
        self._next_variable_id = 0
        self._measures = {}
        env = Environment()
        if with_preamble:
            env = Environment(miniml.typecheck.preamble_types.types())
        defined = Environment()
        for item in structure:
            env, names = self.infer_structure_item(env, item)
            defined |= names
        return defined

    def infer_structure_item(
        self, env: Environment, item: miniml.parse.StructureItemNode
    ) -> Tuple[Environment, Dict[str, Scheme]]:
        """Check one top-level item.

        Returns the environment for the following items and the schemes of
        the names the item defines."""
        try:
            if isinstance(item, miniml.parse.EvalItemNode):
                _, ty = self.infer_expr(env, item.expression)
                _logger.debug('expression has type {}', ty)
                return env, {}
            if isinstance(item, miniml.parse.DefinitionItemNode):
                _, env, names = self.infer_bindings(
                    env, item.is_recursive, item.bindings
                )
                for name, scheme in names.items():
                    _logger.debug('val {} : {}', name, scheme)
                return env, names
            if isinstance(item, miniml.parse.MeasureDefinitionItemNode):
                if item.measure is not None:
                    self._check_measure(item.measure)
                self._measures[item.name] = item.measure
                _logger.debug('declared unit of measure {}', item.name)
                return env, {}
            raise UnhandledNodeTypeError(
                "don't know how to handle '{}'".format(item)
            )
        except StaticAnalysisError as error:
            error.set_location_if_missing(item.location)
            raise

    def infer_bindings(
        self,
        env: Environment,
        is_recursive: bool,
        bindings: Sequence[miniml.parse.BindingNode],
    ) -> Tuple[Substitutions, Environment, Dict[str, Scheme]]:
        """Infer a group of let-bindings joined with 'and'.

        Returns the substitution, the extended environment, and the
        generalized schemes of the bound names."""
        if is_recursive:
            sub, bound = self._infer_recursive_bindings(env, bindings)
        else:
            sub, bound = self._infer_nonrecursive_bindings(env, bindings)
        outer_env = env.apply_substitution(sub)
        schemes = {}
        for name, ty in bound.items():
            schemes[name] = outer_env.generalize(ty)
            _logger.debug('generalized {} to {}', ty, schemes[name])
        return sub, outer_env | schemes, schemes

    def _infer_nonrecursive_bindings(
        self, env: Environment, bindings: Sequence[miniml.parse.BindingNode]
    ) -> Tuple[Substitutions, _PatternBindings]:
        sub = Substitutions()
        bound: _PatternBindings = {}
        for binding in bindings:
            try:
                # The bindings of one group can't see each other.
                expr_sub, ty = self.infer_expr(
                    env.apply_substitution(sub), binding.expression
                )
                sub = compose(expr_sub, sub)
                pattern_sub, names = self.infer_pattern(binding.pattern, ty)
                sub = compose(pattern_sub, sub)
                bound = _merge_pattern_bindings(
                    _apply_to_bindings(bound, compose(pattern_sub, expr_sub)),
                    names,
                )
            except StaticAnalysisError as error:
                error.set_location_if_missing(binding.location)
                raise
        return sub, bound

    def _infer_recursive_bindings(
        self, env: Environment, bindings: Sequence[miniml.parse.BindingNode]
    ) -> Tuple[Substitutions, _PatternBindings]:
        sub = Substitutions()
        placeholders: _PatternBindings = {}
        names_in_order = []
        for binding in bindings:
            try:
                name = self._let_rec_name(binding.pattern)
                pattern_sub, names = self.infer_pattern(
                    binding.pattern, self.fresh_variable()
                )
                sub = compose(pattern_sub, sub)
                placeholders = _merge_pattern_bindings(
                    _apply_to_bindings(placeholders, pattern_sub), names
                )
                names_in_order.append(name)
            except StaticAnalysisError as error:
                error.set_location_if_missing(binding.location)
                raise
        recursive_env = env | _monomorphic_environment(placeholders)
        for binding, name in zip(bindings, names_in_order):
            try:
                expr_sub, ty = self.infer_expr(
                    recursive_env.apply_substitution(sub), binding.expression
                )
                sub = compose(expr_sub, sub)
                placeholder = placeholders[name].apply_substitution(sub)
                sub = compose(unify(placeholder, ty), sub)
            except StaticAnalysisError as error:
                error.set_location_if_missing(binding.location)
                raise
        return sub, _apply_to_bindings(placeholders, sub)

    @staticmethod
    def _let_rec_name(pattern: miniml.parse.PatternNode) -> str:
        while isinstance(pattern, miniml.parse.TypedPatternNode):
            pattern = pattern.pattern
        if not isinstance(pattern, miniml.parse.IdentifierPatternNode):
            error = ImpossiblePatternError(format_let_rec_pattern_error())
            error.set_location_if_missing(pattern.location)
            raise error
        return pattern.name

    def infer_expr(
        self, env: Environment, expr: miniml.parse.ExprNode
    ) -> Tuple[Substitutions, Type]:
        """Infer the type of an expression.

        The returned type already has the returned substitution applied."""
        try:
            return self._infer_expr(env, expr)
        except StaticAnalysisError as error:
            error.set_location_if_missing(expr.location)
            raise

    def _infer_expr(
        self, env: Environment, expr: miniml.parse.ExprNode
    ) -> Tuple[Substitutions, Type]:
        if isinstance(expr, miniml.parse.ConstantNode):
            return Substitutions(), self._constant_type(expr.constant)
        if isinstance(expr, miniml.parse.IdentifierNode):
            scheme = env.get(expr.name)
            if scheme is None:
                raise NameError(expr.name, expr.location)
            return Substitutions(), scheme.instantiate(self.fresh_variable)
        if isinstance(expr, miniml.parse.TypedNode):
            sub, ty = self.infer_expr(env, expr.expression)
            annotation_sub = unify(ty, self.annotation_to_type(expr.type))
            return (
                compose(annotation_sub, sub),
                ty.apply_substitution(annotation_sub),
            )
        if isinstance(expr, miniml.parse.TupleNode):
            sub = Substitutions()
            components: list[Type] = []
            for component in expr.components:
                component_sub, ty = self.infer_expr(
                    env.apply_substitution(sub), component
                )
                sub = compose(component_sub, sub)
                components = [
                    c.apply_substitution(component_sub) for c in components
                ]
                components.append(ty)
            return sub, TupleType.of(components)
        if isinstance(expr, miniml.parse.ListNode):
            element: Type = self.fresh_variable()
            sub = Substitutions()
            for item in expr.elements:
                item_sub, ty = self.infer_expr(
                    env.apply_substitution(sub), item
                )
                sub = compose(item_sub, sub)
                sub = compose(unify(element.apply_substitution(sub), ty), sub)
            return sub, ListType(element.apply_substitution(sub))
        if isinstance(expr, miniml.parse.OptionNode):
            if expr.value is None:
                return Substitutions(), OptionType(self.fresh_variable())
            sub, ty = self.infer_expr(env, expr.value)
            return sub, OptionType(ty)
        if isinstance(expr, miniml.parse.LambdaNode):
            parameter = self.fresh_variable()
            pattern_sub, names = self.infer_pattern(expr.parameter, parameter)
            body_env = env.apply_substitution(
                pattern_sub
            ) | _monomorphic_environment(names)
            body_sub, body = self.infer_expr(body_env, expr.body)
            sub = compose(body_sub, pattern_sub)
            return sub, FunctionType(parameter.apply_substitution(sub), body)
        if isinstance(expr, miniml.parse.ApplyNode):
            function_sub, function = self.infer_expr(env, expr.function)
            argument_sub, argument = self.infer_expr(
                env.apply_substitution(function_sub), expr.argument
            )
            result = self.fresh_variable()
            application_sub = unify(
                function.apply_substitution(argument_sub),
                FunctionType(argument, result),
            )
            sub = compose(
                application_sub, compose(argument_sub, function_sub)
            )
            return sub, result.apply_substitution(application_sub)
        if isinstance(expr, miniml.parse.LetNode):
            bindings_sub, body_env, _ = self.infer_bindings(
                env, expr.is_recursive, expr.bindings
            )
            body_sub, body = self.infer_expr(body_env, expr.body)
            return compose(body_sub, bindings_sub), body
        if isinstance(expr, miniml.parse.IfNode):
            sub, condition = self.infer_expr(env, expr.condition)
            sub = compose(unify(condition, bool_type), sub)
            consequent_sub, consequent = self.infer_expr(
                env.apply_substitution(sub), expr.consequent
            )
            sub = compose(consequent_sub, sub)
            if expr.alternative is None:
                return compose(unify(consequent, unit_type), sub), unit_type
            alternative_sub, alternative = self.infer_expr(
                env.apply_substitution(sub), expr.alternative
            )
            sub = compose(alternative_sub, sub)
            branch_sub = unify(
                consequent.apply_substitution(alternative_sub), alternative
            )
            return (
                compose(branch_sub, sub),
                alternative.apply_substitution(branch_sub),
            )
        if isinstance(expr, miniml.parse.MatchNode):
            sub, scrutinee = self.infer_expr(env, expr.scrutinee)
            rules_sub, _, result = self._infer_rules(
                env.apply_substitution(sub),
                scrutinee,
                self.fresh_variable(),
                expr.rules,
            )
            return compose(rules_sub, sub), result
        if isinstance(expr, miniml.parse.FunctionNode):
            sub, parameter, result = self._infer_rules(
                env, self.fresh_variable(), self.fresh_variable(), expr.rules
            )
            return sub, FunctionType(parameter, result)
        raise UnhandledNodeTypeError(
            "don't know how to handle '{}'".format(expr)
        )

    def _infer_rules(
        self,
        env: Environment,
        scrutinee: Type,
        result: Type,
        rules: Sequence[miniml.parse.RuleNode],
    ) -> Tuple[Substitutions, Type, Type]:
        """Check the rules of a match or function expression.

        Every pattern must match the scrutinee type and every body must have
        the result type."""
        sub = Substitutions()
        for rule in rules:
            try:
                pattern_sub, names = self.infer_pattern(
                    rule.pattern, scrutinee.apply_substitution(sub)
                )
                sub = compose(pattern_sub, sub)
                rule_env = env.apply_substitution(
                    sub
                ) | _monomorphic_environment(names)
                body_sub, body = self.infer_expr(rule_env, rule.body)
                sub = compose(body_sub, sub)
                sub = compose(unify(result.apply_substitution(sub), body), sub)
            except StaticAnalysisError as error:
                error.set_location_if_missing(rule.location)
                raise
        return (
            sub,
            scrutinee.apply_substitution(sub),
            result.apply_substitution(sub),
        )

    def infer_pattern(
        self, pattern: miniml.parse.PatternNode, ty: Type
    ) -> Tuple[Substitutions, _PatternBindings]:
        """Match a pattern against a value of type ty.

        Returns the substitution and the types of the names the pattern
        binds, in the order they appear."""
        try:
            return self._infer_pattern(pattern, ty)
        except StaticAnalysisError as error:
            error.set_location_if_missing(pattern.location)
            raise

    def _infer_pattern(
        self, pattern: miniml.parse.PatternNode, ty: Type
    ) -> Tuple[Substitutions, _PatternBindings]:
        if isinstance(pattern, miniml.parse.IdentifierPatternNode):
            return Substitutions(), {pattern.name: ty}
        if isinstance(pattern, miniml.parse.WildcardPatternNode):
            return Substitutions(), {}
        if isinstance(pattern, miniml.parse.ConstantPatternNode):
            return unify(ty, self._constant_type(pattern.constant)), {}
        if isinstance(pattern, miniml.parse.TypedPatternNode):
            annotation_sub = unify(ty, self.annotation_to_type(pattern.type))
            sub, names = self.infer_pattern(
                pattern.pattern, ty.apply_substitution(annotation_sub)
            )
            return compose(sub, annotation_sub), names
        if isinstance(pattern, miniml.parse.TuplePatternNode):
            components = pattern.components
            if isinstance(ty, TupleType) and len(ty.components) != len(
                components
            ):
                raise PatternArityError(len(components), ty)
            variables = [self.fresh_variable() for _ in components]
            sub = unify(ty, TupleType.of(variables))
            return self._infer_pattern_sequence(
                sub, zip(components, variables)
            )
        if isinstance(pattern, miniml.parse.ListPatternNode):
            element = self.fresh_variable()
            sub = unify(ty, ListType(element))
            return self._infer_pattern_sequence(
                sub, ((e, element) for e in pattern.elements)
            )
        if isinstance(pattern, miniml.parse.ConsPatternNode):
            element = self.fresh_variable()
            sub = unify(ty, ListType(element))
            return self._infer_pattern_sequence(
                sub,
                [(pattern.head, element), (pattern.tail, ListType(element))],
            )
        if isinstance(pattern, miniml.parse.OptionPatternNode):
            element = self.fresh_variable()
            sub = unify(ty, OptionType(element))
            if pattern.value is None:
                return sub, {}
            return self._infer_pattern_sequence(
                sub, [(pattern.value, element)]
            )
        if isinstance(pattern, miniml.parse.OrPatternNode):
            left_sub, left = self.infer_pattern(pattern.left, ty)
            right_sub, right = self.infer_pattern(
                pattern.right, ty.apply_substitution(left_sub)
            )
            if left.keys() != right.keys():
                raise OrPatternBindingError(set(left), set(right))
            sub = compose(right_sub, left_sub)
            left = _apply_to_bindings(left, right_sub)
            for name in left:
                sub = compose(
                    unify(
                        left[name].apply_substitution(sub),
                        right[name].apply_substitution(sub),
                    ),
                    sub,
                )
            return sub, _apply_to_bindings(left, sub)
        raise UnhandledNodeTypeError(
            "don't know how to handle '{}'".format(pattern)
        )

    def _infer_pattern_sequence(
        self,
        sub: Substitutions,
        patterns_and_types: Iterable[Tuple[miniml.parse.PatternNode, Type]],
    ) -> Tuple[Substitutions, _PatternBindings]:
        """Infer several subpatterns left to right, rejecting names bound
        more than once."""
        bound: _PatternBindings = {}
        for subpattern, ty in patterns_and_types:
            pattern_sub, names = self.infer_pattern(
                subpattern, ty.apply_substitution(sub)
            )
            sub = compose(pattern_sub, sub)
            bound = _merge_pattern_bindings(
                _apply_to_bindings(bound, pattern_sub), names
            )
        return sub, _apply_to_bindings(bound, sub)

    def _constant_type(self, constant: miniml.parse.Constant) -> Type:
        if isinstance(constant, miniml.parse.IntConstant):
            return int_type
        if isinstance(constant, miniml.parse.FloatConstant):
            return float_type
        if isinstance(constant, miniml.parse.BoolConstant):
            return bool_type
        if isinstance(constant, miniml.parse.CharConstant):
            return char_type
        if isinstance(constant, miniml.parse.StringConstant):
            return string_type
        if isinstance(constant, miniml.parse.UnitConstant):
            return unit_type
        if isinstance(constant, miniml.parse.MeasuredConstant):
            self._check_measure(constant.measure)
            number = (
                int_type if isinstance(constant.magnitude, int) else float_type
            )
            return MeasuredType(number, constant.measure)
        raise UnhandledNodeTypeError(
            "don't know how to handle '{}'".format(constant)
        )

    def _check_measure(self, measure: miniml.parse.MeasureNode) -> None:
        for name, location in measure.names():
            if name not in self._measures:
                raise UnboundMeasureError(name, location or measure.location)

    def annotation_to_type(self, annotation: miniml.parse.TypeNode) -> Type:
        """Convert a type annotation into a type.

        Each type variable name in the annotation stands for one fresh
        variable."""
        variables: Dict[str, TypeVariable] = {}

        def convert(node: miniml.parse.TypeNode) -> Type:
            if isinstance(node, miniml.parse.NamedTypeNode):
                if node.name not in base_types:
                    raise UnboundTypeError(node.name, node.location)
                return base_types[node.name]
            if isinstance(node, miniml.parse.TypeVariableNode):
                if node.name not in variables:
                    variables[node.name] = self.fresh_variable()
                return variables[node.name]
            if isinstance(node, miniml.parse.ListTypeNode):
                return ListType(convert(node.element))
            if isinstance(node, miniml.parse.OptionTypeNode):
                return OptionType(convert(node.element))
            if isinstance(node, miniml.parse.FunctionTypeNode):
                return FunctionType(convert(node.argument), convert(node.result))
            if isinstance(node, miniml.parse.TupleTypeNode):
                return TupleType.of([convert(c) for c in node.components])
            raise UnhandledNodeTypeError(
                "don't know how to handle '{}'".format(node)
            )

        return convert(annotation)


def run_infer(
    structure: Iterable[miniml.parse.StructureItemNode],
    with_preamble: bool = True,
) -> Environment:
    return TypeChecker().run_infer(structure, with_preamble)

"""The MiniML parser.

The parser uses parsy, a parser combinator library, over the token list
produced by miniml.lex. parsy is used since it supports having a separate
tokenization phase.

- The extension mechanism:
The parsers object is a dictionary with a few methods:
extend_with(extension) -- mutates the dictionary by adding the extension

For example, an extension could add a new kind of atom:

def atom_ext(parsers):
    parsers['atom'] |= extensionParser

parsers.extend_with(atom_ext)
"""

from __future__ import annotations

import abc
import dataclasses
import functools
from typing import (
    Any,
    Callable,
    Dict,
    Generator,
    Iterator,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import parsy

import miniml.lex
from miniml.location import Location, are_on_same_line_and_offset_by


def _is_operator_name(name: str) -> bool:
    return name in miniml.lex.operators


# Unary minus is parsed as an application of these names.
_unary_operators = {'~-': '-', '~-.': '-.'}


def _format_name(name: str) -> str:
    if _is_operator_name(name):
        return f'( {name} )'
    return name


_escapes = {'n': '\n', 't': '\t', 'r': '\r', 'b': '\b', ' ': ' '}
_reverse_escapes = {
    '\n': '\\n',
    '\t': '\\t',
    '\r': '\\r',
    '\b': '\\b',
    '\\': '\\\\',
}


def _unescape(literal: str) -> str:
    characters = []
    chars = iter(literal)
    for char in chars:
        if char == '\\':
            escaped = next(chars)
            characters.append(_escapes.get(escaped, escaped))
        else:
            characters.append(char)
    return ''.join(characters)


def _escape(value: str, quote: str) -> str:
    return ''.join(
        '\\' + char if char == quote else _reverse_escapes.get(char, char)
        for char in value
    )


@dataclasses.dataclass(frozen=True)
class Node(abc.ABC):
    location: Optional[Location] = dataclasses.field(
        default=None, compare=False, repr=False, kw_only=True
    )


# Units of measure


class MeasureNode(Node, abc.ABC):
    @abc.abstractmethod
    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        """The measure names used in this measure, with their locations."""

    def _format_operand(self) -> str:
        if isinstance(self, (MeasureIdentifierNode, DimensionlessMeasureNode)):
            return str(self)
        return f'({self})'


@dataclasses.dataclass(frozen=True)
class MeasureIdentifierNode(MeasureNode):
    name: str

    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        yield self.name, self.location

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class MeasureProductNode(MeasureNode):
    left: MeasureNode
    right: MeasureNode

    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        yield from self.left.names()
        yield from self.right.names()

    def __str__(self) -> str:
        return (
            f'{self.left._format_operand()} * {self.right._format_operand()}'
        )


@dataclasses.dataclass(frozen=True)
class MeasureQuotientNode(MeasureNode):
    left: MeasureNode
    right: MeasureNode

    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        yield from self.left.names()
        yield from self.right.names()

    def __str__(self) -> str:
        return (
            f'{self.left._format_operand()} / {self.right._format_operand()}'
        )


@dataclasses.dataclass(frozen=True)
class MeasurePowerNode(MeasureNode):
    base: MeasureNode
    exponent: int

    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        yield from self.base.names()

    def __str__(self) -> str:
        return f'{self.base._format_operand()} ^ {self.exponent}'


@dataclasses.dataclass(frozen=True)
class DimensionlessMeasureNode(MeasureNode):
    def names(self) -> Iterator[Tuple[str, Optional[Location]]]:
        yield from ()

    def __str__(self) -> str:
        return '1'


# Constants


class Constant(Node, abc.ABC):
    pass


@dataclasses.dataclass(frozen=True)
class IntConstant(Constant):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclasses.dataclass(frozen=True)
class FloatConstant(Constant):
    value: float

    def __str__(self) -> str:
        return repr(self.value)


@dataclasses.dataclass(frozen=True)
class BoolConstant(Constant):
    value: bool

    def __str__(self) -> str:
        return 'true' if self.value else 'false'


@dataclasses.dataclass(frozen=True)
class CharConstant(Constant):
    value: str

    def __str__(self) -> str:
        return f"'{_escape(self.value, "'")}'"


@dataclasses.dataclass(frozen=True)
class StringConstant(Constant):
    value: str

    def __str__(self) -> str:
        return f'"{_escape(self.value, '"')}"'


@dataclasses.dataclass(frozen=True)
class UnitConstant(Constant):
    def __str__(self) -> str:
        return '()'


@dataclasses.dataclass(frozen=True)
class MeasuredConstant(Constant):
    """A number literal with a unit of measure, like 9.8<m / s ^ 2>."""

    magnitude: Union[int, float]
    measure: MeasureNode

    def __str__(self) -> str:
        return f'{self.magnitude!r}<{self.measure}>'


def _is_negative(constant: Constant) -> bool:
    if isinstance(constant, (IntConstant, FloatConstant)):
        return constant.value < 0
    if isinstance(constant, MeasuredConstant):
        return constant.magnitude < 0
    return False


# Type annotations


class TypeNode(Node, abc.ABC):
    def _format_operand(self) -> str:
        if isinstance(
            self, (NamedTypeNode, TypeVariableNode, _ElementTypeNode)
        ):
            return str(self)
        return f'({self})'


@dataclasses.dataclass(frozen=True)
class NamedTypeNode(TypeNode):
    name: str

    def __str__(self) -> str:
        return self.name


@dataclasses.dataclass(frozen=True)
class TypeVariableNode(TypeNode):
    name: str

    def __str__(self) -> str:
        return f"'{self.name}"


@dataclasses.dataclass(frozen=True)
class _ElementTypeNode(TypeNode):
    element: TypeNode
    constructor_name = ''

    def __str__(self) -> str:
        return f'{self.element._format_operand()} {self.constructor_name}'


@dataclasses.dataclass(frozen=True)
class ListTypeNode(_ElementTypeNode):
    constructor_name = 'list'


@dataclasses.dataclass(frozen=True)
class OptionTypeNode(_ElementTypeNode):
    constructor_name = 'option'


@dataclasses.dataclass(frozen=True)
class FunctionTypeNode(TypeNode):
    argument: TypeNode
    result: TypeNode

    def __str__(self) -> str:
        argument = str(self.argument)
        if isinstance(self.argument, FunctionTypeNode):
            argument = f'({argument})'
        return f'{argument} -> {self.result}'


@dataclasses.dataclass(frozen=True)
class TupleTypeNode(TypeNode):
    first: TypeNode
    second: TypeNode
    rest: Tuple[TypeNode, ...] = ()

    @property
    def components(self) -> Tuple[TypeNode, ...]:
        return (self.first, self.second, *self.rest)

    def __str__(self) -> str:
        return ' * '.join(c._format_operand() for c in self.components)


# Patterns


class PatternNode(Node, abc.ABC):
    pass


@dataclasses.dataclass(frozen=True)
class IdentifierPatternNode(PatternNode):
    name: str

    def __str__(self) -> str:
        return _format_name(self.name)


@dataclasses.dataclass(frozen=True)
class WildcardPatternNode(PatternNode):
    def __str__(self) -> str:
        return '_'


@dataclasses.dataclass(frozen=True)
class ConstantPatternNode(PatternNode):
    constant: Constant

    def __str__(self) -> str:
        return str(self.constant)


@dataclasses.dataclass(frozen=True)
class TypedPatternNode(PatternNode):
    pattern: PatternNode
    type: TypeNode

    def __str__(self) -> str:
        return f'({self.pattern} : {self.type})'


@dataclasses.dataclass(frozen=True)
class TuplePatternNode(PatternNode):
    first: PatternNode
    second: PatternNode
    rest: Tuple[PatternNode, ...] = ()

    @property
    def components(self) -> Tuple[PatternNode, ...]:
        return (self.first, self.second, *self.rest)

    def __str__(self) -> str:
        return f'({", ".join(map(str, self.components))})'


@dataclasses.dataclass(frozen=True)
class ListPatternNode(PatternNode):
    elements: Tuple[PatternNode, ...] = ()

    def __str__(self) -> str:
        return f'[{"; ".join(map(str, self.elements))}]'


@dataclasses.dataclass(frozen=True)
class OrPatternNode(PatternNode):
    left: PatternNode
    right: PatternNode

    def __str__(self) -> str:
        return f'{self.left} | {self.right}'


@dataclasses.dataclass(frozen=True)
class ConsPatternNode(PatternNode):
    head: PatternNode
    tail: PatternNode

    def __str__(self) -> str:
        head = str(self.head)
        if isinstance(self.head, (ConsPatternNode, OrPatternNode)):
            head = f'({head})'
        return f'{head} :: {self.tail}'


@dataclasses.dataclass(frozen=True)
class OptionPatternNode(PatternNode):
    """None when value is None, Some value otherwise."""

    value: Optional[PatternNode] = None

    def __str__(self) -> str:
        if self.value is None:
            return 'None'
        if isinstance(
            self.value, (ConsPatternNode, OrPatternNode, OptionPatternNode)
        ) and not (
            isinstance(self.value, OptionPatternNode)
            and self.value.value is None
        ):
            return f'Some ({self.value})'
        return f'Some {self.value}'


# Expressions


class ExprNode(Node, abc.ABC):
    pass


@dataclasses.dataclass(frozen=True)
class BindingNode(Node):
    pattern: PatternNode
    expression: ExprNode

    def __str__(self) -> str:
        return f'{self.pattern} = {self.expression}'


@dataclasses.dataclass(frozen=True)
class RuleNode(Node):
    pattern: PatternNode
    body: ExprNode

    def __str__(self) -> str:
        return f'{self.pattern} -> {self.body}'


def _format_bindings(is_recursive: bool, bindings: Sequence[BindingNode]) -> str:
    flag = ' rec ' if is_recursive else ' '
    return f'let{flag}{" and ".join(map(str, bindings))}'


def _format_operand(expression: ExprNode) -> str:
    if isinstance(
        expression,
        (
            LambdaNode,
            LetNode,
            IfNode,
            MatchNode,
            FunctionNode,
            ApplyNode,
        ),
    ) or (
        isinstance(expression, OptionNode) and expression.value is not None
    ):
        return f'({expression})'
    if isinstance(expression, ConstantNode) and _is_negative(
        expression.constant
    ):
        return f'({expression})'
    return str(expression)


@dataclasses.dataclass(frozen=True)
class ConstantNode(ExprNode):
    constant: Constant

    def __str__(self) -> str:
        return str(self.constant)


@dataclasses.dataclass(frozen=True)
class IdentifierNode(ExprNode):
    name: str

    def __str__(self) -> str:
        return _format_name(self.name)


@dataclasses.dataclass(frozen=True)
class TypedNode(ExprNode):
    expression: ExprNode
    type: TypeNode

    def __str__(self) -> str:
        return f'({self.expression} : {self.type})'


@dataclasses.dataclass(frozen=True)
class TupleNode(ExprNode):
    first: ExprNode
    second: ExprNode
    rest: Tuple[ExprNode, ...] = ()

    @property
    def components(self) -> Tuple[ExprNode, ...]:
        return (self.first, self.second, *self.rest)

    def __str__(self) -> str:
        return f'({", ".join(map(str, self.components))})'


@dataclasses.dataclass(frozen=True)
class ListNode(ExprNode):
    elements: Tuple[ExprNode, ...] = ()

    def __str__(self) -> str:
        return f'[{"; ".join(map(str, self.elements))}]'


@dataclasses.dataclass(frozen=True)
class LambdaNode(ExprNode):
    parameter: PatternNode
    body: ExprNode

    def __str__(self) -> str:
        return f'fun {self.parameter} -> {self.body}'


@dataclasses.dataclass(frozen=True)
class LetNode(ExprNode):
    is_recursive: bool
    bindings: Tuple[BindingNode, ...]
    body: ExprNode

    def __post_init__(self) -> None:
        assert self.bindings, 'let needs at least one binding'

    def __str__(self) -> str:
        return (
            f'{_format_bindings(self.is_recursive, self.bindings)} in '
            f'{self.body}'
        )


@dataclasses.dataclass(frozen=True)
class IfNode(ExprNode):
    condition: ExprNode
    consequent: ExprNode
    alternative: Optional[ExprNode] = None

    def __str__(self) -> str:
        if self.alternative is None:
            return f'if {self.condition} then {self.consequent}'
        return (
            f'if {self.condition} then {self.consequent} else '
            f'{self.alternative}'
        )


@dataclasses.dataclass(frozen=True)
class ApplyNode(ExprNode):
    function: ExprNode
    argument: ExprNode

    def is_infix(self) -> bool:
        return (
            isinstance(self.function, ApplyNode)
            and isinstance(self.function.function, IdentifierNode)
            and _is_operator_name(self.function.function.name)
        )

    def is_negation(self) -> bool:
        return (
            isinstance(self.function, IdentifierNode)
            and self.function.name in _unary_operators
        )

    def __str__(self) -> str:
        argument = _format_operand(self.argument)
        if self.is_infix():
            assert isinstance(self.function, ApplyNode)
            assert isinstance(self.function.function, IdentifierNode)
            left = _format_operand(self.function.argument)
            return f'{left} {self.function.function.name} {argument}'
        if self.is_negation():
            assert isinstance(self.function, IdentifierNode)
            return f'{_unary_operators[self.function.name]} {argument}'
        # Application is left associative.
        if isinstance(self.function, ApplyNode) and not (
            self.function.is_infix() or self.function.is_negation()
        ):
            return f'{self.function} {argument}'
        return f'{_format_operand(self.function)} {argument}'


@dataclasses.dataclass(frozen=True)
class MatchNode(ExprNode):
    scrutinee: ExprNode
    rules: Tuple[RuleNode, ...]

    def __post_init__(self) -> None:
        assert self.rules, 'match needs at least one rule'

    def __str__(self) -> str:
        return (
            f'match {self.scrutinee} with {" | ".join(map(str, self.rules))}'
        )


@dataclasses.dataclass(frozen=True)
class FunctionNode(ExprNode):
    rules: Tuple[RuleNode, ...]

    def __post_init__(self) -> None:
        assert self.rules, 'function needs at least one rule'

    def __str__(self) -> str:
        return f'function {" | ".join(map(str, self.rules))}'


@dataclasses.dataclass(frozen=True)
class OptionNode(ExprNode):
    """None when value is None, Some value otherwise."""

    value: Optional[ExprNode] = None

    def __str__(self) -> str:
        if self.value is None:
            return 'None'
        return f'Some {_format_operand(self.value)}'


# Structure items


class StructureItemNode(Node, abc.ABC):
    pass


@dataclasses.dataclass(frozen=True)
class EvalItemNode(StructureItemNode):
    expression: ExprNode

    def __str__(self) -> str:
        return str(self.expression)


@dataclasses.dataclass(frozen=True)
class DefinitionItemNode(StructureItemNode):
    is_recursive: bool
    bindings: Tuple[BindingNode, ...]

    def __post_init__(self) -> None:
        assert self.bindings, 'let needs at least one binding'

    def __str__(self) -> str:
        return _format_bindings(self.is_recursive, self.bindings)


@dataclasses.dataclass(frozen=True)
class MeasureDefinitionItemNode(StructureItemNode):
    name: str
    measure: Optional[MeasureNode] = None

    def __str__(self) -> str:
        if self.measure is None:
            return f'[<Measure>] type {self.name}'
        return f'[<Measure>] type {self.name} = {self.measure}'


def format_structure(items: Sequence[StructureItemNode]) -> str:
    return ''.join(f'{item};;\n' for item in items)


# Parsers


class ParserDict(Dict[str, parsy.Parser]):
    def __init__(self) -> None:
        # These parsers act on lists of tokens.
        super().__init__()

    def extend_with(self, extension: Callable[[ParserDict], None]) -> None:
        extension(self)

    def parse(
        self, tokens: Sequence[miniml.lex.Token]
    ) -> List[StructureItemNode]:
        return self['structure'].parse(list(tokens))

    def token(self, typ: str) -> parsy.Parser:
        description = '{} token'.format(typ)
        return parsy.test_item(lambda token: token.type == typ, description)

    def operator(self, symbol: str) -> parsy.Parser:
        return parsy.test_item(
            lambda token: token.type == 'OPERATOR' and token.value == symbol,
            repr(symbol),
        )

    def ref_parser(self, name: str) -> parsy.Parser:
        @parsy.generate
        def parser():
            return (yield self[name])

        return parser


type _ParserGenerator[T] = Generator[parsy.Parser, Any, T]


def _curry(parameters: Sequence[PatternNode], body: ExprNode) -> ExprNode:
    for parameter in reversed(parameters):
        body = LambdaNode(parameter, body, location=parameter.location)
    return body


def _binary(
    operator: miniml.lex.Token, left: ExprNode, right: ExprNode
) -> ExprNode:
    function = IdentifierNode(operator.value, location=operator.start)
    return ApplyNode(
        ApplyNode(function, left, location=left.location),
        right,
        location=left.location,
    )


def _negate(minus: miniml.lex.Token, operand: ExprNode) -> ExprNode:
    if isinstance(operand, ConstantNode):
        constant = operand.constant
        if isinstance(constant, IntConstant) and minus.value == '-':
            return ConstantNode(
                IntConstant(-constant.value, location=minus.start),
                location=minus.start,
            )
        if isinstance(constant, FloatConstant):
            return ConstantNode(
                FloatConstant(-constant.value, location=minus.start),
                location=minus.start,
            )
        if isinstance(constant, MeasuredConstant):
            return ConstantNode(
                MeasuredConstant(
                    -constant.magnitude,
                    constant.measure,
                    location=minus.start,
                ),
                location=minus.start,
            )
    function = '~-.' if minus.value == '-.' else '~-'
    return ApplyNode(
        IdentifierNode(function, location=minus.start),
        operand,
        location=minus.start,
    )


def _number(token: miniml.lex.Token) -> Union[int, float]:
    if token.type == 'INT':
        return int(token.value)
    return float(token.value)


def extension(parsers: ParserDict) -> None:
    token = parsers.token
    operator = parsers.operator
    expression = parsers.ref_parser('expression')
    pattern = parsers.ref_parser('pattern')
    type_ = parsers.ref_parser('type')
    measure = parsers.ref_parser('measure')

    # This parses a whole program.
    # Compound parsers carry no description: parsy reports a described parser
    # as failing where it started, which would hide the furthest failure.
    # structure = ';;'*, (structure item, ';;'*)*, ENDMARKER ;
    @parsy.generate
    def structure_parser() -> _ParserGenerator[List[StructureItemNode]]:
        separators = token('DOUBLESEMI').many()
        yield separators
        items = yield (parsers['structure-item'] << separators).many()
        yield token('ENDMARKER')
        return items

    parsers['structure'] = structure_parser

    # structure item = measure definition | definition | expression ;
    parsers['structure-item'] = parsy.alt(
        parsers.ref_parser('measure-definition'),
        parsers.ref_parser('definition'),
        expression.map(lambda e: EvalItemNode(e, location=e.location)),
    )

    # measure definition = MEASURE_ATTRIBUTE, TYPE, NAME, ['=', measure] ;
    @parsy.generate
    def measure_definition_parser() -> _ParserGenerator[
        MeasureDefinitionItemNode
    ]:
        attribute = yield token('MEASURE_ATTRIBUTE')
        yield token('TYPE')
        name = yield token('NAME')
        definition = yield (operator('=') >> measure).optional()
        return MeasureDefinitionItemNode(
            name.value, definition, location=attribute.start
        )

    parsers['measure-definition'] = measure_definition_parser

    # A let without 'in' at the top level.
    # definition = LET, [REC], bindings ;
    @parsy.generate
    def definition_parser() -> _ParserGenerator[DefinitionItemNode]:
        let = yield token('LET')
        is_recursive = yield token('REC').optional()
        bindings = yield parsers['bindings']
        yield token('IN').should_fail('no "in"')
        return DefinitionItemNode(
            is_recursive is not None, bindings, location=let.start
        )

    parsers['definition'] = definition_parser

    # bindings = binding, (AND, binding)* ;
    parsers['bindings'] = (
        parsers.ref_parser('binding')
        .sep_by(token('AND'), min=1)
        .map(tuple)
    )

    # binding = function binding | value binding ;
    parsers['binding'] = parsy.alt(
        parsers.ref_parser('function-binding'),
        parsers.ref_parser('value-binding'),
    )

    # value name = NAME | LPAR, OPERATOR, RPAR ;
    @parsy.generate
    def value_name_parser() -> _ParserGenerator[Tuple[str, Location]]:
        name = yield token('NAME').optional()
        if name is not None:
            return name.value, name.start
        lpar = yield token('LPAR')
        op = yield token('OPERATOR')
        yield token('RPAR')
        return op.value, lpar.start

    parsers['value-name'] = value_name_parser

    # function binding =
    #   value name, simple pattern+, [COLON, type], '=', expression ;
    @parsy.generate
    def function_binding_parser() -> _ParserGenerator[BindingNode]:
        name, location = yield value_name_parser
        parameters = yield parsers['simple-pattern'].at_least(1)
        annotation = yield (token('COLON') >> type_).optional()
        yield operator('=')
        body = yield expression
        if annotation is not None:
            body = TypedNode(body, annotation, location=body.location)
        return BindingNode(
            IdentifierPatternNode(name, location=location),
            _curry(parameters, body),
            location=location,
        )

    parsers['function-binding'] = function_binding_parser

    # value binding = pattern, [COLON, type], '=', expression ;
    @parsy.generate
    def value_binding_parser() -> _ParserGenerator[BindingNode]:
        bound = yield pattern
        annotation = yield (token('COLON') >> type_).optional()
        yield operator('=')
        value = yield expression
        if annotation is not None:
            bound = TypedPatternNode(bound, annotation, location=bound.location)
        return BindingNode(bound, value, location=bound.location)

    parsers['value-binding'] = value_binding_parser

    # expression =
    #   let expression | fun expression | function expression
    #   | match expression | if expression | tuple expression ;
    parsers['expression'] = parsy.alt(
        parsers.ref_parser('let-expression'),
        parsers.ref_parser('fun-expression'),
        parsers.ref_parser('function-expression'),
        parsers.ref_parser('match-expression'),
        parsers.ref_parser('if-expression'),
        parsers.ref_parser('tuple-expression'),
    )

    # let expression = LET, [REC], bindings, IN, expression ;
    @parsy.generate
    def let_expression_parser() -> _ParserGenerator[LetNode]:
        let = yield token('LET')
        is_recursive = yield token('REC').optional()
        bindings = yield parsers['bindings']
        yield token('IN')
        body = yield expression
        return LetNode(is_recursive is not None, bindings, body, location=let.start)

    parsers['let-expression'] = let_expression_parser

    # fun expression = FUN, simple pattern+, ARROW, expression ;
    @parsy.generate
    def fun_expression_parser() -> _ParserGenerator[ExprNode]:
        yield token('FUN')
        parameters = yield parsers['simple-pattern'].at_least(1)
        yield token('ARROW')
        body = yield expression
        return _curry(parameters, body)

    parsers['fun-expression'] = fun_expression_parser

    # rule = pattern, ARROW, expression ;
    @parsy.generate
    def rule_parser() -> _ParserGenerator[RuleNode]:
        matched = yield pattern
        yield token('ARROW')
        body = yield expression
        return RuleNode(matched, body, location=matched.location)

    # rules = [BAR], rule, (BAR, rule)* ;
    parsers['rules'] = token('BAR').optional() >> rule_parser.sep_by(
        token('BAR'), min=1
    ).map(tuple)

    # function expression = FUNCTION, rules ;
    @parsy.generate
    def function_expression_parser() -> _ParserGenerator[FunctionNode]:
        keyword = yield token('FUNCTION')
        rules = yield parsers['rules']
        return FunctionNode(rules, location=keyword.start)

    parsers['function-expression'] = function_expression_parser

    # match expression = MATCH, expression, WITH, rules ;
    @parsy.generate
    def match_expression_parser() -> _ParserGenerator[MatchNode]:
        keyword = yield token('MATCH')
        scrutinee = yield expression
        yield token('WITH')
        rules = yield parsers['rules']
        return MatchNode(scrutinee, rules, location=keyword.start)

    parsers['match-expression'] = match_expression_parser

    # if expression = IF, expression, THEN, expression, [ELSE, expression] ;
    @parsy.generate
    def if_expression_parser() -> _ParserGenerator[IfNode]:
        keyword = yield token('IF')
        condition = yield expression
        yield token('THEN')
        consequent = yield expression
        alternative = yield (token('ELSE') >> expression).optional()
        return IfNode(condition, consequent, alternative, location=keyword.start)

    parsers['if-expression'] = if_expression_parser

    # tuple expression = or expression, (COMMA, or expression)* ;
    @parsy.generate
    def tuple_expression_parser() -> _ParserGenerator[ExprNode]:
        first = yield parsers['or-expression']
        rest = yield (token('COMMA') >> parsers['or-expression']).many()
        if not rest:
            return first
        return TupleNode(
            first, rest[0], tuple(rest[1:]), location=first.location
        )

    parsers['tuple-expression'] = tuple_expression_parser

    def left_associative(
        operand: parsy.Parser, symbols: Sequence[str]
    ) -> parsy.Parser:
        @parsy.generate
        def parser() -> _ParserGenerator[ExprNode]:
            left = yield operand
            while True:
                op = yield parsy.alt(*map(operator, symbols)).optional()
                if op is None:
                    return left
                right = yield operand
                left = _binary(op, left, right)

        return parser

    def right_associative(
        operand: parsy.Parser, symbols: Sequence[str]
    ) -> parsy.Parser:
        @parsy.generate
        def parser() -> _ParserGenerator[ExprNode]:
            left = yield operand
            op = yield parsy.alt(*map(operator, symbols)).optional()
            if op is None:
                return left
            right = yield parser
            return _binary(op, left, right)

        return parser

    # Binary operators, loosest first.
    parsers['or-expression'] = right_associative(
        parsers.ref_parser('and-expression'), ['||']
    )
    parsers['and-expression'] = right_associative(
        parsers.ref_parser('comparison-expression'), ['&&']
    )
    parsers['comparison-expression'] = left_associative(
        parsers.ref_parser('cons-expression'),
        ['=', '<>', '<=', '>=', '<', '>'],
    )
    parsers['cons-expression'] = right_associative(
        parsers.ref_parser('additive-expression'), ['::']
    )
    parsers['additive-expression'] = left_associative(
        parsers.ref_parser('multiplicative-expression'),
        ['+', '-', '+.', '-.'],
    )
    parsers['multiplicative-expression'] = left_associative(
        parsers.ref_parser('unary-expression'), ['*', '/', '*.', '/.']
    )

    # unary expression = ('-' | '-.'), unary expression | application ;
    @parsy.generate
    def unary_expression_parser() -> _ParserGenerator[ExprNode]:
        minus = yield (operator('-') | operator('-.')).optional()
        if minus is None:
            return (yield parsers['application'])
        operand = yield unary_expression_parser
        return _negate(minus, operand)

    parsers['unary-expression'] = unary_expression_parser

    # application = (SOME, atom | atom), atom* ;
    @parsy.generate
    def application_parser() -> _ParserGenerator[ExprNode]:
        some = yield token('SOME').optional()
        function = yield parsers['atom']
        if some is not None:
            function = OptionNode(function, location=some.start)
        arguments = yield parsers['atom'].many()
        for argument in arguments:
            function = ApplyNode(function, argument, location=function.location)
        return function

    parsers['application'] = application_parser

    # atom =
    #   constant | value name | NONE | parenthesized expression
    #   | list expression ;
    parsers['atom'] = parsy.alt(
        parsers.ref_parser('constant').map(
            lambda c: ConstantNode(c, location=c.location)
        ),
        value_name_parser.map(
            lambda n: IdentifierNode(n[0], location=n[1])
        ),
        token('NONE').map(lambda t: OptionNode(location=t.start)),
        parsers.ref_parser('parenthesized-expression'),
        parsers.ref_parser('list-expression'),
    )

    # parenthesized expression = LPAR, expression, [COLON, type], RPAR ;
    @parsy.generate
    def parenthesized_expression_parser() -> _ParserGenerator[ExprNode]:
        lpar = yield token('LPAR')
        inner = yield expression
        annotation = yield (token('COLON') >> type_).optional()
        yield token('RPAR')
        if annotation is not None:
            return TypedNode(inner, annotation, location=lpar.start)
        return inner

    parsers['parenthesized-expression'] = parenthesized_expression_parser

    # list expression = LSQB, [expression, (SEMI, expression)*, [SEMI]], RSQB ;
    @parsy.generate
    def list_expression_parser() -> _ParserGenerator[ListNode]:
        lsqb = yield token('LSQB')
        elements = yield expression.sep_by(token('SEMI'))
        yield token('SEMI').optional()
        yield token('RSQB')
        return ListNode(tuple(elements), location=lsqb.start)

    parsers['list-expression'] = list_expression_parser

    # constant =
    #   measured literal | INT | FLOAT | TRUE | FALSE | CHAR | STRING
    #   | LPAR, RPAR ;
    parsers['constant'] = parsy.alt(
        parsers.ref_parser('measured-literal'),
        token('INT').map(
            lambda t: IntConstant(int(t.value), location=t.start)
        ),
        token('FLOAT').map(
            lambda t: FloatConstant(float(t.value), location=t.start)
        ),
        token('TRUE').map(lambda t: BoolConstant(True, location=t.start)),
        token('FALSE').map(lambda t: BoolConstant(False, location=t.start)),
        token('CHAR').map(
            lambda t: CharConstant(_unescape(t.value[1:-1]), location=t.start)
        ),
        token('STRING').map(
            lambda t: StringConstant(
                _unescape(t.value[1:-1]), location=t.start
            )
        ),
        (token('LPAR') << token('RPAR')).map(
            lambda t: UnitConstant(location=t.start)
        ),
    ).desc('constant')

    # The measure must immediately follow the number, as in 9.8<m/s^2>.
    # measured literal = (INT | FLOAT), '<', measure, '>' ;
    @parsy.generate
    def measured_literal_parser() -> _ParserGenerator[MeasuredConstant]:
        number = yield token('INT') | token('FLOAT')
        less_than = yield operator('<')
        if not are_on_same_line_and_offset_by(number.end, less_than.start, 0):
            yield parsy.fail('a unit of measure right after the number')
        unit = yield measure
        yield operator('>')
        return MeasuredConstant(_number(number), unit, location=number.start)

    parsers['measured-literal'] = measured_literal_parser

    # measure = measure power, (('*' | '/'), measure power)* ;
    @parsy.generate
    def measure_parser() -> _ParserGenerator[MeasureNode]:
        left = yield parsers['measure-power']
        while True:
            op = yield (operator('*') | operator('/')).optional()
            if op is None:
                return left
            right = yield parsers['measure-power']
            if op.value == '*':
                left = MeasureProductNode(left, right, location=left.location)
            else:
                left = MeasureQuotientNode(left, right, location=left.location)

    parsers['measure'] = measure_parser

    # measure power = measure atom, [CARET, ['-'], INT] ;
    @parsy.generate
    def measure_power_parser() -> _ParserGenerator[MeasureNode]:
        base = yield parsers['measure-atom']
        caret = yield token('CARET').optional()
        if caret is None:
            return base
        minus = yield operator('-').optional()
        exponent = yield token('INT')
        value = int(exponent.value)
        if minus is not None:
            value = -value
        return MeasurePowerNode(base, value, location=base.location)

    parsers['measure-power'] = measure_power_parser

    # measure atom = NAME | '1' | LPAR, measure, RPAR ;
    parsers['measure-atom'] = parsy.alt(
        token('NAME').map(
            lambda t: MeasureIdentifierNode(t.value, location=t.start)
        ),
        parsy.test_item(
            lambda t: t.type == 'INT' and t.value == '1', "'1'"
        ).map(lambda t: DimensionlessMeasureNode(location=t.start)),
        token('LPAR') >> measure << token('RPAR'),
    )

    # type = tuple type, [ARROW, type] ;
    @parsy.generate
    def type_parser() -> _ParserGenerator[TypeNode]:
        argument = yield parsers['tuple-type']
        result = yield (token('ARROW') >> type_parser).optional()
        if result is None:
            return argument
        return FunctionTypeNode(argument, result, location=argument.location)

    parsers['type'] = type_parser

    # tuple type = postfix type, ('*', postfix type)* ;
    @parsy.generate
    def tuple_type_parser() -> _ParserGenerator[TypeNode]:
        components = yield parsers['postfix-type'].sep_by(
            operator('*'), min=1
        )
        if len(components) == 1:
            return components[0]
        first, second, *rest = components
        return TupleTypeNode(first, second, tuple(rest), location=first.location)

    parsers['tuple-type'] = tuple_type_parser

    type_constructors = {'list': ListTypeNode, 'option': OptionTypeNode}

    # postfix type = atom type, ('list' | 'option')* ;
    @parsy.generate
    def postfix_type_parser() -> _ParserGenerator[TypeNode]:
        ty = yield parsers['atom-type']
        constructors = yield parsy.test_item(
            lambda t: t.type == 'NAME' and t.value in type_constructors,
            'type constructor',
        ).many()
        for constructor in constructors:
            ty = type_constructors[constructor.value](ty, location=ty.location)
        return ty

    parsers['postfix-type'] = postfix_type_parser

    # atom type = TYVAR | NAME | LPAR, type, RPAR ;
    parsers['atom-type'] = parsy.alt(
        token('TYVAR').map(
            lambda t: TypeVariableNode(t.value[1:], location=t.start)
        ),
        token('NAME').map(lambda t: NamedTypeNode(t.value, location=t.start)),
        token('LPAR') >> type_ << token('RPAR'),
    )

    # pattern = tuple pattern, (BAR, tuple pattern)* ;
    @parsy.generate
    def pattern_parser() -> _ParserGenerator[PatternNode]:
        left = yield parsers['tuple-pattern']
        alternatives = yield (token('BAR') >> parsers['tuple-pattern']).many()
        for alternative in alternatives:
            left = OrPatternNode(left, alternative, location=left.location)
        return left

    parsers['pattern'] = pattern_parser

    # tuple pattern = cons pattern, (COMMA, cons pattern)* ;
    @parsy.generate
    def tuple_pattern_parser() -> _ParserGenerator[PatternNode]:
        components = yield parsers['cons-pattern'].sep_by(
            token('COMMA'), min=1
        )
        if len(components) == 1:
            return components[0]
        first, second, *rest = components
        return TuplePatternNode(
            first, second, tuple(rest), location=first.location
        )

    parsers['tuple-pattern'] = tuple_pattern_parser

    # cons pattern = constructor pattern, ['::', cons pattern] ;
    @parsy.generate
    def cons_pattern_parser() -> _ParserGenerator[PatternNode]:
        head = yield parsers['constructor-pattern']
        cons = yield operator('::').optional()
        if cons is None:
            return head
        tail = yield cons_pattern_parser
        return ConsPatternNode(head, tail, location=head.location)

    parsers['cons-pattern'] = cons_pattern_parser

    # constructor pattern = SOME, simple pattern | simple pattern ;
    parsers['constructor-pattern'] = parsy.alt(
        parsy.seq(token('SOME'), parsers.ref_parser('simple-pattern')).combine(
            lambda some, p: OptionPatternNode(p, location=some.start)
        ),
        parsers.ref_parser('simple-pattern'),
    )

    # negative constant = '-', (INT | FLOAT) ;
    @parsy.generate
    def negative_constant_parser() -> _ParserGenerator[Constant]:
        minus = yield operator('-')
        number = yield token('INT') | token('FLOAT')
        if number.type == 'INT':
            return IntConstant(-int(number.value), location=minus.start)
        return FloatConstant(-float(number.value), location=minus.start)

    # parenthesized pattern = LPAR, pattern, [COLON, type], RPAR ;
    @parsy.generate
    def parenthesized_pattern_parser() -> _ParserGenerator[PatternNode]:
        lpar = yield token('LPAR')
        inner = yield pattern
        annotation = yield (token('COLON') >> type_).optional()
        yield token('RPAR')
        if annotation is not None:
            return TypedPatternNode(inner, annotation, location=lpar.start)
        return inner

    # list pattern = LSQB, [pattern, (SEMI, pattern)*, [SEMI]], RSQB ;
    @parsy.generate
    def list_pattern_parser() -> _ParserGenerator[ListPatternNode]:
        lsqb = yield token('LSQB')
        elements = yield pattern.sep_by(token('SEMI'))
        yield token('SEMI').optional()
        yield token('RSQB')
        return ListPatternNode(tuple(elements), location=lsqb.start)

    # simple pattern =
    #   UNDERSCORE | value name | NONE | constant | negative constant
    #   | parenthesized pattern | list pattern ;
    parsers['simple-pattern'] = parsy.alt(
        token('UNDERSCORE').map(
            lambda t: WildcardPatternNode(location=t.start)
        ),
        value_name_parser.map(
            lambda n: IdentifierPatternNode(n[0], location=n[1])
        ),
        token('NONE').map(lambda t: OptionPatternNode(location=t.start)),
        (parsers['constant'] | negative_constant_parser).map(
            lambda c: ConstantPatternNode(c, location=c.location)
        ),
        parenthesized_pattern_parser,
        list_pattern_parser,
    )


@functools.cache
def build_parsers() -> ParserDict:
    parsers = ParserDict()
    parsers.extend_with(extension)
    return parsers


def parse(code: str) -> List[StructureItemNode]:
    """Tokenize and parse a whole program.

    Raises miniml.lex.LexicalError or parsy.ParseError."""
    tokens = miniml.lex.tokenize(code)
    return build_parsers().parse(tokens)

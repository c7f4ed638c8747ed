from hypothesis.strategies import (
    SearchStrategy,
    builds,
    dictionaries,
    integers,
    lists,
    one_of,
    recursive,
    register_type_strategy,
    sampled_from,
)

from miniml.typecheck.substitutions import Substitutions
from miniml.typecheck.types import (
    BaseType,
    FunctionType,
    ListType,
    OptionType,
    TupleType,
    Type,
    TypeVariable,
    base_types,
)

# A small pool of variables makes it likely that generated types share
# variables.
_variable_ids = integers(min_value=0, max_value=5)

_type_variable_strategy = builds(TypeVariable, _variable_ids)
_base_type_strategy = sampled_from(list(base_types.values()))


def _compound_type_strategy(
    children: SearchStrategy[Type],
) -> SearchStrategy[Type]:
    return one_of(
        builds(FunctionType, children, children),
        builds(
            TupleType, children, children, lists(children, max_size=2).map(tuple)
        ),
        builds(ListType, children),
        builds(OptionType, children),
    )


_type_strategy = recursive(
    one_of(_type_variable_strategy, _base_type_strategy),
    _compound_type_strategy,
    max_leaves=8,
)

register_type_strategy(TypeVariable, _type_variable_strategy)
register_type_strategy(BaseType, _base_type_strategy)
register_type_strategy(Type, _type_strategy)
register_type_strategy(
    Substitutions,
    dictionaries(_variable_ids, _type_strategy, max_size=4).map(Substitutions),
)

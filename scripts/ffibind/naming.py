"""
Per-target identifier derivation

One Namer run per target turns graph ids into target identifiers: casing,
reserved-word escaping, namespace flattening, optional type prefix, service
method names and function-pointer names. Every emitter of a target reads the
same Naming, so all of them agree on one spelling per node.
"""

from dataclasses import dataclass, field
from typing import Optional

from .codegen import convert_case, escape_keyword, as_flat_upper
from .errors import DuplicateSymbol
from .ir import (
    TypeGraph, TypeId, TypeInfo, PrimitiveInfo, StructInfo, EnumInfo, OpaqueInfo,
    PointerInfo, FnPointerInfo, ArrayInfo, FuncInfo, describe,
)
from .log import get_logger
from .patterns import Classification, ServicePattern

logger = get_logger(__name__)


@dataclass(frozen=True)
class NameStyle:
    """Spelling rules of one target"""
    target: str
    type_case: str = 'pascal'
    function_case: str = 'preserve'
    method_case: str = 'snake'
    variant_case: str = 'preserve'
    constant_case: str = 'preserve'
    field_case: str = 'preserve'
    keywords: frozenset = frozenset()
    reserved_members: frozenset = frozenset()
    reserved_fields: frozenset = frozenset()
    # Variants spelled ENUM_VARIANT in the global namespace (C).
    prefixed_variants: bool = False
    # Types, functions and constants share one namespace (C, Lua).
    shared_namespace: bool = False


@dataclass
class Naming:
    """Target identifiers for every named node, function and member"""
    style: NameStyle
    types: dict[TypeId, str] = field(default_factory=dict)
    functions: dict[str, str] = field(default_factory=dict)
    methods: dict[str, str] = field(default_factory=dict)
    variants: dict[tuple[TypeId, str], str] = field(default_factory=dict)
    fields: dict[tuple[TypeId, str], str] = field(default_factory=dict)
    params: dict[tuple[str, int], str] = field(default_factory=dict)
    constants: dict[str, str] = field(default_factory=dict)

    def type(self, type_id: TypeId) -> str:
        return self.types[type_id]

    def function(self, name: str) -> str:
        return self.functions[name]

    def method(self, name: str) -> str:
        return self.methods[name]

    def variant(self, type_id: TypeId, item: str) -> str:
        return self.variants[(type_id, item)]

    def field(self, type_id: TypeId, name: str) -> str:
        return self.fields[(type_id, name)]

    def param(self, func_name: str, index: int) -> str:
        return self.params[(func_name, index)]

    def constant(self, name: str) -> str:
        return self.constants[name]


class _Scope:
    """One target namespace; reports the first collision"""

    def __init__(self, target: str):
        self.target = target
        self._owners: dict[str, str] = {}

    def claim(self, name: str, owner: str) -> str:
        first = self._owners.get(name)
        if first is not None and first != owner:
            raise DuplicateSymbol(name, first, owner, self.target)
        self._owners[name] = owner
        return name


class Namer:
    """Derives a Naming for one target"""

    def __init__(self, graph: TypeGraph, classification: Classification, style: NameStyle,
                 type_prefix: str = ''):
        self.graph = graph
        self.classification = classification
        self.style = style
        self.type_prefix = type_prefix

    def run(self) -> Naming:
        naming = Naming(self.style)
        target = self.style.target
        global_scope = _Scope(target)
        type_scope = global_scope
        function_scope = global_scope if self.style.shared_namespace else _Scope(target)
        constant_scope = global_scope if self.style.shared_namespace else _Scope(target)

        for info in self.graph.types():
            name = self._type_name(info)
            if name is None:
                continue
            naming.types[info.id] = type_scope.claim(name, describe(info))

        for info in self.graph.types():
            if isinstance(info, EnumInfo):
                self._name_variants(info, naming, global_scope)
            elif isinstance(info, StructInfo):
                self._name_fields(info, naming)

        for func in self.graph.functions:
            name = self._escape(convert_case(func.name, self.style.function_case))
            naming.functions[func.name] = function_scope.claim(name, describe(func))
            params = _Scope(target)
            for i, param in enumerate(func.params):
                pname = self._escape(param.name or f'x{i}')
                naming.params[(func.name, i)] = params.claim(pname, f'{func.name} param {i}')

        for service in self.classification.services:
            self._name_methods(service, naming)

        for const in self.graph.constants:
            name = self._escape(convert_case(const.name, self.style.constant_case))
            naming.constants[const.name] = constant_scope.claim(name, f'constant {const.name}')

        logger.debug('%s: named %d type(s), %d function(s), %d method(s)',
                     target, len(naming.types), len(naming.functions), len(naming.methods))
        return naming

    def _escape(self, name: str) -> str:
        return escape_keyword(name, self.style.keywords)

    def _type_name(self, info: TypeInfo) -> Optional[str]:
        if isinstance(info, (StructInfo, EnumInfo, OpaqueInfo)):
            # Namespaces are flattened: a::Vec and Vec share one spelling.
            name = convert_case(info.name, self.style.type_case)
            return self._escape(self.type_prefix + name)
        if isinstance(info, FnPointerInfo):
            if info.name:
                name = convert_case(info.name, self.style.type_case)
                return self._escape(self.type_prefix + name)
            return self._escape(self.fn_pointer_name(info))
        return None

    def fn_pointer_name(self, info: FnPointerInfo) -> str:
        """fn_<params>_rval_<ret>, e.g. fn_u8_rval_u8"""
        parts = ['fn'] + [self._label(p) for p in info.params] + ['rval', self._label(info.ret)]
        return '_'.join(parts)

    def _label(self, type_id: TypeId) -> str:
        info = self.graph.get(type_id)
        if isinstance(info, PrimitiveInfo):
            return info.kind.value
        if isinstance(info, PointerInfo):
            return ('ptr_mut_' if info.mutable else 'ptr_') + self._label(info.target)
        if isinstance(info, ArrayInfo):
            return f'{self._label(info.element)}_array{info.len}'
        if isinstance(info, FnPointerInfo):
            return info.name or 'fn'
        return convert_case(info.name, 'snake')

    def _name_variants(self, info: EnumInfo, naming: Naming, global_scope: _Scope):
        scope = global_scope if self.style.prefixed_variants else _Scope(self.style.target)
        for item in info.items:
            if self.style.prefixed_variants:
                enum_name = as_flat_upper(naming.types[info.id])
                name = f'{enum_name}_{as_flat_upper(item.name)}'
            else:
                name = self._escape(convert_case(item.name, self.style.variant_case))
            naming.variants[(info.id, item.name)] = scope.claim(name, f'{describe(info)}.{item.name}')

    def _name_fields(self, info: StructInfo, naming: Naming):
        scope = _Scope(self.style.target)
        for f in info.fields:
            name = self._escape(convert_case(f.name, self.style.field_case))
            if name in self.style.reserved_fields:
                name += '_'
            naming.fields[(info.id, f.name)] = scope.claim(name, f'{describe(info)}.{f.name}')

    def _name_methods(self, service: ServicePattern, naming: Naming):
        functions = service.functions
        prefix = common_prefix([f.name for f in functions])
        scope = _Scope(self.style.target)
        for func in functions:
            naming.methods[func.name] = scope.claim(self._method_name(func, prefix), describe(func))

    def _method_name(self, func: FuncInfo, prefix: str) -> str:
        short = func.name[len(prefix):]
        if not short or short[0].isdigit():
            short = func.name
        name = self._escape(convert_case(short, self.style.method_case))
        if name in self.style.reserved_members:
            name += '_'
        return name


def common_prefix(names: list[str]) -> str:
    """Longest common prefix ending in '_'

    Examples:
        [simple_service_new, simple_service_destroy] -> simple_service_
        [a_new, ab_destroy] -> ''
    """
    if len(names) < 2:
        return ''
    first, last = min(names), max(names)
    length = 0
    while length < len(first) and length < len(last) and first[length] == last[length]:
        length += 1
    cut = first.rfind('_', 0, length)
    return first[:cut + 1] if cut >= 0 else ''

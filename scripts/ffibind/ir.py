"""
IR (Intermediate Representation) module

The closed type graph describing a native library's exported surface:
primitives, structs, enums, opaque handles, pointers, function pointers,
arrays, generic struct families and their instantiations, functions and
constants.

Graphs are assembled with GraphBuilder (or read from the JSON document
produced by an extraction front end) and frozen by finalize(). Later stages
never mutate a graph; they derive new frozen graphs or side tables.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, Optional, Union
import hashlib
import heapq
import json
import re

from .errors import DuplicateSymbol, InvalidGraph, UnresolvedType

TypeId = str


class PrimitiveKind(Enum):
    """Fixed-width primitive kinds"""
    VOID = 'void'
    BOOL = 'bool'
    U8 = 'u8'
    U16 = 'u16'
    U32 = 'u32'
    U64 = 'u64'
    I8 = 'i8'
    I16 = 'i16'
    I32 = 'i32'
    I64 = 'i64'
    F32 = 'f32'
    F64 = 'f64'

    @property
    def size(self) -> int:
        return _PRIMITIVE_SIZES[self]

    @property
    def bits(self) -> int:
        return self.size * 8

    @property
    def is_integer(self) -> bool:
        return self.value[0] in 'ui'

    @property
    def is_signed(self) -> bool:
        return self.value[0] == 'i'

    @property
    def is_float(self) -> bool:
        return self.value[0] == 'f'

    @property
    def min_value(self) -> int:
        if not self.is_integer:
            raise ValueError(f'{self.value} is not an integer kind')
        return -(1 << (self.bits - 1)) if self.is_signed else 0

    @property
    def max_value(self) -> int:
        if not self.is_integer:
            raise ValueError(f'{self.value} is not an integer kind')
        return (1 << (self.bits - 1)) - 1 if self.is_signed else (1 << self.bits) - 1


_PRIMITIVE_SIZES = {
    PrimitiveKind.VOID: 0,
    PrimitiveKind.BOOL: 1,
    PrimitiveKind.U8: 1,
    PrimitiveKind.U16: 2,
    PrimitiveKind.U32: 4,
    PrimitiveKind.U64: 8,
    PrimitiveKind.I8: 1,
    PrimitiveKind.I16: 2,
    PrimitiveKind.I32: 4,
    PrimitiveKind.I64: 8,
    PrimitiveKind.F32: 4,
    PrimitiveKind.F64: 8,
}


class ReprKind(Enum):
    STANDARD = 'standard'
    TRANSPARENT = 'transparent'
    PACKED = 'packed'


@dataclass(frozen=True)
class Repr:
    """Struct representation: standard, transparent or packed(align)"""
    kind: ReprKind = ReprKind.STANDARD
    align: int = 1

    @classmethod
    def parse(cls, value) -> 'Repr':
        """Parse 'standard', 'transparent', 'packed', 'packed(N)' or a dict"""
        if value is None:
            return cls()
        if isinstance(value, Repr):
            return value
        if isinstance(value, dict):
            kind = ReprKind(value.get('kind', 'standard'))
            return cls(kind, int(value.get('align', 1)))
        text = str(value).strip().lower()
        m = re.fullmatch(r'packed(?:\((\d+)\))?', text)
        if m:
            return cls(ReprKind.PACKED, int(m.group(1) or 1))
        return cls(ReprKind(text))

    @property
    def is_packed(self) -> bool:
        return self.kind == ReprKind.PACKED

    @property
    def is_transparent(self) -> bool:
        return self.kind == ReprKind.TRANSPARENT

    def __str__(self) -> str:
        if self.is_packed:
            return f'packed({self.align})'
        return self.kind.value


@dataclass(frozen=True)
class Layout:
    """Size and alignment in bytes"""
    size: int
    align: int


# ==============================================================================
# Type nodes
# ==============================================================================

@dataclass(frozen=True)
class PrimitiveInfo:
    """Primitive type"""
    id: TypeId
    kind: PrimitiveKind

    @property
    def name(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class FieldInfo:
    """Struct field"""
    name: str
    type: TypeId
    doc: str = ''


@dataclass(frozen=True)
class StructInfo:
    """Struct type; field order is binary layout order"""
    id: TypeId
    name: str
    fields: tuple[FieldInfo, ...]
    repr: Repr = Repr()
    doc: str = ''
    namespace: str = ''
    layout: Optional[Layout] = None
    origin: Optional[tuple[TypeId, tuple[TypeId, ...]]] = None

    def get_field(self, name: str) -> Optional[FieldInfo]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class EnumItem:
    """Enum variant with an explicit discriminant"""
    name: str
    value: int
    doc: str = ''


@dataclass(frozen=True)
class EnumInfo:
    """Enum type"""
    id: TypeId
    name: str
    items: tuple[EnumItem, ...]
    doc: str = ''
    namespace: str = ''

    def item_by_value(self, value: int) -> Optional[EnumItem]:
        for item in self.items:
            if item.value == value:
                return item
        return None


@dataclass(frozen=True)
class OpaqueInfo:
    """Type with unknown layout, only referenced through pointers"""
    id: TypeId
    name: str
    doc: str = ''
    namespace: str = ''


@dataclass(frozen=True)
class PointerInfo:
    id: TypeId
    target: TypeId
    mutable: bool = False


@dataclass(frozen=True)
class FnPointerInfo:
    id: TypeId
    params: tuple[TypeId, ...]
    ret: TypeId = 'void'
    name: str = ''
    doc: str = ''


@dataclass(frozen=True)
class ArrayInfo:
    id: TypeId
    element: TypeId
    len: int


@dataclass(frozen=True)
class TypeParam:
    name: str


@dataclass(frozen=True)
class PointerExpr:
    target: 'TypeExpr'
    mutable: bool = False


@dataclass(frozen=True)
class ArrayExpr:
    element: 'TypeExpr'
    len: int


@dataclass(frozen=True)
class ApplyExpr:
    family: TypeId
    args: tuple['TypeExpr', ...]


TypeExpr = Union[TypeId, TypeParam, PointerExpr, ArrayExpr, ApplyExpr]


@dataclass(frozen=True)
class GenericField:
    name: str
    type: TypeExpr
    doc: str = ''


@dataclass(frozen=True)
class GenericInfo:
    """Generic struct family, e.g. Slice<T>"""
    id: TypeId
    name: str
    params: tuple[str, ...]
    fields: tuple[GenericField, ...]
    repr: Repr = Repr()
    doc: str = ''
    namespace: str = ''


@dataclass(frozen=True)
class InstanceInfo:
    """A use of a generic family with concrete arguments"""
    id: TypeId
    family: TypeId
    args: tuple[TypeId, ...]


TypeInfo = Union[PrimitiveInfo, StructInfo, EnumInfo, OpaqueInfo, PointerInfo,
                 FnPointerInfo, ArrayInfo, GenericInfo, InstanceInfo]


# ==============================================================================
# Functions and constants
# ==============================================================================

@dataclass(frozen=True)
class Annotations:
    raises_on_panic: bool = False
    must_check_result: bool = False
    is_async: bool = False
    api_guard: bool = False


@dataclass(frozen=True)
class ParamInfo:
    """Function parameter"""
    name: str
    type: TypeId
    doc: str = ''


@dataclass(frozen=True)
class FuncInfo:
    """Exported function; name is the native symbol"""
    name: str
    params: tuple[ParamInfo, ...]
    ret: TypeId = 'void'
    doc: str = ''
    annotations: Annotations = Annotations()


@dataclass(frozen=True)
class ConstInfo:
    """Exported constant"""
    name: str
    type: TypeId
    value: Union[int, float, bool]
    doc: str = ''


def qualified_id(name: str, namespace: str = '') -> TypeId:
    return f'{namespace}::{name}' if namespace else name


def describe(info) -> str:
    """Identify a node in error messages"""
    kind = type(info).__name__.replace('Info', '').lower()
    key = getattr(info, 'id', None) or getattr(info, 'name', '?')
    return f'{kind} {key}'


def _expr_refs(expr: TypeExpr, params: tuple[str, ...]) -> Iterator[TypeId]:
    if isinstance(expr, str):
        if expr not in params:
            yield expr
    elif isinstance(expr, PointerExpr):
        yield from _expr_refs(expr.target, params)
    elif isinstance(expr, ArrayExpr):
        yield from _expr_refs(expr.element, params)
    elif isinstance(expr, ApplyExpr):
        yield expr.family
        for arg in expr.args:
            yield from _expr_refs(arg, params)


def type_references(info: TypeInfo) -> list[tuple[TypeId, bool]]:
    """References held by a node as (TypeId, is_value_edge) pairs"""
    if isinstance(info, StructInfo):
        return [(f.type, True) for f in info.fields]
    if isinstance(info, ArrayInfo):
        return [(info.element, True)]
    if isinstance(info, PointerInfo):
        return [(info.target, False)]
    if isinstance(info, FnPointerInfo):
        return [(p, False) for p in info.params] + [(info.ret, False)]
    if isinstance(info, InstanceInfo):
        return [(info.family, False)] + [(a, False) for a in info.args]
    if isinstance(info, GenericInfo):
        refs = []
        for f in info.fields:
            refs.extend((r, False) for r in _expr_refs(f.type, info.params))
        return refs
    return []


# ==============================================================================
# Graph
# ==============================================================================

class TypeGraph:
    """Frozen type graph; build one with GraphBuilder"""

    def __init__(self, types: dict[TypeId, TypeInfo], functions: Iterable[FuncInfo],
                 constants: Iterable[ConstInfo], library: str = ''):
        self._types = dict(types)
        self._order = tuple(self._types)
        self._functions = tuple(functions)
        self._func_index = {f.name: f for f in self._functions}
        self._constants = tuple(constants)
        self.library = library
        self._value_order: Optional[tuple[TypeId, ...]] = None

    @classmethod
    def load(cls, json_path: str) -> 'TypeGraph':
        """Load a graph from an IR JSON file"""
        with open(json_path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'TypeGraph':
        """Build and finalize a graph from an IR dictionary"""
        builder = GraphBuilder(data.get('library', ''))
        for decl in data.get('types', []):
            builder.add_decl(decl)
        for decl in data.get('functions', []):
            builder.add_function_decl(decl)
        for decl in data.get('constants', []):
            builder.constant(
                decl['name'],
                builder.ref(decl['type']),
                decl['value'],
                doc=decl.get('doc', ''),
            )
        return builder.finalize()

    def __contains__(self, type_id: TypeId) -> bool:
        return type_id in self._types

    def __len__(self) -> int:
        return len(self._types)

    def get(self, type_id: TypeId) -> TypeInfo:
        try:
            return self._types[type_id]
        except KeyError:
            raise UnresolvedType(type_id) from None

    def types(self) -> Iterator[TypeInfo]:
        """All nodes in graph order"""
        for type_id in self._order:
            yield self._types[type_id]

    @property
    def functions(self) -> tuple[FuncInfo, ...]:
        return self._functions

    @property
    def constants(self) -> tuple[ConstInfo, ...]:
        return self._constants

    def function(self, name: str) -> FuncInfo:
        try:
            return self._func_index[name]
        except KeyError:
            raise UnresolvedType(name, 'function lookup') from None

    def value_dependencies(self, type_id: TypeId) -> list[TypeId]:
        return [ref for ref, by_value in type_references(self.get(type_id)) if by_value]

    def value_order(self) -> tuple[TypeId, ...]:
        """Topological order over value composition, ties in graph order"""
        if self._value_order is not None:
            return self._value_order

        index = {tid: i for i, tid in enumerate(self._order)}
        indegree = {tid: 0 for tid in self._order}
        dependents: dict[TypeId, list[TypeId]] = {tid: [] for tid in self._order}
        for tid in self._order:
            for dep in self.value_dependencies(tid):
                indegree[tid] += 1
                dependents[dep].append(tid)

        ready = [index[tid] for tid, degree in indegree.items() if degree == 0]
        heapq.heapify(ready)
        order = []
        while ready:
            tid = self._order[heapq.heappop(ready)]
            order.append(tid)
            for dependent in dependents[tid]:
                indegree[dependent] -= 1
                if indegree[dependent] == 0:
                    heapq.heappush(ready, index[dependent])

        if len(order) != len(self._order):
            stuck = [tid for tid in self._order if indegree[tid] > 0]
            raise InvalidGraph(stuck[0], 'value composition cycle through ' + ' -> '.join(stuck))

        self._value_order = tuple(order)
        return self._value_order

    def without_functions(self, names: Iterable[str]) -> 'TypeGraph':
        """Copy of this graph without the named functions"""
        drop = set(names)
        return TypeGraph(
            self._types,
            [f for f in self._functions if f.name not in drop],
            self._constants,
            self.library,
        )

    def api_hash(self) -> int:
        """Stable 64-bit hash over every type, signature and constant"""
        h = hashlib.blake2b(digest_size=8)
        for info in self.types():
            h.update(repr(info).encode('utf-8'))
        for func in self._functions:
            h.update(repr(func).encode('utf-8'))
        for const in self._constants:
            h.update(repr(const).encode('utf-8'))
        return int.from_bytes(h.digest(), 'little')


class GraphBuilder:
    """Collects type nodes, functions and constants, then freezes them"""

    def __init__(self, library: str = ''):
        self.library = library
        self._types: dict[TypeId, TypeInfo] = {}
        self._functions: dict[str, FuncInfo] = {}
        self._constants: list[ConstInfo] = []
        for kind in PrimitiveKind:
            self._types[kind.value] = PrimitiveInfo(kind.value, kind)

    def add(self, info: TypeInfo) -> TypeId:
        """Add a node; re-adding an identical node is a no-op"""
        existing = self._types.get(info.id)
        if existing is not None:
            if existing == info:
                return info.id
            raise DuplicateSymbol(info.id, describe(existing), describe(info))
        self._types[info.id] = info
        return info.id

    def get(self, type_id: TypeId) -> Optional[TypeInfo]:
        return self._types.get(type_id)

    def struct(self, name: str, fields, repr=None, doc: str = '', namespace: str = '',
               layout: Optional[Layout] = None) -> TypeId:
        return self.add(StructInfo(
            id=qualified_id(name, namespace),
            name=name,
            fields=tuple(_as_field(f) for f in fields),
            repr=Repr.parse(repr),
            doc=doc,
            namespace=namespace,
            layout=layout,
        ))

    def enum(self, name: str, items, doc: str = '', namespace: str = '') -> TypeId:
        return self.add(EnumInfo(
            id=qualified_id(name, namespace),
            name=name,
            items=tuple(_as_item(i) for i in items),
            doc=doc,
            namespace=namespace,
        ))

    def opaque(self, name: str, doc: str = '', namespace: str = '') -> TypeId:
        return self.add(OpaqueInfo(qualified_id(name, namespace), name, doc, namespace))

    def pointer(self, target: TypeId, mutable: bool = False) -> TypeId:
        type_id = f'*{"mut" if mutable else "const"} {target}'
        return self.add(PointerInfo(type_id, target, mutable))

    def fn_pointer(self, params: Iterable[TypeId], ret: TypeId = 'void', name: str = '',
                   doc: str = '') -> TypeId:
        params = tuple(params)
        type_id = name or f'fn({", ".join(params)}) -> {ret}'
        return self.add(FnPointerInfo(type_id, params, ret, name, doc))

    def array(self, element: TypeId, length: int) -> TypeId:
        return self.add(ArrayInfo(f'[{element}; {length}]', element, int(length)))

    def generic(self, name: str, params: Iterable[str], fields, repr=None, doc: str = '',
                namespace: str = '') -> TypeId:
        """Field types are IR expressions; parameter names stand for themselves"""
        params = tuple(params)
        return self.add(GenericInfo(
            id=qualified_id(name, namespace),
            name=name,
            params=params,
            fields=tuple(f if isinstance(f, GenericField) else self._generic_field(f, params) for f in fields),
            repr=Repr.parse(repr),
            doc=doc,
            namespace=namespace,
        ))

    def _generic_field(self, value, params: tuple[str, ...]) -> GenericField:
        name, type_expr, *rest = value
        return GenericField(name, self._expr(type_expr, params), *rest)

    def instance(self, family: TypeId, args: Iterable[TypeId]) -> TypeId:
        args = tuple(args)
        return self.add(InstanceInfo(f'{family}<{", ".join(args)}>', family, args))

    def function(self, name: str, params, ret: TypeId = 'void', doc: str = '',
                 raises_on_panic: bool = False, must_check_result: bool = False,
                 is_async: bool = False, api_guard: bool = False) -> FuncInfo:
        func = FuncInfo(
            name=name,
            params=tuple(p if isinstance(p, ParamInfo) else ParamInfo(*p) for p in params),
            ret=ret,
            doc=doc,
            annotations=Annotations(raises_on_panic, must_check_result, is_async, api_guard),
        )
        if name in self._functions:
            raise DuplicateSymbol(name, describe(self._functions[name]), describe(func))
        self._functions[name] = func
        return func

    def constant(self, name: str, type_id: TypeId, value, doc: str = '') -> ConstInfo:
        const = ConstInfo(name, type_id, value, doc)
        self._constants.append(const)
        return const

    # --------------------------------------------------------------------------
    # IR JSON declarations
    # --------------------------------------------------------------------------

    def ref(self, value) -> TypeId:
        """Resolve a type reference: an id, or an inline pointer/array/fn/apply"""
        if isinstance(value, str):
            return value
        if not isinstance(value, dict):
            raise InvalidGraph(repr(value), 'type reference must be a string or object')
        if 'pointer' in value:
            return self.pointer(self.ref(value['pointer']), bool(value.get('mutable', False)))
        if 'array' in value:
            return self.array(self.ref(value['array']), int(value['len']))
        if 'fn' in value:
            return self.fn_pointer([self.ref(p) for p in value['fn']],
                                   self.ref(value.get('ret', 'void')),
                                   name=value.get('name', ''))
        if 'apply' in value:
            return self.instance(value['apply'], [self.ref(a) for a in value.get('args', [])])
        raise InvalidGraph(repr(value), 'unknown inline type reference')

    def _expr(self, value, params: tuple[str, ...]) -> TypeExpr:
        if isinstance(value, str):
            return TypeParam(value) if value in params else value
        if 'pointer' in value:
            return PointerExpr(self._expr(value['pointer'], params), bool(value.get('mutable', False)))
        if 'array' in value:
            return ArrayExpr(self._expr(value['array'], params), int(value['len']))
        if 'apply' in value:
            return ApplyExpr(value['apply'], tuple(self._expr(a, params) for a in value.get('args', [])))
        return self.ref(value)

    def add_decl(self, decl: dict) -> TypeId:
        """Add one type declaration from an IR dictionary"""
        kind = decl.get('kind')
        name = decl.get('name', '')
        doc = decl.get('doc', '')
        namespace = decl.get('namespace', '')

        if kind == 'struct':
            layout = decl.get('layout')
            return self.struct(
                name,
                [FieldInfo(f['name'], self.ref(f['type']), f.get('doc', '')) for f in decl.get('fields', [])],
                repr=decl.get('repr'),
                doc=doc,
                namespace=namespace,
                layout=Layout(int(layout['size']), int(layout['align'])) if layout else None,
            )
        elif kind == 'enum':
            return self.enum(
                name,
                [EnumItem(i['name'], int(i['value']), i.get('doc', '')) for i in decl.get('variants', [])],
                doc=doc,
                namespace=namespace,
            )
        elif kind == 'opaque':
            return self.opaque(name, doc=doc, namespace=namespace)
        elif kind == 'pointer':
            return self.pointer(self.ref(decl['target']), bool(decl.get('mutable', False)))
        elif kind == 'fn_pointer':
            return self.fn_pointer([self.ref(p) for p in decl.get('params', [])],
                                   self.ref(decl.get('ret', 'void')), name=name, doc=doc)
        elif kind == 'array':
            return self.array(self.ref(decl['element']), int(decl['len']))
        elif kind == 'generic':
            params = tuple(decl.get('params', []))
            return self.generic(
                name,
                params,
                [GenericField(f['name'], self._expr(f['type'], params), f.get('doc', ''))
                 for f in decl.get('fields', [])],
                repr=decl.get('repr'),
                doc=doc,
                namespace=namespace,
            )
        elif kind == 'instance':
            return self.instance(decl['family'], [self.ref(a) for a in decl.get('args', [])])
        raise InvalidGraph(name or '?', f'unknown type kind {kind!r}')

    def add_function_decl(self, decl: dict) -> FuncInfo:
        annotations = decl.get('annotations', {})
        return self.function(
            decl['name'],
            [ParamInfo(p['name'], self.ref(p['type']), p.get('doc', '')) for p in decl.get('params', [])],
            ret=self.ref(decl.get('ret', 'void')),
            doc=decl.get('doc', ''),
            raises_on_panic=bool(annotations.get('raises_on_panic', False)),
            must_check_result=bool(annotations.get('must_check_result', False)),
            is_async=bool(annotations.get('is_async', False)),
            api_guard=bool(annotations.get('api_guard', False)),
        )

    # --------------------------------------------------------------------------
    # Finalize
    # --------------------------------------------------------------------------

    def finalize(self) -> TypeGraph:
        """Check structural invariants and freeze the graph"""
        for info in self._types.values():
            for ref, _ in type_references(info):
                if ref not in self._types:
                    raise UnresolvedType(ref, describe(info))
            self._check_node(info)

        for func in self._functions.values():
            for param in func.params:
                if param.type not in self._types:
                    raise UnresolvedType(param.type, f'function {func.name}')
                self._check_by_value(param.type, f'function {func.name}', allow_void=False)
            if func.ret not in self._types:
                raise UnresolvedType(func.ret, f'function {func.name}')
            self._check_by_value(func.ret, f'function {func.name}', allow_void=True)

        for const in self._constants:
            if const.type not in self._types:
                raise UnresolvedType(const.type, f'constant {const.name}')
            info = self._types[const.type]
            if not isinstance(info, PrimitiveInfo) or info.kind == PrimitiveKind.VOID:
                raise InvalidGraph(f'constant {const.name}', 'constants must have a primitive type')

        graph = TypeGraph(self._types, self._functions.values(), self._constants, self.library)
        graph.value_order()
        return graph

    def _check_node(self, info: TypeInfo):
        node = describe(info)
        if isinstance(info, StructInfo):
            for f in info.fields:
                self._check_by_value(f.type, node, allow_void=False)
            if info.repr.is_transparent and len(info.fields) != 1:
                raise InvalidGraph(node, 'transparent structs must have exactly one field')
            if info.repr.is_packed and (info.repr.align < 1 or info.repr.align & (info.repr.align - 1)):
                raise InvalidGraph(node, f'packed alignment {info.repr.align} is not a power of two')
        elif isinstance(info, ArrayInfo):
            self._check_by_value(info.element, node, allow_void=False)
        elif isinstance(info, EnumInfo):
            names = [i.name for i in info.items]
            values = [i.value for i in info.items]
            if len(set(names)) != len(names):
                raise InvalidGraph(node, 'duplicate variant names')
            if len(set(values)) != len(values):
                raise InvalidGraph(node, 'duplicate discriminants')
        elif isinstance(info, InstanceInfo):
            family = self._types[info.family]
            if not isinstance(family, GenericInfo):
                raise InvalidGraph(node, f'{info.family} is not a generic family')
            if len(family.params) != len(info.args):
                raise InvalidGraph(node, f'{info.family} expects {len(family.params)} type arguments')
        elif isinstance(info, GenericInfo):
            for f in info.fields:
                self._check_apply(f.type, node, info.params)

    def _check_apply(self, expr: TypeExpr, node: str, params: tuple[str, ...]):
        if isinstance(expr, PointerExpr):
            self._check_apply(expr.target, node, params)
        elif isinstance(expr, ArrayExpr):
            self._check_apply(expr.element, node, params)
        elif isinstance(expr, ApplyExpr):
            family = self._types.get(expr.family)
            if not isinstance(family, GenericInfo) or len(family.params) != len(expr.args):
                raise InvalidGraph(node, f'bad application of {expr.family}')
            for arg in expr.args:
                self._check_apply(arg, node, params)

    def _check_by_value(self, type_id: TypeId, node: str, allow_void: bool):
        info = self._types[type_id]
        if isinstance(info, OpaqueInfo):
            raise InvalidGraph(node, f'opaque type {type_id} held by value')
        if isinstance(info, GenericInfo):
            raise InvalidGraph(node, f'generic family {type_id} used without arguments')
        if isinstance(info, PrimitiveInfo) and info.kind == PrimitiveKind.VOID and not allow_void:
            raise InvalidGraph(node, 'void held by value')


def _as_field(value) -> FieldInfo:
    if isinstance(value, FieldInfo):
        return value
    return FieldInfo(*value)


def _as_item(value) -> EnumItem:
    if isinstance(value, EnumItem):
        return value
    return EnumItem(*value)

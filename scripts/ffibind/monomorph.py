"""
Generic monomorphization

Every instantiation of a generic struct family becomes one concrete
StructInfo, deduplicated by (family, type arguments). References to an
instantiation are rewritten to the synthesized node and families themselves
are dropped from the resulting graph.
"""

from typing import Optional

from .errors import InvalidGraph
from .ir import (
    TypeGraph, GraphBuilder, TypeId, TypeInfo, TypeExpr,
    PrimitiveInfo, StructInfo, EnumInfo, OpaqueInfo, PointerInfo, FnPointerInfo,
    ArrayInfo, GenericInfo, InstanceInfo, FieldInfo, ParamInfo,
    TypeParam, PointerExpr, ArrayExpr, ApplyExpr,
)
from .log import get_logger

logger = get_logger(__name__)


class Monomorphizer:
    """Resolves generic instantiations into concrete named nodes"""

    def __init__(self, graph: TypeGraph):
        self.graph = graph
        self._builder: Optional[GraphBuilder] = None
        self._resolved: dict[TypeId, TypeId] = {}
        self._by_key: dict[tuple[TypeId, tuple[TypeId, ...]], TypeId] = {}

    @property
    def instances(self) -> dict[tuple[TypeId, tuple[TypeId, ...]], TypeId]:
        """Synthesized node per (family, args) key"""
        return dict(self._by_key)

    def run(self) -> TypeGraph:
        if not any(isinstance(i, (GenericInfo, InstanceInfo)) for i in self.graph.types()):
            return self.graph

        self._builder = GraphBuilder(self.graph.library)
        for info in self.graph.types():
            if isinstance(info, GenericInfo):
                continue
            if isinstance(info, (StructInfo, EnumInfo, OpaqueInfo, PrimitiveInfo)):
                self._builder.add(self._rewrite_named(info))
                self._resolved[info.id] = info.id
            else:
                self._resolve(info.id)

        for func in self.graph.functions:
            self._builder.function(
                func.name,
                [ParamInfo(p.name, self._resolve(p.type), p.doc) for p in func.params],
                ret=self._resolve(func.ret),
                doc=func.doc,
                raises_on_panic=func.annotations.raises_on_panic,
                must_check_result=func.annotations.must_check_result,
                is_async=func.annotations.is_async,
                api_guard=func.annotations.api_guard,
            )
        for const in self.graph.constants:
            self._builder.constant(const.name, const.type, const.value, const.doc)

        graph = self._builder.finalize()
        logger.debug('monomorphized %d instantiation(s) into %d node(s)',
                     sum(isinstance(i, InstanceInfo) for i in self.graph.types()),
                     len(self._by_key))
        return graph

    def _rewrite_named(self, info: TypeInfo) -> TypeInfo:
        if isinstance(info, StructInfo):
            fields = tuple(FieldInfo(f.name, self._resolve(f.type), f.doc) for f in info.fields)
            return StructInfo(info.id, info.name, fields, info.repr, info.doc,
                              info.namespace, info.layout, info.origin)
        return info

    def _resolve(self, type_id: TypeId) -> TypeId:
        """Id of the node standing for type_id in the output graph"""
        resolved = self._resolved.get(type_id)
        if resolved is not None:
            return resolved

        info = self.graph.get(type_id)
        if isinstance(info, InstanceInfo):
            resolved = self._instantiate(info.family, tuple(self._resolve(a) for a in info.args))
        elif isinstance(info, PointerInfo):
            resolved = self._builder.pointer(self._resolve(info.target), info.mutable)
        elif isinstance(info, ArrayInfo):
            resolved = self._builder.array(self._resolve(info.element), info.len)
        elif isinstance(info, FnPointerInfo):
            resolved = self._builder.fn_pointer(
                [self._resolve(p) for p in info.params],
                self._resolve(info.ret),
                name=info.name,
                doc=info.doc,
            )
        elif isinstance(info, GenericInfo):
            raise InvalidGraph(type_id, 'generic family referenced without arguments')
        else:
            # Named nodes keep their id; they are copied in graph order.
            resolved = type_id

        self._resolved[type_id] = resolved
        return resolved

    def _instantiate(self, family_id: TypeId, args: tuple[TypeId, ...]) -> TypeId:
        key = (family_id, args)
        existing = self._by_key.get(key)
        if existing is not None:
            return existing

        family = self.graph.get(family_id)
        if not isinstance(family, GenericInfo):
            raise InvalidGraph(family_id, 'instantiated type is not a generic family')
        if len(args) != len(family.params):
            raise InvalidGraph(family_id, f'expected {len(family.params)} type arguments, got {len(args)}')

        type_id = f'{family_id}<{", ".join(args)}>'
        # Registered before the fields so self-referencing pointers resolve.
        self._by_key[key] = type_id
        bindings = dict(zip(family.params, args))

        fields = tuple(
            FieldInfo(f.name, self._substitute(f.type, bindings), f.doc) for f in family.fields
        )
        name = family.name + ''.join(self._label(a) for a in args)
        self._builder.add(StructInfo(
            id=type_id,
            name=name,
            fields=fields,
            repr=family.repr,
            doc=family.doc,
            namespace=family.namespace,
            origin=key,
        ))
        logger.debug('instantiated %s as %s', type_id, name)
        return type_id

    def _substitute(self, expr: TypeExpr, bindings: dict[str, TypeId]) -> TypeId:
        if isinstance(expr, TypeParam):
            return bindings[expr.name]
        if isinstance(expr, str):
            return self._resolve(expr)
        if isinstance(expr, PointerExpr):
            return self._builder.pointer(self._substitute(expr.target, bindings), expr.mutable)
        if isinstance(expr, ArrayExpr):
            return self._builder.array(self._substitute(expr.element, bindings), expr.len)
        if isinstance(expr, ApplyExpr):
            return self._instantiate(
                self._resolve_family(expr.family),
                tuple(self._substitute(a, bindings) for a in expr.args),
            )
        raise InvalidGraph(repr(expr), 'unknown type expression')

    def _resolve_family(self, family_id: TypeId) -> TypeId:
        if not isinstance(self.graph.get(family_id), GenericInfo):
            raise InvalidGraph(family_id, 'applied type is not a generic family')
        return family_id

    def _label(self, type_id: TypeId) -> str:
        """Name fragment for a type argument, e.g. u32 in Genericu32"""
        info = self._builder.get(type_id)
        if info is None:
            info = self.graph.get(type_id)
        if isinstance(info, PrimitiveInfo):
            return info.kind.value
        if isinstance(info, PointerInfo):
            return ('MutPtr' if info.mutable else 'Ptr') + self._label(info.target)
        if isinstance(info, ArrayInfo):
            return f'{self._label(info.element)}Array{info.len}'
        if isinstance(info, FnPointerInfo):
            return info.name or 'Fn'
        return info.name

"""
Pattern classification

Recognizes higher-level idioms (slice, option, result, service, string,
callback) over the raw struct, enum, opaque and function shapes of a frozen
graph. Classification runs once; emitters read the cached result instead of
re-inspecting shapes.

Predicates are tried in a fixed priority order
(service > result > option > slice > string) and every one of them is
evaluated: a node matching two predicates is an error, never a tie-break.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import AmbiguousPattern, InvalidGraph
from .ir import (
    TypeGraph, TypeId, FuncInfo, PrimitiveInfo, PrimitiveKind, StructInfo, EnumInfo,
    OpaqueInfo, PointerInfo, FnPointerInfo, describe,
)
from .log import get_logger

logger = get_logger(__name__)

SUCCESS_NAMES = {'ok', 'success'}
PRESENCE_NAMES = {'is_some', 'present', 'is_present', 'has_value'}
PRESENCE_MARKERS = ('presence', 'present', 'discriminant', 'is some')
DESTROY_VERBS = ('destroy', 'delete', 'free', 'drop', 'dispose', 'release')
ASCII_MARKERS = ('nul-terminated', 'null-terminated', 'nul terminated', 'null terminated',
                 'zero-terminated', 'c string', 'ascii')


@dataclass(frozen=True)
class SlicePattern:
    """{data: *T, len: u64}"""
    type_id: TypeId
    element: TypeId
    mutable: bool
    data_field: str
    len_field: str


@dataclass(frozen=True)
class OptionPattern:
    """{value: T, flag: u8}; flag 1 means present, 0 absent"""
    type_id: TypeId
    inner: TypeId
    value_field: str
    flag_field: str


@dataclass(frozen=True)
class ResultPattern:
    """Error enum (ok is None) or {value: T, error: ErrorEnum} struct"""
    type_id: TypeId
    error_enum: TypeId
    success: int = 0
    panic: Optional[int] = None
    ok: Optional[TypeId] = None
    value_field: str = ''
    error_field: str = ''

    @property
    def is_enum_form(self) -> bool:
        return self.ok is None


@dataclass(frozen=True)
class AsciiPointerPattern:
    """Borrowed NUL-terminated byte string"""
    type_id: TypeId


@dataclass(frozen=True)
class OwnedStringPattern:
    """{ptr, len, capacity} handed over by the native side, freed exactly once"""
    type_id: TypeId
    ptr_field: str
    len_field: str
    capacity_field: str
    destroy: FuncInfo
    by_pointer: bool


@dataclass(frozen=True)
class ServicePattern:
    """Opaque handle with its lifecycle and method functions"""
    type_id: TypeId
    ctors: tuple[FuncInfo, ...]
    destructor: FuncInfo
    methods: tuple[FuncInfo, ...]

    @property
    def functions(self) -> tuple[FuncInfo, ...]:
        return self.ctors + (self.destructor,) + self.methods


@dataclass(frozen=True)
class CallbackPattern:
    """Function pointer, optionally paired with a context pointer"""
    type_id: TypeId
    signature: FnPointerInfo
    context: bool = False
    context_param: str = ''
    slot: Optional[int] = None


@dataclass(frozen=True)
class AsyncMethod:
    """Service method completing through a context-carrying callback"""
    function: FuncInfo
    callback_index: int
    result_type: TypeId


Pattern = Union[SlicePattern, OptionPattern, ResultPattern, AsciiPointerPattern,
                OwnedStringPattern, ServicePattern, CallbackPattern]

Site = tuple


def param_site(func_name: str, index: int) -> Site:
    return ('param', func_name, index)


def return_site(func_name: str) -> Site:
    return ('return', func_name)


def field_site(struct_id: TypeId, index: int) -> Site:
    return ('field', struct_id, index)


@dataclass
class Classification:
    """Patterns attached to type nodes and use sites"""
    by_type: dict[TypeId, Pattern] = field(default_factory=dict)
    sites: dict[Site, Pattern] = field(default_factory=dict)
    services: list[ServicePattern] = field(default_factory=list)
    roles: dict[str, tuple[str, TypeId]] = field(default_factory=dict)
    context_params: set[tuple[str, int]] = field(default_factory=set)
    async_methods: dict[str, AsyncMethod] = field(default_factory=dict)

    def pattern(self, type_id: TypeId) -> Optional[Pattern]:
        return self.by_type.get(type_id)

    def site(self, site: Site) -> Optional[Pattern]:
        return self.sites.get(site)

    def service(self, type_id: TypeId) -> Optional[ServicePattern]:
        pattern = self.by_type.get(type_id)
        return pattern if isinstance(pattern, ServicePattern) else None

    def service_of(self, func_name: str) -> Optional[ServicePattern]:
        role = self.roles.get(func_name)
        return self.service(role[1]) if role else None

    def role_of(self, func_name: str) -> Optional[str]:
        role = self.roles.get(func_name)
        return role[0] if role else None

    def result_of(self, func: FuncInfo) -> Optional[ResultPattern]:
        pattern = self.by_type.get(func.ret)
        return pattern if isinstance(pattern, ResultPattern) else None

    def is_context_param(self, func_name: str, index: int) -> bool:
        return (func_name, index) in self.context_params

    def owned_string_destroyers(self) -> set[str]:
        return {p.destroy.name for p in self.by_type.values() if isinstance(p, OwnedStringPattern)}


class Classifier:
    """Attaches at most one pattern to every node of a finalized graph"""

    def __init__(self, graph: TypeGraph):
        self.graph = graph
        self._predicates = [
            ('service', self._match_service),
            ('result', self._match_result),
            ('option', self._match_option),
            ('slice', self._match_slice),
            ('string', self._match_string),
        ]

    def run(self) -> Classification:
        result = Classification()

        for info in self.graph.types():
            matches = []
            for name, predicate in self._predicates:
                pattern = predicate(info)
                if pattern is not None:
                    matches.append((name, pattern))
            if len(matches) > 1:
                raise AmbiguousPattern(info.id, 'node matches more than one pattern',
                                       [name for name, _ in matches])
            if matches:
                result.by_type[info.id] = matches[0][1]
            elif isinstance(info, FnPointerInfo):
                result.by_type[info.id] = CallbackPattern(info.id, info)

        self._assign_roles(result)
        self._classify_sites(result)
        self._classify_async(result)

        counts: dict[str, int] = {}
        for pattern in result.by_type.values():
            kind = type(pattern).__name__
            counts[kind] = counts.get(kind, 0) + 1
        logger.debug('classified %s', ', '.join(f'{k}={v}' for k, v in sorted(counts.items())))
        return result

    # --------------------------------------------------------------------------
    # Shape helpers
    # --------------------------------------------------------------------------

    def _primitive_kind(self, type_id: TypeId) -> Optional[PrimitiveKind]:
        info = self.graph.get(type_id)
        return info.kind if isinstance(info, PrimitiveInfo) else None

    def _pointer(self, type_id: TypeId) -> Optional[PointerInfo]:
        info = self.graph.get(type_id)
        return info if isinstance(info, PointerInfo) else None

    def _is_handle(self, type_id: TypeId, opaque_id: TypeId) -> bool:
        """*O or *mut O"""
        ptr = self._pointer(type_id)
        return ptr is not None and ptr.target == opaque_id

    def _is_out_handle(self, type_id: TypeId, opaque_id: TypeId) -> bool:
        """**O"""
        ptr = self._pointer(type_id)
        return ptr is not None and self._is_handle(ptr.target, opaque_id)

    def _error_enum(self, type_id: TypeId) -> Optional[ResultPattern]:
        info = self.graph.get(type_id)
        if not isinstance(info, EnumInfo):
            return None
        success = info.item_by_value(0)
        if success is None:
            return None
        if success.name.lower() not in SUCCESS_NAMES and 'success' not in success.doc.lower():
            return None
        panic = None
        for item in info.items:
            if 'panic' in item.name.lower() or 'panic' in item.doc.lower():
                panic = item.value
                break
        return ResultPattern(info.id, info.id, success=0, panic=panic)

    # --------------------------------------------------------------------------
    # Predicates
    # --------------------------------------------------------------------------

    def _service_shape(self, opaque_id: TypeId):
        ctors, dtors, methods = [], [], []
        for func in self.graph.functions:
            out_params = [p for p in func.params if self._is_out_handle(p.type, opaque_id)]
            if len(out_params) == 1 and self._error_enum(func.ret) is not None:
                if len(func.params) == 1 and _has_destroy_verb(func.name):
                    dtors.append(func)
                else:
                    ctors.append(func)
            if func.params and self._is_handle(func.params[0].type, opaque_id):
                methods.append(func)
        return ctors, dtors, methods

    def _match_service(self, info) -> Optional[ServicePattern]:
        if not isinstance(info, OpaqueInfo):
            return None
        ctors, dtors, methods = self._service_shape(info.id)
        if not ctors:
            return None
        if len(dtors) != 1:
            reason = 'service has no destructor' if not dtors else 'service has several destructors'
            raise AmbiguousPattern(info.id, reason, [f.name for f in dtors])
        return ServicePattern(info.id, tuple(ctors), dtors[0], tuple(methods))

    def _match_result(self, info) -> Optional[ResultPattern]:
        if isinstance(info, EnumInfo):
            return self._error_enum(info.id)
        if isinstance(info, StructInfo) and len(info.fields) == 2:
            value, error = info.fields
            enum_pattern = self._error_enum(error.type)
            if enum_pattern is None:
                return None
            return ResultPattern(
                type_id=info.id,
                error_enum=error.type,
                success=enum_pattern.success,
                panic=enum_pattern.panic,
                ok=value.type,
                value_field=value.name,
                error_field=error.name,
            )
        return None

    def _match_option(self, info) -> Optional[OptionPattern]:
        if not isinstance(info, StructInfo) or len(info.fields) != 2:
            return None
        value, flag = info.fields
        if self._primitive_kind(flag.type) != PrimitiveKind.U8:
            return None
        doc = flag.doc.lower()
        if flag.name.lower() not in PRESENCE_NAMES and not any(m in doc for m in PRESENCE_MARKERS):
            return None
        return OptionPattern(info.id, value.type, value.name, flag.name)

    def _match_slice(self, info) -> Optional[SlicePattern]:
        if not isinstance(info, StructInfo) or len(info.fields) != 2:
            return None
        data, length = info.fields
        ptr = self._pointer(data.type)
        if ptr is None or self._primitive_kind(length.type) != PrimitiveKind.U64:
            return None
        # Elements must have a layout.
        if self._primitive_kind(ptr.target) == PrimitiveKind.VOID:
            return None
        if isinstance(self.graph.get(ptr.target), OpaqueInfo):
            return None
        return SlicePattern(info.id, ptr.target, ptr.mutable, data.name, length.name)

    def _match_string(self, info) -> Optional[OwnedStringPattern]:
        if not isinstance(info, StructInfo) or len(info.fields) != 3:
            return None
        ptr_field, len_field, cap_field = info.fields
        ptr = self._pointer(ptr_field.type)
        if ptr is None or self._primitive_kind(ptr.target) != PrimitiveKind.U8:
            return None
        if self._primitive_kind(len_field.type) != PrimitiveKind.U64:
            return None
        if self._primitive_kind(cap_field.type) != PrimitiveKind.U64:
            return None

        destroyers = []
        for func in self.graph.functions:
            if len(func.params) != 1 or not _has_destroy_verb(func.name):
                continue
            param_type = func.params[0].type
            if param_type == info.id:
                destroyers.append((func, False))
            elif self._is_handle(param_type, info.id):
                destroyers.append((func, True))
        if len(destroyers) != 1:
            reason = 'owned string has no destroy function' if not destroyers \
                else 'owned string has several destroy functions'
            raise AmbiguousPattern(info.id, reason, [f.name for f, _ in destroyers])

        destroy, by_pointer = destroyers[0]
        return OwnedStringPattern(info.id, ptr_field.name, len_field.name, cap_field.name,
                                  destroy, by_pointer)

    # --------------------------------------------------------------------------
    # Function clusters and sites
    # --------------------------------------------------------------------------

    def _assign_roles(self, result: Classification):
        claims: dict[str, list[tuple[str, TypeId]]] = {}
        for pattern in result.by_type.values():
            if not isinstance(pattern, ServicePattern):
                continue
            result.services.append(pattern)
            for func in pattern.ctors:
                claims.setdefault(func.name, []).append(('ctor', pattern.type_id))
            claims.setdefault(pattern.destructor.name, []).append(('dtor', pattern.type_id))
            for func in pattern.methods:
                claims.setdefault(func.name, []).append(('method', pattern.type_id))

        # Functions claimed by opaque types that did not become services.
        for info in self.graph.types():
            if isinstance(info, OpaqueInfo) and info.id not in result.by_type:
                _, _, methods = self._service_shape(info.id)
                for func in methods:
                    if func.name in claims:
                        claims[func.name].append(('method', info.id))

        for name, roles in claims.items():
            if len(roles) > 1:
                raise AmbiguousPattern(f'function {name}', 'function has several service roles',
                                       [f'{role}:{owner}' for role, owner in roles])
            result.roles[name] = roles[0]

    def _is_byte_pointer(self, type_id: TypeId) -> bool:
        ptr = self._pointer(type_id)
        if ptr is None or ptr.mutable:
            return False
        return self._primitive_kind(ptr.target) in (PrimitiveKind.U8, PrimitiveKind.I8)

    def _is_ascii(self, type_id: TypeId, doc: str) -> bool:
        if not self._is_byte_pointer(type_id):
            return False
        doc = doc.lower()
        return any(marker in doc for marker in ASCII_MARKERS)

    def _context_slot(self, fn: FnPointerInfo) -> Optional[int]:
        if not fn.params:
            return None
        ptr = self._pointer(fn.params[-1])
        if ptr is None:
            return None
        return len(fn.params) - 1 if self._is_context_target(ptr.target, None) else None

    def _is_context_target(self, target: TypeId, result: Optional[Classification]) -> bool:
        info = self.graph.get(target)
        if isinstance(info, PrimitiveInfo):
            return info.kind == PrimitiveKind.VOID
        if isinstance(info, OpaqueInfo):
            return result is None or result.service(info.id) is None
        return False

    def _classify_sites(self, result: Classification):
        for func in self.graph.functions:
            # The function doc only speaks for a lone byte-pointer parameter.
            byte_params = [p for p in func.params if self._is_byte_pointer(p.type)]
            for i, param in enumerate(func.params):
                doc = param.doc
                if not doc and len(byte_params) == 1:
                    doc = func.doc
                if self._is_ascii(param.type, doc):
                    result.sites[param_site(func.name, i)] = AsciiPointerPattern(param.type)
            if self._is_ascii(func.ret, func.doc):
                result.sites[return_site(func.name)] = AsciiPointerPattern(func.ret)

            for i, param in enumerate(func.params):
                fn = self.graph.get(param.type)
                if not isinstance(fn, FnPointerInfo):
                    continue
                pattern = CallbackPattern(param.type, fn)
                slot = self._context_slot(fn)
                if slot is not None and i + 1 < len(func.params):
                    nxt = func.params[i + 1]
                    ptr = self._pointer(nxt.type)
                    if (ptr is not None
                            and self._is_context_target(ptr.target, result)
                            and param_site(func.name, i + 1) not in result.sites):
                        pattern = CallbackPattern(param.type, fn, True, nxt.name, slot)
                        result.context_params.add((func.name, i + 1))
                result.sites[param_site(func.name, i)] = pattern

        for info in self.graph.types():
            if not isinstance(info, StructInfo):
                continue
            for i, f in enumerate(info.fields):
                if self._is_ascii(f.type, f.doc):
                    result.sites[field_site(info.id, i)] = AsciiPointerPattern(f.type)

    def _classify_async(self, result: Classification):
        for func in self.graph.functions:
            if not func.annotations.is_async:
                continue
            node = describe(func)
            if result.role_of(func.name) != 'method':
                raise InvalidGraph(node, 'async functions must be service methods')
            if len(func.params) < 3:
                raise InvalidGraph(node, 'async methods end with a callback and its context')
            index = len(func.params) - 2
            pattern = result.sites.get(param_site(func.name, index))
            if not isinstance(pattern, CallbackPattern) or not pattern.context:
                raise InvalidGraph(node, 'async methods end with a callback and its context')
            signature = pattern.signature
            value_ptr = self._pointer(signature.params[0]) if len(signature.params) == 2 else None
            if value_ptr is None or self._primitive_kind(signature.ret) != PrimitiveKind.VOID:
                raise InvalidGraph(node, 'async completion callbacks take (*const T, context) -> void')
            result.async_methods[func.name] = AsyncMethod(func, index, value_ptr.target)


def _has_destroy_verb(name: str) -> bool:
    parts = name.lower().split('_')
    return any(verb in parts for verb in DESTROY_VERBS)

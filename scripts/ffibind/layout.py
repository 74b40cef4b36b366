"""
Layout computation

Recomputes C size and alignment for every value type in a graph so the
validator can compare them with what the front end declared.
"""

from typing import Optional

from .errors import InvalidGraph
from .ir import (
    TypeGraph, TypeId, Layout, PrimitiveInfo, StructInfo, EnumInfo, OpaqueInfo,
    PointerInfo, FnPointerInfo, ArrayInfo, PrimitiveKind, describe,
)

ENUM_SIZE = 4


def align_up(offset: int, align: int) -> int:
    return (offset + align - 1) // align * align


class LayoutCalculator:
    """Computes and caches layouts for a graph"""

    def __init__(self, graph: TypeGraph, pointer_width: int = 8):
        self.graph = graph
        self.pointer_width = pointer_width
        self._cache: dict[TypeId, Layout] = {}

    def layout(self, type_id: TypeId) -> Layout:
        cached = self._cache.get(type_id)
        if cached is not None:
            return cached
        result = self._compute(type_id)
        self._cache[type_id] = result
        return result

    def field_offsets(self, type_id: TypeId) -> list[int]:
        """Byte offset of each field of a struct"""
        info = self.graph.get(type_id)
        if not isinstance(info, StructInfo):
            raise InvalidGraph(describe(info), 'field offsets requested for a non-struct')
        offsets = []
        offset = 0
        pack = info.repr.align if info.repr.is_packed else None
        for f in info.fields:
            field_layout = self.layout(f.type)
            align = _effective_align(field_layout.align, pack)
            offset = align_up(offset, align)
            offsets.append(offset)
            offset += field_layout.size
        return offsets

    def _compute(self, type_id: TypeId) -> Layout:
        info = self.graph.get(type_id)

        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.VOID:
                raise InvalidGraph(describe(info), 'void has no layout')
            return Layout(info.kind.size, info.kind.size)

        elif isinstance(info, (PointerInfo, FnPointerInfo)):
            return Layout(self.pointer_width, self.pointer_width)

        elif isinstance(info, EnumInfo):
            return Layout(ENUM_SIZE, ENUM_SIZE)

        elif isinstance(info, ArrayInfo):
            element = self.layout(info.element)
            return Layout(element.size * info.len, element.align)

        elif isinstance(info, StructInfo):
            return self._struct_layout(info)

        elif isinstance(info, OpaqueInfo):
            raise InvalidGraph(describe(info), 'opaque types have no layout')

        raise InvalidGraph(describe(info), 'node has no layout')

    def _struct_layout(self, info: StructInfo) -> Layout:
        if info.repr.is_transparent:
            return self.layout(info.fields[0].type)

        pack: Optional[int] = info.repr.align if info.repr.is_packed else None
        offset = 0
        struct_align = 1
        for f in info.fields:
            field_layout = self.layout(f.type)
            align = _effective_align(field_layout.align, pack)
            offset = align_up(offset, align)
            offset += field_layout.size
            struct_align = max(struct_align, align)

        # Empty structs are emitted as one byte in C.
        if not info.fields:
            return Layout(1, 1)
        return Layout(align_up(offset, struct_align), struct_align)


def _effective_align(align: int, pack: Optional[int]) -> int:
    return min(align, pack) if pack else align

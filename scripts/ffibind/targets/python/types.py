"""
ctypes type mapping

Spells graph types as ctypes expressions and Python type hints.
"""

from typing import TYPE_CHECKING

from ...ir import (
    TypeId, PrimitiveInfo, PrimitiveKind, StructInfo, EnumInfo, OpaqueInfo, PointerInfo,
    FnPointerInfo, ArrayInfo,
)

if TYPE_CHECKING:
    from ...model import BindingModel

CTYPES_PRIMITIVES = {
    PrimitiveKind.VOID: 'None',
    PrimitiveKind.BOOL: 'ctypes.c_bool',
    PrimitiveKind.U8: 'ctypes.c_uint8',
    PrimitiveKind.U16: 'ctypes.c_uint16',
    PrimitiveKind.U32: 'ctypes.c_uint32',
    PrimitiveKind.U64: 'ctypes.c_uint64',
    PrimitiveKind.I8: 'ctypes.c_int8',
    PrimitiveKind.I16: 'ctypes.c_int16',
    PrimitiveKind.I32: 'ctypes.c_int32',
    PrimitiveKind.I64: 'ctypes.c_int64',
    PrimitiveKind.F32: 'ctypes.c_float',
    PrimitiveKind.F64: 'ctypes.c_double',
}

ENUM_CTYPE = 'ctypes.c_int32'


class CtypesMapper:
    """Maps TypeIds to ctypes expressions"""

    def __init__(self, model: 'BindingModel'):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming

    def ctype(self, type_id: TypeId, ascii: bool = False) -> str:
        if ascii:
            return 'ctypes.c_char_p'
        info = self.graph.get(type_id)

        if isinstance(info, PrimitiveInfo):
            return CTYPES_PRIMITIVES[info.kind]
        elif isinstance(info, EnumInfo):
            return ENUM_CTYPE
        elif isinstance(info, StructInfo):
            if info.repr.is_transparent:
                return self.ctype(info.fields[0].type)
            return self.naming.type(type_id)
        elif isinstance(info, FnPointerInfo):
            return self.naming.type(type_id)
        elif isinstance(info, ArrayInfo):
            return f'({self.ctype(info.element)} * {info.len})'
        elif isinstance(info, PointerInfo):
            target = self.graph.get(info.target)
            # void* and handles to opaque types are plain addresses.
            if isinstance(target, OpaqueInfo):
                return 'ctypes.c_void_p'
            if isinstance(target, PrimitiveInfo) and target.kind == PrimitiveKind.VOID:
                return 'ctypes.c_void_p'
            return f'ctypes.POINTER({self.ctype(info.target)})'
        return 'ctypes.c_void_p'

    def hint(self, type_id: TypeId, ascii: bool = False) -> str:
        """Python type hint for a value crossing the boundary"""
        if ascii:
            return 'str'
        info = self.graph.get(type_id)
        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.VOID:
                return 'None'
            if info.kind == PrimitiveKind.BOOL:
                return 'bool'
            return 'float' if info.kind.is_float else 'int'
        if isinstance(info, (StructInfo, EnumInfo)):
            if isinstance(info, StructInfo) and info.repr.is_transparent:
                return self.hint(info.fields[0].type)
            return self.naming.type(type_id)
        return 'typing.Any'

    def size_one(self, type_id: TypeId) -> bool:
        """True for byte-sized primitives"""
        info = self.graph.get(type_id)
        return isinstance(info, PrimitiveInfo) and info.kind.size == 1 and info.kind != PrimitiveKind.BOOL

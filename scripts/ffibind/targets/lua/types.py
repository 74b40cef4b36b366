"""
Type conversion module

Provides Lua <-> C conversion code for graph types, plus their LuaCATS
annotations. C spellings come from the C header naming, since the glue
compiles against the generated header.
"""

from typing import TYPE_CHECKING, Optional

from ...ir import (
    TypeId, TypeInfo, PrimitiveInfo, PrimitiveKind, StructInfo, EnumInfo, PointerInfo,
    FnPointerInfo,
)
from ...patterns import SlicePattern

if TYPE_CHECKING:
    from ...model import BindingModel
    from ..c import CTypes


class TypeConverter:
    """Manages type conversion between Lua and C"""

    def __init__(self, model: 'BindingModel', ctypes: 'CTypes', module_name: str):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.ctypes = ctypes
        self.module_name = module_name

    def resolve(self, type_id: TypeId) -> TypeInfo:
        """Transparent structs are their single field"""
        info = self.graph.get(type_id)
        while isinstance(info, StructInfo) and info.repr.is_transparent:
            info = self.graph.get(info.fields[0].type)
        return info

    def c_type(self, type_id: TypeId) -> str:
        return self.ctypes.c_type(type_id)

    def c_name(self, type_id: TypeId) -> str:
        """C identifier of a named node, used to derive helper names"""
        return self.ctypes.naming.type(type_id)

    def metatable(self, type_id: TypeId) -> str:
        return f'{self.module_name}.{self.naming.type(type_id)}'

    def is_userdata(self, info: TypeInfo) -> bool:
        """Structs exposed to Lua as full userdata"""
        return isinstance(info, StructInfo) and not info.repr.is_transparent and bool(info.fields)

    def struct_target(self, type_id: TypeId) -> Optional[StructInfo]:
        """Pointee of a pointer to a userdata struct"""
        info = self.graph.get(type_id)
        if not isinstance(info, PointerInfo):
            return None
        target = self.graph.get(info.target)
        return target if self.is_userdata(target) else None

    # --------------------------------------------------------------------------
    # Lua -> C
    # --------------------------------------------------------------------------

    def lua_to_c(self, type_id: TypeId, idx, ascii: bool = False) -> Optional[str]:
        """Expression reading a C value from the Lua stack; raises a Lua error on mismatch"""
        if ascii:
            return f'luaL_checkstring(L, {idx})'
        info = self.resolve(type_id)
        ctype = self.c_type(info.id)

        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.BOOL:
                return f'lua_toboolean(L, {idx})'
            elif info.kind.is_float:
                return f'({ctype})luaL_checknumber(L, {idx})'
            elif info.kind.is_integer:
                return f'({ctype})luaL_checkinteger(L, {idx})'
            return None
        elif isinstance(info, EnumInfo):
            return f'({ctype})luaL_checkinteger(L, {idx})'
        elif self.is_userdata(info):
            return f'*check_{self.c_name(info.id)}(L, {idx})'
        elif isinstance(info, PointerInfo):
            if self.model.classification.service(info.target) is not None:
                return f'check_{self.c_name(info.target)}_handle(L, {idx})'
            target = self.struct_target(info.id)
            if target is not None:
                return f'check_{self.c_name(target.id)}(L, {idx})'
            return f'({ctype})lua_touserdata(L, {idx})'
        return None

    def lua_to_c_unchecked(self, type_id: TypeId, idx) -> Optional[str]:
        """Non-raising variant for values returned by Lua callbacks"""
        info = self.resolve(type_id)
        ctype = self.c_type(info.id)
        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.BOOL:
                return f'lua_toboolean(L, {idx})'
            elif info.kind.is_float:
                return f'({ctype})lua_tonumber(L, {idx})'
            elif info.kind.is_integer:
                return f'({ctype})lua_tointeger(L, {idx})'
            return None
        elif isinstance(info, EnumInfo):
            return f'({ctype})lua_tointeger(L, {idx})'
        elif isinstance(info, PointerInfo):
            return f'({ctype})lua_touserdata(L, {idx})'
        return None

    # --------------------------------------------------------------------------
    # C -> Lua
    # --------------------------------------------------------------------------

    def c_to_lua(self, type_id: TypeId, var: str, ascii: bool = False) -> str:
        """Statement pushing one C value; empty for void"""
        if ascii:
            return f'lua_pushstring(L, {var});'
        info = self.resolve(type_id)

        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.VOID:
                return ''
            elif info.kind == PrimitiveKind.BOOL:
                return f'lua_pushboolean(L, {var});'
            elif info.kind.is_float:
                return f'lua_pushnumber(L, (lua_Number){var});'
            return f'lua_pushinteger(L, (lua_Integer){var});'
        elif isinstance(info, EnumInfo):
            return f'lua_pushinteger(L, (lua_Integer){var});'
        elif self.is_userdata(info):
            return f'push_{self.c_name(info.id)}(L, &{var});'
        elif isinstance(info, PointerInfo):
            target = self.struct_target(info.id)
            if target is not None:
                # Pointed-to structs are copied into fresh userdata.
                return f'if ({var}) push_{self.c_name(target.id)}(L, {var}); else lua_pushnil(L);'
            return f'lua_pushlightuserdata(L, (void*){var});'
        elif isinstance(info, FnPointerInfo):
            return f'lua_pushlightuserdata(L, (void*){var});'
        return 'lua_pushnil(L);'

    def default_value(self, type_id: TypeId) -> str:
        """Value returned by trampolines when the Lua callback fails"""
        info = self.resolve(type_id)
        if isinstance(info, PrimitiveInfo):
            return 'false' if info.kind == PrimitiveKind.BOOL else '0'
        elif isinstance(info, EnumInfo):
            return f'({self.c_type(info.id)})0'
        elif isinstance(info, (PointerInfo, FnPointerInfo)):
            return 'NULL'
        return f'({self.c_type(info.id)}){{0}}'

    # --------------------------------------------------------------------------
    # LuaCATS
    # --------------------------------------------------------------------------

    def luacats_type(self, type_id: TypeId, ascii: bool = False) -> str:
        """Get LuaCATS type for a graph type"""
        if ascii:
            return 'string'
        info = self.resolve(type_id)

        if isinstance(info, PrimitiveInfo):
            if info.kind == PrimitiveKind.VOID:
                return 'nil'
            elif info.kind == PrimitiveKind.BOOL:
                return 'boolean'
            return 'number' if info.kind.is_float else 'integer'
        elif isinstance(info, EnumInfo):
            return f'{self.module_name}.{self.naming.type(info.id)}'
        elif self.is_userdata(info):
            name = f'{self.module_name}.{self.naming.type(info.id)}'
            pattern = self.model.pattern(info.id)
            if isinstance(pattern, SlicePattern):
                return f'{name}|{self.luacats_type(pattern.element)}[]'
            return name
        elif isinstance(info, PointerInfo):
            if self.model.classification.service(info.target) is not None:
                return f'{self.module_name}.{self.naming.type(info.target)}'
            target = self.struct_target(info.id)
            if target is not None:
                return f'{self.module_name}.{self.naming.type(target.id)}'
            return 'lightuserdata'
        elif isinstance(info, FnPointerInfo):
            return self.luacats_function(info)
        return 'any'

    def luacats_function(self, info: FnPointerInfo, skip: Optional[int] = None) -> str:
        params = ', '.join(f'x{i}: {self.luacats_type(p)}'
                           for i, p in enumerate(info.params) if i != skip)
        ret = self.luacats_type(info.ret)
        return f'fun({params})' if ret == 'nil' else f'fun({params}): {ret}'

"""
LuaCATS type definition generation module

Generates the types/<library>.lua annotation file for IDE autocompletion.
"""

from typing import TYPE_CHECKING

from ...ir import StructInfo, EnumInfo, OpaqueInfo, PointerInfo
from ...patterns import SlicePattern, OptionPattern, ServicePattern

if TYPE_CHECKING:
    from ...ir import FuncInfo
    from ...model import BindingModel
    from .func import FuncGenerator
    from .types import TypeConverter

# Lua reserved keywords
LUA_KEYWORDS = frozenset({
    'and', 'break', 'do', 'else', 'elseif', 'end', 'false', 'for',
    'function', 'goto', 'if', 'in', 'local', 'nil', 'not', 'or',
    'repeat', 'return', 'then', 'true', 'until', 'while'
})


class LuaCATSGenerator:
    """Generates LuaCATS type definition files"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter', funcs: 'FuncGenerator'):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.type_conv = type_conv
        self.funcs = funcs
        self.module_name = type_conv.module_name

    def _qualified(self, type_id) -> str:
        return f'{self.module_name}.{self.naming.type(type_id)}'

    def generate(self) -> str:
        """Generate complete LuaCATS type definition file"""
        lines = []
        lines.append('---@meta')
        lines.append(f'-- LuaCATS type definitions for {self.module_name}')
        lines.append('-- Auto-generated, do not edit')
        lines.append('')

        structs = [i for i in self.graph.types() if self.type_conv.is_userdata(i)]
        services = [i for i in self.graph.types()
                    if isinstance(i, OpaqueInfo) and self.model.classification.service(i.id)]
        enums = [i for i in self.graph.types() if isinstance(i, EnumInfo)]
        service_functions = {f.name for s in self.model.classification.services for f in s.functions}
        funcs = [f for f in self.graph.functions if f.name not in service_functions]

        for struct in structs:
            lines.extend(self._gen_struct(struct))
            lines.append('')
        for info in services:
            lines.extend(self._gen_service(info, self.model.classification.service(info.id)))
            lines.append('')

        # Module class with constructors
        lines.append(f'---@class {self.module_name}')
        for struct in structs:
            lines.append(self._gen_constructor_field(struct))
        for info in services:
            lines.append(f'---@field {self.naming.type(info.id)} {self._qualified(info.id)}Constructors')
        lines.append(f'local {self.module_name} = {{}}')
        lines.append('')

        for enum in enums:
            lines.extend(self._gen_enum(enum))
            lines.append('')

        for const in self.graph.constants:
            lines.append(f'---@type {self.type_conv.luacats_type(const.type)}')
            lines.append(f'{self.module_name}.{self.naming.constant(const.name)} = {_lua_literal(const.value)}')
            lines.append('')

        for func in funcs:
            lines.extend(self._gen_func(func, f'{self.module_name}.{self.naming.function(func.name)}'))
            lines.append('')
            if self.model.is_checked(func):
                raw_name = f'{self.module_name}.{self.naming.function(func.name)}Raw'
                lines.extend(self._gen_func(func, raw_name, raw=True))
                lines.append('')

        lines.append(f'return {self.module_name}')
        return '\n'.join(lines) + '\n'

    def _gen_struct(self, struct: StructInfo) -> list[str]:
        """Generate struct type definition"""
        name = self._qualified(struct.id)
        lines = [f'---@class {name}']
        pattern = self.model.pattern(struct.id)
        if isinstance(pattern, SlicePattern):
            element = self.type_conv.luacats_type(pattern.element)
            lines.append(f'---@field [integer] {element}')
            lines.append(f'---@field copied fun(self: {name}): {element}[]')
            lines.append('---@operator len: integer')
            return lines
        if isinstance(pattern, OptionPattern):
            lines.append(f'---@field value? {self.type_conv.luacats_type(pattern.inner)}')
            lines.append(f'---@field is_some fun(self: {name}): boolean')
            return lines
        for f in struct.fields:
            lines.append(f'---@field {self.naming.field(struct.id, f.name)}? {self.type_conv.luacats_type(f.type)}')
        return lines

    def _gen_service(self, info: OpaqueInfo, service: ServicePattern) -> list[str]:
        name = self._qualified(info.id)
        lines = [f'---@class {name}']
        lines.append(f'---@field close fun(self: {name})')
        for method in service.methods:
            lines.append(f'---@field {self.naming.method(method.name)} {self._method_type(method, name)}')
            if self.model.is_checked(method):
                raw = self._method_type(method, name, raw=True)
                lines.append(f'---@field {self.naming.method(method.name)}_raw {raw}')
        lines.append(f'---@class {name}Constructors')
        for ctor in service.ctors:
            params = ', '.join(f'{n}: {t}' for n, t in self._ctor_params(ctor, service))
            lines.append(f'---@field {self.naming.method(ctor.name)} fun({params}): {name}')
        return lines

    def _ctor_params(self, ctor: 'FuncInfo', service: ServicePattern) -> list[tuple[str, str]]:
        skip = set()
        for i, p in enumerate(ctor.params):
            ptr = self.graph.get(p.type)
            inner = self.graph.get(ptr.target) if isinstance(ptr, PointerInfo) else None
            if isinstance(inner, PointerInfo) and inner.target == service.type_id:
                skip.add(i)
        return self.funcs.luacats_params(ctor, frozenset(skip))

    def _method_type(self, method: 'FuncInfo', owner: str, raw: bool = False) -> str:
        params = ', '.join([f'self: {owner}'] + [f'{n}: {t}' for n, t in
                                                  self.funcs.luacats_params(method, frozenset({0}))])
        ret = self.funcs.luacats_return(method, raw)
        return f'fun({params})' if ret is None else f'fun({params}): {ret}'

    def _gen_constructor_field(self, struct: StructInfo) -> str:
        """Generate constructor field for module class"""
        name = self._qualified(struct.id)
        pattern = self.model.pattern(struct.id)
        if isinstance(pattern, SlicePattern):
            return f'---@field {self.naming.type(struct.id)} fun(t: {self.type_conv.luacats_type(pattern.element)}[]): {name}'
        if isinstance(pattern, OptionPattern):
            return f'---@field {self.naming.type(struct.id)} fun(value?: {self.type_conv.luacats_type(pattern.inner)}): {name}'
        return f'---@field {self.naming.type(struct.id)} fun(t?: {name}): {name}'

    def _gen_enum(self, enum: EnumInfo) -> list[str]:
        """Generate enum type definition"""
        name = self._qualified(enum.id)
        lines = [f'---@enum {name}', f'{name} = {{']
        for item in enum.items:
            lines.append(f'    {self.naming.variant(enum.id, item.name)} = {item.value},')
        lines.append('}')
        return lines

    def _gen_func(self, func: 'FuncInfo', qualified: str, raw: bool = False) -> list[str]:
        """Generate function type definition"""
        lines = []
        if func.doc and self.model.config.docs:
            lines.extend(f'--- {part}'.rstrip() for part in func.doc.strip().split('\n'))
        params = self.funcs.luacats_params(func)
        for name, lua_type in params:
            lines.append(f'---@param {name} {lua_type}')
        ret = self.funcs.luacats_return(func, raw)
        if ret is not None:
            lines.append(f'---@return {ret}')
        lines.append(f'function {qualified}({", ".join(n for n, _ in params)}) end')
        return lines


def _lua_literal(value) -> str:
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return repr(value)

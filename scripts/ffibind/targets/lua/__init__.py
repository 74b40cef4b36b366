"""
Lua target

Emits <library>_lua.c, Lua 5.4 C API glue compiled against the generated C
header, and types/<library>.lua with LuaCATS annotations, kept out of the
glue's directory so require() finds the native module. Structs become userdata
with table constructors, enums and constants become module fields and
services become userdata closed exactly once.
"""

from ...backend import Backend, Phase, register_backend
from ...codegen import CodeGen
from ...errors import DuplicateSymbol
from ...ir import PrimitiveKind, StructInfo, describe
from ...naming import Namer, NameStyle
from ...patterns import OwnedStringPattern
from ..c import C_STYLE, CTypes
from .callback import CallbackGenerator, RUNTIME
from .enum import EnumGenerator
from .func import FuncGenerator
from .luacats import LuaCATSGenerator, LUA_KEYWORDS
from .service import ServiceGenerator
from .struct import StructGenerator
from .types import TypeConverter

LUA_STYLE = NameStyle(
    target='lua',
    type_case='pascal',
    function_case='pascal',
    method_case='snake',
    keywords=LUA_KEYWORDS,
    reserved_members=frozenset({'close'}),
    shared_namespace=True,
)


@register_backend('lua')
class LuaBackend(Backend):
    """Lua C API glue and LuaCATS emitter"""

    style = LUA_STYLE
    capabilities = frozenset({'packed', 'transparent'})

    def __init__(self, model, options=None):
        super().__init__(model, options)
        self.module_name = self.options.get('module_name') or model.library
        # The glue spells C types the way the generated header does.
        c_naming = Namer(model.graph, model.classification, C_STYLE, model.config.type_prefix).run()
        self.type_conv = TypeConverter(model, CTypes(model.graph, c_naming), self.module_name)
        self.structs = StructGenerator(model, self.type_conv)
        self.enums = EnumGenerator(model, self.type_conv)
        self.callbacks = CallbackGenerator(model, self.type_conv)
        self.funcs = FuncGenerator(model, self.type_conv, self.callbacks)
        self.services = ServiceGenerator(model, self.type_conv, self.funcs)
        self.luacats = LuaCATSGenerator(model, self.type_conv, self.funcs)

        self._prototypes = CodeGen()
        self._enums = CodeGen()
        self._definitions = CodeGen()
        self._services = CodeGen()
        self._functions = CodeGen()
        self._constants: list[tuple[str, str]] = []

    def begin(self):
        exported = {}
        for owner, names in (('type', self.naming.types), ('function', self.naming.functions),
                             ('constant', self.naming.constants)):
            for key, name in names.items():
                exported[name] = f'{owner} {key}'
        for func in self.graph.functions:
            if self.model.is_checked(func) and self.model.service_of(func) is None:
                raw = self.naming.function(func.name) + 'Raw'
                if raw in exported:
                    raise DuplicateSymbol(raw, exported[raw], f'{describe(func)} (raw)', self.name)

    # --------------------------------------------------------------------------
    # Types
    # --------------------------------------------------------------------------

    def emit_primitive(self, info, phase):
        pass

    def emit_opaque(self, info, phase):
        # Plain opaque pointers travel as light userdata.
        pass

    def emit_enum(self, info, phase):
        if phase == Phase.DECLARE:
            self.enums.generate(info, self._enums)

    def _userdata(self, info: StructInfo) -> bool:
        return self.type_conv.is_userdata(info)

    def emit_struct(self, info, phase):
        if not self._userdata(info):
            return
        if phase == Phase.DECLARE:
            self.structs.generate_prototypes(info, self._prototypes)
        else:
            self.structs.generate(info, self._definitions)

    def emit_slice(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.structs.generate_prototypes(info, self._prototypes)
        else:
            self.structs.generate_slice(info, pattern, self._definitions)

    def emit_option(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.structs.generate_prototypes(info, self._prototypes)
        else:
            self.structs.generate_option(info, pattern, self._definitions)

    def emit_string(self, info, pattern, phase):
        self.emit_struct(info, phase)

    def emit_result(self, info, pattern, phase):
        if pattern.is_enum_form:
            self.emit_enum(info, phase)
            if phase == Phase.DECLARE:
                self.enums.generate_error(info, pattern, self._enums)
        else:
            self.emit_struct(info, phase)

    def emit_service(self, info, pattern, phase):
        c_name = self.type_conv.c_name(info.id)
        if phase == Phase.DECLARE:
            self._prototypes.line(f'static {c_name}* check_{c_name}_handle(lua_State *L, int idx);')
        else:
            self.services.generate(info, pattern, self._services)

    def emit_callback(self, info, pattern, phase):
        if phase == Phase.DEFINE:
            self.callbacks.generate(info, self._definitions)

    # --------------------------------------------------------------------------
    # Functions and constants
    # --------------------------------------------------------------------------

    def emit_constant(self, const):
        kind = self.graph.get(const.type).kind
        if kind == PrimitiveKind.BOOL:
            push = f'lua_pushboolean(L, {1 if const.value else 0});'
        elif kind.is_float:
            push = f'lua_pushnumber(L, {float(const.value)!r});'
        else:
            push = f'lua_pushinteger(L, {int(const.value)});'
        self._constants.append((self.naming.constant(const.name), push))

    def emit_function(self, func):
        if self.model.service_of(func) is not None:
            return
        for pattern in self.model.classification.by_type.values():
            if isinstance(pattern, OwnedStringPattern) and pattern.destroy.name == func.name:
                self.funcs.generate_destroy(func, pattern, self._functions)
                return
        self.funcs.generate(func, self._functions)

    # --------------------------------------------------------------------------
    # Assembly
    # --------------------------------------------------------------------------

    def _gen_metatable_registration(self, gen: CodeGen):
        """Generate metatable registration function"""
        gen.line('static void register_metatables(lua_State *L) {')
        gen.indent()
        for mt, events in self.structs.metatables:
            gen.line(f'luaL_newmetatable(L, "{mt}");')
            for event, function in events:
                gen.line(f'lua_pushcfunction(L, {function});')
                gen.line(f'lua_setfield(L, -2, "{event}");')
            gen.line('lua_pop(L, 1);')
            gen.line()
        for mt, _, close, methods, _ in self.services.services:
            gen.line(f'luaL_newmetatable(L, "{mt}");')
            gen.line('lua_newtable(L);')
            for name, function in methods:
                gen.line(f'lua_pushcfunction(L, {function});')
                gen.line(f'lua_setfield(L, -2, "{name}");')
            gen.line('lua_setfield(L, -2, "__index");')
            for event in ('__gc', '__close'):
                gen.line(f'lua_pushcfunction(L, {close});')
                gen.line(f'lua_setfield(L, -2, "{event}");')
            gen.line('lua_pop(L, 1);')
            gen.line()
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_luaopen(self, gen: CodeGen, export: str):
        """Generate luaopen function"""
        symbol = self.module_name.replace('.', '_')
        gen.line(f'static const luaL_Reg {symbol}_funcs[] = {{')
        gen.indent()
        for name, function in self.funcs.registered + self.structs.constructors:
            gen.line(f'{{"{name}", {function}}},')
        gen.line('{NULL, NULL}')
        gen.dedent()
        gen.line('};')
        gen.line()

        gen.line(f'{export} int luaopen_{symbol}(lua_State *L) {{')
        gen.indent()
        guard = self.model.api_guard()
        if guard is not None:
            expected = f'{self.model.api_hash:#018x}'
            gen.line(f'if ({self.type_conv.ctypes.naming.function(guard.name)}() != {expected}ULL) {{')
            gen.line(f'    return luaL_error(L, "API version mismatch: bindings expect {expected}");')
            gen.line('}')
        gen.line('register_metatables(L);')
        gen.line(f'luaL_newlib(L, {symbol}_funcs);')
        for register in self.enums.registered:
            gen.line(f'{register}(L);')
        for _, name, _, _, ctors in self.services.services:
            gen.line('lua_newtable(L);')
            for ctor, function in ctors:
                gen.line(f'lua_pushcfunction(L, {function});')
                gen.line(f'lua_setfield(L, -2, "{ctor}");')
            gen.line(f'lua_setfield(L, -2, "{name}");')
        for name, push in self._constants:
            gen.line(push)
            gen.line(f'lua_setfield(L, -2, "{name}");')
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')

    def finish(self) -> dict[str, str]:
        export = self.options.get('export_macro') or 'FFIBIND_API'
        gen = CodeGen()
        gen.line('/* machine generated, do not edit */')
        gen.lines(
            '#include <lua.h>',
            '#include <lauxlib.h>',
            '#include <lualib.h>',
            '#include <stdlib.h>',
            '#include <string.h>',
        )
        gen.line()
        gen.line(f'#include "{self.model.library}.h"')
        gen.line()
        gen.lines(
            f'#ifndef {export}',
            '  #ifdef _WIN32',
            f'    #define {export} __declspec(dllexport)',
            '  #else',
            f'    #define {export}',
            '  #endif',
            '#endif',
        )
        gen.line()
        if self.callbacks.has_context:
            gen.raw(RUNTIME)

        for section in (self._prototypes, self._enums, self._definitions, self._services,
                        self._functions):
            text = section.output().strip('\n')
            if text:
                gen.raw(text)
                gen.line()

        self._gen_metatable_registration(gen)
        self._gen_luaopen(gen, export)

        return {
            f'{self.model.library}_lua.c': gen.output(),
            f'types/{self.model.library}.lua': self.luacats.generate(),
        }

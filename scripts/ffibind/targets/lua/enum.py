"""
Enum binding generation module

Generates enum constant tables, and name lookup plus error raising helpers
for enums used as result codes.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen

if TYPE_CHECKING:
    from ...ir import EnumInfo
    from ...model import BindingModel
    from ...patterns import ResultPattern
    from .types import TypeConverter


class EnumGenerator:
    """Generates enum constant bindings"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter'):
        self.model = model
        self.naming = model.naming
        self.type_conv = type_conv
        self.registered: list[str] = []

    def generate(self, enum: 'EnumInfo', gen: CodeGen):
        """Generate enum constants registration"""
        c_name = self.type_conv.c_name(enum.id)

        gen.line(f'static void register_{c_name}(lua_State *L) {{')
        gen.indent()
        gen.line('lua_newtable(L);')
        for item in enum.items:
            gen.line(f'lua_pushinteger(L, {item.value});')
            gen.line(f'lua_setfield(L, -2, "{self.naming.variant(enum.id, item.name)}");')
        gen.line(f'lua_setfield(L, -2, "{self.naming.type(enum.id)}");')
        gen.dedent()
        gen.line('}')
        gen.line()
        self.registered.append(f'register_{c_name}')

    def generate_error(self, enum: 'EnumInfo', pattern: 'ResultPattern', gen: CodeGen):
        """Variant names and the luaL_error raised for a failed call"""
        c_name = self.type_conv.c_name(enum.id)

        gen.line(f'static const char* {c_name}_name(lua_Integer code) {{')
        gen.indent()
        gen.line('switch (code) {')
        for item in enum.items:
            gen.line(f'case {item.value}: return "{item.name}";')
        gen.line('default: return "unknown error";')
        gen.line('}')
        gen.dedent()
        gen.line('}')
        gen.line()

        gen.line(f'static int fail_{c_name}(lua_State *L, const char* context, lua_Integer code) {{')
        gen.indent()
        if pattern.panic is not None:
            gen.line(f'if (code == {pattern.panic}) {{')
            gen.line('    return luaL_error(L, "%s: native code panicked (code %I)", context, code);')
            gen.line('}')
        gen.line(f'return luaL_error(L, "%s failed with %s (code %I)", context, {c_name}_name(code), code);')
        gen.dedent()
        gen.line('}')
        gen.line()

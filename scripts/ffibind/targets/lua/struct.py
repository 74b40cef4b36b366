"""
Struct binding generation module

Generates userdata helpers, constructors, field accessors and metamethods
for struct types, including the slice and option shapes.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...errors import UnsupportedConstruct
from ...ir import StructInfo, FieldInfo, ArrayInfo, FnPointerInfo, describe
from ...patterns import AsciiPointerPattern, SlicePattern, OptionPattern, field_site

if TYPE_CHECKING:
    from ...model import BindingModel
    from .types import TypeConverter


class StructGenerator:
    """Generates struct bindings"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter'):
        self.model = model
        self.naming = model.naming
        self.type_conv = type_conv
        # (metatable, [(event, C function)]) in emission order
        self.metatables: list[tuple[str, list[tuple[str, str]]]] = []
        # (Lua name, C function) entries of the module table
        self.constructors: list[tuple[str, str]] = []

    def _c_field(self, struct: StructInfo, field: FieldInfo) -> str:
        return self.type_conv.ctypes.naming.field(struct.id, field.name)

    def _lua_field(self, struct: StructInfo, field: FieldInfo) -> str:
        return self.naming.field(struct.id, field.name)

    def _is_ascii(self, struct: StructInfo, index: int) -> bool:
        return isinstance(self.model.site(field_site(struct.id, index)), AsciiPointerPattern)

    def _ascii_slots(self, struct: StructInfo) -> dict[str, int]:
        """User value slot per string field, keeping the Lua string alive"""
        slots = {}
        for i, f in enumerate(struct.fields):
            if self._is_ascii(struct, i):
                slots[f.name] = len(slots) + 1
        return slots

    # --------------------------------------------------------------------------
    # Shared helpers
    # --------------------------------------------------------------------------

    def generate_prototypes(self, struct: StructInfo, gen: CodeGen):
        """Forward declarations, so helpers can reference each other in any order"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        gen.line(f'static void push_{c_name}(lua_State *L, const {c_type}* value);')
        gen.line(f'static {c_type}* check_{c_name}(lua_State *L, int idx);')

    def _gen_push(self, struct: StructInfo, gen: CodeGen):
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        slots = len(self._ascii_slots(struct))
        with gen.block(f'static void push_{c_name}(lua_State *L, const {c_type}* value) {{'):
            gen.line(f'{c_type}* ud = ({c_type}*)lua_newuserdatauv(L, sizeof({c_type}), {slots});')
            gen.line('*ud = *value;')
            gen.line(f'luaL_setmetatable(L, "{self.type_conv.metatable(struct.id)}");')
        gen.line()

    def _gen_check(self, struct: StructInfo, gen: CodeGen):
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        with gen.block(f'static {c_type}* check_{c_name}(lua_State *L, int idx) {{'):
            gen.line(f'return ({c_type}*)luaL_checkudata(L, idx, "{self.type_conv.metatable(struct.id)}");')
        gen.line()

    # --------------------------------------------------------------------------
    # Plain structs
    # --------------------------------------------------------------------------

    def generate(self, struct: StructInfo, gen: CodeGen):
        """Generate all bindings for a struct"""
        c_name = self.type_conv.c_name(struct.id)
        fields = [(i, f) for i, f in enumerate(struct.fields) if self._is_exposed(f)]

        self._gen_push(struct, gen)
        self._gen_check(struct, gen)

        setters = []
        for i, field in fields:
            self._gen_getter(struct, i, field, gen)
            if self._gen_setter(struct, i, field, gen):
                setters.append(field)

        self._gen_constructor(struct, setters, gen)
        self._gen_index(struct, [f for _, f in fields], gen)
        self._gen_newindex(struct, setters, gen)

        self.metatables.append((self.type_conv.metatable(struct.id), [
            ('__index', f'l_{c_name}__index'),
            ('__newindex', f'l_{c_name}__newindex'),
        ]))
        self.constructors.append((self.naming.type(struct.id), f'l_{c_name}_new'))

    def _is_exposed(self, field: FieldInfo) -> bool:
        info = self.model.graph.get(field.type)
        if isinstance(info, FnPointerInfo):
            return False
        # 2D arrays are not exposed
        if isinstance(info, ArrayInfo):
            return not isinstance(self.model.graph.get(info.element), ArrayInfo)
        return True

    def _gen_constructor(self, struct: StructInfo, setters: list[FieldInfo], gen: CodeGen):
        """Generate constructor function"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        slots = len(self._ascii_slots(struct))

        gen.line(f'static int l_{c_name}_new(lua_State *L) {{')
        gen.indent()
        gen.line('lua_settop(L, 1);')
        gen.line(f'{c_type}* ud = ({c_type}*)lua_newuserdatauv(L, sizeof({c_type}), {slots});')
        gen.line(f'memset(ud, 0, sizeof({c_type}));')
        gen.line(f'luaL_setmetatable(L, "{self.type_conv.metatable(struct.id)}");')
        gen.line()
        gen.line('/* If first arg is a table, use it to initialize fields */')
        with gen.block('if (lua_istable(L, 1)) {'):
            for field in setters:
                gen.line(f'lua_getfield(L, 1, "{self._lua_field(struct, field)}");')
                with gen.block('if (!lua_isnil(L, -1)) {'):
                    gen.line(f'lua_pushcfunction(L, l_{c_name}_set_{self._c_field(struct, field)});')
                    gen.line('lua_pushvalue(L, 2);')
                    gen.line('lua_pushnil(L);')
                    gen.line('lua_pushvalue(L, -4);')
                    gen.line('lua_call(L, 3, 0);')
                gen.line('lua_pop(L, 1);')
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_getter(self, struct: StructInfo, index: int, field: FieldInfo, gen: CodeGen):
        """Generate field getter"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        name = self._c_field(struct, field)
        info = self.model.graph.get(field.type)

        gen.line(f'static int l_{c_name}_get_{name}(lua_State *L) {{')
        gen.indent()
        gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{self.type_conv.metatable(struct.id)}");')
        if isinstance(info, ArrayInfo):
            gen.line('lua_newtable(L);')
            with gen.block(f'for (int i = 0; i < {info.len}; i++) {{'):
                gen.line(self.type_conv.c_to_lua(info.element, f'self->{name}[i]'))
                gen.line('lua_rawseti(L, -2, i + 1);')
        else:
            gen.line(self.type_conv.c_to_lua(field.type, f'self->{name}', self._is_ascii(struct, index)))
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_setter(self, struct: StructInfo, index: int, field: FieldInfo, gen: CodeGen) -> bool:
        """Generate field setter; False when the field type cannot be set from Lua"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        name = self._c_field(struct, field)
        info = self.model.graph.get(field.type)
        ascii = self._is_ascii(struct, index)

        if isinstance(info, ArrayInfo):
            convert = self.type_conv.lua_to_c(info.element, -1)
        else:
            convert = self.type_conv.lua_to_c(field.type, 3, ascii)
        if convert is None:
            return False

        gen.line(f'static int l_{c_name}_set_{name}(lua_State *L) {{')
        gen.indent()
        gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{self.type_conv.metatable(struct.id)}");')
        if isinstance(info, ArrayInfo):
            gen.line('luaL_checktype(L, 3, LUA_TTABLE);')
            with gen.block(f'for (int i = 0; i < {info.len}; i++) {{'):
                gen.line('lua_rawgeti(L, 3, i + 1);')
                with gen.block('if (!lua_isnil(L, -1)) {'):
                    gen.line(f'self->{name}[i] = {convert};')
                gen.line('lua_pop(L, 1);')
        else:
            gen.line(f'self->{name} = {convert};')
            if ascii:
                gen.line('/* Keep reference to string to prevent GC */')
                gen.line('lua_pushvalue(L, 3);')
                gen.line(f'lua_setiuservalue(L, 1, {self._ascii_slots(struct)[field.name]});')
        gen.line('return 0;')
        gen.dedent()
        gen.line('}')
        gen.line()
        return True

    def _gen_index(self, struct: StructInfo, fields: list[FieldInfo], gen: CodeGen):
        """Generate __index metamethod"""
        c_name = self.type_conv.c_name(struct.id)
        gen.line(f'static int l_{c_name}__index(lua_State *L) {{')
        gen.indent()
        gen.line('const char* key = luaL_checkstring(L, 2);')
        for field in fields:
            gen.line(f'if (strcmp(key, "{self._lua_field(struct, field)}") == 0) '
                     f'return l_{c_name}_get_{self._c_field(struct, field)}(L);')
        gen.line('return 0;')
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_newindex(self, struct: StructInfo, fields: list[FieldInfo], gen: CodeGen):
        """Generate __newindex metamethod"""
        c_name = self.type_conv.c_name(struct.id)
        gen.line(f'static int l_{c_name}__newindex(lua_State *L) {{')
        gen.indent()
        gen.line('const char* key = luaL_checkstring(L, 2);')
        for field in fields:
            gen.line(f'if (strcmp(key, "{self._lua_field(struct, field)}") == 0) '
                     f'return l_{c_name}_set_{self._c_field(struct, field)}(L);')
        gen.line('return luaL_error(L, "unknown field: %s", key);')
        gen.dedent()
        gen.line('}')
        gen.line()

    # --------------------------------------------------------------------------
    # Slices
    # --------------------------------------------------------------------------

    def generate_slice(self, struct: StructInfo, pattern: SlicePattern, gen: CodeGen):
        """Borrowed slices: 1-based checked indexing, # length, copied() table"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        mt = self.type_conv.metatable(struct.id)
        element = self.type_conv.c_type(pattern.element)
        data = self.type_conv.ctypes.naming.field(struct.id, pattern.data_field)
        length = self.type_conv.ctypes.naming.field(struct.id, pattern.len_field)
        convert = self.type_conv.lua_to_c(pattern.element, -1)
        if convert is None:
            raise UnsupportedConstruct('lua', 'slice element', describe(struct))

        self._gen_push(struct, gen)

        gen.line('/* Slices are built from a table (copied into a buffer kept as user value) or passed through */')
        gen.line(f'static {c_type}* check_{c_name}(lua_State *L, int idx) {{')
        gen.indent()
        with gen.block('if (lua_istable(L, idx)) {'):
            gen.line('idx = lua_absindex(L, idx);')
            gen.line('lua_Unsigned n = lua_rawlen(L, idx);')
            gen.line(f'{c_type}* ud = ({c_type}*)lua_newuserdatauv(L, sizeof({c_type}), 1);')
            gen.line(f'{element}* buf = ({element}*)lua_newuserdatauv(L, n * sizeof({element}), 0);')
            with gen.block('for (lua_Unsigned i = 0; i < n; i++) {'):
                gen.line('lua_rawgeti(L, idx, (lua_Integer)(i + 1));')
                gen.line(f'buf[i] = {convert};')
                gen.line('lua_pop(L, 1);')
            gen.line('lua_setiuservalue(L, -2, 1);')
            gen.line(f'ud->{data} = buf;')
            gen.line(f'ud->{length} = (uint64_t)n;')
            gen.line(f'luaL_setmetatable(L, "{mt}");')
            gen.line('return ud;')
        gen.line(f'return ({c_type}*)luaL_checkudata(L, idx, "{mt}");')
        gen.dedent()
        gen.line('}')
        gen.line()

        with gen.block(f'static int l_{c_name}_new(lua_State *L) {{'):
            gen.line('luaL_checktype(L, 1, LUA_TTABLE);')
            gen.line(f'check_{c_name}(L, 1);')
            gen.line('return 1;')
        gen.line()

        with gen.block(f'static lua_Integer {c_name}_index(lua_State *L, const {c_type}* self, int idx) {{'):
            gen.line('lua_Integer i = luaL_checkinteger(L, idx);')
            gen.line(f'if (i < 1 || (lua_Unsigned)i > self->{length}) {{')
            gen.line(f'    luaL_error(L, "index %I out of range for slice of length %I", i, (lua_Integer)self->{length});')
            gen.line('}')
            gen.line('return i - 1;')
        gen.line()

        with gen.block(f'static int l_{c_name}_copied(lua_State *L) {{'):
            gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{mt}");')
            gen.line(f'lua_createtable(L, (int)self->{length}, 0);')
            with gen.block(f'for (uint64_t i = 0; i < self->{length}; i++) {{'):
                gen.line(self.type_conv.c_to_lua(pattern.element, f'self->{data}[i]'))
                gen.line('lua_rawseti(L, -2, (lua_Integer)(i + 1));')
            gen.line('return 1;')
        gen.line()

        with gen.block(f'static int l_{c_name}__index(lua_State *L) {{'):
            gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{mt}");')
            with gen.block('if (lua_type(L, 2) == LUA_TSTRING) {'):
                gen.line('const char* key = lua_tostring(L, 2);')
                with gen.block('if (strcmp(key, "copied") == 0) {'):
                    gen.line(f'lua_pushcfunction(L, l_{c_name}_copied);')
                    gen.line('return 1;')
                gen.line('return 0;')
            gen.line(f'lua_Integer i = {c_name}_index(L, self, 2);')
            gen.line(self.type_conv.c_to_lua(pattern.element, f'self->{data}[i]'))
            gen.line('return 1;')
        gen.line()

        with gen.block(f'static int l_{c_name}__len(lua_State *L) {{'):
            gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{mt}");')
            gen.line(f'lua_pushinteger(L, (lua_Integer)self->{length});')
            gen.line('return 1;')
        gen.line()

        events = [('__index', f'l_{c_name}__index'), ('__len', f'l_{c_name}__len')]
        if pattern.mutable:
            assign = self.type_conv.lua_to_c(pattern.element, 3)
            with gen.block(f'static int l_{c_name}__newindex(lua_State *L) {{'):
                gen.line(f'{c_type}* self = ({c_type}*)luaL_checkudata(L, 1, "{mt}");')
                gen.line(f'lua_Integer i = {c_name}_index(L, self, 2);')
                gen.line(f'self->{data}[i] = {assign};')
                gen.line('return 0;')
            gen.line()
            events.append(('__newindex', f'l_{c_name}__newindex'))
        else:
            with gen.block(f'static int l_{c_name}__newindex(lua_State *L) {{'):
                gen.line(f'return luaL_error(L, "{self.naming.type(struct.id)} is read-only");')
            gen.line()
            events.append(('__newindex', f'l_{c_name}__newindex'))

        self.metatables.append((mt, events))
        self.constructors.append((self.naming.type(struct.id), f'l_{c_name}_new'))

    # --------------------------------------------------------------------------
    # Options
    # --------------------------------------------------------------------------

    def generate_option(self, struct: StructInfo, pattern: OptionPattern, gen: CodeGen):
        """Options: opt:is_some() and opt.value (nil when absent)"""
        c_name = self.type_conv.c_name(struct.id)
        c_type = self.type_conv.c_type(struct.id)
        mt = self.type_conv.metatable(struct.id)
        name = self.naming.type(struct.id)
        value = self.type_conv.ctypes.naming.field(struct.id, pattern.value_field)
        flag = self.type_conv.ctypes.naming.field(struct.id, pattern.flag_field)

        self._gen_push(struct, gen)
        self._gen_check(struct, gen)

        with gen.block(f'static int {c_name}_is_some(lua_State *L, const {c_type}* self) {{'):
            gen.line(f'if (self->{flag} > 1) {{')
            gen.line(f'    luaL_error(L, "invalid presence flag %d in {name}", (int)self->{flag});')
            gen.line('}')
            gen.line(f'return self->{flag} == 1;')
        gen.line()

        convert = self.type_conv.lua_to_c(pattern.inner, 1)
        with gen.block(f'static int l_{c_name}_new(lua_State *L) {{'):
            gen.line(f'{c_type} value;')
            gen.line('memset(&value, 0, sizeof(value));')
            if convert is not None:
                with gen.block('if (!lua_isnoneornil(L, 1)) {'):
                    gen.line(f'value.{value} = {convert};')
                    gen.line(f'value.{flag} = 1;')
            gen.line(f'push_{c_name}(L, &value);')
            gen.line('return 1;')
        gen.line()

        with gen.block(f'static int l_{c_name}_is_some_method(lua_State *L) {{'):
            gen.line(f'lua_pushboolean(L, {c_name}_is_some(L, check_{c_name}(L, 1)));')
            gen.line('return 1;')
        gen.line()

        with gen.block(f'static int l_{c_name}__index(lua_State *L) {{'):
            gen.line(f'{c_type}* self = check_{c_name}(L, 1);')
            gen.line('const char* key = luaL_checkstring(L, 2);')
            with gen.block('if (strcmp(key, "is_some") == 0) {'):
                gen.line(f'lua_pushcfunction(L, l_{c_name}_is_some_method);')
                gen.line('return 1;')
            with gen.block('if (strcmp(key, "value") == 0) {'):
                gen.line(f'if (!{c_name}_is_some(L, self)) return 0;')
                gen.line(self.type_conv.c_to_lua(pattern.inner, f'self->{value}'))
                gen.line('return 1;')
            gen.line('return 0;')
        gen.line()

        self.metatables.append((mt, [('__index', f'l_{c_name}__index')]))
        self.constructors.append((name, f'l_{c_name}_new'))

"""
Callback binding generation module

Generates callback trampolines. Plain function pointers dispatch through a
registry reference held in a per-type global for the duration of the call;
callbacks paired with a context pointer get a heap-allocated context
carrying the lua_State and the registry reference instead.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...ir import FnPointerInfo
from ...patterns import CallbackPattern, param_site

if TYPE_CHECKING:
    from ...model import BindingModel
    from .types import TypeConverter

RUNTIME = '''\
typedef struct ffibind_callback {
    lua_State* L;
    int ref;
} ffibind_callback;

static ffibind_callback* ffibind_callback_new(lua_State *L, int idx) {
    ffibind_callback* cb = (ffibind_callback*)malloc(sizeof(ffibind_callback));
    if (cb == NULL) {
        luaL_error(L, "out of memory");
        return NULL;
    }
    lua_pushvalue(L, idx);
    cb->L = L;
    cb->ref = luaL_ref(L, LUA_REGISTRYINDEX);
    return cb;
}

static void ffibind_callback_free(ffibind_callback* cb) {
    luaL_unref(cb->L, LUA_REGISTRYINDEX, cb->ref);
    free(cb);
}
'''


class CallbackGenerator:
    """Generates callback trampoline functions"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter'):
        self.model = model
        self.type_conv = type_conv
        self._plain: set[str] = set()
        self._context: set[str] = set()
        for func in model.graph.functions:
            for i, _ in enumerate(func.params):
                pattern = model.site(param_site(func.name, i))
                if isinstance(pattern, CallbackPattern):
                    (self._context if pattern.context else self._plain).add(pattern.type_id)

    @property
    def has_context(self) -> bool:
        return bool(self._context)

    def generate(self, info: FnPointerInfo, gen: CodeGen):
        """Trampolines for every way the function pointer type is used"""
        if info.id in self._plain:
            self._gen_direct_ref_trampoline(info, gen)
        if info.id in self._context:
            slot = len(info.params) - 1
            self._gen_context_trampoline(info, slot, gen)

    def _signature(self, info: FnPointerInfo, name: str) -> str:
        args = ', '.join(f'{self.type_conv.c_type(p)} arg{i}' for i, p in enumerate(info.params))
        return f'static {self.type_conv.c_type(info.ret)} {name}({args or "void"}) {{'

    def _is_void(self, info: FnPointerInfo) -> bool:
        return self.model.is_primitive(info.ret, 'void')

    def _gen_direct_ref_trampoline(self, info: FnPointerInfo, gen: CodeGen):
        alias = self.type_conv.c_name(info.id)

        # Global reference variables
        gen.line(f'static lua_State* g_{alias}_L = NULL;')
        gen.line(f'static int g_{alias}_ref = LUA_NOREF;')
        gen.line()

        gen.line(self._signature(info, f'trampoline_{alias}'))
        gen.indent()
        # Early return with default value
        if self._is_void(info):
            gen.line(f'if (g_{alias}_ref == LUA_NOREF) return;')
        else:
            gen.line(f'if (g_{alias}_ref == LUA_NOREF) return {self.type_conv.default_value(info.ret)};')
        gen.line(f'lua_State* L = g_{alias}_L;')
        gen.line(f'lua_rawgeti(L, LUA_REGISTRYINDEX, g_{alias}_ref);')
        for i, p in enumerate(info.params):
            gen.line(self.type_conv.c_to_lua(p, f'arg{i}'))
        self._gen_pcall_and_return(info, len(info.params), alias, gen)
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_context_trampoline(self, info: FnPointerInfo, slot: int, gen: CodeGen):
        alias = self.type_conv.c_name(info.id)
        gen.line(self._signature(info, f'trampoline_ctx_{alias}'))
        gen.indent()
        gen.line(f'ffibind_callback* cb = (ffibind_callback*)arg{slot};')
        gen.line('lua_State* L = cb->L;')
        gen.line('lua_rawgeti(L, LUA_REGISTRYINDEX, cb->ref);')
        for i, p in enumerate(info.params):
            if i != slot:
                gen.line(self.type_conv.c_to_lua(p, f'arg{i}'))
        self._gen_pcall_and_return(info, len(info.params) - 1, alias, gen)
        gen.dedent()
        gen.line('}')
        gen.line()

    def _gen_pcall_and_return(self, info: FnPointerInfo, num_args: int, alias: str, gen: CodeGen):
        """Generate lua_pcall and return value handling"""
        if self._is_void(info):
            with gen.block(f'if (lua_pcall(L, {num_args}, 0, 0) != LUA_OK) {{'):
                gen.line(f'lua_warning(L, "callback {alias} failed: ", 1);')
                gen.line('lua_warning(L, lua_tostring(L, -1), 0);')
                gen.line('lua_pop(L, 1);')
            return

        default = self.type_conv.default_value(info.ret)
        ret_type = self.type_conv.c_type(info.ret)
        with gen.block(f'if (lua_pcall(L, {num_args}, 1, 0) != LUA_OK) {{'):
            gen.line(f'lua_warning(L, "callback {alias} failed: ", 1);')
            gen.line('lua_warning(L, lua_tostring(L, -1), 0);')
            gen.line('lua_pop(L, 1);')
            gen.line(f'return {default};')

        # Convert return value
        resolved = self.type_conv.resolve(info.ret)
        convert = self.type_conv.lua_to_c_unchecked(info.ret, -1)
        if convert is not None:
            gen.line(f'{ret_type} ret = {convert};')
        elif self.type_conv.is_userdata(resolved):
            mt = self.type_conv.metatable(resolved.id)
            gen.line(f'{ret_type}* ud = ({ret_type}*)luaL_testudata(L, -1, "{mt}");')
            gen.line(f'{ret_type} ret = ud ? *ud : {default};')
        else:
            gen.line(f'{ret_type} ret = {default};')
        gen.line('lua_pop(L, 1);')
        gen.line('return ret;')

    # --------------------------------------------------------------------------
    # Call sites
    # --------------------------------------------------------------------------

    def bind(self, pattern: CallbackPattern, idx: int, var: str,
             gen: CodeGen) -> tuple[list[str], list[str]]:
        """Register the Lua function at idx; returns the C arguments and cleanup lines"""
        alias = self.type_conv.c_name(pattern.type_id)
        gen.line(f'luaL_checktype(L, {idx}, LUA_TFUNCTION);')
        if pattern.context:
            gen.line(f'ffibind_callback* {var}_cb = ffibind_callback_new(L, {idx});')
            return [f'trampoline_ctx_{alias}', f'{var}_cb'], [f'ffibind_callback_free({var}_cb);']

        gen.line(f'lua_pushvalue(L, {idx});')
        gen.line(f'int {var}_ref = luaL_ref(L, LUA_REGISTRYINDEX);')
        gen.line(f'int {var}_prev = g_{alias}_ref;')
        gen.line(f'lua_State* {var}_prev_L = g_{alias}_L;')
        gen.line(f'g_{alias}_ref = {var}_ref;')
        gen.line(f'g_{alias}_L = L;')
        return [f'trampoline_{alias}'], [
            f'g_{alias}_ref = {var}_prev;',
            f'g_{alias}_L = {var}_prev_L;',
            f'luaL_unref(L, LUA_REGISTRYINDEX, {var}_ref);',
        ]

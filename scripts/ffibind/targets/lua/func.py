"""
Function binding generation module

Generates lua_CFunction wrappers for native functions. Functions returning
a result raise through luaL_error on failure; their Raw variant returns
the code (or the whole result struct) untouched.
"""

from typing import TYPE_CHECKING, Optional

from ...codegen import CodeGen
from ...errors import UnsupportedConstruct
from ...ir import FuncInfo, describe
from ...patterns import (
    AsciiPointerPattern, CallbackPattern, OwnedStringPattern, param_site, return_site,
)

if TYPE_CHECKING:
    from ...model import BindingModel
    from .callback import CallbackGenerator
    from .types import TypeConverter


class FuncGenerator:
    """Generates function wrapper bindings"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter',
                 callbacks: 'CallbackGenerator'):
        self.model = model
        self.naming = model.naming
        self.type_conv = type_conv
        self.callbacks = callbacks
        # (Lua name, C function) entries of the module table
        self.registered: list[tuple[str, str]] = []

    def c_function(self, func: FuncInfo) -> str:
        return self.type_conv.ctypes.naming.function(func.name)

    def wrapper_name(self, func: FuncInfo, raw: bool = False) -> str:
        return f'l_{self.c_function(func)}' + ('_raw' if raw else '')

    def _error_helper(self, result) -> str:
        return f'fail_{self.type_conv.c_name(result.error_enum)}'

    # --------------------------------------------------------------------------
    # Module functions
    # --------------------------------------------------------------------------

    def generate(self, func: FuncInfo, gen: CodeGen):
        """Generate wrapper(s) for a function and register them"""
        self.generate_wrapper(func, gen)
        self.registered.append((self.naming.function(func.name), self.wrapper_name(func)))
        if self.model.is_checked(func):
            self.generate_wrapper(func, gen, raw=True)
            self.registered.append((self.naming.function(func.name) + 'Raw', self.wrapper_name(func, True)))

    def generate_wrapper(self, func: FuncInfo, gen: CodeGen, raw: bool = False,
                         fixed: Optional[dict[int, str]] = None, start: int = 1):
        gen.line(f'static int {self.wrapper_name(func, raw)}(lua_State *L) {{')
        gen.indent()
        args, cleanups = self.write_arguments(func, gen, fixed or {}, start)
        self.write_call(func, gen, args, cleanups, raw)
        gen.dedent()
        gen.line('}')
        gen.line()

    def generate_destroy(self, func: FuncInfo, pattern: OwnedStringPattern, gen: CodeGen):
        """Owned string destructor guarded against double frees"""
        c_name = self.type_conv.c_name(pattern.type_id)
        c_type = self.type_conv.c_type(pattern.type_id)
        ptr = self.type_conv.ctypes.naming.field(pattern.type_id, pattern.ptr_field)
        arg = '&value' if pattern.by_pointer else 'value'

        gen.line(f'static int {self.wrapper_name(func)}(lua_State *L) {{')
        gen.indent()
        gen.line(f'{c_type}* s = check_{c_name}(L, 1);')
        gen.line(f'if (s->{ptr} == NULL) return luaL_error(L, "owned string freed twice");')
        gen.line(f'{c_type} value = *s;')
        gen.line(f'memset(s, 0, sizeof({c_type}));')
        self._write_destroy(func, arg, gen)
        gen.line('return 0;')
        gen.dedent()
        gen.line('}')
        gen.line()
        self.registered.append((self.naming.function(func.name), self.wrapper_name(func)))

    def _write_destroy(self, func: FuncInfo, arg: str, gen: CodeGen):
        result = self.model.result_of(func)
        call = f'{self.c_function(func)}({arg})'
        if result is not None and result.is_enum_form:
            gen.line(f'{self.type_conv.c_type(func.ret)} destroyed = {call};')
            gen.line(f'if (destroyed != {result.success}) '
                     f'return {self._error_helper(result)}(L, "{func.name}", (lua_Integer)destroyed);')
        else:
            gen.line(f'{call};')

    # --------------------------------------------------------------------------
    # Bodies
    # --------------------------------------------------------------------------

    def write_arguments(self, func: FuncInfo, gen: CodeGen, fixed: dict[int, str],
                        start: int = 1) -> tuple[list[str], list[str]]:
        """Get parameters from the Lua stack; returns C arguments and cleanup lines"""
        args: dict[int, str] = dict(fixed)
        callbacks = []
        idx = start
        for i, param in enumerate(func.params):
            if i in args or self.model.classification.is_context_param(func.name, i):
                continue
            var = f'x{i}'
            site = self.model.site(param_site(func.name, i))
            if isinstance(site, CallbackPattern):
                callbacks.append((i, site, idx, var))
            elif isinstance(site, AsciiPointerPattern):
                gen.line(f'const char* {var} = {self.type_conv.lua_to_c(param.type, idx, True)};')
            else:
                convert = self.type_conv.lua_to_c(param.type, idx)
                if convert is None:
                    raise UnsupportedConstruct('lua', f'parameter {param.name or var}', describe(func))
                gen.line(f'{self.type_conv.ctypes.c_decl(param.type, var)} = {convert};')
            args[i] = var
            idx += 1

        # Registered last, so a failed conversion cannot leak a reference.
        cleanups = []
        for i, pattern, idx, var in callbacks:
            c_args, lines = self.callbacks.bind(pattern, idx, var, gen)
            args[i] = c_args[0]
            if pattern.context:
                ctx_type = self.type_conv.c_type(func.params[i + 1].type)
                args[i + 1] = f'({ctx_type}){c_args[1]}'
            cleanups.extend(lines)
        return [args[i] for i in range(len(func.params))], cleanups

    def write_call(self, func: FuncInfo, gen: CodeGen, args: list[str], cleanups: list[str],
                   raw: bool = False):
        """Call the C function and push its result"""
        call = f'{self.c_function(func)}({", ".join(args)})'
        if self.model.is_primitive(func.ret, 'void'):
            gen.line(f'{call};')
            gen.lines(*cleanups)
            gen.line('return 0;')
            return

        ascii = isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern)
        ret_type = 'const char*' if ascii else self.type_conv.c_type(func.ret)
        gen.line(f'{ret_type} rval = {call};')
        gen.lines(*cleanups)

        result = self.model.result_of(func)
        ret_pattern = self.model.pattern(func.ret)
        if result is not None and not raw:
            fail = self._error_helper(result)
            if result.is_enum_form:
                gen.line(f'if (rval != {result.success}) return {fail}(L, "{func.name}", (lua_Integer)rval);')
                gen.line('return 0;')
                return
            error = self.type_conv.ctypes.naming.field(result.type_id, result.error_field)
            value = self.type_conv.ctypes.naming.field(result.type_id, result.value_field)
            gen.line(f'if (rval.{error} != {result.success}) '
                     f'return {fail}(L, "{func.name}", (lua_Integer)rval.{error});')
            gen.line(self.type_conv.c_to_lua(result.ok, f'rval.{value}'))
            gen.line('return 1;')
        elif isinstance(ret_pattern, OwnedStringPattern):
            ptr = self.type_conv.ctypes.naming.field(ret_pattern.type_id, ret_pattern.ptr_field)
            length = self.type_conv.ctypes.naming.field(ret_pattern.type_id, ret_pattern.len_field)
            gen.line(f'lua_pushlstring(L, (const char*)rval.{ptr}, (size_t)rval.{length});')
            self._write_destroy(ret_pattern.destroy, '&rval' if ret_pattern.by_pointer else 'rval', gen)
            gen.line('return 1;')
        else:
            gen.line(self.type_conv.c_to_lua(func.ret, 'rval', ascii))
            gen.line('return 1;')

    # --------------------------------------------------------------------------
    # LuaCATS
    # --------------------------------------------------------------------------

    def luacats_params(self, func: FuncInfo, skip: frozenset = frozenset()) -> list[tuple[str, str]]:
        """(name, type) of the Lua-visible parameters"""
        params = []
        for i, param in enumerate(func.params):
            if i in skip or self.model.classification.is_context_param(func.name, i):
                continue
            site = self.model.site(param_site(func.name, i))
            if isinstance(site, CallbackPattern):
                slot = site.slot if site.context else None
                lua_type = self.type_conv.luacats_function(site.signature, slot)
            else:
                lua_type = self.type_conv.luacats_type(param.type, isinstance(site, AsciiPointerPattern))
            params.append((self.naming.param(func.name, i), lua_type))
        return params

    def luacats_return(self, func: FuncInfo, raw: bool = False) -> Optional[str]:
        result = self.model.result_of(func)
        if result is not None and not raw:
            return None if result.is_enum_form else self.type_conv.luacats_type(result.ok)
        if isinstance(self.model.pattern(func.ret), OwnedStringPattern):
            return 'string'
        ascii = isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern)
        lua_type = self.type_conv.luacats_type(func.ret, ascii)
        return None if lua_type == 'nil' else lua_type

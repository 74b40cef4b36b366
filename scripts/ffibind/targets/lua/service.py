"""
Service binding generation module

A service handle lives in a userdata box. The destructor runs at most once,
from close(), __close or __gc, and clears the box; using a closed handle
raises a Lua error.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...ir import FuncInfo, OpaqueInfo, PointerInfo
from ...patterns import ServicePattern

if TYPE_CHECKING:
    from ...model import BindingModel
    from .func import FuncGenerator
    from .types import TypeConverter


class ServiceGenerator:
    """Generates service userdata bindings"""

    def __init__(self, model: 'BindingModel', type_conv: 'TypeConverter', funcs: 'FuncGenerator'):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.type_conv = type_conv
        self.funcs = funcs
        # (metatable, Lua name, close function, [(method, C function)], [(ctor, C function)])
        self.services: list[tuple[str, str, str, list[tuple[str, str]], list[tuple[str, str]]]] = []

    def _out_index(self, func: FuncInfo, service: ServicePattern) -> int:
        for i, p in enumerate(func.params):
            ptr = self.graph.get(p.type)
            if isinstance(ptr, PointerInfo):
                inner = self.graph.get(ptr.target)
                if isinstance(inner, PointerInfo) and inner.target == service.type_id:
                    return i
        raise ValueError(f'{func.name} has no out handle')

    def _handle_type(self, func: FuncInfo, index: int) -> str:
        """C type of the handle an out parameter points to"""
        ptr = self.graph.get(func.params[index].type)
        return self.type_conv.c_type(ptr.target)

    def _check_code(self, func: FuncInfo, var: str, gen: CodeGen):
        result = self.model.result_of(func)
        fail = f'fail_{self.type_conv.c_name(result.error_enum)}'
        gen.line(f'if ({var} != {result.success}) return {fail}(L, "{func.name}", (lua_Integer){var});')

    def generate(self, info: OpaqueInfo, service: ServicePattern, gen: CodeGen):
        c_name = self.type_conv.c_name(info.id)
        mt = self.type_conv.metatable(info.id)

        with gen.block(f'static {c_name}* check_{c_name}_handle(lua_State *L, int idx) {{'):
            gen.line(f'{c_name}** box = ({c_name}**)luaL_checkudata(L, idx, "{mt}");')
            gen.line(f'if (*box == NULL) luaL_error(L, "{self.naming.type(info.id)} used after close()");')
            gen.line('return *box;')
        gen.line()

        self._gen_close(info, service, gen)

        ctors = []
        for ctor in service.ctors:
            self._gen_ctor(info, ctor, service, gen)
            ctors.append((self.naming.method(ctor.name), self.funcs.wrapper_name(ctor)))

        methods = [('close', f'l_{c_name}_close')]
        for method in service.methods:
            fixed = {0: f'check_{c_name}_handle(L, 1)'}
            name = self.naming.method(method.name)
            self.funcs.generate_wrapper(method, gen, fixed=fixed, start=2)
            methods.append((name, self.funcs.wrapper_name(method)))
            if self.model.is_checked(method):
                self.funcs.generate_wrapper(method, gen, raw=True, fixed=fixed, start=2)
                methods.append((f'{name}_raw', self.funcs.wrapper_name(method, True)))

        self.services.append((mt, self.naming.type(info.id), f'l_{c_name}_close', methods, ctors))

    def _gen_close(self, info: OpaqueInfo, service: ServicePattern, gen: CodeGen):
        c_name = self.type_conv.c_name(info.id)
        dtor = service.destructor
        handle_type = self._handle_type(dtor, 0)
        gen.line('/* close(), __close and __gc; only the first call reaches the destructor */')
        with gen.block(f'static int l_{c_name}_close(lua_State *L) {{'):
            gen.line(f'{c_name}** box = ({c_name}**)luaL_checkudata(L, 1, "{self.type_conv.metatable(info.id)}");')
            gen.line('if (*box == NULL) return 0;')
            gen.line(f'{handle_type} handle = ({handle_type})*box;')
            gen.line('*box = NULL;')
            gen.line(f'{self.type_conv.c_type(dtor.ret)} code = {self.funcs.c_function(dtor)}(&handle);')
            self._check_code(dtor, 'code', gen)
            gen.line('return 0;')
        gen.line()

    def _gen_ctor(self, info: OpaqueInfo, func: FuncInfo, service: ServicePattern, gen: CodeGen):
        c_name = self.type_conv.c_name(info.id)
        out = self._out_index(func, service)
        handle_type = self._handle_type(func, out)

        gen.line(f'static int {self.funcs.wrapper_name(func)}(lua_State *L) {{')
        gen.indent()
        gen.line(f'{handle_type} handle = NULL;')
        args, cleanups = self.funcs.write_arguments(func, gen, {out: '&handle'})
        gen.line(f'{self.type_conv.c_type(func.ret)} code = {self.funcs.c_function(func)}({", ".join(args)});')
        gen.lines(*cleanups)
        self._check_code(func, 'code', gen)
        gen.line(f'if (handle == NULL) return luaL_error(L, "{func.name} returned a null handle");')
        gen.line(f'{c_name}** box = ({c_name}**)lua_newuserdatauv(L, sizeof({c_name}*), 0);')
        gen.line(f'*box = ({c_name}*)handle;')
        gen.line(f'luaL_setmetatable(L, "{self.type_conv.metatable(info.id)}");')
        gen.line('return 1;')
        gen.dedent()
        gen.line('}')
        gen.line()

"""
Function binding generation module

Argument conversion, the raw call and return handling shared by Library
methods and service methods.
"""

from typing import TYPE_CHECKING, Optional

from ...codegen import CodeGen
from ...ir import FuncInfo, EnumInfo
from ...patterns import (
    AsciiPointerPattern, CallbackPattern, SlicePattern, OwnedStringPattern, ResultPattern,
    param_site, return_site,
)
from .callback import CallbackGenerator
from .types import CtypesMapper

if TYPE_CHECKING:
    from ...model import BindingModel


class FuncGenerator:
    """Generates Python wrappers around native functions"""

    def __init__(self, model: 'BindingModel', types: CtypesMapper, callbacks: CallbackGenerator):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.types = types
        self.callbacks = callbacks

    def param(self, func: FuncInfo, index: int) -> str:
        return self.naming.param(func.name, index)

    def visible_params(self, func: FuncInfo, fixed: dict[int, str]) -> list[str]:
        """Python-side parameter names; context pointers are filled in by the binding"""
        names = []
        for i, _ in enumerate(func.params):
            if i in fixed or self.model.classification.is_context_param(func.name, i):
                continue
            names.append(self.param(func, i))
        return names

    def async_hidden(self, func: FuncInfo) -> dict[int, str]:
        """Completion callback slots the binding fills in for async calls"""
        async_method = self.model.classification.async_methods.get(func.name)
        if async_method is None:
            return {}
        index = async_method.callback_index
        return {index: '', index + 1: ''}

    def bind_line(self, func: FuncInfo) -> str:
        argtypes = []
        for i, p in enumerate(func.params):
            ascii = isinstance(self.model.site(param_site(func.name, i)), AsciiPointerPattern)
            argtypes.append(self.types.ctype(p.type, ascii))
        ascii_ret = isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern)
        restype = self.types.ctype(func.ret, ascii_ret)
        return f"self._bind('{func.name}', [{', '.join(argtypes)}], {restype})"

    def return_hint(self, func: FuncInfo) -> str:
        if func.name in self.model.classification.async_methods:
            return 'Future'
        result = self.model.result_of(func)
        if result is not None:
            return 'None' if result.is_enum_form else self.types.hint(result.ok)
        if isinstance(self.model.pattern(func.ret), OwnedStringPattern):
            return 'str'
        ascii_ret = isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern)
        return self.types.hint(func.ret, ascii_ret)

    # --------------------------------------------------------------------------
    # Bodies
    # --------------------------------------------------------------------------

    def write_arguments(self, gen: CodeGen, func: FuncInfo, lib: str,
                        fixed: dict[int, str]) -> tuple[list[str], list[str]]:
        """Emit conversions; returns call arguments and cleanup lines"""
        args: dict[int, str] = dict(fixed)
        cleanups = []
        for i, p in enumerate(func.params):
            if i in args:
                continue
            name = self.param(func, i)
            site = self.model.site(param_site(func.name, i))
            pattern = self.model.pattern(p.type)

            if isinstance(site, AsciiPointerPattern):
                gen.line(f'if isinstance({name}, str):')
                gen.line(f"    {name} = {name}.encode('utf-8')")
            elif isinstance(site, CallbackPattern) and site.context:
                trampoline = self.callbacks.trampoline(site)
                gen.line(f'_ctx{i} = {lib}._callbacks.register({name})')
                args[i + 1] = f'ctypes.c_void_p(_ctx{i})'
                name = f'{lib}.{trampoline.attribute}'
                cleanups.append(f'{lib}._callbacks.release(_ctx{i})')
            elif isinstance(site, CallbackPattern):
                alias = self.naming.type(site.type_id)
                gen.line(f'if not isinstance({name}, {alias}):')
                gen.line(f'    {name} = {alias}({name})')
            elif isinstance(pattern, SlicePattern):
                cls = self.naming.type(p.type)
                gen.line(f'if not isinstance({name}, {cls}):')
                gen.line(f'    {name} = {cls}.from_sequence({name})')
            args[i] = name
        return [args[i] for i in range(len(func.params))], cleanups

    def write_call(self, gen: CodeGen, func: FuncInfo, lib: str, fixed: Optional[dict[int, str]] = None):
        """Convert arguments, call through lib.raw and convert the result"""
        args, cleanups = self.write_arguments(gen, func, lib, fixed or {})
        call = f'{lib}.raw.{func.name}({", ".join(args)})'
        if not cleanups:
            self.write_return(gen, func, call, lib)
            return
        gen.line('try:')
        gen.indent()
        self.write_return(gen, func, call, lib)
        gen.dedent()
        gen.line('finally:')
        gen.indent()
        gen.lines(*cleanups)
        gen.dedent()

    def write_return(self, gen: CodeGen, func: FuncInfo, call: str, lib: str):
        result = self.model.result_of(func)
        ret = self.graph.get(func.ret)
        ret_pattern = self.model.pattern(func.ret)

        if isinstance(result, ResultPattern):
            if result.is_enum_form:
                gen.line(f"_check_{self.naming.type(result.error_enum)}({call}, '{func.name}')")
            else:
                gen.line(f'return {call}.unwrap()')
        elif isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern):
            gen.line(f'_rval = {call}')
            gen.line("return _rval.decode('utf-8') if _rval is not None else None")
        elif isinstance(ret_pattern, OwnedStringPattern):
            gen.line(f'_rval = {call}')
            gen.line('try:')
            gen.line('    return _rval.to_str()')
            gen.line('finally:')
            gen.line(f'    _rval.free({lib})')
        elif isinstance(ret, EnumInfo):
            gen.line(f'return _enum_value({self.naming.type(ret.id)}, {call})')
        elif self.model.is_primitive(func.ret, 'void'):
            gen.line(call)
        else:
            gen.line(f'return {call}')

    def write_async_call(self, gen: CodeGen, func: FuncInfo, lib: str, fixed: dict[int, str]):
        """Start the call and hand back a Future completed by the callback"""
        async_method = self.model.classification.async_methods[func.name]
        index = async_method.callback_index
        site = self.model.site(param_site(func.name, index))
        trampoline = self.callbacks.trampoline(site, completes=True)
        fixed = dict(fixed)
        fixed[index] = f'{lib}.{trampoline.attribute}'
        fixed[index + 1] = 'ctypes.c_void_p(_ctx)'

        gen.line('_future = Future()')
        gen.line(f'_ctx = {lib}._callbacks.register(_future)')
        args, _ = self.write_arguments(gen, func, lib, fixed)
        call = f'{lib}.raw.{func.name}({", ".join(args)})'
        result = self.model.result_of(func)
        if result is not None and result.is_enum_form:
            gen.line(f'_code = {call}')
            gen.line(f'if _code != {result.success}:')
            gen.line(f'    {lib}._callbacks.release(_ctx)')
            gen.line(f"    _check_{self.naming.type(result.error_enum)}(_code, '{func.name}')")
        else:
            gen.line(call)
        gen.line('return _future')

    # --------------------------------------------------------------------------
    # Library methods
    # --------------------------------------------------------------------------

    def generate_method(self, func: FuncInfo, gen: CodeGen):
        """One Library method per native function"""
        name = self.naming.function(func.name)
        params = ', '.join(['self'] + self.visible_params(func, self.async_hidden(func)))
        with gen.block(f'def {name}({params}) -> {self.return_hint(func)}:', None):
            if func.doc and self.model.config.docs:
                gen.docstring(func.doc)
            destroys = self._destroyed_string(func)
            if destroys is not None:
                gen.line(f'return {self.param(func, 0)}.free(self)')
            elif func.name in self.model.classification.async_methods:
                self.write_async_call(gen, func, 'self', {})
            else:
                self.write_call(gen, func, 'self')
        gen.line()

    def _destroyed_string(self, func: FuncInfo) -> Optional[OwnedStringPattern]:
        for pattern in self.model.classification.by_type.values():
            if isinstance(pattern, OwnedStringPattern) and pattern.destroy.name == func.name:
                return pattern
        return None

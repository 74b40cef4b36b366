"""
Service class generation module

One owning wrapper class per service. Instances only come out of the
constructor classmethods; the native destructor runs exactly once, from
close(), the context manager or the finalizer, whichever comes first.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...ir import OpaqueInfo, PointerInfo
from ...patterns import ServicePattern
from .func import FuncGenerator

if TYPE_CHECKING:
    from ...model import BindingModel


class ServiceGenerator:
    """Generates service wrapper classes"""

    def __init__(self, model: 'BindingModel', funcs: FuncGenerator):
        self.model = model
        self.graph = model.graph
        self.naming = model.naming
        self.funcs = funcs

    def _out_index(self, func, service: ServicePattern) -> int:
        for i, p in enumerate(func.params):
            ptr = self.graph.get(p.type)
            if isinstance(ptr, PointerInfo):
                inner = self.graph.get(ptr.target)
                if isinstance(inner, PointerInfo) and inner.target == service.type_id:
                    return i
        raise ValueError(f'{func.name} has no out handle')

    def _check(self, func) -> str:
        result = self.model.result_of(func)
        return f'_check_{self.naming.type(result.error_enum)}'

    def generate(self, info: OpaqueInfo, service: ServicePattern, gen: CodeGen):
        name = self.naming.type(info.id)
        gen.line(f'class {name}:')
        gen.indent()
        gen.docstring(info.doc if info.doc and self.model.config.docs else f'Owning handle to a native {info.name}')
        gen.line('__api_lock = object()')
        gen.line()
        with gen.block('def __init__(self, api_lock, lib, ctx):', None):
            gen.line(f'if api_lock is not {name}.__api_lock:')
            gen.line(f"    raise InteropError('{name} must be created with one of its constructors')")
            gen.line('self._lib = lib')
            gen.line('self._ctx = ctx')
        gen.line()
        with gen.block('def _handle(self):', None):
            gen.line('if self._ctx is None:')
            gen.line(f"    raise InvalidHandle('{name} used after close()')")
            gen.line('return self._ctx')
        gen.line()

        for ctor in service.ctors:
            self._generate_ctor(ctor, service, gen)
        self._generate_close(service, gen)
        for method in service.methods:
            self._generate_method(method, gen)

        gen.dedent()
        gen.line()
        gen.line()

    def _generate_ctor(self, func, service: ServicePattern, gen: CodeGen):
        out = self._out_index(func, service)
        fixed = {out: 'ctypes.pointer(_ctx)'}
        params = ', '.join(['cls', 'lib'] + self.funcs.visible_params(func, fixed))
        gen.line('@classmethod')
        with gen.block(f'def {self.naming.method(func.name)}({params}):', None):
            if func.doc and self.model.config.docs:
                gen.docstring(func.doc)
            gen.line('_ctx = ctypes.c_void_p()')
            args, cleanups = self.funcs.write_arguments(gen, func, 'lib', fixed)
            call = f"{self._check(func)}(lib.raw.{func.name}({', '.join(args)}), '{func.name}')"
            if cleanups:
                gen.line('try:')
                gen.line(f'    {call}')
                gen.line('finally:')
                for line in cleanups:
                    gen.line(f'    {line}')
            else:
                gen.line(call)
            gen.line('if not _ctx.value:')
            gen.line(f"    raise InvalidHandle('{func.name} returned a null handle')")
            gen.line('return cls(cls.__api_lock, lib, _ctx)')
        gen.line()

    def _generate_close(self, service: ServicePattern, gen: CodeGen):
        dtor = service.destructor
        with gen.block('def close(self):', None):
            gen.docstring(f'Destroy the native handle through {dtor.name}; later calls do nothing')
            gen.line('if self._ctx is None:')
            gen.line('    return')
            gen.line('ctx, self._ctx = self._ctx, None')
            gen.line(f"{self._check(dtor)}(self._lib.raw.{dtor.name}(ctypes.pointer(ctx)), '{dtor.name}')")
        gen.line()
        gen.lines(
            'def __enter__(self):',
            '    return self',
            '',
            'def __exit__(self, *args):',
            '    self.close()',
            '',
            'def __del__(self):',
            "    if getattr(self, '_ctx', None) is not None:",
            '        self.close()',
            '',
        )

    def _generate_method(self, func, gen: CodeGen):
        fixed = {0: 'self._handle()'}
        hidden = {**fixed, **self.funcs.async_hidden(func)}
        params = ', '.join(['self'] + self.funcs.visible_params(func, hidden))
        async_method = self.model.classification.async_methods.get(func.name)

        with gen.block(f'def {self.naming.method(func.name)}({params}) -> {self.funcs.return_hint(func)}:', None):
            if func.doc and self.model.config.docs:
                gen.docstring(func.doc)
            if async_method is not None:
                self.funcs.write_async_call(gen, func, 'self._lib', fixed)
            else:
                self.funcs.write_call(gen, func, 'self._lib', fixed)
        gen.line()

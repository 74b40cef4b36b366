"""
Callback binding generation module

CFUNCTYPE aliases for every function pointer type, plus per-library
trampolines for callbacks that carry a context pointer. The context is an
integer handle into the library's _CallbackRegistry, so closures work even
though the native function pointer type has no room for them.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...ir import FnPointerInfo, StructInfo, EnumInfo
from ...patterns import CallbackPattern, param_site
from .types import CtypesMapper

if TYPE_CHECKING:
    from ...model import BindingModel


@dataclass(frozen=True)
class Trampoline:
    """A per-library CFUNCTYPE instance dispatching through the registry"""
    alias: str
    signature: FnPointerInfo
    slot: int
    completes: bool

    @property
    def attribute(self) -> str:
        return f'_{"complete" if self.completes else "call"}_{self.alias}'

    @property
    def dispatcher(self) -> str:
        return f'_dispatch{self.attribute}'


class CallbackGenerator:
    """Generates CFUNCTYPE aliases and registry trampolines"""

    def __init__(self, model: 'BindingModel', types: CtypesMapper):
        self.model = model
        self.naming = model.naming
        self.types = types
        self._trampolines: dict[str, Trampoline] = {}
        self._collect()

    def _collect(self):
        async_methods = self.model.classification.async_methods
        for func in self.model.graph.functions:
            for i, _ in enumerate(func.params):
                pattern = self.model.site(param_site(func.name, i))
                if not isinstance(pattern, CallbackPattern) or not pattern.context:
                    continue
                async_method = async_methods.get(func.name)
                completes = async_method is not None and async_method.callback_index == i
                trampoline = Trampoline(self.naming.type(pattern.type_id), pattern.signature,
                                        pattern.slot, completes)
                self._trampolines.setdefault(trampoline.attribute, trampoline)

    def trampoline(self, pattern: CallbackPattern, completes: bool = False) -> Trampoline:
        alias = self.naming.type(pattern.type_id)
        return self._trampolines[f'_{"complete" if completes else "call"}_{alias}']

    @property
    def trampolines(self) -> list[Trampoline]:
        return list(self._trampolines.values())

    def generate_alias(self, info: FnPointerInfo, gen: CodeGen):
        args = [self.types.ctype(info.ret)] + [self.types.ctype(p) for p in info.params]
        gen.line(f'{self.naming.type(info.id)} = ctypes.CFUNCTYPE({", ".join(args)})')
        gen.line()

    def generate_setup(self, gen: CodeGen):
        """Trampoline instances, created in Library.__init__"""
        for t in self.trampolines:
            gen.line(f'self.{t.attribute} = {t.alias}(self.{t.dispatcher})')

    def generate_dispatchers(self, gen: CodeGen):
        for t in self.trampolines:
            args = [f'x{i}' for i in range(len(t.signature.params)) if i != t.slot]
            params = ', '.join(['self'] + args + ['_ctx'])
            if t.completes:
                self._generate_completion(t, params, gen)
            else:
                with gen.block(f'def {t.dispatcher}({params}):', None):
                    gen.line(f'return self._callbacks.get(_ctx)({", ".join(args)})')
                gen.line()

    def _generate_completion(self, t: Trampoline, params: str, gen: CodeGen):
        value = self.model.graph.get(self.model.pointee(t.signature.params[0]))
        if isinstance(value, StructInfo) and not value.repr.is_transparent:
            result = f'{self.naming.type(value.id)}.from_buffer_copy(x0[0])'
        elif isinstance(value, EnumInfo):
            result = f'_enum_value({self.naming.type(value.id)}, x0[0])'
        else:
            result = 'x0[0]'
        with gen.block(f'def {t.dispatcher}({params}):', None):
            gen.docstring('Resolve the pending future; later completions are dropped')
            gen.line('future = self._callbacks.pop(_ctx)')
            gen.line('if future is None:')
            gen.line('    return')
            gen.line('if not x0:')
            gen.line("    future.set_exception(InteropError('async call completed without a value'))")
            gen.line('else:')
            gen.line(f'    future.set_result({result})')
        gen.line()

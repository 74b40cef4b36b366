"""
Python target

Emits one self-contained ctypes module, <library>.py. The module has no
global library state: every call goes through a Library instance wrapping
one loaded shared object, so several libraries can be loaded side by side.
"""

import keyword

from ...backend import Backend, Phase, register_backend
from ...codegen import CodeGen
from ...naming import NameStyle
from .callback import CallbackGenerator
from .func import FuncGenerator
from .runtime import write_runtime
from .service import ServiceGenerator
from .struct import StructGenerator
from .types import CtypesMapper

PY_KEYWORDS = frozenset(keyword.kwlist) | frozenset({
    'self', 'cls', 'lib', 'raw', 'ctypes', 'enum', 'os', 'threading', 'typing', 'Future',
    'Library', 'InteropError', 'NativePanic', 'InvalidHandle', 'UnexpectedDiscriminant',
    'API_VERSION',
})

RESERVED_MEMBERS = frozenset({'close'})

RESERVED_FIELDS = frozenset({
    'some', 'none', 'is_some', 'is_none', 'unwrap', 'get', 'is_ok', 'copied', 'from_sequence',
    'bytearray', 'to_bytes', 'to_str', 'free',
})

PY_STYLE = NameStyle(
    target='python',
    type_case='pascal',
    function_case='preserve',
    method_case='snake',
    keywords=PY_KEYWORDS,
    reserved_members=RESERVED_MEMBERS,
    reserved_fields=RESERVED_FIELDS,
)


@register_backend('python')
class PythonBackend(Backend):
    """ctypes module emitter"""

    style = PY_STYLE
    capabilities = frozenset({'packed', 'transparent', 'async'})

    def __init__(self, model, options=None):
        super().__init__(model, options)
        self.types = CtypesMapper(model)
        self.structs = StructGenerator(model, self.types)
        self.callbacks = CallbackGenerator(model, self.types)
        self.funcs = FuncGenerator(model, self.types, self.callbacks)
        self.services = ServiceGenerator(model, self.funcs)

        self._constants = CodeGen()
        self._enums = CodeGen()
        self._classes = CodeGen()
        self._definitions = CodeGen()
        self._service_classes = CodeGen()
        self._methods = CodeGen()
        self._binds: list[str] = []

    # --------------------------------------------------------------------------
    # Types
    # --------------------------------------------------------------------------

    def emit_primitive(self, info, phase):
        pass

    def emit_opaque(self, info, phase):
        # Handles to opaque types are plain c_void_p addresses.
        pass

    def emit_enum(self, info, phase):
        if phase != Phase.DECLARE:
            return
        gen = self._enums
        gen.line(f'class {self.naming.type(info.id)}(enum.IntEnum):')
        gen.indent()
        if info.doc and self.model.config.docs:
            gen.docstring(info.doc)
        for item in info.items:
            gen.line(f'{self.naming.variant(info.id, item.name)} = {item.value}')
        if not info.items:
            gen.line('pass')
        gen.dedent()
        gen.line()
        gen.line()

    def _emit_error_check(self, info, pattern):
        name = self.naming.type(info.id)
        gen = self._enums
        with gen.block(f'def _check_{name}(code, context):', None):
            gen.line(f'if code == {pattern.success}:')
            gen.line('    return')
            gen.line(f'error = _enum_value({name}, code)')
            if pattern.panic is not None:
                gen.line(f'if code == {pattern.panic}:')
                gen.line("    raise NativePanic(f'{context}: native code panicked', error)")
            gen.line("raise InteropError(f'{context} failed with {error.name}', error)")
        gen.line()
        gen.line()

    def emit_struct(self, info, phase):
        if info.repr.is_transparent:
            if phase == Phase.DEFINE:
                self.structs.generate_alias(info, self._definitions)
            return
        if phase == Phase.DECLARE:
            self.structs.generate_struct(info, self._classes)
        else:
            self.structs.generate_fields(info, self._definitions)

    def emit_slice(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.structs.generate_slice(info, pattern, self._classes)
        else:
            self.structs.generate_fields(info, self._definitions)

    def emit_option(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.structs.generate_option(info, pattern, self._classes)
        else:
            self.structs.generate_fields(info, self._definitions)

    def emit_string(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.structs.generate_string(info, pattern, self._classes)
        else:
            self.structs.generate_fields(info, self._definitions)

    def emit_result(self, info, pattern, phase):
        if pattern.is_enum_form:
            self.emit_enum(info, phase)
            if phase == Phase.DECLARE:
                self._emit_error_check(info, pattern)
        elif phase == Phase.DECLARE:
            self.structs.generate_result(info, pattern, self._classes)
        else:
            self.structs.generate_fields(info, self._definitions)

    def emit_service(self, info, pattern, phase):
        if phase == Phase.DECLARE:
            self.services.generate(info, pattern, self._service_classes)

    def emit_callback(self, info, pattern, phase):
        if phase == Phase.DEFINE:
            self.callbacks.generate_alias(info, self._definitions)

    # --------------------------------------------------------------------------
    # Functions and constants
    # --------------------------------------------------------------------------

    def emit_constant(self, const):
        value = const.value
        if isinstance(value, bool) or self.model.is_primitive(const.type, 'bool'):
            literal = 'True' if value else 'False'
        elif self.model.is_primitive(const.type, 'f32', 'f64'):
            literal = repr(float(value))
        else:
            literal = str(int(value))
        if const.doc and self.model.config.docs:
            self._constants.comment(const.doc, '#')
        self._constants.line(f'{self.naming.constant(const.name)} = {literal}')

    def emit_function(self, func):
        self._binds.append(self.funcs.bind_line(func))
        # Service functions are reached through their wrapper class.
        if self.model.service_of(func) is not None:
            return
        self._methods.indent()
        self.funcs.generate_method(func, self._methods)
        self._methods.dedent()

    # --------------------------------------------------------------------------
    # Assembly
    # --------------------------------------------------------------------------

    def _write_library(self, gen: CodeGen):
        guard = self.model.api_guard()
        gen.line('class Library:')
        gen.indent()
        gen.docstring(
            f'Handle to a loaded {self.model.library} library\n\n'
            'lib is the path of the shared library or an already loaded object\n'
            'exposing the native functions as attributes. The unchecked native\n'
            'functions stay reachable through .raw.'
        )
        gen.line()
        with gen.block('def __init__(self, lib):', None):
            gen.line('if isinstance(lib, (str, os.PathLike)):')
            gen.line('    lib = ctypes.CDLL(os.fspath(lib))')
            gen.line('self.raw = lib')
            gen.line('self._callbacks = _CallbackRegistry()')
            gen.lines(*self._binds)
            self.callbacks.generate_setup(gen)
            if guard is not None:
                gen.line('self._check_api_version()')
        gen.line()
        with gen.block('def _bind(self, name, argtypes, restype):', None):
            gen.line('fn = getattr(self.raw, name)')
            gen.line('fn.argtypes = argtypes')
            gen.line('fn.restype = restype')
        gen.line()
        if guard is not None:
            with gen.block('def _check_api_version(self):', None):
                gen.line(f'actual = self.raw.{guard.name}()')
                gen.line('if actual != API_VERSION:')
                gen.line("    raise InteropError(f'API version mismatch: bindings expect {API_VERSION:#x}, "
                         "library reports {actual:#x}', actual)")
            gen.line()
        self.callbacks.generate_dispatchers(gen)
        gen.dedent()
        text = self._methods.output().rstrip('\n')
        if text:
            gen.raw(text)

    def finish(self) -> dict[str, str]:
        gen = CodeGen()
        doc = self.options.get('module_doc') or f'Python bindings for {self.model.library}'
        gen.docstring(f'{doc}\n\nGenerated by ffibind, do not edit.')
        gen.lines(
            'import ctypes',
            'import enum',
            'import os',
            'import threading',
            'import typing',
            'from concurrent.futures import Future',
        )
        gen.line()
        if self.model.api_guard() is not None:
            gen.line(f'API_VERSION = {self.model.api_hash:#018x}')
            gen.line()
        gen.line()
        write_runtime(gen)
        gen.line()
        gen.line()

        for section in (self._constants, self._enums, self._classes, self._definitions,
                        self._service_classes):
            text = section.output().strip('\n')
            if text:
                gen.raw(text)
                gen.line()
                gen.line()

        self._write_library(gen)
        return {f'{self.model.library}.py': gen.output()}

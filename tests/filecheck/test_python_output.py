"""
FileCheck-style tests for the Python ctypes target.

These tests validate the structure of the generated module using pattern
matching similar to LLVM FileCheck.
"""

import re

import pytest


@pytest.fixture
def module(reference_graph, generate_target):
    return generate_target(reference_graph, 'python')['reference.py']


class TestModuleStructure:

    def test_compiles(self, module):
        compile(module, 'reference.py', 'exec')

    def test_header(self, module):
        # CHECK: """Python bindings for reference
        assert module.startswith('"""Python bindings for reference\n')
        # CHECK: Generated by ffibind, do not edit.
        assert 'Generated by ffibind, do not edit.' in module

    def test_imports_only_stdlib(self, module):
        # CHECK: import ctypes
        # CHECK: from concurrent.futures import Future
        assert re.search(r'^import ctypes$', module, re.M)
        assert re.search(r'^from concurrent\.futures import Future$', module, re.M)
        imports = re.findall(r'^(?:import|from) (\S+)', module, re.M)
        assert set(imports) == {'ctypes', 'enum', 'os', 'threading', 'typing', 'concurrent.futures'}

    def test_api_version(self, module):
        # CHECK: API_VERSION = 0x{{[0-9a-f]{16}}}
        assert re.search(r'^API_VERSION = 0x[0-9a-f]{16}$', module, re.M)

    def test_error_taxonomy(self, module):
        # CHECK: class InteropError(Exception):
        # CHECK: class NativePanic(InteropError):
        # CHECK: class InvalidHandle(InteropError):
        # CHECK: class UnexpectedDiscriminant(InteropError):
        for cls, base in (('InteropError', 'Exception'), ('NativePanic', 'InteropError'),
                          ('InvalidHandle', 'InteropError'), ('UnexpectedDiscriminant', 'InteropError')):
            assert re.search(rf'^class {cls}\({base}\):$', module, re.M)

    def test_custom_module_doc(self, reference_graph, generate_target):
        files = generate_target(reference_graph, 'python', python={'module_doc': 'Reference bindings'})
        # CHECK: """Reference bindings
        assert files['reference.py'].startswith('"""Reference bindings\n')


class TestTypes:

    def test_constants(self, module):
        # CHECK: # Largest accepted value
        # CHECK-NEXT: MAX_VALUE = 42
        assert re.search(r'^# Largest accepted value\nMAX_VALUE = 42$', module, re.M)
        # CHECK: SCALE = 1.5
        assert re.search(r'^SCALE = 1\.5$', module, re.M)
        # CHECK: ENABLED = True
        assert re.search(r'^ENABLED = True$', module, re.M)

    def test_enum(self, module):
        # CHECK: class EnumPayload(enum.IntEnum):
        # CHECK-NEXT:     A = 0
        assert re.search(r'class EnumPayload\(enum\.IntEnum\):\n    A = 0\n    B = 1\n    C = 2', module)

    def test_error_check(self, module):
        # CHECK: def _check_FFIError(code, context):
        # CHECK:     if code == 0:
        # CHECK:     if code == 200:
        # CHECK:         raise NativePanic
        assert re.search(
            r'def _check_FFIError\(code, context\):\n'
            r'    if code == 0:\n'
            r'        return\n'
            r'    error = _enum_value\(FFIError, code\)\n'
            r'    if code == 200:\n'
            r'        raise NativePanic',
            module,
        )

    def test_struct_declared_before_fields(self, module):
        # CHECK: class Vec2(ctypes.Structure):
        # CHECK: Vec2._fields_ = [
        assert module.index('class Vec2(ctypes.Structure):') < module.index('Vec2._fields_ = [')
        # CHECK: ('x', ctypes.c_float),
        assert re.search(r"Vec2\._fields_ = \[\n    \('x', ctypes\.c_float\),\n    \('y', ctypes\.c_float\),\n\]",
                         module)

    def test_packed(self, module):
        # CHECK: Packed1._layout_ = 'ms'
        # CHECK-NEXT: Packed1._pack_ = 1
        assert re.search(r"^Packed1\._layout_ = 'ms'\nPacked1\._pack_ = 1$", module, re.M)

    def test_transparent_alias(self, module):
        # CHECK: Transparent = Vec2
        assert re.search(r'^Transparent = Vec2$', module, re.M)

    def test_array_field(self, module):
        # CHECK: ('data', (ctypes.c_uint8 * 4)),
        assert "('data', (ctypes.c_uint8 * 4))," in module

    def test_slice_helpers(self, module):
        # CHECK: class Sliceu8(ctypes.Structure):
        # CHECK: def from_sequence(cls, values):
        # CHECK: def bytearray(self):
        start = module.index('class Sliceu8(ctypes.Structure):')
        end = module.index('\nclass ', start + 1)
        body = module[start:end]
        assert 'def from_sequence(cls, values):' in body
        assert 'def bytearray(self):' in body
        # CHECK-NOT: def __setitem__
        assert 'def __setitem__' not in body

    def test_mutable_slice_is_writable(self, module):
        start = module.index('class SliceMutu32(ctypes.Structure):')
        end = module.index('\nclass ', start + 1)
        # CHECK: def __setitem__(self, i, value):
        assert 'def __setitem__(self, i, value):' in module[start:end]

    def test_option_reserved_field_renamed(self, module):
        # CHECK: ('is_some_', ctypes.c_uint8),
        assert "('is_some_', ctypes.c_uint8)," in module
        # CHECK: return cls(value=value, is_some_=1)
        assert 'return cls(value=value, is_some_=1)' in module

    def test_result_unwrap(self, module):
        # CHECK: class ResultVec2(ctypes.Structure):
        # CHECK: _check_FFIError(self.error, 'ResultVec2')
        assert "_check_FFIError(self.error, 'ResultVec2')" in module

    def test_owned_string_free(self, module):
        # CHECK: def free(self, lib):
        # CHECK: lib.raw.owned_string_destroy(self)
        assert re.search(r'def free\(self, lib\):\n(.*\n){4}\s+lib\.raw\.owned_string_destroy\(self\)', module)

    def test_callback_aliases(self, module):
        # CHECK: CallbackU32 = ctypes.CFUNCTYPE(ctypes.c_uint32, ctypes.c_uint32)
        assert re.search(r'^CallbackU32 = ctypes\.CFUNCTYPE\(ctypes\.c_uint32, ctypes\.c_uint32\)$', module, re.M)
        # CHECK: fn_u32_ptr_void_rval_u32 = ctypes.CFUNCTYPE(ctypes.c_uint32, ctypes.c_uint32, ctypes.c_void_p)
        assert re.search(
            r'^fn_u32_ptr_void_rval_u32 = ctypes\.CFUNCTYPE\(ctypes\.c_uint32, ctypes\.c_uint32, ctypes\.c_void_p\)$',
            module, re.M,
        )


class TestLibrary:

    def test_binds(self, module):
        # CHECK: self._bind('primitive_u32', [ctypes.c_uint32], ctypes.c_uint32)
        assert "self._bind('primitive_u32', [ctypes.c_uint32], ctypes.c_uint32)" in module
        # CHECK: self._bind('ascii_length', [ctypes.c_char_p], ctypes.c_uint32)
        assert "self._bind('ascii_length', [ctypes.c_char_p], ctypes.c_uint32)" in module
        # CHECK: self._bind('simple_service_new', [ctypes.POINTER(ctypes.c_void_p)], ctypes.c_int32)
        assert "self._bind('simple_service_new', [ctypes.POINTER(ctypes.c_void_p)], ctypes.c_int32)" in module

    def test_every_function_bound(self, module, reference_graph):
        for func in reference_graph.functions:
            # CHECK: self._bind('<name>', {{.*}})
            assert f"self._bind('{func.name}', " in module, func.name

    def test_api_check_runs_on_load(self, module):
        # CHECK: self._check_api_version()
        # CHECK: actual = self.raw.api_version()
        assert 'self._check_api_version()' in module
        assert 'actual = self.raw.api_version()' in module

    def test_methods(self, module):
        # CHECK: def primitive_u32(self, x) -> int:
        # CHECK-NEXT: """Returns x + 1"""
        assert re.search(r'    def primitive_u32\(self, x\) -> int:\n        """Returns x \+ 1"""', module)
        # CHECK: def result_fails(self, x) -> None:
        # CHECK-NEXT: _check_FFIError(self.raw.result_fails(x), 'result_fails')
        assert re.search(
            r"def result_fails\(self, x\) -> None:\n        _check_FFIError\(self\.raw\.result_fails\(x\), 'result_fails'\)",
            module,
        )
        # CHECK: return _enum_value(EnumPayload, self.raw.enum_identity(e))
        assert 'return _enum_value(EnumPayload, self.raw.enum_identity(e))' in module

    def test_context_callback_uses_trampoline(self, module):
        # CHECK: self._call_fn_u32_ptr_void_rval_u32 = fn_u32_ptr_void_rval_u32(self._dispatch_call_fn_u32_ptr_void_rval_u32)
        assert ('self._call_fn_u32_ptr_void_rval_u32 = '
                'fn_u32_ptr_void_rval_u32(self._dispatch_call_fn_u32_ptr_void_rval_u32)') in module
        # CHECK: def callback_with_context(self, cb) -> int:
        assert 'def callback_with_context(self, cb) -> int:' in module

    def test_service_functions_only_on_class(self, module):
        # CHECK-NOT: def simple_service_value(
        assert 'def simple_service_value(' not in module
        # CHECK: class SimpleService:
        assert re.search(r'^class SimpleService:$', module, re.M)


class TestService:

    @pytest.fixture
    def service(self, module):
        start = module.index('class SimpleService:')
        return module[start:module.index('\nclass ', start + 1)]

    def test_constructors(self, service):
        # CHECK: @classmethod
        # CHECK-NEXT: def new(cls, lib):
        assert re.search(r'@classmethod\n    def new\(cls, lib\):', service)
        # CHECK: def new_with(cls, lib, value):
        assert 'def new_with(cls, lib, value):' in service
        # CHECK: raise InvalidHandle('simple_service_new returned a null handle')
        assert "raise InvalidHandle('simple_service_new returned a null handle')" in service

    def test_close(self, service):
        # CHECK: def close(self):
        # CHECK: _check_FFIError(self._lib.raw.simple_service_destroy(ctypes.pointer(ctx)), 'simple_service_destroy')
        assert ("_check_FFIError(self._lib.raw.simple_service_destroy(ctypes.pointer(ctx)), "
                "'simple_service_destroy')") in service
        # CHECK: def __enter__(self):
        # CHECK: def __exit__(self, *args):
        # CHECK: def __del__(self):
        for method in ('__enter__(self)', '__exit__(self, *args)', '__del__(self)'):
            assert f'def {method}:' in service

    def test_methods(self, service):
        # CHECK: def value(self) -> int:
        # CHECK-NEXT: return self._lib.raw.simple_service_value(self._handle())
        assert re.search(r'def value\(self\) -> int:\n\s+return self\._lib\.raw\.simple_service_value\(self\._handle\(\)\)',
                         service)

    def test_async_method_returns_future(self, service):
        # CHECK: def add_async(self, x) -> Future:
        # CHECK: _future = Future()
        # CHECK: return _future
        assert re.search(r'def add_async\(self, x\) -> Future:\n\s+_future = Future\(\)', service)
        assert 'self._lib._complete_fn_ptr_u64_ptr_void_rval_void' in service
        assert 'return _future' in service


def test_docs_disabled(reference_graph, generate_target):
    module = generate_target(reference_graph, 'python', docs=False)['reference.py']
    # CHECK-NOT: """Returns x + 1"""
    assert '"""Returns x + 1"""' not in module
    # CHECK-NOT: # Largest accepted value
    assert '# Largest accepted value' not in module

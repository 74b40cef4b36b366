"""
FileCheck-style tests for the C header target.

These tests validate the structure of the generated header using pattern
matching similar to LLVM FileCheck.
"""

import re

import pytest


@pytest.fixture
def header(reference_graph, generate_target):
    return generate_target(reference_graph, 'c')['reference.h']


class TestHeaderStructure:

    def test_include_guard(self, header):
        # CHECK: #ifndef REFERENCE_H
        # CHECK-NEXT: #define REFERENCE_H
        assert re.search(r'^#ifndef REFERENCE_H\n#define REFERENCE_H$', header, re.M)

        # CHECK: #endif /* REFERENCE_H */
        assert header.rstrip().endswith('#endif /* REFERENCE_H */')

    def test_cplusplus_linkage(self, header):
        # CHECK: extern "C" {
        assert re.search(r'#ifdef __cplusplus\nextern "C" \{\n#endif', header)

    def test_standard_includes(self, header):
        # CHECK: #include <stdint.h>
        # CHECK: #include <stdbool.h>
        assert re.search(r'#include <stdint\.h>\n#include <stdbool\.h>', header)

    def test_api_version(self, header):
        # CHECK: #define REFERENCE_API_VERSION 0x{{[0-9a-f]{16}}}ULL
        assert re.search(r'^#define REFERENCE_API_VERSION 0x[0-9a-f]{16}ULL$', header, re.M)

    def test_custom_guard(self, reference_graph, generate_target):
        header = generate_target(reference_graph, 'c', c={'ifndef': 'MY_LIB_H'})['reference.h']
        # CHECK: #ifndef MY_LIB_H
        assert re.search(r'^#ifndef MY_LIB_H$', header, re.M)
        # CHECK-NOT: REFERENCE_H
        assert 'REFERENCE_H' not in header

    def test_directives(self, reference_graph, generate_target):
        files = generate_target(reference_graph, 'c', c={'directives': ['#include "extra.h"']})
        # CHECK: #include "extra.h"
        assert re.search(r'^#include "extra\.h"$', files['reference.h'], re.M)


class TestTypes:

    def test_constants(self, header):
        # CHECK: /// Largest accepted value
        # CHECK-NEXT: static const uint32_t MAX_VALUE = 42;
        assert re.search(r'/// Largest accepted value\nstatic const uint32_t MAX_VALUE = 42;', header)
        # CHECK: static const float SCALE = 1.5f;
        assert 'static const float SCALE = 1.5f;' in header
        # CHECK: static const bool ENABLED = true;
        assert 'static const bool ENABLED = true;' in header

    def test_enum_variants_prefixed(self, header):
        # CHECK: typedef enum FFIError {
        # CHECK:     FFIERROR_OK = 0,
        # CHECK:     FFIERROR_NULLPASSED = 100,
        # CHECK: } FFIError;
        assert re.search(
            r'typedef enum FFIError \{\n'
            r'    /// Call succeeded\n'
            r'    FFIERROR_OK = 0,\n'
            r'    FFIERROR_NULLPASSED = 100,\n'
            r'    FFIERROR_PANIC = 200,\n'
            r'    FFIERROR_FAIL = 300,\n'
            r'\} FFIError;',
            header,
        )
        # CHECK: ENUMPAYLOAD_B = 1,
        assert re.search(r'ENUMPAYLOAD_B = 1,', header)

    def test_struct_forward_declared_then_defined(self, header):
        # CHECK: typedef struct Vec2 Vec2;
        # CHECK: struct Vec2 {
        declared = header.index('typedef struct Vec2 Vec2;')
        defined = header.index('struct Vec2 {')
        assert declared < defined
        # CHECK: /// 2D vector
        # CHECK-NEXT: struct Vec2 {
        # CHECK-NEXT:     float x;
        # CHECK-NEXT:     float y;
        # CHECK-NEXT: };
        assert re.search(r'/// 2D vector\nstruct Vec2 \{\n    float x;\n    float y;\n\};', header)

    def test_definitions_follow_value_order(self, header):
        vec2 = header.index('struct Vec2 {')
        # CHECK: struct OptionVec2 {
        assert vec2 < header.index('struct OptionVec2 {')
        # CHECK: struct ResultVec2 {
        assert vec2 < header.index('struct ResultVec2 {')

    def test_packed(self, header):
        # CHECK: #pragma pack(push, 1)
        # CHECK-NEXT: struct Packed1 {
        # CHECK: #pragma pack(pop)
        assert re.search(
            r'#pragma pack\(push, 1\)\nstruct Packed1 \{\n    uint8_t x;\n    uint32_t y;\n\};\n#pragma pack\(pop\)',
            header,
        )

    def test_transparent(self, header):
        # CHECK: typedef Vec2 Transparent;
        assert re.search(r'^typedef Vec2 Transparent;$', header, re.M)
        # CHECK-NOT: struct Transparent {
        assert 'struct Transparent' not in header

    def test_array_field(self, header):
        # CHECK: uint8_t data[4];
        assert re.search(r'struct Array \{\n    uint8_t data\[4\];\n\};', header)

    def test_slices(self, header):
        # CHECK: struct Sliceu8 {
        # CHECK-NEXT: const uint8_t* data;
        # CHECK-NEXT: uint64_t len;
        assert re.search(r'struct Sliceu8 \{\n    const uint8_t\* data;\n    uint64_t len;\n\};', header)
        # CHECK: struct SliceMutu32 {
        # CHECK-NEXT: uint32_t* data;
        assert re.search(r'struct SliceMutu32 \{\n    uint32_t\* data;', header)

    def test_opaque_service(self, header):
        # CHECK: typedef struct SimpleService SimpleService;
        assert 'typedef struct SimpleService SimpleService;' in header
        # CHECK-NOT: struct SimpleService {
        assert 'struct SimpleService {' not in header

    def test_callback_typedefs(self, header):
        # CHECK: typedef uint32_t (*CallbackU32)(uint32_t x0);
        assert 'typedef uint32_t (*CallbackU32)(uint32_t x0);' in header
        # CHECK: typedef uint32_t (*fn_u32_ptr_void_rval_u32)(uint32_t x0, const void* x1);
        assert 'typedef uint32_t (*fn_u32_ptr_void_rval_u32)(uint32_t x0, const void* x1);' in header


class TestFunctions:

    def test_void_parameter_list(self, header):
        # CHECK: uint64_t api_version(void);
        assert re.search(r'^uint64_t api_version\(void\);$', header, re.M)

    def test_documented_function(self, header):
        # CHECK: /// Returns x + 1
        # CHECK-NEXT: uint32_t primitive_u32(uint32_t x);
        assert re.search(r'/// Returns x \+ 1\nuint32_t primitive_u32\(uint32_t x\);', header)

    def test_checked_results_are_nodiscard(self, header):
        # CHECK: FFI_NODISCARD FFIError result_fails(uint32_t x);
        assert re.search(r'^FFI_NODISCARD FFIError result_fails\(uint32_t x\);$', header, re.M)
        # CHECK: FFI_NODISCARD FFIError simple_service_new(SimpleService** context);
        assert re.search(r'^FFI_NODISCARD FFIError simple_service_new\(SimpleService\*\* context\);$',
                         header, re.M)
        # CHECK-NOT: FFI_NODISCARD uint32_t primitive_u32
        assert 'FFI_NODISCARD uint32_t primitive_u32' not in header

    def test_ascii_parameter(self, header):
        # CHECK: uint32_t ascii_length(const char* text);
        assert re.search(r'^uint32_t ascii_length\(const char\* text\);$', header, re.M)

    def test_by_value_structs(self, header):
        # CHECK: Vec2 pattern_vec2_identity(Vec2 v);
        assert re.search(r'^Vec2 pattern_vec2_identity\(Vec2 v\);$', header, re.M)
        # CHECK: OptionVec2 slice_vec2_first(SliceVec2 s);
        assert re.search(r'^OptionVec2 slice_vec2_first\(SliceVec2 s\);$', header, re.M)

    def test_callback_parameters(self, header):
        # CHECK: uint32_t callback_with_context(fn_u32_ptr_void_rval_u32 cb, const void* ctx);
        assert re.search(
            r'^uint32_t callback_with_context\(fn_u32_ptr_void_rval_u32 cb, const void\* ctx\);$',
            header, re.M,
        )

    def test_every_function_emitted(self, header, reference_graph):
        for func in reference_graph.functions:
            # CHECK: {{.*}} <name>({{.*}});
            assert re.search(rf'\b{func.name}\(', header), func.name

    def test_function_attribute(self, reference_graph, generate_target):
        files = generate_target(reference_graph, 'c', c={'function_attribute': 'MY_EXPORT'})
        # CHECK: MY_EXPORT uint32_t primitive_u32(uint32_t x);
        assert re.search(r'^MY_EXPORT uint32_t primitive_u32\(uint32_t x\);$', files['reference.h'], re.M)

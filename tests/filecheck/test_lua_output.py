"""
FileCheck-style tests for the Lua target.

These tests validate the C API glue and the LuaCATS annotations using
pattern matching similar to LLVM FileCheck. The Lua target has no async
support, so they run over the synchronous reference library.
"""

import re

import pytest


@pytest.fixture
def lua_files(sync_reference_graph, generate_target):
    return generate_target(sync_reference_graph, 'lua')


@pytest.fixture
def glue(lua_files):
    return lua_files['reference_lua.c']


@pytest.fixture
def annotations(lua_files):
    return lua_files['types/reference.lua']


def test_annotations_do_not_shadow_native_module(lua_files):
    # require('reference') searches package.path before package.cpath, so no
    # reference.lua may sit next to the glue.
    # CHECK: reference_lua.c
    # CHECK: types/reference.lua
    assert set(lua_files) == {'reference_lua.c', 'types/reference.lua'}
    assert 'reference.lua' not in lua_files


class TestGlueStructure:

    def test_includes_generated_header(self, glue):
        # CHECK: #include <lauxlib.h>
        # CHECK: #include "reference.h"
        assert glue.index('#include <lauxlib.h>') < glue.index('#include "reference.h"')

    def test_luaopen(self, glue):
        # CHECK: FFIBIND_API int luaopen_reference(lua_State *L) {
        assert re.search(r'^FFIBIND_API int luaopen_reference\(lua_State \*L\) \{$', glue, re.M)
        # CHECK: register_metatables(L);
        # CHECK-NEXT: luaL_newlib(L, reference_funcs);
        assert re.search(r'register_metatables\(L\);\n    luaL_newlib\(L, reference_funcs\);', glue)

    def test_api_version_check(self, glue):
        # CHECK: if (api_version() != 0x{{[0-9a-f]{16}}}ULL) {
        assert re.search(r'if \(api_version\(\) != 0x[0-9a-f]{16}ULL\) \{', glue)

    def test_module_name_option(self, sync_reference_graph, generate_target):
        files = generate_target(sync_reference_graph, 'lua', lua={'module_name': 'ref.core'})
        glue = files['reference_lua.c']
        # CHECK: int luaopen_ref_core(lua_State *L) {
        assert 'int luaopen_ref_core(lua_State *L) {' in glue
        # CHECK: luaL_newmetatable(L, "ref.core.Vec2");
        assert 'luaL_newmetatable(L, "ref.core.Vec2");' in glue

    def test_export_macro_option(self, sync_reference_graph, generate_target):
        files = generate_target(sync_reference_graph, 'lua', lua={'export_macro': 'MY_EXPORT'})
        # CHECK: MY_EXPORT int luaopen_reference(lua_State *L) {
        assert 'MY_EXPORT int luaopen_reference(lua_State *L) {' in files['reference_lua.c']


class TestGlueFunctions:

    def test_registration(self, glue):
        # CHECK: {"PrimitiveU32", l_primitive_u32},
        assert '{"PrimitiveU32", l_primitive_u32},' in glue
        # CHECK: {"ResultFails", l_result_fails},
        # CHECK: {"ResultFailsRaw", l_result_fails_raw},
        assert '{"ResultFails", l_result_fails},' in glue
        assert '{"ResultFailsRaw", l_result_fails_raw},' in glue
        # CHECK-NOT: {"SimpleServiceValue"
        assert '"SimpleServiceValue"' not in glue

    def test_checked_call_raises(self, glue):
        # CHECK: static int l_result_fails(lua_State *L) {
        # CHECK: if (rval != 0) return fail_FFIError(L, "result_fails", (lua_Integer)rval);
        assert re.search(
            r'static int l_result_fails\(lua_State \*L\) \{\n'
            r'    uint32_t x0 = \(uint32_t\)luaL_checkinteger\(L, 1\);\n'
            r'    FFIError rval = result_fails\(x0\);\n'
            r'    if \(rval != 0\) return fail_FFIError\(L, "result_fails", \(lua_Integer\)rval\);',
            glue,
        )

    def test_error_helper(self, glue):
        # CHECK: static int fail_FFIError(lua_State *L, const char* context, lua_Integer code) {
        # CHECK-NEXT: if (code == 200) {
        assert re.search(
            r'static int fail_FFIError\(lua_State \*L, const char\* context, lua_Integer code\) \{\n'
            r'    if \(code == 200\) \{',
            glue,
        )
        # CHECK: case 300: return "Fail";
        assert 'case 300: return "Fail";' in glue

    def test_ascii_argument(self, glue):
        # CHECK: static int l_ascii_length(lua_State *L) {
        # CHECK-NEXT: const char* x0 = luaL_checkstring(L, 1);
        assert re.search(r'static int l_ascii_length\(lua_State \*L\) \{\n    const char\* x0 = luaL_checkstring\(L, 1\);',
                         glue)

    def test_owned_string(self, glue):
        # CHECK: lua_pushlstring(L, (const char*)rval.ptr, (size_t)rval.len);
        # CHECK-NEXT: owned_string_destroy(rval);
        assert re.search(r'lua_pushlstring\(L, \(const char\*\)rval\.ptr, \(size_t\)rval\.len\);\n'
                         r'    owned_string_destroy\(rval\);', glue)
        # CHECK: if (s->ptr == NULL) return luaL_error(L, "owned string freed twice");
        assert 'if (s->ptr == NULL) return luaL_error(L, "owned string freed twice");' in glue

    def test_constants(self, glue):
        # CHECK: lua_pushinteger(L, 42);
        # CHECK-NEXT: lua_setfield(L, -2, "MAX_VALUE");
        assert re.search(r'lua_pushinteger\(L, 42\);\n    lua_setfield\(L, -2, "MAX_VALUE"\);', glue)
        # CHECK: lua_pushnumber(L, 1.5);
        assert re.search(r'lua_pushnumber\(L, 1\.5\);\n    lua_setfield\(L, -2, "SCALE"\);', glue)
        # CHECK: lua_pushboolean(L, 1);
        assert re.search(r'lua_pushboolean\(L, 1\);\n    lua_setfield\(L, -2, "ENABLED"\);', glue)

    def test_enum_table(self, glue):
        # CHECK: static void register_FFIError(lua_State *L) {
        # CHECK: lua_setfield(L, -2, "NullPassed");
        assert re.search(r'static void register_FFIError\(lua_State \*L\) \{', glue)
        assert re.search(r'lua_pushinteger\(L, 100\);\n    lua_setfield\(L, -2, "NullPassed"\);', glue)
        # CHECK: register_FFIError(L);
        assert re.search(r'^    register_FFIError\(L\);$', glue, re.M)


class TestGlueTypes:

    def test_struct_userdata(self, glue):
        # CHECK: static void push_Vec2(lua_State *L, const Vec2* value);
        assert 'static void push_Vec2(lua_State *L, const Vec2* value);' in glue
        # CHECK: luaL_newmetatable(L, "reference.Vec2");
        assert 'luaL_newmetatable(L, "reference.Vec2");' in glue
        # CHECK: {"Vec2", l_Vec2_new},
        assert '{"Vec2", l_Vec2_new},' in glue

    def test_slice_bounds(self, glue):
        # CHECK: static Sliceu8* check_Sliceu8(lua_State *L, int idx) {
        assert 'static Sliceu8* check_Sliceu8(lua_State *L, int idx) {' in glue
        # CHECK: if (i < 1 || (lua_Unsigned)i > self->len) {
        assert 'if (i < 1 || (lua_Unsigned)i > self->len) {' in glue
        # CHECK: return luaL_error(L, "Sliceu8 is read-only");
        assert 'return luaL_error(L, "Sliceu8 is read-only");' in glue

    def test_mutable_slice(self, glue):
        # CHECK: static int l_SliceMutu32__newindex(lua_State *L) {
        # CHECK: self->data[i] = (uint32_t)luaL_checkinteger(L, 3);
        assert re.search(r'static int l_SliceMutu32__newindex\(lua_State \*L\) \{\n(.*\n){2}'
                         r'    self->data\[i\] = \(uint32_t\)luaL_checkinteger\(L, 3\);', glue)

    def test_option(self, glue):
        # CHECK: luaL_error(L, "invalid presence flag %d in OptionVec2", (int)self->is_some);
        assert 'luaL_error(L, "invalid presence flag %d in OptionVec2", (int)self->is_some);' in glue
        # CHECK: return self->is_some == 1;
        assert 'return self->is_some == 1;' in glue

    def test_service(self, glue):
        # CHECK: static SimpleService* check_SimpleService_handle(lua_State *L, int idx);
        assert 'static SimpleService* check_SimpleService_handle(lua_State *L, int idx);' in glue
        # CHECK: static int l_SimpleService_close(lua_State *L) {
        # CHECK: if (*box == NULL) return 0;
        assert re.search(r'static int l_SimpleService_close\(lua_State \*L\) \{\n.*\n    if \(\*box == NULL\) return 0;',
                         glue)
        # CHECK: lua_setfield(L, -2, "__gc");
        # CHECK: lua_setfield(L, -2, "__close");
        assert 'lua_setfield(L, -2, "__gc");' in glue
        assert 'lua_setfield(L, -2, "__close");' in glue
        # CHECK: lua_pushcfunction(L, l_simple_service_value);
        # CHECK-NEXT: lua_setfield(L, -2, "value");
        assert re.search(r'lua_pushcfunction\(L, l_simple_service_value\);\n    lua_setfield\(L, -2, "value"\);', glue)
        # CHECK: lua_setfield(L, -2, "SimpleService");
        assert re.search(r'lua_pushcfunction\(L, l_simple_service_new\);\n    lua_setfield\(L, -2, "new"\);', glue)
        assert 'lua_setfield(L, -2, "SimpleService");' in glue

    def test_context_callback_runtime(self, glue):
        # CHECK: static int l_callback_with_context(lua_State *L) {
        assert 'static int l_callback_with_context(lua_State *L) {' in glue


class TestAnnotations:

    def test_header_and_footer(self, annotations):
        # CHECK: ---@meta
        assert annotations.startswith('---@meta\n')
        # CHECK: return reference
        assert annotations.rstrip().endswith('return reference')

    def test_struct_class(self, annotations):
        # CHECK: ---@class reference.Vec2
        # CHECK-NEXT: ---@field x? number
        # CHECK-NEXT: ---@field y? number
        assert '---@class reference.Vec2\n---@field x? number\n---@field y? number\n' in annotations

    def test_slice_class(self, annotations):
        # CHECK: ---@class reference.Sliceu8
        # CHECK-NEXT: ---@field [integer] integer
        assert '---@class reference.Sliceu8\n---@field [integer] integer\n' in annotations
        # CHECK: ---@field Sliceu8 fun(t: integer[]): reference.Sliceu8
        assert '---@field Sliceu8 fun(t: integer[]): reference.Sliceu8' in annotations

    def test_enum(self, annotations):
        # CHECK: ---@enum reference.FFIError
        # CHECK: NullPassed = 100,
        assert re.search(r'---@enum reference\.FFIError\nreference\.FFIError = \{\n    Ok = 0,\n    NullPassed = 100,',
                         annotations)

    def test_service(self, annotations):
        # CHECK: ---@field value fun(self: reference.SimpleService): integer
        assert '---@field value fun(self: reference.SimpleService): integer' in annotations
        # CHECK: ---@field new_with fun(value: integer): reference.SimpleService
        assert '---@field new_with fun(value: integer): reference.SimpleService' in annotations
        # CHECK: ---@field SimpleService reference.SimpleServiceConstructors
        assert '---@field SimpleService reference.SimpleServiceConstructors' in annotations

    def test_functions(self, annotations):
        # CHECK: --- Returns x + 1
        # CHECK-NEXT: ---@param x integer
        # CHECK-NEXT: ---@return integer
        # CHECK-NEXT: function reference.PrimitiveU32(x) end
        assert ('--- Returns x + 1\n---@param x integer\n---@return integer\n'
                'function reference.PrimitiveU32(x) end') in annotations
        # CHECK: ---@param text string
        assert '---@param text string\n---@return integer\nfunction reference.AsciiLength(text) end' in annotations
        # CHECK: function reference.ResultFailsRaw(x) end
        assert 'function reference.ResultFailsRaw(x) end' in annotations

    def test_callback_parameters(self, annotations):
        # CHECK: ---@param cb fun(x0: integer): integer
        # CHECK-NEXT: ---@return integer
        # CHECK-NEXT: function reference.CallbackWithContext(cb) end
        assert ('---@param cb fun(x0: integer): integer\n---@return integer\n'
                'function reference.CallbackWithContext(cb) end') in annotations

    def test_constants(self, annotations):
        # CHECK: ---@type integer
        # CHECK-NEXT: reference.MAX_VALUE = 42
        assert '---@type integer\nreference.MAX_VALUE = 42\n' in annotations
        # CHECK: reference.ENABLED = true
        assert 'reference.ENABLED = true' in annotations

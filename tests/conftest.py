"""
Pytest configuration and shared fixtures for ffibind tests.

The reference library exercises every pattern the classifier knows: plain
and generic structs, an error enum, a result struct, slices, an option, an
owned string, a service with an async method, plain and context callbacks,
ascii strings, constants and an API guard.
"""

import os

import pytest

from ffibind.config import GeneratorConfig
from ffibind.generator import Generator
from ffibind.ir import GraphBuilder, Layout

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')

# Functions the Lua target cannot bind (async completion)
LUA_UNSUPPORTED = ['simple_service_add_async']

INTEGER_KINDS = ('i8', 'i16', 'i32', 'i64', 'u8', 'u16', 'u32', 'u64')


def build_reference_graph(async_method: bool = True):
    """Reference library covering every supported pattern"""
    b = GraphBuilder('reference')

    vec2 = b.struct('Vec2', [('x', 'f32'), ('y', 'f32')], doc='2D vector',
                    layout=Layout(8, 4))
    b.struct('Transparent', [('inner', vec2)], repr='transparent')
    b.struct('Packed1', [('x', 'u8'), ('y', 'u32')], repr='packed(1)', layout=Layout(5, 1))
    b.struct('Array', [('data', b.array('u8', 4))])
    error = b.enum('FFIError', [
        ('Ok', 0, 'Call succeeded'),
        ('NullPassed', 100),
        ('Panic', 200),
        ('Fail', 300),
    ])
    payload = b.enum('EnumPayload', [('A', 0), ('B', 1), ('C', 2)])

    b.generic('Slice', ['T'], [
        ('data', {'pointer': 'T'}),
        ('len', 'u64'),
    ])
    b.generic('SliceMut', ['T'], [
        ('data', {'pointer': 'T', 'mutable': True}),
        ('len', 'u64'),
    ])
    b.generic('Option', ['T'], [
        ('value', 'T'),
        ('is_some', 'u8', 'Presence flag'),
    ])
    slice_u8 = b.instance('Slice', ['u8'])
    slice_vec2 = b.instance('Slice', [vec2])
    slice_mut_u32 = b.instance('SliceMut', ['u32'])
    option_vec2 = b.instance('Option', [vec2])

    result_vec2 = b.struct('ResultVec2', [('value', vec2), ('error', error)])
    owned = b.struct('OwnedString', [
        ('ptr', b.pointer('u8')),
        ('len', 'u64'),
        ('capacity', 'u64'),
    ])
    service = b.opaque('SimpleService')
    handle = b.pointer(service, mutable=True)
    out_handle = b.pointer(handle, mutable=True)
    void_ptr = b.pointer('void')

    callback = b.fn_pointer(['u32'], 'u32', name='CallbackU32')
    ctx_callback = b.fn_pointer(['u32', void_ptr], 'u32')
    completion = b.fn_pointer([b.pointer('u64'), void_ptr], 'void')

    b.function('api_version', [], 'u64', api_guard=True)
    b.function('primitive_u32', [('x', 'u32')], 'u32', doc='Returns x + 1')
    for kind in INTEGER_KINDS:
        b.function(f'negate_{kind}', [('x', kind)], kind, doc='Returns -x, wrapping at the type width')
    b.function('pattern_vec2_identity', [('v', vec2)], vec2)
    b.function('enum_identity', [('e', payload)], payload)
    b.function('slice_len', [('s', slice_u8)], 'u64')
    b.function('slice_vec2_first', [('s', slice_vec2)], option_vec2)
    b.function('slice_mut_double', [('s', slice_mut_u32)], 'void')
    b.function('result_fails', [('x', 'u32')], error, raises_on_panic=True)
    b.function('result_vec2_from', [('x', 'f32')], result_vec2)
    b.function('string_create', [('n', 'u32')], owned)
    b.function('owned_string_destroy', [('s', owned)], 'void')
    b.function('ascii_length', [('text', b.pointer('u8'), 'NUL-terminated text')], 'u32')
    b.function('callback_simple', [('cb', callback)], 'u32')
    b.function('callback_with_context', [('cb', ctx_callback), ('ctx', void_ptr)], 'u32')
    b.function('simple_service_new', [('context', out_handle)], error)
    b.function('simple_service_new_with', [('context', out_handle), ('value', 'u32')], error)
    b.function('simple_service_destroy', [('context', out_handle)], error)
    b.function('simple_service_value', [('context', handle)], 'u32')
    if async_method:
        b.function('simple_service_add_async', [
            ('context', handle),
            ('x', 'u64'),
            ('callback', completion),
            ('ctx', void_ptr),
        ], error, is_async=True)

    b.constant('MAX_VALUE', 'u32', 42, doc='Largest accepted value')
    b.constant('SCALE', 'f32', 1.5)
    b.constant('ENABLED', 'bool', True)
    return b.finalize()


@pytest.fixture
def reference_graph():
    return build_reference_graph()


@pytest.fixture
def sync_reference_graph():
    """Reference library without the async method, bindable by every target"""
    return build_reference_graph(async_method=False)


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def generate_target():
    """Run one target over a graph; returns {filename: text}"""
    def run(graph, target, **config):
        cfg = GeneratorConfig(**config)
        return Generator(graph, cfg).run([target])[target]
    return run


@pytest.fixture
def reference_builder():
    """The reference graph factory, for tests that need fresh copies"""
    return build_reference_graph

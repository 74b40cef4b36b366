"""
Unit tests for generic monomorphization.
"""

import pytest

from ffibind.errors import InvalidGraph
from ffibind.ir import GraphBuilder, StructInfo, GenericInfo, InstanceInfo, PointerInfo
from ffibind.monomorph import Monomorphizer


def _slice_builder():
    b = GraphBuilder('lib')
    b.struct('Vec2', [('x', 'f32'), ('y', 'f32')])
    b.generic('Slice', ['T'], [('data', {'pointer': 'T'}), ('len', 'u64')])
    return b


class TestMonomorphizer:

    def test_graph_without_generics_is_returned_as_is(self):
        b = GraphBuilder()
        b.struct('A', [('x', 'u8')])
        graph = b.finalize()
        assert Monomorphizer(graph).run() is graph

    def test_instance_becomes_struct(self):
        b = _slice_builder()
        b.function('sum', [('s', b.instance('Slice', ['Vec2']))], 'Vec2')
        graph = Monomorphizer(b.finalize()).run()

        info = graph.get('Slice<Vec2>')
        assert isinstance(info, StructInfo)
        assert info.name == 'SliceVec2'
        assert info.origin == ('Slice', ('Vec2',))
        data = graph.get(info.fields[0].type)
        assert isinstance(data, PointerInfo) and data.target == 'Vec2'
        assert graph.function('sum').params[0].type == 'Slice<Vec2>'

    def test_families_are_dropped(self):
        b = _slice_builder()
        b.instance('Slice', ['u8'])
        graph = Monomorphizer(b.finalize()).run()
        kinds = {type(info) for info in graph.types()}
        assert GenericInfo not in kinds
        assert InstanceInfo not in kinds

    def test_primitive_argument_label(self):
        b = _slice_builder()
        b.instance('Slice', ['u8'])
        graph = Monomorphizer(b.finalize()).run()
        assert graph.get('Slice<u8>').name == 'Sliceu8'

    def test_identical_instantiations_deduplicate(self):
        b = _slice_builder()
        b.generic('Wrapper', ['T'], [('items', {'apply': 'Slice', 'args': ['T']})])
        b.instance('Slice', ['u8'])
        b.instance('Wrapper', ['u8'])
        b.function('first', [('s', b.instance('Slice', ['u8']))], 'u8')
        mono = Monomorphizer(b.finalize())
        graph = mono.run()

        structs = [i for i in graph.types() if isinstance(i, StructInfo) and i.origin]
        assert sorted(i.id for i in structs) == ['Slice<u8>', 'Wrapper<u8>']
        assert graph.get('Wrapper<u8>').fields[0].type == 'Slice<u8>'
        assert mono.instances[('Slice', ('u8',))] == 'Slice<u8>'

    def test_nested_instance_arguments(self):
        b = _slice_builder()
        b.generic('Option', ['T'], [('value', 'T'), ('is_some', 'u8')])
        inner = b.instance('Slice', ['Vec2'])
        b.instance('Option', [inner])
        graph = Monomorphizer(b.finalize()).run()
        option = graph.get('Option<Slice<Vec2>>')
        assert option.name == 'OptionSliceVec2'
        assert option.fields[0].type == 'Slice<Vec2>'

    def test_pointer_argument_label(self):
        b = _slice_builder()
        b.instance('Slice', [b.pointer('u8', mutable=True)])
        graph = Monomorphizer(b.finalize()).run()
        assert graph.get('Slice<*mut u8>').name == 'SliceMutPtru8'

    def test_functions_and_constants_survive(self, reference_graph):
        graph = Monomorphizer(reference_graph).run()
        assert [f.name for f in graph.functions] == [f.name for f in reference_graph.functions]
        assert graph.constants == reference_graph.constants

    def test_result_is_finalized(self, reference_graph):
        graph = Monomorphizer(reference_graph).run()
        order = graph.value_order()
        assert order.index('Vec2') < order.index('Option<Vec2>')

    def test_wrong_argument_count(self):
        b = _slice_builder()
        with pytest.raises(InvalidGraph):
            b.instance('Slice', ['u8', 'u16'])
            b.finalize()

"""
Unit tests for the generation engine: stage ordering, dispatch, registry.
"""

import logging

import pytest

from ffibind.backend import BACKENDS, Backend, Phase, get_backend, register_backend
from ffibind.config import GeneratorConfig
from ffibind.errors import UnsupportedConstruct
from ffibind.generator import Generator, generate, write_files
from ffibind.ir import GraphBuilder
from ffibind.naming import NameStyle


class RecordingBackend(Backend):
    """Records every engine call"""

    style = NameStyle(target='recording')
    capabilities = frozenset({'packed', 'transparent', 'async'})

    def __init__(self, model, options=None):
        super().__init__(model, options)
        self.calls = []

    def _record(self, operation, info, phase=None):
        self.calls.append((operation, getattr(info, 'id', None) or info.name, phase))

    def emit_primitive(self, info, phase):
        pass

    def emit_struct(self, info, phase):
        self._record('struct', info, phase)

    def emit_enum(self, info, phase):
        self._record('enum', info, phase)

    def emit_opaque(self, info, phase):
        self._record('opaque', info, phase)

    def emit_slice(self, info, pattern, phase):
        self._record('slice', info, phase)

    def emit_option(self, info, pattern, phase):
        self._record('option', info, phase)

    def emit_result(self, info, pattern, phase):
        self._record('result', info, phase)

    def emit_service(self, info, pattern, phase):
        self._record('service', info, phase)

    def emit_string(self, info, pattern, phase):
        self._record('string', info, phase)

    def emit_callback(self, info, pattern, phase):
        self._record('callback', info, phase)

    def emit_function(self, func):
        self._record('function', func)

    def emit_constant(self, const):
        self._record('constant', const)

    def finish(self):
        RecordingBackend.last = self
        return {'calls.txt': '\n'.join(f'{op} {key}' for op, key, _ in self.calls)}


@pytest.fixture
def recording():
    register_backend('recording')(RecordingBackend)
    yield RecordingBackend
    BACKENDS.pop('recording', None)


class TestEngine:

    def test_dispatch_by_pattern(self, reference_graph, recording):
        Generator(reference_graph).run(['recording'])
        calls = {(op, key) for op, key, phase in recording.last.calls if phase == Phase.DECLARE}
        assert ('slice', 'Slice<u8>') in calls
        assert ('option', 'Option<Vec2>') in calls
        assert ('result', 'FFIError') in calls
        assert ('result', 'ResultVec2') in calls
        assert ('service', 'SimpleService') in calls
        assert ('string', 'OwnedString') in calls
        assert ('callback', 'CallbackU32') in calls
        assert ('struct', 'Vec2') in calls
        assert ('enum', 'EnumPayload') in calls

    def test_declare_pass_before_define_pass(self, reference_graph, recording):
        Generator(reference_graph).run(['recording'])
        phases = [phase for _, _, phase in recording.last.calls if phase is not None]
        first_define = phases.index(Phase.DEFINE)
        assert Phase.DECLARE not in phases[first_define:]

    def test_constants_first_functions_last(self, reference_graph, recording):
        Generator(reference_graph).run(['recording'])
        ops = [op for op, _, _ in recording.last.calls]
        assert ops[0] == 'constant'
        assert ops[-1] == 'function'
        assert ops.count('function') == len(reference_graph.functions)

    def test_define_pass_follows_value_order(self, reference_graph, recording):
        Generator(reference_graph).run(['recording'])
        defined = [key for _, key, phase in recording.last.calls if phase == Phase.DEFINE]
        assert defined.index('Vec2') < defined.index('ResultVec2')
        assert defined.index('Vec2') < defined.index('Option<Vec2>')

    def test_deterministic(self, reference_graph, reference_builder):
        first = generate(reference_graph, ['c', 'python'])
        second = generate(reference_builder(), ['c', 'python'])
        assert first == second

    def test_ignore(self, reference_graph, caplog):
        config = GeneratorConfig(ignore=['primitive_u32'])
        generator = Generator(reference_graph, config)
        generator.ignore('not_exported')
        logger = logging.getLogger('ffibind')
        propagate = logger.propagate
        logger.propagate = True
        try:
            with caplog.at_level(logging.WARNING, logger='ffibind'):
                files = generator.run(['c'])['c']
        finally:
            logger.propagate = propagate
        header = files['reference.h']
        assert 'primitive_u32' not in header
        assert 'pattern_vec2_identity' in header
        assert 'ignored symbol not_exported is not exported' in caplog.text

    def test_default_target(self, reference_graph):
        assert list(Generator(reference_graph).run()) == ['c']

    def test_targets_from_config(self, reference_graph):
        config = GeneratorConfig(targets=['python'])
        assert list(Generator(reference_graph, config).run()) == ['python']

    def test_library_name_from_config(self, reference_graph):
        files = generate(reference_graph, ['c'], GeneratorConfig(library='renamed'))['c']
        assert list(files) == ['renamed.h']


class TestRegistry:

    def test_builtin_targets(self):
        for name in ('c', 'python', 'lua'):
            assert get_backend(name).name == name

    def test_unknown_target(self, reference_graph):
        with pytest.raises(UnsupportedConstruct, match='unknown target'):
            Generator(reference_graph).run(['cobol'])

    def test_missing_capability(self, reference_graph):
        with pytest.raises(UnsupportedConstruct) as exc:
            Generator(reference_graph).run(['lua'])
        assert exc.value.target == 'lua'
        assert exc.value.construct == 'async'

    def test_missing_operation(self, reference_graph):
        @register_backend('partial')
        class PartialBackend(Backend):
            style = NameStyle(target='partial')
            capabilities = frozenset({'packed', 'transparent', 'async'})

            def finish(self):
                return {}

        try:
            with pytest.raises(UnsupportedConstruct, match='constant'):
                Generator(reference_graph).run(['partial'])
        finally:
            BACKENDS.pop('partial', None)

    def test_finish_is_required(self):
        class NoOutputBackend(Backend):
            pass

        with pytest.raises(TypeError, match='finish'):
            NoOutputBackend(None)


class TestWriteFiles:

    def test_writes_sorted(self, tmp_path):
        paths = write_files({'b.txt': 'b\n', 'a.txt': 'a\n'}, str(tmp_path / 'out'))
        assert [p.rsplit('/', 1)[-1] for p in paths] == ['a.txt', 'b.txt']
        assert (tmp_path / 'out' / 'a.txt').read_text() == 'a\n'

    def test_lua_writes_glue_and_annotations(self, tmp_path, sync_reference_graph):
        files = generate(sync_reference_graph, ['lua'])['lua']
        write_files(files, str(tmp_path))
        assert sorted(p.name for p in tmp_path.iterdir()) == ['reference_lua.c', 'types']
        assert (tmp_path / 'types' / 'reference.lua').read_text().startswith('---@meta')


def test_empty_graph():
    graph = GraphBuilder('empty').finalize()
    files = generate(graph, ['c', 'python', 'lua'])
    assert set(files['c']) == {'empty.h'}
    assert set(files['python']) == {'empty.py'}
    assert set(files['lua']) == {'empty_lua.c', 'types/empty.lua'}

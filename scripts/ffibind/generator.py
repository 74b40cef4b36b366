"""
Main generator module

Orchestrates all stages: function filtering, monomorphization,
classification, then per target naming, validation and the two-pass
emission driven through the backend registry.
"""

import os
from typing import Iterable, Optional

from .backend import Backend, Phase, get_backend
from .config import GeneratorConfig
from .ir import TypeGraph, TypeInfo, PrimitiveInfo, StructInfo, EnumInfo, OpaqueInfo
from .log import get_logger
from .model import BindingModel
from .monomorph import Monomorphizer
from .naming import Namer
from .patterns import (
    Classification, Classifier, SlicePattern, OptionPattern, ResultPattern, ServicePattern,
    OwnedStringPattern, CallbackPattern,
)
from .validate import Validator

logger = get_logger(__name__)

PATTERN_OPERATIONS = {
    SlicePattern: 'emit_slice',
    OptionPattern: 'emit_option',
    ResultPattern: 'emit_result',
    ServicePattern: 'emit_service',
    OwnedStringPattern: 'emit_string',
    CallbackPattern: 'emit_callback',
}

NODE_OPERATIONS = {
    PrimitiveInfo: 'emit_primitive',
    StructInfo: 'emit_struct',
    EnumInfo: 'emit_enum',
    OpaqueInfo: 'emit_opaque',
}


class Generator:
    """Main binding generator"""

    def __init__(self, graph: TypeGraph, config: Optional[GeneratorConfig] = None):
        self.graph = graph
        self.config = config or GeneratorConfig()
        self._ignores: set[str] = set(self.config.ignore)

    def ignore(self, *names: str):
        """Add functions to leave out of every target"""
        self._ignores.update(names)

    def prepare(self) -> tuple[TypeGraph, Classification]:
        """Target-independent stages"""
        graph = self.graph
        if self._ignores:
            known = {f.name for f in graph.functions}
            for name in sorted(self._ignores - known):
                logger.warning('ignored symbol %s is not exported', name)
            graph = graph.without_functions(self._ignores)
        graph = Monomorphizer(graph).run()
        classification = Classifier(graph).run()
        return graph, classification

    def run(self, targets: Optional[Iterable[str]] = None) -> dict[str, dict[str, str]]:
        """Generate every requested target; returns {target: {filename: text}}"""
        targets = list(targets or self.config.targets or ['c'])
        graph, classification = self.prepare()
        results = {}
        for target in targets:
            results[target] = self.generate_target(target, graph, classification)
        return results

    def generate_target(self, target: str, graph: TypeGraph,
                        classification: Classification) -> dict[str, str]:
        backend_cls = get_backend(target)
        naming = Namer(graph, classification, backend_cls.style, self.config.type_prefix).run()
        model = BindingModel(graph, classification, naming, self.config)

        validator = Validator(model)
        validator.pre()

        backend = backend_cls(model, self.config.options(target))
        backend.check_capabilities()

        backend.begin()
        for const in graph.constants:
            backend.emit_constant(const)
        for info in graph.types():
            self._emit(backend, info, Phase.DECLARE)
        order = graph.value_order()
        logger.debug('%s: definition order %s', target, ', '.join(order))
        for type_id in order:
            self._emit(backend, graph.get(type_id), Phase.DEFINE)
        for func in graph.functions:
            backend.emit_function(func)
        outputs = backend.finish()

        validator.post(outputs)
        logger.debug('%s: generated %s', target, ', '.join(sorted(outputs)))
        return outputs

    def _emit(self, backend: Backend, info: TypeInfo, phase: Phase):
        pattern = backend.model.pattern(info.id)
        if pattern is not None:
            getattr(backend, PATTERN_OPERATIONS[type(pattern)])(info, pattern, phase)
            return
        operation = NODE_OPERATIONS.get(type(info))
        # Pointers and arrays are spelled inline at their use sites.
        if operation is not None:
            getattr(backend, operation)(info, phase)


def write_files(files: dict[str, str], output_dir: str) -> list[str]:
    """Write generated files; returns the written paths"""
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for filename, text in sorted(files.items()):
        path = os.path.join(output_dir, filename)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, 'w', newline='\n') as f:
            f.write(text)
        written.append(path)
    return written


def generate(graph: TypeGraph, targets: Iterable[str],
             config: Optional[GeneratorConfig] = None) -> dict[str, dict[str, str]]:
    """Convenience wrapper around Generator(graph, config).run(targets)"""
    return Generator(graph, config).run(targets)

"""
Model validation

pre() runs on the model before any emitter sees it; post() runs on the
emitted files. Every violation is fatal and names the offending node.
"""

import re

from .errors import InvalidGraph, LayoutMismatch, UnresolvedType
from .ir import (
    StructInfo, EnumInfo, OpaqueInfo, FnPointerInfo, ArrayInfo, GenericInfo, InstanceInfo,
    PrimitiveKind, PrimitiveInfo, type_references, describe,
)
from .layout import LayoutCalculator
from .log import get_logger
from .model import BindingModel

logger = get_logger(__name__)


class Validator:
    """Graph-level and output-level checks for one target"""

    def __init__(self, model: BindingModel):
        self.model = model
        self.graph = model.graph

    def pre(self):
        self._check_references()
        self._check_names()
        self._check_functions()
        logger.debug('%s: pre-emission checks passed', self.model.naming.style.target)

    def post(self, outputs: dict[str, str]):
        self._check_layouts()
        self._check_symbols(outputs)
        logger.debug('%s: post-emission checks passed', self.model.naming.style.target)

    def _check_references(self):
        for info in self.graph.types():
            if isinstance(info, (GenericInfo, InstanceInfo)):
                raise InvalidGraph(describe(info), 'generic node left after monomorphization')
            for ref, _ in type_references(info):
                if ref not in self.graph:
                    raise UnresolvedType(ref, describe(info))
        for func in self.graph.functions:
            for ref in [p.type for p in func.params] + [func.ret]:
                if ref not in self.graph:
                    raise UnresolvedType(ref, describe(func))

    def _check_names(self):
        naming = self.model.naming
        for info in self.graph.types():
            if isinstance(info, (StructInfo, EnumInfo, OpaqueInfo, FnPointerInfo)) and info.id not in naming.types:
                raise InvalidGraph(describe(info), 'node has no target name')
        for func in self.graph.functions:
            if func.name not in naming.functions:
                raise InvalidGraph(describe(func), 'function has no target name')

    def _check_functions(self):
        for func in self.graph.functions:
            node = describe(func)
            for param in func.params:
                if isinstance(self.graph.get(param.type), ArrayInfo):
                    raise InvalidGraph(node, f'array parameter {param.name} passed by value')
            if isinstance(self.graph.get(func.ret), ArrayInfo):
                raise InvalidGraph(node, 'array returned by value')

            annotations = func.annotations
            if annotations.raises_on_panic and self.model.result_of(func) is None:
                raise InvalidGraph(node, 'raises_on_panic requires a result return type')
            if annotations.must_check_result and self._is_void(func.ret):
                raise InvalidGraph(node, 'must_check_result on a function returning void')
            if annotations.api_guard:
                ret = self.graph.get(func.ret)
                if func.params or not isinstance(ret, PrimitiveInfo) or ret.kind != PrimitiveKind.U64:
                    raise InvalidGraph(node, 'api guard functions have signature () -> u64')

    def _is_void(self, type_id) -> bool:
        info = self.graph.get(type_id)
        return isinstance(info, PrimitiveInfo) and info.kind == PrimitiveKind.VOID

    def _check_layouts(self):
        calc = LayoutCalculator(self.graph, self.model.config.pointer_width)
        checked = 0
        for info in self.graph.types():
            if not isinstance(info, StructInfo):
                continue
            computed = calc.layout(info.id)
            checked += 1
            if info.layout is not None and (info.layout.size, info.layout.align) != (computed.size, computed.align):
                raise LayoutMismatch(describe(info), (info.layout.size, info.layout.align),
                                     (computed.size, computed.align))
        logger.debug('recomputed %d struct layout(s)', checked)

    def _check_symbols(self, outputs: dict[str, str]):
        text = '\n'.join(outputs.values())
        for func in self.graph.functions:
            if not re.search(rf'\b{re.escape(func.name)}\b', text):
                raise InvalidGraph(describe(func), 'native symbol missing from emitted output')

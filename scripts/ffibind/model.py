"""
Binding model

Everything one backend needs for one target: the monomorphized graph, its
classification, the target's naming and the generator configuration.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from .ir import TypeGraph, TypeId, FuncInfo, StructInfo, PrimitiveInfo, PointerInfo
from .naming import Naming
from .patterns import Classification, Pattern, ResultPattern, ServicePattern, Site

if TYPE_CHECKING:
    from .config import GeneratorConfig


@dataclass
class BindingModel:
    graph: TypeGraph
    classification: Classification
    naming: Naming
    config: 'GeneratorConfig'

    @property
    def library(self) -> str:
        return self.config.library or self.graph.library or 'library'

    @property
    def api_hash(self) -> int:
        return self.graph.api_hash()

    def pattern(self, type_id: TypeId) -> Optional[Pattern]:
        return self.classification.pattern(type_id)

    def site(self, site: Site) -> Optional[Pattern]:
        return self.classification.site(site)

    def result_of(self, func: FuncInfo) -> Optional[ResultPattern]:
        return self.classification.result_of(func)

    def service_of(self, func: FuncInfo) -> Optional[ServicePattern]:
        return self.classification.service_of(func.name)

    def is_checked(self, func: FuncInfo) -> bool:
        """Checked calls raise on a non-success code"""
        return self.result_of(func) is not None

    def is_packed(self) -> bool:
        return any(isinstance(i, StructInfo) and i.repr.is_packed for i in self.graph.types())

    def api_guard(self) -> Optional[FuncInfo]:
        for func in self.graph.functions:
            if func.annotations.api_guard:
                return func
        return None

    def is_primitive(self, type_id: TypeId, *kinds: str) -> bool:
        info = self.graph.get(type_id)
        return isinstance(info, PrimitiveInfo) and (not kinds or info.kind.value in kinds)

    def pointee(self, type_id: TypeId) -> Optional[TypeId]:
        info = self.graph.get(type_id)
        return info.target if isinstance(info, PointerInfo) else None

    def required_capabilities(self) -> set[str]:
        """Capabilities a backend needs to emit this model"""
        needed = set()
        if self.classification.async_methods:
            needed.add('async')
        if self.is_packed():
            needed.add('packed')
        if any(info.repr.is_transparent for info in self.graph.types() if isinstance(info, StructInfo)):
            needed.add('transparent')
        return needed

"""
C header target

Emits <library>.h: forward declarations and enums in the declaration pass,
function pointer typedefs and struct bodies in the definition pass, then one
prototype per exported function.
"""

from ..backend import Backend, Phase, register_backend
from ..codegen import CodeGen, as_flat_upper
from ..ir import (
    TypeId, PrimitiveInfo, PrimitiveKind, StructInfo, EnumInfo, OpaqueInfo, PointerInfo,
    FnPointerInfo, ArrayInfo,
)
from ..naming import NameStyle
from ..patterns import AsciiPointerPattern, param_site, return_site, field_site

C_KEYWORDS = frozenset({
    'auto', 'break', 'case', 'char', 'const', 'continue', 'default', 'do', 'double',
    'else', 'enum', 'extern', 'float', 'for', 'goto', 'if', 'inline', 'int', 'long',
    'register', 'restrict', 'return', 'short', 'signed', 'sizeof', 'static', 'struct',
    'switch', 'typedef', 'union', 'unsigned', 'void', 'volatile', 'while', 'bool',
    'true', 'false',
})

C_PRIMITIVES = {
    PrimitiveKind.VOID: 'void',
    PrimitiveKind.BOOL: 'bool',
    PrimitiveKind.U8: 'uint8_t',
    PrimitiveKind.U16: 'uint16_t',
    PrimitiveKind.U32: 'uint32_t',
    PrimitiveKind.U64: 'uint64_t',
    PrimitiveKind.I8: 'int8_t',
    PrimitiveKind.I16: 'int16_t',
    PrimitiveKind.I32: 'int32_t',
    PrimitiveKind.I64: 'int64_t',
    PrimitiveKind.F32: 'float',
    PrimitiveKind.F64: 'double',
}

C_STYLE = NameStyle(
    target='c',
    type_case='preserve',
    function_case='preserve',
    method_case='preserve',
    keywords=C_KEYWORDS,
    prefixed_variants=True,
    shared_namespace=True,
)

NODISCARD = 'FFI_NODISCARD'


class CTypes:
    """Spells graph types as C types and declarators"""

    def __init__(self, graph, naming):
        self.graph = graph
        self.naming = naming

    def c_type(self, type_id: TypeId) -> str:
        info = self.graph.get(type_id)
        if isinstance(info, PrimitiveInfo):
            return C_PRIMITIVES[info.kind]
        if isinstance(info, PointerInfo):
            target = self.graph.get(info.target)
            inner = self.c_type(info.target)
            if isinstance(target, PointerInfo):
                return inner + ('*' if info.mutable else ' const*')
            return inner + '*' if info.mutable else f'const {inner}*'
        if isinstance(info, ArrayInfo):
            # Arrays only appear through c_decl.
            return self.c_type(info.element) + '*'
        return self.naming.type(type_id)

    def c_decl(self, type_id: TypeId, name: str, ascii: bool = False) -> str:
        """Declarator for a field or parameter"""
        if ascii:
            return f'const char* {name}'
        info = self.graph.get(type_id)
        suffix = ''
        while isinstance(info, ArrayInfo):
            suffix += f'[{info.len}]'
            info = self.graph.get(info.element)
        return f'{self.c_type(info.id)} {name}{suffix}'


@register_backend('c')
class CBackend(Backend):
    """C header emitter"""

    style = C_STYLE
    capabilities = frozenset({'packed', 'transparent', 'async'})

    def __init__(self, model, options=None):
        super().__init__(model, options)
        self.types = CTypes(self.graph, self.naming)
        self._constants = CodeGen()
        self._declarations = CodeGen()
        self._definitions = CodeGen()
        self._functions = CodeGen()
        self._fn_typedefs: set[str] = set()

    def _doc(self, gen: CodeGen, text: str):
        if text and self.model.config.docs:
            gen.comment(text, '///')

    # --------------------------------------------------------------------------
    # Types
    # --------------------------------------------------------------------------

    def emit_primitive(self, info, phase):
        pass

    def emit_opaque(self, info: OpaqueInfo, phase: Phase):
        if phase == Phase.DECLARE:
            name = self.naming.type(info.id)
            self._doc(self._declarations, info.doc)
            self._declarations.line(f'typedef struct {name} {name};')

    def emit_enum(self, info: EnumInfo, phase: Phase):
        # Enums have no dependencies and cannot be forward declared.
        if phase != Phase.DECLARE:
            return
        gen = self._declarations
        name = self.naming.type(info.id)
        gen.blank()
        self._doc(gen, info.doc)
        with gen.block(f'typedef enum {name} {{', f'}} {name};'):
            for item in info.items:
                self._doc(gen, item.doc)
                gen.line(f'{self.naming.variant(info.id, item.name)} = {item.value},')
        gen.blank()

    def emit_struct(self, info: StructInfo, phase: Phase):
        name = self.naming.type(info.id)
        if info.repr.is_transparent:
            if phase == Phase.DEFINE:
                self._doc(self._definitions, info.doc)
                self._definitions.line(f'typedef {self.types.c_decl(info.fields[0].type, name)};')
                self._definitions.blank()
            return

        if phase == Phase.DECLARE:
            self._declarations.line(f'typedef struct {name} {name};')
            return

        # C does not allow empty structs; the forward declaration stands alone.
        if not info.fields:
            return
        gen = self._definitions
        self._doc(gen, info.doc)
        if info.repr.is_packed:
            gen.line(f'#pragma pack(push, {info.repr.align})')
        with gen.block(f'struct {name} {{', '};'):
            for i, f in enumerate(info.fields):
                self._doc(gen, f.doc)
                ascii = isinstance(self.model.site(field_site(info.id, i)), AsciiPointerPattern)
                gen.line(self.types.c_decl(f.type, self.naming.field(info.id, f.name), ascii) + ';')
        if info.repr.is_packed:
            gen.line('#pragma pack(pop)')
        gen.blank()

    def emit_slice(self, info, pattern, phase):
        self.emit_struct(info, phase)

    def emit_option(self, info, pattern, phase):
        self.emit_struct(info, phase)

    def emit_string(self, info, pattern, phase):
        self.emit_struct(info, phase)

    def emit_result(self, info, pattern, phase):
        if pattern.is_enum_form:
            self.emit_enum(info, phase)
        else:
            self.emit_struct(info, phase)

    def emit_service(self, info, pattern, phase):
        self.emit_opaque(info, phase)

    def emit_callback(self, info: FnPointerInfo, pattern, phase: Phase):
        if phase != Phase.DEFINE:
            return
        name = self.naming.type(info.id)
        params = ', '.join(f'{self.types.c_type(p)} x{i}' for i, p in enumerate(info.params)) or 'void'
        typedef = f'typedef {self.types.c_type(info.ret)} (*{name})({params});'
        if typedef in self._fn_typedefs:
            return
        self._fn_typedefs.add(typedef)
        self._doc(self._definitions, info.doc)
        self._definitions.line(typedef)
        self._definitions.blank()

    # --------------------------------------------------------------------------
    # Functions and constants
    # --------------------------------------------------------------------------

    def emit_constant(self, const):
        info = self.graph.get(const.type)
        self._doc(self._constants, const.doc)
        self._constants.line(
            f'static const {C_PRIMITIVES[info.kind]} {self.naming.constant(const.name)} = '
            f'{c_literal(const.value, info.kind)};'
        )

    def emit_function(self, func):
        gen = self._functions
        params = []
        for i, p in enumerate(func.params):
            ascii = isinstance(self.model.site(param_site(func.name, i)), AsciiPointerPattern)
            params.append(self.types.c_decl(p.type, self.naming.param(func.name, i), ascii))
        if isinstance(self.model.site(return_site(func.name)), AsciiPointerPattern):
            ret = 'const char*'
        else:
            ret = self.types.c_type(func.ret)

        attributes = []
        if self.model.is_checked(func) or func.annotations.must_check_result:
            attributes.append(NODISCARD)
        if self.options.get('function_attribute'):
            attributes.append(self.options['function_attribute'])
        prefix = ' '.join(attributes) + ' ' if attributes else ''

        self._doc(gen, func.doc)
        gen.line(f'{prefix}{ret} {self.naming.function(func.name)}({", ".join(params) or "void"});')
        if self.model.config.docs and func.doc:
            gen.line()

    # --------------------------------------------------------------------------
    # Assembly
    # --------------------------------------------------------------------------

    def finish(self) -> dict[str, str]:
        guard = self.options.get('ifndef') or as_flat_upper(self.model.library) + '_H'
        gen = CodeGen()
        if self.options.get('header_comment'):
            gen.line(self.options['header_comment'])
            gen.line()
        gen.line(f'#ifndef {guard}')
        gen.line(f'#define {guard}')
        gen.line()
        gen.lines('#ifdef __cplusplus', 'extern "C" {', '#endif')
        gen.line()
        gen.lines('#include <stdint.h>', '#include <stdbool.h>')
        for directive in self.options.get('directives', []):
            gen.line(directive)
        gen.line()
        gen.lines(
            f'#ifndef {NODISCARD}',
            '  #if defined(__GNUC__) || defined(__clang__)',
            f'    #define {NODISCARD} __attribute__((warn_unused_result))',
            '  #else',
            f'    #define {NODISCARD}',
            '  #endif',
            '#endif',
        )
        gen.line()

        if self.model.api_guard() is not None:
            gen.line(f'#define {as_flat_upper(self.model.library)}_API_VERSION {self.model.api_hash:#018x}ULL')
            gen.line()

        for section in (self._constants, self._declarations, self._definitions, self._functions):
            text = section.output().strip('\n')
            if text:
                gen.raw(text)
                gen.line()

        gen.lines('#ifdef __cplusplus', '}', '#endif')
        gen.line()
        gen.line(f'#endif /* {guard} */')
        return {f'{self.model.library}.h': gen.output()}


def c_literal(value, kind: PrimitiveKind) -> str:
    if kind == PrimitiveKind.BOOL:
        return 'true' if value else 'false'
    if kind.is_float:
        text = repr(float(value))
        return text + 'f' if kind == PrimitiveKind.F32 else text
    if kind == PrimitiveKind.U64:
        return f'{int(value)}ULL'
    if kind == PrimitiveKind.I64:
        return f'{int(value)}LL'
    return str(int(value))

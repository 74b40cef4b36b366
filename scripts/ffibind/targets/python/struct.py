"""
Structure generation module

ctypes.Structure classes for plain structs and the struct-shaped patterns
(slice, option, result, owned string). Classes are declared first with
their methods and receive _fields_ in the definition pass, so
self-referencing and mutually referencing structs work.
"""

from typing import TYPE_CHECKING

from ...codegen import CodeGen
from ...ir import StructInfo, EnumInfo
from ...patterns import (
    AsciiPointerPattern, SlicePattern, OptionPattern, ResultPattern, OwnedStringPattern,
    field_site,
)
from .types import CtypesMapper

if TYPE_CHECKING:
    from ...model import BindingModel


class StructGenerator:
    """Generates ctypes.Structure classes"""

    def __init__(self, model: 'BindingModel', types: CtypesMapper):
        self.model = model
        self.naming = model.naming
        self.types = types

    def _field(self, info: StructInfo, name: str) -> str:
        return self.naming.field(info.id, name)

    def _open_class(self, gen: CodeGen, info: StructInfo, default_doc: str):
        gen.line(f'class {self.naming.type(info.id)}(ctypes.Structure):')
        gen.indent()
        gen.docstring(info.doc if info.doc and self.model.config.docs else default_doc)
        gen.line()

    def _close_class(self, gen: CodeGen):
        gen.dedent()
        gen.line()
        gen.line()

    # --------------------------------------------------------------------------
    # Definition pass
    # --------------------------------------------------------------------------

    def generate_fields(self, info: StructInfo, gen: CodeGen):
        name = self.naming.type(info.id)
        if info.repr.is_packed:
            # _pack_ follows the MSVC rules, which agree with pragma pack.
            gen.line(f"{name}._layout_ = 'ms'")
            gen.line(f'{name}._pack_ = {info.repr.align}')
        if not info.fields:
            gen.line(f'{name}._fields_ = []')
            gen.line()
            return
        gen.line(f'{name}._fields_ = [')
        gen.indent()
        for i, f in enumerate(info.fields):
            ascii = isinstance(self.model.site(field_site(info.id, i)), AsciiPointerPattern)
            gen.line(f"('{self._field(info, f.name)}', {self.types.ctype(f.type, ascii)}),")
        gen.dedent()
        gen.line(']')
        gen.line()

    def generate_alias(self, info: StructInfo, gen: CodeGen):
        """Transparent structs are their single field at the ABI"""
        gen.line(f'{self.naming.type(info.id)} = {self.types.ctype(info.fields[0].type)}')
        gen.line()

    # --------------------------------------------------------------------------
    # Declaration pass
    # --------------------------------------------------------------------------

    def generate_struct(self, info: StructInfo, gen: CodeGen):
        name = self.naming.type(info.id)
        self._open_class(gen, info, f'{name} struct')
        items = ', '.join(f'{self._field(info, f.name)}={{self.{self._field(info, f.name)}!r}}'
                          for f in info.fields)
        with gen.block('def __repr__(self):', None):
            gen.line(f"return f'{name}({items})'")
        self._close_class(gen)

    def generate_slice(self, info: StructInfo, pattern: SlicePattern, gen: CodeGen):
        name = self.naming.type(info.id)
        element = self.types.ctype(pattern.element)
        data = self._field(info, pattern.data_field)
        length = self._field(info, pattern.len_field)
        kind = 'Mutable slice' if pattern.mutable else 'Slice'
        self._open_class(gen, info, f'{kind} of {element} borrowed from native code')

        gen.lines(
            'def __len__(self):',
            f'    return self.{length}',
            '',
            'def _index(self, i):',
            f'    index = i + self.{length} if i < 0 else i',
            f'    if index < 0 or index >= self.{length}:',
            f"        raise IndexError(f'index {{i}} out of range for slice of length {{self.{length}}}')",
            '    return index',
            '',
            'def __getitem__(self, i):',
            f'    return self.{data}[self._index(i)]',
            '',
        )
        if pattern.mutable:
            gen.lines(
                'def __setitem__(self, i, value):',
                f'    self.{data}[self._index(i)] = value',
                '',
            )
        gen.lines(
            'def __iter__(self):',
            f'    for i in range(self.{length}):',
            f'        yield self.{data}[i]',
            '',
            'def copied(self):',
            '    """Owned copy, valid after the borrowed buffer is gone"""',
            f'    array = ({element} * len(self))()',
            '    if len(self):',
            f'        ctypes.memmove(array, self.{data}, len(self) * ctypes.sizeof({element}))',
            f'    rval = {name}({data}=ctypes.cast(array, ctypes.POINTER({element})), {length}=len(self))',
            '    rval._owned = array',
            '    return rval',
            '',
            '@classmethod',
            'def from_sequence(cls, values):',
            '    """Slice over a fresh buffer holding values"""',
            '    values = list(values)',
            f'    array = ({element} * len(values))(*values)',
            f'    rval = cls({data}=ctypes.cast(array, ctypes.POINTER({element})), {length}=len(values))',
            '    rval._owned = array',
            '    return rval',
        )
        if self.types.size_one(pattern.element):
            gen.lines(
                '',
                'def bytearray(self):',
                f'    if not self.{length}:',
                '        return bytearray()',
                f'    return bytearray(ctypes.string_at(self.{data}, self.{length}))',
            )
        self._close_class(gen)

    def generate_option(self, info: StructInfo, pattern: OptionPattern, gen: CodeGen):
        name = self.naming.type(info.id)
        value = self._field(info, pattern.value_field)
        flag = self._field(info, pattern.flag_field)
        self._open_class(gen, info, 'May optionally hold a value; the flag is 1 when present')
        gen.lines(
            '@classmethod',
            'def some(cls, value):',
            f'    return cls({value}=value, {flag}=1)',
            '',
            '@classmethod',
            'def none(cls):',
            f'    return cls({flag}=0)',
            '',
            'def is_some(self):',
            f'    if self.{flag} == 1:',
            '        return True',
            f'    if self.{flag} == 0:',
            '        return False',
            f"    raise UnexpectedDiscriminant(f'invalid presence flag {{self.{flag}}} in {name}', self.{flag})",
            '',
            'def is_none(self):',
            '    return not self.is_some()',
            '',
            'def unwrap(self):',
            '    if not self.is_some():',
            f"        raise InteropError('unwrap() called on an empty {name}')",
            f'    return self.{value}',
            '',
            'def get(self, default=None):',
            f'    return self.{value} if self.is_some() else default',
        )
        self._close_class(gen)

    def generate_result(self, info: StructInfo, pattern: ResultPattern, gen: CodeGen):
        error_enum = self.model.graph.get(pattern.error_enum)
        assert isinstance(error_enum, EnumInfo)
        enum_name = self.naming.type(error_enum.id)
        value = self._field(info, pattern.value_field)
        error = self._field(info, pattern.error_field)
        self._open_class(gen, info, f'Value or {enum_name} error code')
        gen.lines(
            'def is_ok(self):',
            f'    return self.{error} == {pattern.success}',
            '',
            'def unwrap(self):',
            f"    _check_{enum_name}(self.{error}, '{self.naming.type(info.id)}')",
            f'    return self.{value}',
        )
        self._close_class(gen)

    def generate_string(self, info: StructInfo, pattern: OwnedStringPattern, gen: CodeGen):
        ptr = self._field(info, pattern.ptr_field)
        length = self._field(info, pattern.len_field)
        destroy = pattern.destroy.name
        self._open_class(gen, info, 'UTF-8 string owned by native code; free() it exactly once')
        gen.lines(
            '_freed = False',
            '',
            'def to_bytes(self):',
            '    if self._freed:',
            "        raise InvalidHandle('owned string read after free()')",
            f'    if not self.{length}:',
            "        return b''",
            f'    return ctypes.string_at(self.{ptr}, self.{length})',
            '',
            'def to_str(self):',
            "    return self.to_bytes().decode('utf-8')",
            '',
            'def free(self, lib):',
            f'    """Release the buffer through {destroy}"""',
            '    if self._freed:',
            "        raise InvalidHandle('owned string freed twice')",
            '    self._freed = True',
        )
        result = self.model.result_of(pattern.destroy)
        if result is not None and result.is_enum_form:
            enum_name = self.naming.type(result.error_enum)
            gen.line(f"    _check_{enum_name}(lib.raw.{destroy}(self), '{destroy}')")
        else:
            gen.line(f'    lib.raw.{destroy}(self)')
        self._close_class(gen)

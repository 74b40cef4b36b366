"""
Runtime prelude of generated Python modules

Error taxonomy, discriminant checks and the callback context registry.
Emitted verbatim at the top of every module so generated bindings only
need the standard library.
"""

RUNTIME = '''\
class InteropError(Exception):
    """A native call failed; code carries the native return code"""

    def __init__(self, message, code=None):
        super().__init__(message)
        self.code = code


class NativePanic(InteropError):
    """Native code panicked; the panic was caught at the boundary"""


class InvalidHandle(InteropError):
    """A handle or owned value was used after it was released"""


class UnexpectedDiscriminant(InteropError):
    """A native value is outside its documented range"""


def _enum_value(cls, raw):
    try:
        return cls(raw)
    except ValueError:
        raise UnexpectedDiscriminant(f'{raw} is not a valid {cls.__name__}', raw) from None


class _CallbackRegistry:
    """Maps integer context handles to Python objects

    Handles travel through native code as void pointers; 0 is never issued
    so a NULL context is always invalid.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._next = 1
        self._objects = {}

    def register(self, obj):
        with self._lock:
            handle = self._next
            self._next += 1
            self._objects[handle] = obj
        return handle

    def get(self, handle):
        with self._lock:
            try:
                return self._objects[handle]
            except KeyError:
                raise InvalidHandle(f'unknown callback context {handle}') from None

    def pop(self, handle):
        """Remove and return the object, or None if already taken"""
        with self._lock:
            return self._objects.pop(handle, None)

    def release(self, handle):
        with self._lock:
            self._objects.pop(handle, None)

    def __len__(self):
        with self._lock:
            return len(self._objects)
'''


def write_runtime(gen):
    gen.raw(RUNTIME.rstrip('\n'))

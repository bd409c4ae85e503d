from collections.abc import Sequence
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

Scalar = Union[int, float, bool]
Value = Union[Scalar, Sequence[Scalar], None]


class BlockType(str, Enum):
    """Structured control regions that emit begin/end records."""

    FUNCTION = "function"
    BLOCK = "block"
    LOOP = "loop"
    IF = "if"
    ELSE = "else"

    def __str__(self) -> str:
        return self.value


class Location(BaseModel):
    """Static position of an instruction.

    ``instr`` is the index of the instruction inside the body of function
    ``func``. The implicit begin of a function body has no instruction and
    uses ``instr == -1``.
    """

    model_config = ConfigDict(frozen=True)

    func: int = Field(description="Function index inside the module.")
    instr: int = Field(description="Instruction index inside the function body, -1 for the function begin.")

    def __str__(self) -> str:
        return f"{{func: {self.func}, instr: {self.instr}}}"


class BranchTarget(BaseModel):
    """Destination of a branch: relative label and the location it resolves to."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    label: Any = Field(description="Relative branch label.")
    location: Any = Field(description="Location the label resolves to.")

    def __str__(self) -> str:
        return f"{{label: {render_value(self.label)}, location: {render_value(self.location)}}}"


class MemArg(BaseModel):
    """Memory access site: dynamic base address plus static offset and alignment."""

    model_config = ConfigDict(frozen=True)

    addr: int | None = None
    offset: int = 0
    align: int = 0

    def __str__(self) -> str:
        return f"{{addr: {render_value(self.addr)}, offset: {self.offset}, align: {self.align}}}"


def render_value(value: Any) -> str:
    """Render a location, target, memarg or runtime value as trace text.

    Sequences (lists and tuples) render as ``[a, b]`` with every element
    rendered recursively; everything else renders with ``str()``.
    """

    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_value(v) for v in value) + "]"
    return str(value)


def join_i64(low: int, high: int) -> int:
    """Rebuild a signed 64 bit integer passed as two 32 bit halves."""

    value = ((high & 0xFFFFFFFF) << 32) | (low & 0xFFFFFFFF)
    if value & (1 << 63):
        value -= 1 << 64
    return value

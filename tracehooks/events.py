from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Discriminator, Field

from tracehooks.values import render_value


def _label(target):
    return getattr(target, "label", target)


def _resolved(target):
    return getattr(target, "location", None)


class Event(BaseModel):
    """Base class shared by all instruction event records.

    Concrete event types extend this with the payload of one instruction kind.
    Payload fields are typed ``Any`` on purpose: locations, targets, memargs
    and values are passed through untouched and only rendered.

    Consumers should discriminate event payloads using the ``event`` field.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    location: Any = Field(
        description=(
            "Static location of the instruction that fired the hook.\n\n"
            "Rendered first on every trace line."
        )
    )
    event: str = Field(description="Event type discriminator.")

    def record_parts(self) -> list[Any]:
        """Tag and payload parts following the location, in trace order."""
        raise NotImplementedError

    def render(self) -> str:
        """Render the event as one trace line (without line terminator)."""
        return " ".join(render_value(part) for part in [self.location, *self.record_parts()])


class IfEvent(Event):
    """Evaluation of an ``if`` condition, emitted on either branch."""

    event: Literal["if"] = Field(default="if", description="Discriminator for if condition events.")
    condition: Any = Field(description="Runtime condition value.")

    def record_parts(self):
        return ["if, condition =", self.condition]


class BrEvent(Event):
    """Unconditional branch."""

    event: Literal["br"] = Field(default="br", description="Discriminator for unconditional branch events.")
    target: Any = Field(description="Branch target (label and resolved location).")

    def record_parts(self):
        return ["br, to label #", _label(self.target), f"(== {render_value(_resolved(self.target))})"]


class BrIfEvent(Event):
    """Conditional branch. The branch is taken only if the condition is
    truthy; the event only reports it."""

    event: Literal["br_if"] = Field(default="br_if", description="Discriminator for conditional branch events.")
    target: Any = Field(description="Branch target (label and resolved location).")
    condition: Any = Field(description="Runtime branch condition.")

    def record_parts(self):
        return [
            "br_if, possibly to label #",
            _label(self.target),
            f"(== {render_value(_resolved(self.target))}),",
            "condition =",
            self.condition,
        ]


class BrTableEvent(Event):
    """Table branch. The index is reported as-is and never bounds-checked."""

    event: Literal["br_table"] = Field(default="br_table", description="Discriminator for table branch events.")
    table: Any = Field(description="Ordered branch targets of the table.")
    default_target: Any = Field(description="Target taken when the index is out of the table.")
    table_index: Any = Field(description="Runtime index into the table.")

    def record_parts(self):
        return [
            "br_table, table =",
            render_value(self.table) + ",",
            "default target =",
            render_value(self.default_target) + ",",
            "table index =",
            self.table_index,
        ]


class BeginEvent(Event):
    event: Literal["begin"] = Field(default="begin", description="Discriminator for block begin events.")
    block_type: Any = Field(description="Kind of structured region entered (function, block, loop, if, else).")

    def record_parts(self):
        return ["begin", self.block_type]


class EndEvent(Event):
    """Exit from a structured region.

    ``begin_location`` is whatever the caller supplied; it is expected to be
    the location of the matching begin but that is not checked here.
    """

    event: Literal["end"] = Field(default="end", description="Discriminator for block end events.")
    block_type: Any = Field(description="Kind of structured region left.")
    begin_location: Any = Field(description="Location of the matching begin record.")

    def record_parts(self):
        return ["end, for begin", self.block_type, "@", self.begin_location]


class NopEvent(Event):
    event: Literal["nop"] = Field(default="nop", description="Discriminator for nop events.")

    def record_parts(self):
        return ["nop"]


class UnreachableEvent(Event):
    event: Literal["unreachable"] = Field(default="unreachable", description="Discriminator for trap events.")

    def record_parts(self):
        return ["unreachable"]


class DropEvent(Event):
    event: Literal["drop"] = Field(default="drop", description="Discriminator for drop events.")

    def record_parts(self):
        return ["drop"]


class SelectEvent(Event):
    event: Literal["select"] = Field(default="select", description="Discriminator for select events.")
    condition: Any = Field(description="Runtime select condition.")

    def record_parts(self):
        return ["select, condition =", self.condition]


class CallEvent(Event):
    """Call about to be made. Not correlated with the later call result."""

    event: Literal["call"] = Field(default="call", description="Discriminator for call events.")
    target_func: Any = Field(
        description=(
            "Callee identifier.\n\n"
            "A function index for direct calls, a table index for indirect calls."
        )
    )
    indirect: Any = Field(description="Whether the call goes through the function table.")
    args: Any = Field(description="Ordered argument values.")

    def record_parts(self):
        return ["indirect" if self.indirect else "direct", "call to func #", self.target_func, "args =", self.args]


class ReturnEvent(Event):
    event: Literal["return"] = Field(default="return", description="Discriminator for return events.")
    values: Any = Field(description="Ordered returned values.")

    def record_parts(self):
        return ["return, values =", self.values]


class CallResultEvent(Event):
    """Values observed at the call site after the callee returned."""

    event: Literal["call_result"] = Field(default="call_result", description="Discriminator for call result events.")
    values: Any = Field(description="Ordered result values.")

    def record_parts(self):
        return ["call result =", self.values]


class ConstEvent(Event):
    event: Literal["const"] = Field(default="const", description="Discriminator for constant events.")
    value: Any = Field(description="Constant value pushed by the instruction.")

    def record_parts(self):
        return ["const, value =", self.value]


class UnaryEvent(Event):
    event: Literal["unary"] = Field(default="unary", description="Discriminator for unary operator events.")
    op: Any = Field(description="Operator mnemonic, e.g. ``i32.eqz``.")
    input: Any = Field(description="Operand value.")
    result: Any = Field(description="Result value.")

    def record_parts(self):
        return [self.op, "input =", self.input, "result =", self.result]


class BinaryEvent(Event):
    event: Literal["binary"] = Field(default="binary", description="Discriminator for binary operator events.")
    op: Any = Field(description="Operator mnemonic, e.g. ``i32.add``.")
    first: Any = Field(description="First operand value.")
    second: Any = Field(description="Second operand value.")
    result: Any = Field(description="Result value.")

    def record_parts(self):
        return [self.op, "first =", self.first, "second =", self.second, "result =", self.result]


class LoadEvent(Event):
    event: Literal["load"] = Field(default="load", description="Discriminator for memory load events.")
    op: Any = Field(description="Load mnemonic, e.g. ``i32.load8_u``.")
    memarg: Any = Field(description="Memory access site.")
    value: Any = Field(description="Loaded value.")

    def record_parts(self):
        return [self.op, "value =", self.value, "from =", self.memarg]


class StoreEvent(Event):
    event: Literal["store"] = Field(default="store", description="Discriminator for memory store events.")
    op: Any = Field(description="Store mnemonic, e.g. ``i64.store32``.")
    memarg: Any = Field(description="Memory access site.")
    value: Any = Field(description="Stored value.")

    def record_parts(self):
        return [self.op, "value =", self.value, "to =", self.memarg]


class CurrentMemoryEvent(Event):
    event: Literal["current_memory"] = Field(
        default="current_memory",
        description="Discriminator for memory size query events.",
    )
    size_pages: Any = Field(description="Current memory size in pages.")

    def record_parts(self):
        return ["current_memory, size (in pages) =", self.size_pages]


class GrowMemoryEvent(Event):
    """Memory growth. The new size is never computed here."""

    event: Literal["grow_memory"] = Field(default="grow_memory", description="Discriminator for memory grow events.")
    by_pages: Any = Field(description="Requested delta in pages.")
    previous_size_pages: Any = Field(description="Memory size in pages before growing.")

    def record_parts(self):
        return [
            "grow_memory, delta (in pages) =",
            self.by_pages,
            "previous size (in pages) =",
            self.previous_size_pages,
        ]


class LocalEvent(Event):
    event: Literal["local"] = Field(default="local", description="Discriminator for local variable events.")
    op: Any = Field(description="Access mnemonic (get_local, set_local, tee_local).")
    index: Any = Field(description="Local slot index.")
    value: Any = Field(description="Value read or written.")

    def record_parts(self):
        return [self.op, "local #", self.index, "value =", self.value]


class GlobalEvent(Event):
    event: Literal["global"] = Field(default="global", description="Discriminator for global variable events.")
    op: Any = Field(description="Access mnemonic (get_global, set_global).")
    index: Any = Field(description="Global slot index.")
    value: Any = Field(description="Value read or written.")

    def record_parts(self):
        return [self.op, "global #", self.index, "value =", self.value]


AnyEvent = Annotated[
    IfEvent
    | BrEvent
    | BrIfEvent
    | BrTableEvent
    | BeginEvent
    | EndEvent
    | NopEvent
    | UnreachableEvent
    | DropEvent
    | SelectEvent
    | CallEvent
    | ReturnEvent
    | CallResultEvent
    | ConstEvent
    | UnaryEvent
    | BinaryEvent
    | LoadEvent
    | StoreEvent
    | CurrentMemoryEvent
    | GrowMemoryEvent
    | LocalEvent
    | GlobalEvent,
    Discriminator("event"),
]

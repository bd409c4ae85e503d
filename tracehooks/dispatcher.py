# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

import logging
from dataclasses import dataclass
from typing import Any, Literal, Sequence

import tracehooks.events as ev
from tracehooks.errors import BlockPairingError
from tracehooks.sink import StreamSink, TraceSink
from tracehooks.values import Value, render_value

PairingMode = Literal["ignore", "warn", "raise"]


@dataclass(frozen=True)
class BlockHandle:
    """
    Returned by HookDispatcher.open_block; the only argument close_block needs
    to emit a correctly paired end record
    """
    location: Any
    block_type: Any


class HookDispatcher(object):
    """
    Receives instruction events from instrumented code and writes one trace
    record per call to the sink, in call order.

    Arguments are never inspected: locations, targets, memargs and values are
    only rendered. No method returns a value.
    """
    def __init__(self, sink: TraceSink = None, logger=None, block_pairing: PairingMode = "ignore"):
        """
        args:
            sink: where records are written (default: stdout)
            logger: logger for diagnostics, never for trace records
                    (default: the "tracehooks" logger)
            block_pairing: "ignore" renders begin/end calls as-is,
                           "warn" logs mismatched pairs, "raise" raises
                           BlockPairingError after writing the mismatched end
        """
        if block_pairing not in ("ignore", "warn", "raise"):
            raise ValueError('Invalid block pairing mode: %s' % block_pairing)
        self.sink = sink if sink is not None else StreamSink()
        self.logger = logger or logging.getLogger('tracehooks')
        self.block_pairing = block_pairing
        self._open_blocks = []

    def emit(self, event: ev.Event) -> None:
        """
        Write a prebuilt event as one trace record
        """
        self.sink.write_record(event.render())

    # Control flow

    def if_(self, location, condition: Value) -> None:
        self.emit(ev.IfEvent(location=location, condition=condition))

    def br(self, location, target) -> None:
        self.emit(ev.BrEvent(location=location, target=target))

    def br_if(self, location, target, condition: Value) -> None:
        self.emit(ev.BrIfEvent(location=location, target=target, condition=condition))

    def br_table(self, location, table: Sequence, default_target, table_index: Value) -> None:
        """
        Report a table branch. The table index is reported as given, no
        selection and no bounds checking is done.
        """
        self.emit(ev.BrTableEvent(location=location, table=table,
                                  default_target=default_target, table_index=table_index))

    def begin(self, location, block_type) -> None:
        self.emit(ev.BeginEvent(location=location, block_type=block_type))
        if self.block_pairing != "ignore":
            self._open_blocks.append((location, block_type))

    def end(self, location, block_type, begin_location) -> None:
        """
        Report the end of a structured region.

        args:
            location: location of the end instruction
            block_type: kind of region being closed
            begin_location: location previously passed to the matching begin()
        """
        self.emit(ev.EndEvent(location=location, block_type=block_type,
                              begin_location=begin_location))
        if self.block_pairing != "ignore":
            self._check_pairing(location, block_type, begin_location)

    def open_block(self, location, block_type) -> BlockHandle:
        """
        Emit a begin record and return a handle for close_block()
        """
        self.begin(location, block_type)
        return BlockHandle(location=location, block_type=block_type)

    def close_block(self, location, handle: BlockHandle) -> None:
        self.end(location, handle.block_type, handle.location)

    def nop(self, location) -> None:
        self.emit(ev.NopEvent(location=location))

    def unreachable(self, location) -> None:
        self.emit(ev.UnreachableEvent(location=location))

    # Parametric

    def drop(self, location) -> None:
        self.emit(ev.DropEvent(location=location))

    def select(self, location, condition: Value) -> None:
        self.emit(ev.SelectEvent(location=location, condition=condition))

    # Calls

    def call(self, location, target_func, indirect, args: Sequence[Value]) -> None:
        self.emit(ev.CallEvent(location=location, target_func=target_func,
                               indirect=indirect, args=args))

    def return_(self, location, values: Sequence[Value]) -> None:
        self.emit(ev.ReturnEvent(location=location, values=values))

    def call_result(self, location, values: Sequence[Value]) -> None:
        self.emit(ev.CallResultEvent(location=location, values=values))

    # Numeric

    def const(self, location, value: Value) -> None:
        self.emit(ev.ConstEvent(location=location, value=value))

    def unary(self, location, op, input: Value, result: Value) -> None:
        self.emit(ev.UnaryEvent(location=location, op=op, input=input, result=result))

    def binary(self, location, op, first: Value, second: Value, result: Value) -> None:
        self.emit(ev.BinaryEvent(location=location, op=op, first=first,
                                 second=second, result=result))

    # Memory

    def load(self, location, op, memarg, value: Value) -> None:
        self.emit(ev.LoadEvent(location=location, op=op, memarg=memarg, value=value))

    def store(self, location, op, memarg, value: Value) -> None:
        self.emit(ev.StoreEvent(location=location, op=op, memarg=memarg, value=value))

    def current_memory(self, location, size_pages: Value) -> None:
        self.emit(ev.CurrentMemoryEvent(location=location, size_pages=size_pages))

    def grow_memory(self, location, by_pages: Value, previous_size_pages: Value) -> None:
        self.emit(ev.GrowMemoryEvent(location=location, by_pages=by_pages,
                                     previous_size_pages=previous_size_pages))

    # Variables

    def local(self, location, op, index, value: Value) -> None:
        self.emit(ev.LocalEvent(location=location, op=op, index=index, value=value))

    def global_(self, location, op, index, value: Value) -> None:
        self.emit(ev.GlobalEvent(location=location, op=op, index=index, value=value))

    def _check_pairing(self, location, block_type, begin_location) -> None:
        # Branches and returns leave blocks without an end record, so the
        # matching begin may sit below blocks that were already exited.
        begin_key = render_value(begin_location)
        for depth in range(len(self._open_blocks) - 1, -1, -1):
            open_location, open_type = self._open_blocks[depth]
            if render_value(open_location) == begin_key:
                break
        else:
            self._pairing_error('End at %s closes %s @ %s, which has no open begin' %
                                (render_value(location), render_value(block_type), begin_key))
            return

        del self._open_blocks[depth:]
        if render_value(open_type) == render_value(block_type):
            return

        self._pairing_error('End at %s closes %s @ %s, but that begin opened %s' %
                            (render_value(location), render_value(block_type),
                             begin_key, render_value(open_type)))

    def _pairing_error(self, msg: str) -> None:
        self.logger.warning(msg)
        if self.block_pairing == "raise":
            raise BlockPairingError(msg)

# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

"""
Low-level hook import table.

Instrumented modules import their hooks from the "hooks" module. Every hook
receives the function index and the instruction index first, then its raw
arguments, with 64 bit integers split into (low, high) 32 bit halves. This
module turns those calls into HookDispatcher calls.
"""

import json
import logging
from functools import partial
from typing import Callable, Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

import tracehooks.ops as ops
from tracehooks.errors import HookResolutionError, StaticInfoError
from tracehooks.values import BlockType, BranchTarget, Location, MemArg, join_i64

HOOK_MODULE = 'hooks'

# Polymorphic hooks are mangled with the types of their values,
# e.g. call_i32_i64 or return (no values)
POLYMORPHIC_BASES = ('call_indirect', 'call_result', 'call', 'return',
                     ops.GET_LOCAL, ops.SET_LOCAL, ops.TEE_LOCAL,
                     ops.GET_GLOBAL, ops.SET_GLOBAL)


class LabelAndLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: int = Field(description="Relative branch label of the table entry.")
    location: int | None = Field(
        default=None,
        description="Instruction index the label resolves to, when statically known.",
    )


class BrTableInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    table: list[LabelAndLocation] = Field(description="Table entries, in table order.")
    default: LabelAndLocation = Field(description="Default target of the br_table.")


class ModuleInfo(BaseModel):
    """Static information written by the rewriter next to the instrumented module.

    Only the br_table contents are needed to decode hook calls; everything
    else the rewriter records is ignored.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    br_tables: list[BrTableInfo] = Field(
        default_factory=list,
        description="One entry per br_table instruction, indexed by the br_table hook argument.",
    )


def load_module_info(path) -> ModuleInfo:
    """
    Load the static module info JSON written by the rewriter
    """
    try:
        with open(path, 'r') as f:
            data = json.load(f)
        return ModuleInfo.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as err:
        raise StaticInfoError('Invalid static module info %s: %s' % (path, err)) from err


def _slot(raw, idx):
    if idx < len(raw):
        return raw[idx]
    return None


def decode_values(raw, tys) -> list:
    """
    Decode raw hook arguments into one value per type. Missing arguments
    decode to None.
    """
    values = []
    pos = 0
    for ty in tys:
        if ty == ops.I64:
            low, high = _slot(raw, pos), _slot(raw, pos + 1)
            if low is None or high is None:
                values.append(None)
            else:
                values.append(join_i64(low, high))
        else:
            values.append(_slot(raw, pos))
        pos += ops.slot_count(ty)
    return values


def demangle(name):
    """
    Split a polymorphic hook name into (base, value types), or return None
    if the name is not a mangled polymorphic hook
    """
    for base in POLYMORPHIC_BASES:
        if name == base:
            return base, []
        if name.startswith(base + '_'):
            tys = name[len(base) + 1:].split('_')
            if all(ty in ops.VAL_TYPES for ty in tys):
                return base, tys
    return None


def mangle(base, tys) -> str:
    return '_'.join([base, *tys])


class HookImports(object):
    """
    Maps low-level hook import names to callables that forward to a
    HookDispatcher
    """
    def __init__(self, dispatcher, module_info: ModuleInfo = None, logger=None):
        self.dispatcher = dispatcher
        self.module_info = module_info or ModuleInfo()
        self.logger = logger or logging.getLogger('tracehooks')
        self._resolved = {}
        self._fixed = {
            'if_': self._if,
            'br': self._br,
            'br_if': self._br_if,
            'br_table': self._br_table,
            'nop': self._nop,
            'unreachable': self._unreachable,
            'drop': self._drop,
            'select': self._select,
            'current_memory': self._current_memory,
            'grow_memory': self._grow_memory,
        }
        for block_type in BlockType:
            self._fixed['begin_%s' % block_type.value] = partial(self._begin, block_type)
            self._fixed['end_%s' % block_type.value] = partial(self._end, block_type)

    def resolve(self, name: str) -> Callable:
        """
        Get the callable for a hook import name

        Raises HookResolutionError for unknown names.
        """
        hook = self._resolved.get(name)
        if hook is None:
            hook = self._build(name)
            self._resolved[name] = hook
            self.logger.debug('Resolved hook import %s.%s', HOOK_MODULE, name)
        return hook

    def __getitem__(self, name: str) -> Callable:
        return self.resolve(name)

    def __contains__(self, name) -> bool:
        try:
            self.resolve(name)
        except HookResolutionError:
            return False
        return True

    def get_imports(self, names: Iterable[str]) -> dict:
        """
        Build the {name: callable} mapping for the hooks a module imports
        """
        return {name: self.resolve(name) for name in names}

    def call(self, name: str, *args) -> None:
        self.resolve(name)(*args)

    def _build(self, name):
        if name in self._fixed:
            return self._fixed[name]
        if name in ops.CONST_OPS:
            return partial(self._const, ops.CONST_OPS[name])
        if name in ops.UNARY_OPS:
            return partial(self._unary, name, ops.UNARY_OPS[name])
        if name in ops.BINARY_OPS:
            return partial(self._binary, name, ops.BINARY_OPS[name])
        if name in ops.LOAD_OPS:
            return partial(self._load, name, ops.LOAD_OPS[name])
        if name in ops.STORE_OPS:
            return partial(self._store, name, ops.STORE_OPS[name])

        demangled = demangle(name)
        if demangled is None:
            raise HookResolutionError('No hook for import %s.%s' % (HOOK_MODULE, name))
        base, tys = demangled
        if base == 'return':
            return partial(self._return, tys)
        if base == 'call_result':
            return partial(self._call_result, tys)
        if base == 'call':
            return partial(self._call, False, tys)
        if base == 'call_indirect':
            return partial(self._call, True, tys)
        if len(tys) != 1:
            raise HookResolutionError('Hook %s.%s must carry exactly one value type' % (HOOK_MODULE, name))
        if base in ops.LOCAL_OPS:
            return partial(self._local, base, tys[0])
        return partial(self._global, base, tys[0])

    # Control flow

    def _if(self, func, instr, condition=None):
        self.dispatcher.if_(Location(func=func, instr=instr), condition)

    def _br(self, func, instr, label=None, target_instr=None):
        target = BranchTarget(label=label, location=Location(func=func, instr=target_instr)
                              if target_instr is not None else None)
        self.dispatcher.br(Location(func=func, instr=instr), target)

    def _br_if(self, func, instr, label=None, target_instr=None, condition=None):
        target = BranchTarget(label=label, location=Location(func=func, instr=target_instr)
                              if target_instr is not None else None)
        self.dispatcher.br_if(Location(func=func, instr=instr), target, condition)

    def _br_table(self, func, instr, info_idx, table_idx=None):
        count = len(self.module_info.br_tables)
        if isinstance(info_idx, bool) or not isinstance(info_idx, int) or not 0 <= info_idx < count:
            raise StaticInfoError('No br_table info #%r (module info has %d)' % (info_idx, count))
        info = self.module_info.br_tables[info_idx]

        def _target(entry):
            location = None
            if entry.location is not None:
                location = Location(func=func, instr=entry.location)
            return BranchTarget(label=entry.label, location=location)

        table = [_target(entry) for entry in info.table]
        self.dispatcher.br_table(Location(func=func, instr=instr), table,
                                 _target(info.default), table_idx)

    def _begin(self, block_type, func, instr):
        self.dispatcher.begin(Location(func=func, instr=instr), block_type)

    def _end(self, block_type, func, instr, begin_instr=None):
        if block_type == BlockType.FUNCTION:
            begin_instr = -1
        begin_location = None
        if begin_instr is not None:
            begin_location = Location(func=func, instr=begin_instr)
        self.dispatcher.end(Location(func=func, instr=instr), block_type, begin_location)

    def _nop(self, func, instr):
        self.dispatcher.nop(Location(func=func, instr=instr))

    def _unreachable(self, func, instr):
        self.dispatcher.unreachable(Location(func=func, instr=instr))

    def _drop(self, func, instr):
        self.dispatcher.drop(Location(func=func, instr=instr))

    def _select(self, func, instr, condition=None):
        self.dispatcher.select(Location(func=func, instr=instr), condition)

    # Calls

    def _call(self, indirect, tys, func, instr, target=None, *raw):
        self.dispatcher.call(Location(func=func, instr=instr), target, indirect,
                             decode_values(raw, tys))

    def _return(self, tys, func, instr, *raw):
        self.dispatcher.return_(Location(func=func, instr=instr), decode_values(raw, tys))

    def _call_result(self, tys, func, instr, *raw):
        self.dispatcher.call_result(Location(func=func, instr=instr), decode_values(raw, tys))

    # Numeric

    def _const(self, ty, func, instr, *raw):
        value, = decode_values(raw, [ty])
        self.dispatcher.const(Location(func=func, instr=instr), value)

    def _unary(self, op, sig, func, instr, *raw):
        input, result = decode_values(raw, sig)
        self.dispatcher.unary(Location(func=func, instr=instr), op, input, result)

    def _binary(self, op, sig, func, instr, *raw):
        first, second, result = decode_values(raw, sig)
        self.dispatcher.binary(Location(func=func, instr=instr), op, first, second, result)

    # Memory

    def _load(self, op, ty, func, instr, *raw):
        offset, align, addr, value = decode_values(raw, [ops.I32, ops.I32, ops.I32, ty])
        memarg = MemArg(addr=addr, offset=offset or 0, align=align or 0)
        self.dispatcher.load(Location(func=func, instr=instr), op, memarg, value)

    def _store(self, op, ty, func, instr, *raw):
        offset, align, addr, value = decode_values(raw, [ops.I32, ops.I32, ops.I32, ty])
        memarg = MemArg(addr=addr, offset=offset or 0, align=align or 0)
        self.dispatcher.store(Location(func=func, instr=instr), op, memarg, value)

    def _current_memory(self, func, instr, size_pages=None):
        self.dispatcher.current_memory(Location(func=func, instr=instr), size_pages)

    def _grow_memory(self, func, instr, by_pages=None, previous_size_pages=None):
        self.dispatcher.grow_memory(Location(func=func, instr=instr), by_pages, previous_size_pages)

    # Variables

    def _local(self, op, ty, func, instr, index=None, *raw):
        value, = decode_values(raw, [ty])
        self.dispatcher.local(Location(func=func, instr=instr), op, index, value)

    def _global(self, op, ty, func, instr, index=None, *raw):
        value, = decode_values(raw, [ty])
        self.dispatcher.global_(Location(func=func, instr=instr), op, index, value)

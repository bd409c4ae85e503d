# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

"""
Instruction operators that get a dedicated low-level hook, keyed by their
text format mnemonic, with the value types the hook receives.
"""

# Value types
I32 = 'i32'
I64 = 'i64'
F32 = 'f32'
F64 = 'f64'
VAL_TYPES = (I32, I64, F32, F64)

# Variable access operators
GET_LOCAL = 'get_local'
SET_LOCAL = 'set_local'
TEE_LOCAL = 'tee_local'
GET_GLOBAL = 'get_global'
SET_GLOBAL = 'set_global'


def _signatures(prefix, names, sig):
    return {'%s.%s' % (prefix, name): sig for name in names}


CONST_OPS = {'%s.const' % ty: ty for ty in VAL_TYPES}

# mnemonic -> (input type, result type)
UNARY_OPS = {
    'i32.eqz': (I32, I32),
    'i64.eqz': (I64, I32),
    **_signatures(I32, ('clz', 'ctz', 'popcnt'), (I32, I32)),
    **_signatures(I64, ('clz', 'ctz', 'popcnt'), (I64, I64)),
    **_signatures(F32, ('abs', 'neg', 'ceil', 'floor', 'trunc', 'nearest', 'sqrt'), (F32, F32)),
    **_signatures(F64, ('abs', 'neg', 'ceil', 'floor', 'trunc', 'nearest', 'sqrt'), (F64, F64)),
    'i32.wrap_i64': (I64, I32),
    'i32.trunc_f32_s': (F32, I32),
    'i32.trunc_f32_u': (F32, I32),
    'i32.trunc_f64_s': (F64, I32),
    'i32.trunc_f64_u': (F64, I32),
    'i64.extend_i32_s': (I32, I64),
    'i64.extend_i32_u': (I32, I64),
    'i64.trunc_f32_s': (F32, I64),
    'i64.trunc_f32_u': (F32, I64),
    'i64.trunc_f64_s': (F64, I64),
    'i64.trunc_f64_u': (F64, I64),
    'f32.convert_i32_s': (I32, F32),
    'f32.convert_i32_u': (I32, F32),
    'f32.convert_i64_s': (I64, F32),
    'f32.convert_i64_u': (I64, F32),
    'f32.demote_f64': (F64, F32),
    'f64.convert_i32_s': (I32, F64),
    'f64.convert_i32_u': (I32, F64),
    'f64.convert_i64_s': (I64, F64),
    'f64.convert_i64_u': (I64, F64),
    'f64.promote_f32': (F32, F64),
    'i32.reinterpret_f32': (F32, I32),
    'i64.reinterpret_f64': (F64, I64),
    'f32.reinterpret_i32': (I32, F32),
    'f64.reinterpret_i64': (I64, F64),
}

_INT_COMPARE = ('eq', 'ne', 'lt_s', 'lt_u', 'gt_s', 'gt_u', 'le_s', 'le_u', 'ge_s', 'ge_u')
_FLOAT_COMPARE = ('eq', 'ne', 'lt', 'gt', 'le', 'ge')
_INT_ARITH = ('add', 'sub', 'mul', 'div_s', 'div_u', 'rem_s', 'rem_u',
              'and', 'or', 'xor', 'shl', 'shr_s', 'shr_u', 'rotl', 'rotr')
_FLOAT_ARITH = ('add', 'sub', 'mul', 'div', 'min', 'max', 'copysign')

# mnemonic -> (first operand type, second operand type, result type)
BINARY_OPS = {
    **_signatures(I32, _INT_COMPARE, (I32, I32, I32)),
    **_signatures(I64, _INT_COMPARE, (I64, I64, I32)),
    **_signatures(F32, _FLOAT_COMPARE, (F32, F32, I32)),
    **_signatures(F64, _FLOAT_COMPARE, (F64, F64, I32)),
    **_signatures(I32, _INT_ARITH, (I32, I32, I32)),
    **_signatures(I64, _INT_ARITH, (I64, I64, I64)),
    **_signatures(F32, _FLOAT_ARITH, (F32, F32, F32)),
    **_signatures(F64, _FLOAT_ARITH, (F64, F64, F64)),
}

# mnemonic -> type of the loaded value
LOAD_OPS = {
    **_signatures(I32, ('load', 'load8_s', 'load8_u', 'load16_s', 'load16_u'), I32),
    **_signatures(I64, ('load', 'load8_s', 'load8_u', 'load16_s', 'load16_u', 'load32_s', 'load32_u'), I64),
    'f32.load': F32,
    'f64.load': F64,
}

# mnemonic -> type of the stored value
STORE_OPS = {
    **_signatures(I32, ('store', 'store8', 'store16'), I32),
    **_signatures(I64, ('store', 'store8', 'store16', 'store32'), I64),
    'f32.store': F32,
    'f64.store': F64,
}

LOCAL_OPS = (GET_LOCAL, SET_LOCAL, TEE_LOCAL)
GLOBAL_OPS = (GET_GLOBAL, SET_GLOBAL)


def slot_count(ty: str) -> int:
    """
    Number of raw hook arguments used by one value of the given type; 64 bit
    integers travel as a (low, high) pair of 32 bit halves
    """
    return 2 if ty == I64 else 1

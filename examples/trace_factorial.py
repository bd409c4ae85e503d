import argparse
import logging

import tracehooks
from tracehooks import BlockType, BranchTarget, Location


def get_logger():
    """
    Get the default logger for this example
    """
    logger = logging.getLogger('trace_factorial')
    if not logger.handlers:
        sh = logging.StreamHandler()
        logger.addHandler(sh)
        logger.setLevel(logging.INFO)

    return logger


def factorial(hooks, n):
    """
    Compute n! the way an instrumented module would, reporting every
    instruction of this body to the hooks:

        0: block
        1:   loop
        2:     get_local 0 ;; n
        3:     i32.eqz
        4:     br_if 1
        5:     get_local 1 ;; acc
        6:     get_local 0
        7:     i32.mul
        8:     set_local 1
        9:     get_local 0
       10:     i32.const 1
       11:     i32.sub
       12:     set_local 0
       13:     br 0
       14:   end
       15: end
       16: get_local 1
       17: end
    """
    def at(instr):
        return Location(func=0, instr=instr)

    acc = 1
    hooks.begin(at(-1), BlockType.FUNCTION)
    hooks.begin(at(0), BlockType.BLOCK)
    hooks.begin(at(1), BlockType.LOOP)
    while True:
        hooks.local(at(2), 'get_local', 0, n)
        is_zero = int(n == 0)
        hooks.unary(at(3), 'i32.eqz', n, is_zero)
        hooks.br_if(at(4), BranchTarget(label=1, location=at(0)), is_zero)
        if is_zero:
            break
        hooks.local(at(5), 'get_local', 1, acc)
        hooks.local(at(6), 'get_local', 0, n)
        product = acc * n
        hooks.binary(at(7), 'i32.mul', acc, n, product)
        acc = product
        hooks.local(at(8), 'set_local', 1, acc)
        hooks.local(at(9), 'get_local', 0, n)
        hooks.const(at(10), 1)
        hooks.binary(at(11), 'i32.sub', n, 1, n - 1)
        n -= 1
        hooks.local(at(12), 'set_local', 0, n)
        hooks.br(at(13), BranchTarget(label=0, location=at(1)))
    # br_if 1 jumps past the end of the block, so neither end at 14 or 15 fires
    hooks.local(at(16), 'get_local', 1, acc)
    hooks.return_(at(17), [acc])
    hooks.end(at(17), BlockType.FUNCTION, at(-1))
    return acc


def main(args):
    logger = get_logger()

    if args.output:
        sink = tracehooks.FileSink(args.output)
    else:
        sink = tracehooks.StreamSink()

    with sink:
        # the "warn" pairing mode reports unbalanced begin/end records to the logger
        hooks = tracehooks.HookDispatcher(sink, logger=logger, block_pairing='warn')
        result = factorial(hooks, args.n)

    logger.info('* %d! = %d', args.n, result)


if __name__ == '__main__':

    parser = argparse.ArgumentParser(description='Trace an instrumented factorial function')
    parser.add_argument('-n', action='store', dest='n', type=int, default=5,
                        help='Input of the factorial (default 5)')
    parser.add_argument('-o', '--output', action='store', dest='output',
                        required=False, help='Path of the trace file (default stdout)')
    args = parser.parse_args()
    main(args)

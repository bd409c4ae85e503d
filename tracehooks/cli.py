# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

import sys
import json
import logging
import argparse

from pydantic import ValidationError

from tracehooks.cli_config import (
    add_config_cli_arguments,
    apply_config_cli_overrides,
    get_config_cli_field_specs,
    merge_config_dicts,
    output_active_config,
)
from tracehooks.config import build_config, get_default_config_dict, load_config_dict
from tracehooks.dispatcher import HookDispatcher
from tracehooks.errors import ReplayError, TraceHooksError
from tracehooks.imports import HookImports, ModuleInfo, load_module_info
from tracehooks.sink import open_sink


def get_logger():
    """
    Get the default logger for tracehooks
    """
    logger = logging.getLogger('tracehooks')
    if not logger.handlers:
        sh = logging.StreamHandler()
        logger.addHandler(sh)
        logger.setLevel(logging.INFO)

    return logger


def iter_hook_calls(lines):
    """
    Parse a JSON-lines hook call log. Each line is an object with the hook
    import name and its raw arguments: {"hook": "i32.add", "args": [0, 3, 1, 2, 3]}
    Blank lines and lines starting with '#' are skipped.
    """
    for lineno, line in enumerate(lines, 1):
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        try:
            entry = json.loads(line)
        except json.JSONDecodeError as err:
            raise ReplayError('Line %d: invalid JSON: %s' % (lineno, err)) from err
        if not isinstance(entry, dict) or not isinstance(entry.get('hook'), str):
            raise ReplayError('Line %d: expected an object with a "hook" name' % lineno)
        args = entry.get('args', [])
        if not isinstance(args, list):
            raise ReplayError('Line %d: "args" must be a list' % lineno)
        yield lineno, entry['hook'], args


def replay(lines, imports: HookImports, logger=None) -> int:
    """
    Feed every call of a hook call log through the import table

    return:
        The number of hook calls replayed
    """
    count = 0
    for lineno, name, args in iter_hook_calls(lines):
        try:
            hook = imports.resolve(name)
        except KeyError as err:
            raise ReplayError('Line %d: unknown hook %s' % (lineno, name)) from err
        try:
            hook(*args)
        except (TypeError, ValidationError) as err:
            raise ReplayError('Line %d: bad arguments for %s: %s' % (lineno, name, err)) from err
        count += 1
    if logger:
        logger.info('* Replayed %d hook calls', count)
    return count


class Main(object):
    """
    Replay a recorded hook call log into a trace
    """
    def __init__(self, parser, argv=None):
        self.specs = get_config_cli_field_specs()
        add_config_cli_arguments(parser, self.specs)
        self.args = parser.parse_args(argv)
        self.parser = parser
        self.logger = get_logger()

    def run(self) -> int:
        args = self.args
        if args.dump_default_config:
            print(json.dumps(get_default_config_dict(), indent=4))
            return 0

        if not args.input:
            self.parser.print_help()
            self.logger.error('[-] No hook call log supplied')
            return 1

        try:
            cfg = load_config_dict()
            if args.config:
                cfg = merge_config_dicts(cfg, load_config_dict(args.config))
            cfg = apply_config_cli_overrides(cfg, args, self.specs)
            config = build_config(cfg, logger=self.logger)
            self.logger.setLevel(config.logging.level)
            output_active_config(config, self.logger)

            module_info = ModuleInfo()
            if args.static_info:
                module_info = load_module_info(args.static_info)

            with open_sink(config.output.path, flush=config.output.flush) as sink:
                dispatcher = HookDispatcher(sink, logger=self.logger,
                                            block_pairing=config.checks.block_pairing)
                imports = HookImports(dispatcher, module_info, logger=self.logger)
                if args.input == '-':
                    replay(sys.stdin, imports, logger=self.logger)
                else:
                    with open(args.input, 'r') as f:
                        replay(f, imports, logger=self.logger)
        except OSError as err:
            self.logger.error('[-] %s', err)
            return 1
        except TraceHooksError as err:
            self.logger.error('[-] %s', err)
            return 1

        return 0


def main(argv=None):
    """ tracehooks command line entrypoint """

    parser = argparse.ArgumentParser(description='Replay a low-level hook call log into an '
                                                 'instruction trace')
    parser.add_argument('-i', '--input', action='store', dest='input',
                        required=False, help='Path to the JSON-lines hook call log '
                                             '("-" for stdin)')
    parser.add_argument('-s', '--static-info', action='store', dest='static_info',
                        required=False, help='Path to the static module info JSON written '
                                             'by the rewriter (needed for br_table hooks)')
    parser.add_argument('-c', '--config', action='store', dest='config',
                        required=False, help='Path to tracehooks config file')
    parser.add_argument('--dump-default-config', action='store_true', dest='dump_default_config',
                        help='Print the default configuration as JSON and exit')

    return Main(parser, argv).run()


if __name__ == "__main__":
    sys.exit(main())

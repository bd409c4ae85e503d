# flake8: noqa

# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

# Import relevant classes for easy access
from tracehooks.version import __version__
from tracehooks.values import BlockType, BranchTarget, Location, MemArg, render_value
from tracehooks.sink import FileSink, MemorySink, StreamSink, TraceSink, open_sink
from tracehooks.dispatcher import BlockHandle, HookDispatcher
from tracehooks.imports import HookImports, ModuleInfo, load_module_info

# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.


class TraceHooksError(Exception):
    """
    Base class for tracehooks errors
    """


class SinkError(TraceHooksError):
    """
    Raised when a trace record cannot be written to its sink
    """


class ConfigError(TraceHooksError):
    """
    Raised during validating configuration
    """


class BlockPairingError(TraceHooksError):
    """
    Raised when a block end does not match the innermost open block begin
    (only when pairing checks are set to "raise")
    """


class HookResolutionError(TraceHooksError, KeyError):
    """
    No low-level hook is known under the requested import name
    """


class StaticInfoError(TraceHooksError):
    """
    Static module info is missing or malformed
    """


class ReplayError(TraceHooksError):
    pass

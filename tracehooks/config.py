import json
import logging
import os
from typing import Any, Literal

import jsonschema
import jsonschema.exceptions
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tracehooks.errors import ConfigError


class OutputConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(default="-", description='Trace destination: "-" for stdout, "stderr", or a file path')
    flush: bool = Field(default=True, description="Flush the sink after every trace record")


class ChecksConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    block_pairing: Literal["ignore", "warn", "raise"] = Field(
        default="ignore",
        description="How to treat block end records that do not match the innermost open begin",
    )


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Level of the tracehooks diagnostic logger",
    )


class TraceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    config_version: Literal[0.1] = 0.1
    description: str | None = None
    output: OutputConfig = OutputConfig()
    checks: ChecksConfig = ChecksConfig()
    logging: LoggingConfig = LoggingConfig()


def model_to_dict(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="python")


def get_default_config_dict() -> dict[str, Any]:
    return model_to_dict(TraceConfig())


def get_package_path(*parts) -> str:
    return os.path.join(os.path.dirname(__file__), *parts)


def validate_config(config) -> None:
    """
    Validates the given configuration object against the built-in schema.

    Raises jsonschema.exceptions.ValidationError on invalid configuration.
    The underlying jsonschema exception is exposed since it carries a lot of
    information about the failure.

    On success, returns without exception.
    """
    with open(get_package_path('config_schema.json'), 'r') as ff:
        schema = json.load(ff)
    validator = jsonschema.Draft7Validator(schema)
    validator.validate(config)


def build_config(config: dict, logger=None) -> TraceConfig:
    """
    Validate a configuration dict and turn it into a TraceConfig
    """
    logger = logger or logging.getLogger('tracehooks')
    try:
        validate_config(config)
    except jsonschema.exceptions.SchemaError as err:
        logger.exception('Invalid config schema: %s', str(err))
        raise ConfigError('Invalid config schema') from err
    except jsonschema.exceptions.ValidationError as err:
        logger.error('Invalid config: %s', err.message)
        raise ConfigError('Invalid config: %s' % err.message) from err

    try:
        return TraceConfig.model_validate(config)
    except ValidationError as err:
        logger.error('Invalid config: %s', str(err))
        raise ConfigError('Invalid config') from err


def load_config_dict(path=None) -> dict[str, Any]:
    """
    Read a configuration file, or the bundled default config when no path is given
    """
    if not path:
        path = get_package_path('configs', 'default.json')
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as err:
        raise ConfigError('Cannot read config %s: %s' % (path, err)) from err


def load_config(path=None, logger=None) -> TraceConfig:
    return build_config(load_config_dict(path), logger=logger)

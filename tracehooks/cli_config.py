from __future__ import annotations

import argparse
import copy
import json
import types
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union, get_args, get_origin

from pydantic import BaseModel
from pydantic.fields import PydanticUndefined

from tracehooks.config import TraceConfig, get_default_config_dict

EXCLUDED_CLI_PATHS = {
    "config_version",
    "description",
}

CliKind = Literal["bool", "int", "float", "str", "choice"]


@dataclass(frozen=True)
class ConfigCliFieldSpec:
    path: str
    option: str
    dest: str
    kind: CliKind
    description: str
    default: Any
    choices: tuple[Any, ...] = ()


@dataclass(frozen=True)
class _LeafField:
    path: str
    annotation: Any
    description: str | None
    model_default: Any


def merge_config_dicts(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_config_dicts(current, value)
            continue
        merged[key] = copy.deepcopy(value)
    return merged


def add_config_cli_arguments(parser: argparse.ArgumentParser, specs: list[ConfigCliFieldSpec]) -> None:
    group = parser.add_argument_group("configuration overrides")
    for spec in specs:
        help_text = f"{spec.description} (default: {spec.default!r})"
        if spec.kind == "bool":
            group.add_argument(
                spec.option,
                dest=spec.dest,
                action=argparse.BooleanOptionalAction,
                default=argparse.SUPPRESS,
                help=help_text,
            )
            continue
        if spec.kind == "choice":
            group.add_argument(
                spec.option,
                dest=spec.dest,
                choices=spec.choices,
                default=argparse.SUPPRESS,
                help=help_text,
            )
            continue
        group.add_argument(
            spec.option,
            dest=spec.dest,
            type={"int": int, "float": float, "str": str}[spec.kind],
            metavar=spec.path.split(".")[-1].upper(),
            default=argparse.SUPPRESS,
            help=help_text,
        )


def apply_config_cli_overrides(
    config: dict[str, Any],
    args: argparse.Namespace,
    specs: list[ConfigCliFieldSpec],
) -> dict[str, Any]:
    updated = copy.deepcopy(config)
    for spec in specs:
        if not hasattr(args, spec.dest):
            continue
        set_config_path_value(updated, tuple(spec.path.split(".")), getattr(args, spec.dest))
    return updated


def get_config_cli_field_specs(default_config: dict[str, Any] | None = None) -> list[ConfigCliFieldSpec]:
    defaults = default_config or get_default_config_dict()
    specs: list[ConfigCliFieldSpec] = []
    for leaf in iterate_model_leaf_fields(TraceConfig):
        if leaf.path in EXCLUDED_CLI_PATHS:
            continue
        kind = get_cli_kind(leaf.annotation)
        if kind is None:
            continue
        default_value, has_default = get_path_value(defaults, tuple(leaf.path.split(".")))
        if not has_default:
            default_value = leaf.model_default
        if not leaf.description:
            raise ValueError(f"Missing description for CLI config field: {leaf.path}")
        choices = get_args(unwrap_annotated(leaf.annotation)) if kind == "choice" else ()
        specs.append(
            ConfigCliFieldSpec(
                path=leaf.path,
                option="--" + leaf.path.replace(".", "-").replace("_", "-"),
                dest="cfg_" + leaf.path.replace(".", "__"),
                kind=kind,
                description=leaf.description,
                default=default_value,
                choices=choices,
            )
        )
    return specs


def get_config_value_items(model: BaseModel, prefix: tuple[str, ...] = ()) -> Iterator[tuple[str, Any]]:
    for name, field in model.__class__.model_fields.items():
        value = getattr(model, name)
        path = prefix + (name,)
        if is_model_type(unwrap_optional(field.annotation)) and isinstance(value, BaseModel):
            yield from get_config_value_items(value, path)
            continue
        yield ".".join(path), value


def output_active_config(model: TraceConfig, logger) -> None:
    logger.debug("* Active tracehooks configuration")
    for path, value in get_config_value_items(model):
        logger.debug("  %s = %s", path, render_config_value(value))


def get_path_value(data: dict[str, Any], path: tuple[str, ...]) -> tuple[Any, bool]:
    cursor: Any = data
    for part in path:
        if not isinstance(cursor, dict) or part not in cursor:
            return None, False
        cursor = cursor[part]
    return cursor, True


def set_config_path_value(data: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
    cursor = data
    for part in path[:-1]:
        if not isinstance(cursor.get(part), dict):
            cursor[part] = {}
        cursor = cursor[part]
    cursor[path[-1]] = value


def render_config_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, sort_keys=True)
    except TypeError:
        return repr(value)


def iterate_model_leaf_fields(model_type: type[BaseModel], prefix: tuple[str, ...] = ()) -> Iterator[_LeafField]:
    for name, field in model_type.model_fields.items():
        annotation = unwrap_optional(field.annotation)
        path = prefix + (name,)
        if is_model_type(annotation):
            yield from iterate_model_leaf_fields(annotation, path)
            continue
        yield _LeafField(
            path=".".join(path),
            annotation=annotation,
            description=field.description,
            model_default=get_field_default(field),
        )


def get_field_default(field) -> Any:
    if field.default is not PydanticUndefined:
        return field.default
    if field.default_factory is not None:
        return field.default_factory()
    return None


def unwrap_optional(annotation: Any) -> Any:
    unwrapped = unwrap_annotated(annotation)
    origin = get_origin(unwrapped)
    if origin in (Union, types.UnionType):
        args = [unwrap_annotated(arg) for arg in get_args(unwrapped) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return unwrapped


def unwrap_annotated(annotation: Any) -> Any:
    current = annotation
    while get_origin(current) is Annotated:
        current = get_args(current)[0]
    return current


def is_model_type(annotation: Any) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def get_cli_kind(annotation: Any) -> CliKind | None:
    target = unwrap_annotated(annotation)
    if get_origin(target) is Literal:
        return "choice"
    if target is bool:
        return "bool"
    if target is int:
        return "int"
    if target is float:
        return "float"
    if target is str:
        return "str"
    return None

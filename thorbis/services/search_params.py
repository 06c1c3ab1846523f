"""
Parse raw request parameters into validated search/detail parameter models.

Accepts either a query string (``starlette`` multi-dict, repeated keys allowed)
or a JSON body. Query strings carry geography as flat keys
(``north/south/east/west`` and ``lat/lng/radius``); JSON bodies may nest them
under ``bounds`` and ``center``. Validation is all-or-nothing: any bad value
fails the whole request with VALIDATION_ERROR.
"""

from __future__ import annotations

from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from thorbis.core.exceptions import ValidationError
from thorbis.schemas.business import (
    BusinessDetailParams,
    BusinessSearchParams,
    MapSearchParams,
    SimpleSearchBody,
    SimpleSearchParams,
)

ParamsT = TypeVar("ParamsT", bound=BaseModel)

LIST_KEYS = {"categories", "features", "include"}
BOUNDS_KEYS = ("north", "south", "east", "west")
CENTER_KEYS = ("lat", "lng", "radius")


def _split_list(values: list[Any]) -> list[str]:
    items: list[str] = []
    for value in values:
        if isinstance(value, (list, tuple)):
            items.extend(str(v).strip() for v in value)
        elif value is not None:
            items.extend(part.strip() for part in str(value).split(","))
    return [item for item in items if item]


def _flatten(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Collapse a multi-dict or plain mapping into a single-valued dict."""
    getlist = getattr(raw, "getlist", None)
    data: dict[str, Any] = {}
    for key in raw.keys():
        if key in data:
            continue
        if key in LIST_KEYS:
            values = getlist(key) if getlist else [raw[key]]
            data[key] = _split_list(values)
            continue
        value = raw[key]
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                continue
        data[key] = value
    return data


def _fold_group(data: dict[str, Any], group: str, keys: tuple[str, ...], required: tuple[str, ...]) -> None:
    present = {k: data.pop(k) for k in keys if k in data}
    if not present:
        return
    if group in data:
        raise ValidationError(
            f"{group} given both nested and as flat parameters",
            details=[{"field": group, "message": "ambiguous parameters"}],
        )
    missing = [k for k in required if k not in present]
    if missing:
        raise ValidationError(
            f"{group} requires {', '.join(required)}",
            details=[{"field": group, "message": f"missing {', '.join(missing)}"}],
        )
    data[group] = present


def _check_nested_bounds(data: dict[str, Any]) -> None:
    bounds = data.get("bounds")
    if isinstance(bounds, Mapping):
        missing = [k for k in BOUNDS_KEYS if bounds.get(k) in (None, "")]
        if missing:
            raise ValidationError(
                "bounds requires north, south, east and west",
                details=[{"field": "bounds", "message": f"missing {', '.join(missing)}"}],
            )


def _format_errors(exc: PydanticValidationError) -> list[dict[str, str]]:
    return [
        {
            "field": ".".join(str(part) for part in err["loc"]) or "__root__",
            "message": err["msg"],
        }
        for err in exc.errors()
    ]


def validate_params(model: Type[ParamsT], data: Mapping[str, Any]) -> ParamsT:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        details = _format_errors(exc)
        first = details[0]
        raise ValidationError(f"Invalid parameter {first['field']}: {first['message']}", details=details) from exc


def parse_search_params(raw: Mapping[str, Any]) -> BusinessSearchParams:
    data = _flatten(raw)
    _fold_group(data, "bounds", BOUNDS_KEYS, BOUNDS_KEYS)
    _fold_group(data, "center", CENTER_KEYS, ("lat", "lng"))
    _check_nested_bounds(data)
    return validate_params(BusinessSearchParams, data)


def parse_detail_params(raw: Mapping[str, Any]) -> BusinessDetailParams:
    return validate_params(BusinessDetailParams, _flatten(raw))


def parse_simple_search_params(raw: Mapping[str, Any]) -> SimpleSearchParams:
    return validate_params(SimpleSearchParams, _flatten(raw))


def parse_simple_search_body(body: Any) -> SimpleSearchParams:
    if not isinstance(body, Mapping):
        body = {}
    return validate_params(SimpleSearchBody, body).to_params()


def parse_map_params(raw: Mapping[str, Any]) -> MapSearchParams:
    return validate_params(MapSearchParams, _flatten(raw))

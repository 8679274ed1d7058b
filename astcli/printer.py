"""Rendering of views as JSON, aligned key/value lists or tables.

A view is a dataclass instance, a mapping, or a list of either. Dataclass
fields may carry a ``format`` entry in their metadata: a ``;``-separated list
of directives among ``name:<key>``, ``time:<layout>``, ``maxlen:<n>``,
``omitempty``, or ``-`` to hide the field. Time layouts use the reference
date notation (``01-02-06 15:04:05.000``). A ``json`` metadata entry names the
field in JSON output.
"""

from __future__ import annotations

import dataclasses
import json
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, TextIO

FORMAT_JSON = "json"
FORMAT_LIST = "list"
FORMAT_TABLE = "table"
NON_BREAKING_SPACE = "\u00a0"

_LAYOUT_TOKENS = re.compile(r"2006|\.000|01|02|06|15|04|05")
_STRFTIME = {
    "2006": "%Y",
    "01": "%m",
    "02": "%d",
    "06": "%y",
    "15": "%H",
    "04": "%M",
    "05": "%S",
}


@dataclass
class Property:
    """One displayed key and its rendered value."""

    key: str
    value: str


@dataclass
class Entity:
    """The displayed properties of one view object."""

    properties: list[Property] = field(default_factory=list)

    def max_key(self) -> int:
        """Length of the longest property key."""
        return max((len(prop.key) for prop in self.properties), default=0)


def is_format(value: str, output_format: str) -> bool:
    """Compare two format names, ignoring case."""
    return value.casefold() == output_format.casefold()


def print_view(stream: TextIO, view: Any, output_format: str) -> None:
    """Write ``view`` to ``stream`` as json, list or table."""
    if is_format(output_format, FORMAT_JSON):
        stream.write(json.dumps(_to_json(view), separators=(",", ":"), ensure_ascii=False))
        stream.write("\n")
    elif is_format(output_format, FORMAT_LIST):
        _print_list(stream, to_entities(view))
    elif is_format(output_format, FORMAT_TABLE):
        _print_table(stream, to_entities(view))
    else:
        raise ValueError(f"Invalid format {output_format}")


def pad(width: int, key: str) -> str:
    """Non-breaking spaces that bring ``key`` to ``width`` plus one column."""
    return NON_BREAKING_SPACE * max(width - len(key) + 1, 0)


def to_entities(view: Any) -> list[Entity]:
    """Turn a view, or a list of views, into entities."""
    if view is None:
        return []
    if isinstance(view, (list, tuple)):
        return [_new_entity(item) for item in view]
    return [_new_entity(view)]


def _print_list(stream: TextIO, entities: list[Entity]) -> None:
    if not entities:
        return
    stream.write("\n")
    width = entities[0].max_key()
    for entity in entities:
        for prop in entity.properties:
            stream.write(f"{prop.key:<{width}} : {prop.value}\n")
        stream.write("\n")


def _print_table(stream: TextIO, entities: list[Entity]) -> None:
    if not entities:
        return
    stream.write("\n")
    widths = _column_widths(entities)
    header = entities[0].properties
    stream.write("".join(p.key + pad(w, p.key) for p, w in zip(header, widths)) + "\n")
    dashes = ["-" * len(p.key) for p in header]
    stream.write("".join(d + pad(w, d) for d, w in zip(dashes, widths)) + "\n")
    for entity in entities:
        cells = (p.value + pad(w, p.value) for p, w in zip(entity.properties, widths))
        stream.write("".join(cells) + "\n")
    stream.write("\n")


def _column_widths(entities: list[Entity]) -> list[int]:
    widths = []
    for column, prop in enumerate(entities[0].properties):
        values = (
            len(entity.properties[column].value)
            for entity in entities
            if column < len(entity.properties)
        )
        widths.append(max(len(prop.key), *values))
    return widths


def _display_name(field_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in field_name.split("_"))


def _is_view(item: Any) -> bool:
    return dataclasses.is_dataclass(item) and not isinstance(item, type)


def _new_entity(item: Any) -> Entity:
    if _is_view(item):
        props = [
            prop
            for view_field in dataclasses.fields(item)
            if (prop := _new_property(item, view_field)) is not None
        ]
        return Entity(props)
    if isinstance(item, Mapping):
        return Entity([Property(str(key), _sprint(value)) for key, value in item.items()])
    return Entity([Property("---", _sprint(item))])


def _new_property(item: Any, view_field: dataclasses.Field) -> Property | None:
    spec = view_field.metadata.get("format", "")
    if spec == "-":
        return None
    raw = getattr(item, view_field.name)
    value = _sprint(raw)
    if isinstance(raw, Mapping):
        value = value[len("map"):]
    prop = Property(_display_name(view_field.name), value)
    if spec:
        for directive in spec.split(";"):
            if directive == "omitempty":
                if _is_zero(raw):
                    return None
                continue
            _formatter(directive)(prop, raw)
    return prop


def _is_zero(value: Any) -> bool:
    if value is None or value == "":
        return True
    return isinstance(value, (Mapping, list, tuple)) and not value


def _formatter(directive: str) -> Callable[[Property, Any], None]:
    if directive.startswith("maxlen:"):
        return _maxlen_formatter(directive)
    if directive.startswith("time:"):
        return _time_formatter(directive[len("time:"):])
    if directive.startswith("name:"):
        key = directive[len("name:"):]

        def rename(prop: Property, _raw: Any) -> None:
            prop.key = key

        return rename
    raise ValueError(f"unknown format {directive}")


def _maxlen_formatter(directive: str) -> Callable[[Property, Any], None]:
    try:
        limit = int(directive[len("maxlen:"):])
    except ValueError:
        raise ValueError(f"bad format tag {directive}") from None

    def truncate(prop: Property, _raw: Any) -> None:
        if len(prop.value) > limit:
            prop.value = prop.value[:limit]

    return truncate


def _time_formatter(layout: str) -> Callable[[Property, Any], None]:
    def render(prop: Property, raw: Any) -> None:
        if raw is None:
            prop.value = ""
            return
        if not isinstance(raw, datetime):
            raise TypeError("time tag can be applied only to datetime values")
        moment = raw.astimezone() if raw.tzinfo is not None else raw
        prop.value = _format_time(moment, layout)

    return render


def _format_time(moment: datetime, layout: str) -> str:
    def substitute(match: re.Match) -> str:
        token = match.group(0)
        if token == ".000":
            return f".{moment.microsecond // 1000:03d}"
        return moment.strftime(_STRFTIME[token])

    return _LAYOUT_TOKENS.sub(substitute, layout)


def _sprint(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return _sprint(value.value)
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "map[" + " ".join(f"{_sprint(k)}:{_sprint(v)}" for k, v in items) + "]"
    if isinstance(value, (list, tuple, set, frozenset)):
        return "[" + " ".join(_sprint(v) for v in value) + "]"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return str(value)


def _to_json(value: Any) -> Any:
    if _is_view(value):
        return {
            view_field.metadata.get("json", _display_name(view_field.name)): _to_json(
                getattr(value, view_field.name)
            )
            for view_field in dataclasses.fields(value)
        }
    if isinstance(value, Enum):
        return _to_json(value.value)
    if isinstance(value, Mapping):
        return {str(key): _to_json(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_json(item) for item in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value
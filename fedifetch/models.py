"""Shared building blocks for models of remote ActivityStreams documents."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RemoteModel(BaseModel):
    """Base for documents received from remote servers.

    Remote documents carry many fields this package does not model, so
    unknown keys are ignored. JSON keys are the camelCase ActivityStreams
    names; Python attributes are snake_case and either form is accepted.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )


def as_list(value: Any) -> Any:
    """Wrap a single value in a list; ``None`` becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def link_href(value: Any) -> Any:
    """Reduce a Link, an object or a list of them to a single URL string.

    Strings pass through; mappings yield ``href`` or ``id`` (or ``url``);
    lists yield their first reducible element. Anything else is returned
    unchanged so validation can reject it.
    """
    if isinstance(value, list):
        for element in value:
            reduced = link_href(element)
            if isinstance(reduced, str):
                return reduced
        return None
    if isinstance(value, dict):
        for key in ("href", "id", "url"):
            candidate = value.get(key)
            if isinstance(candidate, str):
                return candidate
            if isinstance(candidate, list | dict):
                return link_href(candidate)
        return None
    return value


def link_id(value: str | dict[str, Any] | None) -> str | None:
    """Identifier of a collection link that may be a URL or an embedded page."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        candidate = value.get("id") or value.get("href")
        return candidate if isinstance(candidate, str) else None
    return None

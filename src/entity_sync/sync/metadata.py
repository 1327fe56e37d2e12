"""Metadata values at the store boundary, and the metadata copy step.

WordPress hands out custom field values as strings, some of which are
PHP-serialized arrays. Sending such a string back through XML-RPC makes
WordPress serialize it a second time, so values are decoded into
``MetaValue`` objects when read and encoded as native XML-RPC structs
or arrays when written.
"""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

import phpserialize

from ..errors import StoreError
from .models import MetaValue

if TYPE_CHECKING:
    from .store import StoreAccessor

logger = logging.getLogger(__name__)

# Same shapes WordPress' is_serialized() accepts in strict mode
_SERIALIZED_PATTERN = re.compile(
    r'^(?:N;|b:[01];|i:-?\d+;|d:-?[0-9.E+\-]+;|s:\d+:".*";'
    r'|a:\d+:\{.*\}|O:\d+:"[^"]+":\d+:\{.*\})$',
    re.DOTALL,
)

_XMLRPC_MAXINT = 2**31 - 1


def _php_array(pairs: list[tuple[Any, Any]]) -> list | dict:
    keys = [key for key, _ in pairs]
    if keys == list(range(len(pairs))):
        return [value for _, value in pairs]
    return dict(pairs)


def is_serialized(value: str) -> bool:
    """Return True if *value* looks like PHP ``serialize()`` output."""
    return bool(_SERIALIZED_PATTERN.match(value.strip()))


def is_protected_meta_key(key: str) -> bool:
    """Return True for keys WordPress treats as protected (``_`` prefix).

    Over XML-RPC such keys are hidden when read and silently dropped
    when written, unless the site registers them with an auth callback.
    """
    return key.lstrip().startswith("_")


def decode_meta_value(raw: Any) -> MetaValue:
    """Decode one stored value.

    Serialized strings become structured values; anything that does not
    decode cleanly (including serialized PHP objects) stays raw.
    """
    if not isinstance(raw, str):
        return MetaValue.of_structured(raw)

    if not is_serialized(raw):
        return MetaValue.of_raw(raw)

    try:
        data = phpserialize.loads(
            raw.strip().encode("utf-8"),
            decode_strings=True,
            array_hook=_php_array,
        )
    except ValueError as exc:
        logger.debug("Keeping undecodable serialized value raw: %s", exc)
        return MetaValue.of_raw(raw)

    return MetaValue.of_structured(data)


def _to_xmlrpc(data: Any) -> Any:
    match data:
        case None:
            return ""
        case bool():
            return data
        case int() if abs(data) > _XMLRPC_MAXINT:
            return str(data)
        case int() | float() | str():
            return data
        case bytes():
            return data.decode("utf-8", errors="replace")
        case dict():
            return {str(k): _to_xmlrpc(v) for k, v in data.items()}
        case list() | tuple():
            return [_to_xmlrpc(v) for v in data]
        case _:
            return str(data)


def encode_meta_value(value: MetaValue) -> Any:
    """Encode a value for an XML-RPC ``custom_fields`` entry."""
    if value.kind == "raw":
        return value.raw if value.raw is not None else ""
    return _to_xmlrpc(value.data)


def copy_metadata(
    source: StoreAccessor,
    target: StoreAccessor,
    source_id: str,
    new_id: str,
) -> list[str]:
    """Copy every metadata value of *source_id* onto *new_id*.

    Every key the source exposes is copied, and each value of a
    multi-valued key is appended separately in order. Protected keys
    are only visible and writable where the site allows XML-RPC access
    to them.

    Returns:
        Warning messages for values that could not be written.
    """
    warnings: list[str] = []
    metadata = source.get_metadata(source_id)

    for key, values in metadata.items():
        for value in values:
            try:
                target.set_metadata_value(new_id, key, value)
            except StoreError as exc:
                message = f"Failed to copy meta '{key}': {exc.detail}"
                logger.warning(message)
                warnings.append(message)

    return warnings

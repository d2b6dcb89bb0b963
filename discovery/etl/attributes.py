"""Decoding of stored service/language attribute blobs.

Profiles have been saved over time as a native list, a JSON-encoded array
string, a JSON object of ``{label: weight}``, or a comma separated string whose
tokens may carry a ``label:N⭐`` weight suffix. Everything funnels through
``decode_attributes`` so matching never depends on which encoding a row uses.
"""

import json
import logging
import re
from typing import Any, Iterable, List, Mapping, Tuple

from discovery.models import DEFAULT_ATTRIBUTE_WEIGHT, Attribute, AttributeList, DecodeResult

logger = logging.getLogger(__name__)

_TAG_PREFIX = re.compile(r"^(srv:|opt:)", re.IGNORECASE)
_WEIGHTED_TOKEN = re.compile(r"^(?P<label>.+?)\s*:\s*(?P<weight>\d+)\s*⭐\ufe0f?$")
_TOKEN_WRAPPERS = "[]\"' "


def clean_label(raw: Any) -> str:
    label = str(raw).strip()
    return _TAG_PREFIX.sub("", label).strip()


def _build(pairs: Iterable[Tuple[Any, Any]]) -> AttributeList:
    items: List[Attribute] = []
    seen = set()
    for raw_label, raw_weight in pairs:
        if raw_label is None:
            continue
        label = clean_label(raw_label)
        if not label or label in seen:
            continue
        seen.add(label)
        items.append(Attribute(label=label, weight=_coerce_weight(raw_weight)))
    return AttributeList(tuple(items))


def _coerce_weight(value: Any) -> int:
    if isinstance(value, bool):
        return DEFAULT_ATTRIBUTE_WEIGHT
    try:
        return int(value)
    except (TypeError, ValueError):
        return DEFAULT_ATTRIBUTE_WEIGHT


def _from_sequence(values: Iterable[Any]) -> AttributeList:
    return _build((value, DEFAULT_ATTRIBUTE_WEIGHT) for value in values)


def _from_mapping(values: Mapping[Any, Any]) -> AttributeList:
    return _build(values.items())


def _from_csv(text: str) -> AttributeList:
    pairs = []
    for token in text.split(","):
        token = token.strip().strip(_TOKEN_WRAPPERS)
        if not token:
            continue
        match = _WEIGHTED_TOKEN.match(token)
        if match:
            pairs.append((match.group("label"), match.group("weight")))
        else:
            pairs.append((token, DEFAULT_ATTRIBUTE_WEIGHT))
    return _build(pairs)


def decode_attributes(raw: Any) -> DecodeResult[AttributeList]:
    """Decode an attribute blob, reporting malformed input explicitly."""
    if raw is None:
        return DecodeResult(AttributeList())
    if isinstance(raw, (list, tuple)):
        return DecodeResult(_from_sequence(raw))
    if isinstance(raw, dict):
        return DecodeResult(_from_mapping(raw))
    if not isinstance(raw, str):
        return DecodeResult(
            AttributeList(), ok=False, error=f"unsupported attribute encoding: {type(raw).__name__}"
        )

    text = raw.strip()
    if not text:
        return DecodeResult(AttributeList())

    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except ValueError:
            logger.debug("Attribute blob looks like JSON but does not parse; trying CSV: %s", text[:80])
        else:
            if isinstance(parsed, list):
                return DecodeResult(_from_sequence(parsed))

    if text.startswith("{"):
        try:
            parsed = json.loads(text)
        except ValueError as exc:
            return DecodeResult(AttributeList(), ok=False, error=f"malformed attribute object: {exc}")
        if isinstance(parsed, dict):
            return DecodeResult(_from_mapping(parsed))
        return DecodeResult(AttributeList(), ok=False, error="attribute object is not a mapping")

    return DecodeResult(_from_csv(text))


def parse_attributes(raw: Any) -> AttributeList:
    """Lenient variant of ``decode_attributes``: malformed input decodes to an empty list."""
    result = decode_attributes(raw)
    if not result.ok:
        logger.debug("Discarding malformed attribute blob: %s", result.error)
    return result.value


def matches_any(attributes: AttributeList, wanted: Iterable[str]) -> bool:
    """True when at least one requested label is present (case-insensitive)."""
    requested = {clean_label(label).casefold() for label in wanted if label and str(label).strip()}
    if not requested:
        return True
    present = {label.casefold() for label in attributes.labels()}
    return bool(present & requested)

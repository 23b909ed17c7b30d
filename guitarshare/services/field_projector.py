"""Privacy projection of a guitar record onto its publicly shared subset."""

from __future__ import annotations

from typing import Any, Mapping

from guitarshare.constants import CONDITION_FIELDS, PLAIN_FIELDS, PRIVATE_INFO_FIELDS


def project(guitar: Mapping[str, Any], shared_fields: Mapping[str, bool]) -> dict[str, Any]:
    """Return only the guitar attributes flagged visible in ``shared_fields``.

    A field is copied when its flag is true and the guitar actually has a
    value for it (missing keys and ``None`` are skipped). Values are copied
    as-is. Inputs are never modified.
    """
    filtered: dict[str, Any] = {}

    for field in PLAIN_FIELDS:
        if shared_fields.get(field) and guitar.get(field) is not None:
            filtered[field] = guitar[field]

    if shared_fields.get("conditionReport"):
        for field in CONDITION_FIELDS:
            if guitar.get(field) is not None:
                filtered[field] = guitar[field]

    private_info = guitar.get("privateInfo") or {}
    for field in PRIVATE_INFO_FIELDS:
        if shared_fields.get(field) and private_info.get(field) is not None:
            filtered[field] = private_info[field]

    return filtered

from __future__ import annotations

from typing import Any, Iterable

_REQUEST_LOCATIONS = {"body", "query", "path", "header", "cookie"}


def _split_location(raw_loc: Any) -> tuple[str, str]:
    if raw_loc is None:
        return "body", "(root)"
    parts: Iterable[Any] = raw_loc if isinstance(raw_loc, (list, tuple)) else [raw_loc]
    names = [str(part) for part in parts]
    if names and names[0] in _REQUEST_LOCATIONS:
        location, names = names[0], names[1:]
    else:
        location = "body"
    return location, ".".join(names) or "(root)"


def format_validation_error_details(errors: list[dict[str, Any]]) -> dict[str, Any]:
    field_errors: list[dict[str, str]] = []
    missing_fields: list[str] = []

    for error in errors:
        location, path = _split_location(error.get("loc"))
        error_type = str(error.get("type", "validation_error"))
        field_errors.append(
            {
                "path": path,
                "location": location,
                "message": str(error.get("msg", "Invalid value")),
                "errorType": error_type,
            }
        )
        if error_type == "missing" and path not in missing_fields:
            missing_fields.append(path)

    if missing_fields:
        noun = "field" if len(missing_fields) == 1 else "fields"
        summary = f"Validation failed: missing required {noun}: {', '.join(missing_fields)}."
    else:
        noun = "field" if len(field_errors) == 1 else "fields"
        summary = f"Validation failed for {len(field_errors)} {noun}."

    return {
        "summary": summary,
        "missingFields": missing_fields,
        "fieldErrors": field_errors,
    }

"""
Input validation for document store identifiers.

Checks collection paths and document ids before they are placed into
request URLs.
"""

import re

# Document ids are URL path segments: no separators, no reserved characters.
_UID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")
MAX_UID_LENGTH = 1500


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Document id")
        reason: Description of validation failure (e.g., "cannot be empty")
    """
    return f"{field_name} {reason}"


def validate_uid(uid: str) -> tuple[bool, str]:
    """
    Validate a document id.

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - At most 1500 characters
        - Only letters, digits, '_' and '-'
    """
    if not uid or not uid.strip():
        return (
            False,
            format_validation_error("Document id", "cannot be empty"),
        )

    if len(uid) > MAX_UID_LENGTH:
        return (
            False,
            format_validation_error(
                "Document id",
                f"exceeds maximum length of {MAX_UID_LENGTH} characters",
            ),
        )

    if not _UID_PATTERN.match(uid):
        return (
            False,
            format_validation_error(
                "Document id",
                "may only contain letters, digits, '_' and '-'",
            ),
        )

    return (True, "")


def validate_collection_path(path: str) -> tuple[bool, str]:
    """
    Validate a collection path such as ``recipes`` or
    ``foodItems/<household>/items``.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot contain '..' or empty segments
        - Must have an odd number of segments (collection/doc/collection)
        - Every segment must be a valid document id
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Collection path", "cannot be empty"),
        )

    if ".." in path:
        return (
            False,
            format_validation_error("Collection path", "cannot contain '..'"),
        )

    segments = path.split("/")
    if any(not segment for segment in segments):
        return (
            False,
            format_validation_error(
                "Collection path", "cannot have empty path segments"
            ),
        )

    if len(segments) % 2 == 0:
        return (
            False,
            format_validation_error(
                "Collection path",
                "must name a collection, not a document",
            ),
        )

    for segment in segments:
        is_valid, _ = validate_uid(segment)
        if not is_valid:
            return (
                False,
                format_validation_error(
                    "Collection path", f"has invalid segment '{segment}'"
                ),
            )

    return (True, "")

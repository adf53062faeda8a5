"""Snapshot and mutation formatting functions.

Provides human-readable and machine-readable output for the CLI:

- ``format_snapshot`` -- one line per cached entity.
- ``snapshot_to_json`` -- structured dict of a snapshot.
- ``format_mutation_result`` -- one-line outcome of a mutation.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Entity, MutationResult

# ------------------------------------------------------------------
# Human-readable output
# ------------------------------------------------------------------


def _describe(entity: Entity) -> str:
    name = getattr(entity, "name", None)
    if name is None:
        facts = getattr(entity, "food_facts", None)
        name = getattr(facts, "name", None)
    return f"{entity.uid}  {name}" if name else entity.uid


def format_snapshot(
    label: str,
    entities: Sequence[Entity],
    selected: Entity | None = None,
) -> str:
    """Format a cache snapshot as human-readable text.

    The selected entity, if any, is marked with ``*``.

    Args:
        label: Heading, typically the collection path.
        entities: Snapshot to render.
        selected: Currently selected entity.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = [f"{label}: {len(entities)} entities"]
    for entity in entities:
        marker = "*" if selected is not None and entity.uid == selected.uid else " "
        lines.append(f" {marker} {_describe(entity)}")
    if not entities:
        lines.append("  (empty)")
    return "\n".join(lines)


def format_mutation_result(result: MutationResult) -> str:
    """Format a mutation outcome on one line."""
    if result.committed:
        return f"{result.kind.value} {result.uid}: committed"
    return f"{result.kind.value} {result.uid}: rolled back ({result.error})"


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def snapshot_to_json(
    entities: Sequence[Entity],
    selected: Entity | None = None,
) -> dict:
    """Convert a snapshot to a structured dict for JSON serialisation.

    Entities are encoded as remote documents (camelCase keys).

    Returns:
        Dict with count, selected uid and the encoded documents.
    """
    return {
        "count": len(entities),
        "selected": selected.uid if selected is not None else None,
        "entities": [entity.to_document() for entity in entities],
    }

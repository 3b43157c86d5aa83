# Copyright 2025 Gowtham Rao <rao@ohdsi.org>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Defines the Pydantic data models for the application."""

from enum import Enum
from pathlib import Path
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field


class RelationshipType(str, Enum):
    ONE_TO_MANY = "OneToManyRelationship"
    MANY_TO_ONE = "ManyToOneRelationship"
    MANY_TO_MANY = "ManyToManyRelationship"


class RelationshipEdge(BaseModel):
    """A single relationship between two entities, as drawn in a diagram.

    Edges point from the referencing (child) entity to the referenced
    (parent) entity.
    """

    schema_name: str
    source: str = Field(..., description="Logical name of the referencing entity.")
    target: str = Field(..., description="Logical name of the referenced entity.")
    relationship_type: RelationshipType
    is_custom: bool = False
    has_changed: bool | None = Field(
        default=None,
        description="Raw HasChanged flag; any non-null value marks the edge as changed.",
    )

    @property
    def is_changed(self) -> bool:
        return self.has_changed is not None

    @property
    def label(self) -> str:
        parts = [self.schema_name, f"({self.relationship_type.value})"]
        if self.is_custom:
            parts.append("[Custom]")
        if self.is_changed:
            parts.append("[Changed]")
        return " ".join(parts)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RelationshipEdge":
        """Build an edge from a mapped row of the Relationships sheet."""
        has_changed = row.get("Has Changed")
        return cls(
            schema_name=row.get("Schema Name") or "",
            source=row.get("Referencing Entity") or "Unknown",
            target=row.get("Entity Ref.") or "Unknown",
            relationship_type=RelationshipType(row["Type"]),
            is_custom=row.get("Is Custom") is True,
            has_changed=None if has_changed in (None, "") else bool(has_changed),
        )


class DiagramFilterMode(str, Enum):
    CUSTOM_OR_CHANGED = "custom_or_changed"
    ALLOW_LIST = "allow_list"


class DiagramFilter(BaseModel):
    """Selects which relationships appear in a diagram.

    Populating either allow-list switches the filter into allow-list mode;
    otherwise only custom or changed relationships are kept, minus any whose
    names contain one of the excluded substrings.
    """

    excluded_substrings: list[str] = Field(default_factory=lambda: ["mssp"])
    allowed_types: list[RelationshipType] = Field(default_factory=list)
    allowed_entities: list[str] = Field(default_factory=list)

    @property
    def mode(self) -> DiagramFilterMode:
        if self.allowed_types or self.allowed_entities:
            return DiagramFilterMode.ALLOW_LIST
        return DiagramFilterMode.CUSTOM_OR_CHANGED


class ExportContext(BaseModel):
    """Everything a single export run needs, built once by the run driver."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client: httpx.AsyncClient
    token: str
    api_base_url: str
    output_dir: Path = Path("outputs")
    diagrams_dir: Path = Path("diagrams")
    diagram_filter: DiagramFilter = Field(default_factory=DiagramFilter)
    business_rules_by_category: bool = True
    render_diagrams: bool = True

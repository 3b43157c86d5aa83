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
"""Exports every metadata category of one entity and draws its diagrams."""

import asyncio
import logging
from pathlib import Path

from .categories import RELATIONSHIPS, entity_categories, export_category
from .diagram import filter_edges, render_diagram
from .models import ExportContext, RelationshipEdge, RelationshipType
from .workbook import WorkbookBuilder

logger = logging.getLogger(__name__)

WORKBOOK_SUFFIX = ".xlsx"


async def export_workbook(ctx: ExportContext, entity: str) -> Path:
    """Write `<output_dir>/<entity>.xlsx` with one sheet per category."""
    builder = WorkbookBuilder()
    for category in entity_categories(ctx.business_rules_by_category):
        rows = await export_category(ctx, category, entity)
        builder.add_sheet(category.sheet_name, rows)
    return builder.save(ctx.output_dir / f"{entity}{WORKBOOK_SUFFIX}")


async def export_diagrams(ctx: ExportContext, entity: str) -> list[Path]:
    """Render one diagram per relationship type that has edges left after filtering."""
    rows = await export_category(ctx, RELATIONSHIPS, entity)
    edges = [RelationshipEdge.from_row(row) for row in rows]

    rendered = []
    for relationship_type in RelationshipType:
        of_type = [e for e in edges if e.relationship_type is relationship_type]
        kept = filter_edges(of_type, ctx.diagram_filter)
        logger.info(
            'For entity "%s", relationship type "%s": %d original, %d after filtering.',
            entity,
            relationship_type.value,
            len(of_type),
            len(kept),
        )
        if not kept:
            logger.info(
                "No relationships of type %s remain for %s after filtering (%s mode).",
                relationship_type.value,
                entity,
                ctx.diagram_filter.mode.value,
            )
            continue

        output_path = ctx.diagrams_dir / f"{entity}-{relationship_type.value}.png"
        rendered.append(await asyncio.to_thread(render_diagram, kept, output_path))
    return rendered


async def process_entity(ctx: ExportContext, entity: str) -> Path:
    """Export one entity's workbook and, if enabled, its relationship diagrams.

    Any failure aborts the entity; a workbook already saved stays on disk.
    """
    workbook_path = await export_workbook(ctx, entity)
    if ctx.render_diagrams:
        # Relationships are fetched again here; the workbook pass keeps no state.
        await export_diagrams(ctx, entity)
    return workbook_path

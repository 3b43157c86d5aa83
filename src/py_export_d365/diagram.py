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
"""Renders entity relationship diagrams with Graphviz."""

import logging
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path

import graphviz
from jinja2 import Environment, PackageLoader

from .models import DiagramFilter, DiagramFilterMode, RelationshipEdge

logger = logging.getLogger(__name__)


def _dot_quote(value: str) -> str:
    """Quote a string as a DOT identifier."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


_jinja_env = Environment(
    loader=PackageLoader("py_export_d365", "templates"),
    autoescape=False,  # DOT is not HTML
    trim_blocks=True,
    lstrip_blocks=True,
)
_jinja_env.filters["dot_quote"] = _dot_quote


def should_include(edge: RelationshipEdge, diagram_filter: DiagramFilter) -> bool:
    """Decide whether a relationship belongs in the diagram."""
    if diagram_filter.mode is DiagramFilterMode.ALLOW_LIST:
        if (
            diagram_filter.allowed_types
            and edge.relationship_type not in diagram_filter.allowed_types
        ):
            return False
        if diagram_filter.allowed_entities:
            allowed = {name.lower() for name in diagram_filter.allowed_entities}
            return edge.source.lower() in allowed or edge.target.lower() in allowed
        return True

    names = (edge.schema_name.lower(), edge.source.lower(), edge.target.lower())
    for excluded in diagram_filter.excluded_substrings:
        if excluded and any(excluded.lower() in name for name in names):
            return False
    return edge.is_custom or edge.is_changed


def filter_edges(
    edges: Iterable[RelationshipEdge], diagram_filter: DiagramFilter,
) -> list[RelationshipEdge]:
    return [edge for edge in edges if should_include(edge, diagram_filter)]


def build_dot(edges: Sequence[RelationshipEdge]) -> str:
    """Generate the DOT description of a relationship diagram."""
    nodes = dict.fromkeys(name for edge in edges for name in (edge.source, edge.target))
    template = _jinja_env.get_template("relationships.dot.j2")
    return template.render(nodes=list(nodes), edges=edges)


def render_diagram(
    edges: Sequence[RelationshipEdge],
    output_path: str | Path,
    diagram_filter: DiagramFilter | None = None,
    fmt: str = "png",
    engine: str = "dot",
) -> Path:
    """Render relationships to an image file.

    The DOT source is written to a temporary file next to the output, handed
    to the Graphviz executable, and removed again whether or not rendering
    succeeded.

    Raises:
        graphviz.ExecutableNotFound: If Graphviz is not installed.
        graphviz.CalledProcessError: If the layout engine fails.
    """
    output_path = Path(output_path)
    if diagram_filter is not None:
        logger.info("Total relationships before filtering: %d", len(edges))
        edges = filter_edges(edges, diagram_filter)
        logger.info("Total relationships after filtering: %d", len(edges))

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", suffix=".dot", dir=output_path.parent, delete=False, encoding="utf-8",
    ) as f:
        f.write(build_dot(edges))
        source_path = Path(f.name)

    try:
        graphviz.render(engine, fmt, source_path, outfile=output_path)
    except (graphviz.ExecutableNotFound, graphviz.CalledProcessError) as e:
        logger.error("Error generating diagram %s: %s", output_path, e)
        raise
    finally:
        source_path.unlink(missing_ok=True)

    logger.info("Diagram successfully saved to %s", output_path)
    return output_path

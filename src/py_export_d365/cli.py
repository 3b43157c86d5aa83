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
"""Command line entry point: authenticate once, then export each entity."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import httpx
import typer

from .auth import acquire_token
from .config import Settings, load_config
from .models import ExportContext
from .orchestrator import process_entity

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)

app = typer.Typer(help="Export Dynamics 365 entity metadata to Excel workbooks and diagrams.")


async def arun_export(
    settings: Settings,
    entities: list[str] | None = None,
    render_diagrams: bool = True,
    continue_on_error: bool = False,
) -> list[str]:
    """Export every entity in turn with a single access token.

    By default the first failing entity aborts the run. With
    `continue_on_error`, failures are logged and the remaining entities are
    still processed.

    Returns:
        Logical names of the entities that failed.
    """
    start_time = datetime.now(timezone.utc)
    entities = entities or settings.entities
    failed: list[str] = []
    settings.require_credentials()

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout) as client:
            logger.info("Fetching access token...")
            token = await acquire_token(client, settings)

            ctx = ExportContext(
                client=client,
                token=token,
                api_base_url=settings.api_base_url,
                output_dir=settings.output_dir,
                diagrams_dir=settings.diagrams_dir,
                diagram_filter=settings.diagram_filter,
                business_rules_by_category=settings.business_rules_by_category,
                render_diagrams=render_diagrams,
            )

            for entity in entities:
                logger.info("Processing entity: %s", entity)
                try:
                    await process_entity(ctx, entity)
                except Exception as e:
                    if not continue_on_error:
                        raise
                    logger.error("Failed to process entity %s: %s", entity, e, exc_info=True)
                    failed.append(entity)
                    continue
                logger.info("Finished processing entity: %s", entity)
    except Exception as e:
        logger.error("Export failed: %s", e, exc_info=True)
        raise
    finally:
        duration = datetime.now(timezone.utc) - start_time
        logger.info("Export of %d entities finished in %s.", len(entities), duration)

    if failed:
        logger.warning("%d entities failed: %s", len(failed), ", ".join(failed))
    return failed


@app.command()
def export(
    entities: Optional[List[str]] = typer.Option(
        None,
        "--entity",
        "-e",
        help="Logical name of an entity to export; repeat for several. "
        "Defaults to the configured entity list.",
    ),
    config_file: str = typer.Option("config.yaml", "--config", help="Path to YAML config file."),
    output_dir: Optional[Path] = typer.Option(None, help="Directory for the workbooks."),
    diagrams_dir: Optional[Path] = typer.Option(None, help="Directory for the diagrams."),
    diagrams: bool = typer.Option(
        True, "--diagrams/--no-diagrams", help="Render relationship diagrams."
    ),
    continue_on_error: bool = typer.Option(
        False, help="Keep going when an entity fails instead of aborting the run."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Export entity metadata to one workbook per entity."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)

    config = load_config(config_file)
    if output_dir:
        config["output_dir"] = output_dir
    if diagrams_dir:
        config["diagrams_dir"] = diagrams_dir
    settings = Settings(**config)

    failed = asyncio.run(
        arun_export(
            settings,
            entities=entities,
            render_diagrams=diagrams,
            continue_on_error=continue_on_error,
        )
    )
    if failed:
        raise typer.Exit(code=1)


def main():
    app()


if __name__ == "__main__":
    main()

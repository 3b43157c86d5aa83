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
"""Declares the metadata categories exported for every entity.

A category is pure configuration: the Web API collections it reads from and
the field mappings that turn each record into a sheet row. A single pipeline,
`export_category`, fetches and maps any of them.
"""

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .fetcher import fetch_all_pages
from .mapper import FieldMapping, map_record
from .models import ExportContext, RelationshipType

logger = logging.getLogger(__name__)

ENTITY_DEFINITION = "EntityDefinitions(LogicalName='{entity}')"


def odata_literal(value: str) -> str:
    """Escape a value for use inside a single-quoted OData string literal."""
    return value.replace("'", "''")


class Source(BaseModel):
    """One Web API collection read by a category."""

    model_config = ConfigDict(frozen=True)

    path: str
    filters: tuple[str, ...] = ()
    select: tuple[str, ...] = ()
    tag: dict[str, Any] = Field(default_factory=dict)

    def build_url(self, base_url: str, entity: str) -> str:
        literal = odata_literal(entity)
        url = f"{base_url.rstrip('/')}/{self.path.format(entity=literal)}"
        options = []
        if self.filters:
            clauses = " and ".join(f.format(entity=literal) for f in self.filters)
            options.append(f"$filter={clauses}")
        if self.select:
            options.append(f"$select={','.join(self.select)}")
        if options:
            url = f"{url}?{'&'.join(options)}"
        return url


class CategoryExport(BaseModel):
    """Configuration for exporting one metadata category to one sheet."""

    model_config = ConfigDict(frozen=True)

    name: str
    sheet_name: str
    sources: tuple[Source, ...]
    mappings: tuple[FieldMapping, ...]

    @property
    def columns(self) -> list[str]:
        return [mapping.column for mapping in self.mappings]


ATTRIBUTES = CategoryExport(
    name="attributes",
    sheet_name="Columns",
    sources=(Source(path=f"{ENTITY_DEFINITION}/Attributes"),),
    mappings=(
        FieldMapping(source="SchemaName", column="Schema Name"),
        FieldMapping(source="LogicalName", column="Logical Name"),
        FieldMapping(
            source="DisplayName/UserLocalizedLabel/Label",
            column="Display Name",
            fallbacks=("DisplayName/LocalizedLabels/0/Label",),
        ),
        FieldMapping(source="AttributeType", column="Data Type"),
        FieldMapping(source="AttributeTypeName/Value", column="Type Name"),
        FieldMapping(source="Description/LocalizedLabels/0/Label", column="Description"),
        FieldMapping(source="IsCustomAttribute", column="Custom", default="No", yes_no=True),
        FieldMapping(source="IsPrimaryId", column="Primary Id", default="No", yes_no=True),
        FieldMapping(source="IsPrimaryName", column="Primary Name", default="No", yes_no=True),
        FieldMapping(source="IsManaged", column="Managed", default="No", yes_no=True),
        FieldMapping(
            source="IsAuditEnabled/Value", column="Auditing", default="No", yes_no=True,
        ),
        FieldMapping(
            source="IsCustomizable/Value", column="Customizable", default="No", yes_no=True,
        ),
        FieldMapping(
            source="RequiredLevel/Value",
            column="Required Level",
            default="Unknown",
            lookup="required_level",
        ),
        FieldMapping(source="DateTimeBehavior/Value", column="Date Behavior"),
        FieldMapping(source="Format", column="Format", fallbacks=("FormatName/Value",)),
        FieldMapping(source="MaxLength", column="Max Length"),
    ),
)

RELATIONSHIPS = CategoryExport(
    name="relationships",
    sheet_name="Relationships",
    sources=tuple(
        Source(
            path=f"{ENTITY_DEFINITION}/{relationship_type.value}s",
            tag={"RelationshipType": relationship_type.value},
        )
        for relationship_type in RelationshipType
    ),
    mappings=(
        FieldMapping(source="SchemaName", column="Schema Name"),
        FieldMapping(source="SecurityTypes", column="Security Types"),
        FieldMapping(source="IsManaged", column="Managed"),
        FieldMapping(source="RelationshipType", column="Type"),
        FieldMapping(source="ReferencedAttribute", column="Attribute Ref."),
        FieldMapping(
            source="ReferencedEntity", column="Entity Ref.", fallbacks=("Entity2LogicalName",),
        ),
        FieldMapping(source="ReferencingAttribute", column="Referencing Attribute"),
        FieldMapping(
            source="ReferencingEntity",
            column="Referencing Entity",
            fallbacks=("Entity1LogicalName",),
        ),
        FieldMapping(source="IntersectEntityName", column="Intersect Entity"),
        FieldMapping(source="IsHierarchical", column="Hierarchical"),
        FieldMapping(
            source="RelationshipBehavior", column="Behavior", lookup="relationship_behavior",
        ),
        FieldMapping(source="IsCustomizable/Value", column="Customizable"),
        FieldMapping(source="IsCustomRelationship", column="Is Custom", default=False),
        FieldMapping(source="HasChanged", column="Has Changed"),
        FieldMapping(
            source="AssociatedMenuConfiguration/Behavior",
            column="Menu Behavior",
            fallbacks=("Entity1AssociatedMenuConfiguration/Behavior",),
        ),
        FieldMapping(
            source="AssociatedMenuConfiguration/IsCustomizable",
            column="Menu Customization",
            fallbacks=("Entity1AssociatedMenuConfiguration/IsCustomizable",),
        ),
        FieldMapping(source="CascadeConfiguration/Assign", column="Assign"),
        FieldMapping(source="CascadeConfiguration/Delete", column="Delete"),
        FieldMapping(source="CascadeConfiguration/Archive", column="Archive"),
        FieldMapping(source="CascadeConfiguration/Merge", column="Merge"),
        FieldMapping(source="CascadeConfiguration/Reparent", column="Reparent"),
        FieldMapping(source="CascadeConfiguration/Share", column="Share"),
        FieldMapping(source="CascadeConfiguration/Unshare", column="Unshare"),
        FieldMapping(source="CascadeConfiguration/RollupView", column="RollupView"),
    ),
)

FORMS = CategoryExport(
    name="forms",
    sheet_name="Forms",
    sources=(
        Source(
            path="systemforms",
            filters=("objecttypecode eq '{entity}'",),
            select=(
                "name",
                "description",
                "objecttypecode",
                "type",
                "formactivationstate",
                "formpresentation",
                "componentstate",
                "isairmerged",
                "isdefault",
                "ismanaged",
                "iscustomizable",
                "formjson",
            ),
        ),
    ),
    mappings=(
        FieldMapping(source="name", column="Name"),
        FieldMapping(source="description", column="Description"),
        FieldMapping(source="objecttypecode", column="Object Type Code"),
        FieldMapping(source="type", column="Type", default="Unknown", lookup="form_type"),
        FieldMapping(
            source="formactivationstate",
            column="Activation State",
            default="Unknown",
            lookup="form_activation_state",
        ),
        FieldMapping(
            source="formpresentation",
            column="Presentation",
            default="Unknown",
            lookup="form_presentation",
        ),
        FieldMapping(
            source="componentstate",
            column="Component State",
            default="Unknown",
            lookup="component_state",
        ),
        FieldMapping(source="isairmerged", column="Air Merged", default="No", yes_no=True),
        FieldMapping(source="isdefault", column="Is Default", default=False),
        FieldMapping(source="ismanaged", column="Is Managed", default=False),
        FieldMapping(source="iscustomizable/Value", column="Is Customizable", default=False),
        FieldMapping(source="formjson", column="JSON"),
    ),
)

VIEWS = CategoryExport(
    name="views",
    sheet_name="Views",
    sources=(
        Source(
            path="savedqueries",
            filters=("returnedtypecode eq '{entity}'",),
            select=(
                "name",
                "description",
                "returnedtypecode",
                "querytype",
                "statecode",
                "componentstate",
                "isdefault",
                "ismanaged",
                "iscustomizable",
                "fetchxml",
                "layoutxml",
                "layoutjson",
            ),
        ),
    ),
    mappings=(
        FieldMapping(source="name", column="Name"),
        FieldMapping(source="description", column="Description"),
        FieldMapping(source="returnedtypecode", column="Entity Name"),
        FieldMapping(
            source="querytype", column="Query Type", default="Unknown", lookup="view_query_type",
        ),
        FieldMapping(source="statecode", column="State", default="Unknown", lookup="view_state"),
        FieldMapping(
            source="componentstate",
            column="Component State",
            default="Unknown",
            lookup="component_state",
        ),
        FieldMapping(source="isdefault", column="Is Default", default=False),
        FieldMapping(source="ismanaged", column="Is Managed", default=False),
        FieldMapping(source="iscustomizable/Value", column="Is Customizable", default=False),
        FieldMapping(source="fetchxml", column="Fetch XML"),
        FieldMapping(source="layoutxml", column="Layout XML"),
        FieldMapping(source="layoutjson", column="Layout JSON"),
    ),
)

_BUSINESS_RULE_SELECT = (
    "name",
    "description",
    "primaryentity",
    "scope",
    "statecode",
    "statuscode",
    "businessprocesstype",
    "category",
    "ismanaged",
    "iscustomizable",
    "xaml",
    "clientdata",
)

_BUSINESS_RULE_MAPPINGS = (
    FieldMapping(source="name", column="Name"),
    FieldMapping(source="description", column="Description"),
    FieldMapping(source="primaryentity", column="Entity Name"),
    FieldMapping(source="scope", column="Scope", default="Unknown", lookup="workflow_scope"),
    FieldMapping(
        source="statecode", column="State Code", default="Unknown", lookup="workflow_state",
    ),
    FieldMapping(
        source="statuscode", column="Status Code", default="Unknown", lookup="workflow_status",
    ),
    FieldMapping(
        source="businessprocesstype",
        column="Type",
        default="Unknown",
        lookup="business_process_type",
    ),
    FieldMapping(
        source="category", column="Category", default="Unknown", lookup="workflow_category",
    ),
    FieldMapping(source="ismanaged", column="Is Managed", default=False),
    FieldMapping(source="iscustomizable/Value", column="Is Customizable", default=False),
    FieldMapping(source="xaml", column="Business Logic (XAML)"),
    FieldMapping(source="clientdata", column="Client Script"),
)


def business_rules_category(by_category: bool = True) -> CategoryExport:
    """Business rules are workflows; optionally restrict to category 2 only."""
    filters = ("primaryentity eq '{entity}'",)
    if by_category:
        filters = ("category eq 2", *filters)
    return CategoryExport(
        name="business_rules",
        sheet_name="Business Rules",
        sources=(
            Source(path="workflows", filters=filters, select=_BUSINESS_RULE_SELECT),
        ),
        mappings=_BUSINESS_RULE_MAPPINGS,
    )


BUSINESS_RULES = business_rules_category()


def entity_categories(business_rules_by_category: bool = True) -> tuple[CategoryExport, ...]:
    """All exported categories, in workbook sheet order."""
    return (
        ATTRIBUTES,
        RELATIONSHIPS,
        FORMS,
        VIEWS,
        business_rules_category(business_rules_by_category),
    )


async def fetch_category(
    ctx: ExportContext, category: CategoryExport, entity: str,
) -> list[dict[str, Any]]:
    """Fetch the raw records of every source of a category, in source order."""
    records: list[dict[str, Any]] = []
    for source in category.sources:
        url = source.build_url(ctx.api_base_url, entity)
        page_records = await fetch_all_pages(ctx.client, url, ctx.token)
        records.extend({**record, **source.tag} for record in page_records)
    return records


async def export_category(
    ctx: ExportContext, category: CategoryExport, entity: str,
) -> list[dict[str, Any]]:
    """Fetch a category for one entity and map every record to a sheet row."""
    raw_records = await fetch_category(ctx, category, entity)
    logger.info(
        "Fetched %d %s records for %s.", len(raw_records), category.name, entity,
    )
    return [map_record(record, category.mappings) for record in raw_records]

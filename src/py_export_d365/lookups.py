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
"""Display labels for coded Dataverse option values, keyed by domain name."""

from typing import Any

LOOKUPS: dict[str, dict[Any, str]] = {
    "component_state": {
        0: "Published",
        1: "Unpublished",
        2: "Deleted",
        3: "Deleted Unpublished",
    },
    "form_activation_state": {
        0: "Inactive",
        1: "Active",
    },
    "form_presentation": {
        0: "Classic Form",
        1: "Air Form",
        2: "Converted IC Form",
    },
    "form_type": {
        0: "Dashboard",
        1: "AppointmentBook",
        2: "Main",
        3: "MiniCampaignBO",
        4: "Preview",
        5: "Mobile - Express",
        6: "Quick View Form",
        7: "Quick Create",
        8: "Dialog",
        9: "Task Flow Form",
        10: "InteractionCentricDashboard",
        11: "Card",
        12: "Main - Interactive experience",
        13: "Contextual Dashboard",
        # 18 codes: 0-13 plus 100-103. 103 (Power BI Dashboard) is the one short lists omit.
        100: "Other",
        101: "MainBackup",
        102: "AppointmentBookBackup",
        103: "Power BI Dashboard",
    },
    "view_query_type": {
        0: "Main Application View",
        1: "Advanced Search",
        2: "Sub-Grid",
        4: "Quick Find Search",
        8: "Reporting",
        16: "Offline Filters",
        64: "Lookup View",
        128: "SMAppointmentBook View",
        256: "Outlook Filters",
        512: "Address Book Filters",
        1024: "Main Application View Without Subject",
        2048: "Saved Query Type Other",
        4096: "Interactive Workflow View",
        8192: "Offline Template",
        16384: "Custom Definition",
        65536: "Export Field Translations View",
        131072: "Outlook Template",
    },
    "view_state": {
        0: "Active",
        1: "Inactive",
    },
    "workflow_scope": {
        1: "User",
        2: "Business Unit",
        3: "Parent: Child Business Units",
        4: "Organization",
    },
    "workflow_state": {
        0: "Draft",
        1: "Activated",
        2: "Suspended",
    },
    "workflow_status": {
        1: "Draft",
        2: "Activated",
        3: "Company DLP Violation",
    },
    "workflow_category": {
        0: "Workflow",
        1: "Dialog",
        2: "Business Rule",
        3: "Action",
        4: "Business Process Flow",
        5: "Modern Flow",
        6: "Desktop Flow",
        7: "AI Flow",
    },
    "business_process_type": {
        0: "Business Flow",
        1: "Task Flow",
    },
    "required_level": {
        "None": "Optional",
        "SystemRequired": "System Required",
        "ApplicationRequired": "Business Required",
        "Recommended": "Business Recommended",
    },
    "relationship_behavior": {
        0: "Referential",
        1: "Parental",
        2: "Configurable Cascading",
    },
}


def _normalize(code: Any) -> Any:
    # The Web API returns option values as ints, but formatted or
    # hand-edited payloads may carry them as numeric strings.
    if isinstance(code, str) and code.strip().lstrip("-").isdigit():
        return int(code)
    return code


def lookup(domain: str, code: Any, unknown: str = "Unknown") -> str:
    """Translate a coded value into its display label.

    Raises:
        KeyError: If `domain` is not a registered lookup domain.
    """
    table = LOOKUPS[domain]
    try:
        return table.get(_normalize(code), unknown)
    except TypeError:  # unhashable payload, e.g. a nested object
        return unknown

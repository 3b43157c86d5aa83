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
"""Maps raw Web API records onto flat, display-ready rows.

Each metadata category declares an ordered table of `FieldMapping`s. Mapping
never fails: a missing or null source value degrades to the mapping's default,
so every row produced from the same table has the same columns in the same
order.
"""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict

from .lookups import lookup

_MISSING = object()


def extract_path(record: Any, path: str, default: Any = None) -> Any:
    """Read a value from nested mappings and lists by a '/'-separated path.

    Numeric segments index into lists, so "Description/LocalizedLabels/0/Label"
    reads the first localized label. Returns `default` if any segment is
    missing or the value found is None.
    """
    current = record
    for segment in path.split("/"):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        elif (
            isinstance(current, Sequence)
            and not isinstance(current, (str, bytes))
            and segment.isdigit()
        ):
            index = int(segment)
            current = current[index] if index < len(current) else _MISSING
        else:
            current = _MISSING
        if current is _MISSING or current is None:
            return default
    return current


class FieldMapping(BaseModel):
    """One output column: where its value comes from and how it is rendered."""

    model_config = ConfigDict(frozen=True)

    source: str
    column: str
    default: Any = ""
    lookup: str | None = None
    unknown: str = "Unknown"
    yes_no: bool = False
    fallbacks: tuple[str, ...] = ()

    def resolve(self, record: Mapping[str, Any]) -> Any:
        value = _MISSING
        for path in (self.source, *self.fallbacks):
            value = extract_path(record, path, _MISSING)
            if value is not _MISSING:
                break
        if value is _MISSING:
            return self.default
        if self.lookup:
            return lookup(self.lookup, value, self.unknown)
        if self.yes_no:
            return "Yes" if value else "No"
        return value


def map_record(
    record: Mapping[str, Any], mappings: Iterable[FieldMapping],
) -> dict[str, Any]:
    """Map a raw record to an ordered row of column name -> display value."""
    return {mapping.column: mapping.resolve(record) for mapping in mappings}

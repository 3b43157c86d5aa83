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
"""Fetches paged collections from the Dataverse Web API."""

import logging
from typing import Any

import httpx

NEXT_LINK = "@odata.nextLink"
ODATA_HEADERS = {
    "Accept": "application/json",
    "OData-MaxVersion": "4.0",
    "OData-Version": "4.0",
}

logger = logging.getLogger(__name__)


async def fetch_all_pages(
    client: httpx.AsyncClient, url: str, token: str,
) -> list[dict[str, Any]]:
    """Fetch every record of a collection, following `@odata.nextLink`.

    Pages are concatenated in the order they arrive. Duplicates returned by
    overlapping pages are kept as-is.

    Args:
        client: The HTTP client used for every request.
        url: Absolute URL of the first page.
        token: OAuth2 bearer token.

    Returns:
        All records from the `value` array of every page.

    Raises:
        ValueError: If `token` is empty.
        httpx.HTTPError: If any page request fails; no partial result is returned.
    """
    if not token:
        raise ValueError("An access token is required to query the Web API.")

    headers = {**ODATA_HEADERS, "Authorization": f"Bearer {token}"}
    records: list[dict[str, Any]] = []
    next_url: str | None = url
    pages = 0

    while next_url:
        try:
            response = await client.get(next_url, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("Request to %s failed: %s", next_url, e)
            raise
        payload = response.json()
        records.extend(payload.get("value") or [])
        next_url = payload.get(NEXT_LINK)
        pages += 1

    logger.debug("Fetched %d records in %d page(s) from %s", len(records), pages, url)
    return records

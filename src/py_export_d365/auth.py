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
"""Acquires Azure AD access tokens using the OAuth2 client credentials grant."""

import logging

import httpx

from .config import Settings

logger = logging.getLogger(__name__)


class AuthenticationError(Exception):
    """Raised when the token endpoint rejects the client credentials."""


async def acquire_token(client: httpx.AsyncClient, settings: Settings) -> str:
    """Request a bearer token for the configured Dataverse organization.

    The organization URL is sent as the `resource`, so the token is valid for
    every Web API call made against that organization during the run.

    Raises:
        AuthenticationError: If the request fails or the response carries no
            access token.
    """
    settings.require_credentials()
    form = {
        "client_id": settings.client_id,
        "client_secret": settings.client_secret.get_secret_value(),
        "grant_type": "client_credentials",
        "resource": settings.org_url.rstrip("/"),
    }

    logger.info("Requesting access token from %s", settings.token_url)
    try:
        response = await client.post(settings.token_url, data=form)
        response.raise_for_status()
        payload = response.json()
    except (httpx.RequestError, httpx.HTTPStatusError) as e:
        logger.error("Failed to acquire access token: %s", e)
        raise AuthenticationError(f"Token request failed: {e}") from e
    except ValueError as e:
        logger.error("Token endpoint returned a non-JSON response: %s", e)
        raise AuthenticationError("Token response was not valid JSON.") from e

    if not isinstance(payload, dict):
        raise AuthenticationError("Token response was not a JSON object.")
    token = payload.get("access_token")
    if not token:
        raise AuthenticationError("Token response did not contain an access_token.")

    logger.info("Access token acquired.")
    return token

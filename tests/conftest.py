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

from pathlib import Path

import httpx
import pytest

from py_export_d365.models import ExportContext

BASE_URL = "https://org.example.com/api/data/v9.2"
TOKEN = "test-token"


@pytest.fixture
def make_context(tmp_path: Path):
    """Returns a factory building an ExportContext around a given client."""

    def factory(client: httpx.AsyncClient, **overrides) -> ExportContext:
        values = {
            "client": client,
            "token": TOKEN,
            "api_base_url": BASE_URL,
            "output_dir": tmp_path / "outputs",
            "diagrams_dir": tmp_path / "diagrams",
        }
        values.update(overrides)
        return ExportContext(**values)

    return factory

import re
from pathlib import Path

import httpx
import pytest
from openpyxl import load_workbook
from pytest_httpx import HTTPXMock

from py_export_d365.categories import ATTRIBUTES, RELATIONSHIPS, export_category
from py_export_d365.cli import arun_export
from py_export_d365.config import Settings
from py_export_d365.orchestrator import export_diagrams
from py_export_d365.workbook import WorkbookBuilder

# Mark all tests in this file as integration tests
pytestmark = pytest.mark.integration

BASE_URL = "https://org.example.com/api/data/v9.2"
ONE_TO_MANY_NEXT = f"{BASE_URL}/EntityDefinitions(LogicalName='account')/OneToManyRelationships?$skiptoken=2"


def _attribute(schema_name: str, description: str | None) -> dict:
    record = {
        "SchemaName": schema_name,
        "AttributeType": "String",
        "IsCustomAttribute": True,
        "RequiredLevel": {"Value": "None"},
    }
    if description is not None:
        record["Description"] = {"LocalizedLabels": [{"Label": description}]}
    return record


def _relationship(index: int, referencing: str) -> dict:
    return {
        "SchemaName": f"new_rel_{index}",
        "RelationshipType": "OneToManyRelationship",
        "ReferencedEntity": "account",
        "ReferencingEntity": referencing,
        "IsCustomRelationship": True,
        "HasChanged": None,
    }


@pytest.mark.asyncio
async def test_attributes_to_columns_sheet(httpx_mock: HTTPXMock, make_context, tmp_path: Path):
    """Three attributes, the second without a description, become a Columns sheet."""
    httpx_mock.add_response(
        url=ATTRIBUTES.sources[0].build_url(BASE_URL, "account"),
        json={
            "value": [
                _attribute("Name", "Company name"),
                _attribute("new_Code", None),
                _attribute("new_Region", "Sales region"),
            ]
        },
    )

    async with httpx.AsyncClient() as client:
        rows = await export_category(make_context(client), ATTRIBUTES, "account")

    assert len(rows) == 3
    assert rows[1]["Description"] == ""
    assert rows[0]["Required Level"] == "Optional"

    builder = WorkbookBuilder()
    builder.add_sheet(ATTRIBUTES.sheet_name, rows)
    worksheet = load_workbook(builder.save(tmp_path / "account.xlsx"))["Columns"]

    header = [cell.value for cell in worksheet[1]]
    description = header.index("Description") + 1
    assert header == ATTRIBUTES.columns
    assert worksheet.max_row == 4
    assert worksheet.cell(row=2, column=description).value == "Company name"
    assert (worksheet.cell(row=3, column=description).value or "") == ""


@pytest.mark.asyncio
async def test_diagrams_skip_empty_relationship_type(
    httpx_mock: HTTPXMock, make_context, mocker, caplog,
):
    """Paged relationships yield two diagrams; many-to-many has none and is skipped."""
    one_to_many, many_to_one, many_to_many = (
        s.build_url(BASE_URL, "account") for s in RELATIONSHIPS.sources
    )
    httpx_mock.add_response(
        url=one_to_many,
        json={
            "value": [_relationship(i, "new_project") for i in range(3)],
            "@odata.nextLink": ONE_TO_MANY_NEXT,
        },
    )
    httpx_mock.add_response(
        url=ONE_TO_MANY_NEXT,
        json={"value": [_relationship(i, "new_project") for i in range(3, 5)]},
    )
    httpx_mock.add_response(
        url=many_to_one,
        json={"value": [_relationship(i, "account") for i in range(5, 8)]},
    )
    httpx_mock.add_response(url=many_to_many, json={"value": []})
    render = mocker.patch("py_export_d365.orchestrator.render_diagram")
    caplog.set_level("INFO")

    async with httpx.AsyncClient() as client:
        ctx = make_context(client)
        await export_diagrams(ctx, "account")

    rendered = {call.args[1].name: len(call.args[0]) for call in render.call_args_list}
    assert rendered == {
        "account-OneToManyRelationship.png": 5,
        "account-ManyToOneRelationship.png": 3,
    }
    assert "No relationships of type ManyToManyRelationship remain for account" in caplog.text


@pytest.mark.asyncio
async def test_full_export_run(httpx_mock: HTTPXMock, tmp_path: Path, mocker):
    """Runs token acquisition and a full entity export against mocked endpoints."""
    httpx_mock.add_response(
        method="POST",
        url="https://login.microsoftonline.com/tenant/oauth2/token",
        json={"access_token": "tok"},
    )
    httpx_mock.add_response(
        url=re.compile(r".*/Attributes$"),
        match_headers={"Authorization": "Bearer tok"},
        json={"value": [_attribute("Name", "Company name")]},
    )
    for _ in range(2):
        httpx_mock.add_response(
            url=re.compile(r".*/OneToManyRelationships$"),
            json={"value": [_relationship(1, "new_project")]},
        )
        httpx_mock.add_response(url=re.compile(r".*/ManyToOneRelationships$"), json={"value": []})
        httpx_mock.add_response(url=re.compile(r".*/ManyToManyRelationships$"), json={"value": []})
    httpx_mock.add_response(url=re.compile(r".*/systemforms\?.*"), json={"value": []})
    httpx_mock.add_response(url=re.compile(r".*/savedqueries\?.*"), json={"value": []})
    httpx_mock.add_response(url=re.compile(r".*/workflows\?.*"), json={"value": []})
    render = mocker.patch("py_export_d365.orchestrator.render_diagram")

    settings = Settings(
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        org_url="https://org.example.com",
        output_dir=tmp_path / "outputs",
        diagrams_dir=tmp_path / "diagrams",
        entities=["account"],
    )
    failed = await arun_export(settings)

    assert failed == []
    workbook = load_workbook(tmp_path / "outputs" / "account.xlsx")
    assert workbook.sheetnames == ["Columns", "Relationships", "Forms", "Views", "Business Rules"]
    assert workbook["Relationships"].max_row == 2
    render.assert_called_once()
    assert render.call_args.args[1] == tmp_path / "diagrams" / "account-OneToManyRelationship.png"

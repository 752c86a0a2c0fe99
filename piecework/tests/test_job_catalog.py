from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from piecework.core.errors import DependencyError, NotFoundError, ValidationError
from piecework.main import app
from piecework.services import job_catalog
from piecework.services.job_catalog import (
    JobCatalog,
    get_job_catalog,
    job_number_from_row,
    metadata_from_row,
)

client = TestClient(app)


def _auth_headers() -> dict:
    resp = client.post("/auth/token", json={"user_id": "planner"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


class FakeCatalog(JobCatalog):
    def __init__(self, rows):
        super().__init__(engine=None)
        self.rows = rows
        self.calls = []

    def _execute(self, sql, params):
        self.calls.append((sql, params))
        return self.rows


@pytest.fixture
def override_catalog():
    def _install(catalog):
        app.dependency_overrides[get_job_catalog] = lambda: catalog
        return catalog

    yield _install
    app.dependency_overrides.pop(get_job_catalog, None)


def test_job_number_prefers_known_columns_then_first_value():
    assert job_number_from_row({"Other": "x", "JobNumber": " 4711 "}) == "4711"
    assert job_number_from_row({"Job_NO": 12}) == "12"
    assert job_number_from_row({"anything": "J-9"}) == "J-9"
    assert job_number_from_row({}) is None


def test_metadata_from_row_maps_columns_and_defaults_numbers():
    meta = metadata_from_row(
        {
            "Client Name": "Acme Print",
            "Job Title": "Spring catalogue",
            "OrderQty": "2500",
            "ProductCategory": "Books",
            "UnitPrice": "n/a",
        }
    )
    assert meta == {
        "client_name": "Acme Print",
        "title": "Spring catalogue",
        "total_units": Decimal(2500),
        "category": "Books",
        "unit_price": Decimal(0),
    }


def test_search_rejects_short_fragment(monkeypatch):
    monkeypatch.setenv("JOB_SEARCH_MIN_LENGTH", "4")
    catalog = FakeCatalog([])
    with pytest.raises(ValidationError):
        catalog.search_job_numbers("47")
    assert catalog.calls == []


def test_search_calls_procedure_with_fragment():
    catalog = FakeCatalog([{"JobNumber": "4711"}, {"JobNumber": ""}, {"JobNumber": "4712"}])
    assert catalog.search_job_numbers(" 4711 ") == ["4711", "4712"]
    sql, params = catalog.calls[0]
    assert job_catalog.SEARCH_PROCEDURE in sql
    assert params == {"part": "4711"}


def test_metadata_for_missing_job_raises():
    with pytest.raises(NotFoundError):
        FakeCatalog([]).get_job_metadata("9999")


def test_unconfigured_catalog_is_unavailable():
    with pytest.raises(DependencyError) as exc:
        JobCatalog(engine=None).get_job_metadata("4711")
    assert exc.value.status_code == 503


def test_database_errors_surface_as_unavailable():
    class BrokenEngine:
        def connect(self):
            raise OperationalError("EXEC", {}, Exception("login failed"))

    with pytest.raises(DependencyError):
        JobCatalog(engine=BrokenEngine()).search_job_numbers("4711")


def test_search_endpoint(override_catalog):
    override_catalog(FakeCatalog([{"JobNumber": "4711"}, {"JobNumber": "47110"}]))
    resp = client.get("/job-catalog/search/4711", headers=_auth_headers())
    assert resp.status_code == 200
    assert resp.json() == ["4711", "47110"]


def test_search_endpoint_short_fragment_is_400(override_catalog, monkeypatch):
    monkeypatch.setenv("JOB_SEARCH_MIN_LENGTH", "4")
    override_catalog(FakeCatalog([]))
    resp = client.get("/job-catalog/search/47", headers=_auth_headers())
    assert resp.status_code == 400


def test_metadata_endpoint_uses_camel_case(override_catalog):
    override_catalog(
        FakeCatalog([{"ClientName": "Acme", "JobTitle": "Flyers", "Qty": 500, "ProductCat": "Print", "unitPrice": 0.12}])
    )
    resp = client.get("/job-catalog/4711", headers=_auth_headers())
    assert resp.status_code == 200
    assert resp.json() == {
        "jobNumber": "4711",
        "clientName": "Acme",
        "title": "Flyers",
        "totalUnits": 500,
        "category": "Print",
        "unitPrice": 0.12,
    }


def test_unconfigured_catalog_endpoint_is_503(override_catalog):
    override_catalog(JobCatalog(engine=None))
    resp = client.get("/job-catalog/4711", headers=_auth_headers())
    assert resp.status_code == 503
    assert resp.json() == {"error": "Job catalog is not configured"}


def test_get_job_catalog_without_url_is_unconfigured(monkeypatch):
    monkeypatch.delenv("JOB_CATALOG_DATABASE_URL", raising=False)
    catalog = get_job_catalog()
    with pytest.raises(DependencyError):
        catalog.search_job_numbers("4711")

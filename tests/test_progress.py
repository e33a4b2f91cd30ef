import pytest

from qms_records.routes_progress import progress_trend

OBJECTIVE = {"qms_main_objectives": "Reduce customer complaints", "progress": "On-Track", "status_percentage": 40}


@pytest.fixture()
def objective(client, register):
    headers = register("lead@example.com", "Operations")
    resp = client.post("/api/business-quality-objectives", json=OBJECTIVE, headers=headers)
    assert resp.status_code == 201
    return headers, resp.json()["id"]


def test_progress_entry_upserts_by_month(client, objective):
    headers, oid = objective
    url = f"/api/business-quality-objectives/{oid}/progress"

    first = client.post(url, json={"month": 3, "year": 2024, "percentage": 30}, headers=headers)
    assert first.status_code == 200
    second = client.post(url, json={"month": 3, "year": 2024, "percentage": 55, "notes": "revised"}, headers=headers)
    assert second.status_code == 200
    assert second.json()["progress_entry"]["id"] == first.json()["progress_entry"]["id"]

    client.post(url, json={"month": 4, "year": 2024, "percentage": 60}, headers=headers)

    entries = client.get(url, headers=headers).json()["progress_entries"]
    assert [(e["year"], e["month"], e["percentage"]) for e in entries] == [(2024, 4, 60.0), (2024, 3, 55.0)]
    assert entries[1]["notes"] == "revised"


@pytest.mark.parametrize(
    "body",
    [
        {"month": 13, "year": 2024, "percentage": 10},
        {"month": 0, "year": 2024, "percentage": 10},
        {"month": 1, "year": 2024, "percentage": 101},
        {"month": 1, "year": 2024},
    ],
)
def test_invalid_progress_entries_are_rejected(client, objective, body):
    headers, oid = objective
    resp = client.post(f"/api/business-quality-objectives/{oid}/progress", json=body, headers=headers)
    assert resp.status_code == 400
    assert "error" in resp.json()


def test_delete_progress_entry(client, objective):
    headers, oid = objective
    url = f"/api/business-quality-objectives/{oid}/progress"
    client.post(url, json={"month": 5, "year": 2024, "percentage": 20}, headers=headers)

    assert client.delete(url, headers=headers).status_code == 400
    assert client.delete(f"{url}?month=6&year=2024", headers=headers).status_code == 404

    resp = client.delete(f"{url}?month=5&year=2024", headers=headers)
    assert resp.status_code == 200
    assert client.get(url, headers=headers).json()["progress_entries"] == []


def test_progress_of_other_area_objective_is_not_found(client, objective, register):
    _, oid = objective
    other = register("fin@example.com", "Finance")
    url = f"/api/business-quality-objectives/{oid}/progress"

    assert client.get(url, headers=other).status_code == 404
    resp = client.post(url, json={"month": 1, "year": 2024, "percentage": 10}, headers=other)
    assert resp.status_code == 404


def test_progress_of_deleted_objective_is_not_found(client, objective):
    headers, oid = objective
    client.delete(f"/api/business-quality-objectives/{oid}", headers=headers)
    assert client.get(f"/api/business-quality-objectives/{oid}/progress", headers=headers).status_code == 404


def test_progress_stats(client, objective):
    headers, oid = objective
    url = f"/api/business-quality-objectives/{oid}/progress"
    for month, pct in enumerate([10, 10, 10, 40, 40, 40], start=1):
        client.post(url, json={"month": month, "year": 2020, "percentage": pct}, headers=headers)

    body = client.get(f"{url}/stats", headers=headers).json()
    stats = body["statistics"]

    assert stats["total_entries"] == 6
    assert stats["average_progress"] == 25.0
    assert stats["max_progress"] == 40.0
    assert stats["min_progress"] == 10.0
    assert stats["latest_progress"] == 40.0
    assert stats["latest_progress_date"] == "2020-06"
    assert stats["trend"] == "improving"
    # nothing recorded this year
    assert stats["missing_months"] == list(range(1, 13))

    assert [p["date"] for p in body["chart_data"]][:2] == ["2020-01", "2020-02"]
    assert body["chart_data"][0]["month_name"] == "Jan"
    assert len(body["yearly_data"]["2020"]) == 6


@pytest.mark.parametrize(
    "values, expected",
    [
        ([50, 50, 50, 20, 20, 20], "declining"),
        ([50, 52, 51, 53, 54, 52], "stable"),
        ([10, 90, 90], "stable"),
        ([], "stable"),
    ],
)
def test_progress_trend(values, expected):
    assert progress_trend(values) == expected

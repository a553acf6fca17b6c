from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from flowplan.main import app


@pytest.fixture
def client() -> TestClient:
    # No context manager: the lifespan (database, workers) is not started.
    return TestClient(app)


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_functions_lists_parameters(client: TestClient) -> None:
    response = client.get("/api/v1/functions")
    assert response.status_code == 200
    functions = {item["name"]: item["parameters"] for item in response.json()}
    assert functions["calculates"] == ["returns_1", "returns_2", "c"]
    assert functions["returns_1"] == []


def test_plan_endpoint(client: TestClient) -> None:
    response = client.get("/api/v1/plans/power_to_weight")
    assert response.status_code == 200
    body = response.json()
    assert body["target"] == "power_to_weight"
    assert [node["name"] for node in body["nodes"]] == [
        "cyls",
        "mtcars_data",
        "horsepower",
        "weight",
        "power_to_weight",
    ]
    assert body["nodes"][0] == {"name": "cyls", "kind": "leaf", "function": None, "args": {}}
    assert body["nodes"][2]["args"] == {"mtcars_data": "mtcars_data"}
    assert body["leaves"] == ["cyls"]
    assert body["expression"] == (
        "power_to_weight(horsepower=horsepower(mtcars_data=mtcars_data(cyls=cyls)), "
        "weight=weight(mtcars_data=mtcars_data(cyls=cyls)))"
    )


def test_plan_for_unknown_name_is_a_leaf(client: TestClient) -> None:
    response = client.get("/api/v1/plans/nothing_here")
    assert response.status_code == 200
    assert response.json()["nodes"] == [
        {"name": "nothing_here", "kind": "leaf", "function": None, "args": {}}
    ]


def test_runs_need_processor(client: TestClient) -> None:
    response = client.post(
        "/api/v1/runs", json={"id": 1, "function": "calculates", "bindings": {"c": 3}}
    )
    assert response.status_code == 500


def test_runs_validate_payload(client: TestClient) -> None:
    response = client.post("/api/v1/runs", json={"id": 0, "function": "calculates"})
    assert response.status_code == 422

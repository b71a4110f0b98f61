"""
Tests for curriculum/api/routes.py.

Covers concept extraction, per-learner concept queries, related concepts
and the learning path endpoints, backed by a real in-memory progress service.
"""

from datetime import datetime

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from curriculum.api.routes import router
from curriculum.repositories.progress_repository import InMemoryProgressRepository
from curriculum.services.learning_path_generator import LearningPathGenerator
from curriculum.services.mastery_tracker import ConceptMasteryTracker
from curriculum.services.progress_service import CurriculumProgressService
from dependencies import get_progress_service
from tutor.models.completion import ProblemCompletedEvent
from tutor.models.messages import ParsedProblem


USER = {"X-User-Id": "u1"}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def service():
    return CurriculumProgressService(
        repository=InMemoryProgressRepository(),
        tracker=ConceptMasteryTracker(),
        generator=LearningPathGenerator(),
    )


@pytest.fixture
def client(service):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_progress_service] = lambda: service
    return TestClient(app)


def _solve(service, owner_id="u1", text="Solve 2x + 5 = 13"):
    service.record_completion(ProblemCompletedEvent(
        session_id="sess_1",
        owner_id=owner_id,
        problem=ParsedProblem(text=text, type="algebra"),
        hints_used=3,
        time_spent_minutes=12.0,
        completed_at=datetime(2024, 5, 1, 12, 0),
    ))


# ===========================================================================
# Concepts
# ===========================================================================

class TestExtractConcepts:

    def test_extract(self, client):
        resp = client.post("/concepts/extract", json={"text": "Solve 2x + 5 = 13", "type": "algebra"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["concept_ids"] == ["linear_equations"]
        assert data["concepts"] == [
            {"concept_id": "linear_equations", "name": "Linear Equations", "category": "algebra"}
        ]

    def test_extract_nothing(self, client):
        data = client.post("/concepts/extract", json={"text": "hello"}).json()
        assert data == {"concept_ids": [], "concepts": []}


class TestGetConcepts:

    def test_requires_owner(self, client):
        resp = client.get("/concepts")
        assert resp.status_code == 400
        assert resp.json()["detail"]["code"] == "invalid_input"

    def test_blank_owner_rejected(self, client):
        assert client.get("/concepts", headers={"X-User-Id": "  "}).status_code == 400

    def test_empty(self, client):
        data = client.get("/concepts", headers=USER).json()
        assert data == {"concepts": [], "by_category": {}, "suggested": []}

    def test_after_completion(self, client, service):
        _solve(service)

        data = client.get("/concepts", headers=USER).json()

        assert [c["concept_id"] for c in data["concepts"]] == ["linear_equations"]
        assert data["concepts"][0]["problems_solved"] == 1
        assert data["by_category"] == {"algebra": ["linear_equations"]}
        assert data["suggested"] == ["factoring", "slope"]

    def test_records_are_per_owner(self, client, service):
        _solve(service, owner_id="u2")
        assert client.get("/concepts", headers=USER).json()["concepts"] == []

    def test_practice(self, client, service):
        _solve(service)

        everything = client.get("/concepts/practice", params={"threshold": 100}, headers=USER).json()
        nothing = client.get("/concepts/practice", params={"threshold": 0}, headers=USER).json()

        assert [c["concept_id"] for c in everything] == ["linear_equations"]
        assert nothing == []

    def test_practice_threshold_bounds(self, client):
        assert client.get("/concepts/practice", params={"threshold": 101}, headers=USER).status_code == 422


class TestRelatedConcepts:

    def test_related(self, client):
        data = client.get("/concepts/linear_equations/related").json()
        assert data["concept_id"] == "linear_equations"
        assert [c["concept_id"] for c in data["related"]] == ["factoring", "slope"]

    def test_unknown_concept(self, client):
        assert client.get("/concepts/calculus/related").status_code == 404


# ===========================================================================
# Learning paths
# ===========================================================================

class TestLearningPaths:

    def test_create_and_fetch(self, client):
        resp = client.post("/learning-paths", json={"goal": "master algebra"}, headers=USER)

        assert resp.status_code == 200
        path = resp.json()
        assert path["owner_id"] == "u1"
        assert path["progress"] == 0
        assert {s["concept_id"] for s in path["steps"]} == {
            "linear_equations", "factoring", "fractions", "decimals", "exponents"
        }

        fetched = client.get(f"/learning-paths/{path['path_id']}", headers=USER).json()
        assert fetched["path_id"] == path["path_id"]
        listed = client.get("/learning-paths", headers=USER).json()
        assert [p["path_id"] for p in listed] == [path["path_id"]]

    def test_empty_goal(self, client):
        assert client.post("/learning-paths", json={"goal": ""}, headers=USER).status_code == 422

    def test_requires_owner(self, client):
        assert client.post("/learning-paths", json={"goal": "fractions"}).status_code == 400

    def test_missing_path(self, client):
        assert client.get("/learning-paths/path_missing", headers=USER).status_code == 404

    def test_paths_are_per_owner(self, client):
        path = client.post("/learning-paths", json={"goal": "master algebra"}, headers=USER).json()
        resp = client.get(f"/learning-paths/{path['path_id']}", headers={"X-User-Id": "u2"})
        assert resp.status_code == 404

    def test_advance_is_idempotent(self, client):
        path = client.post("/learning-paths", json={"goal": "master algebra"}, headers=USER).json()
        first_concept = path["steps"][0]["concept_id"]
        url = f"/learning-paths/{path['path_id']}/advance"

        advanced = client.post(url, json={"concept_id": first_concept}, headers=USER).json()
        again = client.post(url, json={"concept_id": first_concept}, headers=USER).json()

        assert advanced["steps"][0]["completed"] is True
        assert advanced["progress"] == 20
        assert advanced["current_step_index"] == 1
        assert again["progress"] == 20
        assert again["steps"] == advanced["steps"]

    def test_advance_missing_path(self, client):
        resp = client.post("/learning-paths/path_missing/advance", json={"concept_id": "fractions"}, headers=USER)
        assert resp.status_code == 404

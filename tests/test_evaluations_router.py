import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from conftest import make_rubric, uniform_response
from screening.routers import evaluations


@pytest.fixture
def test_app(state, evaluator):
    app = FastAPI()
    app.include_router(evaluations.router)
    app.state.screening = state
    app.state.evaluator = evaluator
    return app


@pytest.fixture
def client(test_app):
    return TestClient(test_app)


@pytest.fixture
def scored_state(state, fake_client):
    """Two rubrics; Grace always scores 5, everyone else 2."""
    state.add_rubric(make_rubric("backend", item_ids=("experience", "skills"), title="Backend"))
    state.add_rubric(make_rubric("data", item_ids=("experience", "skills"), title="Data"))

    def responder(prompt):
        score = 5 if "Grace Hopper" in prompt else 2
        return uniform_response(["experience", "skills"], score)

    fake_client.responder = responder
    return state


class TestRunEvaluations:

    def test_run_and_wait(self, client, scored_state):
        response = client.post("/evaluations/run", params={"wait": "true"})

        assert response.status_code == 202
        body = response.json()
        assert body["isEvaluating"] is False
        assert sorted(body["evaluatedRubrics"]) == ["backend", "data"]
        assert len(scored_state.get_evaluation_results("backend")) == 3

    def test_run_options_are_validated(self, client, scored_state):
        response = client.post("/evaluations/run", params={"wait": "true"}, json={"maxConcurrent": 0})

        assert response.status_code == 422
        assert scored_state.is_evaluating is False

    def test_requires_rubrics(self, client):
        assert client.post("/evaluations/run").status_code == 400

    def test_requires_profiles(self, client, state):
        state.add_rubric(make_rubric())
        state.set_profiles([])

        assert client.post("/evaluations/run").status_code == 400

    def test_only_one_active_run(self, client, scored_state):
        scored_state.start_evaluation()

        response = client.post("/evaluations/run")

        assert response.status_code == 409
        assert response.json()["detail"]["error"]["error_code"] == "BUSINESS_LOGIC_ERROR"

    def test_stop_and_progress(self, client, scored_state):
        scored_state.start_evaluation()
        scored_state.update_progress(current_rubric="Backend", total_rubrics=2, total_profiles=3)

        progress = client.get("/evaluations/progress").json()
        assert progress["isEvaluating"] is True
        assert progress["progress"]["currentRubric"] == "Backend"
        assert progress["progress"]["totalProfiles"] == 3

        stopped = client.post("/evaluations/stop").json()
        assert stopped["isEvaluating"] is False
        assert stopped["progress"] is None


class TestStoredResults:

    def test_ranked_results(self, client, scored_state):
        client.post("/evaluations/run", params={"wait": "true"})

        response = client.get("/evaluations/backend")

        assert response.status_code == 200
        body = response.json()
        assert body[0]["profileId"] == "grace-hopper-grace"
        assert body[0]["averageScore"] == 5.0
        assert [r["averageScore"] for r in body[1:]] == [2.0, 2.0]

    def test_unknown_rubric(self, client):
        assert client.get("/evaluations/missing").status_code == 404

    def test_csv_report(self, client, scored_state):
        client.post("/evaluations/run", params={"wait": "true"})

        response = client.get("/evaluations/backend/report")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "rank,profile_id,profile_name,total_score,average_score,experience,skills"
        assert lines[1].startswith("1,grace-hopper-grace,Grace Hopper,10,")

    def test_markdown_report(self, client, scored_state):
        client.post("/evaluations/run", params={"wait": "true"})

        response = client.get("/evaluations/data/report", params={"format": "markdown", "top": 1})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert "| 1 | Grace Hopper | 10 | 5.00 | 5 | 5 |" in response.text
        assert "Ada Lovelace" not in response.text

    def test_unsupported_report_format(self, client, scored_state):
        client.post("/evaluations/run", params={"wait": "true"})

        assert client.get("/evaluations/backend/report", params={"format": "xlsx"}).status_code == 422

    def test_clear(self, client, scored_state):
        client.post("/evaluations/run", params={"wait": "true"})

        assert client.delete("/evaluations").json() == {"cleared": True}
        assert scored_state.evaluations == {}
        assert client.get("/evaluations/backend").status_code == 404

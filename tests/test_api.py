import sys
import textwrap

import pytest
from fastapi.testclient import TestClient

from localjudge import main
from localjudge.config import get_settings

SOLUTION = """
n = int(input())
print(n * 2)
"""


@pytest.fixture(scope="module")
def client():
    settings = get_settings()
    settings.compilation.python_compiler = sys.executable
    settings.compilation.python_runner = sys.executable
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def source(tmp_path):
    def _write(name, code):
        path = tmp_path / name
        path.write_text(textwrap.dedent(code).lstrip())
        return str(path)

    return _write


def _create(client, problem_id, src_path, **extra):
    return client.post("/api/problems", data={"problem_id": problem_id, "src_path": src_path, "time_limit": 5000, **extra})


def test_create_problem_validates_source(client, source):
    assert _create(client, "bad", "/nonexistent/sol.py").status_code == 400
    assert _create(client, "bad", source("notes.txt", "hello")).status_code == 400
    assert client.get("/api/problems/bad").status_code == 404


def test_run_all_test_cases(client, source):
    response = _create(client, "double", source("sol.py", SOLUTION))
    assert response.status_code == 200
    assert response.json()["test_case_count"] == 0

    ok = client.post("/api/problems/double/testcases", data={"stdin": "2\n", "answer": "4\n"}).json()["tc_id"]
    bad = client.post("/api/problems/double/testcases", data={"stdin": "2\n", "answer": "5\n"}).json()["tc_id"]
    assert client.post("/api/problems/double/run").status_code == 200

    state = client.get("/api/problems/double").json()
    verdicts = {tc["id"]: tc["result"]["verdict"] for tc in state["test_cases"]}
    assert verdicts == {ok: "AC", bad: "WA"}
    assert not state["running"]
    assert any(p["id"] == "double" for p in client.get("/api/problems").json())


def test_run_single_and_toggle_test_case(client, source):
    _create(client, "single", source("sol.py", SOLUTION))
    tc_id = client.post("/api/problems/single/testcases", data={"stdin": "3\n", "answer": "6\n"}).json()["tc_id"]

    assert client.post(f"/api/problems/single/testcases/{tc_id}/run").status_code == 200
    state = client.get("/api/problems/single").json()
    assert state["test_cases"][0]["result"]["verdict"] == "AC"
    assert state["test_cases"][0]["result"]["stdout"] == {"use_file": False, "data": "6\n"}

    response = client.patch(f"/api/problems/single/testcases/{tc_id}", data={"is_disabled": "true"})
    assert response.json()["is_disabled"] is True
    assert client.post("/api/problems/single/testcases/nope/run").status_code == 404

    assert client.delete(f"/api/problems/single/testcases/{tc_id}").status_code == 200
    assert client.get("/api/problems/single").json()["test_cases"] == []
    assert client.delete(f"/api/problems/single/testcases/{tc_id}").status_code == 404


def test_compile_error_is_visible(client, source):
    _create(client, "broken", source("broken.py", "def f(:\n"))
    client.post("/api/problems/broken/testcases", data={"stdin": "", "answer": ""})
    client.post("/api/problems/broken/run")
    state = client.get("/api/problems/broken").json()
    assert state["test_cases"][0]["result"]["verdict"] == "CE"
    assert "SyntaxError" in state["compilation_message"]


def test_bf_compare(client, source):
    _create(client, "stress", source("sol.py", "raise SystemExit(1)\n"))
    assert client.post("/api/problems/stress/bf-compare/start").status_code == 400
    assert client.post("/api/problems/stress/bf-compare/stop").status_code == 409

    response = client.post("/api/problems/stress/bf-compare/start", data={
        "generator_path": source("gen.py", "print(4)\n"),
        "brute_force_path": source("bf.py", SOLUTION),
    })
    assert response.status_code == 200

    state = client.get("/api/problems/stress").json()
    assert state["bf_compare"]["msg"] == "Found a difference in #1 run."
    assert state["bf_compare"]["running"] is False
    found = state["test_cases"][0]
    assert found["stdin"]["data"] == "4\n"
    assert found["answer"]["data"] == "8\n"


def test_stop_without_active_run(client, source):
    _create(client, "idle", source("sol.py", SOLUTION))
    assert client.post("/api/problems/idle/stop", data={"only_one": "false"}).json() == {"success": True}


def test_delete_problem(client, source):
    _create(client, "gone", source("sol.py", SOLUTION))
    assert client.delete("/api/problems/gone").status_code == 200
    assert client.get("/api/problems/gone").status_code == 404


def test_languages(client):
    languages = client.get("/api/languages").json()
    assert languages["C++"]["extensions"] == ["cpp", "cc", "cxx", "c++"]
    assert "py" in languages["Python"]["extensions"]

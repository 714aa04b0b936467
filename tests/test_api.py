import pytest

from foursigma import db
from foursigma.models import UserResponse

DEVICE = {"X-Device-Id": "device-abc"}


@pytest.fixture
def question_values(app, make_question):
    """Seed three questions; returns {question_id: true_value}"""
    with app.app_context():
        questions = [make_question(v) for v in (100.0, 200.0, 300.0)]
        return {q.id: q.true_value for q in questions}


def play_full_game(client, question_values, headers=DEVICE):
    started = client.post("/api/session/start", json={}, headers=headers).get_json()
    for stub in started["questions"]:
        value = question_values[stub["id"]]
        response = client.post(
            "/api/session/answer",
            json={
                "sessionId": started["sessionId"],
                "questionId": stub["id"],
                "lower": value * 0.9,
                "upper": value * 1.1,
            },
        )
        assert response.status_code == 200
    return started, client.post(
        "/api/session/finalize", json={"sessionId": started["sessionId"]}
    )


class TestSessionEndpoints:
    def test_start_without_questions(self, client):
        response = client.post("/api/session/start", json={})
        assert response.status_code == 503
        assert "error" in response.get_json()

    def test_start_hides_true_values(self, client, question_values):
        response = client.post("/api/session/start", json={})

        assert response.status_code == 200
        body = response.get_json()
        assert body["sessionId"]
        assert all("trueValue" not in q for q in body["questions"])

    def test_start_with_bad_date_override(self, client, question_values):
        response = client.post("/api/session/start", json={"date": "13/03/2024"})
        assert response.status_code == 400

    @pytest.mark.parametrize("body", [["2024-01-01"], "2024-01-01", 7])
    def test_start_rejects_non_object_body(self, client, question_values, body):
        response = client.post("/api/session/start", json=body)

        assert response.status_code == 400
        assert response.get_json() == {"error": "Request body must be a JSON object"}

    def test_start_without_body(self, client, question_values):
        response = client.post("/api/session/start")
        assert response.status_code == 200

    def test_full_game_for_identified_player(self, app, client, question_values):
        _, response = play_full_game(client, question_values)

        assert response.status_code == 200
        body = response.get_json()
        assert body["totalQuestions"] == 3
        assert all(j["hit"] for j in body["judgements"])
        assert body["dailyStats"]["dailyRank"] == 1
        assert body["overallStanding"]["totalPlayers"] == 1

        with app.app_context():
            assert db.session.query(UserResponse).count() == 3

    def test_anonymous_game_gets_no_enrichment(self, app, client, question_values):
        _, response = play_full_game(client, question_values, headers={})

        body = response.get_json()
        assert response.status_code == 200
        assert "dailyStats" not in body
        with app.app_context():
            assert db.session.query(UserResponse).count() == 0

    def test_double_finalize(self, client, question_values):
        started, _ = play_full_game(client, question_values)

        again = client.post(
            "/api/session/finalize", json={"sessionId": started["sessionId"]}
        )
        assert again.status_code == 409

    def test_finalize_with_missing_answer(self, client, question_values):
        started = client.post("/api/session/start", json={}, headers=DEVICE).get_json()

        response = client.post(
            "/api/session/finalize", json={"sessionId": started["sessionId"]}
        )
        assert response.status_code == 500
        assert "error" in response.get_json()

    def test_answer_validation(self, client, question_values):
        started = client.post("/api/session/start", json={}).get_json()
        question_id = started["questions"][0]["id"]

        inverted = client.post(
            "/api/session/answer",
            json={
                "sessionId": started["sessionId"],
                "questionId": question_id,
                "lower": 10,
                "upper": 1,
            },
        )
        not_numbers = client.post(
            "/api/session/answer",
            json={
                "sessionId": started["sessionId"],
                "questionId": question_id,
                "lower": "a",
                "upper": "b",
            },
        )
        unknown_session = client.post(
            "/api/session/answer",
            json={"sessionId": "nope", "questionId": question_id, "lower": 1, "upper": 2},
        )
        not_json = client.post(
            "/api/session/answer", data="lower=1", content_type="text/plain"
        )

        assert inverted.status_code == 400
        assert not_numbers.status_code == 400
        assert unknown_session.status_code == 404
        assert not_json.status_code == 400

    def test_answer_with_bound_too_large_for_a_float(self, client, question_values):
        started = client.post("/api/session/start", json={}).get_json()
        body = (
            f'{{"sessionId": "{started["sessionId"]}", '
            f'"questionId": {started["questions"][0]["id"]}, '
            f'"lower": 1, "upper": {"9" * 400}}}'
        )

        response = client.post(
            "/api/session/answer", data=body, content_type="application/json"
        )

        assert response.status_code == 400
        assert "finite" in response.get_json()["error"]

    def test_leaderboards(self, client, question_values):
        play_full_game(client, question_values)

        overall = client.get("/api/session/leaderboard?type=overall", headers=DEVICE)
        guesses = client.get("/api/session/leaderboard?type=best-guesses")
        unknown = client.get("/api/session/leaderboard?type=weekly")

        assert overall.get_json()["leaderboard"][0]["isCurrentUser"] is True
        assert len(guesses.get_json()["leaderboard"]) == 3
        assert unknown.get_json() == {"leaderboard": []}


class TestUserEndpoints:
    @pytest.mark.parametrize(
        "path",
        [
            "/api/user/stats",
            "/api/user/daily-stats",
            "/api/user/performance-history",
            "/api/user/calibration-milestones",
            "/api/user/standing",
        ],
    )
    def test_requires_device_id(self, client, path):
        response = client.get(path)
        assert response.status_code == 401
        assert "error" in response.get_json()

    def test_stats_for_new_device(self, client):
        response = client.get("/api/user/stats", headers=DEVICE)

        body = response.get_json()
        assert response.status_code == 200
        assert body["stats"]["gamesPlayed"] == 0
        assert body["user"]["displayName"] == "Guest Player"

    def test_stats_after_a_game(self, client, question_values):
        play_full_game(client, question_values)

        stats = client.get("/api/user/stats", headers=DEVICE).get_json()["stats"]
        history = client.get(
            "/api/user/performance-history?days=500", headers=DEVICE
        ).get_json()
        standing = client.get("/api/user/standing", headers=DEVICE)

        assert stats["gamesPlayed"] == 1
        assert stats["questionsCaptured"] == 3
        assert stats["currentStreak"] == 1
        assert len(history["history"]) == 1
        assert standing.status_code == 200
        assert standing.get_json()["percentile"] == 0

    def test_standing_without_games(self, client):
        response = client.get("/api/user/standing", headers=DEVICE)
        assert response.status_code == 404

    def test_devices_are_separate_users(self, client, question_values):
        play_full_game(client, question_values)

        other = client.get(
            "/api/user/stats", headers={"X-Device-Id": "device-other"}
        ).get_json()
        assert other["stats"]["gamesPlayed"] == 0

    def test_update_display_name(self, client, question_values):
        response = client.put(
            "/api/user/profile", json={"displayName": "  Ada  "}, headers=DEVICE
        )

        assert response.status_code == 200
        assert response.get_json()["user"]["displayName"] == "Ada"
        assert response.get_json()["user"]["isAnonymous"] is False

        play_full_game(client, question_values)
        board = client.get("/api/session/leaderboard?type=overall").get_json()
        assert board["leaderboard"][0]["username"] == "Ada"

    def test_display_name_must_be_text(self, client):
        response = client.put(
            "/api/user/profile", json={"displayName": 42}, headers=DEVICE
        )
        assert response.status_code == 400

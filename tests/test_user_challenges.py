"""Tests for the /api/user-challenges endpoints."""

from datetime import datetime

from bson import ObjectId

from database import USER_CHALLENGES


def join(client, challenge_id, user_id="ana@example.com", **extra):
    response = client.post(
        "/api/user-challenges",
        json={"userId": user_id, "challengeId": challenge_id, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestJoinChallenge:
    """Tests for POST /api/user-challenges."""

    def test_defaults(self, client, make_challenge):
        challenge = make_challenge()
        enrollment = join(client, challenge["_id"])
        assert enrollment["status"] == "Ongoing"
        assert enrollment["progress"] == 0
        assert enrollment["challengeId"] == challenge["_id"]
        assert enrollment["joinDate"] is not None

    def test_unknown_challenge(self, client, database):
        response = client.post(
            "/api/user-challenges",
            json={"userId": "ana@example.com", "challengeId": str(ObjectId())},
        )
        assert response.status_code == 404
        assert response.json() == {"message": "Challenge not found"}
        assert database[USER_CHALLENGES].count_documents({}) == 0

    def test_invalid_challenge_reference(self, client):
        response = client.post(
            "/api/user-challenges",
            json={"userId": "ana@example.com", "challengeId": "abc"},
        )
        assert response.status_code == 400
        assert "challengeId" in response.json()["message"]

    def test_user_id_required(self, client, make_challenge):
        challenge = make_challenge()
        response = client.post("/api/user-challenges", json={"challengeId": challenge["_id"]})
        assert response.status_code == 400


class TestListUserChallenges:
    """Tests for GET /api/user-challenges."""

    def test_embeds_challenge(self, client, make_challenge):
        challenge = make_challenge(title="Zero waste")
        join(client, challenge["_id"])

        response = client.get("/api/user-challenges")
        assert response.status_code == 200
        [enrollment] = response.json()
        assert enrollment["challengeId"]["_id"] == challenge["_id"]
        assert enrollment["challengeId"]["title"] == "Zero waste"

    def test_filter_by_user(self, client, make_challenge):
        challenge = make_challenge()
        join(client, challenge["_id"], user_id="ana@example.com")
        join(client, challenge["_id"], user_id="ben@example.com")

        response = client.get("/api/user-challenges", params={"userId": "ben@example.com"})
        body = response.json()
        assert len(body) == 1
        assert body[0]["userId"] == "ben@example.com"
        assert body[0]["challengeId"]["category"] == challenge["category"]

    def test_newest_first(self, client, make_challenge, insert_at):
        challenge = make_challenge()
        for month in (1, 3, 2):
            insert_at(
                USER_CHALLENGES,
                datetime(2025, month, 1),
                userId=f"user{month}@example.com",
                challengeId=ObjectId(challenge["_id"]),
                status="Ongoing",
                progress=0,
            )

        response = client.get("/api/user-challenges")
        assert [e["userId"] for e in response.json()] == [
            "user3@example.com",
            "user2@example.com",
            "user1@example.com",
        ]

    def test_deleted_challenge_embeds_null(self, client, make_challenge):
        challenge = make_challenge()
        join(client, challenge["_id"])
        client.delete(f"/api/challenges/{challenge['_id']}")

        [enrollment] = client.get("/api/user-challenges").json()
        assert enrollment["challengeId"] is None

    def test_get_one_embeds_challenge(self, client, make_challenge):
        challenge = make_challenge(title="Water saver")
        enrollment = join(client, challenge["_id"])

        response = client.get(f"/api/user-challenges/{enrollment['_id']}")
        assert response.status_code == 200
        assert response.json()["challengeId"]["title"] == "Water saver"


class TestUpdateUserChallenge:
    """Tests for PATCH /api/user-challenges/{id}."""

    def test_progress_only(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"], status="Not Started")

        response = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"progress": 50})
        assert response.status_code == 200
        body = response.json()
        assert body["progress"] == 50
        assert body["status"] == "Not Started"

    def test_status_only(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"], progress=30)

        response = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"status": "Finished"})
        body = response.json()
        assert body["status"] == "Finished"
        assert body["progress"] == 30

    def test_non_numeric_progress_ignored(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"], progress=10)

        response = client.patch(
            f"/api/user-challenges/{enrollment['_id']}",
            json={"progress": "90", "status": ""},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["progress"] == 10
        assert body["status"] == "Ongoing"

    def test_progress_out_of_bounds(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"])
        response = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"progress": 150})
        assert response.status_code == 400

    def test_fractional_progress_rejected(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"], progress=10)
        response = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"progress": 50.5})
        assert response.status_code == 400
        assert "progress" in response.json()["message"]
        assert "whole number" in response.json()["message"]

        whole = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"progress": 60.0})
        assert whole.json()["progress"] == 60

    def test_unknown_status(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"])
        response = client.patch(f"/api/user-challenges/{enrollment['_id']}", json={"status": "Paused"})
        assert response.status_code == 400

    def test_other_fields_not_mutable(self, client, make_challenge):
        enrollment = join(client, make_challenge()["_id"])
        response = client.patch(
            f"/api/user-challenges/{enrollment['_id']}",
            json={"userId": "mallory@example.com", "progress": 5},
        )
        assert response.json()["userId"] == "ana@example.com"

    def test_unknown_id(self, client):
        response = client.patch(f"/api/user-challenges/{ObjectId()}", json={"progress": 5})
        assert response.status_code == 404
        assert response.json() == {"message": "User challenge not found"}

    def test_bumps_updated_at(self, client, make_challenge, insert_at):
        """PATCH moves updatedAt forward and leaves createdAt alone."""
        old = datetime(2024, 1, 1)
        doc = insert_at(
            USER_CHALLENGES,
            old,
            userId="ana@example.com",
            challengeId=ObjectId(make_challenge()["_id"]),
            status="Ongoing",
            progress=0,
        )

        response = client.patch(f"/api/user-challenges/{doc['_id']}", json={"progress": 25})
        assert response.status_code == 200
        body = response.json()
        assert datetime.fromisoformat(body["updatedAt"]) > old
        assert datetime.fromisoformat(body["createdAt"]) == old


class TestDeleteUserChallenge:
    """Tests for DELETE /api/user-challenges/{id}."""

    def test_delete(self, client, make_challenge, database):
        enrollment = join(client, make_challenge()["_id"])
        response = client.delete(f"/api/user-challenges/{enrollment['_id']}")
        assert response.json() == {"message": "User challenge deleted successfully"}
        assert database[USER_CHALLENGES].count_documents({}) == 0

    def test_delete_unknown(self, client):
        response = client.delete(f"/api/user-challenges/{ObjectId()}")
        assert response.status_code == 404

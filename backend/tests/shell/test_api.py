"""Integration tests for API endpoints using Starlette TestClient."""

import pytest
from datetime import date
from unittest.mock import MagicMock, patch
from starlette.testclient import TestClient

from macroplan.main import create_app
from macroplan.core.models import NutritionEntry, UserMetrics
from macroplan.core.nutrition import compute_targets
from macroplan.shell.auth import generate_api_key, hash_api_key
from macroplan.shell.firestore_client import FitnessFirestoreClient


API_KEY = generate_api_key()
USER_ID = hash_api_key(API_KEY)
AUTH = {"Authorization": f"Bearer {API_KEY}"}

METRICS = {
    "age": 30,
    "weight": 180,
    "feet_height": 5,
    "inches_height": 10,
    "sex": "male",
    "activity_level": "moderate",
    "primary_goal": "maintenance",
}


@pytest.fixture
def mock_store():
    """Mock fitness store used for user records and by the /api handlers."""
    store = MagicMock(spec=FitnessFirestoreClient)
    store.user_exists.return_value = True
    store.create_user.return_value = True
    return store


@pytest.fixture
def client(mock_store):
    """Create test client with mocked Firestore."""
    with patch("macroplan.main.get_firestore_client", return_value=mock_store), \
            patch("macroplan.shell.http_api.get_firestore_client", return_value=mock_store):
        yield TestClient(create_app())


class TestHealthEndpoint:
    """Tests for /health endpoint."""

    def test_health(self, client):
        """Health endpoint returns 200 with service name."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "macroplan"}


class TestRegisterEndpoint:
    """Tests for /auth/register endpoint."""

    def test_register_success(self, client):
        """Successful registration returns API key."""
        response = client.post("/auth/register", json={"email": "test@example.com", "first_name": "Sam"})

        assert response.status_code == 200
        data = response.json()
        assert data["api_key"].startswith("mpl_")
        assert data["mcp_url"].endswith("/mcp")
        assert "message" in data

    @pytest.mark.parametrize("body", [{}, {"email": ""}, {"email": "not-an-email"}])
    def test_register_invalid_email(self, client, body):
        """Registration without a valid email returns 400."""
        response = client.post("/auth/register", json=body)
        assert response.status_code == 400
        assert "error" in response.json()

    def test_register_store_failure(self, client, mock_store):
        """No key is returned when the user record cannot be written."""
        mock_store.create_user.return_value = False
        response = client.post("/auth/register", json={"email": "test@example.com"})
        assert response.status_code == 500
        assert "api_key" not in response.json()


class TestValidateEndpoint:
    """Tests for /auth/validate endpoint."""

    def test_validate_missing_key(self, client):
        """Validation without key returns invalid."""
        assert client.post("/auth/validate", json={}).json()["valid"] is False

    def test_validate_invalid_format(self, client):
        """Validation with invalid format returns invalid."""
        assert client.post("/auth/validate", json={"api_key": "invalid_key"}).json()["valid"] is False

    def test_validate_nonexistent_key(self, client, mock_store):
        """Validation of non-existent key returns invalid."""
        mock_store.user_exists.return_value = False
        response = client.post("/auth/validate", json={"api_key": generate_api_key()})
        assert response.json()["valid"] is False

    def test_validate_existing_key(self, client):
        """Validation of existing key returns valid."""
        response = client.post("/auth/validate", json={"api_key": API_KEY})
        assert response.json()["valid"] is True


class TestCORS:
    """Tests for CORS configuration."""

    @pytest.mark.parametrize("origin", ["https://macroplan.app", "http://localhost:3000"])
    def test_preflight_allowed_origin(self, client, origin):
        """Preflight from an allowed origin returns the origin."""
        response = client.options(
            "/api/nutrition",
            headers={
                "Origin": origin,
                "Access-Control-Request-Method": "DELETE",
                "Access-Control-Request-Headers": "Authorization",
            },
        )
        assert response.status_code == 200
        assert response.headers.get("access-control-allow-origin") == origin

    def test_preflight_unknown_origin(self, client):
        """Unknown origins are not allowed."""
        response = client.options(
            "/auth/register",
            headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
        )
        assert response.headers.get("access-control-allow-origin") is None


class TestApiAuth:
    """Tests for API key enforcement on /api routes."""

    def test_missing_key(self, client, mock_store):
        """Requests without a key are rejected."""
        response = client.get("/api/nutrition")
        assert response.status_code == 401
        mock_store.list_nutrition_entries.assert_not_called()

    def test_unknown_key(self, client, mock_store):
        """Requests with an unregistered key are rejected."""
        mock_store.user_exists.return_value = False
        response = client.get("/api/nutrition", headers=AUTH)
        assert response.status_code == 401


class TestProfileEndpoints:
    """Tests for /api/user-profile."""

    def test_get_missing_profile(self, client, mock_store):
        """No stored metrics returns 404."""
        mock_store.get_profile.return_value = None
        response = client.get("/api/user-profile", headers=AUTH)
        assert response.status_code == 404
        mock_store.get_profile.assert_called_once_with(USER_ID)

    def test_get_profile(self, client, mock_store):
        """Stored metrics are returned."""
        mock_store.get_profile.return_value = UserMetrics(**METRICS)
        response = client.get("/api/user-profile", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["profile"]["feet_height"] == 5

    def test_create_profile_clamps(self, client, mock_store):
        """Out-of-range values are clamped before saving."""
        mock_store.get_profile.return_value = None
        mock_store.save_profile.return_value = True

        response = client.post("/api/user-profile", json={**METRICS, "age": 150}, headers=AUTH)

        assert response.status_code == 200
        data = response.json()
        assert data["profile"]["age"] == 100
        assert data["message"] == "Profile created successfully!"
        saved = mock_store.save_profile.call_args[0][1]
        assert data["targets"] == compute_targets(saved).model_dump()

    def test_update_profile(self, client, mock_store):
        """An existing profile is reported as updated."""
        mock_store.get_profile.return_value = UserMetrics(**METRICS)
        mock_store.save_profile.return_value = True

        response = client.post("/api/user-profile", json={"profile": METRICS}, headers=AUTH)

        assert response.json()["message"] == "Profile updated successfully!"

    def test_missing_fields(self, client, mock_store):
        """Missing metrics return field errors and nothing is saved."""
        response = client.post("/api/user-profile", json={**METRICS, "sex": None}, headers=AUTH)

        assert response.status_code == 400
        assert "sex" in response.json()["fields"]
        mock_store.save_profile.assert_not_called()


class TestNutritionEndpoints:
    """Tests for /api/nutrition."""

    def test_list_with_range(self, client, mock_store):
        """Date range is parsed and passed through."""
        mock_store.list_nutrition_entries.return_value = [
            NutritionEntry(id="n1", food_name="Eggs", calories=140, entry_date=date(2025, 3, 3)),
        ]
        response = client.get(
            "/api/nutrition", params={"start_date": "2025-03-03", "end_date": "2025-03-09"}, headers=AUTH,
        )

        assert response.status_code == 200
        assert response.json()["entries"][0]["entry_date"] == "2025-03-03"
        mock_store.list_nutrition_entries.assert_called_once_with(
            USER_ID, date(2025, 3, 3), date(2025, 3, 9),
        )

    def test_list_failure(self, client, mock_store):
        """A failed query is an error, not an empty list."""
        mock_store.list_nutrition_entries.return_value = None
        response = client.get("/api/nutrition", headers=AUTH)
        assert response.status_code == 500
        assert "entries" not in response.json()

    def test_list_bad_date(self, client):
        """Malformed dates are rejected."""
        response = client.get(
            "/api/nutrition", params={"start_date": "03/03/2025", "end_date": "2025-03-09"}, headers=AUTH,
        )
        assert response.status_code == 400

    def test_create(self, client, mock_store):
        """A new entry is created on the given date."""
        mock_store.create_nutrition_entry.side_effect = lambda user_id, entry: entry

        response = client.post(
            "/api/nutrition",
            json={"food_name": "Eggs", "calories": 140, "protein": 12, "date": "2025-03-03"},
            headers=AUTH,
        )

        assert response.status_code == 200
        entry = response.json()["entry"]
        assert entry["food_name"] == "Eggs"
        assert entry["entry_date"] == "2025-03-03"

    def test_create_missing_fields(self, client, mock_store):
        """food_name and calories are required."""
        response = client.post("/api/nutrition", json={"calories": 140}, headers=AUTH)
        assert response.status_code == 400
        mock_store.create_nutrition_entry.assert_not_called()

    def test_update_missing_entry(self, client, mock_store):
        """Updating an unknown entry returns 404."""
        mock_store.update_nutrition_entry.return_value = None
        response = client.post(
            "/api/nutrition", json={"entry_id": "n1", "food_name": "Eggs", "calories": 150}, headers=AUTH,
        )
        assert response.status_code == 404

    def test_delete(self, client, mock_store):
        """Deleting by id succeeds."""
        mock_store.delete_nutrition_entry.return_value = True
        response = client.delete("/api/nutrition", params={"entry_id": "n1"}, headers=AUTH)
        assert response.json() == {"success": True}
        mock_store.delete_nutrition_entry.assert_called_once_with(USER_ID, "n1")

    def test_delete_requires_id(self, client):
        """entry_id is required."""
        assert client.delete("/api/nutrition", headers=AUTH).status_code == 400


class TestWorkoutEndpoints:
    """Tests for /api/workouts."""

    def test_create(self, client, mock_store):
        """A workout with exercises is created with 201."""
        mock_store.create_workout.side_effect = lambda user_id, workout: workout

        response = client.post(
            "/api/workouts",
            json={
                "name": "Pull day",
                "date": "2025-03-05",
                "exercises": [{"name": "Rows", "category": "back", "sets": 4, "reps": 10}],
            },
            headers=AUTH,
        )

        assert response.status_code == 201
        workout = response.json()["workout"]
        assert workout["workout_date"] == "2025-03-05"
        assert workout["exercises"][0]["category"] == "back"

    def test_create_missing_date(self, client):
        """name and date are required."""
        response = client.post("/api/workouts", json={"name": "Pull day"}, headers=AUTH)
        assert response.status_code == 400

    def test_update_requires_id(self, client):
        """workout_id is required."""
        assert client.put("/api/workouts", json={"name": "Legs"}, headers=AUTH).status_code == 400

    def test_delete(self, client, mock_store):
        """Deleting by id succeeds."""
        mock_store.delete_workout.return_value = True
        response = client.delete("/api/workouts", params={"workout_id": "w1"}, headers=AUTH)
        assert response.status_code == 200
        mock_store.delete_workout.assert_called_once_with(USER_ID, "w1")


class TestMacrosEndpoint:
    """Tests for /api/macros."""

    def test_macro_request(self, client):
        """A macro question with metrics returns computed targets."""
        response = client.post(
            "/api/macros",
            json={"message": "What are my macros?", "user_metrics": METRICS},
            headers=AUTH,
        )

        data = response.json()
        assert data["type"] == "macros"
        assert data["macros"] == compute_targets(UserMetrics(**METRICS)).model_dump()
        assert data["response"].startswith("Personalized macros: Calories:")
        assert data["fallback"] is False

    def test_without_metrics(self, client):
        """Without metrics the reply is plain text."""
        response = client.post("/api/macros", json={"message": "calories?"}, headers=AUTH)
        assert response.json()["type"] == "text"

    def test_invalid_metrics(self, client):
        """Out-of-range metrics are rejected."""
        response = client.post(
            "/api/macros",
            json={"response_format": "macros", "user_metrics": {**METRICS, "age": 5}},
            headers=AUTH,
        )
        assert response.status_code == 400
        assert "age" in response.json()["fields"]

    def test_reply_text_is_used(self, client):
        """A parseable text reply supplies the targets."""
        response = client.post(
            "/api/macros",
            json={
                "message": "What are my macros?",
                "user_metrics": METRICS,
                "reply": {"type": "text", "response": "Calories: 2100 Protein: 160 Carbs: 210 Fat: 65"},
            },
            headers=AUTH,
        )

        data = response.json()
        assert data["macros"] == {"calories": 2100, "protein": 160, "carbs": 210, "fat": 65}
        assert data["fallback"] is False

    def test_unusable_reply_falls_back(self, client):
        """A reply missing a value is replaced by the direct calculation."""
        response = client.post(
            "/api/macros",
            json={
                "message": "What are my macros?",
                "user_metrics": METRICS,
                "reply": {"type": "text", "response": "Calories: 2000, Protein: 150g"},
            },
            headers=AUTH,
        )

        data = response.json()
        assert data["macros"] == compute_targets(UserMetrics(**METRICS)).model_dump()
        assert data["fallback"] is True

"""
Tests for the application-level endpoints
"""


class TestHealth:
    """Tests for / and /health"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "Interview Proctoring Service"

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Interview Proctoring Service"
        assert "x-process-time-ms" in response.headers

    def test_cors_headers(self, client):
        response = client.options(
            "/api/proctoring",
            headers={"Origin": "http://candidate.local", "Access-Control-Request-Method": "POST"}
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

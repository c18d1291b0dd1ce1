from fastapi.testclient import TestClient

from reset_service.main import app

client = TestClient(app)


def test_cors_allows_configured_origin():
    """Preflight requests from allowed origins should succeed."""
    resp = client.options(
        "/auth/password-reset",
        headers={
            "Origin": "http://allowed.example",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 200
    assert (
        resp.headers.get("access-control-allow-origin") == "http://allowed.example"
    )


def test_cors_rejects_other_origins():
    """Origins not on the whitelist fail the CORS check."""
    resp = client.options(
        "/auth/password-reset/confirm",
        headers={
            "Origin": "http://evil.example",
            "Access-Control-Request-Method": "POST",
        },
    )
    assert resp.status_code == 400
    assert "access-control-allow-origin" not in resp.headers

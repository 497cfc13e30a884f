"""
Smoke test - verifies test infrastructure is working.
Run: pytest tests/test_smoke.py -v
"""


def test_import_signademy():
    """Verify signademy package can be imported."""
    from signademy.core.config import get_settings

    settings = get_settings()
    assert settings is not None
    assert hasattr(settings, "model_cache_dir")


def test_import_app():
    """Verify the FastAPI application can be created and serves requests."""
    from fastapi.testclient import TestClient

    from signademy.api.v1 import recognition_router
    from signademy.main import app

    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert "/ws" in {getattr(route, "path", None) for route in recognition_router.routes}


def test_pytest_runs():
    """Basic sanity check that pytest executes tests."""
    assert True

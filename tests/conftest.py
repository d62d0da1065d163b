import pytest
from fastapi.testclient import TestClient

from app import Settings, create_app


@pytest.fixture
def settings(tmp_path):
    """
    Settings pointing at a throwaway directory.

    Every test gets its own data.json and index.html, so nothing here ever
    touches the document saved next to app.py.
    """
    html = tmp_path / "index.html"
    html.write_text("<h1>POS</h1>", encoding="utf-8")
    return Settings(
        port=0,
        data_file=tmp_path / "data.json",
        html_file=html,
        open_browser=False,
    )


@pytest.fixture
def client(settings):
    return TestClient(create_app(settings), raise_server_exceptions=True)


@pytest.fixture
def saved(client):
    """A deployment that already holds a document."""
    r = client.post("/save", content='{"items": [{"sku": "A-1", "price": 3.5}]}')
    assert r.status_code == 200
    return {"items": [{"sku": "A-1", "price": 3.5}]}

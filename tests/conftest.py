"""
Pytest configuration shared by the API and service tests.

The database URL and the other AW_* settings are read when `aravalli` is
first imported, so they are pinned here before any test module imports it.
"""

import os
import tempfile

import pytest

_TEST_DIR = tempfile.mkdtemp(prefix="aravalli-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["AW_LOCATION_DELAY"] = "0"
os.environ["AW_ADMIN_USERNAME"] = "admin"
os.environ["AW_ADMIN_PASSWORD"] = "admin-pass"
os.environ["AW_SEED_TEST_USER"] = "1"
os.environ.pop("AW_LEGACY_ADMIN_USERNAME", None)
os.environ.pop("GOOGLE_API_KEY", None)
os.environ.pop("GEMINI_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from aravalli import bootstrap, database  # noqa: E402
from aravalli.file_access import FileAccessService  # noqa: E402
from aravalli.main import app, get_file_service, get_llm  # noqa: E402


class FakeLLM:
    """Scripted stand-in for GeminiClient.

    Queue return values (or exceptions) in `json_responses` /
    `text_responses`; every call is recorded in `calls`.
    """

    def __init__(self, configured=True):
        self.configured = configured
        self.json_responses = []
        self.text_responses = []
        self.image_responses = []
        self.calls = []

    @staticmethod
    def _next(queue, default):
        if not queue:
            return default
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def generate_json(self, prompt):
        self.calls.append(("json", prompt))
        return self._next(self.json_responses, None)

    async def generate_text(self, prompt, system_instruction=None):
        self.calls.append(("text", prompt, system_instruction))
        return self._next(self.text_responses, "")

    async def describe_image(self, image_bytes, mime_type, prompt):
        self.calls.append(("image", mime_type, prompt))
        return self._next(self.image_responses, "")


@pytest.fixture
def db_session():
    database.Base.metadata.drop_all(bind=database.engine)
    bootstrap.run(database.engine, database.SessionLocal)
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def source_tree(tmp_path):
    static = tmp_path / "static"
    (static / "css").mkdir(parents=True)
    (static / "node_modules" / "lib").mkdir(parents=True)
    (static / "index.html").write_text("<h1>Aravalli Watch</h1>\n", encoding="utf-8")
    (static / "app.js").write_text("const color = 'green';\n", encoding="utf-8")
    (static / "css" / "site.css").write_text("body { color: black; }\n", encoding="utf-8")
    (static / "notes.txt").write_text("not source\n", encoding="utf-8")
    (static / "node_modules" / "lib" / "index.js").write_text("module.exports = {};\n", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("top secret\n", encoding="utf-8")
    return FileAccessService(base_dir=str(tmp_path), root="static")


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def client(db_session, source_tree, fake_llm):
    app.dependency_overrides[get_file_service] = lambda: source_tree
    app.dependency_overrides[get_llm] = lambda: fake_llm
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _login(client, username, password):
    response = client.post("/api/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['token']}"}


@pytest.fixture
def admin_headers(client):
    return _login(client, "admin", "admin-pass")


@pytest.fixture
def user_headers(client):
    return _login(client, "user", "user")

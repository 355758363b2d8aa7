import os
import shutil
import tempfile
import pytest
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing app modules
TEST_ROOT = tempfile.mkdtemp(prefix="image-service-tests-")
os.environ["UPLOAD_DIR"] = os.path.join(TEST_ROOT, "uploads")
os.environ["METADATA_DIR"] = os.path.join(TEST_ROOT, "metadata")
os.environ["BASE_URL"] = "http://testserver"
# Never talk to Firebase from tests
os.environ.pop("FIREBASE_CREDENTIALS", None)

from app.main import app
from app.settings import settings
from app.auth.identity import Authenticated
from app.image_service.processor import ImageProcessor
from app.storage.image_store import ImageStore
from app.storage.metadata_store import MetadataStore


class FakeVerifier:
    """Accepts tokens of the form 'token-<uid>'."""

    def __init__(self):
        self.calls = []

    def verify(self, token):
        self.calls.append(token)
        if not token.startswith("token-"):
            raise ValueError("Invalid ID token")
        return Authenticated(uid=token[len("token-"):])

    def close(self):
        pass


def auth_header(uid):
    return {"Authorization": f"Bearer token-{uid}"}


@pytest.fixture
def image_store(tmp_path):
    return ImageStore(tmp_path / "uploads")


@pytest.fixture
def metadata_store(tmp_path):
    return MetadataStore(tmp_path / "metadata")


@pytest.fixture
def processor(image_store):
    return ImageProcessor(image_store, compress=True, quality=80)


@pytest.fixture(scope="function")
def test_client():
    for directory in (settings.upload_dir, settings.metadata_dir):
        shutil.rmtree(directory, ignore_errors=True)

    with TestClient(app) as client:
        # Replace the Firebase verifier with a fake one
        app.state.verifier = FakeVerifier()
        yield client


def pytest_sessionfinish(session, exitstatus):
    shutil.rmtree(TEST_ROOT, ignore_errors=True)

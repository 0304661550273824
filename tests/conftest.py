import os
import sys

import pytest

# Modules live at the repository root
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app import app as flask_app  # noqa: E402


@pytest.fixture
def client(tmp_path):
    old_data_dir = flask_app.config["DATA_DIR"]
    flask_app.config.update(TESTING=True, DATA_DIR=str(tmp_path))
    with flask_app.test_client() as client:
        yield client
    flask_app.config["DATA_DIR"] = old_data_dir

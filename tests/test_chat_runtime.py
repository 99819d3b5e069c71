from click.testing import CliRunner
from fastapi.testclient import TestClient

from agent_chat.chat_runtime.app import app
from agent_chat.chat_runtime.version import __version__
from agent_chat.cli import main

client = TestClient(app)


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_cli_version():
    result = CliRunner().invoke(main, ["version"])
    assert result.exit_code == 0
    assert result.output.strip() == __version__

import pytest
from typer.testing import CliRunner

from svcpanel import __version__, cli
from svcpanel.services import panel

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def served(monkeypatch):
    calls = []
    monkeypatch.setattr(panel.ServicePanelServer, "run", lambda self: calls.append(self.config))
    return calls


def test_version():
    result = runner.invoke(cli.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_serve_with_overrides(served):
    result = runner.invoke(cli.app, ["--host", "0.0.0.0", "--port", "9001"])

    assert result.exit_code == 0, result.output
    assert len(served) == 1
    assert served[0].bind_address == "0.0.0.0"
    assert served[0].port == 9001


def test_missing_credentials_exit_non_zero(monkeypatch, served):
    monkeypatch.delenv("ADMIN_PASS", raising=False)

    result = runner.invoke(cli.app, [])

    assert result.exit_code == 1
    assert served == []


def test_invalid_port_exit_non_zero(served):
    result = runner.invoke(cli.app, ["--port", "70000"])

    assert result.exit_code == 1
    assert served == []


def test_empty_allowlist_entry_exit_non_zero(monkeypatch, served):
    monkeypatch.setenv("ALLOWED_SERVICES", "calibre,,jellyfin")

    result = runner.invoke(cli.app, [])

    assert result.exit_code == 1
    assert served == []

import subprocess
import sys

import pytest
import yaml
from typer.testing import CliRunner

from k3sctl.cli import app
from k3sctl.errors import ComponentError, HaBootstrapError
from k3sctl.modules.k3s.deploy import KubeconfigState, ServerState
from k3sctl.modules.k3s.ha import HaResult, NodeResult

runner = CliRunner()

SERVER_SPEC = "auth:\n  host: 10.0.0.1\n  password: pw\nconfig: |\n  node-name: n1\n"
HA_SPEC = "password: pw\nnodes:\n- host: 10.0.0.10\n- host: 10.0.0.11\n"


def run_cli_command(cmd):
    return subprocess.run([sys.executable, "-m", "k3sctl.cli"] + cmd.split(), capture_output=True, text=True)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    # Keep log records out of the YAML printed on stdout
    monkeypatch.setattr('k3sctl.cli.setup_logging', lambda debug_mode=False: None)


@pytest.fixture
def spec_file(tmp_path):
    def write(content, name='spec.yaml'):
        path = tmp_path / name
        path.write_text(content)
        return str(path)
    return write


def test_help():
    result = run_cli_command("--help")
    assert "Usage" in result.stdout
    for group in ("server", "agent", "ha", "kubeconfig", "config"):
        assert group in result.stdout


def test_server_help():
    result = runner.invoke(app, ["server", "--help"])
    assert result.exit_code == 0
    for command in ("create", "read", "update", "delete"):
        assert command in result.output


def test_config_render(tmp_path):
    base = tmp_path / 'base.yaml'
    base.write_text("node-label:\n- a=b\nkubelet-arg:\n- max-pods=110\n")
    override = tmp_path / 'override.yaml'
    override.write_text("node-label:\n- c=d\n")

    result = runner.invoke(app, ["config", "render", str(base), str(override), "--data-dir", "/data"])

    assert result.exit_code == 0
    assert yaml.safe_load(result.output) == {
        'node-label': ['c=d'],
        'kubelet-arg': ['max-pods=110'],
        'data-dir': '/data',
    }


def test_server_create_prints_state(monkeypatch, spec_file):
    seen = []

    def fake_create(spec):
        seen.append(spec)
        return ServerState(host='10.0.0.1', server='https://10.0.0.1:6443', token='tok', active=True)

    monkeypatch.setattr('k3sctl.modules.k3s.deploy.create_server', fake_create)

    result = runner.invoke(app, ["server", "create", "--file", spec_file(SERVER_SPEC)])

    assert result.exit_code == 0
    assert yaml.safe_load(result.output)['token'] == 'tok'
    assert seen[0].config_map() == {'node-name': 'n1'}


def test_server_create_failure_exits_1(monkeypatch, spec_file):
    def fake_create(spec):
        raise ComponentError("was not able to start k3s on 10.0.0.1")

    monkeypatch.setattr('k3sctl.modules.k3s.deploy.create_server', fake_create)

    result = runner.invoke(app, ["server", "create", "--file", spec_file(SERVER_SPEC)])

    assert result.exit_code == 1


def test_invalid_spec_exits_1(spec_file):
    result = runner.invoke(app, ["server", "create", "--file", spec_file("auth:\n  host: 10.0.0.1\n")])
    assert result.exit_code == 1


def test_server_update_without_changes(monkeypatch, spec_file):
    monkeypatch.setattr('k3sctl.modules.k3s.deploy.update_server', lambda spec, previous: None)
    path = spec_file(SERVER_SPEC)

    result = runner.invoke(app, ["server", "update", "--file", path, "--previous", path])

    assert result.exit_code == 0
    assert "no changes" in result.output


def test_agent_delete_flag_overrides_spec(monkeypatch, spec_file):
    seen = []
    monkeypatch.setattr('k3sctl.modules.k3s.deploy.delete_agent', seen.append)
    path = spec_file(
        "auth:\n  host: 10.0.0.2\n  password: pw\n"
        "server: https://10.0.0.1:6443\ntoken: tok\n"
    )

    result = runner.invoke(app, ["agent", "delete", "--file", path, "--allow-delete-err"])

    assert result.exit_code == 0
    assert seen[0].allow_delete_err is True


def test_ha_partial_failure_prints_every_node(monkeypatch, spec_file):
    def fake_create(spec):
        result = HaResult(token='tok', server='https://10.0.0.10:6443', nodes=[
            NodeResult(0, '10.0.0.10', active=True),
            NodeResult(1, '10.0.0.11', error=ComponentError("start failed")),
        ])
        raise HaBootstrapError(result)

    monkeypatch.setattr('k3sctl.modules.k3s.deploy.create_ha', fake_create)

    result = runner.invoke(app, ["ha", "create", "--file", spec_file(HA_SPEC)])

    assert result.exit_code == 1
    printed = yaml.safe_load(result.stdout)
    assert printed['token'] == 'tok'
    assert [node['error'] for node in printed['nodes']] == [None, 'start failed']


def test_kubeconfig_get_raw(monkeypatch, spec_file, sample_kubeconfig):
    calls = []

    def fake_read(auth, hostname=None, allow_empty=False):
        calls.append((auth.host, hostname, allow_empty))
        return KubeconfigState(kubeconfig=sample_kubeconfig)

    monkeypatch.setattr('k3sctl.modules.k3s.deploy.read_kubeconfig', fake_read)
    path = spec_file("auth:\n  host: 10.0.0.1\n  password: pw\nhostname: api.example.com\n")

    result = runner.invoke(app, ["kubeconfig", "get", "--file", path, "--raw", "--allow-empty"])

    assert result.exit_code == 0
    assert result.output == sample_kubeconfig
    assert calls == [('10.0.0.1', 'api.example.com', True)]

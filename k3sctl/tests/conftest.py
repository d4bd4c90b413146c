import base64
import shlex

import pytest

from k3sctl.errors import CommandError, SSHConnectionError
from k3sctl.modules.k3s.assets import AssetProvider

SAMPLE_KUBECONFIG = """apiVersion: v1
clusters:
- cluster:
    certificate-authority-data: Y2EtZGF0YQ==
    server: https://127.0.0.1:6443
  name: default
contexts:
- context:
    cluster: default
    user: default
  name: default
current-context: default
kind: Config
preferences: {}
users:
- name: default
  user:
    client-certificate-data: Y2xpZW50LWNlcnQ=
    client-key-data: Y2xpZW50LWtleQ==
"""


class FakeConnection:
    """Stands in for SSHConnection.

    Records every command, answers from ``responses`` (first matching
    substring wins), fails commands matching ``failures`` and keeps a tiny
    file system that the base64 sync commands write into.
    """

    def __init__(self, host='10.0.0.1', responses=None, failures=None, files=None, ready_error=None):
        self.host = host
        self.commands = []
        self.responses = {'systemctl is-active': 'active\n'}
        self.responses.update(responses or {})
        self.failures = dict(failures or {})
        self.files = dict(files or {})
        self.ready_error = ready_error
        self.ready_calls = 0

    def wait_until_ready(self, attempts=None, delay=None):
        self.ready_calls += 1
        if self.ready_error is not None:
            raise self.ready_error

    def run(self, command):
        self.commands.append(command)
        for needle, status in self.failures.items():
            if needle in command:
                raise CommandError(command, status, 'boom')
        self._apply(command)
        for needle, output in self.responses.items():
            if needle in command:
                return output
        return ''

    def run_stream(self, commands, on_stdout=None, on_stderr=None):
        for command in commands:
            self.run(command)

    def read_file(self, path, missing_ok=False, sudo=True):
        self.commands.append(f"cat {path}")
        if path in self.files:
            return self.files[path]
        if missing_ok:
            return ''
        raise CommandError(f"sudo cat {path}", 1, f"cat: {path}: No such file or directory")

    def _apply(self, command):
        if '|' not in command:
            if command.startswith('sudo rm -f '):
                self.files.pop(shlex.split(command)[3], None)
            return
        parts = shlex.split(command)
        if 'tee' not in parts:
            return
        target = parts[parts.index('tee') + 1]
        if parts[0] == 'echo':
            self.files[target] = parts[1]
        elif parts[:3] == ['sudo', 'base64', '-d']:
            self.files[target] = base64.b64decode(self.files[parts[3]]).decode('utf-8')

    def ran(self, needle):
        return [command for command in self.commands if needle in command]


class FakeAssets(AssetProvider):
    def install_script(self):
        return b"#!/bin/sh\necho install\n"


@pytest.fixture
def assets():
    return FakeAssets()


@pytest.fixture
def fake_conn():
    return FakeConnection()


@pytest.fixture
def server_files():
    """Files a freshly installed k3s server leaves behind."""
    return {
        '/var/lib/rancher/k3s/server/token': 'K10abc::server:secret\n',
        '/etc/rancher/k3s/k3s.yaml': SAMPLE_KUBECONFIG,
    }


class Connector:
    """Connection factory handing out one FakeConnection per host."""

    def __init__(self, files=None, failures=None, responses=None, unreachable=()):
        self.files = dict(files or {})
        self.failures = dict(failures or {})
        self.responses = dict(responses or {})
        self.unreachable = set(unreachable)
        self.conns = {}
        self.calls = []

    def __call__(self, auth):
        self.calls.append(auth.host)
        if auth.host in self.unreachable:
            raise SSHConnectionError(f"invalid auth for {auth.host}")
        if auth.host not in self.conns:
            self.conns[auth.host] = FakeConnection(
                host=auth.host,
                files=self.files,
                failures=self.failures.get(auth.host),
                responses=self.responses.get(auth.host),
            )
        return self.conns[auth.host]


@pytest.fixture
def connector(server_files):
    return Connector(files=server_files)


@pytest.fixture
def sample_kubeconfig():
    return SAMPLE_KUBECONFIG


@pytest.fixture
def make_conn():
    return FakeConnection


@pytest.fixture
def make_connector(server_files):
    def factory(**kwargs):
        kwargs.setdefault('files', server_files)
        return Connector(**kwargs)
    return factory

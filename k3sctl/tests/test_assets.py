import os
import subprocess

from k3sctl.modules.k3s.assets import AssetProvider


def test_bundled_install_script():
    script = AssetProvider(install_script_path='').install_script()
    assert script.startswith(b'#!/bin/sh')
    assert b'get.k3s.io' in script


def test_install_script_override(tmp_path):
    override = tmp_path / 'install.sh'
    override.write_bytes(b'#!/bin/sh\nexit 0\n')
    assert AssetProvider(install_script_path=str(override)).install_script() == b'#!/bin/sh\nexit 0\n'


def test_install_script_fails_when_download_fails(tmp_path):
    bin_dir = tmp_path / 'bin'
    bin_dir.mkdir()
    curl = bin_dir / 'curl'
    curl.write_text('#!/bin/sh\nexit 22\n')
    curl.chmod(0o755)
    script = tmp_path / 'k3s-install.sh'
    script.write_bytes(AssetProvider(install_script_path='').install_script())

    env = dict(os.environ, PATH=f"{bin_dir}:{os.environ.get('PATH', '/usr/bin:/bin')}")
    result = subprocess.run(['sh', str(script)], capture_output=True, text=True, env=env)

    assert result.returncode == 1
    assert 'failed to download the k3s installer' in result.stderr

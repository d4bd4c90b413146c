"""
SSH command transport built on paramiko.

Every command gets its own connection and session, both closed before the
call returns. Nothing here retries except ``wait_until_ready``.
"""
import io
import logging
import shlex
import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import paramiko

from ..config import Config
from ..errors import CommandError, SSHConnectionError
from ..utils import redact_command

logger = logging.getLogger("ssh")

LineCallback = Callable[[str], None]

_KEY_TYPES = (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey)


@dataclass
class NodeAuth:
    """Connection descriptor for a single node."""
    host: str
    user: str = 'root'
    port: int = 22
    private_key: Optional[str] = None
    password: Optional[str] = None
    passphrase: Optional[str] = None

    def validate(self) -> None:
        if not self.host:
            raise ValueError("host is required")
        if not self.private_key and not self.password:
            raise ValueError("neither password nor private key was passed")
        if self.private_key and self.password:
            raise ValueError("both password and private key were passed, only pass one")

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def load_private_key(pem: str, passphrase: Optional[str] = None) -> paramiko.PKey:
    """Parse a PEM/OpenSSH private key, trying each supported key type in turn."""
    last_error = None
    for key_cls in _KEY_TYPES:
        try:
            return key_cls.from_private_key(io.StringIO(pem), password=passphrase)
        except paramiko.PasswordRequiredException as e:
            raise SSHConnectionError("private key is encrypted and no passphrase was given") from e
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
            continue
    raise SSHConnectionError(f"parsing private key failed: {last_error}")


class SSHConnection:
    """Runs shell commands on one node."""

    def __init__(self, auth: NodeAuth, connect_timeout: int = None):
        """Validate the descriptor and prepare credentials.

        No network traffic happens here; a bad descriptor or key fails fast.

        Args:
            auth: Node connection descriptor
            connect_timeout: Dial timeout in seconds (default: Config.SSH_TIMEOUT)
        """
        try:
            auth.validate()
        except ValueError as e:
            raise SSHConnectionError(f"invalid auth for {auth.host}: {e}") from e

        self.auth = auth
        self.host = auth.host
        self.connect_timeout = connect_timeout or Config.SSH_TIMEOUT
        self._pkey = load_private_key(auth.private_key, auth.passphrase) if auth.private_key else None

    def __repr__(self) -> str:
        return f"SSHConnection({self.auth.user}@{self.auth.address})"

    def _connect(self) -> paramiko.SSHClient:
        """Dial and authenticate a fresh client. Caller owns and must close it."""
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=self.auth.host,
                port=self.auth.port,
                username=self.auth.user,
                pkey=self._pkey,
                password=self.auth.password if self._pkey is None else None,
                timeout=self.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise SSHConnectionError(f"create client failed for {self.auth.address}: {e}") from e
        return client

    @staticmethod
    def _open_session(client: paramiko.SSHClient) -> paramiko.Channel:
        transport = client.get_transport()
        if transport is None or not transport.is_active():
            raise SSHConnectionError("create session failed: transport is not active")
        try:
            return transport.open_session()
        except paramiko.SSHException as e:
            raise SSHConnectionError(f"create session failed: {e}") from e

    def run(self, command: str) -> str:
        """Run one command and return its combined stdout and stderr.

        Raises:
            SSHConnectionError: If the node cannot be reached
            CommandError: If the command exits non-zero
        """
        logger.debug("[%s] run: %s", self.host, redact_command(command))
        client = self._connect()
        try:
            session = self._open_session(client)
            try:
                session.set_combine_stderr(True)
                session.exec_command(command)
                with session.makefile('rb') as stream:
                    output = stream.read().decode('utf-8', 'replace')
                exit_status = session.recv_exit_status()
            finally:
                session.close()
        except paramiko.SSHException as e:
            raise CommandError(command, None, str(e)) from e
        finally:
            client.close()

        if exit_status != 0:
            raise CommandError(command, exit_status, output)
        return output

    def run_stream(
        self,
        commands: List[str],
        on_stdout: Optional[LineCallback] = None,
        on_stderr: Optional[LineCallback] = None,
    ) -> None:
        """Run commands one after another, streaming their output line by line.

        When only ``on_stdout`` is given it also receives stderr. The first
        failing command aborts the rest of the sequence.
        """
        if on_stdout is None:
            on_stdout = self._log_line
        if on_stderr is None:
            on_stderr = on_stdout

        for command in commands:
            self._stream_single(command, on_stdout, on_stderr)

    def _log_line(self, line: str) -> None:
        logger.info("[%s] %s", self.host, line)

    def _stream_single(self, command: str, on_stdout: LineCallback, on_stderr: LineCallback) -> None:
        logger.debug("[%s] stream: %s", self.host, redact_command(command))
        client = self._connect()
        try:
            session = self._open_session(client)
            try:
                session.exec_command(command)
                stdout = session.makefile('rb')
                stderr = session.makefile_stderr('rb')
                readers = [
                    threading.Thread(target=_drain, args=(stdout, on_stdout), daemon=True),
                    threading.Thread(target=_drain, args=(stderr, on_stderr), daemon=True),
                ]
                for reader in readers:
                    reader.start()
                # Both streams must hit EOF before the exit status is final
                for reader in readers:
                    reader.join()
                exit_status = session.recv_exit_status()
            finally:
                session.close()
        except paramiko.SSHException as e:
            raise CommandError(command, None, str(e)) from e
        finally:
            client.close()

        if exit_status != 0:
            raise CommandError(command, exit_status)

    def wait_until_ready(self, attempts: int = None, delay: float = None) -> None:
        """Block until a connection can be opened, or give up after ``attempts`` tries."""
        attempts = attempts or Config.SSH_READY_ATTEMPTS
        delay = Config.SSH_READY_DELAY if delay is None else delay

        for attempt in range(1, attempts + 1):
            try:
                client = self._connect()
            except SSHConnectionError as e:
                if attempt == attempts:
                    raise SSHConnectionError(
                        f"SSH not ready on {self.auth.address} after {attempts} attempts: {e}"
                    ) from e
                logger.info("[%s] Waiting for SSH to be ready... (%d/%d)", self.host, attempt, attempts)
                time.sleep(delay)
                continue
            client.close()
            return

    def read_file(self, path: str, missing_ok: bool = False, sudo: bool = True) -> str:
        """Return the contents of a remote file.

        With ``missing_ok`` an absent file yields an empty string.
        """
        prefix = 'sudo ' if sudo else ''
        quoted = shlex.quote(path)
        if missing_ok:
            command = f"if {prefix}test -f {quoted}; then {prefix}cat {quoted}; fi"
        else:
            command = f"{prefix}cat {quoted}"
        return self.run(command)


def _drain(stream, callback: LineCallback) -> None:
    try:
        for raw in stream:
            callback(raw.decode('utf-8', 'replace').rstrip('\r\n'))
    finally:
        stream.close()


def connect(auth: NodeAuth, **kwargs) -> SSHConnection:
    """Build a connection for ``auth``; the default connection factory."""
    return SSHConnection(auth, **kwargs)

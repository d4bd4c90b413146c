"""Remote file sync over plain shell commands.

Content travels base64 encoded so arbitrary bytes survive shell quoting, and
the final path is only written by the decode step.
"""
import base64
import posixpath
import shlex
from typing import Dict, List, Union

Content = Union[str, bytes]


def encode_content(content: Content) -> str:
    if isinstance(content, str):
        content = content.encode('utf-8')
    return base64.b64encode(content).decode('ascii')


def sync_file_commands(
    path: str,
    content: Content,
    owner: str = 'root:root',
    make_dirs: bool = True,
) -> List[str]:
    """Commands that write ``content`` to ``path`` on the remote node.

    Args:
        path: Absolute destination path
        content: File contents (text is UTF-8 encoded)
        owner: chown spec applied to the final file
        make_dirs: Create the parent directory first

    Returns:
        list: Shell commands, to be run in order
    """
    target = shlex.quote(path)
    tmp = shlex.quote(f"{path}.tmp")
    commands = []

    parent = posixpath.dirname(path)
    if make_dirs and parent:
        commands.append(f"sudo mkdir -p {shlex.quote(parent)}")

    commands.extend([
        f"echo {shlex.quote(encode_content(content))} | sudo tee {tmp} > /dev/null",
        f"sudo base64 -d {tmp} | sudo tee {target} > /dev/null",
        f"sudo chown {owner} {target}",
        f"sudo rm -f {tmp}",
    ])
    return commands


def sync_files_commands(files: Dict[str, Content], owner: str = 'root:root') -> List[str]:
    """``sync_file_commands`` for several files, in insertion order."""
    commands: List[str] = []
    for path, content in files.items():
        commands.extend(sync_file_commands(path, content, owner=owner))
    return commands

"""Shared htpasswd file maintenance used by the HTTP and squid backends."""

from __future__ import annotations

from ..errors import CommandError
from ..locks import ResourceLocks
from ..runner import CommandRunner


def add_htpasswd_user(runner: CommandRunner, locks: ResourceLocks, path: str, identity: str, credential: str) -> None:
    """Add or replace ``identity``; the password travels on stdin (``htpasswd -i``)."""

    with locks.exclusive(path):
        args = ["htpasswd", "-i", path, identity]
        if not runner.exists(path):
            args.insert(1, "-c")
        runner.run(args, input=f"{credential}\n")


def remove_htpasswd_user(runner: CommandRunner, locks: ResourceLocks, path: str, identity: str) -> None:
    with locks.exclusive(path):
        if not runner.exists(path):
            return
        args = ["htpasswd", "-D", path, identity]
        result = runner.run(args, check=False)
        if not result.ok and "not found" not in (result.stderr + result.stdout).lower():
            raise CommandError(args, result.returncode, result.stderr)

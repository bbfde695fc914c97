"""交互式管理入口：添加、删除、列出和清理 VPS 访问账号。

Interactive operator console. Every action goes through
:class:`~vpsaccess.orchestrator.ProvisioningOrchestrator`; this module only
collects input and prints results.
"""

from __future__ import annotations

import argparse
import getpass
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from .config.settings import Settings, load_settings
from .errors import (
    AccountNotFoundError,
    BackendProvisionError,
    ConfigError,
    DuplicateIdentityError,
    InvalidAccountError,
    PersistenceError,
    VPSAccessError,
)
from .locks import ResourceLocks
from .logging_utils import get_logger, setup_logging
from .orchestrator import ProvisioningOrchestrator
from .protocols import build_adapters
from .registry import AccountRegistry
from .runner import CommandRunner, LocalRunner, SSHRunner
from .sweeper import ExpirySweeper

LOGGER = get_logger(__name__)

EXIT_CHOICES = {"5", "q", "quit", "exit"}


@dataclass(frozen=True)
class MenuAction:
    """定义交互式菜单选项。Define an interactive menu option for the CLI."""

    key: str
    description: str
    handler: Callable[[], None]


def build_runner(settings: Settings) -> CommandRunner:
    """Local runner by default; an SSH runner when the config names a remote host."""

    if settings.remote is None:
        return LocalRunner(timeout=settings.command_timeout)
    remote = settings.remote
    return SSHRunner(
        remote.host,
        remote.username,
        remote.key_path,
        port=remote.port,
        timeout=settings.command_timeout,
    )


def build_orchestrator(settings: Settings, runner: CommandRunner) -> ProvisioningOrchestrator:
    """Wire registry, adapters and orchestrator from ``settings`` and load the registry."""

    registry = AccountRegistry(settings.db_path)
    registry.load()
    return ProvisioningOrchestrator(
        registry,
        build_adapters(settings, runner, ResourceLocks()),
        domain=settings.domain,
        step_timeout=settings.step_timeout,
        bcrypt_rounds=settings.bcrypt_rounds,
    )


class Console:
    """菜单处理器。Menu handlers bound to one orchestrator."""

    def __init__(
        self,
        orchestrator: ProvisioningOrchestrator,
        input_func: Callable[[str], str] = input,
        password_func: Callable[[str], str] = getpass.getpass,
        output: Callable[[str], None] = print,
    ):
        self.orchestrator = orchestrator
        self.sweeper = ExpirySweeper(orchestrator)
        self._input = input_func
        self._password = password_func
        self._print = output

    def add_user(self) -> None:
        username = self._input("Enter username: ").strip()
        password = self._password("Enter password: ")
        raw_days = self._input("Enter expiration days: ").strip()
        try:
            days = int(raw_days)
        except ValueError:
            self._print(f"❌ 无效的天数：{raw_days!r}")
            return

        try:
            result = self.orchestrator.add_account(username, password, days)
        except (InvalidAccountError, DuplicateIdentityError) as exc:
            self._print(f"❌ Error adding user: {exc}")
            return
        except BackendProvisionError as exc:
            self._print(f"❌ Error adding user: {exc}")
            for failure in exc.compensation_failures:
                self._print(f"  ⚠️ 回滚未完成，可能残留：{failure}")
            return

        if result.persistence_error is not None:
            self._print(f"⚠️ User provisioned but registry not saved: {result.persistence_error}")
        else:
            self._print("✅ User added successfully")
        self._print(f"  到期时间：{result.account.expire_date:%Y-%m-%d %H:%M} UTC")

    def remove_user(self) -> None:
        username = self._input("Enter username to remove: ").strip()
        try:
            result = self.orchestrator.remove_account(username)
        except AccountNotFoundError as exc:
            self._print(f"❌ Error removing user: {exc}")
            return

        if result.ok:
            self._print("✅ User removed successfully")
            return
        self._print(f"⚠️ User {username} removed from registry with errors:")
        for failure in result.failures:
            self._print(f"  - {failure}")
        if result.persistence_error is not None:
            self._print(f"  - registry: {result.persistence_error}")

    def list_users(self) -> None:
        accounts = self.orchestrator.list_accounts()
        self._print("Current Users:")
        self._print(f"{'Username':<15} {'Expire Date':<25} {'Protocols':<30}")
        self._print("-" * 56)
        for account in accounts:
            self._print(
                f"{account.username:<15} {account.expire_date.strftime('%Y-%m-%d'):<25} {', '.join(account.protocols):<30}"
            )

    def check_expired(self) -> None:
        report = self.sweeper.sweep()
        if not report.attempted:
            self._print("ℹ️ 没有过期账号")
            return
        for identity in report.attempted:
            if identity in report.failed:
                self._print(f"⚠️ Removed expired user {identity} with errors: {report.failed[identity]}")
            else:
                self._print(f"✅ Removed expired user: {identity}")

    def actions(self) -> tuple[MenuAction, ...]:
        return (
            MenuAction("1", "Add User", self.add_user),
            MenuAction("2", "Remove User", self.remove_user),
            MenuAction("3", "List Users", self.list_users),
            MenuAction("4", "Check Expired Users", self.check_expired),
        )

    def run(self) -> None:
        actions = self.actions()
        while True:
            self._print("\n=== VPS Management System ===")
            for action in actions:
                self._print(f"{action.key}. {action.description}")
            self._print("5. Exit")
            try:
                choice = self._input("Choose an option: ").strip().lower()
            except EOFError:
                break
            if choice in EXIT_CHOICES:
                self._print("Goodbye!")
                break
            for action in actions:
                if choice == action.key:
                    try:
                        action.handler()
                    except PersistenceError as exc:
                        self._print(f"❌ 登记表读写失败：{exc}")
                    break
            else:
                self._print("Invalid option")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="VPS 账号管理（SSH/Xray/WebSocket/HTTP/Squid/UDP/Dropbear）")
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="配置文件路径（默认读取 VPSACCESS_CONFIG 或 ./config.json）",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"❌ 配置错误：{exc}", file=sys.stderr)
        return 2

    setup_logging(settings.log_path)
    runner = build_runner(settings)
    try:
        orchestrator = build_orchestrator(settings, runner)
        Console(orchestrator).run()
    except VPSAccessError as exc:
        LOGGER.error("Fatal error", extra={"error": str(exc)})
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    finally:
        close = getattr(runner, "close", None)
        if close is not None:
            close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""运行测试脚本。Test runner script."""

from __future__ import annotations

import sys
import subprocess
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent

SUITES = {
    "core": ["tests/test_orchestrator.py", "tests/test_registry.py", "tests/test_sweeper.py"],
    "protocols": ["tests/test_protocols.py", "tests/test_runner.py"],
    "cli": ["tests/test_main.py", "tests/test_settings.py"],
}


def build_command(suite: str | None, coverage: bool, verbose: bool, keyword: str | None, failfast: bool) -> list[str]:
    cmd = [sys.executable, "-m", "pytest"]
    cmd.extend(SUITES[suite] if suite else ["tests/"])

    if keyword:
        cmd.extend(["-k", keyword])
    if failfast:
        cmd.append("-x")
    if coverage:
        cmd.extend(["--cov=vpsaccess", "--cov-report=html", "--cov-report=term"])
    cmd.append("-v" if verbose else "-q")
    return cmd


def main() -> int:
    """主函数。Main function."""
    import argparse

    parser = argparse.ArgumentParser(description="运行测试")
    parser.add_argument(
        "--suite",
        choices=sorted(SUITES),
        default=None,
        help="只运行某一组测试（core：编排器/登记表/清理器，protocols：后端适配器，cli：菜单与配置）",
    )
    parser.add_argument("-k", dest="keyword", default=None, help="传给 pytest 的 -k 表达式")
    parser.add_argument("-x", "--failfast", action="store_true", help="首个失败即停止")
    parser.add_argument(
        "--coverage",
        action="store_true",
        help="生成覆盖率报告",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="详细输出",
    )

    args = parser.parse_args()
    cmd = build_command(args.suite, args.coverage, args.verbose, args.keyword, args.failfast)
    return subprocess.run(cmd, cwd=ROOT).returncode


if __name__ == "__main__":
    sys.exit(main())

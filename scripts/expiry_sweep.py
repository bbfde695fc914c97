#!/usr/bin/env python3
"""过期账号清理脚本。Expiry sweep script.

可以设置为定时任务（cron/systemd timer），定期删除已过期的账号；也可以用
``--interval`` 常驻运行。Exit code 1 means at least one removal left errors.
"""

import sys
import time

from vpsaccess.config import DEFAULT_SWEEP_INTERVAL, load_settings
from vpsaccess.errors import ConfigError, VPSAccessError
from vpsaccess.logging_utils import setup_logging
from vpsaccess.main import build_orchestrator, build_runner
from vpsaccess.sweeper import ExpirySweeper, SweepReport


def _print_report(report: SweepReport) -> None:
    if not report.attempted:
        print("ℹ️ 没有过期账号")
        return
    print(f"🔍 {report.now:%Y-%m-%d %H:%M} UTC：处理 {len(report.attempted)} 个过期账号")
    for identity in report.attempted:
        if identity in report.failed:
            print(f"  ❌ {identity}: {report.failed[identity]}")
        else:
            print(f"  ✅ {identity}")


def main():
    """主函数。Main function."""
    import argparse

    parser = argparse.ArgumentParser(description="清理过期账号")
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help="配置文件路径（默认读取 VPSACCESS_CONFIG 或 ./config.json）",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=0,
        help=f"常驻模式的清理间隔（秒），0 表示只运行一次；建议 {DEFAULT_SWEEP_INTERVAL}",
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        print(f"❌ 配置错误：{exc}", file=sys.stderr)
        return 2

    setup_logging(settings.log_path)
    runner = build_runner(settings)
    try:
        sweeper = ExpirySweeper(build_orchestrator(settings, runner))
        if args.interval <= 0:
            report = sweeper.sweep()
            _print_report(report)
            return 0 if report.ok else 1

        sweeper.on_sweep = _print_report
        sweeper.start(args.interval)
        try:
            while sweeper.is_running:
                time.sleep(1)
        except KeyboardInterrupt:
            print("\n⏹️ 停止清理")
        finally:
            sweeper.stop()
        return 0
    except VPSAccessError as exc:
        print(f"❌ {exc}", file=sys.stderr)
        return 1
    finally:
        close = getattr(runner, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":
    sys.exit(main())

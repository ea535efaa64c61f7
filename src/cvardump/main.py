# src/cvardump/main.py
"""
cvardump 命令行入口 (CLI)

    cvardump rcon [-o out.csv] 192.168.1.100:27015 <password>
    cvardump manual [-i cvarlist.txt] [-o out.csv]

不指定 --output 时 CSV 写入标准输出，日志始终写入标准错误。
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from . import __version__
from .config import RconConfig, load_config_from_env, load_config_from_toml
from .dump import dump_manual, dump_rcon
from .exceptions import CvarDumpError, ExitCode

logger = logging.getLogger("cvardump.cli")

LOG_FORMAT = "%(asctime)s - %(name)s - [%(levelname)s] - %(message)s"


def setup_logging(verbose: bool = False) -> None:
    """配置根日志记录器。库代码本身从不配置 handler。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    # -o/-v 在子命令前后均可使用；子命令中的默认值为 SUPPRESS，避免覆盖主解析器的值
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-o",
        "--output",
        default=argparse.SUPPRESS,
        help="输出 CSV 路径，默认打印到终端",
    )
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS
    )

    parser = argparse.ArgumentParser(
        prog="cvardump",
        description="Dumps a list of cvars from Source engine into a CSV spreadsheet",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-o", "--output", default=None, help="输出 CSV 路径，默认打印到终端")
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")

    sub = parser.add_subparsers(dest="mode")

    rcon = sub.add_parser(
        "rcon",
        parents=[common],
        help='通过 RCON 连接 Source 引擎服务器并执行 "cvarlist"',
    )
    rcon.add_argument("address", help="服务器地址和端口，例如 192.168.1.100:27015")
    rcon.add_argument(
        "password", nargs="?", default=None, help="RCON 密码 (可由配置或环境变量提供)"
    )
    rcon.add_argument("--config", type=Path, default=None, help="TOML 配置文件")
    rcon.add_argument("--profile", default="default", help="TOML 中的预设名")
    rcon.add_argument("--connect-timeout", type=float, default=None, help="连接超时 (秒)")
    rcon.add_argument(
        "--response-timeout", type=float, default=None, help="单条命令响应超时 (秒)"
    )
    rcon.add_argument(
        "--timeout",
        dest="operation_timeout",
        type=float,
        default=None,
        help="连接+认证+执行的整体截止时间 (秒)",
    )
    rcon.add_argument("--command", default=None, help='要执行的命令，默认 "cvarlist"')
    rcon.add_argument("--encoding", default=None, help="响应文本编码，默认 utf-8")

    manual = sub.add_parser(
        "manual",
        parents=[common],
        help='从文件读取 "cvarlist" 的输出，适用于从客户端提取 cvar',
    )
    manual.add_argument(
        "-i", "--input", default=None, help="输入文件，默认从标准输入读取"
    )

    return parser


def load_rcon_config(args: argparse.Namespace) -> RconConfig:
    """合并 .env / 环境变量 / TOML 与命令行参数。命令行优先。"""
    overrides: dict[str, Any] = {
        "address": args.address,
        "password": args.password,
        "connect_timeout": args.connect_timeout,
        "response_timeout": args.response_timeout,
        "operation_timeout": args.operation_timeout,
        "command": args.command,
        "encoding": args.encoding,
    }

    if args.config is not None:
        return load_config_from_toml(args.config, args.profile, overrides)

    # 不覆盖已存在的真实环境变量
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        logger.debug(f"已加载配置文件: {env_path}")

    return load_config_from_env(overrides)


def run_command(args: argparse.Namespace) -> ExitCode:
    if args.mode == "rcon":
        config = load_rcon_config(args)
        logger.debug(f"配置加载完成: {config!r}")
        summary = asyncio.run(dump_rcon(config, args.output))
    else:
        summary = dump_manual(args.input, args.output)

    logger.info(f"导出完成: {summary.exported} 条 cvar")
    return ExitCode.OK


def main(argv: Optional[list[str]] = None) -> int:
    """
    程序主入口点。

    Returns:
        int: 进程退出码，见 ExitCode。
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.mode is None:
        parser.print_help()
        return ExitCode.OK

    setup_logging(args.verbose)

    try:
        return run_command(args)
    except CvarDumpError as e:
        code = ExitCode.for_error(e)
        logger.error(f"{e}")
        if e.__cause__ is not None:
            logger.debug(f"原始异常: {e.__cause__!r}")
        return code
    except KeyboardInterrupt:
        logger.info("收到用户中断信号 (Ctrl+C)，已退出。")
        return ExitCode.INTERRUPTED
    except Exception:
        logger.critical("发生意外错误。", exc_info=True)
        return ExitCode.ERROR


def run() -> None:
    sys.exit(main())


# 程序入口
if __name__ == "__main__":
    run()

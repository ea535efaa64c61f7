# File: src/cvardump/dump.py
"""
采集流程编排 (Acquisition Orchestrators)

rcon 模式:   RconSession -> 文本 -> parse_cvarlist -> write_cvar_csv
manual 模式: 文件/stdin  -> 文本 -> parse_cvarlist -> write_cvar_csv
"""

import logging
import sys
from pathlib import Path
from typing import TextIO

from .config import RconConfig
from .exceptions import InputError
from .export import write_cvar_csv
from .network import TcpTransport, with_deadline
from .parser import ParseSummary, parse_cvarlist
from .session import RconSession, TransportFactory

logger = logging.getLogger(__name__)


async def fetch_cvarlist(
    config: RconConfig,
    transport_factory: TransportFactory = TcpTransport.open,
) -> str:
    """连接服务器、认证并执行命令，返回原始输出文本。

    整个 connect + auth + execute 过程受 operation_timeout 约束，
    超时后会话在取消过程中被关闭。

    Raises:
        RconConnectionError: 连接失败。
        AuthError: 密码错误。
        ProtocolError: 数据帧损坏或响应不完整。
        OperationTimeoutError: 超出整体截止时间。
    """

    async def _run() -> str:
        async with RconSession(
            config.host,
            config.port,
            connect_timeout=config.connect_timeout,
            response_timeout=config.response_timeout,
            encoding=config.encoding,
            transport_factory=transport_factory,
        ) as session:
            await session.authenticate(config.password)
            return await session.execute(config.command)

    return await with_deadline(_run(), config.operation_timeout, "RCON 操作")


def read_manual_input(source: Path | str | None = None) -> str:
    """读取手工保存的 cvarlist 输出。

    Args:
        source: 文件路径；None 或 "-" 表示从标准输入读取。

    Raises:
        InputError: 文件不存在或无法读取。
    """
    if source is None or source == "-":
        try:
            # 与文件输入一致: 非法字节替换而不是报错
            return sys.stdin.buffer.read().decode("utf-8", errors="replace")
        except OSError as e:
            raise InputError(f"从标准输入读取失败: {e}") from e

    path = Path(source)
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise InputError(f"无法读取输入文件 {path}: {e}") from e


def report_summary(summary: ParseSummary) -> None:
    """把解析统计中的异常情况以警告形式告知用户。"""
    if summary.skipped:
        logger.warning(f"跳过了 {summary.skipped} 行无法解析的内容")

    if summary.duplicates:
        logger.warning(f"{summary.duplicates} 个重复的 cvar 名称已按首次出现保留")

    if summary.count_mismatch:
        expected = summary.expected_count
        relation = "少于" if summary.parsed < expected else "多于"
        logger.warning(
            f'解析出的 cvar ({summary.parsed}) {relation} "cvarlist" 报告的数量 ({expected})'
        )


def export_text(text: str, output: Path | str | TextIO | None = None) -> ParseSummary:
    """解析文本并导出为 CSV。

    Raises:
        ExportError: 输出无法写入。
    """
    listing = parse_cvarlist(text)
    summary = listing.summary
    report_summary(summary)
    write_cvar_csv(listing, output)
    return summary


async def dump_rcon(
    config: RconConfig,
    output: Path | str | TextIO | None = None,
    transport_factory: TransportFactory = TcpTransport.open,
) -> ParseSummary:
    """rcon 模式：从在线服务器导出 cvar。"""
    logger.info(f"正在从 {config.address} 获取 '{config.command}' 输出...")
    text = await fetch_cvarlist(config, transport_factory)
    return export_text(text, output)


def dump_manual(
    source: Path | str | None = None,
    output: Path | str | TextIO | None = None,
) -> ParseSummary:
    """manual 模式：从保存的 cvarlist 文本导出 cvar。"""
    text = read_manual_input(source)
    return export_text(text, output)

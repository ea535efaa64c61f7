# src/cvardump/export.py
"""
CSV 导出器 (Export Writer)

将 CvarRecord 序列按解析顺序写入 CSV，遵循 RFC 4180 的引号与转义规则。
"""

import csv
import logging
import sys
from collections.abc import Iterable
from pathlib import Path
from typing import TextIO

from .exceptions import ExportError
from .parser import CvarRecord

logger = logging.getLogger(__name__)

HEADER = ("name", "value", "flags", "description")
FLAG_SEPARATOR = ","


def to_row(record: CvarRecord) -> tuple[str, str, str, str]:
    """CvarRecord -> CSV 行 (一一对应)。"""
    return (
        record.name,
        record.value,
        FLAG_SEPARATOR.join(record.flags),
        record.description,
    )


def write_rows(records: Iterable[CvarRecord], stream: TextIO) -> int:
    """向已打开的文本流写入表头和所有记录。

    Returns:
        int: 写入的数据行数 (不含表头)。
    """
    writer = csv.writer(stream)
    writer.writerow(HEADER)

    count = 0
    for record in records:
        writer.writerow(to_row(record))
        count += 1
    return count


def write_cvar_csv(
    records: Iterable[CvarRecord], destination: Path | str | TextIO | None = None
) -> int:
    """将记录导出为 CSV。

    Args:
        records: 按解析顺序排列的记录。
        destination: 输出文件路径；None 或 "-" 表示写入标准输出；
            也可以直接传入已打开的文本流。

    Returns:
        int: 写入的数据行数。

    Raises:
        ExportError: 目标无法创建或写入。
    """
    if destination is None or destination == "-":
        destination = sys.stdout

    if not isinstance(destination, (str, Path)):
        try:
            count = write_rows(records, destination)
            destination.flush()
        except OSError as e:
            raise ExportError(f"写入 CSV 失败: {e}") from e
        logger.debug(f"已写入 {count} 行到输出流")
        return count

    path = Path(destination)
    try:
        # newline="" 交由 csv 模块处理行尾
        with open(path, "w", encoding="utf-8", newline="") as f:
            count = write_rows(records, f)
    except OSError as e:
        raise ExportError(f"无法写入输出文件 {path}: {e}") from e

    logger.info(f"已导出 {count} 条 cvar 到 {path}")
    return count

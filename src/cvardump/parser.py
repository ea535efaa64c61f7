# File: src/cvardump/parser.py
"""
cvarlist 文本解析器 (Cvar Record Parser)

将引擎 ``cvarlist`` 命令的输出转换为结构化的 CvarRecord 序列。
无论文本来自 RCON 还是手工保存的文件，解析路径完全相同。

一行典型的输出::

    sv_cheats                                : 0        : , "sv", "nf", "rep" : Allow cheats on server
"""

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)

# name : value : flags :[ description]
# 引擎格式: flags 列为空或只含 `, "xx"` 标记，value 中的 ": " 不会让列错位
ENGINE_CVAR_LINE = re.compile(
    r'^(.*?)\s*: (.*?)\s*: ((?:\s*,\s*"[^"]*")*)\s*:(?: (.*)|)$'
)
# 宽松格式: 手工整理的文本，flags 可能不带引号
CVAR_LINE = re.compile(r"^(.*?)\s*: (.*?)\s*: (.*?)\s*:(?: (.*)|)$")
# 引擎追加的统计行
COUNT_LINE = re.compile(r"^(\d+) total convars/concommands$")
# flags 列中带引号的单个标记
QUOTED_FLAG = re.compile(r'"(.*?)"')

# 横幅、分隔线与命令回显
NOISE_LINES = (
    re.compile(r"^cvar list$"),
    re.compile(r"^-+$"),
    re.compile(r"^\]?\s*cvarlist\b.*$"),
)


@dataclass(frozen=True)
class CvarRecord:
    """一条导出的 cvar 记录。

    Attributes:
        name: cvar 名称，在一次导出中唯一。
        value: 当前值 (字符串形式)。
        flags: 服务器输出的标记，保持原始顺序。
        description: 帮助文本，可能为空。
    """

    name: str
    value: str
    flags: tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class ParseSummary:
    """一次完整扫描的统计信息。

    Attributes:
        parsed: 成功解析的 cvar 行数 (含重复项)。
        skipped: 无法识别而被跳过的行数。
        duplicates: 因名称重复而被丢弃的行数 (先出现者优先)。
        expected_count: 引擎统计行报告的数量，未找到时为 None。
    """

    parsed: int = 0
    skipped: int = 0
    duplicates: int = 0
    expected_count: int | None = None

    @property
    def exported(self) -> int:
        return self.parsed - self.duplicates

    @property
    def count_mismatch(self) -> bool:
        """统计行存在且与解析数量不一致。"""
        return self.expected_count is not None and self.expected_count != self.parsed


class LineKind(Enum):
    BLANK = auto()
    NOISE = auto()
    COUNT = auto()
    CVAR = auto()
    DUPLICATE = auto()
    SKIPPED = auto()


def parse_flags(column: str) -> tuple[str, ...]:
    """解析 flags 列。

    支持引擎的 ``, "sv", "cheat"`` 形式，也支持 ``sv, cheat`` 这种无引号形式。
    """
    tokens = QUOTED_FLAG.findall(column)
    if not tokens:
        tokens = [t.strip().strip('"') for t in column.split(",")]
    # 去空、去重，保持顺序
    return tuple(dict.fromkeys(t.strip() for t in tokens if t.strip()))


def parse_description(raw: str | None) -> str:
    text = (raw or "").strip()
    if len(text) >= 2 and text.startswith('"') and text.endswith('"'):
        text = text[1:-1]
    return text


def parse_line(line: str) -> CvarRecord | None:
    """解析单行，不匹配时返回 None。"""
    m = ENGINE_CVAR_LINE.match(line) or CVAR_LINE.match(line)
    if not m:
        return None

    name = m.group(1).strip()
    if not name:
        return None

    return CvarRecord(
        name=name,
        value=m.group(2).strip(),
        flags=parse_flags(m.group(3)),
        description=parse_description(m.group(4)),
    )


def classify_lines(text: str) -> Iterator[tuple[LineKind, str, CvarRecord | None]]:
    """逐行分类，惰性产出 (类型, 原始行, 记录)。

    名称重复的行被标记为 DUPLICATE，只有首次出现的记录标记为 CVAR。
    横幅/回显只在整行不是 cvar 时才识别，``cvarlist`` 命令自身也会出现在列表中。
    """
    seen: set[str] = set()

    for raw in text.splitlines():
        line = raw.rstrip()

        if not line.strip():
            yield LineKind.BLANK, raw, None
            continue

        record = parse_line(line)
        if record is None:
            stripped = line.strip()
            if COUNT_LINE.match(stripped):
                yield LineKind.COUNT, raw, None
            elif any(p.match(stripped) for p in NOISE_LINES):
                yield LineKind.NOISE, raw, None
            else:
                yield LineKind.SKIPPED, raw, None
        elif record.name in seen:
            yield LineKind.DUPLICATE, raw, record
        else:
            seen.add(record.name)
            yield LineKind.CVAR, raw, record


class CvarListing:
    """cvarlist 文本的惰性、可重复迭代视图。

    每次迭代都会重新扫描文本，因此对同一份文本多次迭代得到相同的有序序列。
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self._summary: ParseSummary | None = None

    def __iter__(self) -> Iterator[CvarRecord]:
        for kind, _, record in classify_lines(self.text):
            if kind is LineKind.CVAR and record is not None:
                yield record

    @property
    def summary(self) -> ParseSummary:
        """完整扫描一遍并返回统计信息 (结果会被缓存)。"""
        if self._summary is None:
            self._summary = self._scan()
        return self._summary

    def _scan(self) -> ParseSummary:
        parsed = skipped = duplicates = 0
        expected: int | None = None

        for kind, raw, record in classify_lines(self.text):
            if kind is LineKind.CVAR:
                parsed += 1
            elif kind is LineKind.DUPLICATE:
                parsed += 1
                duplicates += 1
                if record is not None:
                    logger.warning(f"cvar 名称重复，保留首次出现的记录: {record.name}")
            elif kind is LineKind.SKIPPED:
                skipped += 1
                logger.debug(f"无法解析的行: {raw!r}")
            elif kind is LineKind.COUNT:
                count = int(raw.strip().split()[0])
                if expected is None:
                    expected = count
                else:
                    logger.warning(f"重复的统计行已忽略: {raw.strip()!r}")

        return ParseSummary(
            parsed=parsed,
            skipped=skipped,
            duplicates=duplicates,
            expected_count=expected,
        )


def parse_cvarlist(text: str) -> CvarListing:
    """解析 cvarlist 文本。

    Args:
        text: 完整的 cvarlist 输出 (来自 RCON 或文件)。

    Returns:
        CvarListing: 可重复迭代的记录序列，附带 summary 统计。
    """
    return CvarListing(text)

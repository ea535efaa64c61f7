# File: src/cvardump/protocol/packets.py
"""
Source RCON 数据包编解码器 (Packet Codec)

负责 Python 数据结构与线上二进制帧之间的转换。
本模块是无状态的 (Stateless)，不持有任何连接或会话信息；
read_packet 只依赖一个提供 ``readexactly`` 的流对象。
"""

import asyncio
import logging
import struct
from dataclasses import dataclass
from typing import Protocol

from ..exceptions import (
    ConnectionClosedError,
    ConsistencyError,
    EncodingError,
    FramingError,
)
from . import constants

logger = logging.getLogger(__name__)


class ByteStream(Protocol):
    """read_packet 所需的最小流接口 (如 asyncio.StreamReader)。"""

    async def readexactly(self, n: int) -> bytes: ...


@dataclass(frozen=True)
class Packet:
    """单个 RCON 线上帧。

    Attributes:
        request_id: 客户端选择的关联 ID，服务器原样回显 (认证失败时为 -1)。
        packet_type: 包类型码，见 constants.PacketType。
        body: 原始 Body 字节，不含两个终止符。
    """

    request_id: int
    packet_type: int
    body: bytes = b""

    @property
    def size(self) -> int:
        """帧头中声明的长度 (不含 size 字段自身)。"""
        return constants.HEADER_FIELDS.size + len(self.body) + len(constants.TRAILER)

    def encode(self) -> bytes:
        return encode_packet(self.request_id, self.packet_type, self.body)


# =========================================================================
# Encode
# =========================================================================


def encode_packet(request_id: int, packet_type: int, body: bytes = b"") -> bytes:
    """构建一个完整的 RCON 帧。

    结构: Size(4B LE) + RequestID(4B LE) + Type(4B LE) + Body + 0x00 + 0x00

    Args:
        request_id: 关联 ID。
        packet_type: 包类型码。
        body: Body 字节，不允许包含 NUL。

    Returns:
        bytes: 可直接写入连接的帧。

    Raises:
        EncodingError: Body 含有 NUL，或 ID/Type 超出 32 位有符号整数范围。
    """
    if constants.TERMINATOR in body:
        raise EncodingError("Body 中包含 NUL 字节，会破坏帧结构")

    size = constants.HEADER_FIELDS.size + len(body) + len(constants.TRAILER)
    try:
        header = constants.SIZE_FIELD.pack(size) + constants.HEADER_FIELDS.pack(
            request_id, packet_type
        )
    except struct.error as e:
        raise EncodingError(f"包头字段超出范围: {e}") from e

    return header + body + constants.TRAILER


# =========================================================================
# Decode
# =========================================================================


def decode_size(raw: bytes) -> int:
    """解析 4 字节的 size 字段并校验范围。

    Raises:
        ConsistencyError: size 小于最小帧长度。
        FramingError: size 超出上限。
    """
    (size,) = constants.SIZE_FIELD.unpack(raw)
    if size < constants.MIN_PACKET_SIZE:
        raise ConsistencyError(
            f"声明长度 {size} 小于最小帧长度 {constants.MIN_PACKET_SIZE}"
        )
    if size > constants.MAX_PACKET_SIZE:
        raise FramingError(f"声明长度 {size} 超出上限 {constants.MAX_PACKET_SIZE}")
    return size


def decode_packet(frame: bytes) -> Packet:
    """解析 size 字段之后的帧内容。

    Args:
        frame: 恰好 size 个字节 (ID + Type + Body + 终止符)。

    Returns:
        Packet: 解析后的数据包。

    Raises:
        ConsistencyError: 长度不足或尾部终止符缺失。
    """
    if len(frame) < constants.MIN_PACKET_SIZE:
        raise ConsistencyError(f"帧长度不足: {len(frame)} 字节")
    if frame[-len(constants.TRAILER) :] != constants.TRAILER:
        raise ConsistencyError(f"帧尾部缺少终止符: {frame[-2:].hex()}")

    request_id, packet_type = constants.HEADER_FIELDS.unpack_from(frame, 0)
    body = frame[constants.HEADER_FIELDS.size : -len(constants.TRAILER)]
    return Packet(request_id, packet_type, body)


async def read_packet(stream: ByteStream) -> Packet:
    """从流中读取并解析一个完整的帧。

    先读取 4 字节 size (阻塞点)，再读取恰好 size 个字节。

    Args:
        stream: 提供 ``readexactly`` 的异步字节流。

    Returns:
        Packet: 解析后的数据包。

    Raises:
        ConnectionClosedError: 在包边界处连接已关闭。
        FramingError: 在帧中途连接关闭，或 size 超限。
        ConsistencyError: 帧内容不一致。
    """
    try:
        raw_size = await stream.readexactly(constants.SIZE_FIELD.size)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            raise ConnectionClosedError("连接已被服务器关闭") from None
        raise FramingError(
            f"读取包头时连接关闭 ({len(e.partial)}/{constants.SIZE_FIELD.size} 字节)"
        ) from None

    size = decode_size(raw_size)

    try:
        frame = await stream.readexactly(size)
    except asyncio.IncompleteReadError as e:
        raise FramingError(
            f"读取包体时连接关闭 ({len(e.partial)}/{size} 字节)"
        ) from None

    packet = decode_packet(frame)
    logger.debug(
        "recv: id=%d type=%d size=%d", packet.request_id, packet.packet_type, size
    )
    return packet

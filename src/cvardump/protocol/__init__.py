# src/cvardump/protocol/__init__.py
"""
Source RCON 协议层 (Protocol Layer)

本包负责 RCON 数据帧的纯粹构建 (Encode) 与解析 (Decode)。

- 不包含任何 socket 操作或连接管理。
- 不包含任何会话状态 (State)。
- 不依赖于 session 或 network 层。
"""

from . import constants
from .constants import PacketType
from .packets import Packet, decode_packet, encode_packet, read_packet

# 公共 API
__all__ = [
    "constants",
    "PacketType",
    "Packet",
    "encode_packet",
    "decode_packet",
    "read_packet",
]

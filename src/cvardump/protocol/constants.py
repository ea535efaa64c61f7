# src/cvardump/protocol/constants.py
"""
Source RCON 协议常量表 (Constants)

仅定义协议的结构性常量（包类型码、帧长度边界、哨兵值）。
类型码必须与引擎保持一致，EXECCOMMAND 与 AUTH_RESPONSE 共用 2 是引擎的真实约定。
"""

import struct


# =========================================================================
# 包类型 (Packet Types)
# =========================================================================
class PacketType:
    """数据包头部的 Type 字段定义"""

    RESPONSE_VALUE = 0  # 命令输出 (Server -> Client)，也用作边界探针
    EXECCOMMAND = 2  # 执行命令 (Client -> Server)
    AUTH_RESPONSE = 2  # 认证结果 (Server -> Client)
    AUTH = 3  # 认证请求 (Client -> Server)


# =========================================================================
# 帧结构 (Frame Structure)
# =========================================================================
# <size:i32><request_id:i32><type:i32><body...>\x00\x00
SIZE_FIELD = struct.Struct("<i")
HEADER_FIELDS = struct.Struct("<ii")

TERMINATOR = b"\x00"
# Body 字符串的终止符 + 空的第二字符串的终止符
TRAILER = TERMINATOR * 2

# size 不包含自身: ID(4) + Type(4) + 两个终止符(2)
MIN_PACKET_SIZE = HEADER_FIELDS.size + len(TRAILER)
# 引擎单包上限为 4096，此处放宽以兼容非标准实现
MAX_PACKET_SIZE = 65536

# =========================================================================
# 会话约定 (Session Conventions)
# =========================================================================
# 认证失败时服务器回显的 Request ID
AUTH_FAILED_ID = -1

# Request ID 从 1 开始递增，永远不会与哨兵值冲突
FIRST_REQUEST_ID = 1

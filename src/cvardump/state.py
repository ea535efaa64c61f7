# File: src/cvardump/state.py
"""
cvardump - 状态模块

负责定义和存储 RCON 会话的易变状态。
本模块不包含业务逻辑，仅作为数据容器供 Session 读写。
"""

from dataclasses import dataclass
from enum import Enum, auto

from .protocol.constants import FIRST_REQUEST_ID


class SessionStatus(Enum):
    """RCON 会话的生命周期状态枚举。

    状态流转示意:
    DISCONNECTED -> CONNECTING -> CONNECTED -> AUTHENTICATING -> READY <-> EXECUTING
         |              |             |               |             |          |
         v              v             v               v             v          v
       CLOSED         CLOSED        CLOSED          CLOSED        CLOSED     CLOSED
    """

    DISCONNECTED = auto()
    """初始状态，会话已实例化但尚未建立连接。"""

    CONNECTING = auto()
    """正在建立 TCP 连接。"""

    CONNECTED = auto()
    """TCP 已连接，尚未认证。"""

    AUTHENTICATING = auto()
    """已发送 AUTH 包，正在等待 AUTH_RESPONSE。"""

    READY = auto()
    """认证成功，可以执行命令。"""

    EXECUTING = auto()
    """命令已发送，正在重组多包响应。"""

    CLOSED = auto()
    """终态。连接已释放，会话不可再用。"""


@dataclass
class SessionState:
    """存储 RCON 会话的易变状态数据。

    该对象是非持久化的，每个会话独占一份，不在会话间复用。

    Attributes:
        status: 当前会话状态。
        authenticated: 是否已收到匹配 ID 的 AUTH_RESPONSE。
        next_request_id: 下一个可分配的 Request ID，单调递增。
        last_error: 最近一次错误的描述，用于日志和 CLI 输出。
    """

    status: SessionStatus = SessionStatus.DISCONNECTED
    authenticated: bool = False
    next_request_id: int = FIRST_REQUEST_ID
    last_error: str = ""

    @property
    def is_ready(self) -> bool:
        return self.status == SessionStatus.READY

    def allocate_request_id(self) -> int:
        """分配一个新的 Request ID。"""
        request_id = self.next_request_id
        self.next_request_id += 1
        return request_id

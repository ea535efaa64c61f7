# src/cvardump/network.py
"""
cvardump - 网络模块 (Network) [Asyncio Edition]

封装 TCP 连接的建立、发送、接收与关闭。
该模块屏蔽了底层 Stream 的复杂性，向会话层提供纯粹的 bytes 收发接口。
"""

import abc
import asyncio
import logging
from typing import Optional

from .exceptions import OperationTimeoutError, RconConnectionError

logger = logging.getLogger(__name__)


class BaseTransport(abc.ABC):
    """传输层抽象基类。

    会话层只依赖这三个操作，因此测试可以用脚本化的内存传输替换真实 socket。
    """

    @abc.abstractmethod
    async def send(self, data: bytes) -> None:
        """[Abstract] 发送字节。

        Raises:
            RconConnectionError: 连接已断开或写入失败。
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def readexactly(self, n: int) -> bytes:
        """[Abstract] 读取恰好 n 个字节。

        Raises:
            asyncio.IncompleteReadError: 读满之前连接已关闭。
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """[Abstract] 关闭连接。重复调用是安全的。"""
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def is_closed(self) -> bool:
        raise NotImplementedError


class TcpTransport(BaseTransport):
    """基于 asyncio Stream 的 TCP 传输。"""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self.reader = reader
        self.writer: Optional[asyncio.StreamWriter] = writer

    @classmethod
    async def open(cls, host: str, port: int, timeout: float) -> "TcpTransport":
        """建立 TCP 连接。

        Args:
            host: 服务器地址。
            port: 服务器端口。
            timeout: 连接超时秒数。

        Returns:
            TcpTransport: 已连接的传输对象。

        Raises:
            RconConnectionError: 主机不可达、被拒绝或超时，原始异常保留在 __cause__。
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise RconConnectionError(
                f"连接 {host}:{port} 超时 ({timeout}s)"
            ) from e
        except OSError as e:
            raise RconConnectionError(f"无法连接 {host}:{port}: {e}") from e

        logger.debug(f"TCP 连接已建立: {host}:{port}")
        return cls(reader, writer)

    async def send(self, data: bytes) -> None:
        if self.writer is None or self.writer.is_closing():
            raise RconConnectionError("Transport 已关闭")

        try:
            self.writer.write(data)
            await self.writer.drain()
        except OSError as e:
            raise RconConnectionError(f"发送失败: {e}") from e

    async def readexactly(self, n: int) -> bytes:
        try:
            return await self.reader.readexactly(n)
        except (ConnectionResetError, BrokenPipeError) as e:
            raise RconConnectionError(f"接收错误: {e}") from e

    async def close(self) -> None:
        """关闭 Transport"""
        if self.writer is None:
            return

        writer, self.writer = self.writer, None
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            # 对端已经重置连接，本地资源仍然会被释放
            logger.debug(f"关闭连接时出错: {e}")
        logger.debug("TCP Transport 已关闭")

    @property
    def is_closed(self) -> bool:
        return self.writer is None


async def with_deadline(awaitable, timeout: float, what: str):
    """为一个 awaitable 施加截止时间。

    Raises:
        OperationTimeoutError: 超出截止时间。
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except OperationTimeoutError:
        # 内层已给出更具体的超时描述
        raise
    except asyncio.TimeoutError:
        raise OperationTimeoutError(f"{what}超时 ({timeout}s)") from None

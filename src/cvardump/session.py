# File: src/cvardump/session.py
"""
RCON 会话 (Session)

职责：
1. 资源管理：独占一个 Transport，在所有退出路径上保证关闭。
2. 认证：处理引擎 "先回空 RESPONSE_VALUE，再回 AUTH_RESPONSE" 的怪癖。
3. 命令执行：用探针回显界定多包响应的边界并重组响应文本。
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace

from .exceptions import (
    AuthError,
    ConnectionClosedError,
    CvarDumpError,
    ExecError,
    IncompleteResponseError,
    OperationTimeoutError,
    ProtocolError,
    RconConnectionError,
)
from .network import BaseTransport, TcpTransport
from .protocol import PacketType, constants, encode_packet, read_packet
from .protocol.packets import Packet
from .state import SessionState, SessionStatus

logger = logging.getLogger(__name__)

# --- 超时设置 (Fail Fast) ---
TIMEOUT_CONNECT = 5.0
TIMEOUT_AUTH = 5.0
TIMEOUT_RESPONSE = 10.0

# 定义传输工厂类型别名: (host, port, timeout) -> Transport
TransportFactory = Callable[[str, int, float], Awaitable[BaseTransport]]


class RconSession:
    """Source RCON 会话 (Async)。

    典型用法::

        async with RconSession(host, port) as session:
            await session.authenticate(password)
            text = await session.execute("cvarlist")
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        connect_timeout: float = TIMEOUT_CONNECT,
        auth_timeout: float = TIMEOUT_AUTH,
        response_timeout: float = TIMEOUT_RESPONSE,
        encoding: str = "utf-8",
        transport_factory: TransportFactory = TcpTransport.open,
    ) -> None:
        """初始化会话，不会立即建立连接。

        Args:
            host: 服务器地址。
            port: 服务器端口。
            connect_timeout: TCP 连接超时。
            auth_timeout: 等待 AUTH_RESPONSE 的超时。
            response_timeout: 单条命令响应重组的超时。
            encoding: 命令与响应文本的编码。
            transport_factory: 传输工厂，测试时可替换为内存传输。
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.auth_timeout = auth_timeout
        self.response_timeout = response_timeout
        self.encoding = encoding

        self._transport_factory = transport_factory
        self._transport: BaseTransport | None = None
        self._state = SessionState()

    @property
    def state(self) -> SessionState:
        """获取当前会话状态的只读副本。"""
        return replace(self._state)

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    # =========================================================================
    # 生命周期
    # =========================================================================

    async def connect(self) -> "RconSession":
        """建立 TCP 连接。

        Returns:
            RconSession: 自身，便于链式调用。

        Raises:
            RconConnectionError: 主机不可达、被拒绝或超时。
            ExecError: 会话不处于 DISCONNECTED 状态。
        """
        if self._state.status != SessionStatus.DISCONNECTED:
            raise ExecError(f"会话无法重复连接 (当前状态: {self._state.status.name})")

        self._set_status(SessionStatus.CONNECTING, f"正在连接 {self.host}:{self.port}")
        try:
            self._transport = await self._transport_factory(
                self.host, self.port, self.connect_timeout
            )
        except BaseException as e:
            self._state.last_error = str(e)
            self._set_status(SessionStatus.CLOSED, f"连接失败: {e}")
            raise

        self._set_status(SessionStatus.CONNECTED, "连接已建立")
        return self

    async def close(self) -> None:
        """关闭会话并释放连接。重复调用是安全的。"""
        if self._state.status == SessionStatus.CLOSED and self._transport is None:
            return

        transport, self._transport = self._transport, None
        self._state.authenticated = False
        if transport is not None:
            await transport.close()
        self._set_status(SessionStatus.CLOSED, "会话已关闭")

    async def __aenter__(self) -> "RconSession":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # =========================================================================
    # 认证
    # =========================================================================

    async def authenticate(self, password: str) -> None:
        """发送 AUTH 包并等待认证结果。

        服务器会先回一个空的 RESPONSE_VALUE，再回 AUTH_RESPONSE；
        前者被丢弃，后者的 Request ID 决定成败。

        Args:
            password: RCON 密码。

        Raises:
            AuthError: 服务器返回哨兵 ID，会话随即关闭 (终态，不重试)。
            ExecError: 会话不处于 CONNECTED 状态。
            OperationTimeoutError: 等待认证结果超时。
            ProtocolError: 收到 ID 不匹配的 AUTH_RESPONSE。
            RconConnectionError: 连接中断。
        """
        if self._state.status != SessionStatus.CONNECTED:
            raise ExecError(f"无法认证: 会话状态为 {self._state.status.name}")

        self._set_status(SessionStatus.AUTHENTICATING, "正在认证...")
        auth_id = self._state.allocate_request_id()

        try:
            await self._send(auth_id, PacketType.AUTH, password)
            response = await self._await_auth_response()
        except BaseException as e:
            await self._abort(e)
            raise

        if response.request_id == constants.AUTH_FAILED_ID:
            error = AuthError("RCON 认证失败 (密码错误)")
            await self._abort(error)
            raise error

        if response.request_id != auth_id:
            error = ProtocolError(
                f"AUTH_RESPONSE 的 ID 不匹配: 期望 {auth_id}，实际 {response.request_id}"
            )
            await self._abort(error)
            raise error

        self._state.authenticated = True
        self._set_status(SessionStatus.READY, "认证成功")

    async def _await_auth_response(self) -> Packet:
        """读取数据包直到出现 AUTH_RESPONSE。"""

        async def _loop() -> Packet:
            while True:
                packet = await read_packet(self._require_transport())
                if packet.packet_type == PacketType.AUTH_RESPONSE:
                    return packet
                # 引擎在 AUTH_RESPONSE 之前先回一个空的 RESPONSE_VALUE
                logger.debug(
                    f"认证阶段丢弃数据包: id={packet.request_id} type={packet.packet_type}"
                )

        try:
            return await asyncio.wait_for(_loop(), timeout=self.auth_timeout)
        except asyncio.TimeoutError:
            raise OperationTimeoutError(
                f"等待认证响应超时 ({self.auth_timeout}s)"
            ) from None

    # =========================================================================
    # 命令执行
    # =========================================================================

    async def execute(self, command: str) -> str:
        """执行一条命令并返回完整的响应文本。

        发送 EXECCOMMAND 后紧跟一个空的 RESPONSE_VALUE 探针。服务器按顺序处理，
        探针的回显必然出现在命令输出的所有分包之后，因此可作为响应边界。

        Args:
            command: 控制台命令 (如 "cvarlist")。

        Returns:
            str: 所有分包 Body 按到达顺序拼接后解码的文本。

        Raises:
            ExecError: 会话不处于 READY 状态，或命令无法编码。
            EncodingError: 命令中包含 NUL 字节。
            IncompleteResponseError: 探针回显到达前连接关闭或超时，会话随即关闭。
            FramingError: 数据帧损坏。
            RconConnectionError: 连接中断。
        """
        if not self._state.is_ready:
            raise ExecError(f"无法执行命令: 会话状态为 {self._state.status.name}")

        command_id = self._state.allocate_request_id()
        probe_id = self._state.allocate_request_id()
        # 编码失败时尚未发送任何数据，会话保持 READY
        payload = encode_packet(
            command_id, PacketType.EXECCOMMAND, self._encode_body(command)
        ) + encode_packet(probe_id, PacketType.RESPONSE_VALUE)

        self._set_status(SessionStatus.EXECUTING, f"执行命令: {command}")
        try:
            await self._require_transport().send(payload)
            raw = await self._collect_response(command_id, probe_id)
        except BaseException as e:
            # 响应流已处于未知位置，会话不可再用
            await self._abort(e)
            raise

        self._set_status(SessionStatus.READY, f"命令完成 ({len(raw)} 字节)")
        return raw.decode(self.encoding, errors="replace")

    async def _collect_response(self, command_id: int, probe_id: int) -> bytes:
        """按到达顺序收集命令输出，直到收到探针回显。

        Returns:
            bytes: 拼接后的原始响应 Body。

        Raises:
            IncompleteResponseError: 探针回显未到达。
        """
        chunks: list[bytes] = []

        async def _loop() -> None:
            while True:
                packet = await read_packet(self._require_transport())

                if packet.request_id == probe_id:
                    # 边界标记本身不属于响应
                    return

                if (
                    packet.request_id == command_id
                    and packet.packet_type == PacketType.RESPONSE_VALUE
                ):
                    chunks.append(packet.body)
                    continue

                # 上一条命令遗留的探针尾包等
                logger.debug(
                    f"丢弃无关数据包: id={packet.request_id} type={packet.packet_type}"
                )

        try:
            await asyncio.wait_for(_loop(), timeout=self.response_timeout)
        except ConnectionClosedError as e:
            raise IncompleteResponseError(
                f"收到探针回显之前连接已关闭 (已丢弃 {len(chunks)} 个分包)"
            ) from e
        except asyncio.TimeoutError:
            raise IncompleteResponseError(
                f"等待响应结束超时 ({self.response_timeout}s，已丢弃 {len(chunks)} 个分包)"
            ) from None

        logger.debug(f"响应重组完成: {len(chunks)} 个分包")
        return b"".join(chunks)

    # =========================================================================
    # 内部实现
    # =========================================================================

    def _require_transport(self) -> BaseTransport:
        if self._transport is None:
            raise ExecError("会话未连接")
        if self._transport.is_closed:
            raise RconConnectionError("连接已被关闭")
        return self._transport

    def _encode_body(self, text: str) -> bytes:
        try:
            return text.encode(self.encoding)
        except UnicodeEncodeError as e:
            raise ExecError(f"命令包含无法以 {self.encoding} 编码的字符: {e}") from e

    async def _send(self, request_id: int, packet_type: int, text: str) -> None:
        body = self._encode_body(text)
        packet = encode_packet(request_id, packet_type, body)
        logger.debug(f"send: id={request_id} type={packet_type} size={len(packet) - 4}")
        await self._require_transport().send(packet)

    async def _abort(self, error: BaseException) -> None:
        """记录错误并关闭会话。"""
        if isinstance(error, CvarDumpError):
            self._state.last_error = str(error)
        await self.close()

    def _set_status(self, status: SessionStatus, msg: str) -> None:
        self._state.status = status
        logger.info(f"[{status.name}] {msg}")

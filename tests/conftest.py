# tests/conftest.py
import asyncio
import struct
import sys
from pathlib import Path

import pytest

# 确保 src 目录在 sys.path 中
src_path = Path(__file__).resolve().parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from cvardump.config import RconConfig
from cvardump.exceptions import RconConnectionError
from cvardump.network import BaseTransport
from cvardump.protocol import PacketType, decode_packet
from cvardump.protocol.constants import AUTH_FAILED_ID


def raw_frame(request_id: int, packet_type: int, body: bytes = b"") -> bytes:
    """不做任何校验地构造一个帧 (允许 Body 中出现 NUL)。"""
    payload = struct.pack("<ii", request_id, packet_type) + body + b"\x00\x00"
    return struct.pack("<i", len(payload)) + payload


class ScriptedTransport(BaseTransport):
    """
    脚本化的内存传输。

    每次 send 都会把客户端写入的帧解码后交给 responder，
    responder 返回的字节会被追加到接收缓冲区。
    缓冲区读空时：hang=False 视为服务器关闭连接，hang=True 则一直阻塞。
    """

    def __init__(self, responder=None, initial: bytes = b"", hang: bool = False):
        self.responder = responder
        self.buffer = bytearray(initial)
        self.hang = hang
        self.sent = []
        self.closed = False
        self.close_calls = 0

    async def send(self, data: bytes) -> None:
        if self.closed:
            raise RconConnectionError("Transport 已关闭")

        view = bytes(data)
        while view:
            (size,) = struct.unpack("<i", view[:4])
            packet = decode_packet(view[4 : 4 + size])
            view = view[4 + size :]
            self.sent.append(packet)
            if self.responder is not None:
                for chunk in self.responder(packet):
                    self.buffer.extend(chunk)

    async def readexactly(self, n: int) -> bytes:
        if len(self.buffer) < n:
            if self.hang:
                await asyncio.sleep(3600)
            partial = bytes(self.buffer)
            self.buffer.clear()
            raise asyncio.IncompleteReadError(partial, n)

        data = bytes(self.buffer[:n])
        del self.buffer[:n]
        return data

    async def close(self) -> None:
        self.closed = True
        self.close_calls += 1

    @property
    def is_closed(self) -> bool:
        return self.closed

    def factory(self):
        """返回一个可注入 RconSession 的传输工厂。"""

        async def _factory(host: str, port: int, timeout: float) -> "ScriptedTransport":
            return self

        return _factory


class FakeSourceServer:
    """
    模拟 Source 引擎的 RCON 行为:
    1. AUTH -> 空 RESPONSE_VALUE + AUTH_RESPONSE (失败时 ID 为 -1)。
    2. EXECCOMMAND -> 把 output 按 chunk_size 切成多个 RESPONSE_VALUE。
    3. 空 RESPONSE_VALUE 探针 -> 原样回显 + 一个 00 01 00 00 尾包。
    """

    def __init__(
        self,
        password: str = "secret",
        output: bytes = b"",
        chunk_size: int = 4096,
        auth_prelude: bool = True,
        answer_probe: bool = True,
    ):
        self.password = password
        self.output = output
        self.chunk_size = chunk_size
        self.auth_prelude = auth_prelude
        self.answer_probe = answer_probe
        self.commands = []

    def __call__(self, packet):
        if packet.packet_type == PacketType.AUTH:
            replies = []
            if self.auth_prelude:
                replies.append(raw_frame(packet.request_id, PacketType.RESPONSE_VALUE))
            ok = packet.body == self.password.encode()
            replies.append(
                raw_frame(
                    packet.request_id if ok else AUTH_FAILED_ID,
                    PacketType.AUTH_RESPONSE,
                )
            )
            return replies

        if packet.packet_type == PacketType.EXECCOMMAND:
            self.commands.append(packet.body.decode())
            return [
                raw_frame(
                    packet.request_id,
                    PacketType.RESPONSE_VALUE,
                    self.output[i : i + self.chunk_size],
                )
                for i in range(0, len(self.output), self.chunk_size)
            ]

        if packet.packet_type == PacketType.RESPONSE_VALUE and self.answer_probe:
            return [
                raw_frame(packet.request_id, PacketType.RESPONSE_VALUE),
                raw_frame(packet.request_id, PacketType.RESPONSE_VALUE, b"\x00\x01\x00\x00"),
            ]

        return []


SAMPLE_CVARLIST = """\
cvar list
--------------
sv_cheats                                : 0        : , "sv", "nf", "rep"      : Allow cheats on server
sv_gravity                               : 800      : , "sv", "nf", "rep"      : World gravity.
status                                   : cmd      :                          : Display map and connection status.
mp_friendlyfire                          : 0        : , "sv", "nf", "rep"      : Allows team members to injure other members of their team
--------------
4 total convars/concommands
"""


@pytest.fixture
def sample_cvarlist() -> str:
    return SAMPLE_CVARLIST


@pytest.fixture
def rcon_config() -> RconConfig:
    """
    [Fixture] 返回一个使用极短超时的测试配置。
    """
    return RconConfig(
        host="127.0.0.1",
        port=27015,
        password="secret",
        connect_timeout=1.0,
        response_timeout=0.2,
        operation_timeout=1.0,
    )

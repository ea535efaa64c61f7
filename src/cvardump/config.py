"""
cvardump - 配置模块

负责配置的加载、解析与强类型转换。
支持从 TOML 文件、环境变量或字典中加载配置，命令行参数作为覆盖项最后生效。
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 27015
DEFAULT_COMMAND = "cvarlist"
ENV_PREFIX = "CVARDUMP_"

# 字段映射表 (Config Field -> Env Suffix)
ENV_MAP = {
    "address": "ADDRESS",
    "host": "HOST",
    "port": "PORT",
    "password": "PASSWORD",
    "connect_timeout": "CONNECT_TIMEOUT",
    "response_timeout": "RESPONSE_TIMEOUT",
    "operation_timeout": "OPERATION_TIMEOUT",
    "encoding": "ENCODING",
    "command": "COMMAND",
}


@dataclass(frozen=True)
class RconConfig:
    """rcon 模式的强类型配置对象。

    所有字段均为只读 (frozen=True)，确保配置在运行时不可变。

    Attributes:
        host: 服务器地址 (主机名、IPv4 或 IPv6)。
        port: RCON 端口 (通常为 27015)。
        password: RCON 密码。
        connect_timeout: TCP 连接超时秒数。
        response_timeout: 单条命令响应重组的超时秒数。
        operation_timeout: connect + auth + execute 的整体截止时间。
        encoding: 命令与响应文本的编码。
        command: 要执行的命令。
    """

    host: str
    port: int
    password: str
    connect_timeout: float = 5.0
    response_timeout: float = 10.0
    operation_timeout: float = 30.0
    encoding: str = "utf-8"
    command: str = DEFAULT_COMMAND

    @property
    def address(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    def __repr__(self) -> str:
        """
        覆盖默认的 repr，隐藏密码字段，防止日志泄露敏感信息。
        """
        return (
            f"<{self.__class__.__name__} "
            f"server={self.address}, "
            f"password='******', "
            f"timeouts=({self.connect_timeout}/{self.response_timeout}/{self.operation_timeout}), "
            f"command='{self.command}'>"
        )


def parse_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """拆分 ``host:port`` 形式的地址。

    支持 ``host``、``host:port`` 与 ``[v6]:port``，省略端口时使用默认端口。

    Raises:
        ConfigError: 地址为空或端口非法。
    """
    address = address.strip()
    if not address:
        raise ConfigError("服务器地址为空")

    host, port_str = address, ""
    if address.startswith("["):
        end = address.find("]")
        if end == -1:
            raise ConfigError(f"地址格式无效: {address}")
        host = address[1:end]
        rest = address[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ConfigError(f"地址格式无效: {address}")
            port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.split(":")

    if not host:
        raise ConfigError(f"地址缺少主机名: {address}")

    if not port_str:
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        raise ConfigError(f"端口格式无效: {port_str}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"端口超出范围: {port}")
    return host, port


def create_config_from_dict(raw_data: dict[str, Any]) -> RconConfig:
    """通用工厂：将字典转换为强类型配置对象。

    负责字段的清洗、默认值注入和类型转换。

    Args:
        raw_data: 原始配置字典 (来自 TOML、Env 或命令行)。

    Returns:
        RconConfig: 验证并转换后的配置对象。

    Raises:
        ConfigError: 当必要字段缺失或格式错误时抛出。
    """
    try:
        # --- 内部辅助函数 ---
        def _req(key: str) -> Any:
            """获取必要字段，缺失则报错"""
            if raw_data.get(key) is None:
                raise ConfigError(f"配置缺失: 缺少必要字段 '{key}'")
            return raw_data[key]

        def _timeout(key: str, default: float) -> float:
            val = raw_data.get(key)
            if val is None:
                return default
            try:
                seconds = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"超时格式无效 '{key}': {val}") from None
            if seconds <= 0:
                raise ConfigError(f"超时必须为正数 '{key}': {val}")
            return seconds

        # --- 地址: address 优先，其次 host/port ---
        if raw_data.get("address") is not None:
            host, port = parse_address(str(raw_data["address"]))
        else:
            host = str(_req("host"))
            try:
                port = int(raw_data.get("port") or DEFAULT_PORT)
            except ValueError:
                raise ConfigError(f"端口格式无效: {raw_data.get('port')}") from None
            if not 0 < port < 65536:
                raise ConfigError(f"端口超出范围: {port}")

        encoding = str(raw_data.get("encoding") or "utf-8")
        try:
            "".encode(encoding)
        except LookupError:
            raise ConfigError(f"未知的文本编码: {encoding}") from None

        # --- 构建对象 ---
        return RconConfig(
            host=host,
            port=port,
            password=str(_req("password")),
            connect_timeout=_timeout("connect_timeout", 5.0),
            response_timeout=_timeout("response_timeout", 10.0),
            operation_timeout=_timeout("operation_timeout", 30.0),
            encoding=encoding,
            command=str(raw_data.get("command") or DEFAULT_COMMAND),
        )

    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"配置生成失败: {e}") from e


def _merge(base: dict[str, Any], overrides: dict[str, Any] | None) -> dict[str, Any]:
    """将非 None 的覆盖项合并进基础配置。"""
    merged = dict(base)
    if overrides:
        merged.update({k: v for k, v in overrides.items() if v is not None})
    # 显式给出 host 时，旧的 address 不再生效
    if overrides and overrides.get("host") is not None and overrides.get("address") is None:
        merged.pop("address", None)
    return merged


def load_config_from_toml(
    file_path: Path,
    profile: str = "default",
    overrides: dict[str, Any] | None = None,
) -> RconConfig:
    """从 TOML 文件加载配置。

    支持多层级查找策略:
    1. [profile.xxx]: 优先查找指定的 profile 块。
    2. [rcon]: 单服务器配置块。
    3. Root: 兼容根目录直接配置。

    Args:
        file_path: TOML 文件路径。
        profile: 配置预设名。默认为 "default"。
        overrides: 命令行覆盖项，值为 None 的键会被忽略。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 文件读取失败或 Profile 不存在。
    """
    if not file_path.exists():
        raise ConfigError(f"配置文件未找到: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"读取 TOML 失败: {e}") from e

    raw_config: dict[str, Any] = {}

    if "profile" in data:
        if profile not in data["profile"]:
            raise ConfigError(f"未找到预设: [profile.{profile}]")
        raw_config = data["profile"][profile]
    elif "rcon" in data:
        if profile != "default":
            logger.warning(f"配置仅包含 [rcon] 节，忽略 profile='{profile}'。")
        raw_config = data["rcon"]
    else:
        raw_config = data

    return create_config_from_dict(_merge(raw_config, overrides))


def load_config_from_env(overrides: dict[str, Any] | None = None) -> RconConfig:
    """从环境变量加载配置。

    自动读取所有以 ``CVARDUMP_`` 开头的环境变量，并映射到配置字段。
    例如: ``CVARDUMP_PASSWORD`` -> ``password``。

    Args:
        overrides: 命令行覆盖项，值为 None 的键会被忽略。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 合并后仍缺少必要字段。
    """
    raw_data = {}
    for cfg_key, env_suffix in ENV_MAP.items():
        val = os.environ.get(f"{ENV_PREFIX}{env_suffix}")
        if val is not None:
            raw_data[cfg_key] = val

    if raw_data:
        logger.debug(f"从环境变量读取了 {len(raw_data)} 项配置")

    return create_config_from_dict(_merge(raw_data, overrides))

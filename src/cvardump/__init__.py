# src/cvardump/__init__.py
"""
cvardump v1.0.0
从 Source 引擎服务器 (RCON) 或保存的 cvarlist 输出中导出 cvar 到 CSV。
"""

__version__ = "1.0.0"

# 暴露配置
from .config import (
    RconConfig,
    create_config_from_dict,
    load_config_from_env,
    load_config_from_toml,
    parse_address,
)

# 暴露流程编排
from .dump import dump_manual, dump_rcon, fetch_cvarlist

# 暴露异常体系 (方便上层 try-except)
from .exceptions import (
    AuthError,
    ConfigError,
    ConsistencyError,
    CvarDumpError,
    EncodingError,
    ExecError,
    ExitCode,
    ExportError,
    FramingError,
    IncompleteResponseError,
    InputError,
    OperationTimeoutError,
    ProtocolError,
    RconConnectionError,
)
from .export import write_cvar_csv
from .parser import CvarListing, CvarRecord, ParseSummary, parse_cvarlist
from .session import RconSession
from .state import SessionState, SessionStatus

__all__ = [
    "__version__",
    "RconConfig",
    "RconSession",
    "SessionState",
    "SessionStatus",
    "CvarRecord",
    "CvarListing",
    "ParseSummary",
    "parse_cvarlist",
    "write_cvar_csv",
    "fetch_cvarlist",
    "dump_rcon",
    "dump_manual",
    "create_config_from_dict",
    "load_config_from_env",
    "load_config_from_toml",
    "parse_address",
    "ExitCode",
    "CvarDumpError",
    "ConfigError",
    "RconConnectionError",
    "AuthError",
    "ProtocolError",
    "EncodingError",
    "FramingError",
    "ConsistencyError",
    "IncompleteResponseError",
    "ExecError",
    "OperationTimeoutError",
    "InputError",
    "ExportError",
]

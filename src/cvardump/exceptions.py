# File: src/cvardump/exceptions.py
"""
cvardump - 异常体系 (Exceptions)

定义库内统一使用的异常类，以便上层应用（如 CLI）能进行精细的错误处理，
并映射到互不相同的进程退出码。
"""

from enum import IntEnum


class CvarDumpError(Exception):
    """cvardump 所有内部异常的基类。

    上层应用可以通过捕获此异常来处理所有由 cvardump 抛出的已知错误。
    """

    pass


class ConfigError(CvarDumpError):
    """配置加载或校验失败。

    触发场景:
    1. 缺少必要字段 (如 address/password)。
    2. 字段格式错误 (如端口号非法、超时不是数字)。
    3. 找不到配置文件或 Profile。
    """

    pass


class RconConnectionError(CvarDumpError, ConnectionError):
    """TCP 层面的错误 (I/O 级别)。

    触发场景:
    1. 主机不可达、连接被拒绝。
    2. 建立连接超时。
    3. 发送数据时连接已断开。

    底层异常通过 ``raise ... from`` 保留在 ``__cause__`` 中。
    """

    pass


class ConnectionClosedError(RconConnectionError):
    """对端在数据包边界处关闭了连接 (尚未读到任何包头字节)。"""

    pass


class AuthError(CvarDumpError):
    """认证被拒绝。

    服务器返回的 AUTH_RESPONSE 携带哨兵 ID (-1) 时抛出。
    这是终态错误：同一个密码不会被重试。
    """

    pass


class ProtocolError(CvarDumpError):
    """协议交互错误 (逻辑级别) 的基类。"""

    pass


class EncodingError(ProtocolError):
    """无法编码数据包。

    触发场景:
    1. Body 中包含 NUL 字节 (会破坏双字符串帧格式)。
    2. Request ID 超出 32 位有符号整数范围。
    """

    pass


class FramingError(ProtocolError):
    """帧结构错误。

    触发场景:
    1. 连接在读满声明的 size 字节之前关闭。
    2. 声明的 size 超出可接受的上限。
    """

    pass


class ConsistencyError(ProtocolError):
    """帧内容自相矛盾。

    触发场景:
    1. 帧尾部缺少两个 NUL 终止符。
    2. 声明的 size 小于 ID + Type + 两个终止符的最小长度。
    """

    pass


class IncompleteResponseError(ProtocolError):
    """多包响应重组未能结束。

    在收到探针回显之前连接关闭或响应超时。已收集的部分文本会被丢弃，
    不会作为结果返回。
    """

    pass


class ExecError(CvarDumpError):
    """会话不处于 READY 状态时尝试执行命令。"""

    pass


class OperationTimeoutError(CvarDumpError, TimeoutError):
    """整体操作 (connect + auth + execute) 超出截止时间。"""

    pass


class InputError(CvarDumpError, OSError):
    """manual 模式下无法读取输入文件。"""

    pass


class ExportError(CvarDumpError, OSError):
    """CSV 目标文件无法创建或写入。"""

    pass


class ExitCode(IntEnum):
    """CLI 进程退出码。

    每一类失败对应一个独立的退出码，方便脚本区分失败原因。
    """

    OK = 0
    ERROR = 1  # 未预期的内部错误
    USAGE = 2  # argparse 参数错误
    CONFIG = 3
    CONNECTION = 4
    AUTH = 5
    PROTOCOL = 6
    TIMEOUT = 7
    INPUT = 8
    EXPORT = 9
    INTERRUPTED = 130  # Ctrl+C

    @classmethod
    def for_error(cls, error: BaseException) -> "ExitCode":
        """将异常映射为退出码。

        Args:
            error: 运行过程中捕获的异常。

        Returns:
            ExitCode: 对应的退出码，未知异常返回 ERROR。
        """
        # 顺序敏感: 子类必须排在父类之前
        _CODE_MAP = (
            (ConfigError, cls.CONFIG),
            (AuthError, cls.AUTH),
            (RconConnectionError, cls.CONNECTION),
            (ProtocolError, cls.PROTOCOL),
            (ExecError, cls.PROTOCOL),
            (OperationTimeoutError, cls.TIMEOUT),
            (InputError, cls.INPUT),
            (ExportError, cls.EXPORT),
        )
        for exc_type, code in _CODE_MAP:
            if isinstance(error, exc_type):
                return code
        return cls.ERROR

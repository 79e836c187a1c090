"""统一异常体系

所有业务异常继承 DepflowError，CLI 层据此输出友好提示并决定退出码。

单条依赖边上的 RegistryError / FetchError / LinkError 不会中断整体安装，
而是由安装器收集到 InstallReport.failures，安装结束后统一汇报。
"""

from __future__ import annotations


class DepflowError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(DepflowError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ManifestError(DepflowError):
    """入口清单无法读取或格式错误（致命，发生在任何网络请求之前）"""

    code = "MANIFEST_ERROR"


class ValidationError(DepflowError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class _KindedError(DepflowError):
    """带细分类型（kind）的依赖边错误"""

    kinds: frozenset[str] = frozenset()

    def __init__(self, message: str, kind: str, package: str = "") -> None:
        if kind not in self.kinds:
            raise ValueError(f"{type(self).__name__} 不支持的类型: {kind}")
        super().__init__(message)
        self.kind = kind
        self.package = package


class RegistryError(_KindedError):
    """注册表无法满足版本范围或不可达"""

    code = "REGISTRY_ERROR"
    NOT_FOUND = "not_found"
    RANGE_UNSATISFIABLE = "range_unsatisfiable"
    NETWORK = "network"
    kinds = frozenset((NOT_FOUND, RANGE_UNSATISFIABLE, NETWORK))


class FetchError(_KindedError):
    """包内容下载失败（网络、校验和、磁盘写入）"""

    code = "FETCH_ERROR"
    NETWORK = "network"
    CHECKSUM = "checksum"
    WRITE = "write"
    kinds = frozenset((NETWORK, CHECKSUM, WRITE))


class LinkError(_KindedError):
    """符号链接创建失败"""

    code = "LINK_ERROR"
    PERMISSION = "permission"
    IO = "io"
    kinds = frozenset((PERMISSION, IO))

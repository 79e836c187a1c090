"""网络工具: URL 安全校验与拼接"""

from __future__ import annotations

from urllib.parse import quote, urlparse

from depflow.core.exceptions import ValidationError

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def package_url(registry_url: str, name: str) -> str:
    """拼接包元数据地址，scoped 包名中的 '/' 编码为 %2f

    >>> package_url("https://registry.npmjs.org/", "@types/node")
    'https://registry.npmjs.org/@types%2fnode'
    """
    return f"{registry_url.rstrip('/')}/{quote(name, safe='@').replace('%2F', '%2f')}"

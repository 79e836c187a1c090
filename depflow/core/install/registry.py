"""注册表客户端

职责:
- 从 npm 兼容注册表拉取包元信息文档（packument）
- 按 dist-tag 或版本范围挑选具体版本
- 把选中版本转换为不可变的 PackageMetadata

同一客户端实例内对 packument 做按包名加锁的内存缓存，
并发解析同一个包只会产生一次网络请求。
"""

from __future__ import annotations

import json
import logging
import threading
import urllib.error
import urllib.request
from typing import Any

from depflow.core.exceptions import RegistryError
from depflow.core.install.models import PackageMetadata
from depflow.core.install.ranges import is_dist_tag, max_satisfying, satisfies
from depflow.utils.net import package_url, validate_url_scheme

logger = logging.getLogger(__name__)

_ANY = frozenset(("", "*", "x", "X", "latest"))


class RegistryClient:
    """npm 兼容注册表客户端"""

    def __init__(self, registry_url: str, timeout: int = 30) -> None:
        validate_url_scheme(registry_url, context="registry_url")
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self._packuments: dict[str, dict[str, Any]] = {}
        self._name_locks: dict[str, threading.Lock] = {}
        self._lock = threading.Lock()

    def resolve(self, name: str, version_range: str) -> PackageMetadata:
        """解析 (包名, 版本范围) 为具体版本的包元信息

        Raises:
            RegistryError: 包不存在 / 范围无法满足 / 网络或响应异常
        """
        packument = self.packument(name)
        version = self._select_version(packument, name, version_range)
        manifest = packument["versions"][version]
        return self._to_metadata(name, version, manifest)

    def packument(self, name: str) -> dict[str, Any]:
        """获取包的全部版本元信息（带缓存）"""
        with self._lock:
            name_lock = self._name_locks.setdefault(name, threading.Lock())
        with name_lock:
            cached = self._packuments.get(name)
            if cached is not None:
                return cached
            data = self._get_json(name)
            self._packuments[name] = data
            return data

    def _get_json(self, name: str) -> dict[str, Any]:
        url = package_url(self.registry_url, name)
        logger.debug("请求注册表: %s", url)
        req = urllib.request.Request(url, headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                body = resp.read()
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise RegistryError(
                    f"注册表中不存在包: {name}", RegistryError.NOT_FOUND, name,
                ) from e
            raise RegistryError(
                f"注册表请求失败: {url} - HTTP {e.code}", RegistryError.NETWORK, name,
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise RegistryError(
                f"注册表不可达: {url} - {e}", RegistryError.NETWORK, name,
            ) from e

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RegistryError(
                f"注册表响应不是有效 JSON: {url}", RegistryError.NETWORK, name,
            ) from e
        if not isinstance(data, dict) or not isinstance(data.get("versions"), dict):
            raise RegistryError(
                f"注册表响应缺少 versions 字段: {url}", RegistryError.NETWORK, name,
            )
        return data

    @staticmethod
    def _select_version(packument: dict[str, Any], name: str, version_range: str) -> str:
        """按 npm 语义挑选版本: dist-tag 直接映射；范围优先 latest，否则取最高满足版本"""
        versions: dict[str, Any] = packument["versions"]
        tags: dict[str, str] = packument.get("dist-tags") or {}
        rng = (version_range or "").strip()
        latest = tags.get("latest")

        if rng in _ANY and latest in versions:
            return latest
        if is_dist_tag(rng):
            tagged = tags.get(rng)
            if tagged in versions:
                return tagged
            raise RegistryError(
                f"{name} 没有 dist-tag '{rng}'，可用: {sorted(tags)}",
                RegistryError.RANGE_UNSATISFIABLE, name,
            )

        try:
            if latest in versions and satisfies(latest, rng):
                return latest
            chosen = max_satisfying(versions, rng)
        except ValueError as e:
            raise RegistryError(
                f"{name}@{rng} 版本范围无效: {e}",
                RegistryError.RANGE_UNSATISFIABLE, name,
            ) from e
        if chosen is None:
            raise RegistryError(
                f"{name} 没有满足 '{rng}' 的版本",
                RegistryError.RANGE_UNSATISFIABLE, name,
            )
        return chosen

    @staticmethod
    def _dep_field(name: str, version: str, manifest: dict[str, Any], field: str) -> dict[str, str]:
        """读取依赖字段，必须是 {包名: 范围字符串}；缺省视为空"""
        deps = manifest.get(field)
        if deps is None:
            return {}
        if not isinstance(deps, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in deps.items()
        ):
            raise RegistryError(
                f"{name}@{version} 元信息的 {field} 格式无效，应为 {{包名: 版本范围}}",
                RegistryError.NETWORK, name,
            )
        return deps

    @classmethod
    def _to_metadata(cls, name: str, version: str, manifest: dict[str, Any]) -> PackageMetadata:
        if not isinstance(manifest, dict):
            raise RegistryError(
                f"{name}@{version} 元信息格式无效", RegistryError.NETWORK, name,
            )
        dist = manifest.get("dist") or {}
        shasum = dist.get("shasum", "") if isinstance(dist, dict) else ""
        tarball = dist.get("tarball", "") if isinstance(dist, dict) else ""
        if not shasum or not tarball:
            raise RegistryError(
                f"{name}@{version} 元信息缺少 dist.shasum / dist.tarball",
                RegistryError.NETWORK, name,
            )
        return PackageMetadata(
            name=manifest.get("name", name),
            version=version,
            content_digest=shasum,
            download_url=tarball,
            dependencies=cls._dep_field(name, version, manifest, "dependencies"),
            dev_dependencies=cls._dep_field(name, version, manifest, "devDependencies"),
        )

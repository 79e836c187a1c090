"""包内容拉取

职责:
- TarballDownloader: 下载 tarball → SHA-1 校验 → 解压到临时目录 → 原子 rename
- PackageFetcher:    本地优先（install_target 已存在即视为完整）+ 调用下载器
- FetchStage:        广播订阅者，按 install_target 去重后并发拉取

install_target 只会通过原子 rename 出现，所以目录存在即代表内容完整；
中途失败或被取消只会留下 .tmp-* 临时目录，下次安装时覆盖重来。
"""

from __future__ import annotations

import hashlib
import http.client
import logging
import os
import shutil
import tarfile
import tempfile
import threading
import urllib.error
import urllib.request
from pathlib import Path, PurePosixPath

from depflow.core.exceptions import FetchError, ValidationError
from depflow.core.install.broadcast import DedupStage
from depflow.core.install.models import ResolvedDependency
from depflow.core.progress import NullProgressReporter
from depflow.core.protocols import ContentDownloader, ProgressReporter
from depflow.utils.net import validate_url_scheme

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


class TarballDownloader:
    """从 URL 下载 npm tarball 并解压到目标目录"""

    def __init__(self, timeout: int = 30) -> None:
        self.timeout = timeout

    def download(self, url: str, digest: str, destination: Path) -> None:
        """下载并原子地落盘到 destination

        Raises:
            FetchError: 网络错误 / 校验和不匹配 / 写入失败
        """
        try:
            validate_url_scheme(url, context="tarball")
        except ValidationError as e:
            raise FetchError(str(e), FetchError.NETWORK) from e

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            staging = Path(tempfile.mkdtemp(prefix=".tmp-", dir=str(destination.parent)))
        except OSError as e:
            raise FetchError(f"无法创建临时目录: {destination.parent} - {e}", FetchError.WRITE) from e
        try:
            archive = staging / "package.tgz"
            actual = self._stream_to(url, archive)
            if actual != digest:
                raise FetchError(
                    f"校验和不匹配 {url}: 期望 {digest}, 实际 {actual}",
                    FetchError.CHECKSUM,
                )
            content = staging / "package"
            self._extract(archive, content)
            try:
                os.replace(content, destination)
            except OSError:
                # 其他进程已抢先完成同一内容
                if not destination.is_dir():
                    raise
                logger.info("  目标已由其他安装完成: %s", destination)
        except OSError as e:
            raise FetchError(f"写入失败: {destination} - {e}", FetchError.WRITE) from e
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    def _stream_to(self, url: str, path: Path) -> str:
        """下载到文件并返回 SHA-1 十六进制摘要"""
        sha1 = hashlib.sha1()  # nosec B324 - npm dist.shasum
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as resp, open(path, "wb") as f:  # nosec B310
                for chunk in iter(lambda: resp.read(_CHUNK), b""):
                    sha1.update(chunk)
                    f.write(chunk)
        except urllib.error.URLError as e:
            raise FetchError(f"下载失败: {url} - {e}", FetchError.NETWORK) from e
        except (ConnectionError, TimeoutError, http.client.HTTPException) as e:
            raise FetchError(f"下载中断: {url} - {e}", FetchError.NETWORK) from e
        return sha1.hexdigest()

    @staticmethod
    def _extract(archive: Path, dest: Path) -> None:
        """解压 tarball，去掉第一层目录（通常为 package/），拒绝越界路径"""
        dest.mkdir()
        try:
            with tarfile.open(archive, "r:*") as tf:
                for member in tf.getmembers():
                    parts = PurePosixPath(member.name).parts[1:]
                    if not parts:
                        continue
                    if ".." in parts or PurePosixPath(member.name).is_absolute():
                        raise FetchError(f"tarball 包含越界路径: {member.name}", FetchError.CHECKSUM)
                    if not (member.isfile() or member.isdir()):
                        continue
                    target = dest.joinpath(*parts)
                    if member.isdir():
                        target.mkdir(parents=True, exist_ok=True)
                        continue
                    target.parent.mkdir(parents=True, exist_ok=True)
                    src = tf.extractfile(member)
                    if src is None:
                        continue
                    with src, open(target, "wb") as out:
                        shutil.copyfileobj(src, out)
                    os.chmod(target, 0o755 if member.mode & 0o111 else 0o644)
        except tarfile.TarError as e:
            raise FetchError(f"tarball 无法解压: {archive.name} - {e}", FetchError.CHECKSUM) from e


class PackageFetcher:
    """包拉取策略 - 本地优先 + 远程下载"""

    def __init__(
        self,
        downloader: ContentDownloader,
        *,
        reporter: ProgressReporter | None = None,
    ) -> None:
        self.downloader = downloader
        self.reporter = reporter or NullProgressReporter()

    def fetch(self, dep: ResolvedDependency) -> bool:
        """拉取单个包到 install_target，返回是否真的发生了下载

        Raises:
            FetchError: 下载失败
        """
        meta = dep.metadata
        if dep.install_target.is_dir():
            logger.debug("本地已存在，跳过下载: %s -> %s", meta.spec, dep.install_target)
            return False

        self.reporter.start(f"fetching {meta.spec}")
        try:
            self.downloader.download(meta.download_url, meta.content_digest, dep.install_target)
        finally:
            self.reporter.complete(f"fetched {meta.spec} [{meta.short_digest}]")
        logger.info("已下载: %s -> %s", meta.spec, dep.install_target)
        return True


class FetchStage(DedupStage[Path]):
    """按 install_target 去重的下载阶段"""

    stage = "fetch"
    error_type = FetchError

    def __init__(
        self,
        fetcher: PackageFetcher,
        max_workers: int = 8,
        cancel_event: threading.Event | None = None,
    ) -> None:
        super().__init__(max_workers=max_workers, cancel_event=cancel_event)
        self.fetcher = fetcher
        self.downloaded = 0

    def key(self, dep: ResolvedDependency) -> Path:
        return dep.install_target

    def apply(self, dep: ResolvedDependency) -> None:
        if self.fetcher.fetch(dep):
            with self._lock:
                self.downloaded += 1

    def ready(self, target: Path) -> bool:
        """等待 target 的下载结束，返回内容目录是否就绪"""
        self.wait_for(target)
        return target.is_dir()

"""depflow 日志配置

提供统一的日志配置，支持普通文本和结构化 JSON 两种输出格式。
解析事件（log_resolved）通过 extra 字段携带包名 / 版本 / 摘要，
JSON 格式下会原样输出，便于 CI 流水线统计解析结果。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

# 允许透传到 JSON 日志中的 extra 字段
_EXTRA_FIELDS = ("event", "package", "version", "digest", "parent_digest")

_resolved_logger = logging.getLogger("depflow.resolved")


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "depflow.resolved",
            "message": "resolved lodash@4.17.21 ...",
            "event": "resolved",          (仅在 extra 提供时)
            "package": "lodash",
            "digest": "...",
            "exception": "traceback..."   (仅在有异常时)
        }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            # 使用 record.created，记录事件发生时间而非格式化时间
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
        }
        for key in _EXTRA_FIELDS:
            if key in record.__dict__:
                log_entry[key] = record.__dict__[key]
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI），否则使用人类可读格式

    说明:
        - 输出到 stderr，不干扰 stdout 上的安装汇总
        - 自动清理已有 handlers，避免重复输出
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)

    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))

    root.addHandler(handler)


def log_resolved(
    parent_digest: str | None, digest: str, name: str, version: str,
) -> None:
    """记录一次依赖解析完成事件

    参数:
        parent_digest: 发起方包的内容摘要；发起方是项目根目录时为 None
        digest: 被解析包的内容摘要
        name: 包名
        version: 解析得到的具体版本
    """
    _resolved_logger.debug(
        "resolved %s@%s [%s] <- %s",
        name, version, digest[:7], parent_digest[:7] if parent_digest else "<root>",
        extra={
            "event": "resolved",
            "package": name,
            "version": version,
            "digest": digest,
            "parent_digest": parent_digest,
        },
    )

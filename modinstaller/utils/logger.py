"""modinstaller 日志配置

支持普通文本和结构化 JSON 两种输出格式，由 CLI 入口根据环境变量初始化。
库代码只使用 logging.getLogger(__name__)，不主动配置根日志器。

一次安装运行内的日志带有该运行的 execution_id（与影子目录名一致），
并发或中断后重跑时可据此区分日志与遗留目录:

    with execution_context(installer.execution_id):
        ...
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone

# 不在安装运行内时的占位值
NO_EXECUTION = "-"

_execution_id: ContextVar[str] = ContextVar("modinstaller_execution_id", default=NO_EXECUTION)


@contextmanager
def execution_context(execution_id: str) -> Iterator[None]:
    """上下文内产生的日志记录附带 execution_id"""
    token = _execution_id.set(execution_id or NO_EXECUTION)
    try:
        yield
    finally:
        _execution_id.reset(token)


def current_execution_id() -> str:
    return _execution_id.get()


class ExecutionIdFilter(logging.Filter):
    """为日志记录补充 execution_id 字段"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.execution_id = current_execution_id()
        return True


class JSONFormatter(logging.Formatter):
    """结构化 JSON 日志格式器，便于 CI 流水线消费

    输出格式:
        {
            "timestamp": "2024-01-01T12:00:00+00:00",
            "level": "INFO",
            "logger": "modinstaller.core.installer",
            "message": "已解析 github.com/acme/a@^1.0 -> github.com/acme/a@v1.2.0",
            "execution_id": "3f9a2c1b" (仅在安装运行内),
            "module": "installer",
            "function": "_install",
            "line": 42,
            "exception": "traceback..." (仅在有异常时)
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
        }
        execution_id = getattr(record, "execution_id", NO_EXECUTION)
        if execution_id != NO_EXECUTION:
            log_entry["execution_id"] = execution_id
        log_entry.update(module=record.module, function=record.funcName, line=record.lineno)
        if record.exc_info and record.exc_info[1]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """配置根日志器

    参数:
        level: 日志级别字符串（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        json_output: 为 True 时使用 JSON 格式（适用于 CI），否则使用人类可读格式

    说明:
        - 输出到 stderr，stdout 留给安装摘要
        - 自动清理已有 handlers，避免重复输出
        - 文本格式中 [-] 表示不在安装运行内
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ExecutionIdFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        fmt = "%(asctime)s [%(levelname)-7s] [%(execution_id)s] %(name)s: %(message)s"
        handler.setFormatter(logging.Formatter(fmt))
    root.addHandler(handler)


def reset_logging() -> None:
    """移除根日志器上的全部 handlers（测试或重新配置时使用）"""
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

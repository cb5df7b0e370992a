"""GitHub 令牌认证

令牌按前缀分为两类:
  - 个人令牌 (ghp_ / github_pat_ / 未知前缀): Basic 认证，令牌作为用户名
  - 应用 / OAuth 令牌 (gho_ / ghu_ / ghs_ / ghr_): Bearer 认证

认证信息通过 GIT_CONFIG_COUNT / GIT_CONFIG_KEY_n / GIT_CONFIG_VALUE_n 环境变量
注入 http.extraHeader，不出现在命令行参数中（避免被 ps 看到）。
"""

from __future__ import annotations

import base64
from enum import Enum

BEARER_TOKEN_PREFIXES = ("gho_", "ghu_", "ghs_", "ghr_")
BASIC_TOKEN_PREFIXES = ("ghp_", "github_pat_")


class AuthKind(Enum):
    NONE = "none"
    BASIC = "basic"
    BEARER = "bearer"


def classify_token(token: str) -> AuthKind:
    if not token:
        return AuthKind.NONE
    if token.startswith(BEARER_TOKEN_PREFIXES):
        return AuthKind.BEARER
    return AuthKind.BASIC


def auth_header(token: str) -> str:
    """返回 Authorization 头的值，无令牌时返回空串"""
    kind = classify_token(token)
    if kind is AuthKind.BEARER:
        return f"Bearer {token}"
    if kind is AuthKind.BASIC:
        encoded = base64.b64encode(f"{token}:".encode()).decode("ascii")
        return f"Basic {encoded}"
    return ""


def git_auth_env(token: str) -> dict[str, str]:
    """构造 git 子进程需要追加的环境变量

    即使没有令牌也禁止交互式口令提示，否则 git 会阻塞等待输入。
    """
    env = {"GIT_TERMINAL_PROMPT": "0"}
    header = auth_header(token)
    if header:
        env.update({
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": f"Authorization: {header}",
        })
    return env

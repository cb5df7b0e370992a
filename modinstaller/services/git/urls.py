"""mod 名称到 git URL 的转换

  github.com/acme/mod-a -> https://github.com/acme/mod-a
                        -> git@github.com:acme/mod-a.git
"""

from __future__ import annotations

from enum import Enum


class UrlMode(Enum):
    HTTPS = "https"
    SSH = "ssh"


def https_url(mod_name: str) -> str:
    if mod_name.startswith("https://"):
        return mod_name
    return f"https://{mod_name}"


def ssh_url(mod_name: str) -> str:
    name = mod_name
    if name.startswith("https://"):
        name = name[len("https://"):]
    if name.startswith("git@"):
        return name if name.endswith(".git") else f"{name}.git"
    host, sep, path = name.partition("/")
    if not sep:
        # 没有路径部分，无法构造 scp 风格地址
        return f"git@{host}"
    if not path.endswith(".git"):
        path += ".git"
    return f"git@{host}:{path}"


def git_url(mod_name: str, mode: UrlMode) -> str:
    return https_url(mod_name) if mode is UrlMode.HTTPS else ssh_url(mod_name)

"""git 远端访问

- urls.py: mod 名称 -> HTTPS / SSH 地址
- auth.py: 令牌分类与认证环境变量
- client.py: git 命令封装
- remote.py: HTTPS 优先、SSH 回退
- tags.py: 远端 tag 解析（会话级缓存）
"""

from modinstaller.services.git.auth import AuthKind, classify_token
from modinstaller.services.git.client import GitClient
from modinstaller.services.git.remote import ModRemote
from modinstaller.services.git.tags import GitTagResolver

__all__ = [
    "AuthKind",
    "GitClient",
    "GitTagResolver",
    "ModRemote",
    "classify_token",
]

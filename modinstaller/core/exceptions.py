"""统一异常体系

所有业务异常继承 ModInstallerError，CLI 层据此输出友好提示。

分类:
  - 约束错误 (InvalidArgumentError): 任何网络/文件操作前立即抛出
  - 解析失败 (DependencyResolutionError): 按 mod 收集，不影响同批其他 mod
  - 暂存失败 (StagingError / ModfileNotFoundError): 同上
  - 提交失败 (CommitError): 对本次运行致命
  - 锁文件读写失败 (LockFileError): 致命
"""

from __future__ import annotations


class ModInstallerError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(ModInstallerError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class InvalidArgumentError(ModInstallerError):
    """mod 参数语法错误，或在不允许的命令中指定了版本/分支/路径"""

    code = "INVALID_ARGUMENT"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class ModfileError(ModInstallerError):
    """mod 定义文件内容无效"""

    code = "MODFILE_ERROR"


class ModfileNotFoundError(ModfileError):
    """克隆得到的仓库中没有 mod 定义文件"""

    code = "NO_MOD_DEFINITION"


class GitCommandError(ModInstallerError):
    """git 命令执行失败"""

    code = "GIT_ERROR"

    def __init__(self, message: str, returncode: int = -1, stderr: str = "") -> None:
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


class DependencyResolutionError(ModInstallerError):
    """没有满足约束的版本，或 HTTPS/SSH 两种方式都无法列出远端引用"""

    code = "RESOLUTION_FAILED"

    def __init__(self, message: str, causes: list[Exception] | None = None) -> None:
        if causes:
            message = message + "\n" + "\n".join(f"  - {c}" for c in causes)
        super().__init__(message)
        self.causes = causes or []


class StagingError(ModInstallerError):
    """克隆到影子目录失败"""

    code = "STAGING_FAILED"


class CommitError(ModInstallerError):
    """影子目录提交到 mods 目录失败"""

    code = "COMMIT_FAILED"


class LockFileError(ModInstallerError):
    """锁文件读写或删除失败"""

    code = "LOCK_FILE_ERROR"


class InstallCancelledError(ModInstallerError):
    """安装被调用方取消"""

    code = "CANCELLED"


class DependencyInstallError(ModInstallerError):
    """一个或多个依赖安装失败（聚合错误）"""

    code = "DEPENDENCY_ERROR"

    def __init__(self, prefix: str, errors: list[Exception]) -> None:
        lines = [prefix]
        for err in errors:
            # 子错误可能本身是多行聚合，逐行缩进
            for i, line in enumerate(str(err).splitlines()):
                lines.append(("  - " if i == 0 else "    ") + line)
        super().__init__("\n".join(lines))
        self.errors = errors


class PruneError(ModInstallerError):
    """删除未引用的 mod 目录失败"""

    code = "PRUNE_FAILED"

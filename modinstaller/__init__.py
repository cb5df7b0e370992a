"""modinstaller - git 托管 mod 的依赖安装器"""

__version__ = "0.1.0"

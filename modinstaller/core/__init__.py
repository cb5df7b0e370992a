"""核心层: 版本约束、依赖锁、安装编排"""

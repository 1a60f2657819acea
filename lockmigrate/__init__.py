"""lockmigrate - 按当前注册表刷新 pnpm-lock.yaml 中的包下载元数据"""

__version__ = "0.1.0"

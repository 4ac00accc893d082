"""
app.core.settings
~~~~~~~~~~~~~~~~~

集中式配置管理，基于 pydantic-settings 自动从 ``.env`` 文件加载。

支持多环境配置（dev / test / prod），加载顺序为:
  1. 环境变量（最高优先级）
  2. ``.env.{ENVIRONMENT}`` 环境专属文件
  3. ``.env`` 基础文件
  4. 字段默认值（最低优先级）
"""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# 读取当前环境标识（在 Settings 类定义之前，用于决定加载哪个 .env 文件）
_CURRENT_ENV: str = os.getenv("ENVIRONMENT", "dev")


class Settings(BaseSettings):
    """全局配置对象，字段值按如下优先级加载：环境变量 > .env.{env} > .env > 默认值。"""

    # ── 基础 ──────────────────────────────────────────────────────────
    PROJECT_NAME: str = Field(default="Room Relay & Video Proxy", description="项目名称")
    VERSION: str = Field(default="0.1.0", description="版本号")
    ENVIRONMENT: Literal["dev", "test", "prod"] = Field(
        default="dev",
        description="运行环境：dev / test / prod",
    )

    # ── 服务 ──────────────────────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0", description="服务监听地址")
    PORT: int = Field(default=3000, description="服务监听端口")
    LOG_LEVEL: str = Field(default="INFO", description="日志级别（可被环境属性覆盖）")

    # ── 聊天中继 ──────────────────────────────────────────────────────
    ADMIN_SECRET: str = Field(
        default="sennin1945",
        description="管理员共享口令，admin-login / admin-reset 均需携带",
    )
    WS_RATE_LIMIT_INTERVAL: float = Field(
        default=0.0,
        ge=0.0,
        description="单连接两次聊天/图片消息的最小间隔（秒），0 表示不限流",
    )

    # ── 视频代理 ──────────────────────────────────────────────────────
    EXTERNAL_TIMEOUT: float = Field(
        default=10.0,
        gt=0.0,
        description="外部 API / yt-dlp 调用的超时时间（秒）",
    )
    SEARCH_LIMIT: int = Field(default=20, ge=1, le=50, description="单次搜索返回的最大条数")
    STREAM_CACHE_SECONDS: int = Field(default=30, description="/api/stream 响应的缓存时间（秒）")
    THUMBNAIL_HOST: str = Field(default="https://i.ytimg.com", description="缩略图主机")
    THUMBNAIL_QUALITIES: list[str] = Field(
        default=["maxresdefault", "sddefault", "hqdefault", "mqdefault", "default"],
        description="缩略图分辨率列表，按画质从高到低排列",
    )
    HTTP_RATE_LIMIT: str = Field(default="60/minute", description="代理接口的 slowapi 限流规则")

    # ── 静态资源 / 离线缓存 ──────────────────────────────────────────
    STATIC_DIR: str = Field(default="public", description="静态资源目录（不存在则不挂载）")
    OFFLINE_CACHE_NAME: str = Field(default="chat-cache", description="Service Worker 缓存名")
    OFFLINE_CACHE_ASSETS: list[str] = Field(
        default=["/", "/index.html", "/main.js"],
        description="Service Worker 安装时预取的资源列表",
    )

    # ── Pydantic Settings ─────────────────────────────────────────────
    # 先加载 .env.{env} 再加载 .env，前者优先级更高
    model_config = SettingsConfigDict(
        env_file=(f".env.{_CURRENT_ENV}", ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── 环境判断 ──────────────────────────────────────────────────────

    @property
    def is_prod(self) -> bool:
        """当前是否为生产环境。"""
        return self.ENVIRONMENT == "prod"

    @property
    def is_test(self) -> bool:
        """当前是否为测试环境。"""
        return self.ENVIRONMENT == "test"

    @property
    def is_dev(self) -> bool:
        """当前是否为开发环境。"""
        return self.ENVIRONMENT == "dev"

    # ── 环境差异化行为 ────────────────────────────────────────────────

    @property
    def debug(self) -> bool:
        """是否开启 debug 模式。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def reload(self) -> bool:
        """是否开启热重载。仅 dev 环境开启。"""
        return self.is_dev

    @property
    def effective_log_level(self) -> str:
        """根据环境自动推断日志级别。

        - dev  → INFO
        - test → DEBUG（方便排查测试失败）
        - prod → WARNING（减少噪音）

        如果环境变量中显式设置了 LOG_LEVEL，会覆盖此默认推断。
        """
        env_log = os.getenv("LOG_LEVEL")
        if env_log:
            return env_log
        return {
            "dev": "INFO",
            "test": "DEBUG",
            "prod": "WARNING",
        }.get(self.ENVIRONMENT, "INFO")

    @property
    def allow_cors_all_origins(self) -> bool:
        """是否允许所有 CORS 来源。非 prod 环境允许，方便本地调试。"""
        return not self.is_prod


@lru_cache
def get_settings() -> Settings:
    """获取全局 Settings 单例（带缓存，避免重复解析 .env）。"""
    return Settings()


settings: Settings = get_settings()

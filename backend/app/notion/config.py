# backend/app/notion/config.py

"""
Notion 連携に必要な設定値をまとめるモジュール。

NotionConfig はクライアント生成時に明示的に渡す。
テストでは環境変数を経由せず、直接インスタンスを組み立ててよい。
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from app.utils.config import get_env, get_env_bool


@dataclass(frozen=True)
class NotionConfig:
    """Notion API 用の設定値コンテナ。"""

    api_key: str
    database_id: Optional[str] = None
    api_base_url: str = "https://api.notion.com/v1"
    api_version: str = "2022-06-28"
    timeout_seconds: float = 10.0
    # 1 回目 + 一時的エラー時のリトライ 1 回
    max_attempts: int = 2
    retry_wait_seconds: float = 0.5
    sort_property: str = "Created"
    fetch_link_previews: bool = True


def _get_env_number(name: str, default: float) -> float:
    """
    数値の環境変数を取得するヘルパー。

    不正な値が入っていた場合は RuntimeError にする。
    """
    raw = get_env(name, required=False)
    if raw is None:
        return default

    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(
            f"Invalid numeric value for env var {name}: {raw!r}"
        ) from exc


@lru_cache()
def get_notion_config() -> NotionConfig:
    """
    環境変数から Notion 設定を読み込む。

    必須:
      - NOTION_API_KEY

    任意:
      - NOTION_DATABASE_ID
      - NOTION_API_BASE_URL        (デフォルト: https://api.notion.com/v1)
      - NOTION_API_VERSION         (デフォルト: 2022-06-28)
      - NOTION_TIMEOUT_SECONDS     (デフォルト: 10)
      - NOTION_MAX_ATTEMPTS        (デフォルト: 2)
      - NOTION_RETRY_WAIT_SECONDS  (デフォルト: 0.5)
      - NOTION_SORT_PROPERTY       (デフォルト: Created)
      - NOTION_FETCH_LINK_PREVIEWS (デフォルト: true)
    """
    api_key = get_env("NOTION_API_KEY")
    database_id = get_env("NOTION_DATABASE_ID", required=False)

    api_base_url = get_env(
        "NOTION_API_BASE_URL",
        default="https://api.notion.com/v1",
        required=False,
    )
    api_version = get_env(
        "NOTION_API_VERSION",
        default="2022-06-28",
        required=False,
    )
    sort_property = get_env(
        "NOTION_SORT_PROPERTY",
        default="Created",
        required=False,
    )

    max_attempts = int(_get_env_number("NOTION_MAX_ATTEMPTS", default=2))
    if max_attempts < 1:
        max_attempts = 1

    return NotionConfig(
        api_key=api_key,
        database_id=database_id,
        api_base_url=api_base_url.rstrip("/"),
        api_version=api_version,
        timeout_seconds=_get_env_number("NOTION_TIMEOUT_SECONDS", default=10.0),
        max_attempts=max_attempts,
        retry_wait_seconds=_get_env_number("NOTION_RETRY_WAIT_SECONDS", default=0.5),
        sort_property=sort_property,
        fetch_link_previews=get_env_bool("NOTION_FETCH_LINK_PREVIEWS", default=True),
    )

# backend/app/notion/__init__.py

"""
Notion 連携用モジュール群。

主な責務:
- Notion API からデータベース / ページ / ブロックを読み取る
- ページのプロパティをブログ記事モデル（BlogPost）に正規化する
- ブロック列を HTML に変換する
"""

from .client import (  # noqa: F401
    NotionAccessDeniedError,
    NotionClient,
    NotionClientError,
    NotionConnectionError,
    NotionGenericError,
    NotionNotFoundError,
)
from .renderer import ContentRenderer  # noqa: F401
from .schemas import BlogPost, BlogPostDetail  # noqa: F401
from .service import BlogService  # noqa: F401

# backend/app/notion/service.py

"""
Notion クライアントと内部スキーマをつなぐサービス層。

- ブログ記事一覧の取得（Status で絞り込み、公開日の降順）
- 記事 1 件のメタ情報 / 本文 HTML の取得
- メタ情報と本文の並行取得とマージ
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .client import NotionClient, NotionClientError, NotionConnectionError
from .link_preview import LinkMetadataFetcher
from .normalizer import is_published, normalize_page, published_sort_key
from .renderer import ContentRenderer
from .schemas import BlogPost, BlogPostDetail, ConnectionStatus

logger = logging.getLogger(__name__)

# メタ情報が取れず本文だけ取れた場合に使う既定値
FALLBACK_TITLE = "Blog Post"
FALLBACK_DESCRIPTION = "A blog post from Notion"
FALLBACK_AUTHOR = "Author"


class BlogService:
    """
    NotionClient / ContentRenderer を利用して、アプリケーション層に対して
    扱いやすいモデルを返すサービス。

    コンストラクタで client / renderer を注入できる（テストではダミーを渡す）。
    """

    def __init__(
        self,
        client: Optional[NotionClient] = None,
        renderer: Optional[ContentRenderer] = None,
    ) -> None:
        self.client = client or NotionClient()
        if renderer is None:
            lookup = None
            config = getattr(self.client, "config", None)
            if config is not None and config.fetch_link_previews:
                lookup = LinkMetadataFetcher(timeout=config.timeout_seconds)
            renderer = ContentRenderer(link_metadata_lookup=lookup)
        self.renderer = renderer

    # ---- 接続確認 ------------------------------------------------------

    def check_connection(self) -> ConnectionStatus:
        """
        ユーザー一覧の取得で Notion への接続（トークンの有効性）を確認する。

        例外は投げず、結果を ConnectionStatus で返す。
        """
        try:
            self.client.list_users()
        except NotionClientError as exc:
            logger.error("Notion connection test failed: %s", exc)
            return ConnectionStatus(success=False, message=str(exc) or "Connection failed")

        logger.info("Notion connection test successful")
        return ConnectionStatus(success=True, message="Connection successful")

    def _ensure_connection(self) -> None:
        status = self.check_connection()
        if not status.success:
            raise NotionConnectionError(f"Notion connection failed: {status.message}")

    # ---- 一覧 ----------------------------------------------------------

    def _query_pages(self, database_id: str) -> List[Dict[str, Any]]:
        """
        設定されたプロパティで降順ソートして query する。
        ソート指定が拒否された場合は、ソートなしで 1 回だけ再試行する。
        """
        sorts = [{"property": self.client.config.sort_property, "direction": "descending"}]
        try:
            return self.client.query_database(database_id, sorts=sorts)
        except NotionConnectionError:
            raise
        except NotionClientError as exc:
            logger.warning(
                "Sorted query rejected; retrying without sort. database_id=%s error=%s",
                database_id,
                exc,
            )

        return self.client.query_database(database_id)

    def list_posts(self, database_id: Optional[str] = None) -> List[BlogPost]:
        """
        データベースの記事を取得し、公開済みのものだけを公開日の降順で返す。

        database_id 未指定時は設定値を使い、それも無ければ空リストを返す。
        """
        database_id = database_id or self.client.config.database_id
        if not database_id:
            logger.info("No database ID provided, returning empty list")
            return []

        self._ensure_connection()

        # アクセス可否（存在しない / 共有されていない）をここで判定する
        self.client.retrieve_database(database_id)

        pages = self._query_pages(database_id)
        logger.info("Database query successful. database_id=%s pages=%d", database_id, len(pages))

        posts = [
            normalize_page(page, position=index + 1)
            for index, page in enumerate(pages)
        ]
        published = [post for post in posts if is_published(post)]
        published.sort(key=published_sort_key, reverse=True)

        logger.info("Processed blog posts: %d published out of %d total", len(published), len(posts))
        return published

    # ---- 1 件 ----------------------------------------------------------

    def get_post(self, page_id: str) -> BlogPost:
        """
        記事 1 件のメタ情報を取得する。

        :raises NotionNotFoundError: ページが存在しない / 共有されていない場合
        :raises NotionAccessDeniedError: 権限が無い場合
        """
        self._ensure_connection()
        return self._fetch_post(page_id)

    def get_post_content(self, page_id: str) -> str:
        """
        記事本文（直下のブロックのみ）を取得して HTML に変換する。

        取得エラーは送出し、描画エラーはレンダラー側でプレースホルダーに落とす。
        """
        self._ensure_connection()
        return self._fetch_content(page_id)

    def _fetch_post(self, page_id: str) -> BlogPost:
        page = self.client.retrieve_page(page_id)
        return normalize_page(page)

    def _fetch_content(self, page_id: str) -> str:
        blocks = self.client.list_block_children(page_id)
        logger.info("Blocks retrieved. page_id=%s count=%d", page_id, len(blocks))

        content = self.renderer.render(blocks)
        logger.info("Content rendered. page_id=%s length=%d", page_id, len(content))
        return content

    def get_post_with_content(self, page_id: str) -> BlogPostDetail:
        """
        メタ情報と本文を並行して取得し、BlogPostDetail にまとめる。

        - 接続確認は並行取得の前に 1 回だけ行う
        - 本文の取得に失敗した場合は本文を空文字にする
        - メタ情報の取得に失敗しても本文が取れていれば、既定値で最小限の記事を作る
        - どちらも取れなければメタ情報側の例外を送出する
        """
        self._ensure_connection()

        with ThreadPoolExecutor(max_workers=2) as executor:
            content_future = executor.submit(self._fetch_content, page_id)
            post_future = executor.submit(self._fetch_post, page_id)

            try:
                content = content_future.result()
            except NotionClientError as exc:
                logger.error("Error fetching content. page_id=%s error=%s", page_id, exc)
                content = ""

            try:
                post = post_future.result()
            except NotionClientError as exc:
                logger.error("Error fetching metadata. page_id=%s error=%s", page_id, exc)
                if not content:
                    raise
                post = self._fallback_post(page_id, content)

        return BlogPostDetail(**post.model_dump(), content=content)

    @staticmethod
    def _fallback_post(page_id: str, content: str) -> BlogPost:
        return BlogPost(
            id=page_id,
            title=FALLBACK_TITLE,
            description=FALLBACK_DESCRIPTION,
            published_date=datetime.now(timezone.utc).isoformat(),
            author=FALLBACK_AUTHOR,
            cover_image=None,
            read_time=max(1, math.ceil(len(content) / 1000)),
            slug=page_id,
        )

# backend/app/notion/router.py

from functools import lru_cache
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.notion.client import (
    NotionAccessDeniedError,
    NotionClientError,
    NotionConnectionError,
    NotionNotFoundError,
)
from app.notion.schemas import (
    BlogContentResponse,
    BlogListResponse,
    BlogPostDetail,
    ConnectionStatus,
)
from app.notion.service import BlogService

router = APIRouter(prefix="/api", tags=["blog"])


@lru_cache()
def get_blog_service() -> BlogService:
    """
    BlogService のシングルトンインスタンスを取得する。

    テストでは dependency_overrides やメソッドの patch で差し替える。
    """
    return BlogService()


def _to_http_exception(exc: Exception, target: str) -> HTTPException:
    """
    Notion 由来の例外を HTTP ステータスに変換する。

    - NotionNotFoundError      -> 404
    - NotionAccessDeniedError  -> 403
    - NotionConnectionError    -> 502
    - その他 NotionClientError -> 502
    - 予期しない例外           -> 500
    """
    if isinstance(exc, NotionNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{target} not found: {exc}",
        )
    if isinstance(exc, NotionAccessDeniedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unauthorized access to {target}. Share it with your integration: {exc}",
        )
    if isinstance(exc, NotionConnectionError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Cannot connect to Notion API: {exc}",
        )
    if isinstance(exc, NotionClientError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(exc),
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed to fetch {target} from Notion.",
    )


@router.get(
    "/blogs",
    response_model=BlogListResponse,
    summary="ブログ記事一覧を取得",
    description="Status が空 / Published の記事だけを公開日の降順で返す。",
)
def list_blogs(
    database_id: Optional[str] = Query(
        None,
        description="対象データベース ID。未指定なら NOTION_DATABASE_ID を使う。",
    ),
    service: BlogService = Depends(get_blog_service),
) -> BlogListResponse:
    """
    ブログ記事一覧のエンドポイント。

    - データベース ID が設定されていなければ 500（設定漏れ）
    - Notion 側のエラーは _to_http_exception で変換する
    """
    database_id = database_id or service.client.config.database_id
    if not database_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="NOTION_DATABASE_ID environment variable is not set.",
        )

    try:
        items = service.list_posts(database_id)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_exception(exc, "database") from exc

    return BlogListResponse(items=items, count=len(items))


@router.get(
    "/blog/{page_id}",
    response_model=BlogPostDetail,
    summary="ブログ記事 1 件を本文付きで取得",
)
def get_blog(
    page_id: str,
    service: BlogService = Depends(get_blog_service),
) -> BlogPostDetail:
    try:
        return service.get_post_with_content(page_id)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_exception(exc, "page") from exc


@router.get(
    "/blog/{page_id}/content",
    response_model=BlogContentResponse,
    summary="ブログ記事の本文 HTML のみを取得",
)
def get_blog_content(
    page_id: str,
    service: BlogService = Depends(get_blog_service),
) -> BlogContentResponse:
    try:
        content = service.get_post_content(page_id)
    except Exception as exc:  # noqa: BLE001
        raise _to_http_exception(exc, "page") from exc

    return BlogContentResponse(id=page_id, content=content)


@router.get(
    "/notion/connection",
    response_model=ConnectionStatus,
    summary="Notion への接続確認",
)
def check_notion_connection(
    service: BlogService = Depends(get_blog_service),
) -> ConnectionStatus:
    return service.check_connection()

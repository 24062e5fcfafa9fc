# backend/app/notion/schemas.py

"""
Notion から取得したブログ記事を内部で扱うためのスキーマ定義。

JSON 上のキー名はフロントエンドに合わせて camelCase（alias）で返す。
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BlogPost(BaseModel):
    """
    Notion の 1 ページを表現する正規化済みモデル。

    データベースごとにプロパティ名が揺れても、すべてのフィールドが
    必ず何らかの値で埋まっていることを保証する（normalizer.py 参照）。
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., description="Notion ページ ID")
    title: str = Field(..., min_length=1, description="記事タイトル")
    description: str = Field("", description="記事の概要（空文字可）")
    category: str = Field("General", description="カテゴリ（select 値）")
    tags: List[str] = Field(default_factory=list, description="タグ名の一覧（重複なし）")
    published_date: str = Field(
        ...,
        alias="publishedDate",
        description="公開日（ISO8601）。未設定ならページ作成日時。",
    )
    status: str = Field("Published", description="Status（一覧の絞り込みにのみ使用）")
    author: str = Field("Anonymous", description="著者名")
    cover_image: Optional[str] = Field(
        None,
        alias="coverImage",
        description="カバー画像 URL",
    )
    read_time: int = Field(5, alias="readTime", ge=1, description="読了目安（分）")
    slug: str = Field(..., description="スラッグ。未設定ならページ ID。")


class BlogPostDetail(BlogPost):
    """
    記事メタ情報 + レンダリング済み本文 HTML。
    """

    content: str = Field("", description="本文 HTML")


class BlogListResponse(BaseModel):
    """
    /api/blogs のレスポンス全体を表現するモデル。
    """

    items: List[BlogPost]
    count: int


class ConnectionStatus(BaseModel):
    """
    Notion への接続確認結果。
    """

    success: bool
    message: str


class BlogContentResponse(BaseModel):
    """
    /api/blog/{page_id}/content のレスポンス。
    """

    id: str
    content: str

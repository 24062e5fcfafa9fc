# backend/app/main.py

"""
バックエンドアプリケーションのエントリーポイント。

主な責務:
- /api/blogs, /api/blog/{page_id} などのブログ API を公開する
- /health ヘルスチェックを公開する
"""

from fastapi import FastAPI

from app.notion.router import router as blog_router


def create_app() -> FastAPI:
    """
    FastAPI アプリケーションファクトリ。

    - ブログ API (/api/blogs, /api/blog/{page_id}, /api/blog/{page_id}/content)
    - Notion 接続確認 (/api/notion/connection)
    - ヘルスチェックエンドポイント (/health)
    """
    app = FastAPI(title="Notion Blog Backend")

    # ルーター登録
    app.include_router(blog_router)

    @app.get("/health", tags=["health"])
    def health_check() -> dict:
        """
        簡易ヘルスチェックエンドポイント。
        Notion へのアクセスは行わない。
        """
        return {"status": "ok"}

    return app


# uvicorn 実行時のエントリーポイント
app = create_app()

# backend/app/notion/client.py

"""
Notion API との通信を担当するクライアントモジュール。

- ユーザー一覧（接続確認用）
- データベースの取得 / query
- ページの取得
- ブロック子要素の取得（1 階層のみ）

読み取り専用。書き込み系 API は扱わない。
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .config import NotionConfig, get_notion_config

logger = logging.getLogger(__name__)

# 一時的な障害とみなす HTTP ステータス
_TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class NotionClientError(RuntimeError):
    """Notion クライアント全般の例外。"""


class NotionNotFoundError(NotionClientError):
    """対象のページ / データベースが存在しない（または共有されていない）。"""


class NotionAccessDeniedError(NotionClientError):
    """認証・権限関連のエラー。"""


class NotionConnectionError(NotionClientError):
    """接続エラー・タイムアウト、または接続確認の失敗。"""


class NotionGenericError(NotionClientError):
    """その他 Notion API 呼び出し時のエラー。メッセージは Notion のものをそのまま使う。"""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, NotionConnectionError):
        return True
    return (
        isinstance(exc, NotionGenericError)
        and exc.status_code in _TRANSIENT_STATUS_CODES
    )


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Notion API call failed; retrying. attempt=%s error=%s",
        retry_state.attempt_number,
        exc,
    )


class NotionClient:
    """
    Notion API の薄いラッパークライアント。

    - 設定値は NotionConfig で受け取る（未指定なら環境変数から構築）
    - HTTP エラーは NotionClientError のサブクラスに変換する
    - 一時的なエラー（通信失敗 / 429 / 5xx）は設定回数までリトライする
    """

    def __init__(self, config: Optional[NotionConfig] = None) -> None:
        self.config = config or get_notion_config()

    def _build_headers(self) -> Dict[str, str]:
        """
        Notion API 呼び出しに必要なヘッダーを構築。
        """
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Notion-Version": self.config.api_version,
            "Content-Type": "application/json",
        }

    @staticmethod
    def _parse_error_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _raise_for_status(self, response: httpx.Response) -> None:
        """
        Notion のエラーコード / HTTP ステータスに応じて適切な例外を投げる。

        - object_not_found / 404                      -> NotionNotFoundError
        - unauthorized / restricted_resource / 401, 403 -> NotionAccessDeniedError
        - それ以外                                      -> NotionGenericError
        """
        status_code = response.status_code
        if status_code < 400:
            return

        body = self._parse_error_body(response)
        code = body.get("code") if isinstance(body.get("code"), str) else None
        message = body.get("message")
        if not isinstance(message, str) or not message:
            message = f"Notion API error: {status_code} {response.text}".strip()

        if code == "object_not_found" or status_code == 404:
            raise NotionNotFoundError(message)
        if code in ("unauthorized", "restricted_resource") or status_code in (401, 403):
            raise NotionAccessDeniedError(message)
        raise NotionGenericError(message, status_code=status_code, code=code)

    def _send(
        self,
        method: str,
        url: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        try:
            response = httpx.request(
                method,
                url,
                headers=self._build_headers(),
                json=json,
                params=params,
                timeout=self.config.timeout_seconds,
            )
        except httpx.RequestError as exc:
            raise NotionConnectionError(f"Failed to call Notion API: {exc}") from exc

        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise NotionGenericError(
                "Unexpected Notion API response format: body is not JSON.",
                status_code=response.status_code,
            ) from exc

        if not isinstance(data, dict):
            raise NotionGenericError(
                "Unexpected Notion API response format: body is not an object.",
                status_code=response.status_code,
            )
        return data

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        リトライ付きで Notion API を呼び出し、JSON オブジェクトを返す。
        """
        wait = self.config.retry_wait_seconds
        retrying = Retrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(multiplier=wait, max=wait * 8) + wait_random(0, wait),
            retry=retry_if_exception(_is_transient),
            before_sleep=_log_retry,
            reraise=True,
        )
        url = f"{self.config.api_base_url}{path}"
        return retrying(self._send, method, url, json=json, params=params)

    @staticmethod
    def _results_of(data: Dict[str, Any]) -> List[Dict[str, Any]]:
        results = data.get("results", [])
        if not isinstance(results, list):
            raise NotionGenericError(
                "Unexpected Notion API response format: 'results' is not a list."
            )
        return results

    def list_users(self) -> List[Dict[str, Any]]:
        """
        ワークスペースのユーザー一覧を取得する。

        インテグレーションのトークンが有効かどうかの確認に使う。
        """
        return self._results_of(self._request("GET", "/users"))

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        """データベースのメタ情報を取得する。"""
        return self._request("GET", f"/databases/{database_id}")

    def query_database(
        self,
        database_id: str,
        sorts: Optional[List[Dict[str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        データベースを query し、Notion API の生のページオブジェクトのリストを返す。

        ページネーションは行わない（先頭ページのみ）。
        上位レイヤー（service.py）で内部モデルに変換する。
        """
        payload: Dict[str, Any] = {}
        if sorts:
            payload["sorts"] = sorts

        data = self._request(
            "POST",
            f"/databases/{database_id}/query",
            json=payload,
        )
        return self._results_of(data)

    def retrieve_page(self, page_id: str) -> Dict[str, Any]:
        """ページ（プロパティ込み）を 1 件取得する。"""
        return self._request("GET", f"/pages/{page_id}")

    def list_block_children(self, block_id: str) -> List[Dict[str, Any]]:
        """
        ブロックの直下の子ブロックを取得する。

        ネストした子ブロックは展開しない。
        """
        data = self._request(
            "GET",
            f"/blocks/{block_id}/children",
            params={"page_size": 100},
        )
        return self._results_of(data)

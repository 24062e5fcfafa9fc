# backend/app/notion/link_preview.py

"""
bookmark / embed ブロック用のリンクプレビュー情報を取得するモジュール。

対象ページの Open Graph メタタグ（無ければ <title> / meta description）を読む。
取得に失敗した場合は None を返し、呼び出し側は URL だけのカードにフォールバックする。
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# 読み込む本文の上限（バイト）
_MAX_BYTES = 256 * 1024

_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


@dataclass(frozen=True)
class LinkMetadata:
    """リンクプレビューに表示する情報。"""

    url: str
    title: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None


def _meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find(
            "meta", attrs={"name": name}
        )
        if tag is not None:
            content = tag.get("content")
            if isinstance(content, str) and content.strip():
                return content.strip()
    return None


def parse_link_metadata(url: str, html: str) -> LinkMetadata:
    """
    HTML 文字列から LinkMetadata を組み立てる。
    """
    soup = BeautifulSoup(html, "html.parser")

    title = _meta_content(soup, "og:title", "twitter:title")
    if title is None and soup.title is not None and soup.title.string:
        title = soup.title.string.strip() or None

    description = _meta_content(soup, "og:description", "twitter:description", "description")

    image_url = _meta_content(soup, "og:image", "twitter:image")
    if image_url is not None:
        # 相対パスの og:image も許容する
        image_url = urljoin(url, image_url)

    return LinkMetadata(
        url=url,
        title=title,
        description=description,
        image_url=image_url,
    )


class LinkMetadataFetcher:
    """
    URL を取得して LinkMetadata を返す callable。

    ContentRenderer に渡して使う。
    本文は max_bytes までしか読まず、全体で timeout 秒を超えたら読み込みを打ち切る。
    メタタグは <head> にあるので、先頭だけで足りる。
    """

    def __init__(self, timeout: float = 5.0, max_bytes: int = _MAX_BYTES) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes

    def _read_head(self, url: str, response: httpx.Response) -> bytes:
        deadline = time.monotonic() + self._timeout
        buffer = bytearray()
        for chunk in response.iter_bytes():
            buffer.extend(chunk)
            if len(buffer) >= self._max_bytes:
                break
            if time.monotonic() > deadline:
                logger.debug("Link preview read hit deadline. url=%s", url)
                break
        return bytes(buffer[: self._max_bytes])

    def __call__(self, url: str) -> Optional[LinkMetadata]:
        if urlparse(url).scheme not in ("http", "https"):
            return None

        try:
            with httpx.stream(
                "GET",
                url,
                headers={"User-Agent": _USER_AGENT},
                timeout=self._timeout,
                follow_redirects=True,
            ) as response:
                if response.status_code != 200:
                    logger.debug(
                        "Link preview fetch returned non-200. url=%s status=%s",
                        url,
                        response.status_code,
                    )
                    return None

                content_type = response.headers.get("content-type", "")
                if "html" not in content_type:
                    return None

                raw = self._read_head(url, response)
                encoding = response.encoding or "utf-8"
        except (httpx.HTTPError, httpx.StreamError) as exc:
            logger.debug("Link preview fetch failed. url=%s error=%s", url, exc)
            return None

        return parse_link_metadata(url, raw.decode(encoding, errors="replace"))

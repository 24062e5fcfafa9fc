# backend/app/notion/normalizer.py

"""
Notion ページ（プロパティ名・型がデータベースごとに揺れる）を
BlogPost に正規化するモジュール。

各フィールドは FIELD_SOURCES の候補を先頭から順に試し、
最初に値が取れたものを採用する。どれも無ければ既定値で埋める。
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .schemas import BlogPost

Extractor = Callable[[Dict[str, Any]], Any]
PropertyRef = Tuple[str, Extractor]

DEFAULT_TITLE = "Untitled"
DEFAULT_LIST_TITLE = "Untitled Post {position}"
DEFAULT_LIST_DESCRIPTION = "No description available"
DEFAULT_CATEGORY = "General"
DEFAULT_AUTHOR = "Anonymous"
DEFAULT_READ_TIME = 5
DEFAULT_STATUS = "Published"
PUBLISHED_STATUS = "published"


def _extract_plain_text(prop: Dict[str, Any]) -> Optional[str]:
    """
    title / rich_text プロパティからプレーンテキストを抽出する。

    複数セグメントに分かれている場合は全て連結する。
    """
    for key in ("title", "rich_text"):
        segments = prop.get(key)
        if not isinstance(segments, list):
            continue
        text = "".join(
            segment.get("plain_text", "")
            for segment in segments
            if isinstance(segment, dict) and isinstance(segment.get("plain_text"), str)
        )
        if text:
            return text
    return None


def _extract_select_name(prop: Dict[str, Any]) -> Optional[str]:
    """
    select プロパティ（Notion ネイティブの status 型も含む）から name を抽出する。
    """
    for key in ("select", "status"):
        option = prop.get(key)
        if isinstance(option, dict):
            name = option.get("name")
            if isinstance(name, str):
                return name
    return None


def _extract_multi_select_names(prop: Dict[str, Any]) -> Optional[List[str]]:
    """
    multi_select プロパティから name の一覧を抽出する。

    プロパティ自体が存在すれば、空リストでも「値あり」とみなす。
    """
    options = prop.get("multi_select")
    if not isinstance(options, list):
        return None

    names: List[str] = []
    for option in options:
        if not isinstance(option, dict):
            continue
        name = option.get("name")
        if isinstance(name, str) and name and name not in names:
            names.append(name)
    return names


def _extract_date_start(prop: Dict[str, Any]) -> Optional[str]:
    date = prop.get("date")
    if isinstance(date, dict) and isinstance(date.get("start"), str):
        return date["start"]
    return None


def _extract_created_time(prop: Dict[str, Any]) -> Optional[str]:
    value = prop.get("created_time")
    return value if isinstance(value, str) else None


def _extract_first_person_name(prop: Dict[str, Any]) -> Optional[str]:
    people = prop.get("people")
    if isinstance(people, list) and people and isinstance(people[0], dict):
        name = people[0].get("name")
        if isinstance(name, str):
            return name
    return None


def _file_url(entry: Any, kind: str) -> Optional[str]:
    if not isinstance(entry, dict):
        return None
    hosted = entry.get(kind)
    if isinstance(hosted, dict) and isinstance(hosted.get("url"), str):
        return hosted["url"]
    return None


def _extract_hosted_file_url(prop: Dict[str, Any]) -> Optional[str]:
    files = prop.get("files")
    if isinstance(files, list) and files:
        return _file_url(files[0], "file")
    return None


def _extract_external_file_url(prop: Dict[str, Any]) -> Optional[str]:
    files = prop.get("files")
    if isinstance(files, list) and files:
        return _file_url(files[0], "external")
    return None


def _extract_positive_int(prop: Dict[str, Any]) -> Optional[int]:
    """
    number プロパティから正の整数を抽出する。0 以下は値なし扱い。
    """
    value = prop.get("number")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = int(value)
    return number if number > 0 else None


# 正規化後のフィールド名 -> 参照するプロパティ候補（優先順）
FIELD_SOURCES: Dict[str, List[PropertyRef]] = {
    "title": [
        ("Title", _extract_plain_text),
        ("Name", _extract_plain_text),
        ("title", _extract_plain_text),
    ],
    "description": [
        ("Description", _extract_plain_text),
        ("Summary", _extract_plain_text),
        ("Excerpt", _extract_plain_text),
    ],
    "category": [
        ("Category", _extract_select_name),
        ("Type", _extract_select_name),
    ],
    "tags": [
        ("Tags", _extract_multi_select_names),
        ("Categories", _extract_multi_select_names),
    ],
    "published_date": [
        ("Published", _extract_date_start),
        ("Date", _extract_date_start),
        ("Created", _extract_created_time),
    ],
    "author": [
        ("Author", _extract_first_person_name),
        ("Creator", _extract_first_person_name),
        ("Writer", _extract_first_person_name),
    ],
    "cover_image": [
        ("Cover", _extract_hosted_file_url),
        ("Cover", _extract_external_file_url),
        ("Image", _extract_hosted_file_url),
        ("Image", _extract_external_file_url),
    ],
    "read_time": [
        ("ReadTime", _extract_positive_int),
        ("Read Time", _extract_positive_int),
        ("Duration", _extract_positive_int),
    ],
    "status": [
        ("Status", _extract_select_name),
    ],
    "slug": [
        ("Slug", _extract_plain_text),
    ],
}


def first_present(
    properties: Dict[str, Any],
    candidates: Sequence[PropertyRef],
) -> Any:
    """
    候補を先頭から順に試し、最初に取れた値を返す。

    None と空文字は「値なし」として次の候補へ進む。
    どの候補からも取れなければ None を返す。
    """
    for name, extractor in candidates:
        prop = properties.get(name)
        if not isinstance(prop, dict):
            continue
        value = extractor(prop)
        if value is None or value == "":
            continue
        return value
    return None


def _page_cover_url(page: Dict[str, Any]) -> Optional[str]:
    cover = page.get("cover")
    return _file_url(cover, "file") or _file_url(cover, "external")


def normalize_page(
    page: Dict[str, Any],
    *,
    position: Optional[int] = None,
) -> BlogPost:
    """
    Notion のページオブジェクトを BlogPost に変換する。

    :param page: Notion API の生のページオブジェクト
    :param position: 一覧取得時の 1 始まりの位置。指定時は一覧用の既定値
                     （"Untitled Post N" など）を使う。
    """
    page_id = str(page.get("id", ""))
    properties: Dict[str, Any] = page.get("properties") or {}

    def resolve(field: str) -> Any:
        return first_present(properties, FIELD_SOURCES[field])

    if position is not None:
        default_title = DEFAULT_LIST_TITLE.format(position=position)
        default_description = DEFAULT_LIST_DESCRIPTION
    else:
        default_title = DEFAULT_TITLE
        default_description = ""

    published_date = (
        resolve("published_date")
        or page.get("created_time")
        or datetime.now(timezone.utc).isoformat()
    )

    return BlogPost(
        id=page_id,
        title=resolve("title") or default_title,
        description=resolve("description") or default_description,
        category=resolve("category") or DEFAULT_CATEGORY,
        tags=resolve("tags") or [],
        published_date=published_date,
        status=resolve("status") or DEFAULT_STATUS,
        author=resolve("author") or DEFAULT_AUTHOR,
        cover_image=resolve("cover_image") or _page_cover_url(page),
        read_time=resolve("read_time") or DEFAULT_READ_TIME,
        slug=resolve("slug") or page_id,
    )


def is_published(post: BlogPost) -> bool:
    """
    一覧に含めるかどうか。Status が空、または "published"（大文字小文字無視）なら True。
    """
    status = (post.status or "").strip()
    return not status or status.lower() == PUBLISHED_STATUS


def published_sort_key(post: BlogPost) -> datetime:
    """
    公開日の降順ソート用キー。日付のみの値は UTC の 0 時として扱う。
    パースできない値は最も古い扱いにする。
    """
    try:
        value = datetime.fromisoformat(post.published_date.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value

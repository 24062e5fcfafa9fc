# backend/app/notion/renderer.py

"""
Notion のブロック列を 1 つの HTML 文字列に変換するレンダラー。

- ブロック種別 -> レンダリング関数 のレジストリで描画を切り替える
- 未知のブロックはテキストだけ描画する（テキストが無ければ出力しない）
- 1 ブロックの描画失敗は他のブロックに影響させない
- 子ブロック（has_children）は展開しない
"""

import logging
import re
from html import escape
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.lexers.special import TextLexer
from pygments.util import ClassNotFound

from .link_preview import LinkMetadata

logger = logging.getLogger(__name__)

EMPTY_CONTENT_HTML = "<p>This page has no content.</p>"
UNRENDERABLE_CONTENT_HTML = "<p>Content could not be rendered.</p>"

BlockRenderer = Callable[[Dict[str, Any], "ContentRenderer"], str]
LinkMetadataLookup = Callable[[str], Optional[LinkMetadata]]

# 連続するリスト項目をまとめるタグ
LIST_WRAPPERS: Dict[str, str] = {
    "bulleted_list_item": "ul",
    "numbered_list_item": "ol",
}

# href / src として出力してよいスキーム（"" は相対 URL）
_SAFE_URL_SCHEMES = frozenset({"", "http", "https", "mailto"})

# ブラウザがスキーム解釈時に無視する制御文字・空白
_URL_IGNORED_CHARS = re.compile(r"[\x00-\x20\x7f]")

# Notion の言語名のうち Pygments のエイリアスと一致しないもの
_LANGUAGE_ALIASES: Dict[str, str] = {
    "plain text": "text",
    "markup": "html",
    "vb.net": "vbnet",
    "java/c/c++/c#": "text",
    "webassembly": "wast",
}

_CODE_FORMATTER = HtmlFormatter(nowrap=True)


def _safe_text(value: Any) -> str:
    if value is None:
        return ""
    return escape(str(value), quote=True)


def _safe_url(url: Any) -> Optional[str]:
    """
    リンク / メディアの URL を検査し、許可されたスキームなら返す。

    javascript: / data: など許可されていないスキームは None を返す。
    """
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        scheme = urlparse(_URL_IGNORED_CHARS.sub("", url)).scheme.lower()
    except ValueError:
        return None
    return url if scheme in _SAFE_URL_SCHEMES else None


def _block_data(block: Dict[str, Any]) -> Dict[str, Any]:
    data = block.get(block["type"])
    return data if isinstance(data, dict) else {}


def plain_text(segments: Any) -> str:
    """rich_text 配列の plain_text を連結して返す（エスケープなし）。"""
    if not isinstance(segments, list):
        return ""
    return "".join(
        segment.get("plain_text", "")
        for segment in segments
        if isinstance(segment, dict) and isinstance(segment.get("plain_text"), str)
    )


def render_rich_text(segments: Any) -> str:
    """
    rich_text 配列を HTML に変換する。

    annotations（太字・斜体・取り消し線・下線・コード・色）とリンクを反映する。
    """
    if not isinstance(segments, list):
        return ""

    parts: List[str] = []
    for segment in segments:
        if not isinstance(segment, dict):
            continue

        text = _safe_text(segment.get("plain_text", ""))
        if not text:
            continue

        if segment.get("type") == "equation":
            parts.append(f'<code class="notion-equation">{text}</code>')
            continue

        annotations = segment.get("annotations") or {}
        if annotations.get("code"):
            text = f"<code>{text}</code>"
        else:
            text = text.replace("\n", "<br />")
        if annotations.get("bold"):
            text = f"<strong>{text}</strong>"
        if annotations.get("italic"):
            text = f"<em>{text}</em>"
        if annotations.get("strikethrough"):
            text = f"<s>{text}</s>"
        if annotations.get("underline"):
            text = f"<u>{text}</u>"

        color = annotations.get("color")
        if isinstance(color, str) and color and color != "default":
            text = f'<span class="notion-color-{_safe_text(color)}">{text}</span>'

        href = _safe_url(segment.get("href"))
        if href:
            text = f'<a href="{_safe_text(href)}">{text}</a>'

        parts.append(text)

    return "".join(parts)


def _file_source(data: Dict[str, Any]) -> Optional[str]:
    for kind in ("file", "external"):
        source = data.get(kind)
        if isinstance(source, dict) and isinstance(source.get("url"), str):
            return _safe_url(source["url"])
    return None


def _caption_html(data: Dict[str, Any]) -> str:
    caption = render_rich_text(data.get("caption"))
    return f"<figcaption>{caption}</figcaption>" if caption else ""


# ---- ブロック別レンダラー --------------------------------------------


def render_paragraph(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    text = render_rich_text(_block_data(block).get("rich_text"))
    return f"<p>{text}</p>" if text else ""


def render_heading(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    level = block["type"].rsplit("_", 1)[-1]
    text = render_rich_text(_block_data(block).get("rich_text"))
    return f"<h{level}>{text}</h{level}>" if text else ""


def render_list_item(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    return f"<li>{render_rich_text(_block_data(block).get('rich_text'))}</li>"


def render_to_do(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    data = _block_data(block)
    checked = " checked" if data.get("checked") else ""
    text = render_rich_text(data.get("rich_text"))
    return (
        '<div class="notion-to-do">'
        f'<input type="checkbox" disabled{checked} /> <span>{text}</span>'
        "</div>"
    )


def render_toggle(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    text = render_rich_text(_block_data(block).get("rich_text"))
    return f"<details><summary>{text}</summary></details>"


def render_quote(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    text = render_rich_text(_block_data(block).get("rich_text"))
    return f"<blockquote>{text}</blockquote>"


def render_callout(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    data = _block_data(block)
    icon = data.get("icon") or {}
    icon_html = ""
    if icon.get("type") == "emoji":
        icon_html = f'<span class="notion-callout-icon">{_safe_text(icon.get("emoji"))}</span>'
    text = render_rich_text(data.get("rich_text"))
    return f'<div class="notion-callout">{icon_html}<div>{text}</div></div>'


def render_divider(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    return "<hr />"


def render_code(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    """
    code ブロックを Pygments でハイライトして描画する。
    """
    data = _block_data(block)
    language = str(data.get("language") or "plain text").lower()
    source = plain_text(data.get("rich_text"))

    try:
        lexer = get_lexer_by_name(_LANGUAGE_ALIASES.get(language, language))
    except ClassNotFound:
        lexer = TextLexer()

    highlighted = highlight(source, lexer, _CODE_FORMATTER)
    css_language = _safe_text(language.replace(" ", "-"))
    return (
        f'<pre class="notion-code"><code class="language-{css_language}">'
        f"{highlighted}</code></pre>{_caption_html(data)}"
    )


def render_image(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    data = _block_data(block)
    src = _file_source(data)
    if not src:
        return ""
    alt = _safe_text(plain_text(data.get("caption")))
    return (
        f'<figure class="notion-image"><img src="{_safe_text(src)}" alt="{alt}" />'
        f"{_caption_html(data)}</figure>"
    )


def render_video(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    data = _block_data(block)
    src = _file_source(data)
    if not src:
        return ""
    return (
        f'<figure class="notion-video"><video controls src="{_safe_text(src)}"></video>'
        f"{_caption_html(data)}</figure>"
    )


def render_file(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    data = _block_data(block)
    src = _file_source(data)
    if not src:
        return ""
    name = data.get("name") or plain_text(data.get("caption")) or src
    return (
        f'<div class="notion-file"><a href="{_safe_text(src)}">{_safe_text(name)}</a></div>'
    )


def render_link_preview(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    """
    bookmark / embed / link_preview をリンクプレビューカードとして描画する。
    """
    data = _block_data(block)
    url = data.get("url")
    if not isinstance(url, str) or not url:
        return ""
    if _safe_url(url) is None:
        # リンクにはせずテキストとして表示する
        return f"<p>{_safe_text(url)}</p>"

    metadata = renderer.lookup_link_metadata(url)
    hostname = urlparse(url).netloc or url

    title = (metadata.title if metadata else None) or url
    body = [f'<div class="notion-bookmark-title">{_safe_text(title)}</div>']
    if metadata and metadata.description:
        body.append(
            f'<div class="notion-bookmark-description">{_safe_text(metadata.description)}</div>'
        )
    body.append(f'<div class="notion-bookmark-link">{_safe_text(hostname)}</div>')

    image = ""
    image_url = _safe_url(metadata.image_url) if metadata else None
    if image_url:
        image = f'<img class="notion-bookmark-image" src="{_safe_text(image_url)}" alt="" />'

    return (
        f'<figure class="notion-bookmark">'
        f'<a href="{_safe_text(url)}" target="_blank" rel="noopener noreferrer">'
        f'<div class="notion-bookmark-content">{"".join(body)}</div>{image}</a>'
        f"{_caption_html(data)}</figure>"
    )


def render_equation(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    expression = _safe_text(_block_data(block).get("expression"))
    return f'<div class="notion-equation"><code>{expression}</code></div>' if expression else ""


def render_child_page(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    title = _safe_text(_block_data(block).get("title"))
    return f'<p class="notion-{block["type"].replace("_", "-")}">{title}</p>' if title else ""


def render_unknown(block: Dict[str, Any], renderer: "ContentRenderer") -> str:
    """
    未対応のブロック。rich_text があればプレーンな段落として描画する。
    """
    text = render_rich_text(_block_data(block).get("rich_text"))
    return f"<p>{text}</p>" if text else ""


DEFAULT_RENDERERS: Dict[str, BlockRenderer] = {
    "paragraph": render_paragraph,
    "heading_1": render_heading,
    "heading_2": render_heading,
    "heading_3": render_heading,
    "bulleted_list_item": render_list_item,
    "numbered_list_item": render_list_item,
    "to_do": render_to_do,
    "toggle": render_toggle,
    "quote": render_quote,
    "callout": render_callout,
    "divider": render_divider,
    "code": render_code,
    "image": render_image,
    "video": render_video,
    "file": render_file,
    "pdf": render_file,
    "embed": render_link_preview,
    "bookmark": render_link_preview,
    "link_preview": render_link_preview,
    "equation": render_equation,
    "child_page": render_child_page,
    "child_database": render_child_page,
}


class ContentRenderer:
    """
    ブロック列 -> HTML 文字列 のレンダラー。

    - register() でブロック種別ごとのレンダラーを追加 / 差し替えできる
    - link_metadata_lookup を渡すと bookmark 等に OGP 情報を表示する
    """

    def __init__(
        self,
        *,
        link_metadata_lookup: Optional[LinkMetadataLookup] = None,
        fallback: BlockRenderer = render_unknown,
    ) -> None:
        self._renderers: Dict[str, BlockRenderer] = dict(DEFAULT_RENDERERS)
        self._fallback = fallback
        self._link_metadata_lookup = link_metadata_lookup

    def register(self, block_type: str, renderer: BlockRenderer) -> None:
        self._renderers[block_type] = renderer

    def lookup_link_metadata(self, url: str) -> Optional[LinkMetadata]:
        if self._link_metadata_lookup is None:
            return None
        try:
            return self._link_metadata_lookup(url)
        except Exception as exc:  # noqa: BLE001 - プレビュー取得失敗は URL だけのカードにする
            logger.warning("Link metadata lookup failed. url=%s error=%s", url, exc)
            return None

    def render_block(self, block: Dict[str, Any]) -> str:
        """1 ブロックを描画する。失敗時の例外はそのまま送出する。"""
        renderer = self._renderers.get(block["type"], self._fallback)
        return renderer(block, self)

    def render(self, blocks: Sequence[Dict[str, Any]]) -> str:
        """
        ブロック列を描画し、1 つの HTML 文字列として返す。

        - 空のブロック列 -> EMPTY_CONTENT_HTML
        - 全ブロックが描画結果なし -> UNRENDERABLE_CONTENT_HTML
        """
        blocks = list(blocks)
        if not blocks:
            return EMPTY_CONTENT_HTML

        parts: List[str] = []
        open_list: Optional[str] = None

        for index, block in enumerate(blocks):
            try:
                html = self.render_block(block)
                wrapper = LIST_WRAPPERS.get(block["type"])
            except Exception as exc:  # noqa: BLE001 - 1 ブロックの失敗で全体を止めない
                logger.warning(
                    "Failed to render block; skipping. index=%s id=%s error=%s",
                    index,
                    block.get("id", "unknown") if isinstance(block, dict) else "unknown",
                    exc,
                )
                continue

            if not html:
                continue

            if wrapper != open_list:
                if open_list:
                    parts.append(f"</{open_list}>")
                if wrapper:
                    parts.append(f"<{wrapper}>")
                open_list = wrapper
            parts.append(html)

        if open_list:
            parts.append(f"</{open_list}>")

        if not parts:
            return UNRENDERABLE_CONTENT_HTML
        return "\n".join(parts)

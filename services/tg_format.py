import html
import re
from typing import Iterable, List


def tg_escape(text: object) -> str:
    return html.escape("" if text is None else str(text), quote=True)


def tg_bold(text: object) -> str:
    return f"<b>{tg_escape(text)}</b>"


def tg_kv(label: object, value: object) -> str:
    return f"<b>{tg_escape(label)}:</b> {tg_escape(value)}"


def tg_list(items: Iterable[object]) -> str:
    lines: List[str] = []
    for item in items:
        text = str(item or "").strip()
        if text:
            lines.append(f"• {tg_escape(text)}")
    return "\n".join(lines)


def tg_to_plain(html_text: str) -> str:
    no_tags = re.sub(r"<[^>]+>", "", html_text or "")
    return html.unescape(no_tags).strip()


def tg_render_answer(text: object) -> str:
    """Turn model markdown into escaped Telegram HTML."""
    raw = str(text or "").strip()
    if not raw:
        return ""

    cleaned = raw.replace("\r\n", "\n")
    cleaned = re.sub(r"`{1,3}", "", cleaned)
    cleaned = re.sub(r"^#{1,6}\s*", "", cleaned, flags=re.MULTILINE)
    cleaned = re.sub(r"\[(.*?)\]\((.*?)\)", r"\1", cleaned)

    out_lines: List[str] = []
    bullet_re = re.compile(r"^[-*•]\s+(.+)$")
    bold_re = re.compile(r"\*\*(.+?)\*\*|__(.+?)__")
    for line in cleaned.split("\n"):
        value = line.strip()
        if not value:
            if out_lines and out_lines[-1] != "":
                out_lines.append("")
            continue

        bullet_match = bullet_re.match(value)
        prefix = ""
        if bullet_match:
            prefix = "• "
            value = bullet_match.group(1).strip()

        # Escape first, then restore bold spans as <b> tags.
        escaped = tg_escape(value)
        escaped = bold_re.sub(lambda m: f"<b>{m.group(1) or m.group(2)}</b>", escaped)
        out_lines.append(f"{prefix}{escaped}")

    while out_lines and out_lines[0] == "":
        out_lines.pop(0)
    while out_lines and out_lines[-1] == "":
        out_lines.pop()

    return "\n".join(out_lines).strip()

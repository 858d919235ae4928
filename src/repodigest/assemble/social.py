"""
Public (build-in-public) renderers for X and Threads.
"""
from typing import Dict, List

from repodigest.assemble.splitter import split_thread
from repodigest.schemas import Digest, WorkUnit

DEFAULT_MAX_LENGTH = 280
TONES = ("calm", "playful", "hacker", "formal")

X_HEADERS: Dict[str, Dict[str, str]] = {
    "en": {
        "calm": "Daily update {date}",
        "playful": "Ship log for {date}",
        "hacker": "Build log {date}",
        "formal": "Status report {date}",
    },
    "zh-TW": {
        "calm": "每日更新 {date}",
        "playful": "今日出貨紀錄 {date}",
        "hacker": "建置紀錄 {date}",
        "formal": "狀態報告 {date}",
    },
}

THREADS_INTROS: Dict[str, Dict[str, str]] = {
    "en": {
        "calm": "Public progress update ({date})",
        "playful": "Build in public update ({date})",
        "hacker": "Public build log ({date})",
        "formal": "Progress report ({date})",
    },
    "zh-TW": {
        "calm": "今日公開進度 ({date})",
        "playful": "今天的 build in public 更新 ({date})",
        "hacker": "公開建置紀錄 {date}",
        "formal": "進度公開報告 ({date})",
    },
}

SECTION_LABELS: Dict[str, Dict[str, str]] = {
    "en": {
        "due_today": "Due Today",
        "done": "Done",
        "in_progress": "In Progress",
        "blocked": "Blocked",
        "next": "Next",
    },
    "zh-TW": {
        "due_today": "今日到期",
        "done": "已完成",
        "in_progress": "進行中",
        "blocked": "阻塞",
        "next": "下一步",
    },
}

SECTION_ORDER = ("due_today", "done", "in_progress", "blocked", "next")
NO_UPDATES = {"en": "- No updates", "zh-TW": "- 目前沒有更新"}


def _normalize_lang(lang: str) -> str:
    # "both" renders the English variant
    return "zh-TW" if lang == "zh-TW" else "en"


def _normalize_tone(tone: str) -> str:
    return tone if tone in TONES else "calm"


def _stats_line(digest: Digest, lang: str) -> str:
    stats = digest.stats
    if lang == "zh-TW":
        return (f"統計：完成 {stats.done}，進行中 {stats.in_progress}，"
                f"阻塞 {stats.blocked}，今日到期 {stats.due_today}")
    return (f"Stats: done {stats.done}, in progress {stats.in_progress}, "
            f"blocked {stats.blocked}, due today {stats.due_today}")


def _compact_titles(units: List[WorkUnit], max_items: int = 4) -> str:
    titles = [unit.title.strip() for unit in units[:max_items] if unit.title.strip()]
    return "; ".join(titles) if titles else "-"


def render_x_digest(
    digest: Digest,
    tone: str = "calm",
    lang: str = "en",
    max_length: int = DEFAULT_MAX_LENGTH,
    numbering: bool = True,
    include_metrics: bool = True,
) -> List[str]:
    """
    Render a digest as an X thread.

    Every returned block is at most `max_length` characters; with numbering
    and more than one block, each ends with `(i/N)`.
    """
    lang = _normalize_lang(lang)
    tone = _normalize_tone(tone)

    segments = [X_HEADERS[lang][tone].format(date=digest.date)]
    if include_metrics:
        segments.append(_stats_line(digest, lang))
    for field in SECTION_ORDER:
        label = SECTION_LABELS[lang][field]
        segments.append(f"{label}: {_compact_titles(getattr(digest.sections, field))}")

    return split_thread(segments, max_length, numbering=numbering)


def _threads_section(label: str, units: List[WorkUnit], lang: str, max_items: int = 5) -> str:
    if not units:
        return "\n".join([label, NO_UPDATES[lang]])
    lines = [label]
    for unit in units[:max_items]:
        summary = f" ({unit.highlights[0]})" if unit.highlights else ""
        lines.append(f"- {unit.title}{summary}")
    return "\n".join(lines)


def render_threads_digest(
    digest: Digest,
    tone: str = "calm",
    lang: str = "en",
    include_metrics: bool = True,
) -> List[str]:
    """Render a digest as Threads posts: intro, optional stats, one post per section."""
    lang = _normalize_lang(lang)
    tone = _normalize_tone(tone)

    blocks = [THREADS_INTROS[lang][tone].format(date=digest.date)]
    if include_metrics:
        blocks.append(_stats_line(digest, lang))
    for field in SECTION_ORDER:
        blocks.append(_threads_section(SECTION_LABELS[lang][field],
                                       getattr(digest.sections, field), lang))
    return blocks

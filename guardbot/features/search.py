# Copyright (c) 2025 sprowii
"""Веб-поиск и поиск видео через DuckDuckGo."""

from dataclasses import dataclass
from typing import List

from duckduckgo_search import DDGS

from guardbot.logging_config import log

MAX_RESULTS = 3


@dataclass
class SearchHit:
    title: str
    url: str


class SearchService:
    """Синхронная обёртка над DDGS; из бота вызывается через run_in_executor."""

    def __init__(self, max_results: int = MAX_RESULTS, safesearch: str = "off"):
        self.max_results = max_results
        self.safesearch = safesearch

    def web_search(self, query: str) -> List[SearchHit]:
        with DDGS() as ddgs:
            results = ddgs.text(query, safesearch=self.safesearch, max_results=self.max_results) or []
        hits = [SearchHit(title=item.get("title", ""), url=item.get("href", "")) for item in results]
        log.info(f"Web search returned {len(hits)} results")
        return hits[: self.max_results]

    def video_search(self, query: str) -> List[SearchHit]:
        with DDGS() as ddgs:
            results = ddgs.videos(query, safesearch=self.safesearch, max_results=self.max_results) or []
        hits = [
            SearchHit(title=item.get("title", ""), url=item.get("content") or item.get("embed_url", ""))
            for item in results
        ]
        log.info(f"Video search returned {len(hits)} results")
        return hits[: self.max_results]


def format_web_results(query: str, hits: List[SearchHit]) -> str:
    reply = f"*Web Search – _{query}_*\n\n"
    if hits:
        reply += "\n\n".join(f"• *{hit.title}*\n{hit.url}" for hit in hits[:MAX_RESULTS])
    else:
        reply += "_No results found._"
    return reply


def format_video_results(query: str, hits: List[SearchHit]) -> str:
    if not hits:
        return f"YouTube – _{query}_\n\n_No results found._"
    top = "\n\n".join(f"*{hit.title}*\n{hit.url}" for hit in hits[:MAX_RESULTS])
    return f"YouTube – _{query}_\n\n{top}"

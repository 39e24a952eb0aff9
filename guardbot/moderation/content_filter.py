# Copyright (c) 2025 sprowii
from dataclasses import dataclass
from typing import Iterable, List, Optional

from guardbot import config


# Смешанный список: латиница, транслит урду и арабская графика
DEFAULT_BAD_WORDS: List[str] = [
    "g***",
    "s***",
    "b***",
    "fuck",
    "shit",
    "gali",
    "lanat",
    "haram",
    "chutiya",
    "kutte",
    "madarchod",
    "گالی",
    "حرام",
    "گالی دینا",
]


@dataclass
class FilterCheckResult:
    """Результат проверки текста на запрещённые слова."""
    is_filtered: bool
    matched_word: Optional[str] = None

    @property
    def reason(self) -> str:
        """Причина фильтрации для логирования."""
        if self.matched_word:
            return f"filter:{self.matched_word}"
        return "filter"


class ProfanityFilter:
    """Лексический фильтр ненормативной лексики.

    Регистронезависимый поиск подстроки по фиксированному списку.
    Без состояния и без побочных эффектов, никогда не бросает исключений.
    Границы слов намеренно не учитываются: арабская графика и
    транслит пишутся слитно с соседними словами.
    """

    def __init__(self, words: Optional[Iterable[str]] = None):
        """
        Args:
            words: Список слов. По умолчанию DEFAULT_BAD_WORDS + EXTRA_BAD_WORDS из конфига
        """
        source = list(words) if words is not None else DEFAULT_BAD_WORDS + config.EXTRA_BAD_WORDS
        seen = set()
        self._words: List[str] = []
        for word in source:
            normalized = (word or "").strip().lower()
            if normalized and normalized not in seen:
                seen.add(normalized)
                self._words.append(normalized)

    @property
    def words(self) -> List[str]:
        return list(self._words)

    def check(self, text: Optional[str]) -> FilterCheckResult:
        """Проверить текст на наличие запрещённых слов.

        Args:
            text: Текст для проверки (может быть None)

        Returns:
            FilterCheckResult с первым найденным словом
        """
        if not text:
            return FilterCheckResult(is_filtered=False)

        lowered = text.lower()
        for word in self._words:
            if word in lowered:
                return FilterCheckResult(is_filtered=True, matched_word=word)
        return FilterCheckResult(is_filtered=False)

    def is_flagged(self, text: Optional[str]) -> bool:
        return self.check(text).is_filtered


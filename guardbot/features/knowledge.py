# Copyright (c) 2025 sprowii
"""Ответы на вопросы по статическому документу вопрос-ответ (`!info`)."""

import json
from dataclasses import dataclass
from difflib import SequenceMatcher
from pathlib import Path
from typing import List, Optional

from guardbot import config
from guardbot.llm.classifier import ClassificationClient
from guardbot.logging_config import log

NOT_FOUND_ANSWER = "I couldn’t find that information in the provided document."

REPHRASE_PROMPT = """
You are a university-help assistant. Answer **only** using the supplied document.
Relevant Q/A:
Q: {question}
A: {answer}

User asked: "{user_question}"
Rephrase the answer naturally, keep it short, and do NOT add external info.
If unsure, say: "I only know what is in the document."
""".strip()


@dataclass
class QAPair:
    question: str
    answer: str


@dataclass
class MatchResult:
    pair: Optional[QAPair]
    rating: float


def load_qa_pairs(path: str = config.QA_PAIRS_PATH) -> List[QAPair]:
    """Загружает пары вопрос-ответ из JSON. При ошибке `!info` просто отключается."""
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        log.error(f"Could not load {path} – !info disabled: {exc}")
        return []

    pairs = []
    for item in raw if isinstance(raw, list) else []:
        if isinstance(item, dict) and item.get("question") and item.get("answer"):
            pairs.append(QAPair(question=str(item["question"]), answer=str(item["answer"])))
    log.info(f"Loaded {len(pairs)} QA pairs from {path}")
    return pairs


def similarity(a: str, b: str) -> float:
    return SequenceMatcher(None, a.lower().strip(), b.lower().strip()).ratio()


class KnowledgeBase:
    def __init__(
        self,
        pairs: List[QAPair],
        classifier: Optional[ClassificationClient] = None,
        threshold: float = config.QA_MATCH_THRESHOLD,
    ):
        self.pairs = pairs
        self.classifier = classifier
        self.threshold = threshold

    def find_best_match(self, user_question: str) -> MatchResult:
        """Лучшая пара по похожести вопроса; pair=None если ниже порога."""
        if not self.pairs or not user_question:
            return MatchResult(pair=None, rating=0.0)
        best = max(self.pairs, key=lambda pair: similarity(user_question, pair.question))
        rating = similarity(user_question, best.question)
        if rating < self.threshold:
            return MatchResult(pair=None, rating=rating)
        return MatchResult(pair=best, rating=rating)

    async def answer(self, user_question: str) -> str:
        """Найти ответ в документе и перефразировать его через модель."""
        match = self.find_best_match(user_question)
        if match.pair is None or self.classifier is None:
            return NOT_FOUND_ANSWER

        prompt = REPHRASE_PROMPT.format(
            question=match.pair.question,
            answer=match.pair.answer,
            user_question=user_question,
        )
        outcome = await self.classifier.classify(prompt)
        text = (outcome.text or "").strip() if outcome.ok else ""
        return text or NOT_FOUND_ANSWER

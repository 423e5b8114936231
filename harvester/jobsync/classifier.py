"""Relevance gate applied to raw records before they reach the catalog.

Default gate keeps IT / software jobs using keyword scoring over title,
description and tags. Sources that are already IT-only can use AllowAllGate.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Protocol, Tuple, runtime_checkable
import logging

from .models import ClassifiedRecord, RawRecord

logger = logging.getLogger(__name__)

IT_KEYWORDS = [
    'javascript', 'typescript', 'python', 'java', 'c#', 'c++', 'php', 'ruby', 'golang', 'rust',
    'kotlin', 'swift', 'scala', 'react', 'angular', 'vue', 'node.js', 'django', 'flask', 'spring',
    '.net', 'developer', 'entwickler', 'programmer', 'software engineer', 'frontend', 'backend',
    'full stack', 'fullstack', 'data scientist', 'data engineer', 'machine learning', 'devops',
    'cloud', 'aws', 'azure', 'docker', 'kubernetes', 'microservices', 'api', 'sql', 'linux', 'git',
]

NON_IT_KEYWORDS = [
    'electrician', 'plumber', 'carpenter', 'construction', 'welder', 'mechanic', 'driver',
    'warehouse', 'logistics', 'waiter', 'chef', 'cook', 'housekeeping', 'nurse', 'cashier',
    'sales representative', 'account manager', 'accountant', 'bookkeeper', 'recruiter',
    'marketing manager', 'social media', 'receptionist',
]

IT_TITLE_KEYWORDS = [
    'developer', 'engineer', 'programmer', 'software', 'data', 'devops', 'frontend', 'backend',
    'fullstack', 'full-stack', 'qa', 'test', 'architect', 'admin', 'administrator', 'analyst',
]

NON_IT_QUALIFIERS = ['civil', 'mechanical', 'electrical', 'chemical', 'industrial']


@runtime_checkable
class ClassifierGate(Protocol):
    def is_relevant(self, record: RawRecord) -> bool:  # pragma: no cover - interface definition
        ...


class AllowAllGate:
    def is_relevant(self, record: RawRecord) -> bool:
        return True


@dataclass
class KeywordGate:
    it_keywords: List[str] = field(default_factory=lambda: list(IT_KEYWORDS))
    non_it_keywords: List[str] = field(default_factory=lambda: list(NON_IT_KEYWORDS))

    def is_relevant(self, record: RawRecord) -> bool:
        return self.classify(record)[0]

    def classify(self, record: RawRecord) -> Tuple[bool, str]:
        title = record.title.lower()
        desc = (record.description or '').lower()
        text = f"{title} {desc}"
        if record.tags:
            return True, 'has technology tags'
        if any(k in title for k in IT_TITLE_KEYWORDS) and not any(q in title for q in NON_IT_QUALIFIERS):
            return True, 'IT title keyword'
        it_score = sum(1 for k in self.it_keywords if k in text)
        non_it_score = 0
        for k in self.non_it_keywords:
            if k in title:
                non_it_score += 2
            elif k in desc:
                non_it_score += 1
        if it_score >= 3:
            return True, f'it_score={it_score}'
        if non_it_score >= 2 and it_score == 0:
            return False, f'non-IT keywords (score {non_it_score})'
        if it_score > non_it_score:
            return True, f'it_score={it_score} > non_it_score={non_it_score}'
        if it_score > 0:
            return True, f'it_score={it_score}'
        return False, 'no IT indicators'


def apply_gate(records: Iterable[RawRecord], gate: ClassifierGate) -> Tuple[List[ClassifiedRecord], List[ClassifiedRecord]]:
    """Split records into (kept, filtered_out) classified records."""
    kept: List[ClassifiedRecord] = []
    dropped: List[ClassifiedRecord] = []
    for rec in records:
        if hasattr(gate, 'classify'):
            relevant, reason = gate.classify(rec)
        else:
            relevant, reason = bool(gate.is_relevant(rec)), None
        item = ClassifiedRecord(record=rec, relevant=relevant, reason=reason)
        (kept if relevant else dropped).append(item)
    if dropped:
        logger.info(f"Gate filtered {len(dropped)} of {len(kept) + len(dropped)} records")
        for d in dropped[:5]:
            logger.info(f"   - {d.record.title}: {d.reason}")
    return kept, dropped

"""Item catalog: questionnaire-scoped items plus the shared adaptive bank.

Both storage origins are wrapped in an ``ItemSource`` variant exposing
``resolve() -> Item``; nothing downstream of :class:`ItemBank` needs to know
where an item came from.
"""
from __future__ import annotations

import json
import importlib.resources as ir
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

from .errors import ItemNotFound, QuestionnaireNotFound
from .normalize import RESPONSE_TYPES
from .types import Item

log = logging.getLogger(__name__)


class ItemSource(Protocol):
    def resolve(self) -> Item: ...


def _bounds(row: dict, default_type: str) -> tuple[float, float]:
    rtype = str(row.get("response_type") or default_type)
    lo, hi, _ = RESPONSE_TYPES.get(rtype, RESPONSE_TYPES["NUMERIC"])
    lo = row.get("scale_min", lo)
    hi = row.get("scale_max", hi)
    return float(lo), float(hi)


@dataclass(frozen=True)
class QuestionnaireItem:
    questionnaire_ref: str
    row: dict

    def resolve(self) -> Item:
        r = self.row
        lo, hi = _bounds(r, "LIKERT_5")
        return Item(
            id=str(r["id"]),
            category=str(r["category"]),
            discrimination=float(r.get("discrimination", 1.0)),
            difficulty=float(r.get("difficulty", 0.0)),
            scale_min=lo,
            scale_max=hi,
            scale_name=r.get("scale_name"),
            scale_item_code=r.get("scale_item_code"),
            response_type=str(r.get("response_type") or "LIKERT_5"),
            weight=float(r.get("weight", 1.0)),
            order=int(r.get("order", 0)),
            domain=r.get("domain"),
            priority=r.get("priority"),
            text=str(r.get("text", "")),
            options=r.get("options"),
            origin="questionnaire",
        )


@dataclass(frozen=True)
class BankItem:
    row: dict

    def resolve(self) -> Item:
        # shared bank rows carry no weight/order and default to a 1..5 scale
        r = self.row
        lo, hi = _bounds(r, "LIKERT_5")
        return Item(
            id=str(r["id"]),
            category=str(r["category"]),
            discrimination=float(r.get("discrimination", 1.0)),
            difficulty=float(r.get("difficulty", 0.0)),
            scale_min=lo,
            scale_max=hi,
            scale_name=r.get("scale_name"),
            scale_item_code=r.get("scale_item_code"),
            response_type=str(r.get("response_type") or "LIKERT_5"),
            weight=1.0,
            order=0,
            domain=r.get("domain"),
            priority=None,
            text=str(r.get("text", "")),
            options=r.get("options"),
            origin="bank",
        )


AnySource = Union[QuestionnaireItem, BankItem]


@dataclass
class Questionnaire:
    ref: str
    title: str = ""
    adaptive: bool = False
    active: bool = True
    use_bank: bool = False
    bank_categories: List[str] = field(default_factory=list)
    items: List[Item] = field(default_factory=list)


class ItemBank:
    """Read-only catalog shared by every session of the process."""

    def __init__(self, questionnaires: List[Questionnaire], bank_items: List[Item]):
        self._questionnaires: Dict[str, Questionnaire] = {q.ref: q for q in questionnaires}
        self._questionnaire_index: Dict[str, Item] = {}
        for q in questionnaires:
            for it in q.items:
                if it.id in self._questionnaire_index:
                    log.warning("item id %s reused by questionnaire %s; sessions resolve it per questionnaire", it.id, q.ref)
                self._questionnaire_index.setdefault(it.id, it)
        self._bank: List[Item] = list(bank_items)
        self._bank_index: Dict[str, Item] = {it.id: it for it in bank_items}

    @classmethod
    def from_sources(cls, questionnaires: List[dict], sources: List[AnySource]) -> "ItemBank":
        by_ref: Dict[str, List[Item]] = {}
        bank: List[Item] = []
        for src in sources:
            item = src.resolve()
            if isinstance(src, QuestionnaireItem):
                by_ref.setdefault(src.questionnaire_ref, []).append(item)
            else:
                bank.append(item)
        out: List[Questionnaire] = []
        for meta in questionnaires:
            ref = str(meta["ref"])
            items = sorted(by_ref.get(ref, []), key=lambda it: (it.order, it.id))
            out.append(
                Questionnaire(
                    ref=ref,
                    title=str(meta.get("title", "")),
                    adaptive=bool(meta.get("adaptive", False)),
                    active=bool(meta.get("active", True)),
                    use_bank=bool(meta.get("use_bank", False)),
                    bank_categories=list(meta.get("bank_categories") or []),
                    items=items,
                )
            )
        return cls(out, bank)

    def get_questionnaire(self, questionnaire_ref: str) -> Questionnaire:
        q = self._questionnaires.get(questionnaire_ref)
        if q is None or not q.active:
            raise QuestionnaireNotFound(questionnaire_ref)
        return q

    def questionnaires(self) -> List[Questionnaire]:
        return [q for q in self._questionnaires.values() if q.active]

    def get_active_items(self, questionnaire_ref: str) -> List[Item]:
        q = self.get_questionnaire(questionnaire_ref)
        items = list(q.items)
        if q.adaptive and q.use_bank:
            seen = {it.id for it in items}
            wanted = set(q.bank_categories)
            for it in self._bank:
                if it.id in seen:
                    continue
                if wanted and it.category not in wanted:
                    continue
                items.append(it)
        return items

    def get_item(self, item_id: str) -> Item:
        it = self._questionnaire_index.get(item_id)
        if it is None:
            it = self._bank_index.get(item_id)
        if it is None:
            raise ItemNotFound(item_id)
        return it

    def __len__(self) -> int:
        return len(self._questionnaire_index) + len(self._bank_index)


def parse_bank(raw: dict) -> ItemBank:
    sources: List[AnySource] = []
    for q in raw.get("questionnaires", []):
        for row in q.get("items", []):
            sources.append(QuestionnaireItem(questionnaire_ref=str(q["ref"]), row=row))
    for row in raw.get("bank", []):
        sources.append(BankItem(row=row))
    return ItemBank.from_sources(raw.get("questionnaires", []), sources)


def load_item_bank(path: Optional[str] = None) -> ItemBank:
    if path:
        data = Path(path).read_text(encoding="utf-8")
    else:
        data = ir.files(__package__).joinpath("data/bank.json").read_text(encoding="utf-8")
    return parse_bank(json.loads(data))

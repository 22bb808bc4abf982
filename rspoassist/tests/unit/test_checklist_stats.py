from __future__ import annotations

from fastapi import HTTPException
import pytest

from rspoassist.domain.catalog import get_standard
from rspoassist.domain.models import SavedAudit
from rspoassist.services.checklists import (
    apply_audit_items,
    compute_stats,
    set_item_notes,
    set_item_status,
    suggested_audit_name,
)


def _items(*statuses: str) -> list[dict]:
    return [
        {"id": f"chk-{idx}", "clause_id": "RSPO P&C 7.3.1", "checkpoint": "c", "status": status, "notes": ""}
        for idx, status in enumerate(statuses)
    ]


def test_stats_for_empty_checklist() -> None:
    stats = compute_stats([])
    assert (stats.total, stats.score, stats.completion) == (0, 0, 0)


def test_score_counts_only_audited_items() -> None:
    stats = compute_stats(_items("compliant", "non-compliant", "pending", "pending"))
    assert stats.compliant == 1
    assert stats.non_compliant == 1
    assert stats.pending == 2
    assert stats.score == 50
    assert stats.completion == 50


def test_percentages_round_half_up() -> None:
    # 1 of 8 audited is 12.5% completion.
    stats = compute_stats(_items("compliant", *["pending"] * 7))
    assert stats.completion == 13
    assert stats.score == 100
    thirds = compute_stats(_items("compliant", "compliant", "non-compliant"))
    assert thirds.score == 67
    assert thirds.completion == 100


def test_choosing_current_status_toggles_back_to_pending() -> None:
    items = _items("pending", "pending")
    once = set_item_status(items, "chk-0", "compliant")
    twice = set_item_status(once, "chk-0", "compliant")
    assert once[0]["status"] == "compliant"
    assert twice[0]["status"] == "pending"
    assert items[0]["status"] == "pending"


def test_switching_between_statuses() -> None:
    items = set_item_status(_items("compliant"), "chk-0", "non-compliant")
    assert items[0]["status"] == "non-compliant"


def test_unknown_item_or_status_is_rejected() -> None:
    with pytest.raises(HTTPException) as missing:
        set_item_status(_items("pending"), "chk-9", "compliant")
    assert missing.value.status_code == 404
    with pytest.raises(HTTPException) as invalid:
        set_item_status(_items("pending"), "chk-0", "maybe")
    assert invalid.value.status_code == 400


def test_notes_are_replaced_on_one_item() -> None:
    items = set_item_notes(_items("pending", "pending"), "chk-1", "Buffer zone marked")
    assert items[1]["notes"] == "Buffer zone marked"
    assert items[0]["notes"] == ""


def test_saved_audit_scores_follow_items() -> None:
    audit = SavedAudit(items_json=_items("pending"), score=0, completion=0)
    apply_audit_items(audit, _items("compliant", "non-compliant", "non-compliant", "pending"))
    assert audit.score == 33
    assert audit.completion == 75


def test_suggested_name_truncates_long_focus() -> None:
    standard = get_standard("pc2018")
    assert suggested_audit_name(standard, "peat") == "Audit: P&C 2018 - peat"
    long_name = suggested_audit_name(standard, "Fire prevention and peat subsidence monitoring")
    assert long_name == "Audit: P&C 2018 - Fire prevention and peat subsi..."

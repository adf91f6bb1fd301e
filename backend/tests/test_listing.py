from __future__ import annotations

import pytest
from sqlalchemy import select

from core.errors import ValidationError
from models import Program
from services.listing import escape_like, paginate, tag_contains, total_pages


@pytest.fixture
def programs(factory):
    _, organization = factory.organization()
    return [factory.program(organization, title=f"Program {i:02d}") for i in range(23)]


def _ordered():
    return select(Program).order_by(Program.title)


def test_total_pages_rounds_up():
    assert total_pages(23, 10) == 3
    assert total_pages(20, 10) == 2
    assert total_pages(0, 10) == 0


def test_pages_cover_every_row(db, programs):
    first = paginate(db, _ordered(), page=1, limit=10)
    last = paginate(db, _ordered(), page=3, limit=10)

    assert first.total == 23
    assert first.total_pages == 3
    assert [p.title for p in first.items][:2] == ["Program 00", "Program 01"]
    assert len(last.items) == 3
    assert [p.title for p in last.items] == ["Program 20", "Program 21", "Program 22"]


def test_page_past_the_end_is_empty_with_same_totals(db, programs):
    result = paginate(db, _ordered(), page=4, limit=10)

    assert result.items == []
    assert result.total == 23
    assert result.total_pages == 3


@pytest.mark.parametrize("page,limit", [(0, 10), (-1, 10), (1, 0), (1, 101)])
def test_invalid_page_or_limit(db, page, limit):
    with pytest.raises(ValidationError):
        paginate(db, _ordered(), page=page, limit=limit)


def test_tag_filter_matches_whole_elements(db, factory):
    _, organization = factory.organization()
    fintech = factory.program(organization, sector=["FinTech"])
    tech = factory.program(organization, sector=["Tech", "Retail"])

    found = db.execute(select(Program.id).where(tag_contains(db, Program.sector, "Tech"))).scalars().all()
    assert found == [tech.id]

    found = db.execute(select(Program.id).where(tag_contains(db, Program.sector, "FinTech"))).scalars().all()
    assert found == [fintech.id]


def test_escape_like_neutralizes_wildcards():
    assert escape_like("50%_off") == "50\\%\\_off"
    assert escape_like("a\\b") == "a\\\\b"

# tests/test_sql_store.py
"""Relational backend only: the pending-inquiry unique index and its fallback."""

import pytest
from sqlalchemy.exc import IntegrityError

from config import TestingConfig
from pricedesk import create_app, models
from pricedesk.domain import STATUS_PENDING, STATUS_REJECTED, Inquiry
from pricedesk.extensions import db


class _SqlConfig(TestingConfig):
    PRICING_BACKEND = "sql"


@pytest.fixture
def store():
    app = create_app(_SqlConfig)
    with app.app_context():
        yield app.extensions["pricedesk"].store


def _inquiry(status=STATUS_PENDING):
    return Inquiry(
        id=None,
        user_id=1,
        user_full_name="Ali",
        device_id=2,
        model_name="Unit-A",
        category_name="VRF Systems",
        project_id=3,
        project_name="Tower A",
        sell_price=16056,
        status=status,
    )


def test_second_pending_row_for_same_triple_violates_index(store):
    store.create_pending_inquiry(_inquiry())

    db.session.add(models.Inquiry.from_domain(_inquiry()))
    with pytest.raises(IntegrityError):
        db.session.commit()
    db.session.rollback()

    assert models.Inquiry.query.filter_by(status=STATUS_PENDING).count() == 1


def test_decided_rows_do_not_block_the_triple(store):
    db.session.add(models.Inquiry.from_domain(_inquiry(status=STATUS_REJECTED)))
    db.session.add(models.Inquiry.from_domain(_inquiry(status=STATUS_REJECTED)))
    db.session.commit()

    created, is_new = store.create_pending_inquiry(_inquiry())
    assert is_new is True
    assert models.Inquiry.query.count() == 3


def test_insert_race_returns_the_row_that_won(store, monkeypatch):
    winner, _ = store.create_pending_inquiry(_inquiry())

    # The first lookup misses, as if the other insert had not committed yet.
    real_find = store.find_pending_inquiry
    calls = []

    def find_after_race(user_id, device_id, project_id):
        calls.append((user_id, device_id, project_id))
        if len(calls) == 1:
            return None
        return real_find(user_id, device_id, project_id)

    monkeypatch.setattr(store, "find_pending_inquiry", find_after_race)

    existing, is_new = store.create_pending_inquiry(_inquiry())

    assert is_new is False
    assert existing.id == winner.id
    assert len(calls) == 2
    assert models.Inquiry.query.count() == 1

# -*- coding: utf-8 -*-
"""Pytest configuration and shared fixtures."""

import os
from decimal import Decimal

# in-memory SQLite, set before scrapline.config reads the environment
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"

import pytest
from fastapi.testclient import TestClient

from scrapline.db import engine, SessionLocal
from scrapline.main import app
from scrapline.models import metadata
from scrapline.schemas.drobilka import DrobilkaStartIn, DrobilkaCompleteIn
from scrapline.schemas.recycling import BatchStartIn
from scrapline.schemas.scraps import ScrapReportIn
from scrapline.services import batches, drobilka, events, ledger


@pytest.fixture(autouse=True)
def schema():
    """Fresh tables for every test."""
    metadata.create_all(engine)
    yield
    events.clear_subscribers()
    metadata.drop_all(engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    """Test client fixture"""
    return TestClient(app)


@pytest.fixture
def report(db):
    """Report a scrap record straight into the ledger."""
    def _report(scrap_type="HARD", quantity="10", reason="FLASH", reported_by="op-1"):
        return ledger.report_scrap(
            db,
            ScrapReportIn(scrap_type=scrap_type, quantity=Decimal(str(quantity)), reason=reason, reported_by=reported_by),
        )
    return _report


@pytest.fixture
def started_batch(db, report):
    """Ledger holds hard=120, soft=80 and a batch has been started over it."""
    report("HARD", "70")
    report("HARD", "50")
    report("SOFT", "80")
    return batches.start_batch(db, BatchStartIn(started_by="master-1"))


@pytest.fixture
def start_run(db):
    def _start(batch_id, drobilka_type="HARD", quantity="10", operators=("op-1", "op-2"), work_center="WC-DROB-1"):
        return drobilka.start_process(
            db,
            DrobilkaStartIn(
                batch_id=batch_id,
                drobilka_type=drobilka_type,
                input_quantity=Decimal(str(quantity)),
                work_center=work_center,
                operators=list(operators),
            ),
        )
    return _start


@pytest.fixture
def finish_run(db):
    def _finish(process_id, output="5"):
        return drobilka.complete_process(db, process_id, DrobilkaCompleteIn(output_quantity=Decimal(str(output))))
    return _finish

from __future__ import annotations

import pytest

from ledger_service.tests.fakes import LedgerFixture, build_fixture


@pytest.fixture
def fx() -> LedgerFixture:
    fixture = build_fixture()
    fixture.users.add("user-000001")
    fixture.users.add("user-000002")
    return fixture

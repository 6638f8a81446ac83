"""Tests for the recurring-expenses command-line entry point."""

from datetime import date

import pytest
from sqlalchemy.orm import Session

from expense_kernel.config import EngineSettings
from expense_kernel.db.engine import create_engine_from_url, create_tables, reset_engine
from expense_kernel.domain.clock import DeterministicClock
from expense_recurring import cli
from expense_recurring.domain.types import DailyConfig
from expense_recurring.repository.sqlalchemy_repository import (
    SqlAlchemyRecurringRepository,
)
from expense_recurring.services.definitions import RecurringExpenseService

TODAY = date(2026, 10, 19)


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'recurring.db'}"
    yield url
    reset_engine()


@pytest.fixture
def seeded(db_url):
    engine = create_engine_from_url(db_url)
    create_tables(engine)
    clock = DeterministicClock()
    clock.set_date(TODAY)
    with Session(bind=engine) as session:
        service = RecurringExpenseService(
            SqlAlchemyRecurringRepository(session, clock=clock), clock=clock,
        )
        service.create(
            name="Coffee",
            category="food",
            amount="4.5",
            frequency_config=DailyConfig(),
            start_date=TODAY,
        )
        session.commit()
    engine.dispose()
    return db_url


def _run(db_url, *argv):
    return cli.main(
        ["--db-url", db_url, "--today", TODAY.isoformat(), *argv],
        settings=EngineSettings(),
    )


class TestCli:

    def test_generate_then_rerun(self, seeded, capsys):
        assert _run(seeded, "generate") == 0
        out = capsys.readouterr().out
        assert "generated=1 failed=0 skipped=0" in out
        assert "Coffee" in out

        assert _run(seeded, "generate") == 0
        assert "generated=0 failed=0 skipped=0" in capsys.readouterr().out

    def test_pending(self, seeded, capsys):
        assert _run(seeded, "pending") == 0
        out = capsys.readouterr().out
        assert "Coffee" in out
        assert "1 definition(s) due" in out

    def test_history_and_stats(self, seeded, capsys):
        _run(seeded, "generate")
        capsys.readouterr()

        assert _run(seeded, "history", "--limit", "5") == 0
        assert "success" in capsys.readouterr().out

        assert _run(seeded, "stats") == 0
        assert "total=1 success=1 failed=0 skipped=0" in capsys.readouterr().out

    def test_bad_settings_file(self, tmp_path, capsys):
        config = tmp_path / "settings.yaml"
        config.write_text("unknown_key: 1\n")
        assert cli.main(["--config", str(config), "stats"]) == 1
        assert "Failed to load settings" in capsys.readouterr().err

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.main([])

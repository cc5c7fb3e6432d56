"""Tests for the administrative command line."""

import pytest
from sqlalchemy import select

from school_library.cli import build_parser, main
from school_library.database.schema import Resource
from school_library.database.session import get_db_manager
from school_library.services.user_service import UserService


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'cli.db'}"


def run(database_url: str, *args: str) -> int:
    return main(["--database-url", database_url, *args])


class TestCommands:
    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_init_db(self, database_url, capsys):
        assert run(database_url, "init-db") == 0
        assert "Database schema created" in capsys.readouterr().out

    def test_seed_and_verify(self, database_url, capsys):
        assert run(database_url, "seed") == 0
        out = capsys.readouterr().out
        assert "Reference data:" in out
        assert "Admin user created" not in out

        assert run(database_url, "verify") == 0
        assert "Integrity check passed" in capsys.readouterr().out

    def test_seed_sample_data(self, database_url, capsys):
        assert run(database_url, "seed", "--sample-data") == 0
        assert "Sample data:" in capsys.readouterr().out

        assert run(database_url, "sync-stock") == 0
        assert "All loan counters are in sync" in capsys.readouterr().out

    def test_clear_all_requires_confirmation(self, database_url, capsys):
        run(database_url, "seed")
        capsys.readouterr()

        assert run(database_url, "clear-all") == 1
        assert run(database_url, "clear-all", "--yes") == 0
        assert "Deleted" in capsys.readouterr().out

    def test_clear_all_disabled_in_production(self, database_url, test_config):
        test_config.environment = "production"
        assert run(database_url, "clear-all", "--yes") == 1


class TestIntegrityAndBootstrap:
    def test_verify_reports_out_of_sync_counter(self, database_url, capsys):
        run(database_url, "seed", "--sample-data")
        with get_db_manager().session_scope() as session:
            db_resource = session.execute(
                select(Resource).where(Resource.current_loans_count > 0).limit(1)
            ).scalar_one()
            db_resource.current_loans_count = 0
            resource_id = db_resource.id
        capsys.readouterr()

        assert run(database_url, "verify") == 1
        assert f"Resource {resource_id} loan counter is out of sync" in capsys.readouterr().out

        assert run(database_url, "sync-stock") == 0
        assert "Corrected 1 resource(s)" in capsys.readouterr().out
        assert run(database_url, "verify") == 0

    def test_seed_creates_admin_once(self, database_url, test_config, capsys):
        test_config.admin_email = "o'neil+admin@school.edu"
        test_config.admin_password = "Admin2024"

        assert run(database_url, "seed") == 0
        assert "Admin user created: o'neil+admin@school.edu" in capsys.readouterr().out

        assert run(database_url, "seed") == 0
        assert "Admin user created" not in capsys.readouterr().out

        with get_db_manager().session_scope() as session:
            assert UserService(session).has_admin_user() is True
            admin = UserService(session).authenticate("o'neil+admin@school.edu", "Admin2024")
        assert admin.username == "oneil.admin"

import io
from contextlib import redirect_stderr, redirect_stdout
from dataclasses import dataclass

import fncli
import pytest

from habitstreak import config, db
from habitstreak.catalog import seed_builtins
from habitstreak.core.errors import HabitError
from habitstreak.core.models import HabitDefinition

HABITS = [
    HabitDefinition("habit_a", "Read", "20 min", "📖", 1, "Mind"),
    HabitDefinition("habit_b", "Run", None, "🏃", 2, "Body"),
    HabitDefinition("habit_c", "Stretch", None, "🧘", 2, "Body"),
    HabitDefinition("habit_d", "Journal", "10 min", "📝", 1, "Mind"),
]


@pytest.fixture
def tmp_store_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "HOME_DIR", tmp_path)
    monkeypatch.setattr(config, "DB_PATH", tmp_path / "habitstreak.db")
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.setattr(config, "BACKUP_DIR", tmp_path / "backups")
    config.Config.reset()
    db.close()
    yield tmp_path
    db.close()
    config.Config.reset()


@pytest.fixture
async def seeded(tmp_store_dir):
    await seed_builtins(HABITS)
    return {h.id: h for h in HABITS}


@dataclass
class Result:
    exit_code: int
    stdout: str
    stderr: str


class FnCLIRunner:
    """Runs habitstreak commands in-process, the way the console script would."""

    def invoke(self, args: list[str]) -> Result:
        from habitstreak import cli

        out, err = io.StringIO(), io.StringIO()
        code = 0
        with redirect_stdout(out), redirect_stderr(err):
            try:
                cli.setup()
                if args:
                    code = fncli.dispatch(["habitstreak", *args]) or 0
                else:
                    from habitstreak.day import show_day

                    show_day()
            except SystemExit as e:
                code = e.code if isinstance(e.code, int) else 1
            except (HabitError, fncli.UsageError) as e:
                err.write(f"{e}\n")
                code = 1
            finally:
                db.close()
        return Result(exit_code=code, stdout=out.getvalue(), stderr=err.getvalue())

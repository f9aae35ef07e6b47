import asyncio
import logging
import sys
from pathlib import Path

import fncli

from . import db
from .catalog import seed_builtins
from .core.errors import HabitError
from .lib import ansi


def setup() -> None:
    """Open the store, apply migrations and seed built-ins. Safe to run every start."""
    asyncio.run(seed_builtins())
    fncli.autodiscover(Path(__file__).parent, "habitstreak")


def main():
    user_args = sys.argv[1:]
    verbose = "-v" in user_args or "--verbose" in user_args
    user_args = [a for a in user_args if a not in ("-v", "--verbose")]
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if not sys.stdout.isatty():
        ansi.use(ansi.PLAIN)

    try:
        setup()
        if not user_args:
            from .day import show_day

            show_day()
            return
        code = fncli.dispatch(["habitstreak", *user_args])
    except HabitError as e:
        sys.stderr.write(f"{e}\n")
        sys.exit(1)
    finally:
        db.close()
    sys.exit(code)


if __name__ == "__main__":
    main()

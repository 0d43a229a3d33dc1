"""Rebuild cached streak fields from the completion ledger.

Usage examples:
    flask habits-recompute
    flask habits-recompute --user-id=123
    python -m habitflow.scripts.recompute_streaks --user-id=123
"""

from __future__ import annotations

import sys

import click
from flask.cli import with_appcontext

from habitflow.domains.habits.models.habit_models import Habit
from habitflow.domains.habits.services import get_runtime
from habitflow.extensions import db


@click.command("habits-recompute")
@click.option("--user-id", type=int, help="Only recompute this user's habits")
@with_appcontext
def recompute_streaks_command(user_id: int | None):
    """Recompute derived streak fields for every non-frozen habit."""
    runtime = get_runtime()
    today = runtime.clock.today()

    if user_id is not None:
        user_ids = [user_id]
    else:
        user_ids = [row[0] for row in db.session.query(Habit.user_id).distinct().order_by(Habit.user_id)]

    refreshed = skipped = awarded = 0
    for uid in user_ids:
        for habit in runtime.habits.list(uid, include_archived=True):
            if habit.is_frozen(today):
                skipped += 1
                continue
            _, milestones = runtime.ledger.refresh(habit.id)
            refreshed += 1
            awarded += len(milestones)
        runtime.analytics.invalidate(uid)

    click.echo(
        f"habits-recompute ok: users={len(user_ids)} refreshed={refreshed} "
        f"frozen={skipped} milestones={awarded}"
    )


def main(argv: list[str] | None = None) -> int:
    """Entry point for python -m habitflow.scripts.recompute_streaks."""
    from habitflow import create_app

    app = create_app()
    with app.app_context():
        try:
            recompute_streaks_command.main(standalone_mode=False, args=argv)
        except SystemExit as exc:  # click may raise SystemExit
            return exc.code if isinstance(exc.code, int) else 1
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

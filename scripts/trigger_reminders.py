"""CLI script to manually run a reminder dispatch pass."""
from __future__ import annotations

import argparse

from app.tasks.reminders import dispatch_due_reminders


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manually trigger reminder delivery",
    )
    parser.add_argument(
        "--now",
        type=str,
        help="ISO-8601 instant to evaluate instead of the current time",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue task asynchronously instead of running immediately",
    )

    args = parser.parse_args()

    if args.use_async:
        task = dispatch_due_reminders.apply_async(args=(args.now,))
        print(f"Task queued: {task.id}")
    else:
        result = dispatch_due_reminders.run(args.now)
        print(f"Result: {result}")


if __name__ == "__main__":
    main()

"""Module entrypoint for `python -m dynareq`."""

try:
    from .cli import run
except ImportError:
    # Executed as a plain script outside package context.
    from dynareq.cli import run


if __name__ == "__main__":
    raise SystemExit(run())

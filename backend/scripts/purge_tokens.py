"""CLI script to delete revoked and expired session tokens.
Usage: python scripts/purge_tokens.py
"""
import sys
import argparse
import pathlib
# Ensure `backend/` is on sys.path so `eduflow` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from eduflow.database import engine
from eduflow.utils.token_sweeper import TokenSweeper


def main(argv=None) -> int:
    """Run one sweep against the configured database and print the count.

    The server runs the same sweep periodically; this is for operators
    who disable the background sweeper or want an immediate cleanup.
    """
    parser = argparse.ArgumentParser(description='Delete revoked and expired session tokens.')
    parser.parse_args(argv)
    removed = TokenSweeper(engine, interval_seconds=0).run_once()
    print(f'Removed {removed} dead tokens')
    return removed


if __name__ == '__main__':
    main()

# scripts/run_candidates.py
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parent.parent
sys.path.append(str(project_root))

import click
import multiprocessing
from election.candidate import serve
from election.config import DEFAULT_HOSTS, DEFAULT_PATH


@click.command()
@click.option("--count", default=3, help="Number of candidates to launch")
@click.option("--hosts", default=DEFAULT_HOSTS, help="ZooKeeper connection string")
@click.option("--path", default=DEFAULT_PATH, help="Contested leader node path")
def run_candidates(count, hosts, path):
    """
    Example:
        python scripts/run_candidates.py --count 3 --hosts 127.0.0.1:2181
    """
    processes = []

    for i in range(count):
        identity = f"Candidate{i + 1}"

        p = multiprocessing.Process(target=serve, args=(hosts, path, identity))
        p.start()
        processes.append(p)
        print(f"[INIT] Started {identity} contesting {path} on {hosts}")

    try:
        for p in processes:
            p.join()
    except KeyboardInterrupt:
        print("\nStopping all candidates...")
        for p in processes:
            if p.is_alive():
                p.terminate()
                p.join()
        print("All candidates stopped.")


if __name__ == "__main__":
    run_candidates()

import argparse
import logging
import random
import sys

from wikiwalk.controller import RunController
from wikiwalk.errors import FetchError, NoLinksAvailable, WikiWalkError
from wikiwalk.titles import pretty


def random_walk(seed: str, steps: int = 25, branching: int = 1, avoid_visited: bool = False,
                rng_seed: int = None) -> RunController:

    runner = RunController(
        branch_factor=branching,
        avoid_visited=avoid_visited,
        rng=random.Random(rng_seed),
        autorun=False,
    )

    print(f"\n Wiki Walk from '{seed}'")
    print(f"   Steps: {steps}   Branching: {runner.branch_factor}x")
    print("=" * 60)

    runner.start(seed)

    for _ in range(steps):
        try:
            result = runner.step()
        except NoLinksAvailable as e:
            print(f"\n{e}")
            break

        if result is None:
            continue

        if result.backtracked:
            print(f"   <<< BACKTRACK: {pretty(result.backtracked_from)} -> {pretty(result.origin)}"
                  f"  (avoiding {len(result.avoid)} pages)")

        if len(result.targets) == 1:
            print(f" Step {result.step}: {pretty(result.origin)} -> {pretty(result.current)}")
        else:
            branches = ", ".join(pretty(t) for t in result.targets)
            print(f" Step {result.step}: {pretty(result.origin)} => [{branches}]")
            print(f"   continuing at {pretty(result.current)}")

    return runner


def print_stats(runner: RunController) -> None:
    stats = runner.stats()
    print("\nFinal Stats:")
    print(f"   Steps: {stats['steps']}")
    print(f"   Unique pages: {stats['unique_nodes']}")
    print(f"   Walk links: {stats['walk_edges']}")
    print(f"   Similarity links: {stats['similarity_edges']}")
    print(f"   Max distance from seed: {stats['max_distance']}")
    print(f"   Current page: {stats['current_page'] or '-'}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Random walk over Wikipedia's link graph")
    parser.add_argument("seed", nargs="?", default="Python (programming language)")
    parser.add_argument("--steps", type=int, default=25)
    parser.add_argument("--branching", type=int, default=1)
    parser.add_argument("--avoid-visited", action="store_true",
                        help="only step to pages not seen yet, backtracking when none are left")
    parser.add_argument("--rng-seed", type=int, default=None)
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    try:
        runner = random_walk(args.seed, steps=args.steps, branching=args.branching,
                             avoid_visited=args.avoid_visited, rng_seed=args.rng_seed)
    except FetchError as e:
        print(f"\nFAILED: {e}")
        return 1
    except WikiWalkError as e:
        print(f"\n{e}")
        return 2

    print_stats(runner)
    return 0


if __name__ == "__main__":
    sys.exit(main())

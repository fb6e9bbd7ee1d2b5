import sys

from errors import SantaError
from secret_santa import verify_name
from storage import AssignmentStore


USAGE = "Usage: uv run python scripts/verify_assignment.py <secret-santa.json> <giver> <candidate>"


def main(argv=None):
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 3:
        print(USAGE)
        return 2
    path, giver, candidate = args
    try:
        couples = AssignmentStore(path).load()
    except SantaError as exc:
        print(f"Error: {exc}")
        return 2

    hashed = dict(couples).get(giver)
    if hashed is None:
        print(f"{giver} is not a giver in {path}")
        return 2
    if verify_name(candidate, hashed):
        print(f"Yes: {giver} gives to {candidate}")
        return 0
    print(f"No: {giver} does not give to {candidate}")
    return 1


if __name__ == "__main__":
    sys.exit(main())

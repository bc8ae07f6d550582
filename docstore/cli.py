"""Demo command: insert a random user and run two text queries."""

from __future__ import annotations

import argparse
import json
import random

from .store import Store

NAMES = (
    "Alice", "Bob", "Charlie", "David", "Eve", "Frank", "Grace", "Heidi", "Ivan", "Judy",
    "Kevin", "Linda", "Mike", "Nancy", "Oscar", "Penny", "Quentin", "Rachel", "Steve", "Tina",
    "Uma", "Vince", "Wendy", "Xander", "Yara", "Zayn", "Adam", "Bella", "Chris", "Diana",
    "Ethan", "Fiona", "George", "Hannah", "Isaac", "Jasmine", "Kyle", "Laura", "Mark", "Nora",
    "Oliver", "Paula", "Quin", "Ryan", "Sophia", "Thomas", "Olivia", "Peter", "Sara", "Ben",
)


def random_name(rng: random.Random | None = None) -> str:
    """A random name from ``NAMES``."""
    return (rng or random).choice(NAMES)


def random_age(rng: random.Random | None = None) -> int:
    """A random age from 10 to 79."""
    return (rng or random).randrange(70) + 10


def main(argv: list[str] | None = None) -> int:
    """Insert one random user into ``users`` and print two searches."""
    parser = argparse.ArgumentParser(description="Try out the document store.")
    parser.add_argument("--db", default="test.db", help="database file")
    parser.add_argument("--seed", type=int, default=None, help="seed for random data")
    args = parser.parse_args(argv)
    rng = random.Random(args.seed)

    with Store(args.db) as store:
        insert = {
            "collection": "users",
            "action": "insert",
            "data": {"name": random_name(rng), "age": random_age(rng)},
        }
        print(store.handle_query(json.dumps(insert)))

        print("documents whose name ends with 'y'")
        print(store.handle_query(
            '{"collection":"users", "action":"findMany", "match":{"name":{"$en": "y"}}}'
        ))

        print("documents whose name contains 'i'")
        print(store.handle_query(
            '{"collection":"users", "action":"findMany", "match":{"name":{"$c": "i"}}}'
        ))
    return 0
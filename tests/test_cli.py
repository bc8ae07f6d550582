import json
import random

import pytest

from docstore.cli import NAMES, main, random_age, random_name


def _arrays(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("[")]


def test_random_name_comes_from_list():
    rng = random.Random(7)
    assert all(random_name(rng) in NAMES for _ in range(200))


def test_random_age_in_range():
    rng = random.Random(3)
    ages = {random_age(rng) for _ in range(2000)}
    assert min(ages) >= 10
    assert max(ages) <= 79


def test_random_age_covers_both_ends():
    rng = random.Random(11)
    ages = {random_age(rng) for _ in range(5000)}
    assert 10 in ages and 79 in ages


def test_same_seed_same_values():
    a, b = random.Random(5), random.Random(5)
    assert [random_name(a) for _ in range(5)] == [random_name(b) for _ in range(5)]


def test_main_inserts_and_reports(tmp_path, capsys):
    db = tmp_path / "cli.db"
    assert main(["--db", str(db), "--seed", "1"]) == 0
    out = capsys.readouterr().out
    assert out.splitlines()[0] == '{"ak":"insert 1 success"}'

    main(["--db", str(db), "--seed", "2"])
    out = capsys.readouterr().out
    assert out.splitlines()[0] == '{"ak":"insert 2 success"}'


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5])
def test_main_search_results_respect_filters(tmp_path, capsys, seed):
    db = tmp_path / "cli.db"
    for run in range(4):
        main(["--db", str(db), "--seed", str(seed * 10 + run)])
    out = capsys.readouterr().out
    arrays = _arrays(out)
    ends_with_y, contains_i = arrays[-2], arrays[-1]
    assert all(doc["name"].endswith("y") for doc in ends_with_y)
    assert all("i" in doc["name"] for doc in contains_i)
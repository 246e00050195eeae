from itertools import islice

from svgbench.idgen import ShortIdGenerator, short_ids


def _advance(gen, times):
    for _ in range(times):
        gen.advance()


def test_sequence_from_source():
    num = ShortIdGenerator()
    assert str(num) == "a"

    num.advance()
    assert str(num) == "b"

    _advance(num, 50)
    assert str(num) == "Z"

    # An id cannot start with a digit, so 'Z' is followed by 'aa', not '0'.
    num.advance()
    assert str(num) == "aa"

    _advance(num, 62)
    assert str(num) == "ba"

    _advance(num, 62)
    assert str(num) == "ca"

    _advance(num, 62 * 52)
    assert str(num) == "aca"


def test_short_ids_start():
    assert list(islice(short_ids(), 3)) == ["a", "b", "c"]


def test_short_ids_unique_and_valid():
    ids = list(islice(short_ids(), 5000))
    assert len(set(ids)) == len(ids)
    assert all(not i[0].isdigit() for i in ids)


def test_digit_follows_lowercase_in_tail():
    ids = list(islice(short_ids(), 52 + 62))
    assert ids[52] == "aa"
    assert ids[52 + 61] == "a9"
from orgcard import HASH_CHARS, base_n_hash, fingerprint


def test_fingerprint_deterministic():
    fields = {"Front": "Q", "Back": "A"}

    assert fingerprint(fields, {"x"}) == fingerprint(dict(fields), {"x"})
    assert fingerprint(fields, {"x"}) == fingerprint(fields, ["x"])


def test_fingerprint_changes():
    base = fingerprint({"Front": "Q", "Back": "A"}, {"x"})

    assert fingerprint({"Front": "Q", "Back": "A2"}, {"x"}) != base
    assert fingerprint({"Front": "Q2", "Back": "A"}, {"x"}) != base
    assert fingerprint({"Front": "Q", "Back": "A"}, {"y"}) != base
    assert fingerprint({"Front": "Q", "Back": "A"}, set()) != base

    # field order is significant
    assert fingerprint({"Back": "A", "Front": "Q"}, {"x"}) != base


def test_fingerprint_tag_order():
    fields = {"Front": "Q", "Back": "A"}

    assert fingerprint(fields, ["b", "a"]) == fingerprint(fields, ["a", "b"])
    assert fingerprint(fields, ["a", "a"]) == fingerprint(fields, ["a"])


def test_fingerprint_boundaries():
    # content can't be shifted between fields
    assert fingerprint({"Front": "ab", "Back": ""}, ()) != fingerprint(
        {"Front": "a", "Back": "b"}, ()
    )


def test_fingerprint_chars():
    value = fingerprint({"Front": "日本語", "Back": "<b>A</b>"}, {"x"})

    assert value
    assert all(c in HASH_CHARS for c in value)


def test_base_n_hash():
    value = base_n_hash(b"abc", "01")

    # 128-bit hash encoded in binary
    assert len(value) == 128
    assert set(value) <= {"0", "1"}

    # all hashes are padded to the same length
    assert len(base_n_hash(b"abc", HASH_CHARS)) == len(
        base_n_hash(b"xyz", HASH_CHARS)
    )

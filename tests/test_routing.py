import string

from sensitrack.search.routing import WHOLE_SHARD, all_shards, resolve_shard


def test_first_half_of_alphabet_goes_to_shard_one():
    for letter in "abcdefghijkl":
        assert resolve_shard(letter + "rest").shard_id == 1


def test_second_half_of_alphabet_goes_to_shard_two():
    for letter in "mnopqrstuvwxyz":
        assert resolve_shard(letter + "rest").shard_id == 2


def test_empty_term_has_no_shard():
    assert resolve_shard("") is None
    assert resolve_shard("   ") is None


def test_sub_collections_follow_letter_ranges():
    expected = {
        "a": "a_b", "b": "a_b", "c": "c", "d": "d_e", "e": "d_e",
        "f": "f_h", "h": "f_h", "i": "i_l", "l": "i_l",
        "m": "m_n", "n": "m_n", "o": "o_q", "q": "o_q",
        "r": "r_s", "s": "r_s", "t": "t_z", "z": "t_z",
    }
    for letter, collection in expected.items():
        assert resolve_shard(letter).sub_collection == collection


def test_banana_routes_to_a_b():
    shard = resolve_shard("Banana")
    assert shard.shard_id == 1
    assert shard.sub_collection == "a_b"


def test_term_is_trimmed_and_lower_cased():
    assert resolve_shard("  Milk").sub_collection == "m_n"


def test_non_letter_goes_to_shard_two_catch_all():
    for term in ["7up", "!oops", "éclair"]:
        shard = resolve_shard(term)
        assert shard.shard_id == 2
        assert shard.sub_collection == "t_z"


def test_every_letter_is_routed():
    assert all(resolve_shard(letter) is not None for letter in string.ascii_lowercase)


def test_all_shards_covers_both():
    shards = all_shards()
    assert [s.shard_id for s in shards] == [1, 2]
    assert all(s.sub_collection == WHOLE_SHARD for s in shards)

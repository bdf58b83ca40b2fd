from __future__ import annotations

from types import MappingProxyType

from sensitrack.config import settings
from sensitrack.schemas import ShardDescriptor

SHARD1_COLLECTIONS = ("a_b", "c", "d_e", "f_h", "i_l")
SHARD2_COLLECTIONS = ("m_n", "o_q", "r_s", "t_z")
WHOLE_SHARD = "*"

_LETTER_RANGES = {
    "a_b": (1, "ab"),
    "c": (1, "c"),
    "d_e": (1, "de"),
    "f_h": (1, "fgh"),
    "i_l": (1, "ijkl"),
    "m_n": (2, "mn"),
    "o_q": (2, "opq"),
    "r_s": (2, "rs"),
    "t_z": (2, "tuvwxyz"),
}


def _shard_url(shard_id: int) -> str:
    return settings.shard1_url if shard_id == 1 else settings.shard2_url


def _build_table() -> MappingProxyType:
    table: dict[str, ShardDescriptor] = {}
    for collection, (shard_id, letters) in _LETTER_RANGES.items():
        descriptor = ShardDescriptor(base_url=_shard_url(shard_id), sub_collection=collection, shard_id=shard_id)
        for letter in letters:
            table[letter] = descriptor
    return MappingProxyType(table)


COLLECTION_TABLE = _build_table()


def resolve_shard(search_term: str) -> ShardDescriptor | None:
    term = (search_term or "").strip().lower()
    if not term:
        return None
    descriptor = COLLECTION_TABLE.get(term[0])
    if descriptor is None:
        # Digits, punctuation and non-latin letters all land in shard 2.
        return COLLECTION_TABLE["t"]
    return descriptor


def all_shards() -> list[ShardDescriptor]:
    return [
        ShardDescriptor(base_url=_shard_url(1), sub_collection=WHOLE_SHARD, shard_id=1),
        ShardDescriptor(base_url=_shard_url(2), sub_collection=WHOLE_SHARD, shard_id=2),
    ]

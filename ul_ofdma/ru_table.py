# ul_ofdma/ru_table.py
"""
HE RU allocation catalog (IEEE 802.11ax Table 27-24 layout).

Each row describes how a 20 MHz subchannel (or a full-band RU) is split into
resource units: RU sizes in tones, RU indices within the channel and the number
of users sharing each RU. The 224 rows are built once at import and are
read-only afterwards.

Reserved rows 116-127 carry no RUs: their size, index and user tuples are
empty and num_users/num_rus are 0, so no partition lookup ever returns them.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from .errors import ConfigurationError

NUM_ALLOCATIONS = 224

# Full-band single-RU, single-user allocation per channel bandwidth (MHz)
FULL_BAND_ALLOCATION: Dict[int, int] = {20: 192, 40: 200, 80: 208, 160: 216}

NOTE_EMPTY = "Empty"
NOTE_ZERO_SIGB = "Zero HE-SIG-B User Specific field"
NOTE_RESERVED = "Reserved"


@dataclass(frozen=True)
class RUAllocation:
    index: int
    num_users: int
    num_rus: int
    ru_sizes: Tuple[int, ...]
    ru_indices: Tuple[int, ...]
    users_per_ru: Tuple[int, ...]
    note: str = ""

    @property
    def bits(self) -> str:
        """8-bit RU allocation subfield, MSB first."""
        return format(self.index, "08b")

    @property
    def single_user_per_ru(self) -> bool:
        return self.num_rus > 0 and self.num_users == self.num_rus

    @property
    def total_tones(self) -> int:
        return int(sum(self.ru_sizes))


def _quarters(bits: str, num26: int) -> Tuple[List[int], List[int], int]:
    # Each bit covers two 26-tone slots: '0' -> 26+26, '1' -> one 52-tone RU
    sizes: List[int] = []
    indices: List[int] = []
    for b in bits:
        if b == "0":
            sizes += [26, 26]
            indices += [num26 + 1, num26 + 2]
        else:
            sizes.append(52)
            indices.append((num26 + 2) // 2)
        num26 += 2
    return sizes, indices, num26


def _row(index: int, sizes: Sequence[int], indices: Sequence[int],
         users: Sequence[int], num_rus: int | None = None, note: str = "") -> RUAllocation:
    return RUAllocation(
        index=index,
        num_users=int(sum(users)),
        num_rus=len(sizes) if num_rus is None else num_rus,
        ru_sizes=tuple(int(s) for s in sizes),
        ru_indices=tuple(int(i) for i in indices),
        users_per_ru=tuple(int(u) for u in users),
        note=note,
    )


def _build_table() -> Tuple[RUAllocation, ...]:
    rows: List[RUAllocation] = []

    # 0-15: 26/52-tone combinations with the centre 26-tone RU
    for i in range(16):
        bits = format(i, "04b")
        sizes, indices, num26 = _quarters(bits[:2], 0)
        sizes.append(26)
        indices.append(num26 + 1)
        num26 += 1
        s2, i2, _ = _quarters(bits[2:], num26)
        sizes += s2
        indices += i2
        rows.append(_row(len(rows), sizes, indices, [1] * len(sizes)))

    # 16-23: 52 52 - 106 (MU-MIMO on the 106-tone RU)
    for i in range(8):
        rows.append(_row(len(rows), [52, 52, 106], [1, 2, 2], [1, 1, i + 1]))

    # 24-31: 106 - 52 52
    for i in range(8):
        rows.append(_row(len(rows), [106, 52, 52], [1, 3, 4], [i + 1, 1, 1]))

    # 32-63: left half as 26/52 combinations, centre 26, right 106
    for i in range(32):
        sizes, indices, _ = _quarters(format(i // 8, "02b"), 0)
        sizes += [26, 106]
        indices += [5, 2]
        users = [1] * len(sizes)
        users[-1] += i % 8
        rows.append(_row(len(rows), sizes, indices, users))

    # 64-95: left 106, centre 26, right half as 26/52 combinations
    for i in range(32):
        s2, i2, _ = _quarters(format(i // 8, "02b"), 5)
        sizes = [106, 26] + s2
        indices = [1, 5] + i2
        users = [1] * len(sizes)
        users[0] += i % 8
        rows.append(_row(len(rows), sizes, indices, users))

    # 96-111: 106 - 106
    for i in range(16):
        rows.append(_row(len(rows), [106, 106], [1, 2], [i // 4 + 1, i % 4 + 1]))

    # 112: four 52-tone RUs
    rows.append(_row(len(rows), [52, 52, 52, 52], [1, 2, 3, 4], [1, 1, 1, 1]))

    # 113: empty 242-tone RU; 114/115: 484/996 with no user fields
    rows.append(_row(len(rows), [242], [1], [0], num_rus=0, note=NOTE_EMPTY))
    rows.append(_row(len(rows), [484], [1], [0], note=NOTE_ZERO_SIGB))
    rows.append(_row(len(rows), [996], [1], [0], note=NOTE_ZERO_SIGB))

    # 116-127: reserved
    for _ in range(12):
        rows.append(_row(len(rows), [], [], [], note=NOTE_RESERVED))

    # 128-191: 106 26 106
    for i in range(64):
        rows.append(_row(len(rows), [106, 26, 106], [1, 5, 2], [i // 8 + 1, 1, i % 8 + 1]))

    # 192-223: full-band 242 / 484 / 996 / 2x996 with 1-8 users
    for ru_size in (242, 484, 996, 2 * 996):
        for i in range(8):
            rows.append(_row(len(rows), [ru_size], [1], [i + 1]))

    assert len(rows) == NUM_ALLOCATIONS, f"RU table has {len(rows)} rows"
    return tuple(rows)


ALLOCATIONS: Tuple[RUAllocation, ...] = _build_table()


def partition_info(allocation_index: int) -> RUAllocation:
    """Direct lookup of one catalog row."""
    idx = int(allocation_index)
    if not 0 <= idx < NUM_ALLOCATIONS:
        raise ConfigurationError(f"Allocation index {allocation_index} outside 0..{NUM_ALLOCATIONS - 1}")
    return ALLOCATIONS[idx]


def full_band_allocation(bandwidth: int = 20) -> RUAllocation:
    if bandwidth not in FULL_BAND_ALLOCATION:
        raise ConfigurationError(f"Unsupported bandwidth {bandwidth} MHz; supported: {sorted(FULL_BAND_ALLOCATION)}")
    return ALLOCATIONS[FULL_BAND_ALLOCATION[bandwidth]]


def partitions_for(num_users: int, bandwidth: int = 20) -> List[RUAllocation]:
    """
    OFDMA partitions serving exactly `num_users` stations, one station per RU,
    in catalog order. A single user gets the full-band RU of the channel.

    Multi-RU partitions are defined per 20 MHz subchannel, so they are only
    offered for a 20 MHz channel.
    """
    n = int(num_users)
    if n <= 0:
        return []
    if n == 1:
        return [full_band_allocation(bandwidth)]
    if bandwidth != 20:
        raise ConfigurationError(f"OFDMA partitions are only catalogued for 20 MHz, got {bandwidth} MHz")
    return [a for a in ALLOCATIONS if a.num_rus == n and a.single_user_per_ru]

from __future__ import annotations

from typing import TypeAlias

import chia_rs.sized_ints

uint16: TypeAlias = chia_rs.sized_ints.uint16
uint32: TypeAlias = chia_rs.sized_ints.uint32
uint64: TypeAlias = chia_rs.sized_ints.uint64

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_ROOT_PATH = Path(os.path.expanduser(os.getenv("BITCOIN_FEE_MODEL_ROOT", "~/.bitcoin-fee-model"))).resolve()

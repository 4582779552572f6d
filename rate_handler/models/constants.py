"""Domain constants for instrument identifiers and rate tables.

Kept as plain module constants; the resolver copies the default tables so
mutating one resolver never leaks into another.
"""

import re
from typing import Dict

# Native fee instrument of the network (symbol family key).
NATIVE_INSTRUMENT = "$ZRA+0000"

# `$<letters>+<4 digits>`; group 1 is the currency symbol.
INSTRUMENT_ID_PATTERN = re.compile(r"^\$([A-Za-z]+)\+\d{4}$")
SYMBOL_FAMILY_SUFFIX = "0000"

# Validator reports rates as fixed-point integers with 18 decimals.
WIRE_RATE_DECIMALS = 18

DEFAULT_CACHE_TTL_MS = 3000
DEFAULT_INDEXER_BASE_URL = "https://api.zerascan.io"
DEFAULT_INDEXER_TIMEOUT_SECONDS = 2.5

DEFAULT_FALLBACK_RATES: Dict[str, str] = {
    NATIVE_INSTRUMENT: "0.10",
}

# Network enforced floor used for fee evaluation.
DEFAULT_MINIMUM_RATES: Dict[str, str] = {
    NATIVE_INSTRUMENT: "0.10",
}

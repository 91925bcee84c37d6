"""Input validation constants.

Range bounds for raw fields live beside the schemas that enforce them;
the values here govern the cross-record checks and advisory warnings.
"""

from datetime import timedelta
from typing import Final

# Drinks older than this relative to the evaluation instant barely move
# either score. They are still accepted, but flagged.
STALE_DRINK_WARNING_HOURS: Final[int] = 24

# Drinks dated after the evaluation instant contribute nothing; flagged so
# clock skew between client and ledger shows up in logs.
FUTURE_DRINK_WARNING_MINUTES: Final[int] = 5

# Lookbacks and projections are offsets from the evaluation instant, so
# the instant must sit this far inside the representable datetime range.
EVALUATION_TIME_MARGIN: Final[timedelta] = timedelta(days=7)

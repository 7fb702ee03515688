"""Bootstrap password generation for new Grafana users."""
import random
import string
from typing import Optional

DIGITS = "23456789"
SYMBOLS = "-_+="
ALL_CHARS = string.ascii_uppercase + string.ascii_lowercase + DIGITS + SYMBOLS
PASSWORD_LENGTH = 8

# Seeded once per process
_rng = random.Random()


def generate_password(rng: Optional[random.Random] = None) -> str:
    """
    Generate an 8 character password containing at least one digit from
    DIGITS and one symbol from SYMBOLS.

    This is a low assurance bootstrap credential; it is echoed back to the
    caller in the provisioning result.
    """
    rng = rng or _rng

    buf = [rng.choice(DIGITS), rng.choice(SYMBOLS)]
    buf.extend(rng.choice(ALL_CHARS) for _ in range(PASSWORD_LENGTH - 2))

    # Fisher-Yates over the whole buffer
    for i in range(len(buf) - 1, 0, -1):
        j = rng.randint(0, i)
        buf[i], buf[j] = buf[j], buf[i]

    return "".join(buf)

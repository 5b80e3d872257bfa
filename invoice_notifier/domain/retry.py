import random
from datetime import datetime, timedelta, timezone

def calculate_next_run(
    attempts: int,
    base_delay_seconds: int = 10,
    max_delay_seconds: int = 3600,
    jitter: bool = True
) -> datetime:
    """
    Calculates when a redelivered job becomes available again, using
    exponential backoff with optional jitter.

    Formula:
        delay = min(base * (2 ^ (attempts - 1)), max_delay)
        if jitter:
            delay = delay + random_uniform(0, 0.1 * delay)

    Args:
        attempts: Deliveries so far. attempts=1 means the first delivery was
                  lost (worker crash) and this is the delay before the second.

    Returns:
        datetime: The calculated future timestamp (UTC).
    """
    exponent = min(max(attempts - 1, 0), 20)

    delay = min(base_delay_seconds * (2 ** exponent), max_delay_seconds)

    if jitter:
        # Up to 10% jitter so crashed batches do not come back in lockstep
        delay += random.uniform(0, delay * 0.1)

    return datetime.now(timezone.utc) + timedelta(seconds=delay)

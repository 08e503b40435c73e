"""Logical id generation for newly created Patient resources.

Ids are UUID4 strings. A generated id is checked against the store before it
is handed out, so an id that is still in use is never issued twice.
"""

import logging
import random
import uuid
from typing import Callable, Optional


logger = logging.getLogger(__name__)

# Maximum attempts to generate an unused ID (collision should be extremely rare)
MAX_GENERATION_ATTEMPTS = 1000


def generate_resource_id(
    is_taken: Optional[Callable[[str], bool]] = None,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """Generate a logical resource id.

    Args:
        is_taken: Optional predicate returning True when an id is already
                  used (typically ``lambda i: store.get(i) is not None``).
        seed: Optional seed for a one-off deterministic id. The same seed
              always yields the same first id.
        rng: Optional random source for deterministic sequences. Callers
             generating many ids share one ``random.Random(seed)`` so that
             successive calls draw successive ids. Takes precedence over
             ``seed``.

    Returns:
        Lower-case UUID string (e.g. ``3f2b8c1e-...``)

    Raises:
        ValueError: If no unused id was found after MAX_GENERATION_ATTEMPTS

    Example:
        >>> rng = random.Random(42)
        >>> first, second = generate_resource_id(rng=rng), generate_resource_id(rng=rng)
        >>> first != second
        True
    """
    if rng is None and seed is not None:
        rng = random.Random(seed)

    for attempt in range(MAX_GENERATION_ATTEMPTS):
        if rng is not None:
            candidate = str(uuid.UUID(int=rng.getrandbits(128), version=4))
        else:
            candidate = str(uuid.uuid4())

        if is_taken is None or not is_taken(candidate):
            logger.debug(f"Generated resource id: {candidate}")
            return candidate

        logger.warning(
            f"ID collision detected for {candidate}. Regenerating (attempt {attempt + 1})"
        )

    raise ValueError(
        f"Unable to generate unique resource id after {MAX_GENERATION_ATTEMPTS} attempts. "
        "This is extremely rare and may indicate a system issue."
    )

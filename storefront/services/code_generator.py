import logging
import secrets
import time
from typing import Collection, Optional

from storefront.exceptions import GenerationFailed
from storefront.repositories.promotion import PromotionRepository

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
DEFAULT_PREFIX = "PROMO"
TOKEN_LENGTH = 6
MAX_ATTEMPTS = 5


def build_candidate(
    prefix: Optional[str] = None,
    suffix: Optional[str] = None,
    timestamped: bool = False,
) -> str:
    token = "".join(secrets.choice(CODE_ALPHABET) for _ in range(TOKEN_LENGTH))
    parts = [prefix or DEFAULT_PREFIX, token]
    if timestamped:
        parts.append(str(time.time_ns() // 1_000_000)[-4:])
    if suffix:
        parts.append(suffix)
    return "_".join(parts).upper()


class CodeGenerator:
    """
    Produces promotion codes that are not yet taken.

    The lookup and the caller's insert are separate statements, so two
    concurrent generators can still pick the same code; the unique index on
    ``promotions.code`` rejects the second insert.
    """

    def __init__(self, repo: PromotionRepository, max_attempts: int = MAX_ATTEMPTS):
        self.repo = repo
        self.max_attempts = max_attempts

    async def generate(
        self,
        prefix: Optional[str] = None,
        suffix: Optional[str] = None,
        timestamped: bool = False,
        reserved: Collection[str] = (),
    ) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = build_candidate(prefix, suffix, timestamped)
            if candidate in reserved:
                logger.debug(f"Code {candidate} already reserved in this batch (attempt {attempt})")
                continue
            if await self.repo.code_exists(candidate):
                logger.debug(f"Code {candidate} already taken (attempt {attempt})")
                continue
            return candidate

        logger.error(f"No unique code after {self.max_attempts} attempts (prefix={prefix!r})")
        raise GenerationFailed(f"Could not generate a unique promotion code after {self.max_attempts} attempts")

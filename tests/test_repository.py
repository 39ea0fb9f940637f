import pytest
from sqlalchemy.exc import IntegrityError

from storefront.exceptions import Conflict
from storefront.repositories.promotion import PromotionRepository


class FailingSession:
    def __init__(self, error):
        self.error = error
        self.rolled_back = False

    async def commit(self):
        raise self.error

    async def rollback(self):
        self.rolled_back = True


def integrity_error(message):
    return IntegrityError("INSERT INTO promotions ...", {}, Exception(message))


@pytest.mark.parametrize("message", [
    "UNIQUE constraint failed: promotions.code",
    'duplicate key value violates unique constraint "ix_promotions_code"',
])
async def test_code_index_violation_is_a_conflict(message):
    session = FailingSession(integrity_error(message))

    with pytest.raises(Conflict):
        await PromotionRepository(session)._commit()
    assert session.rolled_back is True


async def test_other_integrity_errors_propagate():
    session = FailingSession(integrity_error("FOREIGN KEY constraint failed"))

    with pytest.raises(IntegrityError):
        await PromotionRepository(session)._commit()
    assert session.rolled_back is True

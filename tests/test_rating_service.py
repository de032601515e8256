"""
Unit tests for rating rules, with the repository and auth client mocked out.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock
import uuid

import pytest

from servicecommon.auth import Principal, Role
from servicecommon.errors import ConflictError, ForbiddenError, InvalidInputError, NotFoundError
from servicecommon.pagination import Page
from productservice.clients.auth_client import RemoteUser
from productservice.db.models import Product, Rating
from productservice.schemas import RatingRead, RatingSort
from productservice.services.ratings import ALREADY_RATED, RatingService


def _product():
    return Product(id=uuid.uuid4(), name='Điện thoại Alpha', price=300.0, average_rating=4.0, total_ratings=1)


def _rating(product, user_id, stars=4):
    rating = Rating(
        id=uuid.uuid4(),
        product_id=product.id,
        user_id=user_id,
        user_name='Alice Nguyen',
        rating=stars,
        comment='nice',
        created_at=datetime.now(timezone.utc),
    )
    rating.product = product
    return rating


class TestRatingService:
    """Test rating validation, ownership and delegation."""

    @pytest.fixture
    def repo(self):
        return MagicMock()

    @pytest.fixture
    def auth(self):
        return MagicMock()

    @pytest.fixture
    def service(self, repo, auth):
        return RatingService(repo, auth)

    @pytest.fixture
    def principal(self):
        return Principal(user_id=uuid.uuid4(), role=Role.USER, token='access-token')

    @pytest.mark.parametrize('stars', [0, 6, -1])
    def test_rate_rejects_stars_out_of_range(self, service, repo, auth, principal, stars):
        """Test that star bounds are checked before any lookup."""
        with pytest.raises(InvalidInputError):
            service.rate_product(principal, uuid.uuid4(), stars)

        assert repo.mock_calls == []
        assert auth.mock_calls == []

    def test_rate_nil_product(self, service, repo, principal):
        """Test that the nil product id is not found without a lookup."""
        with pytest.raises(NotFoundError):
            service.rate_product(principal, uuid.UUID(int=0), 4)

        repo.get_product.assert_not_called()

    def test_rate_twice_conflicts(self, service, repo, auth, principal):
        """Test that a second rating for the same product conflicts."""
        product = _product()
        repo.get_product.return_value = product
        repo.find_user_rating.return_value = _rating(product, principal.user_id)

        with pytest.raises(ConflictError) as exc:
            service.rate_product(principal, product.id, 5)

        assert exc.value.message == ALREADY_RATED
        repo.create.assert_not_called()
        auth.get_current_user_info.assert_not_called()

    def test_rate_product(self, service, repo, auth, principal):
        """Test that the rater's name comes from the user service."""
        product = _product()
        repo.get_product.return_value = product
        repo.find_user_rating.return_value = None
        auth.get_current_user_info.return_value = RemoteUser(
            id=principal.user_id, name='Alice Nguyen', email='alice@example.com')
        repo.create.return_value = _rating(product, principal.user_id, stars=5)

        result = service.rate_product(principal, product.id, 5, 'great')

        auth.get_current_user_info.assert_called_once_with('access-token')
        repo.create.assert_called_once_with(product, principal.user_id, 'Alice Nguyen', 5, 'great')
        assert result.user.name == 'Alice Nguyen'
        assert result.product.id == product.id
        assert result.stars == 5

    def test_update_requires_owner(self, service, repo, auth, principal):
        """Test that only the author may edit a rating."""
        repo.find_rating.return_value = _rating(_product(), uuid.uuid4())

        with pytest.raises(ForbiddenError):
            service.update_rating(principal, uuid.uuid4(), 3)

        repo.update.assert_not_called()

    def test_update_rating(self, service, repo, auth, principal):
        rating = _rating(_product(), principal.user_id)
        repo.find_rating.return_value = rating
        repo.update.return_value = rating
        auth.get_current_user_info.return_value = RemoteUser(
            id=principal.user_id, name='Alice N.', email='alice@example.com')

        result = service.update_rating(principal, rating.id, 2, 'meh')

        repo.update.assert_called_once_with(rating, 2, 'meh', user_name='Alice N.')
        assert result.user.name == 'Alice N.'

    def test_update_rejects_stars(self, service, repo, principal):
        with pytest.raises(InvalidInputError):
            service.update_rating(principal, uuid.uuid4(), 9)

        repo.find_rating.assert_not_called()

    def test_delete_requires_owner(self, service, repo, principal):
        """Test that only the author may delete a rating."""
        repo.find_rating.return_value = _rating(_product(), uuid.uuid4())

        with pytest.raises(ForbiddenError):
            service.delete_rating(principal, uuid.uuid4())

        repo.delete.assert_not_called()

    def test_delete_nil(self, service, repo, principal):
        with pytest.raises(NotFoundError):
            service.delete_rating(principal, uuid.UUID(int=0))

        repo.find_rating.assert_not_called()

    def test_list_normalizes_query(self, service, repo):
        """Test that bad stars, sort and limit fall back to defaults."""
        product_id = uuid.uuid4()
        repo.list_for_product.return_value = Page[RatingRead](total=0, data=[])

        service.list_for_product(product_id, page=0, limit=500, stars=9, sort='sideways')

        q = repo.list_for_product.call_args.args[0]
        assert (q.page, q.limit, q.stars, q.sort) == (1, 10, 0, RatingSort.NEWEST)

    def test_list_marks_own_ratings(self, service, repo, principal):
        """Test that the caller's ratings are flagged without touching the cached page."""
        product_id = uuid.uuid4()
        mine = RatingRead(id=uuid.uuid4(), product_id=product_id, user_id=principal.user_id,
                          stars=5, created_at=datetime.now(timezone.utc))
        theirs = RatingRead(id=uuid.uuid4(), product_id=product_id, user_id=uuid.uuid4(),
                            stars=3, created_at=datetime.now(timezone.utc))
        cached = Page[RatingRead](total=2, data=[mine, theirs])
        repo.list_for_product.return_value = cached

        result = service.list_for_product(product_id, principal=principal)

        assert [r.mine for r in result.data] == [True, False]
        assert [r.mine for r in cached.data] == [False, False]

    def test_list_anonymous(self, service, repo):
        product_id = uuid.uuid4()
        repo.list_for_product.return_value = Page[RatingRead](total=0, data=[])

        assert service.list_for_product(product_id).total == 0

    def test_statistic_nil(self, service, repo):
        with pytest.raises(NotFoundError):
            service.statistic(uuid.UUID(int=0))

        repo.statistic.assert_not_called()

    @pytest.mark.parametrize('limit,expected', [(None, 5), (1, 5), (21, 5), (12, 12)])
    def test_my_ratings_limit(self, service, repo, principal, limit, expected):
        """Test that limits outside 5..20 fall back to 5."""
        service.my_ratings(principal, limit=limit, sort='highest')

        user_id, q = repo.list_for_user.call_args.args
        assert user_id == principal.user_id
        assert q.limit == expected
        assert q.sort == RatingSort.HIGHEST

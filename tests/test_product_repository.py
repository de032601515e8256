"""
Tests for product reads on SQLite with an in-memory cache.
"""

from datetime import datetime, timezone
from unittest.mock import patch
import uuid

import pytest

from servicecommon.errors import NotFoundError
from productservice.db.models import ProductRelation
from productservice.repositories.keys import product_key
from productservice.repositories.products import ProductRepository
from productservice.schemas import ProductListQuery, RelationType


class TestProductRepository:
    """Test list filters, lookups and relations."""

    @pytest.fixture
    def repo(self, product_db, product_cache):
        return ProductRepository(product_db, product_cache)

    @pytest.fixture
    def catalog(self, make_product):
        return {
            'phone': make_product('Điện thoại Alpha', 300.0, average_rating=4.5, total_ratings=2),
            'laptop': make_product('Máy tính Beta', 900.0, average_rating=3.0, total_ratings=1),
            'watch': make_product('Đồng hồ Gamma', 150.0),
        }

    def test_get_by_id_caches(self, repo, product_db, product_cache, catalog):
        """Test that the second lookup is served from the cache."""
        phone = catalog['phone']
        first = repo.get_by_id(phone.id)
        assert product_key(phone.id) in product_cache.store

        with patch.object(product_db, 'execute', wraps=product_db.execute) as spy:
            second = repo.get_by_id(phone.id)

        spy.assert_not_called()
        assert first == second
        assert second.category.name == 'Phones'

    def test_get_by_id_missing(self, repo):
        """Test that unknown ids are not found."""
        with pytest.raises(NotFoundError):
            repo.get_by_id(uuid.uuid4())

    def test_get_by_id_deleted(self, repo, make_product):
        """Test that soft-deleted products are not found."""
        gone = make_product('Gone', 10.0, deleted_at=datetime.now(timezone.utc))

        with pytest.raises(NotFoundError):
            repo.get_by_id(gone.id)

    def test_list_search_is_accent_insensitive(self, repo, catalog):
        """Test matching against the folded product name."""
        page = repo.get_list(ProductListQuery(search='dien thoai'))

        assert page.total == 1
        assert page.data[0].id == catalog['phone'].id

    @pytest.mark.parametrize('term', ['%', '_', 'dien%alpha'])
    def test_list_search_wildcards_are_literal(self, repo, catalog, term):
        """Test that LIKE wildcards in the search text match only themselves."""
        assert repo.get_list(ProductListQuery(search=term)).total == 0

    def test_list_search_matches_literal_percent(self, repo, make_product, catalog):
        sale = make_product('Tai nghe 50% off', 50.0)

        page = repo.get_list(ProductListQuery(search='50%'))

        assert [p.id for p in page.data] == [sale.id]

    def test_list_price_and_rating_filters(self, repo, catalog):
        """Test the inclusive price and rating bounds."""
        by_price = repo.get_list(ProductListQuery(min_price=200, max_price=900))
        assert {p.id for p in by_price.data} == {catalog['phone'].id, catalog['laptop'].id}

        by_rate = repo.get_list(ProductListQuery(min_rate=4))
        assert [p.id for p in by_rate.data] == [catalog['phone'].id]

    def test_list_sort(self, repo, catalog):
        """Test ordering by price ascending."""
        page = repo.get_list(ProductListQuery(sort='price', order='ASC'))

        assert [p.price for p in page.data] == [150.0, 300.0, 900.0]

    def test_list_category_filter(self, repo, catalog):
        """Test that an unrelated category matches nothing."""
        page = repo.get_list(ProductListQuery(category_ids=[uuid.uuid4()]))

        assert page.total == 0

    def test_list_pagination_and_filter_echo(self, repo, catalog):
        """Test that the page slice respects limit and the filter is echoed."""
        page = repo.get_list(ProductListQuery(page=2, limit=2, sort='price', order='ASC'))

        assert page.total == 3
        assert [p.price for p in page.data] == [900.0]
        assert page.filter['page'] == 2
        assert page.filter['order'] == 'ASC'

    def test_list_cached_per_query(self, repo, product_cache, catalog):
        """Test that distinct queries are cached under distinct keys."""
        repo.get_list(ProductListQuery())
        repo.get_list(ProductListQuery(search='beta'))

        assert len(product_cache.keys('productlist:*')) == 2

    def test_relations(self, repo, product_db, product_cache, catalog):
        """Test similar products ordered by rating, with a cached empty result for the other kind."""
        phone, laptop, watch = catalog['phone'], catalog['laptop'], catalog['watch']
        product_db.add_all([
            ProductRelation(product_id=phone.id, related_id=watch.id, relation_type='similar'),
            ProductRelation(product_id=phone.id, related_id=laptop.id, relation_type='similar'),
        ])
        product_db.commit()

        similar = repo.get_relations(phone.id, RelationType.SIMILAR, 1, 5)
        assert similar.total == 2
        assert [p.id for p in similar.data] == [laptop.id, watch.id]
        assert similar.filter == {'page': 1, 'limit': 5}

        related = repo.get_relations(phone.id, RelationType.RELATED, 1, 5)
        assert related.total == 0
        assert product_cache.keys('productrelated:*') == [f'productrelated:{phone.id}:page:1:limit:5']

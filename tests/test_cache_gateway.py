"""
Unit tests for the Redis cache gateway.
"""

from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel
from redis import RedisError

from servicecommon.cache import CacheGateway


class Item(BaseModel):
    id: int
    name: str


class TestCacheGateway:
    """Test the cache gateway against a mocked Redis client."""

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.delete.side_effect = lambda *keys: len(keys)
        return client

    @pytest.fixture
    def gateway(self, redis_client):
        return CacheGateway(redis_client)

    def test_get_hit(self, gateway, redis_client):
        """Test that stored bytes are returned as-is."""
        redis_client.get.return_value = b'value'

        assert gateway.get('k') == b'value'
        redis_client.get.assert_called_once_with('k')

    def test_get_error_is_a_miss(self, gateway, redis_client):
        """Test that a Redis failure reads as a miss."""
        redis_client.get.side_effect = RedisError('down')

        assert gateway.get('k') is None

    def test_set_uses_ttl(self, gateway, redis_client):
        """Test that writes carry the expiry."""
        gateway.set('k', 'v', 60)

        redis_client.set.assert_called_once_with('k', 'v', ex=60)

    def test_set_error_swallowed(self, gateway, redis_client):
        """Test that a failed write does not raise."""
        redis_client.set.side_effect = RedisError('down')

        gateway.set('k', 'v', 60)

    def test_delete_without_keys_is_noop(self, gateway, redis_client):
        """Test that deleting nothing never reaches Redis."""
        gateway.delete()

        redis_client.delete.assert_not_called()

    def test_delete_by_pattern_follows_cursor(self, gateway, redis_client):
        """Test that every scan batch is deleted until the cursor returns to zero."""
        redis_client.scan.side_effect = [(7, [b'product:1', b'product:2']), (0, [b'product:3'])]

        deleted = gateway.delete_by_pattern('product:*')

        assert deleted == 3
        assert redis_client.scan.call_count == 2
        redis_client.scan.assert_any_call(cursor=7, match='product:*', count=100)
        assert redis_client.delete.call_count == 2

    def test_delete_by_pattern_without_matches(self, gateway, redis_client):
        """Test that a pattern with no matches deletes nothing, repeatedly."""
        redis_client.scan.return_value = (0, [])

        assert gateway.delete_by_pattern('nothing:*') == 0
        assert gateway.delete_by_pattern('nothing:*') == 0
        redis_client.delete.assert_not_called()

    def test_delete_by_pattern_error_swallowed(self, gateway, redis_client):
        """Test that a scan failure returns what was removed so far."""
        redis_client.scan.side_effect = [(3, [b'a']), RedisError('down')]

        assert gateway.delete_by_pattern('*') == 1

    def test_atomic_multi_write(self, gateway, redis_client):
        """Test that commands run inside one transactional pipeline."""
        pipe = redis_client.pipeline.return_value

        ok = gateway.atomic_multi_write([
            ('zremrangebyscore', 'z', '-inf', 100),
            ('zadd', 'z', {'token': 200}),
            ('expire', 'z', 3600),
        ])

        assert ok is True
        redis_client.pipeline.assert_called_once_with(transaction=True)
        pipe.zremrangebyscore.assert_called_once_with('z', '-inf', 100)
        pipe.zadd.assert_called_once_with('z', {'token': 200})
        pipe.expire.assert_called_once_with('z', 3600)
        pipe.execute.assert_called_once()

    def test_atomic_multi_write_rejects_unknown_command(self, gateway, redis_client):
        """Test that unsupported commands fail before anything is sent."""
        with pytest.raises(ValueError):
            gateway.atomic_multi_write([('zadd', 'z', {'a': 1}), ('flushall',)])

        redis_client.pipeline.assert_not_called()

    def test_atomic_multi_write_failure(self, gateway, redis_client):
        """Test that a failed transaction reports False."""
        redis_client.pipeline.return_value.execute.side_effect = RedisError('aborted')

        assert gateway.atomic_multi_write([('zrem', 'z', 'a')]) is False

    def test_score(self, gateway, redis_client):
        """Test sorted-set score lookup and its failure mode."""
        redis_client.zscore.return_value = 42.0
        assert gateway.score('z', 'm') == 42.0

        redis_client.zscore.side_effect = RedisError('down')
        assert gateway.score('z', 'm') is None

    def test_model_round_trip(self, gateway, redis_client):
        """Test that models are stored as JSON and decoded on read."""
        gateway.set_model('item:1', Item(id=1, name='x'), 60)
        stored = redis_client.set.call_args.args[1]
        redis_client.get.return_value = stored.encode()

        assert gateway.get_model('item:1', Item) == Item(id=1, name='x')

    def test_undecodable_entry_is_a_miss(self, gateway, redis_client):
        """Test that corrupt cache entries are ignored."""
        redis_client.get.return_value = b'{not json'

        assert gateway.get_model('item:1', Item) is None

    def test_invalidate(self, gateway, redis_client):
        """Test that invalidation deletes keys and then each pattern."""
        redis_client.scan.return_value = (0, [])

        gateway.invalidate(keys=['product:1', ''], patterns=['productlist:*', 'productsimilar:*'])

        redis_client.delete.assert_called_once_with('product:1')
        assert redis_client.scan.call_count == 2

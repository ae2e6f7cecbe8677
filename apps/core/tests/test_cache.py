from types import SimpleNamespace

from django.core.cache.backends.locmem import LocMemCache
from django.test import SimpleTestCase

from apps.core.cache import TenantQueryCache, tenant_cache_key


def school(tenant_id):
    return SimpleNamespace(tenant_id=tenant_id, log_extra={'tenant': f'school_{tenant_id}'})


class TenantQueryCacheTest(SimpleTestCase):
    def setUp(self):
        self.cache = TenantQueryCache(backend=LocMemCache('query-cache-tests', {}), timeout=60)
        self.cache.backend.clear()
        self.calls = []

    def producer(self, value):
        def build():
            self.calls.append(value)
            return value
        return build

    def test_second_read_is_served_from_cache(self):
        ctx = school('a')
        first = self.cache.get_or_set(ctx, TenantQueryCache.PAYMENT_SUMMARY, {'from': ''}, self.producer(1))
        second = self.cache.get_or_set(ctx, TenantQueryCache.PAYMENT_SUMMARY, {'from': ''}, self.producer(2))
        self.assertEqual((first, second), (1, 1))
        self.assertEqual(self.calls, [1])

    def test_params_are_part_of_the_key(self):
        ctx = school('a')
        self.cache.get_or_set(ctx, TenantQueryCache.FEE_DASHBOARD, {'month': 5}, self.producer(5))
        value = self.cache.get_or_set(ctx, TenantQueryCache.FEE_DASHBOARD, {'month': 6}, self.producer(6))
        self.assertEqual(value, 6)

    def test_schools_never_share_entries(self):
        self.cache.get_or_set(school('a'), TenantQueryCache.ATTENDANCE_STATS, {}, self.producer('a'))
        value = self.cache.get_or_set(school('b'), TenantQueryCache.ATTENDANCE_STATS, {}, self.producer('b'))
        self.assertEqual(value, 'b')

    def test_mutation_invalidates_dependent_namespaces(self):
        ctx = school('a')
        self.cache.get_or_set(ctx, TenantQueryCache.PAYMENT_SUMMARY, {}, self.producer('old summary'))
        self.cache.get_or_set(ctx, TenantQueryCache.FEE_DASHBOARD, {}, self.producer('old dashboard'))

        self.cache.invalidate(ctx, 'payments.verify')

        summary = self.cache.get_or_set(ctx, TenantQueryCache.PAYMENT_SUMMARY, {}, self.producer('new summary'))
        dashboard = self.cache.get_or_set(ctx, TenantQueryCache.FEE_DASHBOARD, {}, self.producer('new dashboard'))
        self.assertEqual(summary, 'new summary')
        # verification does not change generated or collected amounts
        self.assertEqual(dashboard, 'old dashboard')

    def test_invalidation_is_per_school(self):
        self.cache.get_or_set(school('b'), TenantQueryCache.ATTENDANCE_STATS, {}, self.producer('b1'))
        self.cache.invalidate(school('a'), 'attendance.mark')
        value = self.cache.get_or_set(school('b'), TenantQueryCache.ATTENDANCE_STATS, {}, self.producer('b2'))
        self.assertEqual(value, 'b1')

    def test_repeated_invalidation_keeps_bumping(self):
        ctx = school('a')
        self.cache.invalidate(ctx, 'expenses.change')
        self.cache.get_or_set(ctx, TenantQueryCache.INCOME_EXPENSE_REPORT, {}, self.producer(1))
        self.cache.invalidate(ctx, 'expenses.change')
        value = self.cache.get_or_set(ctx, TenantQueryCache.INCOME_EXPENSE_REPORT, {}, self.producer(2))
        self.assertEqual(value, 2)

    def test_unknown_mutation_is_rejected(self):
        with self.assertRaises(KeyError):
            self.cache.invalidate(school('a'), 'students.teleport')

    def test_key_digest_ignores_param_order(self):
        self.assertEqual(
            tenant_cache_key('a', 'ns', 1, {'x': 1, 'y': 2}),
            tenant_cache_key('a', 'ns', 1, {'y': 2, 'x': 1}),
        )

import hashlib
import json
import logging

from django.conf import settings
from django.core.cache import cache as default_cache
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)


def tenant_cache_key(tenant_id, namespace, version, params=None):
    """
    Generate cache key with tenant context
    """
    digest = ''
    if params:
        raw = json.dumps(params, sort_keys=True, cls=DjangoJSONEncoder)
        digest = hashlib.md5(raw.encode()).hexdigest()
    return f"query:{tenant_id}:{namespace}:v{version}:{digest}"


class TenantQueryCache:
    """
    Cache for read models, keyed by school, query namespace and parameters.

    Each namespace carries a version counter. Invalidating a namespace bumps
    its counter, which orphans every key built with the old version. Which
    namespaces a mutation invalidates is listed in INVALIDATES, so a write
    never has to know who reads the data it touched.
    """

    ATTENDANCE_STATS = 'attendance.stats'
    ATTENDANCE_ALL_CLASS_STATS = 'attendance.all_class_stats'
    FEE_DASHBOARD = 'fees.dashboard'
    PAYMENT_SUMMARY = 'payments.summary'
    INCOME_EXPENSE_REPORT = 'reports.income_expense'

    INVALIDATES = {
        'attendance.mark': (ATTENDANCE_STATS, ATTENDANCE_ALL_CLASS_STATS),
        'attendance.update': (ATTENDANCE_STATS, ATTENDANCE_ALL_CLASS_STATS),
        'holiday.change': (ATTENDANCE_STATS, ATTENDANCE_ALL_CLASS_STATS),
        'fees.generate': (FEE_DASHBOARD,),
        'payments.record': (FEE_DASHBOARD, PAYMENT_SUMMARY),
        'payments.verify': (PAYMENT_SUMMARY, INCOME_EXPENSE_REPORT),
        'expenses.change': (INCOME_EXPENSE_REPORT,),
    }

    def __init__(self, backend=None, timeout=None):
        self.backend = backend or default_cache
        self.timeout = timeout if timeout is not None else getattr(settings, 'QUERY_CACHE_TIMEOUT', 300)

    def _version_key(self, tenant_id, namespace):
        return f"query:{tenant_id}:{namespace}:version"

    def _version(self, tenant_id, namespace):
        return self.backend.get(self._version_key(tenant_id, namespace), 0)

    def get_or_set(self, ctx, namespace, params, producer):
        """
        Return the cached value for (school, namespace, params) or compute
        it with `producer()` and store it.
        """
        tenant_id = ctx.tenant_id
        key = tenant_cache_key(tenant_id, namespace, self._version(tenant_id, namespace), params)
        value = self.backend.get(key)
        if value is None:
            value = producer()
            self.backend.set(key, value, self.timeout)
        return value

    def invalidate(self, ctx, mutation):
        """
        Invalidate every namespace the given mutation affects
        """
        namespaces = self.INVALIDATES.get(mutation)
        if namespaces is None:
            raise KeyError(f"Unknown cache mutation: {mutation}")

        for namespace in namespaces:
            version_key = self._version_key(ctx.tenant_id, namespace)
            try:
                self.backend.incr(version_key)
            except ValueError:
                self.backend.set(version_key, 1, None)
        logger.debug("Invalidated %s after %s", ', '.join(namespaces), mutation, extra=ctx.log_extra)


query_cache = TenantQueryCache()

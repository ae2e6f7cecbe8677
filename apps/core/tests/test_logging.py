import logging

from django.test import SimpleTestCase

from apps.core.logging import TenantAwareLogger, TenantContextFilter


class TenantContextFilterTest(SimpleTestCase):
    def make_record(self, **extra):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 1, 'message', None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_explicit_tenant_is_kept(self):
        record = self.make_record(tenant='test_school')
        self.assertTrue(TenantContextFilter().filter(record))
        self.assertEqual(record.tenant, 'test_school')

    def test_records_outside_a_school_are_public(self):
        record = self.make_record()
        TenantContextFilter().filter(record)
        self.assertEqual(record.tenant, 'public')

    def test_filter_added_once(self):
        logger = TenantAwareLogger.get_logger('apps.tests.logging')
        TenantAwareLogger.get_logger('apps.tests.logging')
        filters = [f for f in logger.filters if isinstance(f, TenantContextFilter)]
        self.assertEqual(len(filters), 1)

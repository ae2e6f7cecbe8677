from unittest import mock

from django.db import IntegrityError, OperationalError
from django.test import SimpleTestCase

from apps.core.exceptions import StorageError
from apps.core.utils import retry_on_storage_error


@mock.patch('apps.core.utils.retry.time.sleep')
class RetryOnStorageErrorTest(SimpleTestCase):
    def test_transient_failures_are_retried_with_backoff(self, sleep):
        calls = []

        @retry_on_storage_error(attempts=3, base_delay=0.1)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise OperationalError('database is locked')
            return 'ok'

        with self.assertLogs('apps.core.utils.retry', level='WARNING'):
            self.assertEqual(flaky(), 'ok')
        self.assertEqual(len(calls), 3)
        self.assertEqual(sleep.call_args_list, [mock.call(0.1), mock.call(0.2)])

    def test_exhausted_attempts_raise_storage_error(self, sleep):
        @retry_on_storage_error(attempts=2, base_delay=0)
        def always_down():
            raise OperationalError('connection refused')

        with self.assertLogs('apps.core.utils.retry', level='WARNING'):
            with self.assertRaises(StorageError) as raised:
                always_down()
        self.assertIsInstance(raised.exception.__cause__, OperationalError)
        self.assertTrue(raised.exception.retryable)
        sleep.assert_not_called()

    def test_other_database_errors_are_not_retried(self, sleep):
        calls = []

        @retry_on_storage_error
        def duplicate():
            calls.append(1)
            raise IntegrityError('duplicate key')

        with self.assertRaises(IntegrityError):
            duplicate()
        self.assertEqual(len(calls), 1)

    def test_bare_decorator_passes_through_results(self, sleep):
        @retry_on_storage_error
        def add(a, b):
            return a + b

        self.assertEqual(add(2, 3), 5)

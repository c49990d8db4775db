import json
import unittest

import httpx

from support import utc

from orchestrator.core.errors import StatusQueryError, TriggerError
from orchestrator.schemas.jobs import JobState, classify_job_status
from orchestrator.services.sync_client import AirbyteJobClient

BASE_URL = 'http://airbyte.test/api/v1'


def _client(handler) -> AirbyteJobClient:
    http = httpx.Client(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return AirbyteJobClient(BASE_URL, client=http)


class ClassifyJobStatusTests(unittest.TestCase):
    def test_known_values(self):
        self.assertEqual(classify_job_status('succeeded'), JobState.SUCCEEDED)
        self.assertEqual(classify_job_status('FAILED'), JobState.FAILED)
        self.assertEqual(classify_job_status(' cancelled '), JobState.CANCELLED)
        self.assertEqual(classify_job_status('pending'), JobState.PENDING)
        self.assertEqual(classify_job_status('incomplete'), JobState.RUNNING)

    def test_unknown_values_are_running(self):
        for raw in ('paused', '', None, 42):
            self.assertEqual(classify_job_status(raw), JobState.RUNNING)


class StartTests(unittest.TestCase):
    def test_posts_sync_job_and_reads_nested_job_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen['method'] = request.method
            seen['path'] = request.url.path
            seen['body'] = json.loads(request.content)
            return httpx.Response(200, json={'job': {'jobId': 123, 'status': 'running'}})

        self.assertEqual(_client(handler).start('C1'), '123')
        self.assertEqual(seen['method'], 'POST')
        self.assertEqual(seen['path'], '/api/v1/jobs')
        self.assertEqual(seen['body'], {'connectionId': 'C1', 'jobType': 'sync'})

    def test_top_level_job_id(self):
        client = _client(lambda request: httpx.Response(200, json={'jobId': 'abc'}))
        self.assertEqual(client.start('C1'), 'abc')

    def test_missing_job_id_is_trigger_error(self):
        client = _client(lambda request: httpx.Response(200, json={'job': {}}))
        with self.assertRaises(TriggerError):
            client.start('C1')

    def test_http_error_is_trigger_error(self):
        client = _client(lambda request: httpx.Response(409, json={'message': 'busy'}))
        with self.assertRaises(TriggerError) as ctx:
            client.start('C1')
        self.assertEqual(ctx.exception.status_code, 409)

    def test_transport_error_is_trigger_error(self):
        def handler(request):
            raise httpx.ConnectError('connection refused', request=request)

        with self.assertRaises(TriggerError) as ctx:
            _client(handler).start('C1')
        self.assertIsNone(ctx.exception.status_code)


class StatusTests(unittest.TestCase):
    def test_succeeded_uses_updated_at_as_completion(self):
        completed = int(utc(2024, 2, 1, 10, 0).timestamp())

        def handler(request):
            self.assertEqual(request.url.path, '/api/v1/jobs/7')
            return httpx.Response(
                200,
                json={'job': {'jobId': 7, 'status': 'SUCCEEDED', 'createdAt': completed - 60,
                              'updatedAt': completed, 'rowsSynced': '15', 'duration': 'PT1M'}},
            )

        with self.assertLogs('orchestrator.services.sync_client', level='DEBUG') as logs:
            status = _client(handler).status('7')
        self.assertTrue(any('rows_synced=15 duration=PT1M' in line for line in logs.output))
        self.assertEqual(status.state, JobState.SUCCEEDED)
        self.assertEqual(status.raw_status, 'succeeded')
        self.assertEqual(status.completed_at, utc(2024, 2, 1, 10, 0))
        self.assertEqual(status.created_at, utc(2024, 2, 1, 9, 59))
        self.assertEqual(status.rows_synced, 15)
        self.assertEqual(status.duration, 'PT1M')
        self.assertTrue(status.is_terminal)

    def test_root_level_job_body(self):
        client = _client(lambda request: httpx.Response(200, json={'status': 'failed'}))
        self.assertEqual(client.status('1').state, JobState.FAILED)

    def test_not_found(self):
        client = _client(lambda request: httpx.Response(404, json={'message': 'no job'}))
        status = client.status('9')
        self.assertEqual(status.state, JobState.NOT_FOUND)
        self.assertEqual(status.job_id, '9')

    def test_unknown_status_is_running(self):
        client = _client(lambda request: httpx.Response(200, json={'job': {'status': 'quarantined'}}))
        status = client.status('1')
        self.assertEqual(status.state, JobState.RUNNING)
        self.assertEqual(status.raw_status, 'quarantined')
        self.assertFalse(status.is_terminal)

    def test_empty_body_is_running(self):
        client = _client(lambda request: httpx.Response(200, json={}))
        self.assertEqual(client.status('1').state, JobState.RUNNING)

    def test_server_error_is_status_query_error(self):
        client = _client(lambda request: httpx.Response(503, text='unavailable'))
        with self.assertRaises(StatusQueryError) as ctx:
            client.status('1')
        self.assertEqual(ctx.exception.status_code, 503)

    def test_transport_error_is_status_query_error(self):
        def handler(request):
            raise httpx.ReadTimeout('timed out', request=request)

        with self.assertRaises(StatusQueryError):
            _client(handler).status('1')


if __name__ == '__main__':
    unittest.main()

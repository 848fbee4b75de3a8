"""
Unit Tests for Source API Clients
Rate-limit parsing, error classification, search pagination and summary counts.
"""

import unittest
from datetime import date
from unittest.mock import Mock, patch

import requests

from ternity_sync.clients.base import SourceAPIError, parse_retry_after
from ternity_sync.clients.timetastic import TimetasticClient
from ternity_sync.clients.toggl import TogglClient, flatten_search_results

FAST_TOGGL = {'min_request_gap_ms': 0, 'page_size': 2}
FAST_RETRY = {'max_retries': 2, 'base_delay': 0.01, 'jitter_factor': 0}


def make_response(status_code=200, text='', json_data=None, headers=None):
    response = Mock(status_code=status_code, text=text, headers=headers or {})
    if json_data is not None:
        response.json.return_value = json_data
    else:
        response.json.side_effect = ValueError('No JSON object could be decoded')
    return response


def search_row(*entry_ids, user_id=1):
    return {
        'user_id': user_id,
        'username': 'Jane Doe',
        'project_id': 10,
        'description': 'Work',
        'tag_ids': [5],
        'time_entries': [
            {'id': i, 'start': '2024-01-02T09:00:00+00:00', 'stop': '2024-01-02T10:00:00+00:00', 'seconds': 3600}
            for i in entry_ids
        ],
    }


class TestParseRetryAfter(unittest.TestCase):
    """Test server-suggested wait extraction."""

    def test_reset_in_body_adds_margin(self):
        body = 'You have hit your hourly limit. Quota will reset in 120 seconds'
        self.assertEqual(parse_retry_after(402, body, {}), 130.0)

    def test_retry_after_header(self):
        self.assertEqual(parse_retry_after(429, '', {'Retry-After': '30'}), 30.0)

    def test_default_for_rate_limit_statuses(self):
        self.assertEqual(parse_retry_after(429, 'Too many requests', {}), 60.0)
        self.assertEqual(parse_retry_after(402, '', {'Retry-After': 'soon'}), 60.0)

    def test_no_hint_for_server_errors(self):
        self.assertIsNone(parse_retry_after(500, 'Internal error', {}))

    def test_capped_at_max_wait(self):
        self.assertEqual(parse_retry_after(402, 'reset in 5000 seconds', {}, max_wait=3600), 3600.0)


class TestFlattenSearchResults(unittest.TestCase):

    def test_one_record_per_nested_entry(self):
        flat = flatten_search_results([search_row(1, 2), search_row(3, user_id=2)])

        self.assertEqual([r['id'] for r in flat], [1, 2, 3])
        self.assertEqual(flat[0]['user_id'], 1)
        self.assertEqual(flat[0]['tag_ids'], [5])
        self.assertEqual(flat[0]['seconds'], 3600)
        self.assertEqual(flat[2]['user_id'], 2)
        self.assertNotIn('time_entries', flat[0])

    def test_empty(self):
        self.assertEqual(flatten_search_results([]), [])
        self.assertEqual(flatten_search_results([{'user_id': 1, 'time_entries': []}]), [])


class TestTogglClient(unittest.TestCase):
    """Test Toggl pagination, counting and request error handling."""

    def setUp(self):
        self.client = TogglClient(
            api_token='token', workspace_id='42', settings=FAST_TOGGL, retry_config=FAST_RETRY
        )

    def tearDown(self):
        self.client.close()

    def test_basic_auth(self):
        self.assertEqual(self.client._session.auth, ('token', 'api_token'))

    def test_pagination_advances_first_row_number(self):
        pages = [[search_row(1), search_row(2)], [search_row(3), search_row(4)], [search_row(5)]]
        received = []

        with patch.object(self.client, 'reports_fetch', side_effect=pages) as fetch:
            entries = self.client.fetch_time_entries_window(
                date(2024, 1, 1), date(2024, 3, 31), on_page=received.append
            )

        bodies = [c.args[1] for c in fetch.call_args_list]
        self.assertNotIn('first_row_number', bodies[0])
        self.assertEqual(bodies[1]['first_row_number'], 3)
        self.assertEqual(bodies[2]['first_row_number'], 5)
        self.assertEqual(bodies[0]['start_date'], '2024-01-01')
        self.assertEqual(bodies[0]['end_date'], '2024-03-31')
        self.assertEqual(entries, [])
        self.assertEqual([len(page) for page in received], [2, 2, 1])

    def test_pagination_stops_on_empty_page(self):
        with patch.object(self.client, 'reports_fetch', side_effect=[[search_row(1), search_row(2)], []]) as fetch:
            entries = self.client.fetch_time_entries_window(date(2024, 1, 1), date(2024, 1, 31))

        self.assertEqual(fetch.call_count, 2)
        self.assertEqual(len(entries), 2)

    def test_count_sums_nested_ids(self):
        summary = {'groups': [
            {'sub_groups': [{'ids': [1, 2]}, {'time_entry_ids': [3]}]},
            {'sub_groups': [{'ids': [4]}, {}]},
        ]}

        with patch.object(self.client, 'reports_fetch', return_value=summary) as fetch:
            count = self.client.count_time_entries(date(2024, 1, 1), date(2024, 12, 31))

        self.assertEqual(count, 4)
        body = fetch.call_args.args[1]
        self.assertTrue(body['include_time_entry_ids'])
        self.assertEqual(body['sub_grouping'], 'time_entries')

    def test_count_warns_when_groups_have_no_ids(self):
        with patch.object(self.client, 'reports_fetch', return_value={'groups': [{'sub_groups': [{}]}]}):
            with self.assertLogs('ternity_sync.clients.toggl', level='WARNING'):
                count = self.client.count_time_entries(date(2024, 1, 1), date(2024, 1, 31))

        self.assertEqual(count, 0)

    @patch('time.sleep')
    def test_rate_limit_is_retried_with_server_wait(self, sleep):
        self.client._session.request = Mock(side_effect=[
            make_response(402, 'Quota will reset in 5 seconds'),
            make_response(200, '[{"id": 1}]', [{'id': 1}]),
        ])

        result = self.client.fetch('/workspaces/42/users')

        self.assertEqual(result, [{'id': 1}])
        self.assertEqual(self.client.retry_count, 1)
        self.assertIn(15.0, [c.args[0] for c in sleep.call_args_list])

    @patch('time.sleep')
    def test_client_error_is_not_retried(self, sleep):
        self.client._session.request = Mock(return_value=make_response(404, 'Not found'))

        with self.assertRaises(SourceAPIError) as ctx:
            self.client.fetch('/workspaces/42/users')

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(self.client._session.request.call_count, 1)

    @patch('time.sleep')
    def test_retries_exhausted(self, sleep):
        self.client._session.request = Mock(return_value=make_response(503, 'Unavailable'))

        with self.assertRaises(SourceAPIError) as ctx:
            self.client.fetch('/workspaces/42/projects')

        self.assertEqual(ctx.exception.status_code, 503)
        self.assertEqual(self.client._session.request.call_count, 3)
        self.assertEqual(self.client.retry_count, 2)

    def test_transport_failure_wrapped(self):
        self.client._session.request = Mock(side_effect=requests.exceptions.ConnectionError('refused'))

        with self.assertRaises(SourceAPIError) as ctx:
            self.client.fetch('/workspaces/42/tags')

        self.assertIsNone(ctx.exception.status_code)

    def test_malformed_json(self):
        self.client._session.request = Mock(return_value=make_response(200, '<html>'))

        with self.assertRaises(SourceAPIError) as ctx:
            self.client.fetch('/workspaces/42/tags')

        self.assertIn('malformed JSON', str(ctx.exception))

    def test_post_when_body_given(self):
        self.client._session.request = Mock(return_value=make_response(200, '[]', []))

        self.client.fetch('/x', body={'a': 1})

        self.assertEqual(self.client._session.request.call_args.kwargs['method'], 'POST')
        self.assertEqual(self.client._session.request.call_args.kwargs['json'], {'a': 1})


class TestRequestGap(unittest.TestCase):
    """Test the minimum gap enforced between consecutive requests."""

    def test_back_to_back_requests_sleep_out_the_gap(self):
        client = TogglClient(
            api_token='token', workspace_id='42',
            settings={'min_request_gap_ms': 250}, retry_config=FAST_RETRY
        )
        client._session.request = Mock(return_value=make_response(200, '[]', []))

        with patch('ternity_sync.clients.base.time') as mock_time:
            mock_time.monotonic.side_effect = [100.0, 100.0, 100.1, 100.25]
            client.fetch('/me')
            client.fetch('/me')

        client.close()
        mock_time.sleep.assert_called_once()
        self.assertAlmostEqual(mock_time.sleep.call_args.args[0], 0.15)

    def test_no_sleep_once_gap_has_elapsed(self):
        client = TogglClient(
            api_token='token', workspace_id='42',
            settings={'min_request_gap_ms': 250}, retry_config=FAST_RETRY
        )
        client._session.request = Mock(return_value=make_response(200, '[]', []))

        with patch('ternity_sync.clients.base.time') as mock_time:
            mock_time.monotonic.side_effect = [100.0, 100.0, 100.5, 100.5]
            client.fetch('/me')
            client.fetch('/me')

        client.close()
        mock_time.sleep.assert_not_called()

    def test_absences_use_their_own_gap(self):
        client = TimetasticClient(
            api_token='tt-token',
            settings={'min_request_gap_ms': 200, 'absences_gap_ms': 1000, 'absences_window_days': 31},
            retry_config=FAST_RETRY
        )
        client._session.request = Mock(
            return_value=make_response(200, '{"holidays": []}', {'holidays': []})
        )

        with patch('ternity_sync.clients.base.time') as mock_time:
            # Second window starts 0.5s after the first: under 1s, over 0.2s
            mock_time.monotonic.side_effect = [100.0, 100.0, 100.5, 100.5]
            client.get_absences(date(2024, 1, 1), date(2024, 2, 15))

        client.close()
        self.assertEqual(client._session.request.call_count, 2)
        mock_time.sleep.assert_called_once_with(0.5)


class TestTimetasticClient(unittest.TestCase):

    def setUp(self):
        self.client = TimetasticClient(
            api_token='tt-token',
            settings={'min_request_gap_ms': 0, 'absences_gap_ms': 0, 'absences_window_days': 31},
            retry_config=FAST_RETRY
        )

    def tearDown(self):
        self.client.close()

    def test_bearer_auth(self):
        self.assertEqual(self.client._session.headers['Authorization'], 'Bearer tt-token')

    def test_absences_fetched_per_window(self):
        responses = [{'holidays': [{'id': 1}]}, {'holidays': [{'id': 2}, {'id': 3}]}]

        with patch.object(self.client, 'request', side_effect=responses) as request:
            absences = self.client.get_absences(date(2024, 1, 1), date(2024, 2, 15))

        self.assertEqual([a['id'] for a in absences], [1, 2, 3])
        first = request.call_args_list[0]
        self.assertTrue(first.args[1].endswith('/holidays'))
        self.assertEqual(first.kwargs['params'], {'Start': '2024-01-01', 'End': '2024-01-31'})
        self.assertEqual(request.call_args_list[1].kwargs['params'], {'Start': '2024-02-01', 'End': '2024-02-15'})

    def test_reference_endpoints(self):
        with patch.object(self.client, 'fetch', return_value=[{'id': 1}]) as fetch:
            self.client.get_leave_types()

        fetch.assert_called_once_with('/leavetypes')


if __name__ == '__main__':
    unittest.main()

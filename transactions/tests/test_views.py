import json
from unittest.mock import patch
from uuid import UUID, uuid4
from django.test import Client
from transactions.exceptions import StorageError
from .base import LedgerTestCase


class TransactionApiTests(LedgerTestCase):
    """HTTP contract of the transaction endpoints"""

    def setUp(self):
        super().setUp()
        self.client = Client()
        self.sample_transaction = {
            'fromAccount': 'ACME Corp',
            'toAccount': 'Globex',
            'amount': -12.5,
            'state': 'Send',
        }

    def _post(self, url, payload):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json')

    def _create_via_api(self, **overrides):
        response = self._post('/api/transactions', dict(self.sample_transaction, **overrides))
        self.assertEqual(response.status_code, 201, response.content)
        return response.json()

    def test_create_returns_created_transaction(self):
        response = self._post('/api/transactions', self.sample_transaction)
        self.assertEqual(response.status_code, 201)

        data = response.json()
        self.assertEqual(
            set(data),
            {'id', 'fromAccount', 'toAccount', 'amount', 'created', 'state', 'lastStateUpdate', 'version'},
        )
        self.assertEqual(UUID(data['id']).version, 7)
        self.assertEqual(data['fromAccount'], 'ACME Corp')
        self.assertEqual(data['amount'], -12.5)
        self.assertEqual(data['state'], 'Send')
        self.assertEqual(data['version'], 0)
        self.assertIsNone(data['lastStateUpdate'])
        self.assertTrue(data['created'].endswith('Z'))
        self.assertEqual(response['Location'], f"/api/transactions/{data['id']}")

    def test_create_with_invalid_fields_returns_error_list(self):
        response = self._post('/api/transactions', dict(self.sample_transaction, fromAccount='', state='Lost'))
        self.assertEqual(response.status_code, 400)

        errors = response.json()
        self.assertIsInstance(errors, list)
        self.assertEqual({e['propertyName'] for e in errors}, {'fromAccount', 'state'})
        self.assertEqual(self._count(), 0)

    def test_create_rejects_whitespace_only_account(self):
        response = self._post('/api/transactions', dict(self.sample_transaction, toAccount='    '))
        self.assertEqual(response.status_code, 400)
        self.assertEqual([e['errorMessage'] for e in response.json()], ['ToAccount is required.'])
        self.assertEqual(self._count(), 0)

    def test_malformed_json_is_bad_request(self):
        response = self.client.post('/api/transactions', data='{not json', content_type='application/json')
        self.assertEqual(response.status_code, 400)

    def test_get_by_id(self):
        created = self._create_via_api()

        response = self.client.get(f"/api/transactions/{created['id']}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), created)

    def test_get_unknown_id_returns_404(self):
        response = self.client.get(f'/api/transactions/{uuid4()}')
        self.assertEqual(response.status_code, 404)
        self.assertIn('error', response.json())

    def test_malformed_id_returns_404(self):
        self.assertEqual(self.client.get('/api/transactions/not-a-guid').status_code, 404)
        self.assertEqual(self.client.put('/api/transactions/not-a-guid/state/Paid').status_code, 404)

    def test_list_returns_envelope(self):
        for name in ('ACME Corp', 'Acme-East', 'Umbrella'):
            self._create_via_api(fromAccount=name, toAccount='Hooli')

        response = self.client.get('/api/transactions/1/2', {'q': 'acme', 'sortBy': 'fromAccount', 'sortDirection': 'asc'})
        self.assertEqual(response.status_code, 200)

        body = response.json()
        self.assertEqual([t['fromAccount'] for t in body['data']], ['ACME Corp', 'Acme-East'])
        self.assertEqual(body['currentPage'], 1)
        self.assertEqual(body['totalPages'], 1)
        self.assertEqual(body['pageSize'], 2)
        self.assertEqual(body['activeFilters'], {'q': 'acme', 'sortBy': 'fromAccount', 'sortDirection': 'asc'})

    def test_list_defaults_to_newest_first(self):
        first = self._create_via_api()
        second = self._create_via_api()

        body = self.client.get('/api/transactions/1/10').json()
        self.assertEqual([t['id'] for t in body['data']], [second['id'], first['id']])
        self.assertEqual(body['activeFilters'], {'q': None, 'sortBy': None, 'sortDirection': None})

    def test_list_sorts_amount_numerically(self):
        for amount in (-5.0, 0.0, 3.25, -100.0):
            self._create_via_api(amount=amount)

        body = self.client.get('/api/transactions/1/10', {'sortBy': 'amount', 'sortDirection': 'asc'}).json()
        self.assertEqual([t['amount'] for t in body['data']], [-100.0, -5.0, 0.0, 3.25])

    def test_list_with_no_matches_returns_204(self):
        self._create_via_api()
        response = self.client.get('/api/transactions/1/10', {'q': 'zzz'})
        self.assertEqual(response.status_code, 204)
        self.assertEqual(response.content, b'')

        self.assertEqual(self.client.get('/api/transactions/3/10').status_code, 200)

    def test_list_rejects_bad_paging_and_sort_field(self):
        self._create_via_api()
        self.assertEqual(self.client.get('/api/transactions/0/10').status_code, 400)
        self.assertEqual(self.client.get('/api/transactions/1/0').status_code, 400)
        self.assertEqual(self.client.get('/api/transactions/-1/10').status_code, 400)
        self.assertEqual(self.client.get('/api/transactions/1/-5').status_code, 400)
        self.assertEqual(self.client.get(f'/api/transactions/{10**20}/10').status_code, 400)

        response = self.client.get('/api/transactions/1/10', {'sortBy': 'balance'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('balance', response.json()['error'])

    def test_bulk_create(self):
        payload = [dict(self.sample_transaction, fromAccount=f'ACC{i:03d}') for i in range(3)]
        response = self._post('/api/transactions/bulk', payload)
        self.assertEqual(response.status_code, 201)
        self.assertEqual([t['fromAccount'] for t in response.json()], ['ACC000', 'ACC001', 'ACC002'])
        self.assertEqual(
            response['Location'],
            ','.join(f"/api/transactions/{t['id']}" for t in response.json()),
        )
        self.assertEqual(self._count(), 3)

    def test_bulk_create_rejects_whole_batch(self):
        payload = [
            dict(self.sample_transaction),
            dict(self.sample_transaction, fromAccount=''),
            dict(self.sample_transaction),
        ]
        response = self._post('/api/transactions/bulk', payload)
        self.assertEqual(response.status_code, 400)
        self.assertTrue(any(e['index'] == 1 for e in response.json()))
        self.assertFalse(response.has_header('Location'))

        self.assertEqual(self.client.get('/api/transactions/1/10').status_code, 204)

    def test_bulk_create_requires_list_body(self):
        response = self._post('/api/transactions/bulk', self.sample_transaction)
        self.assertEqual(response.status_code, 400)

    def test_update_state(self):
        created = self._create_via_api()
        url = f"/api/transactions/{created['id']}/state/Paid"

        response = self.client.put(url)
        self.assertEqual(response.status_code, 204)
        data = self.client.get(f"/api/transactions/{created['id']}").json()
        self.assertEqual(data['state'], 'Paid')
        self.assertEqual(data['version'], 1)
        self.assertIsNotNone(data['lastStateUpdate'])

        self.assertEqual(self.client.put(url).status_code, 204)
        self.assertEqual(self.client.get(f"/api/transactions/{created['id']}").json()['version'], 2)

    def test_update_state_accepts_numeric_state(self):
        created = self._create_via_api()
        response = self.client.put(f"/api/transactions/{created['id']}/state/1")
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(f"/api/transactions/{created['id']}").json()['state'], 'Received')

    def test_update_state_errors(self):
        created = self._create_via_api()
        self.assertEqual(self.client.put(f"/api/transactions/{created['id']}/state/Lost").status_code, 400)
        self.assertEqual(self.client.put(f"/api/transactions/{created['id']}/state/7").status_code, 400)
        self.assertEqual(self.client.put(f'/api/transactions/{uuid4()}/state/Paid').status_code, 404)
        self.assertEqual(self.client.get(f"/api/transactions/{created['id']}").json()['version'], 0)

    def test_update_state_with_if_match(self):
        created = self._create_via_api()
        url = f"/api/transactions/{created['id']}/state/Received"

        self.assertEqual(self.client.put(url, HTTP_IF_MATCH='0').status_code, 204)

        response = self.client.put(url, HTTP_IF_MATCH='0')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['expectedVersion'], 0)
        self.assertEqual(response.json()['currentVersion'], 1)

        self.assertEqual(self.client.put(url, HTTP_IF_MATCH='"1"').status_code, 204)
        self.assertEqual(self.client.put(url, HTTP_IF_MATCH='latest').status_code, 400)
        self.assertEqual(self.client.put(url, HTTP_IF_MATCH='9' * 30).status_code, 400)
        self.assertEqual(self.client.put(url, HTTP_IF_MATCH=str(2**31)).status_code, 400)
        self.assertEqual(self.client.get(f"/api/transactions/{created['id']}").json()['version'], 2)

    def test_storage_failure_returns_500(self):
        with patch('transactions.store.TransactionStore.insert', side_effect=StorageError('down')):
            response = self._post('/api/transactions', self.sample_transaction)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'Storage failure'})

    def test_health_check(self):
        response = self.client.get('/hc')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'HEALTHY')

        with patch('transactions.views.check_connection', return_value=False):
            response = self.client.get('/hc')
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()['status'], 'UNHEALTHY')

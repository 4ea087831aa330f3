import pytest
from httpx import ASGITransport, AsyncClient

from faredrop.core.config import settings
from faredrop.crud.watch import crud_price_snapshot, crud_watch
from faredrop.main import app
from faredrop.schemas.fare import PriceResult

API = settings.api_prefix

WATCH_PAYLOAD = {
    'origin': 'jfk',
    'destination': 'lax',
    'departureDate': '2099-01-01',
    'priceThreshold': 500,
}


@pytest.mark.asyncio
async def test_watch_crud(async_client, auth_headers):
    response = await async_client.post(
        f'{API}/watches', json=WATCH_PAYLOAD, headers=auth_headers
    )
    assert response.status_code == 201
    watch = response.json()
    assert watch['origin'] == 'JFK'
    assert watch['destination'] == 'LAX'
    assert watch['departureDate'] == '2099-01-01'
    assert watch['priceThreshold'] == 500
    assert watch['currency'] == 'USD'
    assert watch['isActive'] is True
    assert watch['createdAt'] == watch['updatedAt']
    assert watch['lastPrice'] is None
    watch_id = watch['watchId']

    response = await async_client.get(
        f'{API}/watches', headers=auth_headers
    )
    assert response.status_code == 200
    assert [w['watchId'] for w in response.json()['watches']] == [watch_id]

    response = await async_client.get(
        f'{API}/watches/{watch_id}', headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()['watchId'] == watch_id

    response = await async_client.patch(
        f'{API}/watches/{watch_id}',
        json={'priceThreshold': 350, 'isActive': False},
        headers=auth_headers,
    )
    assert response.status_code == 200
    updated = response.json()
    assert updated['priceThreshold'] == 350
    assert updated['isActive'] is False
    assert updated['departureDate'] == '2099-01-01'

    response = await async_client.delete(
        f'{API}/watches/{watch_id}', headers=auth_headers
    )
    assert response.status_code == 204
    assert response.content == b''

    response = await async_client.delete(
        f'{API}/watches/{watch_id}', headers=auth_headers
    )
    assert response.status_code == 404
    assert response.json()['error'] == 'Watch not found'


@pytest.mark.asyncio
async def test_put_behaves_like_patch(async_client, auth_headers):
    response = await async_client.post(
        f'{API}/watches', json=WATCH_PAYLOAD, headers=auth_headers
    )
    watch_id = response.json()['watchId']

    response = await async_client.put(
        f'{API}/watches/{watch_id}',
        json={'departureDate': '2099-02-01', 'returnDate': '2099-02-10'},
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data['departureDate'] == '2099-02-01'
    assert data['returnDate'] == '2099-02-10'
    assert data['priceThreshold'] == 500
    assert data['isActive'] is True


@pytest.mark.asyncio
async def test_create_missing_fields(async_client, auth_headers):
    payload = {'origin': 'JFK', 'destination': 'LAX', 'priceThreshold': 300}
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 400
    data = response.json()
    assert data['error'] == 'Missing required fields'
    assert data['required'] == ['departureDate']


@pytest.mark.asyncio
@pytest.mark.parametrize('threshold', [0, -10])
async def test_create_rejects_non_positive_threshold(
        async_client, auth_headers, threshold
):
    payload = dict(WATCH_PAYLOAD, priceThreshold=threshold)
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 400
    assert 'priceThreshold' in response.json()['error']


@pytest.mark.asyncio
@pytest.mark.parametrize('threshold', [True, '500', 0, -1, None])
async def test_create_rejects_threshold_that_is_not_a_positive_number(
        async_client, auth_headers, threshold
):
    payload = dict(WATCH_PAYLOAD, priceThreshold=threshold)
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 400

    response = await async_client.get(
        f'{API}/watches', headers=auth_headers
    )
    assert response.json()['watches'] == []


@pytest.mark.asyncio
@pytest.mark.parametrize('threshold', [True, '500', 0, -1, None])
async def test_update_rejects_threshold_that_is_not_a_positive_number(
        async_client, auth_headers, threshold
):
    response = await async_client.post(
        f'{API}/watches', json=WATCH_PAYLOAD, headers=auth_headers
    )
    watch_id = response.json()['watchId']

    response = await async_client.patch(
        f'{API}/watches/{watch_id}',
        json={'priceThreshold': threshold},
        headers=auth_headers,
    )
    assert response.status_code == 400

    response = await async_client.get(
        f'{API}/watches/{watch_id}', headers=auth_headers
    )
    assert response.json()['priceThreshold'] == 500


@pytest.mark.asyncio
async def test_create_accepts_fractional_threshold(
        async_client, auth_headers
):
    payload = dict(WATCH_PAYLOAD, priceThreshold=249.99)
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 201
    assert response.json()['priceThreshold'] == 249.99


@pytest.mark.asyncio
@pytest.mark.parametrize('currency', ['dollars', 'US', '€UR'])
async def test_create_rejects_invalid_currency(
        async_client, auth_headers, currency
):
    payload = dict(WATCH_PAYLOAD, currency=currency)
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 400
    assert 'currency' in response.json()['error']


@pytest.mark.asyncio
async def test_create_rejects_malformed_body(async_client, auth_headers):
    payload = dict(WATCH_PAYLOAD, departureDate='not-a-date')
    response = await async_client.post(
        f'{API}/watches', json=payload, headers=auth_headers
    )
    assert response.status_code == 400
    assert 'error' in response.json()


@pytest.mark.asyncio
async def test_update_validation(async_client, auth_headers):
    response = await async_client.post(
        f'{API}/watches', json=WATCH_PAYLOAD, headers=auth_headers
    )
    watch_id = response.json()['watchId']

    response = await async_client.patch(
        f'{API}/watches/{watch_id}', json={}, headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()['error'] == 'No fields to update'

    response = await async_client.patch(
        f'{API}/watches/{watch_id}',
        json={'priceThreshold': -1},
        headers=auth_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_update_missing_watch_does_not_upsert(
        async_client, test_session, auth_headers
):
    response = await async_client.patch(
        f'{API}/watches/does-not-exist',
        json={'priceThreshold': 100},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json() == {'error': 'Watch not found'}
    assert await crud_watch.get_multi(test_session, 'user-alice') == []


@pytest.mark.asyncio
async def test_requests_without_token_are_rejected(async_client):
    response = await async_client.get(f'{API}/watches')
    assert response.status_code == 401
    assert response.json()['error'] == 'Unauthorized'

    response = await async_client.post(
        f'{API}/watches',
        json=WATCH_PAYLOAD,
        headers={'Authorization': 'Bearer garbage'},
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_preflight_needs_no_auth(async_client):
    for path in ('/watches', '/watches/abc', '/watches/abc/history'):
        response = await async_client.options(
            f'{API}{path}', headers={'Origin': 'http://localhost:3000'}
        )
        assert response.status_code == 200
        assert (
            response.headers['access-control-allow-origin']
            == 'http://localhost:3000'
        )
        assert 'PATCH' in response.headers['access-control-allow-methods']
        assert (
            'Authorization'
            in response.headers['access-control-allow-headers']
        )


@pytest.mark.asyncio
async def test_other_users_watch_is_not_found(
        async_client, auth_headers, other_auth_headers
):
    response = await async_client.post(
        f'{API}/watches', json=WATCH_PAYLOAD, headers=auth_headers
    )
    watch_id = response.json()['watchId']

    response = await async_client.get(
        f'{API}/watches/{watch_id}', headers=other_auth_headers
    )
    assert response.status_code == 404

    response = await async_client.patch(
        f'{API}/watches/{watch_id}',
        json={'priceThreshold': 1},
        headers=other_auth_headers,
    )
    assert response.status_code == 404

    response = await async_client.delete(
        f'{API}/watches/{watch_id}', headers=other_auth_headers
    )
    assert response.status_code == 404

    response = await async_client.get(
        f'{API}/watches', headers=other_auth_headers
    )
    assert response.json() == {'watches': []}


@pytest.mark.asyncio
async def test_history_is_readable_by_id(
        async_client, test_session, auth_headers, other_auth_headers,
        created_watch
):
    for price in (480.0, 455.5):
        await crud_price_snapshot.record(
            test_session,
            created_watch.watch_id,
            PriceResult(
                price=price,
                currency='USD',
                airline='AA',
                flight_number='100',
                duration='PT6H',
                stops=0,
            ),
        )

    response = await async_client.get(
        f'{API}/watches/{created_watch.watch_id}/history',
        headers=auth_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data['count'] == 2
    latest = data['snapshots'][0]
    assert latest['price'] == 455.5
    assert latest['source'] == 'amadeus'
    assert latest['flightDetails'] == {
        'airline': 'AA',
        'flightNumber': '100',
        'duration': 'PT6H',
        'stops': 0,
    }

    # Ownership is not checked on history by default
    response = await async_client.get(
        f'{API}/watches/{created_watch.watch_id}/history',
        headers=other_auth_headers,
    )
    assert response.status_code == 200
    assert response.json()['count'] == 2

    response = await async_client.get(
        f'{API}/watches/{created_watch.watch_id}/history',
        params={'limit': 1},
        headers=auth_headers,
    )
    assert response.json()['count'] == 1


@pytest.mark.asyncio
async def test_history_owner_check_when_enabled(
        async_client, auth_headers, other_auth_headers, created_watch,
        monkeypatch
):
    monkeypatch.setattr(settings, 'history_requires_owner', True)

    response = await async_client.get(
        f'{API}/watches/{created_watch.watch_id}/history',
        headers=other_auth_headers,
    )
    assert response.status_code == 404

    response = await async_client.get(
        f'{API}/watches/{created_watch.watch_id}/history',
        headers=auth_headers,
    )
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_unexpected_error_is_generic(
        test_session, auth_headers, monkeypatch
):
    async def broken_list(session, user_id):
        raise RuntimeError('database password is hunter2')

    monkeypatch.setattr(crud_watch, 'get_multi', broken_list)

    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(
            transport=transport, base_url='http://test'
    ) as client:
        response = await client.get(f'{API}/watches', headers=auth_headers)
    assert response.status_code == 500
    assert response.json() == {'error': 'Internal Server Error'}


@pytest.mark.asyncio
async def test_health(async_client):
    response = await async_client.get('/health')
    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}

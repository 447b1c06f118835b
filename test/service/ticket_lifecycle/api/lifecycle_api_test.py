"""
HTTP smoke tests through the FastAPI TestClient

Covers the common endpoints, authentication, role checks and the error
envelope produced by the exception handlers.
"""

from typing import Callable

from fastapi.testclient import TestClient
import pytest
from uuid_utils.compat import uuid7

from src.service.ticket_lifecycle.domain.entity.user_entity import CurrentUser


Headers = Callable[[CurrentUser], dict[str, str]]


@pytest.mark.api
class TestCommonEndpoints:
    def test_health(self, client: TestClient) -> None:
        response = client.get('/health')

        assert response.status_code == 200
        assert response.json()['status'] == 'healthy'
        assert response.json()['database'] == 'ok'

    def test_metrics_are_exposed(self, client: TestClient) -> None:
        client.get('/health')

        response = client.get('/metrics')

        assert response.status_code == 200
        assert 'text/plain' in response.headers['content-type']


@pytest.mark.api
class TestAuthentication:
    def test_missing_token_is_unauthenticated(self, client: TestClient) -> None:
        response = client.get('/api/tickets')

        assert response.status_code == 401
        assert response.json()['error']['code'] == 'UNAUTHENTICATED'

    def test_garbage_token_is_unauthenticated(self, client: TestClient) -> None:
        response = client.get('/api/cart', headers={'Authorization': 'Bearer not-a-jwt'})

        assert response.status_code == 401

    def test_customer_cannot_read_the_audit_log(
        self, client: TestClient, buyer: CurrentUser, auth_headers: Headers
    ) -> None:
        response = client.get('/api/audit', headers=auth_headers(buyer))

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'FORBIDDEN'

    def test_admin_reads_the_audit_log(
        self, client: TestClient, admin: CurrentUser, auth_headers: Headers
    ) -> None:
        response = client.get('/api/audit', params={'limit': 5}, headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.json()
        assert body['page'] == 1
        assert body['limit'] == 5
        assert isinstance(body['items'], list)


@pytest.mark.api
class TestErrorEnvelope:
    def test_unknown_event_inventory_is_not_found(self, client: TestClient) -> None:
        response = client.get(f'/api/tickets/events/{uuid7()}/inventory')

        assert response.status_code == 404
        assert response.json() == {
            'detail': 'Event not found',
            'error': {'kind': 'NotFound', 'code': 'NOT_FOUND', 'message': 'Event not found'},
        }

    def test_malformed_body_is_a_validation_error(
        self, client: TestClient, buyer: CurrentUser, auth_headers: Headers
    ) -> None:
        response = client.post(
            '/api/cart/items', json={'quantity': 'lots'}, headers=auth_headers(buyer)
        )

        assert response.status_code == 422
        error = response.json()['error']
        assert error['code'] == 'VALIDATION_ERROR'
        assert {e['field'] for e in error['errors']} >= {'event_id', 'quantity'}

    def test_empty_cart_is_returned_for_a_new_user(
        self, client: TestClient, another_buyer: CurrentUser, auth_headers: Headers
    ) -> None:
        response = client.get('/api/cart', headers=auth_headers(another_buyer))

        assert response.status_code == 200

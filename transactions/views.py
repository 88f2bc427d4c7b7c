from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from datetime import datetime, timezone
import logging
from .database import session_scope, check_connection
from .exceptions import InvalidQuery, StorageError, TransactionNotFound, ValidationFailed, VersionConflict
from .query import QuerySpec, DEFAULT_SORT_DIRECTION
from .serializers import TransactionSerializer
from .sqlalchemy_models import MAX_INTEGER, TransactionState
from .service import TransferService

logger = logging.getLogger(__name__)


def _storage_failure():
    return Response(
        {'error': 'Storage failure'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def _not_found(transaction_id):
    return Response(
        {'error': f'Transaction {transaction_id} not found'},
        status=status.HTTP_404_NOT_FOUND
    )


@api_view(['GET'])
def health_check(request):
    healthy = check_connection()
    return Response(
        {
            'status': 'HEALTHY' if healthy else 'UNHEALTHY',
            'current_time': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z'),
        },
        status=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE
    )


@api_view(['GET'])
def get_transaction(request, transaction_id):
    with session_scope() as db:
        try:
            transaction = TransferService(db).get(transaction_id)
        except TransactionNotFound:
            return _not_found(transaction_id)
        except StorageError:
            return _storage_failure()
        return Response(TransactionSerializer(transaction).data)


@api_view(['GET'])
def list_transactions(request, page, page_size):
    q = request.query_params.get('q') or None
    sort_by = request.query_params.get('sortBy') or None
    sort_direction = request.query_params.get('sortDirection') or None

    spec = QuerySpec(
        page=page,
        page_size=page_size,
        search_text=q,
        sort_field=sort_by,
        sort_direction=sort_direction or DEFAULT_SORT_DIRECTION,
    )
    with session_scope() as db:
        try:
            result = TransferService(db).query(spec)
        except InvalidQuery as e:
            logger.warning("Rejected listing request: %s", e)
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except StorageError:
            return _storage_failure()

        if result.is_empty:
            return Response(status=status.HTTP_204_NO_CONTENT)

        return Response({
            'data': TransactionSerializer(result.items, many=True).data,
            'currentPage': result.page,
            'totalPages': result.total_pages,
            'pageSize': result.page_size,
            'activeFilters': {
                'q': q,
                'sortBy': sort_by,
                'sortDirection': sort_direction,
            },
        })


@api_view(['POST'])
def create_transaction(request):
    with session_scope() as db:
        try:
            transaction = TransferService(db).create(request.data)
        except ValidationFailed as e:
            return Response(e.errors, status=status.HTTP_400_BAD_REQUEST)
        except StorageError:
            return _storage_failure()

        return Response(
            TransactionSerializer(transaction).data,
            status=status.HTTP_201_CREATED,
            headers={'Location': f'/api/transactions/{transaction.id}'}
        )


@api_view(['POST'])
def bulk_create_transactions(request):
    with session_scope() as db:
        try:
            transactions = TransferService(db).bulk_create(request.data)
        except ValidationFailed as e:
            return Response(e.errors, status=status.HTTP_400_BAD_REQUEST)
        except StorageError:
            return _storage_failure()

        headers = {}
        if transactions:
            headers['Location'] = ','.join(f'/api/transactions/{t.id}' for t in transactions)
        return Response(
            TransactionSerializer(transactions, many=True).data,
            status=status.HTTP_201_CREATED,
            headers=headers
        )


def _expected_version(request):
    """Parse an optional ``If-Match`` header carrying the version the client last saw."""
    header = request.headers.get('If-Match')
    if header is None:
        return None
    value = header.strip()
    if value.startswith('W/'):
        value = value[2:]
    value = value.strip('"')
    if not value.isdigit() or int(value) > MAX_INTEGER:
        raise ValueError(header)
    return int(value)


@api_view(['PUT'])
def update_transaction_state(request, transaction_id, state):
    try:
        expected_version = _expected_version(request)
    except ValueError:
        return Response(
            {'error': f'If-Match must carry a version between 0 and {MAX_INTEGER}'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        new_state = TransactionState.parse(state)
    except ValueError:
        return Response(
            {'error': f"'{state}' is not a valid State. Use Send, Received or Paid."},
            status=status.HTTP_400_BAD_REQUEST
        )

    with session_scope() as db:
        try:
            TransferService(db).advance_state(transaction_id, new_state, expected_version=expected_version)
        except TransactionNotFound:
            return _not_found(transaction_id)
        except VersionConflict as e:
            return Response(
                {
                    'error': str(e),
                    'expectedVersion': e.expected_version,
                    'currentVersion': e.actual_version,
                },
                status=status.HTTP_409_CONFLICT
            )
        except StorageError:
            return _storage_failure()

        return Response(status=status.HTTP_204_NO_CONTENT)

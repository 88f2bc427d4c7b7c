import math

from rest_framework import serializers

from .sqlalchemy_models import TransactionState

MIN_ACCOUNT_LENGTH = 2
MAX_ACCOUNT_LENGTH = 255


def _account_messages(name):
    return {
        'required': f"{name} is required.",
        'null': f"{name} is required.",
        'blank': f"{name} is required.",
        'min_length': f"The length of '{name}' must be at least {MIN_ACCOUNT_LENGTH} characters.",
        'max_length': f"The length of '{name}' must be {MAX_ACCOUNT_LENGTH} characters or fewer.",
    }


class StateField(serializers.Field):
    default_error_messages = {
        'invalid': "'{value}' is not a valid State. Use Send, Received or Paid.",
    }

    def to_internal_value(self, data):
        try:
            return TransactionState.parse(data)
        except ValueError:
            self.fail('invalid', value=data)

    def to_representation(self, value):
        return TransactionState.parse(value).label


class TransactionCandidateSerializer(serializers.Serializer):
    """Client-supplied fields of a new transaction.

    id, created, version and lastStateUpdate are not declared, so any value
    a client sends for them is dropped.
    """

    fromAccount = serializers.CharField(
        source='from_account',
        min_length=MIN_ACCOUNT_LENGTH,
        max_length=MAX_ACCOUNT_LENGTH,
        trim_whitespace=False,
        error_messages=_account_messages('FromAccount'),
    )
    toAccount = serializers.CharField(
        source='to_account',
        min_length=MIN_ACCOUNT_LENGTH,
        max_length=MAX_ACCOUNT_LENGTH,
        trim_whitespace=False,
        error_messages=_account_messages('ToAccount'),
    )
    amount = serializers.FloatField(required=False, default=0.0)
    state = StateField(required=False, default=TransactionState.SEND)

    # stored untrimmed; whitespace alone does not count as a name
    def validate_fromAccount(self, value):
        if not value.strip():
            raise serializers.ValidationError(self.fields['fromAccount'].error_messages['blank'])
        return value

    def validate_toAccount(self, value):
        if not value.strip():
            raise serializers.ValidationError(self.fields['toAccount'].error_messages['blank'])
        return value

    def validate_amount(self, value):
        if not math.isfinite(value):
            raise serializers.ValidationError("Amount must be a finite number.")
        return value


class TransactionSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    fromAccount = serializers.CharField(source='from_account', read_only=True)
    toAccount = serializers.CharField(source='to_account', read_only=True)
    amount = serializers.FloatField(read_only=True)
    created = serializers.DateTimeField(read_only=True)
    state = StateField(read_only=True)
    lastStateUpdate = serializers.DateTimeField(source='last_state_update', read_only=True, allow_null=True)
    version = serializers.IntegerField(read_only=True)


def flatten_errors(errors, data, index=None):
    """Turn a serializer's ``errors`` dict into a list of per-field error items."""
    flattened = []
    for field, messages in errors.items():
        attempted = data.get(field) if isinstance(data, dict) else None
        for message in messages:
            item = {
                'propertyName': field,
                'errorMessage': str(message),
                'attemptedValue': attempted,
            }
            if index is not None:
                item['index'] = index
            flattened.append(item)
    return flattened


def validate_candidate(data, index=None):
    """Validate one candidate. Returns (validated_data, errors)."""
    if not isinstance(data, dict):
        error = {
            'propertyName': '',
            'errorMessage': "Expected a JSON object.",
            'attemptedValue': data,
        }
        if index is not None:
            error['index'] = index
        return None, [error]

    serializer = TransactionCandidateSerializer(data=data)
    if serializer.is_valid():
        return serializer.validated_data, []
    return None, flatten_errors(serializer.errors, data, index=index)

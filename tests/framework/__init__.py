"""
Test framework for running document store tests against DynamoDB stand-ins.
"""

from .drivers import FakeStoreDriver, MotoStoreDriver, StoreDriver, TEST_CREDENTIALS
from .fake_dynamodb import FakeDynamoDB, aws_error, signature_is_valid
from .scripted import DynamoDBScript, ok

__all__ = [
    'StoreDriver',
    'FakeStoreDriver',
    'MotoStoreDriver',
    'TEST_CREDENTIALS',
    'FakeDynamoDB',
    'DynamoDBScript',
    'aws_error',
    'ok',
    'signature_is_valid',
]

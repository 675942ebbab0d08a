import mongoengine
import mongomock
import pytest


@pytest.fixture(scope="session", autouse=True)
def mongo_test_connection():
    """Points the default mongoengine alias at an in-memory mongomock client."""
    mongoengine.disconnect(alias='default')
    mongoengine.connect(
        'socialeats_test',
        host='mongodb://localhost',
        alias='default',
        mongo_client_class=mongomock.MongoClient,
    )
    yield
    mongoengine.disconnect(alias='default')

"""Tests for the MongoDB helpers and the retrying delete handler."""
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, OperationFailure

from viticult.core.errors import BadRequestError, DatabaseUnavailableError, InvalidIdError, NotFoundError
from viticult.infrastructure.mongo import (
    MongoConnectionHandler,
    build_pagination,
    page_bounds,
    parse_object_id,
    serialize_document,
)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def handler(sleeps):
    return MongoConnectionHandler(max_retries=2, max_reconnect_attempts=3, reconnect_delay=1.0, sleep=sleeps.append)


@pytest.fixture
def collection():
    mock_collection = MagicMock()
    mock_collection.name = "contacts"
    return mock_collection


class TestHelpers:
    """Test id parsing, serialisation and paging."""

    def test_parse_object_id(self):
        value = str(ObjectId())

        assert parse_object_id(value) == ObjectId(value)
        with pytest.raises(InvalidIdError):
            parse_object_id("12345")

    @pytest.mark.parametrize("suffix", ["\n", " ", "\r\n"])
    def test_parse_object_id_rejects_trailing_characters(self, suffix):
        with pytest.raises(InvalidIdError):
            parse_object_id(str(ObjectId()) + suffix)

    def test_serialize_nested_ids(self):
        inner = ObjectId()
        doc = {"_id": inner, "items": [{"ref": inner}], "count": 2}

        assert serialize_document(doc) == {"_id": str(inner), "items": [{"ref": str(inner)}], "count": 2}

    def test_paging(self):
        assert page_bounds(3, 20) == (40, 20)
        assert page_bounds(0, 20) == (0, 20)
        assert build_pagination(41, 1, 20) == {"total": 41, "page": 1, "pages": 3}


class TestConnectionHandler:
    """Test connection checks and retries."""

    def test_delete(self, handler, collection):
        doc_id = ObjectId()
        collection.find_one.return_value = {"_id": doc_id, "email": "jane@gmail.com"}

        result = handler.safe_delete(collection, str(doc_id), "Contact")

        assert result["deletedId"] == str(doc_id)
        assert result["deletedDocument"]["_id"] == str(doc_id)
        collection.delete_one.assert_called_once_with({"_id": doc_id})

    def test_delete_not_found(self, handler, collection):
        collection.find_one.return_value = None

        with pytest.raises(NotFoundError) as exc_info:
            handler.safe_delete(collection, str(ObjectId()), "Contact")

        assert exc_info.value.message == "Contact not found"

    def test_reconnects_before_giving_up(self, handler, collection, sleeps):
        ping = collection.database.client.admin.command
        ping.side_effect = [AutoReconnect("down"), None]
        collection.find_one.return_value = {"_id": ObjectId()}

        handler.safe_delete(collection, str(ObjectId()))

        assert ping.call_count == 2
        assert sleeps == [1.0]

    def test_unavailable_after_reconnect_attempts(self, handler, collection, sleeps):
        collection.database.client.admin.command.side_effect = AutoReconnect("down")

        with pytest.raises(DatabaseUnavailableError) as exc_info:
            handler.safe_delete(collection, str(ObjectId()))

        assert exc_info.value.status_code == 503
        assert len(sleeps) == 2

    def test_operation_retried_once(self, handler, collection):
        doc_id = ObjectId()
        collection.find_one.side_effect = [AutoReconnect("reset"), {"_id": doc_id}]

        result = handler.safe_delete(collection, str(doc_id))

        assert result["deletedId"] == str(doc_id)
        assert collection.find_one.call_count == 2

    def test_non_network_errors_propagate(self, handler, collection):
        collection.find_one.side_effect = OperationFailure("not authorized")

        with pytest.raises(OperationFailure):
            handler.safe_delete(collection, str(ObjectId()))

        assert collection.find_one.call_count == 1

    def test_persistent_network_errors(self, handler, collection):
        collection.find_one.side_effect = AutoReconnect("reset")

        with pytest.raises(DatabaseUnavailableError) as exc_info:
            handler.safe_delete(collection, str(ObjectId()), "Contact")

        assert exc_info.value.message == "delete contact failed: database connection unavailable"

    def test_bulk_delete_validation(self, handler, collection):
        with pytest.raises(BadRequestError):
            handler.safe_bulk_delete(collection, [])

        with pytest.raises(InvalidIdError) as exc_info:
            handler.safe_bulk_delete(collection, [str(ObjectId()), "bad"])

        assert exc_info.value.message == "Invalid document ID format: bad"
        collection.delete_many.assert_not_called()

    def test_bulk_delete_rejects_trailing_newline(self, handler, collection):
        with pytest.raises(InvalidIdError):
            handler.safe_bulk_delete(collection, [str(ObjectId()) + "\n"])

        collection.find.assert_not_called()
        collection.delete_many.assert_not_called()

"""Tests for the admin dashboard endpoints."""
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi import status

from viticult.api.routes.admin import XLSX_MEDIA_TYPE


@pytest.fixture
def stored_contact(collections):
    doc_id = ObjectId()
    collections["contacts"].find_one.return_value = {"_id": doc_id, "email": "jane@gmail.com"}
    return doc_id


class TestCsrfToken:
    """Test the CSRF token endpoint."""

    def test_issue_token(self, test_client):
        response = test_client.get("/api/admin/csrf-token")

        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()["csrfToken"]) == 64


class TestAdminDeletes:
    """Test single and bulk deletes behind the CSRF check."""

    def test_delete_without_csrf(self, authenticated_client, stored_contact, collections):
        response = authenticated_client.delete(f"/api/admin/contact/{stored_contact}")

        assert response.status_code == status.HTTP_403_FORBIDDEN
        collections["contacts"].delete_one.assert_not_called()

    def test_delete_with_csrf(self, authenticated_client, csrf_headers, stored_contact, collections):
        response = authenticated_client.delete(f"/api/admin/contact/{stored_contact}", headers=csrf_headers())

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["message"] == "Contact deleted successfully"
        assert body["data"] == {"deletedId": str(stored_contact), "deletedEmail": "jane@gmail.com"}

    def test_csrf_token_is_single_use(self, authenticated_client, csrf_headers, stored_contact):
        headers = csrf_headers()
        authenticated_client.delete(f"/api/admin/contact/{stored_contact}", headers=headers)

        response = authenticated_client.delete(f"/api/admin/contact/{stored_contact}", headers=headers)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json()["message"] == "CSRF token already used"

    def test_delete_missing_consultation(self, authenticated_client, csrf_headers, collections):
        collections["consultations"].find_one.return_value = None

        response = authenticated_client.delete(
            f"/api/admin/consultation-requests/{ObjectId()}", headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Consultation not found"

    def test_bulk_delete(self, authenticated_client, csrf_headers, collections):
        ids = [ObjectId(), ObjectId()]
        sell = collections["sellwhiskies"]
        sell.find.return_value = [{"_id": ids[0]}]
        sell.delete_many.return_value = MagicMock(deleted_count=1)

        response = authenticated_client.post(
            "/api/admin/sell-submissions/bulk-delete",
            json={"ids": [str(i) for i in ids]},
            headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["deletedCount"] == 1
        assert body["requestedCount"] == 2
        assert body["deletedIds"] == [str(ids[0])]
        assert body["message"] == "Successfully deleted 1 records"

    def test_bulk_delete_empty_ids(self, authenticated_client, csrf_headers):
        response = authenticated_client.post(
            "/api/admin/contact/bulk-delete", json={"ids": []}, headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid or empty IDs array"

    def test_bulk_delete_invalid_id(self, authenticated_client, csrf_headers, collections):
        response = authenticated_client.post(
            "/api/admin/contact/bulk-delete", json={"ids": ["nope"]}, headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        collections["contacts"].delete_many.assert_not_called()

    def test_bulk_delete_id_with_trailing_newline(self, authenticated_client, csrf_headers, collections):
        response = authenticated_client.post(
            "/api/admin/contact/bulk-delete",
            json={"ids": [f"{ObjectId()}\n"]},
            headers=csrf_headers()
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Invalid document ID format")
        collections["contacts"].delete_many.assert_not_called()

    def test_get_contact_id_with_trailing_newline(self, authenticated_client, collections):
        response = authenticated_client.get(f"/api/contact/{ObjectId()}%0A")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid document ID format"
        collections["contacts"].find_one.assert_not_called()


class TestAdminViews:
    """Test listings, status updates and dashboard stats."""

    def test_contact_submissions(self, authenticated_client, collections):
        contacts = collections["contacts"]
        contacts.find.return_value.sort.return_value.skip.return_value.limit.return_value = []
        contacts.count_documents.return_value = 0

        response = authenticated_client.get("/api/admin/contact-submissions?status=new")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == []
        assert contacts.find.call_args[0][0] == {"status": "new"}

    def test_sell_submission_status(self, authenticated_client, collections):
        doc_id = ObjectId()
        collections["sellwhiskies"].find_one_and_update.return_value = {"_id": doc_id, "status": "evaluating"}

        response = authenticated_client.patch(
            f"/api/admin/sell-submissions/{doc_id}/status", json={"status": "evaluating"}
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == "evaluating"

    def test_stats(self, authenticated_client, collections):
        for name in ("contacts", "sellwhiskies", "consultations"):
            collections[name].aggregate.return_value = []
            collections[name].count_documents.return_value = 0
        collections["contacts"].aggregate.return_value = [{"_id": "new", "count": 2}]

        response = authenticated_client.get("/api/admin/stats")

        data = response.json()["data"]
        assert data["contacts"]["total"] == 2
        assert data["sellWhisky"]["total"] == 0
        assert data["recentWindowDays"] == 7


class TestAdminExport:
    """Test the Excel and CSV downloads."""

    @pytest.fixture
    def stored_submissions(self, collections):
        collections["contacts"].find.return_value.sort.return_value = [
            {"_id": ObjectId(), "name": "Jane Smith", "email": "jane@gmail.com", "subject": "Casks", "status": "new"}
        ]
        collections["sellwhiskies"].find.return_value.sort.return_value = []
        collections["consultations"].find.return_value.sort.return_value = []

    def test_export_requires_admin(self, test_client):
        response = test_client.get("/api/admin/export")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_excel_export(self, authenticated_client, stored_submissions):
        response = authenticated_client.get("/api/admin/export")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == XLSX_MEDIA_TYPE
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="whisky-submissions-')
        assert disposition.endswith('.xlsx"')
        assert response.content[:2] == b"PK"

    def test_csv_export(self, authenticated_client, stored_submissions):
        response = authenticated_client.get("/api/admin/export?format=csv&type=contacts")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/csv")
        text = response.content.decode("utf-8-sig")
        assert text.splitlines()[0].startswith("ID,Name,Email")
        assert "Jane Smith" in text

    def test_export_through_auth_router(self, authenticated_client, stored_submissions):
        response = authenticated_client.get("/api/auth/admin/export-submissions?format=csv")

        assert response.status_code == status.HTTP_200_OK

"""Tests for the contact, sell-whisky and consultation endpoints."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from bson import ObjectId
from fastapi import status

from viticult.domain.submissions import ConsultationUpdate
from viticult.services.submissions import ConsultationService, ContactService

CONTACT_PAYLOAD = {
    "name": "Jane Smith",
    "email": "Jane.Smith@Gmail.com",
    "subject": "Cask enquiry",
    "message": "I would like to learn about cask ownership.",
    "investmentInterest": "premium",
}

SELL_PAYLOAD = {
    "name": "Angus Grant",
    "email": "angus@highlandcasks.co.uk",
    "phone": "+44 7700 900123",
    "caskType": "Ex-Sherry",
    "distillery": "Macallan",
    "year": 1998,
    "litres": "190",
    "abv": "52.1",
}


def consultation_payload(days_ahead: int = 7):
    return {
        "name": "Priya Patel",
        "email": "priya@investmail.com",
        "phone": "+44 7700 900456",
        "preferredDate": (datetime.now(timezone.utc) + timedelta(days=days_ahead)).isoformat(),
        "preferredTime": "morning",
        "investmentBudget": "25k-50k",
        "investmentExperience": "beginner",
        "interestedIn": ["single-casks"],
    }


@pytest.fixture
def inserted_id(collections):
    new_id = ObjectId()
    for name in ("contacts", "sellwhiskies", "consultations"):
        collections[name].insert_one.return_value = MagicMock(inserted_id=new_id)
    return new_id


def stub_listing(collection, documents, total=None):
    collection.find.return_value.sort.return_value.skip.return_value.limit.return_value = documents
    collection.count_documents.return_value = len(documents) if total is None else total


class TestContactRoutes:
    """Test the public contact form and its admin views."""

    def test_submit_contact(self, test_client, collections, inserted_id, mock_notifications):
        response = test_client.post("/api/contact", json=CONTACT_PAYLOAD)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["message"] == "Contact form submitted successfully"
        assert data["data"] == {"id": str(inserted_id), "name": "Jane Smith", "email": "jane.smith@gmail.com"}

        stored = collections["contacts"].insert_one.call_args[0][0]
        assert stored["status"] == "new"
        assert stored["investmentInterest"] == "premium"
        assert stored["ipAddress"] == "Local Development"
        mock_notifications.contact_received.assert_called_once()

    def test_forwarded_ip_is_stored(self, test_client, collections, inserted_id):
        test_client.post(
            "/api/contact",
            json=CONTACT_PAYLOAD,
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}
        )

        assert collections["contacts"].insert_one.call_args[0][0]["ipAddress"] == "203.0.113.9"

    def test_submit_contact_validation(self, test_client, collections):
        response = test_client.post("/api/contact", json={"name": "", "email": "nope"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        body = response.json()
        assert body["success"] is False
        fields = {error["field"] for error in body["errors"]}
        assert {"name", "email", "subject", "message"} <= fields
        collections["contacts"].insert_one.assert_not_called()

    def test_list_requires_admin(self, test_client):
        response = test_client.get("/api/contact")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_list_contacts(self, authenticated_client, collections):
        doc_id = ObjectId()
        stub_listing(collections["contacts"], [{"_id": doc_id, "name": "Jane", "status": "new"}], total=41)

        response = authenticated_client.get("/api/contact?page=2&limit=20&status=new&search=jane")

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["data"][0]["_id"] == str(doc_id)
        assert body["pagination"] == {"total": 41, "page": 2, "pages": 3}

        query = collections["contacts"].find.call_args[0][0]
        assert query["status"] == "new"
        assert {"name": {"$regex": "jane", "$options": "i"}} in query["$or"]
        collections["contacts"].find.return_value.sort.return_value.skip.assert_called_once_with(20)

    def test_get_contact_invalid_id(self, authenticated_client):
        response = authenticated_client.get("/api/contact/not-an-id")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "Invalid document ID format"

    def test_get_contact_not_found(self, authenticated_client, collections):
        collections["contacts"].find_one.return_value = None

        response = authenticated_client.get(f"/api/contact/{ObjectId()}")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["message"] == "Contact not found"

    def test_update_status(self, authenticated_client, collections):
        doc_id = ObjectId()
        collections["contacts"].find_one_and_update.return_value = {"_id": doc_id, "status": "contacted"}

        response = authenticated_client.patch(f"/api/contact/{doc_id}/status", json={"status": "contacted"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"]["status"] == "contacted"

    def test_update_status_rejects_unknown_status(self, authenticated_client):
        response = authenticated_client.patch(f"/api/contact/{ObjectId()}/status", json={"status": "archived"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"].startswith("Invalid status. Must be one of:")

    def test_delete_contact(self, authenticated_client, collections):
        doc_id = ObjectId()
        collections["contacts"].find_one.return_value = {"_id": doc_id, "email": "jane@gmail.com"}

        response = authenticated_client.delete(f"/api/contact/{doc_id}")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"] == {"deletedId": str(doc_id), "deletedEmail": "jane@gmail.com"}
        collections["contacts"].delete_one.assert_called_once_with({"_id": doc_id})


class TestSellWhiskyRoutes:
    """Test sell-your-whisky submissions."""

    def test_submit(self, test_client, collections, inserted_id, mock_notifications):
        response = test_client.post("/api/sell-whisky", json=SELL_PAYLOAD)

        assert response.status_code == status.HTTP_201_CREATED
        assert "48 hours" in response.json()["message"]
        stored = collections["sellwhiskies"].insert_one.call_args[0][0]
        assert stored["year"] == "1998"
        assert stored["caskType"] == "Ex-Sherry"
        mock_notifications.sell_submission_received.assert_called_once()

    def test_invalid_year(self, test_client):
        response = test_client.post("/api/sell-whisky", json={**SELL_PAYLOAD, "year": 1850})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["field"] == "year"

    def test_admin_listing(self, authenticated_client, collections):
        stub_listing(collections["sellwhiskies"], [])

        response = authenticated_client.get("/api/sell-whisky/submissions")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["pagination"] == {"total": 0, "page": 1, "pages": 0}


class TestConsultationRoutes:
    """Test consultation bookings."""

    def test_book(self, test_client, collections, inserted_id, mock_notifications):
        response = test_client.post("/api/consultation", json=consultation_payload())

        assert response.status_code == status.HTTP_201_CREATED
        body = response.json()
        assert body["message"] == "Consultation booked successfully"
        assert body["data"]["preferredTime"] == "morning"
        stored = collections["consultations"].insert_one.call_args[0][0]
        assert stored["status"] == "scheduled"
        assert stored["reminderSent"] is False
        mock_notifications.consultation_booked.assert_called_once()

    def test_date_must_be_in_future(self, test_client):
        response = test_client.post("/api/consultation", json=consultation_payload(days_ahead=-1))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["errors"][0]["field"] == "preferredDate"

    def test_phone_required(self, test_client):
        payload = consultation_payload()
        del payload["phone"]

        response = test_client.post("/api/consultation", json=payload)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_confirm_sends_mail(self, authenticated_client, collections, mock_notifications):
        doc_id = ObjectId()
        collections["consultations"].find_one_and_update.return_value = {
            "_id": doc_id,
            "email": "priya@investmail.com",
            "status": "confirmed",
            "meetingLink": "https://meet.example.org/abc",
        }

        response = authenticated_client.patch(
            f"/api/consultation/{doc_id}",
            json={"status": "confirmed", "meetingLink": "https://meet.example.org/abc"}
        )

        assert response.status_code == status.HTTP_200_OK
        mock_notifications.consultation_confirmed.assert_called_once()

    def test_empty_update_rejected(self, authenticated_client):
        response = authenticated_client.patch(f"/api/consultation/{ObjectId()}", json={})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No updates provided"

    def test_null_status_not_written(self, authenticated_client, collections):
        doc_id = ObjectId()
        consultations = collections["consultations"]
        consultations.find_one_and_update.return_value = {"_id": doc_id, "status": "scheduled"}

        response = authenticated_client.patch(
            f"/api/consultation/{doc_id}",
            json={"status": None, "preferredTime": None, "meetingLink": None}
        )

        assert response.status_code == status.HTTP_200_OK
        changes = consultations.find_one_and_update.call_args[0][1]["$set"]
        assert "status" not in changes
        assert "preferredTime" not in changes
        assert changes["meetingLink"] is None

    def test_only_nulls_rejected(self, authenticated_client, collections):
        response = authenticated_client.patch(
            f"/api/consultation/{ObjectId()}", json={"status": None, "preferredDate": None}
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["message"] == "No updates provided"
        collections["consultations"].find_one_and_update.assert_not_called()


class TestSubmissionService:
    """Unit tests for the shared submission service."""

    def test_search_is_escaped(self):
        service = ContactService(MagicMock())
        query = service.build_filter(search="a.b*")

        assert query["$or"][0] == {"name": {"$regex": r"a\.b\*", "$options": "i"}}

    def test_date_range_filter(self):
        service = ContactService(MagicMock())
        start = datetime(2024, 1, 1)
        query = service.build_filter(start_date=start)

        assert query["createdAt"]["$gte"] == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_consultation_filters_on_preferred_date(self):
        service = ConsultationService(MagicMock())
        query = service.build_filter(end_date=datetime(2024, 6, 1, tzinfo=timezone.utc))

        assert "preferredDate" in query

    def test_update_without_meeting_link_does_not_confirm(self):
        db = MagicMock()
        collection = db.__getitem__.return_value
        collection.find_one_and_update.return_value = {"_id": ObjectId(), "status": "confirmed"}

        _, confirm = ConsultationService(db).update(str(ObjectId()), ConsultationUpdate(status="confirmed"))

        assert confirm is False

    def test_reminders_flag_only_sent_mail(self):
        db = MagicMock()
        collection = db.__getitem__.return_value
        sent_id, failed_id = ObjectId(), ObjectId()
        collection.find.return_value = [
            {"_id": sent_id, "email": "a@investmail.com"},
            {"_id": failed_id, "email": "b@investmail.com"},
        ]
        notifications = MagicMock()
        notifications.consultation_reminder.side_effect = [True, False]

        result = ConsultationService(db).send_reminders(notifications, now=datetime(2024, 5, 1, 9, tzinfo=timezone.utc))

        assert result == {"remindersCount": 2, "sentCount": 1}
        flagged = [call[0][0] for call in collection.update_one.call_args_list]
        assert flagged == [{"_id": sent_id}]

    def test_stats(self):
        db = MagicMock()
        collection = db.__getitem__.return_value
        collection.aggregate.return_value = [{"_id": "new", "count": 3}, {"_id": "closed", "count": 1}]
        collection.count_documents.return_value = 2

        stats = ContactService(db).stats(since=datetime(2024, 5, 1, tzinfo=timezone.utc))

        assert stats["total"] == 4
        assert stats["byStatus"]["new"] == 3
        assert stats["byStatus"]["contacted"] == 0
        assert stats["recent"] == 2

import json

from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.signals import user_logged_out
from django.test import RequestFactory, TestCase
from django.urls import reverse

from apps.datasets.models import Dataset
from apps.visualization.ml.insights import SESSION_KEY

User = get_user_model()


class TestInsightConfigView(TestCase):
    url = reverse("insight-config")

    def setUp(self):
        self.user = User.objects.create_user(username="alice", password="secret")
        self.client.force_login(self.user)

    def test_login_seeds_defaults(self):
        response = self.client.get(self.url)
        body = response.json()
        self.assertTrue(body["configured"])
        self.assertEqual(body["endpoint"], settings.INSIGHT_DEFAULTS["endpoint"])
        self.assertEqual(body["model"], settings.INSIGHT_DEFAULTS["model"])
        self.assertFalse(body["has_api_key"])

    def test_update_keeps_key_on_server(self):
        response = self.client.post(
            self.url,
            json.dumps(
                {"endpoint": "https://llm.example.com/api/generate", "model": "mistral", "api_key": "s3cret"}
            ),
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertNotIn("api_key", response.json())

        body = self.client.get(self.url).json()
        self.assertEqual(body["model"], "mistral")
        self.assertTrue(body["has_api_key"])
        self.assertEqual(body["timeout"], settings.INSIGHT_DEFAULTS["timeout"])
        self.assertNotIn("s3cret", json.dumps(body))

    def test_rejects_invalid_endpoint(self):
        response = self.client.post(self.url, {"endpoint": "not a url"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("endpoint", response.json()["errors"])

    def test_rejects_malformed_json(self):
        response = self.client.post(self.url, "{not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Request body is not valid JSON"})
        self.assertEqual(
            self.client.get(self.url).json()["model"], settings.INSIGHT_DEFAULTS["model"]
        )

    def test_rejects_invalid_timeout(self):
        response = self.client.post(self.url, {"timeout": 0})
        self.assertEqual(response.status_code, 400)

    def test_delete_clears_config(self):
        response = self.client.delete(self.url)
        self.assertEqual(response.status_code, 204)
        self.assertEqual(self.client.get(self.url).json(), {"configured": False})

    def test_logout_clears_config(self):
        request = RequestFactory().get("/")
        request.session = {SESSION_KEY: {"endpoint": "http://llm.local"}}
        user_logged_out.send(sender=User, request=request, user=self.user)
        self.assertEqual(request.session, {})

    def test_requires_login(self):
        self.client.logout()
        self.assertEqual(self.client.get(self.url).status_code, 302)


class TestAuthUser(TestCase):
    def test_latest_dataset(self):
        user = User.objects.create_user(username="alice", password="secret")
        self.assertIsNone(user.latest_dataset)

        Dataset.objects.create(user=user, name="First")
        second = Dataset.objects.create(user=user, name="Second")
        self.assertEqual(user.latest_dataset, second)
        self.assertEqual(user.get_all_datasets.count(), 2)

import os
import sys
import datetime
import unittest
from unittest import mock
from fastapi.testclient import TestClient

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from rest_api import PTTrackerAPI, ReminderScheduler
from settings_schema import AppSettingsSchema
from media_service import MediaSearchError


def resend_ok(*args, **kwargs):
    resp = mock.Mock()
    resp.json.return_value = {"id": "msg_1"}
    return resp


class APITestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_pt.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.settings = AppSettingsSchema(
            db_path=self.db_path, cron_secret="s3cret", resend_api_key="re_test"
        )
        self.api = PTTrackerAPI(db_path=self.db_path, settings=self.settings)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def create(self, name="Clamshells", sets=3, reps=15, freq=7) -> dict:
        response = self.client.post(
            "/exercises",
            json={"name": name, "sets": sets, "reps": reps, "frequencyPerWeek": freq},
        )
        self.assertEqual(response.status_code, 201)
        return response.json()

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})
        self.assertEqual(self.client.get("/cron").json(), {"status": "ok"})

    def test_exercise_workflow(self) -> None:
        created = self.create()
        self.assertEqual(created["id"], 1)
        self.assertEqual(created["frequencyPerWeek"], 7)
        self.create("Bridge", 2, 12, 3)

        names = [e["name"] for e in self.client.get("/exercises").json()]
        self.assertEqual(names, ["Bridge", "Clamshells"])

        response = self.client.put("/exercises/1", json={"sets": 4})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["sets"], 4)
        self.assertEqual(response.json()["name"], "Clamshells")

        detail = self.client.get("/exercises/1").json()
        self.assertEqual(detail["media"], [])

        self.assertEqual(self.client.delete("/exercises/1").json(), {"success": True})
        self.assertEqual(self.client.get("/exercises/1").status_code, 404)
        self.assertEqual(self.client.delete("/exercises/1").status_code, 404)
        self.assertEqual(self.client.put("/exercises/1", json={"sets": 2}).status_code, 404)

    def test_exercise_validation(self) -> None:
        response = self.client.post("/exercises", json={"name": "Bridge", "sets": 3})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Missing required fields")
        response = self.client.post(
            "/exercises",
            json={"name": "Bridge", "sets": 3, "reps": 10, "frequencyPerWeek": 0},
        )
        self.assertEqual(response.status_code, 400)
        self.create()
        response = self.client.put("/exercises/1", json={"frequencyPerWeek": 0})
        self.assertEqual(response.status_code, 400)

    def test_daily_checklist_and_logging(self) -> None:
        self.create()
        self.create("Bridge", 2, 12, 1)
        # 2024-01-07 is a Sunday, so both are due
        checklist = self.client.get("/logs", params={"date": "2024-01-07"}).json()
        self.assertEqual([c["name"] for c in checklist], ["Bridge", "Clamshells"])
        self.assertTrue(all(c["setsCompleted"] == 0 for c in checklist))

        response = self.client.post(
            "/logs", json={"date": "2024-01-07", "exerciseId": 2, "setsCompleted": 2}
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["completed"])

        checklist = self.client.get("/logs", params={"date": "2024-01-07"}).json()
        self.assertEqual(checklist[0]["setsCompleted"], 2)
        self.assertTrue(checklist[0]["completed"])

        monday = self.client.get("/logs", params={"date": "2024-01-08"}).json()
        self.assertEqual([c["name"] for c in monday], ["Clamshells"])

    def test_log_errors(self) -> None:
        self.create()
        self.assertEqual(self.client.get("/logs").status_code, 400)
        self.assertEqual(
            self.client.get("/logs", params={"date": "yesterday"}).status_code, 400
        )
        response = self.client.post("/logs", json={"exerciseId": 1})
        self.assertEqual(response.status_code, 400)
        response = self.client.post(
            "/logs", json={"date": "2024-01-07", "exerciseId": 9, "setsCompleted": 1}
        )
        self.assertEqual(response.status_code, 404)
        response = self.client.post(
            "/logs", json={"date": "2024-01-07", "exerciseId": 1, "setsCompleted": -2}
        )
        self.assertEqual(response.status_code, 400)

    def test_stats(self) -> None:
        self.create()
        for day in ("2024-01-09", "2024-01-10"):
            self.client.post(
                "/logs", json={"date": day, "exerciseId": 1, "setsCompleted": 3}
            )
        stats = self.client.get("/stats", params={"days": 6, "today": "2024-01-10"}).json()
        self.assertEqual(len(stats["dailySeries"]), 7)
        self.assertEqual(stats["dailySeries"][0]["date"], "2024-01-04")
        self.assertEqual(stats["currentStreak"], 2)
        self.assertEqual(stats["totalCompleted"], 2)
        self.assertEqual(stats["totalExpected"], 7)
        self.assertEqual(stats["overallRate"], 29)
        self.assertEqual(
            stats["perExercise"],
            [{"id": 1, "name": "Clamshells", "completed": 2, "expected": 6, "rate": 33}],
        )
        self.assertEqual(self.client.get("/stats", params={"days": 0}).status_code, 400)

    def test_reminder_settings(self) -> None:
        settings = self.client.get("/reminders").json()
        self.assertEqual(settings["time"], "08:30")
        self.assertFalse(settings["enabled"])
        response = self.client.put(
            "/reminders", json={"email": "me@example.com", "enabled": True}
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["enabled"])
        response = self.client.put("/reminders", json={"time": "8 o'clock"})
        self.assertEqual(response.status_code, 400)

    def test_manual_reminder(self) -> None:
        result = self.client.post("/reminders/send").json()
        self.assertEqual(result["skipped"], "not_configured")
        self.create()
        self.client.put("/reminders", json={"email": "me@example.com", "enabled": True})
        with mock.patch("email_service.requests.post", side_effect=resend_ok) as post:
            result = self.client.post("/reminders/send").json()
        self.assertEqual(result, {"success": True, "sent": True, "exercises": 1})
        self.assertEqual(post.call_args[1]["json"]["to"], ["me@example.com"])
        logs = self.client.get("/reports/email_logs").json()
        self.assertEqual(logs[0]["address"], "me@example.com")

    def test_manual_reminder_failure(self) -> None:
        self.api.email.api_key = None
        self.create()
        self.client.put("/reminders", json={"email": "me@example.com", "enabled": True})
        response = self.client.post("/reminders/send")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to send reminder")

    def test_cron_requires_secret(self) -> None:
        self.assertEqual(self.client.post("/cron").status_code, 401)
        response = self.client.post("/cron", headers={"Authorization": "Bearer wrong"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.client.post("/init").status_code, 401)

    def test_cron_not_configured(self) -> None:
        response = self.client.post("/cron", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(response.json(), {"success": True, "skipped": "not_configured"})

    def test_cron_sends_in_window(self) -> None:
        self.create()
        now = self.api.reminders.local_now()
        self.client.put(
            "/reminders",
            json={"email": "me@example.com", "enabled": True, "time": now.strftime("%H:%M")},
        )
        with mock.patch("email_service.requests.post", side_effect=resend_ok):
            response = self.client.post("/cron", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["sent"])

    def test_cron_email_error(self) -> None:
        self.api.email.api_key = None
        self.create()
        now = self.api.reminders.local_now()
        self.client.put(
            "/reminders",
            json={"email": "me@example.com", "enabled": True, "time": now.strftime("%H:%M")},
        )
        response = self.client.post("/cron", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"success": False, "error": "email_error"})

    def test_scheduler_sends_once_per_day(self) -> None:
        self.create()
        self.client.put(
            "/reminders",
            json={"email": "me@example.com", "enabled": True, "time": "08:30"},
        )
        scheduler = ReminderScheduler(self.api)
        # 08:31 in Los Angeles
        now = datetime.datetime(2024, 1, 7, 16, 31, tzinfo=datetime.timezone.utc)
        with mock.patch("email_service.requests.post", side_effect=resend_ok) as post:
            self.assertTrue(scheduler.tick(now)["sent"])
            self.assertIsNone(scheduler.tick(now + datetime.timedelta(minutes=2)))
        self.assertEqual(post.call_count, 1)

    def test_unreadable_provider_reply_is_logged_as_sent(self) -> None:
        self.create()
        self.client.put("/reminders", json={"email": "me@example.com", "enabled": True})
        reply = mock.Mock()
        reply.json.side_effect = ValueError("not json")
        with mock.patch("email_service.requests.post", return_value=reply):
            response = self.client.post("/reminders/send")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["sent"])
        logs = self.client.get("/reports/email_logs").json()
        self.assertEqual(len(logs), 1)
        self.assertTrue(logs[0]["success"])

    def test_scheduler_keeps_running_after_unexpected_error(self) -> None:
        scheduler = ReminderScheduler(self.api, interval_seconds=0)
        calls = []

        def tick():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("boom")
            scheduler.running = False

        with mock.patch.object(scheduler, "tick", side_effect=tick):
            scheduler.run()
        self.assertEqual(len(calls), 2)

    def test_init(self) -> None:
        response = self.client.post("/init", headers={"Authorization": "Bearer s3cret"})
        self.assertEqual(response.json()["success"], True)
        self.assertIn("message", self.client.get("/init").json())

    def test_media_cached(self) -> None:
        self.create()
        video = {"type": "video", "url": "https://v", "thumbnail_url": "https://t", "title": "Demo"}
        image = {"type": "image", "url": "https://i", "thumbnail_url": "https://it", "title": "Pic"}
        with mock.patch.object(
            self.api.media_search, "search_videos", return_value=[video]
        ) as videos, mock.patch.object(
            self.api.media_search, "search_images", return_value=[image]
        ):
            first = self.client.get("/exercises/1/media").json()
            second = self.client.get("/exercises/1/media").json()
            self.assertEqual(videos.call_count, 1)
            refreshed = self.client.get("/exercises/1/media", params={"refresh": True}).json()
            self.assertEqual(videos.call_count, 2)
        self.assertEqual([m["type"] for m in first], ["video", "image"])
        self.assertEqual(first, second)
        self.assertEqual(len(refreshed), 2)
        detail = self.client.get("/exercises/1").json()
        self.assertEqual(len(detail["media"]), 2)

    def test_media_errors(self) -> None:
        self.assertEqual(self.client.get("/exercises/5/media").status_code, 404)
        self.create()
        with mock.patch.object(
            self.api.media_search, "search_videos", side_effect=MediaSearchError("down")
        ):
            response = self.client.get("/exercises/1/media")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "Failed to fetch media")


class AuthTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_pt_auth.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        settings = AppSettingsSchema(db_path=self.db_path, app_password="letmein")
        self.api = PTTrackerAPI(db_path=self.db_path, settings=settings)
        self.client = TestClient(self.api.app)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def test_login_flow(self) -> None:
        self.assertEqual(self.client.get("/exercises").status_code, 401)
        self.assertEqual(self.client.get("/stats").status_code, 401)
        self.assertEqual(self.client.get("/health").status_code, 200)
        response = self.client.post("/auth", json={"password": "nope"})
        self.assertEqual(response.status_code, 401)
        response = self.client.post("/auth", json={"password": "letmein"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.client.get("/exercises").json(), [])
        self.client.delete("/auth")
        self.assertEqual(self.client.get("/exercises").status_code, 401)

    def test_cron_without_secret_configured(self) -> None:
        response = self.client.post("/cron", headers={"Authorization": "Bearer "})
        self.assertEqual(response.status_code, 401)


if __name__ == "__main__":
    unittest.main()

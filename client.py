import requests
from typing import Optional


class PTTrackerClient:
    """Simple REST client for the tracker API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()

    def login(self, password: str) -> None:
        resp = self.session.post(
            f"{self.base_url}/auth", json={"password": password}, timeout=self.timeout
        )
        resp.raise_for_status()

    def create_exercise(self, name: str, sets: int, reps: int, frequency_per_week: int) -> int:
        resp = self.session.post(
            f"{self.base_url}/exercises",
            json={
                "name": name,
                "sets": sets,
                "reps": reps,
                "frequencyPerWeek": frequency_per_week,
            },
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()["id"]

    def list_exercises(self):
        resp = self.session.get(f"{self.base_url}/exercises", timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def checklist(self, date: str):
        resp = self.session.get(
            f"{self.base_url}/logs", params={"date": date}, timeout=self.timeout
        )
        resp.raise_for_status()
        return resp.json()

    def log_sets(self, date: str, exercise_id: int, sets_completed: int) -> dict:
        resp = self.session.post(
            f"{self.base_url}/logs",
            json={"date": date, "exerciseId": exercise_id, "setsCompleted": sets_completed},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return resp.json()

    def stats(self, days: int = 30, today: Optional[str] = None) -> dict:
        params: dict[str, str | int] = {"days": days}
        if today:
            params["today"] = today
        resp = self.session.get(f"{self.base_url}/stats", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

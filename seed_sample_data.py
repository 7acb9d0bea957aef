import datetime
from rest_api import PTTrackerAPI


SAMPLE_EXERCISES = [
    ("Clamshells", 3, 15, 7),
    ("Glute Bridge", 3, 12, 3),
    ("Wall Slides", 2, 10, 2),
]


def seed() -> None:
    api = PTTrackerAPI()
    if api.exercises.fetch_all_exercises():
        print("Database already contains exercises")
        return

    ids = [api.exercises.add(*ex) for ex in SAMPLE_EXERCISES]
    today = datetime.date.today()
    for offset in range(1, 4):
        day = (today - datetime.timedelta(days=offset)).isoformat()
        api.logs.upsert(day, ids[0], 3)
    print("Seed data inserted")


if __name__ == "__main__":
    seed()

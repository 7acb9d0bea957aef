import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import (
    init_db,
    export_logs,
    backup_db,
    restore_db,
    demo_data,
    print_stats,
    send_reminder,
)
from db import ExerciseRepository, DailyLogRepository, ReminderSettingsRepository


class CLIToolsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        self.cleanup()

    def tearDown(self) -> None:
        self.cleanup()

    def cleanup(self) -> None:
        for path in [self.db_path, self.yaml_path, "backup.db", "logs_export.csv"]:
            if os.path.exists(path):
                os.remove(path)

    def test_init(self) -> None:
        init_db(self.db_path)
        self.assertTrue(os.path.exists(self.db_path))
        self.assertEqual(ReminderSettingsRepository(self.db_path).fetch()["time"], "08:30")

    def test_export_backup_restore(self) -> None:
        eid = ExerciseRepository(self.db_path).add("Clamshells", 3, 15, 7)
        DailyLogRepository(self.db_path).upsert("2024-01-07", eid, 3)
        export_logs(self.db_path, "logs_export.csv", "2024-01-01", "2024-01-31")
        with open("logs_export.csv", "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
        self.assertEqual(lines[1], "2024-01-07,Clamshells,3,3,yes")
        backup_db(self.db_path, "backup.db")
        self.assertTrue(os.path.exists("backup.db"))
        os.remove(self.db_path)
        restore_db("backup.db", self.db_path)
        self.assertEqual(len(ExerciseRepository(self.db_path).fetch_all_exercises()), 1)

    def test_demo_data(self) -> None:
        demo_data(self.db_path)
        demo_data(self.db_path)
        exercises = ExerciseRepository(self.db_path).fetch_all_exercises()
        self.assertEqual(len(exercises), 3)

    def test_stats(self) -> None:
        eid = ExerciseRepository(self.db_path).add("Clamshells", 3, 15, 7)
        DailyLogRepository(self.db_path).upsert("2024-01-07", eid, 3)
        report = print_stats(self.db_path, 1, "2024-01-07")
        self.assertEqual(report["currentStreak"], 1)
        self.assertEqual(len(report["dailySeries"]), 2)

    def test_remind_not_configured(self) -> None:
        result = send_reminder(self.db_path, self.yaml_path)
        self.assertEqual(result["skipped"], "not_configured")


if __name__ == "__main__":
    unittest.main()

import argparse
import datetime
import json
import shutil

from config import load_app_settings
from db import Database, ExerciseRepository, DailyLogRepository
from rest_api import PTTrackerAPI
from seed_sample_data import SAMPLE_EXERCISES
from stats_service import StatisticsService


def init_db(db_path: str) -> None:
    Database(db_path)
    print(f"Database initialized at {db_path}")


def export_logs(db_path: str, out_path: str, start: str | None = None, end: str | None = None) -> None:
    logs = DailyLogRepository(db_path)
    data = logs.export_csv(start, end)
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(data)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def print_stats(db_path: str, days: int, today: str | None) -> dict:
    service = StatisticsService(ExerciseRepository(db_path), DailyLogRepository(db_path))
    report = service.adherence(days, today).to_dict()
    print(json.dumps(report, indent=2))
    return report


def send_reminder(db_path: str, yaml_path: str) -> dict:
    api = PTTrackerAPI(db_path=db_path, yaml_path=yaml_path)
    result = api.reminders.send_reminder(api.reminders.local_now().date())
    print(json.dumps(result))
    return result


def demo_data(db_path: str) -> None:
    """Populate the database with demo exercises if empty."""
    exercises = ExerciseRepository(db_path)
    if exercises.fetch_all_exercises():
        print("Database already contains exercises")
        return
    ids = [exercises.add(*ex) for ex in SAMPLE_EXERCISES]
    logs = DailyLogRepository(db_path)
    yesterday = (datetime.date.today() - datetime.timedelta(days=1)).isoformat()
    logs.upsert(yesterday, ids[0], 3)
    print("Demo data inserted")


def serve(yaml_path: str, host: str, port: int, scheduler: bool) -> None:
    import uvicorn

    api = PTTrackerAPI(yaml_path=yaml_path, start_scheduler=scheduler)
    uvicorn.run(api.app, host=host, port=port)


def main() -> None:
    parser = argparse.ArgumentParser(description="PT tracker utility commands")
    sub = parser.add_subparsers(dest="cmd", required=True)
    default_db = load_app_settings().db_path

    srv = sub.add_parser("serve")
    srv.add_argument("--yaml", default="settings.yaml")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--scheduler", action="store_true")

    ini = sub.add_parser("init")
    ini.add_argument("--db", default=default_db)

    demo = sub.add_parser("demo")
    demo.add_argument("--db", default=default_db)

    st = sub.add_parser("stats")
    st.add_argument("--db", default=default_db)
    st.add_argument("--days", type=int, default=30)
    st.add_argument("--today", default=None)

    rem = sub.add_parser("remind")
    rem.add_argument("--db", default=default_db)
    rem.add_argument("--yaml", default="settings.yaml")

    exp = sub.add_parser("export")
    exp.add_argument("--db", default=default_db)
    exp.add_argument("--out", default="logs.csv")
    exp.add_argument("--start", default=None)
    exp.add_argument("--end", default=None)

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default=default_db)
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default=default_db)

    args = parser.parse_args()

    if args.cmd == "serve":
        serve(args.yaml, args.host, args.port, args.scheduler)
    elif args.cmd == "init":
        init_db(args.db)
    elif args.cmd == "demo":
        demo_data(args.db)
    elif args.cmd == "stats":
        print_stats(args.db, args.days, args.today)
    elif args.cmd == "remind":
        send_reminder(args.db, args.yaml)
    elif args.cmd == "export":
        export_logs(args.db, args.out, args.start, args.end)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)


if __name__ == "__main__":
    main()

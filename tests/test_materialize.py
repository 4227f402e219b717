import datetime
import unittest

import pandas as pd

from sitecpm.engine import compute_schedule
from sitecpm.materialize import (
    materialize_timeline,
    project_window,
    resolve_start_date,
    timeline_dataframe,
)
from sitecpm.models import Activity


class TestMaterialize(unittest.TestCase):
    def setUp(self):
        self.schedule = compute_schedule([
            Activity("A1", "Excavation", 5, notes="Bulk dig"),
            Activity("A2", "Footing", 3, predecessors=["A1"]),
        ])

    def test_day_offsets_become_dates(self):
        items = materialize_timeline(self.schedule, "2026-01-01")
        self.assertEqual(items[0].start_date, pd.Timestamp("2026-01-01"))
        self.assertEqual(items[0].end_date, pd.Timestamp("2026-01-05"))
        self.assertEqual(items[1].start_date, pd.Timestamp("2026-01-06"))
        self.assertEqual(items[1].end_date, pd.Timestamp("2026-01-08"))

    def test_descriptions_and_status(self):
        items = materialize_timeline(self.schedule, datetime.date(2026, 3, 2))
        self.assertEqual(items[0].title, "Excavation")
        self.assertEqual(items[0].description, "Bulk dig")
        self.assertEqual(items[1].description, "Generated from BOQ schedule")
        self.assertEqual(items[1].status, "Upcoming")

    def test_project_window_minimum(self):
        start, end, days = project_window(self.schedule, "2026-01-01")
        self.assertEqual(days, 30)
        self.assertEqual(start, pd.Timestamp("2026-01-01"))
        self.assertEqual(end, pd.Timestamp("2026-01-31"))

    def test_project_window_long_schedule(self):
        schedule = compute_schedule([Activity("A1", "Frame", 40)])
        _, end, days = project_window(schedule, "2026-01-01", minimum_days=30)
        self.assertEqual(days, 40)
        self.assertEqual(end, pd.Timestamp("2026-02-10"))

    def test_unparseable_start_uses_today(self):
        today = pd.Timestamp.today().normalize()
        self.assertEqual(resolve_start_date("not a date"), today)
        self.assertEqual(resolve_start_date(None), today)

    def test_timeline_dataframe(self):
        df = timeline_dataframe(self.schedule, "2026-01-01")
        self.assertEqual(list(df["ID"]), ["A1", "A2"])
        self.assertEqual(df.loc[1, "Start"], pd.Timestamp("2026-01-06"))


if __name__ == "__main__":
    unittest.main()

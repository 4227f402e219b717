import unittest

from sitecpm.engine import AcyclicSchedule, CPMScheduler, CyclicFallback, compute_schedule
from sitecpm.models import Activity, Dependency


def _by_id(activities):
    return {act.id: act for act in activities}


class TestCPMScheduler(unittest.TestCase):
    def test_single_activity(self):
        result = _by_id(compute_schedule([Activity("A", "A", 5)]))
        self.assertEqual(result["A"].start_day, 1)
        self.assertEqual(result["A"].end_day, 5)
        self.assertEqual(result["A"].total_float, 0)
        self.assertEqual(result["A"].free_float, 0)
        self.assertTrue(result["A"].is_critical)

    def test_simple_fs_chain(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 3),
            Activity("B", "B", 4, dependencies=[Dependency("A", "FS", 0)]),
        ]))
        self.assertEqual((result["A"].start_day, result["A"].end_day), (1, 3))
        self.assertEqual((result["B"].start_day, result["B"].end_day), (4, 7))
        self.assertTrue(result["A"].is_critical)
        self.assertTrue(result["B"].is_critical)
        self.assertEqual(result["B"].total_float, 0)

    def test_fs_with_lag(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 3),
            Activity("B", "B", 2, dependencies=[Dependency("A", "FS", 2)]),
        ]))
        self.assertEqual(result["B"].start_day, 6)

    def test_fs_with_lead(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 5),
            Activity("B", "B", 2, dependencies=[Dependency("A", "FS", -2)]),
        ]))
        self.assertEqual(result["B"].start_day, 4)

    def test_ss_relation_ignores_predecessor_duration(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 5),
            Activity("B", "B", 3, dependencies=[Dependency("A", "SS", 1)]),
        ]))
        self.assertEqual(result["B"].start_day, 2)
        self.assertEqual(result["B"].end_day, 4)

    def test_ff_relation(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 5),
            Activity("B", "B", 2, dependencies=[Dependency("A", "FF", 0)]),
        ]))
        self.assertEqual((result["B"].start_day, result["B"].end_day), (4, 5))
        self.assertTrue(result["A"].is_critical)
        self.assertTrue(result["B"].is_critical)
        self.assertEqual(result["A"].free_float, 0)

    def test_sf_relation(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 5),
            Activity("B", "B", 3, dependencies=[Dependency("A", "SF", 4)]),
        ]))
        self.assertEqual((result["B"].start_day, result["B"].end_day), (3, 5))

    def test_lead_never_pulls_start_before_day_one(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 4),
            Activity("B", "B", 2, dependencies=[Dependency("A", "SS", -3)]),
        ]))
        self.assertEqual(result["B"].start_day, 1)

    def test_diamond_with_float(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 1),
            Activity("B", "B", 2, predecessors=["A"]),
            Activity("C", "C", 6, predecessors=["A"]),
            Activity("D", "D", 1, predecessors=["B", "C"]),
        ]))
        self.assertEqual(result["B"].total_float, 4)
        self.assertEqual(result["B"].free_float, 4)
        self.assertFalse(result["B"].is_critical)
        for act_id in ("A", "C", "D"):
            self.assertEqual(result[act_id].total_float, 0)
            self.assertTrue(result[act_id].is_critical)
        self.assertEqual(result["D"].start_day, 8)
        self.assertEqual(result["B"].late_start, 6)

    def test_critical_paths_follow_driving_links(self):
        scheduler = CPMScheduler()
        result = scheduler.calculate([
            Activity("A", "A", 1),
            Activity("B", "B", 2, predecessors=["A"]),
            Activity("C", "C", 6, predecessors=["A"]),
            Activity("D", "D", 1, predecessors=["B", "C"]),
        ])
        self.assertEqual(result.critical_paths, [["A", "C", "D"]])
        self.assertEqual(scheduler.critical_path, ["A", "C", "D"])
        self.assertEqual(result.project_duration, 8)

    def test_multiple_critical_paths(self):
        result = CPMScheduler().calculate([
            Activity("A", "A", 2),
            Activity("B", "B", 2),
            Activity("C", "C", 2, predecessors=["A"]),
            Activity("D", "D", 2, predecessors=["B"]),
            Activity("E", "E", 2, predecessors=["C", "D"]),
        ])
        paths = {tuple(p) for p in result.critical_paths}
        self.assertEqual(paths, {("A", "C", "E"), ("B", "D", "E")})

    def test_free_float_without_successors_equals_total_float(self):
        result = _by_id(compute_schedule([Activity("A", "A", 5), Activity("B", "B", 2)]))
        self.assertEqual(result["B"].total_float, 3)
        self.assertEqual(result["B"].free_float, 3)

    def test_cycle_falls_back_to_sequential_schedule(self):
        seen = []
        scheduler = CPMScheduler(on_cycle=seen.append)
        with self.assertLogs("sitecpm.engine", level="WARNING"):
            result = scheduler.calculate([
                Activity("A", "A", 3, predecessors=["B"]),
                Activity("B", "B", 2, predecessors=["A"]),
            ])

        self.assertIsInstance(result, CyclicFallback)
        self.assertTrue(result.is_fallback)
        self.assertEqual(seen, [["A", "B"]])
        acts = result.activities
        self.assertEqual([a.id for a in acts], ["A", "B"])
        self.assertEqual((acts[0].start_day, acts[0].end_day), (1, 3))
        self.assertEqual((acts[1].start_day, acts[1].end_day), (4, 5))
        for act in acts:
            self.assertTrue(act.is_critical)
            self.assertEqual(act.total_float, 0)
            self.assertEqual(act.free_float, 0)
        self.assertTrue(any("Circular dependency" in line for line in result.calculation_log))

    def test_cycle_fallback_respects_manual_start(self):
        with self.assertLogs("sitecpm.engine", level="WARNING"):
            acts = compute_schedule([
                Activity("A", "A", 2, predecessors=["B"]),
                Activity("B", "B", 2, predecessors=["A"], manual_start=10),
                Activity("C", "C", 1),
            ])
        self.assertEqual([(a.start_day, a.end_day) for a in acts], [(1, 2), (10, 11), (12, 12)])

    def test_manual_start_is_a_floor(self):
        result = _by_id(compute_schedule([Activity("A", "A", 2, manual_start=10)]))
        self.assertEqual((result["A"].start_day, result["A"].end_day), (10, 11))

    def test_manual_start_does_not_pull_earlier(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 5),
            Activity("B", "B", 2, predecessors=["A"], manual_start=2),
        ]))
        self.assertEqual(result["B"].start_day, 6)

    def test_idempotent(self):
        activities = [
            Activity("A", "A", 3),
            Activity("B", "B", 2, dependencies=[Dependency("A", "SS", 1)]),
            Activity("C", "C", 4, predecessors=["A", "B"]),
        ]
        first = [act.to_record(include_late=True) for act in compute_schedule(activities)]
        second = [act.to_record(include_late=True) for act in compute_schedule(activities)]
        self.assertEqual(first, second)

        rerun = [act.to_record(include_late=True) for act in compute_schedule(compute_schedule(activities))]
        self.assertEqual(first, rerun)

    def test_input_is_not_mutated(self):
        source = Activity("B", "B", 2.5, predecessors=["A", "B"])
        compute_schedule([Activity("A", "A", 1), source])
        self.assertEqual(source.duration, 2.5)
        self.assertEqual(source.predecessors, ["A", "B"])
        self.assertIsNone(source.start_day)

    def test_self_dependency_is_ignored(self):
        result = CPMScheduler().calculate([Activity("A", "A", 3, predecessors=["A"])])
        self.assertIsInstance(result, AcyclicSchedule)
        act = result.activities[0]
        self.assertEqual((act.start_day, act.end_day), (1, 3))
        self.assertEqual(act.dependencies, [])

    def test_dangling_reference_is_ignored(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 2),
            Activity("B", "B", 2, dependencies=[Dependency("Z", "FS", 5)]),
        ]))
        self.assertEqual(result["B"].start_day, 1)
        # The author's link is still reported
        self.assertEqual(result["B"].predecessors, ["Z"])

    def test_duplicate_links_count_once(self):
        once = _by_id(compute_schedule([
            Activity("A", "A", 3),
            Activity("B", "B", 2, predecessors=["A"]),
        ]))
        twice = _by_id(compute_schedule([
            Activity("A", "A", 3),
            Activity("B", "B", 2, dependencies=[Dependency("A", "FS", 0)], predecessors=["A"]),
        ]))
        self.assertEqual(len(twice["B"].dependencies), 1)
        self.assertEqual(once["B"].start_day, twice["B"].start_day)
        self.assertEqual(once["B"].free_float, twice["B"].free_float)

    def test_output_sorted_by_start_day(self):
        acts = compute_schedule([
            Activity("B", "B", 2, predecessors=["A"]),
            Activity("A", "A", 3),
            Activity("C", "C", 1),
        ])
        self.assertEqual([a.id for a in acts], ["A", "C", "B"])

    def test_duration_coercion(self):
        result = _by_id(compute_schedule([
            Activity("A", "A", 0),
            Activity("B", "B", 2.2),
            Activity("C", "C", float("nan")),
        ]))
        self.assertEqual(result["A"].duration, 1)
        self.assertEqual(result["B"].duration, 3)
        self.assertEqual(result["C"].duration, 1)

    def test_plain_records(self):
        acts = compute_schedule([
            {"id": "A", "name": "Excavation", "duration": 4},
            {"id": "B", "name": "Footing", "duration": 3,
             "dependencies": [{"activityId": "A", "type": "XX", "lagDays": 1.4}]},
            {"id": "C", "name": "Survey", "duration": 1, "manualStart": 3},
        ])
        result = _by_id(acts)
        self.assertEqual(result["B"].dependencies, [Dependency("A", "FS", 1)])
        self.assertEqual(result["B"].predecessors, ["A"])
        self.assertEqual(result["B"].start_day, 6)
        self.assertEqual(result["C"].start_day, 3)

    def test_numeric_strings_fall_back_to_defaults(self):
        result = _by_id(compute_schedule([
            {"id": "A", "name": "Excavation", "duration": "4"},
            {"id": "B", "name": "Footing", "duration": 2, "manualStart": "7",
             "dependencies": [{"activityId": "A", "type": "FS", "lagDays": "2"}]},
        ]))
        self.assertEqual(result["A"].duration, 1)
        self.assertEqual(result["B"].dependencies, [Dependency("A", "FS", 0)])
        self.assertIsNone(result["B"].manual_start)
        self.assertEqual(result["B"].start_day, 2)

    def test_record_input_honors_relation_types(self):
        cases = [
            ({"activityId": "A", "type": "SS", "lagDays": 1}, 3, (2, 4)),
            ({"activityId": "A", "type": "FF", "lagDays": 0}, 2, (4, 5)),
            ({"activityId": "A", "type": "SF", "lagDays": 4}, 3, (3, 5)),
        ]
        for dependency, duration, expected in cases:
            with self.subTest(relation=dependency["type"]):
                result = _by_id(compute_schedule([
                    {"id": "A", "name": "A", "duration": 5},
                    {"id": "B", "name": "B", "duration": duration, "dependencies": [dependency]},
                ]))
                self.assertEqual((result["B"].start_day, result["B"].end_day), expected)
                self.assertEqual(len(result["B"].dependencies), 1)
                self.assertEqual(result["B"].predecessors, ["A"])

    def test_records_survive_a_save_and_reschedule(self):
        records = [
            {"id": "A", "name": "A", "duration": 5},
            {"id": "B", "name": "B", "duration": 3,
             "dependencies": [{"activityId": "A", "type": "SS", "lagDays": 1}]},
            {"id": "C", "name": "C", "duration": 2,
             "dependencies": [{"activityId": "B", "type": "FF", "lagDays": 2}], "predecessors": ["A"]},
        ]
        first = [act.to_record(include_late=True) for act in compute_schedule(records)]
        saved = [Activity.from_record(record).to_record() for record in first]
        second = [act.to_record(include_late=True) for act in compute_schedule(saved)]
        self.assertEqual(first, second)
        by_id = {record["id"]: record for record in second}
        self.assertEqual((by_id["B"]["startDay"], by_id["B"]["endDay"]), (2, 4))
        self.assertEqual(by_id["C"]["dependencies"], [
            {"activityId": "B", "type": "FF", "lagDays": 2},
            {"activityId": "A", "type": "FS", "lagDays": 0},
        ])
        self.assertEqual((by_id["C"]["startDay"], by_id["C"]["endDay"]), (6, 7))

    def test_critical_chain_through_start_held_at_day_one(self):
        result = CPMScheduler().calculate([
            Activity("A", "A", 3),
            Activity("B", "B", 6, dependencies=[Dependency("A", "SS", -2)]),
            Activity("C", "C", 3, predecessors=["A"]),
        ])
        by_id = _by_id(result.activities)
        self.assertEqual(by_id["B"].start_day, 1)
        self.assertTrue(all(act.is_critical for act in result.activities))
        self.assertEqual(result.critical_paths, [["A", "B"], ["A", "C"]])

    def test_empty_input(self):
        self.assertEqual(compute_schedule([]), [])
        result = CPMScheduler().calculate([])
        self.assertEqual(result.activities, [])
        self.assertFalse(result.is_fallback)

    def test_results_dataframe(self):
        scheduler = CPMScheduler()
        scheduler.calculate([Activity("A", "A", 3), Activity("B", "B", 4, predecessors=["A"])])
        df = scheduler.results_dataframe()
        self.assertEqual(list(df["ID"]), ["A", "B"])
        self.assertEqual(list(df["End"]), [3, 7])
        self.assertEqual(list(df["Critical"]), ["Yes", "Yes"])
        inputs = scheduler.activities_dataframe()
        self.assertEqual(list(inputs["Predecessors"]), ["", "A:FS:+0"])


if __name__ == "__main__":
    unittest.main()

# ABOUTME: Tests per-learner module statistics and their group averages.
# ABOUTME: Uses a small course structure with mixed epoch and ISO submission timestamps.

import unittest

from src.segmentation.modules import (
    aggregate_group_module_stats,
    module_display_name,
    process_group_module_analytics,
    process_module_analytics,
)

DAY = 86400
JAN_1 = 1704067200  # 2024-01-01T00:00:00Z


class ModuleAnalyticsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.structure = [
            {"step_id": "s1", "module_id": "10", "module_position": "1", "lesson_id": "100"},
            {"step_id": "s2", "module_id": "10", "module_position": "1", "lesson_id": "100"},
            {"step_id": "s3", "module_id": "10", "module_position": "1", "lesson_id": "101"},
            {"step_id": "s4", "module_id": "20", "module_position": "2", "lesson_id": "200"},
            {"step_id": "s5", "module_id": "20", "module_position": "2", "lesson_id": "200"},
            {"step_id": "s6", "module_id": "30", "module_position": "0", "lesson_id": "300"},
        ]
        self.submissions = [
            {"user_id": "U1", "step_id": "s4", "status": "wrong", "submission_time": str(JAN_1)},
            {"user_id": "U1", "step_id": "s4", "status": "correct", "submission_time": str((JAN_1 + 2 * DAY) * 1000)},
            {"user_id": "U1", "step_id": "s1", "status": "correct", "submission_time": str(JAN_1 + 6 * DAY)},
            {"user_id": "u1 ", "step_id": "s1", "status": "correct", "submission_time": str(JAN_1 + 6 * DAY + 60)},
            {"user_id": "U1", "step_id": "s2", "status": "wrong", "submission_time": "2024-01-08T10:00:00Z"},
            {"user_id": "U1", "step_id": "s99", "status": "correct", "submission_time": str(JAN_1)},
            {"user_id": "U2", "step_id": "s6", "status": "correct", "submission_time": str(JAN_1)},
        ]
        self.meetings = [
            {
                "user_id": "U1",
                "[02.01.2024] Kickoff": "true",
                "[07.01.2024] Loops clinic": "true",
                "[08.01.2024] Review": "false",
                "[20.01.2024] Wrap-up": "true",
            },
            {"user_id": "U2", "[02.01.2024] Kickoff": "true"},
        ]
        self.names = {10: "Intro", "20": "Loops"}

    def test_statistics_per_module(self) -> None:
        stats = process_module_analytics("u1", self.submissions, self.structure, self.names, self.meetings)

        self.assertEqual([10, 20], [s.module_id for s in stats])
        intro, loops = stats

        self.assertEqual("Intro", intro.module_name)
        self.assertEqual(3, intro.total_steps)
        self.assertEqual(2, intro.attempted_steps)
        self.assertEqual(1, intro.completed_steps)
        self.assertEqual(3, intro.total_attempts)
        self.assertEqual(2, intro.correct_attempts)
        self.assertEqual(66.7, intro.success_rate)
        self.assertEqual(33.3, intro.completion_rate)
        self.assertEqual(1.5, intro.avg_attempts_per_step)
        self.assertEqual("2024-01-07", intro.first_activity_date)
        self.assertEqual("2024-01-08", intro.last_activity_date)
        self.assertEqual(1, intro.meetings_attended)

        self.assertEqual("Loops", loops.module_name)
        self.assertEqual(2, loops.total_steps)
        self.assertEqual(1, loops.attempted_steps)
        self.assertEqual(1, loops.completed_steps)
        self.assertEqual(50.0, loops.success_rate)
        self.assertEqual(50.0, loops.completion_rate)
        self.assertEqual(2.0, loops.avg_attempts_per_step)
        self.assertEqual("2024-01-01", loops.first_activity_date)
        self.assertEqual("2024-01-03", loops.last_activity_date)
        self.assertEqual(1, loops.meetings_attended)

    def test_results_sorted_by_module_position(self) -> None:
        submissions = self.submissions + [
            {"user_id": "U1", "step_id": "s6", "status": "wrong", "submission_time": str(JAN_1)},
        ]
        stats = process_module_analytics("U1", submissions, self.structure, {})
        self.assertEqual([30, 10, 20], [s.module_id for s in stats])
        self.assertEqual("Module 30", stats[0].module_name)

    def test_completion_uses_structure_step_count_without_completions(self) -> None:
        submissions = [{"user_id": "U3", "step_id": "s1", "status": "wrong", "submission_time": str(JAN_1)}]
        stats = process_module_analytics("U3", submissions, self.structure, self.names)

        self.assertEqual(1, len(stats))
        self.assertEqual(3, stats[0].total_steps)
        self.assertEqual(0, stats[0].completed_steps)
        self.assertEqual(0.0, stats[0].completion_rate)
        self.assertEqual(0.0, stats[0].success_rate)

    def test_module_without_timestamps_has_no_window(self) -> None:
        submissions = [{"user_id": "U4", "step_id": "s4", "status": "correct"}]
        stats = process_module_analytics("U4", submissions, self.structure, self.names, self.meetings)

        self.assertIsNone(stats[0].first_activity_date)
        self.assertIsNone(stats[0].last_activity_date)
        self.assertEqual(0, stats[0].meetings_attended)

    def test_unknown_learner_yields_no_modules(self) -> None:
        self.assertEqual([], process_module_analytics("nobody", self.submissions, self.structure, self.names))

    def test_module_display_name_fallbacks(self) -> None:
        self.assertEqual("Intro", module_display_name(10, {"10": "Intro"}))
        self.assertEqual("Module 7", module_display_name(7, {7: ""}))


class GroupModuleAnalyticsTest(unittest.TestCase):
    def test_averages_over_learners_who_attempted_each_module(self) -> None:
        structure = [
            {"step_id": "a1", "module_id": "1", "module_position": "1"},
            {"step_id": "a2", "module_id": "1", "module_position": "1"},
            {"step_id": "b1", "module_id": "2", "module_position": "2"},
        ]
        submissions = [
            {"user_id": "p", "step_id": "a1", "status": "correct", "timestamp": "2024-01-01"},
            {"user_id": "p", "step_id": "a2", "status": "correct", "timestamp": "2024-01-02"},
            {"user_id": "q", "step_id": "a1", "status": "wrong", "timestamp": "2024-01-01"},
            {"user_id": "q", "step_id": "a1", "status": "correct", "timestamp": "2024-01-01"},
            {"user_id": "q", "step_id": "b1", "status": "correct", "timestamp": "2024-01-03"},
        ]

        group = process_group_module_analytics(["p", "q", "r"], submissions, structure, {1: "Basics"})

        self.assertEqual([1, 2], [g.module_id for g in group])
        basics, second = group
        self.assertEqual("Basics", basics.module_name)
        self.assertEqual(2, basics.students)
        self.assertEqual(75.0, basics.avg_completion_rate)
        self.assertEqual(75.0, basics.avg_success_rate)
        self.assertEqual(1.5, basics.avg_attempts_per_step)
        self.assertEqual(1.5, basics.avg_completed_steps)
        self.assertEqual(1, second.students)
        self.assertEqual("Module 2", second.module_name)
        self.assertEqual(100.0, second.avg_completion_rate)

    def test_empty_group(self) -> None:
        self.assertEqual([], aggregate_group_module_stats([]))


if __name__ == "__main__":
    unittest.main()

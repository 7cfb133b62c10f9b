"""
Unit tests for the batch merge engine and job store.
"""

import unittest
from datetime import datetime

from qc_dashboard.core.batch_manager import (
    JobStore, LoggingNotifier, CSVImportError, JobNotFoundError,
    generate_batch_id, merge_batch_jobs
)
from qc_dashboard.core.job_models import BatchInfo, BatchType, Job

INITIAL_CSV = """Summary line
Another summary
jid_1,r1,a.png,Done,8/20/2025,Virat,8/21/2025,Accepted,,,
jid_2,r2,b.png,Done,8/20/2025,Mahi,8/21/2025,Rejected,missing box,8/22/2025,redo
"""

QCED_CSV = """jid,client_file,data_status,making_date,qc_name,qc_date,qc_status,reject_reason,action
jid_2,b.png,Done,8/20/2025,Mahi,8/23/2025,Accepted,,none
jid_9,z.png,Done,8/23/2025,Rohit,8/23/2025,Rejected,wrong class,rework
"""


def batch(batch_id, batch_type=BatchType.QCED):
    return BatchInfo(id=batch_id, name=batch_id, type=batch_type,
                     upload_date="2025-08-22T00:00:00", uploaded_by="tester")


class TestGenerateBatchId(unittest.TestCase):
    """Test cases for batch id generation."""

    def test_first_batch(self):
        self.assertEqual(generate_batch_id([]), "Batch-1")

    def test_uses_max_suffix(self):
        batches = [batch("Batch-3"), batch("Batch-1"), batch("Custom")]
        self.assertEqual(generate_batch_id(batches), "Batch-4")


class TestMergeBatchJobs(unittest.TestCase):
    """Test cases for the merge policies."""

    def setUp(self):
        self.existing = [
            Job(jid="a", qc_name="Virat", qc_status="Rejected", comment="keep", batch_id="Batch-1",
                assigned_to="Mahi"),
            Job(jid="b", qc_status="Not Started", batch_id="Batch-1"),
        ]

    def test_qced_upserts_and_appends(self):
        new_jobs = [
            Job(jid="a", qc_status="Accepted", comment="", batch_id="Batch-2"),
            Job(jid="c", qc_status="Accepted", batch_id="Batch-2"),
        ]
        merged = merge_batch_jobs(self.existing, new_jobs, BatchType.QCED)

        self.assertEqual([j.jid for j in merged], ["a", "b", "c"])
        self.assertEqual(merged[0].qc_status, "Accepted")
        self.assertEqual(merged[0].batch_id, "Batch-2")
        # Empty strings from the new record overwrite
        self.assertEqual(merged[0].comment, "")
        self.assertEqual(merged[0].qc_name, "")
        # Fields the new record never carried are kept
        self.assertEqual(merged[0].assigned_to, "Mahi")

    def test_qced_merge_is_idempotent(self):
        new_jobs = [Job(jid="a", qc_status="Accepted", batch_id="Batch-2"),
                    Job(jid="c", qc_status="Accepted", batch_id="Batch-2")]
        once = merge_batch_jobs(self.existing, new_jobs, BatchType.QCED)
        twice = merge_batch_jobs(once, new_jobs, BatchType.QCED)
        self.assertEqual([j.to_dict() for j in once], [j.to_dict() for j in twice])

    def test_fresh_never_overwrites(self):
        new_jobs = [Job(jid="a", qc_status="Not Started", batch_id="Batch-2"),
                    Job(jid="d", qc_status="Not Started", batch_id="Batch-2")]
        merged = merge_batch_jobs(self.existing, new_jobs, BatchType.FRESH)

        self.assertEqual([j.jid for j in merged], ["a", "b", "d"])
        self.assertEqual(merged[0].to_dict(), self.existing[0].to_dict())

    def test_fresh_duplicates_within_batch_keep_first(self):
        new_jobs = [Job(jid="d", ref_id="first"), Job(jid="d", ref_id="second")]
        merged = merge_batch_jobs([], new_jobs, BatchType.FRESH)
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].ref_id, "first")

    def test_inputs_not_mutated(self):
        before = [j.to_dict() for j in self.existing]
        merge_batch_jobs(self.existing, [Job(jid="a", qc_status="Accepted")], BatchType.QCED)
        self.assertEqual([j.to_dict() for j in self.existing], before)


class TestJobStore(unittest.TestCase):
    """Test cases for JobStore operations."""

    def setUp(self):
        self.notifications = []
        self.store = JobStore(
            notifier=lambda title, description, level="info": self.notifications.append((title, level)),
            clock=lambda: datetime(2025, 8, 23, 9, 30, 0),
        )
        self.initial = self.store.load_initial_data(INITIAL_CSV)

    def test_initial_load_creates_default_batch(self):
        self.assertEqual(self.initial.id, "Batch-1")
        self.assertEqual(self.initial.name, "Initial Data")
        self.assertEqual(self.initial.type, BatchType.QCED)
        self.assertEqual(self.initial.uploaded_by, "System")
        self.assertEqual(self.initial.job_count, 2)
        self.assertTrue(all(j.batch_id == "Batch-1" for j in self.store.get_jobs()))

    def test_import_qced_batch(self):
        info, jobs = self.store.import_batch(QCED_CSV, BatchType.QCED, "QC week 34")

        self.assertEqual(info.id, "Batch-2")
        self.assertEqual(info.name, "QC week 34")
        self.assertEqual(info.job_count, 2)
        self.assertEqual(info.uploaded_by, "Current User")
        self.assertEqual(info.upload_date, "2025-08-23T09:30:00")
        self.assertEqual(len(jobs), 2)

        self.assertEqual(len(self.store.get_jobs()), 3)
        updated = self.store.get_job("jid_2")
        self.assertEqual(updated.qc_status, "Accepted")
        self.assertEqual(updated.batch_id, "Batch-2")
        self.assertEqual(updated.comment, "")
        self.assertEqual([b.id for b in self.store.get_batches()], ["Batch-1", "Batch-2"])
        self.assertIn(("Batch Import Successful", "success"), self.notifications)

    def test_default_batch_name_is_batch_id(self):
        fresh = "job_id,ref_id,client_file_name\nnew_1,r,f.png"
        info, _ = self.store.import_batch(fresh, BatchType.FRESH, "  ")
        self.assertEqual(info.name, "Batch-2")

    def test_job_count_not_rederived(self):
        fresh = "job_id,ref_id,client_file_name\njid_1,r,f.png\nnew_1,r,f.png"
        info, _ = self.store.import_batch(fresh, BatchType.FRESH)
        # jid_1 already existed, so only one job carries the new batch id
        self.assertEqual(info.job_count, 2)
        self.assertEqual(len(self.store.get_jobs(info.id)), 1)
        self.assertEqual(self.store.get_job("jid_1").batch_id, "Batch-1")

    def test_failed_import_leaves_store_untouched(self):
        before = [j.to_dict() for j in self.store.get_jobs()]
        with self.assertRaises(CSVImportError) as ctx:
            self.store.import_batch("job_id\nx", BatchType.FRESH)

        self.assertIn("Missing required columns for Fresh Data: ref_id, client_file_name", ctx.exception.errors)
        self.assertEqual([j.to_dict() for j in self.store.get_jobs()], before)
        self.assertEqual(len(self.store.get_batches()), 1)
        self.assertIn(("Import Failed", "error"), self.notifications)

    def test_update_job_status(self):
        job = self.store.update_job_status("jid_1", "Rejected")
        self.assertEqual(job.qc_status, "Rejected")
        self.assertEqual(self.store.get_job("jid_1").qc_status, "Rejected")
        self.assertEqual(self.store.get_job("jid_1").qc_name, "Virat")

    def test_update_unknown_job(self):
        with self.assertRaises(JobNotFoundError):
            self.store.update_job_status("nope", "Accepted")

    def test_assign_jobs(self):
        count = self.store.assign_jobs(["jid_1", "missing"], "Rohit", "Lead")
        self.assertEqual(count, 1)

        job = self.store.get_job("jid_1")
        self.assertEqual(job.assigned_to, "Rohit")
        self.assertEqual(job.assigned_by, "Lead")
        self.assertEqual(job.assigned_date, "2025-08-23T09:30:00")
        self.assertIsNone(self.store.get_job("jid_2").assigned_to)

    def test_assignment_survives_qced_merge(self):
        self.store.assign_jobs(["jid_2"], "Rohit")
        self.store.import_batch(QCED_CSV, BatchType.QCED)
        self.assertEqual(self.store.get_job("jid_2").assigned_to, "Rohit")

    def test_get_jobs_returns_copy(self):
        jobs = self.store.get_jobs()
        jobs.clear()
        self.assertEqual(len(self.store.get_jobs()), 2)

    def test_export_whole_collection(self):
        filename, content = self.store.export_csv()
        self.assertEqual(filename, "jobs_export_2025-08-23.csv")
        self.assertEqual(len(content.split("\n")), 3)

    def test_export_selected_batch_uses_id(self):
        filename, content = self.store.export_csv("Batch-1")
        self.assertEqual(filename, "batch_Batch-1_export_2025-08-23.csv")
        self.assertTrue(content.startswith('"JID"'))
        self.assertIn('"Batch-1"', content)
        self.assertIn(("Export Successful", "success"), self.notifications)

    def test_batch_manager_export_uses_name(self):
        filename, content = self.store.export_batch("Batch-1")
        self.assertEqual(filename, "batch_Initial Data_export_2025-08-23.csv")
        self.assertIn('"Batch ID"', content.split("\n")[0])
        self.assertIn(("Batch Export Successful", "success"), self.notifications)


class TestLoggingNotifier(unittest.TestCase):
    """Test cases for the default notification sink."""

    def test_keeps_recent_history(self):
        notifier = LoggingNotifier(max_history=2)
        notifier("one", "first")
        notifier("two", "second", "error")
        notifier("three", "third", "success")

        recent = notifier.recent()
        self.assertEqual([n['title'] for n in recent], ["two", "three"])
        self.assertEqual(recent[0]['level'], "error")


if __name__ == '__main__':
    unittest.main()

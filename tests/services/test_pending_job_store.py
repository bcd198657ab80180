"""
Unit tests for PendingJobStore.
"""

import threading
import time

from infrastructure.models import VideoJob
from services.pending_job_store import PendingJobStore


def make_job(job_id="1", chat_id=100, user_id=7, path="/media-server/General/a.mp4"):
    return VideoJob(
        job_id=job_id,
        file_id=f"file-{job_id}",
        file_name="a.mp4",
        chat_id=chat_id,
        user_id=user_id,
        message_id=55,
        proposed_path=path,
    )


class TestPendingJobStore:

    def setup_method(self):
        self.store = PendingJobStore()

    def test_put_get_remove(self):
        self.store.put(make_job("1"))

        assert self.store.get("1").proposed_path == "/media-server/General/a.mp4"
        removed = self.store.remove("1")
        assert removed.job_id == "1"
        assert self.store.get("1") is None
        assert self.store.remove("1") is None

    def test_put_replaces(self):
        self.store.put(make_job("1", path="/first"))
        self.store.put(make_job("1", path="/second"))
        assert len(self.store) == 1
        assert self.store.get("1").proposed_path == "/second"

    def test_returned_jobs_are_copies(self):
        self.store.put(make_job("1"))
        snapshot = self.store.get("1")
        snapshot.proposed_path = "/tampered"
        assert self.store.get("1").proposed_path == "/media-server/General/a.mp4"

    def test_update_path_and_message_id(self):
        self.store.put(make_job("1"))
        assert self.store.update_path("1", "/new/path.mp4")
        assert self.store.set_confirmation_message_id("1", 999)

        job = self.store.get("1")
        assert job.proposed_path == "/new/path.mp4"
        assert job.confirmation_message_id == 999

    def test_operations_on_missing_job(self):
        assert self.store.update_path("404", "/x") is False
        assert self.store.set_confirmation_message_id("404", 1) is False
        assert self.store.set_waiting_for_custom_path("404") is False
        assert self.store.clear_waiting_for_custom_path("404") is False

    def test_find_waiting_for_custom_path(self):
        self.store.put(make_job("1"))
        assert self.store.find_waiting_for_custom_path(100, 7) is None

        self.store.set_waiting_for_custom_path("1")
        assert self.store.find_waiting_for_custom_path(100, 7).job_id == "1"
        assert self.store.find_waiting_for_custom_path("100", "7").job_id == "1"
        assert self.store.find_waiting_for_custom_path(100, 8) is None

        self.store.clear_waiting_for_custom_path("1")
        assert self.store.find_waiting_for_custom_path(100, 7) is None

    def test_latest_custom_request_wins(self):
        self.store.put(make_job("1"))
        self.store.put(make_job("2"))
        self.store.put(make_job("3", user_id=8))

        self.store.set_waiting_for_custom_path("1")
        self.store.set_waiting_for_custom_path("3")
        self.store.set_waiting_for_custom_path("2")

        assert self.store.get("1").waiting_for_custom_path is False
        assert self.store.find_waiting_for_custom_path(100, 7).job_id == "2"
        # another user's flag is untouched
        assert self.store.find_waiting_for_custom_path(100, 8).job_id == "3"

    def test_expire_older_than(self):
        self.store.put(make_job("1"))
        self.store.put(make_job("2"))
        self.store.update_path("2", "/touched")

        assert self.store.expire_older_than(3600) == []
        expired = self.store.expire_older_than(3600, now=time.time() + 3601)

        assert sorted(expired) == ["1", "2"]
        assert len(self.store) == 0

    def test_concurrent_puts(self):
        def worker(offset):
            for i in range(200):
                self.store.put(make_job(f"{offset}-{i}"))

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(self.store) == 800

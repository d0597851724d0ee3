"""
Tests for the counting review workflow.
"""

import threading

import pytest

from conftest import FakeDetector
from counting.placeholders import GridLayout
from counting.workflow import (
    CountingWorkflow,
    ReviewMode,
    parse_count_text,
)
from models.errors import (
    MissingCredentialError,
    NotFoundError,
    RequestFailedError,
    ValidationError,
    WorkflowBusyError,
    WorkflowStateError,
)


@pytest.fixture
def workflow(repo, session):
    return CountingWorkflow.for_session(repo, session.id, "/photos/p1.jpg")


class TestParseCountText:
    @pytest.mark.parametrize("text,expected", [
        ("12", 12),
        ("  7 boxes", 7),
        ("3.9", 3),
        ("", 0),
        ("abc", 0),
        ("-4", -4),
        (None, 0),
    ])
    def test_leading_integer(self, text, expected):
        assert parse_count_text(text) == expected


class TestInitialState:
    def test_starts_in_manual_mode(self, workflow):
        state = workflow.snapshot()
        assert state.mode is ReviewMode.MANUAL
        assert state.detections == ()
        assert state.corrections == 0
        assert state.count_text == ""
        assert state.resolved_count == 0
        assert state.can_commit is False
        assert state.processing is False

    def test_object_type_comes_from_session(self, workflow):
        assert workflow.object_type == "widgets"

    def test_object_type_default(self, repo):
        s = repo.create_session("Untyped")
        wf = CountingWorkflow.for_session(repo, s.id, "/p.jpg")
        assert wf.object_type == "objects"

    def test_unknown_session(self, repo):
        with pytest.raises(NotFoundError):
            CountingWorkflow.for_session(repo, "session_missing", "/p.jpg")


class TestManualEdits:
    def test_taps_add_detections(self, workflow):
        workflow.add_point(100, 100)
        workflow.add_point(200, 150)
        state = workflow.snapshot()
        assert len(state.detections) == 2
        assert state.corrections == 2
        assert state.count_text == "2"
        assert state.resolved_count == 2
        assert all(d.manual for d in state.detections)

    def test_tap_marker_geometry(self, repo, session):
        wf = CountingWorkflow.for_session(repo, session.id, "/p.jpg", marker_size=30)
        det = wf.add_point(100, 100)
        assert det.bbox.as_tuple() == (85, 85, 30, 30)

    def test_remove_point(self, workflow):
        a = workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.remove_point(a.id)
        assert a.id not in [d.id for d in workflow.detections]
        assert len(workflow.detections) == 1
        assert workflow.corrections == 3
        assert workflow.count_text == "1"

    def test_three_taps_one_removal(self, workflow):
        first = workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.add_point(30, 30)
        workflow.remove_point(first.id)
        state = workflow.snapshot()
        assert len(state.detections) == 2
        assert state.count_text == "2"
        assert state.corrections == 4

    def test_typing_new_total_clears_taps(self, workflow):
        workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.set_count_text("5")
        assert workflow.detections == ()
        assert workflow.corrections == 0
        assert workflow.count_text == "5"

    def test_remove_unknown_point(self, workflow):
        workflow.add_point(10, 10)
        with pytest.raises(NotFoundError):
            workflow.remove_point("manual_missing")
        assert workflow.corrections == 1

    def test_typed_count_overrides_taps(self, workflow):
        workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.set_count_text("15")
        state = workflow.snapshot()
        assert state.detections == ()
        assert state.corrections == 0
        assert state.count_text == "15"
        assert state.resolved_count == 15

    def test_typed_count_matching_taps_keeps_them(self, workflow):
        workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.set_count_text("2")
        assert len(workflow.detections) == 2
        assert workflow.corrections == 2

    def test_typed_zero_keeps_taps(self, workflow):
        workflow.add_point(10, 10)
        workflow.set_count_text("0")
        assert len(workflow.detections) == 1
        assert workflow.resolved_count == 0

    def test_typed_garbage_resolves_to_zero(self, workflow):
        workflow.set_count_text("lots")
        assert workflow.resolved_count == 0
        assert workflow.can_commit is False

    def test_tap_after_typing_mirrors_detections(self, workflow):
        workflow.set_count_text("15")
        workflow.add_point(10, 10)
        assert workflow.count_text == "1"
        assert workflow.resolved_count == 1

    def test_clear_all(self, workflow):
        workflow.add_point(10, 10)
        workflow.set_count_text("1")
        workflow.clear_all()
        state = workflow.snapshot()
        assert state.detections == ()
        assert state.corrections == 0
        assert state.count_text == ""


class TestAutomaticMode:
    def test_detector_count_becomes_placeholders(self, workflow, fake_detector):
        request = workflow.switch_to_automatic()
        assert workflow.processing is True

        assert workflow.run_detection(fake_detector, "sk-test", request) is True
        state = workflow.snapshot()
        assert state.mode is ReviewMode.AUTOMATIC
        assert state.processing is False
        assert state.auto_count == 10
        assert len(state.detections) == 10
        assert state.resolved_count == 10
        assert state.corrections == 0
        assert state.can_commit is True
        assert all(not d.manual and d.class_name == "object" for d in state.detections)
        assert fake_detector.calls == [("/photos/p1.jpg", "widgets", "sk-test")]

    def test_placeholders_follow_layout(self, repo, session):
        layout = GridLayout(origin=0, spacing=10, size=5)
        wf = CountingWorkflow.for_session(repo, session.id, "/p.jpg", layout=layout)
        request = wf.switch_to_automatic()
        wf.complete_detection(request, 3)
        assert [d.bbox.as_tuple() for d in wf.detections] == [
            (0, 0, 5, 5), (10, 0, 5, 5), (0, 10, 5, 5),
        ]

    def test_zero_count_flags_no_objects(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 0)
        state = workflow.snapshot()
        assert state.no_objects_found is True
        assert state.detections == ()
        assert state.can_commit is False

    def test_corrections_on_placeholders(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 4)
        workflow.remove_point("obj_0")
        workflow.add_point(300, 300)
        state = workflow.snapshot()
        assert len(state.detections) == 4
        assert state.corrections == 2
        assert state.auto_count == 4

    def test_typing_rejected_in_automatic_mode(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 2)
        with pytest.raises(WorkflowStateError):
            workflow.set_count_text("5")

    def test_recount_only_in_automatic_mode(self, workflow):
        with pytest.raises(WorkflowStateError):
            workflow.recount()

    def test_recount_replaces_detections(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 2)
        workflow.add_point(1, 1)
        request = workflow.recount()
        assert len(workflow.detections) == 3
        workflow.complete_detection(request, 5)
        assert len(workflow.detections) == 5
        assert workflow.corrections == 0

    def test_negative_count_rejected(self, workflow):
        request = workflow.switch_to_automatic()
        with pytest.raises(ValueError):
            workflow.complete_detection(request, -1)

    def test_switch_to_manual_keeps_auto_count(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 6)
        workflow.switch_to_manual()
        state = workflow.snapshot()
        assert state.mode is ReviewMode.MANUAL
        assert state.detections == ()
        assert state.count_text == ""
        assert state.auto_count == 6

    def test_clear_all_drops_auto_count(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 6)
        workflow.clear_all()
        assert workflow.auto_count is None
        assert workflow.detections == ()


class TestPendingRequests:
    def test_edits_rejected_while_processing(self, workflow):
        workflow.switch_to_automatic()
        with pytest.raises(WorkflowBusyError):
            workflow.add_point(1, 1)
        with pytest.raises(WorkflowBusyError):
            workflow.clear_all()
        with pytest.raises(WorkflowBusyError):
            workflow.switch_to_automatic()
        with pytest.raises(WorkflowBusyError):
            workflow.commit()
        assert workflow.can_commit is False

    def test_switch_to_manual_cancels_and_drops_result(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.switch_to_manual()
        assert workflow.processing is False

        assert workflow.complete_detection(request, 9) is False
        state = workflow.snapshot()
        assert state.mode is ReviewMode.MANUAL
        assert state.detections == ()
        assert state.auto_count is None

    def test_superseded_request_is_dropped(self, workflow):
        first = workflow.switch_to_automatic()
        workflow.switch_to_manual()
        second = workflow.switch_to_automatic()

        assert workflow.complete_detection(first, 99) is False
        assert workflow.processing is True
        assert workflow.complete_detection(second, 3) is True
        assert workflow.auto_count == 3

    def test_cancel_during_detector_call(self, workflow):
        """A switch to manual while the detector runs discards its result."""
        started = threading.Event()
        release = threading.Event()

        class SlowDetector:
            def count_objects(self, image_path, object_type, api_key):
                started.set()
                release.wait(5)
                return 7

        request = workflow.switch_to_automatic()
        results = []
        t = threading.Thread(
            target=lambda: results.append(workflow.run_detection(SlowDetector(), "k", request))
        )
        t.start()
        assert started.wait(5)
        workflow.switch_to_manual()
        release.set()
        t.join(5)

        assert results == [False]
        assert workflow.mode is ReviewMode.MANUAL
        assert workflow.detections == ()

    def test_run_without_request(self, workflow, fake_detector):
        with pytest.raises(WorkflowStateError):
            workflow.run_detection(fake_detector, "k")


class TestDetectorFailures:
    @pytest.mark.parametrize("bad_count", [-1, 2.5, None])
    def test_invalid_count_is_a_detection_failure(self, workflow, bad_count):
        """An out-of-range result leaves processing and is reported like any detector error."""
        request = workflow.switch_to_automatic()
        with pytest.raises(RequestFailedError):
            workflow.run_detection(FakeDetector(count=bad_count), "k", request)
        state = workflow.snapshot()
        assert state.processing is False
        assert state.detections == ()
        assert "invalid count" in state.last_error
        workflow.add_point(5, 5)
        assert workflow.resolved_count == 1

    def test_missing_credential(self, workflow):
        detector = FakeDetector(error=MissingCredentialError("no key"))
        request = workflow.switch_to_automatic()
        with pytest.raises(MissingCredentialError):
            workflow.run_detection(detector, None, request)
        state = workflow.snapshot()
        assert state.processing is False
        assert state.last_error == "no key"
        assert state.detections == ()

    def test_failed_recount_keeps_detections(self, workflow):
        request = workflow.switch_to_automatic()
        workflow.complete_detection(request, 3)
        request = workflow.recount()
        with pytest.raises(RequestFailedError):
            workflow.run_detection(FakeDetector(error=RequestFailedError("timeout")), "k", request)
        state = workflow.snapshot()
        assert state.mode is ReviewMode.AUTOMATIC
        assert len(state.detections) == 3
        assert state.last_error == "timeout"
        assert state.can_commit is True

    def test_unexpected_error_is_wrapped(self, workflow):
        request = workflow.switch_to_automatic()
        with pytest.raises(RequestFailedError):
            workflow.run_detection(FakeDetector(error=RuntimeError("boom")), "k", request)
        assert workflow.processing is False


class TestCommit:
    def test_commit_manual_taps(self, workflow, repo, session):
        workflow.add_point(10, 10)
        workflow.add_point(20, 20)
        workflow.add_point(30, 30)
        image = workflow.commit()

        assert image.count == 3
        assert image.corrections == 3
        assert image.path == "/photos/p1.jpg"
        assert len(image.detections) == 3
        stored = repo.get_session(session.id)
        assert stored.images == [image]
        assert stored.total_count == 3

    def test_commit_typed_count(self, workflow, repo, session):
        workflow.add_point(10, 10)
        workflow.set_count_text("12")
        image = workflow.commit()
        assert image.count == 12
        assert image.detections == ()
        assert repo.get_session(session.id).total_count == 12

    def test_commit_automatic(self, workflow, repo, session, fake_detector):
        workflow.run_detection(fake_detector, "k", workflow.switch_to_automatic())
        image = workflow.commit()
        assert image.count == 10
        assert repo.get_session(session.id).total_count == 10

    def test_commit_requires_positive_count(self, workflow, repo, session):
        with pytest.raises(ValidationError):
            workflow.commit()
        workflow.set_count_text("0")
        with pytest.raises(ValidationError):
            workflow.commit()
        assert repo.get_session(session.id).images == []

    def test_commit_automatic_zero_rejected(self, workflow):
        workflow.complete_detection(workflow.switch_to_automatic(), 0)
        with pytest.raises(ValidationError):
            workflow.commit()

    def test_commit_only_once(self, workflow):
        workflow.add_point(1, 1)
        workflow.commit()
        assert workflow.committed is True
        assert workflow.can_commit is False
        with pytest.raises(WorkflowStateError):
            workflow.commit()
        with pytest.raises(WorkflowStateError):
            workflow.add_point(2, 2)

    def test_commit_to_deleted_session(self, workflow, repo, session):
        workflow.add_point(1, 1)
        repo.delete_session(session.id)
        with pytest.raises(NotFoundError):
            workflow.commit()
        assert workflow.committed is False

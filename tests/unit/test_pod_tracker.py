"""
Unit tests for PodTracker
"""
import logging

from cronjob_runner.models import (
    Added,
    ContainerStartedEvent,
    ContainerState,
    ContainerStatus,
    Deleted,
    PodPhase,
    PodSnapshot,
    Updated,
)
from cronjob_runner.services.pod_tracker import (
    PodTracker,
    compute_container_state_changes,
    is_container_started,
)
from cronjob_runner.utils.channel import Channel

WAITING = ContainerState.WAITING
RUNNING = ContainerState.RUNNING
TERMINATED = ContainerState.TERMINATED


def _status(name, state, exit_code=None, reason=None):
    return ContainerStatus(name=name, state=state, exit_code=exit_code, reason=reason)


def _pod(containers=(), init_containers=(), phase=PodPhase.PENDING):
    return PodSnapshot(
        namespace="default",
        name="example-pod",
        phase=phase,
        container_statuses=list(containers),
        init_container_statuses=list(init_containers),
    )


def _drain(ch):
    ch.close()
    return list(ch)


def _started(container):
    return ContainerStartedEvent(namespace="default", pod_name="example-pod", container_name=container)


class TestComputeContainerStateChanges:
    """Tests for compute_container_state_changes function"""

    def test_absent_is_waiting(self):
        """Test a container absent in old is regarded as Waiting"""
        changes = compute_container_state_changes([], [_status("a", RUNNING), _status("b", WAITING)])
        assert [(o.state, n.state) for o, n in changes] == [(WAITING, RUNNING)]

    def test_only_changed(self):
        old = [_status("a", RUNNING), _status("b", WAITING)]
        new = [_status("a", RUNNING), _status("b", TERMINATED, exit_code=0)]
        changes = compute_container_state_changes(old, new)
        assert [n.name for _, n in changes] == ["b"]

    def test_reason_change_is_not_state_change(self):
        old = [_status("a", WAITING, reason="ContainerCreating")]
        new = [_status("a", WAITING, reason="ImagePullBackOff")]
        assert compute_container_state_changes(old, new) == []


class TestIsContainerStarted:
    """Tests for is_container_started function"""

    def test_rules(self):
        assert is_container_started(WAITING, RUNNING)
        assert is_container_started(WAITING, TERMINATED)
        assert is_container_started(TERMINATED, RUNNING)
        assert not is_container_started(RUNNING, TERMINATED)
        assert not is_container_started(RUNNING, WAITING)
        assert not is_container_started(TERMINATED, WAITING)
        assert not is_container_started(WAITING, WAITING)


class TestPodTracker:
    """Tests for PodTracker"""

    def test_restart_sequence(self):
        """Test Waiting -> Running -> Terminated -> Running emits exactly two events"""
        ch = Channel(maxsize=10)
        tracker = PodTracker(ch)
        states = [
            _pod([_status("main", WAITING)]),
            _pod([_status("main", RUNNING)], phase=PodPhase.RUNNING),
            _pod([_status("main", TERMINATED, exit_code=1)], phase=PodPhase.RUNNING),
            _pod([_status("main", RUNNING)], phase=PodPhase.RUNNING),
        ]
        tracker.handle(Added(obj=states[0]))
        for old, new in zip(states, states[1:]):
            tracker.handle(Updated(old=old, new=new))
        assert _drain(ch) == [_started("main"), _started("main")]

    def test_waiting_to_terminated(self):
        """Test a container which finished before being seen running"""
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Updated(
            old=_pod([_status("main", WAITING)]),
            new=_pod([_status("main", TERMINATED, exit_code=0)]),
        ))
        assert _drain(ch) == [_started("main")]

    def test_init_containers(self):
        """Test init containers are diffed with the same rule"""
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Updated(
            old=_pod([_status("main", WAITING)], [_status("init", WAITING)]),
            new=_pod([_status("main", WAITING)], [_status("init", RUNNING)]),
        ))
        assert _drain(ch) == [_started("init")]

    def test_added_with_running_container(self):
        """Test a Pod already running when the watch starts is tailed"""
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Added(obj=_pod([_status("main", RUNNING)]), initial=True))
        assert _drain(ch) == [_started("main")]

    def test_added_with_waiting_container(self):
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Added(obj=_pod([_status("main", WAITING)])))
        assert _drain(ch) == []

    def test_multiple_containers(self):
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Updated(
            old=_pod([_status("foo", WAITING), _status("bar", WAITING)]),
            new=_pod([_status("foo", RUNNING), _status("bar", TERMINATED, exit_code=0)]),
        ))
        assert _drain(ch) == [_started("foo"), _started("bar")]

    def test_deleted(self):
        ch = Channel(maxsize=10)
        PodTracker(ch).handle(Deleted(obj=_pod([_status("main", RUNNING)])))
        assert _drain(ch) == []

    def test_logs(self, caplog):
        """Test the phase and container state changes are logged"""
        caplog.set_level(logging.INFO)
        tracker = PodTracker(Channel(maxsize=10))
        tracker.handle(Updated(
            old=_pod([_status("main", RUNNING)], phase=PodPhase.RUNNING),
            new=_pod([_status("main", TERMINATED, exit_code=2, reason="Error")], phase=PodPhase.FAILED),
        ))
        assert "Pod default/example-pod is Failed" in caplog.text
        assert "Container main is terminated with exit code 2 (Error)" in caplog.text

    def test_phase_unchanged_not_logged(self, caplog):
        caplog.set_level(logging.INFO)
        pod = _pod([_status("main", RUNNING)], phase=PodPhase.RUNNING)
        PodTracker(Channel(maxsize=10)).handle(Updated(old=pod, new=pod))
        assert "is Running" not in caplog.text

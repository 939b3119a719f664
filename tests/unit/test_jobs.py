"""
Unit tests for Job and Secret helpers
"""
import io
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import yaml
from kubernetes.client import V1Job, V1ObjectMeta
from kubernetes.client.rest import ApiException

from cronjob_runner.core.config import settings
from cronjob_runner.services.jobs import cancel_job, create_job, job_to_yaml, new_job_from_cronjob, print_job_yaml
from cronjob_runner.services.secrets import apply_owner_reference, create_secret, delete_secret
from fakes import to_model


def _cronjob():
    return to_model({
        "apiVersion": "batch/v1",
        "kind": "CronJob",
        "metadata": {"name": "example", "namespace": "default", "uid": "uid-cronjob"},
        "spec": {
            "schedule": "0 0 * * *",
            "jobTemplate": {
                "metadata": {"labels": {"app": "example"}, "annotations": {"note": "hello"}},
                "spec": {
                    "backoffLimit": 0,
                    "template": {
                        "spec": {
                            "restartPolicy": "Never",
                            "initContainers": [{"name": "init", "image": "busybox"}],
                            "containers": [
                                {"name": "main", "image": "debian", "env": [{"name": "EXISTING", "value": "1"}]},
                                {"name": "sidecar", "image": "debian"},
                            ],
                        },
                    },
                },
            },
        },
    }, "V1CronJob")


def _env_of(container):
    result = []
    for e in container.env or []:
        if e.value_from is not None:
            result.append((e.name, e.value_from.secret_key_ref.name, e.value_from.secret_key_ref.key))
        else:
            result.append((e.name, e.value))
    return result


class TestNewJobFromCronJob:
    """Tests for new_job_from_cronjob function"""

    def test_as_is(self):
        """Test the Job is made from the jobTemplate"""
        job = new_job_from_cronjob(_cronjob())

        assert job.metadata.namespace == "default"
        assert job.metadata.generate_name == "example-"
        assert job.metadata.name is None
        assert job.metadata.labels == {"app": "example"}
        assert job.metadata.annotations == {"note": "hello"}
        owner = job.metadata.owner_references[0]
        assert (owner.kind, owner.name, owner.uid, owner.controller) == ("CronJob", "example", "uid-cronjob", True)
        assert job.spec.backoff_limit == 0
        containers = job.spec.template.spec.containers
        assert [c.name for c in containers] == ["main", "sidecar"]
        assert _env_of(containers[0]) == [("EXISTING", "1")]
        assert _env_of(containers[1]) == []

    def test_env(self):
        """Test env is appended to all containers in the key order"""
        job = new_job_from_cronjob(_cronjob(), env={"FOO": "foo", "BAR": "bar"})

        pod_spec = job.spec.template.spec
        assert _env_of(pod_spec.containers[0]) == [("EXISTING", "1"), ("BAR", "bar"), ("FOO", "foo")]
        assert _env_of(pod_spec.containers[1]) == [("BAR", "bar"), ("FOO", "foo")]
        assert _env_of(pod_spec.init_containers[0]) == [("BAR", "bar"), ("FOO", "foo")]

    def test_secret_env(self):
        """Test secret env refers to the keys of the Secret"""
        job = new_job_from_cronjob(
            _cronjob(),
            env={"FOO": "foo"},
            secret_env={"TOKEN": "s3cr3t"},
            secret_name="example-abcde",
        )

        env = _env_of(job.spec.template.spec.containers[1])
        assert env == [("FOO", "foo"), ("TOKEN", "example-abcde", "TOKEN")]
        assert "s3cr3t" not in job_to_yaml(job)

    def test_secret_env_without_secret_name(self):
        with pytest.raises(ValueError):
            new_job_from_cronjob(_cronjob(), secret_env={"TOKEN": "x"})

    def test_cronjob_is_not_modified(self):
        cronjob = _cronjob()
        new_job_from_cronjob(cronjob, env={"FOO": "foo"})

        containers = cronjob.spec.job_template.spec.template.spec.containers
        assert _env_of(containers[0]) == [("EXISTING", "1")]
        assert containers[1].env is None


class TestJobYaml:
    """Tests for the Job YAML output"""

    def test_managed_fields_hidden(self):
        job = new_job_from_cronjob(_cronjob())
        job.metadata.name = "example-abcde"
        job.metadata.managed_fields = [{"manager": "kubectl"}]

        body = yaml.safe_load(job_to_yaml(job))

        assert body["kind"] == "Job"
        assert body["metadata"]["name"] == "example-abcde"
        assert "managedFields" not in body["metadata"]

    def test_print_group(self):
        out = io.StringIO()
        print_job_yaml(new_job_from_cronjob(_cronjob()), stream=out)

        lines = out.getvalue().splitlines()
        assert lines[0] == "::group::Job YAML"
        assert lines[-1] == "::endgroup::"
        assert "generateName: example-" in out.getvalue()


class TestJobApi:
    """Tests for the Job API calls"""

    def test_create_job(self):
        job = new_job_from_cronjob(_cronjob())
        batch_v1 = SimpleNamespace(create_namespaced_job=MagicMock(
            return_value=V1Job(metadata=V1ObjectMeta(namespace="default", name="example-abcde")),
        ))

        created = create_job(batch_v1, job)

        batch_v1.create_namespaced_job.assert_called_once_with("default", job)
        assert created.metadata.name == "example-abcde"

    def test_cancel_job(self):
        batch_v1 = SimpleNamespace(patch_namespaced_job=MagicMock())

        cancel_job(batch_v1, "default", "example-abcde")

        batch_v1.patch_namespaced_job.assert_called_once_with(
            "example-abcde",
            "default",
            {"spec": {"activeDeadlineSeconds": 0}},
            field_manager=settings.FIELD_MANAGER,
        )


class TestSecrets:
    """Tests for the Secret helpers"""

    def test_create_secret(self):
        core_v1 = SimpleNamespace(create_namespaced_secret=MagicMock(
            return_value=SimpleNamespace(metadata=V1ObjectMeta(namespace="default", name="example-xyz")),
        ))

        create_secret(core_v1, "default", "example", {"TOKEN": "s3cr3t"})

        namespace, secret = core_v1.create_namespaced_secret.call_args.args
        assert namespace == "default"
        assert secret.metadata.generate_name == "example-"
        assert secret.immutable is True
        assert secret.string_data == {"TOKEN": "s3cr3t"}

    def test_apply_owner_reference(self):
        core_v1 = SimpleNamespace(patch_namespaced_secret=MagicMock())
        secret = SimpleNamespace(metadata=V1ObjectMeta(namespace="default", name="example-xyz"))
        job = V1Job(metadata=V1ObjectMeta(namespace="default", name="example-abcde", uid="uid-job"))

        apply_owner_reference(core_v1, secret, job)

        name, namespace, body = core_v1.patch_namespaced_secret.call_args.args
        assert (name, namespace) == ("example-xyz", "default")
        assert body["metadata"]["ownerReferences"] == [
            {"apiVersion": "batch/v1", "kind": "Job", "name": "example-abcde", "uid": "uid-job"},
        ]

    def test_delete_secret(self):
        core_v1 = SimpleNamespace(delete_namespaced_secret=MagicMock())
        assert delete_secret(core_v1, "default", "example-xyz") is True
        core_v1.delete_namespaced_secret.assert_called_once_with("example-xyz", "default")

    def test_delete_secret_not_found(self, not_found):
        core_v1 = SimpleNamespace(delete_namespaced_secret=MagicMock(side_effect=not_found))
        assert delete_secret(core_v1, "default", "example-xyz") is True

    def test_delete_secret_error(self):
        """Test a cleanup failure is reported, not raised"""
        core_v1 = SimpleNamespace(delete_namespaced_secret=MagicMock(
            side_effect=ApiException(status=403, reason="Forbidden"),
        ))
        assert delete_secret(core_v1, "default", "example-xyz") is False

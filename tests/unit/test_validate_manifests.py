import importlib.util
from pathlib import Path


def _load_module():
    module_path = Path(__file__).resolve().parents[2] / "scripts" / "nad" / "validate_manifests.py"
    spec = importlib.util.spec_from_file_location("validate_manifests", module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError("Unable to load validate_manifests module")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


MANIFESTS = """
apiVersion: k8s.cni.cncf.io/v1
kind: NetworkAttachmentDefinition
metadata:
  name: macvlan-conf
spec:
  config: '{"cniVersion": "0.3.1", "type": "macvlan", "master": "eth0"}'
---
apiVersion: v1
kind: Pod
metadata:
  name: sample
  annotations:
    k8s.v1.cni.cncf.io/networks: macvlan-conf
---
apiVersion: v1
kind: ConfigMap
metadata:
  name: ignored
"""


def test_valid_manifests_pass(tmp_path: Path, capsys):
    module = _load_module()
    manifest = tmp_path / "ok.yaml"
    manifest.write_text(MANIFESTS)

    assert module.main([str(manifest)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        f"{manifest}[0] NetworkAttachmentDefinition/macvlan-conf: allowed",
        f"{manifest}[1] Pod/sample: allowed",
    ]


def test_denied_manifest_fails(tmp_path: Path, capsys):
    module = _load_module()
    manifest = tmp_path / "bad.yaml"
    manifest.write_text(
        """
apiVersion: v1
kind: Pod
metadata:
  name: sample
  annotations:
    k8s.v1.cni.cncf.io/networks: otherns/macvlan-conf
"""
    )

    assert module.main([str(manifest)]) == 1
    assert "Pod/sample: denied" in capsys.readouterr().out

import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from Page_Annotator.config import TOKEN_ENV_VAR, AnnotatorProfile, load_annotator_profile


def _write(tmp: str, payload) -> Path:
    path = Path(tmp) / "profile.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


class TestAnnotatorProfile(unittest.TestCase):
    def test_load_valid_profile(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write(
                tmp,
                {
                    "schema_version": 1,
                    "model": "models/blocks.onnx",
                    "labels": "models/labels.json",
                    "iou_threshold": 0.5,
                    "max_output_size": 100,
                },
            )
            profile = load_annotator_profile(path)
        self.assertEqual(profile.model, "models/blocks.onnx")
        self.assertEqual(profile.iou_threshold, 0.5)
        self.assertEqual(profile.score_threshold, 0.2)
        self.assertEqual(profile.max_output_size, 100)

    def test_unknown_keys_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = _write(tmp, {"schema_version": 1, "model": "m.onnx", "labels": "l.json", "colour": "red"})
            with self.assertRaises(ValueError):
                load_annotator_profile(path)

    def test_bad_values_rejected(self) -> None:
        bad_payloads = [
            {"schema_version": 2, "model": "m.onnx", "labels": "l.json"},
            {"schema_version": 1, "labels": "l.json"},
            {"schema_version": 1, "model": "m.onnx", "labels": "l.json", "iou_threshold": "high"},
            {"schema_version": 1, "model": "m.onnx", "labels": "l.json", "score_threshold": 1.5},
            {"schema_version": 1, "model": "m.onnx", "labels": "l.json", "max_output_size": 0},
            {"schema_version": 1, "model": "m.onnx", "labels": "l.json", "backend": "tensorflow"},
        ]
        with tempfile.TemporaryDirectory() as tmp:
            for payload in bad_payloads:
                with self.assertRaises(ValueError, msg=str(payload)):
                    load_annotator_profile(_write(tmp, payload))

    def test_missing_file(self) -> None:
        with self.assertRaises(FileNotFoundError):
            load_annotator_profile(Path("does/not/exist.json"))

    def test_token_falls_back_to_environment(self) -> None:
        profile = AnnotatorProfile(schema_version=1, model="m.onnx", labels="l.json")
        with mock.patch.dict(os.environ, {TOKEN_ENV_VAR: "from-env"}):
            self.assertEqual(profile.resolved_token(), "from-env")
        explicit = AnnotatorProfile(schema_version=1, model="m.onnx", labels="l.json", api_token="mine")
        with mock.patch.dict(os.environ, {TOKEN_ENV_VAR: "from-env"}):
            self.assertEqual(explicit.resolved_token(), "mine")


if __name__ == "__main__":
    unittest.main()

import unittest

import numpy as np

from yolo_blocks.errors import UnmappedClass
from yolo_blocks.rebase import rebase_boxes, scale_factors
from yolo_blocks.types import DecodedBoxes, PaddedImageGeometry


def _decoded(boxes, class_ids):
    boxes = np.array(boxes, dtype=np.float32)
    return DecodedBoxes(
        boxes=boxes,
        scores=np.full((boxes.shape[0],), 0.9, dtype=np.float32),
        class_ids=np.array(class_ids, dtype=np.int64),
    )


class TestRebase(unittest.TestCase):
    def test_square_image_matching_model_maps_to_itself(self) -> None:
        geometry = PaddedImageGeometry.from_size(640, 640)
        decoded = _decoded([[0, 0, 640, 640]], [0])
        (ann,) = rebase_boxes(decoded, geometry, (640, 640), ["text"], {"text": 7})
        self.assertEqual(ann.box, ((0.0, 0.0), (640.0, 0.0), (640.0, 640.0), (0.0, 640.0)))
        self.assertEqual(ann.typology, 7)

    def test_vertex_order_is_clockwise_from_top_left(self) -> None:
        geometry = PaddedImageGeometry.from_size(200, 200)
        (ann,) = rebase_boxes(_decoded([[80, 80, 120, 120]], [0]), geometry, (200, 200), ["a"], {"a": 1})
        self.assertEqual(ann.box, ((80.0, 80.0), (120.0, 80.0), (120.0, 120.0), (80.0, 120.0)))

    def test_tall_capture_of_larger_page(self) -> None:
        # Capture 50x100 padded to 100x100, model 64x64, real page 500x1000.
        geometry = PaddedImageGeometry.from_size(50, 100)
        self.assertEqual((geometry.x_ratio, geometry.y_ratio), (2.0, 1.0))
        scale_x, scale_y = scale_factors(geometry, (64, 64), (500, 1000))
        self.assertAlmostEqual(scale_x, 15.625)
        self.assertAlmostEqual(scale_y, 15.625)

        # Left half of the model input is the page content.
        (ann,) = rebase_boxes(
            _decoded([[0, 0, 64, 32]], [0]), geometry, (64, 64), ["a"], {"a": 1}, original_size=(500, 1000)
        )
        self.assertAlmostEqual(ann.as_xyxy()[2], 500.0)
        self.assertAlmostEqual(ann.as_xyxy()[3], 1000.0)

    def test_original_size_defaults_to_capture(self) -> None:
        geometry = PaddedImageGeometry.from_size(100, 50)
        self.assertEqual(scale_factors(geometry, (50, 50)), (2.0, 2.0))

    def test_missing_type_raises(self) -> None:
        geometry = PaddedImageGeometry.from_size(200, 200)
        decoded = _decoded([[0, 0, 10, 10], [20, 20, 30, 30]], [0, 1])
        with self.assertRaises(UnmappedClass) as ctx:
            rebase_boxes(decoded, geometry, (200, 200), ["a", "b"], {"a": 1})
        self.assertEqual(ctx.exception.label, "b")
        self.assertIn("'b'", str(ctx.exception))

    def test_class_outside_label_list_raises(self) -> None:
        geometry = PaddedImageGeometry.from_size(200, 200)
        with self.assertRaises(UnmappedClass):
            rebase_boxes(_decoded([[0, 0, 10, 10]], [3]), geometry, (200, 200), ["a"], {"a": 1})

    def test_empty_input(self) -> None:
        geometry = PaddedImageGeometry.from_size(200, 200)
        self.assertEqual(rebase_boxes(_decoded(np.zeros((0, 4)), []), geometry, (200, 200), ["a"], {}), [])

    def test_payload(self) -> None:
        geometry = PaddedImageGeometry.from_size(200, 200)
        (ann,) = rebase_boxes(_decoded([[80, 80, 120, 120]], [0]), geometry, (200, 200), ["a"], {"a": 5})
        payload = ann.to_payload(page_id="34")
        self.assertEqual(payload["box"], [[80.0, 80.0], [120.0, 80.0], [120.0, 120.0], [80.0, 120.0]])
        self.assertEqual(payload["typology"], 5)
        self.assertEqual(payload["document_part"], "34")


if __name__ == "__main__":
    unittest.main()

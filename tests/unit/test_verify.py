"""
Unit tests for the geometric verifier
"""

import pytest
import numpy as np
import os
import sys

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import Rejection
from locator.config import VerificationParams
from locator.verify import DEFAULT_MIN_AREA_PX, sample_corners, verify_projection


class TestVerifyProjection:
    """Projected-outline plausibility checks"""

    def test_identity_corners_and_area(self):
        """Identity H on a 100x50 sample: corners unchanged, area 5000"""
        ver = verify_projection(100, 50, np.eye(3))
        assert ver.accepted
        np.testing.assert_allclose(ver.corners, [[0, 0], [100, 0], [100, 50], [0, 50]])
        assert ver.area == pytest.approx(5000.0)

    def test_area_exactly_at_threshold_is_accepted(self):
        """40x25 = 1000 px is not 'smaller than' 1000"""
        ver = verify_projection(40, 25, np.eye(3), min_area=1000.0)
        assert ver.area == pytest.approx(1000.0)
        assert ver.accepted

    def test_area_just_below_threshold_is_rejected(self):
        ver = verify_projection(40, 25, np.eye(3), min_area=1000.0001)
        assert ver.rejection is Rejection.AREA_TOO_SMALL
        assert not ver.accepted

    def test_shrinking_homography_rejected(self):
        """A 200x150 sample squeezed by 0.1 covers only 300 px"""
        H = np.diag([0.1, 0.1, 1.0])
        ver = verify_projection(200, 150, H, min_area=DEFAULT_MIN_AREA_PX)
        assert ver.area == pytest.approx(300.0)
        assert ver.rejection is Rejection.AREA_TOO_SMALL

    def test_translation_keeps_area(self):
        H = np.array([[1, 0, 300], [0, 1, 120], [0, 0, 1]], dtype=float)
        ver = verify_projection(60, 40, H)
        assert ver.accepted
        np.testing.assert_allclose(ver.corners[0], [300, 120])
        assert ver.area == pytest.approx(2400.0)

    def test_corner_at_infinity(self):
        """Corner (40, 0) has w = 0 -> degenerate quad, not a crash"""
        H = np.array([[1, 0, 0], [0, 1, 0], [-1.0 / 40.0, 0, 1]])
        ver = verify_projection(40, 25, H)
        assert ver.rejection is Rejection.DEGENERATE_QUAD
        assert np.isnan(ver.corners[1]).all()
        assert ver.area == 0.0

    def test_non_convex_quad_only_rejected_when_required(self):
        """Corners (0,0) (-120,0) (-120,-75) (0,25): large but concave"""
        H = np.array([[1, 0, 0], [0, 1, 0], [-1.0 / 30.0, 0, 1]])
        loose = verify_projection(40, 25, H)
        assert loose.accepted
        assert loose.area == pytest.approx(3000.0)

        strict = verify_projection(40, 25, H, require_convex=True)
        assert strict.rejection is Rejection.DEGENERATE_QUAD
        assert strict.rejection.category == "implausible_geometry"

    @pytest.mark.parametrize("w,h", [(0, 10), (10, 0), (-5, 5)])
    def test_invalid_sample_size(self, w, h):
        with pytest.raises(ValueError):
            verify_projection(w, h, np.eye(3))

    def test_sample_corners_order(self):
        np.testing.assert_array_equal(sample_corners(3, 2), [[0, 0], [3, 0], [3, 2], [0, 2]])


class TestMinAreaScaling:
    """Optional scaling of the area threshold with the target resolution"""

    def test_fixed_threshold_by_default(self):
        params = VerificationParams()
        assert params.min_area_for(4000, 3000) == pytest.approx(1000.0)

    def test_scaled_threshold(self):
        params = VerificationParams(scale_min_area=True, reference_size=(640, 480))
        assert params.min_area_for(640, 480) == pytest.approx(1000.0)
        assert params.min_area_for(1280, 960) == pytest.approx(4000.0)

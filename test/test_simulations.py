# emacs: -*- mode: python; py-indent-offset: 4; indent-tabs-mode: nil -*-
# vi: set ft=python sts=4 ts=4 sw=4 et:
#
# Copyright The NiPreps Developers <nipreps@gmail.com>
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# We support and encourage derived works from this project, please read
# about our expectations at
#
#     https://www.nipreps.org/community/licensing/
#

import numpy as np
import numpy.testing as npt
import pytest

from nigradcheck.data.gradients import GradientFiles, GradientTable
from nigradcheck.exceptions import ExternalToolError
from nigradcheck.interfaces.base import StreamlineSet
from nigradcheck.testing.simulations import (
    FSL_CONVENTION,
    SyntheticToolbox,
    simulate_dwi,
    simulate_gradient_table,
    to_image_frame,
    to_scanner_frame,
)
from nigradcheck.utils.ndimage import read_shape


@pytest.mark.parametrize("n_bzeros", [1, 3])
def test_simulate_gradient_table(rng, n_bzeros):
    table = simulate_gradient_table(10, n_bzeros=n_bzeros, bvalue=3000, rng=rng)
    assert len(table) == 10
    npt.assert_array_equal(table.gradients[:n_bzeros], 0.0)
    npt.assert_allclose(np.linalg.norm(table.bvecs[n_bzeros:], axis=1), 1.0)
    npt.assert_array_equal(table.bvals[n_bzeros:], 3000)


def test_frames(ground_truth):
    image = to_image_frame(ground_truth)
    npt.assert_allclose(image.bvecs[0], -ground_truth.bvecs[:, 0])
    npt.assert_allclose(image.bvecs[1:], ground_truth.bvecs[:, 1:].T)
    assert to_scanner_frame(image) == ground_truth

    rotation = np.array([[0.0, 1.0, 0.0], [0.0, 0.0, -1.0], [1.0, 0.0, 0.0]])
    assert to_scanner_frame(to_image_frame(ground_truth, rotation), rotation) == ground_truth
    assert not np.allclose(rotation, FSL_CONVENTION)


def test_simulate_dwi(tmp_path, rng):
    nifti = simulate_dwi(tmp_path / "dwi.nii.gz", shape=(4, 5, 6, 3), rng=rng)
    assert read_shape(nifti) == (4, 5, 6, 3)


def test_read_shape_unknown(dwi_file):
    assert read_shape(dwi_file) is None


def test_synthetic_scores(tmp_path, dwi_shape, ground_truth):
    toolbox = SyntheticToolbox(dwi_shape, ground_truth)

    exact = GradientFiles(mrtrix=ground_truth.to_filename(tmp_path / "exact.b"))
    flipped = GradientFiles(
        mrtrix=ground_truth.transform(0, (0, 1, 2)).to_filename(tmp_path / "flipped.b")
    )

    scores = []
    for name, gradients in (("exact", exact), ("flipped", flipped)):
        tracks = toolbox.run_tractography(
            gradients, tmp_path / "mask", tmp_path / "data", 10, output=tmp_path / f"{name}.tck"
        )
        assert tracks == StreamlineSet(tmp_path / f"{name}.tck", count=10)
        scores.append(toolbox.compute_mean_length(tracks))

    assert scores[0] == toolbox.max_length
    assert scores[1] < scores[0]


def test_synthetic_scores_antipodal(tmp_path, dwi_shape, ground_truth):
    toolbox = SyntheticToolbox(dwi_shape, ground_truth)

    signs = np.where(np.arange(len(ground_truth)) % 2, -1.0, 1.0)[:, np.newaxis]
    reversed_table = ground_truth.gradients.copy()
    reversed_table[:, :3] *= signs
    reversed_files = GradientFiles(
        mrtrix=GradientTable(reversed_table).to_filename(tmp_path / "reversed.b")
    )

    # Axes 0 and 1 swapped in scanner coordinates, then corrected in image
    # coordinates, where the correction also reverses every direction
    swapped = to_image_frame(ground_truth.transform(None, (1, 0, 2)))
    image_files = GradientFiles(
        fsl=swapped.transform(2, (1, 0, 2)).to_filenames(tmp_path / "bvecs", tmp_path / "bvals")
    )

    for name, gradients in (("reversed", reversed_files), ("image", image_files)):
        tracks = toolbox.run_tractography(
            gradients, tmp_path / "mask", tmp_path / "data", 10, output=tmp_path / f"{name}.tck"
        )
        assert toolbox.compute_mean_length(tracks) == toolbox.max_length


def test_synthetic_failures(tmp_path, dwi_shape, ground_truth):
    toolbox = SyntheticToolbox(dwi_shape, ground_truth, fail_on="derive_mask", fail_after=1)
    toolbox.derive_mask(tmp_path / "data", tmp_path / "mask1")
    with pytest.raises(ExternalToolError, match="simulated failure"):
        toolbox.derive_mask(tmp_path / "data", tmp_path / "mask2")
    assert toolbox.count("derive_mask") == 2

    # No table was imported and none is stored in the header
    with pytest.raises(ExternalToolError, match="No diffusion gradient table"):
        toolbox.export_gradients(tmp_path / "data", GradientFiles(mrtrix=tmp_path / "grad.b"))

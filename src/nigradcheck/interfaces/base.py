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
"""Capabilities required from the external tools."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

import attrs

from nigradcheck.data.gradients import GradientFiles

DOWNSAMPLE_FACTOR = 5
"""Downsampling factor of the generated streamlines."""

MIN_LENGTH = 0
"""Minimum length of the generated streamlines (i.e., no length floor)."""

TRACKING_ALGORITHM = "tensor_det"
"""Deterministic tensor-based tractography."""


@attrs.define(frozen=True, slots=True)
class StreamlineSet:
    """Handle to a set of streamlines written to disk."""

    path: Path = attrs.field(converter=Path)
    """Location of the tractogram."""
    count: int | None = None
    """Number of streamlines requested."""


@runtime_checkable
class Evaluator(Protocol):
    """Scores a gradient table by running tractography with it."""

    def run_tractography(
        self,
        gradients: GradientFiles,
        mask: Path,
        image: Path,
        budget: int,
        *,
        output: Path,
    ) -> StreamlineSet:
        """Generate ``budget`` streamlines seeded and constrained within ``mask``."""

    def compute_mean_length(self, streamlines: StreamlineSet) -> float:
        """Mean length of the streamlines, ignoring those of zero length."""


@runtime_checkable
class Toolbox(Evaluator, Protocol):
    """Everything a gradient check needs from the external tools."""

    def image_size(self, image: Path) -> tuple[int, ...]:
        """Dimensions of the image."""

    def convert(
        self,
        image: Path,
        output: Path,
        gradients: GradientFiles | None = None,
        datatype: str | None = None,
    ) -> Path:
        """Convert an image into a memory-mappable, volume-contiguous copy."""

    def export_gradients(
        self,
        image: Path,
        output: GradientFiles,
        gradients: GradientFiles | None = None,
    ) -> GradientFiles:
        """Write the table of the image (or ``gradients``) in the notation of ``output``."""

    def derive_mask(self, image: Path, output: Path) -> Path:
        """Compute a brain mask from the diffusion data."""

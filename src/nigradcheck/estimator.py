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
"""A tractography-based check of the orientation of diffusion gradient tables.

Correctly oriented gradients are expected to yield longer streamlines, on
average, than gradients that have an axis flipped or swapped.
Every candidate correction is applied to the gradient table, a fixed number of
streamlines is generated with a deterministic tensor algorithm, and candidates
are ranked by the mean length of their streamlines.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

import attrs
from tqdm import tqdm

from nigradcheck.candidates import (
    CandidateResult,
    CandidateTransform,
    rank_results,
)
from nigradcheck.data.base import DWIDataset
from nigradcheck.data.gradients import GradientFiles, GradientTable
from nigradcheck.interfaces.base import Evaluator, StreamlineSet, Toolbox
from nigradcheck.utils.iterators import candidate_iterator

LOGGER = logging.getLogger("nigradcheck")

DEFAULT_NUMBER = 10000
"""Default number of streamlines generated per candidate."""

NUMBER_ERROR_MSG = "The number of streamlines must be a positive integer; got {number!r}."
"""Invalid streamline count error message."""

EMPTY_REPORT_ERROR_MSG = "No candidate was evaluated."
"""Empty report error message."""

TABLE_HEADER = ("Mean length", "Axis flipped", "Axis permutations", "Axis basis")
"""Columns of the ranking table."""

TABLE_WIDTHS = (15, 15, 20, 12)
"""Widths of the columns of the ranking table."""


def check_number(number: int) -> int:
    """
    Validate the number of streamlines generated per candidate.

    Examples
    --------
    >>> check_number(100)
    100
    >>> check_number(0)
    Traceback (most recent call last):
    ...
    ValueError: The number of streamlines must be a positive integer; got 0.

    """
    if isinstance(number, bool) or not isinstance(number, int) or number < 1:
        raise ValueError(NUMBER_ERROR_MSG.format(number=number))
    return number


@attrs.define(frozen=True, slots=True)
class CandidateArtifacts:
    """Files written while evaluating one candidate."""

    gradients: GradientFiles
    """The transformed gradient table."""
    streamlines: StreamlineSet
    """The streamlines generated with it."""


@attrs.define(slots=True)
class SearchReport:
    """Ranked outcome of a gradient check."""

    results: list[CandidateResult] = attrs.field(converter=rank_results)
    """Candidate results, sorted by descending mean length."""
    artifacts: dict[CandidateTransform, CandidateArtifacts] = attrs.field(factory=dict)
    """Files written for each candidate."""
    scratch_dir: Path | None = None
    """Directory holding the intermediate files."""

    def __len__(self) -> int:
        return len(self.results)

    @property
    def best(self) -> CandidateResult:
        """The candidate with the longest mean streamline length."""
        if not self.results:
            raise ValueError(EMPTY_REPORT_ERROR_MSG)
        return self.results[0]

    def format_table(self) -> str:
        """
        Render the ranking as a plain-text table.

        Examples
        --------
        >>> report = SearchReport(
        ...     [CandidateResult(42.5, CandidateTransform(None, (0, 2, 1), "scanner"), 2)]
        ... )
        >>> print(report.format_table())
        Mean length    Axis flipped   Axis permutations   Axis basis
        42.50          none           (0, 2, 1)           scanner

        """
        lines = ["".join(f"{h:<{w}}" for h, w in zip(TABLE_HEADER, TABLE_WIDTHS, strict=True))]
        for result in self.results:
            xfm = result.transform
            cells = (
                f"{result.mean_length:.2f}",
                "none" if xfm.flip is None else str(xfm.flip),
                str(xfm.permutation),
                xfm.basis,
            )
            lines.append("".join(f"{c:<{w}}" for c, w in zip(cells, TABLE_WIDTHS, strict=True)))
        return "\n".join(line.rstrip() for line in lines)

    def to_dict(self) -> dict:
        """Serializable summary of the ranking, including artifact paths."""
        ranking = []
        for rank, result in enumerate(self.results):
            xfm = result.transform
            entry = {
                "rank": rank,
                "index": result.index,
                "mean_length": result.mean_length,
                "flip": xfm.flip,
                "permutation": list(xfm.permutation),
                "basis": xfm.basis,
            }
            if (artifacts := self.artifacts.get(xfm)) is not None:
                entry["gradients"] = [str(p) for p in artifacts.gradients.paths]
                entry["streamlines"] = str(artifacts.streamlines.path)
            ranking.append(entry)
        return {
            "scratch_dir": None if self.scratch_dir is None else str(self.scratch_dir),
            "ranking": ranking,
        }

    def to_json(self, filename: Path | str) -> Path:
        """Write the ranking to a JSON file."""
        filename = Path(filename)
        filename.write_text(json.dumps(self.to_dict(), indent=2))
        return filename


def write_candidate_table(
    dataset: DWIDataset, candidate: CandidateTransform, out_dir: Path
) -> GradientFiles:
    """
    Apply a candidate to the table of its basis and write it with a unique name.

    Returns
    -------
    :obj:`~nigradcheck.data.gradients.GradientFiles`
        The written table, in MRtrix notation for scanner-basis candidates and in
        FSL notation for image-basis candidates.

    """
    table = candidate.apply(dataset.table(candidate.basis))
    if isinstance(table, GradientTable):
        return GradientFiles(mrtrix=table.to_filename(out_dir / f"grad{candidate.suffix}.b"))

    return GradientFiles(
        fsl=table.to_filenames(
            out_dir / f"bvecs{candidate.suffix}",
            out_dir / f"bvals{candidate.suffix}",
        )
    )


class OrientationEstimator:
    """Estimates flips and permutations of the axes of a gradient table."""

    __slots__ = ("_evaluator", "_number", "_candidates")

    def __init__(
        self,
        evaluator: Evaluator,
        number: int = DEFAULT_NUMBER,
        candidates: Iterable[CandidateTransform] | None = None,
    ):
        self._evaluator = evaluator
        self._number = check_number(number)
        self._candidates = tuple(candidate_iterator() if candidates is None else candidates)

    @property
    def candidates(self) -> tuple[CandidateTransform, ...]:
        return self._candidates

    def run(self, dataset: DWIDataset, scratch_dir: Path | str | None = None) -> SearchReport:
        """
        Evaluate every candidate, one after the other, and rank them.

        Parameters
        ----------
        dataset : :obj:`~nigradcheck.data.base.DWIDataset`
            The staged input.
        scratch_dir : :obj:`os.pathlike`, optional
            Where to write the intermediate files (the dataset's scratch directory
            by default). Files are kept after the run.

        Returns
        -------
        :obj:`~nigradcheck.estimator.SearchReport`
            The ranked results.

        Raises
        ------
        :exc:`~nigradcheck.exceptions.ExternalToolError`
            As soon as one evaluation fails; the remaining candidates are not run.

        """
        out_dir = Path(scratch_dir) if scratch_dir is not None else dataset.scratch_dir

        results: list[CandidateResult] = []
        artifacts: dict[CandidateTransform, CandidateArtifacts] = {}
        with tqdm(total=len(self._candidates), unit="candidates") as pbar:
            for index, candidate in enumerate(self._candidates):
                pbar.set_description_str(f"Tracking <{candidate.suffix[1:]}>")

                gradients = write_candidate_table(dataset, candidate, out_dir)
                streamlines = self._evaluator.run_tractography(
                    gradients,
                    dataset.brainmask,
                    dataset.data,
                    self._number,
                    output=out_dir / f"tracks{candidate.suffix}.tck",
                )
                mean_length = self._evaluator.compute_mean_length(streamlines)
                LOGGER.debug("Candidate <%s>: mean length %f", candidate.suffix[1:], mean_length)

                results.append(CandidateResult(mean_length, candidate, index))
                artifacts[candidate] = CandidateArtifacts(gradients, streamlines)
                pbar.update()

        return SearchReport(results, artifacts, scratch_dir=out_dir)

    @staticmethod
    def export(
        report: SearchReport,
        dataset: DWIDataset,
        toolbox: Toolbox,
        output: GradientFiles,
    ) -> GradientFiles:
        """
        Write the gradient table of the best candidate in the notation of ``output``.

        The table written during the search is reused and converted by the
        external tools.
        """
        best = report.best.transform
        if (artifacts := report.artifacts.get(best)) is not None:
            gradients = artifacts.gradients
        else:
            gradients = write_candidate_table(dataset, best, dataset.scratch_dir)

        LOGGER.info(
            "Exporting corrected gradient table to %s",
            " ".join(f"<{p}>" for p in output.paths),
        )
        return toolbox.export_gradients(dataset.data, output, gradients=gradients)

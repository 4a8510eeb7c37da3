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
"""nigradcheck runner."""

from __future__ import annotations

import logging
from argparse import Namespace

from nigradcheck.cli.parser import build_parser
from nigradcheck.data import load
from nigradcheck.data.gradients import GradientFiles
from nigradcheck.estimator import OrientationEstimator, SearchReport
from nigradcheck.exceptions import GradCheckError, MutuallyExclusiveOptionError
from nigradcheck.interfaces.base import Toolbox
from nigradcheck.interfaces.mrtrix import MRtrixToolbox

LOGGER = logging.getLogger("nigradcheck")

REPORT_NAME = "ranking.json"
"""Name of the ranking written in the scratch directory."""


def check_options(args: Namespace) -> tuple[GradientFiles | None, GradientFiles | None]:
    """
    Resolve the gradient import and export options.

    Returns
    -------
    gradients : :obj:`~nigradcheck.data.gradients.GradientFiles` or ``None``
        The table to import, if any.
    export : :obj:`~nigradcheck.data.gradients.GradientFiles` or ``None``
        Where to export the best table, if requested.

    Raises
    ------
    :exc:`~nigradcheck.exceptions.MutuallyExclusiveOptionError`
        If both notations are given for the import or for the export.

    """
    if args.grad and args.fslgrad:
        raise MutuallyExclusiveOptionError("-grad", "-fslgrad")
    if args.export_grad_mrtrix and args.export_grad_fsl:
        raise MutuallyExclusiveOptionError("-export_grad_mrtrix", "-export_grad_fsl")

    gradients = None
    if args.grad:
        gradients = GradientFiles(mrtrix=args.grad)
    elif args.fslgrad:
        gradients = GradientFiles(fsl=args.fslgrad)

    export = None
    if args.export_grad_mrtrix:
        export = GradientFiles(mrtrix=args.export_grad_mrtrix)
    elif args.export_grad_fsl:
        export = GradientFiles(fsl=args.export_grad_fsl)

    return gradients, export


def build_toolbox(args: Namespace) -> MRtrixToolbox:
    """Configure the MRtrix3 commands from the command line and the YAML settings."""
    config = dict(args.tool_config or {})
    if args.nthreads is not None:
        config["nthreads"] = args.nthreads
    return MRtrixToolbox(**config)


def run_check(args: Namespace, toolbox: Toolbox | None = None) -> SearchReport:
    """
    Run the whole gradient check.

    Parameters
    ----------
    args : :obj:`~argparse.Namespace`
        Parsed command-line arguments.
    toolbox : :obj:`~nigradcheck.interfaces.base.Toolbox`, optional
        The external tools (MRtrix3 by default).

    Returns
    -------
    :obj:`~nigradcheck.estimator.SearchReport`
        The ranking of all candidate corrections.

    """
    gradients, export = check_options(args)
    toolbox = toolbox if toolbox is not None else build_toolbox(args)

    dataset = load(
        args.input_file,
        toolbox,
        gradients=gradients,
        brainmask_file=args.mask,
        scratch_dir=args.scratch,
    )

    estimator = OrientationEstimator(toolbox, number=args.number)
    report = estimator.run(dataset)

    report.to_json(dataset.scratch_dir / REPORT_NAME)
    if args.report:
        report.to_json(args.report)

    if export is not None:
        estimator.export(report, dataset, toolbox, export)

    LOGGER.info("Intermediate files were kept in <%s>", dataset.scratch_dir)
    return report


def main(argv=None, toolbox: Toolbox | None = None) -> None:
    """
    Entry point.

    Returns
    -------
    None

    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
        level=max(logging.WARNING - 10 * args.verbose_count, logging.DEBUG),
    )

    try:
        report = run_check(args, toolbox=toolbox)
    except GradCheckError as exc:
        parser.exit(1, f"{parser.prog}: error: {exc}\n")

    print(report.format_table())


if __name__ == "__main__":
    main()

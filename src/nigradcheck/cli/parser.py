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
"""Parser module."""

from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser, ArgumentTypeError
from pathlib import Path

import yaml

from nigradcheck.estimator import DEFAULT_NUMBER
from nigradcheck.interfaces.mrtrix import check_tool_config


def _parse_yaml_config(file_path: str) -> dict:
    """
    Parse YAML configuration file.

    Parameters
    ----------
    file_path : str
        Path to the YAML configuration file.

    Returns
    -------
    dict
        A dictionary containing the parsed YAML configuration.
    """
    with open(file_path, "r") as file:
        config = yaml.safe_load(file)

    if config is not None and not isinstance(config, dict):
        raise ArgumentTypeError(f"{file_path} does not contain a mapping of settings")

    try:
        return check_tool_config(config)
    except ValueError as exc:
        raise ArgumentTypeError(str(exc)) from exc


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise ArgumentTypeError(f"{value!r} is not an integer") from exc
    if number < 1:
        raise ArgumentTypeError(f"{value!r} is not a positive integer")
    return number


def build_parser() -> ArgumentParser:
    """
    Build parser object.

    Returns
    -------
    :obj:`~argparse.ArgumentParser`
        The parser object defining the interface for the command-line.
    """
    parser = ArgumentParser(
        prog="nigradcheck",
        description=(
            "Check the orientation of the diffusion gradient table by "
            "tracking streamlines with every axis flip and permutation."
        ),
        epilog=(
            "Correctly oriented gradients are expected to produce longer streamlines "
            "on average. The check is heuristic: inspect the ranking before accepting "
            "a correction."
        ),
        formatter_class=ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        "input_file",
        action="store",
        type=Path,
        help="Path to the diffusion-weighted image (any format MRtrix3 reads).",
    )
    parser.add_argument(
        "--mask",
        "-mask",
        action="store",
        type=Path,
        help="Path to a brain mask. If not provided, one is derived with dwi2mask.",
    )
    parser.add_argument(
        "--number",
        "-number",
        action="store",
        type=_positive_int,
        default=DEFAULT_NUMBER,
        help="Number of streamlines generated for each candidate correction.",
    )
    parser.add_argument(
        "--scratch",
        "-scratch",
        action="store",
        type=Path,
        default=None,
        help=(
            "Directory in which the scratch directory is created "
            "(defaults to the current directory). Intermediate files are kept."
        ),
    )
    parser.add_argument(
        "--report",
        action="store",
        type=Path,
        default=None,
        help="Write the ranking (with intermediate file paths) to this JSON file.",
    )
    parser.add_argument(
        "--tool-config",
        action="store",
        type=_parse_yaml_config,
        default=None,
        help=(
            "Path to a YAML file configuring the MRtrix3 commands "
            "(bin_dir, nthreads, environ, quiet)."
        ),
    )
    parser.add_argument(
        "--nthreads",
        "-nthreads",
        "--omp-nthreads",
        action="store",
        type=int,
        default=None,
        help="Maximum number of threads an individual MRtrix3 command may use.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose_count",
        action="count",
        default=0,
        help="Increase log verbosity for each occurrence.",
    )

    g_import = parser.add_argument_group("Options for importing the gradient table")
    g_import.add_argument(
        "--grad",
        "-grad",
        action="store",
        type=Path,
        metavar="FILE",
        help="A gradient table in MRtrix format (one 'x y z b' row per volume).",
    )
    g_import.add_argument(
        "--fslgrad",
        "-fslgrad",
        action="store",
        nargs=2,
        type=Path,
        metavar=("BVECS", "BVALS"),
        help="A gradient table in FSL format (bvecs and bvals files).",
    )

    g_export = parser.add_argument_group("Options for exporting the corrected gradient table")
    g_export.add_argument(
        "--export-grad-mrtrix",
        "-export_grad_mrtrix",
        dest="export_grad_mrtrix",
        action="store",
        type=Path,
        metavar="FILE",
        help="Export the best gradient table in MRtrix format.",
    )
    g_export.add_argument(
        "--export-grad-fsl",
        "-export_grad_fsl",
        dest="export_grad_fsl",
        action="store",
        nargs=2,
        type=Path,
        metavar=("BVECS", "BVALS"),
        help="Export the best gradient table in FSL format.",
    )

    return parser

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
"""MRtrix3 commands, wrapped with *Nipype*."""

from __future__ import annotations

import logging
import math
import shlex
from pathlib import Path

from nipype.interfaces.base import CommandLine

from nigradcheck.data.gradients import GradientFiles
from nigradcheck.exceptions import ExternalToolError
from nigradcheck.interfaces.base import (
    DOWNSAMPLE_FACTOR,
    MIN_LENGTH,
    TRACKING_ALGORITHM,
    StreamlineSet,
)
from nigradcheck.utils.ndimage import read_shape

LOGGER = logging.getLogger("nigradcheck")

TOOL_CONFIG_KEYS = ("bin_dir", "nthreads", "environ", "quiet")
"""Settings accepted by :obj:`MRtrixToolbox` (e.g., from a YAML file)."""

TOOL_CONFIG_ERROR_MSG = "Unknown MRtrix3 toolbox setting(s): {keys}. Valid settings are {valid}."
"""Tool configuration error message."""

PARSE_ERROR_MSG = "Could not parse the output of <{command}>: {stdout!r}"
"""Unexpected command output error message."""


def check_tool_config(config: dict | None) -> dict:
    """
    Validate the settings of an :obj:`MRtrixToolbox`.

    Examples
    --------
    >>> check_tool_config({"nthreads": 4})
    {'nthreads': 4}
    >>> check_tool_config({"threads": 4})
    Traceback (most recent call last):
    ...
    ValueError: Unknown MRtrix3 toolbox setting(s): threads. Valid settings are bin_dir, nthreads, environ, quiet.

    """
    config = dict(config or {})
    if unknown := sorted(set(config) - set(TOOL_CONFIG_KEYS)):
        raise ValueError(
            TOOL_CONFIG_ERROR_MSG.format(keys=", ".join(unknown), valid=", ".join(TOOL_CONFIG_KEYS))
        )
    return config


class MRtrixToolbox:
    """Runs the MRtrix3 commands required to check a gradient table."""

    __slots__ = ("_bin_dir", "_nthreads", "_environ", "_quiet", "_cwd")

    def __init__(
        self,
        bin_dir: Path | str | None = None,
        nthreads: int | None = None,
        environ: dict | None = None,
        quiet: bool = True,
        cwd: Path | str | None = None,
    ):
        self._bin_dir = Path(bin_dir) if bin_dir else None
        self._nthreads = nthreads
        self._environ = {str(k): str(v) for k, v in (environ or {}).items()}
        self._quiet = quiet
        self._cwd = Path(cwd) if cwd else None

    def _executable(self, name: str) -> str:
        return str(self._bin_dir / name) if self._bin_dir else name

    def run(self, command: str, args: list, force: bool = False) -> str:
        """
        Run one MRtrix3 command and return its standard output.

        Parameters
        ----------
        command : :obj:`str`
            The MRtrix3 command name (e.g., ``"tckgen"``).
        args : :obj:`list`
            Command-line arguments, which are quoted before execution.
        force : :obj:`bool`, optional
            Overwrite existing outputs.

        Raises
        ------
        :exc:`~nigradcheck.exceptions.ExternalToolError`
            If the command cannot be found or returns a non-zero exit code.

        """
        args = [str(a) for a in args]
        if force:
            args.append("-force")
        if self._quiet:
            args.append("-quiet")
        if self._nthreads is not None:
            args += ["-nthreads", str(self._nthreads)]

        interface = CommandLine(
            command=self._executable(command),
            args=shlex.join(args),
            terminal_output="allatonce",
            resource_monitor=False,
        )
        if self._environ:
            interface.inputs.environ = self._environ

        cmdline = interface.cmdline
        LOGGER.debug("Running <%s>", cmdline)
        try:
            result = interface.run(cwd=str(self._cwd) if self._cwd else None)
        except OSError as exc:
            raise ExternalToolError(cmdline, reason=str(exc)) from exc
        except RuntimeError as exc:
            raise ExternalToolError(cmdline, reason=str(exc).strip().splitlines()[0]) from exc

        runtime = result.runtime
        if runtime.returncode:
            raise ExternalToolError(cmdline, returncode=runtime.returncode, stderr=runtime.stderr)
        return runtime.stdout or ""

    def image_size(self, image: Path) -> tuple[int, ...]:
        """Image dimensions, from the header when *NiBabel* understands the format."""
        if (shape := read_shape(image)) is not None:
            return shape

        command = "mrinfo"
        stdout = self.run(command, [image, "-size"])
        try:
            return tuple(int(s) for s in stdout.split())
        except ValueError as exc:
            raise ExternalToolError(
                command, reason=PARSE_ERROR_MSG.format(command=command, stdout=stdout)
            ) from exc

    def convert(
        self,
        image: Path,
        output: Path,
        gradients: GradientFiles | None = None,
        datatype: str | None = None,
    ) -> Path:
        args: list = [image, output]
        if datatype is None:
            # Volume-contiguous, so that single volumes can be memory-mapped
            args += ["-strides", "0,0,0,1"]
        else:
            args += ["-datatype", datatype]
        if gradients is not None:
            args += gradients.import_args()
        self.run("mrconvert", args, force=True)
        return Path(output)

    def export_gradients(
        self,
        image: Path,
        output: GradientFiles,
        gradients: GradientFiles | None = None,
    ) -> GradientFiles:
        args: list = [image]
        if gradients is not None:
            args += gradients.import_args()
        self.run("mrinfo", args + output.export_args(), force=True)
        return output

    def derive_mask(self, image: Path, output: Path) -> Path:
        self.run("dwi2mask", [image, output], force=True)
        return Path(output)

    def run_tractography(
        self,
        gradients: GradientFiles,
        mask: Path,
        image: Path,
        budget: int,
        *,
        output: Path,
    ) -> StreamlineSet:
        args = [
            "-algorithm",
            TRACKING_ALGORITHM,
            image,
            output,
            "-seed_image",
            mask,
            "-mask",
            mask,
            "-select",
            budget,
            "-minlength",
            MIN_LENGTH,
            "-downsample",
            DOWNSAMPLE_FACTOR,
            *gradients.import_args(),
        ]
        self.run("tckgen", args, force=True)
        return StreamlineSet(output, count=budget)

    def compute_mean_length(self, streamlines: StreamlineSet) -> float:
        command = "tckstats"
        stdout = self.run(command, [streamlines.path, "-output", "mean", "-ignorezero"])
        try:
            mean_length = float(stdout.strip().splitlines()[-1])
        except (IndexError, ValueError) as exc:
            raise ExternalToolError(
                command, reason=PARSE_ERROR_MSG.format(command=command, stdout=stdout)
            ) from exc

        # No streamline of non-zero length was generated
        if not math.isfinite(mean_length):
            raise ExternalToolError(
                command, reason=PARSE_ERROR_MSG.format(command=command, stdout=stdout)
            )
        return mean_length

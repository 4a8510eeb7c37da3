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
"""Errors raised while checking the orientation of a gradient table.

All of them are fatal: the search is never resumed after one of these is raised,
and no partial ranking is reported.
"""

from __future__ import annotations

from collections.abc import Sequence


class GradCheckError(Exception):
    """Base class for all *nigradcheck* errors."""


class InvalidInputError(GradCheckError):
    """The input image cannot be used to run tractography."""


class GradientTableMismatchError(GradCheckError):
    """The gradient table does not match the number of diffusion volumes."""


class MutuallyExclusiveOptionError(GradCheckError):
    """Two options that cannot be used together were given."""

    def __init__(self, *options: str):
        self.options = options
        super().__init__(
            "Options {} are mutually exclusive".format(" and ".join(f"<{o}>" for o in options))
        )


class ExternalToolError(GradCheckError):
    """An external command could not be found or finished with an error."""

    def __init__(
        self,
        command: str | Sequence[str],
        returncode: int | None = None,
        stderr: str | None = None,
        reason: str | None = None,
    ):
        self.command = command if isinstance(command, str) else " ".join(command)
        self.returncode = returncode
        self.stderr = stderr

        msg = f"Command <{self.command}> failed"
        if returncode is not None:
            msg += f" with exit code {returncode}"
        if reason:
            msg += f": {reason}"
        if stderr:
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)

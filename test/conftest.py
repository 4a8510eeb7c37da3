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
"""py.test configuration."""

import os
from pathlib import Path

import nibabel as nb
import numpy as np
import pytest

from nigradcheck.data import load
from nigradcheck.testing.simulations import SyntheticToolbox, simulate_gradient_table

N_VOLUMES = 7
"""Number of volumes of the synthetic datasets."""

DWI_SHAPE = (8, 8, 6, N_VOLUMES)
"""Dimensions of the synthetic datasets."""


@pytest.fixture(autouse=True)
def doctest_imports(doctest_namespace):
    """Populates doctests with some conveniency imports."""
    doctest_namespace["np"] = np
    doctest_namespace["nb"] = nb
    doctest_namespace["os"] = os
    doctest_namespace["Path"] = Path


@pytest.fixture
def rng():
    """A seeded random number generator."""
    return np.random.default_rng(20210324)


@pytest.fixture
def dwi_shape():
    """Dimensions of the synthetic datasets."""
    return DWI_SHAPE


@pytest.fixture
def ground_truth(rng):
    """A correctly oriented gradient table."""
    return simulate_gradient_table(N_VOLUMES, rng=rng)


@pytest.fixture
def dwi_file(tmp_path):
    """An (empty) placeholder for the diffusion-weighted input."""
    path = tmp_path / "dwi.mif"
    path.write_text("placeholder\n")
    return path


@pytest.fixture
def swapped_table(ground_truth):
    """The ground truth with the second and third axes swapped."""
    return ground_truth.transform(None, (0, 2, 1))


@pytest.fixture
def toolbox(dwi_shape, ground_truth, swapped_table):
    """Synthetic tools for an image whose header stores a misoriented table."""
    return SyntheticToolbox(dwi_shape, ground_truth, header_table=swapped_table)


@pytest.fixture
def dataset(tmp_path, dwi_file, toolbox):
    """A staged dataset."""
    return load(dwi_file, toolbox, scratch_dir=tmp_path / "scratch")


def pytest_addoption(parser):
    parser.addoption(
        "--warnings-as-errors",
        action="store_true",
        help="Consider all uncaught warnings as errors.",
    )


@pytest.hookimpl(trylast=True)
def pytest_sessionfinish(session, exitstatus):
    have_werrors = os.getenv("NIGRADCHECK_WERRORS", False)
    have_werrors = session.config.getoption("--warnings-as-errors", False) or have_werrors
    if have_werrors:
        # Check if there were any warnings during the test session
        reporter = session.config.pluginmanager.get_plugin("terminalreporter")
        if reporter.stats.get("warnings", None):
            session.exitstatus = 2


@pytest.hookimpl
def pytest_terminal_summary(terminalreporter, exitstatus, config):
    have_werrors = os.getenv("NIGRADCHECK_WERRORS", False)
    have_werrors = config.getoption("--warnings-as-errors", False) or have_werrors
    have_warnings = terminalreporter.stats.get("warnings", None)
    if have_warnings and have_werrors:
        terminalreporter.ensure_newline()
        terminalreporter.section("Werrors", sep="=", red=True, bold=True)
        terminalreporter.line(
            "Warnings as errors: Activated.\n"
            f"{len(have_warnings)} warnings were raised and treated as errors.\n"
        )

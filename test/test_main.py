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

import json
import runpy
import sys
import types

import numpy.testing as npt
import pytest

from nigradcheck.__main__ import main
from nigradcheck.cli.parser import build_parser
from nigradcheck.cli.run import REPORT_NAME, build_toolbox, check_options
from nigradcheck.data.gradients import GradientFiles
from nigradcheck.exceptions import MutuallyExclusiveOptionError
from nigradcheck.interfaces.mrtrix import MRtrixToolbox
from nigradcheck.testing.simulations import SyntheticToolbox


def _make_dummy_run_module(call_recorder: dict):
    """Create a fake nigradcheck.cli.run module with a main() that records it was
    called.
    """
    dummy_cli_run = types.ModuleType("nigradcheck.cli.run")

    def _main():
        call_recorder["called"] = True
        call_recorder["argv"] = list(sys.argv)

    setattr(dummy_cli_run, "main", _main)  # noqa
    return dummy_cli_run


@pytest.fixture(autouse=True)
def set_command(monkeypatch):
    with monkeypatch.context() as m:
        m.setattr(sys, "argv", ["nigradcheck"])
        yield


def test_help(capsys):
    with pytest.raises(SystemExit):
        main(["--help"])
    captured = capsys.readouterr()
    assert captured.out.startswith("usage: nigradcheck [-h]")


def test_parser_aliases(tmp_path):
    args = build_parser().parse_args(
        [
            "dwi.mif",
            "-mask",
            "mask.mif",
            "-number",
            "500",
            "-fslgrad",
            "bvecs",
            "bvals",
            "-export_grad_mrtrix",
            "out.b",
            "-nthreads",
            "4",
            "-vv",
        ]
    )
    assert args.number == 500
    assert [str(p) for p in args.fslgrad] == ["bvecs", "bvals"]
    assert str(args.export_grad_mrtrix) == "out.b"
    assert args.export_grad_fsl is None
    assert args.nthreads == 4
    assert args.verbose_count == 2

    gradients, export = check_options(args)
    assert gradients.basis == "image"
    assert export == GradientFiles(mrtrix=args.export_grad_mrtrix)


@pytest.mark.parametrize("number", ["0", "-3", "many"])
def test_parser_rejects_number(capsys, number):
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["dwi.mif", "-number", number])
    assert excinfo.value.code == 2
    assert "-number" in capsys.readouterr().err


@pytest.mark.parametrize(
    "options",
    [
        ["-grad", "grad.b", "-fslgrad", "bvecs", "bvals"],
        ["-export_grad_mrtrix", "out.b", "-export_grad_fsl", "out.bvec", "out.bval"],
    ],
)
def test_mutually_exclusive(capsys, tmp_path, dwi_file, dwi_shape, ground_truth, options):
    toolbox = SyntheticToolbox(dwi_shape, ground_truth, header_table=ground_truth)

    with pytest.raises(MutuallyExclusiveOptionError):
        check_options(build_parser().parse_args([str(dwi_file), *options]))

    with pytest.raises(SystemExit) as excinfo:
        main([str(dwi_file), "-scratch", str(tmp_path), *options], toolbox=toolbox)

    assert excinfo.value.code == 1
    assert "mutually exclusive" in capsys.readouterr().err
    assert toolbox.calls == []
    assert list(tmp_path.iterdir()) == [dwi_file]


def test_tool_config(tmp_path):
    config = tmp_path / "mrtrix.yml"
    config.write_text("bin_dir: /opt/mrtrix3/bin\nnthreads: 8\n")

    args = build_parser().parse_args(["dwi.mif", "--tool-config", str(config), "-nthreads", "2"])
    assert args.tool_config == {"bin_dir": "/opt/mrtrix3/bin", "nthreads": 8}

    toolbox = build_toolbox(args)
    assert isinstance(toolbox, MRtrixToolbox)
    assert toolbox._nthreads == 2
    assert str(toolbox._executable("tckgen")) == "/opt/mrtrix3/bin/tckgen"


@pytest.mark.parametrize("content", ["threads: 8\n", "- bin_dir\n"])
def test_tool_config_invalid(capsys, tmp_path, content):
    config = tmp_path / "mrtrix.yml"
    config.write_text(content)
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["dwi.mif", "--tool-config", str(config)])
    assert excinfo.value.code == 2


def test_main(capsys, tmp_path, dwi_file, toolbox, ground_truth):
    report = tmp_path / "report.json"
    corrected = tmp_path / "corrected.b"
    main(
        [
            str(dwi_file),
            "-number",
            "100",
            "-scratch",
            str(tmp_path / "work"),
            "--report",
            str(report),
            "-export_grad_mrtrix",
            str(corrected),
        ],
        toolbox=toolbox,
    )

    lines = capsys.readouterr().out.splitlines()
    assert lines[0].startswith("Mean length")
    assert lines[1].split()[1:] == ["none", "(0,", "2,", "1)", "scanner"]
    assert len(lines) == 49

    (scratch,) = (tmp_path / "work").iterdir()
    ranking = json.loads((scratch / REPORT_NAME).read_text())
    assert ranking == json.loads(report.read_text())
    assert ranking["ranking"][0]["permutation"] == [0, 2, 1]

    npt.assert_allclose(
        GradientFiles(mrtrix=corrected).load().gradients, ground_truth.gradients, atol=1e-6
    )


def test_main_tool_failure(capsys, tmp_path, dwi_file, dwi_shape, ground_truth, swapped_table):
    toolbox = SyntheticToolbox(
        dwi_shape, ground_truth, header_table=swapped_table, fail_on="compute_mean_length"
    )
    with pytest.raises(SystemExit) as excinfo:
        main([str(dwi_file), "-scratch", str(tmp_path)], toolbox=toolbox)

    assert excinfo.value.code == 1
    assert "nigradcheck: error: Command <compute_mean_length>" in capsys.readouterr().err
    assert toolbox.count("run_tractography") == 1


@pytest.mark.parametrize(
    "initial_argv0, expect_rewrite",
    [
        ("something/path/__main__.py", True),
        (f"{sys.executable}", False),
    ],
)
def test_nigradcheck_call(monkeypatch, initial_argv0, expect_rewrite):
    """Execute the package's __main__ and assert that:
    - nigradcheck.cli.run.main() is called
    - sys.argv[0] gets rewritten only when '__main__.py' is in argv[0]
    """
    orig_modules = sys.modules.copy()

    recorder = {"called": False, "argv": None}

    # Drop loaded nigradcheck modules so runpy executes a fresh __main__
    for key in list(sys.modules.keys()):
        if key == "nigradcheck" or key.startswith("nigradcheck."):
            sys.modules.pop(key, None)

    sys.modules["nigradcheck.cli.run"] = _make_dummy_run_module(recorder)

    sys_argv_backup = list(sys.argv)
    sys.argv[0:1] = [initial_argv0]

    try:
        runpy.run_module("nigradcheck.__main__", run_name="__main__")
    finally:
        sys.argv[:] = sys_argv_backup
        for key in list(sys.modules.keys()):
            if key not in orig_modules:
                del sys.modules[key]
        sys.modules.update(orig_modules)

    assert recorder["called"] is True
    assert isinstance(recorder["argv"], list)

    if expect_rewrite:
        assert recorder["argv"][0] == f"{sys.executable} -m nigradcheck"
    else:
        assert recorder["argv"][0] == initial_argv0

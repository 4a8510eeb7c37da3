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

import os
import typing

import nibabel as nb
from nibabel.filebasedimages import ImageFileError

ImgT = typing.TypeVar("ImgT", bound=nb.spatialimages.SpatialImage)


def load_api(path: str | os.PathLike[str], api: type[ImgT]) -> ImgT:
    img = nb.load(path)
    if not isinstance(img, api):
        raise TypeError(f"File {path} does not implement {api} interface")
    return img


def read_shape(path: str | os.PathLike[str]) -> tuple[int, ...] | None:
    """
    Read the image dimensions from the header, without loading any data.

    Returns ``None`` when the format is not understood by *NiBabel*
    (e.g., MRtrix's ``.mif``), so that the caller may query it otherwise.
    """
    try:
        img = load_api(path, nb.spatialimages.SpatialImage)
    except (ImageFileError, TypeError):
        return None
    return tuple(int(s) for s in img.shape)

# Copyright 2024 Ericsson Software Technology
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#   http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""
Exceptions raised by luks-image.

"""

from ironic_lib import exception


class LuksImageError(exception.IronicException):
    """Base class for all luks-image errors."""

    _msg_fmt = "An unknown luks-image error occurred."


class InvalidArgument(LuksImageError):
    _msg_fmt = "Invalid argument: %(details)s"


class ImageExists(LuksImageError):
    _msg_fmt = "Image %(image)s already exists"


class ImageNotFound(LuksImageError):
    _msg_fmt = "Image %(image)s does not exist"


class MappingActive(LuksImageError):
    _msg_fmt = ("Mapping %(name)s is already active on %(device)s")


class MappingNotActive(LuksImageError):
    _msg_fmt = "Mapping %(name)s is not active"


class MountPointNotFound(LuksImageError):
    _msg_fmt = ("Mount point %(mount_point)s does not exist, use -C to "
                "create it")


class PassphraseMismatch(LuksImageError):
    _msg_fmt = "Passphrases for %(name)s do not match"


class OperationInterrupted(LuksImageError):
    _msg_fmt = "Interrupted by %(signal)s"


class MountPointBusy(LuksImageError):
    _msg_fmt = "Another filesystem is already mounted on %(mount_point)s"

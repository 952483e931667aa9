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

"""Common utilities and classes across all unit tests."""

from unittest import mock

from ironic_lib import utils
from oslo_config import fixture as config_fixture
from oslotest import base as test_base

from luks_image import config


class LuksImageTest(test_base.BaseTestCase):

    # Set this to False to allow calling ironic_lib.utils.execute directly
    block_execute = True

    def setUp(self):
        super().setUp()
        self._set_config()
        if self.block_execute:
            self._exec_patch = mock.Mock()
            self._exec_patch.side_effect = Exception(
                "Don't call ironic_lib.utils.execute in tests!")
            self.patch(utils, 'execute', self._exec_patch)

    def _set_config(self):
        self.cfg_fixture = self.useFixture(config_fixture.Config(config.CONF))

    def config(self, **kw):
        """Override config options for a test."""
        self.cfg_fixture.config(**kw)

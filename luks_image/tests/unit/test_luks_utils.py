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

import getpass
from unittest import mock

from ironic_lib import utils

from luks_image import errors
from luks_image import luks_utils
from luks_image.tests.unit import base

STATUS_ACTIVE = """\
/dev/mapper/secret is active and is in use.
  type:    LUKS2
  cipher:  aes-xts-plain64
  keysize: 512 bits
  key location: keyring
  device:  /dev/loop0
  loop:    /srv/images/secret.img
  sector size:  512
  offset:  32768 sectors
  size:    2064384 sectors
  mode:    read/write
"""


@mock.patch.object(getpass, 'getpass', autospec=True)
class TestPromptPassphrase(base.LuksImageTest):

    def test_single(self, mock_getpass):
        mock_getpass.return_value = 'hunter2'
        self.assertEqual('hunter2', luks_utils.prompt_passphrase('secret'))
        self.assertEqual(1, mock_getpass.call_count)

    def test_confirm(self, mock_getpass):
        mock_getpass.side_effect = ['hunter2', 'hunter2']
        self.assertEqual('hunter2',
                         luks_utils.prompt_passphrase('secret', confirm=True))

    def test_mismatch(self, mock_getpass):
        mock_getpass.side_effect = ['hunter2', 'hunter3']
        self.assertRaises(errors.PassphraseMismatch,
                          luks_utils.prompt_passphrase, 'secret',
                          confirm=True)

    def test_empty(self, mock_getpass):
        mock_getpass.return_value = ''
        self.assertRaises(errors.InvalidArgument,
                          luks_utils.prompt_passphrase, 'secret')


@mock.patch.object(utils, 'execute', autospec=True)
class TestLuks(base.LuksImageTest):

    block_execute = False

    def test_format_passphrase(self, mock_execute):
        mock_execute.return_value = ('', '')
        luks_utils.luks_format('/dev/loop0', 512, 'sha512',
                               passphrase='hunter2')
        mock_execute.assert_called_once_with(
            'cryptsetup', '--batch-mode', 'luksFormat', '--type', 'luks2',
            '--cipher', 'aes-xts-plain64', '--key-size', '512',
            '--hash', 'sha512', '--key-file', '-', '/dev/loop0',
            process_input='hunter2')

    def test_format_key_file_and_config(self, mock_execute):
        self.config(luks_type='luks1', cipher='serpent-xts-plain64')
        mock_execute.return_value = ('', '')
        luks_utils.luks_format('/dev/loop0', 256, 'sha256',
                               key_file='/root/key')
        mock_execute.assert_called_once_with(
            'cryptsetup', '--batch-mode', 'luksFormat', '--type', 'luks1',
            '--cipher', 'serpent-xts-plain64', '--key-size', '256',
            '--hash', 'sha256', '--key-file', '/root/key', '/dev/loop0')

    def test_open(self, mock_execute):
        mock_execute.return_value = ('', '')
        self.assertEqual('/dev/mapper/secret',
                         luks_utils.luks_open('/dev/loop0', 'secret',
                                              passphrase='hunter2'))
        mock_execute.assert_called_once_with(
            'cryptsetup', 'open', '--type', 'luks', '--key-file', '-',
            '/dev/loop0', 'secret', process_input='hunter2')

    def test_close(self, mock_execute):
        mock_execute.return_value = ('', '')
        luks_utils.luks_close('secret')
        mock_execute.assert_called_once_with('cryptsetup', 'close', 'secret')

    def test_status_active(self, mock_execute):
        mock_execute.return_value = (STATUS_ACTIVE, '')
        status = luks_utils.luks_status('secret')
        self.assertEqual('LUKS2', status['type'])
        self.assertEqual('/dev/loop0', status['device'])
        self.assertEqual('/srv/images/secret.img', status['loop'])
        self.assertEqual('keyring', status['key location'])
        mock_execute.assert_called_once_with('cryptsetup', 'status',
                                             'secret',
                                             check_exit_code=[0, 4])

    def test_status_inactive(self, mock_execute):
        mock_execute.return_value = ('/dev/mapper/secret is inactive.\n', '')
        self.assertIsNone(luks_utils.luks_status('secret'))

    def test_list_crypt_targets(self, mock_execute):
        mock_execute.return_value = ('secret\t(253:0)\nhome\t(253:1)\n', '')
        self.assertEqual(['secret', 'home'],
                         luks_utils.list_crypt_targets())
        mock_execute.assert_called_once_with('dmsetup', 'ls', '--target',
                                             'crypt')

    def test_list_crypt_targets_none(self, mock_execute):
        mock_execute.return_value = ('No devices found\n', '')
        self.assertEqual([], luks_utils.list_crypt_targets())
